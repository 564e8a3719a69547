"""Statement import endpoints: upload, review, confirm and cancel."""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, Header, Query, Request, Response, status

from statement_import.api.deps import get_current_user_id, get_statement_import_service
from statement_import.config import settings
from statement_import.core.exceptions import ValidationError
from statement_import.schemas.statement_import import (
    StatementUploadListResult,
    StatementUploadResponse,
    StatementUploadSummary,
    UpdateTransactionsRequest,
)
from statement_import.services.statement_import import StatementImportService

router = APIRouter(prefix="/statement-imports", tags=["statement-imports"])

PDF_CONTENT_TYPE = "application/pdf"

_ERROR_RESPONSES = {
    401: {"description": "Missing or invalid bearer token"},
    403: {"description": "Import belongs to another user (IMPORT_002)"},
    404: {"description": "Import not found (IMPORT_001)"},
}


async def _read_body(request: Request) -> bytes:
    # Read in-memory with a strict size cap (no disk spooling).
    max_bytes = settings.upload_max_size_mb * 1024 * 1024
    buf = bytearray()
    async for chunk in request.stream():
        if not chunk:
            continue
        if len(buf) + len(chunk) > max_bytes:
            raise ValidationError("API_002", {"max_size_mb": settings.upload_max_size_mb})
        buf.extend(chunk)
    return bytes(buf)


@router.post(
    "/upload",
    response_model=StatementUploadResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Upload a statement for import",
    description="""
    Upload a statement PDF and parse it into transactions awaiting review.

    ## File Requirements
    - Request body must be raw PDF bytes (`Content-Type: application/pdf`)
    - Original file name in the `X-File-Name` header
    - Maximum size: configurable via `UPLOAD_MAX_SIZE_MB` (default: 10MB)

    ## Error Codes
    - API_001: Invalid file type
    - API_002: File too large
    - API_003: Empty file
    - STORAGE_001: File could not be stored
    - PARSE_001..PARSE_004: Import recorded as failed
    """,
    responses={
        400: {"description": "Invalid upload (API_001, API_002, API_003, VAL_001)"},
        422: {"description": "Import failed during extraction or parsing"},
    },
)
async def upload_statement(
    request: Request,
    file_name: Annotated[str, Header(alias="X-File-Name", description="Original file name")],
    user_id: UUID = Depends(get_current_user_id),
    service: StatementImportService = Depends(get_statement_import_service),
) -> StatementUploadResponse:
    content_type = (request.headers.get("content-type") or "").split(";")[0].strip()
    if content_type.lower() != PDF_CONTENT_TYPE:
        raise ValidationError("API_001", {"content_type": content_type})

    content = await _read_body(request)
    upload = await service.upload(content, file_name, user_id)
    return StatementUploadResponse.from_domain(upload)


@router.get(
    "",
    response_model=StatementUploadListResult,
    summary="List the current user's imports",
)
async def list_imports(
    skip: Annotated[int, Query(ge=0)] = 0,
    limit: Annotated[int, Query(ge=1, le=100)] = 100,
    user_id: UUID = Depends(get_current_user_id),
    service: StatementImportService = Depends(get_statement_import_service),
) -> StatementUploadListResult:
    uploads = await service.list_for_user(user_id, skip=skip, limit=limit)
    return StatementUploadListResult(data=[StatementUploadSummary.from_domain(u) for u in uploads])


@router.get(
    "/{upload_id}",
    response_model=StatementUploadResponse,
    summary="Get an import with its parsed transactions",
    responses=_ERROR_RESPONSES,
)
async def get_import(
    upload_id: UUID,
    user_id: UUID = Depends(get_current_user_id),
    service: StatementImportService = Depends(get_statement_import_service),
) -> StatementUploadResponse:
    upload = await service.get_by_id(upload_id, user_id)
    return StatementUploadResponse.from_domain(upload)


@router.put(
    "/{upload_id}/transactions",
    response_model=StatementUploadResponse,
    summary="Override categories of parsed transactions",
    responses=_ERROR_RESPONSES,
)
async def update_transactions(
    upload_id: UUID,
    payload: UpdateTransactionsRequest,
    user_id: UUID = Depends(get_current_user_id),
    service: StatementImportService = Depends(get_statement_import_service),
) -> StatementUploadResponse:
    upload = await service.update_categories(
        upload_id,
        user_id,
        [(u.parsed_transaction_id, u.category_id) for u in payload.updates],
    )
    return StatementUploadResponse.from_domain(upload)


@router.post(
    "/{upload_id}/confirm",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Confirm an import and create its transactions",
    responses={
        **_ERROR_RESPONSES,
        409: {"description": "Invalid status (IMPORT_003) or concurrent change (DB_002)"},
        500: {"description": "Confirmed but transaction creation failed (CONFIRM_001)"},
    },
)
async def confirm_import(
    upload_id: UUID,
    user_id: UUID = Depends(get_current_user_id),
    service: StatementImportService = Depends(get_statement_import_service),
) -> Response:
    await service.confirm(upload_id, user_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post(
    "/{upload_id}/confirm/retry",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Resume transaction creation for a confirmed import",
    responses={
        **_ERROR_RESPONSES,
        409: {"description": "Nothing left to retry (CONFIRM_002)"},
    },
)
async def retry_confirmation(
    upload_id: UUID,
    user_id: UUID = Depends(get_current_user_id),
    service: StatementImportService = Depends(get_statement_import_service),
) -> Response:
    await service.retry_confirmation(upload_id, user_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post(
    "/{upload_id}/cancel",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Cancel an import",
    responses={**_ERROR_RESPONSES, 409: {"description": "Import already confirmed (IMPORT_003)"}},
)
async def cancel_import(
    upload_id: UUID,
    user_id: UUID = Depends(get_current_user_id),
    service: StatementImportService = Depends(get_statement_import_service),
) -> Response:
    await service.cancel(upload_id, user_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
