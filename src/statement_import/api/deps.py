"""FastAPI dependency injection for authentication, database and services."""

from typing import Annotated
from uuid import UUID

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError
from sqlalchemy.ext.asyncio import AsyncSession

from statement_import.core.security import get_user_id_from_token
from statement_import.db.session import get_db
from statement_import.parsers.ai_parser import OpenAIStatementParser
from statement_import.parsers.extractor import PdfTextExtractor
from statement_import.services.category_provider import SqlCategoryProvider
from statement_import.services.file_storage import LocalFileStorage
from statement_import.services.ledger import LedgerTransactionService
from statement_import.services.statement_import import StatementImportService

# OAuth2 bearer token scheme
security = HTTPBearer()


async def get_current_user_id(
    credentials: Annotated[HTTPAuthorizationCredentials, Depends(security)],
) -> UUID:
    """
    Extract the acting user's id from the bearer token.

    Raises:
        HTTPException: If the token is invalid, expired or has no usable subject
    """
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )

    try:
        return get_user_id_from_token(credentials.credentials)
    except (JWTError, ValueError):
        raise credentials_exception


def get_file_storage() -> LocalFileStorage:
    return LocalFileStorage()


def get_text_extractor() -> PdfTextExtractor:
    return PdfTextExtractor()


def get_statement_parser() -> OpenAIStatementParser:
    return OpenAIStatementParser()


async def get_statement_import_service(
    db: AsyncSession = Depends(get_db),
    storage: LocalFileStorage = Depends(get_file_storage),
    extractor: PdfTextExtractor = Depends(get_text_extractor),
    parser: OpenAIStatementParser = Depends(get_statement_parser),
) -> StatementImportService:
    """
    Build the import service for one request.

    Everything shares the request's database session so that one
    commit covers the import and its ledger rows.
    """
    return StatementImportService(
        db=db,
        storage=storage,
        extractor=extractor,
        parser=parser,
        categories=SqlCategoryProvider(db),
        ledger=LedgerTransactionService(db),
    )
