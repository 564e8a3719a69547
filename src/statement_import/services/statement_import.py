"""Statement import service.

This module drives every operation on a statement import:

Upload:
1. Store the raw document
2. Create the import and move it to parsing
3. Extract text
4. Snapshot the user's categories
5. Parse candidates with the AI parser
6. Drop statement boilerplate rows
7. Resolve categories (with a fallback)
8. Complete parsing and persist

Failures from step 3 onward leave a Failed import behind with the reason,
so a client can always explain what went wrong.

Review: get, list, re-categorize, cancel.

Confirm: the Confirmed status and a durable confirmation intent are
committed together before any ledger row is written; ledger rows are then
created idempotently so an interrupted confirmation can be retried.
"""

import asyncio
import logging
from collections.abc import Sequence
from uuid import UUID

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.exc import StaleDataError

from statement_import.categorization import find_fallback_category, resolve_category
from statement_import.config import settings
from statement_import.core.errors import get_user_message
from statement_import.core.exceptions import (
    AuthorizationError,
    CategoryResolutionError,
    ConcurrencyConflictError,
    ExtractionError,
    FileStorageError,
    NoTransactionsError,
    NotFoundError,
    ParsingError,
    StatementImportError,
    TransactionCreationError,
    ValidationError,
)
from statement_import.domain import (
    ImportStatus,
    ParsedTransaction,
    StatementImportConfirmed,
    StatementUpload,
)
from statement_import.parsers.summary_filter import filter_summary_rows
from statement_import.repositories.statement_upload import StatementUploadRepository
from statement_import.schemas.internal import CategoryInfo, RawParsedTransaction
from statement_import.services.contracts import (
    CategoryProvider,
    FileStorage,
    StatementParser,
    TextExtractor,
    TransactionCreator,
)

logger = logging.getLogger(__name__)

# Symbols and prefixed dollars that statements print instead of an ISO code.
CURRENCY_SYMBOLS = {
    "$": "USD",
    "US$": "USD",
    "USD$": "USD",
    "C$": "CAD",
    "CA$": "CAD",
    "A$": "AUD",
    "AU$": "AUD",
    "€": "EUR",
    "£": "GBP",
    "¥": "JPY",
    "₹": "INR",
}


def normalize_currency(value: str | None) -> str | None:
    """ISO 4217 code for a parser-reported currency, or None if unrecognized."""
    code = (value or "").strip().upper()
    code = CURRENCY_SYMBOLS.get(code, code)
    if len(code) == 3 and code.isalpha():
        return code
    return None


def statement_period(transactions: Sequence[ParsedTransaction]) -> tuple[int, int] | None:
    """(month, year) of the latest transaction date, or None for no lines."""
    if not transactions:
        return None
    latest = max(t.transaction_date for t in transactions)
    return latest.month, latest.year


class StatementImportService:
    """Service for uploading, reviewing and confirming statement imports.

    Collaborators are passed in so the pipeline can run against fakes; the
    service owns the unit of work and is the only place that commits.
    """

    def __init__(
        self,
        db: AsyncSession,
        storage: FileStorage,
        extractor: TextExtractor,
        parser: StatementParser,
        categories: CategoryProvider,
        ledger: TransactionCreator,
        upload_repo: StatementUploadRepository | None = None,
    ):
        """Initialize the service.

        Args:
            db: Database session for persistence
            storage: Raw document storage
            extractor: Document to text converter
            parser: AI statement parser
            categories: Category snapshot provider
            ledger: Downstream transaction creation
            upload_repo: Repository override (defaults to the SQL repository)
        """
        self.db = db
        self.storage = storage
        self.extractor = extractor
        self.parser = parser
        self.categories = categories
        self.ledger = ledger
        self.upload_repo = upload_repo or StatementUploadRepository(db)

    # Upload

    async def upload(self, content: bytes, file_name: str, user_id: UUID) -> StatementUpload:
        """Run the full upload pipeline for one document.

        Args:
            content: Raw document bytes
            file_name: Original file name as supplied by the client
            user_id: Acting user

        Returns:
            The import in PendingReview with its parsed transactions

        Raises:
            ValidationError: Bad input; nothing is stored
            FileStorageError: The document could not be stored; nothing is persisted
            ExtractionError, ParsingError, NoTransactionsError,
            CategoryResolutionError: The import is persisted as Failed first
        """
        self._validate_input(content, file_name)

        try:
            locator = await self.storage.save(content, file_name, user_id)
        except Exception as e:
            logger.error(
                "Statement file storage failed",
                extra={"user_id": str(user_id), "error_type": type(e).__name__},
            )
            raise FileStorageError("STORAGE_001") from e

        try:
            upload = StatementUpload.create(user_id, file_name, locator)
        except ValidationError:
            await self.storage.delete(locator)
            raise

        upload = upload.mark_as_parsing()
        logger.info(
            "Statement import started",
            extra={"statement_upload_id": str(upload.id), "user_id": str(user_id)},
        )

        try:
            text = await self._extract_text(upload)
            snapshot = await self.categories.available_categories(user_id)
            candidates = await self._parse(upload, text, snapshot)
            transactions = self._build_transactions(upload, candidates, snapshot)
            upload = upload.complete_parsing(transactions, statement_period(transactions))
        except StatementImportError as e:
            await self._persist_failure(upload, e)
            raise

        await self.upload_repo.add(upload)
        await self._commit(upload.id)

        logger.info(
            "Statement import ready for review",
            extra={
                "statement_upload_id": str(upload.id),
                "transactions_count": len(upload.parsed_transactions),
            },
        )
        return upload

    def _validate_input(self, content: bytes, file_name: str) -> None:
        if not file_name or not file_name.strip():
            raise ValidationError("VAL_001", {"field": "file_name"})
        if not file_name.strip().lower().endswith(settings.accepted_extension.lower()):
            raise ValidationError("API_001", {"file_name": file_name})
        if not content:
            raise ValidationError("API_003")
        max_bytes = settings.upload_max_size_mb * 1024 * 1024
        if len(content) > max_bytes:
            raise ValidationError("API_002", {"max_size_mb": settings.upload_max_size_mb})

    async def _extract_text(self, upload: StatementUpload) -> str:
        try:
            document = await self.storage.read(upload.stored_file_path)
            return await asyncio.wait_for(
                self.extractor.extract(document), timeout=settings.extract_timeout_seconds
            )
        except Exception as e:
            logger.warning(
                "Statement text extraction failed",
                extra={"statement_upload_id": str(upload.id), "error_type": type(e).__name__},
            )
            raise ExtractionError("PARSE_001", {"error_type": type(e).__name__}) from e

    async def _parse(
        self, upload: StatementUpload, text: str, snapshot: Sequence[CategoryInfo]
    ) -> list[RawParsedTransaction]:
        try:
            candidates = await asyncio.wait_for(
                self.parser.parse(text, snapshot), timeout=settings.parse_timeout_seconds
            )
        except Exception as e:
            logger.warning(
                "Statement parsing failed",
                extra={"statement_upload_id": str(upload.id), "error_type": type(e).__name__},
            )
            raise ParsingError("PARSE_002", {"error_type": type(e).__name__}) from e

        kept = filter_summary_rows(candidates)
        logger.info(
            "Filtered statement boilerplate",
            extra={
                "statement_upload_id": str(upload.id),
                "candidates": len(candidates),
                "kept": len(kept),
            },
        )
        if not kept:
            raise NoTransactionsError({"candidates": len(candidates)})
        return kept

    def _build_transactions(
        self,
        upload: StatementUpload,
        candidates: Sequence[RawParsedTransaction],
        snapshot: Sequence[CategoryInfo],
    ) -> list[ParsedTransaction]:
        fallback_id = find_fallback_category(snapshot, settings.fallback_category_name)
        if fallback_id is None:
            raise CategoryResolutionError("PARSE_004", {"user_id": str(upload.user_id)})

        transactions = []
        for candidate in candidates:
            category_id = resolve_category(candidate.suggested_category_name, snapshot)
            currency = normalize_currency(candidate.currency)
            if currency is None:
                logger.info(
                    "Unrecognized currency, using default",
                    extra={
                        "statement_upload_id": str(upload.id),
                        "currency": settings.default_currency,
                    },
                )
                currency = settings.default_currency
            try:
                transactions.append(
                    ParsedTransaction(
                        statement_upload_id=upload.id,
                        transaction_date=candidate.transaction_date,
                        description=candidate.description,
                        amount=abs(candidate.amount),
                        currency=currency,
                        suggested_category_id=category_id or fallback_id,
                        original_text=candidate.original_text,
                    )
                )
            except ValueError as e:
                # pydantic's ValidationError subclasses ValueError
                raise ParsingError("PARSE_002", {"reason": "invalid_transaction"}) from e
        return transactions

    async def _persist_failure(self, upload: StatementUpload, error: StatementImportError) -> None:
        failed = upload.mark_as_failed(get_user_message(error.error_code))
        await self.upload_repo.add(failed)
        await self._commit(failed.id)
        logger.warning(
            "Statement import failed",
            extra={"statement_upload_id": str(failed.id), "error_code": error.error_code},
        )

    # Review

    async def get_by_id(self, upload_id: UUID, user_id: UUID) -> StatementUpload:
        return await self._get_owned(upload_id, user_id)

    async def list_for_user(
        self, user_id: UUID, skip: int = 0, limit: int = 100
    ) -> list[StatementUpload]:
        return await self.upload_repo.list_by_user(user_id, skip=skip, limit=limit)

    async def update_categories(
        self, upload_id: UUID, user_id: UUID, updates: Sequence[tuple[UUID, UUID]]
    ) -> StatementUpload:
        """Apply category overrides in order.

        Args:
            upload_id: Import to edit
            user_id: Acting user
            updates: (parsed_transaction_id, category_id) pairs

        Raises:
            ValidationError: A category id is not visible to the user
            NotFoundError: A parsed transaction id is not part of the import
            InvalidStatusError: The import is not in PendingReview

        The first invalid update rejects the whole request; nothing is saved.
        """
        upload = await self._get_owned(upload_id, user_id)
        visible = {c.id for c in await self.categories.available_categories(user_id)}

        for parsed_transaction_id, category_id in updates:
            if category_id not in visible:
                raise ValidationError(
                    "VAL_001", {"field": "category_id", "category_id": str(category_id)}
                )
            upload = upload.update_transaction_category(parsed_transaction_id, category_id)

        await self.upload_repo.save(upload)
        await self._commit(upload.id)
        logger.info(
            "Updated transaction categories",
            extra={"statement_upload_id": str(upload.id), "updates": len(updates)},
        )
        return upload

    async def cancel(self, upload_id: UUID, user_id: UUID) -> None:
        upload = await self._get_owned(upload_id, user_id)
        cancelled = upload.cancel()
        await self.upload_repo.save(cancelled)
        await self._commit(upload_id)
        logger.info("Statement import cancelled", extra={"statement_upload_id": str(upload_id)})

    # Confirm

    async def confirm(self, upload_id: UUID, user_id: UUID) -> None:
        """Confirm an import and create its ledger transactions.

        Raises:
            InvalidStatusError: The import is not in PendingReview
            ConcurrencyConflictError: Another request changed the import first
            TransactionCreationError: The import is Confirmed but ledger rows
                are missing; use retry_confirmation()
        """
        upload = await self._get_owned(upload_id, user_id)
        confirmed, event = upload.confirm()

        await self.upload_repo.save(confirmed)
        await self.upload_repo.add_confirmation(event)
        await self._commit(upload_id)
        logger.info(
            "Statement import confirmed",
            extra={
                "statement_upload_id": str(upload_id),
                "event_id": str(event.event_id),
                "transactions_count": len(event.transactions),
            },
        )

        await self._create_transactions(event)

    async def retry_confirmation(self, upload_id: UUID, user_id: UUID) -> None:
        """Resume ledger creation for a confirmed import whose intent is still pending."""
        upload = await self._get_owned(upload_id, user_id)
        if upload.status != ImportStatus.CONFIRMED:
            raise StatementImportError(
                "CONFIRM_002", {"status": upload.status.value}, http_status=409
            )

        event = await self.upload_repo.get_pending_confirmation(upload_id)
        if event is None:
            raise StatementImportError(
                "CONFIRM_002", {"statement_upload_id": str(upload_id)}, http_status=409
            )

        await self.upload_repo.record_confirmation_attempt(upload_id)
        await self._commit(upload_id)
        logger.info("Retrying statement confirmation", extra={"statement_upload_id": str(upload_id)})

        await self._create_transactions(event)

    async def _create_transactions(self, event: StatementImportConfirmed) -> None:
        upload_id = event.statement_upload_id
        created = 0
        try:
            for line in event.transactions:
                was_created = await self.ledger.create(
                    user_id=event.user_id,
                    amount=line.amount,
                    currency=line.currency,
                    transaction_date=line.transaction_date,
                    description=line.description,
                    category_id=line.category_id,
                    source_key=line.source_key(upload_id),
                )
                if was_created:
                    created += 1
            await self.upload_repo.complete_confirmation(upload_id, created)
            await self.db.commit()
        except Exception as e:
            await self.db.rollback()
            logger.error(
                "Ledger transaction creation failed after confirmation",
                extra={
                    "statement_upload_id": str(upload_id),
                    "error_code": "CONFIRM_001",
                    "error_type": type(e).__name__,
                },
            )
            raise TransactionCreationError(
                "CONFIRM_001",
                {"statement_upload_id": str(upload_id), "transactions_count": len(event.transactions)},
            ) from e

        logger.info(
            "Ledger transactions created",
            extra={
                "statement_upload_id": str(upload_id),
                "created": created,
                "skipped": len(event.transactions) - created,
            },
        )

    # Helpers

    async def _get_owned(self, upload_id: UUID, user_id: UUID) -> StatementUpload:
        upload = await self.upload_repo.get(upload_id)
        if upload is None:
            raise NotFoundError("IMPORT_001", {"statement_upload_id": str(upload_id)})
        if upload.user_id != user_id:
            logger.warning(
                "Import access denied",
                extra={"statement_upload_id": str(upload_id), "user_id": str(user_id)},
            )
            raise AuthorizationError("IMPORT_002")
        return upload

    async def _commit(self, upload_id: UUID) -> None:
        try:
            await self.db.commit()
        except (StaleDataError, IntegrityError) as e:
            await self.db.rollback()
            logger.warning(
                "Concurrent modification rejected",
                extra={"statement_upload_id": str(upload_id), "error_type": type(e).__name__},
            )
            raise ConcurrencyConflictError({"statement_upload_id": str(upload_id)}) from e
