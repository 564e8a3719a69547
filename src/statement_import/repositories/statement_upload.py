"""Statement upload repository.

Translates between the immutable StatementUpload aggregate and its ORM rows.
The aggregate carries the row version it was loaded at. save() refuses to
apply it over a row that has moved on, and the mapper's version_id_col
catches a row that moves on between save() and the flush.
"""
from datetime import datetime, timezone
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from statement_import.core.exceptions import ConcurrencyConflictError, NotFoundError
from statement_import.domain import (
    ImportStatus,
    ParsedTransaction,
    StatementImportConfirmed,
    StatementUpload,
)
from statement_import.models.import_confirmation import (
    CONFIRMATION_COMPLETED,
    CONFIRMATION_PENDING,
    ImportConfirmation,
)
from statement_import.models.statement_upload import (
    ParsedTransactionRecord,
    StatementUploadRecord,
)
from statement_import.repositories.base import BaseRepository


def to_domain(record: StatementUploadRecord) -> StatementUpload:
    """Build the aggregate from a record with its children loaded."""
    return StatementUpload(
        id=record.id,
        user_id=record.user_id,
        original_file_name=record.original_file_name,
        stored_file_path=record.stored_file_path,
        uploaded_at=record.uploaded_at,
        status=ImportStatus(record.status),
        error_message=record.error_message,
        statement_month=record.statement_month,
        statement_year=record.statement_year,
        version=record.version,
        parsed_transactions=tuple(
            ParsedTransaction(
                id=child.id,
                statement_upload_id=record.id,
                transaction_date=child.transaction_date,
                description=child.description,
                amount=child.amount,
                currency=child.currency,
                suggested_category_id=child.suggested_category_id,
                confirmed_category_id=child.confirmed_category_id,
                original_text=child.original_text,
            )
            for child in sorted(record.parsed_transactions, key=lambda c: c.position)
        ),
    )


def _child_record(txn: ParsedTransaction, position: int) -> ParsedTransactionRecord:
    return ParsedTransactionRecord(
        id=txn.id,
        statement_upload_id=txn.statement_upload_id,
        position=position,
        transaction_date=txn.transaction_date,
        description=txn.description,
        amount=txn.amount,
        currency=txn.currency,
        suggested_category_id=txn.suggested_category_id,
        confirmed_category_id=txn.confirmed_category_id,
        original_text=txn.original_text,
    )


def to_record(upload: StatementUpload) -> StatementUploadRecord:
    """Build a new record (and child records) for an aggregate."""
    record = StatementUploadRecord(
        id=upload.id,
        user_id=upload.user_id,
        original_file_name=upload.original_file_name,
        stored_file_path=upload.stored_file_path,
        uploaded_at=upload.uploaded_at,
        parsed_transactions=[],
    )
    apply_to_record(upload, record)
    return record


def apply_to_record(upload: StatementUpload, record: StatementUploadRecord) -> None:
    """Copy mutable aggregate state onto a tracked record.

    Children are only ever appended (once, by complete_parsing) and then
    re-categorized, so existing child rows are updated in place and unknown
    ones are appended at their position.
    """
    record.status = upload.status.value
    record.error_message = upload.error_message
    record.statement_month = upload.statement_month
    record.statement_year = upload.statement_year
    # Always touch the parent row so that child-only edits still bump the version.
    record.updated_at = datetime.now(timezone.utc)

    existing = {child.id: child for child in record.parsed_transactions}
    for position, txn in enumerate(upload.parsed_transactions):
        child = existing.get(txn.id)
        if child is None:
            record.parsed_transactions.append(_child_record(txn, position))
        elif child.confirmed_category_id != txn.confirmed_category_id:
            child.confirmed_category_id = txn.confirmed_category_id


class StatementUploadRepository(BaseRepository[StatementUploadRecord]):
    """Persistence for StatementUpload aggregates and their confirmation intents."""

    def __init__(self, db: AsyncSession):
        super().__init__(db, StatementUploadRecord)

    async def get(self, upload_id: UUID) -> StatementUpload | None:
        """Load an aggregate with its parsed transactions."""
        record = await self.get_by_id(upload_id)
        return to_domain(record) if record else None

    async def list_by_user(
        self, user_id: UUID, skip: int = 0, limit: int = 100
    ) -> list[StatementUpload]:
        """All imports for a user, newest first."""
        result = await self.db.execute(
            select(StatementUploadRecord)
            .where(StatementUploadRecord.user_id == user_id)
            .order_by(StatementUploadRecord.uploaded_at.desc())
            .offset(skip)
            .limit(limit)
        )
        return [to_domain(r) for r in result.scalars().all()]

    async def add(self, upload: StatementUpload) -> None:
        """Stage a newly created aggregate."""
        super().add(to_record(upload))

    async def save(self, upload: StatementUpload) -> None:
        """Stage the new state of an existing aggregate.

        Raises:
            NotFoundError: If the import no longer exists.
            ConcurrencyConflictError: If the stored row is newer than the
                version the aggregate was loaded at.
        """
        record = await self.get_by_id(upload.id)
        if record is None:
            raise NotFoundError("IMPORT_001", {"statement_upload_id": str(upload.id)})
        if record.version != upload.version:
            raise ConcurrencyConflictError(
                {
                    "statement_upload_id": str(upload.id),
                    "expected_version": upload.version,
                    "stored_version": record.version,
                }
            )
        apply_to_record(upload, record)

    async def add_confirmation(self, event: StatementImportConfirmed) -> None:
        """Stage the durable confirmation intent for a confirmed import."""
        self.db.add(
            ImportConfirmation(
                statement_upload_id=event.statement_upload_id,
                user_id=event.user_id,
                status=CONFIRMATION_PENDING,
                payload=event.model_dump(mode="json"),
                transaction_count=len(event.transactions),
                created_count=0,
                attempts=1,
            )
        )

    async def _get_confirmation(self, upload_id: UUID) -> ImportConfirmation | None:
        result = await self.db.execute(
            select(ImportConfirmation).where(ImportConfirmation.statement_upload_id == upload_id)
        )
        return result.scalar_one_or_none()

    async def get_pending_confirmation(self, upload_id: UUID) -> StatementImportConfirmed | None:
        """The confirmed event still awaiting ledger rows, if any."""
        confirmation = await self._get_confirmation(upload_id)
        if confirmation is None or confirmation.status != CONFIRMATION_PENDING:
            return None
        return StatementImportConfirmed.model_validate(confirmation.payload)

    async def record_confirmation_attempt(self, upload_id: UUID) -> None:
        confirmation = await self._get_confirmation(upload_id)
        if confirmation is not None:
            confirmation.attempts += 1

    async def complete_confirmation(self, upload_id: UUID, created_count: int) -> None:
        """Mark the intent completed once every ledger row exists."""
        confirmation = await self._get_confirmation(upload_id)
        if confirmation is None:
            raise NotFoundError("CONFIRM_002", {"statement_upload_id": str(upload_id)})
        confirmation.status = CONFIRMATION_COMPLETED
        confirmation.created_count += created_count
        confirmation.completed_at = datetime.now(timezone.utc)
