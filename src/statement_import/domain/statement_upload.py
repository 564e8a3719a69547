"""Statement import aggregate and its lifecycle.

The aggregate is immutable: every transition returns a new StatementUpload
(and, for confirm(), the event it emits). Persisting the result is the
caller's job, which keeps storage concerns out of the state machine.

Lifecycle::

    Uploading -> Parsing -> PendingReview -> Confirmed
                                          -> Cancelled
    Uploading/Parsing -> Failed
"""

from __future__ import annotations

from collections.abc import Iterable
from datetime import date, datetime, timezone
from decimal import Decimal
from enum import Enum
from uuid import UUID, uuid4

from pydantic import BaseModel, ConfigDict, Field, field_validator

from statement_import.config import settings
from statement_import.core.exceptions import (
    InvalidStatusError,
    NoTransactionsError,
    NotFoundError,
    ValidationError,
)
from statement_import.domain.events import ConfirmedTransactionData, StatementImportConfirmed


class ImportStatus(str, Enum):
    UPLOADING = "uploading"
    PARSING = "parsing"
    PENDING_REVIEW = "pending_review"
    CONFIRMED = "confirmed"
    FAILED = "failed"
    CANCELLED = "cancelled"


class ParsedTransaction(BaseModel):
    """One statement line that survived filtering, owned by a StatementUpload.

    Amounts are positive magnitudes; the ledger decides expense vs. income.
    """

    model_config = ConfigDict(frozen=True)

    id: UUID = Field(default_factory=uuid4)
    statement_upload_id: UUID
    transaction_date: date
    description: str
    amount: Decimal
    currency: str
    suggested_category_id: UUID
    confirmed_category_id: UUID | None = None
    original_text: str | None = None

    @field_validator("description")
    @classmethod
    def description_not_empty(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("Description cannot be empty")
        return v.strip()

    @field_validator("amount")
    @classmethod
    def amount_is_magnitude(cls, v: Decimal) -> Decimal:
        if v < 0:
            raise ValueError("Amount must be a positive magnitude")
        return v

    @field_validator("currency")
    @classmethod
    def normalize_currency(cls, v: str) -> str:
        v = (v or "").strip().upper()
        if len(v) != 3 or not v.isalpha():
            raise ValueError("Currency must be a 3-letter ISO code")
        return v

    @property
    def effective_category_id(self) -> UUID:
        return self.confirmed_category_id or self.suggested_category_id

    def with_category(self, category_id: UUID) -> ParsedTransaction:
        return self.model_copy(update={"confirmed_category_id": category_id})


class StatementUpload(BaseModel):
    """Aggregate root for one upload-to-confirmation unit of work."""

    model_config = ConfigDict(frozen=True)

    id: UUID = Field(default_factory=uuid4)
    user_id: UUID
    original_file_name: str
    stored_file_path: str
    uploaded_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    status: ImportStatus = ImportStatus.UPLOADING
    error_message: str | None = None
    statement_month: int | None = None
    statement_year: int | None = None
    parsed_transactions: tuple[ParsedTransaction, ...] = ()
    # Row version the aggregate was loaded at; None until first persisted.
    version: int | None = None

    @classmethod
    def create(
        cls,
        user_id: UUID | None,
        original_file_name: str | None,
        stored_file_path: str | None,
    ) -> StatementUpload:
        """Start a new import in the Uploading state.

        Raises:
            ValidationError: If any identifying field is missing or the file
                does not have the accepted document extension.
        """
        if user_id is None or user_id.int == 0:
            raise ValidationError("VAL_001", {"field": "user_id"})
        if not original_file_name or not original_file_name.strip():
            raise ValidationError("VAL_001", {"field": "original_file_name"})
        if not original_file_name.strip().lower().endswith(settings.accepted_extension.lower()):
            raise ValidationError("API_001", {"file_name": original_file_name})
        if not stored_file_path or not stored_file_path.strip():
            raise ValidationError("VAL_001", {"field": "stored_file_path"})

        return cls(
            user_id=user_id,
            original_file_name=original_file_name.strip(),
            stored_file_path=stored_file_path,
        )

    @property
    def is_terminal(self) -> bool:
        return self.status in (ImportStatus.CONFIRMED, ImportStatus.CANCELLED)

    def _require(self, allowed: ImportStatus, operation: str) -> None:
        if self.status != allowed:
            raise InvalidStatusError(self.status.value, operation)

    def mark_as_parsing(self) -> StatementUpload:
        self._require(ImportStatus.UPLOADING, "mark_as_parsing")
        return self.model_copy(update={"status": ImportStatus.PARSING})

    def complete_parsing(
        self,
        transactions: Iterable[ParsedTransaction],
        statement_period: tuple[int, int] | None = None,
    ) -> StatementUpload:
        """Attach the parsed lines and move to PendingReview.

        Args:
            transactions: Parsed lines, in statement order
            statement_period: Optional (month, year) the statement covers

        Raises:
            NoTransactionsError: If transactions is empty (checked first)
            InvalidStatusError: If the import is not in Parsing
        """
        transactions = tuple(transactions)
        if not transactions:
            raise NoTransactionsError({"statement_upload_id": str(self.id)})
        self._require(ImportStatus.PARSING, "complete_parsing")

        for txn in transactions:
            if txn.statement_upload_id != self.id:
                raise ValidationError(
                    "VAL_001",
                    {"field": "statement_upload_id", "parsed_transaction_id": str(txn.id)},
                )

        update: dict = {
            "parsed_transactions": transactions,
            "status": ImportStatus.PENDING_REVIEW,
        }
        if statement_period is not None:
            update["statement_month"], update["statement_year"] = statement_period
        return self.model_copy(update=update)

    def mark_as_failed(self, reason: str) -> StatementUpload:
        if self.is_terminal:
            raise InvalidStatusError(self.status.value, "mark_as_failed")
        return self.model_copy(
            update={"status": ImportStatus.FAILED, "error_message": reason}
        )

    def update_transaction_category(
        self, parsed_transaction_id: UUID, category_id: UUID
    ) -> StatementUpload:
        self._require(ImportStatus.PENDING_REVIEW, "update_transaction_category")

        for index, txn in enumerate(self.parsed_transactions):
            if txn.id == parsed_transaction_id:
                updated = list(self.parsed_transactions)
                updated[index] = txn.with_category(category_id)
                return self.model_copy(update={"parsed_transactions": tuple(updated)})

        raise NotFoundError(
            "IMPORT_004",
            {"parsed_transaction_id": str(parsed_transaction_id)},
        )

    def confirm(self) -> tuple[StatementUpload, StatementImportConfirmed]:
        """Confirm the import and emit the event that materializes transactions.

        Returns:
            The confirmed aggregate and a snapshot event of every line using
            its effective category.
        """
        self._require(ImportStatus.PENDING_REVIEW, "confirm")
        if not self.parsed_transactions:
            raise NoTransactionsError({"statement_upload_id": str(self.id)})

        event = StatementImportConfirmed(
            statement_upload_id=self.id,
            user_id=self.user_id,
            transactions=tuple(
                ConfirmedTransactionData(
                    parsed_transaction_id=t.id,
                    transaction_date=t.transaction_date,
                    description=t.description,
                    amount=t.amount,
                    currency=t.currency,
                    category_id=t.effective_category_id,
                )
                for t in self.parsed_transactions
            ),
        )
        return self.model_copy(update={"status": ImportStatus.CONFIRMED}), event

    def cancel(self) -> StatementUpload:
        if self.status == ImportStatus.CONFIRMED:
            raise InvalidStatusError(self.status.value, "cancel")
        return self.model_copy(update={"status": ImportStatus.CANCELLED})
