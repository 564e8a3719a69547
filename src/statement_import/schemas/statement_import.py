"""Pydantic schemas for statement import API requests and responses."""

from datetime import date, datetime
from decimal import Decimal
from uuid import UUID

from pydantic import BaseModel, Field

from statement_import.domain import ImportStatus, ParsedTransaction, StatementUpload


# Request schemas


class TransactionCategoryUpdate(BaseModel):
    """One category override for a parsed transaction."""

    parsed_transaction_id: UUID = Field(description="ID of the parsed transaction to re-categorize")
    category_id: UUID = Field(description="New category for the transaction")


class UpdateTransactionsRequest(BaseModel):
    """Category overrides applied in order; the first invalid one rejects the request."""

    updates: list[TransactionCategoryUpdate] = Field(min_length=1)


# Response schemas


class ParsedTransactionResponse(BaseModel):
    """A parsed statement line awaiting review."""

    id: UUID
    transaction_date: date
    description: str
    amount: Decimal = Field(description="Positive magnitude")
    currency: str
    suggested_category_id: UUID
    confirmed_category_id: UUID | None = None
    effective_category_id: UUID = Field(description="User override if set, else the suggestion")
    original_text: str | None = None

    @classmethod
    def from_domain(cls, txn: ParsedTransaction) -> "ParsedTransactionResponse":
        return cls(
            id=txn.id,
            transaction_date=txn.transaction_date,
            description=txn.description,
            amount=txn.amount,
            currency=txn.currency,
            suggested_category_id=txn.suggested_category_id,
            confirmed_category_id=txn.confirmed_category_id,
            effective_category_id=txn.effective_category_id,
            original_text=txn.original_text,
        )


class StatementUploadResponse(BaseModel):
    """Full view of one import, including its parsed transactions."""

    id: UUID
    original_file_name: str
    uploaded_at: datetime
    status: ImportStatus
    error_message: str | None = None
    statement_month: int | None = None
    statement_year: int | None = None
    parsed_transactions: list[ParsedTransactionResponse] = Field(default_factory=list)

    @classmethod
    def from_domain(cls, upload: StatementUpload) -> "StatementUploadResponse":
        return cls(
            id=upload.id,
            original_file_name=upload.original_file_name,
            uploaded_at=upload.uploaded_at,
            status=upload.status,
            error_message=upload.error_message,
            statement_month=upload.statement_month,
            statement_year=upload.statement_year,
            parsed_transactions=[
                ParsedTransactionResponse.from_domain(t) for t in upload.parsed_transactions
            ],
        )


class StatementUploadSummary(BaseModel):
    """List item for a user's imports."""

    id: UUID
    original_file_name: str
    uploaded_at: datetime
    status: ImportStatus
    transaction_count: int

    @classmethod
    def from_domain(cls, upload: StatementUpload) -> "StatementUploadSummary":
        return cls(
            id=upload.id,
            original_file_name=upload.original_file_name,
            uploaded_at=upload.uploaded_at,
            status=upload.status,
            transaction_count=len(upload.parsed_transactions),
        )


class StatementUploadListResult(BaseModel):
    """Imports for the current user, newest first."""

    data: list[StatementUploadSummary]
