"""Integration events emitted by the statement import aggregate."""

from datetime import date, datetime, timezone
from decimal import Decimal
from uuid import UUID, uuid4

from pydantic import BaseModel, ConfigDict, Field


class ConfirmedTransactionData(BaseModel):
    """Snapshot of one parsed line at confirmation time."""

    model_config = ConfigDict(frozen=True)

    parsed_transaction_id: UUID
    transaction_date: date
    description: str
    amount: Decimal
    currency: str
    category_id: UUID

    def source_key(self, statement_upload_id: UUID) -> str:
        """Idempotency key for the ledger row created from this line."""
        return f"{statement_upload_id}:{self.parsed_transaction_id}"


class StatementImportConfirmed(BaseModel):
    """Emitted exactly once per import, when it moves to Confirmed."""

    model_config = ConfigDict(frozen=True)

    event_id: UUID = Field(default_factory=uuid4)
    occurred_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    statement_upload_id: UUID
    user_id: UUID
    transactions: tuple[ConfirmedTransactionData, ...]
