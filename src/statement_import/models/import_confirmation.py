"""Durable confirmation intent for a statement import."""
from datetime import datetime
from typing import Any
from uuid import UUID

from sqlalchemy import JSON, DateTime, ForeignKey, Integer, String, text
from sqlalchemy.orm import Mapped, mapped_column

from statement_import.models.base import BaseModel

CONFIRMATION_PENDING = "pending"
CONFIRMATION_COMPLETED = "completed"


class ImportConfirmation(BaseModel):
    """Written in the same commit that flips an import to confirmed.

    ``payload`` is the serialized StatementImportConfirmed event; ledger
    rows are created from it, so a crash mid-loop can be resumed.
    """

    __tablename__ = "import_confirmations"

    statement_upload_id: Mapped[UUID] = mapped_column(
        ForeignKey("statement_uploads.id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
    )
    user_id: Mapped[UUID] = mapped_column(nullable=False, index=True)
    status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default=CONFIRMATION_PENDING,
        server_default=text("'pending'"),
        index=True,
    )
    payload: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False)
    transaction_count: Mapped[int] = mapped_column(Integer, nullable=False)
    created_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    attempts: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    def __repr__(self) -> str:
        return f"<ImportConfirmation(upload={self.statement_upload_id}, status={self.status})>"
