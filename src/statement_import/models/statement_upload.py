"""Statement upload and parsed transaction models."""
from datetime import date, datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import (
    Date,
    DateTime,
    ForeignKey,
    Integer,
    Numeric,
    SmallInteger,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from statement_import.models.base import BaseModel


class StatementUploadRecord(BaseModel):
    """Persisted state of a StatementUpload aggregate."""

    __tablename__ = "statement_uploads"

    user_id: Mapped[UUID] = mapped_column(nullable=False, index=True)
    original_file_name: Mapped[str] = mapped_column(String(255), nullable=False)
    stored_file_path: Mapped[str] = mapped_column(String(1024), nullable=False)
    uploaded_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, index=True)
    status: Mapped[str] = mapped_column(String(20), nullable=False, index=True)
    error_message: Mapped[str | None] = mapped_column(Text, nullable=True)
    statement_month: Mapped[int | None] = mapped_column(SmallInteger, nullable=True)
    statement_year: Mapped[int | None] = mapped_column(SmallInteger, nullable=True)
    # Optimistic concurrency: stale writes raise StaleDataError on flush.
    version: Mapped[int] = mapped_column(Integer, nullable=False)

    parsed_transactions: Mapped[list["ParsedTransactionRecord"]] = relationship(
        "ParsedTransactionRecord",
        back_populates="statement_upload",
        lazy="selectin",
        order_by="ParsedTransactionRecord.position",
        cascade="all, delete-orphan",
    )

    __mapper_args__ = {"version_id_col": version}

    def __repr__(self) -> str:
        return f"<StatementUploadRecord(id={self.id}, status={self.status})>"


class ParsedTransactionRecord(BaseModel):
    """One parsed statement line awaiting review."""

    __tablename__ = "parsed_transactions"
    __table_args__ = (
        UniqueConstraint("statement_upload_id", "position", name="uq_parsed_transaction_position"),
    )

    statement_upload_id: Mapped[UUID] = mapped_column(
        ForeignKey("statement_uploads.id", ondelete="CASCADE"), nullable=False, index=True
    )
    position: Mapped[int] = mapped_column(Integer, nullable=False)
    transaction_date: Mapped[date] = mapped_column(Date, nullable=False)
    description: Mapped[str] = mapped_column(String(500), nullable=False)
    amount: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False)
    currency: Mapped[str] = mapped_column(String(3), nullable=False)
    suggested_category_id: Mapped[UUID] = mapped_column(nullable=False)
    confirmed_category_id: Mapped[UUID | None] = mapped_column(nullable=True)
    original_text: Mapped[str | None] = mapped_column(Text, nullable=True)

    statement_upload: Mapped["StatementUploadRecord"] = relationship(
        "StatementUploadRecord", back_populates="parsed_transactions"
    )

    def __repr__(self) -> str:
        return f"<ParsedTransactionRecord(id={self.id}, position={self.position})>"
