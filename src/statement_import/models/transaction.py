"""Ledger transaction model."""
from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import Date, Index, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column

from statement_import.models.base import BaseModel


class Transaction(BaseModel):
    """A bookkeeping transaction created from a confirmed statement line."""

    __tablename__ = "transactions"

    user_id: Mapped[UUID] = mapped_column(nullable=False, index=True)
    category_id: Mapped[UUID] = mapped_column(nullable=False, index=True)
    txn_date: Mapped[date] = mapped_column(Date, nullable=False, index=True)
    description: Mapped[str] = mapped_column(String(500), nullable=False)
    amount: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False)
    currency: Mapped[str] = mapped_column(String(3), nullable=False)
    # "<statement upload id>:<parsed transaction id>" for imported rows.
    source_key: Mapped[str | None] = mapped_column(String(80), nullable=True, unique=True)

    __table_args__ = (Index("ix_transactions_user_id_txn_date", "user_id", "txn_date"),)

    def __repr__(self) -> str:
        return f"<Transaction(id={self.id}, amount={self.amount})>"
