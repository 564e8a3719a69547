"""Ledger transaction creation for confirmed statement lines."""

import logging
from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from statement_import.models.transaction import Transaction
from statement_import.repositories.transaction import TransactionRepository

logger = logging.getLogger(__name__)


class LedgerTransactionService:
    """Creates bookkeeping transactions, idempotent on ``source_key``.

    Rows are flushed but not committed; the caller commits once all lines
    of a confirmation exist.
    """

    def __init__(self, db: AsyncSession):
        self.db = db
        self.transaction_repo = TransactionRepository(db)

    async def create(
        self,
        user_id: UUID,
        amount: Decimal,
        currency: str,
        transaction_date: date,
        description: str,
        category_id: UUID,
        source_key: str | None = None,
    ) -> bool:
        if source_key is not None:
            existing = await self.transaction_repo.get_by_source_key(source_key)
            if existing is not None:
                logger.info("Ledger transaction already exists", extra={"source_key": source_key})
                return False

        self.transaction_repo.add(
            Transaction(
                user_id=user_id,
                category_id=category_id,
                txn_date=transaction_date,
                description=description,
                amount=amount,
                currency=currency,
                source_key=source_key,
            )
        )
        await self.db.flush()
        return True
