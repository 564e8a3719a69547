"""Ledger transaction repository."""
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from statement_import.models.transaction import Transaction
from statement_import.repositories.base import BaseRepository


class TransactionRepository(BaseRepository[Transaction]):
    """Repository for ledger transactions."""

    def __init__(self, db: AsyncSession):
        super().__init__(db, Transaction)

    async def get_by_source_key(self, source_key: str) -> Transaction | None:
        """Find the ledger row created from a given statement line."""
        result = await self.db.execute(
            select(Transaction).where(Transaction.source_key == source_key)
        )
        return result.scalar_one_or_none()
