"""Collaborator interfaces used by the statement import service.

Implementations live alongside (LocalFileStorage, SqlCategoryProvider,
LedgerTransactionService) or in statement_import.parsers; tests swap in
AsyncMocks or fakes that satisfy the same shape.
"""

from collections.abc import Sequence
from datetime import date
from decimal import Decimal
from typing import Protocol
from uuid import UUID

from statement_import.schemas.internal import CategoryInfo, RawParsedTransaction


class FileStorage(Protocol):
    async def save(self, content: bytes, file_name: str, user_id: UUID) -> str:
        """Store the document and return an opaque locator."""
        ...

    async def read(self, locator: str) -> bytes: ...

    async def delete(self, locator: str) -> None: ...


class TextExtractor(Protocol):
    async def extract(self, document: bytes) -> str: ...


class StatementParser(Protocol):
    async def parse(
        self, statement_text: str, categories: Sequence[CategoryInfo]
    ) -> list[RawParsedTransaction]: ...


class CategoryProvider(Protocol):
    async def available_categories(self, user_id: UUID) -> list[CategoryInfo]: ...

    async def resolve_by_name(self, name: str, user_id: UUID) -> UUID | None: ...


class TransactionCreator(Protocol):
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
        """Create one ledger transaction.

        Returns False when a row with the same source_key already exists.
        """
        ...
