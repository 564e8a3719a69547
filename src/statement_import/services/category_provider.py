"""Category snapshot provider backed by the categories table."""

from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from statement_import.categorization import resolve_category
from statement_import.repositories.category import CategoryRepository
from statement_import.schemas.internal import CategoryInfo


class SqlCategoryProvider:
    """Categories visible to a user: system categories plus the user's own."""

    def __init__(self, db: AsyncSession):
        self.category_repo = CategoryRepository(db)

    async def available_categories(self, user_id: UUID) -> list[CategoryInfo]:
        categories = await self.category_repo.get_visible_to_user(user_id)
        return [CategoryInfo.model_validate(c) for c in categories]

    async def resolve_by_name(self, name: str, user_id: UUID) -> UUID | None:
        return resolve_category(name, await self.available_categories(user_id))
