"""Category repository."""
from uuid import UUID

from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from statement_import.models.category import Category
from statement_import.repositories.base import BaseRepository


class CategoryRepository(BaseRepository[Category]):
    """Read access to system and user-owned categories."""

    def __init__(self, db: AsyncSession):
        super().__init__(db, Category)

    async def get_visible_to_user(self, user_id: UUID) -> list[Category]:
        """System categories plus the user's own, system first, then by name."""
        result = await self.db.execute(
            select(Category)
            .where(or_(Category.user_id.is_(None), Category.user_id == user_id))
            .order_by(Category.user_id.is_not(None), Category.name)
        )
        return list(result.scalars().all())
