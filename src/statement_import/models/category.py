"""Spending category model (read-only to this service)."""
from uuid import UUID

from sqlalchemy import String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from statement_import.models.base import BaseModel


class Category(BaseModel):
    """A spending category; ``user_id`` is NULL for system categories."""

    __tablename__ = "categories"
    __table_args__ = (UniqueConstraint("user_id", "name", name="uq_category_user_name"),)

    user_id: Mapped[UUID | None] = mapped_column(nullable=True, index=True)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    description: Mapped[str | None] = mapped_column(String(255), nullable=True)

    @property
    def is_system(self) -> bool:
        return self.user_id is None

    def __repr__(self) -> str:
        return f"<Category(id={self.id}, name={self.name})>"
