"""Internal data schemas exchanged with pipeline collaborators.

These models describe what the AI parser returns and the category
snapshot it receives, before anything becomes part of an import.
"""

from datetime import date
from decimal import Decimal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


class CategoryInfo(BaseModel):
    """A category visible to a user (system-wide or user-owned)."""

    model_config = ConfigDict(frozen=True, from_attributes=True)

    id: UUID
    name: str
    description: str | None = None
    is_system: bool = True


class RawParsedTransaction(BaseModel):
    """A candidate statement line as returned by the parsing service.

    Not yet filtered; may still be a balance, total or fee row.
    """

    transaction_date: date = Field(..., description="Transaction date")
    description: str = Field(..., description="Cleaned-up merchant description")
    amount: Decimal = Field(..., description="Transaction amount")
    currency: str = Field("USD", description="ISO currency code")
    suggested_category_name: str = Field(
        "Miscellaneous", description="Category name suggested by the parser"
    )
    original_text: str | None = Field(None, description="Source line(s) from the statement")
