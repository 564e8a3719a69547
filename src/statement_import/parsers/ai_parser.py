"""AI-backed statement parsing.

Sends the extracted statement text and the user's category list to an
OpenAI chat model in JSON-object mode and turns the reply into
RawParsedTransaction candidates. The reply is untrusted input: it is
validated with pydantic and anything malformed fails the whole parse.
"""

import json
import logging
from collections.abc import Sequence
from datetime import date
from decimal import Decimal

from openai import AsyncOpenAI, OpenAIError
from pydantic import BaseModel, ConfigDict, Field
from pydantic import ValidationError as PydanticValidationError

from statement_import.config import settings
from statement_import.schemas.internal import CategoryInfo, RawParsedTransaction

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = """You are a financial transaction parser. You will receive the text content of a credit card statement. Extract all individual transactions and categorize each one.

For each transaction, return:
- date: the transaction date in ISO 8601 format (YYYY-MM-DD)
- description: a clean, concise description of the transaction
- amount: the transaction amount as a positive decimal number
- currency: the currency code (default {default_currency} if not specified)
- suggestedCategoryName: one of the available categories listed below
- originalText: the original line(s) from the statement

Available categories:
{categories}

Return your response as a JSON object with a "transactions" array. If you cannot determine a category, use "{fallback_category}".
Only include purchases/charges. Do NOT include payments, credits, balance transfers, or fees."""

USER_PROMPT = """Here is the credit card statement text:

---
{statement_text}
---

Parse all transactions and return them as JSON."""


class StatementParsingError(Exception):
    """Raised when the model call fails or its reply is unusable."""

    pass


class _ModelTransaction(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    transaction_date: date = Field(..., alias="date")
    description: str
    amount: Decimal
    currency: str | None = None
    suggested_category_name: str | None = Field(None, alias="suggestedCategoryName")
    original_text: str | None = Field(None, alias="originalText")


class _ModelResponse(BaseModel):
    model_config = ConfigDict(extra="ignore")

    transactions: list[_ModelTransaction] = Field(default_factory=list)


def format_categories(categories: Sequence[CategoryInfo]) -> str:
    """Render the category list for the system prompt, one bullet per category."""
    lines = []
    for category in categories:
        line = f"- {category.name}"
        if category.description and category.description.strip():
            line += f" ({category.description.strip()})"
        lines.append(line)
    return "\n".join(lines)


class OpenAIStatementParser:
    """Parse statement text into candidate transactions with an OpenAI model."""

    def __init__(
        self,
        client: AsyncOpenAI | None = None,
        model: str | None = None,
        default_currency: str | None = None,
        fallback_category: str | None = None,
    ):
        self.model = model or settings.openai_model
        self.default_currency = default_currency or settings.default_currency
        self.fallback_category = fallback_category or settings.fallback_category_name
        self._client = client

    @property
    def client(self) -> AsyncOpenAI:
        if self._client is None:
            if not settings.openai_api_key:
                raise StatementParsingError("OpenAI API key is not configured.")
            self._client = AsyncOpenAI(api_key=settings.openai_api_key)
        return self._client

    async def parse(
        self, statement_text: str, categories: Sequence[CategoryInfo]
    ) -> list[RawParsedTransaction]:
        """Extract candidate transactions from statement text.

        Args:
            statement_text: Plain text of the statement
            categories: Categories the model may suggest from

        Returns:
            Candidates in statement order (not yet filtered for boilerplate)

        Raises:
            StatementParsingError: On API failure, malformed JSON, or when the
                model finds no transactions at all
        """
        messages = [
            {
                "role": "system",
                "content": SYSTEM_PROMPT.format(
                    default_currency=self.default_currency,
                    categories=format_categories(categories),
                    fallback_category=self.fallback_category,
                ),
            },
            {"role": "user", "content": USER_PROMPT.format(statement_text=statement_text)},
        ]

        try:
            response = await self.client.chat.completions.create(
                model=self.model,
                messages=messages,
                response_format={"type": "json_object"},
                temperature=0,
            )
        except OpenAIError as e:
            logger.error("OpenAI request failed", extra={"error_type": type(e).__name__})
            raise StatementParsingError(f"Failed to parse statement: {e}") from e

        content = response.choices[0].message.content or ""
        logger.debug("OpenAI response received", extra={"chars": len(content)})
        return self._to_candidates(content)

    def _to_candidates(self, content: str) -> list[RawParsedTransaction]:
        try:
            parsed = _ModelResponse.model_validate(json.loads(content))
        except (json.JSONDecodeError, PydanticValidationError) as e:
            raise StatementParsingError(f"Model returned malformed JSON: {type(e).__name__}") from e

        if not parsed.transactions:
            raise StatementParsingError("AI could not extract any transactions from the statement.")

        candidates = [
            RawParsedTransaction(
                transaction_date=t.transaction_date,
                description=t.description,
                amount=t.amount,
                currency=(t.currency or self.default_currency).strip().upper(),
                suggested_category_name=t.suggested_category_name or self.fallback_category,
                original_text=t.original_text,
            )
            for t in parsed.transactions
        ]
        logger.info("Parsed statement candidates", extra={"candidates": len(candidates)})
        return candidates
