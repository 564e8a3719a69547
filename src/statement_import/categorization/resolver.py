"""Map free-text category suggestions onto a user's category list.

The AI parser is told which categories exist, but it still answers with
near-misses ("Restaurant", "Gym Membership", "Fitness Center"). Resolution
goes through ordered tiers and stops at the first hit:

1. exact name match (case-insensitive)
2. synonym table lookup, then exact match on the canonical name
3. containment: a category name token of 4+ characters appears in the
   suggestion, or the suggestion appears in a category name

Within a tier the first category in snapshot order wins.
"""

from __future__ import annotations

import re
from collections.abc import Mapping, Sequence
from functools import lru_cache
from pathlib import Path
from uuid import UUID

import yaml

from statement_import.schemas.internal import CategoryInfo

SYNONYMS_PATH = Path(__file__).parent / "synonyms.yaml"

# Shorter tokens ("Gas", "Bar", "Tea") match far too many descriptions.
MIN_TOKEN_LENGTH = 4

_TOKEN_SPLIT = re.compile(r"[\s/]+")


def load_synonyms(path: Path = SYNONYMS_PATH) -> dict[str, str]:
    """Load the synonym table as {lowercased synonym: canonical name}."""
    with path.open(encoding="utf-8") as fh:
        raw = yaml.safe_load(fh) or {}

    table: dict[str, str] = {}
    for canonical, synonyms in raw.items():
        for synonym in synonyms or []:
            key = str(synonym).strip().lower()
            if key in table and table[key] != canonical:
                raise ValueError(
                    f"Synonym {synonym!r} maps to both {table[key]!r} and {canonical!r}"
                )
            table[key] = str(canonical)
    return table


@lru_cache(maxsize=1)
def default_synonyms() -> dict[str, str]:
    return load_synonyms()


def _find_by_name(name: str, categories: Sequence[CategoryInfo]) -> UUID | None:
    target = name.casefold()
    for category in categories:
        if category.name.strip().casefold() == target:
            return category.id
    return None


def _significant_tokens(name: str) -> list[str]:
    return [t for t in _TOKEN_SPLIT.split(name.casefold()) if len(t) >= MIN_TOKEN_LENGTH]


def _find_by_containment(name: str, categories: Sequence[CategoryInfo]) -> UUID | None:
    suggestion = name.casefold()
    for category in categories:
        category_name = category.name.strip().casefold()
        if any(token in suggestion for token in _significant_tokens(category_name)):
            return category.id
        if len(suggestion) >= MIN_TOKEN_LENGTH and suggestion in category_name:
            return category.id
    return None


def resolve_category(
    suggested_name: str | None,
    categories: Sequence[CategoryInfo],
    synonyms: Mapping[str, str] | None = None,
) -> UUID | None:
    """Resolve a suggested category name to a category id.

    Args:
        suggested_name: Free-text name from the parser
        categories: Snapshot of the categories visible to the user
        synonyms: Synonym table (defaults to the bundled synonyms.yaml)

    Returns:
        The matching category id, or None when no tier matches. Blank input
        returns None without looking at the categories.
    """
    if suggested_name is None or not suggested_name.strip():
        return None

    name = suggested_name.strip()

    category_id = _find_by_name(name, categories)
    if category_id is not None:
        return category_id

    table = default_synonyms() if synonyms is None else synonyms
    canonical = table.get(name.lower())
    if canonical is not None:
        category_id = _find_by_name(canonical, categories)
        if category_id is not None:
            return category_id

    return _find_by_containment(name, categories)


def find_fallback_category(
    categories: Sequence[CategoryInfo], fallback_name: str = "Miscellaneous"
) -> UUID | None:
    """Pick the category used when resolution finds nothing.

    Prefers the category named `fallback_name` (case-insensitive), otherwise
    the first category in the snapshot. Returns None only for an empty snapshot.
    """
    category_id = _find_by_name(fallback_name, categories)
    if category_id is not None:
        return category_id
    return categories[0].id if categories else None
