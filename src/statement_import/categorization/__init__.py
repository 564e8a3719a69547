"""Category resolution for parsed statement lines.

Resolution is deterministic and local (no network calls): the parser's
free-text suggestion is matched against the user's category snapshot.
"""

from .resolver import find_fallback_category, load_synonyms, resolve_category

__all__ = ["find_fallback_category", "load_synonyms", "resolve_category"]
