"""Search query grammar.

A query is a list of space-separated terms, or a single term wrapped
in double quotes. The ``case:insensitive`` and ``case:sensitive``
options may appear anywhere in it; matching is case-sensitive unless
``case:insensitive`` is present.
"""

from __future__ import annotations

from filedeck.domain.models import SearchOptions

CASE_INSENSITIVE = "case:insensitive"
CASE_SENSITIVE = "case:sensitive"


def parse_search(value: str) -> SearchOptions:
    """Parse a raw query into search options.

    Empty terms produced by repeated spaces are kept, and an empty
    term matches every path.

    Raises:
        SearchQueryError: If nothing but options remains of the query.
    """
    case_insensitive = CASE_INSENSITIVE in value

    value = value.replace(CASE_INSENSITIVE, "").replace(CASE_SENSITIVE, "")
    value = value.strip()
    if not value:
        raise SearchQueryError("Search query has no terms")

    if case_insensitive:
        value = value.lower()

    if value[0] == '"' and value[-1] == '"':
        term = value.removeprefix('"').removesuffix('"')
        return SearchOptions(case_insensitive=case_insensitive, terms=(term,))

    return SearchOptions(case_insensitive=case_insensitive, terms=tuple(value.split(" ")))


class SearchQueryError(ValueError):
    """Raised when a search query cannot be turned into terms."""
