"""Recursive filesystem search streamed over a duplex channel."""

from filedeck.search.query import SearchQueryError, parse_search

__all__ = ["SearchQueryError", "parse_search"]
