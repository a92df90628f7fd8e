"""Path helpers shared by the command and search handlers.

Both handlers resolve a directory from the user's filesystem root and
the request path, and the search handler reports paths relative to
that directory.
"""

from __future__ import annotations

import os
import posixpath


def clean_path(path: str) -> str:
    """Canonicalize a path lexically.

    Resolves ``.`` and ``..`` elements and collapses repeated separators,
    without touching the filesystem. Unlike ``posixpath.normpath`` a
    leading ``//`` is collapsed too.
    """
    cleaned = posixpath.normpath(path)
    if cleaned.startswith("//"):
        cleaned = "/" + cleaned.lstrip("/")
    return cleaned


def working_directory(root: str, request_path: str) -> str:
    """Directory a command runs in: the root joined with the request path."""
    return clean_path(root + "/" + request_path)


def search_scope(root: str, request_path: str) -> str:
    """Directory a search walks: the root joined with the request path."""
    scope = "/" + request_path.removeprefix("/")
    scope = (root + scope).replace("\\", "/")
    return clean_path(scope)


def relative_to_scope(path: str, scope: str) -> str:
    """Strip the scope prefix from a walked path, using forward slashes."""
    relative = path.removeprefix(scope)
    relative = relative.removeprefix(os.sep).removeprefix("/")
    return relative.replace("\\", "/")
