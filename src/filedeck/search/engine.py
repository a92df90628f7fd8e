"""Search handler: walks the user's scope and streams matching paths.

The walk itself is synchronous; the handler steps through it on the
default executor, so the channel carries nothing but results until it
completes while other connections keep running. Every accepted path is
sent as its own text message, relative to the scope.
"""

from __future__ import annotations

import asyncio
import logging
import os
import stat
import threading
from typing import Callable, Iterator

from fastapi import status

from filedeck.domain.models import HandlerResult, MessageKind, SearchOptions, UserContext
from filedeck.search.query import SearchQueryError, parse_search
from filedeck.transport.channel import DuplexChannel, TransportError
from filedeck.utils.paths import relative_to_scope, search_scope

logger = logging.getLogger(__name__)

MSG_EMPTY_QUERY = "Search query is empty."


async def run_search(
    context: UserContext, channel: DuplexChannel, request_path: str
) -> HandlerResult:
    """Serve one search over the channel.

    Reads the first non-empty message as the query, then sends every
    scope-relative path that contains a query term and that the user
    is allowed to see.
    """
    try:
        while True:
            message = await channel.receive()
            if message:
                break
    except TransportError as e:
        return HandlerResult(status.HTTP_500_INTERNAL_SERVER_ERROR, e)

    query = message.decode("utf-8", errors="replace")
    try:
        options = parse_search(query)
    except SearchQueryError:
        logger.info("Rejected empty search query from %s", channel.client)
        try:
            await channel.send(MSG_EMPTY_QUERY, MessageKind.TEXT)
        except TransportError as e:
            return HandlerResult(status.HTTP_500_INTERNAL_SERVER_ERROR, e)
        return HandlerResult(status.HTTP_400_BAD_REQUEST)

    scope = search_scope(context.filesystem, request_path)
    logger.info("Searching %s for %r", scope, options.terms)

    loop = asyncio.get_running_loop()
    cancel = threading.Event()
    matches = walk_matches(scope, options, context.allowed, cancel)
    sent = 0
    try:
        while True:
            # Each step of the walk touches the disk; keep it off the loop.
            path = await loop.run_in_executor(None, next, matches, None)
            if path is None:
                break
            await channel.send(path, MessageKind.TEXT)
            sent += 1
    except (OSError, TransportError) as e:
        return HandlerResult(status.HTTP_500_INTERNAL_SERVER_ERROR, e)
    finally:
        cancel.set()
        if not matches.gi_running:
            matches.close()

    logger.info("Search in %s finished with %d result(s)", scope, sent)
    return HandlerResult(0)


def walk_matches(
    scope: str,
    options: SearchOptions,
    allowed: Callable[[str], bool],
    cancel: threading.Event | None = None,
) -> Iterator[str]:
    """Yield the scope-relative paths under ``scope`` that match.

    A path matches when any term is a substring of its relative form
    (lowercased for case-insensitive searches) and ``allowed`` accepts
    that form. Walking stops early once ``cancel`` is set.

    Raises:
        OSError: If the scope or a directory below it cannot be read.
    """
    prefix = scope.lower() if options.case_insensitive else scope
    for path in _walk(scope, cancel):
        if options.case_insensitive:
            path = path.lower()
        relative = relative_to_scope(path, prefix)

        if not any(term in relative for term in options.terms):
            continue
        if not allowed(relative):
            continue
        yield relative


def _walk(top: str, cancel: threading.Event | None) -> Iterator[str]:
    """Pre-order walk in lexical order, without following symlinks.

    Directories still being listed are kept on an explicit stack, so
    the depth of the tree is not bounded by the recursion limit.
    """
    if cancel is not None and cancel.is_set():
        return
    info = os.lstat(top)
    yield top
    if not stat.S_ISDIR(info.st_mode):
        return

    stack: list[Iterator[os.DirEntry[str]]] = [iter(_sorted_entries(top))]
    while stack:
        entry = next(stack[-1], None)
        if entry is None:
            stack.pop()
            continue
        if cancel is not None and cancel.is_set():
            return
        yield entry.path
        if entry.is_dir(follow_symlinks=False):
            stack.append(iter(_sorted_entries(entry.path)))


def _sorted_entries(directory: str) -> list[os.DirEntry[str]]:
    with os.scandir(directory) as it:
        return sorted(it, key=lambda entry: entry.name)
