"""Shared test fixtures for the filedeck test suite.

Provides a scripted in-memory channel, user contexts, and a small
directory tree for the search tests.
"""

from __future__ import annotations

from pathlib import Path

import pytest

from filedeck.domain.models import AccessRule, MessageKind, UserContext
from filedeck.transport.channel import TransportError


class FakeChannel:
    """In-memory stand-in for DuplexChannel.

    Replays ``inbound`` messages in order, then fails like a
    disconnected peer. Every send is recorded in ``sent``.
    """

    def __init__(self, inbound: list[bytes] | None = None, fail_send: bool = False) -> None:
        self.inbound = list(inbound or [])
        self.sent: list[tuple[str | bytes, MessageKind]] = []
        self.fail_send = fail_send
        self.closed = False
        self.client = "test:0"

    async def receive(self) -> bytes:
        if not self.inbound:
            raise TransportError("Peer disconnected")
        return self.inbound.pop(0)

    async def send(self, data: str | bytes, kind: MessageKind = MessageKind.TEXT) -> None:
        if self.fail_send:
            raise TransportError("Failed to send message")
        self.sent.append((data, kind))

    async def close(self, code: int | None = None) -> None:
        self.closed = True

    @property
    def texts(self) -> list[str]:
        return [data for data, kind in self.sent if kind is MessageKind.TEXT]


@pytest.fixture
def make_channel():
    """Factory for FakeChannel instances with scripted inbound messages."""

    def _make(*messages: str | bytes, fail_send: bool = False) -> FakeChannel:
        inbound = [m.encode() if isinstance(m, str) else m for m in messages]
        return FakeChannel(inbound, fail_send=fail_send)

    return _make


@pytest.fixture
def file_tree(tmp_path: Path) -> Path:
    """A small tree under tmp_path/root.

    root/
        a/one.txt
        a/two.log
        docs/Report.TXT
        docs/secret/plan.txt
        notes.md
    """
    root = tmp_path / "root"
    (root / "a").mkdir(parents=True)
    (root / "docs" / "secret").mkdir(parents=True)
    (root / "a" / "one.txt").write_text("one")
    (root / "a" / "two.log").write_text("two")
    (root / "docs" / "Report.TXT").write_text("report")
    (root / "docs" / "secret" / "plan.txt").write_text("plan")
    (root / "notes.md").write_text("notes")
    return root


@pytest.fixture
def user(file_tree: Path) -> UserContext:
    """A user rooted at file_tree that may run echo."""
    return UserContext(filesystem=str(file_tree), commands=["echo"])


@pytest.fixture
def restricted_user(file_tree: Path) -> UserContext:
    """A user that cannot see anything under docs/secret."""
    return UserContext(
        filesystem=str(file_tree),
        commands=["echo"],
        rules=[AccessRule(path="docs/secret", allow=False)],
    )
