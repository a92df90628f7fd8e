"""Duplex message channel over a Starlette WebSocket.

Wraps an inbound WebSocket into an ordered, message-framed channel
that the stream handlers own for their entire lifetime. The channel is
accepted and closed by ``open_channel``, which guarantees a single
close on every exit path.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import WebSocket, WebSocketDisconnect
from starlette.websockets import WebSocketState

from filedeck.config.settings import TransportConfig
from filedeck.domain.models import MessageKind

logger = logging.getLogger(__name__)


class DuplexChannel:
    """A message-oriented, full-duplex connection to one client.

    Message boundaries are preserved and delivery is ordered. Text
    frames arrive from ``receive`` as UTF-8 bytes.
    """

    def __init__(self, websocket: WebSocket, config: TransportConfig | None = None) -> None:
        self._websocket = websocket
        self._config = config or TransportConfig()
        self._closed = False

    @property
    def is_closed(self) -> bool:
        return self._closed

    @property
    def error_close_code(self) -> int:
        return self._config.error_close_code

    @property
    def client(self) -> str:
        client = self._websocket.client
        return f"{client.host}:{client.port}" if client else "unknown"

    async def accept(self) -> None:
        """Complete the WebSocket handshake.

        Raises:
            TransportError: If the handshake cannot be completed.
        """
        try:
            await self._websocket.accept(subprotocol=self._config.subprotocol)
        except (RuntimeError, OSError, WebSocketDisconnect) as e:
            self._closed = True
            raise TransportError(f"Failed to accept connection: {e}") from e

    async def receive(self) -> bytes:
        """Block until the next message arrives.

        Raises:
            TransportError: If the peer disconnected or the read failed.
        """
        try:
            message = await self._websocket.receive()
        except (RuntimeError, OSError, WebSocketDisconnect) as e:
            raise TransportError(f"Failed to read message: {e}") from e

        if message["type"] == "websocket.disconnect":
            self._closed = True
            raise TransportError(f"Peer disconnected (code {message.get('code', 1000)})")
        if message.get("text") is not None:
            return message["text"].encode("utf-8")
        return message.get("bytes") or b""

    async def send(self, data: bytes | str, kind: MessageKind = MessageKind.TEXT) -> None:
        """Send one message.

        Raises:
            TransportError: If the write failed.
        """
        try:
            if kind is MessageKind.TEXT:
                if isinstance(data, bytes):
                    data = data.decode("utf-8", errors="replace")
                await self._websocket.send_text(data)
            else:
                if isinstance(data, str):
                    data = data.encode("utf-8")
                await self._websocket.send_bytes(data)
        except (RuntimeError, OSError, WebSocketDisconnect) as e:
            raise TransportError(f"Failed to send message: {e}") from e

    async def close(self, code: int | None = None) -> None:
        """Close the channel. Safe to call more than once."""
        if self._closed:
            return
        self._closed = True
        if (
            self._websocket.client_state == WebSocketState.DISCONNECTED
            or self._websocket.application_state == WebSocketState.DISCONNECTED
        ):
            return
        try:
            await self._websocket.close(code=code or self._config.normal_close_code)
        except (RuntimeError, OSError) as e:
            logger.debug("Close on %s failed: %s", self.client, e)


@asynccontextmanager
async def open_channel(
    websocket: WebSocket, config: TransportConfig | None = None
) -> AsyncIterator[DuplexChannel]:
    """Accept a WebSocket and yield it as a channel, closing it on exit.

    The close code is the error code when the body raises.

    Raises:
        TransportError: If the handshake fails.
    """
    channel = DuplexChannel(websocket, config)
    await channel.accept()
    logger.info("Channel opened for %s", channel.client)
    try:
        yield channel
    except BaseException:
        await channel.close(channel.error_close_code)
        raise
    finally:
        await channel.close()
        logger.info("Channel closed for %s", channel.client)


class TransportError(Exception):
    """Raised when a channel cannot be opened, read or written."""
