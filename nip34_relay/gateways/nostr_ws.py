"""NOSTR NIP-01 compatible websocket gateway."""

from __future__ import annotations

from uuid import uuid4

from websockets.asyncio.server import Server, ServerConnection, serve
from websockets.exceptions import ConnectionClosed

from ..connection import RelayConnection
from ..core import RelayCore


class WebSocketTransport:
    def __init__(self, websocket: ServerConnection) -> None:
        self._websocket = websocket

    async def send(self, message: str) -> None:
        try:
            await self._websocket.send(message)
        except ConnectionClosed:
            # the reader side observes the close and tears the connection down
            return

    async def close(self, code: int = 1000, reason: str = "") -> None:
        await self._websocket.close(code, reason)


async def serve_nostr(*, host: str, port: int, core: RelayCore) -> Server:
    async def handler(websocket: ServerConnection) -> None:
        connection = RelayConnection(core, WebSocketTransport(websocket), connection_id=f"nostr-{uuid4()}")
        try:
            await connection.run(websocket)
        except ConnectionClosed:
            return

    return await serve(handler, host, port)
