"""In-process transport for driving the relay without a socket."""

from __future__ import annotations

import asyncio
import collections
import json
from typing import Any, AsyncIterator, Mapping, cast

from .config import FaultMode
from .connection import RelayConnection
from .core import RelayCore
from .events import Event
from .exceptions import ConnectionClosed, ConnectionNeverResponds, EventTimeout

_CLOSED = object()


class LocalTransport:
    """Pair of queues standing in for a websocket."""

    def __init__(self) -> None:
        self.inbound: asyncio.Queue[object] = asyncio.Queue()
        self.outbound: asyncio.Queue[object] = asyncio.Queue()
        self.close_code: int | None = None
        self.close_reason = ""

    @property
    def closed(self) -> bool:
        return self.close_code is not None

    async def send(self, message: str) -> None:
        if not self.closed:
            self.outbound.put_nowait(message)

    async def close(self, code: int = 1000, reason: str = "") -> None:
        if self.closed:
            return
        self.close_code = code
        self.close_reason = reason
        self.outbound.put_nowait(_CLOSED)
        self.inbound.put_nowait(_CLOSED)

    async def messages(self) -> AsyncIterator[str]:
        while True:
            item = await self.inbound.get()
            if item is _CLOSED:
                return
            yield cast(str, item)


class LocalClient:
    """Client end of an in-process connection to a :class:`RelayCore`."""

    def __init__(self, core: RelayCore, *, connection_id: str | None = None) -> None:
        self._core = core
        self._transport = LocalTransport()
        self.connection = RelayConnection(core, self._transport, connection_id=connection_id)
        self._pending: collections.deque[list[Any]] = collections.deque()
        self._task: asyncio.Task[None] | None = None

    @property
    def closed(self) -> bool:
        return self._transport.closed

    async def __aenter__(self) -> LocalClient:
        await self.connect()
        return self

    async def __aexit__(self, *_: object) -> None:
        await self.close()

    async def connect(self) -> None:
        self._task = asyncio.create_task(self.connection.run(self._transport.messages()))
        # let the connection register before the caller starts sending
        await asyncio.sleep(0)

    async def send(self, message: list[Any]) -> None:
        self._raise_if_closed()
        self._transport.inbound.put_nowait(json.dumps(message))

    async def send_raw(self, text: str) -> None:
        self._raise_if_closed()
        self._transport.inbound.put_nowait(text)

    async def recv(self, *, timeout: float | None = 5.0) -> list[Any]:
        """Next relay message.

        Raises ConnectionClosed once the relay closed the connection and
        ConnectionNeverResponds when a silent relay lets ``timeout`` expire.
        """

        if self._pending:
            return self._pending.popleft()
        try:
            item = await asyncio.wait_for(self._transport.outbound.get(), timeout)
        except asyncio.TimeoutError:
            if self._core.config.fault is FaultMode.SILENT:
                raise ConnectionNeverResponds(f"no reply within {timeout}s") from None
            raise EventTimeout(f"no message within {timeout}s") from None
        if item is _CLOSED:
            # keep the marker so later reads fail the same way
            self._transport.outbound.put_nowait(_CLOSED)
            raise ConnectionClosed(self._transport.close_code or 1000, self._transport.close_reason)
        return json.loads(cast(str, item))

    async def req(self, subscription_id: str, *filters: Mapping[str, Any]) -> None:
        await self.send(["REQ", subscription_id, *filters])

    async def close_subscription(self, subscription_id: str) -> None:
        await self.send(["CLOSE", subscription_id])

    async def publish(self, event: Event | Mapping[str, Any], *, timeout: float | None = 5.0) -> list[Any]:
        """Send EVENT and return the matching OK reply.

        Other messages that arrive first stay queued for :meth:`recv`.
        """

        payload = event.to_dict() if isinstance(event, Event) else dict(event)
        await self.send(["EVENT", payload])
        event_id = payload.get("id")
        skipped: list[list[Any]] = []
        try:
            while True:
                message = await self.recv(timeout=timeout)
                if message[0] == "OK" and message[1] == event_id:
                    return message
                if message[0] == "OK" and not message[2] and message[1] == "":
                    return message
                skipped.append(message)
        finally:
            self._pending.extendleft(reversed(skipped))

    async def collect_stored(
        self,
        subscription_id: str,
        *filters: Mapping[str, Any],
        timeout: float | None = 5.0,
    ) -> list[Event]:
        """REQ and return the stored events streamed before EOSE."""

        await self.req(subscription_id, *filters)
        events: list[Event] = []
        skipped: list[list[Any]] = []
        try:
            while True:
                message = await self.recv(timeout=timeout)
                if message[:2] == ["EOSE", subscription_id]:
                    return events
                if message[:2] == ["CLOSED", subscription_id]:
                    raise ValueError(message[2])
                if message[0] == "EVENT" and message[1] == subscription_id:
                    events.append(Event.from_dict(message[2]))
                else:
                    skipped.append(message)
        finally:
            self._pending.extendleft(reversed(skipped))

    async def close(self) -> None:
        await self.connection.close(1000, "client closed")
        if self._task is not None:
            await self._task
            self._task = None

    def _raise_if_closed(self) -> None:
        if self._transport.closed:
            raise ConnectionClosed(self._transport.close_code or 1000, self._transport.close_reason)
