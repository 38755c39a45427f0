"""NIP-01 protocol handling for a single client connection."""

from __future__ import annotations

import asyncio
import contextlib
import json
from typing import Any, AsyncIterable, Mapping, Protocol
from uuid import uuid4

from .config import FaultMode
from .core import RelayCore
from .events import Event
from .exceptions import InvalidEvent
from .logger import Logger, get_logger
from .storage import InsertResult, InsertStatus

ERROR_INVALID = "invalid"
ERROR_DUPLICATE = "duplicate"
ERROR_GENERIC = "error"

MAX_SUBSCRIPTION_ID = 64


class Transport(Protocol):
    async def send(self, message: str) -> None: ...

    async def close(self, code: int = 1000, reason: str = "") -> None: ...


class RelayConnection:
    """Relay side of one client connection.

    Inbound messages are handled in arrival order after the configured
    latency. Outbound messages go through a FIFO queue drained by a writer
    task; each message is released ``latency`` seconds after it was queued.
    """

    def __init__(
        self,
        core: RelayCore,
        transport: Transport,
        *,
        connection_id: str | None = None,
        logger: Logger | None = None,
    ) -> None:
        self.connection_id = connection_id or f"conn-{uuid4()}"
        self._core = core
        self._transport = transport
        self._logger = logger or get_logger("connection", json_output=core.config.json_logs)
        self._outbox: asyncio.Queue[tuple[float, list[Any]]] = asyncio.Queue()
        self._writer: asyncio.Task[None] | None = None
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    async def run(self, messages: AsyncIterable[str | bytes]) -> None:
        await self.open()
        try:
            async for raw in messages:
                if self._closed:
                    break
                await self.handle(raw)
        finally:
            await self.shutdown()

    async def open(self) -> None:
        self._core.register(self)
        self._writer = asyncio.create_task(self._write_loop())
        if self._core.config.fault is FaultMode.CLOSE:
            await self.close(self._core.config.close_code, "connection refused")

    async def handle(self, raw: str | bytes) -> None:
        latency = self._core.config.latency
        if latency > 0:
            await asyncio.sleep(latency)
        fault = self._core.config.fault
        if self._closed or fault is FaultMode.SILENT:
            return
        if fault is FaultMode.CLOSE:
            await self.close(self._core.config.close_code, "connection dropped")
            return

        try:
            message = json.loads(raw)
        except (TypeError, ValueError, RecursionError) as exc:
            self._notice(f"{ERROR_INVALID}: message is not json ({exc})")
            return
        if not isinstance(message, list) or not message or not isinstance(message[0], str):
            self._notice(f"{ERROR_INVALID}: expected array message")
            return

        command = message[0]
        if command == "REQ":
            self._on_req(message)
        elif command == "EVENT":
            await self._on_event(message)
        elif command == "CLOSE":
            self._on_close(message)
        elif command == "AUTH":
            self._on_auth(message)
        else:
            self._notice(f"{ERROR_INVALID}: unsupported command {command}")

    def deliver(self, message: list[Any]) -> None:
        if self._closed:
            return
        loop = asyncio.get_running_loop()
        self._outbox.put_nowait((loop.time() + self._core.config.latency, message))

    async def close(self, code: int = 1000, reason: str = "") -> None:
        if self._closed:
            return
        await self.shutdown()
        self._logger.debug("connection_forced_close", connection=self.connection_id, code=code, reason=reason)
        await self._transport.close(code, reason)

    async def shutdown(self) -> None:
        """Stop delivering: drop subscriptions and cancel queued sends."""

        self._closed = True
        self._core.unregister(self.connection_id)
        writer, self._writer = self._writer, None
        if writer is not None and writer is not asyncio.current_task():
            writer.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await writer

    def _on_req(self, message: list[Any]) -> None:
        if len(message) < 3:
            self._notice(f"{ERROR_INVALID}: REQ requires subscription id and filter")
            return
        sub_id = message[1]
        if not isinstance(sub_id, str) or not sub_id or len(sub_id) > MAX_SUBSCRIPTION_ID:
            self._notice(f"{ERROR_INVALID}: subscription id must be a string of 1-{MAX_SUBSCRIPTION_ID} chars")
            return
        try:
            stored = self._core.subscribe(self.connection_id, sub_id, message[2:])
        except ValueError as exc:
            self.deliver(["CLOSED", sub_id, f"{ERROR_INVALID}: {exc}"])
            return
        for event in stored:
            self.deliver(["EVENT", sub_id, event.to_dict()])
        self.deliver(["EOSE", sub_id])

    async def _on_event(self, message: list[Any]) -> None:
        if len(message) != 2 or not isinstance(message[1], Mapping):
            self._notice(f"{ERROR_INVALID}: EVENT payload invalid")
            return
        try:
            event = Event.from_dict(message[1])
        except InvalidEvent as exc:
            self.deliver(["OK", _raw_id(message[1]), False, f"{ERROR_INVALID}: {exc}"])
            return

        def acknowledge(result: InsertResult) -> None:
            if result.status is InsertStatus.DUPLICATE:
                self.deliver(["OK", event.id, True, f"{ERROR_DUPLICATE}: already have this event"])
            else:
                self.deliver(["OK", event.id, True, ""])

        await self._core.publish(event, origin="publish", on_accepted=acknowledge)

    def _on_close(self, message: list[Any]) -> None:
        if len(message) != 2 or not isinstance(message[1], str):
            self._notice(f"{ERROR_INVALID}: CLOSE requires subscription id")
            return
        self._core.unsubscribe(self.connection_id, message[1])

    def _on_auth(self, message: list[Any]) -> None:
        if len(message) != 2 or not isinstance(message[1], Mapping):
            self._notice(f"{ERROR_INVALID}: AUTH payload invalid")
            return
        try:
            event = Event.from_dict(message[1])
        except InvalidEvent as exc:
            self.deliver(["OK", _raw_id(message[1]), False, f"{ERROR_INVALID}: {exc}"])
            return
        self._logger.debug("auth", connection=self.connection_id, pubkey=event.pubkey)
        self.deliver(["OK", event.id, True, ""])

    def _notice(self, text: str) -> None:
        self._logger.debug("notice", connection=self.connection_id, message=text)
        self.deliver(["NOTICE", text])

    async def _write_loop(self) -> None:
        loop = asyncio.get_running_loop()
        while True:
            due, message = await self._outbox.get()
            delay = due - loop.time()
            if delay > 0:
                await asyncio.sleep(delay)
            if self._core.config.fault is FaultMode.SILENT:
                continue
            await self._transport.send(json.dumps(message))


def _raw_id(raw: Mapping[str, Any]) -> str:
    value = raw.get("id")
    return value if isinstance(value, str) else ""
