"""Mock relay façade used by end-to-end tests."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import Any, Callable, Iterable, Mapping, Union

from websockets.asyncio.server import Server

from .config import FaultMode, RelayConfig, parse_fault
from .core import RelayCore, SubscriptionRequest
from .events import Event, UnsignedEvent
from .exceptions import EventTimeout
from .factory import sign_event
from .filters import EventFilter
from .gateways import serve_nostr
from .keys import Signer
from .local import LocalClient
from .logger import configure_logging, get_logger
from .storage import InMemoryEventStore, InsertResult, InsertStatus

EventLike = Union[Event, UnsignedEvent, Mapping[str, Any]]
Predicate = Callable[[Event], bool]

DEFAULT_TIMEOUT = 10.0


@dataclass
class _Waiter:
    predicate: Predicate
    count: int
    future: asyncio.Future[list[Event]]
    collected: list[Event] = field(default_factory=list)


class MockRelay:
    """A relay the page under test talks to, plus the hooks tests need.

    Events inserted by :meth:`seed_events` are *seeded*; events clients send
    with ``EVENT`` are *published*. Only published events resolve
    :meth:`wait_for_event`.
    """

    def __init__(
        self,
        *,
        config: RelayConfig | None = None,
        store: InMemoryEventStore | None = None,
        signer: Signer | None = None,
    ) -> None:
        self.config = config or RelayConfig()
        if self.config.debug:
            configure_logging(debug=True, json_output=self.config.json_logs)
        self.store = store if store is not None else InMemoryEventStore()
        self.core = RelayCore(self.store, config=self.config)
        self.signer = signer
        self._logger = get_logger("mock", json_output=self.config.json_logs)
        self._published: list[Event] = []
        self._seeded: list[Event] = []
        self._waiters: list[_Waiter] = []
        self._publish_callbacks: list[Callable[[Event], None]] = []
        self._clients: list[LocalClient] = []
        self._servers: list[Server] = []
        self.url: str | None = None
        self.store.add_listener(self._on_insert)

    async def __aenter__(self) -> MockRelay:
        return self

    async def __aexit__(self, *_: object) -> None:
        await self.close()

    # seeding

    def seed_events(self, events: Iterable[EventLike]) -> list[Event]:
        """Insert events directly into the store, without live delivery."""

        seeded: list[Event] = []
        for raw in events:
            event = self._coerce(raw)
            result = self.store.insert(event, origin="seed")
            if result.status is not InsertStatus.DUPLICATE:
                self._seeded.append(event)
            seeded.append(event)
        self._logger.debug("seeded_events", count=len(seeded), stored=len(self.store))
        return seeded

    async def inject_events(self, events: Iterable[EventLike]) -> list[InsertResult]:
        """Store events and deliver them to matching live subscriptions."""

        results = []
        for raw in events:
            results.append(await self.core.publish(self._coerce(raw), origin="inject"))
        return results

    # observation

    def get_published_events(self, kind: int | None = None) -> list[Event]:
        if kind is None:
            return list(self._published)
        return [event for event in self._published if event.kind == kind]

    def get_seeded_events(self) -> list[Event]:
        return list(self._seeded)

    def get_subscription_requests(self) -> list[SubscriptionRequest]:
        return self.core.requests

    def query(self, flt: EventFilter | Mapping[str, object]) -> list[Event]:
        return self.store.query(flt)

    def get_by_address(self, kind: int, pubkey: str, identifier: str = "") -> Event | None:
        return self.store.get_by_address(kind, pubkey, identifier)

    def on_publish(self, callback: Callable[[Event], None]) -> None:
        self._publish_callbacks.append(callback)

    def on_subscribe(self, callback: Callable[[SubscriptionRequest], None]) -> None:
        self.core.on_subscribe(callback)

    @property
    def pending_waiters(self) -> int:
        return len(self._waiters)

    async def wait_for_event(
        self,
        kind: int | None = None,
        predicate: Predicate | None = None,
        *,
        timeout: float = DEFAULT_TIMEOUT,
        check_existing: bool = True,
    ) -> Event:
        """Resolve with the first published event matching ``kind`` and ``predicate``.

        Events published before the call count when ``check_existing`` is set.
        Raises EventTimeout after ``timeout`` seconds.
        """

        events = await self.wait_for_events(
            kind=kind,
            predicate=predicate,
            count=1,
            timeout=timeout,
            check_existing=check_existing,
        )
        return events[0]

    async def wait_for_events(
        self,
        predicate: Predicate | None = None,
        count: int = 1,
        *,
        kind: int | None = None,
        timeout: float = DEFAULT_TIMEOUT,
        check_existing: bool = True,
    ) -> list[Event]:
        if count < 1:
            raise ValueError("count must be at least 1")
        matcher = _matcher(kind, predicate)
        collected: list[Event] = []
        if check_existing:
            collected = [event for event in self._published if matcher(event)][:count]
            if len(collected) >= count:
                return collected

        waiter = _Waiter(
            predicate=matcher,
            count=count,
            future=asyncio.get_running_loop().create_future(),
            collected=collected,
        )
        self._waiters.append(waiter)
        try:
            return await asyncio.wait_for(waiter.future, timeout)
        except asyncio.TimeoutError:
            raise EventTimeout(
                f"expected {count} event(s) (kind={kind}) within {timeout}s, saw {len(waiter.collected)}"
            ) from None
        finally:
            if waiter in self._waiters:
                self._waiters.remove(waiter)

    # transport

    async def connect(self) -> LocalClient:
        client = LocalClient(self.core)
        await client.connect()
        self._clients.append(client)
        return client

    async def serve(self, host: str | None = None, port: int | None = None) -> str:
        host = host or self.config.host
        port = self.config.port if port is None else port
        server = await serve_nostr(host=host, port=port, core=self.core)
        self._servers.append(server)
        bound_port = next(iter(server.sockets)).getsockname()[1]
        self.url = f"ws://{host}:{bound_port}"
        self._logger.info("serving", url=self.url)
        return self.url

    def set_latency(self, seconds: float) -> None:
        if seconds < 0:
            raise ValueError("latency must be non-negative")
        self.config.latency = seconds

    def set_fault(self, mode: FaultMode | str) -> None:
        self.config.fault = parse_fault(mode)
        self._logger.debug("fault_mode", mode=self.config.fault.value)

    async def drop_connections(self, *, code: int | None = None) -> int:
        return await self.core.drop_connections(code=code)

    def reset(self) -> None:
        """Forget every stored, seeded and published event. Connections stay open."""

        self.store.clear()
        self._published.clear()
        self._seeded.clear()
        self.core.clear_requests()
        self._logger.debug("reset")

    async def close(self) -> None:
        for client in self._clients:
            await client.close()
        self._clients.clear()
        await self.core.drop_connections(code=1001, reason="relay shutting down")
        for server in self._servers:
            server.close()
            await server.wait_closed()
        self._servers.clear()
        self.store.remove_listener(self._on_insert)

    def _coerce(self, raw: EventLike) -> Event:
        if isinstance(raw, Event):
            return raw
        if isinstance(raw, UnsignedEvent):
            return sign_event(raw, self.signer)
        return Event.from_dict(raw)

    def _on_insert(self, result: InsertResult) -> None:
        if result.stored.origin != "publish":
            return
        event = result.stored.event
        self._published.append(event)
        for callback in list(self._publish_callbacks):
            callback(event)
        for waiter in list(self._waiters):
            _offer(waiter, event)


def _offer(waiter: _Waiter, event: Event) -> None:
    if waiter.future.done():
        return
    try:
        matched = waiter.predicate(event)
    except Exception as exc:
        waiter.future.set_exception(exc)
        return
    if matched:
        waiter.collected.append(event)
        if len(waiter.collected) >= waiter.count:
            waiter.future.set_result(list(waiter.collected))


def _matcher(kind: int | None, predicate: Predicate | None) -> Predicate:
    def matches(event: Event) -> bool:
        if kind is not None and event.kind != kind:
            return False
        return predicate is None or bool(predicate(event))

    return matches
