"""Core relay logic: storage, subscriptions and routing."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field, replace
from typing import Any, Callable, Protocol, Sequence

from .config import RelayConfig
from .events import Event
from .filters import EventFilter, normalize_filter
from .logger import Logger, get_logger
from .storage import InMemoryEventStore, InsertResult, InsertStatus
from .subscriptions import Subscription, SubscriptionManager

AckFn = Callable[[InsertResult], None]


class Peer(Protocol):
    """A live connection the core can push messages to."""

    connection_id: str

    def deliver(self, message: list[Any]) -> None: ...

    async def close(self, code: int = 1000, reason: str = "") -> None: ...


@dataclass(frozen=True)
class SubscriptionRequest:
    connection_id: str
    subscription_id: str
    filters: tuple[EventFilter, ...] = field(default_factory=tuple)


class RelayCore:
    """Single-writer front of the store.

    Inserts are serialized by one lock and each accepted event is delivered to
    matching subscriptions before the lock is released, so every connection
    sees events in the order the store accepted them.
    """

    def __init__(
        self,
        store: InMemoryEventStore,
        *,
        config: RelayConfig | None = None,
        logger: Logger | None = None,
    ) -> None:
        self.store = store
        self.config = config or RelayConfig()
        self._logger = logger or get_logger("relay", json_output=self.config.json_logs)
        self._subscriptions = SubscriptionManager()
        self._peers: dict[str, Peer] = {}
        self._requests: list[SubscriptionRequest] = []
        self._subscribe_hooks: list[Callable[[SubscriptionRequest], None]] = []
        self._write_lock = asyncio.Lock()

    @property
    def subscriptions(self) -> list[Subscription]:
        return self._subscriptions.active()

    @property
    def requests(self) -> list[SubscriptionRequest]:
        return list(self._requests)

    def connections(self) -> list[Peer]:
        return list(self._peers.values())

    def register(self, peer: Peer) -> None:
        self._peers[peer.connection_id] = peer
        self._logger.debug("connection_opened", connection=peer.connection_id, open=len(self._peers))

    def unregister(self, connection_id: str) -> None:
        self._subscriptions.clear(connection_id)
        if self._peers.pop(connection_id, None) is not None:
            self._logger.debug("connection_closed", connection=connection_id, open=len(self._peers))

    def on_subscribe(self, hook: Callable[[SubscriptionRequest], None]) -> None:
        self._subscribe_hooks.append(hook)

    def subscribe(
        self,
        connection_id: str,
        subscription_id: str,
        filters: Sequence[object],
    ) -> list[Event]:
        """Register a subscription and return the stored events it matches.

        Raises ValueError for a malformed filter. Registration and the
        snapshot happen without yielding, so no event can fall between them.
        """

        normalized = [self._cap_limit(normalize_filter(raw)) for raw in filters]
        self._subscriptions.add(connection_id, subscription_id, normalized)
        request = SubscriptionRequest(connection_id, subscription_id, tuple(normalized))
        self._requests.append(request)
        for hook in list(self._subscribe_hooks):
            hook(request)
        stored = self.store.query_many(normalized)
        self._logger.debug(
            "req",
            connection=connection_id,
            subscription=subscription_id,
            filters=len(normalized),
            stored=len(stored),
        )
        return stored

    def unsubscribe(self, connection_id: str, subscription_id: str) -> bool:
        removed = self._subscriptions.remove(connection_id, subscription_id)
        if removed:
            self._logger.debug("close", connection=connection_id, subscription=subscription_id)
        return removed

    async def publish(
        self,
        event: Event,
        *,
        origin: str = "publish",
        on_accepted: AckFn | None = None,
    ) -> InsertResult:
        async with self._write_lock:
            result = self.store.insert(event, origin=origin)
            if on_accepted is not None:
                on_accepted(result)
            delivered = 0
            if result.status in (InsertStatus.STORED, InsertStatus.EPHEMERAL):
                delivered = self._subscriptions.dispatch(event, self._deliver)
        self._logger.debug(
            "event_accepted",
            id=event.id,
            kind=event.kind,
            origin=origin,
            status=result.status.value,
            subscribers=delivered,
        )
        return result

    async def drop_connections(self, *, code: int | None = None, reason: str = "dropped") -> int:
        peers = list(self._peers.values())
        for peer in peers:
            await peer.close(code if code is not None else self.config.close_code, reason)
        return len(peers)

    def clear_requests(self) -> None:
        self._requests.clear()

    def _deliver(self, connection_id: str, subscription_id: str, event: Event) -> None:
        peer = self._peers.get(connection_id)
        if peer is not None:
            peer.deliver(["EVENT", subscription_id, event.to_dict()])

    def _cap_limit(self, flt: EventFilter) -> EventFilter:
        cap = self.config.max_limit
        if cap is None or (flt.limit is not None and flt.limit <= cap):
            return flt
        return replace(flt, limit=cap)
