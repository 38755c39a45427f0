"""Subscription tracking and event routing for the relay."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Iterable

from .events import Event
from .filters import EventFilter, match_any

DeliverFn = Callable[[str, str, Event], None]


@dataclass(frozen=True)
class Subscription:
    connection_id: str
    subscription_id: str
    filters: tuple[EventFilter, ...]


class SubscriptionManager:
    def __init__(self) -> None:
        self._subscriptions: dict[str, dict[str, Subscription]] = {}

    def __len__(self) -> int:
        return sum(len(bucket) for bucket in self._subscriptions.values())

    def add(self, connection_id: str, subscription_id: str, filters: Iterable[EventFilter]) -> Subscription:
        bucket = self._subscriptions.setdefault(connection_id, {})
        # a REQ reusing an id replaces the earlier subscription
        bucket.pop(subscription_id, None)
        subscription = Subscription(
            connection_id=connection_id,
            subscription_id=subscription_id,
            filters=tuple(filters),
        )
        bucket[subscription_id] = subscription
        return subscription

    def remove(self, connection_id: str, subscription_id: str) -> bool:
        bucket = self._subscriptions.get(connection_id)
        if not bucket or subscription_id not in bucket:
            return False
        del bucket[subscription_id]
        if not bucket:
            self._subscriptions.pop(connection_id, None)
        return True

    def clear(self, connection_id: str | None = None) -> None:
        if connection_id is None:
            self._subscriptions.clear()
        else:
            self._subscriptions.pop(connection_id, None)

    def get(self, connection_id: str, subscription_id: str) -> Subscription | None:
        return self._subscriptions.get(connection_id, {}).get(subscription_id)

    def active(self) -> list[Subscription]:
        return [subscription for bucket in self._subscriptions.values() for subscription in bucket.values()]

    def matches(self, event: Event) -> list[Subscription]:
        return [subscription for subscription in self.active() if match_any(event, subscription.filters)]

    def dispatch(self, event: Event, deliver: DeliverFn) -> int:
        """Hand ``event`` to every matching subscription, in registration order."""

        matched = self.matches(event)
        for subscription in matched:
            deliver(subscription.connection_id, subscription.subscription_id, event)
        return len(matched)
