"""Per-test isolation strategies: reset an existing relay or build a new one."""

from __future__ import annotations

from typing import Iterable

from .config import RelayConfig
from .mock import EventLike, MockRelay


def create_fresh_mock_relay(
    seed_events: Iterable[EventLike] | None = None,
    *,
    config: RelayConfig | None = None,
) -> MockRelay:
    relay = MockRelay(config=config)
    if seed_events is not None:
        relay.seed_events(seed_events)
    return relay


def reset_mock_relay(relay: MockRelay) -> None:
    """Drop every event from ``relay``. Calling it twice is harmless."""

    relay.reset()
