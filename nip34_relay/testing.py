"""pytest plugin providing isolated relay fixtures.

Enable with ``pytest_plugins = ["nip34_relay.testing"]`` in a ``conftest.py``.
"""

from __future__ import annotations

from typing import Iterator

import pytest

from .config import RelayConfig
from .isolation import create_fresh_mock_relay, reset_mock_relay
from .mock import MockRelay
from .seed import TestSeeder


@pytest.fixture
def relay_config() -> RelayConfig:
    # no artificial latency unless a test asks for it
    return RelayConfig(latency=0.0)


@pytest.fixture
def mock_relay(relay_config: RelayConfig) -> Iterator[MockRelay]:
    relay = create_fresh_mock_relay(config=relay_config)
    yield relay
    reset_mock_relay(relay)


@pytest.fixture
def seeder(mock_relay: MockRelay) -> TestSeeder:
    return TestSeeder(mock_relay)
