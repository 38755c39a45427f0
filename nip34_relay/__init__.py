"""NIP-34 mock relay and event-seeding toolkit for end-to-end tests."""

from .config import FaultMode, RelayConfig, load_config
from .core import RelayCore
from .events import (
    Address,
    Event,
    UnsignedEvent,
    get_tag,
    get_tag_value,
    get_tag_values,
    get_tags,
    has_tag,
    repo_address,
)
from .exceptions import (
    ConnectionClosed,
    ConnectionNeverResponds,
    EventTimeout,
    InvalidEvent,
    InvalidParameters,
    MockRelayError,
)
from .factory import (
    BASE_TIMESTAMP,
    applied_status,
    build_event,
    closed_status,
    draft_status,
    open_status,
    sign_event,
)
from .filters import EventFilter
from .isolation import create_fresh_mock_relay, reset_mock_relay
from .keys import TEST_COMMITS, TEST_PRIVATE_KEYS, TEST_PUBKEYS, Signer
from .local import LocalClient
from .mock import MockRelay
from .seed import SeedIssueResult, SeedPatchResult, SeedRepoResult, TestSeeder
from .storage import InMemoryEventStore, InsertStatus

__all__ = [
    "Address",
    "BASE_TIMESTAMP",
    "ConnectionClosed",
    "ConnectionNeverResponds",
    "Event",
    "EventFilter",
    "EventTimeout",
    "FaultMode",
    "InMemoryEventStore",
    "InsertStatus",
    "InvalidEvent",
    "InvalidParameters",
    "LocalClient",
    "MockRelay",
    "MockRelayError",
    "RelayConfig",
    "RelayCore",
    "SeedIssueResult",
    "SeedPatchResult",
    "SeedRepoResult",
    "Signer",
    "TEST_COMMITS",
    "TEST_PRIVATE_KEYS",
    "TEST_PUBKEYS",
    "TestSeeder",
    "UnsignedEvent",
    "applied_status",
    "build_event",
    "closed_status",
    "create_fresh_mock_relay",
    "draft_status",
    "get_tag",
    "get_tag_value",
    "get_tag_values",
    "get_tags",
    "has_tag",
    "load_config",
    "open_status",
    "repo_address",
    "reset_mock_relay",
    "sign_event",
    "__version__",
]

__version__ = "0.1.0"
