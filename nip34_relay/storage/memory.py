"""In-memory event storage for the mock relay."""

from __future__ import annotations

from dataclasses import dataclass
import enum
from typing import Callable, Iterable, Mapping

from ..events import Address, Event
from ..filters import EventFilter, match_event, normalize_filter
from ..kinds import is_ephemeral


class InsertStatus(str, enum.Enum):
    STORED = "stored"
    SUPERSEDED = "superseded"
    DUPLICATE = "duplicate"
    EPHEMERAL = "ephemeral"


@dataclass(frozen=True)
class StoredEvent:
    event: Event
    sequence: int
    origin: str
    address: Address | None


@dataclass(frozen=True)
class InsertResult:
    status: InsertStatus
    stored: StoredEvent
    replaced: Event | None = None

    @property
    def accepted(self) -> bool:
        return self.status is not InsertStatus.DUPLICATE

    @property
    def canonical(self) -> bool:
        return self.status is InsertStatus.STORED


Listener = Callable[[InsertResult], None]


class InMemoryEventStore:
    """Append-only event log with relay query semantics.

    Every accepted event stays retrievable by id. For replaceable and
    addressable kinds only the canonical event of each address is returned by
    filter queries: the later ``created_at`` wins and on a tie the
    lexicographically lower id wins, so the outcome does not depend on
    arrival order.
    """

    def __init__(self) -> None:
        self._log: list[StoredEvent] = []
        self._by_id: dict[str, StoredEvent] = {}
        self._canonical: dict[Address, StoredEvent] = {}
        self._superseded: set[str] = set()
        self._index_pubkey: dict[str, set[str]] = {}
        self._index_kind: dict[int, set[str]] = {}
        self._index_tag: dict[tuple[str, str], set[str]] = {}
        self._listeners: list[Listener] = []
        self._sequence = 0

    def __len__(self) -> int:
        return len(self._log)

    def __contains__(self, event_id: object) -> bool:
        return event_id in self._by_id

    def insert(self, event: Event, *, origin: str = "seed") -> InsertResult:
        existing = self._by_id.get(event.id)
        if existing is not None:
            return InsertResult(InsertStatus.DUPLICATE, existing)

        self._sequence += 1
        stored = StoredEvent(event=event, sequence=self._sequence, origin=origin, address=event.address)

        if is_ephemeral(event.kind):
            result = InsertResult(InsertStatus.EPHEMERAL, stored)
            self._notify(result)
            return result

        self._log.append(stored)
        self._add_indexes(stored)

        status = InsertStatus.STORED
        replaced: Event | None = None
        if stored.address is not None:
            current = self._canonical.get(stored.address)
            if current is None or _wins(event, current.event):
                self._canonical[stored.address] = stored
                if current is not None:
                    self._superseded.add(current.event.id)
                    replaced = current.event
            else:
                self._superseded.add(event.id)
                status = InsertStatus.SUPERSEDED

        result = InsertResult(status, stored, replaced)
        self._notify(result)
        return result

    def query(self, flt: EventFilter | Mapping[str, object]) -> list[Event]:
        """Return matching events, newest first, ties ordered by id.

        A malformed filter matches nothing.
        """

        try:
            normalized = normalize_filter(flt)
        except ValueError:
            return []
        return [stored.event for stored in self._select(normalized)]

    def query_many(self, filters: Iterable[EventFilter | Mapping[str, object]]) -> list[Event]:
        seen: dict[str, Event] = {}
        for flt in filters:
            for event in self.query(flt):
                seen.setdefault(event.id, event)
        return sorted(seen.values(), key=_order_key)

    def get(self, event_id: str) -> Event | None:
        stored = self._by_id.get(event_id)
        return stored.event if stored else None

    def get_by_address(self, kind: int, pubkey: str, identifier: str = "") -> Event | None:
        stored = self._canonical.get(Address(kind, pubkey, identifier))
        return stored.event if stored else None

    def history(self, kind: int, pubkey: str, identifier: str = "") -> list[Event]:
        """Every event ever inserted at an address, in insertion order."""

        address = Address(kind, pubkey, identifier)
        return [stored.event for stored in self._log if stored.address == address]

    def is_canonical(self, event_id: str) -> bool:
        return event_id in self._by_id and event_id not in self._superseded

    def raw_log(self) -> list[StoredEvent]:
        return list(self._log)

    def clear(self) -> None:
        self._log.clear()
        self._by_id.clear()
        self._canonical.clear()
        self._superseded.clear()
        self._index_pubkey.clear()
        self._index_kind.clear()
        self._index_tag.clear()
        self._sequence = 0

    def add_listener(self, listener: Listener) -> None:
        self._listeners.append(listener)

    def remove_listener(self, listener: Listener) -> None:
        try:
            self._listeners.remove(listener)
        except ValueError:
            pass

    def _notify(self, result: InsertResult) -> None:
        for listener in list(self._listeners):
            listener(result)

    def _select(self, flt: EventFilter) -> list[StoredEvent]:
        event_ids = self._candidate_ids(flt)
        candidates = (
            [self._by_id[event_id] for event_id in event_ids if event_id in self._by_id]
            if event_ids is not None
            else self._log
        )
        explicit = flt.ids or frozenset()
        matches = [
            stored
            for stored in candidates
            if (stored.event.id not in self._superseded or stored.event.id in explicit)
            and match_event(stored.event, flt)
        ]
        matches.sort(key=lambda stored: _order_key(stored.event))
        if flt.limit is not None:
            matches = matches[: flt.limit]
        return matches

    def _candidate_ids(self, flt: EventFilter) -> set[str] | None:
        candidates: set[str] | None = None
        if flt.ids is not None:
            candidates = set(flt.ids)
        if flt.kinds is not None:
            kind_ids: set[str] = set()
            for kind in flt.kinds:
                kind_ids |= self._index_kind.get(kind, set())
            candidates = kind_ids if candidates is None else candidates & kind_ids
        if flt.authors is not None:
            pubkey_ids: set[str] = set()
            for pubkey in flt.authors:
                pubkey_ids |= self._index_pubkey.get(pubkey, set())
            candidates = pubkey_ids if candidates is None else candidates & pubkey_ids
        for name, values in flt.tags:
            tag_ids: set[str] = set()
            for value in values:
                tag_ids |= self._index_tag.get((name, value), set())
            candidates = tag_ids if candidates is None else candidates & tag_ids
        return candidates

    def _add_indexes(self, stored: StoredEvent) -> None:
        event = stored.event
        self._by_id[event.id] = stored
        self._index_pubkey.setdefault(event.pubkey, set()).add(event.id)
        self._index_kind.setdefault(event.kind, set()).add(event.id)
        for tag in event.tags:
            if len(tag) > 1:
                self._index_tag.setdefault((tag[0], tag[1]), set()).add(event.id)


def _wins(candidate: Event, current: Event) -> bool:
    if candidate.created_at != current.created_at:
        return candidate.created_at > current.created_at
    return candidate.id < current.id


def _order_key(event: Event) -> tuple[int, str]:
    return (-event.created_at, event.id)
