"""NIP-01 subscription filters and event matching."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Mapping

from .events import Event

_SCALAR_KEYS = frozenset({"ids", "authors", "kinds", "since", "until", "limit"})


@dataclass(frozen=True)
class EventFilter:
    ids: frozenset[str] | None = None
    authors: frozenset[str] | None = None
    kinds: frozenset[int] | None = None
    tags: tuple[tuple[str, frozenset[str]], ...] = ()
    since: int | None = None
    until: int | None = None
    limit: int | None = None

    def to_dict(self) -> dict[str, object]:
        raw: dict[str, object] = {}
        if self.ids is not None:
            raw["ids"] = sorted(self.ids)
        if self.authors is not None:
            raw["authors"] = sorted(self.authors)
        if self.kinds is not None:
            raw["kinds"] = sorted(self.kinds)
        for name, values in self.tags:
            raw[f"#{name}"] = sorted(values)
        if self.since is not None:
            raw["since"] = self.since
        if self.until is not None:
            raw["until"] = self.until
        if self.limit is not None:
            raw["limit"] = self.limit
        return raw


def normalize_filter(raw: Mapping[str, object] | EventFilter) -> EventFilter:
    """Parse a NIP-01 filter object. Tag constraints use ``#<name>`` keys."""

    if isinstance(raw, EventFilter):
        return raw
    if not isinstance(raw, Mapping):
        raise ValueError("filter must be an object")
    tags: list[tuple[str, frozenset[str]]] = []
    for key, values in raw.items():
        if not isinstance(key, str):
            raise ValueError("filter key must be str")
        if key in _SCALAR_KEYS:
            continue
        if key.startswith("#") and len(key) > 1:
            tags.append((key[1:], frozenset(_parse_strings(values, key))))
        # unknown keys are ignored, as relays do
    return EventFilter(
        ids=_optional_strings(raw.get("ids"), "ids"),
        authors=_optional_strings(raw.get("authors"), "authors"),
        kinds=_normalize_kinds(raw.get("kinds")),
        tags=tuple(sorted(tags)),
        since=_normalize_int(raw.get("since"), "since"),
        until=_normalize_int(raw.get("until"), "until"),
        limit=_normalize_limit(raw.get("limit")),
    )


def match_event(event: Event, flt: EventFilter) -> bool:
    """True when ``event`` satisfies every constraint of ``flt``. ``limit`` is ignored."""

    if flt.ids is not None and event.id not in flt.ids:
        return False
    if flt.authors is not None and event.pubkey not in flt.authors:
        return False
    if flt.kinds is not None and event.kind not in flt.kinds:
        return False
    if flt.since is not None and event.created_at < flt.since:
        return False
    if flt.until is not None and event.created_at > flt.until:
        return False
    return _match_tags(event, flt.tags)


def match_any(event: Event, filters: Iterable[EventFilter]) -> bool:
    return any(match_event(event, flt) for flt in filters)


def _match_tags(event: Event, required: tuple[tuple[str, frozenset[str]], ...]) -> bool:
    # AND across tag names, OR within the values for one name
    for name, values in required:
        if not any(len(tag) > 1 and tag[0] == name and tag[1] in values for tag in event.tags):
            return False
    return True


def _parse_strings(raw: object, field: str) -> list[str]:
    if not isinstance(raw, (list, tuple, set, frozenset)):
        raise ValueError(f"{field} must be a list")
    values: list[str] = []
    for value in raw:
        if not isinstance(value, str):
            raise ValueError(f"{field} entries must be strings")
        values.append(value)
    return values


def _optional_strings(raw: object, field: str) -> frozenset[str] | None:
    if raw is None:
        return None
    return frozenset(_parse_strings(raw, field))


def _normalize_kinds(raw: object) -> frozenset[int] | None:
    if raw is None:
        return None
    if not isinstance(raw, (list, tuple, set, frozenset)):
        raise ValueError("kinds must be a list")
    return frozenset(_parse_int(value, "kind") for value in raw)


def _normalize_int(value: object, field: str) -> int | None:
    if value is None:
        return None
    return _parse_int(value, field)


def _normalize_limit(value: object) -> int | None:
    limit = _normalize_int(value, "limit")
    if limit is not None and limit < 0:
        raise ValueError("limit must be non-negative")
    return limit


def _parse_int(value: object, field: str) -> int:
    if isinstance(value, bool) or value is None:
        raise ValueError(f"{field} must be int")
    if isinstance(value, int):
        return value
    raise ValueError(f"{field} must be int")
