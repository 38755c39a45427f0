"""Event model for Nostr events and NIP-34 addresses."""

from __future__ import annotations

from dataclasses import dataclass, field
import re
from typing import Any, Mapping, Sequence

from .exceptions import InvalidEvent
from .kinds import REPO_ANNOUNCEMENT, is_addressable, is_replaceable

Tags = tuple[tuple[str, ...], ...]

_HEX = re.compile(r"^[0-9a-f]+$")


@dataclass(frozen=True)
class UnsignedEvent:
    kind: int
    created_at: int
    tags: Tags = ()
    content: str = ""
    pubkey: str | None = None

    def with_pubkey(self, pubkey: str) -> UnsignedEvent:
        return UnsignedEvent(
            kind=self.kind,
            created_at=self.created_at,
            tags=self.tags,
            content=self.content,
            pubkey=pubkey,
        )


@dataclass(frozen=True)
class Event:
    id: str
    pubkey: str
    created_at: int
    kind: int
    tags: Tags
    content: str
    sig: str

    @classmethod
    def from_dict(cls, raw: Mapping[str, Any]) -> Event:
        """Build an event from its wire JSON shape, raising InvalidEvent on bad input."""

        if not isinstance(raw, Mapping):
            raise InvalidEvent("event must be an object")
        return cls(
            id=_parse_hex(raw.get("id"), "id", 64),
            pubkey=_parse_hex(raw.get("pubkey"), "pubkey", 64),
            created_at=_parse_created_at(raw.get("created_at")),
            kind=_parse_kind(raw.get("kind")),
            tags=_parse_tags(raw.get("tags")),
            content=_parse_content(raw.get("content")),
            sig=_parse_hex(raw.get("sig"), "sig", 128),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "pubkey": self.pubkey,
            "created_at": self.created_at,
            "kind": self.kind,
            "tags": [list(tag) for tag in self.tags],
            "content": self.content,
            "sig": self.sig,
        }

    @property
    def d_tag(self) -> str:
        return get_tag_value(self, "d") or ""

    @property
    def address(self) -> Address | None:
        """Address of a replaceable or addressable event, None for other kinds."""

        if is_addressable(self.kind):
            return Address(self.kind, self.pubkey, self.d_tag)
        if is_replaceable(self.kind):
            return Address(self.kind, self.pubkey, "")
        return None


@dataclass(frozen=True, order=True)
class Address:
    kind: int
    pubkey: str
    identifier: str = field(default="")

    @classmethod
    def parse(cls, value: object) -> Address | None:
        if not isinstance(value, str):
            return None
        parts = value.split(":", 2)
        if len(parts) != 3:
            return None
        kind, pubkey, identifier = parts
        if not kind.isdigit() or not pubkey:
            return None
        return cls(int(kind), pubkey, identifier)

    def __str__(self) -> str:
        return f"{self.kind}:{self.pubkey}:{self.identifier}"


def repo_address(pubkey: str, identifier: str) -> str:
    return str(Address(REPO_ANNOUNCEMENT, pubkey, identifier))


def normalize_tags(raw_tags: object) -> Tags:
    """Normalize tag data into a tuple of string tuples, raising ValueError on bad input."""

    if raw_tags is None:
        return ()
    if isinstance(raw_tags, (str, bytes)) or not isinstance(raw_tags, Sequence):
        raise ValueError("tags must be a list")
    normalized: list[tuple[str, ...]] = []
    for raw_tag in raw_tags:
        if isinstance(raw_tag, (str, bytes)) or not isinstance(raw_tag, Sequence) or not raw_tag:
            raise ValueError("tag must be a non-empty list")
        if not all(isinstance(value, str) for value in raw_tag):
            raise ValueError("tag values must be strings")
        normalized.append(tuple(raw_tag))
    return tuple(normalized)


# Accessors tolerate malformed input: a missing tag is None or empty, never an error.


def _tags_of(event: object) -> Sequence[object]:
    if isinstance(event, (Event, UnsignedEvent)):
        return event.tags
    if isinstance(event, Mapping):
        tags = event.get("tags")
        if isinstance(tags, (list, tuple)):
            return tags
    return ()


def get_tags(event: object, name: str) -> list[tuple[str, ...]]:
    matches: list[tuple[str, ...]] = []
    for tag in _tags_of(event):
        if isinstance(tag, (list, tuple)) and tag and tag[0] == name:
            matches.append(tuple(str(value) for value in tag))
    return matches


def get_tag(event: object, name: str) -> tuple[str, ...] | None:
    tags = get_tags(event, name)
    return tags[0] if tags else None


def get_tag_value(event: object, name: str, index: int = 1) -> str | None:
    tag = get_tag(event, name)
    if tag is None or len(tag) <= index:
        return None
    return tag[index]


def get_tag_values(event: object, name: str, index: int = 1) -> list[str]:
    return [tag[index] for tag in get_tags(event, name) if len(tag) > index]


def has_tag(event: object, name: str, value: str | None = None) -> bool:
    for tag in get_tags(event, name):
        if value is None or (len(tag) > 1 and tag[1] == value):
            return True
    return False


def check_header(pubkey: object, created_at: object, kind: object) -> None:
    """Raise InvalidEvent unless pubkey, created_at and kind are well formed."""

    _parse_hex(pubkey, "pubkey", 64)
    _parse_created_at(created_at)
    _parse_kind(kind)


def _parse_hex(value: object, field_name: str, length: int) -> str:
    if not isinstance(value, str):
        raise InvalidEvent(f"{field_name} must be a hex string")
    if len(value) != length or not _HEX.match(value):
        raise InvalidEvent(f"{field_name} must be {length} lowercase hex chars")
    return value


def _parse_created_at(value: object) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise InvalidEvent("created_at must be int")
    if value <= 0:
        raise InvalidEvent("created_at must be positive")
    return value


def _parse_kind(value: object) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise InvalidEvent("kind must be int")
    if value < 0 or value > 0xFFFF:
        raise InvalidEvent("kind must be uint16")
    return value


def _parse_content(value: object) -> str:
    if not isinstance(value, str):
        raise InvalidEvent("content must be a string")
    return value


def _parse_tags(value: object) -> Tags:
    if value is None:
        raise InvalidEvent("tags must be a list")
    try:
        return normalize_tags(value)
    except ValueError as exc:
        raise InvalidEvent(str(exc)) from exc
