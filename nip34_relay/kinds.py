"""NIP-34 event kinds and NIP-01 kind classes."""

from __future__ import annotations

DELETION = 5
REACTION = 7
COMMENT = 1111
PATCH = 1617
PULL_REQUEST = 1618
PULL_REQUEST_UPDATE = 1619
ISSUE = 1621
ISSUE_REPLY = 1622
STATUS_OPEN = 1630
STATUS_APPLIED = 1631
STATUS_CLOSED = 1632
STATUS_DRAFT = 1633
LABEL = 1985
REPO_ANNOUNCEMENT = 30617
REPO_STATE = 30618

STATUS_KINDS = frozenset({STATUS_OPEN, STATUS_APPLIED, STATUS_CLOSED, STATUS_DRAFT})

STATUS_NAMES = {
    STATUS_OPEN: "open",
    STATUS_APPLIED: "applied",
    STATUS_CLOSED: "closed",
    STATUS_DRAFT: "draft",
}
STATUS_KIND_BY_NAME = {name: kind for kind, name in STATUS_NAMES.items()}
# "resolved" is how issues phrase an applied status
STATUS_KIND_BY_NAME["resolved"] = STATUS_APPLIED

REPLACEABLE_RANGE = range(10_000, 20_000)
EPHEMERAL_RANGE = range(20_000, 30_000)
ADDRESSABLE_RANGE = range(30_000, 40_000)


def is_replaceable(kind: int) -> bool:
    return kind in (0, 3) or kind in REPLACEABLE_RANGE


def is_ephemeral(kind: int) -> bool:
    return kind in EPHEMERAL_RANGE


def is_addressable(kind: int) -> bool:
    return kind in ADDRESSABLE_RANGE


def is_regular(kind: int) -> bool:
    return not (is_replaceable(kind) or is_ephemeral(kind) or is_addressable(kind))


def status_name(kind: int) -> str | None:
    return STATUS_NAMES.get(kind)
