"""Builders for NIP-34 events and the signing step that turns them into events."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Iterable, Mapping, Sequence

from . import kinds
from .crypto import compute_event_id, sign, simulated_signature
from .events import Event, UnsignedEvent, check_header, normalize_tags
from .exceptions import InvalidEvent, InvalidParameters
from .keys import TEST_PUBKEYS, Signer

# 2024-01-15 12:00:00 UTC
BASE_TIMESTAMP = 1_705_320_000

LABEL_NAMESPACES = ("ugc", "git", "review", "priority", "status", "type", "role")

Builder = Callable[..., UnsignedEvent]


@dataclass(frozen=True)
class RepoRef:
    name: str
    commit: str
    type: str = "heads"
    ancestry: tuple[str, ...] = ()


@dataclass(frozen=True)
class Committer:
    name: str
    email: str
    timestamp: str
    tz_offset: str = "0"


def repo_announcement(
    *,
    identifier: str | None = None,
    name: str | None = None,
    description: str | None = None,
    web: Sequence[str] = (),
    clone: Sequence[str] = (),
    relays: Sequence[str] = (),
    maintainers: Sequence[str] = (),
    earliest_unique_commit: str | None = None,
    hashtags: Sequence[str] = (),
    pubkey: str | None = None,
    created_at: int = BASE_TIMESTAMP,
) -> UnsignedEvent:
    _require(identifier, "identifier")
    tags: list[list[str]] = [["d", identifier], ["name", name or identifier]]
    if description:
        tags.append(["description", description])
    if web:
        tags.append(["web", *web])
    if clone:
        tags.append(["clone", *clone])
    if relays:
        tags.append(["relays", *relays])
    if maintainers:
        tags.append(["maintainers", *maintainers])
    if earliest_unique_commit:
        tags.append(["r", earliest_unique_commit, "euc"])
    tags.extend(["t", tag] for tag in hashtags)
    return _unsigned(kinds.REPO_ANNOUNCEMENT, tags, "", pubkey or TEST_PUBKEYS["alice"], created_at)


def repo_state(
    *,
    identifier: str | None = None,
    refs: Iterable[RepoRef | Mapping[str, Any]] = (),
    head: str | None = None,
    pubkey: str | None = None,
    created_at: int = BASE_TIMESTAMP,
) -> UnsignedEvent:
    _require(identifier, "identifier")
    tags: list[list[str]] = [["d", identifier]]
    for raw_ref in refs:
        ref = raw_ref if isinstance(raw_ref, RepoRef) else _repo_ref(raw_ref)
        if ref.type not in ("heads", "tags"):
            raise InvalidParameters(f"ref type must be heads or tags: {ref.type}")
        tags.append([f"refs/{ref.type}/{ref.name}", ref.commit, *ref.ancestry])
    if head:
        tags.append(["HEAD", f"ref: refs/heads/{head}"])
    return _unsigned(kinds.REPO_STATE, tags, "", pubkey or TEST_PUBKEYS["alice"], created_at)


def issue(
    *,
    repo_address: str | None = None,
    content: str = "",
    subject: str | None = None,
    recipients: Sequence[str] = (),
    labels: Sequence[str] = (),
    references: Sequence[str] = (),
    pubkey: str | None = None,
    created_at: int = BASE_TIMESTAMP,
) -> UnsignedEvent:
    _require(repo_address, "repo_address")
    tags: list[list[str]] = [["a", repo_address]]
    if subject:
        tags.append(["subject", subject])
    tags.extend(["p", recipient] for recipient in recipients)
    tags.extend(["t", label] for label in labels)
    tags.extend(["e", reference] for reference in references)
    return _unsigned(kinds.ISSUE, tags, content, pubkey or TEST_PUBKEYS["charlie"], created_at)


def patch(
    *,
    repo_address: str | None = None,
    content: str = "",
    commit: str | None = None,
    parent_commit: str | None = None,
    earliest_unique_commit: str | None = None,
    committer: Committer | Mapping[str, str] | None = None,
    pgp_sig: str | None = None,
    recipients: Sequence[str] = (),
    subject: str | None = None,
    labels: Sequence[str] = (),
    stack: str | None = None,
    depends: Sequence[str] = (),
    revision: str | None = None,
    supersedes: str | None = None,
    in_reply_to: str | None = None,
    is_root: bool = True,
    pubkey: str | None = None,
    created_at: int = BASE_TIMESTAMP,
) -> UnsignedEvent:
    _require(repo_address, "repo_address")
    _require(content, "content")
    tags: list[list[str]] = [["a", repo_address]]
    if earliest_unique_commit:
        tags.append(["r", earliest_unique_commit])
    if commit:
        tags.append(["commit", commit])
    if parent_commit:
        tags.append(["parent-commit", parent_commit])
    if committer is not None:
        who = committer if isinstance(committer, Committer) else Committer(**committer)
        tags.append(["committer", who.name, who.email, who.timestamp, who.tz_offset])
    if pgp_sig:
        tags.append(["commit-pgp-sig", pgp_sig])
    tags.extend(["p", recipient] for recipient in recipients)
    if subject:
        tags.append(["subject", subject])
    tags.extend(["t", label] for label in labels)
    if stack:
        tags.append(["stack", stack])
    tags.extend(["depends", dependency] for dependency in depends)
    if revision:
        tags.append(["rev", revision])
    if supersedes:
        tags.append(["supersedes", supersedes])
    if in_reply_to:
        tags.append(["in-reply-to", in_reply_to])
    if is_root and "root" not in labels:
        tags.append(["t", "root"])
    return _unsigned(kinds.PATCH, tags, content, pubkey or TEST_PUBKEYS["bob"], created_at)


def pull_request(
    *,
    repo_address: str | None = None,
    content: str = "",
    subject: str | None = None,
    recipients: Sequence[str] = (),
    labels: Sequence[str] = (),
    commits: Sequence[str] = (),
    clone: Sequence[str] = (),
    branch_name: str | None = None,
    merge_base: str | None = None,
    earliest_unique_commit: str | None = None,
    pubkey: str | None = None,
    created_at: int = BASE_TIMESTAMP,
) -> UnsignedEvent:
    _require(repo_address, "repo_address")
    tags: list[list[str]] = [["a", repo_address]]
    if earliest_unique_commit:
        tags.append(["r", earliest_unique_commit])
    if subject:
        tags.append(["subject", subject])
    tags.extend(["p", recipient] for recipient in recipients)
    tags.extend(["t", label] for label in labels)
    tags.extend(["c", commit] for commit in commits)
    if clone:
        tags.append(["clone", *clone])
    if branch_name:
        tags.append(["branch-name", branch_name])
    if merge_base:
        tags.append(["merge-base", merge_base])
    return _unsigned(kinds.PULL_REQUEST, tags, content, pubkey or TEST_PUBKEYS["bob"], created_at)


def pull_request_update(
    *,
    repo_address: str | None = None,
    pr_event_id: str | None = None,
    commits: Sequence[str] = (),
    clone: Sequence[str] = (),
    merge_base: str | None = None,
    recipients: Sequence[str] = (),
    content: str = "",
    pubkey: str | None = None,
    created_at: int = BASE_TIMESTAMP,
) -> UnsignedEvent:
    _require(repo_address, "repo_address")
    tags: list[list[str]] = [["a", repo_address]]
    if pr_event_id:
        tags.append(["e", pr_event_id, "", "root"])
    tags.extend(["p", recipient] for recipient in recipients)
    tags.extend(["c", commit] for commit in commits)
    if clone:
        tags.append(["clone", *clone])
    if merge_base:
        tags.append(["merge-base", merge_base])
    return _unsigned(
        kinds.PULL_REQUEST_UPDATE, tags, content, pubkey or TEST_PUBKEYS["bob"], created_at
    )


def status(
    *,
    kind: int,
    target_id: str | None = None,
    repo_address: str | None = None,
    content: str = "",
    reply_id: str | None = None,
    recipients: Sequence[str] = (),
    relay: str | None = None,
    merge_commit: str | None = None,
    applied_as_commits: Sequence[str] = (),
    pubkey: str | None = None,
    created_at: int = BASE_TIMESTAMP,
) -> UnsignedEvent:
    """Status event (1630-1633) for an issue, patch or pull request.

    Tag order: ``e`` root, optional ``e`` reply, ``p`` recipients, ``a``,
    optional relay hint, then the applied-only ``merge-commit`` and
    ``applied-as-commits`` tags.
    """

    if kind not in kinds.STATUS_KINDS:
        raise InvalidParameters(f"not a status kind: {kind}")
    _require(target_id, "target_id")
    _require(repo_address, "repo_address")
    if kind != kinds.STATUS_APPLIED and (merge_commit or applied_as_commits):
        raise InvalidParameters("merge_commit is only valid on applied status")
    tags: list[list[str]] = [["e", target_id, "", "root"]]
    if reply_id:
        tags.append(["e", reply_id, "", "reply"])
    tags.extend(["p", recipient] for recipient in recipients)
    tags.append(["a", repo_address])
    if relay:
        tags.append(["r", relay])
    if merge_commit:
        tags.append(["merge-commit", merge_commit])
    if applied_as_commits:
        tags.append(["applied-as-commits", *applied_as_commits])
    return _unsigned(kind, tags, content, pubkey or TEST_PUBKEYS["alice"], created_at)


def open_status(target_id: str, **params: Any) -> UnsignedEvent:
    return status(kind=kinds.STATUS_OPEN, target_id=target_id, **params)


def applied_status(target_id: str, **params: Any) -> UnsignedEvent:
    return status(kind=kinds.STATUS_APPLIED, target_id=target_id, **params)


def closed_status(target_id: str, **params: Any) -> UnsignedEvent:
    return status(kind=kinds.STATUS_CLOSED, target_id=target_id, **params)


def draft_status(target_id: str, **params: Any) -> UnsignedEvent:
    return status(kind=kinds.STATUS_DRAFT, target_id=target_id, **params)


def label(
    *,
    values: Sequence[str] = (),
    namespace: str = "ugc",
    events: Sequence[str] = (),
    addresses: Sequence[str] = (),
    pubkeys: Sequence[str] = (),
    references: Sequence[str] = (),
    hashtags: Sequence[str] = (),
    content: str = "",
    pubkey: str | None = None,
    created_at: int = BASE_TIMESTAMP,
) -> UnsignedEvent:
    """NIP-32 label: one ``L`` namespace tag, an ``l`` tag per value, then targets."""

    if not values:
        raise InvalidParameters("label requires at least one value")
    if not (events or addresses or pubkeys or references or hashtags):
        raise InvalidParameters("label requires at least one target")
    _require(namespace, "namespace")
    tags: list[list[str]] = [["L", namespace]]
    tags.extend(["l", value, namespace] for value in values)
    tags.extend(["e", event_id] for event_id in events)
    tags.extend(["a", address] for address in addresses)
    tags.extend(["p", target] for target in pubkeys)
    tags.extend(["r", reference] for reference in references)
    tags.extend(["t", hashtag] for hashtag in hashtags)
    return _unsigned(kinds.LABEL, tags, content, pubkey or TEST_PUBKEYS["alice"], created_at)


def assignee_label(target_id: str, assignee: str, **params: Any) -> UnsignedEvent:
    return label(values=["assignee"], namespace="role", events=[target_id], pubkeys=[assignee], **params)


def reviewer_label(target_id: str, reviewer: str, **params: Any) -> UnsignedEvent:
    return label(values=["reviewer"], namespace="role", events=[target_id], pubkeys=[reviewer], **params)


def deletion(
    *,
    ids: Sequence[str] = (),
    addresses: Sequence[str] = (),
    kinds_deleted: Sequence[int] = (),
    reason: str = "",
    pubkey: str | None = None,
    created_at: int = BASE_TIMESTAMP,
) -> UnsignedEvent:
    if not ids and not addresses:
        raise InvalidParameters("deletion requires at least one event id or address")
    tags: list[list[str]] = [["e", event_id] for event_id in ids]
    tags.extend(["a", address] for address in addresses)
    tags.extend(["k", str(kind)] for kind in sorted(set(kinds_deleted)))
    return _unsigned(kinds.DELETION, tags, reason, pubkey or TEST_PUBKEYS["alice"], created_at)


def reaction(
    *,
    target_id: str | None = None,
    target_pubkey: str | None = None,
    target_kind: int | None = None,
    content: str = "+",
    pubkey: str | None = None,
    created_at: int = BASE_TIMESTAMP,
) -> UnsignedEvent:
    _require(target_id, "target_id")
    tags: list[list[str]] = [["e", target_id]]
    if target_pubkey:
        tags.append(["p", target_pubkey])
    if target_kind is not None:
        tags.append(["k", str(target_kind)])
    return _unsigned(kinds.REACTION, tags, content, pubkey or TEST_PUBKEYS["alice"], created_at)


def comment(
    *,
    root_id: str | None = None,
    content: str = "",
    repo_address: str | None = None,
    reply_id: str | None = None,
    root_kind: int | None = None,
    recipients: Sequence[str] = (),
    pubkey: str | None = None,
    created_at: int = BASE_TIMESTAMP,
) -> UnsignedEvent:
    """NIP-22 comment threaded under an issue or patch."""

    _require(root_id, "root_id")
    tags: list[list[str]] = [["e", root_id, "", "root"]]
    if reply_id:
        tags.append(["e", reply_id, "", "reply"])
    if root_kind is not None:
        tags.append(["K", str(root_kind)])
    if repo_address:
        tags.append(["a", repo_address])
    tags.extend(["p", recipient] for recipient in recipients)
    return _unsigned(kinds.COMMENT, tags, content, pubkey or TEST_PUBKEYS["bob"], created_at)


def generic(
    *,
    kind: int,
    tags: Sequence[Sequence[str]] = (),
    content: str = "",
    pubkey: str | None = None,
    created_at: int = BASE_TIMESTAMP,
) -> UnsignedEvent:
    try:
        normalized = normalize_tags(tags)
    except ValueError as exc:
        raise InvalidParameters(str(exc)) from exc
    return UnsignedEvent(kind=kind, created_at=created_at, tags=normalized, content=content, pubkey=pubkey)


BUILDERS: dict[int, Builder] = {
    kinds.REPO_ANNOUNCEMENT: repo_announcement,
    kinds.REPO_STATE: repo_state,
    kinds.ISSUE: issue,
    kinds.PATCH: patch,
    kinds.PULL_REQUEST: pull_request,
    kinds.PULL_REQUEST_UPDATE: pull_request_update,
    kinds.LABEL: label,
    kinds.DELETION: deletion,
    kinds.REACTION: reaction,
    kinds.COMMENT: comment,
}


def build_event(kind: int, params: Mapping[str, Any] | None = None) -> UnsignedEvent:
    """Build an unsigned event of ``kind`` from keyword parameters.

    Raises InvalidParameters when a field the kind requires is missing or a
    parameter is not understood by the kind's builder.
    """

    values = dict(params or {})
    if kind in kinds.STATUS_KINDS:
        builder: Builder = status
        values["kind"] = kind
    elif kind in BUILDERS:
        builder = BUILDERS[kind]
    else:
        builder = generic
        values["kind"] = kind
    try:
        return builder(**values)
    except TypeError as exc:
        raise InvalidParameters(f"kind {kind}: {exc}") from exc


def sign_event(unsigned: UnsignedEvent, signer: Signer | None = None) -> Event:
    """Compute the id and attach a signature.

    Events without a pubkey are authored by the signer's default key. A pubkey
    the signer holds a key for is signed with Ed25519; any other pubkey gets a
    deterministic simulated signature of the same length.

    Raises InvalidParameters for a malformed pubkey, created_at or kind.
    """

    ring = signer or default_signer()
    pubkey = unsigned.pubkey or ring.default_pubkey
    try:
        check_header(pubkey, unsigned.created_at, unsigned.kind)
    except InvalidEvent as exc:
        raise InvalidParameters(str(exc)) from exc
    event_id = compute_event_id(
        pubkey=pubkey,
        created_at=unsigned.created_at,
        kind=unsigned.kind,
        tags=unsigned.tags,
        content=unsigned.content,
    )
    private_key = ring.private_key_for(pubkey)
    if private_key is not None:
        sig = sign(bytes.fromhex(event_id), private_key)
    else:
        sig = simulated_signature(bytes.fromhex(event_id), bytes.fromhex(pubkey))
    return Event(
        id=event_id,
        pubkey=pubkey,
        created_at=unsigned.created_at,
        kind=unsigned.kind,
        tags=unsigned.tags,
        content=unsigned.content,
        sig=sig.hex(),
    )


_DEFAULT_SIGNER: Signer | None = None


def default_signer() -> Signer:
    global _DEFAULT_SIGNER
    if _DEFAULT_SIGNER is None:
        _DEFAULT_SIGNER = Signer()
    return _DEFAULT_SIGNER


def _unsigned(
    kind: int,
    tags: list[list[str]],
    content: str,
    pubkey: str,
    created_at: int,
) -> UnsignedEvent:
    return UnsignedEvent(
        kind=kind,
        created_at=created_at,
        tags=tuple(tuple(tag) for tag in tags),
        content=content,
        pubkey=pubkey,
    )


def _repo_ref(raw: Mapping[str, Any]) -> RepoRef:
    try:
        return RepoRef(
            name=raw["name"],
            commit=raw["commit"],
            type=raw.get("type", "heads"),
            ancestry=tuple(raw.get("ancestry", ())),
        )
    except KeyError as exc:
        raise InvalidParameters(f"ref requires {exc.args[0]}") from exc


def _require(value: object, field_name: str) -> None:
    if value is None or value == "":
        raise InvalidParameters(f"{field_name} is required")
