"""Structural assertions over Nostr events, raising AssertionError with a reason."""

from __future__ import annotations

from typing import Any, Mapping, Union

from . import kinds
from .events import Address, Event, get_tag, get_tag_value, get_tag_values, get_tags, has_tag

EventLike = Union[Event, Mapping[str, Any]]


def _field(event: EventLike, name: str) -> Any:
    if isinstance(event, Event):
        return getattr(event, name)
    if isinstance(event, Mapping):
        return event.get(name)
    return None


def _check(condition: bool, message: str) -> None:
    if not condition:
        raise AssertionError(message)


def _is_hex(value: object, length: int) -> bool:
    if not isinstance(value, str) or len(value) != length:
        return False
    return all(char in "0123456789abcdef" for char in value)


def assert_valid_event(event: EventLike) -> None:
    _check(isinstance(event, (Event, Mapping)), "event must be an object")
    _check(_is_hex(_field(event, "id"), 64), "id must be 64 hex characters")
    _check(_is_hex(_field(event, "pubkey"), 64), "pubkey must be 64 hex characters")
    _check(_is_hex(_field(event, "sig"), 128), "sig must be 128 hex characters")
    created_at = _field(event, "created_at")
    _check(isinstance(created_at, int) and not isinstance(created_at, bool), "created_at must be a number")
    _check(created_at > 0, "created_at must be positive")
    kind = _field(event, "kind")
    _check(isinstance(kind, int) and not isinstance(kind, bool) and kind >= 0, "kind must be a non-negative number")
    _check(isinstance(_field(event, "content"), str), "content must be a string")
    tags = _field(event, "tags")
    _check(isinstance(tags, (list, tuple)), "tags must be an array")
    for tag in tags:
        _check(isinstance(tag, (list, tuple)) and len(tag) >= 1, "each tag must be a non-empty array")
        _check(all(isinstance(value, str) for value in tag), "tag elements must be strings")


def assert_event_kind(event: EventLike, expected: int) -> None:
    kind = _field(event, "kind")
    _check(kind == expected, f"event kind should be {expected}, got {kind}")


def assert_has_tag(event: EventLike, name: str, value: str | None = None) -> None:
    tag = get_tag(event, name)
    _check(tag is not None, f"event must have '{name}' tag")
    if value is not None:
        actual = tag[1] if tag and len(tag) > 1 else None
        _check(actual == value, f"tag '{name}' must have value '{value}', got '{actual}'")


def assert_repo_reference(event: EventLike, expected: str | None = None) -> None:
    value = get_tag_value(event, "a")
    _check(value is not None, "event must have 'a' tag for repo reference")
    address = Address.parse(value)
    _check(address is not None, "'a' tag should have format kind:pubkey:identifier")
    _check(address.kind == kinds.REPO_ANNOUNCEMENT, "'a' tag must reference kind 30617")
    _check(len(address.pubkey) == 64, "'a' tag pubkey must be 64 hex characters")
    if expected is not None:
        _check(value == expected, f"'a' tag should be {expected}, got {value}")


def assert_event_reference(event: EventLike, expected_id: str | None = None) -> None:
    value = get_tag_value(event, "e")
    _check(value is not None, "event must have 'e' tag for event reference")
    _check(len(value) == 64, "'e' tag event id must be 64 hex characters")
    if expected_id is not None:
        _check(value == expected_id, f"'e' tag should reference {expected_id}, got {value}")


def assert_d_tag(event: EventLike, expected: str | None = None) -> None:
    assert_has_tag(event, "d", expected)


def assert_valid_repo_announcement(event: EventLike) -> None:
    assert_valid_event(event)
    assert_event_kind(event, kinds.REPO_ANNOUNCEMENT)
    assert_d_tag(event)
    _check(bool(get_tag_value(event, "d")), "'d' tag must have a non-empty value")


def assert_valid_repo_state(event: EventLike) -> None:
    assert_valid_event(event)
    assert_event_kind(event, kinds.REPO_STATE)
    assert_d_tag(event)
    tags = _field(event, "tags")
    has_refs = any(tag[0].startswith("refs/") for tag in tags)
    _check(has_refs or has_tag(event, "HEAD"), "repo state should have a refs/ tag or a HEAD tag")


def assert_valid_patch(event: EventLike) -> None:
    assert_valid_event(event)
    assert_event_kind(event, kinds.PATCH)
    assert_repo_reference(event)
    _check(len(_field(event, "content")) > 0, "patch content should not be empty")
    commit = get_tag_value(event, "commit")
    if commit is not None:
        _check(len(commit) >= 7, "commit tag should be a valid sha")


def assert_valid_issue(event: EventLike) -> None:
    assert_valid_event(event)
    assert_event_kind(event, kinds.ISSUE)
    assert_repo_reference(event)
    subject = get_tag_value(event, "subject")
    if subject is not None:
        _check(len(subject) > 0, "issue subject should not be empty")


def assert_valid_status_event(event: EventLike, *, require_recipients: bool = True) -> None:
    """Status events must reference their target; non-draft ones notify someone."""

    assert_valid_event(event)
    kind = _field(event, "kind")
    _check(kind in kinds.STATUS_KINDS, f"status kind must be one of {sorted(kinds.STATUS_KINDS)}")
    assert_event_reference(event)
    if require_recipients and kind != kinds.STATUS_DRAFT:
        _check(len(get_tags(event, "p")) >= 1, "status event should have at least one 'p' tag")
    if kind == kinds.STATUS_APPLIED:
        merge_commit = get_tag_value(event, "merge-commit")
        if merge_commit is not None:
            _check(len(merge_commit) >= 7, "merge-commit should be a valid sha")
        if has_tag(event, "applied-as-commits"):
            commits = get_tag(event, "applied-as-commits") or ()
            _check(len(commits) >= 2, "applied-as-commits should list at least one commit")


def assert_valid_label(event: EventLike) -> None:
    assert_valid_event(event)
    assert_event_kind(event, kinds.LABEL)
    labels = get_tags(event, "l")
    _check(len(labels) >= 1, "label event must have at least one 'l' tag")
    _check(
        any(has_tag(event, name) for name in ("e", "a", "p")),
        "label event must reference at least one target (e, a or p tag)",
    )
    namespaces = get_tag_values(event, "L")
    for tag in labels:
        _check(len(tag) > 1 and len(tag[1]) > 0, "'l' tag value should not be empty")
        if len(tag) > 2 and namespaces:
            _check(tag[2] in namespaces, f"'l' tag namespace '{tag[2]}' should be declared in an 'L' tag")


def assert_status_references(status: EventLike, target: EventLike) -> None:
    assert_valid_status_event(status)
    assert_event_reference(status, _field(target, "id"))


def assert_references_repo(event: EventLike, repo: EventLike) -> None:
    identifier = get_tag_value(repo, "d")
    _check(identifier is not None, "repo announcement must have 'd' tag")
    assert_repo_reference(event, f"{kinds.REPO_ANNOUNCEMENT}:{_field(repo, 'pubkey')}:{identifier}")


def assert_label_targets_event(label: EventLike, target: EventLike) -> None:
    assert_valid_label(label)
    target_id = _field(target, "id")
    _check(target_id in get_tag_values(label, "e"), f"label should reference event {target_id}")
