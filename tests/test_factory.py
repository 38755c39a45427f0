from __future__ import annotations

from typing import Any

import pytest

from nip34_relay import factory, kinds
from nip34_relay.crypto import verify
from nip34_relay.events import get_tag, get_tag_value, get_tag_values, repo_address
from nip34_relay.exceptions import InvalidParameters
from nip34_relay.factory import BASE_TIMESTAMP, Committer, RepoRef, build_event, sign_event
from nip34_relay.keys import TEST_COMMITS, TEST_PUBKEYS

REPO = repo_address(TEST_PUBKEYS["alice"], "demo")
TARGET = "ab" * 32


def test_repo_announcement_tag_order() -> None:
    unsigned = factory.repo_announcement(
        identifier="demo",
        name="Demo",
        description="A demo repository",
        web=["https://demo.test"],
        clone=["https://demo.test/demo.git", "git@demo.test:demo.git"],
        relays=["wss://relay.test"],
        maintainers=[TEST_PUBKEYS["bob"]],
        earliest_unique_commit=TEST_COMMITS["initial"],
        hashtags=["nostr", "git"],
    )
    assert unsigned.kind == kinds.REPO_ANNOUNCEMENT
    assert unsigned.pubkey == TEST_PUBKEYS["alice"]
    assert unsigned.created_at == BASE_TIMESTAMP
    assert unsigned.tags == (
        ("d", "demo"),
        ("name", "Demo"),
        ("description", "A demo repository"),
        ("web", "https://demo.test"),
        ("clone", "https://demo.test/demo.git", "git@demo.test:demo.git"),
        ("relays", "wss://relay.test"),
        ("maintainers", TEST_PUBKEYS["bob"]),
        ("r", TEST_COMMITS["initial"], "euc"),
        ("t", "nostr"),
        ("t", "git"),
    )


def test_repo_state_refs_and_head() -> None:
    unsigned = factory.repo_state(
        identifier="demo",
        refs=[
            RepoRef("main", TEST_COMMITS["second"], ancestry=(TEST_COMMITS["initial"],)),
            {"name": "v1.0", "commit": TEST_COMMITS["third"], "type": "tags"},
        ],
        head="main",
    )
    assert unsigned.tags == (
        ("d", "demo"),
        ("refs/heads/main", TEST_COMMITS["second"], TEST_COMMITS["initial"]),
        ("refs/tags/v1.0", TEST_COMMITS["third"]),
        ("HEAD", "ref: refs/heads/main"),
    )


def test_repo_state_rejects_unknown_ref_type() -> None:
    with pytest.raises(InvalidParameters, match="ref type"):
        factory.repo_state(identifier="demo", refs=[RepoRef("x", TEST_COMMITS["initial"], type="notes")])


def test_issue_defaults_to_charlie() -> None:
    unsigned = factory.issue(repo_address=REPO, subject="Crash", content="body", labels=["bug"])
    assert unsigned.pubkey == TEST_PUBKEYS["charlie"]
    assert unsigned.tags == (("a", REPO), ("subject", "Crash"), ("t", "bug"))


def test_patch_tags() -> None:
    unsigned = factory.patch(
        repo_address=REPO,
        content="From 1234 Mon Sep 17 00:00:00 2001\n",
        commit=TEST_COMMITS["second"],
        parent_commit=TEST_COMMITS["initial"],
        committer=Committer("Bob", "bob@example.com", "1705320000", "0"),
        subject="Fix crash",
    )
    assert unsigned.pubkey == TEST_PUBKEYS["bob"]
    assert unsigned.tags == (
        ("a", REPO),
        ("commit", TEST_COMMITS["second"]),
        ("parent-commit", TEST_COMMITS["initial"]),
        ("committer", "Bob", "bob@example.com", "1705320000", "0"),
        ("subject", "Fix crash"),
        ("t", "root"),
    )

    revision = factory.patch(repo_address=REPO, content="diff", is_root=False, in_reply_to=TARGET)
    assert ("t", "root") not in revision.tags
    assert get_tag_value(revision, "in-reply-to") == TARGET


def test_patch_root_label_is_not_duplicated() -> None:
    unsigned = factory.patch(repo_address=REPO, content="diff", labels=["root", "bugfix"])
    assert [tag for tag in unsigned.tags if tag[0] == "t"] == [("t", "root"), ("t", "bugfix")]


def test_pull_request_and_update() -> None:
    pr = factory.pull_request(
        repo_address=REPO,
        subject="Add feature",
        commits=[TEST_COMMITS["feature"]],
        clone=["https://fork.test/demo.git"],
        branch_name="feature",
    )
    assert pr.kind == kinds.PULL_REQUEST
    assert get_tag_values(pr, "c") == [TEST_COMMITS["feature"]]
    assert get_tag_value(pr, "branch-name") == "feature"

    update = factory.pull_request_update(repo_address=REPO, pr_event_id=TARGET, commits=[TEST_COMMITS["merge"]])
    assert update.kind == kinds.PULL_REQUEST_UPDATE
    assert get_tag(update, "e") == ("e", TARGET, "", "root")


@pytest.mark.parametrize(
    "builder, kind",
    [
        (factory.open_status, kinds.STATUS_OPEN),
        (factory.applied_status, kinds.STATUS_APPLIED),
        (factory.closed_status, kinds.STATUS_CLOSED),
        (factory.draft_status, kinds.STATUS_DRAFT),
    ],
)
def test_status_builders(builder: Any, kind: int) -> None:
    unsigned = builder(TARGET, repo_address=REPO, recipients=[TEST_PUBKEYS["charlie"]])
    assert unsigned.kind == kind
    assert unsigned.tags == (
        ("e", TARGET, "", "root"),
        ("p", TEST_PUBKEYS["charlie"]),
        ("a", REPO),
    )


def test_applied_status_carries_merge_commit() -> None:
    unsigned = factory.applied_status(
        TARGET,
        repo_address=REPO,
        merge_commit=TEST_COMMITS["merge"],
        applied_as_commits=[TEST_COMMITS["second"], TEST_COMMITS["third"]],
    )
    assert get_tag_value(unsigned, "merge-commit") == TEST_COMMITS["merge"]
    assert get_tag(unsigned, "applied-as-commits") == (
        "applied-as-commits",
        TEST_COMMITS["second"],
        TEST_COMMITS["third"],
    )


def test_merge_commit_only_on_applied_status() -> None:
    with pytest.raises(InvalidParameters, match="merge_commit"):
        factory.closed_status(TARGET, repo_address=REPO, merge_commit=TEST_COMMITS["merge"])


def test_label_layout() -> None:
    unsigned = factory.label(values=["bug", "ui"], namespace="type", events=[TARGET], addresses=[REPO])
    assert unsigned.kind == kinds.LABEL
    assert unsigned.tags == (
        ("L", "type"),
        ("l", "bug", "type"),
        ("l", "ui", "type"),
        ("e", TARGET),
        ("a", REPO),
    )


def test_role_labels() -> None:
    assignee = factory.assignee_label(TARGET, TEST_PUBKEYS["bob"])
    assert get_tag(assignee, "l") == ("l", "assignee", "role")
    assert get_tag_value(assignee, "p") == TEST_PUBKEYS["bob"]
    reviewer = factory.reviewer_label(TARGET, TEST_PUBKEYS["charlie"])
    assert get_tag(reviewer, "l") == ("l", "reviewer", "role")


def test_deletion_reaction_and_comment() -> None:
    deletion = factory.deletion(ids=[TARGET], kinds_deleted=[1621, 1621], reason="spam")
    assert deletion.tags == (("e", TARGET), ("k", "1621"))
    assert deletion.content == "spam"

    reaction = factory.reaction(target_id=TARGET, target_pubkey=TEST_PUBKEYS["charlie"], target_kind=1621)
    assert reaction.tags == (("e", TARGET), ("p", TEST_PUBKEYS["charlie"]), ("k", "1621"))
    assert reaction.content == "+"

    comment = factory.comment(root_id=TARGET, repo_address=REPO, root_kind=1621, content="+1")
    assert comment.kind == kinds.COMMENT
    assert comment.tags == (("e", TARGET, "", "root"), ("K", "1621"), ("a", REPO))


@pytest.mark.parametrize(
    "kind, params",
    [
        (kinds.REPO_ANNOUNCEMENT, {}),
        (kinds.REPO_STATE, {}),
        (kinds.ISSUE, {"content": "no repo"}),
        (kinds.PATCH, {"content": "diff"}),
        (kinds.PATCH, {"repo_address": REPO}),
        (kinds.PULL_REQUEST, {}),
        (kinds.STATUS_CLOSED, {"target_id": TARGET}),
        (kinds.STATUS_OPEN, {"repo_address": REPO}),
        (kinds.LABEL, {"values": ["bug"]}),
        (kinds.LABEL, {"events": [TARGET]}),
        (kinds.DELETION, {}),
        (kinds.REACTION, {}),
        (kinds.COMMENT, {"content": "orphan"}),
    ],
)
def test_missing_required_fields(kind: int, params: dict[str, Any]) -> None:
    with pytest.raises(InvalidParameters):
        build_event(kind, params)


def test_unknown_parameter_is_rejected() -> None:
    with pytest.raises(InvalidParameters, match="kind 1621"):
        build_event(kinds.ISSUE, {"repo_address": REPO, "colour": "red"})


def test_build_event_dispatches_by_kind() -> None:
    closed = build_event(kinds.STATUS_CLOSED, {"target_id": TARGET, "repo_address": REPO})
    assert closed.kind == kinds.STATUS_CLOSED

    note = build_event(1, {"tags": [["t", "hello"]], "content": "hi"})
    assert note.kind == 1
    assert note.pubkey is None
    assert note.tags == (("t", "hello"),)


def test_sign_event_with_known_key_verifies() -> None:
    event = sign_event(factory.issue(repo_address=REPO, content="body"))
    assert event.pubkey == TEST_PUBKEYS["charlie"]
    assert verify(bytes.fromhex(event.id), bytes.fromhex(event.sig), bytes.fromhex(event.pubkey))


def test_sign_event_is_deterministic() -> None:
    unsigned = factory.repo_announcement(identifier="demo")
    assert sign_event(unsigned) == sign_event(unsigned)


def test_sign_event_without_pubkey_uses_default_key() -> None:
    event = sign_event(factory.generic(kind=1, content="hi"))
    assert event.pubkey == TEST_PUBKEYS["alice"]


def test_sign_event_for_unknown_author_simulates_signature() -> None:
    stranger = "ee" * 32
    event = sign_event(factory.issue(repo_address=REPO, content="body", pubkey=stranger))
    assert event.pubkey == stranger
    assert len(event.id) == 64
    assert len(event.sig) == 128
    assert sign_event(factory.issue(repo_address=REPO, content="body", pubkey=stranger)).sig == event.sig


@pytest.mark.parametrize(
    "params",
    [
        {"pubkey": "abcd"},
        {"pubkey": "AB" * 32},
        {"pubkey": "zz" * 32},
        {"created_at": 0},
        {"created_at": -5},
    ],
)
def test_sign_event_rejects_malformed_header(params: dict[str, Any]) -> None:
    unsigned = build_event(kinds.PATCH, {"repo_address": REPO, "content": "diff", **params})
    with pytest.raises(InvalidParameters):
        sign_event(unsigned)


@pytest.mark.parametrize("kind", [-1, 0x10000])
def test_sign_event_rejects_out_of_range_kind(kind: int) -> None:
    with pytest.raises(InvalidParameters):
        sign_event(factory.generic(kind=kind, content="hi"))
