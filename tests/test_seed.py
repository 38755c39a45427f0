from __future__ import annotations

import pytest

from nip34_relay import factory, kinds
from nip34_relay.assertions import (
    assert_references_repo,
    assert_status_references,
    assert_valid_issue,
    assert_valid_label,
    assert_valid_patch,
    assert_valid_repo_announcement,
    assert_valid_repo_state,
)
from nip34_relay.events import get_tag_value, get_tag_values
from nip34_relay.exceptions import InvalidParameters
from nip34_relay.factory import BASE_TIMESTAMP
from nip34_relay.keys import TEST_PUBKEYS, encode_naddr
from nip34_relay.mock import MockRelay
from nip34_relay.projections import current_status, is_deleted, labels_for
from nip34_relay.seed import (
    SCENARIOS,
    TestSeeder,
    git_repos_url,
    issue_url,
    patch_url,
    repo_url,
    slugify,
)

ALICE = TEST_PUBKEYS["alice"]


def test_seed_repo_announcement(seeder: TestSeeder, mock_relay: MockRelay) -> None:
    repo = seeder.seed_repo(
        name="My Project",
        description="demo",
        clone_urls=["https://example.test/my-project.git"],
        topics=["nostr"],
    )
    assert repo.identifier == "my-project"
    assert repo.pubkey == ALICE
    assert repo.address == f"30617:{ALICE}:my-project"
    assert repo.naddr == encode_naddr(identifier="my-project", pubkey=ALICE)
    assert repo.event.created_at == BASE_TIMESTAMP
    assert_valid_repo_announcement(repo.event)
    assert mock_relay.get_by_address(30617, ALICE, "my-project") == repo.event
    assert get_tag_value(repo.event, "clone") == "https://example.test/my-project.git"
    assert seeder.get_repos() == [repo.event]


def test_seed_repo_with_issues_patches_and_state(seeder: TestSeeder, mock_relay: MockRelay) -> None:
    repo = seeder.seed_repo(name="demo", with_issues=4, with_patches=4, with_state=True)

    assert len(repo.issues) == 4
    assert len(repo.patches) == 4
    assert len(repo.events) == 1 + 1 + 4 * 2 + 4 * 2
    assert [event.created_at for event in repo.events] == sorted(event.created_at for event in repo.events)

    state = mock_relay.get_by_address(kinds.REPO_STATE, ALICE, "demo")
    assert state is not None
    assert_valid_repo_state(state)

    for index, issue in enumerate(repo.issues):
        assert_valid_issue(issue.event)
        assert_references_repo(issue.event, repo.event)
        assert issue.status is not None
        assert_status_references(issue.status, issue.event)
        expected = "closed" if index % 3 == 0 else "open"
        assert current_status(mock_relay.store, issue.event_id)[0] == expected

    for index, patch in enumerate(repo.patches):
        assert_valid_patch(patch.event)
        assert len(get_tag_value(patch.event, "commit") or "") == 40
        assert patch.status is not None
        if index % 3 == 0:
            assert patch.status.kind == kinds.STATUS_APPLIED
            assert len(get_tag_value(patch.status, "merge-commit") or "") == 40
        else:
            assert patch.status.kind == kinds.STATUS_OPEN

    assert len(seeder.get_issues()) == 4
    assert len(seeder.get_patches()) == 4
    assert len(mock_relay.get_seeded_events()) == len(repo.events)
    assert mock_relay.get_published_events() == []


def test_issue_authors_rotate(seeder: TestSeeder) -> None:
    repo = seeder.seed_repo(name="demo", with_issues=3)
    authors = [issue.event.pubkey for issue in repo.issues]
    assert authors == [TEST_PUBKEYS["alice"], TEST_PUBKEYS["bob"], TEST_PUBKEYS["charlie"]]
    for issue in repo.issues:
        assert issue.status is not None
        assert get_tag_values(issue.status, "p") == [issue.event.pubkey]


def test_draft_status_is_authored_by_the_item_author(seeder: TestSeeder) -> None:
    repo = seeder.seed_repo(name="demo")
    patch = seeder.seed_patch(repo_address=repo.address, status="draft", pubkey=TEST_PUBKEYS["bob"])
    assert patch.status is not None
    assert patch.status.kind == kinds.STATUS_DRAFT
    assert patch.status.pubkey == TEST_PUBKEYS["bob"]
    assert get_tag_values(patch.status, "p") == []


def test_resolved_issue_uses_applied_kind(seeder: TestSeeder, mock_relay: MockRelay) -> None:
    repo = seeder.seed_repo(name="demo")
    issue = seeder.seed_issue(repo_address=repo.address, status="resolved")
    assert issue.status is not None
    assert issue.status.kind == kinds.STATUS_APPLIED
    assert issue.status.content == "Issue resolved"
    assert current_status(mock_relay.store, issue.event_id)[0] == "applied"


def test_unknown_status_seeds_nothing(seeder: TestSeeder, mock_relay: MockRelay) -> None:
    repo = seeder.seed_repo(name="demo")
    before = len(mock_relay.store)
    with pytest.raises(InvalidParameters, match="unknown status"):
        seeder.seed_issue(repo_address=repo.address, status="wontfix")
    with pytest.raises(InvalidParameters, match="unknown status"):
        seeder.seed_status("ab" * 32, repo_address=repo.address, status="wontfix")
    assert len(mock_relay.store) == before


def test_comments_and_reviews(seeder: TestSeeder) -> None:
    repo = seeder.seed_repo(name="demo")
    issue = seeder.seed_issue(repo_address=repo.address, with_comments=2)
    patch = seeder.seed_patch(repo_address=repo.address, with_reviews=1)
    comments = [event for event in issue.events if event.kind == kinds.COMMENT]
    reviews = [event for event in patch.events if event.kind == kinds.COMMENT]
    assert len(comments) == 2
    assert len(reviews) == 1
    assert get_tag_value(comments[0], "e") == issue.event_id
    assert get_tag_value(reviews[0], "a") == repo.address
    assert issue.status is None


def test_labels_and_deletions(seeder: TestSeeder, mock_relay: MockRelay) -> None:
    repo = seeder.seed_repo(name="demo")
    issue = seeder.seed_issue(repo_address=repo.address)
    label = seeder.seed_label(issue.event_id, ["bug"], namespace="type", repo_address=repo.address)
    assert_valid_label(label)
    assert labels_for(mock_relay.store, issue.event_id) == [("type", "bug")]

    seeder.seed_deletion([label.id], pubkey=label.pubkey, reason="mislabelled")
    assert is_deleted(mock_relay.store, label.id)
    assert labels_for(mock_relay.store, issue.event_id) == []


def test_scenarios(seeder: TestSeeder, mock_relay: MockRelay) -> None:
    assert seeder.seed_scenario("empty") == []
    repos = seeder.seed_scenario("full")
    assert len(repos) == 1
    assert repos[0].identifier == "flotilla-budabit"
    assert len(mock_relay.store) == 1 + 1 + 5 * 2 + 5 * 2
    with pytest.raises(InvalidParameters, match="unknown scenario"):
        seeder.seed_scenario("huge")


def test_every_scenario_seeds_valid_events() -> None:
    for name in SCENARIOS:
        seeder = TestSeeder()
        seeder.seed_scenario(name)
        for event in seeder.get_seeded_events():
            assert event.id in seeder.get_mock_relay().store


def test_seeding_is_deterministic() -> None:
    first = TestSeeder()
    second = TestSeeder()
    assert [event.id for event in first.seed_repo(name="demo", with_issues=2).events] == [
        event.id for event in second.seed_repo(name="demo", with_issues=2).events
    ]


def test_clear_restarts_sequences(seeder: TestSeeder, mock_relay: MockRelay) -> None:
    first = seeder.seed_repo(name="demo", with_issues=1)
    seeder.clear()
    assert seeder.get_seeded_events() == []
    assert len(mock_relay.store) == 0
    again = seeder.seed_repo(name="demo", with_issues=1)
    assert [event.id for event in again.events] == [event.id for event in first.events]


def test_multiple_repos_and_add_events(seeder: TestSeeder) -> None:
    repos = seeder.seed_multiple_repos([{"name": "one"}, {"name": "two", "pubkey": TEST_PUBKEYS["bob"]}])
    assert [repo.identifier for repo in repos] == ["one", "two"]
    assert repos[1].pubkey == TEST_PUBKEYS["bob"]

    reaction = factory.reaction(target_id=repos[0].event.id)
    added = seeder.add_events([reaction])
    assert seeder.get_events_by_kind(kinds.REACTION) == added


def test_url_helpers() -> None:
    naddr = encode_naddr(identifier="demo", pubkey=ALICE)
    assert slugify("Hello, World!") == "hello-world"
    assert git_repos_url() == "/spaces/ws%3A%2F%2Flocalhost%3A7000/git"
    assert repo_url(naddr) == f"/spaces/ws%3A%2F%2Flocalhost%3A7000/git/{naddr}/"
    assert repo_url(naddr, "issues") == f"/spaces/ws%3A%2F%2Flocalhost%3A7000/git/{naddr}/issues"
    assert issue_url(naddr, "ab" * 32).endswith(f"/issues/{'ab' * 32}")
    assert patch_url(naddr, "cd" * 32, relay="wss://relay.test").startswith("/spaces/wss%3A%2F%2Frelay.test/git/")
