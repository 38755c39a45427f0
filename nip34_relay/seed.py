"""High-level seeding of repositories, issues and patches into a mock relay."""

from __future__ import annotations

from dataclasses import dataclass
import re
from typing import Any, Iterable, Mapping, Sequence
from urllib.parse import quote

from . import factory, kinds
from .config import RelayConfig
from .crypto import derive_hex
from .events import Event, UnsignedEvent, repo_address
from .exceptions import InvalidParameters
from .factory import BASE_TIMESTAMP, RepoRef
from .keys import TEST_PUBKEYS, Signer, encode_naddr
from .logger import get_logger
from .mock import MockRelay

TEST_RELAY = "ws://localhost:7000"

_AUTHOR_ROTATION = ("alice", "bob", "charlie")

_ISSUE_TITLES = (
    "Bug: Application crashes on startup",
    "Feature: Add dark mode support",
    "Bug: Form validation not working",
    "Enhancement: Improve loading performance",
    "Bug: Memory leak in event handler",
    "Feature: Add keyboard shortcuts",
    "Documentation: Update README",
    "Bug: CSS styling broken on mobile",
    "Enhancement: Add search functionality",
    "Feature: Export data to CSV",
)

_PATCH_TITLES = (
    "Fix null pointer exception",
    "Add new utility function",
    "Refactor authentication module",
    "Update dependencies",
    "Fix CSS layout issues",
    "Add unit tests",
    "Improve error handling",
    "Optimize database queries",
    "Add input validation",
    "Fix memory leak",
)

_ISSUE_STATUS_TEXT = {
    "open": "Issue opened",
    "closed": "Issue closed",
    "resolved": "Issue resolved",
    "applied": "Issue resolved",
    "draft": "Draft issue",
}

_PATCH_STATUS_TEXT = {
    "open": "Patch submitted for review",
    "applied": "Patch applied successfully",
    "resolved": "Patch applied successfully",
    "closed": "Patch rejected",
    "draft": "Work in progress",
}

SCENARIOS: dict[str, list[dict[str, Any]]] = {
    "empty": [],
    "single-repo": [
        {
            "name": "test-project",
            "description": "A test project for E2E testing",
            "maintainers": [TEST_PUBKEYS["alice"]],
            "topics": ["test", "nostr"],
        }
    ],
    "with-issues": [
        {
            "name": "test-project",
            "description": "A test project with issues",
            "maintainers": [TEST_PUBKEYS["alice"]],
            "with_issues": 5,
        }
    ],
    "with-patches": [
        {
            "name": "test-project",
            "description": "A test project with patches",
            "maintainers": [TEST_PUBKEYS["alice"]],
            "with_patches": 5,
        }
    ],
    "full": [
        {
            "name": "flotilla-budabit",
            "description": "A Discord-like Nostr client with git collaboration",
            "maintainers": [TEST_PUBKEYS["alice"], TEST_PUBKEYS["bob"]],
            "topics": ["nostr", "git", "collaboration", "svelte"],
            "clone_urls": ["https://github.com/example/flotilla-budabit.git"],
            "web_urls": ["https://flotilla.dev"],
            "with_issues": 5,
            "with_patches": 5,
            "with_state": True,
        }
    ],
}


@dataclass(frozen=True)
class SeedRepoResult:
    event: Event
    address: str
    identifier: str
    pubkey: str
    naddr: str
    events: tuple[Event, ...] = ()
    issues: tuple[SeedIssueResult, ...] = ()
    patches: tuple[SeedPatchResult, ...] = ()


@dataclass(frozen=True)
class SeedIssueResult:
    event: Event
    status: Event | None = None
    events: tuple[Event, ...] = ()

    @property
    def event_id(self) -> str:
        return self.event.id


@dataclass(frozen=True)
class SeedPatchResult:
    event: Event
    status: Event | None = None
    events: tuple[Event, ...] = ()

    @property
    def event_id(self) -> str:
        return self.event.id


@dataclass
class _Counters:
    repo: int = 0
    issue: int = 0
    patch: int = 0
    timestamp: int = 0
    author: int = 0
    commit: int = 0


class TestSeeder:
    """Builds fixture events and inserts them into a :class:`MockRelay`.

    Timestamps grow by one second per seeded event starting at
    ``BASE_TIMESTAMP``; authors and commit hashes are generated
    deterministically, so two seeders given the same calls produce the same
    events.
    """

    __test__ = False

    def __init__(
        self,
        relay: MockRelay | None = None,
        *,
        config: RelayConfig | None = None,
        signer: Signer | None = None,
    ) -> None:
        self._relay = relay if relay is not None else MockRelay(config=config, signer=signer)
        self._signer = signer or self._relay.signer
        self._seeded: list[Event] = []
        self._counters = _Counters()
        self._logger = get_logger("seeder", json_output=self._relay.config.json_logs)

    def get_mock_relay(self) -> MockRelay:
        return self._relay

    def seed_repo(
        self,
        *,
        name: str | None = None,
        identifier: str | None = None,
        description: str | None = None,
        maintainers: Sequence[str] = (),
        clone_urls: Sequence[str] = (),
        web_urls: Sequence[str] = (),
        relays: Sequence[str] = (),
        topics: Sequence[str] = (),
        earliest_unique_commit: str | None = None,
        pubkey: str | None = None,
        with_issues: int = 0,
        with_patches: int = 0,
        with_state: bool | Sequence[RepoRef] = False,
        created_at: int | None = None,
    ) -> SeedRepoResult:
        self._counters.repo += 1
        name = name or f"test-repo-{self._counters.repo}"
        identifier = identifier or slugify(name)
        pubkey = pubkey or TEST_PUBKEYS["alice"]
        announcement = self._emit(
            factory.repo_announcement(
                identifier=identifier,
                name=name,
                description=description,
                web=web_urls,
                clone=clone_urls,
                relays=relays,
                maintainers=maintainers,
                earliest_unique_commit=earliest_unique_commit,
                hashtags=topics,
                pubkey=pubkey,
                created_at=created_at if created_at is not None else self._next_timestamp(),
            )
        )
        address = repo_address(pubkey, identifier)
        events = [announcement]

        if with_state:
            refs = None if with_state is True else with_state
            events.append(self.seed_repo_state(identifier=identifier, pubkey=pubkey, refs=refs))

        issues = []
        for index in range(with_issues):
            result = self.seed_issue(
                repo_address=address,
                title=_ISSUE_TITLES[index % len(_ISSUE_TITLES)],
                status="closed" if index % 3 == 0 else "open",
            )
            issues.append(result)
            events.extend(result.events)

        patches = []
        for index in range(with_patches):
            result = self.seed_patch(
                repo_address=address,
                title=_PATCH_TITLES[index % len(_PATCH_TITLES)],
                status="applied" if index % 3 == 0 else "open",
            )
            patches.append(result)
            events.extend(result.events)

        self._logger.debug(
            "seeded_repo",
            address=address,
            issues=len(issues),
            patches=len(patches),
        )
        return SeedRepoResult(
            event=announcement,
            address=address,
            identifier=identifier,
            pubkey=pubkey,
            naddr=encode_naddr(identifier=identifier, pubkey=pubkey),
            events=tuple(events),
            issues=tuple(issues),
            patches=tuple(patches),
        )

    def seed_repo_state(
        self,
        *,
        identifier: str,
        pubkey: str | None = None,
        refs: Sequence[RepoRef | Mapping[str, Any]] | None = None,
        head: str = "main",
        created_at: int | None = None,
    ) -> Event:
        if refs is None:
            refs = [RepoRef(name=head, commit=self._next_commit())]
        return self._emit(
            factory.repo_state(
                identifier=identifier,
                refs=refs,
                head=head,
                pubkey=pubkey or TEST_PUBKEYS["alice"],
                created_at=created_at if created_at is not None else self._next_timestamp(),
            )
        )

    def seed_issue(
        self,
        *,
        repo_address: str,
        title: str | None = None,
        content: str | None = None,
        status: str | None = None,
        labels: Sequence[str] = (),
        recipients: Sequence[str] = (),
        pubkey: str | None = None,
        with_comments: int = 0,
        created_at: int | None = None,
    ) -> SeedIssueResult:
        status_content = _status_text(_ISSUE_STATUS_TEXT, status) if status is not None else ""
        self._counters.issue += 1
        title = title or _ISSUE_TITLES[self._counters.issue % len(_ISSUE_TITLES)]
        author = pubkey or self._next_author()
        issue = self._emit(
            factory.issue(
                repo_address=repo_address,
                content=content or _issue_body(title),
                subject=title,
                labels=labels,
                recipients=recipients,
                pubkey=author,
                created_at=created_at if created_at is not None else self._next_timestamp(),
            )
        )
        events = [issue]
        status_event = None
        if status is not None:
            status_event = self.seed_status(
                issue.id,
                repo_address=repo_address,
                status=status,
                content=status_content,
                pubkey=author if status == "draft" else TEST_PUBKEYS["alice"],
                recipients=() if status == "draft" else [author],
            )
            events.append(status_event)
        for index in range(with_comments):
            events.append(
                self._emit(
                    factory.comment(
                        root_id=issue.id,
                        repo_address=repo_address,
                        content=f"Comment {index + 1} on this issue.",
                        pubkey=self._next_author(),
                        created_at=self._next_timestamp(),
                    )
                )
            )
        return SeedIssueResult(event=issue, status=status_event, events=tuple(events))

    def seed_patch(
        self,
        *,
        repo_address: str,
        title: str | None = None,
        content: str | None = None,
        status: str | None = None,
        labels: Sequence[str] = (),
        recipients: Sequence[str] = (),
        commit: str | None = None,
        parent_commit: str | None = None,
        pubkey: str | None = None,
        with_reviews: int = 0,
        created_at: int | None = None,
    ) -> SeedPatchResult:
        status_content = _status_text(_PATCH_STATUS_TEXT, status) if status is not None else ""
        self._counters.patch += 1
        title = title or _PATCH_TITLES[self._counters.patch % len(_PATCH_TITLES)]
        author = pubkey or self._next_author()
        patch = self._emit(
            factory.patch(
                repo_address=repo_address,
                content=content or _patch_body(title),
                subject=title,
                labels=labels,
                recipients=recipients,
                commit=commit or self._next_commit(),
                parent_commit=parent_commit or self._next_commit(),
                pubkey=author,
                created_at=created_at if created_at is not None else self._next_timestamp(),
            )
        )
        events = [patch]
        status_event = None
        if status is not None:
            status_event = self.seed_status(
                patch.id,
                repo_address=repo_address,
                status=status,
                content=status_content,
                pubkey=author if status == "draft" else TEST_PUBKEYS["alice"],
                recipients=() if status == "draft" else [author],
            )
            events.append(status_event)
        for index in range(with_reviews):
            events.append(
                self._emit(
                    factory.comment(
                        root_id=patch.id,
                        repo_address=repo_address,
                        content=f"Review comment {index + 1}: Looks good to me!",
                        pubkey=self._next_author(),
                        created_at=self._next_timestamp(),
                    )
                )
            )
        return SeedPatchResult(event=patch, status=status_event, events=tuple(events))

    def seed_status(
        self,
        target_id: str,
        *,
        repo_address: str,
        status: str,
        content: str = "",
        pubkey: str | None = None,
        recipients: Sequence[str] = (),
    ) -> Event:
        kind = kinds.STATUS_KIND_BY_NAME.get(status)
        if kind is None:
            raise InvalidParameters(f"unknown status: {status}")
        merge_commit = self._next_commit() if kind == kinds.STATUS_APPLIED else None
        return self._emit(
            factory.status(
                kind=kind,
                target_id=target_id,
                repo_address=repo_address,
                content=content,
                recipients=recipients,
                merge_commit=merge_commit,
                pubkey=pubkey or TEST_PUBKEYS["alice"],
                created_at=self._next_timestamp(),
            )
        )

    def seed_label(
        self,
        target_id: str,
        values: Sequence[str],
        *,
        namespace: str = "ugc",
        repo_address: str | None = None,
        pubkeys: Sequence[str] = (),
        pubkey: str | None = None,
    ) -> Event:
        return self._emit(
            factory.label(
                values=values,
                namespace=namespace,
                events=[target_id],
                addresses=[repo_address] if repo_address else [],
                pubkeys=pubkeys,
                pubkey=pubkey,
                created_at=self._next_timestamp(),
            )
        )

    def seed_deletion(self, ids: Sequence[str], *, pubkey: str, reason: str = "") -> Event:
        return self._emit(
            factory.deletion(ids=ids, reason=reason, pubkey=pubkey, created_at=self._next_timestamp())
        )

    def seed_scenario(self, name: str) -> list[SeedRepoResult]:
        try:
            repos = SCENARIOS[name]
        except KeyError as exc:
            raise InvalidParameters(f"unknown scenario: {name}") from exc
        return self.seed_multiple_repos(repos)

    def seed_multiple_repos(self, repos: Iterable[Mapping[str, Any]]) -> list[SeedRepoResult]:
        return [self.seed_repo(**dict(options)) for options in repos]

    def add_events(self, events: Iterable[Event | UnsignedEvent | Mapping[str, Any]]) -> list[Event]:
        added = self._relay.seed_events(events)
        self._seeded.extend(added)
        return added

    def get_seeded_events(self) -> list[Event]:
        return list(self._seeded)

    def get_events_by_kind(self, kind: int) -> list[Event]:
        return [event for event in self._seeded if event.kind == kind]

    def get_repos(self) -> list[Event]:
        return self.get_events_by_kind(kinds.REPO_ANNOUNCEMENT)

    def get_issues(self) -> list[Event]:
        return self.get_events_by_kind(kinds.ISSUE)

    def get_patches(self) -> list[Event]:
        return self.get_events_by_kind(kinds.PATCH)

    def clear(self) -> None:
        self._seeded.clear()
        self._counters = _Counters()
        self._relay.reset()

    def _emit(self, unsigned: UnsignedEvent) -> Event:
        event = factory.sign_event(unsigned, self._signer)
        self._relay.seed_events([event])
        self._seeded.append(event)
        return event

    def _next_timestamp(self) -> int:
        timestamp = BASE_TIMESTAMP + self._counters.timestamp
        self._counters.timestamp += 1
        return timestamp

    def _next_author(self) -> str:
        name = _AUTHOR_ROTATION[self._counters.author % len(_AUTHOR_ROTATION)]
        self._counters.author += 1
        return TEST_PUBKEYS[name]

    def _next_commit(self) -> str:
        self._counters.commit += 1
        return derive_hex(f"commit:{self._counters.commit}", length=20)


def slugify(value: str) -> str:
    return re.sub(r"[^a-z0-9]+", "-", value.lower()).strip("-")


def repo_url(naddr: str, section: str | None = None, *, relay: str = TEST_RELAY) -> str:
    """Path of a repository page in the web client, e.g. ``section="issues"``."""

    base = f"/spaces/{quote(relay, safe='')}/git/{naddr}/"
    return base + section if section else base


def issue_url(naddr: str, issue_id: str, *, relay: str = TEST_RELAY) -> str:
    return repo_url(naddr, f"issues/{issue_id}", relay=relay)


def patch_url(naddr: str, patch_id: str, *, relay: str = TEST_RELAY) -> str:
    return repo_url(naddr, f"patches/{patch_id}", relay=relay)


def git_repos_url(*, relay: str = TEST_RELAY) -> str:
    return f"/spaces/{quote(relay, safe='')}/git"


def _status_text(texts: Mapping[str, str], status: str) -> str:
    if status not in texts:
        raise InvalidParameters(f"unknown status: {status}")
    return texts[status]


def _issue_body(title: str) -> str:
    summary = re.sub(r"^(Bug|Feature|Enhancement|Documentation): ", "", title)
    return (
        f"## Description\n{summary}\n\n"
        "## Steps to Reproduce\n1. Open the application\n2. Navigate to the affected area\n3. Observe the issue\n\n"
        "## Expected Behavior\nThe application should work correctly.\n"
    )


def _patch_body(title: str) -> str:
    return (
        "From abc123 Mon Sep 17 00:00:00 2001\n"
        "From: Test User <test@example.com>\n"
        "Date: Mon, 15 Jan 2024 12:00:00 +0000\n"
        f"Subject: [PATCH] {title}\n\n"
        "---\n"
        " src/app.ts | 3 +++\n"
        " 1 file changed, 3 insertions(+)\n"
    )
