"""Read-side views over the append-only event graph held by a store."""

from __future__ import annotations

from typing import Iterable

from . import kinds
from .events import Event, get_tag_values, get_tags
from .storage import InMemoryEventStore


def status_history(
    store: InMemoryEventStore,
    target_id: str,
    *,
    authors: Iterable[str] | None = None,
) -> list[Event]:
    """Status events for ``target_id``, oldest first. Deleted statuses are skipped."""

    flt: dict[str, object] = {"kinds": sorted(kinds.STATUS_KINDS), "#e": [target_id]}
    if authors is not None:
        flt["authors"] = list(authors)
    events = [event for event in store.query(flt) if not is_deleted(store, event.id)]
    return sorted(events, key=lambda event: (event.created_at, event.id))


def current_status(
    store: InMemoryEventStore,
    target_id: str,
    *,
    authors: Iterable[str] | None = None,
) -> tuple[str, Event | None]:
    """Displayed status of an issue or patch.

    The newest status event wins; a target without any status is open.
    """

    history = status_history(store, target_id, authors=authors)
    if not history:
        return "open", None
    latest = history[-1]
    return kinds.STATUS_NAMES[latest.kind], latest


def is_deleted(store: InMemoryEventStore, event_id: str) -> bool:
    """True when the author of ``event_id`` published a deletion naming it."""

    target = store.get(event_id)
    if target is None:
        return False
    deletions = store.query({"kinds": [kinds.DELETION], "authors": [target.pubkey], "#e": [event_id]})
    return bool(deletions)


def labels_for(
    store: InMemoryEventStore,
    target_id: str,
    *,
    namespace: str | None = None,
) -> list[tuple[str, str]]:
    """(namespace, value) pairs attached to ``target_id`` by label events."""

    labels: list[tuple[str, str]] = []
    for event in store.query({"kinds": [kinds.LABEL], "#e": [target_id]}):
        if is_deleted(store, event.id):
            continue
        declared = get_tag_values(event, "L")
        for tag in get_tags(event, "l"):
            if len(tag) < 2:
                continue
            label_ns = tag[2] if len(tag) > 2 else (declared[0] if declared else "ugc")
            if namespace is None or label_ns == namespace:
                pair = (label_ns, tag[1])
                if pair not in labels:
                    labels.append(pair)
    return labels
