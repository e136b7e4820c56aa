from __future__ import annotations

from .models import FetchSnapshot


def diff_new_ids(previous: FetchSnapshot, incoming: FetchSnapshot) -> frozenset[int]:
    """Return the ids in *incoming* that were not present in *previous*.

    Identity only: an id seen before is never new, whatever its content.
    Entries without an id are never reported. An empty *previous* (first
    load) yields an empty set so the whole batch is not flagged.
    """

    if not previous.entries:
        return frozenset()
    seen = previous.ids()
    return frozenset(
        entry.id for entry in incoming.entries if entry.id is not None and entry.id not in seen
    )
