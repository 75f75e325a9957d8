"""
Deduplication and merge of catalogue entries.

Entries are grouped by :class:`~openapi_discovery.models.EntryKey`. Within a
group the entry with the greatest ``last_updated`` wins; on a tie the one
inserted later wins. Output order follows the first appearance of each key so
repeated merges of the same input produce the same document.
"""

import builtins
from collections.abc import Iterable

from .models import DiscoveryEntry, EntryKey


def deduplicate(entries: Iterable[DiscoveryEntry]) -> builtins.list[DiscoveryEntry]:
    """Keep exactly one entry per key, last-write-wins by timestamp."""
    unique: builtins.dict[EntryKey, DiscoveryEntry] = {}

    for entry in entries:
        current = unique.get(entry.key)
        if current is None or entry.last_updated >= current.last_updated:
            unique[entry.key] = entry

    return list(unique.values())


def merge_entry(
    existing: Iterable[DiscoveryEntry], incoming: DiscoveryEntry
) -> builtins.list[DiscoveryEntry]:
    """Merge ``incoming`` into ``existing``, replacing its key's group unconditionally."""
    unique = {entry.key: entry for entry in deduplicate(existing)}
    unique[incoming.key] = incoming
    return list(unique.values())


def remove_entry(
    existing: Iterable[DiscoveryEntry], key: EntryKey
) -> builtins.list[DiscoveryEntry]:
    """Strip the entry for ``key``; a no-op when absent."""
    return [entry for entry in deduplicate(existing) if entry.key != key]
