"""
In-process catalogue cache for the documentation viewer.

The discovery document (mounted from the discovery ConfigMap) is the single
source of truth; the cache re-reads it on a fixed interval and keeps the last
good catalogue when the file is missing or unreadable.
"""

import asyncio
import builtins
import logging
import re
from pathlib import Path

from ..codec import decode_document
from ..errors import CodecError
from ..models import DiscoveryEntry, EntryKey

logger = logging.getLogger(__name__)

_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9_-]")


def sanitize_name(name: str) -> str:
    """Normalize an API name for lookups."""
    return _UNSAFE_CHARS.sub("_", name)


class CatalogueCache:
    """Refresh-on-interval view of the discovery document."""

    def __init__(self, discovery_path: str | Path):
        self.discovery_path = Path(discovery_path)
        self._entries: builtins.list[DiscoveryEntry] = []
        self._by_name: builtins.dict[str, DiscoveryEntry] = {}
        self._by_key: builtins.dict[EntryKey, DiscoveryEntry] = {}
        self.last_refresh_ok = False

    def entries(self) -> builtins.list[DiscoveryEntry]:
        return list(self._entries)

    def get(self, api_name: str) -> DiscoveryEntry | None:
        """Look up an API by display name; the first in sort order wins on a clash."""
        return self._by_name.get(sanitize_name(api_name))

    def get_by_key(self, namespace: str, service_name: str) -> DiscoveryEntry | None:
        return self._by_key.get(EntryKey(namespace, service_name))

    def refresh(self) -> bool:
        """Reload the catalogue. Returns False and keeps the old one on failure."""
        try:
            text = self.discovery_path.read_text(encoding="utf-8")
        except OSError as e:
            logger.error(f"Failed to read discovery document {self.discovery_path}: {e}")
            self.last_refresh_ok = False
            return False

        try:
            document = decode_document(text) if text.strip() else None
        except CodecError as e:
            logger.error(f"Failed to parse discovery document: {e}")
            self.last_refresh_ok = False
            return False

        entries = document.apis if document else []
        self._entries = sorted(entries, key=lambda entry: entry.name.lower())
        self._by_name = {}
        for entry in self._entries:
            self._by_name.setdefault(sanitize_name(entry.name), entry)
        self._by_key = {entry.key: entry for entry in self._entries}
        self.last_refresh_ok = True

        logger.info(f"Refreshed API cache with {len(self._entries)} APIs")
        return True

    async def run(self, interval: float) -> None:
        """Refresh forever, every ``interval`` seconds."""
        while True:
            await asyncio.sleep(interval)
            await asyncio.to_thread(self.refresh)
