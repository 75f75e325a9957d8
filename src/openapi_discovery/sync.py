"""
Optimistic read-merge-write synchronisation of the discovery document.

Every mutation of the catalogue goes through :meth:`OptimisticSyncEngine.sync_merge`:

1. Read the stored document and its concurrency token
2. Apply a merge function to the freshly read entries
3. Conditionally write the result with the token that was read, unless the
   merge left the entries unchanged
4. On a write conflict, back off exponentially and start over from step 1

Only :class:`WriteConflictError` is retried. Any other storage failure
surfaces on the first occurrence, and exhausting the attempt budget raises
:class:`SyncConflictError`.
"""

import asyncio
import builtins
import logging
import random
from collections.abc import Awaitable, Callable, Iterable
from dataclasses import dataclass
from typing import TypeVar

from .errors import SyncConflictError, WriteConflictError
from .models import DiscoveryDocument, DiscoveryEntry, utc_now
from .store import DocumentStore

logger = logging.getLogger(__name__)

T = TypeVar("T")

MergeFunction = Callable[[Iterable[DiscoveryEntry], T], builtins.list[DiscoveryEntry]]


@dataclass(frozen=True)
class SyncRetryConfig:
    """Retry budget for conflicting document writes."""

    max_attempts: int = 5

    # Delay before the second attempt (seconds), doubled for each later one
    base_delay: float = 0.1

    max_delay: float = 10.0

    backoff_multiplier: float = 2.0

    jitter: bool = False
    jitter_factor: float = 0.1


class ExponentialBackoff:
    """Exponential backoff with optional jitter."""

    def __init__(
        self, multiplier: float = 2.0, jitter: bool = False, jitter_factor: float = 0.1
    ):
        self.multiplier = multiplier
        self.jitter = jitter
        self.jitter_factor = jitter_factor

    def calculate_delay(
        self, attempt: int, base_delay: float, max_delay: float
    ) -> float:
        """Delay after failed ``attempt`` (1-based): ``base * multiplier**(attempt-1)``."""
        delay = base_delay * (self.multiplier ** (attempt - 1))
        delay = min(delay, max_delay)

        if self.jitter:
            jitter_range = delay * self.jitter_factor
            delay = max(0, delay + random.uniform(-jitter_range, jitter_range))

        return delay


class OptimisticSyncEngine:
    """Applies merge functions to the stored discovery document with conflict retry."""

    def __init__(
        self,
        store: DocumentStore,
        config: SyncRetryConfig | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.store = store
        self.config = config or SyncRetryConfig()
        self._backoff = ExponentialBackoff(
            multiplier=self.config.backoff_multiplier,
            jitter=self.config.jitter,
            jitter_factor=self.config.jitter_factor,
        )
        self._sleep = sleep

    def calculate_delay(self, attempt: int) -> float:
        return self._backoff.calculate_delay(
            attempt, self.config.base_delay, self.config.max_delay
        )

    async def sync_merge(self, merge_fn: MergeFunction, value: T) -> DiscoveryDocument:
        """Merge ``value`` into the stored document and persist it.

        Returns:
            The document that was written, or the stored one when the merge
            changed nothing

        Raises:
            SyncConflictError: If every attempt hit a write conflict
            StorageError: On any non-conflict storage failure
        """
        last_error: WriteConflictError | None = None

        for attempt in range(1, self.config.max_attempts + 1):
            stored = await self.store.read()
            apis = merge_fn(stored.document.apis, value)
            if stored.exists and apis == stored.document.apis:
                logger.debug("Discovery document already up to date, skipping write")
                return stored.document

            document = DiscoveryDocument(apis=apis, last_updated=utc_now())

            try:
                await self.store.write(document, stored.resource_version)
            except WriteConflictError as e:
                last_error = e
                logger.warning(
                    f"Discovery document write conflict on attempt "
                    f"{attempt}/{self.config.max_attempts}"
                )

                if attempt < self.config.max_attempts:
                    delay = self.calculate_delay(attempt)
                    logger.debug(f"Waiting {delay:.2f} seconds before retry")
                    await self._sleep(delay)
                continue

            if attempt > 1:
                logger.info(f"Discovery document updated on attempt {attempt}")
            logger.info(f"Updated discovery document with {len(document.apis)} unique APIs")
            return document

        raise SyncConflictError(self.config.max_attempts, last_error)
