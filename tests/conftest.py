"""
Global pytest configuration and fixtures for the discovery operator tests.

Fixtures wire the in-memory document store from ``support`` into a sync
engine and reconcile context so tests exercise the real merge and retry paths.
"""

import pytest

from openapi_discovery.config import WatchScope
from openapi_discovery.probe import AvailabilityProber
from openapi_discovery.reconciler import ReconcileContext
from openapi_discovery.sync import OptimisticSyncEngine, SyncRetryConfig
from support import InMemoryDocumentStore, RecordingSleep, http_prober, unreachable


@pytest.fixture
def store() -> InMemoryDocumentStore:
    return InMemoryDocumentStore()


@pytest.fixture
def recording_sleep() -> RecordingSleep:
    return RecordingSleep()


@pytest.fixture
def sync_engine(store, recording_sleep) -> OptimisticSyncEngine:
    return OptimisticSyncEngine(store, SyncRetryConfig(), sleep=recording_sleep)


@pytest.fixture
def make_context(sync_engine):
    """Build a ReconcileContext around the shared in-memory store."""

    def _make(
        prober: AvailabilityProber | None = None,
        scope: WatchScope | None = None,
    ) -> ReconcileContext:
        return ReconcileContext(
            sync=sync_engine,
            prober=prober or http_prober(unreachable),
            watch_scope=scope or WatchScope.all(),
            discovery_namespace="default",
            discovery_name="openapi-discovery",
        )

    return _make
