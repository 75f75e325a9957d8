"""
Per-Service reconciliation.

Each pass over a Service runs the same short pipeline: namespace filter,
enablement check, endpoint construction, probe and fetch, entry construction
and commit through the sync engine. Probe and fetch failures are folded into
the entry (``available=False`` with a placeholder spec) and never retried here;
the periodic requeue is what corrects them.
"""

import logging
from dataclasses import dataclass
from enum import Enum

from .annotations import decode_annotations
from .config import WatchScope
from .errors import SpecFetchError
from .merge import merge_entry, remove_entry
from .models import (
    DiscoveryEntry,
    ServiceResource,
    entry_id,
    placeholder_spec,
    utc_now,
)
from .probe import AvailabilityProber
from .sync import OptimisticSyncEngine

logger = logging.getLogger(__name__)

DEFAULT_REQUEUE_INTERVAL = 300.0
DEFAULT_ERROR_REQUEUE_INTERVAL = 30.0


class ReconcileState(Enum):
    """Result of a single reconcile pass."""

    SKIPPED = "skipped"
    REMOVED = "removed"
    PUBLISHED_AVAILABLE = "published_available"
    PUBLISHED_UNAVAILABLE = "published_unavailable"


@dataclass(frozen=True)
class ReconcileOutcome:
    state: ReconcileState
    requeue_after: float
    entry: DiscoveryEntry | None = None


@dataclass(frozen=True)
class ReconcileContext:
    """Process-wide, read-only state shared by every reconcile invocation."""

    sync: OptimisticSyncEngine
    prober: AvailabilityProber
    watch_scope: WatchScope
    discovery_namespace: str
    discovery_name: str
    requeue_interval: float = DEFAULT_REQUEUE_INTERVAL
    error_requeue_interval: float = DEFAULT_ERROR_REQUEUE_INTERVAL


def build_endpoint_url(service_name: str, namespace: str, port: int, path: str) -> str:
    """Cluster-internal URL of a Service's documentation endpoint."""
    if not path.startswith("/"):
        path = f"/{path}"
    return f"http://{service_name}.{namespace}.svc.cluster.local:{port}{path}"


class Reconciler:
    """Converges the discovery document towards the state of one Service."""

    def __init__(self, context: ReconcileContext):
        self.context = context

    async def reconcile(self, resource: ServiceResource) -> ReconcileOutcome:
        """Reconcile a single Service.

        Raises:
            SyncConflictError: If the document update kept conflicting
            StorageError: If the document could not be read or written
        """
        ctx = self.context
        requeue = ctx.requeue_interval

        if not ctx.watch_scope.allows(resource.namespace):
            logger.info(
                f"Skipping service {resource.name} in namespace {resource.namespace} "
                f"(not in watch list)"
            )
            return ReconcileOutcome(ReconcileState.SKIPPED, requeue)

        logger.info(
            f"Reconciling service: {resource.name} in namespace: {resource.namespace}"
        )

        intent = decode_annotations(resource.annotations, resource.name)

        if not intent.enabled:
            logger.info(
                f"Service {resource.name} does not have API documentation enabled, "
                f"removing any existing entry"
            )
            await ctx.sync.sync_merge(remove_entry, resource.key)
            return ReconcileOutcome(ReconcileState.REMOVED, requeue)

        url = build_endpoint_url(
            resource.name, resource.namespace, resource.port, intent.path
        )

        available = await ctx.prober.probe(url)
        if available:
            try:
                spec = await ctx.prober.fetch_spec(url)
                logger.info(f"Successfully fetched OpenAPI spec for service: {resource.name}")
            except SpecFetchError as e:
                logger.warning(
                    f"Failed to fetch OpenAPI spec for service {resource.name}: {e}"
                )
                spec = placeholder_spec(intent.name)
        else:
            spec = placeholder_spec(intent.name)

        entry = DiscoveryEntry(
            id=entry_id(resource.namespace, resource.name),
            name=intent.name,
            namespace=resource.namespace,
            service_name=resource.name,
            url=url,
            description=intent.description,
            last_updated=utc_now(),
            available=available,
            spec=spec,
        )

        await ctx.sync.sync_merge(merge_entry, entry)

        logger.info(
            f"Successfully reconciled service: {resource.name} (available: {available})"
        )
        state = (
            ReconcileState.PUBLISHED_AVAILABLE
            if available
            else ReconcileState.PUBLISHED_UNAVAILABLE
        )
        return ReconcileOutcome(state, requeue, entry)
