"""
OpenAPI discovery for Kubernetes.

Watches Services annotated with ``api-doc.io/enabled: "true"``, probes their
OpenAPI endpoint and publishes a deduplicated catalogue in a ConfigMap that the
documentation viewer renders.

Usage:
    from openapi_discovery import OptimisticSyncEngine, merge_entry

    sync = OptimisticSyncEngine(store)
    await sync.sync_merge(merge_entry, entry)
"""

__version__ = "0.1.0"

from .annotations import ApiDocAnnotations, decode_annotations
from .errors import (
    CodecError,
    ConfigurationError,
    DiscoveryError,
    ResourceNotFoundError,
    SpecFetchError,
    StorageError,
    SyncConflictError,
    WriteConflictError,
)
from .merge import deduplicate, merge_entry, remove_entry
from .models import (
    DiscoveryDocument,
    DiscoveryEntry,
    EntryKey,
    ServiceResource,
    StoredDocument,
    placeholder_spec,
)
from .sync import OptimisticSyncEngine, SyncRetryConfig

__all__ = [
    "ApiDocAnnotations",
    "CodecError",
    "ConfigurationError",
    "DiscoveryDocument",
    "DiscoveryEntry",
    "DiscoveryError",
    "EntryKey",
    "OptimisticSyncEngine",
    "ResourceNotFoundError",
    "ServiceResource",
    "SpecFetchError",
    "StorageError",
    "StoredDocument",
    "SyncConflictError",
    "SyncRetryConfig",
    "WriteConflictError",
    "decode_annotations",
    "deduplicate",
    "merge_entry",
    "placeholder_spec",
    "remove_entry",
]
