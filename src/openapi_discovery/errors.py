"""
Error taxonomy for the OpenAPI discovery operator.

Errors fall into four groups:
- Probe/fetch failures, absorbed by the reconciler and recorded as ``available=False``
- Storage failures, where write conflicts are retried and everything else surfaces
- Watched-resource disappearance, which triggers removal of the catalogue entry
- Configuration errors, which are fatal at startup
"""


class DiscoveryError(Exception):
    """Base error for the discovery operator."""


class ConfigurationError(DiscoveryError):
    """Invalid startup configuration."""


class SpecFetchError(DiscoveryError):
    """Specification could not be fetched from a service."""

    def __init__(self, url: str, reason: str):
        super().__init__(f"Failed to fetch spec from {url}: {reason}")
        self.url = url
        self.reason = reason


class CodecError(DiscoveryError):
    """Discovery document text is malformed."""


class StorageError(DiscoveryError):
    """Discovery document could not be read or written."""

    def __init__(self, message: str, status: int | None = None):
        super().__init__(message)
        self.status = status


class WriteConflictError(StorageError):
    """Conditional write rejected because the document changed since it was read."""


class SyncConflictError(DiscoveryError):
    """Write conflicts persisted through every retry attempt."""

    def __init__(self, attempts: int, last_error: Exception | None = None):
        super().__init__(
            f"Discovery document update still conflicting after {attempts} attempts"
        )
        self.attempts = attempts
        self.last_error = last_error


class ResourceNotFoundError(DiscoveryError):
    """Watched Service no longer exists in the cluster."""

    def __init__(self, namespace: str, name: str):
        super().__init__(f"Service {namespace}/{name} not found")
        self.namespace = namespace
        self.name = name
