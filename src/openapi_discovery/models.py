"""
Data model for the API discovery catalogue.

The catalogue is a single :class:`DiscoveryDocument` holding one
:class:`DiscoveryEntry` per documented Service. Entries are grouped by a
structured :class:`EntryKey` rather than by their string ``id`` so that
namespace/service pairs containing ``-`` can never alias each other.
"""

import builtins
import json
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

import yaml

DEFAULT_SERVICE_PORT = 8080
PLACEHOLDER_DESCRIPTION = "API documentation not available"


def utc_now() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def entry_id(namespace: str, service_name: str) -> str:
    """Persisted identifier of a catalogue entry."""
    return f"{namespace}-{service_name}"


@dataclass(frozen=True, order=True)
class EntryKey:
    """Identity of a catalogue entry: one per (namespace, service) pair."""

    namespace: str
    service_name: str

    def __str__(self) -> str:
        return f"{self.namespace}/{self.service_name}"


@dataclass
class DiscoveryEntry:
    """One documented API."""

    id: str
    name: str
    namespace: str
    service_name: str
    url: str
    last_updated: datetime
    available: bool
    spec: str
    description: str | None = None

    @property
    def key(self) -> EntryKey:
        return EntryKey(self.namespace, self.service_name)


@dataclass
class DiscoveryDocument:
    """The persisted catalogue of documented APIs."""

    apis: builtins.list[DiscoveryEntry] = field(default_factory=list)
    last_updated: datetime = field(default_factory=utc_now)

    @classmethod
    def empty(cls) -> "DiscoveryDocument":
        return cls(apis=[], last_updated=utc_now())

    def find(self, key: EntryKey) -> DiscoveryEntry | None:
        """Return the entry for ``key`` if present."""
        for entry in self.apis:
            if entry.key == key:
                return entry
        return None


@dataclass(frozen=True)
class StoredDocument:
    """A discovery document together with its optimistic concurrency token.

    ``resource_version`` is ``None`` when the backing record does not exist yet.
    """

    document: DiscoveryDocument
    resource_version: str | None = None

    @property
    def exists(self) -> bool:
        return self.resource_version is not None


@dataclass(frozen=True)
class ServiceResource:
    """Read-only view of a watched Kubernetes Service."""

    name: str
    namespace: str
    annotations: builtins.dict[str, str] = field(default_factory=dict)
    first_port: int | None = None

    @property
    def key(self) -> EntryKey:
        return EntryKey(self.namespace, self.name)

    @property
    def port(self) -> int:
        return self.first_port if self.first_port is not None else DEFAULT_SERVICE_PORT

    @classmethod
    def from_v1_service(cls, service: Any) -> "ServiceResource":
        """Build from a ``kubernetes.client.V1Service``."""
        metadata = service.metadata
        ports = service.spec.ports if service.spec and service.spec.ports else []

        return cls(
            name=metadata.name,
            namespace=metadata.namespace or "",
            annotations=dict(metadata.annotations or {}),
            first_port=ports[0].port if ports else None,
        )


def placeholder_spec(title: str, description: str = PLACEHOLDER_DESCRIPTION) -> str:
    """Minimal OpenAPI document used when the real one cannot be fetched."""
    return json.dumps(
        {
            "openapi": "3.0.0",
            "info": {"title": title, "version": "1.0.0", "description": description},
            "paths": {},
        }
    )


def parse_spec_to_json(spec_content: str) -> Any:
    """Parse an OpenAPI document given as JSON or YAML text."""
    if spec_content.lstrip().startswith("{"):
        return json.loads(spec_content)
    return yaml.safe_load(spec_content)
