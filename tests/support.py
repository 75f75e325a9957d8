"""
Shared test doubles and factories.

Imported by conftest.py and by test modules directly.
"""

import asyncio
import builtins
import json
from collections.abc import Callable
from datetime import datetime, timedelta, timezone

import httpx
from kubernetes import client

from openapi_discovery.codec import decode_document, encode_document
from openapi_discovery.errors import WriteConflictError
from openapi_discovery.models import (
    DiscoveryDocument,
    DiscoveryEntry,
    StoredDocument,
    entry_id,
)
from openapi_discovery.probe import AvailabilityProber
from openapi_discovery.store import DocumentStore

BASE_TIME = datetime(2024, 5, 1, 10, 0, 0, tzinfo=timezone.utc)

ORDERS_SPEC = json.dumps(
    {"openapi": "3.0.0", "info": {"title": "Orders", "version": "1.0.0"}, "paths": {}}
)


class InMemoryDocumentStore(DocumentStore):
    """Versioned in-memory store with ConfigMap-like conditional writes.

    ``read`` yields to the event loop after taking its snapshot so concurrent
    writers interleave between read and write.
    """

    def __init__(self, document: DiscoveryDocument | None = None):
        self._text: str | None = encode_document(document) if document else None
        self._version = 1 if document else 0
        self.reads = 0
        self.writes: builtins.list[DiscoveryDocument] = []
        self.conflicts_to_inject = 0
        self.fail_with: Exception | None = None

    @property
    def document(self) -> DiscoveryDocument | None:
        return decode_document(self._text) if self._text is not None else None

    async def read(self) -> StoredDocument:
        self.reads += 1
        text, version = self._text, self._version
        await asyncio.sleep(0)

        if text is None:
            return StoredDocument(DiscoveryDocument.empty(), None)
        return StoredDocument(decode_document(text), str(version))

    async def write(
        self, document: DiscoveryDocument, resource_version: str | None
    ) -> str | None:
        if self.fail_with is not None:
            raise self.fail_with

        if self.conflicts_to_inject > 0:
            self.conflicts_to_inject -= 1
            raise WriteConflictError("injected conflict", 409)

        if resource_version is None:
            if self._text is not None:
                raise WriteConflictError("already exists", 409)
        elif resource_version != str(self._version):
            raise WriteConflictError("stale resource version", 409)

        self._text = encode_document(document)
        self._version += 1
        self.writes.append(document)
        return str(self._version)


class RecordingSleep:
    """Stand-in for ``asyncio.sleep`` that records requested delays."""

    def __init__(self):
        self.delays: builtins.list[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)
        await asyncio.sleep(0)


def make_entry(
    namespace: str = "shop",
    service_name: str = "orders",
    last_updated: datetime | None = None,
    name: str | None = None,
    available: bool = True,
    spec: str = ORDERS_SPEC,
) -> DiscoveryEntry:
    return DiscoveryEntry(
        id=entry_id(namespace, service_name),
        name=name or f"{service_name} API",
        namespace=namespace,
        service_name=service_name,
        url=f"http://{service_name}.{namespace}.svc.cluster.local:8080/swagger/openapi.yml",
        last_updated=last_updated or BASE_TIME,
        available=available,
        spec=spec,
    )


def make_service(
    name: str = "orders",
    namespace: str = "shop",
    annotations: builtins.dict[str, str] | None = None,
    ports: builtins.list[int] | None = None,
) -> client.V1Service:
    return client.V1Service(
        metadata=client.V1ObjectMeta(
            name=name,
            namespace=namespace,
            annotations=annotations,
            resource_version="100",
        ),
        spec=client.V1ServiceSpec(
            ports=[client.V1ServicePort(port=port) for port in (ports or [])] or None
        ),
    )


def http_prober(
    handler: Callable[[httpx.Request], httpx.Response],
    fetch_handler: Callable[[httpx.Request], httpx.Response] | None = None,
) -> AvailabilityProber:
    """Prober whose clients are served by in-process handlers."""
    return AvailabilityProber(
        timeout=1.0,
        probe_client=httpx.AsyncClient(transport=httpx.MockTransport(handler)),
        fetch_client=httpx.AsyncClient(
            transport=httpx.MockTransport(fetch_handler or handler)
        ),
    )


def unreachable(request: httpx.Request) -> httpx.Response:
    raise httpx.ConnectError("Connection refused", request=request)


def later(seconds: float) -> datetime:
    return BASE_TIME + timedelta(seconds=seconds)


def write_catalogue(path, *entries: DiscoveryEntry) -> None:
    """Write a discovery.json file the way the ConfigMap mount presents it."""
    path.write_text(
        encode_document(DiscoveryDocument(apis=list(entries), last_updated=BASE_TIME))
    )
