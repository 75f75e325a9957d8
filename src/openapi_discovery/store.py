"""
Persistence of the discovery document.

The document lives in a single ConfigMap. Its ``resourceVersion`` is the
optimistic concurrency token: a write carrying a stale version is rejected by
the API server with 409 and surfaces as :class:`WriteConflictError`.
"""

import asyncio
import builtins
import logging
from abc import ABC, abstractmethod

from kubernetes import client
from kubernetes.client.rest import ApiException

from .codec import document_from_config_map_data, document_to_config_map_data
from .errors import StorageError, WriteConflictError
from .kube import HTTP_CONFLICT, HTTP_NOT_FOUND, api_status
from .models import DiscoveryDocument, StoredDocument

logger = logging.getLogger(__name__)

DEFAULT_DISCOVERY_NAMESPACE = "default"
DEFAULT_DISCOVERY_CONFIGMAP = "openapi-discovery"

DISCOVERY_LABELS = {
    "app.kubernetes.io/name": "openapi-discovery",
    "app.kubernetes.io/component": "discovery",
}


class DocumentStore(ABC):
    """Versioned storage for the discovery document."""

    @abstractmethod
    async def read(self) -> StoredDocument:
        """Read the document and its concurrency token.

        An absent record is returned as an empty document with no token.
        """

    @abstractmethod
    async def write(
        self, document: DiscoveryDocument, resource_version: str | None
    ) -> str | None:
        """Conditionally write the document.

        Creates the record when ``resource_version`` is None, otherwise replaces
        it only if the stored version still matches.

        Raises:
            WriteConflictError: If the record changed (or appeared) since it was read
            StorageError: On any other storage failure
        """

    async def ensure_document(self) -> bool:
        """Create an empty document if none exists. Returns True if one was created."""
        stored = await self.read()
        if stored.exists:
            return False

        try:
            await self.write(DiscoveryDocument.empty(), None)
        except WriteConflictError:
            # Created concurrently by another writer
            return False
        return True


class ConfigMapDocumentStore(DocumentStore):
    """Discovery document kept in a ConfigMap."""

    def __init__(
        self,
        core_api: client.CoreV1Api,
        namespace: str = DEFAULT_DISCOVERY_NAMESPACE,
        name: str = DEFAULT_DISCOVERY_CONFIGMAP,
        labels: builtins.dict[str, str] | None = None,
    ):
        self.core_api = core_api
        self.namespace = namespace
        self.name = name
        self.labels = dict(labels or DISCOVERY_LABELS)

    @property
    def location(self) -> str:
        return f"{self.namespace}/{self.name}"

    async def read(self) -> StoredDocument:
        try:
            config_map = await asyncio.to_thread(
                self.core_api.read_namespaced_config_map, self.name, self.namespace
            )
        except ApiException as e:
            if api_status(e) == HTTP_NOT_FOUND:
                logger.debug(f"Discovery ConfigMap {self.location} does not exist")
                return StoredDocument(DiscoveryDocument.empty(), None)
            logger.error(f"Failed to get ConfigMap {self.location}: {e}")
            raise StorageError(
                f"Failed to read ConfigMap {self.location}: {e.reason}", api_status(e)
            ) from e

        return StoredDocument(
            document=document_from_config_map_data(config_map.data),
            resource_version=config_map.metadata.resource_version,
        )

    async def write(
        self, document: DiscoveryDocument, resource_version: str | None
    ) -> str | None:
        body = self._build_config_map(document, resource_version)

        try:
            if resource_version is None:
                result = await asyncio.to_thread(
                    self.core_api.create_namespaced_config_map, self.namespace, body
                )
            else:
                result = await asyncio.to_thread(
                    self.core_api.replace_namespaced_config_map,
                    self.name,
                    self.namespace,
                    body,
                )
        except ApiException as e:
            status = api_status(e)
            if status == HTTP_CONFLICT:
                raise WriteConflictError(
                    f"ConfigMap {self.location} was modified concurrently", status
                ) from e
            logger.error(f"Failed to update ConfigMap {self.location}: {e}")
            raise StorageError(
                f"Failed to write ConfigMap {self.location}: {e.reason}", status
            ) from e

        logger.debug(
            f"Wrote discovery ConfigMap {self.location} with {len(document.apis)} APIs"
        )
        return result.metadata.resource_version if result and result.metadata else None

    def _build_config_map(
        self, document: DiscoveryDocument, resource_version: str | None
    ) -> client.V1ConfigMap:
        return client.V1ConfigMap(
            api_version="v1",
            kind="ConfigMap",
            metadata=client.V1ObjectMeta(
                name=self.name,
                namespace=self.namespace,
                labels=self.labels,
                resource_version=resource_version,
            ),
            data=document_to_config_map_data(document),
        )
