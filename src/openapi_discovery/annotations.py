"""
Service annotations recognised by the discovery operator.

A Service opts in to API documentation discovery with::

    metadata:
      annotations:
        api-doc.io/enabled: "true"
        api-doc.io/path: /openapi.json        # optional
        api-doc.io/name: Orders API           # optional
        api-doc.io/description: Order intake  # optional
"""

from collections.abc import Mapping
from dataclasses import dataclass

API_DOC_ENABLED_ANNOTATION = "api-doc.io/enabled"
API_DOC_PATH_ANNOTATION = "api-doc.io/path"
API_DOC_NAME_ANNOTATION = "api-doc.io/name"
API_DOC_DESCRIPTION_ANNOTATION = "api-doc.io/description"

DEFAULT_API_DOC_PATH = "/swagger/openapi.yml"


@dataclass(frozen=True)
class ApiDocAnnotations:
    """Decoded discovery intent of a single Service."""

    enabled: bool
    path: str
    name: str
    description: str | None = None


def decode_annotations(
    annotations: Mapping[str, str] | None, service_name: str
) -> ApiDocAnnotations:
    """Decode discovery annotations, falling back to defaults for anything missing."""
    annotations = annotations or {}

    return ApiDocAnnotations(
        # Only the exact literal enables discovery
        enabled=annotations.get(API_DOC_ENABLED_ANNOTATION) == "true",
        path=annotations.get(API_DOC_PATH_ANNOTATION) or DEFAULT_API_DOC_PATH,
        name=annotations.get(API_DOC_NAME_ANNOTATION) or f"{service_name} API",
        description=annotations.get(API_DOC_DESCRIPTION_ANNOTATION),
    )
