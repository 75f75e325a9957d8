"""Documentation viewer: renders the discovery catalogue as browsable API docs."""

from .cache import CatalogueCache
from .renderers import (
    ApiInfo,
    DocRenderer,
    RedocRenderer,
    RendererRegistry,
    ScalarRenderer,
)

__all__ = [
    "ApiInfo",
    "CatalogueCache",
    "DocRenderer",
    "RedocRenderer",
    "RendererRegistry",
    "ScalarRenderer",
]
