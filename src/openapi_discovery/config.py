"""
Runtime configuration loaded from environment variables.

Operator::

    WATCH_NAMESPACES      all | ns-a,ns-b | empty (current namespace)
    POD_NAMESPACE         namespace the operator runs in (default: default)
    DISCOVERY_NAMESPACE   namespace of the discovery ConfigMap (default: default)
    DISCOVERY_CONFIGMAP   name of the discovery ConfigMap (default: openapi-discovery)

Viewer::

    DISCOVERY_PATH        mounted discovery.json (default: /etc/config/discovery.json)
    ENABLED_FRONTENDS     comma list of scalar, redoc (default: scalar)
    DEFAULT_FRONTEND      renderer served at /
"""

import builtins
import logging
import re
from dataclasses import dataclass, field
from enum import Enum

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .errors import ConfigurationError
from .store import DEFAULT_DISCOVERY_CONFIGMAP, DEFAULT_DISCOVERY_NAMESPACE

logger = logging.getLogger(__name__)

WATCH_ALL = "all"
WATCH_CURRENT = "current"

MAX_NAME_LENGTH = 63
_NAME_RE = re.compile(r"^[A-Za-z0-9-]+$")

_LOG_LEVELS = {"CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG"}


def validate_resource_name(value: str, what: str) -> str:
    """Validate a namespace or ConfigMap name.

    Raises:
        ConfigurationError: If the name is empty, too long or has invalid characters
    """
    if not value:
        raise ConfigurationError(f"{what} cannot be empty")
    if len(value) > MAX_NAME_LENGTH:
        raise ConfigurationError(f"{what} name too long: {value}")
    if not _NAME_RE.match(value):
        raise ConfigurationError(f"Invalid {what} name: {value}")
    return value


class WatchMode(Enum):
    """Namespace scope of the Service watch."""

    ALL = "all"
    NAMESPACES = "namespaces"


@dataclass(frozen=True)
class WatchScope:
    """Resolved set of namespaces whose Services are reconciled."""

    mode: WatchMode
    namespaces: builtins.tuple[str, ...] = field(default_factory=tuple)

    @classmethod
    def all(cls) -> "WatchScope":
        return cls(WatchMode.ALL)

    @classmethod
    def of(cls, *namespaces: str) -> "WatchScope":
        return cls(WatchMode.NAMESPACES, tuple(namespaces))

    @property
    def single_namespace(self) -> str | None:
        """The namespace to watch directly, or None when a cluster-wide watch is needed."""
        if self.mode == WatchMode.NAMESPACES and len(self.namespaces) == 1:
            return self.namespaces[0]
        return None

    def allows(self, namespace: str) -> bool:
        if self.mode == WatchMode.ALL or not self.namespaces:
            return True
        return namespace in self.namespaces

    def describe(self) -> str:
        if self.mode == WatchMode.ALL:
            return "all namespaces"
        return ", ".join(self.namespaces)


def parse_watch_namespaces(value: str | None, current_namespace: str) -> WatchScope:
    """Resolve the ``WATCH_NAMESPACES`` selector.

    ``all`` watches everything, an empty value watches the current namespace and
    a comma list watches those namespaces (``current`` inside the list means the
    operator's own namespace).
    """
    raw = (value or "").strip()

    if not raw:
        return WatchScope.of(current_namespace)

    if raw.lower() == WATCH_ALL:
        return WatchScope.all()

    namespaces: builtins.list[str] = []
    for item in raw.split(","):
        namespace = item.strip()
        if not namespace:
            continue
        if namespace == WATCH_CURRENT:
            namespace = current_namespace
        validate_resource_name(namespace, "watch namespace")
        if namespace not in namespaces:
            namespaces.append(namespace)

    if not namespaces:
        return WatchScope.of(current_namespace)

    return WatchScope.of(*namespaces)


class _BaseSettings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    log_level: str = Field(default="INFO", description="Application log level")
    log_format: str = Field(default="text", description="text or json")

    @field_validator("log_level")
    @classmethod
    def _validate_log_level(cls, value: str) -> str:
        upper_value = value.upper()
        if upper_value not in _LOG_LEVELS:
            msg = f"Invalid log level '{value}'. Choose one of: {', '.join(sorted(_LOG_LEVELS))}."
            raise ValueError(msg)
        return upper_value

    @field_validator("log_format")
    @classmethod
    def _validate_log_format(cls, value: str) -> str:
        lower_value = value.lower()
        if lower_value not in {"text", "json"}:
            raise ValueError(f"Invalid log format '{value}'. Choose text or json.")
        return lower_value

    @property
    def json_logs(self) -> bool:
        return self.log_format == "json"


class OperatorSettings(_BaseSettings):
    """Configuration of the discovery operator."""

    watch_namespaces: str = Field(default="", description="all, comma list or empty")
    pod_namespace: str = Field(default="default", description="Operator namespace")
    discovery_namespace: str = Field(default=DEFAULT_DISCOVERY_NAMESPACE)
    discovery_configmap: str = Field(default=DEFAULT_DISCOVERY_CONFIGMAP)
    kubeconfig: str | None = Field(default=None, description="Path to a kubeconfig")

    probe_timeout: float = Field(default=10.0, gt=0)
    requeue_interval: float = Field(default=300.0, gt=0)
    error_requeue_interval: float = Field(default=30.0, gt=0)
    sync_max_attempts: int = Field(default=5, ge=1)
    sync_base_delay: float = Field(default=0.1, ge=0)
    workers: int = Field(default=4, ge=1)

    def validate_names(self) -> None:
        """Validate the discovery ConfigMap location.

        Raises:
            ConfigurationError: If either name is invalid
        """
        validate_resource_name(self.discovery_namespace, "discovery namespace")
        validate_resource_name(self.discovery_configmap, "discovery configmap")

    def watch_scope(self) -> WatchScope:
        return parse_watch_namespaces(self.watch_namespaces, self.pod_namespace)

    def resolve(self) -> WatchScope:
        """Validate everything needed at startup and return the watch scope."""
        self.validate_names()
        scope = self.watch_scope()

        logger.info(f"Watching namespaces: {scope.describe()}")
        logger.info(f"Discovery namespace: {self.discovery_namespace}")
        logger.info(f"Discovery ConfigMap: {self.discovery_configmap}")
        return scope


class ViewerSettings(_BaseSettings):
    """Configuration of the documentation viewer."""

    discovery_path: str = Field(default="/etc/config/discovery.json")
    enabled_frontends: str = Field(default="scalar")
    default_frontend: str | None = Field(default=None)
    refresh_interval: float = Field(default=30.0, gt=0)
    host: str = Field(default="0.0.0.0")
    port: int = Field(default=8080, ge=1, le=65535)

    scalar_theme: str = "purple"
    scalar_layout: str = "modern"
    scalar_dark_mode: bool = False
    scalar_show_sidebar: bool = True
    scalar_expand_all_responses: bool = True
    scalar_expand_all_model_sections: bool = False
    scalar_hide_download_button: bool = False

    redoc_expand_responses: str = "200,201,400,401,403,404"
    redoc_required_props_first: bool = True
    redoc_show_api_selector: bool = True

    @property
    def frontends(self) -> builtins.list[str]:
        return [
            name.strip().lower()
            for name in self.enabled_frontends.split(",")
            if name.strip()
        ]
