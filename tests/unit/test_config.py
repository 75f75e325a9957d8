"""
Tests for environment configuration and watch scope resolution.
"""

import pytest
from pydantic import ValidationError

from openapi_discovery.config import (
    MAX_NAME_LENGTH,
    OperatorSettings,
    ViewerSettings,
    WatchMode,
    WatchScope,
    parse_watch_namespaces,
    validate_resource_name,
)
from openapi_discovery.errors import ConfigurationError

ENV_VARS = (
    "WATCH_NAMESPACES",
    "POD_NAMESPACE",
    "DISCOVERY_NAMESPACE",
    "DISCOVERY_CONFIGMAP",
    "LOG_LEVEL",
    "LOG_FORMAT",
    "ENABLED_FRONTENDS",
    "DEFAULT_FRONTEND",
)


@pytest.fixture(autouse=True)
def clean_environment(monkeypatch, tmp_path):
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    # Keep a developer's .env out of the settings under test
    monkeypatch.chdir(tmp_path)


class TestResourceNames:
    """Test namespace and ConfigMap name validation."""

    @pytest.mark.parametrize("name", ["default", "team-a", "ns1", "A" * MAX_NAME_LENGTH])
    def test_valid_names(self, name):
        assert validate_resource_name(name, "namespace") == name

    @pytest.mark.parametrize(
        "name", ["", "bad_name", "has space", "dots.not.allowed", "a" * 64]
    )
    def test_invalid_names(self, name):
        with pytest.raises(ConfigurationError):
            validate_resource_name(name, "namespace")


class TestParseWatchNamespaces:
    """Test WATCH_NAMESPACES resolution."""

    @pytest.mark.parametrize("value", [None, "", "   ", " , ,"])
    def test_empty_means_current_namespace(self, value):
        scope = parse_watch_namespaces(value, "ops")

        assert scope == WatchScope.of("ops")
        assert scope.single_namespace == "ops"

    @pytest.mark.parametrize("value", ["all", "ALL", " All "])
    def test_all_watches_every_namespace(self, value):
        scope = parse_watch_namespaces(value, "ops")

        assert scope.mode == WatchMode.ALL
        assert scope.single_namespace is None
        assert scope.allows("anything")

    def test_comma_list_is_trimmed_and_deduplicated(self):
        scope = parse_watch_namespaces("shop, billing ,shop", "ops")

        assert scope.namespaces == ("shop", "billing")
        assert scope.single_namespace is None
        assert scope.allows("billing")
        assert not scope.allows("ops")

    def test_current_inside_list(self):
        scope = parse_watch_namespaces("current,shop", "ops")

        assert scope.namespaces == ("ops", "shop")

    def test_invalid_namespace_in_list(self):
        with pytest.raises(ConfigurationError, match="bad_ns"):
            parse_watch_namespaces("shop,bad_ns", "ops")

    def test_describe(self):
        assert WatchScope.all().describe() == "all namespaces"
        assert WatchScope.of("shop", "billing").describe() == "shop, billing"


class TestOperatorSettings:
    """Test operator settings loaded from the environment."""

    def test_defaults(self):
        settings = OperatorSettings()

        assert settings.discovery_namespace == "default"
        assert settings.discovery_configmap == "openapi-discovery"
        assert settings.probe_timeout == 10.0
        assert settings.requeue_interval == 300.0
        assert settings.error_requeue_interval == 30.0
        assert settings.sync_max_attempts == 5
        assert settings.log_level == "INFO"
        assert settings.json_logs is False
        assert settings.resolve() == WatchScope.of("default")

    def test_environment_overrides(self, monkeypatch):
        monkeypatch.setenv("WATCH_NAMESPACES", "shop,current")
        monkeypatch.setenv("POD_NAMESPACE", "platform")
        monkeypatch.setenv("DISCOVERY_NAMESPACE", "platform")
        monkeypatch.setenv("DISCOVERY_CONFIGMAP", "api-catalogue")
        monkeypatch.setenv("LOG_LEVEL", "debug")
        monkeypatch.setenv("LOG_FORMAT", "JSON")

        settings = OperatorSettings()

        assert settings.resolve() == WatchScope.of("shop", "platform")
        assert settings.discovery_namespace == "platform"
        assert settings.discovery_configmap == "api-catalogue"
        assert settings.log_level == "DEBUG"
        assert settings.json_logs is True

    @pytest.mark.parametrize(
        "variable, value",
        [
            ("DISCOVERY_NAMESPACE", "bad_namespace"),
            ("DISCOVERY_CONFIGMAP", "x" * 64),
            ("DISCOVERY_CONFIGMAP", ""),
        ],
    )
    def test_invalid_discovery_location(self, monkeypatch, variable, value):
        monkeypatch.setenv(variable, value)

        with pytest.raises(ConfigurationError):
            OperatorSettings().resolve()

    def test_invalid_log_level(self, monkeypatch):
        monkeypatch.setenv("LOG_LEVEL", "verbose")

        with pytest.raises(ValidationError, match="Invalid log level"):
            OperatorSettings()


class TestViewerSettings:
    """Test viewer settings."""

    def test_defaults(self):
        settings = ViewerSettings()

        assert settings.discovery_path == "/etc/config/discovery.json"
        assert settings.frontends == ["scalar"]
        assert settings.default_frontend is None
        assert settings.refresh_interval == 30.0
        assert settings.port == 8080

    def test_frontend_list(self, monkeypatch):
        monkeypatch.setenv("ENABLED_FRONTENDS", " Scalar, redoc,,")
        monkeypatch.setenv("DEFAULT_FRONTEND", "redoc")

        settings = ViewerSettings()

        assert settings.frontends == ["scalar", "redoc"]
        assert settings.default_frontend == "redoc"
