"""Tests for operator configuration."""

from __future__ import annotations

import pytest

from power_monitor_operator.config import OperatorConfig, resync_interval_from_env
from power_monitor_operator.constants import POLL_TIMEOUT_OPENSHIFT_SECONDS, POLL_TIMEOUT_SECONDS


class TestOperatorConfig:
    """Test cases for OperatorConfig."""

    def test_defaults(self, monkeypatch):
        """Test the values used when nothing is set."""
        for var in ("CLUSTER_TYPE", "DEPLOYMENT_NAMESPACE", "TOKEN_TTL_SECONDS", "METRICS_PORT"):
            monkeypatch.delenv(var, raising=False)

        config = OperatorConfig.from_env()

        assert config.deployment_namespace == "power-monitor"
        assert config.is_openshift is False
        assert config.token_ttl == 86400
        assert config.metrics_port == 8080

    def test_from_env(self, monkeypatch):
        """Test that environment variables override the defaults."""
        monkeypatch.setenv("CLUSTER_TYPE", "OpenShift")
        monkeypatch.setenv("DEPLOYMENT_NAMESPACE", "kepler")
        monkeypatch.setenv("KEPLER_IMAGE", "kepler:custom")
        monkeypatch.setenv("TOKEN_REFRESH_INTERVAL_SECONDS", "600")

        config = OperatorConfig.from_env()

        assert config.is_openshift
        assert config.deployment_namespace == "kepler"
        assert config.kepler_image == "kepler:custom"
        assert config.token_buffer == 1200

    def test_unknown_cluster_rejected(self, monkeypatch):
        """Test that an unknown cluster flavour fails startup."""
        monkeypatch.setenv("CLUSTER_TYPE", "nomad")

        with pytest.raises(ValueError, match="CLUSTER_TYPE"):
            OperatorConfig.from_env()

    def test_bad_number_rejected(self, monkeypatch):
        """Test that a non-numeric setting fails startup."""
        monkeypatch.delenv("CLUSTER_TYPE", raising=False)
        monkeypatch.setenv("TOKEN_TTL_SECONDS", "a day")

        with pytest.raises(ValueError):
            OperatorConfig.from_env()

    def test_poll_timeout_by_cluster(self):
        """Test that OpenShift waits longer for prerequisites."""
        assert OperatorConfig().poll_timeout == POLL_TIMEOUT_SECONDS
        assert OperatorConfig(cluster="openshift").poll_timeout == POLL_TIMEOUT_OPENSHIFT_SECONDS


class TestResyncIntervalFromEnv:
    """Test cases for resync_interval_from_env."""

    def test_default(self, monkeypatch):
        """Test the default timer interval."""
        monkeypatch.delenv("STATUS_RESYNC_INTERVAL_SECONDS", raising=False)

        assert resync_interval_from_env() == 30

    def test_override(self, monkeypatch):
        """Test that the interval follows the environment."""
        monkeypatch.setenv("STATUS_RESYNC_INTERVAL_SECONDS", "12.5")

        assert resync_interval_from_env() == 12.5
