"""Tests for attestor configuration."""

import pytest

from istio_attestor.config import DEFAULT_ADDRESS, AttestorConfig, ServerSettings
from istio_attestor.exceptions import ConfigurationError


class TestAttestorConfig:
    """Tests for AttestorConfig decoding."""

    def test_defaults_to_in_cluster(self):
        config = AttestorConfig()
        assert config.k8s_config_path == ""
        assert config.uses_in_cluster is True

    @pytest.mark.parametrize("text", ["", "   \n"])
    def test_empty_configuration(self, text):
        config = AttestorConfig.from_hcl(text)
        assert config.uses_in_cluster is True

    def test_hcl_config_path(self):
        config = AttestorConfig.from_hcl('k8s_config_path = "/etc/kube/config"')
        assert config.k8s_config_path == "/etc/kube/config"
        assert config.uses_in_cluster is False

    def test_unknown_keys_are_ignored(self):
        config = AttestorConfig.from_hcl('k8s_config_path = "/k"\nother = "value"')
        assert config.k8s_config_path == "/k"

    def test_malformed_hcl_raises_configuration_error(self):
        with pytest.raises(ConfigurationError, match="error parsing Istio Attestor configuration"):
            AttestorConfig.from_hcl('k8s_config_path = = "/k"')

    def test_wrong_type_raises_configuration_error(self):
        with pytest.raises(ConfigurationError):
            AttestorConfig.from_hcl("k8s_config_path = 42")

    def test_from_mapping(self):
        config = AttestorConfig.from_mapping({"k8s_config_path": "/k"})
        assert config.k8s_config_path == "/k"

    def test_from_mapping_wrong_type(self):
        with pytest.raises(ConfigurationError):
            AttestorConfig.from_mapping({"k8s_config_path": ["/k"]})

    def test_config_is_immutable(self):
        config = AttestorConfig(k8s_config_path="/k")
        with pytest.raises(Exception):
            config.k8s_config_path = "/other"


class TestServerSettings:
    """Tests for environment-driven process settings."""

    def test_defaults(self, monkeypatch):
        monkeypatch.delenv("ISTIO_ATTESTOR_ADDRESS", raising=False)
        monkeypatch.delenv("ISTIO_ATTESTOR_K8S_CONFIG_PATH", raising=False)
        settings = ServerSettings.from_env()
        assert settings.address == DEFAULT_ADDRESS
        assert settings.initial_config is None

    def test_from_env(self, monkeypatch):
        monkeypatch.setenv("ISTIO_ATTESTOR_ADDRESS", "0.0.0.0:9000")
        monkeypatch.setenv("ISTIO_ATTESTOR_K8S_CONFIG_PATH", "/k")
        settings = ServerSettings.from_env()
        assert settings.address == "0.0.0.0:9000"
        assert settings.initial_config.k8s_config_path == "/k"

    def test_empty_env_path_means_in_cluster(self, monkeypatch):
        monkeypatch.setenv("ISTIO_ATTESTOR_K8S_CONFIG_PATH", "")
        settings = ServerSettings.from_env()
        assert settings.initial_config is not None
        assert settings.initial_config.uses_in_cluster is True
