# Copyright (c) Istio Node Attestor Contributors. All rights reserved.
# Licensed under the MIT License.
"""
Attestor Configuration

The identity server hands each plugin its ``plugin_data`` block as HCL
text. The only recognized option is ``k8s_config_path``:

    k8s_config_path = "/etc/istio-attestor/kubeconfig"

An empty or missing path selects in-cluster credentials.
"""

import os
from typing import Any, Mapping, Optional

import hcl
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from istio_attestor.exceptions import ConfigurationError

DEFAULT_ADDRESS = "127.0.0.1:50051"

ENV_ADDRESS = "ISTIO_ATTESTOR_ADDRESS"
ENV_K8S_CONFIG_PATH = "ISTIO_ATTESTOR_K8S_CONFIG_PATH"


class AttestorConfig(BaseModel):
    """Plugin configuration."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    k8s_config_path: str = Field(
        default="",
        description="Path to a kubeconfig file; empty means in-cluster credentials",
    )

    @property
    def uses_in_cluster(self) -> bool:
        """Whether the client is built from the pod's service account."""
        return self.k8s_config_path == ""

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "AttestorConfig":
        """Validate an already-decoded configuration mapping.

        Raises:
            ConfigurationError: If a recognized option has the wrong type.
        """
        try:
            return cls.model_validate(dict(data))
        except ValidationError as exc:
            raise ConfigurationError(
                f"error parsing Istio Attestor configuration: {exc}"
            ) from exc

    @classmethod
    def from_hcl(cls, text: str) -> "AttestorConfig":
        """Decode HCL configuration text.

        Raises:
            ConfigurationError: If the text is not valid HCL or an option
                has the wrong type.
        """
        if not text or not text.strip():
            return cls()
        try:
            data = hcl.loads(text)
        except ValueError as exc:
            raise ConfigurationError(
                f"error parsing Istio Attestor configuration: {exc}"
            ) from exc
        if not isinstance(data, dict):
            raise ConfigurationError(
                "error parsing Istio Attestor configuration: expected an object"
            )
        return cls.from_mapping(data)


class ServerSettings(BaseModel):
    """Process-level settings for the gRPC host."""

    address: str = DEFAULT_ADDRESS
    initial_config: Optional[AttestorConfig] = None

    @classmethod
    def from_env(cls) -> "ServerSettings":
        """Read settings from ``ISTIO_ATTESTOR_*`` environment variables.

        ``ISTIO_ATTESTOR_K8S_CONFIG_PATH`` applies a configuration at
        startup when it is set, even to the empty string (in-cluster).
        """
        path = os.getenv(ENV_K8S_CONFIG_PATH)
        return cls(
            address=os.getenv(ENV_ADDRESS, DEFAULT_ADDRESS),
            initial_config=AttestorConfig(k8s_config_path=path) if path is not None else None,
        )


__all__ = [
    "AttestorConfig",
    "ServerSettings",
    "DEFAULT_ADDRESS",
]
