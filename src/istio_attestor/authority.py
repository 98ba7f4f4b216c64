# Copyright (c) Istio Node Attestor Contributors. All rights reserved.
# Licensed under the MIT License.
"""Identity authority backends.

The attestor only needs one operation from the identity authority:
submit a bearer token for review and get back the authenticated user.
``KubernetesIdentityAuthority`` implements it with the TokenReview API.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod

from kubernetes import client as k8s_client
from kubernetes import config as k8s_config

from istio_attestor.models import TokenReviewResult, UserInfo

logger = logging.getLogger(__name__)


class IdentityAuthority(ABC):
    """Contract for a token verification backend."""

    @abstractmethod
    def create_token_review(self, token: str) -> TokenReviewResult:
        """Submit ``token`` for review.

        Blocks on network I/O. Transport and API failures are raised
        unchanged; interpreting the result is the caller's job.
        """


def load_client_configuration(config_path: str) -> k8s_client.Configuration:
    """Build a Kubernetes client configuration.

    A non-empty ``config_path`` loads that kubeconfig file. An empty one
    always uses the in-cluster service account, never as a fallback.
    """
    configuration = k8s_client.Configuration()
    if config_path:
        k8s_config.load_kube_config(
            config_file=config_path,
            client_configuration=configuration,
            persist_config=False,
        )
    else:
        k8s_config.load_incluster_config(client_configuration=configuration)
    return configuration


class KubernetesIdentityAuthority(IdentityAuthority):
    """Token reviews against the Kubernetes ``authentication.k8s.io/v1`` API."""

    def __init__(self, api_client: k8s_client.ApiClient, source: str = ""):
        self._api = k8s_client.AuthenticationV1Api(api_client)
        self.source = source

    @classmethod
    def from_config_path(cls, config_path: str) -> "KubernetesIdentityAuthority":
        """Create an authority from a kubeconfig path, or in-cluster if empty."""
        configuration = load_client_configuration(config_path)
        source = config_path or "in-cluster"
        logger.info("Kubernetes client created from %s (host=%s)", source, configuration.host)
        return cls(k8s_client.ApiClient(configuration), source=source)

    def create_token_review(self, token: str) -> TokenReviewResult:
        review = k8s_client.V1TokenReview(
            spec=k8s_client.V1TokenReviewSpec(token=token),
        )
        response = self._api.create_token_review(review)
        return _to_result(response.status)

    def __repr__(self) -> str:
        return f"KubernetesIdentityAuthority(source={self.source!r})"


def _to_result(status: k8s_client.V1TokenReviewStatus | None) -> TokenReviewResult:
    """Convert a TokenReviewStatus, whose fields may all be None."""
    if status is None:
        return TokenReviewResult()
    user = status.user
    return TokenReviewResult(
        authenticated=bool(status.authenticated),
        error=status.error or "",
        user=UserInfo(
            username=(user.username or "") if user else "",
            groups=list(user.groups or []) if user else [],
        ),
    )


__all__ = [
    "IdentityAuthority",
    "KubernetesIdentityAuthority",
    "load_client_configuration",
]
