# Copyright (c) Istio Node Attestor Contributors. All rights reserved.
# Licensed under the MIT License.
"""
Istio Attestor Plugin

Server side of Istio node attestation: one request is received, the
embedded service account token is verified with a token review, and one
response carrying the node's SPIFFE ID is sent. There is no retry and no
multi-round negotiation.
"""

import logging
from typing import Optional

from pydantic import ValidationError

from istio_attestor import __version__
from istio_attestor.client_manager import ClientManager
from istio_attestor.config import AttestorConfig
from istio_attestor.exceptions import (
    AttestationStreamError,
    AttestorError,
    InvalidTokenError,
    MalformedRequestError,
)
from istio_attestor.metrics import get_metrics
from istio_attestor.models import AttestedData, AttestResponse, PluginInfo
from istio_attestor.tracing import trace_operation
from istio_attestor.transport import AttestStream
from istio_attestor.verifier import TokenVerifier

logger = logging.getLogger(__name__)

PLUGIN_NAME = "istio"
SPIFFE_ID_TEMPLATE = "spiffe://{trust_domain}/ns/{namespace}/sa/{service_account}"


def format_spiffe_id(trust_domain: str, namespace: str, service_account: str) -> str:
    """Build the node's base SPIFFE ID. No escaping is applied."""
    return SPIFFE_ID_TEMPLATE.format(
        trust_domain=trust_domain,
        namespace=namespace,
        service_account=service_account,
    )


class IstioAttestorPlugin:
    """
    Node attestor for Istio node agents.

    Args:
        client_manager: Owner of the Kubernetes client. A fresh one using
            the Kubernetes backend is created if omitted.
    """

    name = PLUGIN_NAME

    def __init__(self, client_manager: Optional[ClientManager] = None):
        self.client_manager = client_manager or ClientManager()
        self.verifier = TokenVerifier(self.client_manager)

    def configure(self, configuration: str = "") -> AttestorConfig:
        """Apply HCL configuration text.

        Raises:
            ConfigurationError: If the text is malformed or the client
                cannot be created.
        """
        config = AttestorConfig.from_hcl(configuration)
        self.apply_config(config)
        return config

    def apply_config(self, config: AttestorConfig) -> None:
        """Build the Kubernetes client described by ``config``."""
        self.client_manager.configure(config.k8s_config_path)

    def get_plugin_info(self) -> PluginInfo:
        return PluginInfo(name=PLUGIN_NAME, version=__version__)

    async def attest(self, stream: AttestStream) -> AttestResponse:
        """Run one attestation exchange on ``stream``.

        Returns:
            The response that was sent.

        Raises:
            AttestationStreamError: Receiving or sending failed. Attestor
                errors raised by the stream itself propagate unchanged.
            MalformedRequestError: Wrong attestation type or bad payload.
            InvalidTokenError: The token was rejected; the specific
                reason is the exception's ``__cause__``.
        """
        try:
            response = await self._attest(stream)
        except AttestorError as exc:
            get_metrics().record_attestation(type(exc).__name__)
            raise
        get_metrics().record_attestation("success")
        return response

    @trace_operation("istio_attestor.attest")
    async def _attest(self, stream: AttestStream) -> AttestResponse:
        try:
            request = await stream.receive()
        except AttestorError:
            raise
        except Exception as exc:
            raise AttestationStreamError(f"error receiving attestation request: {exc}") from exc

        # verify request is processed for this plugin before touching the payload
        attestation_type = request.attestation_data.type
        if attestation_type != PLUGIN_NAME:
            logger.warning("Rejected attestation data of type %r", attestation_type)
            raise MalformedRequestError(f"unexpected attestation data type {attestation_type!r}")

        try:
            attested = AttestedData.model_validate_json(request.attestation_data.data)
        except ValidationError as exc:
            logger.warning("Rejected undecodable attestation payload")
            raise MalformedRequestError("error parsing message from attestation data") from exc

        try:
            claims = await self.verifier.verify(attested.token)
        except AttestorError as exc:
            logger.warning("Token from attestation request rejected: %s", exc)
            raise InvalidTokenError(f"provided token from request is not valid: {exc}") from exc

        spiffe_id = format_spiffe_id(attested.trust_domain, claims.namespace, claims.service_account)
        response = AttestResponse(valid=True, base_spiffe_id=spiffe_id)

        try:
            await stream.send(response)
        except Exception as exc:
            raise AttestationStreamError(f"error sending attestation response: {exc}") from exc

        logger.info("Attested Istio node agent as %s", spiffe_id)
        return response


__all__ = [
    "IstioAttestorPlugin",
    "PLUGIN_NAME",
    "format_spiffe_id",
]
