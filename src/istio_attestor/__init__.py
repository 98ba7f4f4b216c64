"""
Istio Node Attestor

Server-side SPIRE node attestation for Istio node agents: a Kubernetes
service account token is verified with the TokenReview API and mapped to
``spiffe://<trust domain>/ns/<namespace>/sa/<service account>``.

Version: 0.1.0
"""

__version__ = "0.1.0"

from .exceptions import (
    AttestorError,
    ConfigurationError,
    NotConfiguredError,
    MalformedRequestError,
    BackendUnavailableError,
    TokenVerificationError,
    AuthenticationStatusError,
    NotAuthenticatedError,
    NotServiceAccountError,
    InvalidUsernameFormatError,
    InvalidTokenError,
    AttestationStreamError,
)
from .models import (
    AttestationData,
    AttestationRequest,
    AttestedData,
    Claims,
    AttestResponse,
    TokenReviewResult,
    UserInfo,
    PluginInfo,
)
from .config import AttestorConfig
from .authority import IdentityAuthority, KubernetesIdentityAuthority
from .client_manager import ClientManager
from .verifier import TokenVerifier, strip_bearer_prefix
from .transport import AttestStream, QueueAttestStream
from .attestor import IstioAttestorPlugin, PLUGIN_NAME, format_spiffe_id

__all__ = [
    "__version__",

    # Plugin
    "IstioAttestorPlugin",
    "PLUGIN_NAME",
    "format_spiffe_id",
    "AttestorConfig",

    # Verification
    "ClientManager",
    "TokenVerifier",
    "strip_bearer_prefix",
    "IdentityAuthority",
    "KubernetesIdentityAuthority",

    # Messages
    "AttestationData",
    "AttestationRequest",
    "AttestedData",
    "Claims",
    "AttestResponse",
    "TokenReviewResult",
    "UserInfo",
    "PluginInfo",

    # Transport
    "AttestStream",
    "QueueAttestStream",

    # Exceptions
    "AttestorError",
    "ConfigurationError",
    "NotConfiguredError",
    "MalformedRequestError",
    "BackendUnavailableError",
    "TokenVerificationError",
    "AuthenticationStatusError",
    "NotAuthenticatedError",
    "NotServiceAccountError",
    "InvalidUsernameFormatError",
    "InvalidTokenError",
    "AttestationStreamError",
]
