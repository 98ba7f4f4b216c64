# Copyright (c) Istio Node Attestor Contributors. All rights reserved.
# Licensed under the MIT License.
"""Centralized exception hierarchy for the Istio node attestor.

Every failure terminates the current attestation exchange. Errors are
chained (``raise ... from err``) so callers can always reach the
original cause.
"""


class AttestorError(Exception):
    """Base exception for all attestor errors."""


class ConfigurationError(AttestorError):
    """Malformed configuration or failure to build the backend client."""


class NotConfiguredError(AttestorError):
    """Verification attempted before any successful configuration."""


class MalformedRequestError(AttestorError):
    """Wrong attestation data type or undecodable attestation payload."""


class BackendUnavailableError(AttestorError):
    """The token review call to the identity authority failed."""


class TokenVerificationError(AttestorError):
    """The identity authority answered, but the token was rejected."""


class AuthenticationStatusError(TokenVerificationError):
    """The token review status carried an error string."""


class NotAuthenticatedError(TokenVerificationError):
    """The token review did not mark the token as authenticated."""


class NotServiceAccountError(TokenVerificationError):
    """The authenticated user is not in the service account group."""


class InvalidUsernameFormatError(TokenVerificationError):
    """The username is not ``system:serviceaccount:<ns>:<name>`` shaped."""


class InvalidTokenError(AttestorError):
    """The token presented in an attestation request is not valid."""


class AttestationStreamError(AttestorError):
    """Receiving from or sending on the attestation stream failed."""


__all__ = [
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
