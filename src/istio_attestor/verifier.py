# Copyright (c) Istio Node Attestor Contributors. All rights reserved.
# Licensed under the MIT License.
"""
Token Verifier

Turns a bearer token into the namespace and service account it was
issued for, using a token review. Every rejection raises its own error
type; nothing is reported as a soft failure.
"""

import asyncio
import logging
import time

from istio_attestor.client_manager import ClientManager
from istio_attestor.exceptions import (
    AuthenticationStatusError,
    BackendUnavailableError,
    InvalidUsernameFormatError,
    NotAuthenticatedError,
    NotServiceAccountError,
)
from istio_attestor.metrics import get_metrics
from istio_attestor.models import Claims, TokenReviewResult

logger = logging.getLogger(__name__)

BEARER_PREFIX = "Bearer "
SERVICE_ACCOUNT_GROUP = "system:serviceaccounts"
USERNAME_SEPARATOR = ":"
USERNAME_FIELD_COUNT = 4


def strip_bearer_prefix(token: str) -> str:
    """Remove one leading ``"Bearer "``; the match is case-sensitive."""
    if token.startswith(BEARER_PREFIX):
        return token[len(BEARER_PREFIX):]
    return token


def claims_from_review(result: TokenReviewResult) -> Claims:
    """Interpret a token review result.

    Raises:
        AuthenticationStatusError: The status carries an error string.
        NotAuthenticatedError: The token is not authenticated.
        NotServiceAccountError: The user is not in ``system:serviceaccounts``.
        InvalidUsernameFormatError: The username does not have exactly
            four colon-separated fields.
    """
    if result.error:
        raise AuthenticationStatusError(
            f"service account authentication status error: {result.error}"
        )

    if not result.authenticated:
        raise NotAuthenticatedError("token is not authenticated")

    if SERVICE_ACCOUNT_GROUP not in result.user.groups:
        raise NotServiceAccountError("the token is not a service account")

    # system:serviceaccount:<namespace>:<service account>
    fields = result.user.username.split(USERNAME_SEPARATOR)
    if len(fields) != USERNAME_FIELD_COUNT:
        raise InvalidUsernameFormatError("token review returned an invalid username field")

    namespace, service_account = fields[2], fields[3]
    if not namespace or not service_account:
        raise InvalidUsernameFormatError("token review returned an invalid username field")

    return Claims(namespace=namespace, service_account=service_account)


class TokenVerifier:
    """Verifies bearer tokens against the configured identity authority."""

    def __init__(self, client_manager: ClientManager):
        self.client_manager = client_manager

    async def verify(self, raw_token: str) -> Claims:
        """Verify ``raw_token`` and return its claims.

        The token review runs in a worker thread; cancelling the awaiting
        task cancels the verification. No timeout or retry is applied.

        Raises:
            NotConfiguredError: No identity authority is configured.
            BackendUnavailableError: The token review call failed.
            TokenVerificationError: One of its subclasses, when the
                review rejects the token.
        """
        token = strip_bearer_prefix(raw_token)
        handle = self.client_manager.get_handle()

        started = time.perf_counter()
        try:
            result = await asyncio.to_thread(handle.create_token_review, token)
        except BackendUnavailableError:
            raise
        except Exception as exc:
            logger.warning("Token review request failed: %s", exc)
            raise BackendUnavailableError(
                f"could not get a token review response: {exc}"
            ) from exc
        finally:
            get_metrics().observe_token_review(time.perf_counter() - started)

        return claims_from_review(result)


__all__ = [
    "BEARER_PREFIX",
    "SERVICE_ACCOUNT_GROUP",
    "TokenVerifier",
    "claims_from_review",
    "strip_bearer_prefix",
]
