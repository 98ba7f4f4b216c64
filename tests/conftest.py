"""Shared fixtures for the Istio attestor tests."""

import json
from typing import Optional

import pytest

from istio_attestor.authority import IdentityAuthority
from istio_attestor.client_manager import ClientManager
from istio_attestor.models import (
    AttestationData,
    AttestationRequest,
    TokenReviewResult,
    UserInfo,
)

SERVICE_ACCOUNT_GROUPS = ["system:serviceaccounts", "system:serviceaccounts:payments", "system:authenticated"]


def _review(
    username: str = "system:serviceaccount:payments:checkout-sa",
    groups: Optional[list[str]] = None,
    authenticated: bool = True,
    error: str = "",
) -> TokenReviewResult:
    return TokenReviewResult(
        authenticated=authenticated,
        error=error,
        user=UserInfo(
            username=username,
            groups=SERVICE_ACCOUNT_GROUPS if groups is None else groups,
        ),
    )


def _attestation_request(
    token: str = "Bearer header.payload.signature",
    trust_domain: str = "example.org",
    attestation_type: str = "istio",
) -> AttestationRequest:
    payload = json.dumps({"token": token, "trustDomain": trust_domain}).encode("utf-8")
    return AttestationRequest(
        attestation_data=AttestationData(type=attestation_type, data=payload),
    )


class _FakeAuthority(IdentityAuthority):
    """Records reviewed tokens and answers with a fixed result or error."""

    def __init__(self, result: Optional[TokenReviewResult] = None, error: Optional[Exception] = None, source: str = ""):
        self.result = result if result is not None else _review()
        self.error = error
        self.source = source
        self.tokens: list[str] = []

    def create_token_review(self, token: str) -> TokenReviewResult:
        self.tokens.append(token)
        if self.error is not None:
            raise self.error
        return self.result


@pytest.fixture
def make_review():
    """Factory for token review results, authenticated service account by default."""
    return _review


@pytest.fixture
def make_request():
    """Factory for ``istio`` attestation requests."""
    return _attestation_request


@pytest.fixture
def make_authority():
    """Factory for in-memory identity authorities."""
    return _FakeAuthority


@pytest.fixture
def authority() -> _FakeAuthority:
    return _FakeAuthority()


@pytest.fixture
def manager(authority: _FakeAuthority) -> ClientManager:
    """A client manager already configured with ``authority``."""
    manager = ClientManager(factory=lambda path: authority)
    manager.configure("")
    return manager
