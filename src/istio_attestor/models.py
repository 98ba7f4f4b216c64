# Copyright (c) Istio Node Attestor Contributors. All rights reserved.
# Licensed under the MIT License.
"""
Attestation Data Model

Messages exchanged with the identity server, the payload an Istio node
agent sends, and the backend-neutral view of a token review.
"""

from pydantic import BaseModel, ConfigDict, Field


class AttestationData(BaseModel):
    """Opaque attestation payload tagged with the attestor it is meant for."""

    model_config = ConfigDict(frozen=True)

    type: str = Field(..., description="Attestor name the payload is addressed to")
    data: bytes = Field(default=b"", description="Raw attestor-specific payload")


class AttestationRequest(BaseModel):
    """Inbound message of an attestation exchange."""

    model_config = ConfigDict(frozen=True)

    attestation_data: AttestationData


class AttestedData(BaseModel):
    """
    Payload sent by the Istio node agent.

    ``token`` is the service account JWT, possibly prefixed with
    ``"Bearer "``. ``trustDomain`` is copied verbatim into the SPIFFE ID.
    """

    model_config = ConfigDict(frozen=True)

    token: str
    trust_domain: str = Field(..., alias="trustDomain")


class Claims(BaseModel):
    """Namespace and service account proven by a token review."""

    model_config = ConfigDict(frozen=True)

    namespace: str = Field(..., min_length=1)
    service_account: str = Field(..., min_length=1)


class AttestResponse(BaseModel):
    """Outbound message of a successful attestation exchange."""

    model_config = ConfigDict(frozen=True)

    valid: bool
    base_spiffe_id: str


class UserInfo(BaseModel):
    """Authenticated principal returned by a token review."""

    model_config = ConfigDict(frozen=True)

    username: str = ""
    groups: list[str] = Field(default_factory=list)


class TokenReviewResult(BaseModel):
    """Status section of a token review."""

    model_config = ConfigDict(frozen=True)

    authenticated: bool = False
    error: str = ""
    user: UserInfo = Field(default_factory=UserInfo)


class PluginInfo(BaseModel):
    """Static plugin metadata."""

    model_config = ConfigDict(frozen=True)

    name: str
    version: str


__all__ = [
    "AttestationData",
    "AttestationRequest",
    "AttestedData",
    "Claims",
    "AttestResponse",
    "UserInfo",
    "TokenReviewResult",
    "PluginInfo",
]
