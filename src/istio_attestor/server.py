# Copyright (c) Istio Node Attestor Contributors. All rights reserved.
# Licensed under the MIT License.
"""gRPC host for the Istio attestor.

Serves ``spire.server.nodeattestor.NodeAttestor`` with JSON-encoded
messages (no protobuf compilation required):

- ``Attest`` (stream/stream): ``{"attestationData": {"type", "data"}}`` in,
  ``{"valid", "baseSPIFFEID"}`` out. ``data`` is base64.
- ``Configure`` (unary): ``{"configuration": "<hcl>"}`` in, ``{}`` out.
- ``GetPluginInfo`` (unary): ``{}`` in, ``{"name", "version"}`` out.
"""

from __future__ import annotations

import base64
import binascii
import json
import logging
from typing import Any

import grpc
from grpc import aio as grpc_aio

from istio_attestor.attestor import IstioAttestorPlugin
from istio_attestor.exceptions import (
    AttestationStreamError,
    AttestorError,
    BackendUnavailableError,
    ConfigurationError,
    InvalidTokenError,
    MalformedRequestError,
    NotConfiguredError,
)
from istio_attestor.models import AttestationData, AttestationRequest, AttestResponse
from istio_attestor.transport import AttestStream

logger = logging.getLogger(__name__)

SERVICE_NAME = "spire.server.nodeattestor.NodeAttestor"

_STATUS_BY_ERROR: list[tuple[type[AttestorError], grpc.StatusCode]] = [
    (MalformedRequestError, grpc.StatusCode.INVALID_ARGUMENT),
    (ConfigurationError, grpc.StatusCode.INVALID_ARGUMENT),
    (NotConfiguredError, grpc.StatusCode.FAILED_PRECONDITION),
    (BackendUnavailableError, grpc.StatusCode.UNAVAILABLE),
    (InvalidTokenError, grpc.StatusCode.PERMISSION_DENIED),
    (AttestationStreamError, grpc.StatusCode.ABORTED),
]


# ---------------------------------------------------------------------------
# Serialisation helpers
# ---------------------------------------------------------------------------


def _decode_json(raw: bytes) -> dict[str, Any]:
    message = json.loads(raw.decode("utf-8")) if raw else {}
    if not isinstance(message, dict):
        raise ValueError("message must be a JSON object")
    return message


def _encode_json(message: dict[str, Any]) -> bytes:
    return json.dumps(message, separators=(",", ":")).encode("utf-8")


def decode_attestation_request(raw: bytes) -> AttestationRequest:
    """Decode a wire ``Attest`` request.

    Raises:
        MalformedRequestError: If the message is not the expected shape.
    """
    try:
        message = _decode_json(raw)
        data = message.get("attestationData") or {}
        payload = base64.b64decode(data.get("data", ""), validate=True)
        return AttestationRequest(
            attestation_data=AttestationData(type=data.get("type", ""), data=payload),
        )
    except (ValueError, TypeError, AttributeError, binascii.Error) as exc:
        raise MalformedRequestError(f"malformed attestation request: {exc}") from exc


def encode_attest_response(response: AttestResponse) -> bytes:
    return _encode_json({"valid": response.valid, "baseSPIFFEID": response.base_spiffe_id})


def status_for_error(exc: AttestorError) -> grpc.StatusCode:
    """Pick the gRPC status for an attestor error.

    Invalid tokens are mapped by their cause, so an unconfigured or
    unreachable backend is not reported as a permission problem.
    """
    if isinstance(exc, InvalidTokenError) and isinstance(exc.__cause__, AttestorError):
        cause_status = status_for_error(exc.__cause__)
        if cause_status in (grpc.StatusCode.FAILED_PRECONDITION, grpc.StatusCode.UNAVAILABLE):
            return cause_status
    for error_cls, code in _STATUS_BY_ERROR:
        if isinstance(exc, error_cls):
            return code
    return grpc.StatusCode.INTERNAL


# ---------------------------------------------------------------------------
# Stream adapter
# ---------------------------------------------------------------------------


class GRPCAttestStream(AttestStream):
    """``AttestStream`` over a grpc.aio stream-stream servicer context."""

    def __init__(self, context: grpc_aio.ServicerContext) -> None:
        self._context = context

    async def receive(self) -> AttestationRequest:
        message = await self._context.read()
        if message is grpc_aio.EOF:
            raise ConnectionError("stream closed before an attestation request was received")
        return message

    async def send(self, response: AttestResponse) -> None:
        await self._context.write(response)


# ---------------------------------------------------------------------------
# Servicer
# ---------------------------------------------------------------------------


class NodeAttestorServicer:
    """Routes gRPC calls to an ``IstioAttestorPlugin``."""

    def __init__(self, plugin: IstioAttestorPlugin) -> None:
        self.plugin = plugin

    async def attest(self, request_iterator: Any, context: grpc_aio.ServicerContext) -> None:
        try:
            await self.plugin.attest(GRPCAttestStream(context))
        except AttestorError as exc:
            await context.abort(status_for_error(exc), str(exc))

    async def configure(self, request: dict[str, Any], context: grpc_aio.ServicerContext) -> dict[str, Any]:
        configuration = request.get("configuration", "")
        try:
            if not isinstance(configuration, str):
                raise ConfigurationError("configuration must be a string")
            self.plugin.configure(configuration)
        except AttestorError as exc:
            logger.error("Configure failed: %s", exc)
            await context.abort(status_for_error(exc), str(exc))
        return {}

    async def get_plugin_info(self, request: dict[str, Any], context: grpc_aio.ServicerContext) -> dict[str, Any]:
        return self.plugin.get_plugin_info().model_dump()

    def generic_handler(self) -> grpc.GenericRpcHandler:
        """Build the generic handler registering all three methods."""
        return grpc.method_handlers_generic_handler(
            SERVICE_NAME,
            {
                "Attest": grpc.stream_stream_rpc_method_handler(
                    self.attest,
                    request_deserializer=decode_attestation_request,
                    response_serializer=encode_attest_response,
                ),
                "Configure": grpc.unary_unary_rpc_method_handler(
                    self.configure,
                    request_deserializer=_decode_json,
                    response_serializer=_encode_json,
                ),
                "GetPluginInfo": grpc.unary_unary_rpc_method_handler(
                    self.get_plugin_info,
                    request_deserializer=_decode_json,
                    response_serializer=_encode_json,
                ),
            },
        )


def add_attestor_servicer(server: grpc_aio.Server, plugin: IstioAttestorPlugin) -> None:
    """Register the node attestor service on ``server``."""
    server.add_generic_rpc_handlers((NodeAttestorServicer(plugin).generic_handler(),))


def create_server(plugin: IstioAttestorPlugin, address: str) -> grpc_aio.Server:
    """Create (but do not start) a gRPC server bound to ``address``."""
    server = grpc_aio.server()
    add_attestor_servicer(server, plugin)
    server.add_insecure_port(address)
    return server


async def serve(plugin: IstioAttestorPlugin, address: str) -> None:
    """Run the gRPC host until terminated."""
    server = create_server(plugin, address)
    await server.start()
    logger.info("Istio attestor listening on %s", address)
    try:
        await server.wait_for_termination()
    finally:
        await server.stop(grace=2)


__all__ = [
    "add_attestor_servicer",
    "GRPCAttestStream",
    "NodeAttestorServicer",
    "SERVICE_NAME",
    "create_server",
    "decode_attestation_request",
    "encode_attest_response",
    "serve",
    "status_for_error",
]
