# Copyright (c) Istio Node Attestor Contributors. All rights reserved.
# Licensed under the MIT License.
"""Abstract attestation stream.

An attestation exchange is one inbound ``AttestationRequest`` followed by
one outbound ``AttestResponse``. Hosts (the gRPC server, the CLI, tests)
provide the stream; the attestor never depends on how it is carried.
"""

import asyncio
from abc import ABC, abstractmethod
from typing import Optional

from istio_attestor.models import AttestationRequest, AttestResponse


class AttestStream(ABC):
    """Per-exchange bidirectional channel."""

    @abstractmethod
    async def receive(self) -> AttestationRequest:
        """Receive the inbound request.

        Raises:
            ConnectionError: If the peer went away before sending one.
            MalformedRequestError: If the inbound message cannot be decoded.
        """

    @abstractmethod
    async def send(self, response: AttestResponse) -> None:
        """Send the outbound response.

        Raises:
            ConnectionError: If the response cannot be delivered.
        """


class QueueAttestStream(AttestStream):
    """In-process stream backed by an asyncio queue.

    Args:
        request: Optional request to enqueue immediately.
    """

    def __init__(self, request: Optional[AttestationRequest] = None) -> None:
        self._requests: asyncio.Queue[AttestationRequest] = asyncio.Queue()
        self.responses: list[AttestResponse] = []
        self._closed = False
        if request is not None:
            self._requests.put_nowait(request)

    def put(self, request: AttestationRequest) -> None:
        """Enqueue an inbound request."""
        self._requests.put_nowait(request)

    def close(self) -> None:
        """Refuse further sends and receives on an empty queue."""
        self._closed = True

    async def receive(self) -> AttestationRequest:
        if self._closed and self._requests.empty():
            raise ConnectionError("attestation stream is closed")
        return await self._requests.get()

    async def send(self, response: AttestResponse) -> None:
        if self._closed:
            raise ConnectionError("attestation stream is closed")
        self.responses.append(response)


__all__ = [
    "AttestStream",
    "QueueAttestStream",
]
