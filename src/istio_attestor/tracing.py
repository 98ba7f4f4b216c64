# Copyright (c) Istio Node Attestor Contributors. All rights reserved.
# Licensed under the MIT License.
"""
OpenTelemetry Tracing

Spans around attestation exchanges. Without an OTLP endpoint the global
no-op tracer provider stays in place and spans cost nothing.
"""

import os
from functools import wraps
from typing import Any, Callable, Optional, TypeVar

from opentelemetry import trace
from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor

F = TypeVar("F", bound=Callable[..., Any])

TRACER_NAME = "istio_attestor"


def setup_tracing(
    service_name: str = "istio-attestor",
    endpoint: Optional[str] = None,
    insecure: bool = False,
) -> bool:
    """
    Install an OTLP-exporting tracer provider.

    Args:
        service_name: Service name for traces
        endpoint: OTLP endpoint (default: from OTEL_EXPORTER_OTLP_ENDPOINT env)
        insecure: Whether to use an insecure connection

    Returns:
        True if a provider was installed, False if no endpoint is set.
    """
    endpoint = endpoint or os.getenv("OTEL_EXPORTER_OTLP_ENDPOINT")
    if not endpoint:
        return False

    resource = Resource.create({
        "service.name": service_name,
        "service.namespace": "spire",
    })
    provider = TracerProvider(resource=resource)
    provider.add_span_processor(
        BatchSpanProcessor(OTLPSpanExporter(endpoint=endpoint, insecure=insecure))
    )
    trace.set_tracer_provider(provider)
    return True


def get_tracer():
    """Get tracer instance."""
    return trace.get_tracer(TRACER_NAME)


def trace_operation(operation_name: str) -> Callable[[F], F]:
    """
    Decorator running a coroutine function inside a span.

    Failures are recorded on the span and re-raised unchanged.
    """
    def decorator(func):
        @wraps(func)
        async def wrapper(*args, **kwargs):
            with get_tracer().start_as_current_span(operation_name, record_exception=False) as span:
                span.set_attribute("operation.name", operation_name)
                try:
                    result = await func(*args, **kwargs)
                except Exception as e:
                    span.set_attribute("operation.status", "error")
                    span.set_attribute("error.type", type(e).__name__)
                    span.record_exception(e)
                    raise
                span.set_attribute("operation.status", "success")
                return result

        return wrapper

    return decorator


__all__ = [
    "get_tracer",
    "setup_tracing",
    "trace_operation",
]
