# Copyright (c) Istio Node Attestor Contributors. All rights reserved.
# Licensed under the MIT License.
"""
Prometheus Metrics

Exposes:
- istio_attestor_attestations_total{result="success|<error class>"}
- istio_attestor_configure_total{result="success|error"}
- istio_attestor_token_review_duration_seconds
"""

import threading
from typing import Optional

from prometheus_client import REGISTRY, CollectorRegistry, Counter, Histogram, start_http_server


class AttestorMetrics:
    """Prometheus metrics for attestation exchanges.

    Args:
        registry: Registry to register collectors in. Defaults to the
            global prometheus_client registry.
        prefix: Metric name prefix.
    """

    def __init__(
        self,
        registry: Optional[CollectorRegistry] = None,
        prefix: str = "istio_attestor",
    ) -> None:
        registry = registry if registry is not None else REGISTRY
        self.attestations_total = Counter(
            f"{prefix}_attestations_total",
            "Attestation exchanges by result",
            ["result"],
            registry=registry,
        )
        self.configure_total = Counter(
            f"{prefix}_configure_total",
            "Configure calls by result",
            ["result"],
            registry=registry,
        )
        self.token_review_duration = Histogram(
            f"{prefix}_token_review_duration_seconds",
            "Token review call latency in seconds",
            registry=registry,
        )

    def record_attestation(self, result: str) -> None:
        """Count one finished exchange.

        Args:
            result: ``success`` or the name of the error class.
        """
        self.attestations_total.labels(result=result).inc()

    def record_configure(self, result: str) -> None:
        self.configure_total.labels(result=result).inc()

    def observe_token_review(self, duration_seconds: float) -> None:
        self.token_review_duration.observe(duration_seconds)


_metrics: Optional[AttestorMetrics] = None
_metrics_lock = threading.Lock()


def get_metrics() -> AttestorMetrics:
    """Get the process-wide metrics, creating them on first use."""
    global _metrics

    with _metrics_lock:
        if _metrics is None:
            _metrics = AttestorMetrics()
        return _metrics


def start_metrics_server(port: int = 9090) -> None:
    """Start the Prometheus HTTP exposition server.

    Args:
        port: Port to listen on (default: 9090).
    """
    get_metrics()
    start_http_server(port)


__all__ = [
    "AttestorMetrics",
    "get_metrics",
    "start_metrics_server",
]
