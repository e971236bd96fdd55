"""Observability layer: in-process metrics. No external SaaS."""

from blindstore.observability.metrics import MetricsCollector

__all__ = [
    "MetricsCollector",
]
