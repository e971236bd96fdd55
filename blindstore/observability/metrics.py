"""Prometheus-style metrics collector. Thread-safe, in-memory. No real Prometheus dependency."""

import threading
from typing import Any


class MetricsCollector:
    """
    In-memory Prometheus-style registry. Tracks counters and latency histograms.
    Thread-safe. Exposes increment, observe_latency, counter, export_metrics.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._counters: dict[str, float] = {}
        # name -> {"name:operation=read" -> value}
        self._counters_by_labels: dict[str, dict[str, float]] = {}
        self._histograms: dict[str, list[float]] = {}

    def increment(
        self,
        name: str,
        value: float = 1.0,
        *,
        operation: str | None = None,
    ) -> None:
        """Increment a counter. Optional operation label (read, write, purge, sweep)."""
        with self._lock:
            if operation is not None:
                key = f"{name}:operation={operation}"
                labelled = self._counters_by_labels.setdefault(name, {})
                labelled[key] = labelled.get(key, 0) + value
            else:
                self._counters[name] = self._counters.get(name, 0) + value

    def counter(self, name: str, *, operation: str | None = None) -> float:
        """Current value of a counter (0 if never incremented)."""
        with self._lock:
            if operation is not None:
                return self._counters_by_labels.get(name, {}).get(f"{name}:operation={operation}", 0)
            return self._counters.get(name, 0)

    def observe_latency(
        self,
        name: str,
        latency_ms: float,
        *,
        operation: str | None = None,
    ) -> None:
        """Record a latency observation (histogram-style)."""
        with self._lock:
            bucket = name if operation is None else f"{name}:operation={operation}"
            self._histograms.setdefault(bucket, []).append(latency_ms)

    def export_metrics(self) -> dict[str, Any]:
        """Export all metrics as a dict (simulated Prometheus-style)."""
        with self._lock:
            return {
                "counters": dict(self._counters),
                "counters_by_labels": {
                    k: dict(v) for k, v in self._counters_by_labels.items()
                },
                "histograms": {
                    k: {
                        "count": len(v),
                        "sum": sum(v),
                        "max": max(v) if v else 0,
                    }
                    for k, v in self._histograms.items()
                },
            }

    def reset(self) -> None:
        """Reset all metrics (for tests)."""
        with self._lock:
            self._counters.clear()
            self._counters_by_labels.clear()
            self._histograms.clear()
