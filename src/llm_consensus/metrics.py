"""Prometheus export of engine events."""

from __future__ import annotations

from collections.abc import Mapping
import logging
from threading import Lock
from typing import Any, Protocol

LOGGER = logging.getLogger(__name__)


class MetricsExporter(Protocol):
    """Protocol for metrics exporters that consume structured events."""

    def handle_event(self, event_type: str, record: Mapping[str, Any]) -> None:
        """Process a structured metrics ``record`` for ``event_type``."""


class MetricsEventLogger:
    """``EventLogger`` that forwards every event to registered exporters."""

    def __init__(self, exporters: list[MetricsExporter] | None = None) -> None:
        self._exporters: list[MetricsExporter] = list(exporters or ())
        self._lock = Lock()

    def register(self, exporter: MetricsExporter) -> None:
        with self._lock:
            self._exporters.append(exporter)

    def clear(self) -> None:
        """Remove all exporters (primarily for tests)."""

        with self._lock:
            self._exporters.clear()

    def emit(self, event_type: str, record: Mapping[str, Any]) -> None:
        with self._lock:
            exporters = tuple(self._exporters)

        for exporter in exporters:
            try:
                exporter.handle_event(event_type, record)
            except Exception:  # noqa: BLE001
                LOGGER.exception("metrics exporter %r failed for %s", exporter, event_type)


def _non_negative(value: object) -> float | None:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    if value < 0:
        return None
    return float(value)


class PrometheusMetricsExporter:
    """Translate engine events into Prometheus counters and histograms."""

    def __init__(self, namespace: str = "llm_consensus") -> None:
        try:
            from prometheus_client import Counter, Histogram
        except ModuleNotFoundError as exc:  # pragma: no cover - optional dep
            raise RuntimeError(
                "prometheus_client is required to use PrometheusMetricsExporter"
            ) from exc

        self._provider_outcome_total = Counter(
            f"{namespace}_provider_outcome_total",
            "Provider outcomes by status.",
            ("provider", "status", "authoritative"),
        )
        self._provider_latency_ms = Histogram(
            f"{namespace}_provider_latency_ms",
            "Latency of provider calls (ms).",
            ("provider", "status"),
        )
        self._execution_total = Counter(
            f"{namespace}_execution_total",
            "Consensus executions by final status.",
            ("status", "synthesis_method"),
        )
        self._execution_latency_ms = Histogram(
            f"{namespace}_execution_latency_ms",
            "End-to-end latency of consensus executions (ms).",
            ("status",),
        )
        self._consensus_score = Histogram(
            f"{namespace}_consensus_score",
            "Consensus score of successful executions.",
            ("synthesis_method",),
            buckets=(0.1, 0.2, 0.3, 0.4, 0.5, 0.6, 0.7, 0.8, 0.9, 1.0),
        )

    def handle_event(self, event_type: str, record: Mapping[str, Any]) -> None:
        if event_type == "provider_outcome":
            provider = str(record.get("provider") or "unknown")
            status = str(record.get("status") or "unknown")
            authoritative = "true" if record.get("authoritative", True) else "false"
            self._provider_outcome_total.labels(
                provider=provider, status=status, authoritative=authoritative
            ).inc()
            latency_ms = _non_negative(record.get("latency_ms"))
            if latency_ms is not None and authoritative == "true":
                self._provider_latency_ms.labels(provider=provider, status=status).observe(
                    latency_ms
                )

        elif event_type == "consensus_execution":
            status = str(record.get("status") or "unknown")
            method = str(record.get("synthesis_method") or "unknown")
            self._execution_total.labels(status=status, synthesis_method=method).inc()
            latency_ms = _non_negative(record.get("latency_ms"))
            if latency_ms is not None:
                self._execution_latency_ms.labels(status=status).observe(latency_ms)
            score = _non_negative(record.get("consensus_score"))
            if score is not None:
                self._consensus_score.labels(synthesis_method=method).observe(score)


__all__ = ["MetricsEventLogger", "MetricsExporter", "PrometheusMetricsExporter"]
