"""Relay metrics collection.

Prometheus-compatible counters and gauges for the relay, exposed by the
server at ``/relay/metrics``.

Example:
    >>> from scanrelay.observability.metrics import MetricsCollector
    >>> collector = MetricsCollector()
    >>> collector.increment_counter("scanrelay_connections_total", {"role": "scanner"})
    >>> collector.set_gauge("scanrelay_active_connections", 1, {"role": "scanner"})
    >>> "scanrelay_connections_total" in collector.export_prometheus()
    True
"""

from __future__ import annotations

import threading
import time
from dataclasses import dataclass, field
from typing import ClassVar

LabelKey = tuple[tuple[str, str], ...]


def _label_key(labels: dict[str, str] | None) -> LabelKey:
    return tuple(sorted((labels or {}).items()))


@dataclass
class Counter:
    """A monotonically increasing counter metric.

    Attributes:
        name: Metric name
        help_text: Human-readable description
        values: Dictionary mapping label combinations to counts
    """

    name: str
    help_text: str
    values: dict[LabelKey, float] = field(default_factory=dict)
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False)

    def increment(self, labels: dict[str, str] | None = None, value: float = 1.0) -> None:
        label_key = _label_key(labels)
        with self._lock:
            self.values[label_key] = self.values.get(label_key, 0.0) + value

    def get(self, labels: dict[str, str] | None = None) -> float:
        with self._lock:
            return self.values.get(_label_key(labels), 0.0)


@dataclass
class Gauge:
    """A metric that can go up and down (e.g. open connections)."""

    name: str
    help_text: str
    values: dict[LabelKey, float] = field(default_factory=dict)
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False)

    def set(self, value: float, labels: dict[str, str] | None = None) -> None:
        with self._lock:
            self.values[_label_key(labels)] = float(value)

    def get(self, labels: dict[str, str] | None = None) -> float:
        with self._lock:
            return self.values.get(_label_key(labels), 0.0)


class MetricsCollector:
    """Collects and exports relay metrics in Prometheus text format."""

    DEFAULT_COUNTERS: ClassVar[dict[str, str]] = {
        "scanrelay_connections_total": "Total number of accepted relay connections",
        "scanrelay_connections_rejected_total": "Total number of upgrades rejected for an invalid path",
        "scanrelay_evictions_total": "Total number of connections superseded by a newer one",
        "scanrelay_barcodes_forwarded_total": "Total number of barcodes forwarded to a POS",
        "scanrelay_commands_forwarded_total": "Total number of commands forwarded to a scanner",
        "scanrelay_commands_dropped_total": "Total number of commands dropped for lack of a scanner",
        "scanrelay_missing_peer_total": "Total number of barcodes rejected for lack of a POS",
        "scanrelay_forward_errors_total": "Total number of failed forwards",
        "scanrelay_malformed_frames_total": "Total number of frames that could not be decoded",
        "scanrelay_unknown_messages_total": "Total number of frames with an unrecognized type",
        "scanrelay_heartbeat_terminations_total": "Total number of connections closed by the heartbeat",
    }

    DEFAULT_GAUGES: ClassVar[dict[str, str]] = {
        "scanrelay_active_connections": "Currently registered connections",
    }

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._counters: dict[str, Counter] = {
            name: Counter(name=name, help_text=help_text)
            for name, help_text in self.DEFAULT_COUNTERS.items()
        }
        self._gauges: dict[str, Gauge] = {
            name: Gauge(name=name, help_text=help_text)
            for name, help_text in self.DEFAULT_GAUGES.items()
        }
        self._start_time = time.time()

    def increment_counter(
        self, name: str, labels: dict[str, str] | None = None, value: float = 1.0
    ) -> None:
        with self._lock:
            if name in self._counters:
                self._counters[name].increment(labels, value)

    def set_gauge(self, name: str, value: float, labels: dict[str, str] | None = None) -> None:
        with self._lock:
            if name in self._gauges:
                self._gauges[name].set(value, labels)

    def get_counter(self, name: str, labels: dict[str, str] | None = None) -> float:
        with self._lock:
            if name in self._counters:
                return self._counters[name].get(labels)
            return 0.0

    def get_gauge(self, name: str, labels: dict[str, str] | None = None) -> float:
        with self._lock:
            if name in self._gauges:
                return self._gauges[name].get(labels)
            return 0.0

    def _format_labels(self, labels: LabelKey) -> str:
        if not labels:
            return ""

        def escape_label_value(value: str) -> str:
            value = value.replace("\\", "\\\\")
            return value.replace('"', '\\"')

        parts = [f'{k}="{escape_label_value(v)}"' for k, v in labels]
        return "{" + ",".join(parts) + "}"

    def export_prometheus(self) -> str:
        """Export all metrics in Prometheus text format."""
        lines: list[str] = []

        with self._lock:
            metrics: list[tuple[str, Counter | Gauge]] = [
                *(("counter", c) for c in self._counters.values()),
                *(("gauge", g) for g in self._gauges.values()),
            ]
            for kind, metric in metrics:
                lines.append(f"# HELP {metric.name} {metric.help_text}")
                lines.append(f"# TYPE {metric.name} {kind}")
                if not metric.values:
                    lines.append(f"{metric.name} 0")
                    continue
                for label_key, value in metric.values.items():
                    lines.append(f"{metric.name}{self._format_labels(label_key)} {value}")

            uptime = time.time() - self._start_time
            lines.append("# HELP scanrelay_process_uptime_seconds Time since server start")
            lines.append("# TYPE scanrelay_process_uptime_seconds gauge")
            lines.append(f"scanrelay_process_uptime_seconds {uptime:.3f}")

        return "\n".join(lines) + "\n"

    def reset(self) -> None:
        """Reset all metrics to zero. Useful for testing."""
        with self._lock:
            for counter in self._counters.values():
                counter.values.clear()
            for gauge in self._gauges.values():
                gauge.values.clear()


# Global metrics collector instance
_metrics_collector: MetricsCollector | None = None
_collector_lock = threading.Lock()


def get_metrics() -> MetricsCollector:
    """Get the global metrics collector instance."""
    global _metrics_collector
    with _collector_lock:
        if _metrics_collector is None:
            _metrics_collector = MetricsCollector()
        return _metrics_collector


def reset_metrics() -> None:
    """Reset the global metrics collector. Useful for testing."""
    global _metrics_collector
    with _collector_lock:
        if _metrics_collector is not None:
            _metrics_collector.reset()
