"""
Metrics collection for QuorumID.

Thread-safe counters, gauges and latency histograms with optional labels,
exportable as a dict or in Prometheus text format.
"""

import threading
import time
from collections import defaultdict
from dataclasses import dataclass, field
from typing import Any

METRIC_PREFIX = "quorumid"

# Default latency buckets in milliseconds
DEFAULT_BUCKETS = [1, 5, 10, 25, 50, 100, 250, 500, 1000]


@dataclass
class Histogram:
    """Cumulative bucket counts plus sum/count of observations."""

    name: str
    bounds: list[float] = field(default_factory=lambda: DEFAULT_BUCKETS + [float("inf")])
    counts: list[int] = field(default_factory=list)
    sum: float = 0.0
    count: int = 0

    def __post_init__(self):
        if not self.counts:
            self.counts = [0] * len(self.bounds)

    def observe(self, value: float) -> None:
        self.sum += value
        self.count += 1
        for i, bound in enumerate(self.bounds):
            if value <= bound:
                self.counts[i] += 1


class MetricsCollector:
    """Collects counters, gauges and histograms keyed by label set."""

    def __init__(self):
        self._lock = threading.RLock()
        self._counters: dict[str, dict[str, int]] = defaultdict(lambda: defaultdict(int))
        self._gauges: dict[str, dict[str, float]] = defaultdict(lambda: defaultdict(float))
        self._histograms: dict[str, dict[str, Histogram]] = defaultdict(dict)
        self._start_time = time.time()

    def _labels_key(self, labels: dict[str, str] | None) -> str:
        if not labels:
            return ""
        return ",".join(f'{k}="{v}"' for k, v in sorted(labels.items()))

    def increment(self, name: str, value: int = 1, labels: dict[str, str] | None = None) -> None:
        with self._lock:
            self._counters[name][self._labels_key(labels)] += value

    def get_counter(self, name: str, labels: dict[str, str] | None = None) -> int:
        with self._lock:
            return self._counters[name].get(self._labels_key(labels), 0)

    def set_gauge(self, name: str, value: float, labels: dict[str, str] | None = None) -> None:
        with self._lock:
            self._gauges[name][self._labels_key(labels)] = value

    def increment_gauge(
        self, name: str, value: float = 1.0, labels: dict[str, str] | None = None
    ) -> None:
        with self._lock:
            self._gauges[name][self._labels_key(labels)] += value

    def decrement_gauge(
        self, name: str, value: float = 1.0, labels: dict[str, str] | None = None
    ) -> None:
        with self._lock:
            self._gauges[name][self._labels_key(labels)] -= value

    def get_gauge(self, name: str, labels: dict[str, str] | None = None) -> float:
        with self._lock:
            return self._gauges[name].get(self._labels_key(labels), 0.0)

    def timing(self, name: str, value_ms: float, labels: dict[str, str] | None = None) -> None:
        with self._lock:
            key = self._labels_key(labels)
            if key not in self._histograms[name]:
                self._histograms[name][key] = Histogram(name=name)
            self._histograms[name][key].observe(value_ms)

    def get_all(self) -> dict[str, Any]:
        """Snapshot of every metric as plain data."""
        with self._lock:
            def flatten(values):
                if len(values) == 1 and "" in values:
                    return values[""]
                return dict(values)

            return {
                "uptime_seconds": time.time() - self._start_time,
                "counters": {n: flatten(v) for n, v in self._counters.items()},
                "gauges": {n: flatten(v) for n, v in self._gauges.items()},
                "histograms": {
                    name: {
                        (key or "_total"): {
                            "count": h.count,
                            "sum": h.sum,
                            "avg": h.sum / h.count if h.count else 0,
                        }
                        for key, h in hists.items()
                    }
                    for name, hists in self._histograms.items()
                },
            }

    def to_prometheus(self) -> str:
        """Export metrics in Prometheus text format."""
        lines = []
        with self._lock:
            lines.append(f"# TYPE {METRIC_PREFIX}_uptime_seconds gauge")
            lines.append(f"{METRIC_PREFIX}_uptime_seconds {time.time() - self._start_time:.2f}")

            for kind, store in (("counter", self._counters), ("gauge", self._gauges)):
                for name, values in store.items():
                    metric = f"{METRIC_PREFIX}_{name}"
                    lines.append(f"# TYPE {metric} {kind}")
                    for key, value in values.items():
                        lines.append(f"{metric}{{{key}}} {value}" if key else f"{metric} {value}")

            for name, hists in self._histograms.items():
                metric = f"{METRIC_PREFIX}_{name}"
                lines.append(f"# TYPE {metric} histogram")
                for key, hist in hists.items():
                    sep = f"{key}," if key else ""
                    for bound, count in zip(hist.bounds, hist.counts):
                        le = "+Inf" if bound == float("inf") else bound
                        lines.append(f'{metric}_bucket{{{sep}le="{le}"}} {count}')
                    suffix = f"{{{key}}}" if key else ""
                    lines.append(f"{metric}_sum{suffix} {hist.sum:.2f}")
                    lines.append(f"{metric}_count{suffix} {hist.count}")
        return "\n".join(lines) + "\n"

    def reset(self) -> None:
        """Reset all metrics (useful for testing)."""
        with self._lock:
            self._counters.clear()
            self._gauges.clear()
            self._histograms.clear()
            self._start_time = time.time()


# Global metrics instance
metrics = MetricsCollector()
