"""In-memory counters and latency histograms for container operations."""

import threading
from typing import Any

MUTATION_REMOTE = "mutation_remote"
MUTATION_FALLBACK = "mutation_fallback"
MUTATION_LOCAL = "mutation_local"
MUTATION_REJECTED = "mutation_rejected"
MUTATION_UNAUTHORIZED = "mutation_unauthorized"


class MetricsCollector:
    """
    Counters (plain or labelled by collection/category) and latency observations.
    Exposes increment, observe_latency, mutation_outcomes, export_metrics.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._counters: dict[str, float] = {}
        # name -> {"name:label=value" -> count}
        self._counters_by_labels: dict[str, dict[str, float]] = {}
        self._histograms: dict[str, list[float]] = {}

    def increment(
        self,
        name: str,
        value: float = 1.0,
        *,
        collection: str | None = None,
        category: str | None = None,
    ) -> None:
        """Increment a counter, optionally labelled by collection or failure category."""
        with self._lock:
            if collection is not None:
                key = f"{name}:collection={collection}"
            elif category is not None:
                key = f"{name}:category={category}"
            else:
                self._counters[name] = self._counters.get(name, 0) + value
                return
            labelled = self._counters_by_labels.setdefault(name, {})
            labelled[key] = labelled.get(key, 0) + value

    def observe_latency(
        self,
        name: str,
        latency_ms: float,
        *,
        operation: str | None = None,
    ) -> None:
        with self._lock:
            bucket = name if operation is None else f"{name}:operation={operation}"
            self._histograms.setdefault(bucket, []).append(latency_ms)

    def mutation_outcomes(self, collection: str) -> dict[str, float]:
        """Remote / fallback / local / rejected / unauthorized counts for one collection."""
        with self._lock:
            out: dict[str, float] = {}
            for name in (
                MUTATION_REMOTE,
                MUTATION_FALLBACK,
                MUTATION_LOCAL,
                MUTATION_REJECTED,
                MUTATION_UNAUTHORIZED,
            ):
                key = f"{name}:collection={collection}"
                out[name] = self._counters_by_labels.get(name, {}).get(key, 0)
            return out

    def export_metrics(self) -> dict[str, Any]:
        with self._lock:
            return {
                "counters": dict(self._counters),
                "counters_by_labels": {
                    k: dict(v) for k, v in self._counters_by_labels.items()
                },
                "histograms": {
                    k: {"count": len(v), "sum": sum(v), "values": list(v)}
                    for k, v in self._histograms.items()
                },
            }

    def reset(self) -> None:
        """Reset all metrics (for tests)."""
        with self._lock:
            self._counters.clear()
            self._counters_by_labels.clear()
            self._histograms.clear()
