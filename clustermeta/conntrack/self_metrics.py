"""Self-telemetry of the connection tracker, expressed as observations."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional, Protocol

CACHE_SIZE_METRIC = "kindling_telemetry_conntracker_cache_size"
CACHE_MAX_SIZE_METRIC = "kindling_telemetry_conntracker_cache_max_size"
OPERATION_TIMES_TOTAL = "kindling_telemetry_conntracker_operation_times_total"
ERRORS_TOTAL = "kindling_telemetry_conntracker_errors_total"
SAMPLING_RATE = "kindling_telemetry_conntracker_sampling_rate"
THROTTLES_TOTAL = "kindling_telemetry_conntracker_throttles_total"

GAUGE = "gauge"
COUNTER = "counter"


class _StatsSource(Protocol):
    def get_stats(self) -> dict[str, int]: ...


@dataclass
class Observation:
    """One observed value of a metric, with its attributes."""

    name: str
    kind: str
    value: int
    attributes: dict[str, str] = field(default_factory=dict)


# (metric, kind, stats key, attributes) in registration order.
_LAYOUT: tuple[tuple[str, str, str, dict[str, str]], ...] = (
    (CACHE_SIZE_METRIC, GAUGE, "state_size", {"type": "general"}),
    (CACHE_SIZE_METRIC, GAUGE, "orphan_size", {"type": "orphan"}),
    (CACHE_MAX_SIZE_METRIC, GAUGE, "cache_max_size", {}),
    (OPERATION_TIMES_TOTAL, COUNTER, "registers_total", {"op": "add"}),
    (OPERATION_TIMES_TOTAL, COUNTER, "registers_dropped", {"op": "drop"}),
    (OPERATION_TIMES_TOTAL, COUNTER, "unregisters_total", {"op": "remove"}),
    (OPERATION_TIMES_TOTAL, COUNTER, "gets_total", {"op": "get"}),
    (OPERATION_TIMES_TOTAL, COUNTER, "evicts_total", {"op": "evict"}),
    (ERRORS_TOTAL, COUNTER, "enobufs", {"type": "enobuf"}),
    (ERRORS_TOTAL, COUNTER, "read_errors", {"type": "read_errors"}),
    (ERRORS_TOTAL, COUNTER, "msg_errors", {"type": "msg_errors"}),
    (SAMPLING_RATE, GAUGE, "sampling_pct", {}),
    (THROTTLES_TOTAL, COUNTER, "throttles", {}),
)


class SelfMetrics:
    """Turns a tracker's statistics into metric observations.

    Statistics are fetched once per collection and kept in ``last_stats``.
    Missing statistics are observed as 0.
    """

    def __init__(self, conntracker: _StatsSource) -> None:
        self._conntracker = conntracker
        self.last_stats: Optional[dict[str, int]] = None

    def collect(self) -> list[Observation]:
        """Observe every metric from a single snapshot of the statistics."""
        stats = dict(self._conntracker.get_stats())
        self.last_stats = stats
        return [
            Observation(name, kind, stats.get(key, 0), dict(attributes))
            for name, kind, key, attributes in _LAYOUT
        ]