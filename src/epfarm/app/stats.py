"""Per-cycle counters and the per-worker state they reduce into."""

from __future__ import annotations

from dataclasses import dataclass, field

from epfarm.ports.source_adapter import SourceStatus


@dataclass(slots=True)
class CycleStats:
    """Counters for a single cycle; a fresh instance is created every cycle."""

    fetched: int = 0
    saved: int = 0
    conflicts: int = 0
    dropped: int = 0
    persist_failures: int = 0
    errors: int = 0
    baseline_correct: int = 0
    hybrid_correct: int = 0
    source_status: dict[str, SourceStatus] = field(default_factory=dict)
    drop_reasons: dict[str, int] = field(default_factory=dict)

    def record_drop(self, reason: str) -> None:
        self.dropped += 1
        self.drop_reasons[reason] = self.drop_reasons.get(reason, 0) + 1


@dataclass(slots=True)
class WorkerState:
    """Totals for the life of the worker process."""

    worker_id: str
    cycles_completed: int = 0
    cycles_failed: int = 0
    consecutive_failures: int = 0
    records_fetched: int = 0
    records_saved: int = 0
    records_dropped: int = 0
    last_stats: CycleStats | None = None
    last_error: str | None = None

    def absorb(self, stats: CycleStats) -> None:
        self.cycles_completed += 1
        self.consecutive_failures = 0
        self.records_fetched += stats.fetched
        self.records_saved += stats.saved
        self.records_dropped += stats.dropped
        self.last_stats = stats
        self.last_error = None

    def record_failure(self, error: str) -> None:
        self.cycles_failed += 1
        self.consecutive_failures += 1
        self.last_error = error
