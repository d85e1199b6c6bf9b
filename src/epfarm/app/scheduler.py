"""Cycle scheduler: fetch, extract, predict, persist, report, rest."""

from __future__ import annotations

# pylint: disable=broad-exception-caught
import logging
import threading
import time
from collections.abc import Callable, Sequence
from concurrent.futures import FIRST_COMPLETED, Future, ThreadPoolExecutor, wait
from enum import Enum
from typing import TypeVar

from epfarm.app.pipeline import ExtractedRecord, PredictedRecord, RecordPipeline
from epfarm.app.stats import CycleStats, WorkerState
from epfarm.config import SchedulerSettings, SourceSettings
from epfarm.errors import CycleStageError, PersistenceFailure, SourceExhausted
from epfarm.models.prediction import WorkerStatus
from epfarm.models.record import RawRecord
from epfarm.ports.source_adapter import FetchBatchResult, SourceAdapter, SourceStatus
from epfarm.utils.logger import get_logger
from epfarm.utils.now import Now
from epfarm.utils.retry_policy import RetryPolicy

logger = get_logger(__name__)

_FETCH_POLL_S = 0.5

T = TypeVar("T")


class CycleStage(str, Enum):
    IDLE = "idle"
    FETCHING = "fetching"
    EXTRACTING = "extracting"
    PREDICTING = "predicting"
    PERSISTING = "persisting"
    REPORTING = "reporting"
    RESTING = "resting"


class CycleScheduler:
    """Drive repeated pipeline cycles until stopped.

    Sources are fetched concurrently, bounded by ``fetch_concurrency``. The
    scheduler owns the rotation index that decides which source's records
    come first. A failed stage aborts the cycle and the next one waits with
    capped exponential backoff; an empty fetch is not a failure. The dedup
    ledger is flushed when :meth:`run` returns, whatever the outcome.
    """

    def __init__(
        self,
        *,
        worker_id: str,
        sources: Sequence[SourceAdapter],
        pipeline: RecordPipeline,
        scheduler_settings: SchedulerSettings | None = None,
        source_settings: SourceSettings | None = None,
        clock: Callable[[], float] = time.monotonic,
        stop_event: threading.Event | None = None,
        log: logging.Logger | None = None,
    ) -> None:
        self._sources = list(sources)
        self._pipeline = pipeline
        self._settings = scheduler_settings or SchedulerSettings()
        self._source_settings = source_settings or SourceSettings()
        self._clock = clock
        self._stop = stop_event or threading.Event()
        self._logger = log or logger
        self._rotation = 0
        self._stage = CycleStage.IDLE
        self._state = WorkerState(worker_id=worker_id)
        self._backoff = RetryPolicy(
            max_attempts=1,
            base_delay=self._settings.failure_backoff_base_s,
            cap_delay=self._settings.failure_backoff_cap_s,
        )

    @property
    def stage(self) -> CycleStage:
        return self._stage

    @property
    def state(self) -> WorkerState:
        return self._state

    @property
    def rotation_index(self) -> int:
        return self._rotation

    @property
    def stop_event(self) -> threading.Event:
        return self._stop

    def request_stop(self) -> None:
        """Ask the loop to exit after the current cycle; safe from signal handlers."""
        self._stop.set()

    def backoff_delay(self) -> float:
        return self._backoff.delay_for(self._state.consecutive_failures)

    def rest_delay(self, elapsed: float) -> float:
        return max(self._settings.min_rest_s, self._settings.target_cycle_s - elapsed)

    def _enter(self, stage: CycleStage) -> None:
        self._stage = stage
        self._logger.debug("Cycle stage: %s", stage.value)

    def _ordered_sources(self) -> list[SourceAdapter]:
        if not self._sources:
            return []
        start = self._rotation % len(self._sources)
        self._rotation = (start + 1) % len(self._sources)
        return self._sources[start:] + self._sources[:start]

    def _fetch_all(self, exclude: frozenset[str], limit: int) -> list[FetchBatchResult]:
        ordered = self._ordered_sources()
        if not ordered:
            return []
        workers = max(1, min(self._source_settings.fetch_concurrency, len(ordered)))
        results: dict[int, FetchBatchResult] = {}
        executor = ThreadPoolExecutor(max_workers=workers, thread_name_prefix="epfarm-fetch")
        futures: dict[Future[FetchBatchResult], int] = {
            executor.submit(source.fetch_batch, exclude, limit): index
            for index, source in enumerate(ordered)
        }
        pending = set(futures)
        stop_seen_at: float | None = None
        try:
            while pending:
                done, pending = wait(pending, timeout=_FETCH_POLL_S, return_when=FIRST_COMPLETED)
                for future in done:
                    index = futures[future]
                    results[index] = self._result_of(future, ordered[index].name)
                if not pending or not self._stop.is_set():
                    continue
                if stop_seen_at is None:
                    stop_seen_at = self._clock()
                elif self._clock() - stop_seen_at >= self._settings.shutdown_grace_s:
                    self._logger.warning(
                        "Shutdown grace period elapsed; abandoning %s in-flight fetches",
                        len(pending),
                    )
                    for future in pending:
                        index = futures[future]
                        results[index] = FetchBatchResult(
                            source=ordered[index].name, status=SourceStatus.UNAVAILABLE
                        )
                    break
        finally:
            executor.shutdown(wait=not pending, cancel_futures=True)
        return [results[index] for index in sorted(results)]

    def _result_of(self, future: Future[FetchBatchResult], name: str) -> FetchBatchResult:
        try:
            return future.result()
        except Exception as exc:
            self._logger.error("Source %s raised during fetch: %s", name, exc)
            return FetchBatchResult(source=name, status=SourceStatus.UNAVAILABLE)

    def _merge(
        self,
        batches: list[FetchBatchResult],
        limit: int,
        stats: CycleStats,
    ) -> list[RawRecord]:
        ledger = self._pipeline.ledger
        merged: list[RawRecord] = []
        seen: set[str] = set()
        for batch in batches:
            stats.source_status[batch.source] = batch.status
            if batch.status is not SourceStatus.OK:
                self._logger.warning(
                    "Source %s exhausted this cycle (status=%s, identities tried=%s)",
                    batch.source,
                    batch.status.value,
                    len(batch.identities_tried),
                )
            for record in batch.records:
                forms = record.record_id.forms()
                if any(form in seen for form in forms) or ledger.is_known(record.record_id):
                    continue
                seen.update(forms)
                merged.append(record)
        return merged[:limit]

    def _run_stage(self, stage: CycleStage, action: Callable[[], T]) -> T:
        self._enter(stage)
        try:
            return action()
        except (CycleStageError, SourceExhausted):
            raise
        except Exception as exc:
            raise CycleStageError(stage.value, exc) from exc

    def run_cycle(self) -> CycleStats:
        """Run one cycle and return its stats.

        Raises:
            SourceExhausted: When no source produced a usable record.
            CycleStageError: When a stage failed as a whole.
        """

        stats = CycleStats()
        limit = self._source_settings.batch_limit
        pipeline = self._pipeline

        def fetch() -> list[RawRecord]:
            exclude = pipeline.ledger.build_exclusion_set()
            return self._merge(self._fetch_all(exclude, limit), limit, stats)

        records = self._run_stage(CycleStage.FETCHING, fetch)
        stats.fetched = len(records)
        if not records:
            raise SourceExhausted("No source yielded usable records this cycle")

        extracted: list[ExtractedRecord] = self._run_stage(
            CycleStage.EXTRACTING,
            lambda: [
                item for item in (pipeline.extract(raw, stats) for raw in records) if item
            ],
        )
        predicted: list[PredictedRecord] = self._run_stage(
            CycleStage.PREDICTING,
            lambda: [
                item for item in (pipeline.predict(entry, stats) for entry in extracted) if item
            ],
        )
        self._run_stage(
            CycleStage.PERSISTING,
            lambda: [pipeline.persist(item, stats) for item in predicted],
        )
        return stats

    def _report(self, stats: CycleStats | None, error: str | None = None) -> None:
        self._enter(CycleStage.REPORTING)
        counts = self._pipeline.sink.accuracy.snapshot()
        if stats is not None:
            self._logger.info(
                "Cycle %s: fetched=%s saved=%s conflicts=%s dropped=%s failed=%s "
                "baseline=%s/%s hybrid=%s/%s | totals saved=%s baseline=%.1f%% hybrid=%.1f%% "
                "both=%s neither=%s baseline_only=%s hybrid_only=%s",
                self._state.cycles_completed,
                stats.fetched,
                stats.saved,
                stats.conflicts,
                stats.dropped,
                stats.persist_failures + stats.errors,
                stats.baseline_correct,
                stats.saved,
                stats.hybrid_correct,
                stats.saved,
                self._state.records_saved,
                counts.baseline_accuracy * 100,
                counts.hybrid_accuracy * 100,
                counts.both_correct,
                counts.both_wrong,
                counts.baseline_only,
                counts.hybrid_only,
            )
        if error is not None:
            self._logger.error(
                "Cycle failed (%s consecutive): %s", self._state.consecutive_failures, error
            )
        status = WorkerStatus(
            worker_id=self._state.worker_id,
            cycles_completed=self._state.cycles_completed,
            records_saved=self._state.records_saved,
            accuracy=counts.as_dict(),
            last_heartbeat_at=Now.as_datetime(),
        )
        try:
            self._pipeline.sink.heartbeat(status)
        except PersistenceFailure as exc:
            self._logger.warning("Heartbeat upsert failed: %s", exc)

    def _rest(self, seconds: float) -> None:
        self._enter(CycleStage.RESTING)
        if seconds > 0:
            self._logger.info("Resting %.1fs", seconds)
            self._stop.wait(seconds)

    def run(self, max_cycles: int | None = None) -> WorkerState:
        """Loop until stopped or ``max_cycles`` cycles have run."""
        limit = max_cycles if max_cycles is not None else self._settings.max_cycles
        attempted = 0
        try:
            while not self._stop.is_set():
                started = self._clock()
                attempted += 1
                try:
                    stats = self.run_cycle()
                except SourceExhausted as exc:
                    self._logger.warning("%s", exc)
                    stats = CycleStats()
                    self._state.absorb(stats)
                    self._report(stats)
                except CycleStageError as exc:
                    self._state.record_failure(str(exc))
                    self._report(None, error=str(exc))
                    if limit is not None and attempted >= limit:
                        break
                    self._rest(self.backoff_delay())
                    continue
                else:
                    self._state.absorb(stats)
                    self._report(stats)
                if limit is not None and attempted >= limit:
                    break
                self._rest(self.rest_delay(self._clock() - started))
        finally:
            self._enter(CycleStage.IDLE)
            self._pipeline.ledger.flush()
            self._logger.info(
                "Worker %s stopped after %s cycles (%s failed), %s records saved",
                self._state.worker_id,
                self._state.cycles_completed,
                self._state.cycles_failed,
                self._state.records_saved,
            )
        return self._state
