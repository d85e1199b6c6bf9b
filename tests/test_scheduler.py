import logging
import threading

import pytest

from epfarm.app import CycleScheduler, CycleStage
from epfarm.app.wiring import build_pipeline
from epfarm.chess_clients import MockSourceClient, SourceClientContext
from epfarm.db import DedupLedger
from epfarm.errors import CycleStageError, SourceExhausted
from epfarm.ports.source_adapter import SourceStatus

from tests.epfarm_samples import InMemoryPredictionRepository, make_record, make_settings
from tests.http_fakes import make_http_error

TEST_LOGGER = logging.getLogger("test.scheduler")


class RecordingEvent(threading.Event):
    """Stop event whose waits return at once and are recorded."""

    def __init__(self, stop_after: int | None = None) -> None:
        super().__init__()
        self.waits: list[float] = []
        self._stop_after = stop_after

    def wait(self, timeout: float | None = None) -> bool:
        self.waits.append(timeout)
        if self._stop_after is not None and len(self.waits) >= self._stop_after:
            self.set()
        return self.is_set()


class FlakyLedger(DedupLedger):
    """Ledger whose exclusion snapshot fails for the listed cycle numbers."""

    def __init__(self, path, failing_cycles: set[int]) -> None:
        super().__init__(path)
        self.failing_cycles = failing_cycles
        self.cycle = 0

    def build_exclusion_set(self) -> frozenset[str]:
        self.cycle += 1
        if self.cycle in self.failing_cycles:
            raise OSError("ledger volume unavailable")
        return super().build_exclusion_set()


@pytest.fixture
def settings(tmp_path):
    return make_settings(tmp_path)


@pytest.fixture
def repository() -> InMemoryPredictionRepository:
    return InMemoryPredictionRepository()


def _source(settings, behaviours, name: str) -> MockSourceClient:
    context = SourceClientContext(settings=settings, logger=TEST_LOGGER, sleep=lambda _: None)
    return MockSourceClient(context, behaviours, name=name)


def _scheduler(settings, repository, sources, *, ledger=None, stop_event=None):
    pipeline = build_pipeline(settings, repository=repository, ledger=ledger)
    return CycleScheduler(
        worker_id=settings.worker_id,
        sources=sources,
        pipeline=pipeline,
        scheduler_settings=settings.scheduler,
        source_settings=settings.sources,
        clock=lambda: 0.0,
        stop_event=stop_event or RecordingEvent(),
        log=TEST_LOGGER,
    )


def test_falls_back_to_next_source(settings, repository, caplog) -> None:
    failing = _source(
        settings,
        {"a": make_http_error(404), "b": make_http_error(404), "c": make_http_error(404)},
        "alpha",
    )
    healthy = _source(
        settings, {"p": [make_record(f"g{index}", source="beta") for index in range(5)]}, "beta"
    )
    scheduler = _scheduler(settings, repository, [failing, healthy])

    with caplog.at_level(logging.INFO, logger="test.scheduler"):
        stats = scheduler.run_cycle()

    assert stats.fetched == 5
    assert stats.saved == 5
    assert stats.source_status == {"alpha": SourceStatus.EXHAUSTED, "beta": SourceStatus.OK}
    assert failing.calls == ["a", "b", "c"]
    assert any("Source alpha exhausted this cycle" in message for message in caplog.messages)


def test_batch_limit_caps_merged_records(settings, repository) -> None:
    settings.sources.batch_limit = 3
    source = _source(settings, {"p": [make_record(f"g{i}") for i in range(6)]}, "lichess")
    stats = _scheduler(settings, repository, [source]).run_cycle()
    assert stats.fetched == 3
    assert repository.count_predictions() == 3


def test_known_records_are_not_fetched_again(settings, repository) -> None:
    source = _source(settings, {"p": [make_record("g1"), make_record("g2")]}, "lichess")
    scheduler = _scheduler(settings, repository, [source])
    assert scheduler.run_cycle().saved == 2
    with pytest.raises(SourceExhausted):
        scheduler.run_cycle()
    assert repository.count_predictions() == 2


def test_rotation_changes_source_priority(settings, repository) -> None:
    settings.sources.batch_limit = 1
    first = _source(settings, {"p": [make_record("a1", source="alpha")]}, "alpha")
    second = _source(settings, {"q": [make_record("b1", source="beta")]}, "beta")
    scheduler = _scheduler(settings, repository, [first, second])

    scheduler.run_cycle()
    assert set(repository.rows) == {"alpha_a1"}
    assert scheduler.rotation_index == 1
    scheduler.run_cycle()
    assert set(repository.rows) == {"alpha_a1", "beta_b1"}
    assert scheduler.rotation_index == 0


def test_rest_delay_adapts_to_cycle_duration(settings, repository) -> None:
    scheduler = _scheduler(settings, repository, [])
    assert scheduler.rest_delay(10.0) == 110.0
    assert scheduler.rest_delay(100.0) == 30.0
    assert scheduler.rest_delay(500.0) == 30.0


def test_failures_back_off_and_success_resets(settings, repository, tmp_path) -> None:
    ledger = FlakyLedger(tmp_path / "flaky.json", failing_cycles={1, 2, 4})
    source = _source(settings, {"p": [make_record("g1")]}, "lichess")
    event = RecordingEvent()
    scheduler = _scheduler(settings, repository, [source], ledger=ledger, stop_event=event)

    state = scheduler.run(max_cycles=5)

    assert event.waits == [30.0, 60.0, 120.0, 30.0]
    assert state.cycles_failed == 3
    assert state.cycles_completed == 2
    assert state.consecutive_failures == 0
    assert state.records_saved == 1


def test_backoff_is_capped(settings, repository) -> None:
    scheduler = _scheduler(settings, repository, [])
    for _ in range(10):
        scheduler.state.record_failure("boom")
    assert scheduler.backoff_delay() == 300.0


def test_stage_failure_is_reported(settings, repository, tmp_path) -> None:
    ledger = FlakyLedger(tmp_path / "flaky.json", failing_cycles={1})
    scheduler = _scheduler(settings, repository, [], ledger=ledger)
    with pytest.raises(CycleStageError, match="fetching stage failed"):
        scheduler.run_cycle()

    state = _scheduler(
        settings,
        repository,
        [],
        ledger=FlakyLedger(tmp_path / "again.json", failing_cycles={1}),
    ).run(max_cycles=1)
    assert state.cycles_failed == 1
    assert "fetching" in state.last_error
    assert "worker-test" in repository.statuses


def test_empty_fetch_is_not_a_failure(settings, repository) -> None:
    source = _source(settings, {"ghost": make_http_error(404)}, "lichess")
    event = RecordingEvent()
    state = _scheduler(settings, repository, [source], stop_event=event).run(max_cycles=2)
    assert state.cycles_failed == 0
    assert state.cycles_completed == 2
    assert event.waits == [120.0]
    assert repository.statuses["worker-test"].cycles_completed == 2


def test_stop_event_ends_loop_and_flushes_ledger(settings, repository) -> None:
    source = _source(settings, {"p": [make_record("g1")]}, "lichess")
    event = RecordingEvent(stop_after=1)
    scheduler = _scheduler(settings, repository, [source], stop_event=event)

    state = scheduler.run()

    assert state.cycles_completed == 1
    assert scheduler.stage is CycleStage.IDLE
    assert settings.ledger_path.exists()
    assert DedupLedger(settings.ledger_path).is_known("lichess_g1")


def test_stop_before_start_runs_no_cycle(settings, repository) -> None:
    event = RecordingEvent()
    scheduler = _scheduler(settings, repository, [], stop_event=event)
    scheduler.request_stop()
    state = scheduler.run()
    assert state.cycles_completed == 0
    assert state.cycles_failed == 0
    assert settings.ledger_path.exists()


def test_heartbeat_failure_does_not_stop_worker(settings) -> None:
    repository = InMemoryPredictionRepository()
    source = _source(settings, {"p": [make_record("g1")]}, "lichess")
    scheduler = _scheduler(settings, repository, [source])
    repository.failing = True
    state = scheduler.run(max_cycles=1)
    assert state.cycles_completed == 1
    assert state.records_saved == 0


def test_in_flight_fetch_is_abandoned_after_grace_period(settings, repository, caplog) -> None:
    settings.scheduler.shutdown_grace_s = 0.0
    release = threading.Event()

    def blocked() -> list:
        release.wait(10.0)
        return [make_record("late")]

    source = _source(settings, {"p": blocked}, "lichess")
    stop = threading.Event()
    stop.set()
    scheduler = _scheduler(settings, repository, [source], stop_event=stop)
    try:
        with caplog.at_level(logging.WARNING, logger="test.scheduler"):
            with pytest.raises(SourceExhausted):
                scheduler.run_cycle()
    finally:
        release.set()

    assert any("abandoning 1 in-flight fetches" in message for message in caplog.messages)
    assert repository.count_predictions() == 0
