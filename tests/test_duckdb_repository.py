import threading
from datetime import datetime, timezone

from unittest.mock import patch

import duckdb
import pytest

from epfarm.db import DuckDbPredictionRepository
from epfarm.errors import PersistenceFailure
from epfarm.models import Outcome, WorkerStatus

from tests.epfarm_samples import make_prediction


@pytest.fixture
def repository(tmp_path):
    repo = DuckDbPredictionRepository.from_path(tmp_path / "predictions.duckdb")
    yield repo
    repo.close()


def test_insert_is_idempotent(repository) -> None:
    prediction = make_prediction("lichess_abc")
    assert repository.insert_prediction(prediction) is True
    assert repository.insert_prediction(prediction) is False
    assert repository.count_predictions() == 1
    assert repository.count_predictions("lichess_abc") == 1
    assert repository.count_predictions("lichess_other") == 0


def test_concurrent_inserts_store_one_row(repository) -> None:
    prediction = make_prediction("chesscom_42")
    workers = 6
    barrier = threading.Barrier(workers)
    results: list[bool] = []
    lock = threading.Lock()

    def insert() -> None:
        barrier.wait()
        inserted = repository.insert_prediction(prediction)
        with lock:
            results.append(inserted)

    threads = [threading.Thread(target=insert) for _ in range(workers)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert sorted(results) == [False] * (workers - 1) + [True]
    assert repository.count_predictions() == 1


def test_accuracy_summary(repository) -> None:
    assert repository.fetch_accuracy_summary()["total"] == 0
    repository.insert_prediction(make_prediction("lichess_a"))
    repository.insert_prediction(
        make_prediction(
            "lichess_b",
            baseline_class=Outcome.BLACK,
            hybrid_class=Outcome.BLACK,
            overrule_reason=None,
            actual_outcome=Outcome.BLACK,
            baseline_correct=True,
            hybrid_correct=True,
        )
    )
    summary = repository.fetch_accuracy_summary()
    assert summary["total"] == 2
    assert summary["baseline_correct"] == 1
    assert summary["hybrid_correct"] == 2
    assert summary["overrules"] == 1
    assert summary["baseline_accuracy"] == pytest.approx(0.5)
    assert summary["hybrid_accuracy"] == pytest.approx(1.0)


def test_worker_status_upsert(repository) -> None:
    first = WorkerStatus(
        worker_id="worker-1",
        cycles_completed=1,
        records_saved=3,
        accuracy={"hybrid_accuracy": 0.5},
        last_heartbeat_at=datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc),
    )
    repository.upsert_worker_status(first)
    repository.upsert_worker_status(
        first.model_copy(update={"cycles_completed": 2, "records_saved": 7})
    )
    rows = repository.fetch_worker_statuses()
    assert len(rows) == 1
    assert rows[0]["worker_id"] == "worker-1"
    assert rows[0]["cycles_completed"] == 2
    assert rows[0]["records_saved"] == 7
    assert rows[0]["accuracy"] == {"hybrid_accuracy": 0.5}
    assert rows[0]["last_heartbeat_at"] == datetime(2024, 1, 1, 12, 0)


def test_reopening_keeps_rows(tmp_path) -> None:
    path = tmp_path / "predictions.duckdb"
    repo = DuckDbPredictionRepository.from_path(path)
    repo.insert_prediction(make_prediction("lichess_keep"))
    repo.close()

    reopened = DuckDbPredictionRepository.from_path(path)
    try:
        assert reopened.insert_prediction(make_prediction("lichess_keep")) is False
        assert reopened.count_predictions() == 1
    finally:
        reopened.close()


def test_locked_file_is_a_persistence_failure(tmp_path) -> None:
    lock_error = duckdb.IOException('Could not set lock on file "predictions.duckdb"')
    with patch("epfarm.db.duckdb_store.duckdb.connect", side_effect=lock_error):
        with pytest.raises(PersistenceFailure, match="Could not set lock"):
            DuckDbPredictionRepository.from_path(tmp_path / "predictions.duckdb")


def test_read_only_missing_file_is_a_persistence_failure(tmp_path) -> None:
    with pytest.raises(PersistenceFailure):
        DuckDbPredictionRepository.from_path(tmp_path / "absent.duckdb", read_only=True)
    assert not (tmp_path / "absent.duckdb").exists()


def test_read_only_repository_reads_stored_rows(tmp_path) -> None:
    path = tmp_path / "predictions.duckdb"
    writer = DuckDbPredictionRepository.from_path(path)
    writer.insert_prediction(make_prediction("lichess_seen"))
    writer.close()

    reader = DuckDbPredictionRepository.from_path(path, read_only=True)
    try:
        assert reader.count_predictions("lichess_seen") == 1
        assert reader.fetch_accuracy_summary()["total"] == 1
    finally:
        reader.close()
