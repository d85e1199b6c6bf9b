"""DuckDB-backed prediction repository."""

from __future__ import annotations

import json
from pathlib import Path

import duckdb
from tenacity import Retrying, retry_if_exception_type, stop_after_attempt, wait_fixed

from epfarm.db.duckdb_store import get_connection, init_schema
from epfarm.db.prediction_sql import (
    ACCURACY_SUMMARY_SQL,
    WORKER_STATUS_COLUMNS,
    WORKER_STATUS_SELECT_SQL,
    insert_prediction_sql,
    summarize_accuracy,
    upsert_worker_status_sql,
)
from epfarm.errors import PersistenceFailure
from epfarm.models.prediction import Prediction, WorkerStatus
from epfarm.utils.logger import get_logger
from epfarm.utils.now import Now

logger = get_logger(__name__)

_INSERT_SQL = insert_prediction_sql("?")
_UPSERT_STATUS_SQL = upsert_worker_status_sql("?")
_WRITE_CONFLICTS = (duckdb.ConstraintException, duckdb.TransactionException)


class DuckDbPredictionRepository:
    """Store predictions in DuckDB under a unique ``record_id`` key.

    Each call runs on its own cursor so the repository can be shared across
    threads. DuckDB is a single-process backend: one worker owns the file.
    Several workers, or a status API running beside a worker, need the
    Postgres backend.
    """

    def __init__(self, conn: duckdb.DuckDBPyConnection, read_only: bool = False) -> None:
        self._conn = conn
        if not read_only:
            init_schema(conn)

    @classmethod
    def from_path(cls, db_path: Path | str, read_only: bool = False) -> DuckDbPredictionRepository:
        return cls(get_connection(db_path, read_only=read_only), read_only=read_only)

    def close(self) -> None:
        self._conn.close()

    def insert_prediction(self, prediction: Prediction) -> bool:
        """Insert a prediction; return False when the key is already stored.

        A write conflict with a concurrent insert of the same key is retried
        briefly, after which the conflicting writer has either committed the
        row or rolled back.
        """
        retrying = Retrying(
            retry=retry_if_exception_type(_WRITE_CONFLICTS),
            stop=stop_after_attempt(5),
            wait=wait_fixed(0.02),
            reraise=True,
        )
        try:
            return retrying(self._insert_once, prediction)
        except _WRITE_CONFLICTS as exc:
            if self._exists(prediction.record_id):
                logger.debug("Concurrent insert lost for %s: %s", prediction.record_id, exc)
                return False
            raise PersistenceFailure(str(exc)) from exc
        except duckdb.Error as exc:
            raise PersistenceFailure(str(exc)) from exc

    def _insert_once(self, prediction: Prediction) -> bool:
        cursor = self._conn.cursor()
        try:
            rows = cursor.execute(_INSERT_SQL, list(prediction.to_row())).fetchall()
            return bool(rows)
        finally:
            cursor.close()

    def _exists(self, record_id: str) -> bool:
        return self.count_predictions(record_id) > 0

    def upsert_worker_status(self, status: WorkerStatus) -> None:
        values = [
            status.worker_id,
            status.cycles_completed,
            status.records_saved,
            json.dumps(status.accuracy, sort_keys=True),
            Now.to_utc(status.last_heartbeat_at).replace(tzinfo=None),
        ]
        cursor = self._conn.cursor()
        try:
            cursor.execute(_UPSERT_STATUS_SQL, values)
        except duckdb.Error as exc:
            raise PersistenceFailure(str(exc)) from exc
        finally:
            cursor.close()

    def fetch_worker_statuses(self) -> list[dict[str, object]]:
        cursor = self._conn.cursor()
        try:
            rows = cursor.execute(WORKER_STATUS_SELECT_SQL).fetchall()
        except duckdb.Error as exc:
            raise PersistenceFailure(str(exc)) from exc
        finally:
            cursor.close()
        results: list[dict[str, object]] = []
        for row in rows:
            payload = dict(zip(WORKER_STATUS_COLUMNS, row, strict=True))
            payload["accuracy"] = json.loads(payload["accuracy"] or "{}")
            results.append(payload)
        return results

    def fetch_accuracy_summary(self) -> dict[str, object]:
        cursor = self._conn.cursor()
        try:
            row = cursor.execute(ACCURACY_SUMMARY_SQL).fetchone()
        except duckdb.Error as exc:
            raise PersistenceFailure(str(exc)) from exc
        finally:
            cursor.close()
        return summarize_accuracy(row)

    def count_predictions(self, record_id: str | None = None) -> int:
        cursor = self._conn.cursor()
        try:
            if record_id is None:
                row = cursor.execute("SELECT COUNT(*) FROM predictions").fetchone()
            else:
                row = cursor.execute(
                    "SELECT COUNT(*) FROM predictions WHERE record_id = ?", [record_id]
                ).fetchone()
        finally:
            cursor.close()
        return int(row[0]) if row else 0
