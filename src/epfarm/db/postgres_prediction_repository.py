"""Postgres-backed prediction repository."""

from __future__ import annotations

import json
from collections.abc import Callable
from typing import Any

import psycopg2
from psycopg2.extensions import connection as PgConnection  # noqa: N812

from epfarm.config import Settings
from epfarm.db.prediction_sql import (
    ACCURACY_SUMMARY_SQL,
    PREDICTIONS_SCHEMA,
    WORKER_STATUS_COLUMNS,
    WORKER_STATUS_SCHEMA,
    WORKER_STATUS_SELECT_SQL,
    insert_prediction_sql,
    summarize_accuracy,
    upsert_worker_status_sql,
)
from epfarm.errors import ConfigurationError, PersistenceFailure
from epfarm.models.prediction import Prediction, WorkerStatus
from epfarm.utils.logger import get_logger

logger = get_logger(__name__)

_INSERT_SQL = insert_prediction_sql("%s")
_UPSERT_STATUS_SQL = upsert_worker_status_sql("%s")


def _connection_kwargs(settings: Settings) -> dict[str, Any] | None:
    if settings.postgres_dsn:
        return {"dsn": settings.postgres_dsn}
    if not settings.postgres_host or not settings.postgres_db:
        return None
    return {
        "host": settings.postgres_host,
        "port": settings.postgres_port,
        "dbname": settings.postgres_db,
        "user": settings.postgres_user,
        "password": settings.postgres_password,
        "sslmode": settings.postgres_sslmode,
        "connect_timeout": settings.postgres_connect_timeout_s,
    }


class PostgresPredictionRepository:
    """Store predictions in Postgres; safe to share across worker processes."""

    def __init__(
        self,
        settings: Settings,
        connect: Callable[..., PgConnection] = psycopg2.connect,
    ) -> None:
        kwargs = _connection_kwargs(settings)
        if not kwargs:
            raise ConfigurationError("Postgres connection settings are missing")
        self._kwargs = kwargs
        self._connect = connect
        self._conn: PgConnection | None = None
        self._schema_ready = False

    def _connection(self) -> PgConnection:
        if self._conn is None or self._conn.closed:
            try:
                self._conn = self._connect(**self._kwargs)
            except psycopg2.Error as exc:
                raise PersistenceFailure(f"Postgres connection failed: {exc}") from exc
            self._conn.autocommit = True
        if not self._schema_ready:
            with self._conn.cursor() as cur:
                cur.execute(PREDICTIONS_SCHEMA)
                cur.execute(WORKER_STATUS_SCHEMA)
            self._schema_ready = True
        return self._conn

    def _reset(self) -> None:
        if self._conn is not None:
            try:
                self._conn.close()
            except psycopg2.Error:
                logger.debug("Ignoring error while closing Postgres connection")
        self._conn = None

    def _execute(self, sql: str, params: list[object] | None = None) -> list[tuple]:
        try:
            with self._connection().cursor() as cur:
                cur.execute(sql, params)
                if cur.description is None:
                    return []
                return list(cur.fetchall())
        except (psycopg2.OperationalError, psycopg2.InterfaceError) as exc:
            self._reset()
            raise PersistenceFailure(f"Postgres unavailable: {exc}") from exc
        except psycopg2.Error as exc:
            raise PersistenceFailure(str(exc)) from exc

    def close(self) -> None:
        self._reset()

    def insert_prediction(self, prediction: Prediction) -> bool:
        return bool(self._execute(_INSERT_SQL, list(prediction.to_row())))

    def upsert_worker_status(self, status: WorkerStatus) -> None:
        self._execute(
            _UPSERT_STATUS_SQL,
            [
                status.worker_id,
                status.cycles_completed,
                status.records_saved,
                json.dumps(status.accuracy, sort_keys=True),
                status.last_heartbeat_at,
            ],
        )

    def fetch_worker_statuses(self) -> list[dict[str, object]]:
        rows = self._execute(WORKER_STATUS_SELECT_SQL)
        results: list[dict[str, object]] = []
        for row in rows:
            payload = dict(zip(WORKER_STATUS_COLUMNS, row, strict=True))
            payload["accuracy"] = json.loads(payload["accuracy"] or "{}")
            results.append(payload)
        return results

    def fetch_accuracy_summary(self) -> dict[str, object]:
        rows = self._execute(ACCURACY_SUMMARY_SQL)
        return summarize_accuracy(rows[0] if rows else None)

    def count_predictions(self, record_id: str | None = None) -> int:
        if record_id is None:
            rows = self._execute("SELECT COUNT(*) FROM predictions")
        else:
            rows = self._execute(
                "SELECT COUNT(*) FROM predictions WHERE record_id = %s", [record_id]
            )
        return int(rows[0][0]) if rows else 0
