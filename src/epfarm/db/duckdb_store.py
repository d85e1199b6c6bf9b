from __future__ import annotations

from pathlib import Path

import duckdb

from epfarm.db.prediction_sql import PREDICTIONS_SCHEMA, WORKER_STATUS_SCHEMA
from epfarm.errors import PersistenceFailure
from epfarm.utils.logger import get_logger

logger = get_logger(__name__)


def _should_attempt_wal_recovery(exc: BaseException) -> bool:
    message = str(exc).lower()
    return "wal" in message or "replay" in message


def _connect(db_path: Path, read_only: bool) -> duckdb.DuckDBPyConnection:
    try:
        return duckdb.connect(str(db_path), read_only=read_only)
    except duckdb.InternalException as exc:
        wal_path = db_path.with_name(f"{db_path.name}.wal")
        if read_only or not _should_attempt_wal_recovery(exc) or not wal_path.exists():
            raise
        logger.warning("Removing DuckDB WAL after replay error: %s", wal_path)
        wal_path.unlink()
        return duckdb.connect(str(db_path))


def get_connection(db_path: Path | str, read_only: bool = False) -> duckdb.DuckDBPyConnection:
    """Open a DuckDB database file.

    DuckDB takes an exclusive file lock for writers, so only one process can
    hold the database open for writing. A lock held by another process, a
    missing file in read-only mode and any other open failure surface as
    :class:`PersistenceFailure`.
    """
    db_path = Path(db_path)
    if not read_only:
        db_path.parent.mkdir(parents=True, exist_ok=True)
    logger.debug("Opening DuckDB at %s (read_only=%s)", db_path, read_only)
    try:
        return _connect(db_path, read_only)
    except duckdb.Error as exc:
        raise PersistenceFailure(f"Cannot open DuckDB at {db_path}: {exc}") from exc


def init_schema(conn: duckdb.DuckDBPyConnection) -> None:
    try:
        conn.execute(PREDICTIONS_SCHEMA)
        conn.execute(WORKER_STATUS_SCHEMA)
    except duckdb.Error as exc:
        raise PersistenceFailure(f"Cannot initialise DuckDB schema: {exc}") from exc
