"""SQL shared by the DuckDB and Postgres prediction repositories."""

from __future__ import annotations

from epfarm.models.prediction import PREDICTION_COLUMNS

WORKER_STATUS_COLUMNS = (
    "worker_id",
    "cycles_completed",
    "records_saved",
    "accuracy",
    "last_heartbeat_at",
)

PREDICTIONS_SCHEMA = """
CREATE TABLE IF NOT EXISTS predictions (
    record_id TEXT PRIMARY KEY,
    checkpoint_hash TEXT NOT NULL,
    baseline_class TEXT NOT NULL,
    baseline_confidence DOUBLE PRECISION NOT NULL,
    hybrid_class TEXT NOT NULL,
    hybrid_confidence DOUBLE PRECISION NOT NULL,
    archetype_tag TEXT NOT NULL,
    overrule_reason TEXT,
    actual_outcome TEXT NOT NULL,
    baseline_correct BOOLEAN NOT NULL,
    hybrid_correct BOOLEAN NOT NULL
);
"""

WORKER_STATUS_SCHEMA = """
CREATE TABLE IF NOT EXISTS worker_status (
    worker_id TEXT PRIMARY KEY,
    cycles_completed INTEGER NOT NULL,
    records_saved INTEGER NOT NULL,
    accuracy TEXT,
    last_heartbeat_at TIMESTAMP
);
"""


def insert_prediction_sql(placeholder: str) -> str:
    columns = ", ".join(PREDICTION_COLUMNS)
    values = ", ".join(placeholder for _ in PREDICTION_COLUMNS)
    return (
        f"INSERT INTO predictions ({columns}) VALUES ({values}) "
        "ON CONFLICT (record_id) DO NOTHING RETURNING record_id"
    )


def upsert_worker_status_sql(placeholder: str) -> str:
    columns = ", ".join(WORKER_STATUS_COLUMNS)
    values = ", ".join(placeholder for _ in WORKER_STATUS_COLUMNS)
    updates = ", ".join(
        f"{column} = EXCLUDED.{column}" for column in WORKER_STATUS_COLUMNS[1:]
    )
    return (
        f"INSERT INTO worker_status ({columns}) VALUES ({values}) "
        f"ON CONFLICT (worker_id) DO UPDATE SET {updates}"
    )


ACCURACY_SUMMARY_SQL = """
SELECT
    COUNT(*) AS total,
    COALESCE(SUM(CASE WHEN baseline_correct THEN 1 ELSE 0 END), 0) AS baseline_correct,
    COALESCE(SUM(CASE WHEN hybrid_correct THEN 1 ELSE 0 END), 0) AS hybrid_correct,
    COALESCE(SUM(CASE WHEN overrule_reason IS NOT NULL THEN 1 ELSE 0 END), 0) AS overrules
FROM predictions
"""

WORKER_STATUS_SELECT_SQL = (
    f"SELECT {', '.join(WORKER_STATUS_COLUMNS)} FROM worker_status ORDER BY worker_id"
)


def summarize_accuracy(row: tuple | None) -> dict[str, object]:
    total, baseline_correct, hybrid_correct, overrules = row or (0, 0, 0, 0)
    total = int(total or 0)
    return {
        "total": total,
        "baseline_correct": int(baseline_correct or 0),
        "hybrid_correct": int(hybrid_correct or 0),
        "overrules": int(overrules or 0),
        "baseline_accuracy": (int(baseline_correct or 0) / total) if total else 0.0,
        "hybrid_accuracy": (int(hybrid_correct or 0) / total) if total else 0.0,
    }
