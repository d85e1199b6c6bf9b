"""Repository port interfaces for prediction storage."""

from __future__ import annotations

from typing import Protocol

from epfarm.models.prediction import Prediction, WorkerStatus


class PredictionRepository(Protocol):
    """Storage boundary for predictions and worker heartbeats."""

    def insert_prediction(self, prediction: Prediction) -> bool:
        """Insert a prediction; return False when the record id already exists."""

    def upsert_worker_status(self, status: WorkerStatus) -> None:
        """Insert or replace the heartbeat row for a worker."""

    def fetch_worker_statuses(self) -> list[dict[str, object]]:
        """Return all worker heartbeat rows."""

    def fetch_accuracy_summary(self) -> dict[str, object]:
        """Return stored prediction totals and accuracy ratios."""

    def count_predictions(self, record_id: str | None = None) -> int:
        """Count stored predictions, optionally for a single record id."""
