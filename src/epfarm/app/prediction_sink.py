"""Result sink: idempotent prediction storage plus accuracy bookkeeping."""

from __future__ import annotations

from epfarm.domain.accuracy_ledger import AccuracyLedger
from epfarm.models.prediction import Prediction, WorkerStatus
from epfarm.ports.repositories import PredictionRepository


class PredictionSink:
    """Insert predictions and count accuracy only for confirmed inserts.

    ``save`` returns False for a record id that is already stored. Storage
    outages surface as ``PersistenceFailure``.
    """

    def __init__(
        self,
        repository: PredictionRepository,
        accuracy: AccuracyLedger | None = None,
    ) -> None:
        self._repository = repository
        self._accuracy = accuracy or AccuracyLedger()

    @property
    def repository(self) -> PredictionRepository:
        return self._repository

    @property
    def accuracy(self) -> AccuracyLedger:
        return self._accuracy

    def save(self, prediction: Prediction) -> bool:
        inserted = self._repository.insert_prediction(prediction)
        if inserted:
            self._accuracy.record(prediction)
        return inserted

    def heartbeat(self, status: WorkerStatus) -> None:
        self._repository.upsert_worker_status(status)
