"""Evaluation, prediction and worker status models."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from epfarm.models.record import Outcome

PREDICTION_COLUMNS = (
    "record_id",
    "checkpoint_hash",
    "baseline_class",
    "baseline_confidence",
    "hybrid_class",
    "hybrid_confidence",
    "archetype_tag",
    "overrule_reason",
    "actual_outcome",
    "baseline_correct",
    "hybrid_correct",
)


@dataclass(frozen=True, slots=True)
class Evaluation:
    """Baseline verdict: class, confidence and the signed advantage in pawns."""

    outcome: Outcome
    confidence: float
    advantage: float


@dataclass(frozen=True, slots=True)
class HybridDecision:
    outcome: Outcome
    confidence: float
    archetype: str
    bias: float
    overrule_reason: str | None = None

    @property
    def overruled(self) -> bool:
        return self.overrule_reason is not None


class Prediction(BaseModel):
    """Stored result for one record. Keyed by ``record_id``."""

    model_config = ConfigDict(frozen=True)

    record_id: str
    checkpoint_hash: str
    baseline_class: Outcome
    baseline_confidence: float = Field(ge=0.0, le=0.98)
    hybrid_class: Outcome
    hybrid_confidence: float = Field(ge=0.0, le=0.98)
    archetype_tag: str
    overrule_reason: str | None = None
    actual_outcome: Outcome
    baseline_correct: bool
    hybrid_correct: bool

    def to_row(self) -> tuple[object, ...]:
        """Return column values in ``PREDICTION_COLUMNS`` order."""
        payload = self.model_dump(mode="json")
        return tuple(payload[column] for column in PREDICTION_COLUMNS)


class WorkerStatus(BaseModel):
    """Heartbeat payload upserted after each cycle."""

    worker_id: str
    cycles_completed: int = 0
    records_saved: int = 0
    accuracy: dict[str, float] = Field(default_factory=dict)
    last_heartbeat_at: datetime
