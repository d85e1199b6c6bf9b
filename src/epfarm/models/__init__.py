from epfarm.models.checkpoint import Checkpoint
from epfarm.models.prediction import (
    PREDICTION_COLUMNS,
    Evaluation,
    HybridDecision,
    Prediction,
    WorkerStatus,
)
from epfarm.models.record import Outcome, RawRecord, RecordId
from epfarm.models.signature import (
    BASE_REGIONS,
    ENHANCED_REGIONS,
    UNIT_TYPES,
    SignatureProfile,
    TemporalPhase,
)

__all__ = [
    "BASE_REGIONS",
    "Checkpoint",
    "ENHANCED_REGIONS",
    "Evaluation",
    "HybridDecision",
    "Outcome",
    "PREDICTION_COLUMNS",
    "Prediction",
    "RawRecord",
    "RecordId",
    "SignatureProfile",
    "TemporalPhase",
    "UNIT_TYPES",
    "WorkerStatus",
]
