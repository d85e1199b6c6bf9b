"""Application layer: record pipeline, result sink and cycle scheduler."""

from epfarm.app.pipeline import RecordDisposition, RecordPipeline
from epfarm.app.prediction_sink import PredictionSink
from epfarm.app.scheduler import CycleScheduler, CycleStage
from epfarm.app.stats import CycleStats, WorkerState

__all__ = [
    "CycleScheduler",
    "CycleStage",
    "CycleStats",
    "PredictionSink",
    "RecordDisposition",
    "RecordPipeline",
    "WorkerState",
]
