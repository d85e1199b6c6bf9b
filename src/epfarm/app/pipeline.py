"""Per-record extract, predict and persist steps."""

from __future__ import annotations

# pylint: disable=broad-exception-caught
import logging
from dataclasses import dataclass
from enum import Enum

from epfarm.app.prediction_sink import PredictionSink
from epfarm.app.stats import CycleStats
from epfarm.db.dedup_ledger import DedupLedger
from epfarm.domain.checkpoint_extractor import CheckpointExtractor
from epfarm.domain.hybrid_predictor import HybridPredictor
from epfarm.domain.signature_extractor import SignatureExtractor
from epfarm.errors import PersistenceFailure, RecordDropped, Unparseable
from epfarm.models.checkpoint import Checkpoint
from epfarm.models.prediction import Prediction
from epfarm.models.record import RawRecord
from epfarm.models.signature import SignatureProfile
from epfarm.ports.evaluator import Evaluator
from epfarm.utils.logger import get_logger

logger = get_logger(__name__)


class RecordDisposition(str, Enum):
    SAVED = "saved"
    CONFLICT = "conflict"
    DROPPED = "dropped"
    FAILED = "failed"


@dataclass(frozen=True, slots=True)
class ExtractedRecord:
    raw: RawRecord
    checkpoint: Checkpoint
    profile: SignatureProfile


@dataclass(frozen=True, slots=True)
class PredictedRecord:
    raw: RawRecord
    prediction: Prediction


class RecordPipeline:
    """Run records through extraction, prediction and persistence.

    Every method takes the cycle's :class:`CycleStats` and absorbs per-record
    failures into it; nothing here raises for a single bad record. Records
    reaching a final disposition (saved, already stored, dropped) are marked
    in the dedup ledger. Records whose save failed are left unmarked so a
    later cycle can retry them.
    """

    def __init__(
        self,
        *,
        checkpoints: CheckpointExtractor,
        signatures: SignatureExtractor,
        evaluator: Evaluator,
        predictor: HybridPredictor,
        sink: PredictionSink,
        ledger: DedupLedger,
        target_ply: int,
        log: logging.Logger | None = None,
    ) -> None:
        self._checkpoints = checkpoints
        self._signatures = signatures
        self._evaluator = evaluator
        self._predictor = predictor
        self._sink = sink
        self._ledger = ledger
        self._target_ply = target_ply
        self._logger = log or logger

    @property
    def sink(self) -> PredictionSink:
        return self._sink

    @property
    def ledger(self) -> DedupLedger:
        return self._ledger

    def _drop(self, raw: RawRecord, reason: str, detail: str, stats: CycleStats) -> None:
        self._logger.info("Dropped %s (%s): %s", raw.record_id, reason, detail)
        stats.record_drop(reason)
        self._ledger.mark_known(raw.record_id)

    def extract(self, raw: RawRecord, stats: CycleStats) -> ExtractedRecord | None:
        if raw.declared_outcome is None:
            self._drop(raw, "no_outcome", "record has no final result", stats)
            return None
        try:
            checkpoint = self._checkpoints.extract(raw, self._target_ply)
            profile = self._signatures.extract(checkpoint)
        except RecordDropped as exc:
            self._drop(raw, exc.reason, exc.detail or str(exc), stats)
            return None
        except Exception as exc:
            self._drop(raw, Unparseable.reason, repr(exc), stats)
            return None
        return ExtractedRecord(raw=raw, checkpoint=checkpoint, profile=profile)

    def build_prediction(self, item: ExtractedRecord) -> Prediction:
        baseline = self._evaluator.evaluate(item.checkpoint)
        decision = self._predictor.predict(item.profile, baseline)
        actual = item.raw.declared_outcome
        if actual is None:
            raise Unparseable(str(item.raw.record_id), "record has no final result")
        return Prediction(
            record_id=item.raw.record_id.qualified,
            checkpoint_hash=item.checkpoint.content_hash,
            baseline_class=baseline.outcome,
            baseline_confidence=baseline.confidence,
            hybrid_class=decision.outcome,
            hybrid_confidence=decision.confidence,
            archetype_tag=decision.archetype,
            overrule_reason=decision.overrule_reason,
            actual_outcome=actual,
            baseline_correct=baseline.outcome is actual,
            hybrid_correct=decision.outcome is actual,
        )

    def predict(self, item: ExtractedRecord, stats: CycleStats) -> PredictedRecord | None:
        try:
            prediction = self.build_prediction(item)
        except Exception:
            stats.errors += 1
            self._logger.exception("Prediction failed for %s", item.raw.record_id)
            return None
        self._logger.debug(
            "Predicted %s baseline=%s(%.2f) hybrid=%s(%.2f) archetype=%s ratings=%s",
            prediction.record_id,
            prediction.baseline_class.value,
            prediction.baseline_confidence,
            prediction.hybrid_class.value,
            prediction.hybrid_confidence,
            prediction.archetype_tag,
            item.raw.rating_meta,
        )
        return PredictedRecord(raw=item.raw, prediction=prediction)

    def persist(self, item: PredictedRecord, stats: CycleStats) -> RecordDisposition:
        prediction = item.prediction
        try:
            inserted = self._sink.save(prediction)
        except PersistenceFailure as exc:
            stats.persist_failures += 1
            self._logger.warning("Failed to store %s: %s", prediction.record_id, exc)
            return RecordDisposition.FAILED
        self._ledger.mark_known(item.raw.record_id)
        if not inserted:
            stats.conflicts += 1
            self._logger.debug("Prediction for %s already stored", prediction.record_id)
            return RecordDisposition.CONFLICT
        stats.saved += 1
        stats.baseline_correct += int(prediction.baseline_correct)
        stats.hybrid_correct += int(prediction.hybrid_correct)
        return RecordDisposition.SAVED

    def process(self, raw: RawRecord, stats: CycleStats) -> RecordDisposition:
        """Run all three steps for a single record."""
        extracted = self.extract(raw, stats)
        if extracted is None:
            return RecordDisposition.DROPPED
        predicted = self.predict(extracted, stats)
        if predicted is None:
            return RecordDisposition.FAILED
        return self.persist(predicted, stats)
