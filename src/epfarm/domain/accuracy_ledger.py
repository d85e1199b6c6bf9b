"""Running accuracy counters for baseline and hybrid predictions."""

from __future__ import annotations

import threading
from dataclasses import asdict, dataclass

from epfarm.models.prediction import Prediction


@dataclass(slots=True)
class AccuracyCounts:
    total: int = 0
    baseline_correct: int = 0
    hybrid_correct: int = 0
    both_correct: int = 0
    both_wrong: int = 0
    baseline_only: int = 0
    hybrid_only: int = 0
    overrules: int = 0
    overrules_correct: int = 0

    @property
    def baseline_accuracy(self) -> float:
        return self.baseline_correct / self.total if self.total else 0.0

    @property
    def hybrid_accuracy(self) -> float:
        return self.hybrid_correct / self.total if self.total else 0.0

    def as_dict(self) -> dict[str, float]:
        payload: dict[str, float] = asdict(self)
        payload["baseline_accuracy"] = round(self.baseline_accuracy, 4)
        payload["hybrid_accuracy"] = round(self.hybrid_accuracy, 4)
        return payload


class AccuracyLedger:
    """Counters updated once per confirmed insert."""

    def __init__(self) -> None:
        self._counts = AccuracyCounts()
        self._lock = threading.Lock()

    def record(self, prediction: Prediction) -> None:
        with self._lock:
            counts = self._counts
            counts.total += 1
            baseline = prediction.baseline_correct
            hybrid = prediction.hybrid_correct
            counts.baseline_correct += int(baseline)
            counts.hybrid_correct += int(hybrid)
            if baseline and hybrid:
                counts.both_correct += 1
            elif baseline:
                counts.baseline_only += 1
            elif hybrid:
                counts.hybrid_only += 1
            else:
                counts.both_wrong += 1
            if prediction.overrule_reason:
                counts.overrules += 1
                counts.overrules_correct += int(hybrid)

    def snapshot(self) -> AccuracyCounts:
        with self._lock:
            return AccuracyCounts(**asdict(self._counts))
