"""Port interface for baseline evaluators."""

# pylint: disable=too-few-public-methods

from __future__ import annotations

from typing import Protocol

from epfarm.models.checkpoint import Checkpoint
from epfarm.models.prediction import Evaluation


class Evaluator(Protocol):
    """Pure, deterministic baseline classifier for a checkpoint."""

    def evaluate(self, checkpoint: Checkpoint) -> Evaluation:
        """Return the baseline class, confidence and signed advantage."""
