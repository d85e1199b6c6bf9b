"""Baseline evaluator: material plus a small mobility term."""

from __future__ import annotations

import math

import chess

from epfarm.config import Thresholds
from epfarm.domain import board_features
from epfarm.models.checkpoint import Checkpoint
from epfarm.models.prediction import Evaluation
from epfarm.models.record import Outcome


def clamp_confidence(value: float, cap: float) -> float:
    return min(max(value, 0.0), cap)


class MaterialEvaluator:
    """Score a checkpoint in pawns from White's point of view.

    The score is the material difference plus ``mobility_weight`` pawns per
    ten extra pseudo-legal moves. Classes use one ``decisive_advantage``
    magnitude for both sides, so mirroring a position flips the class and
    leaves the confidence unchanged.
    """

    def __init__(self, thresholds: Thresholds | None = None, mobility_weight: float = 0.1) -> None:
        self._thresholds = thresholds or Thresholds()
        self._mobility_weight = mobility_weight

    @property
    def thresholds(self) -> Thresholds:
        return self._thresholds

    def advantage(self, board: chess.Board) -> float:
        material = board_features.material(board, chess.WHITE) - board_features.material(
            board, chess.BLACK
        )
        mobility = board_features.mobility(board, chess.WHITE) - board_features.mobility(
            board, chess.BLACK
        )
        return material + self._mobility_weight * mobility / 10.0

    def classify(self, advantage: float) -> Outcome:
        limit = self._thresholds.decisive_advantage
        if advantage >= limit:
            return Outcome.WHITE
        if advantage <= -limit:
            return Outcome.BLACK
        return Outcome.DRAW

    def confidence(self, advantage: float) -> float:
        """Monotone in ``|advantage|``; starts at the floor and saturates below the ceiling."""
        t = self._thresholds
        spread = t.confidence_ceiling - t.confidence_floor
        value = t.confidence_floor + spread * math.tanh(abs(advantage) / t.confidence_scale)
        return clamp_confidence(value, t.confidence_cap)

    def evaluate(self, checkpoint: Checkpoint) -> Evaluation:
        advantage = self.advantage(checkpoint.board())
        return Evaluation(
            outcome=self.classify(advantage),
            confidence=self.confidence(advantage),
            advantage=advantage,
        )
