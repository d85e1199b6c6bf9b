"""Signature profile model."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum

BASE_REGIONS = (
    "white_kingside",
    "white_queenside",
    "black_kingside",
    "black_queenside",
)
ENHANCED_REGIONS = (
    "center_white",
    "center_black",
    "flank_white",
    "flank_black",
)
UNIT_TYPES = ("pawn", "knight", "bishop", "rook", "queen", "king")


class TemporalPhase(str, Enum):
    EARLY = "early"
    MID = "mid"
    LATE = "late"


@dataclass(frozen=True, slots=True)
class SignatureProfile:
    """Fixed-shape feature vector computed from a checkpoint.

    Region and dominance values are fractions in [0, 1]. The signed metrics
    (``material_balance``, ``activity_advantage``, ``space_advantage`` and
    ``pawn_advancement``) lie in [-1, 1] and are positive when White is ahead.
    """

    regions: dict[str, float]
    dominance: dict[str, float]
    material_balance: float
    activity_advantage: float
    space_advantage: float
    pawn_advancement: float
    tension: float
    temporal_phase: TemporalPhase
    enhanced: bool = False
    unit_count: int = field(default=0)

    def region(self, name: str) -> float:
        return self.regions.get(name, 0.0)
