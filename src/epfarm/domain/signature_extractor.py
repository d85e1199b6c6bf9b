"""Deterministic feature profile of a checkpoint."""

from __future__ import annotations

import chess

from epfarm.config import SignatureSettings
from epfarm.domain import board_features
from epfarm.models.checkpoint import Checkpoint
from epfarm.models.signature import (
    BASE_REGIONS,
    ENHANCED_REGIONS,
    UNIT_TYPES,
    SignatureProfile,
    TemporalPhase,
)

_CENTER_FILES = range(2, 6)


def _side(color: chess.Color) -> str:
    return "white" if color == chess.WHITE else "black"


def base_region(square: chess.Square, color: chess.Color) -> str:
    wing = "kingside" if chess.square_file(square) >= 4 else "queenside"
    return f"{_side(color)}_{wing}"


def enhanced_region(square: chess.Square, color: chess.Color) -> str:
    zone = "center" if chess.square_file(square) in _CENTER_FILES else "flank"
    return f"{zone}_{_side(color)}"


class SignatureExtractor:
    """Compute a :class:`SignatureProfile` from a checkpoint.

    Regions split the board by owning side and by wing (files a-d against
    e-h). Enhanced mode adds a second partition by owning side and by center
    (files c-f) against flanks. Every unit, kings included, belongs to exactly
    one region of each partition, so each partition's fractions sum to 1.
    """

    def __init__(self, settings: SignatureSettings | None = None) -> None:
        self._settings = settings or SignatureSettings()

    @property
    def settings(self) -> SignatureSettings:
        return self._settings

    def phase_for(self, ply_index: int) -> TemporalPhase:
        if ply_index < self._settings.early_ply:
            return TemporalPhase.EARLY
        if ply_index < self._settings.late_ply:
            return TemporalPhase.MID
        return TemporalPhase.LATE

    def extract(self, checkpoint: Checkpoint) -> SignatureProfile:
        board = checkpoint.board()
        pieces = board.piece_map()
        total = len(pieces)
        enhanced = self._settings.enhanced

        region_counts = dict.fromkeys(BASE_REGIONS, 0)
        if enhanced:
            region_counts.update(dict.fromkeys(ENHANCED_REGIONS, 0))
        type_counts = dict.fromkeys(UNIT_TYPES, 0)
        for square, piece in pieces.items():
            region_counts[base_region(square, piece.color)] += 1
            if enhanced:
                region_counts[enhanced_region(square, piece.color)] += 1
            type_counts[chess.piece_name(piece.piece_type)] += 1

        return SignatureProfile(
            regions={name: _fraction(count, total) for name, count in region_counts.items()},
            dominance={name: _fraction(count, total) for name, count in type_counts.items()},
            material_balance=board_features.signed_ratio(
                board_features.material(board, chess.WHITE),
                board_features.material(board, chess.BLACK),
            ),
            activity_advantage=board_features.signed_ratio(
                board_features.mobility(board, chess.WHITE),
                board_features.mobility(board, chess.BLACK),
            ),
            space_advantage=board_features.signed_ratio(
                board_features.space(board, chess.WHITE),
                board_features.space(board, chess.BLACK),
            ),
            pawn_advancement=board_features.pawn_advancement(board, chess.WHITE)
            - board_features.pawn_advancement(board, chess.BLACK),
            tension=board_features.attacked_fraction(board),
            temporal_phase=self.phase_for(checkpoint.ply_index),
            enhanced=enhanced,
            unit_count=total,
        )


def _fraction(count: int, total: int) -> float:
    return count / total if total else 0.0
