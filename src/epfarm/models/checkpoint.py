"""Checkpoint model."""

from __future__ import annotations

from dataclasses import dataclass

import chess

from epfarm.utils.hasher import hash as hash_text


@dataclass(frozen=True, slots=True)
class Checkpoint:
    """Canonical board state at a ply index.

    ``canonical_state`` is the four-field EPD of the position (placement, side
    to move, castling rights, legal en passant square). Move counters are left
    out so transpositions to the same position hash identically.
    """

    canonical_state: str
    content_hash: str
    ply_index: int
    side_to_move: str
    fen: str

    @classmethod
    def from_board(cls, board: chess.Board, ply_index: int) -> Checkpoint:
        canonical = board.epd()
        return cls(
            canonical_state=canonical,
            content_hash=hash_text(canonical),
            ply_index=ply_index,
            side_to_move="white" if board.turn == chess.WHITE else "black",
            fen=board.fen(),
        )

    def board(self) -> chess.Board:
        """Return a fresh board for the checkpoint position."""
        return chess.Board(self.fen)
