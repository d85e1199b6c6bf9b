"""Side-relative measurements over a python-chess board."""

from __future__ import annotations

import chess

PIECE_VALUES = {
    chess.PAWN: 1,
    chess.KNIGHT: 3,
    chess.BISHOP: 3,
    chess.ROOK: 5,
    chess.QUEEN: 9,
    chess.KING: 0,
}


def signed_ratio(white: float, black: float) -> float:
    """Return ``(white - black) / (white + black)``, 0.0 when both are zero."""
    total = white + black
    if total <= 0:
        return 0.0
    return (white - black) / total


def material(board: chess.Board, color: chess.Color) -> int:
    return sum(
        PIECE_VALUES[piece_type] * len(board.pieces(piece_type, color))
        for piece_type in PIECE_VALUES
    )


def mobility(board: chess.Board, color: chess.Color) -> int:
    """Count pseudo-legal moves for ``color`` regardless of whose turn it is."""
    probe = board.copy(stack=False)
    probe.turn = color
    probe.ep_square = None
    return sum(1 for _ in probe.pseudo_legal_moves)


def space(board: chess.Board, color: chess.Color) -> int:
    """Count squares in the opponent's half attacked by ``color``."""
    ranks = range(4, 8) if color == chess.WHITE else range(0, 4)
    return sum(
        1
        for rank in ranks
        for file in range(8)
        if board.is_attacked_by(color, chess.square(file, rank))
    )


def pawn_advancement(board: chess.Board, color: chess.Color) -> float:
    """Mean pawn progress towards promotion, 0.0 on the home rank and 1.0 on the seventh."""
    pawns = board.pieces(chess.PAWN, color)
    if not pawns:
        return 0.0
    if color == chess.WHITE:
        steps = [chess.square_rank(square) - 1 for square in pawns]
    else:
        steps = [6 - chess.square_rank(square) for square in pawns]
    return sum(min(max(step, 0), 5) for step in steps) / (5 * len(steps))


def attacked_fraction(board: chess.Board) -> float:
    """Fraction of all units standing on a square attacked by the opposing side."""
    pieces = board.piece_map()
    if not pieces:
        return 0.0
    attacked = sum(
        1 for square, piece in pieces.items() if board.is_attacked_by(not piece.color, square)
    )
    return attacked / len(pieces)
