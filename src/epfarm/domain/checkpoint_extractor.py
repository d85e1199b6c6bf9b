"""Tolerant replay of a record's moves to a target ply."""

from __future__ import annotations

import chess

from epfarm.chess_clients.pgn_utils import extract_start_fen, read_headers, tokenize_moves
from epfarm.errors import InsufficientLength, Unparseable
from epfarm.models.checkpoint import Checkpoint
from epfarm.models.record import RawRecord
from epfarm.utils.logger import get_logger

logger = get_logger(__name__)


def _parse_move(board: chess.Board, token: str) -> chess.Move | None:
    try:
        move = board.parse_san(token)
    except ValueError:
        try:
            move = board.parse_uci(token.lower())
        except ValueError:
            return None
    # Null-move placeholders ("--", "Z0", "0000") are not plies.
    return move or None


class CheckpointExtractor:
    """Replay moves one at a time and snapshot the board at ``target_ply``.

    Tokens that are neither legal SAN nor legal UCI in the current position
    are skipped and replay continues. Only the count of applied moves decides
    whether the checkpoint is reachable.
    """

    def extract(self, raw: RawRecord, target_ply: int) -> Checkpoint:
        record_id = str(raw.record_id)
        tokens = self._tokens(raw)
        if not tokens:
            raise Unparseable(record_id, "no move tokens")
        board = self._start_board(raw, record_id)
        applied = 0
        skipped: list[str] = []
        for token in tokens:
            if applied >= target_ply:
                break
            move = _parse_move(board, token)
            if move is None:
                skipped.append(token)
                continue
            board.push(move)
            applied += 1
        if skipped:
            logger.info(
                "Skipped %s unparseable moves in %s: %s",
                len(skipped),
                record_id,
                ", ".join(skipped[:5]),
            )
        if applied < target_ply:
            raise InsufficientLength(record_id, applied, target_ply)
        return Checkpoint.from_board(board, applied)

    @staticmethod
    def _tokens(raw: RawRecord) -> list[str]:
        if raw.moves is not None:
            return [token.strip() for token in raw.moves if token.strip()]
        return tokenize_moves(raw.pgn or "")

    @staticmethod
    def _start_board(raw: RawRecord, record_id: str) -> chess.Board:
        if raw.pgn is None:
            return chess.Board()
        fen = extract_start_fen(read_headers(raw.pgn))
        if fen is None:
            return chess.Board()
        try:
            return chess.Board(fen)
        except ValueError as exc:
            raise Unparseable(record_id, f"invalid FEN header: {fen}") from exc
