import chess
import pytest

from epfarm.domain import CheckpointExtractor
from epfarm.errors import InsufficientLength, Unparseable
from epfarm.models import Checkpoint, Outcome, RawRecord

from tests.epfarm_samples import OPERA_MOVES, OPERA_PGN, SCHOLAR_MOVES, make_pgn, make_record


@pytest.fixture
def extractor() -> CheckpointExtractor:
    return CheckpointExtractor()


def test_checkpoint_at_target_ply(extractor) -> None:
    record = RawRecord(
        provider_id="OperaGm1",
        provider_name="lichess",
        pgn=OPERA_PGN,
        declared_outcome=Outcome.WHITE,
    )
    checkpoint = extractor.extract(record, 20)

    board = chess.Board()
    for san in OPERA_MOVES[:20]:
        board.push_san(san)
    assert checkpoint.ply_index == 20
    assert checkpoint.side_to_move == "white"
    assert checkpoint.canonical_state == board.epd()
    assert checkpoint.fen == board.fen()
    assert checkpoint == Checkpoint.from_board(board, 20)


def test_same_prefix_gives_same_hash(extractor) -> None:
    from_pgn = RawRecord(
        provider_id="a", provider_name="lichess", pgn=OPERA_PGN, declared_outcome=Outcome.WHITE
    )
    from_moves = make_record("b", moves=OPERA_MOVES[:22], outcome=Outcome.BLACK, source="chesscom")
    first = extractor.extract(from_pgn, 20)
    second = extractor.extract(from_moves, 20)
    assert first.content_hash == second.content_hash
    assert first == second


def test_different_prefix_gives_different_hash(extractor) -> None:
    first = extractor.extract(make_record("a"), 20)
    second = extractor.extract(make_record("b"), 21)
    assert first.content_hash != second.content_hash


def test_unparseable_move_is_skipped(extractor) -> None:
    moves = list(OPERA_MOVES[:25])
    moves.insert(10, "Zz9")
    checkpoint = extractor.extract(make_record("bad", moves=moves), 20)
    clean = extractor.extract(make_record("clean"), 20)
    assert checkpoint.ply_index == 20
    assert checkpoint.content_hash == clean.content_hash


@pytest.mark.parametrize("token", ["--", "Z0", "0000"])
def test_null_move_token_is_skipped(extractor, token) -> None:
    moves = list(OPERA_MOVES[:25])
    moves.insert(10, token)
    checkpoint = extractor.extract(make_record("null", moves=moves), 20)
    clean = extractor.extract(make_record("clean"), 20)
    assert checkpoint.ply_index == 20
    assert checkpoint.content_hash == clean.content_hash


def test_illegal_move_is_skipped(extractor) -> None:
    moves = list(OPERA_MOVES[:22])
    moves.insert(3, "Ke2")
    checkpoint = extractor.extract(make_record("illegal", moves=moves), 20)
    assert checkpoint.content_hash == extractor.extract(make_record("clean"), 20).content_hash


def test_insufficient_length(extractor) -> None:
    with pytest.raises(InsufficientLength) as excinfo:
        extractor.extract(make_record("short", moves=SCHOLAR_MOVES), 20)
    assert excinfo.value.applied == 7
    assert excinfo.value.target_ply == 20
    assert excinfo.value.record_id == "lichess_short"


def test_bad_moves_do_not_count_towards_length(extractor) -> None:
    moves = list(OPERA_MOVES[:19]) + ["Zz9", "Qq0"]
    with pytest.raises(InsufficientLength):
        extractor.extract(make_record("nearly", moves=moves), 20)


def test_no_moves_is_unparseable(extractor) -> None:
    record = RawRecord(
        provider_id="empty",
        provider_name="lichess",
        pgn='[Event "x"]\n[Result "1-0"]\n\n1-0',
        declared_outcome=Outcome.WHITE,
    )
    with pytest.raises(Unparseable):
        extractor.extract(record, 20)


def test_uci_moves_are_accepted(extractor) -> None:
    uci = make_record("uci", moves=["e2e4", "e7e5", "g1f3", "b8c6"])
    san = make_record("san", moves=["e4", "e5", "Nf3", "Nc6"])
    assert extractor.extract(uci, 4).content_hash == extractor.extract(san, 4).content_hash


def test_fen_header_sets_start_position(extractor) -> None:
    fen = "rnbqkbnr/pppppppp/8/8/4P3/8/PPPP1PPP/RNBQKBNR b KQkq - 0 1"
    pgn = make_pgn([], "1-0", extra_headers={"SetUp": "1", "FEN": fen}).replace(
        "1-0\n", "1... e5 2. Nf3 1-0\n"
    )
    record = RawRecord(
        provider_id="fen", provider_name="lichess", pgn=pgn, declared_outcome=Outcome.WHITE
    )
    from_fen = extractor.extract(record, 2)
    from_start = extractor.extract(make_record("start", moves=["e4", "e5", "Nf3"]), 3)
    assert from_fen.ply_index == 2
    assert from_fen.canonical_state == from_start.canonical_state
    assert from_fen.content_hash == from_start.content_hash


def test_invalid_fen_header_is_unparseable(extractor) -> None:
    pgn = make_pgn(["e4"], "1-0", extra_headers={"SetUp": "1", "FEN": "not a fen"})
    record = RawRecord(
        provider_id="badfen", provider_name="lichess", pgn=pgn, declared_outcome=Outcome.WHITE
    )
    with pytest.raises(Unparseable):
        extractor.extract(record, 1)
