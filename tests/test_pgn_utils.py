from epfarm.chess_clients.pgn_utils import (
    extract_game_id,
    extract_rating_meta,
    extract_start_fen,
    parse_outcome,
    read_headers,
    split_pgn_chunks,
    tokenize_moves,
)
from epfarm.models import Outcome

from tests.epfarm_samples import ITALIAN_DRAW_PGN, OPERA_MOVES, OPERA_PGN, QGD_PGN


def test_tokenize_strips_annotations() -> None:
    pgn = (
        '[Event "x"]\n[Result "1-0"]\n\n'
        "1. e4 {[%clk 0:03:00]} e5 2. Nf3!? (2. f4 exf4 (2... d5)) 2... Nc6 $1 "
        "3. Bb5 ; a line comment\n3... a6 1-0"
    )
    assert tokenize_moves(pgn) == ["e4", "e5", "Nf3", "Nc6", "Bb5", "a6"]


def test_tokenize_attached_move_numbers() -> None:
    assert tokenize_moves("1.e4 e5 2.Nf3 *") == ["e4", "e5", "Nf3"]


def test_tokenize_sample_game() -> None:
    assert tokenize_moves(OPERA_PGN) == OPERA_MOVES


def test_split_chunks() -> None:
    chunks = split_pgn_chunks(f"{OPERA_PGN}\n\n{QGD_PGN}\n\n{ITALIAN_DRAW_PGN}")
    assert len(chunks) == 3
    assert chunks[1].startswith('[Event "Rated Blitz game"]')
    assert split_pgn_chunks("") == []


def test_game_id_from_site_and_link() -> None:
    assert extract_game_id(OPERA_PGN) == "OperaGm1"
    chesscom = '[Event "Live Chess"]\n[Site "Chess.com"]\n[Link "https://www.chess.com/game/live/123456789"]\n\n1. e4 *'
    assert extract_game_id(chesscom) == "123456789"


def test_game_id_falls_back_to_hash() -> None:
    pgn = '[Event "Casual"]\n[Site "?"]\n\n1. e4 e5 *'
    first = extract_game_id(pgn)
    assert len(first) == 16
    assert extract_game_id(pgn) == first


def test_outcome_and_rating_meta() -> None:
    headers = read_headers(QGD_PGN)
    assert parse_outcome(headers) is Outcome.BLACK
    assert extract_rating_meta(headers) == {
        "white_elo": "2100",
        "black_elo": "2050",
        "time_control": "180+0",
        "event": "Rated Blitz game",
    }


def test_rating_meta_skips_placeholders() -> None:
    assert extract_rating_meta({"WhiteElo": "?", "BlackElo": "", "TimeControl": "-"}) == {}


def test_start_fen() -> None:
    fen = "8/8/8/8/8/8/8/K6k w - - 0 1"
    assert extract_start_fen({"SetUp": "1", "FEN": fen}) == fen
    assert extract_start_fen({"SetUp": "0", "FEN": fen}) is None
    assert extract_start_fen({}) is None
