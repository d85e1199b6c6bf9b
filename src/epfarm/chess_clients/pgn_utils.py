from __future__ import annotations

import re
from io import StringIO

import chess.pgn

from epfarm.models.record import Outcome
from epfarm.utils.hasher import hash as hash_text

SITE_PATTERNS = [
    re.compile(r"lichess\.org/([A-Za-z0-9]{8})"),
    re.compile(r"chess\.com/(?:game/live|game/daily|game|live/game)/(\d+)", re.IGNORECASE),
    re.compile(r"chess\.com/.*/(\d{6,})", re.IGNORECASE),
]

FIXTURE_SPLIT_RE = re.compile(r"\n{2,}(?=\[Event )")
RESULT_TOKENS = frozenset({"1-0", "0-1", "1/2-1/2", "*"})
RATING_HEADERS = {
    "WhiteElo": "white_elo",
    "BlackElo": "black_elo",
    "TimeControl": "time_control",
    "Event": "event",
}

_HEADER_LINE_RE = re.compile(r"^\s*\[[^\]\n]*\]\s*$", re.MULTILINE)
_BRACE_COMMENT_RE = re.compile(r"\{[^}]*\}")
_LINE_COMMENT_RE = re.compile(r";[^\n]*")
_NAG_RE = re.compile(r"\$\d+")
_MOVE_NUMBER_RE = re.compile(r"^\d+\.+")


def split_pgn_chunks(text: str) -> list[str]:
    """Split a multi-game PGN payload into one chunk per game."""
    if not text:
        return []
    return [chunk.strip() for chunk in FIXTURE_SPLIT_RE.split(text) if chunk.strip()]


def read_headers(pgn: str) -> dict[str, str]:
    headers = chess.pgn.read_headers(StringIO(pgn))
    if headers is None:
        return {}
    return dict(headers.items())


def extract_game_id(pgn: str, headers: dict[str, str] | None = None) -> str:
    """Return the provider id from the ``Site``/``Link`` headers, else a content hash."""
    values = headers if headers is not None else read_headers(pgn)
    for key in ("Site", "Link"):
        match = _match_site_id(values.get(key, ""))
        if match:
            return match
    return hash_text(pgn.strip())[:16]


def _match_site_id(site: str) -> str | None:
    for pattern in SITE_PATTERNS:
        match = pattern.search(site)
        if match:
            return match.group(1)
    return None


def _normalize_header_value(value: str | None) -> str | None:
    if not value:
        return None
    if value.strip() in {"?", "-"}:
        return None
    return value.strip()


def parse_outcome(headers: dict[str, str]) -> Outcome | None:
    return Outcome.from_result(headers.get("Result"))


def extract_rating_meta(headers: dict[str, str]) -> dict[str, str]:
    meta: dict[str, str] = {}
    for header, key in RATING_HEADERS.items():
        value = _normalize_header_value(headers.get(header))
        if value is not None:
            meta[key] = value
    return meta


def extract_start_fen(headers: dict[str, str]) -> str | None:
    """Return the setup position of a game that does not start from the initial array."""
    fen = _normalize_header_value(headers.get("FEN"))
    if not fen:
        return None
    if headers.get("SetUp", "1").strip() == "0":
        return None
    return fen


def _strip_variations(text: str) -> str:
    depth = 0
    kept: list[str] = []
    for char in text:
        if char == "(":
            depth += 1
            continue
        if char == ")":
            depth = max(depth - 1, 0)
            continue
        if depth == 0:
            kept.append(char)
    return "".join(kept)


def tokenize_moves(pgn: str) -> list[str]:
    """Return mainline move tokens with headers, comments and annotations removed.

    Tokens are returned as written (SAN or UCI); they are not validated here.
    """
    body = _HEADER_LINE_RE.sub(" ", pgn)
    body = _BRACE_COMMENT_RE.sub(" ", body)
    body = _LINE_COMMENT_RE.sub(" ", body)
    body = _strip_variations(body)
    body = _NAG_RE.sub(" ", body)
    tokens: list[str] = []
    for raw in body.split():
        token = _MOVE_NUMBER_RE.sub("", raw).rstrip("!?")
        if not token or token in RESULT_TOKENS:
            continue
        tokens.append(token)
    return tokens
