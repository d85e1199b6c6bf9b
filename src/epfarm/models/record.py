"""Record identity and raw record models."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, model_validator

SOURCE_ALIASES = {
    "lichess": "lichess",
    "li": "lichess",
    "chesscom": "chesscom",
    "cc": "chesscom",
    "local": "local",
}


class Outcome(str, Enum):
    """Final result of a game, named by the winning side."""

    WHITE = "white"
    BLACK = "black"
    DRAW = "draw"

    @classmethod
    def from_result(cls, result: str | None) -> Outcome | None:
        """Map a PGN ``Result`` tag to an outcome; unfinished games map to None."""
        value = (result or "").strip()
        if value == "1-0":
            return cls.WHITE
        if value == "0-1":
            return cls.BLACK
        if value in {"1/2-1/2", "½-½"}:
            return cls.DRAW
        return None

    @property
    def sign(self) -> int:
        if self is Outcome.WHITE:
            return 1
        if self is Outcome.BLACK:
            return -1
        return 0

    @classmethod
    def from_sign(cls, value: float) -> Outcome:
        if value > 0:
            return cls.WHITE
        if value < 0:
            return cls.BLACK
        return cls.DRAW


@dataclass(frozen=True, slots=True)
class RecordId:
    """Identifier carrying a source-qualified form and a raw provider form.

    ``RecordId("lichess", "abcd1234").qualified`` is ``"lichess_abcd1234"``
    while ``.raw`` is ``"abcd1234"``. Both forms name the same record.
    """

    source: str
    provider_id: str

    @property
    def qualified(self) -> str:
        return f"{self.source}_{self.provider_id}"

    @property
    def raw(self) -> str:
        return self.provider_id

    def forms(self) -> tuple[str, str]:
        return (self.qualified, self.raw)

    def __str__(self) -> str:
        return self.qualified

    @classmethod
    def parse(cls, value: str, default_source: str = "unknown") -> RecordId:
        """Build a RecordId from either form.

        A known source prefix (``lichess_``, ``chesscom_``, ``local_`` and the
        short ``li_``/``cc_`` aliases) is split off; anything else is taken as
        a raw provider id.
        """
        text = value.strip()
        prefix, sep, rest = text.partition("_")
        if sep and rest and prefix.lower() in SOURCE_ALIASES:
            return cls(SOURCE_ALIASES[prefix.lower()], rest)
        return cls(default_source, text)


class RawRecord(BaseModel):
    """A game as returned by a source adapter, before extraction.

    Attributes:
        provider_id: Identifier assigned by the upstream provider.
        provider_name: Source name (``lichess``, ``chesscom`` or ``local``).
        pgn: Annotated PGN text, when the provider returns PGN.
        moves: Plain move tokens (SAN or UCI), when the provider returns a list.
        declared_outcome: Result reported by the provider.
        rating_meta: Ratings and time control, kept for logging.
    """

    model_config = ConfigDict(frozen=True)

    provider_id: str
    provider_name: str
    pgn: str | None = None
    moves: tuple[str, ...] | None = None
    declared_outcome: Outcome | None = None
    rating_meta: dict[str, str] = Field(default_factory=dict)

    @model_validator(mode="after")
    def _require_moves(self) -> RawRecord:
        if self.pgn is None and self.moves is None:
            raise ValueError("RawRecord requires either pgn or moves")
        return self

    @property
    def record_id(self) -> RecordId:
        return RecordId(self.provider_name, self.provider_id)
