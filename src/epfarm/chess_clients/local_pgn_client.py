"""Offline source adapter reading PGN files from disk."""

from __future__ import annotations

from collections.abc import Iterable
from pathlib import Path

from epfarm.chess_clients.base_source_client import BaseSourceClient, SourceClientContext
from epfarm.chess_clients.pgn_utils import (
    extract_game_id,
    extract_rating_meta,
    parse_outcome,
    read_headers,
    split_pgn_chunks,
)
from epfarm.errors import IdentityNotFound
from epfarm.models.record import RawRecord


def discover_pgn_files(directory: Path | None) -> list[str]:
    if directory is None or not directory.is_dir():
        return []
    return sorted(str(path) for path in directory.glob("*.pgn"))


class LocalPgnClient(BaseSourceClient):
    """Source adapter whose identities are PGN files."""

    name = "local"

    def __init__(
        self,
        context: SourceClientContext,
        paths: list[str] | None = None,
    ) -> None:
        if paths is None:
            paths = discover_pgn_files(context.settings.local.pgn_dir)
        super().__init__(context, paths)

    def _fetch_identity(self, identity: str) -> Iterable[RawRecord]:
        path = Path(identity)
        if not path.exists():
            raise IdentityNotFound(self.name, identity)
        chunks = split_pgn_chunks(path.read_text(encoding="utf-8"))
        self.logger.info("Loaded %s PGNs from %s", len(chunks), path)
        records: list[RawRecord] = []
        for pgn in chunks:
            headers = read_headers(pgn)
            records.append(
                RawRecord(
                    provider_id=extract_game_id(pgn, headers),
                    provider_name=self.name,
                    pgn=pgn,
                    declared_outcome=parse_outcome(headers),
                    rating_meta=extract_rating_meta(headers),
                )
            )
        return records
