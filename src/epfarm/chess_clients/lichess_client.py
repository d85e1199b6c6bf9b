"""Lichess source adapter backed by berserk."""

from __future__ import annotations

from collections.abc import Iterable

import berserk
import requests

from epfarm.chess_clients.base_source_client import BaseSourceClient, SourceClientContext
from epfarm.chess_clients.pgn_utils import (
    extract_game_id,
    extract_rating_meta,
    parse_outcome,
    read_headers,
)
from epfarm.models.record import RawRecord


class TimeoutSession(requests.Session):
    """Requests session that applies a default timeout to every call."""

    def __init__(self, timeout: float, token: str | None = None) -> None:
        super().__init__()
        self._timeout = timeout
        if token:
            self.headers.update({"Authorization": f"Bearer {token}"})

    def request(self, method, url, *args, **kwargs):  # type: ignore[override]
        kwargs.setdefault("timeout", self._timeout)
        return super().request(method, url, *args, **kwargs)


def build_client(context: SourceClientContext) -> berserk.Client:
    """Build a Berserk client for the Lichess API.

    Args:
        context: Client context carrying settings.

    Returns:
        Berserk client instance whose session enforces the request timeout.
    """

    settings = context.settings
    session = TimeoutSession(settings.sources.request_timeout_s, settings.lichess.token)
    return berserk.Client(session=session)


def pgn_to_record(pgn: str) -> RawRecord:
    headers = read_headers(pgn)
    return RawRecord(
        provider_id=extract_game_id(pgn, headers),
        provider_name=LichessClient.name,
        pgn=pgn,
        declared_outcome=parse_outcome(headers),
        rating_meta=extract_rating_meta(headers),
    )


class LichessClient(BaseSourceClient):
    """Client for Lichess game exports, one player per identity."""

    name = "lichess"

    def __init__(
        self,
        context: SourceClientContext,
        client: berserk.Client | None = None,
    ) -> None:
        """Initialize the client with Lichess-specific context.

        Args:
            context: Client context containing settings and logger.
            client: Optional prebuilt berserk client.
        """

        super().__init__(context, context.settings.lichess.players)
        self._client = client

    @property
    def client(self) -> berserk.Client:
        if self._client is None:
            self._client = build_client(self._context)
        return self._client

    def _fetch_identity(self, identity: str) -> Iterable[RawRecord]:
        """Export recent games for one player.

        Args:
            identity: Lichess username.

        Returns:
            Raw records parsed from the exported PGN stream.
        """

        lichess = self.settings.lichess
        self.logger.info(
            "Fetching Lichess games for player=%s perf=%s", identity, lichess.perf_type
        )
        records: list[RawRecord] = []
        for pgn in self.client.games.export_by_player(
            identity,
            as_pgn=True,
            max=lichess.max_games,
            perf_type=lichess.perf_type or None,
            rated=True,
            clocks=False,
            evals=False,
            opening=False,
        ):
            if pgn and pgn.strip():
                records.append(pgn_to_record(pgn.strip()))
        self.logger.info("Fetched %s Lichess PGNs for %s", len(records), identity)
        return records
