"""Chess.com source adapter over the public archive API."""

from __future__ import annotations

import re
from collections.abc import Iterable, Mapping

import requests

from epfarm.chess_clients.base_source_client import BaseSourceClient, SourceClientContext
from epfarm.chess_clients.pgn_utils import (
    extract_game_id,
    extract_rating_meta,
    parse_outcome,
    read_headers,
)
from epfarm.models.record import RawRecord

ARCHIVES_URL = "https://api.chess.com/pub/player/{username}/games/archives"
_GAME_URL_ID_RE = re.compile(r"/(\d+)(?:\?.*)?$")


def _auth_headers(user_agent: str, token: str | None) -> dict[str, str]:
    headers = {"User-Agent": user_agent}
    if token:
        headers["Authorization"] = f"Bearer {token}"
    return headers


def _game_id(game: Mapping[str, object], pgn: str, headers: dict[str, str]) -> str:
    url = str(game.get("url") or "")
    match = _GAME_URL_ID_RE.search(url)
    if match:
        return match.group(1)
    uuid = game.get("uuid")
    if uuid:
        return str(uuid)
    return extract_game_id(pgn, headers)


class ChesscomClient(BaseSourceClient):
    """Client for Chess.com monthly archives, one player per identity."""

    name = "chesscom"

    def __init__(
        self,
        context: SourceClientContext,
        session: requests.Session | None = None,
    ) -> None:
        """Initialize the client with Chess.com-specific context.

        Args:
            context: Client context containing settings and logger.
            session: Optional requests session, mainly for tests.
        """

        super().__init__(context, context.settings.chesscom.players)
        self._session = session or requests.Session()

    def _get_json(self, url: str) -> dict:
        chesscom = self.settings.chesscom
        response = self._session.get(
            url,
            headers=_auth_headers(chesscom.user_agent, chesscom.token),
            timeout=self.settings.sources.request_timeout_s,
        )
        response.raise_for_status()
        return response.json()

    def _fetch_identity(self, identity: str) -> Iterable[RawRecord]:
        """Fetch the latest monthly archive for one player.

        Args:
            identity: Chess.com username.

        Returns:
            Raw records for games in the latest archive.
        """

        archives = self._get_json(ARCHIVES_URL.format(username=identity.lower())).get(
            "archives", []
        )
        if not archives:
            self.logger.info("No archives returned for %s", identity)
            return []
        payload = self._get_json(archives[-1])
        records = [
            record
            for record in (self._game_to_record(game) for game in payload.get("games", []))
            if record is not None
        ]
        self.logger.info("Fetched %s Chess.com PGNs for %s", len(records), identity)
        return records

    def _game_to_record(self, game: Mapping[str, object]) -> RawRecord | None:
        pgn = str(game.get("pgn") or "").strip()
        if not pgn:
            return None
        if str(game.get("rules") or "chess") != "chess":
            return None
        time_class = self.settings.chesscom.time_class
        if time_class and game.get("time_class") != time_class:
            return None
        headers = read_headers(pgn)
        meta = extract_rating_meta(headers)
        if game.get("time_class"):
            meta["time_class"] = str(game["time_class"])
        return RawRecord(
            provider_id=_game_id(game, pgn, headers),
            provider_name=self.name,
            pgn=pgn,
            declared_outcome=parse_outcome(headers),
            rating_meta=meta,
        )
