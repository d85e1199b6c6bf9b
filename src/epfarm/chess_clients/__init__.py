from epfarm.chess_clients.base_source_client import BaseSourceClient, SourceClientContext
from epfarm.chess_clients.chesscom_client import ChesscomClient
from epfarm.chess_clients.identity_rotation import IdentityRotation
from epfarm.chess_clients.lichess_client import LichessClient
from epfarm.chess_clients.local_pgn_client import LocalPgnClient
from epfarm.chess_clients.mock_source_client import MockSourceClient

__all__ = [
    "BaseSourceClient",
    "ChesscomClient",
    "IdentityRotation",
    "LichessClient",
    "LocalPgnClient",
    "MockSourceClient",
    "SourceClientContext",
]
