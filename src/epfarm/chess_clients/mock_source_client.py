"""Mock source client implementation."""

from __future__ import annotations

from collections.abc import Callable, Iterable, Mapping, Sequence

from epfarm.chess_clients.base_source_client import BaseSourceClient, SourceClientContext
from epfarm.models.record import RawRecord

IdentityBehaviour = Sequence[RawRecord] | BaseException | Callable[[], Iterable[RawRecord]]


class MockSourceClient(BaseSourceClient):
    """Source client that serves in-memory records per identity.

    Each identity maps to a list of records, an exception to raise, or a
    callable invoked on every fetch. Calls are recorded in ``calls``.
    """

    def __init__(
        self,
        context: SourceClientContext,
        behaviours: Mapping[str, IdentityBehaviour],
        name: str = "mock",
    ) -> None:
        super().__init__(context, list(behaviours))
        self.name = name
        self._behaviours = dict(behaviours)
        self.calls: list[str] = []

    def _fetch_identity(self, identity: str) -> Iterable[RawRecord]:
        self.calls.append(identity)
        behaviour = self._behaviours[identity]
        if isinstance(behaviour, BaseException):
            raise behaviour
        if callable(behaviour):
            return list(behaviour())
        return list(behaviour)
