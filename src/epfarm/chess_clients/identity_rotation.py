"""Round-robin rotation over a pool of upstream identities."""

from __future__ import annotations

from collections.abc import Iterator, Sequence


class IdentityRotation:
    """Cycle through identities, resuming after the last one visited.

    Each call to :meth:`visit` yields every identity at most once, starting
    where the previous call stopped, so consecutive batches are spread across
    the whole pool.
    """

    def __init__(self, identities: Sequence[str], start: int = 0) -> None:
        self._identities = [identity for identity in identities if identity]
        self._index = start % len(self._identities) if self._identities else 0

    def __len__(self) -> int:
        return len(self._identities)

    @property
    def identities(self) -> list[str]:
        return list(self._identities)

    @property
    def position(self) -> int:
        return self._index

    def visit(self) -> Iterator[str]:
        for _ in range(len(self._identities)):
            identity = self._identities[self._index]
            self._index = (self._index + 1) % len(self._identities)
            yield identity
