"""Port interface for game source adapters."""

# pylint: disable=too-few-public-methods

from __future__ import annotations

from collections.abc import Set
from enum import Enum
from typing import Protocol

from pydantic import BaseModel, Field

from epfarm.models.record import RawRecord


class SourceStatus(str, Enum):
    """Soft outcome of a fetch. Adapters report these instead of raising."""

    OK = "ok"
    EXHAUSTED = "exhausted"
    RATE_LIMITED = "rate_limited"
    UNAVAILABLE = "unavailable"


class FetchBatchResult(BaseModel):
    """Records returned by one ``fetch_batch`` call.

    Attributes:
        source: Name of the adapter that produced the batch.
        records: Usable records, excluded ids and short games already removed.
        status: Soft status for the call.
        identities_tried: Upstream identities visited during the call.
    """

    source: str
    records: list[RawRecord] = Field(default_factory=list)
    status: SourceStatus = SourceStatus.OK
    identities_tried: list[str] = Field(default_factory=list)


class SourceAdapter(Protocol):
    """Stable interface for record sources."""

    name: str

    def fetch_batch(self, exclude: Set[str], limit: int) -> FetchBatchResult:
        """Return up to ``limit`` records whose ids are not in ``exclude``."""
