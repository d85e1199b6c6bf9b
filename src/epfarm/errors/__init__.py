"""Custom error types used in epfarm."""

import requests


class EpfarmError(Exception):
    """Base class for epfarm errors."""


class ConfigurationError(EpfarmError):
    """Invalid or missing configuration detected at startup."""


class RateLimitError(requests.HTTPError):
    """HTTP rate limit error."""


class IdentityNotFound(EpfarmError):
    """The upstream identity (player account) does not exist."""

    def __init__(self, provider: str, identity: str) -> None:
        super().__init__(f"{provider} identity not found: {identity}")
        self.provider = provider
        self.identity = identity


class SourceExhausted(EpfarmError):
    """No source adapter yielded usable records this cycle."""


class RecordDropped(EpfarmError):
    """A single record was dropped from the batch."""

    reason = "dropped"

    def __init__(self, record_id: str, detail: str = "") -> None:
        message = f"{self.reason}: {record_id}"
        if detail:
            message = f"{message} ({detail})"
        super().__init__(message)
        self.record_id = record_id
        self.detail = detail


class Unparseable(RecordDropped):
    """A record's move text could not be read at all."""

    reason = "unparseable"


class InsufficientLength(RecordDropped):
    """A record has fewer applied moves than the target checkpoint ply."""

    reason = "insufficient_length"

    def __init__(self, record_id: str, applied: int, target_ply: int) -> None:
        super().__init__(record_id, f"{applied} of {target_ply} plies")
        self.applied = applied
        self.target_ply = target_ply


class PersistenceFailure(EpfarmError):
    """The prediction store could not be reached or rejected the write."""


class CycleStageError(EpfarmError):
    """A scheduler stage failed and aborted the current cycle."""

    def __init__(self, stage: str, cause: BaseException) -> None:
        super().__init__(f"{stage} stage failed: {cause}")
        self.stage = stage
        self.cause = cause
