from __future__ import annotations

# pylint: disable=broad-exception-caught
import logging
import time
from collections.abc import Callable, Iterable, Sequence, Set
from dataclasses import dataclass, field

from epfarm.chess_clients.http_status import (
    HTTP_STATUS_NOT_FOUND,
    HTTP_STATUS_TOO_MANY_REQUESTS,
    _extract_status_code,
)
from epfarm.chess_clients.identity_rotation import IdentityRotation
from epfarm.chess_clients.pgn_utils import tokenize_moves
from epfarm.config import Settings
from epfarm.errors import IdentityNotFound, RateLimitError
from epfarm.models.record import Outcome, RawRecord
from epfarm.ports.source_adapter import FetchBatchResult, SourceStatus
from epfarm.utils.retry_policy import RetryPolicy


@dataclass(slots=True)
class SourceClientContext:
    """Shared context for source adapters.

    Attributes:
        settings: Application settings used for API calls.
        logger: Logger for client-specific messages.
        sleep: Sleep function used for rate-limit pauses and retry backoff.
        stop_requested: Returns True once the worker is shutting down; the
            identity loop stops before starting another upstream call.
    """

    settings: Settings
    logger: logging.Logger
    sleep: Callable[[float], None] = field(default=time.sleep)
    stop_requested: Callable[[], bool] = field(default=lambda: False)


class BaseSourceClient:
    """Base class for source adapters.

    Subclasses implement :meth:`_fetch_identity`, returning the raw records
    for one upstream identity. This class owns identity rotation, the
    per-status policy (404 skips, 429 pauses once, anything else is retried
    with capped backoff) and the filtering of excluded, undecided and short
    records.
    """

    name = "base"

    def __init__(self, context: SourceClientContext, identities: Sequence[str]) -> None:
        """Initialize the client with shared context and an identity pool.

        Args:
            context: Context containing settings, logger and sleep function.
            identities: Upstream identities (players, files) to rotate through.
        """

        self._context = context
        self._rotation = IdentityRotation(identities)
        sources = context.settings.sources
        self._retry = RetryPolicy(
            max_attempts=sources.retry_attempts,
            base_delay=sources.retry_base_s,
            cap_delay=sources.retry_cap_s,
            sleep=context.sleep,
            stop_requested=context.stop_requested,
        )

    @property
    def settings(self) -> Settings:
        return self._context.settings

    @property
    def logger(self) -> logging.Logger:
        return self._context.logger

    @property
    def rotation(self) -> IdentityRotation:
        return self._rotation

    @property
    def min_moves(self) -> int:
        return self.settings.scheduler.target_ply

    def fetch_batch(self, exclude: Set[str], limit: int) -> FetchBatchResult:
        """Fetch up to ``limit`` usable records, rotating identities as needed.

        Args:
            exclude: Record ids (either form) that are already known.
            limit: Maximum number of records to return.

        Returns:
            The records plus a soft status; this method does not raise.
        """

        records: list[RawRecord] = []
        seen: set[str] = set()
        tried: list[str] = []
        failures = 0
        rate_limited = False
        for identity in self._rotation.visit():
            if len(records) >= limit:
                break
            if self._context.stop_requested():
                self.logger.info("%s fetch interrupted by shutdown", self.name)
                break
            tried.append(identity)
            try:
                candidates = self._retry.call(self._fetch_identity_checked, identity)
            except IdentityNotFound:
                self.logger.info("%s identity not found, skipping: %s", self.name, identity)
                continue
            except RateLimitError:
                rate_limited = True
                pause = self.settings.sources.rate_limit_sleep_s
                self.logger.warning(
                    "%s rate limited on %s; pausing %.1fs before next identity",
                    self.name,
                    identity,
                    pause,
                )
                self._context.sleep(pause)
                continue
            except Exception as exc:
                failures += 1
                self.logger.warning(
                    "%s fetch failed for %s after %s attempts: %s",
                    self.name,
                    identity,
                    self._retry.max_attempts,
                    exc,
                )
                continue
            for record in self._filter_records(candidates, exclude, seen):
                records.append(record)
                if len(records) >= limit:
                    break
            if len(records) >= limit:
                break
        status = self._resolve_status(records, tried, failures, rate_limited)
        if status is not SourceStatus.OK:
            self.logger.info(
                "%s exhausted %s identities without usable records (status=%s)",
                self.name,
                len(tried),
                status.value,
            )
        return FetchBatchResult(
            source=self.name,
            records=records,
            status=status,
            identities_tried=tried,
        )

    def _fetch_identity(self, identity: str) -> Iterable[RawRecord]:
        raise NotImplementedError("Subclasses must implement _fetch_identity")

    def _fetch_identity_checked(self, identity: str) -> list[RawRecord]:
        try:
            return list(self._fetch_identity(identity))
        except (IdentityNotFound, RateLimitError):
            raise
        except Exception as exc:
            status_code = _extract_status_code(exc)
            if status_code == HTTP_STATUS_NOT_FOUND:
                raise IdentityNotFound(self.name, identity) from exc
            if status_code == HTTP_STATUS_TOO_MANY_REQUESTS:
                raise RateLimitError(f"{self.name} rate limit exceeded") from exc
            raise

    def _filter_records(
        self,
        candidates: Iterable[RawRecord],
        exclude: Set[str],
        seen: set[str],
    ) -> Iterable[RawRecord]:
        for record in candidates:
            record_id = record.record_id
            if any(form in exclude or form in seen for form in record_id.forms()):
                continue
            seen.update(record_id.forms())
            if not self._is_usable(record):
                continue
            yield record

    def _is_usable(self, record: RawRecord) -> bool:
        outcome = record.declared_outcome
        if outcome is None:
            self.logger.debug("Dropping %s: no final result", record.record_id)
            return False
        if self.settings.sources.decisive_only and outcome is Outcome.DRAW:
            self.logger.debug("Dropping %s: draw with decisive_only", record.record_id)
            return False
        move_count = len(record.moves) if record.moves is not None else len(
            tokenize_moves(record.pgn or "")
        )
        if move_count < self.min_moves:
            self.logger.debug(
                "Dropping %s: %s moves below target ply %s",
                record.record_id,
                move_count,
                self.min_moves,
            )
            return False
        return True

    @staticmethod
    def _resolve_status(
        records: list[RawRecord],
        tried: list[str],
        failures: int,
        rate_limited: bool,
    ) -> SourceStatus:
        if records:
            return SourceStatus.OK
        if tried and failures == len(tried):
            return SourceStatus.UNAVAILABLE
        if rate_limited:
            return SourceStatus.RATE_LIMITED
        return SourceStatus.EXHAUSTED
