"""Durable set of processed record ids."""

from __future__ import annotations

import json
import os
import threading
from collections.abc import Callable
from datetime import datetime
from pathlib import Path

from epfarm.models.record import RecordId
from epfarm.utils.logger import get_logger
from epfarm.utils.now import Now

logger = get_logger(__name__)

LEDGER_FORMAT_VERSION = 1


def _forms(record_id: RecordId | str) -> set[str]:
    """Return every form a record id is known under.

    A qualified string such as ``lichess_abcd1234`` yields itself and its raw
    provider id; a raw string yields only itself, which still matches the raw
    form stored for any qualified mark.
    """
    if isinstance(record_id, RecordId):
        return set(record_id.forms())
    parsed = RecordId.parse(record_id)
    return {record_id.strip(), parsed.raw}


class DedupLedger:
    """JSON-file backed ledger of record ids that were already processed.

    Every mark stores both the qualified and raw form of the id with its
    first-seen timestamp. Unflushed marks are written to disk every
    ``flush_every`` new ids and on :meth:`flush`.
    """

    def __init__(
        self,
        path: Path,
        flush_every: int = 100,
        clock: Callable[[], datetime] = Now.as_datetime,
    ) -> None:
        self._path = Path(path)
        self._flush_every = max(flush_every, 1)
        self._clock = clock
        self._lock = threading.Lock()
        self._entries: dict[str, str] = {}
        self._pending = 0
        self._load()

    @property
    def path(self) -> Path:
        return self._path

    @property
    def pending(self) -> int:
        return self._pending

    def __len__(self) -> int:
        return len(self._entries)

    def _load(self) -> None:
        if not self._path.exists():
            logger.info("No dedup ledger at %s; starting empty", self._path)
            return
        try:
            payload = json.loads(self._path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as exc:
            logger.warning("Unreadable dedup ledger %s, starting empty: %s", self._path, exc)
            return
        self._entries = self._coerce_entries(payload)
        logger.info("Loaded %s known ids from %s", len(self._entries), self._path)

    @staticmethod
    def _coerce_entries(payload: object) -> dict[str, str]:
        if isinstance(payload, list):
            # Plain id arrays carry no timestamps.
            return {str(item): "" for item in payload}
        if isinstance(payload, dict):
            entries = payload.get("entries", {})
            if isinstance(entries, dict):
                return {str(key): str(value) for key, value in entries.items()}
        return {}

    def is_known(self, record_id: RecordId | str) -> bool:
        return any(form in self._entries for form in _forms(record_id))

    def first_seen_at(self, record_id: RecordId | str) -> str | None:
        for form in _forms(record_id):
            if form in self._entries:
                return self._entries[form] or None
        return None

    def mark_known(self, record_id: RecordId | str) -> bool:
        """Mark every form of an id as known; return True when the id was new."""
        forms = _forms(record_id)
        with self._lock:
            if any(form in self._entries for form in forms):
                added = False
                seen_at = next(
                    (self._entries[form] for form in forms if self._entries.get(form)), ""
                )
            else:
                added = True
                seen_at = self._clock().isoformat()
            for form in forms:
                self._entries.setdefault(form, seen_at)
            if added:
                self._pending += 1
            should_flush = self._pending >= self._flush_every
        if should_flush:
            try:
                self.flush()
            except OSError as exc:
                logger.warning(
                    "Periodic ledger flush to %s failed; %s ids stay pending: %s",
                    self._path,
                    self._pending,
                    exc,
                )
        return added

    def build_exclusion_set(self) -> frozenset[str]:
        with self._lock:
            return frozenset(self._entries)

    def flush(self) -> None:
        """Write the ledger atomically; a no-op when nothing changed."""
        with self._lock:
            if self._pending == 0 and self._path.exists():
                return
            payload = {
                "version": LEDGER_FORMAT_VERSION,
                "entries": dict(sorted(self._entries.items())),
            }
            self._path.parent.mkdir(parents=True, exist_ok=True)
            tmp_path = self._path.with_name(f"{self._path.name}.tmp")
            tmp_path.write_text(json.dumps(payload), encoding="utf-8")
            os.replace(tmp_path, self._path)
            flushed = self._pending
            self._pending = 0
        logger.debug("Flushed dedup ledger (%s new ids) to %s", flushed, self._path)
