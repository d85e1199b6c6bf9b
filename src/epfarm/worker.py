"""Worker process entry point."""

from __future__ import annotations

import argparse
import logging
import signal
import sys
import threading
from collections.abc import Sequence

from epfarm.app.wiring import build_scheduler
from epfarm.config import get_settings
from epfarm.errors import ConfigurationError, PersistenceFailure
from epfarm.utils.logger import get_logger, set_level

logger = get_logger(__name__)


def _parse_args(argv: Sequence[str] | None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="epfarm-worker",
        description="Fetch games, predict outcomes at a checkpoint and store the results.",
    )
    parser.add_argument("--once", action="store_true", help="Run a single cycle and exit.")
    parser.add_argument("--max-cycles", type=int, default=None, help="Stop after N cycles.")
    parser.add_argument("--worker-id", default=None, help="Override EPFARM_WORKER_ID.")
    parser.add_argument(
        "--source",
        action="append",
        dest="sources",
        default=None,
        help="Enable a source (repeatable); overrides EPFARM_SOURCES.",
    )
    parser.add_argument("--debug", action="store_true", help="Enable debug logging.")
    return parser.parse_args(argv)


def _install_signal_handlers(stop_event: threading.Event) -> None:
    def _handle(signum: int, _frame: object) -> None:
        logger.info("Received signal %s; stopping after the current cycle", signum)
        stop_event.set()

    for sig in (signal.SIGINT, signal.SIGTERM):
        signal.signal(sig, _handle)


def main(argv: Sequence[str] | None = None) -> int:
    args = _parse_args(argv)
    if args.debug:
        set_level(logging.DEBUG)
    stop_event = threading.Event()
    try:
        settings = get_settings()
        if args.worker_id:
            settings.worker_id = args.worker_id
        if args.sources:
            settings.sources.enabled = list(args.sources)
        scheduler = build_scheduler(settings, stop_event=stop_event)
    except ConfigurationError as exc:
        logger.error("Configuration error: %s", exc)
        return 2
    except PersistenceFailure as exc:
        logger.error("Prediction store unavailable: %s", exc)
        return 1
    _install_signal_handlers(stop_event)
    max_cycles = 1 if args.once else args.max_cycles
    logger.info(
        "Starting worker %s with sources=%s target_ply=%s",
        settings.worker_id,
        ",".join(settings.sources.enabled),
        settings.scheduler.target_ply,
    )
    scheduler.run(max_cycles=max_cycles)
    return 0


if __name__ == "__main__":
    sys.exit(main())
