"""Default dependency wiring for the worker."""

from __future__ import annotations

import threading
import time
from collections.abc import Callable

from epfarm.app.pipeline import RecordPipeline
from epfarm.app.prediction_sink import PredictionSink
from epfarm.app.scheduler import CycleScheduler
from epfarm.chess_clients.base_source_client import BaseSourceClient, SourceClientContext
from epfarm.chess_clients.chesscom_client import ChesscomClient
from epfarm.chess_clients.lichess_client import LichessClient
from epfarm.chess_clients.local_pgn_client import LocalPgnClient
from epfarm.config import Settings
from epfarm.db.dedup_ledger import DedupLedger
from epfarm.db.duckdb_prediction_repository import DuckDbPredictionRepository
from epfarm.db.postgres_prediction_repository import PostgresPredictionRepository
from epfarm.domain.checkpoint_extractor import CheckpointExtractor
from epfarm.domain.hybrid_predictor import HybridPredictor
from epfarm.domain.material_evaluator import MaterialEvaluator
from epfarm.domain.signature_extractor import SignatureExtractor
from epfarm.errors import ConfigurationError
from epfarm.ports.repositories import PredictionRepository
from epfarm.utils.logger import get_logger

_SOURCE_TYPES: dict[str, type[BaseSourceClient]] = {
    LichessClient.name: LichessClient,
    ChesscomClient.name: ChesscomClient,
    LocalPgnClient.name: LocalPgnClient,
}


def build_sources(
    settings: Settings,
    sleep: Callable[[float], None] = time.sleep,
    stop_requested: Callable[[], bool] = lambda: False,
) -> list[BaseSourceClient]:
    """Instantiate the enabled source adapters in configured order."""
    sources: list[BaseSourceClient] = []
    for name in settings.sources.enabled:
        source_type = _SOURCE_TYPES.get(name)
        if source_type is None:
            raise ConfigurationError(f"Unsupported source: {name}")
        context = SourceClientContext(
            settings=settings,
            logger=get_logger(f"epfarm.chess_clients.{name}"),
            sleep=sleep,
            stop_requested=stop_requested,
        )
        sources.append(source_type(context))
    return sources


def build_repository(settings: Settings, read_only: bool = False) -> PredictionRepository:
    """Open the configured prediction store; DuckDB is opened read-only for readers."""
    if settings.sink_backend == "postgres":
        return PostgresPredictionRepository(settings)
    return DuckDbPredictionRepository.from_path(settings.duckdb_path, read_only=read_only)


def build_pipeline(
    settings: Settings,
    repository: PredictionRepository | None = None,
    ledger: DedupLedger | None = None,
) -> RecordPipeline:
    repo = repository if repository is not None else build_repository(settings)
    return RecordPipeline(
        checkpoints=CheckpointExtractor(),
        signatures=SignatureExtractor(settings.signatures),
        evaluator=MaterialEvaluator(settings.thresholds),
        predictor=HybridPredictor(settings.thresholds, settings.signatures),
        sink=PredictionSink(repo),
        ledger=(
            ledger
            if ledger is not None
            else DedupLedger(settings.ledger_path, settings.ledger_flush_every)
        ),
        target_ply=settings.scheduler.target_ply,
    )


def build_scheduler(
    settings: Settings,
    *,
    stop_event: threading.Event | None = None,
    sleep: Callable[[float], None] | None = None,
) -> CycleScheduler:
    """Validate settings and assemble a ready-to-run scheduler.

    Adapter pauses wait on ``stop_event`` unless ``sleep`` is given, so a
    shutdown interrupts rate-limit and retry sleeps in fetch threads.
    """
    settings.validate()
    settings.ensure_dirs()
    stop_event = stop_event if stop_event is not None else threading.Event()
    return CycleScheduler(
        worker_id=settings.worker_id,
        sources=build_sources(
            settings,
            sleep=sleep if sleep is not None else stop_event.wait,
            stop_requested=stop_event.is_set,
        ),
        pipeline=build_pipeline(settings),
        scheduler_settings=settings.scheduler,
        source_settings=settings.sources,
        stop_event=stop_event,
    )
