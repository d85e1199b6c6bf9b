from epfarm.db.dedup_ledger import DedupLedger
from epfarm.db.duckdb_prediction_repository import DuckDbPredictionRepository
from epfarm.db.postgres_prediction_repository import PostgresPredictionRepository

__all__ = [
    "DedupLedger",
    "DuckDbPredictionRepository",
    "PostgresPredictionRepository",
]
