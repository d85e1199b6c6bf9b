"""Port interfaces for the epfarm application."""

from epfarm.ports.evaluator import Evaluator  # noqa: F401
from epfarm.ports.repositories import PredictionRepository  # noqa: F401
from epfarm.ports.source_adapter import (  # noqa: F401
    FetchBatchResult,
    SourceAdapter,
    SourceStatus,
)
