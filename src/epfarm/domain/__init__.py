from epfarm.domain.accuracy_ledger import AccuracyCounts, AccuracyLedger
from epfarm.domain.checkpoint_extractor import CheckpointExtractor
from epfarm.domain.hybrid_predictor import HybridPredictor
from epfarm.domain.material_evaluator import MaterialEvaluator
from epfarm.domain.signature_extractor import SignatureExtractor

__all__ = [
    "AccuracyCounts",
    "AccuracyLedger",
    "CheckpointExtractor",
    "HybridPredictor",
    "MaterialEvaluator",
    "SignatureExtractor",
]
