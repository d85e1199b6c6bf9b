import unittest

import chess
import pytest

from epfarm.config import SignatureSettings, SignatureWeights, Thresholds
from epfarm.domain import HybridPredictor, MaterialEvaluator, SignatureExtractor
from epfarm.domain.hybrid_predictor import (
    BALANCED,
    BALANCED_TENSION_DRAW,
    SIGNATURE_OVERRIDE,
)
from epfarm.models import (
    BASE_REGIONS,
    Checkpoint,
    Evaluation,
    Outcome,
    SignatureProfile,
    TemporalPhase,
)


def _profile(**overrides: object) -> SignatureProfile:
    values: dict[str, object] = {
        "regions": dict.fromkeys(BASE_REGIONS, 0.25),
        "dominance": {"pawn": 0.5, "knight": 0.125, "bishop": 0.125, "king": 0.25},
        "material_balance": 0.0,
        "activity_advantage": 0.0,
        "space_advantage": 0.0,
        "pawn_advancement": 0.0,
        "tension": 0.0,
        "temporal_phase": TemporalPhase.MID,
        "enhanced": False,
        "unit_count": 16,
    }
    values.update(overrides)
    return SignatureProfile(**values)


class HybridDecisionTests(unittest.TestCase):
    def setUp(self) -> None:
        self.predictor = HybridPredictor(Thresholds(), SignatureSettings())

    def test_close_baseline_is_overruled_by_positive_bias(self) -> None:
        baseline = Evaluation(outcome=Outcome.DRAW, confidence=0.4, advantage=0.4)
        decision = self.predictor.decide(0.35, baseline, tension=0.0)
        self.assertEqual(decision.outcome, Outcome.WHITE)
        self.assertEqual(decision.overrule_reason, SIGNATURE_OVERRIDE)
        self.assertAlmostEqual(decision.confidence, 0.675)
        self.assertGreater(decision.confidence, baseline.confidence)
        self.assertTrue(decision.overruled)

    def test_negative_bias_overrules_towards_black(self) -> None:
        baseline = Evaluation(outcome=Outcome.DRAW, confidence=0.4, advantage=-0.2)
        decision = self.predictor.decide(-0.6, baseline, tension=0.0)
        self.assertEqual(decision.outcome, Outcome.BLACK)
        self.assertAlmostEqual(decision.confidence, 0.8)

    def test_small_bias_keeps_close_baseline(self) -> None:
        baseline = Evaluation(outcome=Outcome.DRAW, confidence=0.4, advantage=0.4)
        decision = self.predictor.decide(0.2, baseline, tension=0.0)
        self.assertEqual(decision.outcome, Outcome.DRAW)
        self.assertIsNone(decision.overrule_reason)
        self.assertAlmostEqual(decision.confidence, 0.4)

    def test_agreeing_bias_boosts_confidence(self) -> None:
        baseline = Evaluation(outcome=Outcome.WHITE, confidence=0.7, advantage=2.0)
        decision = self.predictor.decide(0.5, baseline, tension=0.0)
        self.assertEqual(decision.outcome, Outcome.WHITE)
        self.assertAlmostEqual(decision.confidence, 0.735)
        self.assertFalse(decision.overruled)

    def test_disagreeing_bias_leaves_confidence(self) -> None:
        baseline = Evaluation(outcome=Outcome.WHITE, confidence=0.7, advantage=2.0)
        decision = self.predictor.decide(-0.5, baseline, tension=0.0)
        self.assertEqual(decision.outcome, Outcome.WHITE)
        self.assertAlmostEqual(decision.confidence, 0.7)

    def test_balanced_tense_position_becomes_draw(self) -> None:
        baseline = Evaluation(outcome=Outcome.WHITE, confidence=0.5, advantage=0.5)
        decision = self.predictor.decide(0.05, baseline, tension=0.4)
        self.assertEqual(decision.outcome, Outcome.DRAW)
        self.assertAlmostEqual(decision.confidence, 0.6)
        self.assertEqual(decision.overrule_reason, BALANCED_TENSION_DRAW)

    def test_balanced_tension_draw_agreeing_with_baseline_has_no_reason(self) -> None:
        baseline = Evaluation(outcome=Outcome.DRAW, confidence=0.4, advantage=0.1)
        decision = self.predictor.decide(0.0, baseline, tension=0.5)
        self.assertEqual(decision.outcome, Outcome.DRAW)
        self.assertIsNone(decision.overrule_reason)

    def test_confidence_never_exceeds_cap(self) -> None:
        baseline = Evaluation(outcome=Outcome.WHITE, confidence=0.97, advantage=5.0)
        decision = self.predictor.decide(1.0, baseline, tension=0.0)
        self.assertAlmostEqual(decision.confidence, 0.98)

        steep = HybridPredictor(Thresholds(override_slope=1.0))
        close = Evaluation(outcome=Outcome.DRAW, confidence=0.4, advantage=0.0)
        self.assertAlmostEqual(steep.decide(1.0, close, tension=0.0).confidence, 0.98)


def test_initial_position_is_balanced() -> None:
    checkpoint = Checkpoint.from_board(chess.Board(), 0)
    profile = SignatureExtractor().extract(checkpoint)
    baseline = MaterialEvaluator().evaluate(checkpoint)
    decision = HybridPredictor().predict(profile, baseline)
    assert decision.archetype == BALANCED
    assert decision.bias == 0
    assert decision.outcome is Outcome.DRAW
    assert decision.overrule_reason is None


def test_unit_dominant_archetype() -> None:
    profile = _profile(dominance={"pawn": 0.6, "rook": 0.3, "king": 0.1})
    assert HybridPredictor().archetype(profile) == "unit_dominant_rook"


def test_region_archetype() -> None:
    regions = {"white_kingside": 0.5, "white_queenside": 0.1, "black_kingside": 0.2,
               "black_queenside": 0.2}
    profile = _profile(regions=regions, dominance={"pawn": 0.5, "king": 0.5})
    assert HybridPredictor().archetype(profile) == "region_white_kingside"


def test_bias_is_weighted_and_clamped() -> None:
    predictor = HybridPredictor()
    assert predictor.signature_bias(_profile(material_balance=1.0)) == pytest.approx(0.6)
    assert predictor.signature_bias(_profile(material_balance=-0.5)) == pytest.approx(-0.3)
    saturated = _profile(material_balance=1.0, activity_advantage=1.0, space_advantage=1.0)
    assert predictor.signature_bias(saturated) == 1.0


def test_archetype_weight_is_opt_in() -> None:
    regions = {"white_kingside": 0.5, "white_queenside": 0.1, "black_kingside": 0.2,
               "black_queenside": 0.2}
    profile = _profile(regions=regions, dominance={"pawn": 0.5, "king": 0.5})
    plain = HybridPredictor().signature_bias(profile)
    weighted = HybridPredictor(
        settings=SignatureSettings(weights=SignatureWeights(archetype=0.2))
    ).signature_bias(profile)
    assert weighted == pytest.approx(plain + 0.2)


def test_predict_fills_archetype() -> None:
    profile = _profile(material_balance=1.0, dominance={"pawn": 0.6, "rook": 0.3, "king": 0.1})
    baseline = Evaluation(outcome=Outcome.DRAW, confidence=0.4, advantage=0.3)
    decision = HybridPredictor().predict(profile, baseline)
    assert decision.archetype == "unit_dominant_rook"
    assert decision.outcome is Outcome.WHITE
    assert decision.overrule_reason == SIGNATURE_OVERRIDE
