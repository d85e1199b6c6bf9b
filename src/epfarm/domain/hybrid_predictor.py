"""Signature-driven predictor that may overrule the baseline."""

from __future__ import annotations

from epfarm.config import SignatureSettings, Thresholds
from epfarm.domain.material_evaluator import clamp_confidence
from epfarm.models.prediction import Evaluation, HybridDecision
from epfarm.models.record import Outcome
from epfarm.models.signature import BASE_REGIONS, ENHANCED_REGIONS, SignatureProfile

SIGNATURE_OVERRIDE = "signature_bias_override"
BALANCED_TENSION_DRAW = "balanced_tension_draw"
BALANCED = "balanced"
_NON_PAWN_TYPES = ("knight", "bishop", "rook", "queen")


def _clamp_unit(value: float) -> float:
    return min(max(value, -1.0), 1.0)


def _sign(value: float) -> int:
    if value > 0:
        return 1
    if value < 0:
        return -1
    return 0


class HybridPredictor:
    """Combine a signature profile with a baseline evaluation.

    The signed bias is a weighted sum of White-minus-Black differentials
    (activity, wing and center/flank occupancy, material, space), clamped to
    [-1, 1]. The archetype tag only enters the bias through
    ``SignatureWeights.archetype``, which defaults to zero.
    """

    def __init__(
        self,
        thresholds: Thresholds | None = None,
        settings: SignatureSettings | None = None,
    ) -> None:
        self._thresholds = thresholds or Thresholds()
        self._settings = settings or SignatureSettings()

    @property
    def thresholds(self) -> Thresholds:
        return self._thresholds

    def archetype(self, profile: SignatureProfile) -> str:
        non_pawn = sum(profile.dominance.get(name, 0.0) for name in _NON_PAWN_TYPES)
        if non_pawn > 0:
            leader = max(_NON_PAWN_TYPES, key=lambda name: profile.dominance.get(name, 0.0))
            if profile.dominance.get(leader, 0.0) / non_pawn > self._settings.dominance_archetype:
                return f"unit_dominant_{leader}"
        names = BASE_REGIONS + (ENHANCED_REGIONS if profile.enhanced else ())
        region = max(names, key=profile.region)
        if profile.region(region) > self._settings.region_archetype:
            return f"region_{region}"
        return BALANCED

    @staticmethod
    def _archetype_sign(archetype: str) -> int:
        if "white" in archetype:
            return 1
        if "black" in archetype:
            return -1
        return 0

    def signature_bias(self, profile: SignatureProfile, archetype: str | None = None) -> float:
        weights = self._settings.weights
        wing = (profile.region("white_kingside") - profile.region("black_kingside")) + (
            profile.region("white_queenside") - profile.region("black_queenside")
        )
        bias = (
            weights.activity * profile.activity_advantage
            + weights.wing * wing
            + weights.material * profile.material_balance
            + weights.space * profile.space_advantage
        )
        if profile.enhanced:
            bias += weights.center * (
                profile.region("center_white") - profile.region("center_black")
            )
            bias += weights.flank * (
                profile.region("flank_white") - profile.region("flank_black")
            )
        if weights.archetype:
            tag = archetype if archetype is not None else self.archetype(profile)
            bias += weights.archetype * self._archetype_sign(tag)
        return _clamp_unit(bias)

    def decide(self, bias: float, baseline: Evaluation, tension: float) -> HybridDecision:
        """Apply the override, balanced-tension and agreement rules.

        The returned decision carries an empty archetype; :meth:`predict`
        fills it in.
        """
        t = self._thresholds
        cap = t.confidence_cap
        if abs(baseline.advantage) < t.closeness and abs(bias) > t.override:
            return HybridDecision(
                outcome=Outcome.from_sign(bias),
                confidence=clamp_confidence(0.5 + t.override_slope * abs(bias), cap),
                archetype="",
                bias=bias,
                overrule_reason=SIGNATURE_OVERRIDE,
            )
        if (
            abs(bias) < t.balanced_bias_epsilon
            and abs(baseline.advantage) < t.balanced_advantage_epsilon
            and tension > t.tension_threshold
        ):
            return HybridDecision(
                outcome=Outcome.DRAW,
                confidence=clamp_confidence(t.tension_draw_confidence, cap),
                archetype="",
                bias=bias,
                overrule_reason=(
                    BALANCED_TENSION_DRAW if baseline.outcome is not Outcome.DRAW else None
                ),
            )
        confidence = baseline.confidence
        if baseline.outcome.sign and _sign(bias) == baseline.outcome.sign:
            confidence *= 1 + abs(bias) * t.agreement_scale
        return HybridDecision(
            outcome=baseline.outcome,
            confidence=clamp_confidence(confidence, cap),
            archetype="",
            bias=bias,
        )

    def predict(self, profile: SignatureProfile, baseline: Evaluation) -> HybridDecision:
        archetype = self.archetype(profile)
        bias = self.signature_bias(profile, archetype)
        decision = self.decide(bias, baseline, profile.tension)
        return HybridDecision(
            outcome=decision.outcome,
            confidence=decision.confidence,
            archetype=archetype,
            bias=decision.bias,
            overrule_reason=decision.overrule_reason,
        )
