"""
Division and fit recommendations.

get_recommended_divisions() is the display-safe advisor used next to each
school: given the school's division and the athlete's fit score against it,
it suggests looking one tier down. Missing or unknown inputs produce "no
recommendation" instead of an error.

The fit score helpers turn four dimension scores into a 0-100 fit score and
a tier, and summarize the balance of an athlete's school list.
"""

import numbers
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Mapping, Optional, Tuple

from .config import DEFAULT_FIT_THRESHOLDS, DEFAULT_FIT_WEIGHTS, FitThresholds, FitWeights
from .domain import Division, FitTier


# ==================== Division Recommendation ====================

@dataclass(frozen=True)
class DivisionRecommendation:
    should_consider_other_divisions: bool
    recommended_divisions: Tuple[Division, ...] = ()
    message: str = ""

    def to_dict(self) -> Dict:
        return {
            'should_consider_other_divisions': self.should_consider_other_divisions,
            'recommended_divisions': [d.value for d in self.recommended_divisions],
            'message': self.message,
        }


NO_RECOMMENDATION = DivisionRecommendation(should_consider_other_divisions=False)

STRONG_FIT = 70
REACH_FIT = 50

# division -> (recommendations below REACH_FIT, recommendations in the reach band)
DIVISION_LADDER: Dict[Division, Tuple[Tuple[Division, ...], Tuple[Division, ...]]] = {
    Division.D1: ((Division.D2, Division.D3), (Division.D2,)),
    Division.D2: ((Division.D3, Division.NAIA), (Division.D3,)),
    Division.D3: ((Division.NAIA,), (Division.NAIA,)),
}


def _join(divisions: Tuple[Division, ...]) -> str:
    names = [d.value for d in divisions]
    return names[0] if len(names) == 1 else f"{', '.join(names[:-1])} and {names[-1]}"


def get_recommended_divisions(division, fit_score) -> DivisionRecommendation:
    """
    Recommend other divisions when the fit against this one is weak.

    Bands: below 50 recommends every tier listed for the division, 50-69
    is a reach and recommends one tier down as a hedge, 70 and above
    recommends nothing. NAIA and JUCO are the floor of the ladder and never
    recommend.
    """
    resolved = Division.normalize(division)
    if resolved is None or resolved not in DIVISION_LADDER:
        return NO_RECOMMENDATION
    if fit_score is None or isinstance(fit_score, bool) or not isinstance(fit_score, numbers.Real):
        return NO_RECOMMENDATION
    if fit_score >= STRONG_FIT:
        return NO_RECOMMENDATION

    weak, reach = DIVISION_LADDER[resolved]
    if fit_score < REACH_FIT:
        return DivisionRecommendation(
            should_consider_other_divisions=True,
            recommended_divisions=weak,
            message=(
                f"Your fit for this {resolved.value} program is low. Consider {_join(weak)} "
                f"programs where you may have a stronger opportunity to compete and contribute."
            ),
        )
    return DivisionRecommendation(
        should_consider_other_divisions=True,
        recommended_divisions=reach,
        message=(
            f"This {resolved.value} program is a reach. Consider adding {_join(reach)} "
            f"programs to balance your list."
        ),
    )


# ==================== Fit Score ====================

@dataclass(frozen=True)
class FitScoreResult:
    score: int
    tier: FitTier
    breakdown: Dict[str, float]
    missing_dimensions: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict:
        return {
            'score': self.score,
            'tier': self.tier.value,
            'breakdown': dict(self.breakdown),
            'missing_dimensions': list(self.missing_dimensions),
        }


FIT_DIMENSIONS = ('athletic', 'academic', 'opportunity', 'personal')


def get_fit_tier(score: float, thresholds: FitThresholds = DEFAULT_FIT_THRESHOLDS) -> FitTier:
    if score >= thresholds.match:
        return FitTier.MATCH
    if score >= thresholds.reach:
        return FitTier.REACH
    return FitTier.UNLIKELY


def calculate_fit_score(
    inputs: Mapping[str, Optional[float]],
    weights: FitWeights = DEFAULT_FIT_WEIGHTS,
    thresholds: FitThresholds = DEFAULT_FIT_THRESHOLDS
) -> FitScoreResult:
    """
    Sum the four fit dimensions into a 0-100 score.

    Each dimension is given in points and clamped to its maximum
    (athletic 40, academic 25, opportunity 20, personal 15 by default).
    Dimensions left out or scored 0 are reported as missing.
    """
    breakdown = {}
    missing = []
    for dimension in FIT_DIMENSIONS:
        cap = getattr(weights, dimension)
        value = inputs.get(dimension) or 0
        breakdown[dimension] = max(0, min(cap, value))
        if breakdown[dimension] == 0:
            missing.append(dimension)

    total = sum(breakdown.values())
    return FitScoreResult(
        score=int(round(total)),
        tier=get_fit_tier(total, thresholds),
        breakdown=breakdown,
        missing_dimensions=missing,
    )


FIT_RECOMMENDATIONS = {
    FitTier.MATCH: "Excellent fit! This school aligns well with your profile.",
    FitTier.SAFETY: "Good fit! You have a strong chance at this school.",
    FitTier.REACH: "Possible fit with some growth. Score: {score}/100. Focus on the missing dimensions.",
    FitTier.UNLIKELY: "Not a strong fit based on current data. Work on improving key dimensions.",
}


def get_fit_score_recommendation(score: int, tier: FitTier) -> str:
    return FIT_RECOMMENDATIONS[FitTier(tier)].format(score=score)


# ==================== Portfolio Health ====================

@dataclass(frozen=True)
class PortfolioHealth:
    reaches: int
    matches: int
    safeties: int
    unlikelies: int
    total: int
    warnings: List[str]
    status: str

    def to_dict(self) -> Dict:
        return {
            'reaches': self.reaches,
            'matches': self.matches,
            'safeties': self.safeties,
            'unlikelies': self.unlikelies,
            'total': self.total,
            'warnings': list(self.warnings),
            'status': self.status,
        }


def calculate_portfolio_health(schools: Iterable) -> PortfolioHealth:
    """
    Summarize the reach/match/safety balance of a school list.

    Each school needs ``fit_score`` and may carry a manually assigned
    ``fit_tier``; the tier wins when present.
    """
    schools = list(schools)
    if not schools:
        return PortfolioHealth(
            0, 0, 0, 0, 0,
            ["You haven't added any schools yet. Start building your college list!"],
            'not_started',
        )

    counts = {tier: 0 for tier in FitTier}
    for school in schools:
        tier = getattr(school, 'fit_tier', None)
        counts[FitTier(tier) if tier else get_fit_tier(getattr(school, 'fit_score', None) or 0)] += 1

    reaches, matches = counts[FitTier.REACH], counts[FitTier.MATCH]
    safeties, unlikelies = counts[FitTier.SAFETY], counts[FitTier.UNLIKELY]

    warnings = []
    if safeties == 0:
        warnings.append("Add at least 2-3 safety schools to ensure you have options.")
    if matches == 0:
        warnings.append("Consider adding match schools where you have a realistic chance.")
    if reaches > matches + safeties:
        warnings.append("You have more reach schools than match and safety combined. Balance your list.")
    if len(schools) < 5:
        warnings.append("Consider adding more schools to diversify your options.")

    return PortfolioHealth(
        reaches=reaches,
        matches=matches,
        safeties=safeties,
        unlikelies=unlikelies,
        total=len(schools),
        warnings=warnings,
        status='needs_attention' if warnings else 'healthy',
    )
