"""
Status Score Calculator.

Combines four independently computed sub-scores into one 0-100 recruiting
status score and a three-level label.

Scoring Formula:
---------------
status_score = (task_completion_rate * task_completion_weight) +
               (interaction_frequency_score * interaction_frequency_weight) +
               (coach_interest_score * coach_interest_weight) +
               (academic_standing_score * academic_standing_weight)

Each sub-score must already be on a 0-100 scale. Out-of-range input is
rejected with InvalidScoreInput rather than clamped, because it means an
upstream sub-calculator is wrong. The label is read from the unrounded
composite; the reported score is the composite rounded half up.
"""

import math
import numbers
from dataclasses import dataclass
from datetime import datetime
from typing import Dict, Iterable, List, Mapping, Optional

from .config import (
    DEFAULT_STATUS_THRESHOLDS,
    DEFAULT_STATUS_WEIGHTS,
    StatusThresholds,
    StatusWeights,
)
from .domain import EligibilityStatus, Phase, StatusLabel
from .errors import InvalidScoreInput


SUB_SCORE_FIELDS = (
    'task_completion_rate',
    'interaction_frequency_score',
    'coach_interest_score',
    'academic_standing_score',
)

STATUS_COLORS = {
    StatusLabel.ON_TRACK: 'green',
    StatusLabel.SLIGHTLY_BEHIND: 'yellow',
    StatusLabel.AT_RISK: 'red',
}


@dataclass(frozen=True)
class StatusScoreInputs:
    task_completion_rate: float
    interaction_frequency_score: float
    coach_interest_score: float
    academic_standing_score: float

    @classmethod
    def from_mapping(cls, data: Mapping) -> "StatusScoreInputs":
        """Build inputs from a dict, rejecting missing or malformed values."""
        if not isinstance(data, Mapping):
            raise InvalidScoreInput('breakdown', data, "Score breakdown must be an object")
        values = {}
        for name in SUB_SCORE_FIELDS:
            if name not in data or data[name] is None:
                raise InvalidScoreInput(name, None, f"{name} is required")
            values[name] = data[name]
        return cls(**values)

    def to_dict(self) -> Dict[str, float]:
        return {name: getattr(self, name) for name in SUB_SCORE_FIELDS}


@dataclass(frozen=True)
class StatusScoreResult:
    score: int
    label: StatusLabel
    color: str
    breakdown: StatusScoreInputs

    def to_dict(self) -> Dict:
        return {
            'score': self.score,
            'label': self.label.value,
            'color': self.color,
            'breakdown': self.breakdown.to_dict(),
        }


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


class StatusScoreCalculator:
    """Pure, idempotent composite scorer over injected weights and thresholds."""

    def __init__(
        self,
        weights: StatusWeights = DEFAULT_STATUS_WEIGHTS,
        thresholds: StatusThresholds = DEFAULT_STATUS_THRESHOLDS
    ):
        self.weights = weights
        self.thresholds = thresholds

    @staticmethod
    def _validate(inputs: StatusScoreInputs) -> None:
        for name in SUB_SCORE_FIELDS:
            value = getattr(inputs, name)
            # bool is an int subclass but never a valid score
            if isinstance(value, bool) or not isinstance(value, numbers.Real):
                raise InvalidScoreInput(name, value)
            if math.isnan(value) or value < 0 or value > 100:
                raise InvalidScoreInput(name, value)

    def composite(self, inputs: StatusScoreInputs) -> float:
        """Weighted sum, stabilized to 6 decimals so exact boundaries stay exact."""
        self._validate(inputs)
        raw = math.fsum([
            inputs.task_completion_rate * self.weights.task_completion,
            inputs.interaction_frequency_score * self.weights.interaction_frequency,
            inputs.coach_interest_score * self.weights.coach_interest,
            inputs.academic_standing_score * self.weights.academic_standing,
        ])
        return round(raw, 6)

    def get_label(self, score: float) -> StatusLabel:
        if score >= self.thresholds.on_track:
            return StatusLabel.ON_TRACK
        if score >= self.thresholds.slightly_behind:
            return StatusLabel.SLIGHTLY_BEHIND
        return StatusLabel.AT_RISK

    @staticmethod
    def get_color(label: StatusLabel) -> str:
        return STATUS_COLORS[StatusLabel(label)]

    def calculate(self, inputs: StatusScoreInputs) -> StatusScoreResult:
        """
        Compute the full status result.

        Raises:
            InvalidScoreInput: a sub-score is non-numeric or outside [0, 100]
        """
        composite = self.composite(inputs)
        label = self.get_label(composite)
        score = max(0, min(100, _round_half_up(composite)))
        return StatusScoreResult(
            score=score,
            label=label,
            color=self.get_color(label),
            breakdown=inputs,
        )


# ==================== Sub-calculators ====================

def calculate_task_completion_rate(completed_task_ids: Iterable[str], required_task_ids: Iterable[str]) -> float:
    """Percentage of required tasks that are completed (0 when none are required)."""
    required = list(required_task_ids)
    if not required:
        return 0
    completed = set(completed_task_ids)
    done = sum(1 for task_id in required if task_id in completed)
    return done / len(required) * 100


def calculate_interaction_frequency_score(
    last_interaction_at: Optional[datetime],
    days_since_last_interaction: int,
    target_school_count: int
) -> int:
    """
    Score how recently the athlete has been in touch with programs.

    Recent (<= 7 days): 100, good (<= 14): 80, fair (<= 21): 60,
    poor (<= 30): 40, anything older: 0. No interaction at all, or no
    target schools, scores 0.
    """
    if not last_interaction_at or target_school_count == 0:
        return 0

    if days_since_last_interaction <= 7:
        return 100
    if days_since_last_interaction <= 14:
        return 80
    if days_since_last_interaction <= 21:
        return 60
    if days_since_last_interaction <= 30:
        return 40
    return 0


INTEREST_POINTS = {'high': 100, 'medium': 60, 'low': 20}


def sentiment_to_interest(sentiment: Optional[str]) -> str:
    sentiment = (sentiment or '').strip().lower()
    if sentiment in ('positive', 'very_positive'):
        return 'high'
    if sentiment in ('negative', 'very_negative'):
        return 'low'
    return 'medium'


def calculate_coach_interest_score(interest_levels: List[str], priority_school_interest_count: int = 0) -> float:
    """Average interest level, plus up to 10 bonus points for priority schools."""
    if not interest_levels:
        return 0

    base = sum(INTEREST_POINTS.get(level, INTEREST_POINTS['medium']) for level in interest_levels) / len(interest_levels)
    bonus = min(10, priority_school_interest_count * 5)
    return min(100, base + bonus)


def calculate_academic_standing_score(
    gpa: Optional[float],
    sat: Optional[int] = None,
    act: Optional[int] = None,
    eligibility_status=EligibilityStatus.NOT_STARTED
) -> int:
    """
    Academic standing on a 0-100 scale.

    GPA is worth up to 40 points, the SAT (or the ACT when there is no SAT)
    up to 30, and NCAA eligibility registration up to 30.
    """
    score = 0

    if gpa is not None:
        gpa = float(gpa)
        if gpa >= 3.5:
            score += 40
        elif gpa >= 3.0:
            score += 30
        elif gpa >= 2.5:
            score += 20
        elif gpa >= 2.0:
            score += 10

    if sat:
        if sat >= 1200:
            score += 30
        elif sat >= 1000:
            score += 20
        elif sat >= 900:
            score += 10
    elif act:
        if act >= 28:
            score += 30
        elif act >= 24:
            score += 20
        elif act >= 20:
            score += 10

    status = str(getattr(eligibility_status, 'value', eligibility_status) or '')
    if status == EligibilityStatus.REGISTERED.value:
        score += 30
    elif status == EligibilityStatus.PENDING.value:
        score += 15

    return min(100, score)


# ==================== Advice ====================

STATUS_ADVICE = {
    StatusLabel.ON_TRACK: "Keep up the momentum! You're doing great with your recruiting efforts.",
    StatusLabel.SLIGHTLY_BEHIND: "You're slightly behind. Focus on consistent coach outreach this week.",
    StatusLabel.AT_RISK: "You're at risk. We recommend activating your recovery plan immediately.",
}

NEXT_ACTIONS = {
    StatusLabel.ON_TRACK: {
        Phase.FRESHMAN: ["Continue your training routine", "Document stats and achievements"],
        Phase.SOPHOMORE: ["Send follow-up emails to coaches", "Attend summer camps"],
        Phase.JUNIOR: ["Schedule unofficial visits", "Update highlight video"],
        Phase.SENIOR: ["Schedule official visits", "Finalize college applications"],
        Phase.COMMITTED: ["Prepare for college transition", "Stay in touch with coaching staff"],
    },
    StatusLabel.SLIGHTLY_BEHIND: {
        Phase.FRESHMAN: ["Increase travel ball participation", "Take PSAT practice tests"],
        Phase.SOPHOMORE: ["Prioritize highlight video completion", "Send intro emails weekly"],
        Phase.JUNIOR: ["Increase coach contact frequency", "Attend more showcases"],
        Phase.SENIOR: ["Follow up with coaches", "Schedule more official visits"],
        Phase.COMMITTED: ["Review scholarship details", "Confirm enrollment requirements"],
    },
    StatusLabel.AT_RISK: {
        Phase.FRESHMAN: ["Meet with school counselor", "Join travel ball team immediately"],
        Phase.SOPHOMORE: ["Complete highlight video NOW", "Send intros to all target schools"],
        Phase.JUNIOR: ["Activate recovery plan", "Intensive coach outreach"],
        Phase.SENIOR: ["Contact all interested coaches", "Attend every possible camp"],
        Phase.COMMITTED: ["Reach out to coaching staff", "Confirm all details"],
    },
}


def get_status_advice(label) -> str:
    return STATUS_ADVICE[StatusLabel(label)]


def get_next_actions_for_status(label, phase) -> List[str]:
    return list(NEXT_ACTIONS[StatusLabel(label)][Phase.coerce(phase)])
