"""
Immutable configuration tables for the timeline engine.

Calculators take these at construction time, so tests can build a
calculator with an alternate table without touching module state.
EngineConfig.from_mapping() reads the optional TIMELINE_ENGINE Django
setting; nothing else in the engine looks at settings.
"""

from dataclasses import dataclass, field, replace
from typing import Any, Dict, Mapping, Optional, Tuple

from .domain import Phase, TaskCategory


# ==================== Phase Milestones ====================

@dataclass(frozen=True)
class PhaseMilestones:
    """Task ids that must all be completed to leave each phase."""
    freshman_to_sophomore: Tuple[str, ...] = ("task-9-a1", "task-9-at1", "task-9-f1", "task-9-f2")
    sophomore_to_junior: Tuple[str, ...] = ("task-10-r1", "task-10-r3", "task-10-r5", "task-10-a2")
    junior_to_senior: Tuple[str, ...] = ("task-11-a1", "task-11-a3", "task-11-r3", "task-11-r1")
    senior_to_committed: Tuple[str, ...] = ("task-12-d3",)

    def gate_for(self, phase: Phase) -> Tuple[str, ...]:
        """Milestones that gate the transition out of ``phase``."""
        return {
            Phase.FRESHMAN: self.freshman_to_sophomore,
            Phase.SOPHOMORE: self.sophomore_to_junior,
            Phase.JUNIOR: self.junior_to_senior,
            Phase.SENIOR: self.senior_to_committed,
        }.get(phase, ())

    def to_dict(self) -> Dict[str, list]:
        return {
            'freshman_to_sophomore': list(self.freshman_to_sophomore),
            'sophomore_to_junior': list(self.sophomore_to_junior),
            'junior_to_senior': list(self.junior_to_senior),
            'senior_to_committed': list(self.senior_to_committed),
        }


DEFAULT_PHASE_MILESTONES = PhaseMilestones()


# ==================== Status Score ====================

@dataclass(frozen=True)
class StatusWeights:
    """
    Weights for the composite status score.

    Weights are normalized to sum to 1.0, so StatusWeights(7, 5, 5, 3)
    is the same table as the defaults.
    """
    task_completion: float = 0.35
    interaction_frequency: float = 0.25
    coach_interest: float = 0.25
    academic_standing: float = 0.15

    def __post_init__(self):
        total = self.task_completion + self.interaction_frequency + self.coach_interest + self.academic_standing
        if total <= 0:
            raise ValueError("Status weights must sum to a positive number")
        # frozen dataclass, so normalize through object.__setattr__
        for name in ('task_completion', 'interaction_frequency', 'coach_interest', 'academic_standing'):
            object.__setattr__(self, name, getattr(self, name) / total)

    def to_dict(self) -> Dict[str, float]:
        return {
            'task_completion': round(self.task_completion, 3),
            'interaction_frequency': round(self.interaction_frequency, 3),
            'coach_interest': round(self.coach_interest, 3),
            'academic_standing': round(self.academic_standing, 3),
        }


@dataclass(frozen=True)
class StatusThresholds:
    on_track: float = 70
    slightly_behind: float = 50

    def __post_init__(self):
        if not 0 <= self.slightly_behind <= self.on_track <= 100:
            raise ValueError("Status thresholds must satisfy 0 <= slightly_behind <= on_track <= 100")


DEFAULT_STATUS_WEIGHTS = StatusWeights()
DEFAULT_STATUS_THRESHOLDS = StatusThresholds()


# ==================== Fit Score ====================

@dataclass(frozen=True)
class FitWeights:
    """Maximum points per fit dimension; the maxima add up to 100."""
    athletic: int = 40
    academic: int = 25
    opportunity: int = 20
    personal: int = 15


@dataclass(frozen=True)
class FitThresholds:
    match: float = 70
    reach: float = 50


DEFAULT_FIT_WEIGHTS = FitWeights()
DEFAULT_FIT_THRESHOLDS = FitThresholds()


# ==================== Priority Ranking ====================

DEFAULT_CATEGORY_WEIGHTS: Dict[TaskCategory, int] = {
    TaskCategory.ACADEMIC: 10,
    TaskCategory.RECRUITING: 9,
    TaskCategory.ATHLETIC: 8,
    TaskCategory.EXPOSURE: 7,
    TaskCategory.MINDSET: 6,
}


# ==================== Engine ====================

@dataclass(frozen=True)
class EngineConfig:
    """Tuning knobs for the service layer, overridable from settings."""
    status_thresholds: StatusThresholds = field(default_factory=StatusThresholds)
    surface_limit: int = 3
    reevaluation_cooldown_days: int = 14
    what_matters_now_limit: int = 5

    @classmethod
    def from_mapping(cls, mapping: Optional[Mapping[str, Any]]) -> "EngineConfig":
        """
        Build a config from the TIMELINE_ENGINE settings dict.

        Recognized keys: STATUS_THRESHOLDS ({'on_track', 'slightly_behind'}),
        SUGGESTION_SURFACE_LIMIT, REEVALUATION_COOLDOWN_DAYS and
        WHAT_MATTERS_NOW_LIMIT. Missing keys keep their defaults.
        """
        config = cls()
        if not mapping:
            return config

        thresholds = mapping.get('STATUS_THRESHOLDS')
        if thresholds:
            config = replace(config, status_thresholds=StatusThresholds(
                on_track=thresholds.get('on_track', DEFAULT_STATUS_THRESHOLDS.on_track),
                slightly_behind=thresholds.get('slightly_behind', DEFAULT_STATUS_THRESHOLDS.slightly_behind),
            ))
        if 'SUGGESTION_SURFACE_LIMIT' in mapping:
            config = replace(config, surface_limit=int(mapping['SUGGESTION_SURFACE_LIMIT']))
        if 'REEVALUATION_COOLDOWN_DAYS' in mapping:
            config = replace(config, reevaluation_cooldown_days=int(mapping['REEVALUATION_COOLDOWN_DAYS']))
        if 'WHAT_MATTERS_NOW_LIMIT' in mapping:
            config = replace(config, what_matters_now_limit=int(mapping['WHAT_MATTERS_NOW_LIMIT']))
        return config
