"""
Core value types shared by the recruiting timeline engine.

Everything here is plain Python: enums for the fixed vocabularies and frozen
dataclasses for the snapshots the calculators and rules read. The Django
models in models.py reuse the enum values as field choices, and services.py
converts model rows into these snapshots before calling the engine.
"""

from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from typing import Dict, Optional, Tuple, Union


EntityId = Union[int, str]


# ==================== Enumerations ====================

class TaskCategory(str, Enum):
    ACADEMIC = "academic"
    ATHLETIC = "athletic"
    RECRUITING = "recruiting"
    EXPOSURE = "exposure"
    MINDSET = "mindset"


class TaskStatus(str, Enum):
    NOT_STARTED = "not_started"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    SKIPPED = "skipped"

    @classmethod
    def gated(cls) -> Tuple["TaskStatus", ...]:
        """Statuses that require every prerequisite to be completed."""
        return (cls.IN_PROGRESS, cls.COMPLETED)


class Phase(str, Enum):
    """Stages of the recruiting journey, in order."""
    FRESHMAN = "freshman"
    SOPHOMORE = "sophomore"
    JUNIOR = "junior"
    SENIOR = "senior"
    COMMITTED = "committed"

    @property
    def rank(self) -> int:
        return PHASE_ORDER.index(self)

    @classmethod
    def coerce(cls, value: Optional[Union[str, "Phase"]]) -> "Phase":
        """Map any value to a phase, falling back to freshman."""
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            return cls.FRESHMAN


PHASE_ORDER: Tuple[Phase, ...] = (
    Phase.FRESHMAN,
    Phase.SOPHOMORE,
    Phase.JUNIOR,
    Phase.SENIOR,
    Phase.COMMITTED,
)


class StatusLabel(str, Enum):
    ON_TRACK = "on_track"
    SLIGHTLY_BEHIND = "slightly_behind"
    AT_RISK = "at_risk"


class Urgency(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"

    @property
    def weight(self) -> int:
        return {'low': 1, 'medium': 2, 'high': 3}[self.value]


class Division(str, Enum):
    """Competitive tiers, most competitive first."""
    D1 = "D1"
    D2 = "D2"
    D3 = "D3"
    NAIA = "NAIA"
    JUCO = "JUCO"

    @classmethod
    def normalize(cls, value: Optional[Union[str, "Division"]]) -> Optional["Division"]:
        """
        Resolve a loosely written division name.

        Accepts the canonical names plus the roman-numeral spellings
        ("DI", "Division II", "D-3") in any case. Unknown values give None.
        """
        if value is None:
            return None
        if isinstance(value, cls):
            return value
        key = str(value).strip().upper().replace('DIVISION', 'D').replace('-', '').replace(' ', '')
        return DIVISION_ALIASES.get(key)


DIVISION_ALIASES: Dict[str, Division] = {
    'D1': Division.D1, 'DI': Division.D1,
    'D2': Division.D2, 'DII': Division.D2,
    'D3': Division.D3, 'DIII': Division.D3,
    'NAIA': Division.NAIA,
    'JUCO': Division.JUCO, 'NJCAA': Division.JUCO,
}


class FitTier(str, Enum):
    MATCH = "match"
    REACH = "reach"
    SAFETY = "safety"
    UNLIKELY = "unlikely"


class ActionType(str, Enum):
    ADD_SCHOOL = "add_school"
    ADD_VIDEO = "add_video"
    LOG_INTERACTION = "log_interaction"
    COMPLETE_TASK = "complete_task"
    UPDATE_VIDEO = "update_video"
    VIEW_TASKS = "view_tasks"


class EligibilityStatus(str, Enum):
    REGISTERED = "registered"
    PENDING = "pending"
    NOT_STARTED = "not_started"


# ==================== Snapshots ====================

@dataclass(frozen=True)
class TaskRef:
    """Reference-data view of a catalog task."""
    id: str
    title: str
    category: TaskCategory = TaskCategory.ACADEMIC
    grade_level: int = 9
    required: bool = False
    dependency_task_ids: Tuple[str, ...] = ()
    why_it_matters: str = ""
    division_applicability: Tuple[str, ...] = ("ALL",)

    def to_dict(self) -> Dict:
        return {
            'id': self.id,
            'title': self.title,
            'category': self.category.value,
            'grade_level': self.grade_level,
            'required': self.required,
            'dependency_task_ids': list(self.dependency_task_ids),
            'why_it_matters': self.why_it_matters,
            'division_applicability': list(self.division_applicability),
        }


@dataclass(frozen=True)
class AthleteTaskState:
    """An athlete's record for one task."""
    task_id: str
    status: TaskStatus = TaskStatus.NOT_STARTED
    completed_at: Optional[datetime] = None
    is_recovery_task: bool = False


@dataclass(frozen=True)
class AthleteSnapshot:
    id: Optional[EntityId] = None
    grade_level: int = 9
    phase: Phase = Phase.FRESHMAN
    eligibility_status: EligibilityStatus = EligibilityStatus.NOT_STARTED
    has_signed_commitment: bool = False


@dataclass(frozen=True)
class SchoolSnapshot:
    id: EntityId
    name: str
    division: Optional[Division] = None
    status: str = "researching"
    priority: Optional[str] = None
    fit_score: Optional[float] = None
    fit_tier: Optional[FitTier] = None


@dataclass(frozen=True)
class InteractionSnapshot:
    id: EntityId
    occurred_at: datetime
    school_id: Optional[EntityId] = None
    interaction_type: str = ""
    sentiment: Optional[str] = None
    related_event_id: Optional[EntityId] = None


@dataclass(frozen=True)
class EventSnapshot:
    id: EntityId
    name: str = ""
    event_date: Optional[date] = None
    school_id: Optional[EntityId] = None
    attended: bool = False


@dataclass(frozen=True)
class VideoSnapshot:
    id: EntityId
    title: str = ""
    health_status: str = "unknown"


@dataclass(frozen=True)
class MilestoneProgress:
    phase: Phase
    required: Tuple[str, ...]
    completed: Tuple[str, ...]
    remaining: Tuple[str, ...]
    percent_complete: int

    def to_dict(self) -> Dict:
        return {
            'phase': self.phase.value,
            'required': list(self.required),
            'completed': list(self.completed),
            'remaining': list(self.remaining),
            'percent_complete': self.percent_complete,
        }


@dataclass
class SuggestionCandidate:
    """
    A suggestion produced by one rule in one evaluation pass.

    condition_snapshot must only hold JSON-safe values derived from the
    inputs that caused the rule to fire, so identical contexts produce
    identical snapshots.
    """
    rule_type: str
    urgency: Urgency
    message: str
    action_type: Optional[ActionType] = None
    related_school_id: Optional[EntityId] = None
    related_task_id: Optional[str] = None
    condition_snapshot: Dict = field(default_factory=dict)

    @property
    def dedup_key(self) -> Tuple[str, Optional[EntityId], Optional[str]]:
        return (self.rule_type, self.related_school_id, self.related_task_id)

    def to_dict(self) -> Dict:
        return {
            'rule_type': self.rule_type,
            'urgency': self.urgency.value,
            'message': self.message,
            'action_type': self.action_type.value if self.action_type else None,
            'related_school_id': self.related_school_id,
            'related_task_id': self.related_task_id,
            'condition_snapshot': dict(self.condition_snapshot),
        }
