"""
Shared shape for suggestion rules.

A rule is any object with a ``rule_type`` string and an
``evaluate(context)`` method returning a SuggestionCandidate, a list of
them, or None. Rules may also define
``should_re_evaluate(previous, context)`` to decide whether a dismissed or
completed suggestion is worth raising again once its cooldown has passed.
There is no base class to inherit from.
"""

import calendar
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Dict, List, Optional, Protocol, Sequence, Tuple, Union, runtime_checkable

from ..domain import (
    AthleteSnapshot,
    AthleteTaskState,
    EntityId,
    EventSnapshot,
    InteractionSnapshot,
    SchoolSnapshot,
    SuggestionCandidate,
    TaskRef,
    TaskStatus,
    VideoSnapshot,
)


RuleResult = Union[SuggestionCandidate, List[SuggestionCandidate], None]

NO_CONTACT_DAYS = 999
PRIORITY_TIERS = ('A', 'B')


@dataclass(frozen=True)
class RuleContext:
    """Everything a rule may look at, captured once per evaluation pass."""
    athlete: AthleteSnapshot
    now: datetime
    schools: Sequence[SchoolSnapshot] = ()
    interactions: Sequence[InteractionSnapshot] = ()
    tasks: Sequence[TaskRef] = ()
    athlete_tasks: Sequence[AthleteTaskState] = ()
    videos: Sequence[VideoSnapshot] = ()
    events: Sequence[EventSnapshot] = ()

    @property
    def grade_level(self) -> int:
        return self.athlete.grade_level or 9

    def task_status(self, task_id: str) -> Optional[TaskStatus]:
        for state in self.athlete_tasks:
            if state.task_id == task_id:
                return TaskStatus(state.status)
        return None

    def school(self, school_id: EntityId) -> Optional[SchoolSnapshot]:
        for school in self.schools:
            if school.id == school_id:
                return school
        return None

    def priority_schools(self, tiers: Tuple[str, ...] = PRIORITY_TIERS) -> List[SchoolSnapshot]:
        return [school for school in self.schools if (school.priority or '').upper() in tiers]

    def last_contact(self, school_id: EntityId) -> Optional[datetime]:
        dates = [i.occurred_at for i in self.interactions if i.school_id == school_id and i.occurred_at]
        return max(dates) if dates else None

    def days_since_contact(self, school_id: EntityId) -> Optional[int]:
        """Whole days since the last interaction with a school, None if never."""
        last = self.last_contact(school_id)
        if last is None:
            return None
        return max(0, (self.now - last).days)


@dataclass(frozen=True)
class SuggestionRecord:
    """An already persisted suggestion, as seen by the de-duplication step."""
    id: EntityId
    rule_type: str
    condition_snapshot: Dict = field(default_factory=dict)
    related_school_id: Optional[EntityId] = None
    related_task_id: Optional[str] = None
    dismissed: bool = False
    dismissed_at: Optional[datetime] = None
    completed: bool = False
    completed_at: Optional[datetime] = None
    created_at: Optional[datetime] = None

    @property
    def dedup_key(self) -> Tuple[str, Optional[EntityId], Optional[str]]:
        return (self.rule_type, self.related_school_id, self.related_task_id)

    @property
    def is_open(self) -> bool:
        return not self.dismissed and not self.completed

    @property
    def resolved_at(self) -> Optional[datetime]:
        stamps = [stamp for stamp in (self.dismissed_at, self.completed_at) if stamp]
        return max(stamps) if stamps else None


@runtime_checkable
class Rule(Protocol):
    rule_type: str

    def evaluate(self, context: RuleContext) -> RuleResult:
        ...


# ==================== Helpers ====================

def as_date(value: Union[date, datetime, None]) -> Optional[date]:
    if isinstance(value, datetime):
        return value.date()
    return value


def months_before(day: date, months: int) -> date:
    """Same calendar day ``months`` earlier, clamped to the month's length."""
    index = day.year * 12 + (day.month - 1) - months
    year, month = divmod(index, 12)
    month += 1
    return date(year, month, min(day.day, calendar.monthrange(year, month)[1]))


def contact_marker(context: RuleContext, school_id: EntityId) -> Optional[str]:
    """ISO date of the last contact with a school, stable across runs."""
    last = context.last_contact(school_id)
    return last.date().isoformat() if last else None
