"""
Rules tied to where the athlete should be in the recruiting calendar.

Each rule checks its own grade (and sometimes division) gate first and
returns None when it does not apply.
"""

from typing import Optional

from ..domain import ActionType, Division, SuggestionCandidate, TaskStatus, Urgency
from .base import RuleContext, as_date, months_before


NCAA_DIVISIONS = (Division.D1, Division.D2)


class NcaaRegistrationRule:
    """Juniors targeting D1/D2 programs must register with the NCAA Eligibility Center."""

    rule_type = 'ncaa-registration'

    def __init__(self, eligibility_task_id: str = 'task-11-a1'):
        self.eligibility_task_id = eligibility_task_id

    def evaluate(self, context: RuleContext) -> Optional[SuggestionCandidate]:
        if context.grade_level != 11:
            return None

        ncaa_schools = [
            school for school in context.schools
            if Division.normalize(school.division) in NCAA_DIVISIONS
        ]
        if not ncaa_schools:
            return None

        status = context.task_status(self.eligibility_task_id)
        if status == TaskStatus.COMPLETED:
            return None

        return SuggestionCandidate(
            rule_type=self.rule_type,
            urgency=Urgency.HIGH,
            message=(
                "Register with the NCAA Eligibility Center. Division I and II coaches "
                "can't offer official visits or scholarships until you're certified."
            ),
            action_type=ActionType.COMPLETE_TASK,
            related_task_id=self.eligibility_task_id,
            condition_snapshot={
                'grade_level': context.grade_level,
                'has_ncaa_division_school': True,
            },
        )


class SchoolListBuildingRule:
    """Sophomores and juniors should be tracking at least 20 schools."""

    rule_type = 'school-list-building'
    target = 20

    def evaluate(self, context: RuleContext) -> Optional[SuggestionCandidate]:
        grade = context.grade_level
        if grade not in (10, 11):
            return None

        count = len(context.schools)
        if count >= self.target:
            return None

        return SuggestionCandidate(
            rule_type=self.rule_type,
            urgency=Urgency.HIGH if grade == 11 else Urgency.MEDIUM,
            message=(
                f"You have {count} schools on your list. Aim for at least {self.target} "
                f"so you have options at every level."
            ),
            action_type=ActionType.ADD_SCHOOL,
            condition_snapshot={'grade_level': grade, 'below_target': True, 'target': self.target},
        )


class OfficialVisitRule:
    """Upperclassmen with priority schools should be visiting campuses."""

    rule_type = 'official-visit'
    minimum_visits = 2

    def evaluate(self, context: RuleContext) -> Optional[SuggestionCandidate]:
        grade = context.grade_level
        if grade not in (11, 12):
            return None

        priority_schools = context.priority_schools()
        if not priority_schools:
            return None

        visits = sum(
            1 for interaction in context.interactions
            if 'visit' in (interaction.interaction_type or '').lower()
            or 'official' in (interaction.interaction_type or '').lower()
        )
        if visits >= self.minimum_visits:
            return None

        return SuggestionCandidate(
            rule_type=self.rule_type,
            urgency=Urgency.HIGH if grade == 12 else Urgency.MEDIUM,
            message=(
                f"You've logged {visits} campus visit{'s' if visits != 1 else ''}. Schedule official "
                f"or unofficial visits with your top {len(priority_schools)} priority schools."
            ),
            action_type=ActionType.LOG_INTERACTION,
            condition_snapshot={'grade_level': grade, 'below_visit_target': True},
        )


class FormalOutreachRule:
    """Priority schools should hear from the athlete at least monthly."""

    rule_type = 'formal-outreach'
    max_average_gap_days = 30

    def evaluate(self, context: RuleContext) -> Optional[SuggestionCandidate]:
        grade = context.grade_level
        if grade not in (11, 12):
            return None

        priority_schools = context.priority_schools()
        if not priority_schools:
            return None

        gaps = [context.days_since_contact(school.id) for school in priority_schools]
        if any(gap is None for gap in gaps):
            average = float('inf')
        else:
            average = sum(gaps) / len(gaps)
        if average <= self.max_average_gap_days:
            return None

        if average == float('inf'):
            message = (
                "Some of your priority schools haven't heard from you yet. Send each coach "
                "a formal introduction with your schedule and highlight video."
            )
        else:
            message = (
                f"It's been an average of {round(average)} days since you contacted your priority "
                f"schools. Send a formal update to keep coaches engaged."
            )

        return SuggestionCandidate(
            rule_type=self.rule_type,
            urgency=Urgency.HIGH if grade == 12 else Urgency.MEDIUM,
            message=message,
            action_type=ActionType.LOG_INTERACTION,
            condition_snapshot={
                'grade_level': grade,
                'priority_school_ids': sorted(str(school.id) for school in priority_schools),
                'never_contacted': average == float('inf'),
            },
        )


class ShowcaseAttendanceRule:
    """Sophomores should get in front of evaluators at least every six months."""

    rule_type = 'showcase-attendance'
    window_months = 6

    def evaluate(self, context: RuleContext) -> Optional[SuggestionCandidate]:
        if context.grade_level != 10:
            return None

        event_dates = [as_date(event.event_date) for event in context.events if event.event_date]
        latest = max(event_dates) if event_dates else None

        if latest is not None:
            cutoff = months_before(as_date(context.now), self.window_months)
            if latest >= cutoff:
                return None
            message = (
                f"Your last showcase or camp was on {latest.isoformat()}. Find an event in the next "
                f"few months to stay on coaches' radar."
            )
        else:
            message = "You haven't attended any showcases or camps yet. Find one where your target schools recruit."

        return SuggestionCandidate(
            rule_type=self.rule_type,
            urgency=Urgency.MEDIUM,
            message=message,
            action_type=ActionType.LOG_INTERACTION,
            condition_snapshot={
                'grade_level': 10,
                'last_event_date': latest.isoformat() if latest else None,
            },
        )
