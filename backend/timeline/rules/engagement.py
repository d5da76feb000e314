"""
Rules about keeping relationships and recruiting materials healthy.
"""

from datetime import timedelta
from typing import List, Optional

from ..domain import ActionType, FitTier, SuggestionCandidate, Urgency
from ..fit import get_fit_tier
from .base import NO_CONTACT_DAYS, RuleContext, SuggestionRecord, as_date, contact_marker


ACTIVE_SCHOOL_STATUSES = ('interested', 'contacted', 'visited')


class InteractionGapRule:
    """
    Flag priority schools that have gone quiet.

    One suggestion per priority A/B school that is interested, contacted
    or visited and has had no contact for 21 days or more. Thirty days or
    more is high urgency.
    """

    rule_type = 'interaction-gap'
    gap_days = 21
    high_urgency_days = 30
    regrowth_days = 14

    def evaluate(self, context: RuleContext) -> List[SuggestionCandidate]:
        suggestions = []
        for school in context.priority_schools():
            if (school.status or '').lower() not in ACTIVE_SCHOOL_STATUSES:
                continue

            days = context.days_since_contact(school.id)
            gap = NO_CONTACT_DAYS if days is None else days
            if gap < self.gap_days:
                continue

            if days is None:
                message = f"You haven't logged any contact with {school.name}. Reach out to introduce yourself."
            else:
                message = f"It's been {gap} days since you contacted {school.name}. Send a quick update to stay on their radar."

            suggestions.append(SuggestionCandidate(
                rule_type=self.rule_type,
                urgency=Urgency.HIGH if gap >= self.high_urgency_days else Urgency.MEDIUM,
                message=message,
                action_type=ActionType.LOG_INTERACTION,
                related_school_id=school.id,
                condition_snapshot=self.create_condition_snapshot(context, school.id),
            ))
        return suggestions

    def create_condition_snapshot(self, context: RuleContext, school_id) -> dict:
        school = context.school(school_id)
        return {
            'school_id': school_id,
            'school_priority': school.priority if school else None,
            'school_status': school.status if school else None,
            'last_contact_on': contact_marker(context, school_id),
        }

    def should_re_evaluate(self, previous: SuggestionRecord, context: RuleContext) -> bool:
        """Raise again if the school's priority changed or the gap grew by two more weeks."""
        school = context.school(previous.related_school_id)
        if school is None:
            return False
        if previous.condition_snapshot.get('school_priority') != school.priority:
            return True
        resolved_at = previous.resolved_at
        if resolved_at is None:
            return True
        return (context.now - resolved_at).days >= self.regrowth_days


class MissingVideoRule:
    rule_type = 'missing-video'

    def evaluate(self, context: RuleContext) -> Optional[SuggestionCandidate]:
        if context.grade_level < 10 or context.videos:
            return None
        return SuggestionCandidate(
            rule_type=self.rule_type,
            urgency=Urgency.MEDIUM,
            message="Coaches want to see you play. Upload a 2-4 minute highlight video.",
            action_type=ActionType.ADD_VIDEO,
            condition_snapshot={'grade_level': context.grade_level, 'video_count': 0},
        )


class EventFollowUpRule:
    """Attended events from the past week that nobody followed up on."""

    rule_type = 'event-follow-up'
    window_days = 7

    def evaluate(self, context: RuleContext) -> List[SuggestionCandidate]:
        today = as_date(context.now)
        earliest = today - timedelta(days=self.window_days)
        suggestions = []

        for event in context.events:
            event_day = as_date(event.event_date)
            if not event.attended or event_day is None or not earliest <= event_day <= today:
                continue
            if self._followed_up(context, event, event_day):
                continue

            suggestions.append(SuggestionCandidate(
                rule_type=self.rule_type,
                urgency=Urgency.MEDIUM,
                message=f"Follow up with the coaches you met at {event.name or 'your recent event'} while it's fresh.",
                action_type=ActionType.LOG_INTERACTION,
                related_school_id=event.school_id,
                condition_snapshot={'event_id': event.id, 'event_date': event_day.isoformat()},
            ))
        return suggestions

    @staticmethod
    def _followed_up(context: RuleContext, event, event_day) -> bool:
        for interaction in context.interactions:
            if interaction.related_event_id is not None and interaction.related_event_id == event.id:
                return True
            if (
                event.school_id is not None
                and interaction.school_id == event.school_id
                and as_date(interaction.occurred_at) >= event_day
            ):
                return True
        return False


class VideoLinkHealthRule:
    rule_type = 'video-link-health'

    def evaluate(self, context: RuleContext) -> Optional[SuggestionCandidate]:
        broken = [video for video in context.videos if (video.health_status or '').lower() == 'broken']
        if not broken:
            return None

        if len(broken) == 1:
            message = f'The link for "{broken[0].title or "your video"}" is broken. Coaches clicking it will see an error.'
        else:
            message = f"{len(broken)} of your video links are broken. Coaches clicking them will see an error."

        return SuggestionCandidate(
            rule_type=self.rule_type,
            urgency=Urgency.HIGH,
            message=message,
            action_type=ActionType.UPDATE_VIDEO,
            condition_snapshot={'broken_video_ids': sorted(str(video.id) for video in broken)},
        )


class PortfolioHealthRule:
    """Every school on the list is an unlikely fit. Unscored schools count as 0."""

    rule_type = 'portfolio-health'

    def evaluate(self, context: RuleContext) -> Optional[SuggestionCandidate]:
        schools = context.schools
        if not schools:
            return None
        if any(get_fit_tier(school.fit_score or 0) != FitTier.UNLIKELY for school in schools):
            return None

        return SuggestionCandidate(
            rule_type=self.rule_type,
            urgency=Urgency.HIGH,
            message=(
                f"None of your {len(schools)} schools is a realistic fit yet. Add a few programs "
                f"where your fit score is 50 or higher."
            ),
            action_type=ActionType.ADD_SCHOOL,
            condition_snapshot={'all_schools_unlikely': True},
        )


class PrioritySchoolReminderRule:
    """Top-choice (priority A) schools should hear from the athlete every two weeks."""

    rule_type = 'priority-school-reminder'
    reminder_days = 14

    def evaluate(self, context: RuleContext) -> List[SuggestionCandidate]:
        suggestions = []
        for school in context.priority_schools(tiers=('A',)):
            days = context.days_since_contact(school.id)
            if days is not None and days < self.reminder_days:
                continue

            if days is None:
                message = f"{school.name} is a top choice and you haven't reached out yet."
            else:
                message = f"{school.name} is a top choice and it's been {days} days since your last contact."

            suggestions.append(SuggestionCandidate(
                rule_type=self.rule_type,
                urgency=Urgency.HIGH,
                message=message,
                action_type=ActionType.LOG_INTERACTION,
                related_school_id=school.id,
                condition_snapshot={
                    'school_id': school.id,
                    'last_contact_on': contact_marker(context, school.id),
                },
            ))
        return suggestions
