"""
Database-backed orchestration around the timeline engine.

Views and management commands call these functions; they load model rows,
convert them into engine snapshots, call the pure calculators and persist
what comes back. Everything that writes runs inside transaction.atomic,
with the athlete row locked so concurrent requests for the same athlete
serialize.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, List, Optional, Tuple

from django.conf import settings
from django.db import transaction
from django.db.models import Q
from django.utils import timezone

from .config import EngineConfig
from .dependencies import TaskGraphValidator, TaskView
from .domain import (
    ActionType,
    AthleteSnapshot,
    Division,
    EligibilityStatus,
    EventSnapshot,
    FitTier,
    InteractionSnapshot,
    Phase,
    SchoolSnapshot,
    TaskRef,
    TaskStatus,
    Urgency,
    VideoSnapshot,
)
from .engine import RuleEngine
from .errors import RuleEvaluationFailure
from .models import AthleteProfile, AthleteTask, Event, Interaction, School, Suggestion, Task
from .phases import PHASE_INFO, PhaseCalculator, get_next_phase, get_previous_phase, grade_for_phase
from .priority import PriorityItem, PriorityRanker
from .recovery import RecoveryResult, check_recovery
from .rules import RuleContext, SuggestionRecord
from .status_score import (
    StatusScoreCalculator,
    StatusScoreInputs,
    StatusScoreResult,
    calculate_academic_standing_score,
    calculate_coach_interest_score,
    calculate_interaction_frequency_score,
    calculate_task_completion_rate,
    sentiment_to_interest,
)

logger = logging.getLogger(__name__)

SUGGESTION_UPDATE_REASONS = ('profile_change', 'interaction_logged', 'daily_refresh', 'task_status_change')

validator = TaskGraphValidator()
phase_calculator = PhaseCalculator()


def get_engine_config() -> EngineConfig:
    return EngineConfig.from_mapping(getattr(settings, 'TIMELINE_ENGINE', None))


def _lock_athlete(athlete: AthleteProfile) -> AthleteProfile:
    return AthleteProfile.objects.select_for_update().get(pk=athlete.pk)


# ==================== Tasks ====================

def task_catalog() -> List[TaskRef]:
    return [task.to_ref() for task in Task.objects.all()]


def completed_task_ids(athlete: AthleteProfile) -> List[str]:
    return list(
        AthleteTask.objects
        .filter(athlete=athlete, status=TaskStatus.COMPLETED.value)
        .values_list('task_id', flat=True)
    )


def annotated_tasks(athlete: AthleteProfile, grade_level: Optional[int] = None) -> List[TaskView]:
    """The catalog merged with the athlete's statuses and lock state."""
    states = [row.to_state() for row in AthleteTask.objects.filter(athlete=athlete)]
    views = validator.annotate(task_catalog(), states)
    if grade_level is not None:
        views = [view for view in views if view.task.grade_level == grade_level]
    return views


@transaction.atomic
def update_task_status(
    athlete: AthleteProfile,
    task_id: str,
    new_status,
    now: Optional[datetime] = None
) -> AthleteTask:
    """
    Move one of the athlete's tasks to a new status.

    The row is written with a single update_or_create under the
    (athlete, task) unique constraint. Completing stamps completed_at; any
    other status clears it. The phase is recalculated afterwards.

    Raises:
        ValueError: new_status is not a TaskStatus value
        Task.DoesNotExist: task_id is not in the catalog
        PrerequisitesIncomplete: starting or completing a locked task
    """
    new_status = TaskStatus(new_status)
    task = Task.objects.get(pk=task_id)
    athlete = _lock_athlete(athlete)
    now = now or timezone.now()

    prerequisites = {t.id: t.to_ref() for t in Task.objects.filter(pk__in=task.dependency_task_ids or [])}
    validator.check_transition(task.to_ref(), new_status, completed_task_ids(athlete), prerequisites)

    athlete_task, created = AthleteTask.objects.update_or_create(
        athlete=athlete,
        task=task,
        defaults={
            'status': new_status.value,
            'completed_at': now if new_status == TaskStatus.COMPLETED else None,
        },
    )
    logger.info(
        "Athlete %s task %s -> %s (%s)",
        athlete.pk, task.id, new_status.value, 'created' if created else 'updated'
    )

    recalculate_phase(athlete, now=now)
    trigger_suggestion_update(athlete, 'task_status_change', now=now)
    return athlete_task


# ==================== Phase ====================

def recalculate_phase(athlete: AthleteProfile, now: Optional[datetime] = None) -> Phase:
    """Derive the phase from completed milestones and store it with its snapshot."""
    now = now or timezone.now()
    completed = completed_task_ids(athlete)
    phase = phase_calculator.calculate_phase(completed, athlete.has_signed_commitment)

    if athlete.current_phase != phase.value:
        logger.info("Athlete %s phase %s -> %s", athlete.pk, athlete.current_phase, phase.value)

    athlete.current_phase = phase.value
    athlete.phase_milestone_data = phase_calculator.build_phase_milestone_data(phase, completed, now)
    athlete.save(update_fields=['current_phase', 'phase_milestone_data', 'updated_at'])
    return phase


def phase_overview(athlete: AthleteProfile) -> Dict:
    completed = completed_task_ids(athlete)
    phase = phase_calculator.calculate_phase(completed, athlete.has_signed_commitment)
    next_phase = get_next_phase(phase)
    previous_phase = get_previous_phase(phase)
    return {
        'current_phase': phase.value,
        'phase_info': PHASE_INFO[phase],
        'milestone_progress': phase_calculator.get_milestone_progress(phase, completed).to_dict(),
        'can_advance': phase_calculator.can_advance_phase(phase, completed),
        'next_phase': next_phase.value if next_phase else None,
        'previous_phase': previous_phase.value if previous_phase else None,
    }


# ==================== Status Score ====================

def build_status_inputs(athlete: AthleteProfile, now: Optional[datetime] = None) -> StatusScoreInputs:
    """Compute the four sub-scores from the athlete's stored data."""
    now = now or timezone.now()
    grade = grade_for_phase(athlete.current_phase)

    required = Task.objects.filter(grade_level=grade, required=True).values_list('id', flat=True)
    task_completion_rate = calculate_task_completion_rate(completed_task_ids(athlete), required)

    schools = list(athlete.schools.all())
    interactions = list(athlete.interactions.order_by('-occurred_at'))

    interaction_frequency_score = 0
    coach_interest_score = 0
    if interactions:
        last = interactions[0].occurred_at
        interaction_frequency_score = calculate_interaction_frequency_score(
            last, (now - last).days, len(schools)
        )
        priority_ids = {school.pk for school in schools if school.priority in ('A', 'B')}
        interested_priority = {
            i.school_id for i in interactions
            if i.school_id in priority_ids and sentiment_to_interest(i.sentiment) == 'high'
        }
        coach_interest_score = calculate_coach_interest_score(
            [sentiment_to_interest(i.sentiment) for i in interactions],
            len(interested_priority),
        )

    academic_standing_score = calculate_academic_standing_score(
        athlete.gpa,
        athlete.sat_score,
        athlete.act_score,
        athlete.ncaa_eligibility_status or EligibilityStatus.NOT_STARTED.value,
    )

    return StatusScoreInputs(
        task_completion_rate=task_completion_rate,
        interaction_frequency_score=interaction_frequency_score,
        coach_interest_score=coach_interest_score,
        academic_standing_score=academic_standing_score,
    )


@transaction.atomic
def recalculate_status(athlete: AthleteProfile, now: Optional[datetime] = None) -> StatusScoreResult:
    """Recompute the status score from scratch and store the snapshot on the profile."""
    now = now or timezone.now()
    athlete = _lock_athlete(athlete)
    config = get_engine_config()

    result = StatusScoreCalculator(thresholds=config.status_thresholds).calculate(
        build_status_inputs(athlete, now)
    )

    athlete.status_score = result.score
    athlete.status_label = result.label.value
    athlete.status_breakdown = result.breakdown.to_dict()
    athlete.status_updated_at = now
    athlete.save(update_fields=['status_score', 'status_label', 'status_breakdown', 'status_updated_at', 'updated_at'])

    logger.info("Athlete %s status %s (%s)", athlete.pk, result.score, result.label.value)
    return result


# ==================== Rule Context ====================

def build_rule_context(athlete: AthleteProfile, now: Optional[datetime] = None) -> RuleContext:
    """Snapshot everything the rules look at, in one pass."""
    now = now or timezone.now()
    return RuleContext(
        athlete=AthleteSnapshot(
            id=athlete.pk,
            grade_level=athlete.grade_level or 9,
            phase=Phase.coerce(athlete.current_phase),
            eligibility_status=EligibilityStatus(athlete.ncaa_eligibility_status or 'not_started'),
            has_signed_commitment=athlete.has_signed_commitment,
        ),
        now=now,
        schools=tuple(
            SchoolSnapshot(
                id=school.pk,
                name=school.name,
                division=Division.normalize(school.division),
                status=school.status,
                priority=school.priority or None,
                fit_score=school.fit_score,
                fit_tier=FitTier(school.fit_tier) if school.fit_tier else None,
            )
            for school in athlete.schools.all()
        ),
        interactions=tuple(
            InteractionSnapshot(
                id=interaction.pk,
                occurred_at=interaction.occurred_at,
                school_id=interaction.school_id,
                interaction_type=interaction.interaction_type,
                sentiment=interaction.sentiment or None,
                related_event_id=interaction.event_id,
            )
            for interaction in athlete.interactions.all()
        ),
        tasks=tuple(task_catalog()),
        athlete_tasks=tuple(row.to_state() for row in athlete.athlete_tasks.all()),
        videos=tuple(
            VideoSnapshot(id=video.pk, title=video.title, health_status=video.health_status)
            for video in athlete.videos.all()
        ),
        events=tuple(
            EventSnapshot(
                id=event.pk,
                name=event.name,
                event_date=event.event_date,
                school_id=event.school_id,
                attended=event.attended,
            )
            for event in athlete.events.all()
        ),
    )


# ==================== Suggestions ====================

@dataclass
class GenerationResult:
    created: List[Suggestion] = field(default_factory=list)
    failures: List[RuleEvaluationFailure] = field(default_factory=list)
    completed: int = 0

    def to_dict(self) -> Dict:
        return {
            'created': len(self.created),
            'completed': self.completed,
            'failures': [failure.to_dict() for failure in self.failures],
        }


def suggestion_records(athlete: AthleteProfile) -> List[SuggestionRecord]:
    return [
        SuggestionRecord(
            id=row.pk,
            rule_type=row.rule_type,
            condition_snapshot=row.condition_snapshot or {},
            related_school_id=row.related_school_id,
            related_task_id=row.related_task_id,
            dismissed=row.dismissed,
            dismissed_at=row.dismissed_at,
            completed=row.completed,
            completed_at=row.completed_at,
            created_at=row.created_at,
        )
        for row in Suggestion.objects.filter(athlete=athlete).order_by('created_at', 'id')
    ]


@transaction.atomic
def generate_suggestions(
    athlete: AthleteProfile,
    now: Optional[datetime] = None,
    engine: Optional[RuleEngine] = None
) -> GenerationResult:
    """
    Run the rule engine and insert the suggestions it plans.

    The athlete row is locked for the duration, so the "does this
    suggestion already exist" check cannot race another run.
    """
    now = now or timezone.now()
    athlete = _lock_athlete(athlete)
    engine = engine or RuleEngine(cooldown_days=get_engine_config().reevaluation_cooldown_days)

    context = build_rule_context(athlete, now)
    evaluation, plan = engine.run(context, suggestion_records(athlete))
    known_tasks = {task.id for task in context.tasks}
    known_schools = {school.id for school in context.schools}

    created = []
    for planned in plan:
        candidate = planned.candidate
        created.append(Suggestion.objects.create(
            athlete=athlete,
            rule_type=candidate.rule_type,
            urgency=candidate.urgency.value,
            message=candidate.message,
            action_type=candidate.action_type.value if candidate.action_type else '',
            related_school_id=candidate.related_school_id if candidate.related_school_id in known_schools else None,
            related_task_id=candidate.related_task_id if candidate.related_task_id in known_tasks else None,
            condition_snapshot=candidate.condition_snapshot,
            reappeared=planned.reappeared,
            previous_suggestion_id=planned.previous_suggestion_id,
            pending_surface=planned.pending_surface,
        ))

    logger.info(
        "Generated %d suggestions for athlete %s (%d candidates, %d rule failures)",
        len(created), athlete.pk, len(evaluation.candidates), len(evaluation.failures)
    )
    return GenerationResult(created=created, failures=evaluation.failures)


@transaction.atomic
def surface_pending_suggestions(
    athlete: AthleteProfile,
    limit: Optional[int] = None,
    now: Optional[datetime] = None
) -> List[Suggestion]:
    """Reveal up to ``limit`` pending suggestions, most urgent and oldest first."""
    now = now or timezone.now()
    limit = get_engine_config().surface_limit if limit is None else limit

    pending = Suggestion.objects.select_for_update().filter(
        athlete=athlete, pending_surface=True, dismissed=False, completed=False
    )
    chosen = sorted(pending, key=lambda s: (-Urgency(s.urgency).weight, s.created_at, s.pk))[:limit]
    for suggestion in chosen:
        suggestion.pending_surface = False
        suggestion.surfaced_at = now
        suggestion.save(update_fields=['pending_surface', 'surfaced_at'])
    return chosen


def visible_suggestions(athlete: AthleteProfile):
    return Suggestion.objects.filter(
        athlete=athlete, surfaced_at__isnull=False, dismissed=False, completed=False
    ).order_by('-created_at')


def resolve_suggestion(
    suggestion: Suggestion,
    dismissed: bool = False,
    completed: bool = False,
    now: Optional[datetime] = None
) -> Suggestion:
    """Record a dismissal or completion made by the athlete."""
    now = now or timezone.now()
    fields = []
    if dismissed and not suggestion.dismissed:
        suggestion.dismissed, suggestion.dismissed_at = True, now
        fields += ['dismissed', 'dismissed_at']
    if completed and not suggestion.completed:
        suggestion.completed, suggestion.completed_at = True, now
        fields += ['completed', 'completed_at']
    if fields:
        suggestion.save(update_fields=fields)
    return suggestion


def complete_interaction_suggestions(
    athlete: AthleteProfile,
    school_id: int,
    now: Optional[datetime] = None
) -> int:
    """Mark open log_interaction suggestions for the school, or with no school, as completed."""
    now = now or timezone.now()
    return Suggestion.objects.filter(
        Q(related_school_id=school_id) | Q(related_school__isnull=True),
        athlete=athlete,
        action_type=ActionType.LOG_INTERACTION.value,
        completed=False,
        dismissed=False,
    ).update(completed=True, completed_at=now)


@transaction.atomic
def trigger_suggestion_update(
    athlete: AthleteProfile,
    reason: str,
    now: Optional[datetime] = None,
    school_id: Optional[int] = None
) -> GenerationResult:
    """
    Re-run suggestion generation after something about the athlete changed.

    For interaction_logged with a school, the open log_interaction
    suggestions that contact answers are completed first. New suggestions
    stay pending; surfacing is left to the caller or the daily refresh.
    """
    if reason not in SUGGESTION_UPDATE_REASONS:
        raise ValueError(f"Unknown suggestion update reason: {reason}")
    logger.debug("Suggestion update for athlete %s: %s", athlete.pk, reason)

    now = now or timezone.now()
    completed = 0
    if reason == 'interaction_logged' and school_id is not None:
        completed = complete_interaction_suggestions(athlete, school_id, now)
        logger.info("Completed %d interaction suggestions for athlete %s", completed, athlete.pk)

    result = generate_suggestions(athlete, now=now)
    result.completed = completed
    return result


@transaction.atomic
def record_interaction(
    athlete: AthleteProfile,
    school: Optional[School] = None,
    event: Optional[Event] = None,
    interaction_type: str = '',
    sentiment: str = '',
    occurred_at: Optional[datetime] = None,
    now: Optional[datetime] = None
) -> Tuple[Interaction, GenerationResult]:
    """Store a coach interaction and refresh suggestions with reason interaction_logged."""
    now = now or timezone.now()
    interaction = Interaction.objects.create(
        athlete=athlete,
        school=school,
        event=event,
        interaction_type=interaction_type or '',
        sentiment=sentiment or '',
        occurred_at=occurred_at or now,
    )
    result = trigger_suggestion_update(
        athlete, 'interaction_logged', now=now, school_id=school.pk if school else None
    )
    return interaction, result


# ==================== What Matters Now ====================

def what_matters_now(athlete: AthleteProfile) -> List[PriorityItem]:
    ranker = PriorityRanker(limit=get_engine_config().what_matters_now_limit)
    return ranker.rank(athlete.current_phase, annotated_tasks(athlete))


# ==================== Recovery ====================

@transaction.atomic
def activate_recovery_plan(athlete: AthleteProfile, now: Optional[datetime] = None) -> RecoveryResult:
    """
    Check recovery triggers and add the plan's tasks as recovery tasks.

    Existing rows keep their status; open ones are flagged as recovery
    tasks, completed ones are left alone.
    """
    athlete = _lock_athlete(athlete)
    result = check_recovery(build_rule_context(athlete, now))
    if not result.triggered:
        return result

    existing_tasks = set(Task.objects.filter(pk__in=result.plan.tasks_to_create).values_list('id', flat=True))
    for task_id in result.plan.tasks_to_create:
        if task_id not in existing_tasks:
            logger.warning("Recovery plan %s references unknown task %s", result.trigger.type, task_id)
            continue
        row, created = AthleteTask.objects.get_or_create(
            athlete=athlete,
            task_id=task_id,
            defaults={'is_recovery_task': True},
        )
        if not created and not row.is_recovery_task and row.status != TaskStatus.COMPLETED.value:
            row.is_recovery_task = True
            row.save(update_fields=['is_recovery_task', 'updated_at'])

    logger.info("Activated recovery plan %s for athlete %s", result.trigger.type, athlete.pk)
    return result
