"""
Recovery plans for athletes who have fallen behind.

check_recovery() looks for the first trigger that applies, in priority
order, and returns the matching plan. Activating a plan (services.py)
upserts the plan's tasks as recovery tasks for the athlete.
"""

from dataclasses import dataclass, field
from datetime import timedelta
from typing import Dict, Optional, Tuple

from .domain import TaskStatus
from .rules import RuleContext


# task id -> grade by which it should be done
CRITICAL_TASKS: Dict[str, int] = {
    'task-9-a1': 9,
    'task-10-r1': 10,
    'task-10-r3': 10,
}
ELIGIBILITY_TASK_ID = 'task-11-a1'
POSITIVE_SENTIMENTS = ('positive', 'very_positive')
COACH_INTEREST_WINDOW_DAYS = 30
MIN_SCHOOLS_FOR_BALANCE = 3


@dataclass(frozen=True)
class RecoveryTrigger:
    type: str
    severity: str
    details: Dict = field(default_factory=dict)


@dataclass(frozen=True)
class RecoveryPlan:
    title: str
    description: str
    steps: Tuple[str, ...]
    duration_days: int
    tasks_to_create: Tuple[str, ...]

    def to_dict(self) -> Dict:
        return {
            'title': self.title,
            'description': self.description,
            'steps': list(self.steps),
            'duration_days': self.duration_days,
            'tasks_to_create': list(self.tasks_to_create),
        }


@dataclass(frozen=True)
class RecoveryResult:
    triggered: bool
    trigger: Optional[RecoveryTrigger] = None
    plan: Optional[RecoveryPlan] = None

    def to_dict(self) -> Dict:
        return {
            'triggered': self.triggered,
            'trigger': {
                'type': self.trigger.type,
                'severity': self.trigger.severity,
                'details': dict(self.trigger.details),
            } if self.trigger else None,
            'plan': self.plan.to_dict() if self.plan else None,
        }


RECOVERY_PLANS: Dict[str, RecoveryPlan] = {
    'critical_task_missed': RecoveryPlan(
        title='Complete Critical Foundation Tasks',
        description="You're missing essential recruiting foundation tasks. This plan will get you caught up in 2-3 weeks.",
        steps=(
            'Complete your athlete profile with height, weight, position, and stats',
            'Create and upload your highlight video (3-5 min compilation)',
            "Build initial college list with 10-15 schools you're interested in",
            'Start reaching out to coaches at target schools',
        ),
        duration_days=21,
        tasks_to_create=('task-9-a1', 'task-10-r1', 'task-10-r3'),
    ),
    'eligibility_incomplete': RecoveryPlan(
        title='Register NCAA Eligibility',
        description='NCAA eligibility registration is critical for D1/D2 recruitment. Complete this immediately.',
        steps=(
            'Visit NCAA Eligibility Center website',
            'Create account with full athlete information',
            'Submit test scores (SAT/ACT)',
            'Submit transcript and GPA information',
            'Wait for confirmation (typically 2-3 weeks)',
        ),
        duration_days=30,
        tasks_to_create=(ELIGIBILITY_TASK_ID,),
    ),
    'no_coach_interest': RecoveryPlan(
        title='Rebuild Coach Outreach',
        description="It's been quiet from coaches lately. Let's restart outreach with a fresh strategy.",
        steps=(
            'Review your highlight video and update it if needed',
            'Create personalized emails for 10 coaches at your target schools',
            'Send emails with specific details about why you fit each program',
            'Follow up 2 weeks later if no response',
            'Attend showcases/camps in next month',
        ),
        duration_days=45,
        tasks_to_create=('task-10-r1', 'task-10-r5', 'task-11-r3'),
    ),
    'fit_gap': RecoveryPlan(
        title='Build Balanced College List',
        description='Diversify your college list to include reach, match, and safety schools.',
        steps=(
            'Add 3-5 "reach" schools (strong D1 programs, slightly above your stats)',
            'Add 5-7 "match" schools (programs that fit your profile well)',
            "Add 2-3 \"safety\" schools (D2/D3/NAIA where you're competitive)",
            'Research coaches at each school and add contact info',
            'Schedule campus visits to top 5 choices',
        ),
        duration_days=14,
        tasks_to_create=('task-10-r3', 'task-10-r5'),
    ),
}


def check_critical_task_missed(context: RuleContext) -> Optional[RecoveryTrigger]:
    """Foundation tasks still open after the grade they belong to."""
    missing = [
        task_id for task_id, due_grade in CRITICAL_TASKS.items()
        if context.grade_level > due_grade and context.task_status(task_id) != TaskStatus.COMPLETED
    ]
    if not missing:
        return None
    return RecoveryTrigger('critical_task_missed', 'high', {'missing_tasks': missing, 'count': len(missing)})


def check_eligibility_incomplete(context: RuleContext) -> Optional[RecoveryTrigger]:
    if context.grade_level < 11:
        return None
    status = context.task_status(ELIGIBILITY_TASK_ID)
    if status is None or status == TaskStatus.NOT_STARTED:
        return RecoveryTrigger('eligibility_incomplete', 'high', {'registration_status': 'not_started'})
    return None


def check_no_coach_interest(context: RuleContext) -> Optional[RecoveryTrigger]:
    """No positive coach interaction in the last 30 days."""
    if context.grade_level < 10:
        return None
    if not context.interactions:
        return RecoveryTrigger('no_coach_interest', 'high', {'last_interaction_days_ago': None, 'recent_interactions': 0})

    since = context.now - timedelta(days=COACH_INTEREST_WINDOW_DAYS)
    recent_positive = [
        i for i in context.interactions
        if i.occurred_at > since and (i.sentiment or '').lower() in POSITIVE_SENTIMENTS
    ]
    if recent_positive:
        return None

    last = max(i.occurred_at for i in context.interactions)
    return RecoveryTrigger('no_coach_interest', 'high', {
        'last_interaction_days_ago': (context.now - last).days,
        'recent_interactions': 0,
    })


def check_fit_gap(context: RuleContext) -> Optional[RecoveryTrigger]:
    if context.grade_level < 10:
        return None
    schools = context.schools
    if len(schools) < MIN_SCHOOLS_FOR_BALANCE:
        return RecoveryTrigger('fit_gap', 'high', {'school_count': len(schools)})

    statuses = {school.status for school in schools}
    if len(statuses) == 1:
        return RecoveryTrigger('fit_gap', 'medium', {
            'school_count': len(schools),
            'all_same_status': statuses.pop(),
        })
    return None


RECOVERY_CHECKS = (
    check_critical_task_missed,
    check_eligibility_incomplete,
    check_no_coach_interest,
    check_fit_gap,
)


def check_recovery(context: RuleContext) -> RecoveryResult:
    """Return the plan for the first trigger that fires, if any."""
    for check in RECOVERY_CHECKS:
        trigger = check(context)
        if trigger:
            return RecoveryResult(True, trigger, RECOVERY_PLANS[trigger.type])
    return RecoveryResult(False)
