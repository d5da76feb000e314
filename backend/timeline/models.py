"""
Models for the recruiting timeline.

Task is reference data loaded from the recruiting_tasks fixture and edited
only by content administrators. AthleteTask is the per-athlete record,
unique per (athlete, task) and always written with an atomic upsert.
Suggestion rows are created by the rule engine and afterwards only
dismissed, completed or surfaced.
"""

from django.core.exceptions import ValidationError
from django.core.validators import MaxValueValidator, MinValueValidator
from django.db import models

from .dependencies import find_dependency_cycles
from .domain import (
    ActionType,
    AthleteTaskState,
    Division,
    EligibilityStatus,
    FitTier,
    Phase,
    StatusLabel,
    TaskCategory,
    TaskRef,
    TaskStatus,
    Urgency,
)


def _choices(enum_cls):
    return [(member.value, member.value.replace('_', ' ').title()) for member in enum_cls]


class Task(models.Model):
    """
    A recruiting task from the timeline catalog.

    Attributes:
        id: Slug identifier such as "task-11-a1"
        category: academic, athletic, recruiting, exposure or mindset
        grade_level: Grade (9-12) the task belongs to
        required: Whether the task counts toward completion rates
        dependency_task_ids: Ordered list of prerequisite task ids
        why_it_matters: Explanation shown with the task
    """

    id = models.CharField(max_length=64, primary_key=True)
    category = models.CharField(max_length=20, choices=_choices(TaskCategory))
    grade_level = models.PositiveSmallIntegerField(
        validators=[MinValueValidator(9), MaxValueValidator(12)]
    )
    title = models.CharField(max_length=255)
    description = models.TextField(blank=True, default='')
    required = models.BooleanField(default=False)
    dependency_task_ids = models.JSONField(
        default=list,
        blank=True,
        help_text="Ids of tasks that must be completed first"
    )
    why_it_matters = models.TextField(blank=True, default='')
    failure_risk = models.TextField(blank=True, default='')
    division_applicability = models.JSONField(default=list, blank=True)

    class Meta:
        ordering = ['grade_level', 'id']

    def __str__(self):
        return f"{self.id}: {self.title}"

    def to_ref(self) -> TaskRef:
        return TaskRef(
            id=self.id,
            title=self.title,
            category=TaskCategory(self.category),
            grade_level=self.grade_level,
            required=self.required,
            dependency_task_ids=tuple(self.dependency_task_ids or ()),
            why_it_matters=self.why_it_matters or '',
            division_applicability=tuple(self.division_applicability or ('ALL',)),
        )

    def clean(self):
        """Reject malformed or cyclic prerequisite lists."""
        if self.dependency_task_ids is None:
            self.dependency_task_ids = []

        if not isinstance(self.dependency_task_ids, list):
            raise ValidationError({'dependency_task_ids': 'Prerequisites must be a list of task ids'})

        if self.id in self.dependency_task_ids:
            raise ValidationError({'dependency_task_ids': 'A task cannot depend on itself'})

        others = [task.to_ref() for task in Task.objects.exclude(pk=self.pk)]
        known = {task.id for task in others}
        unknown = [dep for dep in self.dependency_task_ids if dep not in known]
        if unknown:
            raise ValidationError({'dependency_task_ids': f"Unknown prerequisites: {', '.join(unknown)}"})

        if self.id in find_dependency_cycles(others + [self.to_ref()]):
            raise ValidationError({'dependency_task_ids': 'These prerequisites would create a cycle'})


class AthleteProfile(models.Model):
    """The athlete record the engine reads from and writes snapshots to."""

    name = models.CharField(max_length=255)
    graduation_year = models.PositiveSmallIntegerField(null=True, blank=True)
    grade_level = models.PositiveSmallIntegerField(
        default=9,
        validators=[MinValueValidator(9), MaxValueValidator(12)]
    )
    gpa = models.DecimalField(max_digits=3, decimal_places=2, null=True, blank=True)
    sat_score = models.PositiveSmallIntegerField(null=True, blank=True)
    act_score = models.PositiveSmallIntegerField(null=True, blank=True)
    ncaa_eligibility_status = models.CharField(
        max_length=20,
        choices=_choices(EligibilityStatus),
        default=EligibilityStatus.NOT_STARTED.value
    )
    current_phase = models.CharField(
        max_length=20,
        choices=_choices(Phase),
        default=Phase.FRESHMAN.value,
        editable=False,
        help_text="Derived from completed milestones; never set directly"
    )
    has_signed_commitment = models.BooleanField(default=False)
    phase_milestone_data = models.JSONField(default=dict, blank=True, editable=False)

    status_score = models.PositiveSmallIntegerField(null=True, blank=True, editable=False)
    status_label = models.CharField(max_length=20, choices=_choices(StatusLabel), blank=True, default='', editable=False)
    status_breakdown = models.JSONField(default=dict, blank=True, editable=False)
    status_updated_at = models.DateTimeField(null=True, blank=True, editable=False)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return f"{self.name} (grade {self.grade_level})"


class AthleteTask(models.Model):
    athlete = models.ForeignKey(AthleteProfile, on_delete=models.CASCADE, related_name='athlete_tasks')
    task = models.ForeignKey(Task, on_delete=models.CASCADE, related_name='athlete_tasks')
    status = models.CharField(
        max_length=20,
        choices=_choices(TaskStatus),
        default=TaskStatus.NOT_STARTED.value
    )
    completed_at = models.DateTimeField(null=True, blank=True)
    is_recovery_task = models.BooleanField(default=False)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        constraints = [
            models.UniqueConstraint(fields=['athlete', 'task'], name='unique_athlete_task'),
        ]

    def __str__(self):
        return f"{self.athlete_id}/{self.task_id}: {self.status}"

    def to_state(self) -> AthleteTaskState:
        return AthleteTaskState(
            task_id=self.task_id,
            status=TaskStatus(self.status),
            completed_at=self.completed_at,
            is_recovery_task=self.is_recovery_task,
        )


class School(models.Model):
    STATUS_CHOICES = [
        (value, value.replace('_', ' ').title())
        for value in ('researching', 'contacted', 'interested', 'visited', 'offered', 'committed', 'not_interested')
    ]
    PRIORITY_CHOICES = [('A', 'A'), ('B', 'B'), ('C', 'C')]

    athlete = models.ForeignKey(AthleteProfile, on_delete=models.CASCADE, related_name='schools')
    name = models.CharField(max_length=255)
    division = models.CharField(max_length=10, choices=[(d.value, d.value) for d in Division], blank=True, default='')
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default='researching')
    priority = models.CharField(max_length=1, choices=PRIORITY_CHOICES, blank=True, default='')
    fit_score = models.PositiveSmallIntegerField(
        null=True,
        blank=True,
        validators=[MaxValueValidator(100)]
    )
    fit_tier = models.CharField(max_length=10, choices=_choices(FitTier), blank=True, default='')
    twitter_handle = models.CharField(max_length=64, blank=True, default='')
    instagram_handle = models.CharField(max_length=64, blank=True, default='')
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ['name']

    def __str__(self):
        return self.name


class Event(models.Model):
    athlete = models.ForeignKey(AthleteProfile, on_delete=models.CASCADE, related_name='events')
    school = models.ForeignKey(School, on_delete=models.SET_NULL, null=True, blank=True, related_name='events')
    name = models.CharField(max_length=255)
    event_date = models.DateField(null=True, blank=True)
    attended = models.BooleanField(default=False)

    class Meta:
        ordering = ['-event_date']

    def __str__(self):
        return self.name


class Interaction(models.Model):
    athlete = models.ForeignKey(AthleteProfile, on_delete=models.CASCADE, related_name='interactions')
    school = models.ForeignKey(School, on_delete=models.SET_NULL, null=True, blank=True, related_name='interactions')
    event = models.ForeignKey(Event, on_delete=models.SET_NULL, null=True, blank=True, related_name='interactions')
    interaction_type = models.CharField(max_length=50, blank=True, default='')
    sentiment = models.CharField(max_length=20, blank=True, default='')
    occurred_at = models.DateTimeField()
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ['-occurred_at']


class Video(models.Model):
    HEALTH_CHOICES = [('healthy', 'Healthy'), ('broken', 'Broken'), ('unknown', 'Unknown')]

    athlete = models.ForeignKey(AthleteProfile, on_delete=models.CASCADE, related_name='videos')
    title = models.CharField(max_length=255, blank=True, default='')
    url = models.URLField()
    health_status = models.CharField(max_length=10, choices=HEALTH_CHOICES, default='unknown')


class Suggestion(models.Model):
    athlete = models.ForeignKey(AthleteProfile, on_delete=models.CASCADE, related_name='suggestions')
    rule_type = models.CharField(max_length=64)
    urgency = models.CharField(max_length=10, choices=_choices(Urgency))
    message = models.TextField()
    action_type = models.CharField(max_length=30, choices=_choices(ActionType), blank=True, default='')
    related_school = models.ForeignKey(School, on_delete=models.SET_NULL, null=True, blank=True, related_name='+')
    related_task = models.ForeignKey(Task, on_delete=models.SET_NULL, null=True, blank=True, related_name='+')

    dismissed = models.BooleanField(default=False)
    dismissed_at = models.DateTimeField(null=True, blank=True)
    completed = models.BooleanField(default=False)
    completed_at = models.DateTimeField(null=True, blank=True)

    pending_surface = models.BooleanField(default=True)
    surfaced_at = models.DateTimeField(null=True, blank=True)

    condition_snapshot = models.JSONField(default=dict, blank=True)
    reappeared = models.BooleanField(default=False)
    previous_suggestion = models.ForeignKey(
        'self', on_delete=models.SET_NULL, null=True, blank=True, related_name='reappearances'
    )

    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ['created_at', 'id']
        indexes = [models.Index(fields=['athlete', 'rule_type'], name='suggestion_athlete_rule_idx')]

    def __str__(self):
        return f"{self.rule_type} ({self.urgency})"

    @property
    def is_visible(self) -> bool:
        return self.surfaced_at is not None and not self.dismissed and not self.completed
