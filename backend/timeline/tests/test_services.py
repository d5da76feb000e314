"""
Tests for the database-backed timeline services.
"""

from datetime import timedelta
from decimal import Decimal
from io import StringIO
from unittest import mock

from django.core.exceptions import ValidationError
from django.core.management import call_command
from django.core.management.base import CommandError
from django.test import TestCase
from django.utils import timezone

from timeline import services
from timeline.domain import Division, FitTier
from timeline.errors import PrerequisitesIncomplete
from timeline.models import AthleteProfile, AthleteTask, Interaction, School, Suggestion, Task, Video

FRESHMAN_GATE = ['task-9-a1', 'task-9-at1', 'task-9-f1', 'task-9-f2']


class TaskStatusServiceTests(TestCase):
    """Tests for update_task_status."""

    fixtures = ['recruiting_tasks']

    def setUp(self):
        self.athlete = AthleteProfile.objects.create(name='Jordan Lee', grade_level=9)

    def test_completing_stamps_completed_at(self):
        """Completing a task creates the row with a completion time."""
        row = services.update_task_status(self.athlete, 'task-9-a1', 'completed')

        self.assertEqual(row.status, 'completed')
        self.assertIsNotNone(row.completed_at)

    def test_upsert_keeps_one_row(self):
        """Repeated updates touch the same (athlete, task) row."""
        services.update_task_status(self.athlete, 'task-9-a1', 'in_progress')
        services.update_task_status(self.athlete, 'task-9-a1', 'completed')
        services.update_task_status(self.athlete, 'task-9-a1', 'completed')

        self.assertEqual(AthleteTask.objects.filter(athlete=self.athlete, task_id='task-9-a1').count(), 1)

    def test_reset_clears_completed_at(self):
        """Moving away from completed clears the completion time."""
        services.update_task_status(self.athlete, 'task-9-a1', 'completed')
        row = services.update_task_status(self.athlete, 'task-9-a1', 'not_started')

        self.assertIsNone(row.completed_at)

    def test_locked_task_rejected(self):
        """Completing a task with open prerequisites raises and writes nothing."""
        with self.assertRaises(PrerequisitesIncomplete) as ctx:
            services.update_task_status(self.athlete, 'task-10-r1', 'completed')

        self.assertEqual(ctx.exception.blocking_titles, ['Start Saving Game Footage'])
        self.assertFalse(AthleteTask.objects.filter(athlete=self.athlete, task_id='task-10-r1').exists())

    def test_unlocked_after_prerequisite(self):
        """Completing the prerequisite unlocks the dependent task."""
        services.update_task_status(self.athlete, 'task-9-f1', 'completed')
        row = services.update_task_status(self.athlete, 'task-10-r1', 'in_progress')

        self.assertEqual(row.status, 'in_progress')

    def test_skip_locked_task(self):
        """Skipping ignores prerequisites."""
        row = services.update_task_status(self.athlete, 'task-10-r1', 'skipped')

        self.assertEqual(row.status, 'skipped')

    def test_unknown_task_and_status(self):
        """Unknown task ids and statuses are rejected."""
        with self.assertRaises(Task.DoesNotExist):
            services.update_task_status(self.athlete, 'task-nope', 'completed')
        with self.assertRaises(ValueError):
            services.update_task_status(self.athlete, 'task-9-a1', 'done')

    def test_phase_recalculated(self):
        """Completing the freshman milestones moves the athlete to sophomore."""
        for task_id in FRESHMAN_GATE:
            services.update_task_status(self.athlete, task_id, 'completed')

        self.athlete.refresh_from_db()
        self.assertEqual(self.athlete.current_phase, 'sophomore')
        self.assertEqual(self.athlete.phase_milestone_data['current_phase'], 'sophomore')
        self.assertEqual(self.athlete.phase_milestone_data['milestones_by_phase']['freshman']['percent_complete'], 100)

    def test_phase_follows_undo(self):
        """Un-completing a milestone moves the phase back."""
        for task_id in FRESHMAN_GATE:
            services.update_task_status(self.athlete, task_id, 'completed')
        services.update_task_status(self.athlete, 'task-9-f2', 'not_started')

        self.athlete.refresh_from_db()
        self.assertEqual(self.athlete.current_phase, 'freshman')

    def test_annotated_tasks_by_grade(self):
        """Annotated tasks can be limited to one grade."""
        views = services.annotated_tasks(self.athlete, grade_level=9)

        self.assertEqual(len(views), 12)
        self.assertTrue(all(view.task.grade_level == 9 for view in views))


class StatusServiceTests(TestCase):
    """Tests for recalculate_status."""

    fixtures = ['recruiting_tasks']

    def setUp(self):
        self.athlete = AthleteProfile.objects.create(
            name='Jordan Lee', grade_level=9, gpa=Decimal('3.60'), sat_score=1250
        )

    def test_status_persisted(self):
        """The score, label and breakdown are stored on the profile."""
        services.update_task_status(self.athlete, 'task-9-a1', 'completed')
        result = services.recalculate_status(self.athlete)

        self.athlete.refresh_from_db()
        self.assertEqual(result.label.value, 'at_risk')
        self.assertEqual(self.athlete.status_score, result.score)
        self.assertEqual(self.athlete.status_label, 'at_risk')
        self.assertEqual(self.athlete.status_breakdown['academic_standing_score'], 70)
        self.assertAlmostEqual(self.athlete.status_breakdown['task_completion_rate'], 100 / 7)
        self.assertIsNotNone(self.athlete.status_updated_at)

    def test_interactions_feed_score(self):
        """A recent positive contact with a priority school scores interaction and interest."""
        school = School.objects.create(athlete=self.athlete, name='State U', priority='A', status='interested')
        Interaction.objects.create(
            athlete=self.athlete, school=school, sentiment='positive',
            occurred_at=timezone.now() - timedelta(days=2),
        )
        inputs = services.build_status_inputs(self.athlete)

        self.assertEqual(inputs.interaction_frequency_score, 100)
        self.assertEqual(inputs.coach_interest_score, 100)

    def test_recalculation_is_idempotent(self):
        """Recomputing without changes gives the same snapshot."""
        first = services.recalculate_status(self.athlete)
        second = services.recalculate_status(self.athlete)

        self.assertEqual(first.to_dict(), second.to_dict())


class SuggestionServiceTests(TestCase):
    """Tests for suggestion generation, surfacing and reappearance."""

    fixtures = ['recruiting_tasks']

    def setUp(self):
        self.athlete = AthleteProfile.objects.create(name='Jordan Lee', grade_level=10)

    def rule_types(self, queryset):
        return sorted(queryset.values_list('rule_type', flat=True))

    def test_generation_is_idempotent(self):
        """A second run with unchanged data creates nothing."""
        first = services.generate_suggestions(self.athlete)
        second = services.generate_suggestions(self.athlete)

        self.assertEqual(
            sorted(s.rule_type for s in first.created),
            ['missing-video', 'school-list-building', 'showcase-attendance'],
        )
        self.assertEqual(second.created, [])
        self.assertEqual(Suggestion.objects.filter(athlete=self.athlete).count(), 3)

    def test_new_suggestions_pending(self):
        """Generated suggestions wait to be surfaced."""
        services.trigger_suggestion_update(self.athlete, 'profile_change')

        self.assertEqual(services.visible_suggestions(self.athlete).count(), 0)
        self.assertEqual(Suggestion.objects.filter(athlete=self.athlete, pending_surface=True).count(), 3)

    def test_surface_most_urgent_first(self):
        """Surfacing reveals high urgency first and respects the limit."""
        Video.objects.create(athlete=self.athlete, title='Reel', url='https://example.com/reel', health_status='broken')
        services.generate_suggestions(self.athlete)

        surfaced = services.surface_pending_suggestions(self.athlete, limit=1)

        self.assertEqual([s.rule_type for s in surfaced], ['video-link-health'])
        self.assertEqual(self.rule_types(services.visible_suggestions(self.athlete)), ['video-link-health'])

    def test_dismissed_suggestion_reappears_after_cooldown(self):
        """A dismissed suggestion comes back after the cooldown, linked to the original."""
        services.generate_suggestions(self.athlete)
        original = Suggestion.objects.get(athlete=self.athlete, rule_type='school-list-building')
        now = timezone.now()
        services.resolve_suggestion(original, dismissed=True, now=now)

        services.generate_suggestions(self.athlete, now=now + timedelta(days=3))
        self.assertEqual(Suggestion.objects.filter(rule_type='school-list-building').count(), 1)

        result = services.generate_suggestions(self.athlete, now=now + timedelta(days=15))
        reappeared = [s for s in result.created if s.rule_type == 'school-list-building']

        self.assertEqual(len(reappeared), 1)
        self.assertTrue(reappeared[0].reappeared)
        self.assertEqual(reappeared[0].previous_suggestion_id, original.pk)

    def test_school_suggestions_reference_school(self):
        """Per-school suggestions store the related school."""
        school = School.objects.create(athlete=self.athlete, name='State U', priority='A', status='interested')
        services.generate_suggestions(self.athlete)

        gap = Suggestion.objects.get(athlete=self.athlete, rule_type='interaction-gap')
        self.assertEqual(gap.related_school_id, school.pk)

    def test_starting_registration_keeps_one_open_ncaa_suggestion(self):
        """Moving the eligibility task to in progress does not add a second NCAA suggestion."""
        self.athlete.grade_level = 11
        self.athlete.save()
        School.objects.create(athlete=self.athlete, name='State U', division='D1')
        services.generate_suggestions(self.athlete)

        AthleteTask.objects.create(athlete=self.athlete, task_id='task-11-a1', status='in_progress')
        services.generate_suggestions(self.athlete)

        open_rows = Suggestion.objects.filter(
            athlete=self.athlete, rule_type='ncaa-registration', dismissed=False, completed=False
        )
        self.assertEqual(open_rows.count(), 1)

    def test_logged_interaction_completes_contact_suggestions(self):
        """Logging contact with a school completes its open log_interaction suggestions."""
        school = School.objects.create(athlete=self.athlete, name='State U', priority='A', status='interested')
        services.generate_suggestions(self.athlete)
        gap = Suggestion.objects.get(athlete=self.athlete, rule_type='interaction-gap')

        interaction, result = services.record_interaction(self.athlete, school=school, sentiment='positive')

        gap.refresh_from_db()
        self.assertTrue(gap.completed)
        self.assertIsNotNone(gap.completed_at)
        self.assertEqual(interaction.school_id, school.pk)
        self.assertGreaterEqual(result.completed, 2)
        self.assertFalse(Suggestion.objects.filter(
            athlete=self.athlete, action_type='log_interaction', completed=False, dismissed=False
        ).exists())

    def test_logged_interaction_leaves_other_schools_open(self):
        """Contact with one school does not complete another school's suggestion."""
        first = School.objects.create(athlete=self.athlete, name='State U', priority='A', status='interested')
        second = School.objects.create(athlete=self.athlete, name='Tech', priority='B', status='contacted')
        services.generate_suggestions(self.athlete)

        services.trigger_suggestion_update(self.athlete, 'interaction_logged', school_id=second.pk)

        first_gap = Suggestion.objects.get(athlete=self.athlete, rule_type='interaction-gap', related_school=first)
        second_gap = Suggestion.objects.get(athlete=self.athlete, rule_type='interaction-gap', related_school=second)
        self.assertFalse(first_gap.completed)
        self.assertTrue(second_gap.completed)

    def test_other_reasons_complete_nothing(self):
        School.objects.create(athlete=self.athlete, name='State U', priority='A', status='interested')
        services.generate_suggestions(self.athlete)

        result = services.trigger_suggestion_update(self.athlete, 'profile_change')

        self.assertEqual(result.completed, 0)
        self.assertFalse(Suggestion.objects.filter(athlete=self.athlete, completed=True).exists())

    def test_unknown_reason_rejected(self):
        """Only known update reasons are accepted."""
        with self.assertRaises(ValueError):
            services.trigger_suggestion_update(self.athlete, 'because')

    def test_context_normalizes_schools(self):
        """School divisions and tiers are converted for the rules."""
        School.objects.create(athlete=self.athlete, name='State U', division='D1', fit_tier='reach', priority='')
        school = services.build_rule_context(self.athlete).schools[0]

        self.assertEqual(school.division, Division.D1)
        self.assertEqual(school.fit_tier, FitTier.REACH)
        self.assertIsNone(school.priority)


class RecoveryServiceTests(TestCase):
    """Tests for activate_recovery_plan."""

    fixtures = ['recruiting_tasks']

    def test_plan_tasks_added_without_touching_status(self):
        """Recovery tasks are added and existing statuses are kept."""
        athlete = AthleteProfile.objects.create(name='Jordan Lee', grade_level=10)
        services.update_task_status(athlete, 'task-10-r3', 'in_progress')

        result = services.activate_recovery_plan(athlete)

        self.assertEqual(result.trigger.type, 'critical_task_missed')
        rows = {row.task_id: row for row in AthleteTask.objects.filter(athlete=athlete)}
        self.assertEqual(set(rows), {'task-9-a1', 'task-10-r1', 'task-10-r3'})
        self.assertEqual(rows['task-10-r3'].status, 'in_progress')
        self.assertTrue(rows['task-10-r3'].is_recovery_task)
        self.assertEqual(rows['task-9-a1'].status, 'not_started')
        self.assertTrue(rows['task-9-a1'].is_recovery_task)

    def test_activation_is_repeatable(self):
        """Activating twice does not duplicate rows."""
        athlete = AthleteProfile.objects.create(name='Jordan Lee', grade_level=10)
        services.activate_recovery_plan(athlete)
        services.activate_recovery_plan(athlete)

        self.assertEqual(AthleteTask.objects.filter(athlete=athlete).count(), 3)

    def test_no_trigger(self):
        """A freshman needs no plan and nothing is written."""
        athlete = AthleteProfile.objects.create(name='Jordan Lee', grade_level=9)
        result = services.activate_recovery_plan(athlete)

        self.assertFalse(result.triggered)
        self.assertFalse(AthleteTask.objects.filter(athlete=athlete).exists())


class WhatMattersNowServiceTests(TestCase):
    """Tests for what_matters_now against the real catalog."""

    fixtures = ['recruiting_tasks']

    def test_freshman_top_five(self):
        """A new freshman sees the five highest-weighted grade 9 tasks."""
        athlete = AthleteProfile.objects.create(name='Jordan Lee')
        items = services.what_matters_now(athlete)

        self.assertEqual(
            [item.task_view.task.id for item in items],
            ['task-9-a1', 'task-9-a2', 'task-9-f2', 'task-9-at1', 'task-9-at2'],
        )


class TaskCatalogTests(TestCase):
    """Tests for catalog validation on Task."""

    fixtures = ['recruiting_tasks']

    def test_cycle_rejected(self):
        """A prerequisite that points back at a dependent task is a cycle."""
        task = Task.objects.get(pk='task-9-f1')
        task.dependency_task_ids = ['task-10-r1']

        with self.assertRaises(ValidationError):
            task.clean()

    def test_self_and_unknown_rejected(self):
        task = Task.objects.get(pk='task-9-f1')

        task.dependency_task_ids = ['task-9-f1']
        with self.assertRaises(ValidationError):
            task.clean()

        task.dependency_task_ids = ['task-99-x']
        with self.assertRaises(ValidationError):
            task.clean()

    def test_valid_prerequisites_accepted(self):
        task = Task.objects.get(pk='task-10-r1')
        task.clean()

        self.assertEqual(task.dependency_task_ids, ['task-9-f1'])


class ManagementCommandTests(TestCase):
    """Tests for refresh_suggestions and validate_task_catalog."""

    fixtures = ['recruiting_tasks']

    def test_refresh_generates_and_surfaces(self):
        athlete = AthleteProfile.objects.create(name='Jordan Lee', grade_level=10)
        out = StringIO()

        call_command('refresh_suggestions', stdout=out)

        self.assertIn('3 created, 3 surfaced', out.getvalue())
        self.assertEqual(services.visible_suggestions(athlete).count(), 3)

    def test_refresh_without_surfacing(self):
        athlete = AthleteProfile.objects.create(name='Jordan Lee', grade_level=10)

        call_command('refresh_suggestions', athlete=athlete.pk, no_surface=True, stdout=StringIO())

        self.assertEqual(services.visible_suggestions(athlete).count(), 0)
        self.assertEqual(Suggestion.objects.filter(athlete=athlete).count(), 3)

    def test_refresh_continues_after_athlete_failure(self):
        first = AthleteProfile.objects.create(name='Jordan Lee', grade_level=10)
        second = AthleteProfile.objects.create(name='Sam Ortiz', grade_level=10)
        real_update = services.trigger_suggestion_update

        def flaky_update(athlete, reason, **kwargs):
            if athlete.pk == first.pk:
                raise RuntimeError('database hiccup')
            return real_update(athlete, reason, **kwargs)

        out = StringIO()
        with mock.patch.object(services, 'trigger_suggestion_update', side_effect=flaky_update):
            with self.assertLogs('timeline', level='ERROR'):
                call_command('refresh_suggestions', stdout=out)

        self.assertIn('Refreshed 1 athletes', out.getvalue())
        self.assertIn('1 failed athletes', out.getvalue())
        self.assertEqual(services.visible_suggestions(second).count(), 3)
        self.assertFalse(Suggestion.objects.filter(athlete=first).exists())

    def test_refresh_unknown_athlete(self):
        with self.assertRaises(CommandError):
            call_command('refresh_suggestions', athlete=9999, stdout=StringIO())

    def test_catalog_valid(self):
        out = StringIO()
        call_command('validate_task_catalog', stdout=out)

        self.assertIn('Task catalog OK (63 tasks)', out.getvalue())

    def test_catalog_problem_reported(self):
        Task.objects.filter(pk='task-9-f1').update(dependency_task_ids=['task-99-x'])

        with self.assertRaises(CommandError):
            call_command('validate_task_catalog', stdout=StringIO(), stderr=StringIO())
