"""
Tests for the task graph validator.

Covers lock evaluation, transition gating and catalog checks for cycles
and unknown prerequisites.
"""

from django.test import TestCase

from timeline.dependencies import (
    TaskGraphValidator,
    find_dependency_cycles,
    find_unknown_prerequisites,
    validate_catalog,
)
from timeline.domain import AthleteTaskState, TaskRef, TaskStatus
from timeline.errors import ErrorCode, PrerequisitesIncomplete


VIDEO = TaskRef(id='task-10-r1', title='Create Highlight Video', dependency_task_ids=('task-9-f1',))
FOOTAGE = TaskRef(id='task-9-f1', title='Start Saving Game Footage')
EMAIL_HOWTO = TaskRef(id='task-10-r2', title='Learn How to Email Coaches')
INTRO_EMAILS = TaskRef(
    id='task-10-r5',
    title='Send First Introductory Emails',
    dependency_task_ids=('task-10-r1', 'task-10-r2'),
)
CATALOG = {task.id: task for task in (VIDEO, FOOTAGE, EMAIL_HOWTO, INTRO_EMAILS)}


class LockEvaluationTests(TestCase):
    """Tests for TaskGraphValidator.evaluate."""

    def setUp(self):
        self.validator = TaskGraphValidator()

    def test_task_without_prerequisites_is_unlocked(self):
        """A task with no prerequisites is never locked."""
        state = self.validator.evaluate(FOOTAGE, [], CATALOG)

        self.assertFalse(state.locked)
        self.assertEqual(state.blocking, [])

    def test_missing_prerequisite_locks_task(self):
        """An incomplete prerequisite locks the task and is reported."""
        state = self.validator.evaluate(VIDEO, [], CATALOG)

        self.assertTrue(state.locked)
        self.assertEqual(state.blocking_ids, ['task-9-f1'])
        self.assertEqual(state.blocking_summary(), [{'id': 'task-9-f1', 'title': 'Start Saving Game Footage'}])

    def test_blocking_keeps_declared_order(self):
        """Every missing prerequisite is listed, in declared order."""
        state = self.validator.evaluate(INTRO_EMAILS, [], CATALOG)

        self.assertEqual(state.blocking_ids, ['task-10-r1', 'task-10-r2'])

    def test_completed_prerequisites_unlock(self):
        """Completing all prerequisites unlocks the task."""
        state = self.validator.evaluate(INTRO_EMAILS, {'task-10-r1', 'task-10-r2'}, CATALOG)

        self.assertFalse(state.locked)

    def test_unknown_prerequisite_is_titled_by_id(self):
        """A prerequisite missing from the catalog falls back to its id as title."""
        orphan = TaskRef(id='task-x', title='Orphan', dependency_task_ids=('task-missing',))
        state = self.validator.evaluate(orphan, [], CATALOG)

        self.assertEqual(state.blocking_summary(), [{'id': 'task-missing', 'title': 'task-missing'}])


class TransitionTests(TestCase):
    """Tests for TaskGraphValidator.check_transition."""

    def setUp(self):
        self.validator = TaskGraphValidator()

    def test_completing_locked_task_raises(self):
        """Completing a locked task raises with the blocking titles."""
        with self.assertRaises(PrerequisitesIncomplete) as ctx:
            self.validator.check_transition(VIDEO, TaskStatus.COMPLETED, [], CATALOG)

        error = ctx.exception
        self.assertEqual(error.code, ErrorCode.ERR_PREREQUISITES_INCOMPLETE)
        self.assertEqual(error.blocking_titles, ['Start Saving Game Footage'])
        self.assertIn('Cannot complete task', error.message)
        self.assertIn('Start Saving Game Footage', error.message)

    def test_starting_locked_task_raises(self):
        """Moving a locked task to in_progress is also blocked."""
        with self.assertRaises(PrerequisitesIncomplete) as ctx:
            self.validator.check_transition(VIDEO, TaskStatus.IN_PROGRESS, [], CATALOG)

        self.assertIn('Cannot start task', ctx.exception.message)

    def test_skip_and_reset_always_allowed(self):
        """Skipping or resetting a locked task is never blocked."""
        for new_status in (TaskStatus.SKIPPED, TaskStatus.NOT_STARTED):
            state = self.validator.check_transition(VIDEO, new_status, [], CATALOG)
            self.assertFalse(state.locked)

    def test_status_given_as_string(self):
        """String statuses are accepted."""
        state = self.validator.check_transition(VIDEO, 'completed', ['task-9-f1'], CATALOG)

        self.assertFalse(state.locked)

    def test_error_payload_lists_prerequisites(self):
        """The error dict carries the task id and each blocking task."""
        with self.assertRaises(PrerequisitesIncomplete) as ctx:
            self.validator.check_transition(INTRO_EMAILS, TaskStatus.COMPLETED, ['task-10-r2'], CATALOG)

        payload = ctx.exception.to_dict()
        self.assertFalse(payload['success'])
        self.assertEqual(payload['task_id'], 'task-10-r5')
        self.assertEqual(payload['incomplete_prerequisites'], [
            {'id': 'task-10-r1', 'title': 'Create Highlight Video'},
        ])


class AnnotateTests(TestCase):
    """Tests for merging the catalog with an athlete's task rows."""

    def test_annotate_marks_locked_and_status(self):
        """Views carry the stored status and lock state for each task."""
        validator = TaskGraphValidator()
        views = validator.annotate(
            [FOOTAGE, VIDEO, EMAIL_HOWTO],
            [AthleteTaskState('task-10-r2', TaskStatus.IN_PROGRESS, is_recovery_task=True)],
        )
        by_id = {view.task.id: view for view in views}

        self.assertEqual([view.task.id for view in views], ['task-9-f1', 'task-10-r1', 'task-10-r2'])
        self.assertEqual(by_id['task-9-f1'].status, TaskStatus.NOT_STARTED)
        self.assertTrue(by_id['task-10-r1'].locked)
        self.assertIn('Start Saving Game Footage', by_id['task-10-r1'].dependency_warning)
        self.assertEqual(by_id['task-10-r2'].status, TaskStatus.IN_PROGRESS)
        self.assertTrue(by_id['task-10-r2'].is_recovery_task)

    def test_completed_prerequisite_unlocks_view(self):
        """A completed prerequisite row unlocks its dependents."""
        views = TaskGraphValidator().annotate(
            [FOOTAGE, VIDEO],
            [AthleteTaskState('task-9-f1', TaskStatus.COMPLETED)],
        )

        self.assertFalse(views[1].locked)
        self.assertIsNone(views[1].dependency_warning)


class CatalogValidationTests(TestCase):
    """Tests for cycle and unknown-prerequisite detection."""

    def test_no_cycles_in_valid_graph(self):
        """A DAG reports no cycles."""
        self.assertEqual(find_dependency_cycles(CATALOG.values()), set())

    def test_simple_cycle(self):
        """Two tasks depending on each other are both reported."""
        tasks = [
            TaskRef(id='a', title='A', dependency_task_ids=('b',)),
            TaskRef(id='b', title='B', dependency_task_ids=('a',)),
        ]
        self.assertEqual(find_dependency_cycles(tasks), {'a', 'b'})

    def test_cycle_with_safe_tasks(self):
        """Tasks outside the cycle are not reported."""
        tasks = [
            TaskRef(id='a', title='A', dependency_task_ids=('b',)),
            TaskRef(id='b', title='B', dependency_task_ids=('c',)),
            TaskRef(id='c', title='C', dependency_task_ids=('b',)),
            TaskRef(id='d', title='D'),
        ]
        self.assertEqual(find_dependency_cycles(tasks), {'b', 'c'})

    def test_self_reference(self):
        """A task depending on itself is a cycle."""
        tasks = [TaskRef(id='a', title='A', dependency_task_ids=('a',))]

        self.assertEqual(find_dependency_cycles(tasks), {'a'})
        self.assertIn('a lists itself as a prerequisite', validate_catalog(tasks))

    def test_unknown_prerequisites(self):
        """References to missing tasks are reported per task."""
        tasks = [TaskRef(id='a', title='A', dependency_task_ids=('zzz',))]

        self.assertEqual(find_unknown_prerequisites(tasks), {'a': ['zzz']})
        self.assertEqual(validate_catalog(tasks), ['a has unknown prerequisites: zzz'])
