"""
Tests for the suggestion rule engine.

Covers failure isolation, de-duplication across runs and reappearance of
dismissed or completed suggestions.
"""

from datetime import datetime, timedelta, timezone

from django.test import TestCase

from timeline.domain import (
    AthleteSnapshot,
    AthleteTaskState,
    Division,
    SchoolSnapshot,
    SuggestionCandidate,
    TaskStatus,
    Urgency,
)
from timeline.engine import RuleEngine, normalize_snapshot
from timeline.errors import ErrorCode
from timeline.rules import InteractionGapRule, NcaaRegistrationRule, RuleContext, SuggestionRecord

NOW = datetime(2026, 10, 15, 12, 0, tzinfo=timezone.utc)


class StaticRule:
    def __init__(self, rule_type, snapshot=None, many=False):
        self.rule_type = rule_type
        self.snapshot = snapshot or {'flag': True}
        self.many = many

    def evaluate(self, context):
        candidate = SuggestionCandidate(self.rule_type, Urgency.MEDIUM, 'Do it', condition_snapshot=self.snapshot)
        return [candidate, None] if self.many else candidate


class SilentRule:
    rule_type = 'silent'

    def evaluate(self, context):
        return None


class BrokenRule:
    rule_type = 'broken'

    def evaluate(self, context):
        raise RuntimeError('boom')


class NeverAgainRule(StaticRule):
    def should_re_evaluate(self, previous, context):
        return False


def make_context(now=NOW, **kwargs):
    return RuleContext(athlete=AthleteSnapshot(id=1, grade_level=11), now=now, **kwargs)


def record(pk, rule_type='static', snapshot=None, created=NOW, **kwargs):
    return SuggestionRecord(
        id=pk,
        rule_type=rule_type,
        condition_snapshot=snapshot if snapshot is not None else {'flag': True},
        created_at=created,
        **kwargs
    )


class EvaluateAllTests(TestCase):
    """Tests for running the rule registry."""

    def test_failing_rule_is_isolated(self):
        """A rule that raises is recorded and the others still run."""
        engine = RuleEngine([StaticRule('first'), BrokenRule(), StaticRule('last')])

        with self.assertLogs('timeline.engine', level='ERROR'):
            result = engine.evaluate_all(make_context())

        self.assertEqual([c.rule_type for c in result.candidates], ['first', 'last'])
        self.assertEqual(len(result.failures), 1)
        self.assertEqual(result.failures[0].rule_type, 'broken')
        self.assertEqual(result.failures[0].to_dict()['error_code'], ErrorCode.ERR_RULE_EVALUATION_FAILED.value)

    def test_lists_flattened_and_none_skipped(self):
        """List results are flattened and None entries dropped."""
        engine = RuleEngine([StaticRule('many', many=True), SilentRule()])

        self.assertEqual([c.rule_type for c in engine.evaluate_all(make_context()).candidates], ['many'])

    def test_rule_lookup(self):
        """Rules can be added and found by type."""
        engine = RuleEngine([])
        rule = StaticRule('added')
        engine.add_rule(rule)

        self.assertIs(engine.rule_for('added'), rule)
        self.assertIsNone(engine.rule_for('missing'))
        self.assertEqual(engine.rule_types, ['added'])


class PlanningTests(TestCase):
    """Tests for de-duplication and reappearance."""

    def setUp(self):
        self.engine = RuleEngine([StaticRule('static')])

    def plan(self, existing, now=NOW, engine=None):
        engine = engine or self.engine
        _, planned = engine.run(make_context(now=now), existing)
        return planned

    def test_new_suggestion_planned(self):
        """With no history the candidate is planned and pending."""
        planned = self.plan([])

        self.assertEqual(len(planned), 1)
        self.assertFalse(planned[0].reappeared)
        self.assertTrue(planned[0].pending_surface)

    def test_open_duplicate_skipped(self):
        """An open suggestion with the same snapshot suppresses the candidate."""
        self.assertEqual(self.plan([record(1)]), [])

    def test_idempotent_runs(self):
        """Running twice against the first run's output plans nothing new."""
        first = self.plan([])
        stored = [record(1, snapshot=first[0].candidate.condition_snapshot)]

        self.assertEqual(self.plan(stored), [])

    def test_changed_snapshot_on_open_suggestion(self):
        """An open suggestion with a different snapshot does not block a new row."""
        planned = self.plan([record(1, snapshot={'flag': False})])

        self.assertEqual(len(planned), 1)
        self.assertFalse(planned[0].reappeared)

    def test_resolved_within_cooldown_stays_quiet(self):
        """A dismissal inside the cooldown with the same snapshot is respected."""
        dismissed = record(1, dismissed=True, dismissed_at=NOW - timedelta(days=3))

        self.assertEqual(self.plan([dismissed]), [])

    def test_resolved_after_cooldown_reappears(self):
        """After the cooldown the suggestion comes back linked to the old one."""
        completed = record(1, completed=True, completed_at=NOW - timedelta(days=14))
        planned = self.plan([completed])

        self.assertEqual(len(planned), 1)
        self.assertTrue(planned[0].reappeared)
        self.assertEqual(planned[0].previous_suggestion_id, 1)

    def test_changed_snapshot_reappears_immediately(self):
        """A changed condition reappears even inside the cooldown."""
        dismissed = record(1, snapshot={'flag': False}, dismissed=True, dismissed_at=NOW - timedelta(days=1))
        planned = self.plan([dismissed])

        self.assertTrue(planned[0].reappeared)

    def test_rule_can_veto_reappearance(self):
        """should_re_evaluate returning False keeps it quiet after the cooldown."""
        engine = RuleEngine([NeverAgainRule('static')])
        dismissed = record(1, dismissed=True, dismissed_at=NOW - timedelta(days=60))

        self.assertEqual(self.plan([dismissed], engine=engine), [])

    def test_latest_resolved_decides(self):
        """Only the most recent resolved record is compared."""
        older = record(1, snapshot={'flag': False}, dismissed=True, dismissed_at=NOW - timedelta(days=30))
        newer = record(2, dismissed=True, dismissed_at=NOW - timedelta(days=2))

        self.assertEqual(self.plan([older, newer]), [])

    def test_custom_cooldown(self):
        """The cooldown length is configurable."""
        engine = RuleEngine([StaticRule('static')], cooldown_days=2)
        dismissed = record(1, dismissed=True, dismissed_at=NOW - timedelta(days=3))

        self.assertEqual(len(self.plan([dismissed], engine=engine)), 1)

    def test_snapshot_normalization(self):
        """Key order and tuples do not change a snapshot."""
        self.assertEqual(normalize_snapshot({'b': (1, 2), 'a': 1}), {'a': 1, 'b': [1, 2]})
        self.assertEqual(normalize_snapshot(None), {})


class InteractionGapReappearanceTests(TestCase):
    """Tests for per-school keys and the interaction gap re-evaluation hook."""

    def test_each_school_tracked_separately(self):
        """A suggestion for one school does not suppress another school's."""
        schools = (
            SchoolSnapshot(1, 'A', status='interested', priority='A'),
            SchoolSnapshot(2, 'B', status='contacted', priority='B'),
        )
        engine = RuleEngine([InteractionGapRule()])
        context = make_context(schools=schools)
        first = engine.evaluate_all(context).candidates[0]
        existing = [SuggestionRecord(
            id=1,
            rule_type='interaction-gap',
            condition_snapshot=first.condition_snapshot,
            related_school_id=first.related_school_id,
        )]

        _, planned = engine.run(context, existing)

        self.assertEqual([p.candidate.related_school_id for p in planned], [2])


class NcaaEndToEndTests(TestCase):
    """The NCAA registration suggestion exists exactly while it is needed."""

    def test_ncaa_suggestion_lifecycle(self):
        """Emitted once for a junior with a D1 school, then silent after registration."""
        engine = RuleEngine([NcaaRegistrationRule()])
        schools = (SchoolSnapshot(1, 'State U', division=Division.D1),)
        context = make_context(schools=schools)

        _, planned = engine.run(context, [])
        self.assertEqual(len(planned), 1)
        self.assertEqual(planned[0].candidate.related_task_id, 'task-11-a1')

        stored = [SuggestionRecord(
            id=1,
            rule_type='ncaa-registration',
            condition_snapshot=planned[0].candidate.condition_snapshot,
            related_task_id='task-11-a1',
        )]
        _, again = engine.run(context, stored)
        self.assertEqual(again, [])

        registered = make_context(
            schools=schools,
            athlete_tasks=(AthleteTaskState('task-11-a1', TaskStatus.COMPLETED),),
        )
        result, planned = engine.run(registered, stored)
        self.assertEqual(result.candidates, [])
        self.assertEqual(planned, [])
