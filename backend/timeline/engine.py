"""
Suggestion Rule Engine.

Runs the rule registry against one RuleContext and turns the resulting
candidates into a plan of suggestions to insert, given what the athlete
already has.

Evaluation is best-effort per rule: a rule that raises is logged and
recorded as a RuleEvaluationFailure, and every other rule's output is still
returned.

Planning compares each candidate against existing suggestions with the same
(rule type, related school, related task) key:
- an open suggestion with an equal condition snapshot means nothing new
- an open suggestion with a different snapshot means a new row
- otherwise the latest dismissed/completed one decides. A changed snapshot,
  or an elapsed cooldown that the rule agrees with, re-emits the suggestion
  marked as reappeared and linked to that row.
"""

import json
import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Dict, Iterable, List, Optional, Tuple

from .domain import EntityId, SuggestionCandidate
from .errors import RuleEvaluationFailure
from .rules import Rule, RuleContext, SuggestionRecord, default_rules

logger = logging.getLogger(__name__)

DEFAULT_COOLDOWN_DAYS = 14


def normalize_snapshot(snapshot: Optional[Dict]) -> Dict:
    """Canonical JSON form, so stored and fresh snapshots compare equal."""
    return json.loads(json.dumps(snapshot or {}, sort_keys=True, default=str))


@dataclass
class EngineResult:
    candidates: List[SuggestionCandidate] = field(default_factory=list)
    failures: List[RuleEvaluationFailure] = field(default_factory=list)


@dataclass
class PlannedSuggestion:
    """A candidate the persistence layer should insert."""
    candidate: SuggestionCandidate
    reappeared: bool = False
    previous_suggestion_id: Optional[EntityId] = None
    pending_surface: bool = True

    def to_dict(self) -> Dict:
        result = self.candidate.to_dict()
        result.update({
            'reappeared': self.reappeared,
            'previous_suggestion_id': self.previous_suggestion_id,
            'pending_surface': self.pending_surface,
        })
        return result


class RuleEngine:
    """
    Evaluate an ordered rule registry and plan de-duplicated suggestions.

    Args:
        rules: Rules to run, in order. Defaults to the standard registry.
        cooldown_days: How long a dismissed or completed suggestion stays
            quiet when its condition is unchanged.
    """

    def __init__(self, rules: Optional[Iterable[Rule]] = None, cooldown_days: int = DEFAULT_COOLDOWN_DAYS):
        self.rules: List[Rule] = list(rules) if rules is not None else default_rules()
        self.cooldown = timedelta(days=cooldown_days)

    def add_rule(self, rule: Rule) -> None:
        self.rules.append(rule)

    def rule_for(self, rule_type: str) -> Optional[Rule]:
        for rule in self.rules:
            if rule.rule_type == rule_type:
                return rule
        return None

    @property
    def rule_types(self) -> List[str]:
        return [rule.rule_type for rule in self.rules]

    def evaluate_all(self, context: RuleContext) -> EngineResult:
        """Run every rule, flattening list results and skipping None."""
        result = EngineResult()
        for rule in self.rules:
            rule_type = getattr(rule, 'rule_type', type(rule).__name__)
            try:
                output = rule.evaluate(context)
            except Exception as exc:
                logger.exception("Suggestion rule %s failed for athlete %s", rule_type, context.athlete.id)
                result.failures.append(RuleEvaluationFailure(rule_type, exc))
                continue

            if output is None:
                continue
            if isinstance(output, SuggestionCandidate):
                result.candidates.append(output)
            else:
                result.candidates.extend(candidate for candidate in output if candidate is not None)

        logger.debug(
            "Evaluated %d rules for athlete %s: %d candidates, %d failures",
            len(self.rules), context.athlete.id, len(result.candidates), len(result.failures)
        )
        return result

    def _cooldown_elapsed(self, record: SuggestionRecord, now: datetime) -> bool:
        resolved_at = record.resolved_at
        return resolved_at is None or now - resolved_at >= self.cooldown

    def _wants_re_evaluation(self, record: SuggestionRecord, context: RuleContext) -> bool:
        rule = self.rule_for(record.rule_type)
        check = getattr(rule, 'should_re_evaluate', None)
        return True if check is None else bool(check(record, context))

    def plan_suggestions(
        self,
        candidates: Iterable[SuggestionCandidate],
        existing: Iterable[SuggestionRecord],
        context: RuleContext
    ) -> List[PlannedSuggestion]:
        """
        Decide which candidates become new suggestion rows.

        Args:
            candidates: Output of evaluate_all
            existing: The athlete's stored suggestions, oldest first
            context: The context the candidates came from

        Returns:
            Suggestions to insert, each with pending_surface set
        """
        history: Dict[Tuple, List[SuggestionRecord]] = {}
        for record in existing:
            history.setdefault(record.dedup_key, []).append(record)

        planned: List[PlannedSuggestion] = []
        seen = set()
        for candidate in candidates:
            snapshot = normalize_snapshot(candidate.condition_snapshot)
            fingerprint = (candidate.dedup_key, json.dumps(snapshot, sort_keys=True))
            if fingerprint in seen:
                continue
            seen.add(fingerprint)

            records = history.get(candidate.dedup_key, [])
            open_records = [record for record in records if record.is_open]

            if any(normalize_snapshot(record.condition_snapshot) == snapshot for record in open_records):
                logger.debug("Skipping duplicate %s suggestion", candidate.rule_type)
                continue
            if open_records:
                planned.append(PlannedSuggestion(candidate))
                continue

            resolved = [record for record in records if not record.is_open]
            if not resolved:
                planned.append(PlannedSuggestion(candidate))
                continue

            previous = resolved[-1]
            changed = normalize_snapshot(previous.condition_snapshot) != snapshot
            if changed or (
                self._cooldown_elapsed(previous, context.now)
                and self._wants_re_evaluation(previous, context)
            ):
                logger.info(
                    "Suggestion %s reappeared for athlete %s (previous %s)",
                    candidate.rule_type, context.athlete.id, previous.id
                )
                planned.append(PlannedSuggestion(
                    candidate,
                    reappeared=True,
                    previous_suggestion_id=previous.id,
                ))

        return planned

    def run(
        self,
        context: RuleContext,
        existing: Iterable[SuggestionRecord] = ()
    ) -> Tuple[EngineResult, List[PlannedSuggestion]]:
        """Evaluate and plan in one call."""
        result = self.evaluate_all(context)
        return result, self.plan_suggestions(result.candidates, existing, context)
