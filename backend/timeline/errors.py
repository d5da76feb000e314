"""
Error codes and typed failures for the recruiting timeline engine.

Validation failures (PrerequisitesIncomplete, InvalidScoreInput) propagate
to the caller; the API layer turns them into structured error responses.
RuleEvaluationFailure is only ever recorded by the rule engine, never raised
out of it.
"""

from enum import Enum
from typing import Any, Dict, List, Optional


# ==================== Error Codes ====================

class ErrorCode(Enum):
    """Error codes for API responses."""
    SUCCESS = "SUCCESS"
    ERR_PREREQUISITES_INCOMPLETE = "ERR_PREREQUISITES_INCOMPLETE"
    ERR_INVALID_SCORE_INPUT = "ERR_INVALID_SCORE_INPUT"
    ERR_INVALID_STATUS = "ERR_INVALID_STATUS"
    ERR_INVALID_INPUT = "ERR_INVALID_INPUT"
    ERR_TASK_NOT_FOUND = "ERR_TASK_NOT_FOUND"
    ERR_ATHLETE_NOT_FOUND = "ERR_ATHLETE_NOT_FOUND"
    ERR_RULE_EVALUATION_FAILED = "ERR_RULE_EVALUATION_FAILED"


# ==================== Exceptions ====================

class TimelineError(Exception):
    """Base class for engine failures that carry an error code."""

    code = ErrorCode.ERR_INVALID_INPUT

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_dict(self) -> Dict[str, Any]:
        return {
            'success': False,
            'error_code': self.code.value,
            'message': self.message,
        }


class PrerequisitesIncomplete(TimelineError):
    """
    Raised when a task is started or completed before its prerequisites.

    Attributes:
        task_id: The task whose transition was rejected
        blocking: List of {'id', 'title'} dicts, one per missing prerequisite
    """

    code = ErrorCode.ERR_PREREQUISITES_INCOMPLETE

    def __init__(self, task_id: str, blocking: List[Dict[str, str]], action: str = 'complete'):
        titles = ', '.join(item['title'] for item in blocking)
        super().__init__(
            f"Cannot {action} task. Please complete these prerequisites first: {titles}"
        )
        self.task_id = task_id
        self.blocking = blocking

    @property
    def blocking_titles(self) -> List[str]:
        return [item['title'] for item in self.blocking]

    def to_dict(self) -> Dict[str, Any]:
        result = super().to_dict()
        result['task_id'] = self.task_id
        result['incomplete_prerequisites'] = list(self.blocking)
        return result


class InvalidScoreInput(TimelineError):
    """A status sub-score that is missing, non-numeric or outside [0, 100]."""

    code = ErrorCode.ERR_INVALID_SCORE_INPUT

    def __init__(self, field: str, value: Any, reason: Optional[str] = None):
        super().__init__(
            reason or f"{field} must be a number between 0 and 100, got {value!r}"
        )
        self.field = field
        self.value = value

    def to_dict(self) -> Dict[str, Any]:
        result = super().to_dict()
        result['field'] = self.field
        return result


class RuleEvaluationFailure(TimelineError):
    """Record of a single rule raising during an evaluation pass."""

    code = ErrorCode.ERR_RULE_EVALUATION_FAILED

    def __init__(self, rule_type: str, error: Exception):
        super().__init__(f"Rule {rule_type} failed: {error}")
        self.rule_type = rule_type
        self.error = error

    def to_dict(self) -> Dict[str, Any]:
        return {
            'rule_type': self.rule_type,
            'error_code': self.code.value,
            'message': self.message,
        }
