"""
Priority Ranker ("What Matters Now").

Picks the handful of current-phase tasks most worth the athlete's attention:
required, explained, not yet done. Priority is the task category's weight
plus the number of prerequisites the task declares, so tasks that sit
deeper in the graph edge ahead of standalone ones in the same category.
"""

from dataclasses import dataclass
from typing import Dict, Iterable, List, Mapping, Optional

from .config import DEFAULT_CATEGORY_WEIGHTS
from .dependencies import TaskView
from .domain import Phase, TaskCategory, TaskStatus
from .phases import grade_for_phase


DEFAULT_LIMIT = 5

PRIORITY_LABELS = (
    (12, "Critical Right Now"),
    (9, "High Priority"),
    (7, "Important"),
)


def get_priority_label(priority: int) -> str:
    for floor, label in PRIORITY_LABELS:
        if priority >= floor:
            return label
    return "Recommended"


@dataclass
class PriorityItem:
    task_view: TaskView
    priority: int

    @property
    def label(self) -> str:
        return get_priority_label(self.priority)

    def to_dict(self) -> Dict:
        result = self.task_view.to_dict()
        result['priority'] = self.priority
        result['priority_label'] = self.label
        return result


class PriorityRanker:
    """Rank a phase's open required tasks by category weight and fan-out."""

    def __init__(
        self,
        category_weights: Optional[Mapping[TaskCategory, int]] = None,
        limit: int = DEFAULT_LIMIT
    ):
        self.category_weights = dict(category_weights or DEFAULT_CATEGORY_WEIGHTS)
        self.limit = limit

    def priority_for(self, view: TaskView) -> int:
        return self.category_weights.get(view.task.category, 0) + len(view.task.dependency_task_ids)

    def rank(self, phase, task_views: Iterable[TaskView]) -> List[PriorityItem]:
        grade = grade_for_phase(Phase.coerce(phase))
        candidates = [
            view for view in task_views
            if view.task.required
            and view.task.why_it_matters
            and view.task.grade_level == grade
            and view.status not in (TaskStatus.COMPLETED, TaskStatus.SKIPPED)
        ]
        # sorted() is stable, so equal priorities keep catalog order
        items = sorted(
            (PriorityItem(view, self.priority_for(view)) for view in candidates),
            key=lambda item: item.priority,
            reverse=True,
        )
        return items[:self.limit]
