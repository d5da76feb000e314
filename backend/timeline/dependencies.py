"""
Task Graph Validator.

Decides whether a task is locked behind unfinished prerequisites and
enforces that verdict on status transitions. Only direct prerequisites are
checked: a task's prerequisites were themselves gated when they were
completed, so walking the graph again would add nothing.

Cycle detection (find_dependency_cycles) is a content-administration check
for the task catalog. It is never run while evaluating an athlete.
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Mapping, Optional, Set

from .domain import AthleteTaskState, TaskRef, TaskStatus
from .errors import PrerequisitesIncomplete

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LockState:
    """Verdict for one task against a completed-task set."""
    locked: bool
    blocking: List[TaskRef] = field(default_factory=list)

    @property
    def blocking_ids(self) -> List[str]:
        return [task.id for task in self.blocking]

    def blocking_summary(self) -> List[Dict[str, str]]:
        return [{'id': task.id, 'title': task.title} for task in self.blocking]


@dataclass
class TaskView:
    """A catalog task merged with one athlete's record and lock state."""
    task: TaskRef
    status: TaskStatus
    locked: bool
    blocking_ids: List[str]
    completed_at: Optional[object] = None
    is_recovery_task: bool = False
    dependency_warning: Optional[str] = None

    def to_dict(self) -> Dict:
        result = self.task.to_dict()
        result.update({
            'status': self.status.value,
            'locked': self.locked,
            'blocking_task_ids': list(self.blocking_ids),
            'completed_at': self.completed_at.isoformat() if self.completed_at else None,
            'is_recovery_task': self.is_recovery_task,
            'dependency_warning': self.dependency_warning,
        })
        return result


class TaskGraphValidator:
    """
    Gate task status transitions behind the prerequisite graph.

    Moving a task to completed or in_progress requires every direct
    prerequisite to be completed. Moving to skipped or not_started is always
    allowed, whatever the lock state.
    """

    def evaluate(
        self,
        task: TaskRef,
        completed_task_ids: Iterable[str],
        tasks_by_id: Optional[Mapping[str, TaskRef]] = None
    ) -> LockState:
        """
        Check a task's direct prerequisites.

        Args:
            task: The task being checked
            completed_task_ids: Ids of tasks the athlete has completed
            tasks_by_id: Catalog lookup used to title the blocking tasks

        Returns:
            LockState with every missing prerequisite, in declared order
        """
        if not task.dependency_task_ids:
            return LockState(locked=False)

        completed = set(completed_task_ids)
        lookup = tasks_by_id or {}
        blocking = [
            lookup.get(dep_id) or TaskRef(id=dep_id, title=dep_id)
            for dep_id in task.dependency_task_ids
            if dep_id not in completed
        ]
        return LockState(locked=bool(blocking), blocking=blocking)

    def check_transition(
        self,
        task: TaskRef,
        new_status: TaskStatus,
        completed_task_ids: Iterable[str],
        tasks_by_id: Optional[Mapping[str, TaskRef]] = None
    ) -> LockState:
        """
        Validate a status change, raising if it is not allowed.

        Raises:
            PrerequisitesIncomplete: new_status is completed or in_progress
                and at least one prerequisite is not completed
        """
        new_status = TaskStatus(new_status)
        if new_status not in TaskStatus.gated():
            return LockState(locked=False)

        state = self.evaluate(task, completed_task_ids, tasks_by_id)
        if state.locked:
            action = 'complete' if new_status == TaskStatus.COMPLETED else 'start'
            logger.info(
                "Blocked %s -> %s: missing %s", task.id, new_status.value, ', '.join(state.blocking_ids)
            )
            raise PrerequisitesIncomplete(task.id, state.blocking_summary(), action=action)
        return state

    def annotate(
        self,
        tasks: Iterable[TaskRef],
        athlete_tasks: Iterable[AthleteTaskState]
    ) -> List[TaskView]:
        """Merge the catalog with an athlete's rows, in catalog order."""
        tasks = list(tasks)
        tasks_by_id = {task.id: task for task in tasks}
        states = {state.task_id: state for state in athlete_tasks}
        completed = {
            task_id for task_id, state in states.items()
            if state.status == TaskStatus.COMPLETED
        }

        views = []
        for task in tasks:
            state = states.get(task.id)
            lock = self.evaluate(task, completed, tasks_by_id)
            warning = None
            if lock.locked:
                warning = f'This task works best after completing "{lock.blocking[0].title}".'
            views.append(TaskView(
                task=task,
                status=state.status if state else TaskStatus.NOT_STARTED,
                locked=lock.locked,
                blocking_ids=lock.blocking_ids,
                completed_at=state.completed_at if state else None,
                is_recovery_task=state.is_recovery_task if state else False,
                dependency_warning=warning,
            ))
        return views


def find_dependency_cycles(tasks: Iterable[TaskRef]) -> Set[str]:
    """
    Find every task id that sits on a prerequisite cycle.

    Uses DFS with a recursion stack. Prerequisite ids that are not in the
    catalog are ignored here; find_unknown_prerequisites reports them.
    """
    graph: Dict[str, List[str]] = {task.id: list(task.dependency_task_ids) for task in tasks}

    on_cycle: Set[str] = set()
    visited: Set[str] = set()
    rec_stack: Set[str] = set()

    def dfs(node: str, path: List[str]) -> None:
        if node in rec_stack:
            on_cycle.update(path[path.index(node):])
            return
        if node in visited or node not in graph:
            return

        visited.add(node)
        rec_stack.add(node)
        path.append(node)
        for neighbor in graph[node]:
            dfs(neighbor, path)
        path.pop()
        rec_stack.remove(node)

    for task_id in graph:
        if task_id not in visited:
            dfs(task_id, [])

    return on_cycle


def find_unknown_prerequisites(tasks: Iterable[TaskRef]) -> Dict[str, List[str]]:
    """Map task id -> prerequisite ids that do not exist in the catalog."""
    tasks = list(tasks)
    known = {task.id for task in tasks}
    unknown = {}
    for task in tasks:
        missing = [dep for dep in task.dependency_task_ids if dep not in known]
        if missing:
            unknown[task.id] = missing
    return unknown


def validate_catalog(tasks: Iterable[TaskRef]) -> List[str]:
    """Return human-readable problems with the catalog; empty when valid."""
    tasks = list(tasks)
    problems = []
    for task in tasks:
        if task.id in task.dependency_task_ids:
            problems.append(f"{task.id} lists itself as a prerequisite")
    for task_id, missing in sorted(find_unknown_prerequisites(tasks).items()):
        problems.append(f"{task_id} has unknown prerequisites: {', '.join(missing)}")
    cycle = find_dependency_cycles(tasks)
    if cycle:
        problems.append(f"Circular prerequisites between: {', '.join(sorted(cycle))}")
    return problems
