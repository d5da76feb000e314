"""
Phase State Machine.

An athlete's phase is derived from completed milestone tasks, never stored
as an independent fact. Gates are checked from the highest phase down, so
the result is always the highest phase whose milestones are all complete,
even when an earlier milestone was never marked done.
"""

from datetime import datetime
from typing import Dict, Iterable, Optional

from .config import DEFAULT_PHASE_MILESTONES, PhaseMilestones
from .domain import PHASE_ORDER, MilestoneProgress, Phase


PHASE_INFO: Dict[Phase, Dict] = {
    Phase.FRESHMAN: {
        'label': 'Freshman Year',
        'grade': 9,
        'theme': 'Foundation & Awareness',
        'description': 'Understand the recruiting process and build athletic foundation',
    },
    Phase.SOPHOMORE: {
        'label': 'Sophomore Year',
        'grade': 10,
        'theme': 'Exposure & Communication',
        'description': "Get on coaches' radar and start building relationships",
    },
    Phase.JUNIOR: {
        'label': 'Junior Year',
        'grade': 11,
        'theme': 'Evaluation & Relationship Building',
        'description': 'Peak performance year - coaches are watching closely',
    },
    Phase.SENIOR: {
        'label': 'Senior Year',
        'grade': 12,
        'theme': 'Commitment & Transition',
        'description': 'Finalize recruiting and prepare for college',
    },
    Phase.COMMITTED: {
        'label': 'Committed',
        'grade': 12,
        'theme': 'Post-Commitment',
        'description': 'Signed and preparing for the college transition',
    },
}


def grade_for_phase(phase) -> int:
    return PHASE_INFO[Phase.coerce(phase)]['grade']


def get_next_phase(phase) -> Optional[Phase]:
    """Phase after ``phase``, or None for committed."""
    index = Phase.coerce(phase).rank
    return PHASE_ORDER[index + 1] if index + 1 < len(PHASE_ORDER) else None


def get_previous_phase(phase) -> Optional[Phase]:
    """Phase before ``phase``, or None for freshman."""
    index = Phase.coerce(phase).rank
    return PHASE_ORDER[index - 1] if index > 0 else None


class PhaseCalculator:
    """
    Compute phases and milestone progress against a milestone table.

    Example:
        >>> calc = PhaseCalculator()
        >>> calc.calculate_phase(['task-9-a1'], has_signed_commitment=True)
        <Phase.COMMITTED: 'committed'>
    """

    def __init__(self, milestones: PhaseMilestones = DEFAULT_PHASE_MILESTONES):
        self.milestones = milestones

    def _gate_met(self, phase: Phase, completed: set) -> bool:
        required = self.milestones.gate_for(phase)
        return bool(required) and all(task_id in completed for task_id in required)

    def calculate_phase(self, completed_task_ids: Iterable[str], has_signed_commitment: bool = False) -> Phase:
        """
        Determine the highest phase the athlete has reached.

        The signed-commitment flag wins outright. Otherwise the junior,
        sophomore and freshman gates are checked in that order and the
        first one fully satisfied names the phase after it.
        """
        if has_signed_commitment:
            return Phase.COMMITTED

        completed = set(completed_task_ids)
        for phase in (Phase.JUNIOR, Phase.SOPHOMORE, Phase.FRESHMAN):
            if self._gate_met(phase, completed):
                return get_next_phase(phase)
        return Phase.FRESHMAN

    def get_milestone_progress(self, phase, completed_task_ids: Iterable[str]) -> MilestoneProgress:
        """Progress toward leaving ``phase``. Committed is always 100%."""
        phase = Phase.coerce(phase)
        if phase == Phase.COMMITTED:
            return MilestoneProgress(phase, (), (), (), 100)

        completed_set = set(completed_task_ids)
        required = tuple(self.milestones.gate_for(phase))
        done = tuple(task_id for task_id in required if task_id in completed_set)
        remaining = tuple(task_id for task_id in required if task_id not in completed_set)
        percent = round(len(done) / len(required) * 100) if required else 0

        return MilestoneProgress(
            phase=phase,
            required=required,
            completed=done,
            remaining=remaining,
            percent_complete=percent,
        )

    def can_advance_phase(self, phase, completed_task_ids: Iterable[str]) -> bool:
        phase = Phase.coerce(phase)
        if phase == Phase.COMMITTED:
            return False
        return self._gate_met(phase, set(completed_task_ids))

    def build_phase_milestone_data(
        self,
        current_phase,
        completed_task_ids: Iterable[str],
        now: Optional[datetime] = None
    ) -> Dict:
        """Snapshot stored on the athlete profile after a phase recalculation."""
        completed = list(completed_task_ids)
        milestones_by_phase = {
            phase.value: self.get_milestone_progress(phase, completed).to_dict()
            for phase in PHASE_ORDER
            if phase != Phase.COMMITTED
        }
        return {
            'current_phase': Phase.coerce(current_phase).value,
            'milestones_by_phase': milestones_by_phase,
            'last_phase_update': (now or datetime.now()).isoformat(),
        }
