"""
Suggestion rules and the default registry.

Rules run in registry order; the first five follow the recruiting calendar,
the rest watch relationships and materials.
"""

from .base import Rule, RuleContext, RuleResult, SuggestionRecord
from .engagement import (
    EventFollowUpRule,
    InteractionGapRule,
    MissingVideoRule,
    PortfolioHealthRule,
    PrioritySchoolReminderRule,
    VideoLinkHealthRule,
)
from .milestones import (
    FormalOutreachRule,
    NcaaRegistrationRule,
    OfficialVisitRule,
    SchoolListBuildingRule,
    ShowcaseAttendanceRule,
)


def default_rules():
    """A fresh list of the standard rules, in evaluation order."""
    return [
        NcaaRegistrationRule(),
        SchoolListBuildingRule(),
        OfficialVisitRule(),
        FormalOutreachRule(),
        ShowcaseAttendanceRule(),
        InteractionGapRule(),
        MissingVideoRule(),
        EventFollowUpRule(),
        VideoLinkHealthRule(),
        PortfolioHealthRule(),
        PrioritySchoolReminderRule(),
    ]


__all__ = [
    'Rule',
    'RuleContext',
    'RuleResult',
    'SuggestionRecord',
    'default_rules',
    'EventFollowUpRule',
    'FormalOutreachRule',
    'InteractionGapRule',
    'MissingVideoRule',
    'NcaaRegistrationRule',
    'OfficialVisitRule',
    'PortfolioHealthRule',
    'PrioritySchoolReminderRule',
    'SchoolListBuildingRule',
    'ShowcaseAttendanceRule',
    'VideoLinkHealthRule',
]
