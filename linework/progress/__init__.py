"""
Learner progress: persisted records and the ledger that maintains them.
"""

from linework.progress.ledger import ProgressLedger, ProgressSummary, StreakStatus, progress_key
from linework.progress.models import (
    MILESTONES,
    CompletionEvent,
    LearningProgress,
    Milestone,
    MilestoneKind,
    SkillTreeProgress,
    level_for_xp,
    xp_for_level,
    xp_to_advance,
)

__all__ = [
    "MILESTONES",
    "CompletionEvent",
    "LearningProgress",
    "Milestone",
    "MilestoneKind",
    "ProgressLedger",
    "ProgressSummary",
    "SkillTreeProgress",
    "StreakStatus",
    "level_for_xp",
    "progress_key",
    "xp_for_level",
    "xp_to_advance",
]
