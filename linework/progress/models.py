"""
Persisted progress records.

LearningProgress is stored as one JSON document per learner and embeds a
SkillTreeProgress per tree the learner has touched.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import date, datetime
from enum import Enum

from pydantic import BaseModel, Field


def xp_to_advance(level: int) -> int:
    """XP needed to go from `level` to `level + 1`."""
    return math.floor(100 * 1.5 ** (level - 1))


def level_for_xp(total_xp: int) -> int:
    """Learner level for a lifetime XP total, starting at level 1."""
    level = 1
    remaining = total_xp
    while remaining >= xp_to_advance(level):
        remaining -= xp_to_advance(level)
        level += 1
    return level


def xp_for_level(level: int) -> int:
    """Total XP at which `level` is reached."""
    return sum(xp_to_advance(step) for step in range(1, level))


class SkillTreeProgress(BaseModel):
    """One learner's progress through one skill tree."""

    skill_tree_id: str
    completed_lessons: list[str] = Field(default_factory=list)
    total_xp: int = 0
    last_accessed_at: datetime | None = None
    completion_percentage: float = 0.0


class LearningProgress(BaseModel):
    """Aggregate progress for one learner."""

    learner_id: str
    total_xp: int = 0
    current_streak: int = 0
    longest_streak: int = 0
    last_activity_date: date | None = None
    last_activity_at: datetime | None = None
    daily_goal: int = 100
    daily_progress: int = 0
    daily_goal_reached: bool = False
    completed_lessons: list[str] = Field(default_factory=list)
    achievements: list[str] = Field(default_factory=list)
    trees: dict[str, SkillTreeProgress] = Field(default_factory=dict)

    @property
    def level(self) -> int:
        return level_for_xp(self.total_xp)


class CompletionEvent(BaseModel):
    """Emitted by a lesson session when it reaches Completed."""

    learner_id: str = "default"
    lesson_id: str
    skill_tree_id: str
    passed: bool
    score: float = Field(ge=0.0, le=1.0)
    xp_earned: int = Field(ge=0)
    duration_seconds: float = Field(ge=0.0)
    achievements: list[str] = Field(default_factory=list)
    completed_at: datetime


# =============================================================================
# Milestone achievements
# =============================================================================


class MilestoneKind(str, Enum):
    """What a milestone counts."""

    LESSONS_COMPLETED = "lessons_completed"
    STREAK_DAYS = "streak_days"


@dataclass(frozen=True)
class Milestone:
    """An achievement earned by reaching a count, worth a one-off XP reward."""

    id: str
    kind: MilestoneKind
    threshold: int
    xp_reward: int
    title: str


MILESTONES: tuple[Milestone, ...] = (
    Milestone("first_lesson", MilestoneKind.LESSONS_COMPLETED, 1, 50, "First Steps"),
    Milestone("lesson_master_10", MilestoneKind.LESSONS_COMPLETED, 10, 200, "Dedicated Learner"),
    Milestone("lesson_master_50", MilestoneKind.LESSONS_COMPLETED, 50, 500, "Knowledge Seeker"),
    Milestone("lesson_master_100", MilestoneKind.LESSONS_COMPLETED, 100, 1000, "Master Scholar"),
    Milestone("streak_7", MilestoneKind.STREAK_DAYS, 7, 100, "Week Warrior"),
    Milestone("streak_30", MilestoneKind.STREAK_DAYS, 30, 300, "Dedicated Artist"),
    Milestone("streak_100", MilestoneKind.STREAK_DAYS, 100, 1000, "Centurion"),
)


def reached_milestones(progress: LearningProgress) -> list[Milestone]:
    """Milestones the record qualifies for but has not been awarded yet."""
    counts = {
        MilestoneKind.LESSONS_COMPLETED: len(progress.completed_lessons),
        MilestoneKind.STREAK_DAYS: progress.current_streak,
    }
    return [
        milestone
        for milestone in MILESTONES
        if counts[milestone.kind] >= milestone.threshold and milestone.id not in progress.achievements
    ]
