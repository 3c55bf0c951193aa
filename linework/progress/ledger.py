"""
Progress Ledger.

Owns each learner's persisted LearningProgress. Lesson sessions never
touch progress directly; they hand a CompletionEvent to
record_completion(), which marks the lesson, adds XP, updates the streak
and daily goal, awards milestone achievements, and persists the result.

Read-modify-write of one learner's record is serialised by a per-learner
asyncio.Lock, so two completions for the same learner never interleave.
"""

from __future__ import annotations

import asyncio
import weakref
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

from loguru import logger
from pydantic import ValidationError

from linework import events
from linework.config import Settings, get_settings
from linework.curriculum.graph import CurriculumGraph, LearnerFacts
from linework.curriculum.models import Lesson
from linework.errors import PersistenceError
from linework.events import EventSink, LoggingEventSink
from linework.progress.models import (
    CompletionEvent,
    LearningProgress,
    Milestone,
    SkillTreeProgress,
    reached_milestones,
)
from linework.storage import Storage


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def progress_key(learner_id: str) -> str:
    return f"progress:{learner_id}"


@dataclass
class StreakStatus:
    current: int
    longest: int
    active: bool


@dataclass
class ProgressSummary:
    learner_id: str
    level: int
    total_xp: int
    total_lessons: int
    completed_lessons: int
    completion_percentage: float
    current_streak: int
    longest_streak: int
    daily_goal: int
    daily_progress: int
    trees_in_progress: list[str]
    recommended_next: str | None
    achievements: list[str]


class ProgressLedger:
    """XP, streaks, daily goals and completed lessons for every learner."""

    def __init__(
        self,
        graph: CurriculumGraph,
        storage: Storage,
        *,
        sink: EventSink | None = None,
        settings: Settings | None = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.graph = graph
        self.storage = storage
        self.sink = sink or LoggingEventSink()
        self.settings = settings or get_settings()
        self.clock = clock
        # Entries vanish once no coroutine holds or waits on the lock
        self._locks: weakref.WeakValueDictionary[str, asyncio.Lock] = weakref.WeakValueDictionary()

    def _lock(self, learner_id: str) -> asyncio.Lock:
        lock = self._locks.get(learner_id)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[learner_id] = lock
        return lock

    # =========================================================================
    # Persistence
    # =========================================================================

    async def load(self, learner_id: str = "default") -> LearningProgress:
        """Stored progress, or a fresh record for a new learner."""
        key = progress_key(learner_id)
        data = await self.storage.get(key)
        if data is None:
            return LearningProgress(learner_id=learner_id, daily_goal=self.settings.default_daily_goal)
        try:
            return LearningProgress.model_validate(data)
        except ValidationError as e:
            raise PersistenceError(key, f"corrupt progress record: {e}") from e

    async def _save(self, progress: LearningProgress) -> None:
        await self.storage.set(progress_key(progress.learner_id), progress.model_dump(mode="json"))

    # =========================================================================
    # Session events
    # =========================================================================

    async def record_completion(self, event: CompletionEvent) -> LearningProgress:
        """
        Apply a lesson completion and persist it.

        Marking a lesson is idempotent; XP is added for every completion.
        A failed assessment earns XP but does not mark the lesson completed.

        Raises:
            NotFound: the lesson is not in the catalog
            PersistenceError: the record could not be saved
        """
        tree = self.graph.tree_of(event.lesson_id)
        async with self._lock(event.learner_id):
            progress = await self.load(event.learner_id)
            level_before = progress.level

            tree_progress = progress.trees.get(tree.id) or SkillTreeProgress(skill_tree_id=tree.id)
            if event.passed and event.lesson_id not in tree_progress.completed_lessons:
                tree_progress.completed_lessons.append(event.lesson_id)
            tree_progress.total_xp += event.xp_earned
            tree_progress.last_accessed_at = event.completed_at
            tree_progress.completion_percentage = tree.completion_percentage(tree_progress.completed_lessons)
            progress.trees[tree.id] = tree_progress

            if event.passed and event.lesson_id not in progress.completed_lessons:
                progress.completed_lessons.append(event.lesson_id)
            for achievement in event.achievements:
                if achievement not in progress.achievements:
                    progress.achievements.append(achievement)
            progress.total_xp += event.xp_earned

            self._apply_activity(progress, event.completed_at)
            goal_reached = self._apply_daily_xp(progress, event.xp_earned)
            awarded = self._award_milestones(progress)

            await self._save(progress)

        logger.info(
            f"Recorded {event.lesson_id} for {event.learner_id}: +{event.xp_earned} XP "
            f"(total {progress.total_xp})"
        )
        self.sink.emit(
            events.PROGRESS_CHANGED,
            {
                "learner_id": progress.learner_id,
                "lesson_id": event.lesson_id,
                "total_xp": progress.total_xp,
                "completion_percentage": tree_progress.completion_percentage,
            },
        )
        self._emit_milestones(progress.learner_id, awarded)
        if goal_reached:
            self.sink.emit(
                events.DAILY_GOAL_REACHED,
                {"learner_id": progress.learner_id, "daily_goal": progress.daily_goal},
            )
        if progress.level > level_before:
            self.sink.emit(
                events.LEVEL_UP,
                {"learner_id": progress.learner_id, "level": progress.level},
            )
        return progress

    async def record_exit(self, learner_id: str, lesson_id: str) -> LearningProgress:
        """Touch the tree's last-accessed time when a lesson is suspended."""
        tree = self.graph.tree_of(lesson_id)
        async with self._lock(learner_id):
            progress = await self.load(learner_id)
            tree_progress = progress.trees.get(tree.id) or SkillTreeProgress(skill_tree_id=tree.id)
            tree_progress.last_accessed_at = self.clock()
            progress.trees[tree.id] = tree_progress
            await self._save(progress)
        return progress

    # =========================================================================
    # Streaks and daily goals
    # =========================================================================

    @staticmethod
    def _apply_activity(progress: LearningProgress, now: datetime) -> None:
        """
        Calendar-day streak: consecutive days extend it, a gap resets it to 1.

        Days are dates on the clock, not rolling 24h windows, so activity at
        23:00 and again at 01:00 the next morning extends the streak.
        """
        today = now.date()
        last = progress.last_activity_date
        if last != today:
            if last is not None and last == today - timedelta(days=1):
                progress.current_streak += 1
            else:
                progress.current_streak = 1
        progress.longest_streak = max(progress.longest_streak, progress.current_streak)
        progress.last_activity_date = today
        progress.last_activity_at = now

    @staticmethod
    def _apply_daily_xp(progress: LearningProgress, xp: int) -> bool:
        """Accumulate daily XP; True the first time the goal is met."""
        progress.daily_progress += xp
        if not progress.daily_goal_reached and progress.daily_progress >= progress.daily_goal:
            progress.daily_goal_reached = True
            return True
        return False

    @staticmethod
    def _award_milestones(progress: LearningProgress) -> list[Milestone]:
        """Grant newly reached milestones and add their XP reward."""
        awarded = reached_milestones(progress)
        for milestone in awarded:
            progress.achievements.append(milestone.id)
            progress.total_xp += milestone.xp_reward
        return awarded

    def _emit_milestones(self, learner_id: str, awarded: list[Milestone]) -> None:
        for milestone in awarded:
            logger.info(f"{learner_id} unlocked {milestone.id} (+{milestone.xp_reward} XP)")
            self.sink.emit(
                events.ACHIEVEMENT_UNLOCKED,
                {
                    "learner_id": learner_id,
                    "achievement": milestone.id,
                    "title": milestone.title,
                    "xp_reward": milestone.xp_reward,
                },
            )

    async def record_activity(self, now: datetime | None = None, learner_id: str = "default") -> StreakStatus:
        """Count a day of activity toward the streak (at most once per day)."""
        now = now or self.clock()
        async with self._lock(learner_id):
            progress = await self.load(learner_id)
            level_before = progress.level
            self._apply_activity(progress, now)
            awarded = self._award_milestones(progress)
            await self._save(progress)
        self._emit_milestones(learner_id, awarded)
        if progress.level > level_before:
            self.sink.emit(events.LEVEL_UP, {"learner_id": learner_id, "level": progress.level})
        return StreakStatus(progress.current_streak, progress.longest_streak, active=True)

    async def set_daily_goal(self, xp: int, learner_id: str = "default") -> int:
        """Set the daily XP goal, clamped to the configured range. Returns the goal set."""
        goal = max(self.settings.daily_goal_min, min(self.settings.daily_goal_max, int(xp)))
        async with self._lock(learner_id):
            progress = await self.load(learner_id)
            progress.daily_goal = goal
            await self._save(progress)
        return goal

    async def reset_daily_progress(self, learner_id: str = "default") -> None:
        """Start a new day's goal tracking. Invoked by an external daily scheduler."""
        async with self._lock(learner_id):
            progress = await self.load(learner_id)
            progress.daily_progress = 0
            progress.daily_goal_reached = False
            await self._save(progress)

    async def streak_status(self, now: datetime | None = None, learner_id: str = "default") -> StreakStatus:
        """Current streak counts only while the last activity was within 24 hours."""
        now = now or self.clock()
        progress = await self.load(learner_id)
        active = progress.last_activity_at is not None and now - progress.last_activity_at <= timedelta(hours=24)
        return StreakStatus(
            current=progress.current_streak if active else 0,
            longest=progress.longest_streak,
            active=active,
        )

    # =========================================================================
    # Queries
    # =========================================================================

    async def completed_lessons(self, learner_id: str = "default") -> set[str]:
        progress = await self.load(learner_id)
        return set(progress.completed_lessons)

    async def learner_facts(self, learner_id: str = "default") -> LearnerFacts:
        progress = await self.load(learner_id)
        return self._facts(progress)

    @staticmethod
    def _facts(progress: LearningProgress) -> LearnerFacts:
        return LearnerFacts(
            level=progress.level,
            xp=progress.total_xp,
            achievements=frozenset(progress.achievements),
        )

    async def available_lessons(self, tree_id: str | None = None, learner_id: str = "default") -> list[Lesson]:
        progress = await self.load(learner_id)
        return self.graph.available_lessons(tree_id, progress.completed_lessons, self._facts(progress))

    async def recommend(self, count: int = 3, learner_id: str = "default") -> list[Lesson]:
        progress = await self.load(learner_id)
        return self.graph.recommend(progress.completed_lessons, self._facts(progress), count)

    async def recommend_next(self, learner_id: str = "default") -> Lesson | None:
        progress = await self.load(learner_id)
        return self.graph.recommend_next(progress.completed_lessons, self._facts(progress))

    async def tree_progress(self, tree_id: str, learner_id: str = "default") -> SkillTreeProgress:
        tree = self.graph.get_tree(tree_id)
        progress = await self.load(learner_id)
        return progress.trees.get(tree.id) or SkillTreeProgress(skill_tree_id=tree.id)

    async def summary(self, learner_id: str = "default") -> ProgressSummary:
        progress = await self.load(learner_id)
        completed = set(progress.completed_lessons)
        facts = self._facts(progress)

        catalog_ids = {lesson.id for lesson in self.graph.lessons()}
        done_in_catalog = len(completed & catalog_ids)
        total = len(catalog_ids)

        in_progress = []
        for tree in self.graph.trees():
            share = tree.completion_percentage(completed)
            if 0.0 < share < 1.0:
                in_progress.append(tree.id)

        next_lesson = self.graph.recommend_next(completed, facts)
        status = await self.streak_status(learner_id=learner_id)
        return ProgressSummary(
            learner_id=learner_id,
            level=progress.level,
            total_xp=progress.total_xp,
            total_lessons=total,
            completed_lessons=done_in_catalog,
            completion_percentage=done_in_catalog / total if total else 0.0,
            current_streak=status.current,
            longest_streak=progress.longest_streak,
            daily_goal=progress.daily_goal,
            daily_progress=progress.daily_progress,
            trees_in_progress=in_progress,
            recommended_next=next_lesson.id if next_lesson else None,
            achievements=list(progress.achievements),
        )


