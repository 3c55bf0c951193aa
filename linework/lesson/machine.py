"""
Lesson State Machine.

Drives one lesson session through its phases:

    NotStarted -> Theory -> ReadyForPractice -> Practice
               -> ReadyForAssessment -> Completed

Theory and Practice may be paused; resume() returns to the paused phase.
Every rejected transition raises a StateError and leaves the session as it
was. Only start() (asset preload), complete() and exit() (persistence) and
restore() cross an I/O boundary; they are async and serialised per session.
"""

from __future__ import annotations

import asyncio
import copy
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Literal, Protocol

from loguru import logger

from linework import events
from linework.assets import AssetLoader, NullAssetLoader
from linework.config import Settings, get_settings
from linework.curriculum.graph import CurriculumGraph, LearnerFacts
from linework.curriculum.models import Lesson, PracticeInstruction
from linework.errors import (
    InvalidInstructionIndex,
    InvalidPhase,
    NoActiveSession,
    NotFound,
    PersistenceError,
    SessionActive,
)
from linework.events import EventSink, LoggingEventSink
from linework.lesson.assessment import assess, calculate_xp
from linework.lesson.state import PAUSABLE, InstructionOutcome, LessonPhase, LessonState, session_key
from linework.progress.models import CompletionEvent
from linework.storage import MemoryStorage, Storage
from linework.validation import DrawingData, evaluate, fallback_hint

TIMEOUT_GUIDANCE = "Take your time! Try following the guide overlay."
CORRECTION_GUIDANCE = "Almost there! Adjust your strokes to match the guide."
ENCOURAGEMENT_GUIDANCE = "Great job! Keep going!"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class CompletionRecorder(Protocol):
    """Receives session events; in practice the ProgressLedger."""

    async def record_completion(self, event: CompletionEvent) -> Any:
        ...

    async def record_exit(self, learner_id: str, lesson_id: str) -> Any:
        ...


@dataclass
class StepResult:
    """Outcome of submit_step(). A failed step is a normal result, not an error."""

    instruction_index: int
    passed: bool
    accuracy: float
    attempts: int
    auto: bool = False
    hint: str | None = None
    details: dict[str, Any] = field(default_factory=dict)


@dataclass
class Guidance:
    """Live feedback while drawing a practice step."""

    kind: Literal["none", "hint", "correction", "encouragement"]
    message: str | None = None
    highlight_area: dict[str, float] | None = None


@dataclass
class CompletionResult:
    lesson_id: str
    passed: bool
    score: float
    xp_earned: int
    duration_seconds: float
    feedback: list[str] = field(default_factory=list)
    objective_results: dict[str, bool] = field(default_factory=dict)
    achievements: list[str] = field(default_factory=list)
    criteria_scores: dict[str, float] = field(default_factory=dict)
    next_lesson_id: str | None = None


class LessonStateMachine:
    """
    One learner's active lesson session.

    At most one session is live at a time: start() while a lesson is active
    raises SessionActive, so callers exit() (or complete()) first.
    """

    def __init__(
        self,
        graph: CurriculumGraph | None = None,
        *,
        storage: Storage | None = None,
        assets: AssetLoader | None = None,
        sink: EventSink | None = None,
        recorder: CompletionRecorder | None = None,
        settings: Settings | None = None,
        clock: Callable[[], datetime] = utcnow,
        learner_id: str | None = None,
    ):
        self.graph = graph
        self.storage = storage or MemoryStorage()
        self.assets = assets or NullAssetLoader()
        self.sink = sink or LoggingEventSink()
        self.recorder = recorder
        self.settings = settings or get_settings()
        self.clock = clock
        self.learner_id = learner_id or self.settings.learner_id

        self._lesson: Lesson | None = None
        self._state: LessonState | None = None
        self._pending: tuple[CompletionResult, CompletionEvent] | None = None
        self._lock = asyncio.Lock()

    # =========================================================================
    # Read-only views
    # =========================================================================

    @property
    def lesson(self) -> Lesson | None:
        return self._lesson

    @property
    def phase(self) -> LessonPhase:
        return self._state.phase if self._state else LessonPhase.NOT_STARTED

    @property
    def is_active(self) -> bool:
        return self._state is not None and self._state.phase != LessonPhase.COMPLETED

    def snapshot(self) -> LessonState | None:
        """Copy of the current session state; None without a session."""
        return copy.deepcopy(self._state)

    def elapsed_seconds(self) -> float:
        """Active time in the current session, excluding paused intervals."""
        if self._state is None:
            return 0.0
        return self._state.elapsed_seconds(self.clock())

    # =========================================================================
    # Session lifecycle
    # =========================================================================

    async def start(self, lesson: Lesson | str) -> LessonState:
        """
        Begin a lesson in the Theory phase.

        Counters are reset and assets preloaded; a preload failure is logged
        and the lesson continues without the asset.

        Raises:
            SessionActive: another lesson session is still live
            NotFound: lesson id is not in the graph
        """
        async with self._lock:
            lesson = self._resolve(lesson)
            if self.is_active:
                raise SessionActive(
                    "start", self.phase.value, f"lesson {self._state.lesson_id} is still active; exit it first"
                )

            now = self.clock()
            state = LessonState(
                lesson_id=lesson.id,
                learner_id=self.learner_id,
                phase=LessonPhase.THEORY,
                started_at=now.isoformat(),
                running_since=now.isoformat(),
            )
            if not lesson.theory.segments:
                state.theory_progress = 1.0
                state.phase = LessonPhase.READY_FOR_PRACTICE

            self._lesson = lesson
            self._state = state
            self._pending = None
            logger.info(f"Started lesson {lesson.id} for learner {self.learner_id}")
            self.sink.emit(events.LESSON_STARTED, {"lesson_id": lesson.id, "learner_id": self.learner_id})

            await self._preload(lesson)
            return self.snapshot()

    async def restore(self, lesson: Lesson | str) -> LessonState:
        """
        Resume a session suspended by exit().

        A session suspended while paused comes back paused. The suspended
        record is consumed.

        Raises:
            SessionActive: another lesson session is still live
            NoActiveSession: nothing suspended for this lesson, or it expired
            PersistenceError: the stored record is unreadable
        """
        async with self._lock:
            lesson = self._resolve(lesson)
            if self.is_active:
                raise SessionActive(
                    "restore", self.phase.value, f"lesson {self._state.lesson_id} is still active; exit it first"
                )

            key = session_key(self.learner_id, lesson.id)
            data = await self.storage.get(key)
            if data is None:
                raise NoActiveSession("restore", self.phase.value, f"no suspended session for lesson {lesson.id}")
            try:
                state = LessonState.from_dict(data)
            except (KeyError, TypeError, ValueError) as e:
                raise PersistenceError(key, f"corrupt suspended session: {e}") from e
            await self.storage.delete(key)

            now = self.clock()
            if state.is_expired(now, self.settings.suspended_session_expiry_hours):
                logger.info(f"Discarded expired suspended session for lesson {lesson.id}")
                raise NoActiveSession("restore", self.phase.value, f"suspended session for lesson {lesson.id} expired")

            state.saved_at = None
            if state.phase != LessonPhase.PAUSED:
                state.start_clock(now)

            self._lesson = lesson
            self._state = state
            self._pending = None
            logger.info(f"Restored lesson {lesson.id} in phase {state.phase.value}")
            self.sink.emit(
                events.LESSON_STARTED,
                {"lesson_id": lesson.id, "learner_id": self.learner_id, "restored": True},
            )

            await self._preload(lesson)
            return self.snapshot()

    async def exit(self) -> LessonState:
        """
        Suspend the session for later restore() and release it.

        Attempt counts and outcomes are kept; nothing is rolled back.

        Raises:
            NoActiveSession: no session to exit
            InvalidPhase: the lesson is already completed
            PersistenceError: the session could not be saved (session kept)
        """
        async with self._lock:
            lesson, state = self._session("exit")
            if state.phase == LessonPhase.COMPLETED:
                raise InvalidPhase("exit", state.phase.value, "the lesson is already completed")

            now = self.clock()
            suspended = copy.deepcopy(state)
            suspended.stop_clock(now)
            suspended.saved_at = now.isoformat()
            await self.storage.set(session_key(self.learner_id, lesson.id), suspended.to_dict())
            if self.recorder is not None:
                await self.recorder.record_exit(self.learner_id, lesson.id)

            self._lesson = None
            self._state = None
            self._pending = None
            logger.info(f"Suspended lesson {lesson.id} in phase {suspended.phase.value}")
            self.sink.emit(
                events.LESSON_EXITED,
                {
                    "lesson_id": lesson.id,
                    "phase": suspended.phase.value,
                    "elapsed_seconds": suspended.active_seconds,
                },
            )
            return suspended

    # =========================================================================
    # Theory
    # =========================================================================

    def advance_theory(self, segment_index: int) -> LessonState:
        """Mark theory segments up to segment_index as seen."""
        lesson, state = self._require("advance theory")
        self._expect(state, "advance theory", LessonPhase.THEORY)

        total = len(lesson.theory.segments)
        if not 0 <= segment_index < total:
            raise InvalidInstructionIndex(
                "advance theory", state.phase.value, f"segment {segment_index} is outside 0..{total - 1}"
            )

        state.theory_progress = max(state.theory_progress, (segment_index + 1) / total)
        if segment_index == total - 1:
            state.phase = LessonPhase.READY_FOR_PRACTICE
            logger.debug(f"Lesson {lesson.id}: theory done")
        return self.snapshot()

    # =========================================================================
    # Practice
    # =========================================================================

    def begin_practice(self) -> LessonState:
        lesson, state = self._require("begin practice")
        self._expect(state, "begin practice", LessonPhase.READY_FOR_PRACTICE)

        state.phase = LessonPhase.PRACTICE
        state.current_instruction = 0
        state.practice_progress = 0.0
        state.instruction_started_seconds = state.elapsed_seconds(self.clock())
        if not lesson.practice.instructions:
            state.practice_progress = 1.0
            state.phase = LessonPhase.READY_FOR_ASSESSMENT
        return self.snapshot()

    def submit_step(
        self,
        instruction_index: int,
        drawing: DrawingData | dict[str, Any] | None = None,
    ) -> StepResult:
        """
        Validate the drawing for the current instruction.

        Steps without a validation rule pass automatically. A pass advances to
        the next instruction; a fail increments the attempt counter and
        surfaces a hint, staying on the same instruction.

        Raises:
            InvalidPhase: not in Practice
            InvalidInstructionIndex: instruction_index is not the current one
            UnknownRuleType: the step's rule type has no evaluator
            InvalidDrawingData: the drawing has malformed or non-finite points
        """
        lesson, state = self._require("submit step")
        self._expect(state, "submit step", LessonPhase.PRACTICE)
        if instruction_index != state.current_instruction:
            raise InvalidInstructionIndex(
                "submit step",
                state.phase.value,
                f"expected instruction {state.current_instruction}, got {instruction_index}",
            )

        instruction = lesson.practice.instructions[instruction_index]
        if instruction.validation is None:
            state.outcomes[instruction_index] = InstructionOutcome(passed=True, accuracy=1.0, auto=True)
            self._advance(lesson, state, instruction_index)
            return StepResult(
                instruction_index=instruction_index,
                passed=True,
                accuracy=1.0,
                attempts=state.attempts.get(instruction_index, 0),
                auto=True,
            )

        result = evaluate(instruction.validation, drawing)

        if result.passed:
            state.outcomes[instruction_index] = InstructionOutcome(passed=True, accuracy=result.accuracy)
            self._advance(lesson, state, instruction_index)
            return StepResult(
                instruction_index=instruction_index,
                passed=True,
                accuracy=result.accuracy,
                attempts=state.attempts.get(instruction_index, 0),
                details=result.details,
            )

        attempts = state.attempts.get(instruction_index, 0) + 1
        state.attempts[instruction_index] = attempts
        state.outcomes[instruction_index] = InstructionOutcome(passed=False, accuracy=result.accuracy)
        logger.debug(
            f"Lesson {lesson.id}: instruction {instruction_index} failed "
            f"(accuracy {result.accuracy:.2f}, attempt {attempts})"
        )
        hint = self._failure_hint(lesson, state, instruction, instruction_index, attempts)
        return StepResult(
            instruction_index=instruction_index,
            passed=False,
            accuracy=result.accuracy,
            attempts=attempts,
            hint=hint,
            details=result.details,
        )

    def check_progress(self, drawing: DrawingData | dict[str, Any] | None = None) -> Guidance:
        """Live guidance for the current practice step. Does not touch session state."""
        if self._state is None or self._state.phase != LessonPhase.PRACTICE:
            return Guidance(kind="none")
        lesson, state = self._lesson, self._state
        index = state.current_instruction
        if index >= len(lesson.practice.instructions):
            return Guidance(kind="none")
        instruction = lesson.practice.instructions[index]

        if self._step_overdue(state, instruction):
            hint = lesson.practice.hint_for(f"instruction_{index}_timeout")
            return Guidance(kind="hint", message=hint.content if hint else TIMEOUT_GUIDANCE)

        if instruction.validation is not None and not evaluate(instruction.validation, drawing).passed:
            return Guidance(
                kind="correction",
                message=CORRECTION_GUIDANCE,
                highlight_area=instruction.highlight_area,
            )
        return Guidance(kind="encouragement", message=ENCOURAGEMENT_GUIDANCE)

    # =========================================================================
    # Pause / Resume
    # =========================================================================

    def pause(self) -> LessonState:
        """Freeze the active-time clock. Valid from Theory or Practice."""
        _, state = self._require("pause")
        if state.phase not in PAUSABLE:
            raise InvalidPhase("pause", state.phase.value)
        state.paused_from = state.phase
        state.phase = LessonPhase.PAUSED
        state.stop_clock(self.clock())
        return self.snapshot()

    def resume(self) -> LessonState:
        """Return to the paused phase; the clock continues from where it stopped."""
        _, state = self._require("resume")
        self._expect(state, "resume", LessonPhase.PAUSED)
        state.phase = state.paused_from or LessonPhase.THEORY
        state.paused_from = None
        state.start_clock(self.clock())
        return self.snapshot()

    # =========================================================================
    # Assessment
    # =========================================================================

    async def complete(
        self,
        assessment_data: dict[str, Any] | None = None,
        completed: Iterable[str] = (),
        facts: LearnerFacts | None = None,
    ) -> CompletionResult:
        """
        Score the assessment, record the completion and finish the lesson.

        `completed` and `facts` describe the learner before this lesson and
        are only used to pick next_lesson_id.

        If recording fails the session stays in ReadyForAssessment with the
        computed result kept; calling complete() again retries the save
        without re-scoring.

        Raises:
            InvalidPhase: not in ReadyForAssessment
            PersistenceError: the completion could not be recorded
        """
        async with self._lock:
            lesson, state = self._session("complete")
            self._expect(state, "complete", LessonPhase.READY_FOR_ASSESSMENT)

            if self._pending is None:
                self._pending = self._score(lesson, state, assessment_data, completed, facts)
            result, event = self._pending

            if self.recorder is not None:
                try:
                    await self.recorder.record_completion(event)
                except PersistenceError as e:
                    logger.error(f"Could not record completion of lesson {lesson.id}: {e}")
                    raise

            state.stop_clock(event.completed_at)
            state.phase = LessonPhase.COMPLETED
            self._pending = None
            logger.info(
                f"Completed lesson {lesson.id}: score {result.score:.2f}, "
                f"{result.xp_earned} XP, passed={result.passed}"
            )
            self.sink.emit(
                events.LESSON_COMPLETED,
                {
                    "lesson_id": lesson.id,
                    "score": result.score,
                    "xp_earned": result.xp_earned,
                    "duration": result.duration_seconds,
                    "achievements": list(result.achievements),
                },
            )
            return result

    def _score(
        self,
        lesson: Lesson,
        state: LessonState,
        assessment_data: dict[str, Any] | None,
        completed: Iterable[str],
        facts: LearnerFacts | None,
    ) -> tuple[CompletionResult, CompletionEvent]:
        now = self.clock()
        duration = state.elapsed_seconds(now)
        assessment = assess(lesson, state, assessment_data, self.settings)
        xp, achievements, bonus_feedback = calculate_xp(lesson, assessment.score, duration, state, self.settings)

        next_lesson_id = None
        if self.graph is not None:
            done = set(completed)
            if assessment.passed:
                done.add(lesson.id)
            next_lesson = self.graph.recommend_next(done, facts)
            next_lesson_id = next_lesson.id if next_lesson else None

        result = CompletionResult(
            lesson_id=lesson.id,
            passed=assessment.passed,
            score=assessment.score,
            xp_earned=xp,
            duration_seconds=duration,
            feedback=assessment.feedback + bonus_feedback,
            objective_results=assessment.objective_results,
            achievements=achievements,
            criteria_scores={item.criterion_id: item.score for item in assessment.criteria},
            next_lesson_id=next_lesson_id,
        )
        event = CompletionEvent(
            learner_id=self.learner_id,
            lesson_id=lesson.id,
            skill_tree_id=lesson.skill_tree_id,
            passed=assessment.passed,
            score=assessment.score,
            xp_earned=xp,
            duration_seconds=duration,
            achievements=achievements,
            completed_at=now,
        )
        return result, event

    # =========================================================================
    # Helpers
    # =========================================================================

    def _resolve(self, lesson: Lesson | str) -> Lesson:
        if isinstance(lesson, Lesson):
            return lesson
        if self.graph is None:
            raise NotFound("lesson", lesson)
        return self.graph.get_lesson(lesson)

    def _session(self, attempted: str) -> tuple[Lesson, LessonState]:
        if self._state is None or self._lesson is None:
            raise NoActiveSession(attempted, LessonPhase.NOT_STARTED.value)
        return self._lesson, self._state

    def _require(self, attempted: str) -> tuple[Lesson, LessonState]:
        """Session for a synchronous transition; refused while an async one is mid-flight."""
        lesson, state = self._session(attempted)
        if self._lock.locked():
            raise InvalidPhase(attempted, state.phase.value, "another transition is in progress")
        return lesson, state

    @staticmethod
    def _expect(state: LessonState, attempted: str, phase: LessonPhase) -> None:
        if state.phase != phase:
            raise InvalidPhase(attempted, state.phase.value)

    def _advance(self, lesson: Lesson, state: LessonState, index: int) -> None:
        total = len(lesson.practice.instructions)
        state.current_instruction = index + 1
        state.practice_progress = (index + 1) / total
        state.instruction_started_seconds = state.elapsed_seconds(self.clock())
        if index >= total - 1:
            state.phase = LessonPhase.READY_FOR_ASSESSMENT
            logger.debug(f"Lesson {lesson.id}: practice done")

    def _expected_seconds(self, instruction: PracticeInstruction) -> float:
        if instruction.validation is not None:
            params = instruction.validation.params
            expected = params.get("expected_time", params.get("expectedTime"))
            if expected is not None:
                return float(expected)
        return self.settings.default_expected_step_seconds

    def _step_overdue(self, state: LessonState, instruction: PracticeInstruction) -> bool:
        on_step = state.elapsed_seconds(self.clock()) - state.instruction_started_seconds
        return on_step > self._expected_seconds(instruction) * self.settings.hint_time_factor

    def _failure_hint(
        self,
        lesson: Lesson,
        state: LessonState,
        instruction: PracticeInstruction,
        index: int,
        attempt: int,
    ) -> str | None:
        trigger = f"instruction_{index}_fail"
        hint = lesson.practice.hint_for(trigger)
        if hint is None and self._step_overdue(state, instruction):
            trigger = f"instruction_{index}_timeout"
            hint = lesson.practice.hint_for(trigger)

        if hint is not None:
            message = hint.content
        else:
            message = fallback_hint(instruction.validation, attempt)
            trigger = "fallback"
        if message is None:
            return None

        self.sink.emit(
            events.HINT,
            {
                "lesson_id": lesson.id,
                "instruction_index": index,
                "trigger": trigger,
                "hint_id": hint.id if hint else None,
                "message": message,
            },
        )
        return message

    async def _preload(self, lesson: Lesson) -> None:
        for url in lesson.asset_urls():
            try:
                await self.assets.preload(url)
            except Exception as e:
                logger.warning(f"Asset preload failed for {url}: {e}")
