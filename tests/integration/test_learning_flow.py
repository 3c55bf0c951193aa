"""
Integration tests: bundled catalog, lesson sessions and the progress ledger
wired together the way an application would.
"""

import pytest

from linework import events
from linework.curriculum import load_catalog
from linework.lesson import LessonPhase, LessonStateMachine
from linework.progress import ProgressLedger
from linework.storage import JsonFileStorage

LEARNER = "learner-1"
FIRST = "lesson-lines-shapes"


@pytest.fixture
def catalog():
    return load_catalog()


@pytest.fixture
def app(catalog, tmp_path, sink, settings, clock):
    """Machine and ledger sharing one JSON store, as the application runs them."""
    store = JsonFileStorage(tmp_path / "store")
    ledger = ProgressLedger(catalog, store, sink=sink, settings=settings, clock=clock)
    machine = LessonStateMachine(
        catalog, storage=store, sink=sink, recorder=ledger, settings=settings, clock=clock
    )
    return machine, ledger, store


async def study_first_lesson(machine, strokes):
    await machine.start(FIRST)
    for segment in range(len(machine.lesson.theory.segments)):
        machine.advance_theory(segment)
    machine.begin_practice()
    machine.submit_step(0, strokes.parallel_lines(5))
    machine.submit_step(1, strokes.parallel_lines(6))
    circles = [strokes.circle(100 + 150 * i, 100, 50) for i in range(3)]
    return machine.submit_step(2, {"strokes": circles})


class TestLearningFlow:
    """A learner works through the first lesson of the bundled catalog."""

    @pytest.mark.asyncio
    async def test_first_lesson_end_to_end(self, app, strokes, sink, clock):
        machine, ledger, _ = app
        last_step = await study_first_lesson(machine, strokes)
        assert last_step.passed is True
        assert machine.phase == LessonPhase.READY_FOR_ASSESSMENT
        clock.advance(240)

        completed = await ledger.completed_lessons(LEARNER)
        facts = await ledger.learner_facts(LEARNER)
        result = await machine.complete(completed=completed, facts=facts)

        # 50 XP x 1.5 for a perfect score, plus 15 for passing every step first time
        assert result.passed is True
        assert result.xp_earned == 90
        assert result.achievements == ["perfect_score", "first-try"]
        assert result.next_lesson_id == "lesson-shape-construction"

        # The first-lesson milestone adds 50 XP on top of the lesson reward
        progress = await ledger.load(LEARNER)
        assert progress.completed_lessons == [FIRST]
        assert progress.total_xp == 140
        assert progress.achievements == ["perfect_score", "first-try", "first_lesson"]
        assert progress.trees["drawing-fundamentals"].completion_percentage == pytest.approx(0.2)
        assert (await ledger.recommend_next(LEARNER)).id == "lesson-shape-construction"

        # 140 XP is level 2, which opens the colour tree
        colour = await ledger.available_lessons("color-theory", LEARNER)
        assert [lesson.id for lesson in colour] == ["lesson-color-matching"]

        names = [name for name, _ in sink.events]
        assert names.index(events.LESSON_STARTED) < names.index(events.PROGRESS_CHANGED)
        assert names.index(events.PROGRESS_CHANGED) < names.index(events.LESSON_COMPLETED)
        assert sink.named(events.ACHIEVEMENT_UNLOCKED)[0]["achievement"] == "first_lesson"

    @pytest.mark.asyncio
    async def test_retry_loses_first_try_bonus(self, app, strokes):
        machine, ledger, _ = app
        await machine.start(FIRST)
        for segment in range(len(machine.lesson.theory.segments)):
            machine.advance_theory(segment)
        machine.begin_practice()

        failed = machine.submit_step(0, strokes.parallel_lines(3))
        assert failed.passed is False
        assert failed.hint.startswith("Your lines wobble")

        machine.submit_step(0, strokes.parallel_lines(5))
        machine.submit_step(1, strokes.parallel_lines(5))
        machine.submit_step(2, {"strokes": [strokes.circle(100 + 150 * i, 100, 50) for i in range(3)]})
        result = await machine.complete()

        assert result.xp_earned == 75
        assert "first-try" not in result.achievements

    @pytest.mark.asyncio
    async def test_suspend_and_resume_across_machines(self, app, catalog, settings, clock, strokes, tmp_path):
        machine, ledger, store = app
        await machine.start(FIRST)
        for segment in range(len(machine.lesson.theory.segments)):
            machine.advance_theory(segment)
        machine.begin_practice()
        machine.submit_step(0, strokes.parallel_lines(5))
        await machine.exit()

        tree = await ledger.tree_progress("drawing-fundamentals", LEARNER)
        assert tree.last_accessed_at == clock()

        # A fresh process picks the session up from the same store
        clock.advance(600)
        other = LessonStateMachine(catalog, storage=JsonFileStorage(tmp_path / "store"), settings=settings, clock=clock)
        state = await other.restore(FIRST)
        assert state.phase == LessonPhase.PRACTICE
        assert state.current_instruction == 1
        assert not (tmp_path / "store" / f"session_{LEARNER}_{FIRST}.json").exists()
