"""
Unit tests for assessment scoring and XP.
"""

import pytest

from linework.curriculum.models import Lesson
from linework.lesson.assessment import assess, base_xp, bonus_achieved, calculate_xp, replay_score
from linework.lesson.state import InstructionOutcome, LessonState


@pytest.fixture
def make(lesson_factory):
    def _make(**fields):
        return Lesson.model_validate(lesson_factory("A1", 1, **fields))

    return _make


def state_with(*outcomes, attempts=None):
    return LessonState(
        lesson_id="A1",
        outcomes={index: outcome for index, outcome in enumerate(outcomes)},
        attempts=attempts or {},
    )


TWO_STEPS = {
    "instructions": [
        {"step": 1, "text": "One", "validation": {"type": "line_count"}},
        {"step": 2, "text": "Two"},
    ]
}


class TestWeightedScore:
    """Test assess()."""

    def test_self_and_peer_weighted(self, make, settings):
        lesson = make(
            assessment={
                "passing_score": 0.7,
                "criteria": [
                    {"id": "a", "weight": 0.5, "evaluation_type": "self"},
                    {"id": "b", "weight": 0.5, "evaluation_type": "peer"},
                ],
            }
        )
        data = {"self_assessment": {"a": 0.9}, "peer_assessment": {"b": 0.6}}
        result = assess(lesson, state_with(), data, settings)
        assert result.score == pytest.approx(0.75)
        assert result.passed is True

    def test_missing_self_and_peer_use_defaults(self, make, settings):
        lesson = make(
            assessment={
                "criteria": [
                    {"id": "a", "weight": 1, "evaluation_type": "self"},
                    {"id": "b", "weight": 1, "evaluation_type": "peer"},
                ]
            }
        )
        result = assess(lesson, state_with(), None, settings)
        assert [item.score for item in result.criteria] == [0.8, 0.75]

    def test_given_scores_are_clamped(self, make, settings):
        lesson = make(assessment={"criteria": [{"id": "a", "weight": 1, "evaluation_type": "self"}]})
        result = assess(lesson, state_with(), {"self_assessment": {"a": 7}}, settings)
        assert result.score == 1.0

    def test_automatic_criteria_replay_outcomes(self, make, settings):
        lesson = make(
            practice=TWO_STEPS,
            assessment={
                "criteria": [
                    {"id": "first", "weight": 3, "instructions": [0]},
                    {"id": "all", "weight": 1},
                ]
            },
        )
        state = state_with(InstructionOutcome(True, 0.8), InstructionOutcome(True, 1.0, auto=True))
        result = assess(lesson, state, None, settings)
        assert {item.criterion_id: item.score for item in result.criteria} == pytest.approx(
            {"first": 0.8, "all": 0.9}
        )
        assert result.score == pytest.approx((0.8 * 3 + 0.9) / 4)

    def test_no_criteria_scores_practice(self, make, settings):
        lesson = make(practice=TWO_STEPS)
        state = state_with(InstructionOutcome(True, 0.6), InstructionOutcome(True, 1.0, auto=True))
        result = assess(lesson, state, None, settings)
        assert [item.criterion_id for item in result.criteria] == ["practice"]
        assert result.score == pytest.approx(0.8)

    def test_feedback_and_objectives(self, make, settings):
        lesson = make(
            objectives=[{"id": "o1", "description": "Anything"}],
            assessment={
                "passing_score": 0.5,
                "criteria": [
                    {"id": "weak", "description": "Weak area", "weight": 1, "evaluation_type": "self"},
                    {"id": "strong", "description": "Strong area", "weight": 1, "evaluation_type": "self"},
                    {"id": "middling", "description": "Middling", "weight": 1, "evaluation_type": "self"},
                ],
            },
        )
        data = {"self_assessment": {"weak": 0.3, "strong": 0.95, "middling": 0.8}}
        result = assess(lesson, state_with(), data, settings)
        assert result.feedback == ["Need improvement: Weak area", "Excellent: Strong area"]
        assert result.objective_results == {"o1": False}
        assert result.passed is True


class TestReplay:
    """Test replay_score()."""

    def test_failed_or_missing_steps_score_zero(self):
        state = state_with(InstructionOutcome(False, 0.6))
        assert replay_score(state, [0, 1], 2) == 0.0

    def test_empty_lesson_scores_full(self):
        assert replay_score(state_with(), None, 0) == 1.0


class TestXp:
    """Test base_xp(), bonuses and calculate_xp()."""

    def test_perfect_score_multiplies_reward(self, settings):
        assert base_xp(100, 0.97, settings) == (150, True)

    def test_below_perfect_keeps_reward(self, settings):
        assert base_xp(100, 0.94, settings) == (100, False)

    def test_perfect_multiplier_floors(self, settings):
        assert base_xp(75, 1.0, settings) == (112, True)

    def test_bonus_conditions(self, make):
        lesson = make(
            assessment={
                "bonus_objectives": [
                    {"id": "fast", "xp_bonus": 10, "condition": {"kind": "max_duration_seconds", "value": 300}},
                    {"id": "sharp", "xp_bonus": 20, "condition": {"kind": "min_score", "value": 0.9}},
                    {"id": "clean", "xp_bonus": 30, "condition": {"kind": "no_failed_attempts"}},
                ]
            }
        )
        fast, sharp, clean = lesson.assessment.bonus_objectives
        retried = state_with(attempts={0: 1})
        assert bonus_achieved(fast, 0.5, 200, retried) is True
        assert bonus_achieved(fast, 0.5, 301, retried) is False
        assert bonus_achieved(sharp, 0.9, 999, retried) is True
        assert bonus_achieved(clean, 1.0, 0, retried) is False
        assert bonus_achieved(clean, 1.0, 0, state_with()) is True

    def test_calculate_xp_adds_bonuses(self, make, settings):
        lesson = make(
            reward_xp=100,
            assessment={
                "bonus_objectives": [
                    {
                        "id": "fast",
                        "description": "Under five minutes",
                        "xp_bonus": 10,
                        "condition": {"kind": "max_duration_seconds", "value": 300},
                    },
                ]
            },
        )
        xp, achievements, feedback = calculate_xp(lesson, 0.97, 120, state_with(), settings)
        assert xp == 160
        assert achievements == ["perfect_score", "fast"]
        assert feedback == ["Bonus achieved: Under five minutes"]

    def test_calculate_xp_without_bonus(self, make, settings):
        xp, achievements, feedback = calculate_xp(make(reward_xp=100), 0.8, 600, state_with(), settings)
        assert (xp, achievements, feedback) == (100, [], [])
