"""
Assessment scoring for completed practice.

Automatic criteria are scored by replaying the recorded practice outcomes,
never by evaluating fresh input, so the same session always scores the same.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Any

from linework.config import Settings
from linework.curriculum.models import AssessmentCriterion, BonusObjective, Lesson
from linework.lesson.state import LessonState

NEEDS_IMPROVEMENT_BELOW = 0.7
EXCELLENT_FROM = 0.9
PERFECT_SCORE_ACHIEVEMENT = "perfect_score"


@dataclass
class CriterionScore:
    criterion_id: str
    description: str
    evaluation_type: str
    weight: float
    score: float


@dataclass
class AssessmentResult:
    score: float
    passed: bool
    criteria: list[CriterionScore] = field(default_factory=list)
    objective_results: dict[str, bool] = field(default_factory=dict)
    feedback: list[str] = field(default_factory=list)


def replay_score(state: LessonState, indices: list[int] | None, total: int) -> float:
    """Mean recorded accuracy of the given instructions (all when None)."""
    if indices is None:
        indices = list(range(total))
    if not indices:
        return 1.0
    scores = []
    for index in indices:
        outcome = state.outcomes.get(index)
        if outcome is None or not outcome.passed:
            scores.append(0.0)
        else:
            scores.append(1.0 if outcome.auto else outcome.accuracy)
    return sum(scores) / len(scores)


def _clamped(value: Any) -> float:
    return max(0.0, min(1.0, float(value)))


def score_criterion(
    criterion: AssessmentCriterion,
    lesson: Lesson,
    state: LessonState,
    assessment_data: dict[str, Any],
    settings: Settings,
) -> float:
    """Score one criterion in [0, 1]."""
    if criterion.evaluation_type == "automatic":
        return replay_score(state, criterion.instructions, len(lesson.practice.instructions))
    if criterion.evaluation_type == "self":
        given = assessment_data.get("self_assessment", {}).get(criterion.id)
        return _clamped(given) if given is not None else settings.self_assessment_default
    given = assessment_data.get("peer_assessment", {}).get(criterion.id)
    return _clamped(given) if given is not None else settings.peer_assessment_default


def assess(
    lesson: Lesson,
    state: LessonState,
    assessment_data: dict[str, Any] | None,
    settings: Settings,
) -> AssessmentResult:
    """
    Weighted assessment: finalScore = sum(score x weight) / sum(weight).

    A lesson with no criteria is scored as one automatic criterion over all
    practice instructions.
    """
    assessment_data = assessment_data or {}
    criteria = lesson.assessment.criteria or [
        AssessmentCriterion(id="practice", description="Practice accuracy", weight=1.0)
    ]

    scored = []
    for criterion in criteria:
        score = score_criterion(criterion, lesson, state, assessment_data, settings)
        scored.append(
            CriterionScore(
                criterion_id=criterion.id,
                description=criterion.description or criterion.id,
                evaluation_type=criterion.evaluation_type,
                weight=criterion.weight,
                score=score,
            )
        )

    total_weight = sum(item.weight for item in scored)
    final = sum(item.score * item.weight for item in scored) / total_weight

    feedback = []
    for item in scored:
        if item.score < NEEDS_IMPROVEMENT_BELOW:
            feedback.append(f"Need improvement: {item.description}")
        elif item.score >= EXCELLENT_FROM:
            feedback.append(f"Excellent: {item.description}")

    return AssessmentResult(
        score=final,
        passed=final >= lesson.assessment.passing_score,
        criteria=scored,
        objective_results={
            objective.id: final >= settings.objective_pass_score for objective in lesson.objectives
        },
        feedback=feedback,
    )


def bonus_achieved(
    objective: BonusObjective,
    score: float,
    duration_seconds: float,
    state: LessonState,
) -> bool:
    condition = objective.condition
    if condition.kind == "max_duration_seconds":
        return duration_seconds <= condition.value
    if condition.kind == "min_score":
        return score >= condition.value
    return state.failed_attempts() == 0


def base_xp(reward_xp: int, score: float, settings: Settings) -> tuple[int, bool]:
    """Reward XP with the multiplicative perfect-score bonus; returns (xp, perfect)."""
    if score >= settings.perfect_score_threshold:
        return math.floor(reward_xp * settings.perfect_score_multiplier), True
    return reward_xp, False


def calculate_xp(
    lesson: Lesson,
    score: float,
    duration_seconds: float,
    state: LessonState,
    settings: Settings,
) -> tuple[int, list[str], list[str]]:
    """
    Total XP for a completed lesson.

    Returns:
        (xp earned, achievement ids, feedback lines for achieved bonuses)
    """
    xp, perfect = base_xp(lesson.reward_xp, score, settings)
    achievements = [PERFECT_SCORE_ACHIEVEMENT] if perfect else []
    feedback = []
    for objective in lesson.assessment.bonus_objectives:
        if bonus_achieved(objective, score, duration_seconds, state):
            xp += objective.xp_bonus
            achievements.append(objective.id)
            feedback.append(f"Bonus achieved: {objective.description or objective.id}")
    return xp, achievements, feedback
