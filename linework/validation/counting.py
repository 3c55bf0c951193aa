"""
Counting and completion evaluators.
"""

from __future__ import annotations

import numpy as np

from linework.curriculum.models import ValidationRule
from linework.errors import InvalidRuleParameters

from . import RuleType, register
from .base import DrawingData, RuleResult, clamp, counted, param_float, param_int


@register(RuleType.STROKE_COUNT)
class StrokeCountEvaluator:
    """Pass iff the number of strokes lies within [min, max]."""

    def evaluate(self, rule: ValidationRule, drawing: DrawingData) -> RuleResult:
        minimum = param_int(rule, "min", "min_strokes", "minStrokes", default=0)
        maximum = rule.params.get("max", rule.params.get("max_strokes", rule.params.get("maxStrokes")))
        return counted(len(drawing.strokes), minimum, int(maximum) if maximum is not None else None)

    def hint(self, rule: ValidationRule, attempt: int) -> str | None:
        minimum = param_int(rule, "min", "min_strokes", "minStrokes", default=0)
        maximum = rule.params.get("max", rule.params.get("max_strokes"))
        if maximum is not None:
            return f"Use between {minimum} and {maximum} strokes for this step."
        return f"Use at least {minimum} strokes for this step."


@register(RuleType.FORM_CONSTRUCTION)
class FormConstructionEvaluator:
    """Enough construction strokes to describe a 3D form."""

    def evaluate(self, rule: ValidationRule, drawing: DrawingData) -> RuleResult:
        minimum = param_int(rule, "min_strokes", "minStrokes", default=3)
        return counted(len(drawing.strokes), minimum)

    def hint(self, rule: ValidationRule, attempt: int) -> str | None:
        if attempt == 1:
            return "Draw the form's front face first, then the receding edges."
        return "Let construction lines run through the form: hidden edges help."


@register(RuleType.POINT_PLACEMENT)
class PointPlacementEvaluator:
    """
    Points placed on target positions.

    With `targets`, accuracy is the share of targets that have a placed point
    within `tolerance` pixels. Without targets, only the count is checked.
    """

    def evaluate(self, rule: ValidationRule, drawing: DrawingData) -> RuleResult:
        targets = rule.params.get("targets")
        placed = np.array([[p.x, p.y] for p in drawing.points], dtype=float).reshape(-1, 2)

        if not targets:
            minimum = param_int(rule, "min_points", "minPoints", default=1)
            return counted(len(placed), minimum)

        try:
            goal = np.array(targets, dtype=float).reshape(-1, 2)
        except ValueError as e:
            raise InvalidRuleParameters(f"point_placement targets must be [x, y] pairs: {e}") from e
        tolerance = param_float(rule, "tolerance", default=20.0)

        if len(placed) == 0:
            hits = 0
        else:
            distances = np.linalg.norm(goal[:, None, :] - placed[None, :, :], axis=2)
            hits = int((distances.min(axis=1) <= tolerance).sum())
        accuracy = clamp(hits / len(goal))
        return RuleResult(
            passed=accuracy >= rule.threshold,
            accuracy=accuracy,
            details={"hits": hits, "targets": len(goal), "tolerance": tolerance},
        )

    def hint(self, rule: ValidationRule, attempt: int) -> str | None:
        if attempt == 1:
            return "Place a point on each marker before connecting anything."
        return None


@register(RuleType.COMPLETION)
class CompletionEvaluator:
    """The canvas-reported completion rate reaches the threshold (or `min_progress`)."""

    def evaluate(self, rule: ValidationRule, drawing: DrawingData) -> RuleResult:
        required = param_float(rule, "min_progress", "minProgress", default=rule.threshold)
        rate = clamp(drawing.completion_rate)
        return RuleResult(
            passed=rate >= required,
            accuracy=rate,
            details={"completion_rate": rate, "required": required},
        )

    def hint(self, rule: ValidationRule, attempt: int) -> str | None:
        return "Keep going: cover the whole reference before submitting."
