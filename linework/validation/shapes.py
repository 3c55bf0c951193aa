"""
Shape evaluators.

- shape_accuracy: circularity for circles, corner/closure match for polygons
- shape_completion: strokes whose endpoints meet (size-relative tolerance)
- shape_construction: enough construction shapes, scored by target shape
"""

from __future__ import annotations

import numpy as np

from linework.curriculum.models import ValidationRule
from linework.errors import InvalidRuleParameters

from . import RuleType, register
from .base import DrawingData, RuleResult, best_of, clamp, param_float, param_int
from .geometry import (
    as_array,
    circularity,
    closure_score,
    corner_count,
    is_closed,
    polygon_score,
    straightness,
)

POLYGON_SIDES = {"triangle": 3, "square": 4, "rectangle": 4, "pentagon": 5, "hexagon": 6}
ROUND_SHAPES = {"circle", "oval", "ellipse"}


def shape_score(points: np.ndarray, target: str) -> float:
    """How well one stroke matches a named target shape, in [0, 1]."""
    target = target.lower()
    if target == "circle":
        return circularity(points)
    if target in ("oval", "ellipse"):
        smooth = 1.0 if corner_count(points) == 0 else 0.5
        return (closure_score(points) + smooth) / 2.0
    if target == "line":
        return straightness(points)
    if target in POLYGON_SIDES:
        return polygon_score(points, POLYGON_SIDES[target])
    raise InvalidRuleParameters(f"Unsupported target shape: {target}")


@register(RuleType.SHAPE_ACCURACY)
class ShapeAccuracyEvaluator:
    """Average match of the best `min_shapes` strokes against the target shape."""

    def evaluate(self, rule: ValidationRule, drawing: DrawingData) -> RuleResult:
        target = rule.params.get("target_shape") or rule.params.get("targetShape") or "circle"
        minimum = param_int(rule, "min_shapes", "minShapes", default=1)
        scores = [shape_score(as_array(stroke), str(target)) for stroke in drawing.strokes]
        accuracy = best_of(scores, minimum)
        return RuleResult(
            passed=accuracy >= rule.threshold,
            accuracy=accuracy,
            details={"target_shape": target, "scores": scores, "min_shapes": minimum},
        )

    def hint(self, rule: ValidationRule, attempt: int) -> str | None:
        target = rule.params.get("target_shape") or rule.params.get("targetShape") or "shape"
        if attempt == 1:
            if target in ROUND_SHAPES:
                return "Pivot from the elbow and keep the curve moving at an even speed."
            return f"Treat each side of the {target} as its own straight line."
        if attempt == 2:
            return "Draw through the shape two or three times lightly before the final pass."
        return None


@register(RuleType.SHAPE_COMPLETION)
class ShapeCompletionEvaluator:
    """Counts closed strokes: first and last point within tolerance of the shape size."""

    def evaluate(self, rule: ValidationRule, drawing: DrawingData) -> RuleResult:
        tolerance = param_float(rule, "closure_threshold", "closureThreshold", default=0.1)
        minimum = param_int(rule, "min_shapes", "minShapes", default=1)
        closed = sum(1 for stroke in drawing.strokes if is_closed(as_array(stroke), tolerance))
        return RuleResult(
            passed=closed >= minimum,
            accuracy=clamp(closed / max(1, minimum)),
            details={"closed": closed, "min_shapes": minimum, "tolerance": tolerance},
        )

    def hint(self, rule: ValidationRule, attempt: int) -> str | None:
        if attempt == 1:
            return "Finish each shape where you started so the outline closes."
        return None


@register(RuleType.SHAPE_CONSTRUCTION)
class ShapeConstructionEvaluator:
    """
    Construction step: enough component strokes, scored against the required shape.

    Without a required shape, any stroke counts fully and only the count matters.
    """

    def evaluate(self, rule: ValidationRule, drawing: DrawingData) -> RuleResult:
        minimum = param_int(rule, "min_shapes", "minShapes", default=1)
        target = rule.params.get("required_shape") or rule.params.get("requiredShape") or rule.params.get("shape")
        strokes = [as_array(stroke) for stroke in drawing.strokes if len(stroke.points) >= 2]

        if target:
            scores = [shape_score(points, str(target)) for points in strokes]
        else:
            scores = [1.0 for _ in strokes]
        accuracy = best_of(scores, minimum)
        return RuleResult(
            passed=len(strokes) >= minimum and accuracy >= rule.threshold,
            accuracy=accuracy,
            details={"components": len(strokes), "required_shape": target, "scores": scores},
        )

    def hint(self, rule: ValidationRule, attempt: int) -> str | None:
        if attempt == 1:
            return "Block in the big simple shape first, then add details on top of it."
        if attempt == 2:
            return "Organic shapes are fine: match the overall proportions, not a perfect outline."
        return None
