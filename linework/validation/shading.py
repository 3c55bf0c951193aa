"""
Shading evaluators.

A stroke's tone is opacity x mean pressure; anything below full tone is
treated as a shading stroke.
"""

from __future__ import annotations

import numpy as np

from linework.curriculum.models import ValidationRule
from linework.errors import InvalidRuleParameters

from . import RuleType, register
from .base import DrawingData, RuleResult, Stroke, clamp, counted, param_float, param_int
from .geometry import as_array, direction_degrees, is_closed


def tone(stroke: Stroke) -> float:
    return clamp(stroke.opacity * stroke.mean_pressure)


def shading_strokes(drawing: DrawingData) -> list[Stroke]:
    return [stroke for stroke in drawing.strokes if stroke.points and tone(stroke) < 1.0]


@register(RuleType.SHADING_ELEMENT)
class ShadingElementEvaluator:
    """At least `min_strokes` partial-tone strokes."""

    def evaluate(self, rule: ValidationRule, drawing: DrawingData) -> RuleResult:
        minimum = param_int(rule, "min_strokes", "minStrokes", default=1)
        return counted(len(shading_strokes(drawing)), minimum)

    def hint(self, rule: ValidationRule, attempt: int) -> str | None:
        return "Lighten your pressure: shading builds up from soft layers."


@register(RuleType.SHADING_GRADATION)
class ShadingGradationEvaluator:
    """
    Tone changes steadily across the shading strokes.

    Strokes are ordered by centroid along `axis`; accuracy is the share of
    neighbouring pairs that move in the overall direction, scaled down when
    the tonal range is below `min_range`.
    """

    def evaluate(self, rule: ValidationRule, drawing: DrawingData) -> RuleResult:
        minimum = param_int(rule, "min_strokes", "minStrokes", default=3)
        min_range = param_float(rule, "min_range", "minRange", default=0.3)
        axis = str(rule.params.get("axis", "x")).lower()
        if axis not in ("x", "y"):
            raise InvalidRuleParameters(f"shading_gradation axis must be 'x' or 'y', got {axis}")
        column = 0 if axis == "x" else 1

        strokes = shading_strokes(drawing)
        if len(strokes) < 2:
            return RuleResult(passed=False, accuracy=0.0, details={"strokes": len(strokes)})

        strokes.sort(key=lambda stroke: float(as_array(stroke)[:, column].mean()))
        tones = np.array([tone(stroke) for stroke in strokes])
        direction = np.sign(tones[-1] - tones[0])
        if direction == 0:
            monotonic = 0.0
        else:
            monotonic = float(((np.diff(tones) * direction) >= 0).mean())
        tonal_range = float(tones.max() - tones.min())
        accuracy = clamp(monotonic * clamp(tonal_range / min_range if min_range > 0 else 1.0))
        return RuleResult(
            passed=len(strokes) >= minimum and accuracy >= rule.threshold,
            accuracy=accuracy,
            details={"strokes": len(strokes), "monotonic": monotonic, "range": tonal_range},
        )

    def hint(self, rule: ValidationRule, attempt: int) -> str | None:
        if attempt == 1:
            return "Press harder on the dark side and ease off gradually toward the light."
        if attempt == 2:
            return "Make a value scale first: five steps from darkest to lightest."
        return None


@register(RuleType.CAST_SHADOW)
class CastShadowEvaluator:
    """An object outline (closed stroke) plus shading strokes for its shadow."""

    def evaluate(self, rule: ValidationRule, drawing: DrawingData) -> RuleResult:
        minimum = param_int(rule, "min_strokes", "minStrokes", default=1)
        has_object = any(
            is_closed(as_array(stroke), 0.15) for stroke in drawing.strokes if tone(stroke) >= 1.0
        )
        shadow = len(shading_strokes(drawing))
        accuracy = (float(has_object) + clamp(shadow / max(1, minimum))) / 2.0
        return RuleResult(
            passed=accuracy >= rule.threshold,
            accuracy=accuracy,
            details={"has_object": has_object, "shadow_strokes": shadow},
        )

    def hint(self, rule: ValidationRule, attempt: int) -> str | None:
        return "Outline the object first, then shade the shadow on the side away from the light."


@register(RuleType.CYLINDRICAL_SHADING)
class CylindricalShadingEvaluator:
    """Shading strokes follow the cylinder's axis within `angle_tolerance` degrees."""

    def evaluate(self, rule: ValidationRule, drawing: DrawingData) -> RuleResult:
        minimum = param_int(rule, "min_strokes", "minStrokes", default=3)
        tolerance = param_float(rule, "angle_tolerance", "angleTolerance", default=20.0)
        axis = str(rule.params.get("axis", "vertical")).lower()
        target = 90.0 if axis == "vertical" else 0.0

        angles = [direction_degrees(as_array(stroke)) for stroke in shading_strokes(drawing)]
        angles = [angle for angle in angles if angle is not None]
        if not angles:
            return RuleResult(passed=False, accuracy=0.0, details={"strokes": 0})

        aligned = 0
        for angle in angles:
            difference = abs(angle - target) % 180.0
            if min(difference, 180.0 - difference) <= tolerance:
                aligned += 1
        accuracy = clamp(aligned / len(angles))
        return RuleResult(
            passed=len(angles) >= minimum and accuracy >= rule.threshold,
            accuracy=accuracy,
            details={"strokes": len(angles), "aligned": aligned, "axis": axis},
        )

    def hint(self, rule: ValidationRule, attempt: int) -> str | None:
        return "Run your shading strokes along the length of the cylinder."
