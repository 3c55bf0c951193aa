"""
Perspective line evaluator.

Lines converge when the vanishing point lies within `tolerance` pixels of
the infinite line through each stroke's endpoints. The vanishing point comes
from the rule parameters, or is estimated as the least-squares intersection
of the drawn lines.
"""

from __future__ import annotations

import numpy as np

from linework.curriculum.models import ValidationRule

from . import RuleType, register
from .base import DrawingData, RuleResult, clamp, param_float, param_int
from .geometry import as_array, least_squares_intersection, line_distance


@register(RuleType.PERSPECTIVE_LINES)
class PerspectiveLinesEvaluator:
    """Share of drawn lines passing through the vanishing point."""

    def evaluate(self, rule: ValidationRule, drawing: DrawingData) -> RuleResult:
        minimum = param_int(rule, "min_lines", "minLines", default=2)
        tolerance = param_float(rule, "tolerance", default=25.0)

        segments = []
        for stroke in drawing.strokes:
            points = as_array(stroke)
            if len(points) >= 2 and (points[-1] != points[0]).any():
                segments.append((points[0], points[-1]))

        given = rule.params.get("vanishing_point") or rule.params.get("vanishingPoint")
        if given is not None:
            vanishing_point = np.array(given, dtype=float)
        else:
            vanishing_point = least_squares_intersection(segments)

        if vanishing_point is None or not segments:
            return RuleResult(
                passed=False,
                accuracy=0.0,
                details={"lines": len(segments), "min_lines": minimum},
            )

        distances = [line_distance(vanishing_point, start, end) for start, end in segments]
        converging = sum(1 for distance in distances if distance <= tolerance)
        accuracy = clamp(converging / len(segments))
        return RuleResult(
            passed=len(segments) >= minimum and accuracy >= rule.threshold,
            accuracy=accuracy,
            details={
                "lines": len(segments),
                "converging": converging,
                "vanishing_point": [float(v) for v in vanishing_point],
                "distances": distances,
            },
        )

    def hint(self, rule: ValidationRule, attempt: int) -> str | None:
        if attempt == 1:
            return "Start every receding line from the vanishing point on the horizon."
        if attempt == 2:
            return "Use a ruler-straight motion and check each line points back to the same dot."
        return None
