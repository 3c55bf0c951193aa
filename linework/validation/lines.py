"""
Line evaluators.

- line_count: enough straight strokes, within optional bounds
- line_detection: the best strokes are straight on average
"""

from __future__ import annotations

from linework.curriculum.models import ValidationRule

from . import RuleType, register
from .base import DrawingData, RuleResult, best_of, counted, param_float, param_int
from .geometry import as_array, straightness

DEFAULT_STRAIGHTNESS = 0.9


@register(RuleType.LINE_COUNT)
class LineCountEvaluator:
    """Counts strokes straight enough to be lines."""

    def evaluate(self, rule: ValidationRule, drawing: DrawingData) -> RuleResult:
        minimum = param_int(rule, "min_lines", "minLines", "min", default=1)
        maximum = rule.params.get("max_lines", rule.params.get("maxLines", rule.params.get("max")))
        required = param_float(
            rule, "straightness", "straightness_threshold", "straightnessThreshold",
            default=DEFAULT_STRAIGHTNESS,
        )

        scores = [straightness(as_array(stroke)) for stroke in drawing.strokes]
        lines = sum(1 for score in scores if score >= required)
        result = counted(lines, minimum, int(maximum) if maximum is not None else None)
        return RuleResult(
            passed=result.passed,
            accuracy=result.accuracy,
            details={**result.details, "straightness": scores},
        )

    def hint(self, rule: ValidationRule, attempt: int) -> str | None:
        minimum = param_int(rule, "min_lines", "minLines", "min", default=1)
        if attempt == 1:
            return f"Draw at least {minimum} separate straight lines."
        if attempt == 2:
            return "Lock your wrist and pull each line from the shoulder in one motion."
        return None


@register(RuleType.LINE_DETECTION)
class LineDetectionEvaluator:
    """Mean straightness of the best `min_lines` strokes."""

    def evaluate(self, rule: ValidationRule, drawing: DrawingData) -> RuleResult:
        minimum = param_int(rule, "min_lines", "minLines", default=1)
        scores = [straightness(as_array(stroke)) for stroke in drawing.strokes]
        accuracy = best_of(scores, minimum)
        return RuleResult(
            passed=accuracy >= rule.threshold,
            accuracy=accuracy,
            details={"straightness": scores, "min_lines": minimum},
        )

    def hint(self, rule: ValidationRule, attempt: int) -> str | None:
        if attempt == 1:
            return "Keep each line straight: aim for the end point before you start."
        if attempt == 2:
            return "Ghost the motion a few times above the canvas, then commit."
        return None
