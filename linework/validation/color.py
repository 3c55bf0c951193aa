"""
Colour match evaluator.
"""

from __future__ import annotations

import math

from linework.curriculum.models import ValidationRule
from linework.errors import InvalidRuleParameters

from . import RuleType, register
from .base import DrawingData, RuleResult, clamp

_MAX_RGB_DISTANCE = math.sqrt(3 * 255**2)


def parse_hex(color: str) -> tuple[int, int, int]:
    value = color.strip().lstrip("#")
    if len(value) == 3:
        value = "".join(ch * 2 for ch in value)
    if len(value) != 6:
        raise ValueError(f"not a #rrggbb colour: {color}")
    return int(value[0:2], 16), int(value[2:4], 16), int(value[4:6], 16)


def color_distance(first: str, second: str) -> float:
    """Euclidean RGB distance normalised to [0, 1]."""
    a = parse_hex(first)
    b = parse_hex(second)
    return math.dist(a, b) / _MAX_RGB_DISTANCE


@register(RuleType.COLOR_MATCH)
class ColorMatchEvaluator:
    """Accuracy is 1 - distance of the closest colour used to the target."""

    def evaluate(self, rule: ValidationRule, drawing: DrawingData) -> RuleResult:
        target = rule.params.get("target_color") or rule.params.get("targetColor")
        if not target:
            raise InvalidRuleParameters("color_match requires a target_color")
        try:
            parse_hex(str(target))
        except ValueError as e:
            raise InvalidRuleParameters(str(e)) from e

        distances = []
        for used in drawing.used_colors():
            try:
                distances.append(color_distance(used, str(target)))
            except ValueError:
                continue
        if not distances:
            return RuleResult(passed=False, accuracy=0.0, details={"target_color": target})

        accuracy = clamp(1.0 - min(distances))
        return RuleResult(
            passed=accuracy >= rule.threshold,
            accuracy=accuracy,
            details={"target_color": target, "closest_distance": min(distances)},
        )

    def hint(self, rule: ValidationRule, attempt: int) -> str | None:
        target = rule.params.get("target_color") or rule.params.get("targetColor")
        return f"Sample the swatch: the target colour is {target}."
