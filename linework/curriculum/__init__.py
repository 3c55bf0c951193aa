"""
Curriculum: skill tree and lesson catalog plus the prerequisite graph.
"""

from linework.curriculum.graph import CurriculumGraph, LearnerFacts
from linework.curriculum.loader import load_catalog, load_trees, parse_trees
from linework.curriculum.models import (
    Assessment,
    AssessmentCriterion,
    BonusCondition,
    BonusObjective,
    Hint,
    LearningObjective,
    Lesson,
    PracticeContent,
    PracticeInstruction,
    SkillCategory,
    SkillTree,
    TheoryContent,
    TheorySegment,
    UnlockRequirement,
    ValidationRule,
)

__all__ = [
    "Assessment",
    "AssessmentCriterion",
    "BonusCondition",
    "BonusObjective",
    "CurriculumGraph",
    "Hint",
    "LearnerFacts",
    "LearningObjective",
    "Lesson",
    "PracticeContent",
    "PracticeInstruction",
    "SkillCategory",
    "SkillTree",
    "TheoryContent",
    "TheorySegment",
    "UnlockRequirement",
    "ValidationRule",
    "load_catalog",
    "load_trees",
    "parse_trees",
]
