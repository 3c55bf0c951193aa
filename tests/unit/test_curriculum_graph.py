"""
Unit tests for the curriculum graph.

Tests registration checks, unlock predicates and deterministic ordering.
"""

import pytest

from linework.curriculum import CurriculumGraph, LearnerFacts
from linework.errors import (
    CyclicPrerequisite,
    DanglingPrerequisite,
    DuplicateLesson,
    GraphError,
    NotFound,
)


def ids(lessons):
    return [lesson.id for lesson in lessons]


class TestRegistration:
    """Test register() validation."""

    def test_registers_trees_in_priority_order(self, graph):
        assert [tree.id for tree in graph.trees()] == ["basics", "extra"]
        assert len(graph) == 6
        assert "L1" in graph
        assert graph.is_acyclic()

    def test_lessons_know_their_tree(self, graph):
        assert graph.get_lesson("X1").skill_tree_id == "extra"
        assert graph.tree_of("L3").id == "basics"

    def test_tree_total_xp_defaults_to_lesson_rewards(self, basics_tree):
        assert basics_tree.total_xp == 400

    def test_dangling_prerequisite(self, tree_factory, lesson_factory):
        tree = tree_factory("t", [lesson_factory("A", 1, prerequisites=["ghost"])])
        graph = CurriculumGraph()
        with pytest.raises(DanglingPrerequisite) as exc:
            graph.register(tree)
        assert exc.value.missing_id == "ghost"
        assert len(graph) == 0

    def test_dangling_lesson_unlock_requirement(self, tree_factory, lesson_factory):
        tree = tree_factory("t", [lesson_factory("A", 1, unlock_requirements=[{"kind": "lesson", "value": "ghost"}])])
        with pytest.raises(DanglingPrerequisite):
            CurriculumGraph([tree])

    def test_cycle_is_rejected_and_graph_unchanged(self, graph, tree_factory, lesson_factory):
        looped = tree_factory(
            "looped",
            [
                lesson_factory("C1", 1, prerequisites=["C2"]),
                lesson_factory("C2", 2, prerequisites=["C1"]),
            ],
        )
        with pytest.raises(CyclicPrerequisite) as exc:
            graph.register(looped)

        assert set(exc.value.cycle) == {"C1", "C2"}
        assert exc.value.cycle[0] == exc.value.cycle[-1]
        assert len(graph) == 6
        assert "C1" not in graph
        assert graph.is_acyclic()

    def test_duplicate_lesson_across_trees(self, graph, tree_factory, lesson_factory):
        with pytest.raises(DuplicateLesson):
            graph.register(tree_factory("again", [lesson_factory("L1", 1)]))

    def test_duplicate_tree(self, graph, basics_tree):
        with pytest.raises(GraphError):
            graph.register(basics_tree)

    def test_later_tree_may_depend_on_earlier_one(self, graph, tree_factory, lesson_factory):
        graph.register(tree_factory("later", [lesson_factory("Z1", 1, prerequisites=["L3", "X1"])]))
        assert ids(graph.prerequisite_chain("Z1")) == ["L1", "X1", "L2", "L3"]


class TestLookup:
    """Test lookups and NotFound."""

    def test_unknown_lesson(self, graph):
        with pytest.raises(NotFound) as exc:
            graph.get_lesson("nope")
        assert exc.value.kind == "lesson"

    def test_unknown_tree(self, graph):
        with pytest.raises(NotFound):
            graph.available_lessons("nope")

    def test_lessons_sorted_by_order(self, graph):
        assert ids(graph.lessons("basics")) == ["L1", "L2", "L3", "L4"]


class TestUnlocking:
    """Test is_unlocked() and its predicates."""

    def test_fresh_learner_sees_only_roots(self, graph):
        # Linear chain L1 -> L2 -> L3, nothing completed
        assert ids(graph.available_lessons("basics", completed=set())) == ["L1"]

    def test_completing_first_lesson_unlocks_second(self, graph):
        assert ids(graph.available_lessons("basics", completed={"L1"})) == ["L1", "L2"]

    def test_completion_order_does_not_matter(self, graph):
        assert graph.is_unlocked("L3", ["L2", "L1"]) is True

    def test_level_requirement(self, graph):
        assert graph.is_unlocked("L4", set(), LearnerFacts(level=1)) is False
        assert graph.is_unlocked("L4", set(), LearnerFacts(level=2)) is True

    def test_achievement_requirement(self, graph):
        assert graph.is_unlocked("X2", {"L1", "X1"}) is False
        facts = LearnerFacts(achievements=frozenset({"perfect_score"}))
        assert graph.is_unlocked("X2", {"L1", "X1"}, facts) is True

    def test_cross_tree_lesson_requirement(self, graph):
        assert graph.is_unlocked("X1", set()) is False
        assert graph.is_unlocked("X1", {"L1"}) is True

    def test_unlocking_is_monotonic(self, graph):
        facts = LearnerFacts(level=3, xp=500, achievements=frozenset({"perfect_score"}))
        completed: set[str] = set()
        seen: set[str] = set()
        for lesson_id in ["L1", "X1", "L2", "X2", "L3"]:
            available = set(ids(graph.available_lessons(completed=completed, facts=facts)))
            assert seen <= available
            seen = available
            completed.add(lesson_id)

    def test_blocking_requirements_lists_everything(self, graph):
        assert graph.blocking_requirements("X2", set()) == [
            "complete lesson X1",
            "unlock achievement perfect_score",
        ]
        assert graph.blocking_requirements("L4", set()) == ["reach level 2"]
        assert graph.blocking_requirements("L1", set()) == []

    def test_xp_requirement(self, tree_factory, lesson_factory):
        graph = CurriculumGraph([tree_factory("t", [lesson_factory("A", 1, unlock_requirements=[{"kind": "xp", "value": 300}])])])
        assert graph.is_unlocked("A", set(), LearnerFacts(xp=299)) is False
        assert graph.is_unlocked("A", set(), LearnerFacts(xp=300)) is True


class TestRecommendation:
    """Test available ordering and recommend_next()."""

    def test_ties_across_trees_broken_by_id(self, tree_factory, lesson_factory):
        graph = CurriculumGraph(
            [
                tree_factory("t1", [lesson_factory("b", 1), lesson_factory("c", 0)]),
                tree_factory("t2", [lesson_factory("a", 1)]),
            ]
        )
        assert ids(graph.available_lessons()) == ["c", "a", "b"]

    def test_recommend_next_skips_completed(self, graph):
        assert graph.recommend_next(set()).id == "L1"
        assert graph.recommend_next({"L1"}).id == "L2"

    def test_tree_priority_before_lesson_order(self, graph):
        picks = graph.recommend({"L1"}, LearnerFacts(level=2), count=5)
        assert ids(picks) == ["L2", "L4", "X1"]

    def test_recommend_respects_count(self, graph):
        assert len(graph.recommend({"L1"}, LearnerFacts(level=2), count=2)) == 2

    def test_exhausted_curriculum(self, graph):
        everything = {lesson.id for lesson in graph.lessons()}
        assert graph.recommend_next(everything) is None


class TestPrerequisiteChain:
    """Test prerequisite_chain()."""

    def test_chain_is_topologically_ordered(self, graph):
        assert ids(graph.prerequisite_chain("L3")) == ["L1", "L2"]

    def test_unlock_requirement_lessons_are_part_of_chain(self, graph):
        assert ids(graph.prerequisite_chain("X2")) == ["L1", "X1"]

    def test_root_has_empty_chain(self, graph):
        assert graph.prerequisite_chain("L1") == []
