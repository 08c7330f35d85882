"""Tests for the completion calculator."""

import pytest

from coursetrack.progress.calculator import calculate_completion, percentage
from coursetrack.topology import CourseTopology


class TestPercentage:
    @pytest.mark.parametrize(
        "done,total,expected",
        [
            (0, 4, 0),
            (1, 4, 25),
            (1, 3, 33),
            (2, 3, 67),
            (1, 8, 13),  # 12.5 rounds half up
            (3, 8, 38),  # 37.5 rounds half up
            (4, 4, 100),
        ],
    )
    def test_rounds_half_up(self, done: int, total: int, expected: int) -> None:
        assert percentage(done, total) == expected

    def test_empty_total_is_zero(self) -> None:
        assert percentage(0, 0) == 0

    def test_large_totals_round_to_nearest(self) -> None:
        """99.5 rounds up like any other half."""
        assert percentage(199, 200) == 100
        assert percentage(198, 200) == 99


class TestCalculateCompletion:
    def test_nothing_completed(self, topology: CourseTopology) -> None:
        result = calculate_completion(topology, [])

        assert result.overall_progress == 0
        assert result.completed_count == 0
        assert result.total_lessons == 4
        assert result.module_progress == {"m1": 0, "m2": 0}
        assert result.completed_modules == frozenset()
        assert not result.is_complete

    def test_one_module_complete(self, topology: CourseTopology) -> None:
        result = calculate_completion(topology, ["m1_l1", "m1_l2", "m2_l3"])

        assert result.overall_progress == 75
        assert result.module_progress == {"m1": 100, "m2": 50}
        assert result.completed_modules == frozenset({"m1"})

    def test_all_complete(self, topology: CourseTopology) -> None:
        result = calculate_completion(
            topology, ["m1_l1", "m1_l2", "m2_l3", "m2_l4"]
        )

        assert result.overall_progress == 100
        assert result.is_complete
        assert result.completed_modules == frozenset({"m1", "m2"})

    def test_unknown_lesson_keys_are_ignored(self, topology: CourseTopology) -> None:
        result = calculate_completion(topology, ["m1_l1", "m9_gone", "m1_removed"])

        assert result.completed_count == 1
        assert result.overall_progress == 25

    def test_duplicates_count_once(self, topology: CourseTopology) -> None:
        result = calculate_completion(topology, ["m1_l1", "m1_l1"])

        assert result.completed_count == 1

    def test_empty_course(self) -> None:
        result = calculate_completion(CourseTopology.build("empty", {}), [])

        assert result.overall_progress == 0
        assert not result.is_complete

    def test_empty_module_is_never_complete(self) -> None:
        topology = CourseTopology.build("c", {"m1": ["l1"], "m2": []})

        result = calculate_completion(topology, ["m1_l1"])

        assert result.overall_progress == 100
        assert result.module_progress["m2"] == 0
        assert result.completed_modules == frozenset({"m1"})
