"""Tests for the iteration marker grammar."""

import pytest

from ralph_dashboard.manager.markers import parse_iteration_marker


class TestParseIterationMarker:
    """Tests for parse_iteration_marker()."""

    @pytest.mark.parametrize(
        ("line", "expected"),
        [
            ("======== LOOP 3 ========", 3),
            ("LOOP 12", 12),
            ("loop 7 starting", 7),
            ("[ralph] Loop   42", 42),
            ("RALPH_LOOP 3", 3),
            ("LOOP 12abc", 12),
        ],
    )
    def test_marker_lines(self, line: str, expected: int):
        """Lines with the marker yield the iteration number."""
        assert parse_iteration_marker(line) == expected

    @pytest.mark.parametrize(
        "line",
        [
            "running tests",
            "Starting loop: build",
            "LOOPS 3",
            "LOOP x3",
            "",
        ],
    )
    def test_non_marker_lines(self, line: str):
        """Lines without the marker yield None."""
        assert parse_iteration_marker(line) is None
