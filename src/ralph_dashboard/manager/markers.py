"""Iteration marker grammar for loop stdout.

The loop script prints a banner such as ``======== LOOP 3 ========`` at the
start of every iteration. Kept free of I/O so the supervisor never handles
raw text itself.
"""

import re

# Unanchored: prefixed tokens (RALPH_LOOP 3) and trailing text (LOOP 12abc) count
ITERATION_MARKER_PATTERN = re.compile(r"LOOP\s+(\d+)", re.IGNORECASE)


def parse_iteration_marker(line: str) -> int | None:
    """Extract the iteration number from a stdout line.

    Args:
        line: One line of loop stdout.

    Returns:
        Iteration number, or None if the line carries no marker.

    Example:
        >>> parse_iteration_marker("======== LOOP 3 ========")
        3
        >>> parse_iteration_marker("running tests") is None
        True

    """
    match = ITERATION_MARKER_PATTERN.search(line)
    if match is None:
        return None
    return int(match.group(1))
