"""Line-delta counting for file changes.

Modified files do not get a real diff. Their deltas come from comparing
line counts: a longer file reports the surplus as added, a shorter one the
shortfall as deleted, and an unchanged count reports a tenth of the lines
as both added and deleted. Hotspot and coupling scales are calibrated
against these numbers, so keep them stable.
"""

from __future__ import annotations

_NEWLINE = 0x0A


def count_lines(content: bytes) -> int:
    """Count newline bytes, plus one for a non-empty unterminated last line."""
    if not content:
        return 0
    lines = content.count(b"\n")
    if content[-1] != _NEWLINE:
        lines += 1
    return lines


def added_delta(content: bytes) -> tuple[int, int]:
    return count_lines(content), 0


def deleted_delta(content: bytes) -> tuple[int, int]:
    return 0, count_lines(content)


def modified_delta(old_lines: int, new_lines: int) -> tuple[int, int]:
    """Estimate (added, deleted) for a file whose content changed."""
    if new_lines > old_lines:
        return new_lines - old_lines, 0
    if old_lines > new_lines:
        return 0, old_lines - new_lines
    estimate = new_lines // 10
    return estimate, estimate
