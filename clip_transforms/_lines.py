"""Line splitting shared by the line-oriented rules."""

from typing import List


def split_lines(text: str) -> List[str]:
    """
    Split on ``\\n``, dropping one trailing ``\\r`` per line. A final newline
    does not produce an extra empty line, and "" has no lines at all.
    """
    if not text:
        return []
    lines = text.split("\n")
    if lines[-1] == "":
        lines.pop()
    return [ln[:-1] if ln.endswith("\r") else ln for ln in lines]


def require_positive(name: str, value: int) -> int:
    if value < 1:
        raise ValueError(f"{name} must be at least 1, got {value}")
    return value
