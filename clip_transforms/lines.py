"""
Line operations: dedupe, sort, number, join, split and wrap.
"""
import re

from ._lines import require_positive, split_lines
from .registry import rule

_LINE_NUMBER       = re.compile(r"^\s*\d+[.:]\s*")
_STUCK_LINE_NUMBER = re.compile(r"^(\s*)\d+")


@rule("remove_duplicate_lines", "Remove Duplicate Lines", "Line Operations")
def remove_duplicate_lines(text: str) -> str:
    """Keep the first occurrence of every line, preserving order."""
    seen = set()
    kept = []
    for line in split_lines(text):
        if line not in seen:
            seen.add(line)
            kept.append(line)
    return "\n".join(kept)


@rule("sort_lines", "Sort Lines (A-Z)", "Line Operations")
def sort_lines(text: str) -> str:
    """Sort lines by code point, ascending."""
    return "\n".join(sorted(split_lines(text)))


@rule("sort_lines_reverse", "Sort Lines (Z-A)", "Line Operations")
def sort_lines_reverse(text: str) -> str:
    """Sort lines by code point, descending."""
    return "\n".join(sorted(split_lines(text), reverse=True))


@rule("reverse_lines", "Reverse Line Order", "Line Operations")
def reverse_lines(text: str) -> str:
    """Reverse the order of lines without sorting them."""
    return "\n".join(reversed(split_lines(text)))


@rule("add_line_numbers", "Add Line Numbers", "Line Operations")
def add_line_numbers(text: str) -> str:
    """Prefix each line with a right-aligned, 1-based number and ': '."""
    return "\n".join(
        f"{i:4d}: {line}" for i, line in enumerate(split_lines(text), start=1)
    )


@rule("remove_line_numbers", "Remove Line Numbers", "Line Operations")
def remove_line_numbers(text: str) -> str:
    """Strip a leading 'N:' or 'N.' number (and the whitespace after it) from each line."""
    return "\n".join(_LINE_NUMBER.sub("", line, count=1) for line in split_lines(text))


@rule("remove_line_numbers_stuck", "Remove Stuck Line Numbers", "Line Operations")
def remove_line_numbers_stuck(text: str) -> str:
    """
    Strip line numbers glued to the content with no separator, as left behind
    by copying from some code viewers: "1import x" -> "import x",
    "93\\t\\tconst" -> "\\t\\tconst". Leading indentation is kept.
    """
    return "\n".join(
        _STUCK_LINE_NUMBER.sub(r"\1", line, count=1) for line in split_lines(text)
    )


@rule("join_lines", "Join Lines", "Line Operations", separator=" ")
def join_lines(text: str, separator: str) -> str:
    """Join all lines into one, separated by the given string."""
    return separator.join(split_lines(text))


@rule("split_to_lines", "Split to Lines", "Line Operations", delimiter=",")
def split_to_lines(text: str, delimiter: str) -> str:
    """Split on a delimiter and put each piece on its own line."""
    if not delimiter:
        raise ValueError("delimiter must not be empty")
    return "\n".join(text.split(delimiter))


def _wrap(line: str, width: int) -> str:
    wrapped = []
    current = ""
    for word in line.split():
        if not current:
            current = word
        elif len(current) + 1 + len(word) <= width:
            current += " " + word
        else:
            wrapped.append(current)
            current = word
    if current:
        wrapped.append(current)
    return "\n".join(wrapped)


@rule("wrap_lines", "Wrap Lines", "Line Operations", width=80)
def wrap_lines(text: str, width: int) -> str:
    """
    Greedy word wrap of every line longer than *width* characters. Short
    lines pass through untouched; a single word longer than *width* gets a
    line of its own rather than being broken.
    """
    require_positive("width", width)
    return "\n".join(
        line if len(line) <= width else _wrap(line, width) for line in split_lines(text)
    )
