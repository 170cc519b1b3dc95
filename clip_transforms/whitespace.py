"""
Whitespace, indentation and line-ending rules.
"""
import re

from ._lines import require_positive, split_lines
from .registry import rule

_WS_RUN = re.compile(r"\s+")
_LEADING_SPACES = re.compile(r"^ *")


@rule("normalize_whitespace", "Normalize Whitespace", "Whitespace")
def normalize_whitespace(text: str) -> str:
    """Trim both ends and collapse every whitespace run (newlines too) to one space."""
    return _WS_RUN.sub(" ", text.strip())


@rule("trim_lines", "Trim Lines", "Whitespace")
def trim_lines(text: str) -> str:
    """Strip leading and trailing whitespace from every line."""
    return "\n".join(line.strip() for line in split_lines(text))


@rule("remove_empty_lines", "Remove Empty Lines", "Whitespace")
def remove_empty_lines(text: str) -> str:
    """Drop lines that are empty or whitespace-only; kept lines are left as-is."""
    return "\n".join(line for line in split_lines(text) if line.strip())


@rule("tabs_to_spaces", "Tabs → Spaces", "Indentation", spaces=4)
def tabs_to_spaces(text: str, spaces: int) -> str:
    """Replace every tab with a fixed number of spaces."""
    if spaces < 0:
        raise ValueError(f"spaces must not be negative, got {spaces}")
    return text.replace("\t", " " * spaces)


@rule("spaces_to_tabs", "Spaces → Tabs", "Indentation", spaces_per_tab=4)
def spaces_to_tabs(text: str, spaces_per_tab: int) -> str:
    """
    Fold the leading run of spaces on each line into tabs. Spaces left over
    below one tab width stay as spaces; interior and trailing spaces are
    never touched.
    """
    require_positive("spaces_per_tab", spaces_per_tab)
    out = []
    for line in split_lines(text):
        lead = len(_LEADING_SPACES.match(line).group(0))
        tabs, rest = divmod(lead, spaces_per_tab)
        out.append("\t" * tabs + " " * rest + line[lead:])
    return "\n".join(out)


@rule("to_unix_line_endings", "Unix Line Endings (LF)", "Line Endings")
def to_unix_line_endings(text: str) -> str:
    """Rewrite CRLF and bare CR line breaks as LF."""
    return text.replace("\r\n", "\n").replace("\r", "\n")


@rule("to_windows_line_endings", "Windows Line Endings (CRLF)", "Line Endings")
def to_windows_line_endings(text: str) -> str:
    """Normalize to LF first, then expand every LF to CRLF."""
    return to_unix_line_endings(text).replace("\n", "\r\n")
