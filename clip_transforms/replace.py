"""
Parameterised search/replace and prefix/suffix rules.
"""
import re

from .registry import rule


@rule("regex_replace", "Regex Replace", "Search & Replace", pattern="", replacement="")
def regex_replace(text: str, pattern: str, replacement: str) -> str:
    """
    Replace every match of a regular expression. Uses Python ``re`` syntax,
    so groups are referenced as \\1 or \\g<name> in the replacement.
    """
    return re.sub(pattern, replacement, text)


@rule("find_replace", "Find & Replace", "Search & Replace", find="", replace="")
def find_replace(text: str, find: str, replace: str) -> str:
    """Replace every literal occurrence of a string."""
    return text.replace(find, replace)


@rule("add_prefix", "Add Prefix", "Prefix/Suffix", prefix="")
def add_prefix(text: str, prefix: str) -> str:
    """Put a string in front of the text."""
    return prefix + text


@rule("add_suffix", "Add Suffix", "Prefix/Suffix", suffix="")
def add_suffix(text: str, suffix: str) -> str:
    """Append a string to the text."""
    return text + suffix


@rule("remove_prefix", "Remove Prefix", "Prefix/Suffix", prefix="")
def remove_prefix(text: str, prefix: str) -> str:
    """Remove a leading string; no-op when the text does not start with it."""
    if prefix and text.startswith(prefix):
        return text[len(prefix):]
    return text


@rule("remove_suffix", "Remove Suffix", "Prefix/Suffix", suffix="")
def remove_suffix(text: str, suffix: str) -> str:
    """Remove a trailing string; no-op when the text does not end with it."""
    if suffix and text.endswith(suffix):
        return text[:-len(suffix)]
    return text
