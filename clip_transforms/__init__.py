"""
clip_transforms - the text transformation rules recipes are built from.

Every rule is a pure ``str -> str`` function registered under a kind name.
Importing this package imports the rule modules, which fills the registry.
"""

from .registry import Transformation, RuleSpec, apply, get_rule, list_rules, rule
from . import whitespace, case, lines, cleanup, replace  # noqa: F401  (registration)

from clip_errors import UnknownTransformError

# Short names accepted by `clipchef transform`
ALIASES = {
    "lower":             "lowercase",
    "upper":             "uppercase",
    "title":             "title_case",
    "titlecase":         "title_case",
    "sentence":          "sentence_case",
    "sentencecase":      "sentence_case",
    "camel":             "camel_case",
    "camelcase":         "camel_case",
    "pascal":            "pascal_case",
    "pascalcase":        "pascal_case",
    "snake":             "snake_case",
    "snakecase":         "snake_case",
    "kebab":             "kebab_case",
    "kebabcase":         "kebab_case",
    "trim":              "trim_lines",
    "normalize":         "normalize_whitespace",
    "whitespace":        "normalize_whitespace",
    "remove-empty":      "remove_empty_lines",
    "no-empty":          "remove_empty_lines",
    "remove-duplicates": "remove_duplicate_lines",
    "unique":            "remove_duplicate_lines",
    "dedup":             "remove_duplicate_lines",
    "sort":              "sort_lines",
    "reverse":           "reverse_lines",
    "smartquotes":       "fix_smart_quotes",
    "fix-quotes":        "fix_smart_quotes",
    "quotes":            "fix_smart_quotes",
    "remove-emojis":     "remove_emojis",
    "no-emoji":          "remove_emojis",
    "strip":             "strip_formatting",
    "plain":             "strip_formatting",
    "slug":              "slugify",
    "html-encode":       "encode_html_entities",
    "html-decode":       "decode_html_entities",
    "unix":              "to_unix_line_endings",
    "lf":                "to_unix_line_endings",
    "windows":           "to_windows_line_endings",
    "crlf":              "to_windows_line_endings",
}


def resolve_kind(name: str) -> str:
    """Map a kind name or CLI alias (any case, '-' or '_') to a registered kind."""
    key = name.strip().lower()
    if key in ALIASES:
        return ALIASES[key]
    kind = key.replace("-", "_")
    get_rule(kind)
    return kind


__all__ = [
    "ALIASES",
    "RuleSpec",
    "Transformation",
    "UnknownTransformError",
    "apply",
    "get_rule",
    "list_rules",
    "resolve_kind",
    "rule",
]
