"""
Case conversion rules. The identifier styles (camelCase, snake_case, ...)
split on whitespace only; punctuation stays inside the words.
"""
from .registry import rule

_SENTENCE_END = ".!?"


def _capitalize(word: str) -> str:
    # uppercase, not titlecase, for the first letter (unlike str.capitalize)
    return word[:1].upper() + word[1:].lower()


@rule("lowercase", "lowercase", "Case Conversion")
def lowercase(text: str) -> str:
    """Convert all text to lowercase."""
    return text.lower()


@rule("uppercase", "UPPERCASE", "Case Conversion")
def uppercase(text: str) -> str:
    """Convert all text to UPPERCASE."""
    return text.upper()


@rule("title_case", "Title Case", "Case Conversion")
def title_case(text: str) -> str:
    """
    Capitalise the first letter of every word and lowercase the rest.
    Words are re-joined with single spaces, so line breaks are not kept.
    """
    return " ".join(_capitalize(word) for word in text.split())


@rule("sentence_case", "Sentence case", "Case Conversion")
def sentence_case(text: str) -> str:
    """Capitalise the first letter of each sentence, lowercase everything else."""
    out = []
    capitalize_next = True
    for ch in text:
        if capitalize_next and ch.isalpha():
            out.append(ch.upper())
            capitalize_next = False
        else:
            out.append(ch.lower()[:1] or ch)
            if ch in _SENTENCE_END:
                capitalize_next = True
    return "".join(out)


@rule("camel_case", "camelCase", "Case Conversion")
def camel_case(text: str) -> str:
    """Join words as camelCase: first word lowercase, later words capitalised."""
    words = text.split()
    if not words:
        return ""
    return words[0].lower() + "".join(_capitalize(w) for w in words[1:])


@rule("pascal_case", "PascalCase", "Case Conversion")
def pascal_case(text: str) -> str:
    """Join words as PascalCase."""
    return "".join(_capitalize(w) for w in text.split())


@rule("snake_case", "snake_case", "Case Conversion")
def snake_case(text: str) -> str:
    """Lowercase every word and join with underscores."""
    return "_".join(w.lower() for w in text.split())


@rule("screaming_snake_case", "SCREAMING_SNAKE_CASE", "Case Conversion")
def screaming_snake_case(text: str) -> str:
    """Uppercase every word and join with underscores."""
    return "_".join(w.upper() for w in text.split())


@rule("kebab_case", "kebab-case", "Case Conversion")
def kebab_case(text: str) -> str:
    """Lowercase every word and join with hyphens."""
    return "-".join(w.lower() for w in text.split())
