"""
Character cleanup, content removal, extraction, HTML and URL rules.

Everything here is table- or regex-driven. The emoji ranges are a fixed
list of Unicode blocks; code points outside them are never removed, even
when they render as emoji.
"""
import re
import unicodedata

from ._lines import split_lines
from .registry import rule
from .whitespace import normalize_whitespace

SMART_QUOTES = (
    ("‘", "'"),
    ("’", "'"),
    ("“", '"'),
    ("”", '"'),
    ("…", "..."),   # ellipsis
    ("–", "-"),     # en dash
    ("—", "--"),    # em dash
)

EMOJI_RANGES = (
    (0x1F600, 0x1F64F),  # Emoticons
    (0x1F300, 0x1F5FF),  # Misc Symbols and Pictographs
    (0x1F680, 0x1F6FF),  # Transport and Map
    (0x1F1E0, 0x1F1FF),  # Flags
    (0x2600,  0x26FF),   # Misc Symbols
    (0x2700,  0x27BF),   # Dingbats
    (0xFE00,  0xFE0F),   # Variation Selectors
    (0x1F900, 0x1F9FF),  # Supplemental Symbols and Pictographs
    (0x1FA00, 0x1FA6F),  # Chess Symbols
    (0x1FA70, 0x1FAFF),  # Symbols and Pictographs Extended-A
)

HTML_ENCODE = (
    ("&", "&amp;"),
    ("<", "&lt;"),
    (">", "&gt;"),
    ('"', "&quot;"),
    ("'", "&#39;"),
)

HTML_DECODE = (
    ("&amp;", "&"),
    ("&lt;", "<"),
    ("&gt;", ">"),
    ("&quot;", '"'),
    ("&#39;", "'"),
    ("&nbsp;", " "),
)

_TAG   = re.compile(r"<[^>]+>")
_URL   = re.compile(r"https?://\S+")
_EMAIL = re.compile(r"\b[A-Za-z0-9._%+-]+@[A-Za-z0-9.-]+\.[A-Z|a-z]{2,}\b")
_PHONE = re.compile(r"(\+\d{1,3}[-.\s]?)?\(?\d{3}\)?[-.\s]?\d{3}[-.\s]?\d{4}")

# Markdown passes, applied in this order
_MD_HEADER = re.compile(r"^#{1,6}\s+")
_MD_INLINE = (
    (re.compile(r"\*\*([^*]+)\*\*"), r"\1"),      # bold
    (re.compile(r"__([^_]+)__"), r"\1"),
    (re.compile(r"\*([^*]+)\*"), r"\1"),          # italic
    (re.compile(r"_([^_]+)_"), r"\1"),
    (re.compile(r"\[([^\]]+)\]\([^)]+\)"), r"\1"),  # links
    (re.compile(r"`([^`]+)`"), r"\1"),            # inline code
)
_MD_BULLET = re.compile(r"^\s*[-*+]\s+")

_SLUG_DROP     = re.compile(r"[^a-z0-9\s-]")
_SLUG_COLLAPSE = re.compile(r"[\s_]+")

_NUMBER_CHARS = frozenset("0123456789.-")


def _is_emoji(ch: str) -> bool:
    cp = ord(ch)
    return any(lo <= cp <= hi for lo, hi in EMOJI_RANGES)


def _substitute(text: str, table) -> str:
    for old, new in table:
        text = text.replace(old, new)
    return text


@rule("fix_smart_quotes", "Fix Smart Quotes", "Character Cleanup")
def fix_smart_quotes(text: str) -> str:
    """Turn curly quotes, ellipses and dashes into their plain ASCII forms."""
    return _substitute(text, SMART_QUOTES)


@rule("remove_non_ascii", "Remove Non-ASCII", "Character Cleanup")
def remove_non_ascii(text: str) -> str:
    """Drop every character outside 7-bit ASCII."""
    return "".join(ch for ch in text if ch.isascii())


@rule("normalize_unicode", "Normalize Unicode", "Character Cleanup")
def normalize_unicode(text: str) -> str:
    """Rewrite to canonical composed form (NFC)."""
    return unicodedata.normalize("NFC", text)


@rule("remove_emojis", "Remove Emojis", "Character Cleanup")
def remove_emojis(text: str) -> str:
    """Remove characters from the emoji and pictograph blocks."""
    return "".join(ch for ch in text if not _is_emoji(ch))


@rule("strip_formatting", "Strip All Formatting", "Character Cleanup")
def strip_formatting(text: str) -> str:
    """Remove <tags>, then normalize whitespace."""
    return normalize_whitespace(_TAG.sub("", text))


@rule("remove_urls", "Remove URLs", "Content Removal")
def remove_urls(text: str) -> str:
    """Delete http:// and https:// links."""
    return _URL.sub("", text)


@rule("remove_emails", "Remove Emails", "Content Removal")
def remove_emails(text: str) -> str:
    """Delete e-mail addresses."""
    return _EMAIL.sub("", text)


@rule("remove_phone_numbers", "Remove Phone Numbers", "Content Removal")
def remove_phone_numbers(text: str) -> str:
    """Delete phone numbers in common 3-3-4 digit layouts, with optional country code."""
    return _PHONE.sub("", text)


@rule("remove_markdown", "Remove Markdown", "Content Removal")
def remove_markdown(text: str) -> str:
    """
    Strip Markdown syntax, keeping the text: headers, bold, italic, links,
    inline code, then bullet markers. The order matters; bold has to go
    before italic or '**a**' would come out as '*a*'.
    """
    text = "\n".join(_MD_HEADER.sub("", line, count=1) for line in split_lines(text))
    for pattern, repl in _MD_INLINE:
        text = pattern.sub(repl, text)
    return "\n".join(_MD_BULLET.sub("", line, count=1) for line in split_lines(text))


@rule("extract_numbers", "Extract Numbers", "Extraction")
def extract_numbers(text: str) -> str:
    """Pull out every number in the text, one per line."""
    kept = "".join(ch for ch in text if ch in _NUMBER_CHARS or ch.isspace())
    numbers = []
    for token in kept.split():
        try:
            float(token)
        except ValueError:
            continue
        numbers.append(token)
    return "\n".join(numbers)


@rule("encode_html_entities", "Encode HTML Entities", "HTML")
def encode_html_entities(text: str) -> str:
    """Escape & < > " and ' as HTML entities."""
    return _substitute(text, HTML_ENCODE)


@rule("decode_html_entities", "Decode HTML Entities", "HTML")
def decode_html_entities(text: str) -> str:
    """
    Unescape the five basic HTML entities plus &nbsp;. Substitution is
    sequential, &amp; first, so "&amp;lt;" decodes all the way to "<".
    """
    return _substitute(text, HTML_DECODE)


@rule("slugify", "Slugify (URL-safe)", "URL")
def slugify(text: str) -> str:
    """
    Make a lowercase, hyphen-separated slug for URLs.

    Example:
        "Hello World! 2024" → "hello-world-2024"
    """
    text = _SLUG_DROP.sub("", text.lower())
    return _SLUG_COLLAPSE.sub("-", text).strip("-")
