"""HTML/markup to plain text conversion.

Output keeps paragraph structure: paragraphs are separated by one blank
line, lines inside a paragraph by a single newline, and no line carries
leading/trailing or repeated spaces. Applying :func:`html_to_text` to its
own output returns it unchanged.
"""

import re

_SCRIPT_STYLE_RE = re.compile(
    r"<(script|style)[^>]*>.*?</\1\s*>", re.IGNORECASE | re.DOTALL
)
_PARAGRAPH_END_RE = re.compile(r"</p\s*>", re.IGNORECASE)
_LINE_BREAK_RE = re.compile(r"<br[^>]*>", re.IGNORECASE)
_TAG_RE = re.compile(r"<[^>]*>")
_WHITESPACE_RE = re.compile(r"\s+")
# Any whitespace except the newline itself
_INLINE_SPACE_RE = re.compile(r"[^\S\n]+")
_BLANK_LINES_RE = re.compile(r"\n{3,}")


def strip_tags(markup: str) -> str:
    """Replace tags with spaces and collapse all whitespace to single spaces."""
    if not markup:
        return ""
    return _WHITESPACE_RE.sub(" ", _TAG_RE.sub(" ", markup)).strip()


def html_to_text(markup: str) -> str:
    """Convert markup (or plain text) to normalized plain text."""
    if not markup:
        return ""

    text = _SCRIPT_STYLE_RE.sub("", markup)
    text = _PARAGRAPH_END_RE.sub("\n\n", text)
    text = _LINE_BREAK_RE.sub("\n", text)
    text = _TAG_RE.sub(" ", text)

    text = text.replace("\r\n", "\n").replace("\r", "\n")
    text = _INLINE_SPACE_RE.sub(" ", text)
    text = "\n".join(line.strip() for line in text.split("\n"))
    text = _BLANK_LINES_RE.sub("\n\n", text)
    return text.strip()


normalize = html_to_text
