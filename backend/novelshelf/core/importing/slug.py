"""URL/file-system safe slugs from (possibly Cyrillic) titles."""

import re
import time

CYRILLIC_TO_LATIN = {
    "а": "a", "б": "b", "в": "v", "г": "g", "д": "d", "е": "e", "ё": "yo",
    "ж": "zh", "з": "z", "и": "i", "й": "y", "к": "k", "л": "l", "м": "m",
    "н": "n", "о": "o", "п": "p", "р": "r", "с": "s", "т": "t", "у": "u",
    "ф": "f", "х": "h", "ц": "ts", "ч": "ch", "ш": "sh", "щ": "shch",
    "ъ": "", "ы": "y", "ь": "", "э": "e", "ю": "yu", "я": "ya",
}

_DISALLOWED_RE = re.compile(r"[^a-z0-9\s-]")
_SPACES_RE = re.compile(r"\s+")
_DASHES_RE = re.compile(r"-+")


def transliterate(text: str) -> str:
    """Replace Russian letters with their Latin spelling (input lowercased)."""
    return "".join(CYRILLIC_TO_LATIN.get(char, char) for char in text)


def create_slug(title: str) -> str:
    """Build a slug such as ``voyna-i-mir`` from ``"Война и мир"``.

    Falls back to ``novel-<milliseconds>`` when nothing usable remains.
    """
    slug = transliterate((title or "").lower())
    slug = _DISALLOWED_RE.sub("", slug)
    slug = _SPACES_RE.sub("-", slug.strip())
    slug = _DASHES_RE.sub("-", slug).strip("-")
    if not slug:
        slug = f"novel-{int(time.time() * 1000)}"
    return slug
