"""Plain text (.txt) parser.

Chapters are found by the first delimiter style that occurs in the text
(``===`` rules, ``***`` rules, ``Chapter N`` / ``Глава N`` headings, ``N.``
lines). Books without delimiters are split on wide blank gaps, or failing
that into three equal parts.
"""

import logging
import math
import re
from pathlib import Path
from typing import Optional

from novelshelf.core.importing.models import (
    PLACEHOLDER_TITLE,
    NovelMetadata,
    ParsedChapter,
    ParsedNovel,
)
from novelshelf.core.importing.normalizer import html_to_text
from novelshelf.core.importing.parsers.base import Parser, ProgressReporter

logger = logging.getLogger(__name__)

CHAPTER_PATTERNS = (
    re.compile(r"^===+$", re.MULTILINE),
    re.compile(r"^\*\*\*+$", re.MULTILINE),
    re.compile(r"^(Глава|Chapter)\s+\d+$", re.MULTILINE | re.IGNORECASE),
    re.compile(r"^\d+\.$", re.MULTILINE),
)
TITLE_EXCLUDE_PATTERNS = (
    re.compile(r"^===+$"),
    re.compile(r"^\*\*\*+$"),
    re.compile(r"^(Глава|Chapter)", re.IGNORECASE),
)
BLOCK_SPLIT_RE = re.compile(r"\n{3,}")

PROLOGUE_TITLE = "Prologue"
SINGLE_TEXT_TITLE = "Text"
MIN_BLOCK_LENGTH = 100
MAX_BLOCK_CHAPTERS = 5
FALLBACK_PARTS = 3

TEXT_ENCODINGS = ("utf-8-sig", "cp1251")


def decode_text(raw: bytes) -> str:
    """UTF-8 (BOM aware), then Windows-1251, then UTF-8 with replacement."""
    for encoding in TEXT_ENCODINGS:
        try:
            return raw.decode(encoding)
        except UnicodeDecodeError:
            continue
    return raw.decode("utf-8", errors="replace")


class TXTParser(Parser):
    """Parse plain-text books."""

    format_name = "TXT"
    extensions = (".txt",)

    def _parse(self, path: Path, progress: ProgressReporter) -> ParsedNovel:
        progress.report(0, 100, 0, "Reading text")
        raw = path.read_bytes()
        content = decode_text(raw).replace("\r\n", "\n").replace("\r", "\n")

        chapters = self.split_chapters(content)
        metadata = NovelMetadata(title=self.extract_title(content) or PLACEHOLDER_TITLE)

        progress.report(len(raw), len(raw), 100, "Text loaded")
        logger.info("[TXT] Parsed '%s': %d chapters", metadata.title, len(chapters))
        return ParsedNovel(metadata=metadata, chapters=chapters, images=[])

    @staticmethod
    def extract_title(content: str) -> Optional[str]:
        for line in content.split("\n"):
            line = line.strip()
            if not 3 < len(line) < 200:
                continue
            if any(pattern.match(line) for pattern in TITLE_EXCLUDE_PATTERNS):
                continue
            return line
        return None

    def split_chapters(self, content: str) -> list[ParsedChapter]:
        for pattern in CHAPTER_PATTERNS:
            matches = list(pattern.finditer(content))
            if matches:
                return self._split_on_markers(content, matches)

        blocks = [block.strip() for block in BLOCK_SPLIT_RE.split(content)]
        blocks = [block for block in blocks if len(block) > MIN_BLOCK_LENGTH]
        if len(blocks) > MAX_BLOCK_CHAPTERS:
            return [ParsedChapter(
                number=1, title=SINGLE_TEXT_TITLE, content=html_to_text(content)
            )]

        return self._split_evenly(content)

    @staticmethod
    def _split_on_markers(content: str, matches: list[re.Match]) -> list[ParsedChapter]:
        chapters: list[ParsedChapter] = []

        prologue = content[:matches[0].start()].strip()
        if prologue:
            chapters.append(ParsedChapter(
                number=1, title=PROLOGUE_TITLE, content=html_to_text(prologue)
            ))

        for index, match in enumerate(matches):
            end = matches[index + 1].start() if index + 1 < len(matches) else len(content)
            body = content[match.end():end].strip()
            if not body:
                continue
            chapters.append(ParsedChapter(
                number=len(chapters) + 1,
                title=match.group(0).strip(),
                content=html_to_text(body),
            ))
        return chapters

    @staticmethod
    def _split_evenly(content: str) -> list[ParsedChapter]:
        if not content:
            return []
        size = math.ceil(len(content) / FALLBACK_PARTS)
        return [
            ParsedChapter(
                number=part + 1,
                title=f"Part {part + 1}",
                content=html_to_text(content[part * size:(part + 1) * size]),
            )
            for part in range(FALLBACK_PARTS)
        ]
