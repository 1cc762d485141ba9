"""Generic ZIP parser for novels packed as a folder of text chapters.

Expected layout (optionally wrapped in a single top-level folder)::

    meta.json            {"title": ..., "author": ..., "description": ...}
    cover.jpg | logo.png
    1.txt, 2.txt, ...    or chapter1.txt, chapter2.txt, ...
    images/*.png|jpg|jpeg|webp|gif
"""

import base64
import binascii
import json
import logging
import re
import zipfile
import zlib
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Optional, Union

from novelshelf.core.importing.models import (
    NovelMetadata,
    ParsedChapter,
    ParsedImage,
    ParsedNovel,
    StructuralImportError,
)
from novelshelf.core.importing.parsers.base import Parser, ProgressReporter

logger = logging.getLogger(__name__)

COVER_NAME_RE = re.compile(r"^(logo|cover)\.(png|jpg|jpeg|webp)$", re.IGNORECASE)
CONTENT_IMAGE_RE = re.compile(r"\.(png|jpg|jpeg|webp|gif)$", re.IGNORECASE)
CHAPTER_NAME_RE = re.compile(r"^\d+\.txt$|^chapter\d+\.txt$", re.IGNORECASE)
NUMBER_RE = re.compile(r"\d+")

MAX_TITLE_LINE = 100
EMPTY_CHAPTER_CONTENT = "(empty chapter)"
PROGRESS_EVERY = 5


@dataclass
class ArchiveEntry:
    path: str
    name: str
    relative_name: str
    data: Optional[str] = None


# Root detection result
@dataclass(frozen=True)
class ArchiveRoot:
    base_dir: str


@dataclass(frozen=True)
class FlatArchive:
    pass


# meta.json lookup result
@dataclass(frozen=True)
class MetaFound:
    data: dict


@dataclass(frozen=True)
class MetaMissing:
    pass


@dataclass(frozen=True)
class MetaMalformed:
    reason: str


RootDetection = Union[ArchiveRoot, FlatArchive]
MetaResult = Union[MetaFound, MetaMissing, MetaMalformed]


def is_junk(path: str) -> bool:
    """macOS resource forks and dotfiles."""
    return "__MACOSX" in path or any(
        part.startswith(".") for part in path.split("/") if part
    )


def detect_root(paths: list[str]) -> RootDetection:
    """A single top-level folder shared by every entry becomes the base dir."""
    if not paths:
        return FlatArchive()
    first_parts = paths[0].split("/")
    if len(first_parts) < 2:
        return FlatArchive()
    candidate = first_parts[0]
    if all(path.startswith(candidate + "/") for path in paths):
        return ArchiveRoot(base_dir=candidate)
    return FlatArchive()


def chapter_sort_key(name: str) -> tuple[int, str]:
    match = NUMBER_RE.search(name)
    return (int(match.group()) if match else 0, name.lower())


class ZIPParser(Parser):
    """Parse ZIP archives holding plain-text chapters."""

    format_name = "ZIP"
    extensions = (".zip",)

    def _parse(self, path: Path, progress: ProgressReporter) -> ParsedNovel:
        progress.report(0, 100, 0, "Opening archive")
        try:
            archive = zipfile.ZipFile(path)
        except (zipfile.BadZipFile, zipfile.LargeZipFile) as e:
            raise StructuralImportError(f"Unable to read ZIP archive: {e}") from e

        with archive:
            members = [
                info for info in archive.infolist()
                if not info.is_dir() and not is_junk(info.filename)
            ]
            progress.report(10, 100, 10, "Scanning archive")

            paths = [info.filename.replace("\\", "/") for info in members]
            root = detect_root(paths)
            prefix = root.base_dir + "/" if isinstance(root, ArchiveRoot) else ""
            entries = self._read_entries(archive, members, paths, prefix, progress)

        meta = self._read_meta(entries)
        if isinstance(meta, MetaMalformed):
            logger.warning("[ZIP] Ignoring malformed meta.json: %s", meta.reason)

        cover = self._find_cover(entries)
        images = self._collect_images(entries, cover)
        chapters = self._collect_chapters(entries)

        metadata = self._build_metadata(meta, root, cover)
        progress.report(100, 100, 100, "Archive loaded")
        logger.info(
            "[ZIP] Parsed '%s': %d chapters, %d images",
            metadata.title, len(chapters), len(images),
        )
        return ParsedNovel(metadata=metadata, chapters=chapters, images=images)

    def _read_entries(
        self,
        archive: zipfile.ZipFile,
        members: list[zipfile.ZipInfo],
        paths: list[str],
        prefix: str,
        progress: ProgressReporter,
    ) -> list[ArchiveEntry]:
        entries: list[ArchiveEntry] = []
        total = len(members)

        for index, (info, path) in enumerate(zip(members, paths), start=1):
            entry = ArchiveEntry(
                path=path,
                name=path.rsplit("/", 1)[-1],
                relative_name=path[len(prefix):] if prefix else path,
            )
            try:
                entry.data = base64.b64encode(archive.read(info)).decode("ascii")
            except (zipfile.BadZipFile, zlib.error, OSError, NotImplementedError) as e:
                logger.warning("[ZIP] Cannot read %s: %s", path, e)
            entries.append(entry)

            if index % PROGRESS_EVERY == 0 or index == total:
                progress.report(index, total, 20 + index / total * 70, entry.name)

        return entries

    # =========================================================================
    # Metadata
    # =========================================================================

    @staticmethod
    def _read_meta(entries: list[ArchiveEntry]) -> MetaResult:
        entry = next(
            (e for e in entries if e.relative_name.lower() == "meta.json"), None
        )
        if entry is None or entry.data is None:
            return MetaMissing()
        try:
            raw = base64.b64decode(entry.data).decode("utf-8-sig")
            data = json.loads(raw)
        except (binascii.Error, UnicodeDecodeError, ValueError) as e:
            return MetaMalformed(reason=str(e))
        if not isinstance(data, dict):
            return MetaMalformed(reason="meta.json is not a JSON object")
        return MetaFound(data=data)

    @staticmethod
    def _build_metadata(
        meta: MetaResult, root: RootDetection, cover: Optional[ParsedImage]
    ) -> NovelMetadata:
        fields: dict = meta.data if isinstance(meta, MetaFound) else {}

        def field(name: str) -> Optional[str]:
            value = fields.get(name)
            if isinstance(value, str) and value.strip():
                return value.strip()
            return None

        title = field("title")
        if title is None and isinstance(root, ArchiveRoot):
            title = root.base_dir
        if title is None:
            title = f"Untitled novel {datetime.now():%Y-%m-%d %H:%M}"

        return NovelMetadata(
            title=title,
            author=field("author"),
            description=field("description"),
            cover=cover,
        )

    # =========================================================================
    # Images
    # =========================================================================

    @staticmethod
    def _find_cover(entries: list[ArchiveEntry]) -> Optional[ParsedImage]:
        """Root-level cover, then one under images/, then a cover-named file anywhere."""
        readable = [e for e in entries if e.data is not None]
        tiers = (
            lambda e: "/" not in e.relative_name and COVER_NAME_RE.match(e.name),
            lambda e: e.relative_name.lower().startswith("images/")
            and COVER_NAME_RE.match(e.name),
            lambda e: COVER_NAME_RE.match(e.name),
        )
        for matches in tiers:
            entry = next((e for e in readable if matches(e)), None)
            if entry is not None:
                return ParsedImage(filename=entry.name, data=entry.data, is_cover=True)
        return None

    @staticmethod
    def _collect_images(
        entries: list[ArchiveEntry], cover: Optional[ParsedImage]
    ) -> list[ParsedImage]:
        images = []
        for entry in entries:
            if entry.data is None:
                continue
            if not entry.relative_name.lower().startswith("images/"):
                continue
            if not CONTENT_IMAGE_RE.search(entry.name):
                continue
            if cover is not None and entry.data is cover.data:
                continue
            images.append(ParsedImage(filename=entry.name, data=entry.data))
        return images

    # =========================================================================
    # Chapters
    # =========================================================================

    def _collect_chapters(self, entries: list[ArchiveEntry]) -> list[ParsedChapter]:
        files = [
            e for e in entries
            if "/" not in e.relative_name and CHAPTER_NAME_RE.match(e.name)
        ]
        files.sort(key=lambda e: chapter_sort_key(e.name))

        chapters: list[ParsedChapter] = []
        for entry in files:
            number = len(chapters) + 1
            try:
                chapters.append(self._build_chapter(entry, number))
            except (TypeError, binascii.Error, ValueError) as e:
                logger.warning("[ZIP] Skipping chapter %s: %s", entry.path, e)
        return chapters

    @staticmethod
    def _build_chapter(entry: ArchiveEntry, number: int) -> ParsedChapter:
        if entry.data is None:
            raise ValueError("entry could not be read")
        text = base64.b64decode(entry.data).decode("utf-8-sig", errors="replace")
        text = text.replace("\r\n", "\n").replace("\r", "\n")

        lines = text.split("\n")
        first_line = lines[0].strip()
        if first_line and len(first_line) < MAX_TITLE_LINE:
            title = first_line
            content = "\n".join(lines[1:]).strip()
        else:
            title = f"Chapter {number}"
            content = text.strip()

        return ParsedChapter(
            number=number,
            title=title,
            content=content or EMPTY_CHAPTER_CONTENT,
        )
