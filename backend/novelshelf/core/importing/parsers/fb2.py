"""FictionBook 2 (.fb2) parser.

FB2 is a single XML document::

    <FictionBook xmlns="http://www.gribuser.ru/xml/fictionbook/2.0">
      <description><title-info>book-title, author, annotation, coverpage</title-info></description>
      <body><section><title><p>..</p></title><p>..</p></section>...</body>
      <binary id="cover.jpg" content-type="image/jpeg">base64...</binary>
    </FictionBook>

Tags are matched by local name so files with or without the FictionBook
namespace both work.
"""

import logging
from pathlib import Path
from typing import Iterable

from lxml import etree

from novelshelf.core.importing.models import (
    PLACEHOLDER_CHAPTER_TITLE,
    PLACEHOLDER_TITLE,
    NovelMetadata,
    ParsedChapter,
    ParsedImage,
    ParsedNovel,
    StructuralImportError,
)
from novelshelf.core.importing.normalizer import html_to_text
from novelshelf.core.importing.parsers.base import Parser, ProgressReporter

logger = logging.getLogger(__name__)

MIME_EXTENSIONS = {
    "image/jpeg": ".jpg",
    "image/jpg": ".jpg",
    "image/png": ".png",
    "image/gif": ".gif",
    "image/webp": ".webp",
}


def _local_name(element) -> str:
    if not isinstance(element.tag, str):
        return ""
    return etree.QName(element).localname


def _children(element, name: str) -> list:
    return [child for child in element if _local_name(child) == name]


def _descendants(element, name: str) -> Iterable:
    for child in element.iter():
        if child is not element and _local_name(child) == name:
            yield child


def _first(element, name: str):
    if element is None:
        return None
    return next(iter(_descendants(element, name)), None)


def _text(element) -> str:
    if element is None:
        return ""
    return "".join(element.itertext()).strip()


class FB2Parser(Parser):
    """Parse FictionBook 2 documents."""

    format_name = "FB2"
    extensions = (".fb2",)

    def _parse(self, path: Path, progress: ProgressReporter) -> ParsedNovel:
        raw = path.read_bytes()
        progress.report(len(raw), len(raw), 100, "FB2")

        root = self._load_document(raw)
        metadata = self._extract_metadata(root)
        chapters = self._extract_chapters(root)
        images = self._extract_images(root)

        logger.info(
            "[FB2] Parsed '%s': %d chapters, %d images",
            metadata.title, len(chapters), len(images),
        )
        return ParsedNovel(metadata=metadata, chapters=chapters, images=images)

    def _load_document(self, raw: bytes):
        """Parse XML; lxml honours the declared encoding (UTF-8 or e.g. windows-1251)."""
        parser = etree.XMLParser(
            recover=True, huge_tree=True, resolve_entities=False, no_network=True
        )
        try:
            root = etree.fromstring(raw, parser=parser)
        except etree.XMLSyntaxError as e:
            raise StructuralImportError(f"Invalid FB2 document: {e}") from e
        if root is None:
            raise StructuralImportError("Invalid FB2 document: no root element")
        return root

    # =========================================================================
    # Metadata
    # =========================================================================

    def _extract_metadata(self, root) -> NovelMetadata:
        title_info = _first(_first(root, "description"), "title-info")
        if title_info is None:
            return NovelMetadata(title=PLACEHOLDER_TITLE)

        title = _text(_first(title_info, "book-title")) or PLACEHOLDER_TITLE

        author = None
        author_el = _first(title_info, "author")
        if author_el is not None:
            parts = [
                _text(_first(author_el, "first-name")),
                _text(_first(author_el, "last-name")),
            ]
            author = " ".join(part for part in parts if part) or None

        description = None
        annotation = _first(title_info, "annotation")
        if annotation is not None:
            paragraphs = [_text(p) for p in _descendants(annotation, "p")]
            paragraphs = [p for p in paragraphs if p]
            raw_description = "\n\n".join(paragraphs) if paragraphs else _text(annotation)
            description = html_to_text(raw_description) or None

        return NovelMetadata(title=title, author=author, description=description)

    def _coverpage_ids(self, root) -> set[str]:
        """Binary ids referenced from ``title-info/coverpage/image``."""
        ids = set()
        coverpage = _first(_first(root, "description"), "coverpage")
        if coverpage is None:
            return ids
        for image in _descendants(coverpage, "image"):
            for name, value in image.attrib.items():
                if etree.QName(name).localname == "href" and value:
                    ids.add(value.lstrip("#"))
        return ids

    # =========================================================================
    # Chapters
    # =========================================================================

    def _extract_chapters(self, root) -> list[ParsedChapter]:
        body = _first(root, "body")
        if body is None:
            logger.warning("[FB2] Document has no <body>")
            return []

        chapters: list[ParsedChapter] = []
        for section in _descendants(body, "section"):
            paragraphs = [
                _text(p) for p in _descendants(section, "p")
                if self._owning_section(p) is section
                and _local_name(p.getparent()) != "title"
            ]
            paragraphs = [p for p in paragraphs if p]
            if not paragraphs:
                continue

            chapters.append(ParsedChapter(
                number=len(chapters) + 1,
                title=self._section_title(section),
                content=html_to_text("\n\n".join(paragraphs)),
            ))
        return chapters

    @staticmethod
    def _owning_section(element):
        parent = element.getparent()
        while parent is not None and _local_name(parent) != "section":
            parent = parent.getparent()
        return parent

    @staticmethod
    def _section_title(section) -> str:
        titles = _children(section, "title")
        if not titles:
            return PLACEHOLDER_CHAPTER_TITLE
        runs = [_text(p) for p in _descendants(titles[0], "p")]
        title = " ".join(run for run in runs if run) or _text(titles[0])
        return title or PLACEHOLDER_CHAPTER_TITLE

    # =========================================================================
    # Images
    # =========================================================================

    def _extract_images(self, root) -> list[ParsedImage]:
        cover_ids = self._coverpage_ids(root)
        images: list[ParsedImage] = []

        for binary in _descendants(root, "binary"):
            image_id = binary.get("id")
            content_type = binary.get("content-type")
            if not image_id or not content_type:
                continue
            data = "".join((binary.text or "").split())
            if not data:
                logger.warning("[FB2] Skipping empty binary '%s'", image_id)
                continue

            images.append(ParsedImage(
                filename=self._image_filename(image_id, content_type),
                data=data,
                is_cover="cover" in image_id.lower() or image_id in cover_ids,
            ))
        return images

    @staticmethod
    def _image_filename(image_id: str, content_type: str) -> str:
        name = image_id[1:] if image_id[:1] in ("#", "_") else image_id
        extension = MIME_EXTENSIONS.get(content_type.strip().lower(), ".bin")
        return name + extension
