"""EPUB parser.

The archive is unpacked into a scratch directory, then read the usual way:
``META-INF/container.xml`` points to the OPF package document, whose
``<metadata>`` gives title/author/description, whose ``<spine>`` orders the
XHTML chapter documents and whose ``<manifest>`` lists the images.
"""

import base64
import logging
import posixpath
import tempfile
import zipfile
from dataclasses import dataclass
from pathlib import Path
from typing import Optional
from urllib.parse import unquote

from bs4 import BeautifulSoup
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
from novelshelf.core.importing.normalizer import html_to_text, strip_tags
from novelshelf.core.importing.parsers.base import Parser, ProgressReporter

logger = logging.getLogger(__name__)


# =============================================================================
# Standard XML Namespaces (EPUB specification)
# =============================================================================

CONTAINER_NS = "urn:oasis:names:tc:opendocument:xmlns:container"
OPF_NS = "http://www.idpf.org/2007/opf"
DC_NS = "http://purl.org/dc/elements/1.1/"
OPF_NSMAP = {
    "opf": OPF_NS,
    "dc": DC_NS,
}

XHTML_MEDIA_TYPE = "application/xhtml+xml"


@dataclass
class ManifestItem:
    id: str
    href: str
    media_type: str
    properties: str = ""


class EPUBParser(Parser):
    """Parse EPUB 2/3 books into plain-text chapters."""

    format_name = "EPUB"
    extensions = (".epub",)

    def _parse(self, path: Path, progress: ProgressReporter) -> ParsedNovel:
        progress.report(0, 100, 0, "Preparing EPUB")

        with tempfile.TemporaryDirectory(prefix="novelshelf-epub-") as scratch:
            root = Path(scratch)
            self._extract_archive(path, root)
            progress.report(50, 100, 50, "Archive extracted")

            container = self._find_container(root)
            if container is None:
                raise StructuralImportError("container.xml not found in EPUB")
            opf_path = self._resolve_package_path(root, container)

            progress.report(70, 100, 70, "Reading metadata")
            package = self._load_xml(opf_path)
            manifest = self._read_manifest(package)
            metadata = self._extract_metadata(package)

            progress.report(85, 100, 85, "Extracting chapters and images")
            opf_dir = opf_path.parent
            chapters = self._extract_chapters(package, manifest, root, opf_dir)
            images = self._extract_images(package, manifest, root, opf_dir)

        progress.report(100, 100, 100, "EPUB loaded")
        logger.info(
            "[EPUB] Parsed '%s': %d chapters, %d images",
            metadata.title, len(chapters), len(images),
        )
        return ParsedNovel(metadata=metadata, chapters=chapters, images=images)

    # =========================================================================
    # Archive and package document
    # =========================================================================

    @staticmethod
    def _extract_archive(path: Path, target: Path) -> None:
        try:
            with zipfile.ZipFile(path) as archive:
                # extractall() drops absolute prefixes and ".." components
                archive.extractall(target)
        except (zipfile.BadZipFile, zipfile.LargeZipFile) as e:
            raise StructuralImportError(f"Unable to read EPUB archive: {e}") from e

    @staticmethod
    def _find_container(root: Path) -> Optional[Path]:
        """Locate container.xml anywhere in the tree, preferring META-INF/."""
        candidates = [p for p in root.rglob("container.xml") if p.is_file()]
        if not candidates:
            return None
        candidates.sort(
            key=lambda p: (p.parent.name != "META-INF", len(p.parts), str(p))
        )
        return candidates[0]

    def _resolve_package_path(self, root: Path, container: Path) -> Path:
        tree = self._load_xml(container)
        rootfiles = tree.xpath(
            "//c:rootfile[@full-path]", namespaces={"c": CONTAINER_NS}
        ) or tree.xpath("//*[local-name()='rootfile'][@full-path]")
        if not rootfiles:
            raise StructuralImportError("OPF path not found in container.xml")

        full_path = unquote(rootfiles[0].get("full-path")).lstrip("/")
        opf_path = (root / full_path).resolve()
        if root.resolve() not in opf_path.parents or not opf_path.is_file():
            raise StructuralImportError(f"OPF file not found: {full_path}")
        return opf_path

    @staticmethod
    def _load_xml(path: Path):
        parser = etree.XMLParser(recover=True, resolve_entities=False, no_network=True)
        try:
            tree = etree.parse(str(path), parser)
        except (OSError, etree.XMLSyntaxError) as e:
            raise StructuralImportError(f"Unable to read {path.name}: {e}") from e
        root = tree.getroot()
        if root is None:
            raise StructuralImportError(f"Unable to read {path.name}: empty document")
        return root

    @staticmethod
    def _read_manifest(package) -> dict[str, ManifestItem]:
        manifest: dict[str, ManifestItem] = {}
        for item in package.xpath("//*[local-name()='manifest']/*[local-name()='item']"):
            item_id = item.get("id")
            href = item.get("href")
            if not item_id or not href:
                continue
            manifest[item_id] = ManifestItem(
                id=item_id,
                href=href,
                media_type=(item.get("media-type") or "").strip().lower(),
                properties=item.get("properties") or "",
            )
        return manifest

    def _extract_metadata(self, package) -> NovelMetadata:
        def dc_text(name: str) -> Optional[str]:
            for element in package.xpath(f"//dc:{name}", namespaces=OPF_NSMAP):
                text = "".join(element.itertext()).strip()
                if text:
                    return text
            return None

        description = dc_text("description")
        if description:
            description = html_to_text(description) or None
        return NovelMetadata(
            title=strip_tags(dc_text("title") or "") or PLACEHOLDER_TITLE,
            author=strip_tags(dc_text("creator") or "") or None,
            description=description,
        )

    # =========================================================================
    # Chapters
    # =========================================================================

    def _extract_chapters(
        self, package, manifest: dict[str, ManifestItem], root: Path, opf_dir: Path
    ) -> list[ParsedChapter]:
        chapters: list[ParsedChapter] = []
        itemrefs = package.xpath("//*[local-name()='spine']/*[local-name()='itemref']")

        for itemref in itemrefs:
            item = manifest.get(itemref.get("idref", ""))
            if item is None or XHTML_MEDIA_TYPE not in item.media_type:
                continue

            try:
                markup = self._resolve_href(root, opf_dir, item.href).read_bytes()
            except OSError as e:
                logger.warning("[EPUB] Skipping unreadable chapter %s: %s", item.href, e)
                continue

            title, content = self._parse_chapter_document(markup)
            if not content:
                continue
            chapters.append(ParsedChapter(
                number=len(chapters) + 1,
                title=title,
                content=content,
            ))
        return chapters

    @staticmethod
    def _parse_chapter_document(markup: bytes) -> tuple[str, str]:
        soup = BeautifulSoup(markup, "lxml")

        headings = [
            heading.get_text(" ", strip=True)
            for tag in ("h1", "h2")
            for heading in soup.find_all(tag)
        ]
        title = next((text for text in headings if text), PLACEHOLDER_CHAPTER_TITLE)

        body = soup.body or soup
        paragraphs = [p.get_text().strip() for p in body.find_all("p")]
        content = html_to_text("\n\n".join(p for p in paragraphs if p))
        return title, content

    # =========================================================================
    # Images
    # =========================================================================

    def _extract_images(
        self, package, manifest: dict[str, ManifestItem], root: Path, opf_dir: Path
    ) -> list[ParsedImage]:
        cover_ids = {item.id for item in manifest.values() if "cover-image" in item.properties.split()}
        for meta in package.xpath("//*[local-name()='meta'][@name='cover']"):
            if meta.get("content"):
                cover_ids.add(meta.get("content"))

        images: list[ParsedImage] = []
        for item in manifest.values():
            if not item.media_type.startswith("image/"):
                continue
            try:
                data = base64.b64encode(
                    self._resolve_href(root, opf_dir, item.href).read_bytes()
                ).decode("ascii")
            except OSError as e:
                logger.warning("[EPUB] Skipping unreadable image %s: %s", item.href, e)
                continue

            images.append(ParsedImage(
                filename=posixpath.basename(unquote(item.href)) or f"image{len(images) + 1}",
                data=data,
                is_cover="cover" in item.id.lower() or item.id in cover_ids,
            ))
        return images

    @staticmethod
    def _resolve_href(root: Path, opf_dir: Path, href: str) -> Path:
        """Manifest href (relative to the OPF) to a path inside the scratch tree."""
        path = (opf_dir / unquote(href.split("#", 1)[0])).resolve()
        if root.resolve() not in path.parents:
            raise FileNotFoundError(f"{href} points outside the book")
        return path
