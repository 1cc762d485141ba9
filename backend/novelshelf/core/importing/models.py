"""Data classes produced by the format parsers, and import errors."""

from dataclasses import dataclass, field
from typing import Callable, Optional

# Placeholders used when a book does not provide a value
PLACEHOLDER_TITLE = "Untitled"
PLACEHOLDER_CHAPTER_TITLE = "Chapter"


class NovelImportError(Exception):
    """Base class for errors that abort an import."""


class StructuralImportError(NovelImportError):
    """The file is not a valid archive/document of its declared format."""


class UnsupportedFormatError(NovelImportError):
    """No parser handles the file's extension."""


class FileTooLargeError(NovelImportError):
    """The file exceeds the configured upload limit."""


@dataclass
class ParsedImage:
    """Image extracted from a book, payload kept base64-encoded."""

    filename: str
    data: str
    is_cover: bool = False


@dataclass
class ParsedChapter:
    number: int
    title: str
    content: str


@dataclass
class NovelMetadata:
    title: str = PLACEHOLDER_TITLE
    author: Optional[str] = None
    description: Optional[str] = None
    cover: Optional[ParsedImage] = None


@dataclass
class ParsedNovel:
    """Format-independent result of parsing one book file."""

    metadata: NovelMetadata
    chapters: list[ParsedChapter] = field(default_factory=list)
    images: list[ParsedImage] = field(default_factory=list)

    def find_cover(self) -> Optional[ParsedImage]:
        """First image flagged as cover, else the metadata cover."""
        for image in self.images:
            if image.is_cover:
                return image
        return self.metadata.cover


@dataclass
class ImportProgress:
    processed_bytes: int
    total_bytes: int
    percentage: float
    current_file: Optional[str] = None


ProgressCallback = Callable[[ImportProgress], None]
