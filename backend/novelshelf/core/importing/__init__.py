"""E-book import: format parsers and the import orchestrator."""

from novelshelf.core.importing.models import (
    FileTooLargeError,
    ImportProgress,
    NovelImportError,
    NovelMetadata,
    ParsedChapter,
    ParsedImage,
    ParsedNovel,
    StructuralImportError,
    UnsupportedFormatError,
)

__all__ = [
    "FileTooLargeError",
    "ImportProgress",
    "NovelImportError",
    "NovelMetadata",
    "ParsedChapter",
    "ParsedImage",
    "ParsedNovel",
    "StructuralImportError",
    "UnsupportedFormatError",
]
