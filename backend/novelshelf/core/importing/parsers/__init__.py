"""Format parsers and extension-based parser selection."""

from novelshelf.core.importing.models import UnsupportedFormatError
from novelshelf.core.importing.parsers.base import Parser, ProgressReporter
from novelshelf.core.importing.parsers.epub import EPUBParser
from novelshelf.core.importing.parsers.fb2 import FB2Parser
from novelshelf.core.importing.parsers.txt import TXTParser
from novelshelf.core.importing.parsers.zip_archive import ZIPParser

PARSERS: tuple[type[Parser], ...] = (FB2Parser, EPUBParser, ZIPParser, TXTParser)

SUPPORTED_EXTENSIONS = tuple(ext for parser in PARSERS for ext in parser.extensions)


def get_parser_for_filename(filename: str) -> Parser:
    """Parser instance for ``filename`` chosen by its (case-insensitive) extension."""
    for parser_class in PARSERS:
        if parser_class.handles(filename):
            return parser_class()
    raise UnsupportedFormatError(
        f"Unsupported file format: {filename}. "
        f"Supported: {', '.join(SUPPORTED_EXTENSIONS)}"
    )


__all__ = [
    "EPUBParser",
    "FB2Parser",
    "PARSERS",
    "Parser",
    "ProgressReporter",
    "SUPPORTED_EXTENSIONS",
    "TXTParser",
    "ZIPParser",
    "get_parser_for_filename",
]
