# tests/parsers/test_registry.py
import pytest

from novelshelf.core.importing.models import UnsupportedFormatError
from novelshelf.core.importing.parsers import (
    SUPPORTED_EXTENSIONS,
    EPUBParser,
    FB2Parser,
    TXTParser,
    ZIPParser,
    get_parser_for_filename,
)


class TestGetParserForFilename:

    @pytest.mark.parametrize("filename, expected", [
        ("book.fb2", FB2Parser),
        ("Book.EPUB", EPUBParser),
        ("archive.Zip", ZIPParser),
        ("notes.txt", TXTParser),
        ("my.book.v2.fb2", FB2Parser),
    ])
    def test_selects_by_extension(self, filename, expected):
        assert isinstance(get_parser_for_filename(filename), expected)

    @pytest.mark.parametrize("filename", ["book.pdf", "book", "fb2", "book.fb2.bak"])
    def test_unsupported(self, filename):
        with pytest.raises(UnsupportedFormatError, match="Unsupported file format"):
            get_parser_for_filename(filename)

    def test_supported_extensions(self):
        assert set(SUPPORTED_EXTENSIONS) == {".fb2", ".epub", ".zip", ".txt"}
