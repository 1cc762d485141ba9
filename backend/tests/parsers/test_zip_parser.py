# tests/parsers/test_zip_parser.py
import json

import pytest

from novelshelf.core.importing.models import StructuralImportError
from novelshelf.core.importing.parsers.base import ProgressReporter
from novelshelf.core.importing.parsers.zip_archive import (
    EMPTY_CHAPTER_CONTENT,
    ArchiveRoot,
    FlatArchive,
    ZIPParser,
    chapter_sort_key,
    detect_root,
    is_junk,
)
from tests.helpers import PNG_B64, PNG_BYTES, write_zip


@pytest.fixture
def parser():
    return ZIPParser()


# ------------------------------------------------------------------
# Helpers
# ------------------------------------------------------------------

class TestHelpers:

    @pytest.mark.parametrize("path", [
        "__MACOSX/._1.txt",
        ".DS_Store",
        "novel/.hidden/1.txt",
    ])
    def test_junk(self, path):
        assert is_junk(path)

    def test_regular_paths_are_not_junk(self):
        assert not is_junk("novel/images/a.png")

    def test_detect_root_shared_folder(self):
        assert detect_root(["book/1.txt", "book/images/a.png"]) == ArchiveRoot("book")

    def test_detect_root_mixed(self):
        assert detect_root(["book/1.txt", "2.txt"]) == FlatArchive()
        assert detect_root(["1.txt"]) == FlatArchive()
        assert detect_root([]) == FlatArchive()

    def test_sort_key_is_numeric(self):
        names = ["10.txt", "chapter2.txt", "1.txt"]
        assert sorted(names, key=chapter_sort_key) == ["1.txt", "chapter2.txt", "10.txt"]


# ------------------------------------------------------------------
# Chapters
# ------------------------------------------------------------------

class TestChapters:

    def test_numeric_order_and_renumbering(self, parser, tmp_path):
        path = write_zip(tmp_path / "n.zip", {
            "10.txt": "Ten\nbody ten",
            "2.txt": "Two\nbody two",
            "1.txt": "One\nbody one",
        })
        chapters = parser.parse_sync(path).chapters
        assert [(c.number, c.title, c.content) for c in chapters] == [
            (1, "One", "body one"),
            (2, "Two", "body two"),
            (3, "Ten", "body ten"),
        ]

    def test_long_first_line_is_not_a_title(self, parser, tmp_path):
        long_line = "x" * 120
        path = write_zip(tmp_path / "n.zip", {"1.txt": f"{long_line}\nmore"})
        chapter = parser.parse_sync(path).chapters[0]
        assert chapter.title == "Chapter 1"
        assert chapter.content == f"{long_line}\nmore"

    def test_title_only_and_empty_files_get_placeholder_content(self, parser, tmp_path):
        path = write_zip(tmp_path / "n.zip", {"1.txt": "Just a title\r\n", "2.txt": ""})
        chapters = parser.parse_sync(path).chapters
        assert [(c.title, c.content) for c in chapters] == [
            ("Just a title", EMPTY_CHAPTER_CONTENT),
            ("Chapter 2", EMPTY_CHAPTER_CONTENT),
        ]

    def test_only_root_chapter_files_count(self, parser, tmp_path):
        path = write_zip(tmp_path / "n.zip", {
            "chapter1.txt": "A\ntext",
            "notes.txt": "Not a chapter\nx",
            "extra/2.txt": "Nested\nx",
            "__MACOSX/._3.txt": "junk",
        })
        chapters = parser.parse_sync(path).chapters
        assert [c.title for c in chapters] == ["A"]

    def test_bom_is_stripped(self, parser, tmp_path):
        path = write_zip(tmp_path / "n.zip", {"1.txt": "\ufeffTitle\nBody".encode("utf-8")})
        assert parser.parse_sync(path).chapters[0].title == "Title"


# ------------------------------------------------------------------
# Metadata
# ------------------------------------------------------------------

class TestMetadata:

    def test_meta_json(self, parser, tmp_path):
        meta = {"title": "Meta Title", "author": "Ann", "description": "  About  "}
        path = write_zip(tmp_path / "n.zip", {
            "folder/meta.json": json.dumps(meta),
            "folder/1.txt": "A\nb",
        })
        metadata = parser.parse_sync(path).metadata
        assert metadata.title == "Meta Title"
        assert metadata.author == "Ann"
        assert metadata.description == "About"

    def test_malformed_meta_falls_back_to_base_dir(self, parser, tmp_path):
        path = write_zip(tmp_path / "n.zip", {
            "My Novel/meta.json": "{not json",
            "My Novel/1.txt": "A\nb",
        })
        metadata = parser.parse_sync(path).metadata
        assert metadata.title == "My Novel"
        assert metadata.author is None

    def test_non_object_meta_is_ignored(self, parser, tmp_path):
        path = write_zip(tmp_path / "n.zip", {
            "Saga/meta.json": "[1, 2]",
            "Saga/1.txt": "A\nb",
        })
        assert parser.parse_sync(path).metadata.title == "Saga"

    def test_flat_archive_without_meta_gets_timestamped_title(self, parser, tmp_path):
        path = write_zip(tmp_path / "n.zip", {"1.txt": "A\nb"})
        assert parser.parse_sync(path).metadata.title.startswith("Untitled novel ")


# ------------------------------------------------------------------
# Images and cover
# ------------------------------------------------------------------

class TestImages:

    def test_root_cover_wins_over_images_folder(self, parser, tmp_path):
        path = write_zip(tmp_path / "n.zip", {
            "cover.png": PNG_BYTES,
            "images/cover.png": PNG_BYTES + b"other",
            "1.txt": "A\nb",
        })
        novel = parser.parse_sync(path)
        assert novel.metadata.cover.filename == "cover.png"
        assert novel.metadata.cover.data == PNG_B64
        assert novel.find_cover() is novel.metadata.cover

    def test_images_folder_wins_over_cover_elsewhere(self, parser, tmp_path):
        path = write_zip(tmp_path / "n.zip", {
            "extras/cover.png": PNG_BYTES,
            "images/cover.jpg": PNG_BYTES + b"other",
            "1.txt": "A\nb",
        })
        novel = parser.parse_sync(path)
        assert novel.metadata.cover.filename == "cover.jpg"

    def test_cover_anywhere_is_last_resort(self, parser, tmp_path):
        path = write_zip(tmp_path / "n.zip", {
            "extras/cover.png": PNG_BYTES,
            "1.txt": "A\nb",
        })
        novel = parser.parse_sync(path)
        assert novel.metadata.cover.filename == "cover.png"

    def test_cover_from_images_folder_is_not_duplicated(self, parser, tmp_path):
        path = write_zip(tmp_path / "n.zip", {
            "images/logo.jpg": PNG_BYTES,
            "images/fig1.png": PNG_BYTES,
            "images/readme.txt": "not an image",
            "1.txt": "A\nb",
        })
        novel = parser.parse_sync(path)
        assert novel.metadata.cover.filename == "logo.jpg"
        assert [i.filename for i in novel.images] == ["fig1.png"]
        assert not any(i.is_cover for i in novel.images)

    def test_images_inside_base_dir(self, parser, tmp_path):
        path = write_zip(tmp_path / "n.zip", {
            "book/1.txt": "A\nb",
            "book/images/a.webp": PNG_BYTES,
            "book/images/b.GIF": PNG_BYTES,
        })
        novel = parser.parse_sync(path)
        assert [i.filename for i in novel.images] == ["a.webp", "b.GIF"]
        assert novel.metadata.cover is None


# ------------------------------------------------------------------
# Archive handling
# ------------------------------------------------------------------

class TestArchive:

    def test_not_a_zip(self, parser, tmp_path):
        path = tmp_path / "n.zip"
        path.write_text("hello")
        with pytest.raises(StructuralImportError):
            parser.parse_sync(path)

    def test_progress_ends_at_100(self, parser, tmp_path):
        updates = []
        path = write_zip(tmp_path / "n.zip", {f"{i}.txt": f"T{i}\nx" for i in range(1, 8)})
        parser.parse_sync(path, progress=ProgressReporter(updates.append))
        percentages = [u.percentage for u in updates]
        assert percentages == sorted(percentages)
        assert percentages[-1] == 100

