# tests/conftest.py
import asyncio

import pytest
from sqlalchemy.pool import NullPool

from novelshelf.core.library import LibraryRepository
from novelshelf.core.novel_storage import NovelStorage
from novelshelf.models.database import create_engine, create_session_maker, init_db


# ------------------------------------------------------------------
# Database
# ------------------------------------------------------------------

@pytest.fixture
def engine(tmp_path):
    # NullPool: each asyncio.run() opens its own connections on its own loop
    eng = create_engine(f"sqlite+aiosqlite:///{tmp_path / 'library.db'}", poolclass=NullPool)
    asyncio.run(init_db(eng))
    yield eng
    asyncio.run(eng.dispose())


@pytest.fixture
def library(engine):
    return LibraryRepository(create_session_maker(engine))


@pytest.fixture
def storage(tmp_path):
    return NovelStorage(tmp_path / "storage")


@pytest.fixture
def novel_with_chapters(library):
    """A stored novel with three chapters; returns (novel, chapters)."""
    async def setup():
        novel = await library.create_novel("Test Novel", "test-novel")
        chapters = [
            await library.create_chapter(novel.id, n, f"Chapter {n} text", title=f"Chapter {n}")
            for n in (1, 2, 3)
        ]
        await library.update_chapter_count(novel.id)
        return novel, chapters

    return asyncio.run(setup())
