"""API dependencies.

Services are built once in the application lifespan and stored on
``app.state``; these dependencies hand them to the routes.
"""

from typing import Annotated

from fastapi import Depends, HTTPException, Path, Request

from novelshelf.core.importing.orchestrator import ImportOrchestrator
from novelshelf.core.library import LibraryRepository
from novelshelf.core.llm.client import TranslationClient
from novelshelf.core.novel_storage import NovelStorage
from novelshelf.core.translation.queue import BatchQueueManager
from novelshelf.models.database import Novel


def get_library(request: Request) -> LibraryRepository:
    return request.app.state.library


def get_storage(request: Request) -> NovelStorage:
    return request.app.state.storage


def get_importer(request: Request) -> ImportOrchestrator:
    return request.app.state.importer


def get_translation_client(request: Request) -> TranslationClient:
    return request.app.state.translation_client


def get_batch_manager(request: Request) -> BatchQueueManager:
    return request.app.state.batch_manager


# Type aliases for cleaner dependency injection
Library = Annotated[LibraryRepository, Depends(get_library)]
Storage = Annotated[NovelStorage, Depends(get_storage)]
Importer = Annotated[ImportOrchestrator, Depends(get_importer)]
Translator = Annotated[TranslationClient, Depends(get_translation_client)]
BatchManager = Annotated[BatchQueueManager, Depends(get_batch_manager)]


async def get_validated_novel(
    novel_id: Annotated[int, Path(description="Novel ID")],
    library: Library,
) -> Novel:
    """Load the novel named in the URL path.

    Raises:
        HTTPException: 404 if the novel does not exist
    """
    novel = await library.get_novel(novel_id)
    if novel is None:
        raise HTTPException(status_code=404, detail="Novel not found")
    return novel


ValidatedNovel = Annotated[Novel, Depends(get_validated_novel)]
