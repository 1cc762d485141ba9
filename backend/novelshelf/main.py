"""Main FastAPI application."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from novelshelf.api.v1.routes import batch, imports, library, translation
from novelshelf.config import settings
from novelshelf.core.importing.orchestrator import ImportOrchestrator
from novelshelf.core.library import LibraryRepository
from novelshelf.core.llm.client import TranslationClient
from novelshelf.core.llm.runtime_config import TranslationRuntimeConfig
from novelshelf.core.novel_storage import NovelStorage
from novelshelf.core.translation.queue import BatchQueueManager
from novelshelf.models.database import create_engine, create_session_maker, init_db

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler."""
    logging.basicConfig(level=logging.DEBUG if settings.debug else logging.INFO)

    settings.upload_dir.mkdir(parents=True, exist_ok=True)
    settings.storage_dir.mkdir(parents=True, exist_ok=True)

    # Startup: Initialize database
    engine = create_engine(settings.database_url)
    await init_db(engine)

    # Startup: Build services
    library_repo = LibraryRepository(create_session_maker(engine))
    storage = NovelStorage(settings.storage_dir)
    client = TranslationClient(library_repo, TranslationRuntimeConfig.from_settings(settings))
    manager = BatchQueueManager(
        library_repo,
        client,
        throttle_delay=settings.translation_throttle_delay,
        default_target_code=settings.target_code,
    )

    app.state.library = library_repo
    app.state.storage = storage
    app.state.importer = ImportOrchestrator(
        library_repo, storage, max_file_size_mb=settings.max_upload_size_mb
    )
    app.state.translation_client = client
    app.state.batch_manager = manager

    # Startup: Return chapters interrupted by a crash to the queue
    await manager.recover_orphans()
    logger.info("Library ready: storage=%s", settings.storage_dir)

    yield

    # Shutdown: queue rows stay in the database; unfinished items are
    # recovered on the next startup
    await client.aclose()
    await engine.dispose()


app = FastAPI(
    title=settings.app_name,
    description="Novel library with multi-format import and LLM chapter translation",
    version="0.1.0",
    lifespan=lifespan,
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(imports.router, prefix="/api/v1", tags=["imports"])
app.include_router(library.router, prefix="/api/v1", tags=["library"])
app.include_router(translation.router, prefix="/api/v1", tags=["translation"])
app.include_router(batch.router, prefix="/api/v1", tags=["batch"])


@app.get("/")
async def root():
    """Root endpoint."""
    return {"message": "NovelShelf API", "version": "0.1.0"}


@app.get("/health")
async def health():
    """Health check endpoint."""
    return {"status": "healthy"}
