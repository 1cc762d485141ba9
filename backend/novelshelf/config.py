"""Application configuration."""

from pathlib import Path
from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict

from novelshelf.core.llm.prompts import DEFAULT_INSTRUCTION, DEFAULT_SYSTEM_PROMPT

DATA_DIR = Path(__file__).parent.parent.parent / "data"


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Application
    app_name: str = "NovelShelf"
    debug: bool = False

    # Server
    host: str = "0.0.0.0"
    port: int = 8000
    frontend_port: int = 5173

    # Database
    database_url: str = "sqlite+aiosqlite:///./novelshelf.db"

    # File storage (novel images live in {storage_dir}/novels/{slug}/images/)
    storage_dir: Path = DATA_DIR / "library"
    upload_dir: Path = DATA_DIR / "temp" / "uploads"

    # Upload limits
    max_upload_size_mb: int = 150

    # Translation endpoint (any OpenAI-compatible chat completions API)
    translation_api_url: str = "https://api.openai.com/v1"
    translation_api_key: Optional[str] = None
    translation_model: str = "gpt-4o-mini"
    translation_system_prompt: str = DEFAULT_SYSTEM_PROMPT
    translation_instruction: str = DEFAULT_INSTRUCTION
    translation_temperature: float = 0.3
    translation_max_tokens: int = 4000
    translation_top_p: Optional[float] = 0.9
    request_timeout_seconds: float = 300.0

    # Language defaults for batch translation
    source_language: str = "en"
    target_language: str = "ru"
    target_code: str = "ru"

    # Batch queue
    translation_throttle_delay: float = 0.5  # Delay between chapters (seconds)

    # CORS - built from frontend_port when empty
    cors_origins: list[str] = []

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    def __init__(self, **kwargs):
        super().__init__(**kwargs)
        if not self.cors_origins:
            self.cors_origins = [
                f"http://localhost:{self.frontend_port}",
                f"http://127.0.0.1:{self.frontend_port}",
            ]


settings = Settings()
