"""Chapter translation through a streaming chat-completion API.

Translations are cached per (chapter, target code): a cached chapter is
returned immediately without touching the network. Uncached chapters are
streamed; every content delta is appended to the running text and the
whole text so far is handed to ``on_chunk`` so callers can render partial
results.
"""

import json
import logging
from typing import Any, Callable, Optional

import httpx
from litellm import acompletion

from novelshelf.core.library import LibraryRepository
from novelshelf.core.llm.prompts import build_messages
from novelshelf.core.llm.runtime_config import TranslationRuntimeConfig
from novelshelf.core.llm.sse import SSEDecoder, SSEEvent

logger = logging.getLogger(__name__)

# Error bodies longer than this are HTML error pages, not API messages
MAX_ERROR_BODY_LENGTH = 500
ENDPOINT_ERROR_MESSAGE = "Invalid server URL or API key. Check the settings."
NETWORK_ERROR_MESSAGE = "Network error. Check your internet connection."
CONNECT_TIMEOUT = 30.0

ChunkCallback = Callable[[str], Any]


class TranslationError(Exception):
    """Base class for translation failures."""


class TranslationConfigError(TranslationError):
    """The client is not configured well enough to send a request."""


class TranslationAPIError(TranslationError):
    """The API answered with a non-2xx status."""

    def __init__(self, status_code: int, message: str):
        self.status_code = status_code
        self.message = message
        super().__init__(f"Translation failed (status {status_code}): {message}")


class TranslationNetworkError(TranslationError):
    """The request never got a complete answer (DNS, connect, reset, timeout)."""


class TranslationCancelledError(TranslationError):
    """The request was cancelled by the caller."""


class CancellationToken:
    """Cooperative cancellation flag checked between streamed chunks."""

    def __init__(self):
        self._cancelled = False

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def cancel(self) -> None:
        self._cancelled = True


def parse_error_message(body: str) -> str:
    """Human readable message from an error response body."""
    if len(body) > MAX_ERROR_BODY_LENGTH:
        return ENDPOINT_ERROR_MESSAGE
    try:
        data = json.loads(body)
    except ValueError:
        return body.strip() or ENDPOINT_ERROR_MESSAGE

    if isinstance(data, dict):
        error = data.get("error")
        if isinstance(error, dict) and error.get("message"):
            return str(error["message"])
        if isinstance(error, str) and error:
            return error
        if data.get("message"):
            return str(data["message"])
    return body.strip() or ENDPOINT_ERROR_MESSAGE


class TranslationClient:
    """Translate chapter text, caching results in the library database."""

    def __init__(
        self,
        library: LibraryRepository,
        config: TranslationRuntimeConfig,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        self.library = library
        self._config = config
        self._http_client = http_client
        self._owns_http_client = http_client is None

    @property
    def config(self) -> TranslationRuntimeConfig:
        return self._config

    def update_config(self, **overrides: Any) -> TranslationRuntimeConfig:
        """Replace configuration fields (e.g. after the user edits settings)."""
        self._config = self._config.with_overrides(**overrides)
        logger.info(
            "[Translation] Config updated: url=%s model=%s",
            self._config.base_url, self._config.model,
        )
        return self._config

    async def translate(
        self,
        chapter_id: int,
        source_lang: str,
        target_lang: str,
        target_code: str,
        source_content: str,
        on_chunk: Optional[ChunkCallback] = None,
        cancel_token: Optional[CancellationToken] = None,
    ) -> str:
        """Translate one chapter, using the cache when possible.

        Args:
            chapter_id: Chapter being translated (cache key)
            source_lang: Source language code
            target_lang: Target language code
            target_code: Target variant code (cache key)
            source_content: Chapter text
            on_chunk: Receives the accumulated translation after each delta
            cancel_token: Aborts the stream when cancelled

        Returns:
            Full translated text

        Raises:
            TranslationConfigError: No API key configured
            TranslationAPIError: Non-2xx response
            TranslationNetworkError: Transport failure or timeout
            TranslationCancelledError: ``cancel_token`` was cancelled mid-stream
        """
        cached = await self.library.get_cached_translation(chapter_id, target_code)
        if cached is not None:
            logger.info(
                "[Translation] Cache hit for chapter %d (%s)", chapter_id, target_code
            )
            return cached.translated_content

        text = await self._stream_completion(
            source_content, source_lang, target_lang, on_chunk, cancel_token
        )

        await self.library.save_cached_translation(
            chapter_id, source_lang, target_lang, target_code, text
        )
        logger.info(
            "[Translation] Chapter %d translated (%d chars)", chapter_id, len(text)
        )
        return text

    async def _stream_completion(
        self,
        source_content: str,
        source_lang: str,
        target_lang: str,
        on_chunk: Optional[ChunkCallback],
        cancel_token: Optional[CancellationToken],
    ) -> str:
        config = self._config
        if not config.api_key:
            raise TranslationConfigError("API key is not configured. Check the settings.")

        messages = build_messages(
            config.system_prompt, config.instruction, source_content,
            source_lang, target_lang,
        )
        headers = {
            "Authorization": f"Bearer {config.api_key}",
            "Content-Type": "application/json",
            "Accept": "text/event-stream",
        }
        timeout = httpx.Timeout(config.request_timeout, connect=CONNECT_TIMEOUT)

        decoder = SSEDecoder()
        translated = ""

        def apply(events: list[SSEEvent]) -> None:
            nonlocal translated
            for event in events:
                delta = event.text
                if delta:
                    translated += delta
                    if on_chunk is not None:
                        on_chunk(translated)

        if on_chunk is not None:
            on_chunk("")

        try:
            async with self._client().stream(
                "POST",
                config.completions_url,
                json=config.to_request_body(messages),
                headers=headers,
                timeout=timeout,
            ) as response:
                if not response.is_success:
                    body = (await response.aread()).decode("utf-8", errors="replace")
                    raise TranslationAPIError(response.status_code, parse_error_message(body))

                async for chunk in response.aiter_text():
                    if cancel_token is not None and cancel_token.cancelled:
                        raise TranslationCancelledError("Translation cancelled")
                    apply(decoder.feed(chunk))
                apply(decoder.flush())
        except httpx.TimeoutException as e:
            logger.warning("[Translation] Request timed out: %s", e)
            raise TranslationNetworkError(NETWORK_ERROR_MESSAGE) from e
        except httpx.TransportError as e:
            logger.warning("[Translation] Transport error: %s", e)
            raise TranslationNetworkError(NETWORK_ERROR_MESSAGE) from e

        if not translated:
            raise TranslationError("The API returned an empty translation")
        return translated

    def _client(self) -> httpx.AsyncClient:
        if self._http_client is None:
            self._http_client = httpx.AsyncClient()
        return self._http_client

    async def check_connection(self) -> bool:
        """Send a tiny non-streamed request to verify URL, key and model.

        Returns:
            True if the endpoint answered successfully
        """
        if not self._config.api_key:
            return False
        try:
            kwargs = self._config.to_litellm_kwargs()
            kwargs["messages"] = [{"role": "user", "content": "Hi"}]
            kwargs["max_tokens"] = 5
            await acompletion(**kwargs)
            return True
        except Exception as e:
            logger.warning(f"[Translation] Connection check failed for {self._config.model}: {e}")
            return False

    async def cache_size(self) -> int:
        return await self.library.count_cached_translations()

    async def clear_cache(self) -> int:
        removed = await self.library.clear_translation_cache()
        logger.info("[Translation] Cleared %d cached translations", removed)
        return removed

    async def aclose(self) -> None:
        if self._owns_http_client and self._http_client is not None:
            await self._http_client.aclose()
            self._http_client = None
