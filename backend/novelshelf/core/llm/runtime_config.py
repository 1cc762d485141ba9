"""Runtime configuration for the translation endpoint."""

from dataclasses import dataclass, replace
from typing import Any, Dict, Optional

from novelshelf.core.llm.prompts import DEFAULT_INSTRUCTION, DEFAULT_SYSTEM_PROMPT


@dataclass
class TranslationRuntimeConfig:
    """Everything needed to issue one chat-completion request.

    All generation parameters sent to the API come from here.
    """

    # Connection parameters
    api_key: Optional[str] = None
    base_url: str = "https://api.openai.com/v1"
    model: str = "gpt-4o-mini"

    # Prompts
    system_prompt: str = DEFAULT_SYSTEM_PROMPT
    instruction: str = DEFAULT_INSTRUCTION

    # Generation parameters
    temperature: float = 0.3
    max_tokens: int = 4000
    top_p: Optional[float] = 0.9

    # Read timeout for one whole streamed response (seconds)
    request_timeout: float = 300.0

    @classmethod
    def from_settings(cls, settings) -> "TranslationRuntimeConfig":
        return cls(
            api_key=settings.translation_api_key,
            base_url=settings.translation_api_url,
            model=settings.translation_model,
            system_prompt=settings.translation_system_prompt,
            instruction=settings.translation_instruction,
            temperature=settings.translation_temperature,
            max_tokens=settings.translation_max_tokens,
            top_p=settings.translation_top_p,
            request_timeout=settings.request_timeout_seconds,
        )

    @property
    def completions_url(self) -> str:
        return f"{self.base_url.rstrip('/')}/chat/completions"

    def to_request_body(self, messages: list[dict], stream: bool = True) -> Dict[str, Any]:
        """JSON body for ``POST /chat/completions``."""
        body: Dict[str, Any] = {
            "model": self.model,
            "messages": messages,
            "stream": stream,
            "temperature": self.temperature,
            "max_tokens": self.max_tokens,
        }
        if self.top_p is not None:
            body["top_p"] = self.top_p
        return body

    def to_litellm_kwargs(self) -> Dict[str, Any]:
        """Kwargs for ``litellm.acompletion()`` against the same endpoint."""
        return {
            "model": f"openai/{self.model}",
            "api_key": self.api_key,
            "api_base": self.base_url.rstrip("/"),
            "temperature": self.temperature,
            "timeout": self.request_timeout,
        }

    def with_overrides(self, **overrides: Any) -> "TranslationRuntimeConfig":
        """Copy with the given fields replaced; ``None`` values are ignored."""
        return replace(self, **{k: v for k, v in overrides.items() if v is not None})
