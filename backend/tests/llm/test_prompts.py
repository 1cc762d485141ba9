# tests/llm/test_prompts.py
from novelshelf.core.llm.prompts import (
    DEFAULT_INSTRUCTION,
    TEXT_SEPARATOR,
    build_messages,
    build_user_prompt,
    language_name,
)
from novelshelf.core.llm.runtime_config import TranslationRuntimeConfig


class TestPrompts:

    def test_language_name(self):
        assert language_name("RU") == "Russian"
        assert language_name("xx") == "xx"

    def test_user_prompt_fills_languages(self):
        prompt = build_user_prompt(DEFAULT_INSTRUCTION, "Hello", "en", "ru")
        assert "from English to Russian" in prompt
        assert prompt.endswith(TEXT_SEPARATOR + "Hello")

    def test_messages_without_system_prompt(self):
        messages = build_messages("", "Translate.", "Text", "en", "de")
        assert messages == [{"role": "user", "content": "Translate." + TEXT_SEPARATOR + "Text"}]


class TestRuntimeConfig:

    def test_request_body(self):
        config = TranslationRuntimeConfig(model="m", temperature=0.5, max_tokens=100, top_p=None)
        body = config.to_request_body([{"role": "user", "content": "x"}])
        assert body == {
            "model": "m",
            "messages": [{"role": "user", "content": "x"}],
            "stream": True,
            "temperature": 0.5,
            "max_tokens": 100,
        }

    def test_completions_url(self):
        config = TranslationRuntimeConfig(base_url="http://localhost:8080/v1/")
        assert config.completions_url == "http://localhost:8080/v1/chat/completions"

    def test_overrides_ignore_none(self):
        config = TranslationRuntimeConfig(api_key="k", model="a")
        updated = config.with_overrides(model="b", api_key=None)
        assert (updated.model, updated.api_key) == ("b", "k")
        assert config.model == "a"

    def test_litellm_kwargs(self):
        kwargs = TranslationRuntimeConfig(api_key="k", model="m", base_url="http://h/v1/").to_litellm_kwargs()
        assert kwargs["model"] == "openai/m"
        assert kwargs["api_base"] == "http://h/v1"
