"""Prompt text for chapter translation."""

from typing import Optional

DEFAULT_SYSTEM_PROMPT = (
    "You are a professional novel translator. "
    "Translate text preserving literary style and tone."
)

DEFAULT_INSTRUCTION = (
    "Translate the following novel chapter from {source_language} to "
    "{target_language}. Keep the paragraph structure, dialogue formatting "
    "and names consistent. Output only the translation, without comments."
)

TEXT_SEPARATOR = "\n\nText to translate:\n"

LANGUAGE_NAMES = {
    "en": "English",
    "ru": "Russian",
    "uk": "Ukrainian",
    "de": "German",
    "fr": "French",
    "es": "Spanish",
    "it": "Italian",
    "pt": "Portuguese",
    "pl": "Polish",
    "zh": "Chinese",
    "ja": "Japanese",
    "ko": "Korean",
}


def language_name(code: str) -> str:
    """``"ru"`` -> ``"Russian"``; unknown codes are returned unchanged."""
    return LANGUAGE_NAMES.get((code or "").lower(), code)


def build_user_prompt(
    instruction: str, text: str, source_lang: str, target_lang: str
) -> str:
    """Instruction (with language placeholders filled) followed by the text."""
    rendered = instruction.replace(
        "{source_language}", language_name(source_lang)
    ).replace("{target_language}", language_name(target_lang))
    return f"{rendered}{TEXT_SEPARATOR}{text}"


def build_messages(
    system_prompt: Optional[str],
    instruction: str,
    text: str,
    source_lang: str,
    target_lang: str,
) -> list[dict]:
    messages = []
    if system_prompt:
        messages.append({"role": "system", "content": system_prompt})
    messages.append({
        "role": "user",
        "content": build_user_prompt(instruction, text, source_lang, target_lang),
    })
    return messages
