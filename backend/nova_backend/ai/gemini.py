from __future__ import annotations

from typing import Any, Dict, Sequence
import logging

from google import genai
from google.genai import types

from .errors import AIProviderError
from .prompts import TRANSCRIPTION_PROMPT

DEFAULT_MODEL = "gemini-2.5-flash"

_client_cache: Dict[str, genai.Client] = {}

log = logging.getLogger(__name__)


class GeminiAPIError(AIProviderError):
    """Raised when the Gemini API responds with an error."""


def _format_messages(messages: Sequence[dict[str, Any]]) -> tuple[list[types.Content], str | None]:
    """Convert chat messages into Gemini contents plus a system instruction."""
    contents: list[types.Content] = []
    system_parts: list[str] = []

    role_map = {
        "user": "user",
        "assistant": "model",
        "model": "model",
    }

    for message in messages:
        raw_role = message.get("role", "user")
        text = message.get("content", "")
        if not isinstance(text, str):
            continue
        text = text.strip()

        if raw_role == "system":
            if text:
                system_parts.append(text)
            continue

        parts: list[types.Part] = []
        data = message.get("data")
        mime_type = message.get("mime_type")
        if isinstance(data, (bytes, bytearray)) and mime_type:
            try:
                parts.append(types.Part.from_bytes(data=bytes(data), mime_type=str(mime_type)))
            except Exception as exc:
                log.warning("Failed to attach inline bytes (%s): %s", mime_type, exc)

        if text:
            parts.append(types.Part.from_text(text=text))

        if not parts:
            continue

        contents.append(types.Content(role=role_map.get(raw_role, "user"), parts=parts))

    system_instruction = "\n\n".join(system_parts) or None
    return contents, system_instruction


def _get_client(api_key: str) -> genai.Client:
    client = _client_cache.get(api_key)
    if client is None:
        client = genai.Client(api_key=api_key)
        _client_cache[api_key] = client
    return client


def _generate(
    client: genai.Client,
    *,
    model: str,
    contents: list[types.Content],
    system_instruction: str | None,
) -> Any:
    config = None
    if system_instruction:
        config = types.GenerateContentConfig(system_instruction=system_instruction)

    try:
        if config is None:
            return client.models.generate_content(model=model, contents=contents)
        return client.models.generate_content(model=model, contents=contents, config=config)
    except TypeError as exc:
        # Older SDK builds reject ``config``; fold the instruction into the prompt.
        log.debug("generate_content TypeError: %s", exc)
        if config is None:
            raise GeminiAPIError(str(exc)) from exc
        prefixed = [
            types.Content(role="user", parts=[types.Part.from_text(text=system_instruction)]),
            *contents,
        ]
        try:
            return client.models.generate_content(model=model, contents=prefixed)
        except Exception as exc2:
            raise GeminiAPIError(str(exc2)) from exc2
    except Exception as exc:
        raise GeminiAPIError(str(exc)) from exc


def generate_reply(
    messages: Sequence[dict[str, Any]],
    api_key: str,
    model: str = DEFAULT_MODEL,
) -> str:
    """Call the Gemini API with the provided conversation history."""

    contents, system_instruction = _format_messages(messages)
    if not contents:
        raise GeminiAPIError("At least one message with content is required.")

    client = _get_client(api_key)

    response = _generate(
        client,
        model=model,
        contents=contents,
        system_instruction=system_instruction,
    )

    reply_text = (getattr(response, "text", None) or "").strip()
    if not reply_text:
        raise GeminiAPIError("Gemini API returned an empty response")

    return reply_text


def transcribe_audio(
    data: bytes,
    mime_type: str,
    api_key: str,
    *,
    language: str | None = None,
    model: str = DEFAULT_MODEL,
) -> str:
    """Transcribe spoken audio into text."""

    if not data:
        raise GeminiAPIError("Audio payload is empty.")

    prompt = TRANSCRIPTION_PROMPT
    if language:
        prompt = f"{prompt} The speaker is using the language '{language}'."

    messages = [{"role": "user", "content": prompt, "data": data, "mime_type": mime_type}]

    try:
        transcript = generate_reply(messages, api_key=api_key, model=model)
    except GeminiAPIError as exc:
        raise GeminiAPIError(f"Failed to transcribe audio: {exc}") from exc

    return transcript
