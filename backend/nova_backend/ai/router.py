"""Route chat requests to the upstream provider selected by the model name.

``claude*`` models go to Anthropic's native API, bare ``gemini-*`` ids go to
the Gemini SDK, and everything else (``google/...``, ``openai/...``) goes
through the OpenAI-compatible gateway.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Mapping, Optional
import logging

from . import anthropic, gateway, gemini
from .errors import ChatRequestError, NotConfiguredError
from .history import DEFAULT_HISTORY_LIMIT, build_messages, clean_title, trim_history
from .prompts import (
    CHAT_SYSTEM_PROMPT,
    CLAUDE_SYSTEM_PROMPT,
    DEFAULT_MODEL,
    IMAGE_FALLBACK_RESPONSE,
    IMAGE_MODEL,
    IMAGE_SYSTEM_PROMPT,
    TITLE_MODEL,
    title_prompt,
)

log = logging.getLogger(__name__)

PROVIDER_ANTHROPIC = "anthropic"
PROVIDER_GEMINI = "gemini"
PROVIDER_GATEWAY = "gateway"


@dataclass(slots=True)
class ProviderSettings:
    gateway_url: str
    gateway_api_key: Optional[str] = None
    anthropic_api_key: Optional[str] = None
    gemini_api_key: Optional[str] = None
    history_limit: int = DEFAULT_HISTORY_LIMIT

    @classmethod
    def from_mapping(cls, config: Mapping[str, Any]) -> "ProviderSettings":
        return cls(
            gateway_url=config.get("AI_GATEWAY_URL") or "",
            gateway_api_key=config.get("AI_GATEWAY_API_KEY"),
            anthropic_api_key=config.get("ANTHROPIC_API_KEY"),
            gemini_api_key=config.get("GEMINI_API_KEY"),
            history_limit=int(config.get("HISTORY_LIMIT", DEFAULT_HISTORY_LIMIT)),
        )


@dataclass(slots=True)
class ChatRequest:
    message: str
    model: str = DEFAULT_MODEL
    generate_image: bool = False
    history: list[dict[str, Any]] = field(default_factory=list)


@dataclass(slots=True)
class ChatResult:
    response: str
    model: str
    images: Optional[list[Any]] = None

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"response": self.response}
        if self.images:
            payload["images"] = self.images
        return payload


def select_provider(model: str) -> str:
    if model.startswith("claude"):
        return PROVIDER_ANTHROPIC
    if model.startswith("gemini-"):
        return PROVIDER_GEMINI
    return PROVIDER_GATEWAY


def complete(request: ChatRequest, settings: ProviderSettings) -> ChatResult:
    """Run one chat turn against the provider matching ``request.model``."""

    message = (request.message or "").strip()
    if not message:
        raise ChatRequestError("Message is required")

    model = request.model or DEFAULT_MODEL
    provider = select_provider(model)
    history = trim_history(request.history, settings.history_limit)

    if provider == PROVIDER_ANTHROPIC and not request.generate_image:
        if not settings.anthropic_api_key:
            raise NotConfiguredError("ANTHROPIC_API_KEY is not configured")
        messages = build_messages(history, request.message)
        text = anthropic.create_message(
            messages,
            api_key=settings.anthropic_api_key,
            model=model,
            system=CLAUDE_SYSTEM_PROMPT,
        )
        return ChatResult(response=text, model=model)

    if provider == PROVIDER_GEMINI and not request.generate_image:
        if not settings.gemini_api_key:
            raise NotConfiguredError("GEMINI_API_KEY is not configured")
        messages = build_messages(history, request.message, CHAT_SYSTEM_PROMPT)
        text = gemini.generate_reply(messages, api_key=settings.gemini_api_key, model=model)
        return ChatResult(response=text, model=model)

    if not settings.gateway_api_key:
        raise NotConfiguredError("AI_GATEWAY_API_KEY is not configured")

    if request.generate_image:
        upstream_model = IMAGE_MODEL
        system_prompt = IMAGE_SYSTEM_PROMPT
        modalities: list[str] | None = ["image", "text"]
    else:
        upstream_model = model
        system_prompt = CHAT_SYSTEM_PROMPT
        modalities = None

    messages = build_messages(history, request.message, system_prompt)
    text, images = gateway.chat_completion(
        messages,
        api_key=settings.gateway_api_key,
        url=settings.gateway_url,
        model=upstream_model,
        modalities=modalities,
    )
    return ChatResult(
        response=text or IMAGE_FALLBACK_RESPONSE,
        model=upstream_model,
        images=images,
    )


def generate_title(first_message: str, settings: ProviderSettings) -> str:
    """Ask the title model for a short chat title."""
    result = complete(
        ChatRequest(message=title_prompt(first_message), model=TITLE_MODEL),
        settings,
    )
    return clean_title(result.response)
