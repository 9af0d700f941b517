"""Client for the OpenAI-compatible AI gateway (Gemini and GPT models)."""
from __future__ import annotations

from typing import Any, Sequence
import logging

import requests

from .errors import AIProviderError, PaymentRequiredError, RateLimitError

log = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 120


def chat_completion(
    messages: Sequence[dict[str, Any]],
    *,
    api_key: str,
    url: str,
    model: str,
    modalities: Sequence[str] | None = None,
    timeout: int = DEFAULT_TIMEOUT,
) -> tuple[str | None, list[Any] | None]:
    """Send a chat completion request and return ``(text, images)``."""

    body: dict[str, Any] = {
        "model": model,
        "messages": list(messages),
    }
    if modalities:
        body["modalities"] = list(modalities)

    try:
        response = requests.post(
            url,
            headers={
                "Authorization": f"Bearer {api_key}",
                "Content-Type": "application/json",
            },
            json=body,
            timeout=timeout,
        )
    except requests.RequestException as exc:
        raise AIProviderError(f"AI gateway request failed: {exc}") from exc

    if not response.ok:
        log.error("AI gateway error: %s %s", response.status_code, response.text)
        if response.status_code == 429:
            raise RateLimitError("Rate limit exceeded. Please try again later.")
        if response.status_code == 402:
            raise PaymentRequiredError("Payment required. Please add credits to continue.")
        raise AIProviderError(
            f"AI gateway error: {response.status_code}",
            status_code=response.status_code,
        )

    try:
        data = response.json()
    except ValueError as exc:
        raise AIProviderError("AI gateway returned invalid JSON") from exc

    choices = data.get("choices") or []
    message = (choices[0].get("message") if choices else None) or {}
    text = message.get("content") or None
    images = message.get("images") or None

    if not text and not images:
        raise AIProviderError("No response from AI")

    return text, images
