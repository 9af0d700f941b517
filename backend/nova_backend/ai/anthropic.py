"""Client for Anthropic's native Messages API (``claude*`` models)."""
from __future__ import annotations

from typing import Any, Sequence
import logging

import requests

from .errors import AIProviderError

log = logging.getLogger(__name__)

ANTHROPIC_MESSAGES_URL = "https://api.anthropic.com/v1/messages"
ANTHROPIC_VERSION = "2023-06-01"
MAX_TOKENS = 4096
DEFAULT_TIMEOUT = 120


def create_message(
    messages: Sequence[dict[str, Any]],
    *,
    api_key: str,
    model: str,
    system: str | None = None,
    max_tokens: int = MAX_TOKENS,
    timeout: int = DEFAULT_TIMEOUT,
) -> str:
    """Call the Messages API and return the first text block of the reply."""

    # The Messages API takes the system prompt as a top-level field only.
    conversation = [
        {"role": item.get("role"), "content": item.get("content", "")}
        for item in messages
        if item.get("role") in {"user", "assistant"}
    ]

    body: dict[str, Any] = {
        "model": model,
        "max_tokens": max_tokens,
        "messages": conversation,
    }
    if system:
        body["system"] = system

    try:
        response = requests.post(
            ANTHROPIC_MESSAGES_URL,
            headers={
                "x-api-key": api_key,
                "anthropic-version": ANTHROPIC_VERSION,
                "Content-Type": "application/json",
            },
            json=body,
            timeout=timeout,
        )
    except requests.RequestException as exc:
        raise AIProviderError(f"Anthropic request failed: {exc}") from exc

    if not response.ok:
        log.error("Anthropic API error: %s %s", response.status_code, response.text)
        raise AIProviderError(
            f"Anthropic API error: {response.status_code}",
            status_code=response.status_code,
        )

    try:
        data = response.json()
    except ValueError as exc:
        raise AIProviderError("Anthropic API returned invalid JSON") from exc

    blocks = data.get("content") or []
    text = None
    if blocks and isinstance(blocks[0], dict):
        text = blocks[0].get("text")

    if not text:
        raise AIProviderError("No response from Claude")

    return text
