from __future__ import annotations

from typing import Any, Sequence
import re

RESPONSE_TIME_RE = re.compile(r"\n\n_Response time: \d+s_$")
DEFAULT_HISTORY_LIMIT = 20

__all__ = [
    "DEFAULT_HISTORY_LIMIT",
    "append_image_markdown",
    "build_messages",
    "clean_title",
    "first_image_url",
    "strip_response_time",
    "trim_history",
    "with_response_time",
]


def strip_response_time(content: str | None) -> str:
    """Remove the ``_Response time: Ns_`` footer stored on assistant replies."""
    if not content:
        return ""
    return RESPONSE_TIME_RE.sub("", content)


def with_response_time(content: str, seconds: int) -> str:
    return f"{content}\n\n_Response time: {seconds}s_"


def trim_history(
    messages: Sequence[dict[str, Any]],
    limit: int = DEFAULT_HISTORY_LIMIT,
) -> list[dict[str, Any]]:
    """Keep the most recent ``limit`` messages, oldest first."""
    if limit <= 0:
        return []
    return list(messages[-limit:])


def build_messages(
    history: Sequence[dict[str, Any]],
    message: str,
    system_prompt: str | None = None,
) -> list[dict[str, str]]:
    messages: list[dict[str, str]] = []
    if system_prompt:
        messages.append({"role": "system", "content": system_prompt})
    for item in history:
        messages.append(
            {
                "role": str(item.get("role") or "user"),
                "content": strip_response_time(item.get("content")),
            }
        )
    messages.append({"role": "user", "content": message})
    return messages


def first_image_url(images: Sequence[Any] | None) -> str | None:
    if not images:
        return None
    first = images[0]
    if isinstance(first, str):
        return first or None
    if isinstance(first, dict):
        image_url = first.get("image_url")
        if isinstance(image_url, dict):
            return image_url.get("url") or None
        if isinstance(image_url, str):
            return image_url or None
        return first.get("url") or None
    return None


def append_image_markdown(content: str, images: Sequence[Any] | None) -> str:
    """Embed the first generated image below the reply as markdown."""
    url = first_image_url(images)
    if not url:
        return content
    return f"{content}\n\n![]({url})"


def clean_title(raw: str | None, max_length: int = 50) -> str:
    if not raw:
        return ""
    first_line = raw.strip().splitlines()[0] if raw.strip() else ""
    title = first_line.replace('"', "").replace("'", "").strip()
    return title[:max_length].rstrip()
