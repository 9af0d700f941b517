from __future__ import annotations


class AIProviderError(RuntimeError):
    """Raised when an upstream model API responds with an error."""

    status_code: int | None = None

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        if status_code is not None:
            self.status_code = status_code


class RateLimitError(AIProviderError):
    """The upstream provider rejected the call with HTTP 429."""

    status_code = 429


class PaymentRequiredError(AIProviderError):
    """The upstream account is out of credits (HTTP 402)."""

    status_code = 402


class NotConfiguredError(AIProviderError):
    """A provider was selected but its API key is missing."""


class ChatRequestError(ValueError):
    """Raised when a chat request is malformed."""
