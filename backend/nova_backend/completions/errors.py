from __future__ import annotations

from http import HTTPStatus
from typing import Any

from flask import jsonify

from ..ai.errors import (
    AIProviderError,
    ChatRequestError,
    NotConfiguredError,
    PaymentRequiredError,
    RateLimitError,
)


def ai_error_response(exc: Exception) -> tuple[Any, int]:
    """Translate provider and request errors into JSON error responses."""
    if isinstance(exc, ChatRequestError):
        return jsonify({"error": "validation_error", "message": str(exc)}), HTTPStatus.BAD_REQUEST
    if isinstance(exc, RateLimitError):
        return jsonify({"error": "rate_limited", "message": str(exc)}), HTTPStatus.TOO_MANY_REQUESTS
    if isinstance(exc, PaymentRequiredError):
        return jsonify({"error": "payment_required", "message": str(exc)}), HTTPStatus.PAYMENT_REQUIRED
    if isinstance(exc, NotConfiguredError):
        return jsonify({"error": "not_configured", "message": str(exc)}), HTTPStatus.SERVICE_UNAVAILABLE
    if isinstance(exc, AIProviderError):
        return jsonify({"error": "ai_error", "message": str(exc)}), HTTPStatus.BAD_GATEWAY
    return (
        jsonify({"error": "internal_error", "message": str(exc) or "Internal server error"}),
        HTTPStatus.INTERNAL_SERVER_ERROR,
    )
