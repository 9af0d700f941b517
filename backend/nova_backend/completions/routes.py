from __future__ import annotations

from http import HTTPStatus
from typing import Any
import logging
import mimetypes

from flask import Blueprint, current_app, g, jsonify, request

from ..ai import gemini
from ..ai.errors import AIProviderError, ChatRequestError
from ..ai.prompts import DEFAULT_MODEL
from ..ai.router import ChatRequest, ProviderSettings, complete
from ..auth.session import login_required
from ..chats.service import (
    ChatNotFoundError,
    ChatPermissionError,
    ChatStoreError,
    get_chat_for_user,
    load_history,
)
from .catalog import MODELS, QUICK_PROMPTS
from .errors import ai_error_response

completions_bp = Blueprint("completions", __name__)
log = logging.getLogger(__name__)

MAX_AUDIO_BYTES = 20 * 1024 * 1024


def _parse_json_body() -> dict[str, Any]:
    if request.is_json:
        return request.get_json(silent=True) or {}
    return {}


@completions_bp.post("/chat")
@login_required
def chat() -> tuple[Any, int]:
    payload = _parse_json_body()

    message = payload.get("message")
    if not isinstance(message, str) or not message.strip():
        return (
            jsonify({"error": "validation_error", "message": "Message is required"}),
            HTTPStatus.BAD_REQUEST,
        )

    model = payload.get("model") or DEFAULT_MODEL
    if not isinstance(model, str):
        return (
            jsonify({"error": "validation_error", "message": "model must be a string."}),
            HTTPStatus.BAD_REQUEST,
        )

    history: list[dict[str, Any]] = []
    chat_id = payload.get("chatId")
    if chat_id:
        try:
            chat_ref, _ = get_chat_for_user(str(chat_id), g.uid)
            history = load_history(chat_ref, int(current_app.config.get("HISTORY_LIMIT", 20)))
        except ChatNotFoundError:
            return (
                jsonify({"error": "not_found", "message": "Chat not found."}),
                HTTPStatus.NOT_FOUND,
            )
        except ChatPermissionError:
            return (
                jsonify({"error": "forbidden", "message": "You do not have access to this chat."}),
                HTTPStatus.FORBIDDEN,
            )
        except ChatStoreError as exc:
            # History only adds context; answer without it.
            log.warning("Unable to load history for chat %s: %s", chat_id, exc)

    request_data = ChatRequest(
        message=message,
        model=model,
        generate_image=bool(payload.get("generateImage", False)),
        history=history,
    )

    try:
        result = complete(request_data, ProviderSettings.from_mapping(current_app.config))
    except (AIProviderError, ChatRequestError) as exc:
        log.error("Chat function error: %s", exc)
        return ai_error_response(exc)

    return jsonify(result.to_dict()), HTTPStatus.OK


@completions_bp.post("/transcriptions")
@login_required
def transcribe() -> tuple[Any, int]:
    upload = request.files.get("file")
    if upload is None or not upload.filename:
        return (
            jsonify({"error": "validation_error", "message": "file is required."}),
            HTTPStatus.BAD_REQUEST,
        )

    mime_type = upload.mimetype or mimetypes.guess_type(upload.filename)[0] or ""
    if not mime_type.startswith("audio/"):
        return (
            jsonify({"error": "validation_error", "message": "file must be an audio recording."}),
            HTTPStatus.BAD_REQUEST,
        )

    data = upload.read(MAX_AUDIO_BYTES + 1)
    if not data:
        return (
            jsonify({"error": "validation_error", "message": "Uploaded file is empty."}),
            HTTPStatus.BAD_REQUEST,
        )
    if len(data) > MAX_AUDIO_BYTES:
        return (
            jsonify({"error": "validation_error", "message": "File exceeds maximum allowed size."}),
            HTTPStatus.BAD_REQUEST,
        )

    api_key = current_app.config.get("GEMINI_API_KEY")
    if not api_key:
        return (
            jsonify({"error": "not_configured", "message": "GEMINI_API_KEY is not configured."}),
            HTTPStatus.SERVICE_UNAVAILABLE,
        )

    language = request.form.get("language") or None
    try:
        text = gemini.transcribe_audio(data, mime_type, api_key, language=language)
    except AIProviderError as exc:
        return ai_error_response(exc)

    return jsonify({"text": text}), HTTPStatus.OK


@completions_bp.get("/models")
def list_models() -> tuple[Any, int]:
    return jsonify({"items": MODELS, "quickPrompts": QUICK_PROMPTS}), HTTPStatus.OK
