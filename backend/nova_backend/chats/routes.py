from __future__ import annotations

from http import HTTPStatus
from typing import Any
import logging
import time

from flask import Blueprint, current_app, g, jsonify, request

from ..ai.errors import AIProviderError, ChatRequestError
from ..ai.history import append_image_markdown, with_response_time
from ..ai.prompts import DEFAULT_MODEL
from ..ai.router import ChatRequest, ProviderSettings, complete, generate_title
from ..auth.session import login_required
from ..completions.errors import ai_error_response
from .service import (
    DEFAULT_TITLE,
    ChatNotFoundError,
    ChatPermissionError,
    ChatStoreError,
    add_message,
    create_chat as store_create_chat,
    delete_chat as store_delete_chat,
    duplicate_chat as store_duplicate_chat,
    get_chat_for_user,
    list_chats as store_list_chats,
    list_messages as store_list_messages,
    load_history,
    rename_chat,
    serialize_chat,
    serialize_message,
    set_pinned,
    touch_chat,
)

chats_bp = Blueprint("chats", __name__, url_prefix="/chats")
log = logging.getLogger(__name__)

_TITLE_PREFIX_LENGTH = 50


def _parse_json_body() -> dict[str, Any]:
    if request.is_json:
        payload = request.get_json(silent=True) or {}
    else:
        payload = {}
    return payload


def _validation_error(message: str) -> tuple[Any, int]:
    return (
        jsonify({"error": "validation_error", "message": message}),
        HTTPStatus.BAD_REQUEST,
    )


def _store_error_response(exc: ChatStoreError) -> tuple[Any, int]:
    if isinstance(exc, ChatNotFoundError):
        return (
            jsonify({"error": "not_found", "message": "Chat not found."}),
            HTTPStatus.NOT_FOUND,
        )
    if isinstance(exc, ChatPermissionError):
        return (
            jsonify({"error": "forbidden", "message": "You do not have access to this chat."}),
            HTTPStatus.FORBIDDEN,
        )
    log.error("Chat store failure: %s", exc)
    return (
        jsonify(
            {
                "error": "firestore_service_unavailable",
                "message": "Chat storage is temporarily unavailable.",
                "detail": str(exc),
            }
        ),
        HTTPStatus.SERVICE_UNAVAILABLE,
    )


@chats_bp.post("")
@login_required
def create_chat() -> tuple[Any, int]:
    payload = _parse_json_body()
    title = payload.get("title") or DEFAULT_TITLE
    if not isinstance(title, str):
        return _validation_error("title must be a string.")

    try:
        chat_id, chat_data = store_create_chat(g.uid, title)
    except ChatStoreError as exc:
        return _store_error_response(exc)

    return jsonify(serialize_chat(chat_id, chat_data)), HTTPStatus.CREATED


@chats_bp.get("")
@login_required
def list_chats() -> tuple[Any, int]:
    try:
        chats = store_list_chats(g.uid, request.args.get("q"))
    except ChatStoreError as exc:
        return _store_error_response(exc)

    return jsonify({"items": [serialize_chat(chat_id, data) for chat_id, data in chats]}), HTTPStatus.OK


@chats_bp.get("/<chat_id>")
@login_required
def get_chat(chat_id: str) -> tuple[Any, int]:
    try:
        chat_ref, chat_data = get_chat_for_user(chat_id, g.uid)
        messages = store_list_messages(chat_ref)
    except ChatStoreError as exc:
        return _store_error_response(exc)

    return (
        jsonify(
            {
                "chat": serialize_chat(chat_ref.id, chat_data),
                "messages": [serialize_message(message_id, data) for message_id, data in messages],
            }
        ),
        HTTPStatus.OK,
    )


@chats_bp.patch("/<chat_id>")
@login_required
def update_chat(chat_id: str) -> tuple[Any, int]:
    payload = _parse_json_body()

    if "title" not in payload and "pinned" not in payload:
        return _validation_error("Nothing to update.")

    pinned = payload.get("pinned")
    if "pinned" in payload and not isinstance(pinned, bool):
        return _validation_error("pinned must be a boolean.")

    title = payload.get("title")
    if "title" in payload and (not isinstance(title, str) or not title.strip()):
        return _validation_error("title must be a non-empty string.")

    try:
        chat_data: dict[str, Any] = {}
        if "title" in payload:
            chat_id, chat_data = rename_chat(chat_id, g.uid, title)
        if "pinned" in payload:
            chat_id, chat_data = set_pinned(chat_id, g.uid, pinned)
    except ChatStoreError as exc:
        return _store_error_response(exc)

    return jsonify(serialize_chat(chat_id, chat_data)), HTTPStatus.OK


@chats_bp.post("/<chat_id>/pin")
@login_required
def toggle_pin(chat_id: str) -> tuple[Any, int]:
    try:
        chat_id, chat_data = set_pinned(chat_id, g.uid)
    except ChatStoreError as exc:
        return _store_error_response(exc)

    return jsonify(serialize_chat(chat_id, chat_data)), HTTPStatus.OK


@chats_bp.post("/<chat_id>/duplicate")
@login_required
def duplicate_chat(chat_id: str) -> tuple[Any, int]:
    try:
        new_id, chat_data = store_duplicate_chat(chat_id, g.uid)
    except ChatStoreError as exc:
        return _store_error_response(exc)

    return jsonify(serialize_chat(new_id, chat_data)), HTTPStatus.CREATED


@chats_bp.delete("/<chat_id>")
@login_required
def delete_chat(chat_id: str):
    try:
        store_delete_chat(chat_id, g.uid)
    except ChatStoreError as exc:
        return _store_error_response(exc)

    return ("", HTTPStatus.NO_CONTENT)


@chats_bp.get("/<chat_id>/messages")
@login_required
def list_messages(chat_id: str) -> tuple[Any, int]:
    try:
        chat_ref, _ = get_chat_for_user(chat_id, g.uid)
        messages = store_list_messages(chat_ref)
    except ChatStoreError as exc:
        return _store_error_response(exc)

    return (
        jsonify({"items": [serialize_message(message_id, data) for message_id, data in messages]}),
        HTTPStatus.OK,
    )


def _has_default_title(title: str, first_message: str) -> bool:
    clean = (title or "").strip()
    return (
        clean.lower() in {"", DEFAULT_TITLE.lower()}
        or clean == first_message[:_TITLE_PREFIX_LENGTH].strip()
    )


@chats_bp.post("/<chat_id>/messages")
@login_required
def send_message(chat_id: str) -> tuple[Any, int]:
    payload = _parse_json_body()

    content = payload.get("content")
    if not isinstance(content, str) or not content.strip():
        return _validation_error("content is required.")

    model = payload.get("model") or DEFAULT_MODEL
    if not isinstance(model, str):
        return _validation_error("model must be a string.")
    generate_image = bool(payload.get("generateImage", False))

    started = time.monotonic()
    history_limit = int(current_app.config.get("HISTORY_LIMIT", 20))

    try:
        chat_ref, chat_data = get_chat_for_user(chat_id, g.uid)
        # The proxy receives the new message separately, so history excludes it.
        history = load_history(chat_ref, history_limit)
        first_exchange = not history
        user_message_id, user_message = add_message(chat_ref, g.uid, "user", content)
    except ChatStoreError as exc:
        return _store_error_response(exc)

    settings = ProviderSettings.from_mapping(current_app.config)
    try:
        result = complete(
            ChatRequest(
                message=content,
                model=model,
                generate_image=generate_image,
                history=history,
            ),
            settings,
        )
    except (AIProviderError, ChatRequestError) as exc:
        response, status = ai_error_response(exc)
        body = response.get_json()
        body["userMessage"] = serialize_message(user_message_id, user_message)
        return jsonify(body), status

    elapsed = round(time.monotonic() - started)
    final_content = with_response_time(append_image_markdown(result.response, result.images), elapsed)

    try:
        assistant_id, assistant_message = add_message(chat_ref, g.uid, "assistant", final_content, model)
    except ChatStoreError as exc:
        return _store_error_response(exc)
    chat_data["updatedAt"] = assistant_message["createdAt"]

    updated_title: str | None = None
    if first_exchange and _has_default_title(chat_data.get("title") or "", content):
        try:
            updated_title = generate_title(content, settings)
        except (AIProviderError, ChatRequestError) as exc:
            log.warning("Unable to generate chat title: %s", exc)

    if updated_title:
        try:
            chat_data.update(touch_chat(chat_ref, assistant_message["createdAt"], title=updated_title))
        except ChatStoreError as exc:
            log.warning("Failed to persist chat title: %s", exc)

    return (
        jsonify(
            {
                "chat": serialize_chat(chat_ref.id, chat_data),
                "userMessage": serialize_message(user_message_id, user_message),
                "assistantMessage": serialize_message(assistant_id, assistant_message),
                "images": result.images or [],
            }
        ),
        HTTPStatus.CREATED,
    )
