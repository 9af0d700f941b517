"""Firestore access for chat threads and their messages.

Chats live in the top-level ``chats`` collection and carry the owner's
``uid``; messages are stored in a ``messages`` sub-collection ordered by
``createdAt``.
"""
from __future__ import annotations

from datetime import datetime, timedelta
from typing import Any, Iterable, Optional
import logging

from firebase_admin import firestore as firebase_firestore
from google.api_core import exceptions as google_exceptions

from ..ai.history import strip_response_time
from ..firebase import get_firestore_client
from ..timestamps import EPOCH, as_utc, to_iso, utc_now

log = logging.getLogger(__name__)

__all__ = [
    "DEFAULT_TITLE",
    "WELCOME_TITLE",
    "ChatNotFoundError",
    "ChatPermissionError",
    "ChatStoreError",
    "add_message",
    "create_chat",
    "delete_chat",
    "duplicate_chat",
    "get_chat_for_user",
    "list_chats",
    "list_messages",
    "load_history",
    "rename_chat",
    "serialize_chat",
    "serialize_message",
    "set_pinned",
    "touch_chat",
]

DEFAULT_TITLE = "New Chat"
WELCOME_TITLE = "Welcome Chat \U0001F44B"
MESSAGE_ROLES = frozenset({"user", "assistant"})
MAX_BATCH_WRITES = 500

_CHATS_COLLECTION = "chats"
_MESSAGES_COLLECTION = "messages"


class ChatStoreError(Exception):
    """Base exception for chat storage errors."""


class ChatNotFoundError(ChatStoreError):
    """Raised when a chat document does not exist."""


class ChatPermissionError(ChatStoreError):
    """Raised when a caller acts on a chat they do not own."""


def _chats_collection():
    return get_firestore_client().collection(_CHATS_COLLECTION)


def serialize_chat(doc_id: str, data: dict[str, Any]) -> dict[str, Any]:
    return {
        "id": doc_id,
        "uid": data.get("uid"),
        "title": data.get("title"),
        "pinned": bool(data.get("pinned", False)),
        "createdAt": to_iso(data.get("createdAt")),
        "updatedAt": to_iso(data.get("updatedAt")),
    }


def serialize_message(doc_id: str, data: dict[str, Any]) -> dict[str, Any]:
    return {
        "id": doc_id,
        "role": data.get("role"),
        "content": data.get("content"),
        "model": data.get("model"),
        "createdAt": to_iso(data.get("createdAt")),
    }


def create_chat(uid: str, title: str = DEFAULT_TITLE) -> tuple[str, dict[str, Any]]:
    now = utc_now()
    chat_data = {
        "uid": uid,
        "title": (title or "").strip() or DEFAULT_TITLE,
        "pinned": False,
        "createdAt": now,
        "updatedAt": now,
    }

    chat_ref = _chats_collection().document()
    try:
        chat_ref.set(chat_data)
    except (google_exceptions.PermissionDenied, google_exceptions.GoogleAPICallError) as exc:
        raise ChatStoreError(str(exc)) from exc

    return chat_ref.id, chat_data


def _sort_key(item: tuple[str, dict[str, Any]]) -> tuple[bool, datetime]:
    data = item[1]
    return bool(data.get("pinned")), as_utc(data.get("updatedAt")) or EPOCH


def list_chats(uid: str, query: Optional[str] = None) -> list[tuple[str, dict[str, Any]]]:
    """Return the user's chats, pinned first and most recently updated next."""
    try:
        docs = list(_chats_collection().where("uid", "==", uid).stream())
    except (google_exceptions.PermissionDenied, google_exceptions.GoogleAPICallError) as exc:
        raise ChatStoreError(str(exc)) from exc

    chats = [(doc.id, doc.to_dict() or {}) for doc in docs]

    needle = (query or "").strip().lower()
    if needle:
        chats = [item for item in chats if needle in str(item[1].get("title") or "").lower()]

    chats.sort(key=_sort_key, reverse=True)
    return chats


def get_chat_for_user(chat_id: str, uid: str):
    chat_ref = _chats_collection().document(chat_id)
    try:
        snapshot = chat_ref.get()
    except (google_exceptions.PermissionDenied, google_exceptions.GoogleAPICallError) as exc:
        raise ChatStoreError(str(exc)) from exc

    if not snapshot.exists:
        raise ChatNotFoundError(chat_id)

    data = snapshot.to_dict() or {}
    if data.get("uid") != uid:
        raise ChatPermissionError(chat_id)

    return chat_ref, data


def _update(chat_ref, updates: dict[str, Any]) -> None:
    try:
        chat_ref.update(updates)
    except (google_exceptions.PermissionDenied, google_exceptions.GoogleAPICallError) as exc:
        raise ChatStoreError(str(exc)) from exc


def touch_chat(chat_ref, when: Optional[datetime] = None, **fields: Any) -> dict[str, Any]:
    updates = {"updatedAt": when or utc_now(), **fields}
    _update(chat_ref, updates)
    return updates


def rename_chat(chat_id: str, uid: str, title: str) -> tuple[str, dict[str, Any]]:
    clean = (title or "").strip()
    if not clean:
        raise ValueError("title must not be empty.")

    chat_ref, chat_data = get_chat_for_user(chat_id, uid)
    chat_data.update(touch_chat(chat_ref, title=clean))
    return chat_ref.id, chat_data


def set_pinned(chat_id: str, uid: str, pinned: Optional[bool] = None) -> tuple[str, dict[str, Any]]:
    """Pin or unpin a chat. ``None`` toggles the current state."""
    chat_ref, chat_data = get_chat_for_user(chat_id, uid)
    value = (not bool(chat_data.get("pinned"))) if pinned is None else bool(pinned)
    _update(chat_ref, {"pinned": value})
    chat_data["pinned"] = value
    return chat_ref.id, chat_data


def _message_docs(chat_ref) -> list[Any]:
    query = chat_ref.collection(_MESSAGES_COLLECTION).order_by("createdAt")
    try:
        return list(query.stream())
    except (google_exceptions.PermissionDenied, google_exceptions.GoogleAPICallError) as exc:
        raise ChatStoreError(str(exc)) from exc


def list_messages(chat_ref) -> list[tuple[str, dict[str, Any]]]:
    return [(doc.id, doc.to_dict() or {}) for doc in _message_docs(chat_ref)]


def add_message(
    chat_ref,
    uid: str,
    role: str,
    content: str,
    model: Optional[str] = None,
    *,
    created_at: Optional[datetime] = None,
) -> tuple[str, dict[str, Any]]:
    if role not in MESSAGE_ROLES:
        raise ValueError("role must be 'user' or 'assistant'.")

    now = created_at or utc_now()
    message_data: dict[str, Any] = {
        "uid": uid,
        "role": role,
        "content": content,
        "createdAt": now,
    }
    if model:
        message_data["model"] = model

    message_ref = chat_ref.collection(_MESSAGES_COLLECTION).document()
    try:
        message_ref.set(message_data)
    except (google_exceptions.PermissionDenied, google_exceptions.GoogleAPICallError) as exc:
        raise ChatStoreError(str(exc)) from exc

    touch_chat(chat_ref, now)
    return message_ref.id, message_data


def load_history(chat_ref, limit: int) -> list[dict[str, str]]:
    """Most recent ``limit`` messages, oldest first, without response-time footers."""
    if limit <= 0:
        return []

    query = (
        chat_ref.collection(_MESSAGES_COLLECTION)
        .order_by("createdAt", direction=firebase_firestore.Query.DESCENDING)
        .limit(limit)
    )
    try:
        docs = list(query.stream())
    except (google_exceptions.PermissionDenied, google_exceptions.GoogleAPICallError) as exc:
        raise ChatStoreError(str(exc)) from exc

    history = []
    for doc in reversed(docs):
        data = doc.to_dict() or {}
        history.append({
            "role": data.get("role") or "user",
            "content": strip_response_time(data.get("content")),
        })
    return history


def _commit_writes(writes: Iterable[tuple[str, Any, Optional[dict[str, Any]]]]) -> int:
    """Apply ``(op, ref, data)`` writes in batches of at most ``MAX_BATCH_WRITES``."""
    db = get_firestore_client()
    batch = db.batch()
    pending = 0
    total = 0
    try:
        for op, ref, data in writes:
            if op == "set":
                batch.set(ref, data)
            else:
                batch.delete(ref)
            pending += 1
            total += 1
            if pending == MAX_BATCH_WRITES:
                batch.commit()
                batch = db.batch()
                pending = 0
        if pending:
            batch.commit()
    except (google_exceptions.PermissionDenied, google_exceptions.GoogleAPICallError) as exc:
        raise ChatStoreError(str(exc)) from exc
    return total


def _message_copies(target_ref, uid: str, messages: Iterable[tuple[str, dict[str, Any]]], base_time: datetime):
    for offset, (_, data) in enumerate(messages):
        copy = {
            "uid": uid,
            "role": data.get("role"),
            "content": data.get("content"),
            # Keep the original ordering even when timestamps collide.
            "createdAt": base_time + timedelta(microseconds=offset),
        }
        if data.get("model"):
            copy["model"] = data["model"]
        yield "set", target_ref.collection(_MESSAGES_COLLECTION).document(), copy


def duplicate_chat(chat_id: str, uid: str) -> tuple[str, dict[str, Any]]:
    """Copy a chat and all of its messages into a new ``(Copy)`` chat."""
    source_ref, source_data = get_chat_for_user(chat_id, uid)
    messages = list_messages(source_ref)

    now = utc_now()
    title = f"{source_data.get('title') or DEFAULT_TITLE} (Copy)"
    chat_data = {
        "uid": uid,
        "title": title,
        "pinned": False,
        "createdAt": now,
        "updatedAt": now,
    }

    new_ref = _chats_collection().document()
    written = _commit_writes(
        [("set", new_ref, chat_data), *_message_copies(new_ref, uid, messages, now)]
    )

    log.debug("Duplicated chat %s into %s with %d messages", chat_id, new_ref.id, written - 1)
    return new_ref.id, chat_data


def delete_chat(chat_id: str, uid: str) -> None:
    """Delete a chat's messages, then the chat itself."""
    chat_ref, _ = get_chat_for_user(chat_id, uid)

    try:
        message_refs = [doc.reference for doc in chat_ref.collection(_MESSAGES_COLLECTION).stream()]
    except (google_exceptions.PermissionDenied, google_exceptions.GoogleAPICallError) as exc:
        raise ChatStoreError(str(exc)) from exc

    _commit_writes([*(("delete", ref, None) for ref in message_refs), ("delete", chat_ref, None)])
