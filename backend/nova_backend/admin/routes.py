from __future__ import annotations

from datetime import datetime, timezone
from http import HTTPStatus
from typing import Any
import logging

from flask import Blueprint, jsonify, request
from firebase_admin import auth as firebase_auth
from firebase_admin import exceptions as firebase_exceptions

from ..auth.session import admin_required
from ..support.service import (
    STATUSES,
    SupportStoreError,
    SupportTicketNotFoundError,
    list_tickets,
    serialize_ticket,
    update_status,
)

admin_bp = Blueprint("admin", __name__, url_prefix="/admin")
log = logging.getLogger(__name__)


def _millis_to_iso(value: Any) -> str | None:
    if not value:
        return None
    return datetime.fromtimestamp(value / 1000, tz=timezone.utc).isoformat()


def _serialize_user(user: Any) -> dict[str, Any]:
    metadata = getattr(user, "user_metadata", None)
    return {
        "uid": user.uid,
        "email": user.email,
        "displayName": user.display_name,
        "disabled": bool(user.disabled),
        "emailVerified": bool(user.email_verified),
        "createdAt": _millis_to_iso(getattr(metadata, "creation_timestamp", None)),
        "lastSignIn": _millis_to_iso(getattr(metadata, "last_sign_in_timestamp", None)),
    }


def _store_unavailable(exc: SupportStoreError) -> tuple[Any, int]:
    return (
        jsonify({
            "error": "firestore_service_unavailable",
            "message": "Support requests are temporarily unavailable.",
            "detail": str(exc),
        }),
        HTTPStatus.SERVICE_UNAVAILABLE,
    )


@admin_bp.get("/users")
@admin_required
def list_users() -> tuple[Any, int]:
    try:
        users = [_serialize_user(user) for user in firebase_auth.list_users().iterate_all()]
    except firebase_exceptions.FirebaseError as exc:
        log.exception("Failed to list users")
        return (
            jsonify({"error": "firebase_error", "message": str(exc)}),
            HTTPStatus.BAD_GATEWAY,
        )

    return jsonify({"items": users}), HTTPStatus.OK


@admin_bp.get("/support")
@admin_required
def list_support() -> tuple[Any, int]:
    try:
        tickets = list_tickets()
    except SupportStoreError as exc:
        return _store_unavailable(exc)

    return jsonify({"items": [serialize_ticket(ticket_id, data) for ticket_id, data in tickets]}), HTTPStatus.OK


@admin_bp.patch("/support/<ticket_id>")
@admin_required
def update_support(ticket_id: str) -> tuple[Any, int]:
    payload = request.get_json(silent=True) if request.is_json else None
    status = payload.get("status") if isinstance(payload, dict) else None

    if status not in STATUSES:
        return (
            jsonify({
                "error": "validation_error",
                "message": f"status must be one of: {', '.join(STATUSES)}",
            }),
            HTTPStatus.BAD_REQUEST,
        )

    try:
        ticket_id, data = update_status(ticket_id, status)
    except SupportTicketNotFoundError:
        return (
            jsonify({"error": "not_found", "message": "Support request not found."}),
            HTTPStatus.NOT_FOUND,
        )
    except SupportStoreError as exc:
        return _store_unavailable(exc)

    return jsonify(serialize_ticket(ticket_id, data)), HTTPStatus.OK
