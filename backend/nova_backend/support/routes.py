from __future__ import annotations

from http import HTTPStatus
from typing import Any
import logging

from flask import Blueprint, g, jsonify, request

from ..auth.session import login_required
from .service import SupportStoreError, create_ticket, list_tickets, serialize_ticket

support_bp = Blueprint("support", __name__, url_prefix="/support")
log = logging.getLogger(__name__)


def _parse_json_body() -> dict[str, Any]:
    if request.is_json:
        return request.get_json(silent=True) or {}
    return {}


def _store_unavailable(exc: SupportStoreError) -> tuple[Any, int]:
    return (
        jsonify({
            "error": "firestore_service_unavailable",
            "message": "Support requests are temporarily unavailable.",
            "detail": str(exc),
        }),
        HTTPStatus.SERVICE_UNAVAILABLE,
    )


@support_bp.post("")
@login_required
def submit() -> tuple[Any, int]:
    payload = _parse_json_body()
    subject = str(payload.get("subject") or "").strip()
    message = str(payload.get("message") or "").strip()

    if not subject or not message:
        return (
            jsonify({"error": "validation_error", "message": "Please fill in all fields"}),
            HTTPStatus.BAD_REQUEST,
        )

    try:
        ticket_id, data = create_ticket(g.uid, g.email, subject, message)
    except SupportStoreError as exc:
        return _store_unavailable(exc)

    return jsonify(serialize_ticket(ticket_id, data)), HTTPStatus.CREATED


@support_bp.get("")
@login_required
def list_own() -> tuple[Any, int]:
    try:
        tickets = list_tickets(g.uid)
    except SupportStoreError as exc:
        return _store_unavailable(exc)

    return jsonify({"items": [serialize_ticket(ticket_id, data) for ticket_id, data in tickets]}), HTTPStatus.OK
