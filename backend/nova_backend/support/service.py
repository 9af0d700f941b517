from __future__ import annotations

from typing import Any, Optional
import logging

from google.api_core import exceptions as google_exceptions

from ..firebase import get_firestore_client
from ..timestamps import EPOCH, as_utc, to_iso, utc_now

log = logging.getLogger(__name__)

__all__ = [
    "STATUSES",
    "SupportStoreError",
    "SupportTicketNotFoundError",
    "create_ticket",
    "list_tickets",
    "serialize_ticket",
    "update_status",
]

_SUPPORT_COLLECTION = "supportMessages"
STATUSES = ("pending", "in_progress", "resolved")


class SupportStoreError(Exception):
    """Raised when support tickets cannot be read or written."""


class SupportTicketNotFoundError(SupportStoreError):
    """Raised when a ticket id does not exist."""


def _collection():
    return get_firestore_client().collection(_SUPPORT_COLLECTION)


def serialize_ticket(doc_id: str, data: dict[str, Any]) -> dict[str, Any]:
    return {
        "id": doc_id,
        "uid": data.get("uid"),
        "email": data.get("email"),
        "subject": data.get("subject"),
        "message": data.get("message"),
        "status": data.get("status"),
        "createdAt": to_iso(data.get("createdAt")),
        "updatedAt": to_iso(data.get("updatedAt")),
    }


def create_ticket(uid: str, email: Optional[str], subject: str, message: str) -> tuple[str, dict[str, Any]]:
    now = utc_now()
    data = {
        "uid": uid,
        "email": email or "",
        "subject": subject.strip(),
        "message": message.strip(),
        "status": "pending",
        "createdAt": now,
        "updatedAt": now,
    }

    doc_ref = _collection().document()
    try:
        doc_ref.set(data)
    except (google_exceptions.PermissionDenied, google_exceptions.GoogleAPICallError) as exc:
        log.error("Error submitting support request: %s", exc)
        raise SupportStoreError(str(exc)) from exc

    return doc_ref.id, data


def list_tickets(uid: Optional[str] = None) -> list[tuple[str, dict[str, Any]]]:
    """Tickets newest first. ``uid`` restricts the list to one user."""
    query = _collection()
    if uid is not None:
        query = query.where("uid", "==", uid)

    try:
        docs = list(query.stream())
    except (google_exceptions.PermissionDenied, google_exceptions.GoogleAPICallError) as exc:
        raise SupportStoreError(str(exc)) from exc

    tickets = [(doc.id, doc.to_dict() or {}) for doc in docs]
    tickets.sort(key=lambda item: as_utc(item[1].get("createdAt")) or EPOCH, reverse=True)
    return tickets


def update_status(ticket_id: str, status: str) -> tuple[str, dict[str, Any]]:
    if status not in STATUSES:
        raise ValueError(f"status must be one of: {', '.join(STATUSES)}")

    doc_ref = _collection().document(ticket_id)
    try:
        snapshot = doc_ref.get()
        if not snapshot.exists:
            raise SupportTicketNotFoundError(ticket_id)
        updates = {"status": status, "updatedAt": utc_now()}
        doc_ref.update(updates)
    except (google_exceptions.PermissionDenied, google_exceptions.GoogleAPICallError) as exc:
        raise SupportStoreError(str(exc)) from exc

    data = snapshot.to_dict() or {}
    data.update(updates)
    return doc_ref.id, data
