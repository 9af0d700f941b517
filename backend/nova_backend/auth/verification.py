"""Email verification codes used during sign-up."""
from __future__ import annotations

from datetime import datetime, timedelta
from typing import Any, Optional
import logging
import secrets

import requests
from google.api_core import exceptions as google_exceptions

from ..firebase import get_firestore_client
from ..timestamps import EPOCH, as_utc, utc_now

log = logging.getLogger(__name__)

_CODES_COLLECTION = "verificationCodes"
CODE_MIN = 100000
CODE_MAX = 999999
MAX_FAILED_ATTEMPTS = 5

INVALID_CODE_MESSAGE = "Invalid or expired verification code"
TOO_MANY_ATTEMPTS_MESSAGE = "Too many incorrect codes. Please request a new verification code."


class VerificationError(Exception):
    """Raised when a verification code cannot be issued or accepted."""


class TooManyAttemptsError(VerificationError):
    """Raised once a code has been guessed wrong too many times."""


class EmailDeliveryError(VerificationError):
    """Raised when the email API rejects a message."""


def normalize_email(email: Any) -> str:
    if not isinstance(email, str):
        return ""
    return email.strip().lower()


def generate_code() -> str:
    return str(CODE_MIN + secrets.randbelow(CODE_MAX - CODE_MIN + 1))


def issue_code(email: str, ttl_minutes: int = 10, *, now: Optional[datetime] = None) -> dict[str, Any]:
    """Create and store a fresh code for ``email``."""
    email = normalize_email(email)
    if not email:
        raise VerificationError("Email is required")

    created_at = now or utc_now()
    record = {
        "email": email,
        "code": generate_code(),
        "verified": False,
        "failedAttempts": 0,
        "createdAt": created_at,
        "expiresAt": created_at + timedelta(minutes=ttl_minutes),
    }

    doc_ref = get_firestore_client().collection(_CODES_COLLECTION).document()
    try:
        doc_ref.set(record)
    except (google_exceptions.PermissionDenied, google_exceptions.GoogleAPICallError) as exc:
        log.error("Error storing verification code: %s", exc)
        raise VerificationError(str(exc)) from exc

    return {"id": doc_ref.id, **record}


def send_code_email(
    email: str,
    code: str,
    *,
    api_url: str,
    api_key: Optional[str],
    sender: str,
    ttl_minutes: int = 10,
    timeout: int = 10,
) -> bool:
    """Deliver the code by email. Returns ``False`` when delivery is disabled."""
    if not api_key:
        log.info("EMAIL_API_KEY not set; verification code for %s: %s", email, code)
        return False

    body = {
        "from": sender,
        "to": [email],
        "subject": "Your Nova AI verification code",
        "text": (
            f"Your Nova AI verification code is {code}.\n\n"
            f"It expires in {ttl_minutes} minutes. If you did not request it, ignore this email."
        ),
    }

    try:
        response = requests.post(
            api_url,
            headers={"Authorization": f"Bearer {api_key}"},
            json=body,
            timeout=timeout,
        )
    except requests.RequestException as exc:
        raise EmailDeliveryError(f"Email API request failed: {exc}") from exc

    if not response.ok:
        log.error("Email API error: %s %s", response.status_code, response.text)
        raise EmailDeliveryError(f"Email API error: {response.status_code}")

    return True


def _stream_codes(email: str) -> list[Any]:
    query = get_firestore_client().collection(_CODES_COLLECTION).where("email", "==", email)
    try:
        return list(query.stream())
    except (google_exceptions.PermissionDenied, google_exceptions.GoogleAPICallError) as exc:
        raise VerificationError(str(exc)) from exc


def _record_failure(doc: Any, data: dict[str, Any]) -> int:
    attempts = int(data.get("failedAttempts") or 0) + 1
    try:
        doc.reference.update({"failedAttempts": attempts})
    except (google_exceptions.PermissionDenied, google_exceptions.GoogleAPICallError) as exc:
        raise VerificationError(str(exc)) from exc
    return attempts


def check_code(email: str, code: str, *, now: Optional[datetime] = None) -> dict[str, Any]:
    """Find the newest live code for ``email`` matching ``code`` without using it up.

    A wrong guess counts against every live code for the address. Once a code has
    collected ``MAX_FAILED_ATTEMPTS`` misses it is locked and
    :class:`TooManyAttemptsError` is raised until a new code is issued.
    """
    email = normalize_email(email)
    code = code.strip() if isinstance(code, str) else ""
    if not email or not code:
        raise VerificationError(INVALID_CODE_MESSAGE)

    current = now or utc_now()

    live = []
    locked = False
    for doc in _stream_codes(email):
        data = doc.to_dict() or {}
        expires_at = as_utc(data.get("expiresAt"))
        if data.get("verified") or expires_at is None or expires_at < current:
            continue
        if int(data.get("failedAttempts") or 0) >= MAX_FAILED_ATTEMPTS:
            locked = True
            continue
        live.append((doc, data))

    live.sort(key=lambda item: as_utc(item[1].get("createdAt")) or EPOCH, reverse=True)

    for doc, data in live:
        if data.get("code") == code:
            return {"id": doc.id, **data}

    if not live:
        if locked:
            raise TooManyAttemptsError(TOO_MANY_ATTEMPTS_MESSAGE)
        raise VerificationError(INVALID_CODE_MESSAGE)

    attempts = [_record_failure(doc, data) for doc, data in live]
    if attempts[0] >= MAX_FAILED_ATTEMPTS:
        log.warning("Verification code for %s locked after %d failed attempts", email, attempts[0])
        raise TooManyAttemptsError(TOO_MANY_ATTEMPTS_MESSAGE)
    raise VerificationError(INVALID_CODE_MESSAGE)


def mark_code_used(code_id: str) -> None:
    doc_ref = get_firestore_client().collection(_CODES_COLLECTION).document(code_id)
    try:
        doc_ref.update({"verified": True})
    except (google_exceptions.PermissionDenied, google_exceptions.GoogleAPICallError) as exc:
        raise VerificationError(str(exc)) from exc


def verify_code(email: str, code: str, *, now: Optional[datetime] = None) -> dict[str, Any]:
    """Accept the newest live matching code and mark it used."""
    record = check_code(email, code, now=now)
    mark_code_used(record["id"])
    record["verified"] = True
    return record
