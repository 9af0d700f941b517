"""Route protection based on Firebase ID tokens."""
from __future__ import annotations

from functools import wraps
from http import HTTPStatus
from typing import Any, Callable
import logging

from flask import current_app, g, jsonify, request
from firebase_admin import auth as firebase_auth
from firebase_admin import exceptions as firebase_exceptions

log = logging.getLogger(__name__)


def _bearer_token() -> str | None:
    header = request.headers.get("Authorization", "")
    scheme, _, token = header.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return token.strip()


def _unauthorized(error: str, message: str) -> tuple[Any, int]:
    return jsonify({"error": error, "message": message}), HTTPStatus.UNAUTHORIZED


def _authenticate() -> tuple[Any, int] | None:
    id_token = _bearer_token()
    if not id_token:
        return _unauthorized("unauthorized", "Missing bearer token.")

    try:
        decoded = firebase_auth.verify_id_token(id_token)
    except firebase_auth.ExpiredIdTokenError:
        return _unauthorized("token_expired", "Token has expired.")
    except (firebase_auth.InvalidIdTokenError, ValueError):
        return _unauthorized("invalid_token", "Token is invalid.")
    except firebase_exceptions.FirebaseError as exc:
        log.warning("Token verification failed: %s", exc)
        return _unauthorized("invalid_token", "Token could not be verified.")

    g.uid = decoded.get("uid")
    g.email = (decoded.get("email") or "").lower() or None
    g.claims = decoded
    return None


def is_admin() -> bool:
    claims = getattr(g, "claims", None) or {}
    if claims.get("admin") is True:
        return True
    admin_emails = current_app.config.get("ADMIN_EMAILS") or frozenset()
    email = getattr(g, "email", None)
    return bool(email and email in admin_emails)


def login_required(view: Callable) -> Callable:
    """Require a valid ``Authorization: Bearer <idToken>`` header."""

    @wraps(view)
    def wrapper(*args, **kwargs):
        failure = _authenticate()
        if failure is not None:
            return failure
        return view(*args, **kwargs)

    return wrapper


def admin_required(view: Callable) -> Callable:
    @wraps(view)
    def wrapper(*args, **kwargs):
        failure = _authenticate()
        if failure is not None:
            return failure
        if not is_admin():
            return (
                jsonify({"error": "forbidden", "message": "Administrator access required."}),
                HTTPStatus.FORBIDDEN,
            )
        return view(*args, **kwargs)

    return wrapper
