from __future__ import annotations

from http import HTTPStatus
from typing import Any
import logging

from flask import Blueprint, g, jsonify, request
from firebase_admin import auth as firebase_auth
from firebase_admin import exceptions as firebase_exceptions

from ..auth.session import login_required
from ..auth.verification import normalize_email
from .service import (
    UserProfileNotFoundError,
    UserProfileStoreError,
    get_user_profile,
    serialize_user_profile,
    upsert_user_profile,
)

users_bp = Blueprint("users", __name__, url_prefix="/users")
log = logging.getLogger(__name__)

MIN_PASSWORD_LENGTH = 6


def _parse_json_body() -> dict[str, Any]:
    if request.is_json:
        return request.get_json(silent=True) or {}
    return {}


def _validation_error(message: str) -> tuple[Any, int]:
    return jsonify({"error": "validation_error", "message": message}), HTTPStatus.BAD_REQUEST


def _profile_error_response(detail: str, *, status: HTTPStatus = HTTPStatus.SERVICE_UNAVAILABLE):
    return (
        jsonify({
            "error": "profile_store_error",
            "message": "Unable to persist user profile information.",
            "detail": detail,
        }),
        status,
    )


def _firebase_error_response(exc: firebase_exceptions.FirebaseError) -> tuple[Any, int]:
    return (
        jsonify({"error": "firebase_error", "message": str(exc)}),
        HTTPStatus.BAD_GATEWAY,
    )


@users_bp.get("/me")
@login_required
def get_profile() -> tuple[Any, int]:
    try:
        profile = get_user_profile(g.uid)
    except UserProfileNotFoundError:
        return (
            jsonify({"error": "not_found", "message": "User profile not found."}),
            HTTPStatus.NOT_FOUND,
        )
    except UserProfileStoreError as exc:
        log.exception("Failed to fetch profile for %s", g.uid)
        return _profile_error_response(str(exc))

    return jsonify(serialize_user_profile(profile)), HTTPStatus.OK


@users_bp.patch("/me")
@login_required
def update_profile() -> tuple[Any, int]:
    payload = _parse_json_body()
    username = payload.get("username")
    photo_url = payload.get("photoUrl")

    if username is None and photo_url is None:
        return _validation_error("Provide at least one field to update (username or photoUrl).")

    if username is not None:
        username = str(username).strip()
        if not username:
            return _validation_error("Username is required")

    update_kwargs: dict[str, Any] = {}
    if username is not None:
        update_kwargs["display_name"] = username
    if photo_url is not None:
        update_kwargs["photo_url"] = photo_url or None

    try:
        firebase_auth.update_user(g.uid, **update_kwargs)
    except firebase_exceptions.FirebaseError as exc:
        log.exception("Failed to update Firebase auth profile for %s", g.uid)
        return _firebase_error_response(exc)

    try:
        profile = upsert_user_profile(g.uid, username=username, photo_url=photo_url)
    except UserProfileStoreError as exc:
        log.exception("Failed to update stored profile for %s", g.uid)
        return _profile_error_response(str(exc))

    return jsonify(serialize_user_profile(profile)), HTTPStatus.OK


@users_bp.put("/me/email")
@login_required
def update_email() -> tuple[Any, int]:
    payload = _parse_json_body()
    email = normalize_email(payload.get("email"))

    if not email or "@" not in email:
        return _validation_error("Please enter a valid email address")

    try:
        firebase_auth.update_user(g.uid, email=email, email_verified=False)
    except firebase_exceptions.AlreadyExistsError:
        return (
            jsonify({"error": "email_in_use", "message": "Email already registered."}),
            HTTPStatus.CONFLICT,
        )
    except firebase_exceptions.FirebaseError as exc:
        log.exception("Failed to update email for %s", g.uid)
        return _firebase_error_response(exc)

    try:
        profile = upsert_user_profile(g.uid, email=email)
    except UserProfileStoreError as exc:
        log.exception("Failed to update stored email for %s", g.uid)
        return _profile_error_response(str(exc))

    return jsonify(serialize_user_profile(profile)), HTTPStatus.OK


@users_bp.put("/me/password")
@login_required
def update_password() -> tuple[Any, int]:
    payload = _parse_json_body()
    new_password = payload.get("newPassword")
    confirm_password = payload.get("confirmPassword")

    if not new_password or not confirm_password:
        return _validation_error("Please fill in all password fields")
    if new_password != confirm_password:
        return _validation_error("Passwords don't match")
    if len(str(new_password)) < MIN_PASSWORD_LENGTH:
        return _validation_error(f"Password must be at least {MIN_PASSWORD_LENGTH} characters")

    try:
        firebase_auth.update_user(g.uid, password=str(new_password))
    except firebase_exceptions.FirebaseError as exc:
        log.exception("Failed to update password for %s", g.uid)
        return _firebase_error_response(exc)

    return jsonify({"success": True, "message": "Password updated successfully!"}), HTTPStatus.OK
