from __future__ import annotations

from http import HTTPStatus
from typing import Any
from urllib.parse import urlencode
import logging

import requests
from flask import Blueprint, current_app, jsonify, request
from firebase_admin import auth as firebase_auth
from firebase_admin import exceptions as firebase_exceptions

from ..chats.service import WELCOME_TITLE, ChatStoreError, create_chat
from ..users.service import UserProfileStoreError, upsert_user_profile
from .verification import (
    EmailDeliveryError,
    TooManyAttemptsError,
    VerificationError,
    check_code,
    issue_code,
    mark_code_used,
    normalize_email,
    send_code_email,
)

auth_bp = Blueprint("auth", __name__, url_prefix="/auth")
log = logging.getLogger(__name__)

MIN_PASSWORD_LENGTH = 6
IDENTITY_TOOLKIT_URL = "https://identitytoolkit.googleapis.com/v1"


def _parse_json_body() -> dict[str, Any]:
    if request.is_json:
        payload = request.get_json(silent=True) or {}
    else:
        payload = {}
    return payload


def _missing_fields_response(payload: dict[str, Any], fields: tuple[str, ...]) -> tuple[Any, int] | None:
    missing_fields = [field for field in fields if not payload.get(field)]
    if not missing_fields:
        return None
    return (
        jsonify({
            "error": "validation_error",
            "message": f"Missing required fields: {', '.join(missing_fields)}",
        }),
        HTTPStatus.BAD_REQUEST,
    )


def _web_api_key_missing() -> tuple[Any, int]:
    return (
        jsonify({
            "error": "not_configured",
            "message": "FIREBASE_WEB_API_KEY is not set. Add it to backend/.env.",
        }),
        HTTPStatus.SERVICE_UNAVAILABLE,
    )


def _identity_error_message(response: requests.Response, default: str) -> str:
    try:
        return response.json().get("error", {}).get("message", default)
    except ValueError:
        return default


@auth_bp.post("/send-code")
def send_code() -> tuple[Any, int]:
    payload = _parse_json_body()
    email = normalize_email(payload.get("email"))

    if not email:
        return (
            jsonify({"error": "validation_error", "message": "Email is required"}),
            HTTPStatus.BAD_REQUEST,
        )
    if "@" not in email:
        return (
            jsonify({"error": "validation_error", "message": "Please enter a valid email address"}),
            HTTPStatus.BAD_REQUEST,
        )

    ttl_minutes = int(current_app.config.get("VERIFICATION_CODE_TTL_MINUTES", 10))
    try:
        record = issue_code(email, ttl_minutes)
        send_code_email(
            email,
            record["code"],
            api_url=current_app.config["EMAIL_API_URL"],
            api_key=current_app.config.get("EMAIL_API_KEY"),
            sender=current_app.config["EMAIL_FROM"],
            ttl_minutes=ttl_minutes,
        )
    except EmailDeliveryError as exc:
        return (
            jsonify({"error": "email_error", "message": str(exc)}),
            HTTPStatus.BAD_GATEWAY,
        )
    except VerificationError as exc:
        log.exception("Error in send-code for %s", email)
        return (
            jsonify({"error": "internal_error", "message": str(exc)}),
            HTTPStatus.INTERNAL_SERVER_ERROR,
        )

    body: dict[str, Any] = {"success": True, "message": "Verification code sent"}
    if current_app.config.get("EXPOSE_VERIFICATION_CODES"):
        body["code"] = record["code"]
    return jsonify(body), HTTPStatus.OK


@auth_bp.post("/signup")
def signup() -> tuple[Any, int]:
    payload = _parse_json_body()

    missing = _missing_fields_response(payload, ("email", "password", "username", "code"))
    if missing is not None:
        return missing

    email = normalize_email(payload.get("email"))
    password: str = str(payload.get("password"))
    username = str(payload.get("username") or "").strip()
    code = str(payload.get("code"))

    if "@" not in email:
        return (
            jsonify({"error": "validation_error", "message": "Please enter a valid email address"}),
            HTTPStatus.BAD_REQUEST,
        )
    if not username:
        return (
            jsonify({"error": "validation_error", "message": "Username is required"}),
            HTTPStatus.BAD_REQUEST,
        )
    if len(password) < MIN_PASSWORD_LENGTH:
        return (
            jsonify({
                "error": "validation_error",
                "message": f"Password must be at least {MIN_PASSWORD_LENGTH} characters",
            }),
            HTTPStatus.BAD_REQUEST,
        )

    try:
        code_record = check_code(email, code)
    except TooManyAttemptsError as exc:
        return (
            jsonify({"error": "rate_limited", "message": str(exc)}),
            HTTPStatus.TOO_MANY_REQUESTS,
        )
    except VerificationError as exc:
        return (
            jsonify({"error": "invalid_code", "message": str(exc)}),
            HTTPStatus.BAD_REQUEST,
        )

    try:
        user_record = firebase_auth.create_user(
            email=email,
            password=password,
            display_name=username,
            email_verified=True,
        )
    except firebase_exceptions.AlreadyExistsError:
        return (
            jsonify({"error": "email_in_use", "message": "Email already registered."}),
            HTTPStatus.CONFLICT,
        )
    except firebase_exceptions.FirebaseError as exc:
        return (
            jsonify({"error": "firebase_error", "message": str(exc)}),
            HTTPStatus.INTERNAL_SERVER_ERROR,
        )

    try:
        mark_code_used(code_record["id"])
    except VerificationError:
        log.exception("Failed to mark verification code %s as used", code_record["id"])

    try:
        upsert_user_profile(user_record.uid, email=email, username=username)
    except UserProfileStoreError:
        log.exception("Failed to create profile for %s", user_record.uid)

    try:
        create_chat(user_record.uid, WELCOME_TITLE)
    except ChatStoreError as exc:
        log.error("Failed to create welcome chat: %s", exc)

    return (
        jsonify(
            {
                "uid": user_record.uid,
                "email": user_record.email,
                "username": user_record.display_name,
                "emailVerified": user_record.email_verified,
            }
        ),
        HTTPStatus.CREATED,
    )


@auth_bp.post("/google-signin")
def google_signin() -> tuple[Any, int]:
    payload = _parse_json_body()

    id_token: str | None = payload.get("idToken") or payload.get("credential")
    access_token: str | None = payload.get("accessToken")
    request_uri: str = payload.get("requestUri") or "http://localhost"

    if not id_token and not access_token:
        return (
            jsonify({
                "error": "validation_error",
                "message": "Provide at least an idToken or accessToken from Google Sign-In.",
            }),
            HTTPStatus.BAD_REQUEST,
        )

    api_key = current_app.config.get("FIREBASE_WEB_API_KEY")
    if not api_key:
        return _web_api_key_missing()

    post_body_params: dict[str, str] = {"providerId": "google.com"}
    if id_token:
        post_body_params["id_token"] = id_token
    if access_token:
        post_body_params["access_token"] = access_token

    try:
        response = requests.post(
            f"{IDENTITY_TOOLKIT_URL}/accounts:signInWithIdp",
            params={"key": api_key},
            json={
                "postBody": urlencode(post_body_params),
                "requestUri": request_uri,
                "returnSecureToken": True,
                "returnIdpCredential": True,
            },
            timeout=10,
        )
    except requests.RequestException as exc:
        return (
            jsonify({"error": "network_error", "message": str(exc)}),
            HTTPStatus.BAD_GATEWAY,
        )

    if not response.ok:
        return (
            jsonify({
                "error": "firebase_auth_error",
                "message": _identity_error_message(response, "Google sign-in failed."),
            }),
            HTTPStatus.UNAUTHORIZED,
        )

    data = response.json()
    if data.get("isNewUser") and data.get("localId"):
        try:
            upsert_user_profile(
                data["localId"],
                email=normalize_email(data.get("email")) or None,
                username=data.get("displayName"),
                photo_url=data.get("photoUrl"),
            )
            create_chat(data["localId"], WELCOME_TITLE)
        except (UserProfileStoreError, ChatStoreError) as exc:
            log.warning("Failed to initialize new Google user %s: %s", data["localId"], exc)

    return (
        jsonify(
            {
                "idToken": data.get("idToken"),
                "refreshToken": data.get("refreshToken"),
                "expiresIn": data.get("expiresIn"),
                "localId": data.get("localId"),
                "email": data.get("email"),
                "displayName": data.get("displayName"),
                "photoUrl": data.get("photoUrl"),
                "isNewUser": data.get("isNewUser"),
            }
        ),
        HTTPStatus.OK,
    )


@auth_bp.post("/login")
def login() -> tuple[Any, int]:
    payload = _parse_json_body()

    missing = _missing_fields_response(payload, ("email", "password"))
    if missing is not None:
        return missing

    api_key = current_app.config.get("FIREBASE_WEB_API_KEY")
    if not api_key:
        return _web_api_key_missing()

    try:
        response = requests.post(
            f"{IDENTITY_TOOLKIT_URL}/accounts:signInWithPassword",
            params={"key": api_key},
            json={
                "email": normalize_email(payload.get("email")),
                "password": payload.get("password"),
                "returnSecureToken": True,
            },
            timeout=10,
        )
    except requests.RequestException as exc:
        return (
            jsonify({"error": "network_error", "message": str(exc)}),
            HTTPStatus.BAD_GATEWAY,
        )

    if not response.ok:
        return (
            jsonify({
                "error": "firebase_auth_error",
                "message": _identity_error_message(response, "Login failed."),
            }),
            HTTPStatus.UNAUTHORIZED,
        )

    data = response.json()
    return (
        jsonify(
            {
                "idToken": data.get("idToken"),
                "refreshToken": data.get("refreshToken"),
                "expiresIn": data.get("expiresIn"),
                "localId": data.get("localId"),
                "email": data.get("email"),
            }
        ),
        HTTPStatus.OK,
    )


@auth_bp.post("/verify-token")
def verify_token() -> tuple[Any, int]:
    payload = _parse_json_body()
    id_token: str | None = payload.get("idToken")

    if not id_token:
        return (
            jsonify({"error": "validation_error", "message": "idToken is required."}),
            HTTPStatus.BAD_REQUEST,
        )

    try:
        decoded_token = firebase_auth.verify_id_token(id_token)
    except firebase_auth.ExpiredIdTokenError:
        return (
            jsonify({"error": "token_expired", "message": "Token has expired."}),
            HTTPStatus.UNAUTHORIZED,
        )
    except (firebase_auth.InvalidIdTokenError, ValueError):
        return (
            jsonify({"error": "invalid_token", "message": "Token format is invalid."}),
            HTTPStatus.UNAUTHORIZED,
        )
    except firebase_exceptions.FirebaseError as exc:
        return (
            jsonify({"error": "firebase_error", "message": str(exc)}),
            HTTPStatus.INTERNAL_SERVER_ERROR,
        )

    return (
        jsonify(
            {
                "uid": decoded_token.get("uid"),
                "email": decoded_token.get("email"),
                "admin": decoded_token.get("admin") is True,
            }
        ),
        HTTPStatus.OK,
    )
