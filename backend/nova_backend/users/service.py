"""Stored profiles for Nova users.

A profile lives at ``users/<uid>`` and mirrors what the settings screen
shows: ``email``, ``username`` and ``photoUrl``. Firebase Auth stays the
source of truth for credentials; the profile only keeps display data.
"""
from __future__ import annotations

from typing import Any, Optional
import logging

from google.api_core import exceptions as google_exceptions

from ..firebase import get_firestore_client
from ..timestamps import to_iso, utc_now

log = logging.getLogger(__name__)

__all__ = [
    "UserProfileNotFoundError",
    "UserProfileStoreError",
    "get_user_profile",
    "serialize_user_profile",
    "upsert_user_profile",
]

_USERS_COLLECTION = "users"


class UserProfileStoreError(Exception):
    """Base exception for profile storage errors."""


class UserProfileNotFoundError(UserProfileStoreError):
    """Raised when a user has no stored profile yet."""


def _profile_ref(uid: str):
    return get_firestore_client().collection(_USERS_COLLECTION).document(uid)


def _read_profile(doc_ref) -> Optional[dict[str, Any]]:
    try:
        snapshot = doc_ref.get()
    except (google_exceptions.PermissionDenied, google_exceptions.GoogleAPICallError) as exc:
        raise UserProfileStoreError(str(exc)) from exc
    if not snapshot.exists:
        return None
    return snapshot.to_dict() or {}


def upsert_user_profile(
    uid: str,
    *,
    email: Optional[str] = None,
    username: Optional[str] = None,
    photo_url: Optional[str] = None,
) -> dict[str, Any]:
    """Merge the given fields into ``uid``'s profile, creating it on first write.

    ``None`` leaves a field untouched. The returned mapping is the profile as
    stored after the write.
    """
    doc_ref = _profile_ref(uid)
    existing = _read_profile(doc_ref)

    now = utc_now()
    changes: dict[str, Any] = {"updatedAt": now}
    if existing is None:
        changes["createdAt"] = now
    if email is not None:
        changes["email"] = email
    if username is not None:
        changes["username"] = username
    if photo_url is not None:
        changes["photoUrl"] = photo_url

    try:
        doc_ref.set(changes, merge=True)
    except (google_exceptions.PermissionDenied, google_exceptions.GoogleAPICallError) as exc:
        raise UserProfileStoreError(str(exc)) from exc

    if existing is None:
        log.info("Created profile for %s", uid)
    return {**(existing or {}), **changes, "uid": uid}


def get_user_profile(uid: str) -> dict[str, Any]:
    profile = _read_profile(_profile_ref(uid))
    if profile is None:
        raise UserProfileNotFoundError(uid)
    profile["uid"] = uid
    return profile


def serialize_user_profile(data: dict[str, Any]) -> dict[str, Any]:
    return {
        "uid": data.get("uid"),
        "email": data.get("email"),
        "username": data.get("username"),
        "photoUrl": data.get("photoUrl"),
        "createdAt": to_iso(data.get("createdAt")),
        "updatedAt": to_iso(data.get("updatedAt")),
    }
