"""Firebase Admin SDK bootstrap.

The Admin SDK is initialized once per process from a service account JSON
file. Firestore clients are cached so every request reuses the same channel.
"""
from __future__ import annotations

from pathlib import Path
from typing import Any, Optional
import logging

import firebase_admin
from firebase_admin import credentials, firestore

log = logging.getLogger(__name__)

_firestore_client: Any = None


def init_firebase(credentials_path: Path, database_id: Optional[str] = None) -> Any:
    """Initialize the default Firebase app and cache a Firestore client."""
    global _firestore_client

    try:
        app = firebase_admin.get_app()
    except ValueError:
        cred = credentials.Certificate(str(credentials_path))
        app = firebase_admin.initialize_app(cred)
        log.info("Initialized Firebase app from %s", credentials_path)

    if database_id:
        _firestore_client = firestore.client(app=app, database_id=database_id)
    else:
        _firestore_client = firestore.client(app=app)
    return _firestore_client


def set_firestore_client(client: Any) -> None:
    global _firestore_client
    _firestore_client = client


def get_firestore_client() -> Any:
    if _firestore_client is None:
        raise RuntimeError("Firestore client is not initialized. Call init_firebase() first.")
    return _firestore_client
