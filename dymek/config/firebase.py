"""
Firebase initialization.
Single-source-of-truth Firebase app and Firestore client for Dymek.

Both the record stores (Firestore) and the push transport (Cloud Messaging)
share the default firebase_admin app initialized here.
"""

from typing import Optional
import json
import logging
import os

import firebase_admin
from firebase_admin import credentials, firestore, initialize_app

from dymek.core.settings import settings

logger = logging.getLogger(__name__)

db: Optional[firestore.Client] = None

REQUIRED_CREDENTIAL_FIELDS = ["type", "project_id", "private_key", "client_email"]


def _validate_credentials_file(cred_path: str) -> None:
    if not os.path.exists(cred_path):
        raise FileNotFoundError(f"FIREBASE_CREDENTIALS_PATH does not exist: {cred_path}")

    try:
        with open(cred_path, "r") as f:
            cred_data = json.load(f)
    except json.JSONDecodeError as e:
        raise ValueError(f"Firebase credentials file {cred_path} is not valid JSON: {e}")

    missing_fields = [field for field in REQUIRED_CREDENTIAL_FIELDS if field not in cred_data]
    if missing_fields:
        raise ValueError(f"Firebase service account file {cred_path} is missing fields: {missing_fields}")

    logger.info(f"[FIREBASE] Credentials file validated: {cred_path} (project {cred_data.get('project_id')})")


def initialize_firebase_app() -> firebase_admin.App:
    """
    Initialize (once) and return the default firebase_admin app.

    Uses the service account from FIREBASE_CREDENTIALS_PATH when set,
    Application Default Credentials otherwise.
    """
    if firebase_admin._apps:
        return firebase_admin.get_app()

    options = {"projectId": settings.FIREBASE_PROJECT_ID} if settings.FIREBASE_PROJECT_ID else None

    if not settings.FIREBASE_CREDENTIALS_PATH:
        logger.info("[FIREBASE] No credentials path set, using Application Default Credentials")
        return initialize_app(options=options)

    try:
        _validate_credentials_file(settings.FIREBASE_CREDENTIALS_PATH)
    except (FileNotFoundError, ValueError) as e:
        raise RuntimeError(
            f"Firebase initialization failed: {e}. "
            "Set FIREBASE_CREDENTIALS_PATH to a service account key, or USE_MOCK_DB=true for local runs."
        ) from e

    app = initialize_app(credentials.Certificate(settings.FIREBASE_CREDENTIALS_PATH), options)
    logger.info("[FIREBASE] Admin SDK initialized with service account")
    return app


def initialize_firestore() -> firestore.Client:
    global db

    if db is not None:
        return db

    initialize_firebase_app()
    db = firestore.client()
    logger.info(f"[FIRESTORE] Using Firestore project: {settings.FIREBASE_PROJECT_ID or 'default'}")
    return db


def get_db() -> firestore.Client:
    """
    Get the initialized Firestore client.

    Raises RuntimeError if Firestore cannot be initialized.
    """
    if db is None:
        try:
            initialize_firestore()
        except Exception as e:
            raise RuntimeError(
                f"Firestore not initialized and initialization failed: {e}. "
                "Please check your Firebase credentials and configuration."
            ) from e
    return db
