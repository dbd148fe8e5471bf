import os
import json
import logging
from typing import Optional

import firebase_admin
from firebase_admin import credentials, auth

logger = logging.getLogger("uvicorn")

REQUIRED_CREDENTIAL_FIELDS = ("project_id", "private_key", "client_email")


class FirebaseConfigError(RuntimeError):
    """Service-account credentials are missing or unreadable. Fatal at startup."""


def _fix_private_key(key: str) -> str:
    # Render and similar hosts store the key with literal '\n' sequences
    return key.replace("\\n", "\n")


def load_credentials() -> dict:
    """
    Builds the service-account dict from the environment.

    FIREBASE_CREDENTIALS (a whole JSON document) wins over the individual
    FIREBASE_* variables. Raises FirebaseConfigError when the required fields
    are missing.
    """
    firebase_creds_json = os.getenv("FIREBASE_CREDENTIALS")
    if firebase_creds_json:
        try:
            creds_dict = json.loads(firebase_creds_json)
        except ValueError as e:
            raise FirebaseConfigError(f"FIREBASE_CREDENTIALS is not valid JSON: {e}") from e
        if not isinstance(creds_dict, dict):
            raise FirebaseConfigError("FIREBASE_CREDENTIALS must be a JSON object")

        if "private_key" in creds_dict:
            creds_dict["private_key"] = _fix_private_key(creds_dict["private_key"])
        # Remove universe_domain if present, as it can cause issues with some lib versions
        creds_dict.pop("universe_domain", None)
    else:
        private_key = os.getenv("FIREBASE_PRIVATE_KEY")
        if private_key:
            private_key = _fix_private_key(private_key)

        creds_dict = {
            "type": "service_account",
            "project_id": os.getenv("FIREBASE_PROJECT_ID"),
            "private_key_id": os.getenv("FIREBASE_PRIVATE_KEY_ID"),
            "private_key": private_key,
            "client_email": os.getenv("FIREBASE_CLIENT_EMAIL"),
            "client_id": os.getenv("FIREBASE_CLIENT_ID"),
            "auth_uri": "https://accounts.google.com/o/oauth2/auth",
            "token_uri": "https://oauth2.googleapis.com/token",
            "auth_provider_x509_cert_url": "https://www.googleapis.com/oauth2/v1/certs",
            "client_x509_cert_url": os.getenv("FIREBASE_CLIENT_CERT_URL"),
        }
        creds_dict = {k: v for k, v in creds_dict.items() if v}

    missing = [field for field in REQUIRED_CREDENTIAL_FIELDS if not creds_dict.get(field)]
    if missing:
        raise FirebaseConfigError(
            f"Firebase credentials missing required fields: {', '.join(missing)}"
        )

    logger.info(f"🔑 Loaded service account {creds_dict['client_email']} for project {creds_dict['project_id']}")
    return creds_dict


def initialize_firebase(creds_dict: Optional[dict] = None) -> firebase_admin.App:
    """
    Initializes the Firebase Admin SDK and returns the default app.
    Reuses the default app if it already exists.
    """
    try:
        return firebase_admin.get_app()
    except ValueError:
        pass

    if creds_dict is None:
        creds_dict = load_credentials()

    try:
        cred = credentials.Certificate(creds_dict)
    except ValueError as e:
        raise FirebaseConfigError(f"Invalid Firebase service account: {e}") from e

    app = firebase_admin.initialize_app(cred)
    logger.info("✅ Firebase Admin SDK initialized successfully.")
    return app


def shutdown_firebase(app: firebase_admin.App) -> None:
    firebase_admin.delete_app(app)
    logger.info("Firebase Admin SDK app deleted.")


class FirebaseTokenIssuer:
    """Issues Firebase custom tokens that clients exchange via signInWithCustomToken."""

    def __init__(self, app: Optional[firebase_admin.App] = None):
        self.app = app

    def issue(self, uid: str) -> str:
        try:
            token = auth.create_custom_token(uid, app=self.app)
        except Exception as e:
            logger.error(f"Error creating custom token for uid={uid}: {e}")
            raise
        if isinstance(token, bytes):
            token = token.decode("utf-8")
        return token
