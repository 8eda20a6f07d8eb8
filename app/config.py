import os
import json
import logging
import firebase_admin
from firebase_admin import credentials

from app.core.settings import settings

logger = logging.getLogger("app.firebase")


def init_firebase():
    """Initialize Firebase admin SDK.

    Behavior:
    - If FIREBASE_CERT_JSON env var is present, parse it as JSON and use it.
    - Else if FIREBASE_PROJECT_ID, FIREBASE_CLIENT_EMAIL and FIREBASE_PRIVATE_KEY
      are all set, build a service account from them.
    - Else if FIREBASE_CERT_PATH points at an existing file, use that path.
    - Else, do nothing (avoid raising at import time). Push sends then fail
      per user with "FCM not configured".
    """
    try:
        firebase_admin.get_app()
        return
    except ValueError:
        pass

    fb_json = settings.firebase_cert_json
    if fb_json:
        try:
            cred = credentials.Certificate(json.loads(fb_json))
            firebase_admin.initialize_app(cred)
            logger.info("Firebase initialized from FIREBASE_CERT_JSON")
            return
        except Exception as e:
            # Fall through to the other sources which may still work
            logger.error(f"Failed to init Firebase from FIREBASE_CERT_JSON: {e}")

    if settings.firebase_project_id and settings.firebase_client_email and settings.firebase_private_key:
        try:
            cred = credentials.Certificate({
                "type": "service_account",
                "project_id": settings.firebase_project_id,
                "client_email": settings.firebase_client_email,
                # Keys pasted into env files usually carry escaped newlines
                "private_key": settings.firebase_private_key.replace("\\n", "\n"),
                "token_uri": "https://oauth2.googleapis.com/token",
            })
            firebase_admin.initialize_app(cred)
            logger.info(f"Firebase initialized for project {settings.firebase_project_id}")
            return
        except Exception as e:
            logger.error(f"Failed to init Firebase from environment credentials: {e}")

    fb_path = settings.firebase_cert_path
    if fb_path and os.path.exists(fb_path):
        try:
            cred = credentials.Certificate(fb_path)
            firebase_admin.initialize_app(cred)
            logger.info(f"Firebase initialized from {fb_path}")
            return
        except Exception as e:
            logger.error(f"Failed to init Firebase from path {fb_path}: {e}")

    # No credential available; skip initialization to avoid crashing the process.
    logger.warning("No Firebase credentials found; skipping Firebase initialization.")
