import os

import firebase_admin
from firebase_admin import credentials, firestore

DEFAULT_SERVICE_ACCOUNT_PATH = "./listor-firebase-adminsdk.json"
SERVICE_ACCOUNT_PATH = os.environ.get("FIREBASE_SERVICE_ACCOUNT_PATH", DEFAULT_SERVICE_ACCOUNT_PATH)
USE_EMULATOR = os.environ.get("FIREBASE_USE_EMULATOR", "").lower() in {"1", "true", "yes"}
PROJECT_ID = os.environ.get("FIREBASE_PROJECT_ID", "listor")


def init_firebase_app():
    """Initialise the default firebase-admin app once per process."""
    if firebase_admin._apps:
        return firebase_admin.get_app()
    if USE_EMULATOR:
        return firebase_admin.initialize_app(options={"projectId": PROJECT_ID})
    try:
        cred = credentials.Certificate(SERVICE_ACCOUNT_PATH)
    except (FileNotFoundError, ValueError):
        print(f"[firebase_db] no service account at {SERVICE_ACCOUNT_PATH}, using default credentials")
        return firebase_admin.initialize_app(options={"projectId": PROJECT_ID})
    return firebase_admin.initialize_app(cred)


def create_client():
    init_firebase_app()
    return firestore.client()
