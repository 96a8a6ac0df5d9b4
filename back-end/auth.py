# back-end/auth.py
from dataclasses import dataclass
from functools import wraps

from firebase_admin import auth as firebase_auth
from firebase_admin import exceptions as firebase_exceptions
from flask import g, request

from errors import AuthenticationError


@dataclass(frozen=True)
class Principal:
    uid: str
    email: str
    display_name: str
    email_verified: bool

    @property
    def verified_email(self):
        return self.email if self.email_verified else None

    @property
    def label(self):
        return self.display_name or self.email or "Someone"


def principal_from_claims(claims: dict) -> Principal:
    return Principal(
        uid=claims.get("uid") or claims.get("sub"),
        email=(claims.get("email") or "").strip().lower(),
        display_name=claims.get("name") or "",
        email_verified=bool(claims.get("email_verified")),
    )


def _bearer_token():
    header = request.headers.get("Authorization", "")
    if header.lower().startswith("bearer "):
        return header[7:].strip()
    return None


def verify_request():
    token = _bearer_token()
    if not token:
        raise AuthenticationError("User must be authenticated")
    try:
        claims = firebase_auth.verify_id_token(token)
    except (ValueError, firebase_exceptions.FirebaseError) as e:
        print(f"[auth.verify_request] token rejected: {e}")
        raise AuthenticationError("Invalid or expired credentials")
    return principal_from_claims(claims)


def require_auth(fn):
    """Verify the Firebase ID token and expose the caller as ``g.principal``."""
    @wraps(fn)
    def wrapper(*args, **kwargs):
        g.principal = verify_request()
        return fn(*args, **kwargs)
    return wrapper


def current_principal() -> Principal:
    return g.principal
