from flask import Blueprint, request, jsonify

from auth import current_principal, require_auth
from errors import ValidationError
from extensions import get_repository
from models import now_utc

users_bp = Blueprint("users", __name__)

PROFILE_FIELDS = ("displayName", "avatarUrl")


def display_name_for(repo, user_id, fallback=None):
    if not user_id:
        return fallback or ""
    try:
        u = repo.get_user(user_id)
        if u:
            return u.get("displayName") or u.get("email") or fallback or user_id
    except Exception as e:
        print(f"[users.display_name_for] lookup failed for {user_id}: {e}")
    return fallback or user_id


def touch_profile(repo, principal):
    """Create or refresh the caller's profile from their verified token."""
    existing = repo.get_user(principal.uid)
    now = now_utc()
    data = {"email": principal.email, "lastActive": now}
    if not existing:
        data["createdAt"] = now
        data["displayName"] = principal.display_name or principal.email
    repo.save_user(principal.uid, data)
    return {**(existing or {}), **data, "id": principal.uid}


# Read own profile
@users_bp.route("/me", methods=["GET"])
@require_auth
def get_me():
    return jsonify(touch_profile(get_repository(), current_principal())), 200


# Update own profile
@users_bp.route("/me", methods=["PUT", "PATCH"])
@require_auth
def update_me():
    data = request.get_json(silent=True) or {}
    patch = {k: data[k] for k in PROFILE_FIELDS if k in data}
    if "displayName" in patch:
        patch["displayName"] = (patch["displayName"] or "").strip()
        if not patch["displayName"]:
            raise ValidationError("displayName cannot be empty")
    repo = get_repository()
    profile = touch_profile(repo, current_principal())
    if patch:
        repo.save_user(current_principal().uid, patch)
    return jsonify({**profile, **patch}), 200
