# back-end/sharing.py
from flask import Blueprint, request, jsonify

from auth import current_principal, require_auth
from errors import NotFoundError, ValidationError
from extensions import get_repository
from models import canon_email
from notifications import ACCESS_REMOVED, notify_quietly
from permissions import capabilities, require_owner

sharing_bp = Blueprint("sharing", __name__)


def _load_list(repo, list_id):
    task_list = repo.get_list(list_id)
    if not task_list:
        raise NotFoundError("Task list not found")
    return task_list


def remove_access(repo, principal, list_id, user_id):
    """Drop ``user_id`` from the list's collaborators and refresh ``isShared``."""
    task_list = _load_list(repo, list_id)
    require_owner(task_list, principal.uid, "You do not have permission to modify this list")
    shared = dict(task_list.get("sharedWith") or {})
    if user_id not in shared:
        raise NotFoundError("User does not have access to this list")
    del shared[user_id]
    still_shared = bool(shared)
    repo.remove_shared_user(list_id, user_id, still_shared)
    print(f"[sharing.remove_access] list={list_id} user={user_id} isShared={still_shared}")

    notify_quietly(
        repo, user_id, ACCESS_REMOVED,
        f"Your access to '{task_list.get('title', '')}' was removed",
        list_id, {"uid": principal.uid, "displayName": principal.label},
    )
    return {"listId": list_id, "removed": user_id, "isShared": still_shared, "sharedWith": shared}


def unshare_by_email(repo, principal, list_id, email):
    """Remove a collaborator identified by email.

    The user is located by scanning every profile for a matching email.
    """
    require_owner(_load_list(repo, list_id), principal.uid, "You do not have permission to modify this list")
    target = repo.find_user_by_email(canon_email(email))
    if not target:
        raise NotFoundError("No user with that email")
    return remove_access(repo, principal, list_id, target["id"])


# -------- API Routes --------

@sharing_bp.route("/lists/<list_id>/permission", methods=["GET"])
@require_auth
def get_permission_route(list_id):
    task_list = _load_list(get_repository(), list_id)
    return jsonify(capabilities(task_list, current_principal().uid)), 200


@sharing_bp.route("/lists/<list_id>/shared/<user_id>", methods=["DELETE"])
@require_auth
def remove_access_route(list_id, user_id):
    return jsonify(remove_access(get_repository(), current_principal(), list_id, user_id)), 200


@sharing_bp.route("/lists/<list_id>/unshare", methods=["POST"])
@require_auth
def unshare_route(list_id):
    data = request.get_json(silent=True) or {}
    if not data.get("email"):
        raise ValidationError("email is required")
    return jsonify(unshare_by_email(get_repository(), current_principal(), list_id, data["email"])), 200
