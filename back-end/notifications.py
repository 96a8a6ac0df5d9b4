# back-end/notifications.py
from flask import Blueprint, jsonify

from auth import current_principal, require_auth
from errors import NotFoundError, PermissionDeniedError
from extensions import get_repository
from models import now_utc

notifications_bp = Blueprint("notifications", __name__)

INVITATION_ACCEPTED = "invitation_accepted"
ACCESS_REMOVED = "access_removed"


def add_notification(repo, user_id, notif_type, message, list_id, from_user=None):
    notif = {
        "userId": user_id,
        "type": notif_type,
        "message": message,
        "listId": list_id,
        "fromUser": from_user,
        "read": False,
        "createdAt": now_utc(),
    }
    notif = {k: v for k, v in notif.items() if v is not None}
    notif_id = repo.add_notification(notif)
    print(f"[notifications.add] created -> {notif_id} type={notif_type} user={user_id}")
    return {**notif, "id": notif_id}


def notify_quietly(repo, *args, **kwargs):
    """Best-effort variant: a failed notification never fails the caller."""
    try:
        return add_notification(repo, *args, **kwargs)
    except Exception as e:
        print(f"[notifications.add] failed: {e}")
        return None


def list_for_user(repo, user_id):
    items = repo.notifications_for_user(user_id)
    return sorted(items, key=lambda n: n.get("createdAt") or now_utc(), reverse=True)


def mark_as_read(repo, notification_id, user_id):
    notif = repo.get_notification(notification_id)
    if not notif:
        raise NotFoundError("Notification not found")
    if notif.get("userId") != user_id:
        raise PermissionDeniedError("Not your notification")
    if not notif.get("read"):
        repo.update_notification(notification_id, {"read": True})
    return {**notif, "read": True}


# -------- API Routes --------

@notifications_bp.route("", methods=["GET"])
@require_auth
def get_notifications():
    items = list_for_user(get_repository(), current_principal().uid)
    unread = sum(1 for n in items if not n.get("read"))
    return jsonify({"notifications": items, "unreadCount": unread}), 200


@notifications_bp.route("/<notification_id>/read", methods=["POST"])
@require_auth
def read_notification(notification_id):
    notif = mark_as_read(get_repository(), notification_id, current_principal().uid)
    return jsonify(notif), 200
