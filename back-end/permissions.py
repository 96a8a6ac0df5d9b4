# back-end/permissions.py
from errors import PermissionDeniedError
from models import Permission, SharePermission


def resolve_permission(task_list: dict, user_id: str) -> Permission:
    """Effective permission of ``user_id`` on a list: owner, edit, view or none."""
    if not task_list or not user_id:
        return Permission.NONE
    if task_list.get("ownerId") == user_id:
        return Permission.OWNER
    entry = (task_list.get("sharedWith") or {}).get(user_id)
    if entry:
        try:
            return Permission(SharePermission(entry.get("permission")).value)
        except ValueError:
            return Permission.NONE
    return Permission.NONE


def can_view(permission: Permission) -> bool:
    return permission != Permission.NONE


def can_edit(permission: Permission) -> bool:
    return permission in (Permission.OWNER, Permission.EDIT)


def can_share(permission: Permission) -> bool:
    return permission == Permission.OWNER


def can_delete(permission: Permission) -> bool:
    return permission == Permission.OWNER


def capabilities(task_list: dict, user_id: str) -> dict:
    p = resolve_permission(task_list, user_id)
    return {
        "permission": p.value,
        "canView": can_view(p),
        "canEdit": can_edit(p),
        "canShare": can_share(p),
        "canDelete": can_delete(p),
    }


def require_view(task_list, user_id):
    p = resolve_permission(task_list, user_id)
    if not can_view(p):
        raise PermissionDeniedError("You do not have access to this list")
    return p


def require_edit(task_list, user_id):
    p = resolve_permission(task_list, user_id)
    if not can_edit(p):
        raise PermissionDeniedError("You do not have permission to edit this list")
    return p


def require_owner(task_list, user_id, message="Only the list owner can do this"):
    p = resolve_permission(task_list, user_id)
    if p != Permission.OWNER:
        raise PermissionDeniedError(message)
    return p
