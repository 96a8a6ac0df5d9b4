"""
Invitation lifecycle: create, accept, resend and delete token-addressed
offers of list access.

An invitation is stored ``pending`` and moves to ``accepted`` when the invitee
accepts it. Expiry is not a stored transition: a pending invitation past
``expiresAt`` reads as ``expired``. Resending puts any invitation back to
``pending`` with a fresh seven-day window.
"""
import os

from flask import Blueprint, request, jsonify

from auth import current_principal, require_auth
from errors import (
    ExpiredError, ForbiddenError, InvalidStateError, NotFoundError,
    PermissionDeniedError, ValidationError,
)
from extensions import get_mailer, get_repository
from models import (
    INVITATION_TTL, InvitationStatus, canon_email, canon_share_permission, now_utc, parse_datetime,
)
from notifications import INVITATION_ACCEPTED, notify_quietly
from permissions import require_owner
from users import display_name_for

APP_BASE_URL = os.environ.get("APP_BASE_URL", "https://listor.eu").rstrip("/")

invitations_bp = Blueprint("invitations", __name__)


def invitation_url(token):
    return f"{APP_BASE_URL}/invitation/{token}"


def effective_status(invitation, now=None):
    now = now or now_utc()
    status = invitation.get("status")
    expires_at = parse_datetime(invitation.get("expiresAt"))
    if status == InvitationStatus.PENDING.value and expires_at and now > expires_at:
        return InvitationStatus.EXPIRED.value
    return status


def _present(invitation, now=None, task_list=None):
    out = {**invitation, "effectiveStatus": effective_status(invitation, now),
           "shareLink": invitation_url(invitation["id"])}
    if task_list is not None:
        out["listTitle"] = task_list.get("title")
    return out


def _load(repo, token):
    invitation = repo.get_invitation(token) if token else None
    if not invitation:
        raise NotFoundError("Invitation not found")
    return invitation


def _load_list(repo, list_id):
    task_list = repo.get_list(list_id)
    if not task_list:
        raise NotFoundError("Task list not found")
    return task_list


def _deliver(repo, mailer, token, invitation, task_list, inviter_name, now):
    """Send the email and record the outcome; never fails the caller."""
    try:
        result = mailer.send_invitation(
            invitee_email=invitation["inviteeEmail"],
            inviter_name=inviter_name,
            list_title=task_list.get("title", ""),
            permission=invitation["permission"],
            invitation_url=invitation_url(token),
        )
    except Exception as e:
        print(f"[invitations._deliver] mailer raised for {token}: {e}")
        result = {"success": False, "error": "Failed to send email"}

    update = {
        "emailSent": bool(result.get("success")),
        "emailSentAt": now if result.get("success") else None,
        "emailError": result.get("error") or None,
    }
    try:
        repo.update_invitation(token, update)
    except Exception as e:
        print(f"[invitations._deliver] could not record email status for {token}: {e}")
    if not update["emailSent"]:
        print(f"[invitations._deliver] email for {token} not sent: {update['emailError']}")
    return update


def create_invitation(repo, mailer, principal, list_id, invitee_email, permission, now=None):
    now = now or now_utc()
    task_list = _load_list(repo, list_id)
    require_owner(task_list, principal.uid, "Only list owner can send invitations")
    invitee = canon_email(invitee_email)
    perm = canon_share_permission(permission)
    if invitee == principal.email:
        raise ValidationError("You cannot invite yourself")

    doc = {
        "listId": list_id,
        "inviterEmail": principal.email,
        "inviteeEmail": invitee,
        "status": InvitationStatus.PENDING.value,
        "permission": perm.value,
        "createdAt": now,
        "expiresAt": now + INVITATION_TTL,
        "emailSent": False,
        "emailError": None,
    }
    token = repo.create_invitation(doc)
    print(f"[invitations.create] {token} list={list_id} invitee={invitee} permission={perm.value}")

    inviter_name = principal.display_name or display_name_for(repo, principal.uid, principal.email)
    email_state = _deliver(repo, mailer, token, doc, task_list, inviter_name, now)
    return _present({**doc, **email_state, "id": token, "token": token}, now)


def get_invitation(repo, principal, token, now=None):
    invitation = _load(repo, token)
    is_invitee = principal.verified_email is not None and principal.verified_email == invitation.get("inviteeEmail")
    if not is_invitee and principal.email != invitation.get("inviterEmail"):
        raise ForbiddenError("This invitation is not for your email address")
    task_list = repo.get_list(invitation.get("listId")) or {}
    return _present(invitation, now, task_list)


def accept_invitation(repo, principal, token, now=None):
    """
    Accept an invitation on behalf of ``principal``.

    The list's sharedWith entry and the invitation status are two separate
    writes; if the second fails the caller already has access.
    """
    now = now or now_utc()
    invitation = _load(repo, token)

    if invitation.get("status") != InvitationStatus.PENDING.value:
        raise InvalidStateError("Invitation has already been processed")
    expires_at = parse_datetime(invitation.get("expiresAt"))
    if expires_at is None or now > expires_at:
        raise ExpiredError("Invitation has expired")
    if not principal.verified_email or principal.verified_email != invitation.get("inviteeEmail"):
        raise ForbiddenError("This invitation is not for your email address")

    list_id = invitation["listId"]
    task_list = _load_list(repo, list_id)
    if task_list.get("ownerId") == principal.uid:
        raise ValidationError("You already own this list")

    repo.set_shared_user(list_id, principal.uid, {
        "permission": invitation["permission"],
        "addedAt": now,
        "addedBy": invitation["inviterEmail"],
    })
    repo.update_invitation(token, {
        "status": InvitationStatus.ACCEPTED.value,
        "acceptedAt": now,
        "acceptedBy": principal.uid,
    })
    print(f"[invitations.accept] {token} accepted by {principal.uid} on list={list_id}")

    notify_quietly(
        repo, task_list.get("ownerId"), INVITATION_ACCEPTED,
        f"{principal.label} joined your list '{task_list.get('title', '')}'",
        list_id, {"uid": principal.uid, "displayName": principal.label},
    )
    return {"success": True, "listId": list_id, "permission": invitation["permission"]}


def resend_invitation(repo, mailer, principal, token, now=None):
    now = now or now_utc()
    invitation = _load(repo, token)
    if invitation.get("inviterEmail") != principal.email:
        raise PermissionDeniedError("Only the inviter can resend invitations")
    task_list = _load_list(repo, invitation["listId"])

    reset = {
        "status": InvitationStatus.PENDING.value,
        "expiresAt": now + INVITATION_TTL,
        "resentAt": now,
        "emailSent": False,
        "emailError": None,
    }
    repo.update_invitation(token, reset)
    print(f"[invitations.resend] {token} reset to pending until {reset['expiresAt'].isoformat()}")

    inviter_name = principal.display_name or display_name_for(repo, principal.uid, principal.email)
    email_state = _deliver(repo, mailer, token, {**invitation, **reset}, task_list, inviter_name, now)
    return _present({**invitation, **reset, **email_state}, now)


def delete_invitation(repo, principal, token):
    invitation = _load(repo, token)
    if invitation.get("inviterEmail") != principal.email:
        raise PermissionDeniedError("Only the inviter can delete invitations")
    repo.delete_invitation(token)
    print(f"[invitations.delete] {token} removed")


def invitations_for_list(repo, principal, list_id, now=None):
    task_list = _load_list(repo, list_id)
    require_owner(task_list, principal.uid, "Only the list owner can view invitations")
    items = [_present(inv, now) for inv in repo.invitations_for_list(list_id)]
    return sorted(items, key=lambda i: parse_datetime(i.get("createdAt")) or now_utc(), reverse=True)


# -------- API Routes --------

@invitations_bp.route("/lists/<list_id>/invitations", methods=["POST"])
@require_auth
def create_invitation_route(list_id):
    data = request.get_json(silent=True) or {}
    if not data.get("inviteeEmail") or not data.get("permission"):
        raise ValidationError("Missing required fields")
    inv = create_invitation(get_repository(), get_mailer(), current_principal(),
                            list_id, data["inviteeEmail"], data["permission"])
    return jsonify(inv), 201


@invitations_bp.route("/lists/<list_id>/invitations", methods=["GET"])
@require_auth
def list_invitations_route(list_id):
    return jsonify(invitations_for_list(get_repository(), current_principal(), list_id)), 200


@invitations_bp.route("/invitations/<token>", methods=["GET"])
@require_auth
def get_invitation_route(token):
    return jsonify(get_invitation(get_repository(), current_principal(), token)), 200


@invitations_bp.route("/invitations/<token>/accept", methods=["POST"])
@require_auth
def accept_invitation_route(token):
    return jsonify(accept_invitation(get_repository(), current_principal(), token)), 200


@invitations_bp.route("/invitations/<token>/resend", methods=["POST"])
@require_auth
def resend_invitation_route(token):
    return jsonify(resend_invitation(get_repository(), get_mailer(), current_principal(), token)), 200


@invitations_bp.route("/invitations/<token>", methods=["DELETE"])
@require_auth
def delete_invitation_route(token):
    delete_invitation(get_repository(), current_principal(), token)
    return jsonify({"message": "Invitation deleted"}), 200
