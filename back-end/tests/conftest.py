"""
Global test configuration and fixtures
"""
import os
import sys
from unittest.mock import patch

import pytest

# Add the back-end directory to the Python path
ROOT_DIR = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
if ROOT_DIR not in sys.path:
    sys.path.insert(0, ROOT_DIR)
TESTS_DIR = os.path.dirname(os.path.abspath(__file__))
if TESTS_DIR not in sys.path:
    sys.path.insert(0, TESTS_DIR)

from fake_firestore import FakeFirestore
from repository import FirestoreRepository
from auth import principal_from_claims

# Token -> decoded claims used by the mocked verify_id_token
USERS = {
    "owner-token": {"uid": "owner-1", "email": "owner@example.com", "name": "Olivia Owner", "email_verified": True},
    "editor-token": {"uid": "editor-1", "email": "editor@example.com", "name": "Eddie Editor", "email_verified": True},
    "viewer-token": {"uid": "viewer-1", "email": "viewer@example.com", "name": "Vera Viewer", "email_verified": True},
    "stranger-token": {"uid": "stranger-1", "email": "stranger@example.com", "name": "Sam Stranger", "email_verified": True},
    "unverified-token": {"uid": "unverified-1", "email": "viewer@example.com", "name": "Not Verified", "email_verified": False},
}


class FakeMailer:
    """Records invitation emails instead of sending them."""

    def __init__(self, succeed=True):
        self.succeed = succeed
        self.sent = []

    def send_invitation(self, invitee_email, inviter_name, list_title, permission, invitation_url):
        self.sent.append({
            "invitee_email": invitee_email,
            "inviter_name": inviter_name,
            "list_title": list_title,
            "permission": permission,
            "invitation_url": invitation_url,
        })
        if self.succeed:
            return {"success": True, "messageId": f"msg-{len(self.sent)}", "error": None}
        return {"success": False, "messageId": None, "error": "Mailbox unavailable"}


def _verify(token, *args, **kwargs):
    if token not in USERS:
        raise ValueError("Token is not valid")
    return dict(USERS[token])


def principal(token):
    return principal_from_claims(USERS[token])


def auth_headers(token="owner-token"):
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def fake_db():
    return FakeFirestore()


@pytest.fixture
def repo(fake_db):
    return FirestoreRepository(fake_db)


@pytest.fixture
def mailer():
    return FakeMailer()


@pytest.fixture
def test_client(fake_db, mailer):
    """Flask test client backed by the fake Firestore, with token verification mocked."""
    from app import create_app

    app = create_app(db=fake_db, mailer=mailer, start_scheduler=False)
    app.config["TESTING"] = True
    with patch("auth.firebase_auth.verify_id_token", side_effect=_verify):
        with app.test_client() as client:
            yield client, fake_db


def seed_list(fake_db, list_id="list-1", owner="owner-1", shared_with=None, title="Groceries"):
    shared_with = shared_with or {}
    fake_db.collection("taskLists").document(list_id).set({
        "title": title,
        "description": "",
        "ownerId": owner,
        "isShared": bool(shared_with),
        "sharedWith": {uid: {"permission": p, "addedBy": "owner@example.com"} for uid, p in shared_with.items()},
    })
    return list_id


def seed_task(fake_db, task_id, list_id="list-1", **fields):
    doc = {
        "listId": list_id,
        "title": fields.pop("title", task_id),
        "description": "",
        "priority": "medium",
        "status": "pending",
        "dueDate": None,
        "assignedTo": None,
        "isRecurring": False,
        "recurrencePattern": None,
        "createdBy": "owner-1",
    }
    doc.update(fields)
    fake_db.collection("tasks").document(task_id).set(doc)
    return task_id


def seed_subtask(fake_db, subtask_id, task_id, status="pending", order=0):
    fake_db.collection("subtasks").document(subtask_id).set({
        "taskId": task_id,
        "title": subtask_id,
        "status": status,
        "order": order,
    })
    return subtask_id
