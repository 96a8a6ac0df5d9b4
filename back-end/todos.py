# back-end/todos.py
# Legacy single-list todo endpoints kept for the older non-realtime client.
from flask import Blueprint, request, jsonify

from errors import NotFoundError, ValidationError
from extensions import get_repository
from models import parse_date

todos_bp = Blueprint("todos", __name__)


def _clean(data, partial=False):
    out = {}
    if "text" in data or not partial:
        text = data.get("text")
        if not isinstance(text, str) or not text.strip():
            raise ValidationError("text is required")
        out["text"] = text.strip()
    if "completed" in data:
        if not isinstance(data["completed"], bool):
            raise ValidationError("completed must be a boolean")
        out["completed"] = data["completed"]
    elif not partial:
        out["completed"] = False
    if "dueDate" in data:
        d = parse_date(data.get("dueDate"))
        out["dueDate"] = d.isoformat() if d else None
    elif not partial:
        out["dueDate"] = None
    return out


@todos_bp.route("", methods=["GET"])
def get_todos():
    return jsonify(get_repository().list_todos()), 200


@todos_bp.route("", methods=["POST"])
def create_todo():
    doc = _clean(request.get_json(silent=True) or {})
    todo_id = get_repository().create_todo(doc)
    return jsonify({**doc, "id": todo_id}), 200


@todos_bp.route("/<todo_id>", methods=["PATCH"])
def update_todo(todo_id):
    repo = get_repository()
    existing = repo.get_todo(todo_id)
    if not existing:
        raise NotFoundError("Todo not found")
    patch = _clean(request.get_json(silent=True) or {}, partial=True)
    if patch:
        repo.update_todo(todo_id, patch)
    return jsonify({**existing, **patch}), 200


@todos_bp.route("/<todo_id>", methods=["DELETE"])
def delete_todo(todo_id):
    repo = get_repository()
    if not repo.get_todo(todo_id):
        raise NotFoundError("Todo not found")
    repo.delete_todo(todo_id)
    return "", 204
