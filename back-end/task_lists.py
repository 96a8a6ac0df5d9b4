# back-end/task_lists.py
from flask import Blueprint, request, jsonify

from auth import current_principal, require_auth
from errors import NotFoundError, ValidationError
from extensions import get_repository
from models import (
  RecurrencePattern, TaskStatus, canon_priority, canon_status, now_utc, parse_date,
)
from permissions import capabilities, require_edit, require_owner, require_view
from recurrence import validate_pattern
from recurring_tasks import create_next_instance, series_instances
import task_stats

lists_bp = Blueprint("task_lists", __name__)

TASK_PATCH_FIELDS = {
  "title", "description", "priority", "status", "dueDate",
  "assignedTo", "isRecurring", "recurrencePattern",
}
SUBTASK_PATCH_FIELDS = {"title", "status", "order"}
LIST_PATCH_FIELDS = {"title", "description"}


def _required_text(value, field_name):
  v = (value or "").strip() if isinstance(value, str) or value is None else None
  if not v:
    raise ValidationError(f"{field_name} is required")
  return v


def _reject_unknown(data, allowed):
  unknown = sorted(set(data) - allowed)
  if unknown:
    raise ValidationError(f"Unknown fields: {', '.join(unknown)}")


def _clean_pattern(raw):
  pattern = RecurrencePattern.from_dict(raw)
  result = validate_pattern(pattern)
  if not result.valid:
    raise ValidationError("; ".join(e for e in result.errors if e not in result.warnings))
  return pattern.to_dict()


def _date_field(value):
  d = parse_date(value)
  return d.isoformat() if d else None


def _completion_fields(status, user_id, now):
  if status == TaskStatus.COMPLETED:
    return {"completedAt": now, "completedBy": user_id}
  return {"completedAt": None, "completedBy": None}


def load_list(repo, list_id):
  task_list = repo.get_list(list_id)
  if not task_list:
    raise NotFoundError("Task list not found")
  return task_list


def load_task(repo, task_id):
  task = repo.get_task(task_id)
  if not task:
    raise NotFoundError("Task not found")
  return task


def load_subtask(repo, subtask_id):
  subtask = repo.get_subtask(subtask_id)
  if not subtask:
    raise NotFoundError("Subtask not found")
  return subtask


def _touch_list(repo, list_id, now):
  try:
    repo.update_list(list_id, {"updatedAt": now})
  except Exception as e:
    print(f"[task_lists._touch_list] could not bump list {list_id}: {e}")


def _touch_task(repo, task_id, now):
  try:
    repo.update_task(task_id, {"updatedAt": now})
  except Exception as e:
    print(f"[task_lists._touch_task] could not bump task {task_id}: {e}")


# -------- Task lists --------

def create_list(repo, principal, data):
  now = now_utc()
  doc = {
    "title": _required_text(data.get("title"), "title"),
    "description": (data.get("description") or "").strip(),
    "ownerId": principal.uid,
    "createdAt": now,
    "updatedAt": now,
    "isShared": False,
    "sharedWith": {},
  }
  list_id = repo.create_list(doc)
  print(f"[task_lists.create_list] {list_id} owner={principal.uid}")
  return {**doc, "id": list_id}


def get_list(repo, principal, list_id):
  task_list = load_list(repo, list_id)
  require_view(task_list, principal.uid)
  stats = task_stats.list_stats(repo.tasks_for_list(list_id))
  return {**task_list, **stats, **capabilities(task_list, principal.uid)}


def update_list(repo, principal, list_id, data):
  _reject_unknown(data, LIST_PATCH_FIELDS)
  task_list = load_list(repo, list_id)
  require_edit(task_list, principal.uid)
  patch = {}
  if "title" in data:
    patch["title"] = _required_text(data.get("title"), "title")
  if "description" in data:
    patch["description"] = (data.get("description") or "").strip()
  patch["updatedAt"] = now_utc()
  repo.update_list(list_id, patch)
  return {**task_list, **patch}


def delete_list(repo, principal, list_id):
  task_list = load_list(repo, list_id)
  require_owner(task_list, principal.uid, "Only the list owner can delete this list")
  counts = repo.delete_list_cascade(list_id)
  print(f"[task_lists.delete_list] {list_id} removed tasks={counts['tasks']} subtasks={counts['subtasks']} invitations={counts['invitations']}")
  return counts


def lists_for_user(repo, principal):
  merged = {l["id"]: l for l in repo.lists_owned_by(principal.uid)}
  for l in repo.lists_shared_with(principal.uid):
    merged.setdefault(l["id"], l)
  items = []
  for l in merged.values():
    try:
      stats = task_stats.list_stats(repo.tasks_for_list(l["id"]))
    except Exception as e:
      print(f"[task_lists.lists_for_user] stats unavailable for {l['id']}: {e}")
      stats = task_stats.list_stats([])
    items.append({**l, **stats, **capabilities(l, principal.uid)})
  items.sort(key=lambda l: l.get("updatedAt") or now_utc(), reverse=True)
  return items


# -------- Tasks --------

def create_task(repo, principal, list_id, data):
  task_list = load_list(repo, list_id)
  require_edit(task_list, principal.uid)
  now = now_utc()

  is_recurring = bool(data.get("isRecurring"))
  pattern = data.get("recurrencePattern")
  if is_recurring and not pattern:
    raise ValidationError("recurrencePattern is required for recurring tasks")
  if not is_recurring and pattern:
    raise ValidationError("recurrencePattern requires isRecurring to be true")

  doc = {
    "listId": list_id,
    "title": _required_text(data.get("title"), "title"),
    "description": (data.get("description") or "").strip(),
    "priority": canon_priority(data.get("priority")).value,
    "status": TaskStatus.PENDING.value,
    "dueDate": _date_field(data.get("dueDate")),
    "assignedTo": data.get("assignedTo") or None,
    "isRecurring": is_recurring,
    "recurrencePattern": _clean_pattern(pattern) if is_recurring else None,
    "createdBy": principal.uid,
    "createdAt": now,
    "updatedAt": now,
    "completedAt": None,
    "completedBy": None,
  }
  if data.get("generatedFrom"):
    doc["generatedFrom"] = data["generatedFrom"]

  task_id = repo.create_task(doc)
  _touch_list(repo, list_id, now)
  print(f"[task_lists.create_task] {task_id} in list={list_id}")
  return {**doc, "id": task_id}


def get_task(repo, principal, task_id):
  task = load_task(repo, task_id)
  require_view(load_list(repo, task["listId"]), principal.uid)
  return with_subtasks(repo, task)


def update_task(repo, principal, task_id, data):
  """
  Apply an explicit partial update to a task.

  Only the fields present in ``data`` are written, so two collaborators
  changing different fields do not overwrite each other. Completing a
  recurring task also creates its next instance; a failure there is logged
  and does not undo the completion.
  """
  _reject_unknown(data, TASK_PATCH_FIELDS)
  prev = load_task(repo, task_id)
  task_list = load_list(repo, prev["listId"])
  require_edit(task_list, principal.uid)
  now = now_utc()

  patch = {}
  if "title" in data:
    patch["title"] = _required_text(data.get("title"), "title")
  if "description" in data:
    patch["description"] = (data.get("description") or "").strip()
  if "priority" in data:
    patch["priority"] = canon_priority(data.get("priority")).value
  if "dueDate" in data:
    patch["dueDate"] = _date_field(data.get("dueDate"))
  if "assignedTo" in data:
    patch["assignedTo"] = data.get("assignedTo") or None

  is_recurring = bool(data.get("isRecurring", prev.get("isRecurring")))
  if "isRecurring" in data or "recurrencePattern" in data:
    pattern = data.get("recurrencePattern", prev.get("recurrencePattern"))
    if is_recurring and not pattern:
      raise ValidationError("recurrencePattern is required for recurring tasks")
    if not is_recurring and data.get("recurrencePattern"):
      raise ValidationError("recurrencePattern requires isRecurring to be true")
    patch["isRecurring"] = is_recurring
    patch["recurrencePattern"] = _clean_pattern(pattern) if is_recurring else None

  old_status = prev.get("status")
  if "status" in data:
    status = canon_status(data.get("status"))
    patch["status"] = status.value
    if status.value != old_status:
      patch.update(_completion_fields(status, principal.uid, now))

  patch["updatedAt"] = now
  repo.update_task(task_id, patch)
  updated = {**prev, **patch}

  next_id = None
  if patch.get("status") == TaskStatus.COMPLETED.value and old_status != TaskStatus.COMPLETED.value:
    if updated.get("isRecurring") and updated.get("recurrencePattern"):
      try:
        next_id = create_next_instance(repo, task_id, updated)
        if next_id:
          print(f"[task_lists.update_task] recurring: created next instance {next_id}")
        else:
          print(f"[task_lists.update_task] recurring: series for {task_id} has ended")
      except Exception as e:
        print(f"[task_lists.update_task] recurring: failed to create instance for {task_id}: {e}")

  _touch_list(repo, prev["listId"], now)
  return {**updated, "nextInstanceId": next_id}


def series_history(repo, principal, task_id, now=None):
  """Every instance of the recurring series ``task_id`` belongs to, with counts."""
  task = load_task(repo, task_id)
  require_view(load_list(repo, task["listId"]), principal.uid)
  if not task.get("isRecurring"):
    raise ValidationError("Task is not recurring")
  instances = series_instances(repo.tasks_for_list(task["listId"]), task)
  today = task_stats.local_today(now)
  return {
    "taskId": task_id,
    "instances": instances,
    "counts": {
      "completed": sum(1 for t in instances if t.get("status") == TaskStatus.COMPLETED.value),
      "pending": sum(1 for t in instances if t.get("status") == TaskStatus.PENDING.value),
      "overdue": sum(1 for t in instances if task_stats.is_overdue(t, today)),
    },
  }


def delete_task(repo, principal, task_id):
  task = load_task(repo, task_id)
  require_edit(load_list(repo, task["listId"]), principal.uid)
  removed = repo.delete_task_cascade(task_id)
  _touch_list(repo, task["listId"], now_utc())
  print(f"[task_lists.delete_task] {task_id} removed with {removed} subtasks")
  return {"subtasks": removed}


def _ordered_subtasks(subtasks):
  return sorted(subtasks, key=lambda s: (s.get("order", 0), s.get("createdAt") or now_utc()))


def with_subtasks(repo, task):
  subtasks = _ordered_subtasks(repo.subtasks_for_task(task["id"]))
  stats = task_stats.subtask_stats(subtasks)
  return {
    **task,
    "subtasks": subtasks,
    "subtaskStats": stats,
    "progressPercentage": task_stats.progress_percentage(task, stats),
  }


def tasks_for_list(repo, principal, list_id, args=None):
  args = args or {}
  task_list = load_list(repo, list_id)
  require_view(task_list, principal.uid)
  task_filter = task_stats.TaskFilter.from_args(args)
  task_sort = task_stats.TaskSort.from_args(args)

  tasks = repo.tasks_for_list(list_id)
  stats = task_stats.list_stats(tasks)
  tasks = task_stats.bucket_tasks(tasks, args.get("bucket"))
  tasks = task_stats.apply_filter(tasks, task_filter)
  tasks = task_stats.sort_tasks(tasks, task_sort)
  return {"tasks": [with_subtasks(repo, t) for t in tasks], "stats": stats}


# -------- Subtasks --------

def create_subtask(repo, principal, task_id, data):
  task = load_task(repo, task_id)
  require_edit(load_list(repo, task["listId"]), principal.uid)
  now = now_utc()
  existing = repo.subtasks_for_task(task_id)

  order = data.get("order")
  if order is None:
    order = max((s.get("order", 0) for s in existing), default=-1) + 1
  elif isinstance(order, bool) or not isinstance(order, int):
    raise ValidationError("order must be an integer")

  doc = {
    "taskId": task_id,
    "title": _required_text(data.get("title"), "title"),
    "status": TaskStatus.PENDING.value,
    "order": order,
    "createdBy": principal.uid,
    "createdAt": now,
    "completedAt": None,
    "completedBy": None,
  }
  subtask_id = repo.create_subtask(doc)
  _touch_task(repo, task_id, now)
  return {**doc, "id": subtask_id}


def update_subtask(repo, principal, subtask_id, data):
  _reject_unknown(data, SUBTASK_PATCH_FIELDS)
  subtask = load_subtask(repo, subtask_id)
  task = load_task(repo, subtask["taskId"])
  require_edit(load_list(repo, task["listId"]), principal.uid)
  now = now_utc()

  patch = {}
  if "title" in data:
    patch["title"] = _required_text(data.get("title"), "title")
  if "order" in data:
    if isinstance(data["order"], bool) or not isinstance(data["order"], int):
      raise ValidationError("order must be an integer")
    patch["order"] = data["order"]
  if "status" in data:
    status = canon_status(data.get("status"))
    patch["status"] = status.value
    if status.value != subtask.get("status"):
      patch.update(_completion_fields(status, principal.uid, now))

  if patch:
    repo.update_subtask(subtask_id, patch)
  _touch_task(repo, task["id"], now)
  return {**subtask, **patch}


def delete_subtask(repo, principal, subtask_id):
  subtask = load_subtask(repo, subtask_id)
  task = load_task(repo, subtask["taskId"])
  require_edit(load_list(repo, task["listId"]), principal.uid)
  repo.delete_subtask(subtask_id)
  _touch_task(repo, task["id"], now_utc())


# -------- API Routes --------

def _body():
  return request.get_json(silent=True) or {}


@lists_bp.route("/lists", methods=["GET"])
@require_auth
def list_lists():
  return jsonify(lists_for_user(get_repository(), current_principal())), 200


@lists_bp.route("/lists", methods=["POST"])
@require_auth
def create_list_route():
  return jsonify(create_list(get_repository(), current_principal(), _body())), 201


@lists_bp.route("/lists/<list_id>", methods=["GET"])
@require_auth
def get_list_route(list_id):
  return jsonify(get_list(get_repository(), current_principal(), list_id)), 200


@lists_bp.route("/lists/<list_id>", methods=["PUT", "PATCH"])
@require_auth
def update_list_route(list_id):
  return jsonify(update_list(get_repository(), current_principal(), list_id, _body())), 200


@lists_bp.route("/lists/<list_id>", methods=["DELETE"])
@require_auth
def delete_list_route(list_id):
  counts = delete_list(get_repository(), current_principal(), list_id)
  return jsonify({"message": "Task list deleted", "deleted": counts}), 200


@lists_bp.route("/lists/<list_id>/tasks", methods=["GET"])
@require_auth
def list_tasks_route(list_id):
  return jsonify(tasks_for_list(get_repository(), current_principal(), list_id, request.args)), 200


@lists_bp.route("/lists/<list_id>/tasks", methods=["POST"])
@require_auth
def create_task_route(list_id):
  return jsonify(create_task(get_repository(), current_principal(), list_id, _body())), 201


@lists_bp.route("/tasks/<task_id>", methods=["GET"])
@require_auth
def get_task_route(task_id):
  return jsonify(get_task(get_repository(), current_principal(), task_id)), 200


@lists_bp.route("/tasks/<task_id>", methods=["PUT", "PATCH"])
@require_auth
def update_task_route(task_id):
  return jsonify(update_task(get_repository(), current_principal(), task_id, _body())), 200


@lists_bp.route("/tasks/<task_id>", methods=["DELETE"])
@require_auth
def delete_task_route(task_id):
  counts = delete_task(get_repository(), current_principal(), task_id)
  return jsonify({"message": "Task deleted", "deleted": counts}), 200


@lists_bp.route("/tasks/<task_id>/history", methods=["GET"])
@require_auth
def series_history_route(task_id):
  return jsonify(series_history(get_repository(), current_principal(), task_id)), 200


@lists_bp.route("/tasks/<task_id>/subtasks", methods=["GET"])
@require_auth
def list_subtasks_route(task_id):
  task = get_task(get_repository(), current_principal(), task_id)
  return jsonify(task["subtasks"]), 200


@lists_bp.route("/tasks/<task_id>/subtasks", methods=["POST"])
@require_auth
def create_subtask_route(task_id):
  return jsonify(create_subtask(get_repository(), current_principal(), task_id, _body())), 201


@lists_bp.route("/subtasks/<subtask_id>", methods=["PUT", "PATCH"])
@require_auth
def update_subtask_route(subtask_id):
  return jsonify(update_subtask(get_repository(), current_principal(), subtask_id, _body())), 200


@lists_bp.route("/subtasks/<subtask_id>", methods=["DELETE"])
@require_auth
def delete_subtask_route(subtask_id):
  delete_subtask(get_repository(), current_principal(), subtask_id)
  return jsonify({"message": "Subtask deleted"}), 200
