from datetime import date

from flask import Blueprint, request, jsonify

from auth import require_auth
from errors import ValidationError
from extensions import get_repository
from models import TaskStatus, now_utc, parse_date
from recurrence import describe_pattern, next_occurrence, should_generate, validate_pattern
from task_stats import local_today

recurring_bp = Blueprint("recurring", __name__)


def build_next_instance(source_id, source, next_due, now):
    """New pending task continuing the series of ``source``."""
    doc = {
        "listId": source.get("listId"),
        "title": source.get("title"),
        "description": source.get("description", ""),
        "priority": source.get("priority", "medium"),
        "status": TaskStatus.PENDING.value,
        "dueDate": next_due.isoformat(),
        "assignedTo": source.get("assignedTo"),
        "isRecurring": True,
        "recurrencePattern": source.get("recurrencePattern"),
        "createdBy": source.get("createdBy"),
        "createdAt": now,
        "updatedAt": now,
        "completedAt": None,
        "completedBy": None,
        "generatedFrom": source_id,
    }
    return doc


def create_next_instance(repo, task_id, completed_task, now=None):
    """Create the instance that follows a just-completed recurring task.

    Returns the new task id, or None when the pattern has no further
    occurrence (end date passed) or the task has no due date to count from.
    """
    now = now or now_utc()
    pattern = completed_task.get("recurrencePattern")
    if not pattern or not completed_task.get("dueDate"):
        return None
    next_due = next_occurrence(completed_task["dueDate"], pattern)
    if next_due is None:
        return None
    new_id = repo.create_task(build_next_instance(task_id, completed_task, next_due, now))
    print(f"[recurring_tasks.create_next_instance] {task_id} -> {new_id} due {next_due.isoformat()}")
    return new_id


def _due_key(task):
    due = parse_date(task.get("dueDate"))
    return (due is None, due or date.min)


def series_root(task, by_id):
    """Follow ``generatedFrom`` back to the first instance of a series.

    A predecessor that no longer exists still names the series, so its id
    is returned as the root.
    """
    seen = set()
    current = task
    while current.get("generatedFrom") and current["id"] not in seen:
        seen.add(current["id"])
        parent_id = current["generatedFrom"]
        if parent_id not in by_id:
            return parent_id
        current = by_id[parent_id]
    return current["id"]


def series_instances(tasks, task):
    """Recurring tasks of ``tasks`` that belong to the same series as ``task``.

    Ordered by due date, undated instances last.
    """
    by_id = {t["id"]: t for t in tasks}
    by_id.setdefault(task["id"], task)
    root = series_root(task, by_id)
    members = [
        t for t in by_id.values()
        if t.get("isRecurring") and t.get("title") == task.get("title")
        and series_root(t, by_id) == root
    ]
    return sorted(members, key=_due_key)


def generate_recurring_tasks(repo, now=None):
    """
    Daily sweep: create upcoming instances for recurring series.

    A series is skipped when its recurrence has ended or when the list
    already holds a future instance with the same title. Otherwise the
    next occurrence is created if it falls within the generation window.
    """
    now = now or now_utc()
    today = local_today(now)
    created = []
    list_cache = {}

    for task in repo.recurring_tasks():
        pattern = task.get("recurrencePattern")
        if not pattern or not task.get("dueDate"):
            continue
        end_date = parse_date(pattern.get("endDate"))
        if end_date and end_date < today:
            continue

        list_id = task.get("listId")
        if list_id not in list_cache:
            list_cache[list_id] = repo.tasks_for_list(list_id)
        future_dates = [
            t["dueDate"] for t in list_cache[list_id]
            if t.get("title") == task.get("title") and t.get("isRecurring")
            and t.get("dueDate") and parse_date(t["dueDate"]) > today
        ]
        if future_dates:
            continue

        try:
            next_due = next_occurrence(task["dueDate"], pattern)
            if next_due is None or next_due <= today:
                continue
            if not should_generate(task["dueDate"], pattern, future_dates, today=today):
                continue
        except ValidationError as e:
            print(f"[recurring_tasks.generate] skipping {task['id']}: {e.message}")
            continue

        doc = build_next_instance(task["id"], task, next_due, now)
        new_id = repo.create_task(doc)
        list_cache[list_id].append({**doc, "id": new_id})
        created.append(new_id)

    if created:
        print(f"[recurring_tasks.generate] generated {len(created)} recurring tasks")
    else:
        print("[recurring_tasks.generate] no new recurring tasks to generate")
    return created


# -------- API Routes --------

@recurring_bp.route("/validate-pattern", methods=["POST"])
def validate_pattern_route():
    """Validate a recurrence pattern"""
    data = request.get_json(silent=True) or {}
    pattern = data.get("recurrencePattern")
    if not pattern:
        return jsonify({"valid": False, "errors": ["Pattern is required"], "warnings": []}), 400
    result = validate_pattern(pattern)
    return jsonify(result.to_dict()), 200 if result.valid else 400


@recurring_bp.route("/preview-next-date", methods=["POST"])
def preview_next_date():
    """Preview what the next due date would be"""
    data = request.get_json(silent=True) or {}
    current_due = data.get("currentDueDate")
    pattern = data.get("recurrencePattern")
    if not current_due or not pattern:
        raise ValidationError("currentDueDate and recurrencePattern required")
    current = parse_date(current_due)
    result = validate_pattern(pattern, today=current)
    if not result.valid:
        raise ValidationError("; ".join(e for e in result.errors if e not in result.warnings))
    next_due = next_occurrence(current, pattern)
    return jsonify({
        "currentDueDate": current.isoformat(),
        "nextDueDate": next_due.isoformat() if next_due else None,
        "description": describe_pattern(pattern),
    }), 200


@recurring_bp.route("/describe", methods=["POST"])
def describe_route():
    data = request.get_json(silent=True) or {}
    pattern = data.get("recurrencePattern")
    if not pattern:
        raise ValidationError("recurrencePattern is required")
    return jsonify({"description": describe_pattern(pattern)}), 200


# Manually trigger the generation sweep (for debugging)
@recurring_bp.route("/generate", methods=["POST"])
@require_auth
def trigger_generation():
    created = generate_recurring_tasks(get_repository())
    return jsonify({"success": True, "created": created}), 200
