"""
Read-only statistics, filtering and sorting over task and subtask documents.

Nothing here writes. Tasks are the plain dicts the repository returns
(camelCase keys, ``dueDate`` as ``YYYY-MM-DD``).
"""
import math
import os
from dataclasses import dataclass
from datetime import timedelta

import pytz

from errors import ValidationError
from models import Priority, TaskStatus, now_utc, parse_date, parse_datetime

APP_TIMEZONE = os.environ.get("APP_TIMEZONE", "UTC")

SORT_FIELDS = {"title", "createdAt", "updatedAt", "dueDate", "priority"}
BUCKETS = {"all", "today", "next7days"}


def local_today(now=None, tz_name=None):
    now = now or now_utc()
    tz = pytz.timezone(tz_name or APP_TIMEZONE)
    return now.astimezone(tz).date()


def _is_completed(task):
    return task.get("status") == TaskStatus.COMPLETED.value


def is_overdue(task, today):
    due = parse_date(task.get("dueDate"))
    return bool(due) and not _is_completed(task) and due < today


def _half_up_percent(part, whole):
    # half-up, so 12.5 -> 13
    return int(math.floor(part / whole * 100 + 0.5)) if whole else 0


def list_stats(tasks, now=None, tz_name=None):
    today = local_today(now, tz_name)
    total = len(tasks)
    completed = sum(1 for t in tasks if _is_completed(t))
    return {
        "totalTasks": total,
        "completedTasks": completed,
        "pendingTasks": total - completed,
        "overdueTasks": sum(1 for t in tasks if is_overdue(t, today)),
        "dueToday": sum(1 for t in tasks if parse_date(t.get("dueDate")) == today),
        "completionRate": _half_up_percent(completed, total),
    }


def subtask_stats(subtasks):
    total = len(subtasks)
    completed = sum(1 for s in subtasks if _is_completed(s))
    return {"total": total, "completed": completed, "pending": total - completed}


def progress_percentage(task, stats):
    if stats["total"] > 0:
        return _half_up_percent(stats["completed"], stats["total"])
    return 100 if _is_completed(task) else 0


@dataclass
class TaskFilter:
    status: str = "all"
    priority: str = "all"
    assigned_to: str = "all"
    due_start: object = None
    due_end: object = None

    @classmethod
    def from_args(cls, args):
        status = (args.get("status") or "all").strip().lower()
        if status != "all" and status not in {s.value for s in TaskStatus}:
            raise ValidationError(f"Invalid status filter: {status}")
        priority = (args.get("priority") or "all").strip().lower()
        if priority != "all" and priority not in {p.value for p in Priority}:
            raise ValidationError(f"Invalid priority filter: {priority}")
        return cls(
            status=status,
            priority=priority,
            assigned_to=(args.get("assignedTo") or "all").strip(),
            due_start=parse_date(args.get("dueStart")),
            due_end=parse_date(args.get("dueEnd")),
        )

    def matches(self, task):
        if self.status != "all" and task.get("status") != self.status:
            return False
        if self.priority != "all" and task.get("priority") != self.priority:
            return False
        if self.assigned_to != "all" and task.get("assignedTo") != self.assigned_to:
            return False
        due = parse_date(task.get("dueDate"))
        if due:
            if self.due_start and due < self.due_start:
                return False
            if self.due_end and due > self.due_end:
                return False
        return True


def apply_filter(tasks, task_filter):
    return [t for t in tasks if task_filter.matches(t)]


@dataclass
class TaskSort:
    field: str = "createdAt"
    direction: str = "desc"

    @classmethod
    def from_args(cls, args):
        f = args.get("sort") or "createdAt"
        d = (args.get("direction") or "desc").lower()
        if f not in SORT_FIELDS:
            raise ValidationError(f"Invalid sort field: {f}")
        if d not in ("asc", "desc"):
            raise ValidationError("direction must be 'asc' or 'desc'")
        return cls(field=f, direction=d)


def _sort_key(sort_field):
    if sort_field == "title":
        return lambda t: t.get("title") or ""
    if sort_field == "priority":
        return lambda t: Priority(t.get("priority") or "medium").rank
    if sort_field == "dueDate":
        return lambda t: parse_date(t.get("dueDate"))
    return lambda t: parse_datetime(t.get(sort_field)) or parse_datetime("1970-01-01")


def sort_tasks(tasks, task_sort):
    """Stable sort. Tasks without a due date go last whichever the direction."""
    reverse = task_sort.direction == "desc"
    if task_sort.field == "dueDate":
        dated = [t for t in tasks if parse_date(t.get("dueDate"))]
        undated = [t for t in tasks if not parse_date(t.get("dueDate"))]
        return sorted(dated, key=_sort_key("dueDate"), reverse=reverse) + undated
    return sorted(tasks, key=_sort_key(task_sort.field), reverse=reverse)


def bucket_tasks(tasks, bucket, now=None, tz_name=None):
    """
    Time-bucket view. ``today`` and ``next7days`` both fold in pending tasks
    that are already overdue.
    """
    if bucket in (None, "", "all"):
        return list(tasks)
    if bucket not in BUCKETS:
        raise ValidationError(f"Invalid bucket: {bucket}")
    today = local_today(now, tz_name)
    end = today + timedelta(days=1 if bucket == "today" else 7)
    out = []
    for t in tasks:
        due = parse_date(t.get("dueDate"))
        if not due:
            continue
        if is_overdue(t, today) or today <= due < end:
            out.append(t)
    return out
