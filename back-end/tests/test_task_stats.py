"""Unit tests for list statistics, progress, filtering, sorting and buckets."""
from datetime import date, datetime, timezone

import pytest

from errors import ValidationError
from task_stats import (
    TaskFilter, TaskSort, apply_filter, bucket_tasks, is_overdue, list_stats, local_today,
    progress_percentage, sort_tasks, subtask_stats,
)

NOW = datetime(2024, 1, 10, 12, 0, tzinfo=timezone.utc)


def _task(task_id, **fields):
    return {"id": task_id, "title": task_id, "status": "pending", "priority": "medium", **fields}


class TestListStats:
    def test_counts(self):
        tasks = [
            _task("a", dueDate="2024-01-05"),
            _task("b", dueDate="2024-01-05", status="completed"),
            _task("c", dueDate="2024-01-10"),
            _task("d"),
        ]
        assert list_stats(tasks, now=NOW) == {
            "totalTasks": 4,
            "completedTasks": 1,
            "pendingTasks": 3,
            "overdueTasks": 1,
            "dueToday": 1,
            "completionRate": 25,
        }

    def test_empty_list(self):
        assert list_stats([], now=NOW) == {
            "totalTasks": 0, "completedTasks": 0, "pendingTasks": 0, "overdueTasks": 0,
            "dueToday": 0, "completionRate": 0,
        }

    def test_overdue_uses_configured_timezone(self):
        early = datetime(2024, 1, 10, 2, 0, tzinfo=timezone.utc)
        task = _task("a", dueDate="2024-01-09")
        assert local_today(early, "UTC") == date(2024, 1, 10)
        assert local_today(early, "America/New_York") == date(2024, 1, 9)
        assert list_stats([task], now=early, tz_name="UTC")["overdueTasks"] == 1
        assert list_stats([task], now=early, tz_name="America/New_York")["overdueTasks"] == 0

    def test_completion_rate_rounds_half_up(self):
        tasks = [_task("a", status="completed")] + [_task(f"p{i}") for i in range(7)]
        assert list_stats(tasks, now=NOW)["completionRate"] == 13
        three = [_task("a", status="completed"), _task("b", status="completed"), _task("c")]
        assert list_stats(three, now=NOW)["completionRate"] == 67

    def test_due_today_counts_completed_tasks_too(self):
        tasks = [_task("a", dueDate="2024-01-10", status="completed"), _task("b", dueDate="2024-01-11")]
        assert list_stats(tasks, now=NOW)["dueToday"] == 1

    def test_completed_task_is_never_overdue(self):
        assert not is_overdue(_task("a", dueDate="2020-01-01", status="completed"), date(2024, 1, 1))


class TestProgress:
    def test_two_of_three_rounds_to_67(self):
        stats = subtask_stats([
            {"status": "completed"}, {"status": "completed"}, {"status": "pending"},
        ])
        assert stats == {"total": 3, "completed": 2, "pending": 1}
        assert progress_percentage(_task("t"), stats) == 67

    def test_half_rounds_up(self):
        stats = {"total": 8, "completed": 1, "pending": 7}
        assert progress_percentage(_task("t"), stats) == 13

    def test_no_subtasks_follows_task_status(self):
        empty = subtask_stats([])
        assert progress_percentage(_task("t"), empty) == 0
        assert progress_percentage(_task("t", status="completed"), empty) == 100


class TestFilter:
    TASKS = [
        _task("a", priority="high", assignedTo="u1", dueDate="2024-01-05"),
        _task("b", priority="low", status="completed", dueDate="2024-01-20"),
        _task("c", priority="high", assignedTo="u2"),
    ]

    def test_defaults_match_everything(self):
        assert apply_filter(self.TASKS, TaskFilter.from_args({})) == self.TASKS

    def test_status_and_priority(self):
        f = TaskFilter.from_args({"status": "pending", "priority": "high"})
        assert [t["id"] for t in apply_filter(self.TASKS, f)] == ["a", "c"]

    def test_assignee(self):
        f = TaskFilter.from_args({"assignedTo": "u2"})
        assert [t["id"] for t in apply_filter(self.TASKS, f)] == ["c"]

    def test_due_range_is_inclusive_and_keeps_undated(self):
        f = TaskFilter.from_args({"dueStart": "2024-01-05", "dueEnd": "2024-01-05"})
        assert [t["id"] for t in apply_filter(self.TASKS, f)] == ["a", "c"]

    def test_invalid_values(self):
        with pytest.raises(ValidationError):
            TaskFilter.from_args({"status": "archived"})
        with pytest.raises(ValidationError):
            TaskFilter.from_args({"priority": "urgent"})


class TestSort:
    TASKS = [
        _task("a", priority="low", dueDate="2024-01-03"),
        _task("b", priority="high"),
        _task("c", priority="medium", dueDate="2024-01-01"),
    ]

    def test_due_date_ascending_undated_last(self):
        out = sort_tasks(self.TASKS, TaskSort.from_args({"sort": "dueDate", "direction": "asc"}))
        assert [t["id"] for t in out] == ["c", "a", "b"]

    def test_due_date_descending_undated_last(self):
        out = sort_tasks(self.TASKS, TaskSort.from_args({"sort": "dueDate", "direction": "desc"}))
        assert [t["id"] for t in out] == ["a", "c", "b"]

    def test_priority_descending(self):
        out = sort_tasks(self.TASKS, TaskSort(field="priority", direction="desc"))
        assert [t["id"] for t in out] == ["b", "c", "a"]

    def test_rejects_unknown_field(self):
        with pytest.raises(ValidationError):
            TaskSort.from_args({"sort": "color"})
        with pytest.raises(ValidationError):
            TaskSort.from_args({"direction": "sideways"})


class TestBuckets:
    TASKS = [
        _task("overdue", dueDate="2024-01-08"),
        _task("done-late", dueDate="2024-01-08", status="completed"),
        _task("today", dueDate="2024-01-10"),
        _task("soon", dueDate="2024-01-16"),
        _task("later", dueDate="2024-01-17"),
        _task("undated"),
    ]

    def test_today_includes_overdue(self):
        out = bucket_tasks(self.TASKS, "today", now=NOW)
        assert [t["id"] for t in out] == ["overdue", "today"]

    def test_next_seven_days(self):
        out = bucket_tasks(self.TASKS, "next7days", now=NOW)
        assert [t["id"] for t in out] == ["overdue", "today", "soon"]

    def test_all_is_noop(self):
        assert bucket_tasks(self.TASKS, "all", now=NOW) == self.TASKS
        assert bucket_tasks(self.TASKS, None, now=NOW) == self.TASKS

    def test_unknown_bucket(self):
        with pytest.raises(ValidationError):
            bucket_tasks(self.TASKS, "yesterday", now=NOW)


def test_filter_is_idempotent():
    tasks = TestFilter.TASKS
    f = TaskFilter.from_args({"priority": "high", "dueEnd": "2024-01-10"})
    once = apply_filter(tasks, f)
    assert apply_filter(once, f) == once
