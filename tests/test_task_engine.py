"""Tests for the task engine (tasks/engine.py)."""

from __future__ import annotations

import asyncio
from datetime import datetime, timedelta, timezone

import pytest
import yaml

from focusboard.constants import BUCKET_DUE_TODAY, BUCKET_OVERDUE
from focusboard.tasks.engine import TaskEngine, TaskNotFoundError

NOW = datetime(2024, 3, 15, 12, 0)


@pytest.fixture
def engine(store_factory) -> TaskEngine:
    return TaskEngine(store_factory("tasks"))


def _add(engine: TaskEngine, text: str = "Task", **kwargs):
    kwargs.setdefault("subtasks", [])
    kwargs.setdefault("duedate", NOW)
    kwargs.setdefault("tags", [])
    return asyncio.run(engine.add(text, **kwargs))


class TestAdd:
    def test_add_appends_with_store_id(self, engine: TaskEngine) -> None:
        first = _add(engine, "one")
        second = _add(engine, "two")
        assert (first.id, second.id) == (1, 2)
        assert [t.task for t in engine.tasks] == ["one", "two"]

    def test_add_initialises_subtask_flags(self, engine: TaskEngine) -> None:
        t = _add(engine, subtasks=["a", "b", "c"])
        assert t.completed is False
        assert t.completed_subtasks == [False, False, False]

    @pytest.mark.parametrize("raw,expected", [(-3, 1), (0, 1), (2, 2), (4, 4), (12, 4)])
    def test_add_clamps_priority(self, engine: TaskEngine, raw: int, expected: int) -> None:
        assert _add(engine, priority=raw).priority == expected

    def test_add_defaults_priority(self, engine: TaskEngine) -> None:
        assert _add(engine).priority == 1

    def test_add_persists(self, engine: TaskEngine) -> None:
        _add(engine, "persisted", subtasks=["s"], tags=["t"])
        rows = asyncio.run(engine.store.to_array())
        assert rows[0]["task"] == "persisted"
        assert rows[0]["completedSubtasks"] == [False]

    def test_add_failure_propagates_and_leaves_state(self, failing_factory) -> None:
        engine = TaskEngine(failing_factory("tasks", {"add"}))
        with pytest.raises(OSError):
            _add(engine)
        assert engine.tasks == []


class TestCompletion:
    def test_complete_and_uncomplete(self, engine: TaskEngine) -> None:
        t = _add(engine, subtasks=["a"])
        asyncio.run(engine.set_subtask_completion(t.id, 0, True))
        asyncio.run(engine.complete(t.id))
        assert engine.get(t.id).completed is True
        assert engine.get(t.id).completed_subtasks == [True]
        asyncio.run(engine.uncomplete(t.id))
        assert engine.get(t.id).completed is False
        assert engine.get(t.id).completed_subtasks == [True]

    def test_uncomplete_is_idempotent(self, engine: TaskEngine) -> None:
        t = _add(engine)
        before = list(engine.tasks)
        asyncio.run(engine.uncomplete(t.id))
        assert engine.tasks == before

    def test_completion_is_not_deletion(self, engine: TaskEngine) -> None:
        t = _add(engine)
        asyncio.run(engine.complete(t.id))
        assert len(asyncio.run(engine.store.to_array())) == 1
        assert engine.completed_tasks() == [engine.get(t.id)]

    def test_unknown_id_raises_before_persisting(self, failing_factory) -> None:
        store = failing_factory("tasks")
        engine = TaskEngine(store)
        with pytest.raises(TaskNotFoundError):
            asyncio.run(engine.complete(42))
        assert "update" not in store.calls


class TestUpdate:
    @pytest.mark.parametrize("raw,expected", [(-100, 1), (1, 1), (3, 3), (5, 4)])
    def test_update_clamps_priority(self, engine: TaskEngine, raw: int, expected: int) -> None:
        t = _add(engine)
        asyncio.run(engine.update(t.id, priority=raw))
        assert engine.get(t.id).priority == expected
        assert asyncio.run(engine.store.get(t.id))["priority"] == expected

    def test_growing_subtasks_appends_false(self, engine: TaskEngine) -> None:
        t = _add(engine, subtasks=["a"])
        asyncio.run(engine.set_subtask_completion(t.id, 0, True))
        updated = asyncio.run(engine.update(t.id, subtasks=["a", "b", "c"]))
        assert updated.completed_subtasks == [True, False, False]
        assert asyncio.run(engine.store.get(t.id))["completedSubtasks"] == [True, False, False]

    def test_shrinking_subtasks_truncates(self, engine: TaskEngine) -> None:
        t = _add(engine, subtasks=["a", "b", "c"])
        asyncio.run(engine.set_subtask_completion(t.id, 0, True))
        updated = asyncio.run(engine.update(t.id, subtasks=["a"]))
        assert updated.completed_subtasks == [True]
        assert len(updated.subtasks) == len(updated.completed_subtasks)

    def test_same_length_subtasks_keep_flags(self, engine: TaskEngine) -> None:
        t = _add(engine, subtasks=["a", "b"])
        asyncio.run(engine.set_subtask_completion(t.id, 1, True))
        updated = asyncio.run(engine.update(t.id, subtasks=["x", "y"]))
        assert updated.completed_subtasks == [False, True]

    def test_update_unknown_field_raises_before_persisting(self, failing_factory) -> None:
        store = failing_factory("tasks")
        engine = TaskEngine(store)
        t = _add(engine)
        with pytest.raises(ValueError):
            asyncio.run(engine.update(t.id, colour="red"))
        assert "update" not in store.calls

    def test_update_failure_keeps_memory(self, failing_factory) -> None:
        store = failing_factory("tasks")
        engine = TaskEngine(store)
        t = _add(engine, "before")
        store.fail_on.add("update")
        with pytest.raises(OSError):
            asyncio.run(engine.update(t.id, task="after"))
        assert engine.get(t.id).task == "before"

    def test_update_with_aware_duedate_stores_local_time(self, engine: TaskEngine) -> None:
        t = _add(engine)
        updated = asyncio.run(engine.update(t.id, duedate=(NOW + timedelta(days=1)).astimezone(timezone.utc)))
        assert updated.duedate == NOW + timedelta(days=1)
        assert updated.duedate.tzinfo is None
        fresh = TaskEngine(engine.store)
        asyncio.run(fresh.load())
        assert fresh.tasks == engine.tasks


class TestSubtasksAndRemoval:
    def test_set_subtask_completion(self, engine: TaskEngine) -> None:
        t = _add(engine, subtasks=["a", "b"])
        asyncio.run(engine.set_subtask_completion(t.id, 1, True))
        assert engine.get(t.id).completed_subtasks == [False, True]
        assert asyncio.run(engine.store.get(t.id))["completedSubtasks"] == [False, True]

    def test_set_subtask_completion_unknown_task_is_noop(self, engine: TaskEngine) -> None:
        assert asyncio.run(engine.set_subtask_completion(99, 0, True)) is None

    def test_remove_is_permanent(self, engine: TaskEngine) -> None:
        t = _add(engine)
        asyncio.run(engine.remove(t.id))
        assert engine.tasks == []
        assert asyncio.run(engine.store.to_array()) == []


class TestLoad:
    def test_load_repairs_legacy_records(self, table_dir, store_factory) -> None:
        (table_dir / "tasks.yaml").write_text(
            yaml.safe_dump(
                {
                    "records": [
                        {"id": 1, "task": "legacy", "subtasks": ["a", "b"], "duedate": "2024-01-01T10:00:00", "tags": ["x"]},
                    ]
                }
            ),
            encoding="utf-8",
        )
        engine = TaskEngine(store_factory("tasks"))
        asyncio.run(engine.load())
        t = engine.get(1)
        assert (t.priority, t.completed, t.completed_subtasks) == (1, False, [False, False])
        assert engine.loading is False

    def test_load_failure_is_logged_and_clears_flag(self, failing_factory) -> None:
        engine = TaskEngine(failing_factory("tasks", {"to_array"}))
        asyncio.run(engine.load())
        assert engine.loading is False
        assert engine.tasks == []

    def test_reload_matches_memory(self, engine: TaskEngine, store_factory) -> None:
        t = _add(engine, subtasks=["a"], tags=["work"], priority=3)
        asyncio.run(engine.update(t.id, subtasks=["a", "b"]))
        fresh = TaskEngine(store_factory("tasks"))
        asyncio.run(fresh.load())
        assert fresh.tasks == engine.tasks


class TestEngineViews:
    def test_search_composes_with_completion(self, engine: TaskEngine) -> None:
        a = _add(engine, "write report", tags=["work"])
        b = _add(engine, "file report", tags=["work"])
        _add(engine, "buy milk", tags=["home"])
        asyncio.run(engine.complete(b.id))
        engine.set_search_query("report")
        assert engine.search_query == "report"
        assert [t.id for t in engine.active()] == [a.id]
        assert [t.id for t in engine.completed_tasks()] == [b.id]

    def test_time_groups_exclude_completed(self, engine: TaskEngine) -> None:
        late = _add(engine, "late", duedate=NOW - timedelta(days=2))
        today = _add(engine, "today", duedate=NOW)
        asyncio.run(engine.complete(late.id))
        groups = engine.group_by_time_category(now=NOW)
        assert groups[BUCKET_OVERDUE] == []
        assert [t.id for t in groups[BUCKET_DUE_TODAY]] == [today.id]

    def test_group_by_priority_uses_filtered_active_set(self, engine: TaskEngine) -> None:
        _add(engine, "urgent thing", priority=4)
        _add(engine, "other", priority=4)
        engine.set_search_query("urgent")
        groups = engine.group_by_priority()
        assert [t.task for t in groups["4"]] == ["urgent thing"]
