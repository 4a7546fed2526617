# tests/test_schedule_store.py
import pytest
from datetime import datetime
from unittest.mock import patch
import os
import sys

sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

import config
from memory.schedule_store import DEFAULT_SCHEDULES, ScheduleStore, is_valid_expression


@pytest.fixture
def store(tmp_path):
    with patch('memory.schedule_store.log'):
        yield ScheduleStore(str(tmp_path / "schedules.db"))


class TestScheduleStore:

    @pytest.mark.parametrize("expression,valid", [
        ("*/5 * * * *", True),
        ("0 9 * * 1-5", True),
        ("* * * *", False),
        ("0 0 * * * *", False),
        ("every minute", False),
        ("", False),
    ])
    def test_expression_validation(self, expression, valid):
        assert is_valid_expression(expression) is valid

    def test_create_and_list(self, store):
        first = store.create("agent-1", "Rates", "*/5 * * * *", "Check rates")
        store.create("agent-1", "Report", "0 * * * *", "Report", enabled=False)
        store.create("agent-2", "Other", "0 * * * *", "Other")

        assert [s.name for s in store.list_for_agent("agent-1")] == ["Rates", "Report"]
        assert {s.name for s in store.list_enabled()} == {"Rates", "Other"}
        assert store.get(first.id).prompt == "Check rates"

    def test_invalid_schedule_is_rejected(self, store):
        with pytest.raises(ValueError):
            store.create("agent-1", "Bad", "sometimes", "x")
        with pytest.raises(ValueError):
            store.create("agent-1", "", "* * * * *", "x")

    def test_update_only_touches_owner_fields(self, store):
        schedule = store.create("agent-1", "Rates", "*/5 * * * *", "Check rates")
        updated = store.update(schedule.id, enabled=False, prompt="New prompt", agent_id="agent-9", last_result="x")
        assert updated.enabled is False
        assert updated.prompt == "New prompt"
        assert updated.agent_id == "agent-1"
        assert updated.last_result is None
        with pytest.raises(ValueError):
            store.update(schedule.id, schedule="nope")

    def test_update_missing_returns_none(self, store):
        assert store.update("missing", name="x") is None

    def test_delete(self, store):
        schedule = store.create("agent-1", "Rates", "*/5 * * * *", "Check rates")
        assert store.delete(schedule.id) is True
        assert store.delete(schedule.id) is False

    def test_record_run_truncates_result(self, store):
        schedule = store.create("agent-1", "Rates", "*/5 * * * *", "Check rates")
        ran_at = datetime(2026, 10, 17, 9, 5)
        store.record_run(schedule.id, ran_at, "x" * (config.SCHEDULE_LAST_RESULT_MAX_CHARS + 50))
        stored = store.get(schedule.id)
        assert stored.last_run == ran_at
        assert len(stored.last_result) == config.SCHEDULE_LAST_RESULT_MAX_CHARS

    def test_defaults_per_template(self, store):
        created = store.create_defaults("agent-1", "forex")
        assert [s.name for s in created] == [name for name, _, _, _ in DEFAULT_SCHEDULES["forex"]]
        assert store.create_defaults("agent-2", "custom") == []

    def test_to_dict_includes_next_run(self, store):
        schedule = store.create("agent-1", "Daily", "0 9 * * *", "Morning")
        data = schedule.to_dict(now=datetime(2026, 10, 17, 8, 0))
        assert data["next_run"] == "2026-10-17T09:00:00"
        assert data["last_run"] is None
        store.update(schedule.id, enabled=False)
        assert store.get(schedule.id).to_dict()["next_run"] is None
