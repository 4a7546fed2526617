# tests/test_binding_store.py
import pytest
import sqlite3
import time
from unittest.mock import patch
import os
import sys

sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from memory.binding_store import SHARED_CREDENTIAL, BindingStore


@pytest.fixture
def store(tmp_path):
    with patch('memory.binding_store.log'):
        yield BindingStore(str(tmp_path / "bindings.db"))


class TestPairingCodes:

    def test_save_and_find(self, store):
        assert store.save_pairing_code("agent-1", "AF7X2K", time.time() + 60)
        assert store.code_exists("AF7X2K")
        assert store.find_agent_by_code("AF7X2K") == "agent-1"
        assert store.get_pairing_code("agent-1")["code"] == "AF7X2K"

    def test_code_held_by_another_agent_is_a_collision(self, store):
        store.save_pairing_code("agent-1", "AF7X2K", time.time() + 60)
        assert store.save_pairing_code("agent-2", "AF7X2K", time.time() + 60) is False
        assert store.get_pairing_code("agent-2") is None
        assert store.find_agent_by_code("AF7X2K") == "agent-1"

    def test_saving_replaces_the_agents_previous_code(self, store):
        store.save_pairing_code("agent-1", "AFAAAA", time.time() + 60)
        store.save_pairing_code("agent-1", "AFBBBB", time.time() + 60)
        assert not store.code_exists("AFAAAA")
        assert store.find_agent_by_code("AFBBBB") == "agent-1"

    def test_expired_code_does_not_resolve(self, store):
        store.save_pairing_code("agent-1", "AF7X2K", expires_at=1000.0)
        assert store.find_agent_by_code("AF7X2K", now=999.0) == "agent-1"
        assert store.find_agent_by_code("AF7X2K", now=1000.0) is None

    def test_delete(self, store):
        store.save_pairing_code("agent-1", "AF7X2K", time.time() + 60)
        store.delete_pairing_code("agent-1")
        assert store.get_pairing_code("agent-1") is None


class TestBindings:

    def test_bind_and_find_active(self, store):
        binding = store.bind("telegram", "u1", "agent-1", "pairing", sender_name="Ada",
                             metadata={"pairing_code": "AF7X2K"})
        found = store.find_active("telegram", "u1")
        assert found["id"] == binding["id"]
        assert found["agent_id"] == "agent-1"
        assert found["credential_id"] == SHARED_CREDENTIAL
        assert found["metadata"] == {"pairing_code": "AF7X2K"}
        assert found["is_active"] is True

    def test_rebinding_replaces_the_active_binding(self, store):
        first = store.bind("telegram", "u1", "agent-1", "pairing")
        second = store.bind("telegram", "u1", "agent-2", "pairing")
        assert store.find_active("telegram", "u1")["id"] == second["id"]
        assert store.list_for_agent("agent-1") == []
        assert [b["id"] for b in store.list_for_agent("agent-1", active_only=False)] == [first["id"]]

    def test_keys_are_scoped_by_credential(self, store):
        store.bind("telegram", "u1", "agent-1", "pairing")
        store.bind("telegram", "u1", "agent-9", "dedicated", credential_id="agent-9")
        assert store.find_active("telegram", "u1")["agent_id"] == "agent-1"
        assert store.find_active("telegram", "u1", credential_id="agent-9")["agent_id"] == "agent-9"

    def test_unique_index_rejects_a_second_active_row(self, store):
        store.bind("telegram", "u1", "agent-1", "pairing")
        with pytest.raises(sqlite3.IntegrityError):
            with store._connect() as conn:
                conn.execute(
                    "INSERT INTO channel_bindings (id, agent_id, channel_type, mode, credential_id, sender_id, "
                    "is_active, paired_at) VALUES ('x', 'agent-2', 'telegram', 'pairing', '', 'u1', 1, 0)"
                )

    def test_deactivate(self, store):
        binding = store.bind("telegram", "u1", "agent-1", "pairing")
        store.deactivate(binding["id"])
        assert store.find_active("telegram", "u1") is None

    def test_touch_keeps_name_when_none_given(self, store):
        binding = store.bind("telegram", "u1", "agent-1", "pairing", sender_name="Ada")
        store.touch(binding["id"])
        assert store.find_active("telegram", "u1")["sender_name"] == "Ada"
        store.touch(binding["id"], sender_name="Ada L.")
        assert store.find_active("telegram", "u1")["sender_name"] == "Ada L."


class TestSessionHistory:

    def test_history_is_chronological_and_limited(self, store):
        binding = store.bind("telegram", "u1", "agent-1", "pairing")
        for i in range(3):
            store.append_session_messages(binding["id"], [("user", f"q{i}"), ("assistant", f"a{i}")])
        history = store.load_session_history(binding["id"], limit=4)
        assert [m["content"] for m in history] == ["q1", "a1", "q2", "a2"]
        assert history[0]["role"] == "user"

    def test_history_is_pruned(self, store):
        binding = store.bind("telegram", "u1", "agent-1", "pairing")
        for i in range(5):
            store.append_session_messages(binding["id"], [("user", f"q{i}")], max_messages=3)
        assert [m["content"] for m in store.load_session_history(binding["id"], limit=10)] == ["q2", "q3", "q4"]

    def test_histories_are_per_binding(self, store):
        a = store.bind("telegram", "u1", "agent-1", "pairing")
        b = store.bind("telegram", "u2", "agent-1", "pairing")
        store.append_session_messages(a["id"], [("user", "hello")])
        assert store.load_session_history(b["id"]) == []
