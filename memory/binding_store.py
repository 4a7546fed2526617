# memory/binding_store.py

import json
import sqlite3
import time
import uuid
from typing import Any, Dict, List, Optional, Tuple
import config
from memory.sqlite_store import SqliteStore
from utils.logger import log

SHARED_CREDENTIAL = "" # credential_id of bindings made through a shared (pairing-mode) bot


class BindingStore(SqliteStore):
    """
    Persists pairing codes, channel bindings and the per-binding session history.

    A binding is keyed by (channel_type, credential_id, sender_id). At most one
    active binding exists per key, enforced by a partial unique index, so a sender
    resolves to exactly one agent at any instant.
    """

    def _init_database(self, conn):
        conn.execute("""
            CREATE TABLE IF NOT EXISTS agent_pairing_codes (
                agent_id TEXT PRIMARY KEY,
                code TEXT NOT NULL UNIQUE,
                expires_at REAL NOT NULL,
                created_at REAL NOT NULL
            )
        """)
        conn.execute("""
            CREATE TABLE IF NOT EXISTS channel_bindings (
                id TEXT PRIMARY KEY,
                agent_id TEXT NOT NULL,
                channel_type TEXT NOT NULL,
                mode TEXT NOT NULL,
                credential_id TEXT NOT NULL DEFAULT '',
                sender_id TEXT NOT NULL,
                sender_name TEXT,
                chat_id TEXT,
                metadata TEXT,
                is_active INTEGER NOT NULL DEFAULT 1,
                paired_at REAL NOT NULL,
                last_message_at REAL
            )
        """)
        conn.execute("""
            CREATE UNIQUE INDEX IF NOT EXISTS idx_active_binding
            ON channel_bindings(channel_type, credential_id, sender_id) WHERE is_active = 1
        """)
        conn.execute("CREATE INDEX IF NOT EXISTS idx_bindings_agent ON channel_bindings(agent_id, is_active)")
        conn.execute("""
            CREATE TABLE IF NOT EXISTS session_messages (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                binding_id TEXT NOT NULL,
                role TEXT NOT NULL,
                content TEXT NOT NULL,
                created_at REAL NOT NULL
            )
        """)
        conn.execute("CREATE INDEX IF NOT EXISTS idx_session_binding ON session_messages(binding_id, id)")

    @staticmethod
    def _row_to_binding(row) -> Dict[str, Any]:
        binding = dict(row)
        binding["is_active"] = bool(binding["is_active"])
        binding["metadata"] = json.loads(binding["metadata"]) if binding.get("metadata") else {}
        return binding

    # --- Pairing codes ---

    def get_pairing_code(self, agent_id: str) -> Optional[Dict[str, Any]]:
        with self._connect() as conn:
            row = conn.execute("SELECT * FROM agent_pairing_codes WHERE agent_id = ?", (agent_id,)).fetchone()
        return dict(row) if row else None

    def save_pairing_code(self, agent_id: str, code: str, expires_at: float) -> bool:
        """Upserts the agent's code. Returns False if another agent already holds `code`."""
        try:
            with self._transaction() as conn:
                conn.execute("DELETE FROM agent_pairing_codes WHERE agent_id = ?", (agent_id,))
                conn.execute(
                    "INSERT INTO agent_pairing_codes (agent_id, code, expires_at, created_at) VALUES (?, ?, ?, ?)",
                    (agent_id, code, expires_at, time.time()),
                )
        except sqlite3.IntegrityError:
            return False
        return True

    def code_exists(self, code: str) -> bool:
        with self._connect() as conn:
            return conn.execute("SELECT 1 FROM agent_pairing_codes WHERE code = ?", (code,)).fetchone() is not None

    def find_agent_by_code(self, code: str, now: Optional[float] = None) -> Optional[str]:
        now = now if now is not None else time.time()
        with self._connect() as conn:
            row = conn.execute(
                "SELECT agent_id FROM agent_pairing_codes WHERE code = ? AND expires_at > ?", (code, now)
            ).fetchone()
        return row["agent_id"] if row else None

    def delete_pairing_code(self, agent_id: str) -> None:
        with self._connect() as conn:
            conn.execute("DELETE FROM agent_pairing_codes WHERE agent_id = ?", (agent_id,))

    # --- Bindings ---

    def find_active(self, channel_type: str, sender_id: str,
                    credential_id: str = SHARED_CREDENTIAL) -> Optional[Dict[str, Any]]:
        with self._connect() as conn:
            row = conn.execute(
                "SELECT * FROM channel_bindings WHERE channel_type = ? AND credential_id = ? AND sender_id = ? "
                "AND is_active = 1",
                (channel_type, credential_id, sender_id),
            ).fetchone()
        return self._row_to_binding(row) if row else None

    def bind(self, channel_type: str, sender_id: str, agent_id: str, mode: str,
             credential_id: str = SHARED_CREDENTIAL, sender_name: Optional[str] = None,
             chat_id: Optional[str] = None, metadata: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """
        Replaces any active binding for the sender key with a new one, in one
        transaction. Returns the new binding.
        """
        binding_id = str(uuid.uuid4())
        now = time.time()
        with self._transaction() as conn:
            conn.execute(
                "UPDATE channel_bindings SET is_active = 0 WHERE channel_type = ? AND credential_id = ? "
                "AND sender_id = ? AND is_active = 1",
                (channel_type, credential_id, sender_id),
            )
            conn.execute(
                "INSERT INTO channel_bindings (id, agent_id, channel_type, mode, credential_id, sender_id, sender_name, "
                "chat_id, metadata, is_active, paired_at, last_message_at) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, 1, ?, ?)",
                (binding_id, agent_id, channel_type, mode, credential_id, sender_id, sender_name, chat_id,
                 json.dumps(metadata) if metadata else None, now, now),
            )
            row = conn.execute("SELECT * FROM channel_bindings WHERE id = ?", (binding_id,)).fetchone()
        log(f"[BindingStore] Bound {channel_type}:{sender_id} -> agent {agent_id} ({mode}).", level="INFO")
        return self._row_to_binding(row)

    def deactivate(self, binding_id: str) -> None:
        with self._connect() as conn:
            conn.execute("UPDATE channel_bindings SET is_active = 0 WHERE id = ?", (binding_id,))

    def deactivate_for_agent(self, agent_id: str, channel_type: str, mode: Optional[str] = None) -> int:
        """Deactivates the agent's active bindings on a channel, optionally for one mode. Returns how many."""
        query = "UPDATE channel_bindings SET is_active = 0 WHERE agent_id = ? AND channel_type = ? AND is_active = 1"
        args = [agent_id, channel_type]
        if mode is not None:
            query += " AND mode = ?"
            args.append(mode)
        with self._transaction() as conn:
            count = conn.execute(query, args).rowcount
        if count:
            log(f"[BindingStore] Deactivated {count} {mode or 'any'} {channel_type} binding(s) for agent {agent_id}.",
                level="INFO")
        return count

    def touch(self, binding_id: str, sender_name: Optional[str] = None) -> None:
        with self._connect() as conn:
            conn.execute(
                "UPDATE channel_bindings SET last_message_at = ?, sender_name = COALESCE(?, sender_name) WHERE id = ?",
                (time.time(), sender_name, binding_id),
            )

    def list_for_agent(self, agent_id: str, active_only: bool = True) -> List[Dict[str, Any]]:
        query = "SELECT * FROM channel_bindings WHERE agent_id = ?"
        if active_only:
            query += " AND is_active = 1"
        with self._connect() as conn:
            rows = conn.execute(query + " ORDER BY paired_at DESC", (agent_id,)).fetchall()
        return [self._row_to_binding(r) for r in rows]

    # --- Session history ---

    def append_session_messages(self, binding_id: str, messages: List[Tuple[str, str]],
                                max_messages: int = config.SESSION_MAX_MESSAGES_PER_BINDING) -> None:
        """Appends (role, content) pairs and prunes the binding's history to the newest `max_messages`."""
        now = time.time()
        with self._transaction() as conn:
            conn.executemany(
                "INSERT INTO session_messages (binding_id, role, content, created_at) VALUES (?, ?, ?, ?)",
                [(binding_id, role, content, now) for role, content in messages],
            )
            conn.execute(
                "DELETE FROM session_messages WHERE binding_id = ? AND id NOT IN ("
                "SELECT id FROM session_messages WHERE binding_id = ? ORDER BY id DESC LIMIT ?)",
                (binding_id, binding_id, max_messages),
            )

    def load_session_history(self, binding_id: str,
                             limit: int = config.SESSION_HISTORY_LIMIT) -> List[Dict[str, str]]:
        """Newest `limit` messages, oldest first."""
        with self._connect() as conn:
            rows = conn.execute(
                "SELECT role, content FROM session_messages WHERE binding_id = ? ORDER BY id DESC LIMIT ?",
                (binding_id, limit),
            ).fetchall()
        return [{"role": r["role"], "content": r["content"]} for r in reversed(rows)]
