# memory/activity_log.py

import json
import time
from datetime import datetime
from typing import Any, Dict, List, Optional
from memory.sqlite_store import SqliteStore


class ActivityLog(SqliteStore):
    """Per-agent activity feed (QR generations, scheduled runs, chat events)."""

    def _init_database(self, conn):
        conn.execute("""
            CREATE TABLE IF NOT EXISTS activity_log (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                agent_id TEXT NOT NULL,
                type TEXT NOT NULL,
                message TEXT NOT NULL,
                metadata TEXT,
                created_at REAL NOT NULL
            )
        """)
        conn.execute("CREATE INDEX IF NOT EXISTS idx_activity_agent ON activity_log(agent_id, created_at)")

    def record(self, agent_id: str, entry_type: str, message: str, metadata: Optional[Dict[str, Any]] = None) -> None:
        with self._connect() as conn:
            conn.execute(
                "INSERT INTO activity_log (agent_id, type, message, metadata, created_at) VALUES (?, ?, ?, ?, ?)",
                (agent_id, entry_type, message, json.dumps(metadata) if metadata else None, time.time()),
            )

    def list_entries(self, agent_id: str, entry_type: Optional[str] = None, message: Optional[str] = None,
                     limit: int = 20) -> List[Dict[str, Any]]:
        """Newest first."""
        query = "SELECT * FROM activity_log WHERE agent_id = ?"
        args: list = [agent_id]
        if entry_type:
            query += " AND type = ?"
            args.append(entry_type)
        if message:
            query += " AND message = ?"
            args.append(message)
        query += " ORDER BY created_at DESC, id DESC LIMIT ?"
        args.append(limit)

        with self._connect() as conn:
            rows = conn.execute(query, args).fetchall()

        entries = []
        for row in rows:
            try:
                metadata = json.loads(row["metadata"]) if row["metadata"] else {}
            except ValueError:
                metadata = {}
            entries.append({
                "id": row["id"],
                "agent_id": row["agent_id"],
                "type": row["type"],
                "message": row["message"],
                "metadata": metadata,
                "created_at": datetime.fromtimestamp(row["created_at"]).strftime("%Y-%m-%d %H:%M:%S"),
            })
        return entries
