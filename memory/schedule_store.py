# memory/schedule_store.py

import time
import uuid
from dataclasses import asdict, dataclass
from datetime import datetime
from typing import Any, Dict, List, Optional
from croniter import croniter
import config
from memory.sqlite_store import SqliteStore
from utils.logger import log

# Schedules created with an agent, keyed by template
DEFAULT_SCHEDULES = {
    "forex": [
        ("Rate Monitor", "*/5 * * * *",
         "Check all current CELO exchange rates. If any rate has moved more than 2% from the last check, report it.", True),
        ("Portfolio Report", "0 * * * *",
         "Generate a portfolio status report showing current holdings and their USD values.", True),
        ("Daily Market Summary", "0 9 * * *",
         "Generate a comprehensive daily market analysis for all Mento stablecoin pairs.", False),
    ],
    "trading": [
        ("Price Check", "*/10 * * * *", "Check current exchange rates for all configured trading pairs.", True),
        ("Portfolio Rebalance", "0 */4 * * *", "Analyze current portfolio allocation and suggest rebalancing.", False),
    ],
    "payment": [
        ("Balance Alert", "0 */6 * * *",
         "Check the agent wallet balance and report if any token is running low.", False),
    ],
    "social": [
        ("Community Update", "0 12 * * *",
         "Generate a brief community update message about the latest Celo network stats.", False),
    ],
}


def is_valid_expression(expression: str) -> bool:
    """Standard five-field cron only."""
    return bool(expression) and len(expression.split()) == 5 and croniter.is_valid(expression)


@dataclass
class ScheduleDefinition:
    id: str
    agent_id: str
    name: str
    schedule: str
    prompt: str
    enabled: bool = True
    last_run: Optional[datetime] = None
    last_result: Optional[str] = None

    def next_run(self, now: Optional[datetime] = None) -> Optional[datetime]:
        if not self.enabled or not is_valid_expression(self.schedule):
            return None
        return croniter(self.schedule, now or datetime.now()).get_next(datetime)

    def to_dict(self, now: Optional[datetime] = None) -> Dict[str, Any]:
        data = asdict(self)
        data["last_run"] = self.last_run.isoformat() if self.last_run else None
        next_run = self.next_run(now)
        data["next_run"] = next_run.isoformat() if next_run else None
        return data


class ScheduleStore(SqliteStore):
    """Owner-managed schedule definitions. The scheduler only writes last_run/last_result."""

    def _init_database(self, conn):
        conn.execute("""
            CREATE TABLE IF NOT EXISTS schedules (
                id TEXT PRIMARY KEY,
                agent_id TEXT NOT NULL,
                name TEXT NOT NULL,
                schedule TEXT NOT NULL,
                prompt TEXT NOT NULL,
                enabled INTEGER NOT NULL DEFAULT 1,
                last_run REAL,
                last_result TEXT,
                created_at REAL NOT NULL
            )
        """)
        conn.execute("CREATE INDEX IF NOT EXISTS idx_schedules_agent ON schedules(agent_id)")

    @staticmethod
    def _row_to_schedule(row) -> ScheduleDefinition:
        return ScheduleDefinition(
            id=row["id"],
            agent_id=row["agent_id"],
            name=row["name"],
            schedule=row["schedule"],
            prompt=row["prompt"],
            enabled=bool(row["enabled"]),
            last_run=datetime.fromtimestamp(row["last_run"]) if row["last_run"] is not None else None,
            last_result=row["last_result"],
        )

    def create(self, agent_id: str, name: str, schedule: str, prompt: str, enabled: bool = True) -> ScheduleDefinition:
        if not is_valid_expression(schedule):
            raise ValueError(f"Invalid cron expression: {schedule!r}")
        if not name or not prompt:
            raise ValueError("Schedule name and prompt are required")
        definition = ScheduleDefinition(id=str(uuid.uuid4()), agent_id=agent_id, name=name,
                                        schedule=schedule, prompt=prompt, enabled=enabled)
        with self._connect() as conn:
            conn.execute(
                "INSERT INTO schedules (id, agent_id, name, schedule, prompt, enabled, created_at) "
                "VALUES (?, ?, ?, ?, ?, ?, ?)",
                (definition.id, agent_id, name, schedule, prompt, int(enabled), time.time()),
            )
        log(f"[ScheduleStore] Created schedule '{name}' ({schedule}) for agent {agent_id}.", level="INFO")
        return definition

    def create_defaults(self, agent_id: str, template_id: str) -> List[ScheduleDefinition]:
        return [self.create(agent_id, name, expression, prompt, enabled)
                for name, expression, prompt, enabled in DEFAULT_SCHEDULES.get(template_id, [])]

    def get(self, schedule_id: str) -> Optional[ScheduleDefinition]:
        with self._connect() as conn:
            row = conn.execute("SELECT * FROM schedules WHERE id = ?", (schedule_id,)).fetchone()
        return self._row_to_schedule(row) if row else None

    def list_for_agent(self, agent_id: str) -> List[ScheduleDefinition]:
        with self._connect() as conn:
            rows = conn.execute("SELECT * FROM schedules WHERE agent_id = ? ORDER BY created_at, id",
                                (agent_id,)).fetchall()
        return [self._row_to_schedule(r) for r in rows]

    def list_enabled(self) -> List[ScheduleDefinition]:
        with self._connect() as conn:
            rows = conn.execute("SELECT * FROM schedules WHERE enabled = 1 ORDER BY agent_id, created_at").fetchall()
        return [self._row_to_schedule(r) for r in rows]

    def update(self, schedule_id: str, **changes) -> Optional[ScheduleDefinition]:
        """Owner edits. Only name, schedule, prompt and enabled are writable."""
        allowed = {k: v for k, v in changes.items() if k in ("name", "schedule", "prompt", "enabled") and v is not None}
        if "schedule" in allowed and not is_valid_expression(allowed["schedule"]):
            raise ValueError(f"Invalid cron expression: {allowed['schedule']!r}")
        if "enabled" in allowed:
            allowed["enabled"] = int(bool(allowed["enabled"]))
        if allowed:
            assignments = ", ".join(f"{column} = ?" for column in allowed)
            with self._connect() as conn:
                conn.execute(f"UPDATE schedules SET {assignments} WHERE id = ?", (*allowed.values(), schedule_id))
        return self.get(schedule_id)

    def delete(self, schedule_id: str) -> bool:
        with self._connect() as conn:
            cursor = conn.execute("DELETE FROM schedules WHERE id = ?", (schedule_id,))
        return cursor.rowcount > 0

    def record_run(self, schedule_id: str, ran_at: datetime, result: str) -> None:
        summary = (result or "")[:config.SCHEDULE_LAST_RESULT_MAX_CHARS]
        with self._connect() as conn:
            conn.execute("UPDATE schedules SET last_run = ?, last_result = ? WHERE id = ?",
                         (ran_at.timestamp(), summary, schedule_id))
