# engine/cron_scheduler.py

"""
Cron Scheduler

Evaluates every enabled schedule of every active agent once per tick and
feeds the due ones through the same message pipeline as live channel
messages. The owning agent is the sender, so no binding lookup happens.

A schedule never has two firings in flight: a tick that finds it still
running skips it. Different schedules fire concurrently.
"""
import asyncio
import threading
from datetime import datetime
from typing import Any, Dict, List, Optional
from croniter import croniter
import config
from utils.display_format import truncate
from utils.logger import log


def scheduled_message(name: str, prompt: str) -> str:
    return f"[SCHEDULED TASK: {name}] {prompt}"


class CronScheduler:
    def __init__(self, schedule_store, pipeline, agent_directory, activity_log=None,
                 min_rerun_seconds: Optional[float] = None, run_timeout: Optional[float] = None):
        self.store = schedule_store
        self.pipeline = pipeline
        self.directory = agent_directory
        self.activity_log = activity_log
        self.min_rerun_seconds = config.CRON_MIN_RERUN_SECONDS if min_rerun_seconds is None else min_rerun_seconds
        self.run_timeout = config.MESSAGE_UNIT_TIMEOUT_SECONDS if run_timeout is None else run_timeout
        # Ticks may come from the background thread and from /cron/tick at once
        self._in_flight = set()
        self._in_flight_lock = threading.Lock()

    def is_due(self, schedule, now: datetime) -> bool:
        try:
            if not croniter.match(schedule.schedule, now):
                return False
        except (ValueError, KeyError) as e:
            log(f"[CronScheduler] Schedule {schedule.id} has an unusable expression '{schedule.schedule}': {e}",
                level="WARN")
            return False
        if schedule.last_run is not None:
            if (now - schedule.last_run).total_seconds() < self.min_rerun_seconds:
                return False
        return True

    def _claim(self, schedule_id: str) -> bool:
        with self._in_flight_lock:
            if schedule_id in self._in_flight:
                return False
            self._in_flight.add(schedule_id)
            return True

    def _release(self, schedule_id: str) -> None:
        with self._in_flight_lock:
            self._in_flight.discard(schedule_id)

    async def tick(self, now: Optional[datetime] = None) -> Dict[str, Any]:
        """Returns {"checked", "executed", "errors", "skipped", "results"}."""
        now = now or datetime.now()
        checked = 0
        skipped = 0
        firings = []

        for schedule in self.store.list_enabled():
            if not schedule.enabled or self.directory.get_active_agent(schedule.agent_id) is None:
                continue
            checked += 1
            if not self.is_due(schedule, now):
                continue
            if not self._claim(schedule.id):
                log(f"[CronScheduler] '{schedule.name}' ({schedule.id}) is still running. Skipping.", level="INFO")
                skipped += 1
                continue
            firings.append(self._fire(schedule, now))

        results: List[Dict[str, Any]] = list(await asyncio.gather(*firings)) if firings else []
        executed = sum(1 for r in results if r["success"])
        summary = {
            "checked": checked,
            "executed": executed,
            "errors": len(results) - executed,
            "skipped": skipped,
            "results": results,
        }
        if results or skipped:
            log(f"[CronScheduler] Tick {now:%Y-%m-%d %H:%M}: checked={checked} executed={executed} "
                f"errors={summary['errors']} skipped={skipped}", level="INFO")
        return summary

    async def _fire(self, schedule, now: datetime) -> Dict[str, Any]:
        result = {"agent_id": schedule.agent_id, "schedule_id": schedule.id, "name": schedule.name}
        log(f"[CronScheduler] Firing '{schedule.name}' for agent {schedule.agent_id}.", level="INFO")
        try:
            text = await asyncio.wait_for(
                self.pipeline.process_message(schedule.agent_id, scheduled_message(schedule.name, schedule.prompt), []),
                self.run_timeout,
            )
        except Exception as e:
            error = str(e) or type(e).__name__
            if isinstance(e, asyncio.TimeoutError):
                error = f"timed out after {self.run_timeout:g}s"
            log(f"[CronScheduler] '{schedule.name}' ({schedule.id}) failed: {error}", level="ERROR", exc_info=True)
            self.store.record_run(schedule.id, now, f"Error: {error}")
            self._record(schedule.agent_id, "error", f"⏰ Scheduled task '{schedule.name}' failed: {truncate(error, 200)}",
                         {"schedule_id": schedule.id})
            return {**result, "success": False, "error": error}
        else:
            self.store.record_run(schedule.id, now, text)
            self._record(schedule.agent_id, "action", f"⏰ Scheduled task '{schedule.name}' completed",
                         {"schedule_id": schedule.id, "response_length": len(text)})
            return {**result, "success": True}
        finally:
            self._release(schedule.id)

    def _record(self, agent_id: str, entry_type: str, message: str, metadata: Dict[str, Any]) -> None:
        if self.activity_log is not None:
            self.activity_log.record(agent_id, entry_type, message, metadata)

    def run_forever(self, stop_event: threading.Event, interval: Optional[float] = None) -> None:
        """Blocking loop for the background scheduler thread."""
        interval = config.CRON_TICK_INTERVAL_SECONDS if interval is None else interval
        log(f"[CronScheduler] Started (interval {interval}s).", level="INFO")
        while not stop_event.is_set():
            try:
                asyncio.run(self.tick())
            except Exception as e:
                log(f"[CronScheduler] Tick failed: {e}", level="ERROR", exc_info=True)
            stop_event.wait(interval)
        log("[CronScheduler] Stopped.", level="INFO")
