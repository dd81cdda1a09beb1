"""
Reminder scheduler.

A background task on the event loop that wakes up every
SCHEDULER_INTERVAL_SECONDS and runs hour-gated jobs:

- reading_reminders   @ READING_REMINDER_HOUR     children who haven't read today
- parent_reminders    @ PARENT_REMINDER_HOUR      children inactive for N days
- notification_cleanup @ NOTIFICATION_CLEANUP_HOUR retention cleanup

A gated job fires once per calendar day, on the first tick at or after its
gate hour. Each job remembers the date of its last successful run, so a
process that was down at the gate hour catches up on its next tick and a
failed run is retried on the following one.
"""

import asyncio
import logging
from dataclasses import dataclass
from datetime import date, datetime
from typing import Awaitable, Callable, Dict, List, Optional

from src.config import (
    NOTIFICATION_CLEANUP_HOUR,
    PARENT_REMINDER_HOUR,
    READING_REMINDER_HOUR,
    SCHEDULER_INTERVAL_SECONDS,
)
from src.observability.metrics import scheduler_task_runs_total
from src.services import notification_service
from src.utils.datetime_helpers import now_local

logger = logging.getLogger(__name__)


@dataclass
class GatedTask:
    """A job that runs once per day after its gate hour"""
    name: str
    hour: int
    action: Callable[[date], Awaitable[int]]
    last_run_date: Optional[date] = None

    def is_due(self, now: datetime) -> bool:
        return now.hour >= self.hour and self.last_run_date != now.date()


class ReminderScheduler:
    """
    Hour-gated reminder loop.

    States: stopped -> running -> stopped. start() and stop() are idempotent.
    """

    def __init__(
        self,
        interval: int = SCHEDULER_INTERVAL_SECONDS,
        clock: Callable[[], datetime] = now_local,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep
    ):
        """
        Initialize the scheduler.

        Args:
            interval: Seconds between ticks
            clock: Returns the current local datetime
            sleep: Coroutine used to wait between ticks
        """
        self.interval = interval
        self._clock = clock
        self._sleep = sleep
        self._running = False
        self._task: Optional[asyncio.Task] = None
        self._last_tick: Optional[datetime] = None

        self.tasks: Dict[str, GatedTask] = {
            "reading_reminders": GatedTask(
                "reading_reminders", READING_REMINDER_HOUR, self._run_reading_reminders
            ),
            "parent_reminders": GatedTask(
                "parent_reminders", PARENT_REMINDER_HOUR, self._run_parent_reminders
            ),
            "notification_cleanup": GatedTask(
                "notification_cleanup", NOTIFICATION_CLEANUP_HOUR, self._run_cleanup
            ),
        }

    @property
    def is_running(self) -> bool:
        return self._running

    async def start(self) -> None:
        """Start the background loop; the first tick runs immediately"""
        if self._running:
            logger.warning("Reminder scheduler is already running")
            return

        self._running = True
        self._task = asyncio.create_task(self._loop())
        logger.info(f"Reminder scheduler started (interval: {self.interval}s)")

    async def stop(self) -> None:
        """Stop the background loop"""
        if not self._running:
            return

        self._running = False
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None

        logger.info("Reminder scheduler stopped")

    async def _loop(self) -> None:
        while self._running:
            await self.tick()
            await self._sleep(self.interval)

    async def tick(self, now: Optional[datetime] = None) -> List[str]:
        """
        Run every gated task that is due.

        Args:
            now: Local datetime to evaluate the gates against (defaults to the clock)

        Returns:
            Names of the tasks that completed successfully on this tick
        """
        now = now or self._clock()
        self._last_tick = now
        completed = []

        for task in self.tasks.values():
            if not task.is_due(now):
                continue
            if await self._run_task(task, now.date()):
                completed.append(task.name)

        return completed

    async def _run_task(self, task: GatedTask, today: date) -> bool:
        try:
            result = await task.action(today)
        except Exception as e:
            # last_run_date stays put, so the next tick retries
            scheduler_task_runs_total.labels(task=task.name, status="error").inc()
            logger.error(f"Scheduled task {task.name} failed: {e}", exc_info=True)
            return False

        task.last_run_date = today
        scheduler_task_runs_total.labels(task=task.name, status="success").inc()
        logger.info(f"Scheduled task {task.name} finished for {today.isoformat()}: {result}")
        return True

    async def _run_reading_reminders(self, today: date) -> int:
        return await notification_service.check_and_send_reading_reminders(today)

    async def _run_parent_reminders(self, today: date) -> int:
        return await notification_service.check_and_send_parent_reminders(today)

    async def _run_cleanup(self, today: date) -> int:
        return await notification_service.cleanup_old_notifications()

    # Manual triggers bypass the hour gates and leave last_run_date alone

    async def trigger_reading_reminders(self) -> int:
        logger.info("Manually triggering reading reminders")
        return await self._run_reading_reminders(self._clock().date())

    async def trigger_parent_reminders(self) -> int:
        logger.info("Manually triggering parent reminders")
        return await self._run_parent_reminders(self._clock().date())

    async def trigger_notification_cleanup(self) -> int:
        logger.info("Manually triggering notification cleanup")
        return await self._run_cleanup(self._clock().date())

    def get_status(self) -> dict:
        return {
            "running": self._running,
            "interval_seconds": self.interval,
            "last_tick": self._last_tick.isoformat() if self._last_tick else None,
            "tasks": {
                task.name: {
                    "hour": task.hour,
                    "last_run_date": task.last_run_date.isoformat() if task.last_run_date else None,
                }
                for task in self.tasks.values()
            },
        }


# Global scheduler instance
reminder_scheduler = ReminderScheduler()
