"""Unit tests for the hour-gated reminder scheduler"""
import asyncio
import pytest
from datetime import timedelta
from unittest.mock import AsyncMock, patch

from src.scheduler.reminder_scheduler import GatedTask, ReminderScheduler

SERVICE = 'src.scheduler.reminder_scheduler.notification_service'


@pytest.fixture
def scheduler(today, local_now):
    """Scheduler with a pinned clock (09:30) and no real sleeping"""
    return ReminderScheduler(interval=60, clock=lambda: local_now(today, 9, 30), sleep=AsyncMock())


@pytest.fixture
def mock_jobs():
    with patch(f'{SERVICE}.check_and_send_reading_reminders', AsyncMock(return_value=3)) as reading:
        with patch(f'{SERVICE}.check_and_send_parent_reminders', AsyncMock(return_value=1)) as parent:
            with patch(f'{SERVICE}.cleanup_old_notifications', AsyncMock(return_value=12)) as cleanup:
                yield {"reading": reading, "parent": parent, "cleanup": cleanup}


# ============================================================================
# Gates
# ============================================================================

class TestGatedTask:

    def test_not_due_before_gate_hour(self, today, local_now):
        task = GatedTask("t", 20, AsyncMock())
        assert task.is_due(local_now(today, 19, 59)) is False

    def test_due_at_gate_hour(self, today, local_now):
        task = GatedTask("t", 20, AsyncMock())
        assert task.is_due(local_now(today, 20, 0)) is True

    def test_due_after_gate_hour_for_catch_up(self, today, local_now):
        task = GatedTask("t", 9, AsyncMock())
        assert task.is_due(local_now(today, 15)) is True

    def test_not_due_again_same_day(self, today, local_now):
        task = GatedTask("t", 9, AsyncMock(), last_run_date=today)
        assert task.is_due(local_now(today, 23)) is False

    def test_due_next_day(self, today, local_now):
        task = GatedTask("t", 9, AsyncMock(), last_run_date=today)
        assert task.is_due(local_now(today + timedelta(days=1), 9)) is True


# ============================================================================
# Ticks
# ============================================================================

@pytest.mark.asyncio
async def test_tick_runs_only_tasks_past_their_gate(scheduler, mock_jobs, today, local_now):
    completed = await scheduler.tick(local_now(today, 10))

    # cleanup @2 and parent reminders @9 are due; reading @20 is not
    assert sorted(completed) == ["notification_cleanup", "parent_reminders"]
    mock_jobs["parent"].assert_awaited_once_with(today)
    mock_jobs["reading"].assert_not_awaited()


@pytest.mark.asyncio
async def test_each_task_fires_once_per_day(scheduler, mock_jobs, today, local_now):
    await scheduler.tick(local_now(today, 20))
    second = await scheduler.tick(local_now(today, 21))

    assert second == []
    mock_jobs["reading"].assert_awaited_once_with(today)
    assert scheduler.tasks["reading_reminders"].last_run_date == today


@pytest.mark.asyncio
async def test_tasks_fire_again_on_next_day(scheduler, mock_jobs, today, local_now):
    tomorrow = today + timedelta(days=1)
    await scheduler.tick(local_now(today, 20))
    await scheduler.tick(local_now(tomorrow, 20))

    assert mock_jobs["reading"].await_count == 2
    mock_jobs["reading"].assert_awaited_with(tomorrow)


@pytest.mark.asyncio
async def test_failed_task_is_retried_next_tick(scheduler, mock_jobs, today, local_now):
    mock_jobs["reading"].side_effect = [RuntimeError("database unavailable"), 2]

    first = await scheduler.tick(local_now(today, 20))
    assert "reading_reminders" not in first
    assert scheduler.tasks["reading_reminders"].last_run_date is None

    second = await scheduler.tick(local_now(today, 21))
    assert second == ["reading_reminders"]
    assert scheduler.tasks["reading_reminders"].last_run_date == today


@pytest.mark.asyncio
async def test_failure_does_not_block_other_tasks(scheduler, mock_jobs, today, local_now):
    mock_jobs["parent"].side_effect = RuntimeError("boom")

    completed = await scheduler.tick(local_now(today, 20))

    assert "parent_reminders" not in completed
    assert "reading_reminders" in completed
    assert "notification_cleanup" in completed


@pytest.mark.asyncio
async def test_tick_defaults_to_clock(scheduler, mock_jobs, today):
    completed = await scheduler.tick()

    assert "parent_reminders" in completed
    assert scheduler.get_status()["last_tick"].startswith(today.isoformat())


# ============================================================================
# Lifecycle
# ============================================================================

@pytest.mark.asyncio
async def test_start_and_stop_are_idempotent(today, local_now, mock_jobs):
    # 01:00 is before every gate, so ticks do nothing
    scheduler = ReminderScheduler(interval=3600, clock=lambda: local_now(today, 1))

    await scheduler.start()
    first_task = scheduler._task
    await scheduler.start()
    assert scheduler._task is first_task
    assert scheduler.is_running is True

    # Let the first tick run before stopping
    await asyncio.sleep(0)
    await scheduler.stop()
    await scheduler.stop()

    assert scheduler.is_running is False
    assert scheduler._task is None
    assert scheduler.get_status()["last_tick"] is not None


@pytest.mark.asyncio
async def test_stop_without_start(scheduler):
    await scheduler.stop()
    assert scheduler.is_running is False


# ============================================================================
# Manual Triggers & Status
# ============================================================================

@pytest.mark.asyncio
async def test_manual_triggers_bypass_gates(today, local_now, mock_jobs):
    scheduler = ReminderScheduler(clock=lambda: local_now(today, 3))

    assert await scheduler.trigger_reading_reminders() == 3
    assert await scheduler.trigger_parent_reminders() == 1
    assert await scheduler.trigger_notification_cleanup() == 12

    mock_jobs["reading"].assert_awaited_once_with(today)
    # A manual run does not count as the day's scheduled run
    assert scheduler.tasks["reading_reminders"].last_run_date is None


def test_status_lists_every_task(scheduler):
    status = scheduler.get_status()

    assert status["running"] is False
    assert status["interval_seconds"] == 60
    assert status["last_tick"] is None
    assert set(status["tasks"]) == {"reading_reminders", "parent_reminders", "notification_cleanup"}
    assert status["tasks"]["reading_reminders"]["hour"] == 20
