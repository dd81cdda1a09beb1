"""
Notification Service

Produces notifications for achievements and scheduled reminders, and
exposes the user-facing list/read/delete operations.

Reminder idempotency:
- Reading reminder: one per child per day (dedupe key reading_reminder:<date>)
- Parent reminder: one per parent per child per day
  (dedupe key parent_reminder:<child_id>:<date>)
Keys are enforced by a partial unique index on notifications, so a
scan that runs twice, or two processes scanning at once, still send one.
"""

import asyncio
import logging
from datetime import date, timedelta
from typing import Dict, Optional

from src.config import NOTIFICATION_RETENTION_DAYS, PARENT_INACTIVE_DAYS
from src.db import queries
from src.models.notification import NotificationType
from src.observability.metrics import reminder_notifications_total
from src.utils.datetime_helpers import days_between, now_local, today as current_date

logger = logging.getLogger(__name__)

# Reported gap for a child who has never checked in
NEVER_CHECKED_IN_DAYS = 7

ACHIEVEMENT_TEMPLATES = {
    "badge": ("🏆 New badge earned!", "Congratulations, you earned the \"{name}\" badge!"),
    "level_up": ("🎉 Level up!", "Congratulations, you reached level {name}! Keep it up!"),
    "streak": ("🔥 Reading streak!", "Amazing! You have read {name} days in a row!"),
}
DEFAULT_ACHIEVEMENT_TEMPLATE = ("🌟 Achievement unlocked!", "Congratulations on your new achievement: {name}!")


async def create_notification(
    user_id: int,
    notification_type: NotificationType,
    title: str,
    message: str,
    related_id: Optional[int] = None,
    related_type: Optional[str] = None,
    dedupe_key: Optional[str] = None
) -> Optional[int]:
    """
    Create a notification

    Returns:
        Notification id, or None when dedupe_key was already used for this user
    """
    return await queries.create_notification(
        user_id,
        NotificationType(notification_type).value,
        title,
        message,
        related_id=related_id,
        related_type=related_type,
        dedupe_key=dedupe_key
    )


async def send_achievement_notification(
    user_id: int,
    achievement_type: str,
    achievement_name: str,
    points: Optional[int] = None
) -> Optional[int]:
    """
    Notify a user about a badge, level-up or streak milestone

    Args:
        user_id: Recipient
        achievement_type: 'badge', 'level_up', 'streak' (anything else uses a generic message)
        achievement_name: Badge name, new level, or streak length
        points: Points that came with the achievement, if any
    """
    title, template = ACHIEVEMENT_TEMPLATES.get(achievement_type, DEFAULT_ACHIEVEMENT_TEMPLATE)
    message = template.format(name=achievement_name)
    if points:
        message += f" +{points} points!"

    return await create_notification(
        user_id,
        NotificationType.ACHIEVEMENT,
        title,
        message,
        related_type=achievement_type
    )


async def send_reading_reminder(user_id: int, today: Optional[date] = None) -> bool:
    """Remind a child to read today; returns False if already reminded"""
    if today is None:
        today = current_date()

    notification_id = await create_notification(
        user_id,
        NotificationType.REMINDER,
        "📚 Time to read!",
        "You haven't checked in today. Pick a favorite book and start reading!",
        related_type="reading_reminder",
        dedupe_key=f"reading_reminder:{today.isoformat()}"
    )
    return notification_id is not None


async def send_parent_reminder(
    parent_id: int,
    child_id: int,
    child_name: str,
    days: int,
    today: Optional[date] = None
) -> bool:
    """Tell a parent their child has not read for `days` days; False if already sent today"""
    if today is None:
        today = current_date()

    notification_id = await create_notification(
        parent_id,
        NotificationType.REMINDER,
        "👨‍👩‍👧 Reading reminder",
        f"{child_name} hasn't checked in for {days} days. "
        f"Please encourage them to keep up the reading habit.",
        related_id=child_id,
        related_type="parent_reminder",
        dedupe_key=f"parent_reminder:{child_id}:{today.isoformat()}"
    )
    return notification_id is not None


async def check_and_send_reading_reminders(today: Optional[date] = None) -> int:
    """
    Remind children who have read before but not yet today

    Returns:
        Number of reminders created
    """
    if today is None:
        today = current_date()

    children = await queries.find_children_without_checkin_on(today)
    sent = 0
    for child in children:
        if await send_reading_reminder(child['id'], today):
            sent += 1

    if sent:
        reminder_notifications_total.labels(kind="reading").inc(sent)
    logger.info(f"Reading reminders: {sent} sent, {len(children) - sent} already reminded")
    return sent


async def check_and_send_parent_reminders(today: Optional[date] = None) -> int:
    """
    Alert parents whose child has not checked in for PARENT_INACTIVE_DAYS days

    Returns:
        Number of reminders created
    """
    if today is None:
        today = current_date()

    cutoff = today - timedelta(days=PARENT_INACTIVE_DAYS)
    links = await queries.find_inactive_children_with_parents(cutoff)
    sent = 0
    for link in links:
        last_checkin = link.get('last_checkin')
        days = days_between(last_checkin, today) if last_checkin else NEVER_CHECKED_IN_DAYS

        if await send_parent_reminder(
            link['parent_id'], link['child_id'], link['child_name'], days, today
        ):
            sent += 1

    if sent:
        reminder_notifications_total.labels(kind="parent").inc(sent)
    logger.info(f"Parent reminders: {sent} sent for {len(links)} inactive links")
    return sent


async def cleanup_old_notifications(days_to_keep: int = NOTIFICATION_RETENTION_DAYS) -> int:
    """Delete notifications older than the retention window"""
    cutoff = now_local() - timedelta(days=days_to_keep)
    deleted = await queries.delete_notifications_before(cutoff)
    logger.info(f"Deleted {deleted} notifications older than {days_to_keep} days")
    return deleted


# ==========================================
# User-facing operations
# ==========================================

async def get_user_notifications(user_id: int, limit: int = 20, offset: int = 0) -> Dict:
    """
    Page of notifications, newest first

    Returns:
        {'notifications': list[dict], 'total': int, 'unread_count': int}
    """
    notifications, total, unread = await asyncio.gather(
        queries.get_user_notifications(user_id, limit=limit, offset=offset),
        queries.count_notifications(user_id),
        queries.count_notifications(user_id, unread_only=True),
    )
    return {"notifications": notifications, "total": total, "unread_count": unread}


async def mark_as_read(notification_id: int, user_id: int) -> bool:
    return await queries.mark_notification_read(notification_id, user_id)


async def mark_all_as_read(user_id: int) -> int:
    return await queries.mark_all_notifications_read(user_id)


async def delete_notification(notification_id: int, user_id: int) -> bool:
    return await queries.delete_notification(notification_id, user_id)


async def delete_read_notifications(user_id: int) -> int:
    return await queries.delete_read_notifications(user_id)


async def get_notification_stats(user_id: int) -> Dict:
    """Total, unread, and unread counts per type"""
    total, unread, by_type = await asyncio.gather(
        queries.count_notifications(user_id),
        queries.count_notifications(user_id, unread_only=True),
        queries.count_unread_by_type(user_id),
    )
    return {"total": total, "unread": unread, "by_type": by_type}
