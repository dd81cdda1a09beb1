"""
Database queries - Re-export all functions.

All imports like 'from src.db.queries import get_user_stats' or
'from src.db import queries; queries.get_user_stats(...)' resolve here.

Module organization:
- users.py: Users and parent/teacher-child relationships
- checkins.py: Check-in ledger reads/writes and period rollups
- gamification.py: User stats, points ledger, levels, badges, leaderboard
- notifications.py: Notifications and reminder scans
"""

# User operations
from src.db.queries.users import (
    get_user,
    user_exists,
    create_user,
    add_relationship,
    get_children_by_parent,
)

# Check-in ledger
from src.db.queries.checkins import (
    insert_checkin,
    delete_checkin,
    update_checkin_comment,
    get_checkin,
    get_checkin_dates,
    get_checkin_aggregates,
    count_checkins_with_notes,
    get_reading_minutes_on,
    get_checkins_on,
    get_user_checkins,
    get_daily_rollup,
    get_period_checkin_stats,
)

# Gamification
from src.db.queries.gamification import (
    get_user_stats,
    upsert_user_stats,
    add_points,
    has_points_entry,
    get_points_history,
    sum_user_points,
    sum_points_between,
    raise_level_with_bonus,
    set_user_level,
    get_all_badges,
    get_badge,
    get_unearned_badges,
    get_user_badges,
    award_badge,
    get_leaderboard,
    get_user_rank,
)

# Notifications
from src.db.queries.notifications import (
    create_notification,
    find_children_without_checkin_on,
    find_inactive_children_with_parents,
    delete_notifications_before,
    get_user_notifications,
    count_notifications,
    count_unread_by_type,
    mark_notification_read,
    mark_all_notifications_read,
    delete_notification,
    delete_read_notifications,
)

__all__ = [
    # Users
    "get_user",
    "user_exists",
    "create_user",
    "add_relationship",
    "get_children_by_parent",
    # Check-ins
    "insert_checkin",
    "delete_checkin",
    "update_checkin_comment",
    "get_checkin",
    "get_checkin_dates",
    "get_checkin_aggregates",
    "count_checkins_with_notes",
    "get_reading_minutes_on",
    "get_checkins_on",
    "get_user_checkins",
    "get_daily_rollup",
    "get_period_checkin_stats",
    # Gamification
    "get_user_stats",
    "upsert_user_stats",
    "add_points",
    "has_points_entry",
    "get_points_history",
    "sum_user_points",
    "sum_points_between",
    "raise_level_with_bonus",
    "set_user_level",
    "get_all_badges",
    "get_badge",
    "get_unearned_badges",
    "get_user_badges",
    "award_badge",
    "get_leaderboard",
    "get_user_rank",
    # Notifications
    "create_notification",
    "find_children_without_checkin_on",
    "find_inactive_children_with_parents",
    "delete_notifications_before",
    "get_user_notifications",
    "count_notifications",
    "count_unread_by_type",
    "mark_notification_read",
    "mark_all_notifications_read",
    "delete_notification",
    "delete_read_notifications",
]
