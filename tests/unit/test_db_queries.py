"""Unit tests for the gamification queries (src/db/queries/gamification.py)"""
import pytest
from datetime import date
from unittest.mock import AsyncMock, MagicMock, patch

from src.db import queries

CONNECTION = 'src.db.queries.gamification.db.connection'


def make_connection(fetched):
    """Connection whose cursor returns the given fetchone() results in order"""
    mock_cursor = AsyncMock()
    mock_cursor.fetchone.side_effect = list(fetched)

    mock_conn = MagicMock()
    mock_conn.cursor.return_value.__aenter__.return_value = mock_cursor
    mock_conn.commit = AsyncMock()
    return mock_conn, mock_cursor


def executed_sql(mock_cursor):
    return [call.args[0] for call in mock_cursor.execute.call_args_list]


# ============================================================================
# Points ledger
# ============================================================================

@pytest.mark.asyncio
async def test_add_points_duplicate_key_leaves_total_alone():
    """An existing dedupe_key inserts nothing, so the cached total must not move"""
    mock_conn, mock_cursor = make_connection([None])

    with patch(CONNECTION) as mock_db:
        mock_db.return_value.__aenter__.return_value = mock_conn

        result = await queries.add_points(42, 50, "Daily challenge", dedupe_key="daily_challenge:2024-03-13")

    assert result is None
    mock_cursor.execute.assert_awaited_once()
    assert "ON CONFLICT (user_id, dedupe_key)" in executed_sql(mock_cursor)[0]
    assert not any("UPDATE user_stats" in sql for sql in executed_sql(mock_cursor))
    mock_conn.transaction.assert_called_once()


@pytest.mark.asyncio
async def test_add_points_bumps_cached_total():
    mock_conn, mock_cursor = make_connection([{'id': 9}])

    with patch(CONNECTION) as mock_db:
        mock_db.return_value.__aenter__.return_value = mock_conn

        result = await queries.add_points(42, 20, "Streak milestone: 7 days", dedupe_key="streak:7:2024-03-13")

    assert result == 9
    assert mock_cursor.execute.await_count == 2
    update = mock_cursor.execute.call_args_list[1].args
    assert "UPDATE user_stats" in update[0]
    assert update[1] == (20, 42)


@pytest.mark.asyncio
async def test_sum_points_between_uses_local_days():
    mock_conn, mock_cursor = make_connection([{'total': 130}])
    start, end = date(2024, 3, 11), date(2024, 3, 17)

    with patch('src.db.queries.gamification.APP_TIMEZONE', "Europe/Stockholm"):
        with patch(CONNECTION) as mock_db:
            mock_db.return_value.__aenter__.return_value = mock_conn

            total = await queries.sum_points_between(42, start, end)

    assert total == 130
    sql, params = mock_cursor.execute.call_args.args
    assert "(created_at AT TIME ZONE %s)::date BETWEEN %s AND %s" in sql
    assert params == (42, "Europe/Stockholm", start, end)


# ============================================================================
# Badges
# ============================================================================

@pytest.mark.asyncio
async def test_award_badge_already_earned():
    """The losing insert on (user_id, badge_id) grants no points"""
    mock_conn, mock_cursor = make_connection([None])

    with patch(CONNECTION) as mock_db:
        mock_db.return_value.__aenter__.return_value = mock_conn

        awarded = await queries.award_badge(42, 2, 50, "badge:Steady Reader")

    assert awarded is False
    mock_cursor.execute.assert_awaited_once()
    assert "ON CONFLICT (user_id, badge_id) DO NOTHING" in executed_sql(mock_cursor)[0]
    assert not any("INSERT INTO points" in sql for sql in executed_sql(mock_cursor))


@pytest.mark.asyncio
async def test_award_badge_without_reward():
    mock_conn, mock_cursor = make_connection([{'id': 11}])

    with patch(CONNECTION) as mock_db:
        mock_db.return_value.__aenter__.return_value = mock_conn

        awarded = await queries.award_badge(42, 7, 0, "badge:Explorer")

    assert awarded is True
    mock_cursor.execute.assert_awaited_once()
    assert not any("INSERT INTO points" in sql for sql in executed_sql(mock_cursor))


@pytest.mark.asyncio
async def test_award_badge_grants_reward():
    mock_conn, mock_cursor = make_connection([{'id': 11}])

    with patch(CONNECTION) as mock_db:
        mock_db.return_value.__aenter__.return_value = mock_conn

        awarded = await queries.award_badge(42, 2, 50, "badge:Steady Reader")

    assert awarded is True
    calls = mock_cursor.execute.call_args_list
    assert len(calls) == 3
    assert "INSERT INTO points" in calls[1].args[0]
    assert calls[1].args[1] == (42, 50, "badge:Steady Reader", 2)
    assert "UPDATE user_stats" in calls[2].args[0]
    assert calls[2].args[1] == (50, 42)


# ============================================================================
# Leveling
# ============================================================================

@pytest.mark.asyncio
async def test_raise_level_already_at_level():
    """The conditional UPDATE matches no row, so no bonus is written"""
    mock_conn, mock_cursor = make_connection([None])

    with patch(CONNECTION) as mock_db:
        mock_db.return_value.__aenter__.return_value = mock_conn

        raised = await queries.raise_level_with_bonus(42, 3, 100, "level_up:3")

    assert raised is False
    mock_cursor.execute.assert_awaited_once()
    sql, params = mock_cursor.execute.call_args.args
    assert "WHERE user_id = %s AND level < %s" in sql
    assert params == (3, 100, 42, 3)
    assert not any("INSERT INTO points" in sql for sql in executed_sql(mock_cursor))


@pytest.mark.asyncio
async def test_raise_level_writes_bonus_entry():
    mock_conn, mock_cursor = make_connection([{'level': 3}])

    with patch(CONNECTION) as mock_db:
        mock_db.return_value.__aenter__.return_value = mock_conn

        raised = await queries.raise_level_with_bonus(42, 3, 100, "level_up:3")

    assert raised is True
    insert = mock_cursor.execute.call_args_list[1].args
    assert "INSERT INTO points" in insert[0]
    assert "'level_up'" in insert[0]
    assert insert[1] == (42, 100, "level_up:3", 3)
    mock_conn.transaction.assert_called_once()


# ============================================================================
# User stats
# ============================================================================

@pytest.mark.asyncio
async def test_upsert_user_stats_keeps_longest_streak():
    row = {
        'user_id': 42, 'total_books': 3, 'total_reading_time': 60,
        'consecutive_days': 1, 'longest_streak': 9, 'total_points': 120, 'level': 1,
    }
    mock_conn, mock_cursor = make_connection([row])

    with patch(CONNECTION) as mock_db:
        mock_db.return_value.__aenter__.return_value = mock_conn

        stats = await queries.upsert_user_stats(42, 3, 60, 1, 1)

    assert stats == row
    sql, params = mock_cursor.execute.call_args.args
    assert "GREATEST(user_stats.longest_streak, EXCLUDED.longest_streak)" in sql
    # Points and level belong to the ledger and the leveling engine
    assert "total_points =" not in sql
    assert "level =" not in sql
    assert params == (42, 3, 60, 1, 1)
    mock_conn.commit.assert_awaited_once()
