"""Unit tests for the stats aggregator (src/gamification/stats_aggregator.py)"""
import pytest
from datetime import timedelta
from unittest.mock import AsyncMock, call, patch

from src.gamification.level_system import LevelUpResult
from src.gamification.stats_aggregator import (
    CheckInRewards,
    process_checkin_created,
    process_checkin_deleted,
    recompute_user_stats,
)
from src.models.gamification import UserStats


def no_level_change(level=1):
    return LevelUpResult(level_up=False, old_level=level, new_level=level)


# ============================================================================
# Recompute
# ============================================================================

@pytest.mark.asyncio
async def test_recompute_from_ledger(today, stats_factory):
    dates = [today, today - timedelta(days=1)]
    previous = stats_factory(total_books=1, total_reading_time=20, consecutive_days=1, longest_streak=4)
    written = stats_factory(total_books=2, total_reading_time=45, consecutive_days=2, longest_streak=4)

    with patch('src.gamification.stats_aggregator.queries.get_user_stats', AsyncMock(return_value=previous)):
        with patch('src.gamification.stats_aggregator.queries.get_checkin_aggregates',
                   AsyncMock(return_value={'total_books': 2, 'total_reading_time': 45})):
            with patch('src.gamification.stats_aggregator.queries.get_checkin_dates', AsyncMock(return_value=dates)):
                with patch('src.gamification.stats_aggregator.queries.upsert_user_stats',
                           AsyncMock(return_value=written)) as mock_upsert:
                    before, after = await recompute_user_stats(42, today)

    # longest_streak keeps the stored max of 4
    mock_upsert.assert_awaited_once_with(
        42, total_books=2, total_reading_time=45, consecutive_days=2, longest_streak=4
    )
    assert before.total_books == 1
    assert after == UserStats(**written)


@pytest.mark.asyncio
async def test_recompute_first_time_user(today, stats_factory):
    written = stats_factory(total_books=1, total_reading_time=20, consecutive_days=1, longest_streak=1)

    with patch('src.gamification.stats_aggregator.queries.get_user_stats', AsyncMock(return_value=None)):
        with patch('src.gamification.stats_aggregator.queries.get_checkin_aggregates',
                   AsyncMock(return_value={'total_books': 1, 'total_reading_time': 20})):
            with patch('src.gamification.stats_aggregator.queries.get_checkin_dates', AsyncMock(return_value=[today])):
                with patch('src.gamification.stats_aggregator.queries.upsert_user_stats',
                           AsyncMock(return_value=written)) as mock_upsert:
                    before, after = await recompute_user_stats(42, today)

    assert before is None
    assert mock_upsert.await_args.kwargs['longest_streak'] == 1


# ============================================================================
# Check-in Created Pipeline
# ============================================================================

@pytest.mark.asyncio
async def test_first_checkin_pipeline(today, stats_factory, badge_by_condition):
    """Scenario: first ever check-in earns First Reader, no level-up"""
    first_reader = badge_by_condition("first_checkin")
    written = stats_factory(total_books=1, total_reading_time=20, consecutive_days=1, longest_streak=1)
    refreshed = {**written, 'total_points': 10}

    with patch('src.gamification.stats_aggregator.queries.get_user_stats', AsyncMock(side_effect=[None, refreshed])):
        with patch('src.gamification.stats_aggregator.queries.get_checkin_aggregates',
                   AsyncMock(return_value={'total_books': 1, 'total_reading_time': 20})):
            with patch('src.gamification.stats_aggregator.queries.get_checkin_dates', AsyncMock(return_value=[today])):
                with patch('src.gamification.stats_aggregator.queries.upsert_user_stats', AsyncMock(return_value=written)):
                    with patch('src.gamification.stats_aggregator.check_and_award_badges',
                               AsyncMock(return_value=[first_reader])) as mock_badges:
                        with patch('src.gamification.stats_aggregator.check_level_up',
                                   AsyncMock(return_value=no_level_change())):
                            with patch('src.gamification.stats_aggregator.notification_service.send_achievement_notification',
                                       AsyncMock()) as mock_notify:
                                rewards = await process_checkin_created(42, today)

    assert isinstance(rewards, CheckInRewards)
    assert rewards.badges == [first_reader]
    assert rewards.points_awarded == 10
    assert rewards.stats.total_points == 10
    assert rewards.streak_milestone is None
    # Badge scan sees the freshly written stats
    mock_badges.assert_awaited_once_with(42, written)
    mock_notify.assert_awaited_once_with(42, "badge", "First Reader", points=10)


@pytest.mark.asyncio
async def test_tenth_book_levels_up(today, stats_factory):
    """Scenario: 10th distinct book triggers a level 2 notification with its bonus"""
    previous = stats_factory(total_books=9, consecutive_days=3, longest_streak=3, total_points=60)
    written = stats_factory(total_books=10, consecutive_days=3, longest_streak=3, total_points=60)
    refreshed = {**written, 'total_points': 160, 'level': 2}
    dates = [today - timedelta(days=n) for n in range(3)]

    with patch('src.gamification.stats_aggregator.queries.get_user_stats', AsyncMock(side_effect=[previous, refreshed])):
        with patch('src.gamification.stats_aggregator.queries.get_checkin_aggregates',
                   AsyncMock(return_value={'total_books': 10, 'total_reading_time': 300})):
            with patch('src.gamification.stats_aggregator.queries.get_checkin_dates', AsyncMock(return_value=dates)):
                with patch('src.gamification.stats_aggregator.queries.upsert_user_stats', AsyncMock(return_value=written)):
                    with patch('src.gamification.stats_aggregator.check_and_award_badges', AsyncMock(return_value=[])):
                        with patch('src.gamification.stats_aggregator.check_level_up',
                                   AsyncMock(return_value=LevelUpResult(True, 1, 2, bonus=100))):
                            with patch('src.gamification.stats_aggregator.notification_service.send_achievement_notification',
                                       AsyncMock()) as mock_notify:
                                rewards = await process_checkin_created(42, today)

    assert rewards.level.level_up is True
    assert rewards.points_awarded == 100
    assert rewards.stats.level == 2
    mock_notify.assert_awaited_once_with(42, "level_up", "2", points=100)


@pytest.mark.asyncio
async def test_streak_milestone_notified_when_first_reached(today, stats_factory, badge_by_condition):
    """Scenario: seventh consecutive day earns streak_7 and a streak notification"""
    steady = badge_by_condition("streak_7")
    previous = stats_factory(total_books=6, consecutive_days=6, longest_streak=6)
    written = stats_factory(total_books=7, consecutive_days=7, longest_streak=7)
    dates = [today - timedelta(days=n) for n in range(7)]

    with patch('src.gamification.stats_aggregator.queries.get_user_stats', AsyncMock(side_effect=[previous, written])):
        with patch('src.gamification.stats_aggregator.queries.get_checkin_aggregates',
                   AsyncMock(return_value={'total_books': 7, 'total_reading_time': 140})):
            with patch('src.gamification.stats_aggregator.queries.get_checkin_dates', AsyncMock(return_value=dates)):
                with patch('src.gamification.stats_aggregator.queries.upsert_user_stats', AsyncMock(return_value=written)):
                    with patch('src.gamification.stats_aggregator.check_and_award_badges', AsyncMock(return_value=[steady])):
                        with patch('src.gamification.stats_aggregator.check_level_up',
                                   AsyncMock(return_value=no_level_change())):
                            with patch('src.gamification.stats_aggregator.notification_service.send_achievement_notification',
                                       AsyncMock()) as mock_notify:
                                rewards = await process_checkin_created(42, today)

    assert rewards.streak_milestone == 7
    assert mock_notify.await_args_list == [
        call(42, "badge", "Steady Reader", points=50),
        call(42, "streak", "7"),
    ]


@pytest.mark.asyncio
async def test_second_book_same_day_does_not_repeat_milestone(today, stats_factory):
    """The streak was already 7 before this check-in, so no new milestone"""
    previous = stats_factory(total_books=7, consecutive_days=7, longest_streak=7)
    written = stats_factory(total_books=8, consecutive_days=7, longest_streak=7)
    dates = [today - timedelta(days=n) for n in range(7)]

    with patch('src.gamification.stats_aggregator.queries.get_user_stats', AsyncMock(side_effect=[previous, written])):
        with patch('src.gamification.stats_aggregator.queries.get_checkin_aggregates',
                   AsyncMock(return_value={'total_books': 8, 'total_reading_time': 160})):
            with patch('src.gamification.stats_aggregator.queries.get_checkin_dates', AsyncMock(return_value=dates)):
                with patch('src.gamification.stats_aggregator.queries.upsert_user_stats', AsyncMock(return_value=written)):
                    with patch('src.gamification.stats_aggregator.check_and_award_badges', AsyncMock(return_value=[])):
                        with patch('src.gamification.stats_aggregator.check_level_up',
                                   AsyncMock(return_value=no_level_change())):
                            with patch('src.gamification.stats_aggregator.notification_service.send_achievement_notification',
                                       AsyncMock()) as mock_notify:
                                rewards = await process_checkin_created(42, today)

    assert rewards.streak_milestone is None
    assert rewards.points_awarded == 0
    mock_notify.assert_not_awaited()


@pytest.mark.asyncio
async def test_badge_scan_failure_propagates(today, stats_factory):
    written = stats_factory(total_books=1, consecutive_days=1, longest_streak=1)

    with patch('src.gamification.stats_aggregator.queries.get_user_stats', AsyncMock(return_value=None)):
        with patch('src.gamification.stats_aggregator.queries.get_checkin_aggregates',
                   AsyncMock(return_value={'total_books': 1, 'total_reading_time': 5})):
            with patch('src.gamification.stats_aggregator.queries.get_checkin_dates', AsyncMock(return_value=[today])):
                with patch('src.gamification.stats_aggregator.queries.upsert_user_stats', AsyncMock(return_value=written)):
                    with patch('src.gamification.stats_aggregator.check_and_award_badges',
                               AsyncMock(side_effect=RuntimeError("pool closed"))):
                        with patch('src.gamification.stats_aggregator.check_level_up', AsyncMock()) as mock_level:
                            with pytest.raises(RuntimeError):
                                await process_checkin_created(42, today)

    mock_level.assert_not_awaited()


# ============================================================================
# Check-in Deleted
# ============================================================================

@pytest.mark.asyncio
async def test_delete_breaks_streak_and_keeps_longest(today, stats_factory):
    """Scenario: removing today's only check-in of a 7-day run"""
    previous = stats_factory(total_books=7, consecutive_days=7, longest_streak=7, total_points=60)
    written = stats_factory(total_books=6, consecutive_days=6, longest_streak=7, total_points=60)
    # Yesterday's run still counts as current
    dates = [today - timedelta(days=n) for n in range(1, 7)]

    with patch('src.gamification.stats_aggregator.queries.get_user_stats', AsyncMock(return_value=previous)):
        with patch('src.gamification.stats_aggregator.queries.get_checkin_aggregates',
                   AsyncMock(return_value={'total_books': 6, 'total_reading_time': 120})):
            with patch('src.gamification.stats_aggregator.queries.get_checkin_dates', AsyncMock(return_value=dates)):
                with patch('src.gamification.stats_aggregator.queries.upsert_user_stats',
                           AsyncMock(return_value=written)) as mock_upsert:
                    with patch('src.gamification.stats_aggregator.check_level_up',
                               AsyncMock(return_value=no_level_change())):
                        with patch('src.gamification.stats_aggregator.check_and_award_badges', AsyncMock()) as mock_badges:
                            stats = await process_checkin_deleted(42, today)

    assert mock_upsert.await_args.kwargs['consecutive_days'] == 6
    assert mock_upsert.await_args.kwargs['longest_streak'] == 7
    assert stats.total_points == 60
    mock_badges.assert_not_awaited()


@pytest.mark.asyncio
async def test_delete_below_level_threshold_lowers_level(today, stats_factory):
    previous = stats_factory(total_books=10, level=2, total_points=160)
    written = stats_factory(total_books=9, level=2, total_points=160)

    with patch('src.gamification.stats_aggregator.queries.get_user_stats', AsyncMock(return_value=previous)):
        with patch('src.gamification.stats_aggregator.queries.get_checkin_aggregates',
                   AsyncMock(return_value={'total_books': 9, 'total_reading_time': 200})):
            with patch('src.gamification.stats_aggregator.queries.get_checkin_dates', AsyncMock(return_value=[])):
                with patch('src.gamification.stats_aggregator.queries.upsert_user_stats', AsyncMock(return_value=written)):
                    with patch('src.gamification.stats_aggregator.check_level_up',
                               AsyncMock(return_value=LevelUpResult(False, 2, 1))):
                        stats = await process_checkin_deleted(42, today)

    assert stats.level == 1
    # Points earned from the level-up stay
    assert stats.total_points == 160
