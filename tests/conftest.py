"""Global test fixtures and utilities for reading-quest tests"""
import pytest
from datetime import date, datetime
from zoneinfo import ZoneInfo


# ============================================================================
# Calendar Fixtures
# ============================================================================

@pytest.fixture
def today():
    """Fixed 'today' (a Wednesday) so date arithmetic is deterministic"""
    return date(2024, 3, 13)


@pytest.fixture
def local_now():
    """Fixed local datetime factory for scheduler tests"""
    def _create(day: date, hour: int, minute: int = 0) -> datetime:
        return datetime(day.year, day.month, day.day, hour, minute, tzinfo=ZoneInfo("UTC"))
    return _create


# ============================================================================
# User & Stats Fixtures
# ============================================================================

@pytest.fixture
def test_user_id():
    """Standard test user ID"""
    return 42


@pytest.fixture
def test_api_key():
    """Standard test API key"""
    return "test_api_key_12345"


@pytest.fixture
def stats_factory(test_user_id):
    """Build user_stats rows as the query layer returns them"""
    def _create(**overrides) -> dict:
        row = {
            "user_id": test_user_id,
            "total_books": 0,
            "total_reading_time": 0,
            "consecutive_days": 0,
            "longest_streak": 0,
            "total_points": 0,
            "level": 1,
        }
        row.update(overrides)
        return row
    return _create


# ============================================================================
# Badge Catalog Fixtures
# ============================================================================

@pytest.fixture
def badge_catalog():
    """The seeded badge catalog"""
    return [
        {"id": 1, "name": "First Reader", "description": "Complete your first reading check-in",
         "icon": "📖", "condition": "first_checkin", "point_reward": 10},
        {"id": 2, "name": "Steady Reader", "description": "Read 7 days in a row",
         "icon": "🔥", "condition": "streak_7", "point_reward": 50},
        {"id": 3, "name": "Reading Champion", "description": "Read 30 days in a row",
         "icon": "🏆", "condition": "streak_30", "point_reward": 200},
        {"id": 4, "name": "Bookworm", "description": "Read 100 different books",
         "icon": "🐛", "condition": "books_100", "point_reward": 300},
        {"id": 5, "name": "Time Traveler", "description": "Read for 100 hours in total",
         "icon": "⏰", "condition": "time_100h", "point_reward": 500},
        {"id": 6, "name": "Critic", "description": "Write notes on 50 check-ins",
         "icon": "✍️", "condition": "notes_50", "point_reward": 100},
    ]


@pytest.fixture
def badge_by_condition(badge_catalog):
    """Look up a catalog badge by its condition"""
    def _get(condition: str) -> dict:
        return next(b for b in badge_catalog if b["condition"] == condition)
    return _get
