"""Unit tests for CheckInService"""
import pytest
from datetime import date
from unittest.mock import AsyncMock, Mock, patch
from psycopg import errors as pg_errors

from src.exceptions import AuthorizationError, DuplicateCheckInError, RecordNotFoundError
from src.gamification.level_system import LevelUpResult
from src.gamification.stats_aggregator import CheckInRewards
from src.models.checkin import CheckInComment, CheckInCreate
from src.models.gamification import UserStats
from src.services.checkin_service import CheckInService

QUERIES = 'src.services.checkin_service.queries'

CHILD = {'id': 42, 'username': 'mia', 'display_name': 'Mia', 'role': 'child'}
PARENT = {'id': 7, 'username': 'mum', 'display_name': 'Mum', 'role': 'parent'}
TEACHER = {'id': 8, 'username': 'msli', 'display_name': 'Ms Li', 'role': 'teacher'}


@pytest.fixture
def service():
    return CheckInService(db_connection=Mock())


@pytest.mark.asyncio
async def test_create_checkin_runs_reward_pipeline(service, today, badge_by_condition):
    first_reader = badge_by_condition("first_checkin")
    row = {'id': 1, 'user_id': 42, 'book_id': 5, 'checkin_date': today, 'reading_time': 20, 'notes': None}
    rewards = CheckInRewards(
        stats=UserStats(user_id=42, total_books=1, total_reading_time=20,
                        consecutive_days=1, longest_streak=1, total_points=10),
        badges=[first_reader],
        level=LevelUpResult(False, 1, 1),
    )

    with patch(f'{QUERIES}.get_user', AsyncMock(return_value=CHILD)):
        with patch(f'{QUERIES}.insert_checkin', AsyncMock(return_value=row)) as mock_insert:
            with patch('src.services.checkin_service.process_checkin_created',
                       AsyncMock(return_value=rewards)) as mock_pipeline:
                result = await service.create_checkin(
                    42, CheckInCreate(book_id=5, reading_time=20, notes="  "), today
                )

    # Blank notes are stored as NULL
    mock_insert.assert_awaited_once_with(42, 5, today, 20, None)
    mock_pipeline.assert_awaited_once_with(42, today)
    assert result['checkin'] == row
    assert result['new_badges'] == [first_reader]
    assert result['points_awarded'] == 10
    assert result['level_up'] is False
    assert result['new_level'] == 1
    assert result['stats']['total_points'] == 10


@pytest.mark.asyncio
async def test_same_book_twice_same_day_rejected(service, today):
    """Scenario: the unique (user, book, date) key turns the second check-in into a conflict"""
    with patch(f'{QUERIES}.get_user', AsyncMock(return_value=CHILD)):
        with patch(f'{QUERIES}.insert_checkin', AsyncMock(return_value=None)):
            with patch('src.services.checkin_service.process_checkin_created', AsyncMock()) as mock_pipeline:
                with pytest.raises(DuplicateCheckInError) as exc_info:
                    await service.create_checkin(42, CheckInCreate(book_id=5, reading_time=10), today)

    assert exc_info.value.book_id == 5
    mock_pipeline.assert_not_awaited()


@pytest.mark.asyncio
async def test_create_checkin_unknown_user(service, today):
    with patch(f'{QUERIES}.get_user', AsyncMock(return_value=None)):
        with pytest.raises(RecordNotFoundError):
            await service.create_checkin(99, CheckInCreate(book_id=5), today)


@pytest.mark.asyncio
async def test_create_checkin_unknown_book(service, today):
    """The checkins.book_id foreign key rejects a book that does not exist"""
    missing_book = pg_errors.ForeignKeyViolation("insert or update on table \"checkins\" violates foreign key constraint")

    with patch(f'{QUERIES}.get_user', AsyncMock(return_value=CHILD)):
        with patch(f'{QUERIES}.insert_checkin', AsyncMock(side_effect=missing_book)):
            with patch('src.services.checkin_service.process_checkin_created', AsyncMock()) as mock_pipeline:
                with pytest.raises(RecordNotFoundError) as exc_info:
                    await service.create_checkin(42, CheckInCreate(book_id=404), today)

    assert exc_info.value.record_type == "Book"
    assert exc_info.value.record_id == "404"
    assert exc_info.value.cause is missing_book
    mock_pipeline.assert_not_awaited()


@pytest.mark.asyncio
async def test_delete_checkin_recomputes(service, today):
    with patch(f'{QUERIES}.delete_checkin', AsyncMock(return_value=True)):
        with patch('src.services.checkin_service.process_checkin_deleted', AsyncMock()) as mock_recompute:
            assert await service.delete_checkin(1, 42, today) is True

    mock_recompute.assert_awaited_once_with(42, today)


@pytest.mark.asyncio
async def test_delete_someone_elses_checkin(service):
    with patch(f'{QUERIES}.delete_checkin', AsyncMock(return_value=False)):
        with patch('src.services.checkin_service.process_checkin_deleted', AsyncMock()) as mock_recompute:
            assert await service.delete_checkin(1, 43) is False

    mock_recompute.assert_not_awaited()


@pytest.mark.asyncio
@pytest.mark.parametrize("author,field", [
    (PARENT, "parent_comment"),
    (TEACHER, "teacher_comment"),
])
async def test_comment_goes_to_role_field(service, author, field):
    with patch(f'{QUERIES}.get_user', AsyncMock(return_value=author)):
        with patch(f'{QUERIES}.update_checkin_comment', AsyncMock(return_value={'id': 1})) as mock_update:
            await service.add_comment(1, author['id'], CheckInComment(comment=" Well done! "))

    mock_update.assert_awaited_once_with(1, field, "Well done!")


@pytest.mark.asyncio
async def test_child_cannot_comment(service):
    with patch(f'{QUERIES}.get_user', AsyncMock(return_value=CHILD)):
        with patch(f'{QUERIES}.update_checkin_comment', AsyncMock()) as mock_update:
            with pytest.raises(AuthorizationError):
                await service.add_comment(1, 42, CheckInComment(comment="me"))

    mock_update.assert_not_awaited()


@pytest.mark.asyncio
async def test_comment_on_missing_checkin(service):
    with patch(f'{QUERIES}.get_user', AsyncMock(return_value=PARENT)):
        with patch(f'{QUERIES}.update_checkin_comment', AsyncMock(return_value=None)):
            with pytest.raises(RecordNotFoundError):
                await service.add_comment(999, 7, CheckInComment(comment="Nice"))


@pytest.mark.asyncio
async def test_reading_calendar(service):
    rows = [
        {'checkin_date': date(2024, 3, 1), 'count': 2, 'total_time': 45},
        {'checkin_date': date(2024, 3, 4), 'count': 1, 'total_time': 15},
    ]
    with patch(f'{QUERIES}.get_daily_rollup', AsyncMock(return_value=rows)) as mock_rollup:
        calendar = await service.get_reading_calendar(42, 2024, 3)

    mock_rollup.assert_awaited_once_with(42, date(2024, 3, 1), date(2024, 3, 31))
    assert calendar == {
        '2024-03-01': {'count': 2, 'total_time': 45},
        '2024-03-04': {'count': 1, 'total_time': 15},
    }


@pytest.mark.asyncio
async def test_user_checkins_page(service):
    with patch(f'{QUERIES}.get_user_checkins', AsyncMock(return_value=([{'id': 3}], 11))):
        page = await service.get_user_checkins(42, limit=1, offset=2)

    assert page == {'checkins': [{'id': 3}], 'total': 11, 'limit': 1, 'offset': 2}
