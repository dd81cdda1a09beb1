"""API routes for reading-quest"""
import logging
from datetime import date, datetime
from typing import Optional
from fastapi import APIRouter, Depends, HTTPException, Path, Query, Request, status

from src.api.models import (
    CheckInResponse, CheckInListResponse, StreakResponse, CommentRequest,
    BadgeListResponse, BadgeProgressResponse, BadgeCheckResponse,
    LevelResponse, LevelCheckResponse,
    PointsHistoryResponse, RankResponse, LeaderboardResponse,
    ChallengeClaimResponse, NotificationListResponse,
    SchedulerTriggerResponse, HealthCheckResponse
)
from src.api.auth import verify_api_key
from src.api.middleware import limiter
from src.db import queries
from src.db.connection import db
from src.gamification import badge_system, challenges, level_system, points_ledger
from src.models.checkin import CheckInComment, CheckInCreate
from src.models.gamification import DailyChallenge
from src.services import get_container, notification_service

logger = logging.getLogger(__name__)

router = APIRouter()

USER_PATH = "/api/v1/users/{user_id}"


async def ensure_user(user_id: int) -> None:
    """404 unless the acting user exists"""
    if not await queries.user_exists(user_id):
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"User {user_id} not found"
        )


# ==========================================
# Check-ins
# ==========================================

@router.post(f"{USER_PATH}/checkins", response_model=CheckInResponse, status_code=status.HTTP_201_CREATED)
@limiter.limit("30/minute")
async def create_checkin(
    request: Request,
    user_id: int,
    payload: CheckInCreate,
    api_key: str = Depends(verify_api_key)
):
    """
    Record today's reading for a book

    Runs the reward pipeline (stats, badges, level) before responding.
    Rate limit: 30/minute
    """
    service = get_container().checkin_service
    return await service.create_checkin(user_id, payload)


@router.get(f"{USER_PATH}/checkins", response_model=CheckInListResponse)
@limiter.limit("60/minute")
async def list_checkins(
    request: Request,
    user_id: int,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    limit: int = Query(20, ge=1, le=100),
    offset: int = Query(0, ge=0),
    api_key: str = Depends(verify_api_key)
):
    """Page of check-ins, newest first (Rate limit: 60/minute)"""
    await ensure_user(user_id)
    service = get_container().checkin_service
    return await service.get_user_checkins(user_id, start_date, end_date, limit, offset)


@router.get(f"{USER_PATH}/checkins/today")
@limiter.limit("60/minute")
async def today_checkins(
    request: Request,
    user_id: int,
    api_key: str = Depends(verify_api_key)
):
    """Today's check-ins (Rate limit: 60/minute)"""
    await ensure_user(user_id)
    checkins = await get_container().checkin_service.get_today_checkins(user_id)
    return {"user_id": user_id, "checkins": checkins}


@router.get(f"{USER_PATH}/checkins/streak", response_model=StreakResponse)
@limiter.limit("60/minute")
async def checkin_streak(
    request: Request,
    user_id: int,
    api_key: str = Depends(verify_api_key)
):
    """Current reading streak (Rate limit: 60/minute)"""
    await ensure_user(user_id)
    streak = await get_container().checkin_service.get_checkin_streak(user_id)
    return StreakResponse(user_id=user_id, streak=streak)


@router.get(f"{USER_PATH}/checkins/calendar/{{year}}/{{month}}")
@limiter.limit("60/minute")
async def reading_calendar(
    request: Request,
    user_id: int,
    year: int = Path(..., ge=2000, le=2100),
    month: int = Path(..., ge=1, le=12),
    api_key: str = Depends(verify_api_key)
):
    """Per-day check-in counts and minutes for a month (Rate limit: 60/minute)"""
    await ensure_user(user_id)
    days = await get_container().checkin_service.get_reading_calendar(user_id, year, month)
    return {"user_id": user_id, "year": year, "month": month, "days": days}


@router.delete(f"{USER_PATH}/checkins/{{checkin_id}}", status_code=status.HTTP_204_NO_CONTENT)
@limiter.limit("20/minute")
async def delete_checkin(
    request: Request,
    user_id: int,
    checkin_id: int,
    api_key: str = Depends(verify_api_key)
):
    """
    Delete one of the user's own check-ins

    Stats are recomputed; earned badges and points are kept.
    Rate limit: 20/minute
    """
    deleted = await get_container().checkin_service.delete_checkin(checkin_id, user_id)
    if not deleted:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Check-in {checkin_id} not found for user {user_id}"
        )


@router.post(f"{USER_PATH}/checkins/{{checkin_id}}/comment")
@limiter.limit("20/minute")
async def comment_checkin(
    request: Request,
    user_id: int,
    checkin_id: int,
    payload: CommentRequest,
    api_key: str = Depends(verify_api_key)
):
    """Parent or teacher comment on a child's check-in (Rate limit: 20/minute)"""
    existing = await queries.get_checkin(checkin_id)
    if not existing or existing['user_id'] != user_id:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Check-in {checkin_id} not found for user {user_id}"
        )

    service = get_container().checkin_service
    return await service.add_comment(
        checkin_id,
        payload.author_id,
        CheckInComment(comment=payload.comment)
    )


# ==========================================
# Stats
# ==========================================

@router.get(f"{USER_PATH}/stats")
@limiter.limit("60/minute")
async def user_stats(
    request: Request,
    user_id: int,
    api_key: str = Depends(verify_api_key)
):
    """Cached stats (Rate limit: 60/minute)"""
    return await get_container().game_service.get_user_stats(user_id)


@router.get(f"{USER_PATH}/stats/weekly")
@limiter.limit("30/minute")
async def weekly_stats(
    request: Request,
    user_id: int,
    api_key: str = Depends(verify_api_key)
):
    """This week vs last week (Rate limit: 30/minute)"""
    await ensure_user(user_id)
    return await get_container().game_service.get_weekly_stats(user_id)


@router.get(f"{USER_PATH}/stats/monthly/{{year}}/{{month}}")
@limiter.limit("30/minute")
async def monthly_stats(
    request: Request,
    user_id: int,
    year: int = Path(..., ge=2000, le=2100),
    month: int = Path(..., ge=1, le=12),
    api_key: str = Depends(verify_api_key)
):
    """Daily rollup and totals for a month (Rate limit: 30/minute)"""
    await ensure_user(user_id)
    return await get_container().game_service.get_monthly_stats(user_id, year, month)


# ==========================================
# Badges
# ==========================================

@router.get(f"{USER_PATH}/badges", response_model=BadgeListResponse)
@limiter.limit("30/minute")
async def list_badges(
    request: Request,
    user_id: int,
    api_key: str = Depends(verify_api_key)
):
    """Earned badges and progress toward the rest (Rate limit: 30/minute)"""
    await ensure_user(user_id)
    earned = await badge_system.get_user_badges(user_id)
    available = await badge_system.get_available_badges(user_id)
    return BadgeListResponse(user_id=user_id, earned=earned, available=available)


@router.get(f"{USER_PATH}/badges/{{badge_id}}/progress", response_model=BadgeProgressResponse)
@limiter.limit("60/minute")
async def badge_progress(
    request: Request,
    user_id: int,
    badge_id: int,
    api_key: str = Depends(verify_api_key)
):
    """Progress toward one badge (Rate limit: 60/minute)"""
    await ensure_user(user_id)
    progress = await badge_system.get_badge_progress(user_id, badge_id)
    return BadgeProgressResponse(user_id=user_id, badge_id=badge_id, progress=progress)


@router.post(f"{USER_PATH}/badges/check", response_model=BadgeCheckResponse)
@limiter.limit("10/minute")
async def check_badges(
    request: Request,
    user_id: int,
    api_key: str = Depends(verify_api_key)
):
    """Run a badge scan now (Rate limit: 10/minute)"""
    await ensure_user(user_id)
    awarded = await badge_system.check_and_award_badges(user_id)
    for badge in awarded:
        await notification_service.send_achievement_notification(
            user_id, "badge", badge['name'], points=badge['point_reward']
        )
    return BadgeCheckResponse(user_id=user_id, awarded=awarded)


# ==========================================
# Level & points
# ==========================================

@router.get(f"{USER_PATH}/level", response_model=LevelResponse)
@limiter.limit("60/minute")
async def level_info(
    request: Request,
    user_id: int,
    api_key: str = Depends(verify_api_key)
):
    """Stored level with title and thresholds (Rate limit: 60/minute)"""
    stats = await get_container().game_service.get_user_stats(user_id)
    return LevelResponse(
        user_id=user_id,
        level=stats['level'],
        total_books=stats['total_books'],
        info=level_system.get_level_info(stats['level'])
    )


@router.post(f"{USER_PATH}/level/check", response_model=LevelCheckResponse)
@limiter.limit("10/minute")
async def check_level(
    request: Request,
    user_id: int,
    api_key: str = Depends(verify_api_key)
):
    """Reconcile the stored level (Rate limit: 10/minute)"""
    await ensure_user(user_id)
    result = await level_system.check_level_up(user_id)
    if result.level_up:
        await notification_service.send_achievement_notification(
            user_id, "level_up", str(result.new_level), points=result.bonus
        )
    return LevelCheckResponse(
        user_id=user_id,
        level_up=result.level_up,
        old_level=result.old_level,
        new_level=result.new_level,
        bonus=result.bonus
    )


@router.get(f"{USER_PATH}/points/history", response_model=PointsHistoryResponse)
@limiter.limit("30/minute")
async def points_history(
    request: Request,
    user_id: int,
    limit: int = Query(50, ge=1, le=200),
    api_key: str = Depends(verify_api_key)
):
    """Recent point grants (Rate limit: 30/minute)"""
    await ensure_user(user_id)
    history = await points_ledger.get_points_history(user_id, limit=limit)
    total = await points_ledger.get_points_balance(user_id)
    return PointsHistoryResponse(user_id=user_id, total_points=total, history=history)


# ==========================================
# Leaderboard & rank
# ==========================================

@router.get("/api/v1/leaderboard", response_model=LeaderboardResponse)
@limiter.limit("30/minute")
async def leaderboard(
    request: Request,
    type: str = Query("points", description="points, books or streak"),
    limit: int = Query(20, ge=1, le=100),
    api_key: str = Depends(verify_api_key)
):
    """Children ranked by points, books or longest streak (Rate limit: 30/minute)"""
    entries = await get_container().game_service.get_leaderboard(type, limit)
    return LeaderboardResponse(type=type, entries=entries)


@router.get(f"{USER_PATH}/rank", response_model=RankResponse)
@limiter.limit("30/minute")
async def user_rank(
    request: Request,
    user_id: int,
    type: str = Query("points", description="points, books or streak"),
    api_key: str = Depends(verify_api_key)
):
    """Rank among children, 0 if unranked (Rate limit: 30/minute)"""
    await ensure_user(user_id)
    rank = await get_container().game_service.get_user_rank(user_id, type)
    return RankResponse(user_id=user_id, type=type, rank=rank)


# ==========================================
# Daily challenge
# ==========================================

@router.get(f"{USER_PATH}/challenge/daily", response_model=DailyChallenge)
@limiter.limit("60/minute")
async def daily_challenge(
    request: Request,
    user_id: int,
    api_key: str = Depends(verify_api_key)
):
    """Today's challenge with live progress (Rate limit: 60/minute)"""
    await ensure_user(user_id)
    return await challenges.get_daily_challenge(user_id)


@router.post(f"{USER_PATH}/challenge/daily/claim", response_model=ChallengeClaimResponse)
@limiter.limit("10/minute")
async def claim_daily_challenge(
    request: Request,
    user_id: int,
    api_key: str = Depends(verify_api_key)
):
    """
    Claim today's challenge reward

    Always 200; success=False with a reason when nothing was granted.
    Rate limit: 10/minute
    """
    await ensure_user(user_id)
    result = await challenges.claim_daily_challenge(user_id)
    return ChallengeClaimResponse(
        success=result.success,
        reason=result.reason,
        points_awarded=result.points_awarded,
        challenge=result.challenge
    )


# ==========================================
# Dashboard & recommendations
# ==========================================

@router.get(f"{USER_PATH}/dashboard")
@limiter.limit("30/minute")
async def dashboard(
    request: Request,
    user_id: int,
    api_key: str = Depends(verify_api_key)
):
    """Stats, rank, badges, level and challenge in one call (Rate limit: 30/minute)"""
    return await get_container().game_service.get_dashboard(user_id)


@router.get(f"{USER_PATH}/recommendations")
@limiter.limit("30/minute")
async def recommendations(
    request: Request,
    user_id: int,
    api_key: str = Depends(verify_api_key)
):
    """Near-complete badges, goals and tips (Rate limit: 30/minute)"""
    await ensure_user(user_id)
    return await get_container().game_service.get_personalized_recommendations(user_id)


# ==========================================
# Notifications
# ==========================================

@router.get(f"{USER_PATH}/notifications", response_model=NotificationListResponse)
@limiter.limit("60/minute")
async def list_notifications(
    request: Request,
    user_id: int,
    limit: int = Query(20, ge=1, le=100),
    offset: int = Query(0, ge=0),
    api_key: str = Depends(verify_api_key)
):
    """Notifications, newest first (Rate limit: 60/minute)"""
    await ensure_user(user_id)
    return await notification_service.get_user_notifications(user_id, limit, offset)


@router.get(f"{USER_PATH}/notifications/stats")
@limiter.limit("60/minute")
async def notification_stats(
    request: Request,
    user_id: int,
    api_key: str = Depends(verify_api_key)
):
    """Total, unread and unread-by-type counts (Rate limit: 60/minute)"""
    await ensure_user(user_id)
    return await notification_service.get_notification_stats(user_id)


@router.post(f"{USER_PATH}/notifications/read-all")
@limiter.limit("20/minute")
async def mark_all_notifications_read(
    request: Request,
    user_id: int,
    api_key: str = Depends(verify_api_key)
):
    """Mark every notification read (Rate limit: 20/minute)"""
    updated = await notification_service.mark_all_as_read(user_id)
    return {"updated": updated}


@router.post(f"{USER_PATH}/notifications/{{notification_id}}/read")
@limiter.limit("60/minute")
async def mark_notification_read(
    request: Request,
    user_id: int,
    notification_id: int,
    api_key: str = Depends(verify_api_key)
):
    """Mark one notification read (Rate limit: 60/minute)"""
    if not await notification_service.mark_as_read(notification_id, user_id):
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Notification {notification_id} not found"
        )
    return {"id": notification_id, "is_read": True}


@router.delete(f"{USER_PATH}/notifications/read", status_code=status.HTTP_200_OK)
@limiter.limit("20/minute")
async def delete_read_notifications(
    request: Request,
    user_id: int,
    api_key: str = Depends(verify_api_key)
):
    """Delete all read notifications (Rate limit: 20/minute)"""
    deleted = await notification_service.delete_read_notifications(user_id)
    return {"deleted": deleted}


@router.delete(f"{USER_PATH}/notifications/{{notification_id}}", status_code=status.HTTP_204_NO_CONTENT)
@limiter.limit("60/minute")
async def delete_notification(
    request: Request,
    user_id: int,
    notification_id: int,
    api_key: str = Depends(verify_api_key)
):
    """Delete one notification (Rate limit: 60/minute)"""
    if not await notification_service.delete_notification(notification_id, user_id):
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Notification {notification_id} not found"
        )


@router.post("/api/v1/notifications/trigger/{task}", response_model=SchedulerTriggerResponse)
@limiter.limit("5/minute")
async def trigger_scheduler_task(
    request: Request,
    task: str,
    api_key: str = Depends(verify_api_key)
):
    """
    Run a reminder task now, ignoring its hour gate

    task: reading, parent or cleanup. Rate limit: 5/minute
    """
    scheduler = get_container().reminder_scheduler
    triggers = {
        "reading": scheduler.trigger_reading_reminders,
        "parent": scheduler.trigger_parent_reminders,
        "cleanup": scheduler.trigger_notification_cleanup,
    }
    trigger = triggers.get(task)
    if trigger is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Unknown task '{task}' (expected one of: {', '.join(triggers)})"
        )

    result = await trigger()
    return SchedulerTriggerResponse(task=task, result=result)


# ==========================================
# Health
# ==========================================

@router.get("/api/health", response_model=HealthCheckResponse)
@limiter.limit("60/minute")
async def health_check(request: Request):
    """Health check endpoint (Rate limit: 60/minute for monitoring systems)"""
    if not db.is_initialized:
        db_status = "disconnected"
    else:
        try:
            async with db.connection() as conn:
                async with conn.cursor() as cur:
                    await cur.execute("SELECT 1 AS ok")
                    await cur.fetchone()
            db_status = "connected"
        except Exception as e:
            logger.error(f"Database health check failed: {e}")
            db_status = "disconnected"

    return HealthCheckResponse(
        status="healthy" if db_status == "connected" else "degraded",
        database=db_status,
        scheduler=get_container().reminder_scheduler.get_status(),
        timestamp=datetime.now()
    )
