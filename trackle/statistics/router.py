from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from trackle.base_microservice import BaseMicroservice, get_db_session
from trackle.auth.jwt import TokenData
from trackle.auth.middleware import get_current_user
from trackle.statistics.service import StatisticsService, DEFAULT_TIME_RANGE

router = APIRouter(tags=["statistics"])
base_service = BaseMicroservice("trackle.statistics")


@router.get("")
async def aggregate_stats(
    token_data: TokenData = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session)
):
    stats = await StatisticsService.aggregate(db, token_data.user_id)
    return base_service.api_response(data=stats, message="Statistics retrieved successfully")


@router.get("/workouts")
async def workout_frequency(
    time_range: str = Query(DEFAULT_TIME_RANGE),
    token_data: TokenData = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session)
):
    """Workouts per day (week, month) or per month (year)."""
    stats = await StatisticsService.workout_frequency(db, token_data.user_id, time_range)
    return base_service.api_response(data=stats, message="Workout statistics retrieved successfully")


@router.get("/exercises/{exercise_id}/progress")
async def exercise_progress(
    exercise_id: int,
    time_range: str = Query(DEFAULT_TIME_RANGE),
    token_data: TokenData = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session)
):
    progress = await StatisticsService.exercise_progress(db, token_data.user_id, exercise_id, time_range)
    return base_service.api_response(data=progress, message="Exercise progress retrieved successfully")
