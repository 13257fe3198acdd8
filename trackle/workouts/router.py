from typing import Optional
from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from trackle.base_microservice import BaseMicroservice, get_db_session, parse_pagination
from trackle.auth.jwt import TokenData
from trackle.auth.middleware import get_current_user
from trackle.workouts.service import WorkoutService, WorkoutCreate

router = APIRouter(tags=["workouts"])
base_service = BaseMicroservice("trackle.workouts")


@router.post("")
async def create_workout(
    workout_data: WorkoutCreate,
    token_data: TokenData = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session)
):
    """Log a workout against one of the current user's templates."""
    workout = await WorkoutService.create_workout(db, token_data.user_id, workout_data)
    base_service.log_event("workout.created", {
        "id": workout.id,
        "user_id": token_data.user_id,
        "entries": len(workout.entries)
    })
    return base_service.api_response(data=workout, message="Workout created successfully", status_code=201)


@router.get("")
async def list_workouts(
    page: Optional[str] = Query(None),
    limit: Optional[str] = Query(None),
    token_data: TokenData = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session)
):
    page_num, limit_num = parse_pagination(page, limit)
    workouts, total = await WorkoutService.list_workouts(db, token_data.user_id, page_num, limit_num)
    return base_service.paginated_response(
        workouts, page_num, limit_num, total, message="Workouts retrieved successfully"
    )


@router.get("/{workout_id}")
async def get_workout(
    workout_id: int,
    token_data: TokenData = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session)
):
    workout = await WorkoutService.get_workout(db, token_data.user_id, workout_id)
    return base_service.api_response(data=workout, message="Workout retrieved successfully")


@router.put("/{workout_id}")
async def update_workout(
    workout_id: int,
    workout_data: WorkoutCreate,
    token_data: TokenData = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session)
):
    """Replace a workout and all of its entries."""
    workout = await WorkoutService.update_workout(db, token_data.user_id, workout_id, workout_data)
    base_service.log_event("workout.updated", {
        "id": workout_id,
        "user_id": token_data.user_id,
        "entries": len(workout.entries)
    })
    return base_service.api_response(data=workout, message="Workout updated successfully")


@router.delete("/{workout_id}")
async def delete_workout(
    workout_id: int,
    token_data: TokenData = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session)
):
    await WorkoutService.delete_workout(db, token_data.user_id, workout_id)
    base_service.log_event("workout.deleted", {"id": workout_id, "user_id": token_data.user_id})
    return base_service.api_response(message="Workout deleted successfully")
