from typing import Optional
from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from trackle.base_microservice import BaseMicroservice, get_db_session, parse_pagination
from trackle.auth.jwt import TokenData
from trackle.auth.middleware import get_current_user
from trackle.exercises.service import ExerciseService, ExerciseCreate, ExerciseUpdate, ExerciseFilter

router = APIRouter(tags=["exercises"], dependencies=[Depends(get_current_user)])
base_service = BaseMicroservice("trackle.exercises")


@router.get("")
async def list_exercises(
    page: Optional[str] = Query(None),
    limit: Optional[str] = Query(None),
    category: Optional[str] = Query(None),
    primary_muscle: Optional[str] = Query(None),
    equipment: Optional[str] = Query(None),
    search: Optional[str] = Query(None),
    db: AsyncSession = Depends(get_db_session)
):
    """List exercises, optionally filtered by category, muscle, equipment or a name search."""
    page_num, limit_num = parse_pagination(page, limit)
    filters = ExerciseFilter(
        category=category,
        primary_muscle=primary_muscle,
        equipment=equipment,
        search=search
    )
    exercises, total = await ExerciseService.list_exercises(db, filters, page_num, limit_num)
    return base_service.paginated_response(
        exercises, page_num, limit_num, total, message="Exercises retrieved successfully"
    )


@router.get("/{exercise_id}")
async def get_exercise(exercise_id: int, db: AsyncSession = Depends(get_db_session)):
    exercise = await ExerciseService.get_exercise(db, exercise_id)
    return base_service.api_response(data=exercise, message="Exercise retrieved successfully")


@router.post("")
async def create_exercise(
    exercise_data: ExerciseCreate,
    token_data: TokenData = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session)
):
    exercise = await ExerciseService.create_exercise(db, exercise_data)
    base_service.log_event("exercise.created", {"id": exercise.id, "by": token_data.user_id})
    return base_service.api_response(data=exercise, message="Exercise created successfully", status_code=201)


@router.put("/{exercise_id}")
async def update_exercise(
    exercise_id: int,
    exercise_data: ExerciseUpdate,
    token_data: TokenData = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session)
):
    exercise = await ExerciseService.update_exercise(db, exercise_id, exercise_data)
    base_service.log_event("exercise.updated", {"id": exercise_id, "by": token_data.user_id})
    return base_service.api_response(data=exercise, message="Exercise updated successfully")


@router.delete("/{exercise_id}")
async def delete_exercise(
    exercise_id: int,
    token_data: TokenData = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session)
):
    await ExerciseService.delete_exercise(db, exercise_id)
    base_service.log_event("exercise.deleted", {"id": exercise_id, "by": token_data.user_id})
    return base_service.api_response(message="Exercise deleted successfully")
