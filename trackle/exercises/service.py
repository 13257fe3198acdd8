"""
Exercise catalog service.

Filtering, pagination and simple CRUD over the exercise catalog, plus the
batch existence check used by the template and workout writers.
"""
from typing import Iterable, List, Optional, Tuple
from datetime import datetime
from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from pydantic import BaseModel, ConfigDict, Field

from trackle.base_microservice import utcnow
from trackle.exercises.models import Exercise
from trackle.errors import DatabaseError, DuplicateEntryError, InvalidInputError, NotFoundError

DUPLICATE_NAME_MESSAGE = "Exercise with the given name already exists"


class ExerciseCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    description: str = ""
    category: str = ""
    primary_muscle: str = ""
    equipment: str = ""


class ExerciseUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    description: Optional[str] = None
    category: Optional[str] = None
    primary_muscle: Optional[str] = None
    equipment: Optional[str] = None


class ExerciseOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    description: str
    category: str
    primary_muscle: str
    equipment: str
    created_at: datetime
    updated_at: datetime


class ExerciseFilter(BaseModel):
    category: Optional[str] = None
    primary_muscle: Optional[str] = None
    equipment: Optional[str] = None
    search: Optional[str] = None


async def verify_exercises_exist(db: AsyncSession, exercise_ids: Iterable[int]):
    """
    Check that every referenced exercise is in the live catalog.

    One COUNT query over the distinct ids; any mismatch means at least one
    id is unknown or deleted.

    Raises:
        InvalidInputError: If one or more ids are not in the catalog
        DatabaseError: If the lookup fails
    """
    unique_ids = set(exercise_ids)
    if not unique_ids:
        return
    try:
        result = await db.execute(
            select(func.count(Exercise.id)).where(Exercise.id.in_(unique_ids), Exercise.live())
        )
        found = result.scalar_one()
    except SQLAlchemyError as e:
        raise DatabaseError("Failed to verify exercises", e) from e

    if found != len(unique_ids):
        raise InvalidInputError("One or more exercise IDs are invalid")


class ExerciseService:
    """
    Service for exercise catalog operations.
    """
    @staticmethod
    async def list_exercises(
        db: AsyncSession,
        filters: ExerciseFilter,
        page: int,
        limit: int
    ) -> Tuple[List[ExerciseOut], int]:
        """
        List exercises matching the filters.

        Returns:
            Tuple of the requested page of exercises and the total match count
        """
        conditions = [Exercise.live()]
        if filters.category:
            conditions.append(Exercise.category == filters.category)
        if filters.primary_muscle:
            conditions.append(Exercise.primary_muscle == filters.primary_muscle)
        if filters.equipment:
            conditions.append(Exercise.equipment == filters.equipment)
        if filters.search:
            conditions.append(Exercise.name.ilike(f"%{filters.search}%"))

        total = (await db.execute(
            select(func.count(Exercise.id)).where(*conditions)
        )).scalar_one()
        if total == 0:
            return [], 0

        result = await db.execute(
            select(Exercise)
            .where(*conditions)
            .order_by(Exercise.name, Exercise.id)
            .offset((page - 1) * limit)
            .limit(limit)
        )
        return [ExerciseOut.model_validate(e) for e in result.scalars().all()], total

    @staticmethod
    async def _get(db: AsyncSession, exercise_id: int) -> Exercise:
        result = await db.execute(
            select(Exercise).where(Exercise.id == exercise_id, Exercise.live())
        )
        exercise = result.scalar_one_or_none()
        if exercise is None:
            raise NotFoundError("Exercise not found")
        return exercise

    @staticmethod
    async def _ensure_name_available(db: AsyncSession, name: str, exclude_id: Optional[int] = None):
        query = select(func.count(Exercise.id)).where(Exercise.name == name, Exercise.live())
        if exclude_id is not None:
            query = query.where(Exercise.id != exclude_id)
        if (await db.execute(query)).scalar_one() != 0:
            raise DuplicateEntryError(DUPLICATE_NAME_MESSAGE)

    @staticmethod
    async def get_exercise(db: AsyncSession, exercise_id: int) -> ExerciseOut:
        return ExerciseOut.model_validate(await ExerciseService._get(db, exercise_id))

    @staticmethod
    async def create_exercise(db: AsyncSession, data: ExerciseCreate) -> ExerciseOut:
        await ExerciseService._ensure_name_available(db, data.name)

        exercise = Exercise(**data.model_dump())
        db.add(exercise)
        try:
            await db.commit()
        except IntegrityError as e:
            # Lost a race against a concurrent write of the same name
            await db.rollback()
            raise DuplicateEntryError(DUPLICATE_NAME_MESSAGE, e) from e
        except SQLAlchemyError as e:
            await db.rollback()
            raise DatabaseError("Failed to create exercise", e) from e
        await db.refresh(exercise)
        return ExerciseOut.model_validate(exercise)

    @staticmethod
    async def update_exercise(db: AsyncSession, exercise_id: int, data: ExerciseUpdate) -> ExerciseOut:
        exercise = await ExerciseService._get(db, exercise_id)
        changes = data.model_dump(exclude_unset=True, exclude_none=True)
        if "name" in changes and changes["name"] != exercise.name:
            await ExerciseService._ensure_name_available(db, changes["name"], exclude_id=exercise.id)

        for field, value in changes.items():
            setattr(exercise, field, value)
        try:
            await db.commit()
        except IntegrityError as e:
            # Lost a race against a concurrent write of the same name
            await db.rollback()
            raise DuplicateEntryError(DUPLICATE_NAME_MESSAGE, e) from e
        except SQLAlchemyError as e:
            await db.rollback()
            raise DatabaseError("Failed to update exercise", e) from e
        await db.refresh(exercise)
        return ExerciseOut.model_validate(exercise)

    @staticmethod
    async def delete_exercise(db: AsyncSession, exercise_id: int):
        exercise = await ExerciseService._get(db, exercise_id)
        exercise.deleted_at = utcnow()
        try:
            await db.commit()
        except SQLAlchemyError as e:
            await db.rollback()
            raise DatabaseError("Failed to delete exercise", e) from e
