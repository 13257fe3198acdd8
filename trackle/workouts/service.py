"""
Workout aggregate service.

A workout and its entries are written as one unit. Updates replace the
whole entry set: the previous entries are removed and the new ones inserted
in the same transaction, so readers never see a mix of old and new.
"""
from typing import List, Sequence, Tuple
from datetime import datetime
from sqlalchemy import func, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload
from pydantic import BaseModel, Field

from trackle.base_microservice import utcnow
from trackle.errors import DatabaseError, NotFoundError
from trackle.exercises.service import verify_exercises_exist
from trackle.templates.models import Template
from trackle.transaction import atomic_unit
from trackle.workouts.models import Workout, WorkoutEntry


class WorkoutEntryIn(BaseModel):
    exercise_id: int = Field(..., gt=0)
    set_number: int = Field(..., gt=0)
    reps: int = Field(..., gt=0)
    weight: float = Field(0, ge=0)


class WorkoutCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    template_id: int = Field(..., gt=0)
    notes: str = ""
    entries: List[WorkoutEntryIn] = Field(..., min_length=1)


class WorkoutEntryOut(BaseModel):
    exercise_id: int
    exercise_name: str
    set_number: int
    reps: int
    weight: float


class WorkoutOut(BaseModel):
    id: int
    name: str
    notes: str
    user_id: int
    template_id: int
    template_name: str
    created_at: datetime
    updated_at: datetime
    entries: List[WorkoutEntryOut]


class WorkoutSummary(BaseModel):
    id: int
    name: str
    notes: str
    template_id: int
    template_name: str
    logged_at: datetime


def to_workout_out(workout: Workout) -> WorkoutOut:
    return WorkoutOut(
        id=workout.id,
        name=workout.name,
        notes=workout.notes,
        user_id=workout.user_id,
        template_id=workout.template_id,
        template_name=workout.template.name,
        created_at=workout.created_at,
        updated_at=workout.updated_at,
        entries=[
            WorkoutEntryOut(
                exercise_id=entry.exercise_id,
                exercise_name=entry.exercise.name,
                set_number=entry.set_number,
                reps=entry.reps,
                weight=entry.weight,
            )
            for entry in workout.entries
        ],
    )


class WorkoutService:
    """
    Service for workout operations.
    """
    @staticmethod
    async def _verify_template_owner(
        db: AsyncSession,
        template_id: int,
        owner_id: int,
        lock: bool = False
    ):
        """
        Check that the template a workout is logged against belongs to the owner.

        With lock=True the template row is share-locked until the transaction
        ends, so a concurrent template delete waits for this workout.

        Raises:
            NotFoundError: If the template is missing or owned by another user
        """
        query = select(Template.id).where(
            Template.id == template_id,
            Template.user_id == owner_id,
            Template.live()
        )
        if lock:
            query = query.with_for_update(read=True)
        try:
            found = (await db.execute(query)).scalar_one_or_none()
        except SQLAlchemyError as e:
            raise DatabaseError("Failed to verify template", e) from e
        if found is None:
            raise NotFoundError("Template not found")

    @staticmethod
    async def _get_owned(
        db: AsyncSession,
        workout_id: int,
        owner_id: int,
        for_update: bool = False
    ) -> Workout:
        query = select(Workout).where(
            Workout.id == workout_id,
            Workout.user_id == owner_id,
            Workout.live()
        )
        if for_update:
            query = query.with_for_update()
        try:
            workout = (await db.execute(query)).scalar_one_or_none()
        except SQLAlchemyError as e:
            raise DatabaseError("Failed to find workout", e) from e
        if workout is None:
            raise NotFoundError("Workout not found")
        return workout

    @staticmethod
    async def _load(db: AsyncSession, workout_id: int, owner_id: int) -> WorkoutOut:
        result = await db.execute(
            select(Workout)
            .where(Workout.id == workout_id, Workout.user_id == owner_id, Workout.live())
            .options(
                selectinload(Workout.template),
                selectinload(Workout.entries).selectinload(WorkoutEntry.exercise),
            )
            .execution_options(populate_existing=True)
        )
        workout = result.scalar_one_or_none()
        if workout is None:
            raise NotFoundError("Workout not found")
        return to_workout_out(workout)

    @staticmethod
    def _entry_rows(workout_id: int, entries: Sequence[WorkoutEntryIn]) -> List[WorkoutEntry]:
        return [
            WorkoutEntry(
                workout_id=workout_id,
                exercise_id=entry.exercise_id,
                set_number=entry.set_number,
                reps=entry.reps,
                weight=entry.weight,
            )
            for entry in entries
        ]

    @staticmethod
    async def create_workout(db: AsyncSession, owner_id: int, data: WorkoutCreate) -> WorkoutOut:
        """
        Log a workout with its entries against one of the owner's templates.

        Raises:
            NotFoundError: If the template is not the owner's
            InvalidInputError: If an entry references an unknown exercise
            DatabaseError: If the store rejects the write; nothing is persisted
        """
        await WorkoutService._verify_template_owner(db, data.template_id, owner_id)
        await verify_exercises_exist(db, (entry.exercise_id for entry in data.entries))

        async with atomic_unit(db, "create workout"):
            workout = Workout(
                name=data.name,
                notes=data.notes,
                user_id=owner_id,
                template_id=data.template_id,
            )
            db.add(workout)
            await db.flush()
            # Re-checked inside the transaction, after the workout row is written
            await WorkoutService._verify_template_owner(db, data.template_id, owner_id, lock=True)

            db.add_all(WorkoutService._entry_rows(workout.id, data.entries))
            await db.flush()

        return await WorkoutService._load(db, workout.id, owner_id)

    @staticmethod
    async def update_workout(
        db: AsyncSession,
        owner_id: int,
        workout_id: int,
        data: WorkoutCreate
    ) -> WorkoutOut:
        """
        Replace a workout's fields and its full set of entries.
        """
        workout = await WorkoutService._get_owned(db, workout_id, owner_id, for_update=True)
        await WorkoutService._verify_template_owner(db, data.template_id, owner_id)
        await verify_exercises_exist(db, (entry.exercise_id for entry in data.entries))

        async with atomic_unit(db, "update workout"):
            workout.name = data.name
            workout.notes = data.notes
            workout.template_id = data.template_id
            await db.execute(
                update(WorkoutEntry)
                .where(WorkoutEntry.workout_id == workout.id, WorkoutEntry.live())
                .values(deleted_at=utcnow())
            )
            await WorkoutService._verify_template_owner(db, data.template_id, owner_id, lock=True)
            db.add_all(WorkoutService._entry_rows(workout.id, data.entries))
            await db.flush()

        return await WorkoutService._load(db, workout.id, owner_id)

    @staticmethod
    async def delete_workout(db: AsyncSession, owner_id: int, workout_id: int):
        """
        Delete a workout and its entries.

        Raises:
            NotFoundError: If the workout does not exist or belongs to another user
        """
        workout = await WorkoutService._get_owned(db, workout_id, owner_id, for_update=True)

        async with atomic_unit(db, "delete workout"):
            now = utcnow()
            await db.execute(
                update(WorkoutEntry)
                .where(WorkoutEntry.workout_id == workout.id, WorkoutEntry.live())
                .values(deleted_at=now)
            )
            workout.deleted_at = now
            await db.flush()

    @staticmethod
    async def get_workout(db: AsyncSession, owner_id: int, workout_id: int) -> WorkoutOut:
        return await WorkoutService._load(db, workout_id, owner_id)

    @staticmethod
    async def list_workouts(
        db: AsyncSession,
        owner_id: int,
        page: int,
        limit: int
    ) -> Tuple[List[WorkoutSummary], int]:
        conditions = (Workout.user_id == owner_id, Workout.live())
        total = (await db.execute(select(func.count(Workout.id)).where(*conditions))).scalar_one()
        if total == 0:
            return [], 0

        result = await db.execute(
            select(Workout, Template.name)
            .outerjoin(Template, Template.id == Workout.template_id)
            .where(*conditions)
            .order_by(Workout.created_at.desc(), Workout.id.desc())
            .offset((page - 1) * limit)
            .limit(limit)
        )
        return [
            WorkoutSummary(
                id=workout.id,
                name=workout.name,
                notes=workout.notes,
                template_id=workout.template_id,
                template_name=template_name or "",
                logged_at=workout.created_at,
            )
            for workout, template_name in result.all()
        ], total
