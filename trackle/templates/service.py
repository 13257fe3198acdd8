"""
Template aggregate service.

A template and its exercise lines are written as one unit: the parent row
and every child row are committed together or not at all. Every read and
write is scoped to the owning user by filtering on (id, user_id).
"""
from typing import List, Sequence, Set, Tuple
from datetime import datetime
from sqlalchemy import func, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload
from pydantic import BaseModel, ConfigDict, Field

from trackle.base_microservice import utcnow
from trackle.errors import DatabaseError, InvalidInputError, NotFoundError, ValidationError
from trackle.exercises.service import verify_exercises_exist
from trackle.templates.models import Template, TemplateExercise
from trackle.transaction import atomic_unit
from trackle.workouts.models import Workout


class TemplateExerciseIn(BaseModel):
    exercise_id: int = Field(..., gt=0)
    sets: int = Field(..., gt=0)


class TemplateCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    description: str = ""
    exercises: List[TemplateExerciseIn] = Field(..., min_length=1)


class TemplateExerciseOut(BaseModel):
    exercise_id: int
    sets: int
    name: str
    description: str
    category: str
    primary_muscle: str
    equipment: str


class TemplateOut(BaseModel):
    id: int
    name: str
    description: str
    user_id: int
    created_at: datetime
    updated_at: datetime
    exercises: List[TemplateExerciseOut]


class TemplateSummary(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    description: str
    created_at: datetime
    updated_at: datetime


def unique_exercise_ids(lines: Sequence[TemplateExerciseIn]) -> Set[int]:
    """
    Collect the exercise ids of a template request.

    Raises:
        InvalidInputError: If the same exercise appears twice
    """
    seen = set()
    for line in lines:
        if line.exercise_id in seen:
            raise InvalidInputError("Duplicate exercise IDs not allowed")
        seen.add(line.exercise_id)
    return seen


def to_template_out(template: Template) -> TemplateOut:
    return TemplateOut(
        id=template.id,
        name=template.name,
        description=template.description,
        user_id=template.user_id,
        created_at=template.created_at,
        updated_at=template.updated_at,
        exercises=[
            TemplateExerciseOut(
                exercise_id=line.exercise_id,
                sets=line.sets,
                name=line.exercise.name,
                description=line.exercise.description,
                category=line.exercise.category,
                primary_muscle=line.exercise.primary_muscle,
                equipment=line.exercise.equipment,
            )
            for line in template.exercises
        ],
    )


class TemplateService:
    """
    Service for template operations.
    """
    @staticmethod
    async def _get_owned(
        db: AsyncSession,
        template_id: int,
        owner_id: int,
        for_update: bool = False
    ) -> Template:
        """
        Fetch a live template owned by owner_id.

        A template that belongs to someone else is reported exactly like a
        missing one.
        """
        query = select(Template).where(
            Template.id == template_id,
            Template.user_id == owner_id,
            Template.live()
        )
        if for_update:
            query = query.with_for_update()
        try:
            template = (await db.execute(query)).scalar_one_or_none()
        except SQLAlchemyError as e:
            raise DatabaseError("Failed to find template", e) from e
        if template is None:
            raise NotFoundError("Template not found")
        return template

    @staticmethod
    async def _load(db: AsyncSession, template_id: int, owner_id: int) -> TemplateOut:
        result = await db.execute(
            select(Template)
            .where(Template.id == template_id, Template.user_id == owner_id, Template.live())
            .options(selectinload(Template.exercises).selectinload(TemplateExercise.exercise))
            .execution_options(populate_existing=True)
        )
        template = result.scalar_one_or_none()
        if template is None:
            raise NotFoundError("Template not found")
        return to_template_out(template)

    @staticmethod
    def _exercise_rows(template_id: int, lines: Sequence[TemplateExerciseIn]) -> List[TemplateExercise]:
        return [
            TemplateExercise(template_id=template_id, exercise_id=line.exercise_id, sets=line.sets)
            for line in lines
        ]

    @staticmethod
    async def create_template(db: AsyncSession, owner_id: int, data: TemplateCreate) -> TemplateOut:
        """
        Create a template together with its exercise lines.

        Raises:
            InvalidInputError: On duplicate or unknown exercise ids
            DatabaseError: If the store rejects the write; nothing is persisted
        """
        exercise_ids = unique_exercise_ids(data.exercises)
        await verify_exercises_exist(db, exercise_ids)

        async with atomic_unit(db, "create template"):
            template = Template(name=data.name, description=data.description, user_id=owner_id)
            db.add(template)
            await db.flush()

            db.add_all(TemplateService._exercise_rows(template.id, data.exercises))
            await db.flush()

        return await TemplateService._load(db, template.id, owner_id)

    @staticmethod
    async def update_template(
        db: AsyncSession,
        owner_id: int,
        template_id: int,
        data: TemplateCreate
    ) -> TemplateOut:
        """
        Replace a template's fields and its whole set of exercise lines.
        """
        exercise_ids = unique_exercise_ids(data.exercises)
        template = await TemplateService._get_owned(db, template_id, owner_id, for_update=True)
        await verify_exercises_exist(db, exercise_ids)

        async with atomic_unit(db, "update template"):
            template.name = data.name
            template.description = data.description
            await db.execute(
                update(TemplateExercise)
                .where(TemplateExercise.template_id == template.id, TemplateExercise.live())
                .values(deleted_at=utcnow())
            )
            db.add_all(TemplateService._exercise_rows(template.id, data.exercises))
            await db.flush()

        return await TemplateService._load(db, template.id, owner_id)

    @staticmethod
    async def delete_template(db: AsyncSession, owner_id: int, template_id: int):
        """
        Delete a template and its exercise lines.

        Templates that live workouts were logged against are kept.

        Raises:
            NotFoundError: If the template does not exist or belongs to another user
            ValidationError: If workouts still reference the template
        """
        template = await TemplateService._get_owned(db, template_id, owner_id, for_update=True)

        async with atomic_unit(db, "delete template"):
            now = utcnow()
            template.deleted_at = now
            await db.flush()

            # Dependent workouts are counted only after the template row is written
            dependent = (await db.execute(
                select(func.count(Workout.id)).where(Workout.template_id == template.id, Workout.live())
            )).scalar_one()
            if dependent:
                raise ValidationError("Template is used by existing workouts")

            await db.execute(
                update(TemplateExercise)
                .where(TemplateExercise.template_id == template.id, TemplateExercise.live())
                .values(deleted_at=now)
            )

    @staticmethod
    async def get_template(db: AsyncSession, owner_id: int, template_id: int) -> TemplateOut:
        return await TemplateService._load(db, template_id, owner_id)

    @staticmethod
    async def list_templates(
        db: AsyncSession,
        owner_id: int,
        page: int,
        limit: int
    ) -> Tuple[List[TemplateSummary], int]:
        conditions = (Template.user_id == owner_id, Template.live())
        total = (await db.execute(select(func.count(Template.id)).where(*conditions))).scalar_one()
        if total == 0:
            return [], 0

        result = await db.execute(
            select(Template)
            .where(*conditions)
            .order_by(Template.created_at.desc(), Template.id.desc())
            .offset((page - 1) * limit)
            .limit(limit)
        )
        return [TemplateSummary.model_validate(t) for t in result.scalars().all()], total
