"""
Workout statistics for the current user.

Rows are fetched for the requested window and bucketed in Python so the
same code runs on every supported database.
"""
from collections import OrderedDict
from datetime import date, datetime, timedelta
from typing import Dict, List, Tuple
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession
from pydantic import BaseModel

from trackle.base_microservice import utcnow
from trackle.errors import NotFoundError
from trackle.exercises.models import Exercise
from trackle.workouts.models import Workout, WorkoutEntry

TIME_RANGES = ("week", "month", "year")
DEFAULT_TIME_RANGE = "month"


class FrequencyStats(BaseModel):
    time_range: str
    labels: List[str]
    data: List[int]


class ExerciseProgress(BaseModel):
    exercise_id: int
    time_range: str
    dates: List[str]
    weights: List[float]


class ExerciseRef(BaseModel):
    id: int
    name: str


class AggregateStats(BaseModel):
    total_workouts: int
    total_sets: int
    exercises: List[ExerciseRef]


def normalize_time_range(time_range: str) -> str:
    return time_range if time_range in TIME_RANGES else DEFAULT_TIME_RANGE


def _month_start(day: date, months_back: int) -> date:
    month_index = day.year * 12 + (day.month - 1) - months_back
    return date(month_index // 12, month_index % 12 + 1, 1)


def build_buckets(time_range: str, today: date) -> Tuple[datetime, "OrderedDict[date, str]"]:
    """
    Return the window start and an ordered map of bucket key to label.

    Week and month buckets are days (last 7 and 30 days), year buckets are
    the first day of each of the last 12 months.
    """
    buckets: "OrderedDict[date, str]" = OrderedDict()
    if time_range == "year":
        for back in range(11, -1, -1):
            start = _month_start(today, back)
            buckets[start] = start.strftime("%b")
    else:
        days, fmt = (7, "%a") if time_range == "week" else (30, "%b %d")
        for back in range(days - 1, -1, -1):
            day = today - timedelta(days=back)
            buckets[day] = day.strftime(fmt)

    first = next(iter(buckets))
    return datetime(first.year, first.month, first.day), buckets


def bucket_key(time_range: str, moment: datetime) -> date:
    if time_range == "year":
        return date(moment.year, moment.month, 1)
    return moment.date()


class StatisticsService:
    """
    Service for per-user workout statistics.
    """
    @staticmethod
    async def workout_frequency(db: AsyncSession, owner_id: int, time_range: str) -> FrequencyStats:
        """Count workouts per day (week, month) or per month (year)."""
        time_range = normalize_time_range(time_range)
        window_start, buckets = build_buckets(time_range, utcnow().date())

        result = await db.execute(
            select(Workout.created_at).where(
                Workout.user_id == owner_id,
                Workout.live(),
                Workout.created_at >= window_start
            )
        )
        counts: Dict[date, int] = {key: 0 for key in buckets}
        for (created_at,) in result.all():
            key = bucket_key(time_range, created_at)
            if key in counts:
                counts[key] += 1

        return FrequencyStats(
            time_range=time_range,
            labels=list(buckets.values()),
            data=[counts[key] for key in buckets],
        )

    @staticmethod
    async def exercise_progress(
        db: AsyncSession,
        owner_id: int,
        exercise_id: int,
        time_range: str
    ) -> ExerciseProgress:
        """Heaviest logged weight per day for one exercise."""
        time_range = normalize_time_range(time_range)
        window_start, _ = build_buckets(time_range, utcnow().date())

        exists = (await db.execute(
            select(Exercise.id).where(Exercise.id == exercise_id, Exercise.live())
        )).scalar_one_or_none()
        if exists is None:
            raise NotFoundError("Exercise not found")

        result = await db.execute(
            select(Workout.created_at, WorkoutEntry.weight)
            .join(WorkoutEntry, WorkoutEntry.workout_id == Workout.id)
            .where(
                Workout.user_id == owner_id,
                Workout.live(),
                WorkoutEntry.live(),
                WorkoutEntry.exercise_id == exercise_id,
                Workout.created_at >= window_start
            )
        )
        best: Dict[date, float] = {}
        for created_at, weight in result.all():
            day = created_at.date()
            if day not in best or weight > best[day]:
                best[day] = weight

        days = sorted(best)
        return ExerciseProgress(
            exercise_id=exercise_id,
            time_range=time_range,
            dates=[day.isoformat() for day in days],
            weights=[best[day] for day in days],
        )

    @staticmethod
    async def aggregate(db: AsyncSession, owner_id: int) -> AggregateStats:
        total_workouts = (await db.execute(
            select(func.count(Workout.id)).where(Workout.user_id == owner_id, Workout.live())
        )).scalar_one()

        entry_scope = (
            Workout.user_id == owner_id,
            Workout.live(),
            WorkoutEntry.live(),
        )
        total_sets = (await db.execute(
            select(func.count(WorkoutEntry.id))
            .join(Workout, WorkoutEntry.workout_id == Workout.id)
            .where(*entry_scope)
        )).scalar_one()

        result = await db.execute(
            select(Exercise.id, Exercise.name)
            .join(WorkoutEntry, WorkoutEntry.exercise_id == Exercise.id)
            .join(Workout, WorkoutEntry.workout_id == Workout.id)
            .where(*entry_scope)
            .distinct()
            .order_by(Exercise.name)
        )
        return AggregateStats(
            total_workouts=total_workouts,
            total_sets=total_sets,
            exercises=[ExerciseRef(id=row.id, name=row.name) for row in result.all()],
        )
