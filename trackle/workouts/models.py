from sqlalchemy import Column, Integer, String, Text, Float, ForeignKey, CheckConstraint
from sqlalchemy.orm import relationship
from trackle.base_microservice import Base, TimestampMixin


class Workout(TimestampMixin, Base):
    """A logged training session, recorded against one of the owner's templates."""
    __tablename__ = "workouts"

    name = Column(String, nullable=False)
    notes = Column(Text, nullable=False, default="")
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    template_id = Column(Integer, ForeignKey("templates.id"), nullable=False, index=True)

    template = relationship("Template", lazy="raise")
    entries = relationship(
        "WorkoutEntry",
        primaryjoin="and_(Workout.id == WorkoutEntry.workout_id, WorkoutEntry.deleted_at.is_(None))",
        order_by="WorkoutEntry.id",
        viewonly=True,
    )


class WorkoutEntry(TimestampMixin, Base):
    """One performed set of an exercise within a workout."""
    __tablename__ = "workout_entries"
    __table_args__ = (
        CheckConstraint("set_number > 0", name="ck_workout_entries_set_number_positive"),
        CheckConstraint("reps > 0", name="ck_workout_entries_reps_positive"),
        CheckConstraint("weight >= 0", name="ck_workout_entries_weight_non_negative"),
    )

    workout_id = Column(Integer, ForeignKey("workouts.id"), nullable=False, index=True)
    exercise_id = Column(Integer, ForeignKey("exercises.id"), nullable=False, index=True)
    set_number = Column(Integer, nullable=False)
    reps = Column(Integer, nullable=False)
    weight = Column(Float, nullable=False, default=0)

    exercise = relationship("Exercise", lazy="raise")
