from sqlalchemy import Column, Integer, String, Text, ForeignKey, CheckConstraint
from sqlalchemy.orm import relationship
from trackle.base_microservice import Base, TimestampMixin


class Template(TimestampMixin, Base):
    """Reusable workout plan owned by one user."""
    __tablename__ = "templates"

    name = Column(String, nullable=False)
    description = Column(Text, nullable=False, default="")
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)

    # Children are written explicitly by the service; the relationship only reads live rows
    exercises = relationship(
        "TemplateExercise",
        primaryjoin="and_(Template.id == TemplateExercise.template_id, TemplateExercise.deleted_at.is_(None))",
        order_by="TemplateExercise.id",
        viewonly=True,
    )


class TemplateExercise(TimestampMixin, Base):
    """Binds an exercise to a template with a planned number of sets."""
    __tablename__ = "template_exercises"
    __table_args__ = (
        CheckConstraint("sets > 0", name="ck_template_exercises_sets_positive"),
    )

    template_id = Column(Integer, ForeignKey("templates.id"), nullable=False, index=True)
    exercise_id = Column(Integer, ForeignKey("exercises.id"), nullable=False)
    sets = Column(Integer, nullable=False)

    exercise = relationship("Exercise", lazy="raise")
