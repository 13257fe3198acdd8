"""
Import every model module so all tables are registered on Base.metadata.
"""
from trackle.auth.models import User
from trackle.exercises.models import Exercise
from trackle.templates.models import Template, TemplateExercise
from trackle.workouts.models import Workout, WorkoutEntry

__all__ = ["User", "Exercise", "Template", "TemplateExercise", "Workout", "WorkoutEntry"]
