from sqlalchemy import Column, String, Text, Index, text
from trackle.base_microservice import Base, TimestampMixin


class Exercise(TimestampMixin, Base):
    """Exercise catalog entry, referenced by template exercises and workout entries."""
    __tablename__ = "exercises"
    __table_args__ = (
        # Names are unique among live rows only, so a soft-deleted name can be reused
        Index(
            "uq_exercises_name_live",
            "name",
            unique=True,
            postgresql_where=text("deleted_at IS NULL"),
            sqlite_where=text("deleted_at IS NULL"),
        ),
    )

    name = Column(String, nullable=False, index=True)
    description = Column(Text, nullable=False, default="")
    category = Column(String, nullable=False, default="", index=True)
    primary_muscle = Column(String, nullable=False, default="")
    equipment = Column(String, nullable=False, default="")
