"""
Authentication models for Trackle.

This module defines the SQLAlchemy model for registered users.
"""
from sqlalchemy import Column, String
import bcrypt
from trackle.base_microservice import Base, TimestampMixin


class User(TimestampMixin, Base):
    """User model for authentication."""
    __tablename__ = "users"

    username = Column(String, unique=True, index=True, nullable=False)
    email = Column(String, unique=True, index=True, nullable=False)
    password_hash = Column(String, nullable=False)
    role = Column(String, nullable=False, default="user")

    def verify_password(self, password: str) -> bool:
        """Check if provided password matches the stored hash."""
        return bcrypt.checkpw(
            password.encode('utf-8'),
            self.password_hash.encode('utf-8')
        )

    @staticmethod
    def get_password_hash(password: str, rounds: int = 10) -> str:
        """Generate password hash using bcrypt."""
        return bcrypt.hashpw(
            password.encode('utf-8'),
            bcrypt.gensalt(rounds=rounds)
        ).decode('utf-8')
