"""
User management service.

This module provides functionality for:
- User registration
- User authentication
- User profile lookup
"""
from typing import Optional, Tuple
from datetime import datetime
from functools import lru_cache
import bcrypt
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select
from sqlalchemy import or_
from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator

from trackle.auth.models import User
from trackle.auth.jwt import TokenService
from trackle.errors import AuthenticationError, DuplicateEntryError, DatabaseError, NotFoundError

USERNAME_PATTERN = r"^[a-zA-Z0-9_]{3,30}$"


@lru_cache(maxsize=None)
def dummy_password_hash(rounds: int) -> str:
    """Hash checked when the email is unknown, at the configured cost."""
    return User.get_password_hash("trackle-unknown-user", rounds=rounds)


def normalize_email(email: str) -> str:
    return email.strip().lower()


# Pydantic models for request validation
class UserCreate(BaseModel):
    """Model for user registration."""
    username: str = Field(..., pattern=USERNAME_PATTERN)
    email: EmailStr
    password: str = Field(..., min_length=8)

    @field_validator('email', mode='before')
    @classmethod
    def email_must_be_normalized(cls, v):
        return normalize_email(v) if isinstance(v, str) else v


class UserLogin(BaseModel):
    """Model for user login."""
    email: str
    password: str


class UserOut(BaseModel):
    """Model for user information returned to clients."""
    model_config = ConfigDict(from_attributes=True)

    id: int
    username: str
    email: str
    role: str
    created_at: datetime
    updated_at: datetime


class UserService:
    """
    Service for user management operations.
    """
    @staticmethod
    async def register_user(
        user_data: UserCreate,
        db: AsyncSession,
        bcrypt_rounds: int = 10
    ) -> UserOut:
        """
        Register a new user.

        Args:
            user_data: User registration data
            db: Database session
            bcrypt_rounds: Cost factor for the password hash

        Returns:
            Information about the created user

        Raises:
            DuplicateEntryError: If username or email already exists
        """
        email = normalize_email(user_data.email)

        # Check if username or email already exists
        result = await db.execute(
            select(User.id).where(
                or_(
                    User.username == user_data.username,
                    User.email == email
                )
            ).limit(1)
        )
        if result.scalar_one_or_none() is not None:
            raise DuplicateEntryError("User with this email or username already exists")

        new_user = User(
            username=user_data.username,
            email=email,
            password_hash=User.get_password_hash(user_data.password, rounds=bcrypt_rounds),
            role="user"
        )

        db.add(new_user)
        try:
            await db.commit()
        except IntegrityError as e:
            # Lost a race against a concurrent registration
            await db.rollback()
            raise DuplicateEntryError("User with this email or username already exists", e) from e
        except SQLAlchemyError as e:
            await db.rollback()
            raise DatabaseError("Failed to create user", e) from e
        await db.refresh(new_user)

        return UserOut.model_validate(new_user)

    @staticmethod
    async def authenticate_user(
        login_data: UserLogin,
        db: AsyncSession,
        token_service: TokenService,
        bcrypt_rounds: int = 10
    ) -> Tuple[UserOut, str]:
        """
        Authenticate a user and issue a token.

        An unknown email and a wrong password produce the same error, and both
        cost one bcrypt check, so neither the response nor its timing reveals
        whether the email is registered.

        Returns:
            Tuple of user information and token

        Raises:
            AuthenticationError: If authentication fails
        """
        result = await db.execute(
            select(User).where(
                User.email == normalize_email(login_data.email),
                User.live()
            )
        )
        user = result.scalar_one_or_none()

        if user is None:
            bcrypt.checkpw(
                login_data.password.encode('utf-8'),
                dummy_password_hash(bcrypt_rounds).encode('utf-8')
            )
            raise AuthenticationError("Invalid credentials")
        if not user.verify_password(login_data.password):
            raise AuthenticationError("Invalid credentials")

        token = token_service.issue(user.id)
        return UserOut.model_validate(user), token

    @staticmethod
    async def get_user_by_id(
        user_id: int,
        db: AsyncSession
    ) -> UserOut:
        """
        Get user by ID.

        Raises:
            NotFoundError: If the user does not exist
        """
        result = await db.execute(
            select(User).where(User.id == user_id, User.live())
        )
        user: Optional[User] = result.scalar_one_or_none()

        if user is None:
            raise NotFoundError("User not found")

        return UserOut.model_validate(user)
