"""
Authentication router.

This module provides FastAPI routers for authentication endpoints:
- User registration and login (public)
- Current user profile and logout (protected)
"""
from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from trackle.base_microservice import BaseMicroservice, get_db_session
from trackle.auth.users import UserService, UserCreate, UserLogin
from trackle.auth.jwt import TokenService, TokenData, AUTH_COOKIE_NAME
from trackle.auth.middleware import get_current_user, get_token_service

# Public routes
router = APIRouter(tags=["auth"])
# Routes that require an authenticated user
me_router = APIRouter(tags=["auth"])

base_service = BaseMicroservice("trackle.auth")


@router.post("/register")
async def register_user(
    user_data: UserCreate,
    request: Request,
    db: AsyncSession = Depends(get_db_session)
):
    """
    Register a new user. The password hash is never part of the response.
    """
    settings = request.app.state.settings
    user_info = await UserService.register_user(user_data, db, bcrypt_rounds=settings.bcrypt_rounds)

    base_service.log_event("user.registered", {
        "id": user_info.id,
        "username": user_info.username
    })

    return base_service.api_response(
        data={"user": user_info},
        message="User created successfully",
        status_code=201
    )


@router.post("/login")
async def login(
    login_data: UserLogin,
    request: Request,
    db: AsyncSession = Depends(get_db_session),
    token_service: TokenService = Depends(get_token_service)
):
    """
    Authenticate a user, set the auth cookie and return the token.
    """
    settings = request.app.state.settings
    user_info, token = await UserService.authenticate_user(
        login_data, db, token_service, bcrypt_rounds=settings.bcrypt_rounds
    )

    base_service.log_event("user.login", {"id": user_info.id})

    response = base_service.api_response(data={"token": token}, message="Login successful")
    response.set_cookie(
        key=AUTH_COOKIE_NAME,
        value=token,
        max_age=int(token_service.ttl.total_seconds()),
        path="/",
        secure=settings.cookie_secure,
        httponly=True,
        samesite="lax",
    )
    return response


@me_router.post("/logout")
async def logout(token_data: TokenData = Depends(get_current_user)):
    """Clear the auth cookie."""
    response = base_service.api_response(message="Logged out successfully")
    response.delete_cookie(key=AUTH_COOKIE_NAME, path="/", httponly=True, samesite="lax")
    base_service.log_event("user.logout", {"id": token_data.user_id})
    return response


@me_router.get("/me")
async def get_current_user_info(
    token_data: TokenData = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session)
):
    """Get information about the current authenticated user."""
    user_info = await UserService.get_user_by_id(token_data.user_id, db)
    return base_service.api_response(data=user_info, message="User retrieved successfully")
