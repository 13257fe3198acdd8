"""
Authentication middleware.

Provides the FastAPI dependency that gates every protected route: it finds
the identity token on the request, verifies it and binds the user id to the
request state.
"""
from fastapi import Request

from trackle.auth.jwt import TokenService, TokenData, AUTH_COOKIE_NAME
from trackle.errors import AuthenticationError

BEARER_PREFIX = "Bearer "


def get_token_service(request: Request) -> TokenService:
    """Dependency returning the token service configured on the app."""
    return request.app.state.token_service


def extract_token(request: Request) -> str:
    """
    Find the identity token on a request.

    The auth cookie wins; the Authorization header is only consulted when no
    cookie is present.

    Raises:
        AuthenticationError: If no token is present or the header is malformed
    """
    token = request.cookies.get(AUTH_COOKIE_NAME)
    if token:
        return token

    auth_header = request.headers.get("Authorization")
    if not auth_header:
        raise AuthenticationError("Authorization token required")

    if len(auth_header) > len(BEARER_PREFIX) and auth_header.startswith(BEARER_PREFIX):
        return auth_header[len(BEARER_PREFIX):]

    raise AuthenticationError("Invalid authorization header format")


async def get_current_user(request: Request) -> TokenData:
    """
    FastAPI dependency to get the current authenticated user.

    Returns:
        TokenData for the authenticated user

    Raises:
        AuthenticationError: If the token is missing, malformed, invalid or expired
    """
    token = extract_token(request)
    token_data = get_token_service(request).verify(token)

    # Request-scoped binding for downstream handlers
    request.state.user_id = token_data.user_id
    return token_data
