"""
JWT token handling for authentication.

This module provides functionality for:
- Issuing signed identity tokens
- Verifying identity tokens
"""
from datetime import datetime, timedelta, timezone
from typing import Optional
import jwt
from jwt.exceptions import PyJWTError
from pydantic import BaseModel

from trackle.config import Settings
from trackle.errors import AuthenticationError

ALGORITHM = "HS256"
ISSUER = "trackle-app"
AUTH_COOKIE_NAME = "auth_token"


class TokenData(BaseModel):
    """Token payload model."""
    user_id: int
    exp: Optional[int] = None  # Expiration time


class TokenService:
    """
    Issues and verifies HMAC-signed identity tokens.

    The signing key comes from the settings the service is built with; it is
    never read from module state.
    """
    def __init__(self, secret: str, ttl: timedelta = timedelta(hours=24), issuer: str = ISSUER):
        if not secret:
            raise ValueError("Token signing secret must not be empty")
        self._secret = secret
        self.ttl = ttl
        self.issuer = issuer

    @classmethod
    def from_settings(cls, settings: Settings) -> "TokenService":
        return cls(settings.jwt_secret, ttl=timedelta(hours=settings.jwt_ttl_hours))

    def issue(self, user_id: int) -> str:
        """
        Create a signed token for a user.

        Args:
            user_id: User's ID

        Returns:
            Encoded JWT token string
        """
        now = datetime.now(timezone.utc)
        payload = {
            "sub": str(user_id),
            "iat": now,
            "nbf": now,
            "exp": now + self.ttl,
            "iss": self.issuer,
        }
        return jwt.encode(payload, self._secret, algorithm=ALGORITHM)

    def verify(self, token: str) -> TokenData:
        """
        Verify a JWT token and return its data.

        Only HS256 is accepted, so a token signed with any other algorithm
        (including "none") is rejected.

        Raises:
            AuthenticationError: If the token is malformed, badly signed, expired or not yet valid
        """
        try:
            payload = jwt.decode(
                token,
                self._secret,
                algorithms=[ALGORITHM],
                issuer=self.issuer,
                options={"require": ["exp", "iat", "nbf", "sub"]},
            )
            return TokenData(user_id=int(payload["sub"]), exp=payload.get("exp"))
        except PyJWTError as e:
            raise AuthenticationError("Invalid or expired token", e) from e
        except (ValueError, TypeError) as e:
            # sub is not a valid integer
            raise AuthenticationError("Invalid or expired token", e) from e
