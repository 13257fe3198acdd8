"""
Test cases for the token service and startup configuration.
"""
from datetime import datetime, timedelta, timezone
import jwt
import pytest

from trackle.auth.jwt import TokenService, ALGORITHM, ISSUER
from trackle.config import Settings, ConfigurationError
from trackle.errors import AuthenticationError
from trackle.main import create_app

SECRET = "unit-test-secret-0123456789abcdef0123456789"


def _claims(**overrides):
    now = datetime.now(timezone.utc)
    claims = {"sub": "7", "iat": now, "nbf": now, "exp": now + timedelta(hours=1), "iss": ISSUER}
    claims.update(overrides)
    return claims


def test_issue_and_verify_round_trip():
    service = TokenService(SECRET)
    token = service.issue(42)

    payload = jwt.decode(token, SECRET, algorithms=[ALGORITHM], issuer=ISSUER)
    assert payload["sub"] == "42"
    assert payload["exp"] - payload["iat"] == 24 * 60 * 60
    assert payload["nbf"] == payload["iat"]

    token_data = service.verify(token)
    assert token_data.user_id == 42


def test_expired_token_is_rejected():
    service = TokenService(SECRET)
    past = datetime.now(timezone.utc) - timedelta(hours=2)
    token = jwt.encode(_claims(iat=past, nbf=past, exp=past + timedelta(hours=1)), SECRET, algorithm=ALGORITHM)

    with pytest.raises(AuthenticationError) as exc_info:
        service.verify(token)
    assert exc_info.value.message == "Invalid or expired token"


def test_not_yet_valid_token_is_rejected():
    service = TokenService(SECRET)
    future = datetime.now(timezone.utc) + timedelta(hours=1)
    token = jwt.encode(_claims(nbf=future), SECRET, algorithm=ALGORITHM)

    with pytest.raises(AuthenticationError):
        service.verify(token)


def test_unexpected_algorithm_is_rejected():
    service = TokenService(SECRET)
    token = jwt.encode(_claims(), SECRET, algorithm="HS512")

    with pytest.raises(AuthenticationError):
        service.verify(token)


def test_unsigned_token_is_rejected():
    service = TokenService(SECRET)
    token = jwt.encode(_claims(), None, algorithm="none")

    with pytest.raises(AuthenticationError):
        service.verify(token)


def test_token_signed_with_another_secret_is_rejected():
    issued_elsewhere = TokenService("another-secret-0123456789abcdef0123456789").issue(1)

    with pytest.raises(AuthenticationError):
        TokenService(SECRET).verify(issued_elsewhere)


def test_token_without_required_claims_is_rejected():
    service = TokenService(SECRET)
    token = jwt.encode({"sub": "1", "iss": ISSUER}, SECRET, algorithm=ALGORITHM)

    with pytest.raises(AuthenticationError):
        service.verify(token)


def test_non_numeric_subject_is_rejected():
    service = TokenService(SECRET)
    token = jwt.encode(_claims(sub="alice"), SECRET, algorithm=ALGORITHM)

    with pytest.raises(AuthenticationError):
        service.verify(token)


def test_settings_require_jwt_secret():
    with pytest.raises(ConfigurationError):
        Settings.from_env({"DATABASE_URL": "sqlite+aiosqlite:///unused.db"})


def test_settings_read_environment():
    settings = Settings.from_env({
        "JWT_SECRET": SECRET,
        "JWT_TTL_HOURS": "2",
        "BCRYPT_ROUNDS": "12",
        "COOKIE_SECURE": "true",
        "DEBUG": "1",
    })
    assert settings.jwt_secret == SECRET
    assert settings.jwt_ttl_hours == 2
    assert settings.bcrypt_rounds == 12
    assert settings.cookie_secure is True
    assert settings.debug is True
    assert TokenService.from_settings(settings).ttl == timedelta(hours=2)


def test_settings_reject_malformed_numbers():
    with pytest.raises(ConfigurationError):
        Settings.from_env({"JWT_SECRET": SECRET, "BCRYPT_ROUNDS": "many"})


def test_app_refuses_to_start_without_secret(monkeypatch):
    monkeypatch.delenv("JWT_SECRET", raising=False)
    with pytest.raises(ConfigurationError):
        create_app()
