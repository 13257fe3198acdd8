"""
Shared fixtures: an app instance per test backed by its own SQLite file.
"""
import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport

from trackle.config import Settings
from trackle.main import create_app
from trackle.base_microservice import create_tables

TEST_SECRET = "trackle-test-secret-0123456789abcdef0123456789"
DEFAULT_PASSWORD = "Secret123!"


@pytest.fixture
def settings(tmp_path):
    return Settings(
        jwt_secret=TEST_SECRET,
        database_url=f"sqlite+aiosqlite:///{tmp_path / 'trackle.db'}",
        bcrypt_rounds=4,
    )


@pytest_asyncio.fixture
async def app(settings):
    app = create_app(settings)
    await create_tables(app.state.engine)
    yield app
    await app.state.engine.dispose()


@pytest_asyncio.fixture
async def client(app):
    transport = ASGITransport(app=app)
    async with AsyncClient(base_url="http://test", transport=transport) as ac:
        yield ac


@pytest.fixture
def session_factory(app):
    return app.state.session_factory


@pytest.fixture
def login_as(client):
    """
    Register (if needed) and log in a user; returns bearer headers.

    The auth cookie set by /login is cleared so each request authenticates
    only with the headers it is given.
    """
    async def _login_as(username="alice", email="a@x.com", password=DEFAULT_PASSWORD):
        await client.post("/register", json={
            "username": username,
            "email": email,
            "password": password
        })
        response = await client.post("/login", json={"email": email, "password": password})
        assert response.status_code == 200, response.text
        client.cookies.clear()
        return {"Authorization": f"Bearer {response.json()['data']['token']}"}
    return _login_as


@pytest.fixture
def make_exercise(client):
    async def _make_exercise(headers, name="Bench Press", **fields):
        payload = {"name": name, "category": "strength", "primary_muscle": "chest", "equipment": "barbell"}
        payload.update(fields)
        response = await client.post("/api/exercises", json=payload, headers=headers)
        assert response.status_code == 201, response.text
        return response.json()["data"]["id"]
    return _make_exercise


@pytest.fixture
def make_template(client):
    async def _make_template(headers, exercise_ids, name="Push", sets=3):
        response = await client.post("/api/me/templates", json={
            "name": name,
            "description": f"{name} day",
            "exercises": [{"exercise_id": ex_id, "sets": sets} for ex_id in exercise_ids]
        }, headers=headers)
        assert response.status_code == 201, response.text
        return response.json()["data"]["id"]
    return _make_template
