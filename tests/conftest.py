"""Shared fixtures: isolated settings, a throwaway SQLite database, the app."""

import pytest
import pytest_asyncio
from fastapi.testclient import TestClient

from app.core.config import Settings
from app.core.security import CredentialVerifier, TokenCodec
from app.db.session import Database
from app.repositories.user_repository import UserRepository
from app.services.auth_service import AuthService


TEST_PASSWORD = "Str0ng!Pass"


@pytest.fixture
def settings(tmp_path):
    """Settings pointing at a per-test database, with a cheap bcrypt cost."""
    return Settings(
        database_url=f"sqlite+aiosqlite:///{tmp_path / 'test.db'}",
        jwt_secret_key="test-secret-key",
        bcrypt_rounds=4,
        rate_limit_enabled=False,
        debug=False,
    )


@pytest.fixture
def codec(settings):
    return TokenCodec.from_settings(settings)


@pytest.fixture
def verifier(settings):
    return CredentialVerifier.from_settings(settings)


@pytest_asyncio.fixture
async def database(settings):
    db = Database(settings.database_url)
    await db.init()
    yield db
    await db.close()


@pytest_asyncio.fixture
async def session(database):
    async with database.session() as s:
        yield s


@pytest.fixture
def users(session):
    return UserRepository(session)


@pytest.fixture
def auth_service(users, codec, verifier):
    return AuthService(users=users, codec=codec, verifier=verifier)


@pytest.fixture
def registration():
    return {
        "email": "a@b.com",
        "password": TEST_PASSWORD,
        "first_name": "Ana",
        "last_name": "Souza",
        "phone": "+5511999990000",
        "organization_id": "org-1",
    }


@pytest.fixture
def client(settings):
    from main import create_app

    with TestClient(create_app(settings)) as c:
        yield c
