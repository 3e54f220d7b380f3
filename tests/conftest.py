from __future__ import annotations

import asyncio

import pytest
from fastapi.testclient import TestClient

from jobboard.config import Settings
from jobboard.main import create_app
from jobboard.repositories import InMemoryUserRepository
from jobboard.services.gate import AuthorizationGate
from jobboard.services.notifications import NotificationPublisher
from jobboard.services.password_reset import PasswordResetFlow
from jobboard.services.passwords import PasswordHasher
from jobboard.services.sessions import SessionManager
from jobboard.services.tokens import TokenCodec
from jobboard.services.users import UserService


def run(coro):
    return asyncio.run(coro)


@pytest.fixture
def settings() -> Settings:
    return Settings(
        user_store="memory",
        redis_url="",
        jwt_secret="test-access-secret-0123456789abcdef0123",
        jwt_refresh_secret="test-refresh-secret-0123456789abcdef01",
        bcrypt_rounds=4,
        app_env="test",
        log_level="WARNING",
    )


@pytest.fixture
def repository() -> InMemoryUserRepository:
    return InMemoryUserRepository()


@pytest.fixture
def codec(settings: Settings) -> TokenCodec:
    return TokenCodec.from_settings(settings)


@pytest.fixture
def hasher(settings: Settings) -> PasswordHasher:
    return PasswordHasher(settings.bcrypt_rounds)


@pytest.fixture
def sessions(repository, codec, hasher) -> SessionManager:
    return SessionManager(repository, codec, hasher)


@pytest.fixture
def resets(repository, codec, hasher) -> PasswordResetFlow:
    return PasswordResetFlow(repository, codec, hasher)


@pytest.fixture
def gate(repository, codec) -> AuthorizationGate:
    return AuthorizationGate(repository, codec)


@pytest.fixture
def users(repository, hasher) -> UserService:
    return UserService(repository, hasher)


@pytest.fixture
def publisher() -> NotificationPublisher:
    return NotificationPublisher(redis_url="")


@pytest.fixture
def client(settings: Settings, repository: InMemoryUserRepository, publisher: NotificationPublisher):
    app = create_app(settings=settings, repository=repository, publisher=publisher)
    with TestClient(app) as test_client:
        yield test_client
