# tests/conftest.py
from __future__ import annotations

import os
from collections.abc import Callable, Generator, Iterator
from datetime import date
from itertools import count
from typing import Any

os.environ.setdefault("SECRET_KEY", "test-secret-key")
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("AUTO_CREATE_TABLES", "false")
os.environ.setdefault("REALTIME_BROKER", "local")

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session
from sqlalchemy.pool import StaticPool

from kiu_social.core.security import create_access_token, hash_secret
from kiu_social.db.session import Base, enable_sqlite_savepoints
from kiu_social.db.session import get_db as app_get_session
from kiu_social.main import app as fastapi_app
from kiu_social.models import Post, User
from kiu_social.realtime.broker import LocalBroker
from kiu_social.realtime.gateway import RealtimeGateway, get_gateway
from kiu_social.realtime.registry import ConnectionRegistry

TEST_DB_URL = "sqlite://"
TEST_PASSWORD = "secret123"
TEST_PIN = "1234"

# Hash once; pbkdf2 is deliberately slow.
_PASSWORD_HASH = hash_secret(TEST_PASSWORD)
_PIN_HASH = hash_secret(TEST_PIN)
_USER_COUNTER = count(1)


@pytest.fixture(scope="session")
def engine() -> Generator[Engine, None, None]:
    engine = create_engine(
        TEST_DB_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    enable_sqlite_savepoints(engine)
    Base.metadata.create_all(bind=engine)
    try:
        yield engine
    finally:
        Base.metadata.drop_all(bind=engine)
        engine.dispose()


@pytest.fixture()
def db_session(engine: Engine) -> Iterator[Session]:
    connection = engine.connect()
    transaction = connection.begin()
    # Service commits release savepoints; the outer transaction is rolled back.
    session = Session(
        bind=connection,
        autoflush=False,
        expire_on_commit=False,
        join_transaction_mode="create_savepoint",
    )
    try:
        yield session
    finally:
        session.close()
        if transaction.is_active:
            transaction.rollback()
        connection.close()

        # Ensure each test sees a clean database even if commits occurred.
        with engine.begin() as cleanup_conn:
            for table in reversed(Base.metadata.sorted_tables):
                cleanup_conn.execute(table.delete())


@pytest.fixture(scope="session")
def app() -> FastAPI:
    return fastapi_app


@pytest.fixture(autouse=True)
def override_session_dependency(app: FastAPI, db_session: Session) -> Iterator[None]:
    def _get_session_override() -> Generator[Session, None, None]:
        yield db_session

    app.dependency_overrides[app_get_session] = _get_session_override
    try:
        yield
    finally:
        app.dependency_overrides.pop(app_get_session, None)


@pytest.fixture()
def gateway() -> RealtimeGateway:
    """A gateway with an empty in-process registry."""
    return RealtimeGateway(LocalBroker(ConnectionRegistry()))


@pytest.fixture(autouse=True)
def override_gateway_dependency(app: FastAPI, gateway: RealtimeGateway) -> Iterator[None]:
    app.dependency_overrides[get_gateway] = lambda: gateway
    try:
        yield
    finally:
        app.dependency_overrides.pop(get_gateway, None)


@pytest.fixture()
def client(app: FastAPI) -> Iterator[TestClient]:
    with TestClient(app, base_url="http://test") as test_client:
        yield test_client


@pytest.fixture()
def make_user(db_session: Session) -> Callable[..., User]:
    """Return a factory persisting students with the shared test credentials."""

    def _make_user(**overrides: Any) -> User:
        n = next(_USER_COUNTER)
        fields: dict[str, Any] = {
            "email": f"student{n}@kiu.edu.ge",
            "username": f"student{n}",
            "first_name": f"Student{n}",
            "last_name": "Tester",
            "password_hash": _PASSWORD_HASH,
            "pin_hash": _PIN_HASH,
            "major": "Computer Science",
            "date_of_birth": date(2003, 5, 17),
            "start_year": 2022,
        }
        fields.update(overrides)
        user = User(**fields)
        db_session.add(user)
        db_session.commit()
        db_session.refresh(user)
        return user

    return _make_user


@pytest.fixture()
def test_user(make_user: Callable[..., User]) -> User:
    """Create and return the primary test student."""
    return make_user(first_name="Nino", last_name="Beridze", username="nino_b")


@pytest.fixture()
def other_user(make_user: Callable[..., User]) -> User:
    """Create and return a second test student."""
    return make_user(first_name="Giorgi", last_name="Kapanadze", username="giorgi_k",
                     major="Mathematics")


@pytest.fixture()
def third_user(make_user: Callable[..., User]) -> User:
    """Create and return a third test student."""
    return make_user(first_name="Ana", last_name="Lomidze", username="ana_l")


def _bearer(user: User) -> dict[str, str]:
    return {"Authorization": f"Bearer {create_access_token(user.id)}"}


@pytest.fixture()
def auth_headers() -> Callable[[User], dict[str, str]]:
    """Return a helper building bearer headers for any user."""
    return _bearer


@pytest.fixture()
def auth_token(test_user: User) -> dict[str, str]:
    """Return authorization headers for the primary test user."""
    return _bearer(test_user)


@pytest.fixture()
def other_auth_token(other_user: User) -> dict[str, str]:
    """Return authorization headers for the secondary test user."""
    return _bearer(other_user)


@pytest.fixture()
def test_post(db_session: Session, test_user: User) -> Post:
    """Create a public post authored by the primary test user."""
    post = Post(author_id=test_user.id, content="Hello KIU", images=[])
    db_session.add(post)
    db_session.commit()
    db_session.refresh(post)
    return post
