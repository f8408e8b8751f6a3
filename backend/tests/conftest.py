import os

# Ensure JWT_SECRET exists before importing socialnet.main (it calls require_jwt_secret() at import time).
os.environ.setdefault("JWT_SECRET", "test_jwt_secret")
os.environ.setdefault("DATABASE_URL", "sqlite+pysqlite:///:memory:")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from socialnet.core.base import Base
from socialnet.core import config as app_config
from socialnet.core.security import hash_password

# Import models so they register with SQLAlchemy metadata.
from socialnet.models.account import Account  # noqa: F401

from socialnet.core.database import get_db

# Auth cookies are Secure; the cookie jar only sends them over https.
BASE_URL = "https://testserver"
PASSWORD = "test_password_123"


@pytest.fixture(scope="session")
def db_engine():
    # In-memory SQLite for fast, isolated tests.
    engine = create_engine(
        "sqlite+pysqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    return engine


@pytest.fixture()
def db_session(db_engine):
    # StaticPool keeps one in-memory DB for the whole run; reset schema per test.
    Base.metadata.drop_all(bind=db_engine)
    Base.metadata.create_all(bind=db_engine)

    TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=db_engine)
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture()
def file_engine(tmp_path):
    """
    File-backed SQLite so several threads can hold their own connections.
    Used by the concurrent refresh tests.
    """
    engine = create_engine(
        f"sqlite+pysqlite:///{tmp_path / 'race.db'}",
        connect_args={"check_same_thread": False, "timeout": 15},
    )
    Base.metadata.create_all(bind=engine)
    try:
        yield engine
    finally:
        engine.dispose()


@pytest.fixture(autouse=True)
def _reset_mutable_settings():
    """
    Tests sometimes tweak global settings (app_config.settings.*). Because that object is
    process-global, restore values after each test to avoid cross-test coupling.
    """
    keys = [
        "ACCESS_TOKEN_EXPIRE_MINUTES",
        "REMEMBER_ACCESS_TOKEN_EXPIRE_MINUTES",
        "REFRESH_TOKEN_EXPIRE_MINUTES",
        "REFRESH_TOKEN_HASH_AT_REST",
        "UNIFORM_LOGIN_ERRORS",
        "AUTH_COOKIE_SECURE",
        "AUTH_COOKIE_SAMESITE",
    ]
    original = {k: getattr(app_config.settings, k) for k in keys}
    try:
        yield
    finally:
        for k, v in original.items():
            setattr(app_config.settings, k, v)


@pytest.fixture()
def app(db_session):
    app_config.settings.JWT_SECRET = app_config.settings.JWT_SECRET or "test_jwt_secret"

    from socialnet.main import app as fastapi_app

    def override_get_db():
        yield db_session
    fastapi_app.dependency_overrides[get_db] = override_get_db
    yield fastapi_app
    fastapi_app.dependency_overrides.clear()


def make_account(db, email: str, *, name: str = "Test User", username: str | None = None) -> Account:
    account = Account(
        email=email,
        name=name,
        username=username,
        password_hash=hash_password(PASSWORD),
    )
    db.add(account)
    db.commit()
    db.refresh(account)
    return account


@pytest.fixture()
def accounts(db_session):
    """
    Two distinct accounts, both with an empty rotation slot.
    """
    account_a = make_account(db_session, "test@example.com", name="Test User", username="tester")
    account_b = make_account(db_session, "other@example.com", name="Other User", username="other")
    return account_a, account_b


@pytest.fixture()
def client(app, accounts):
    with TestClient(app, base_url=BASE_URL) as c:
        yield c
