"""
Pytest configuration and shared fixtures
"""

import os

os.environ["DATABASE_URL"] = "sqlite://"
os.environ["AUTH_JWT_SECRET"] = "test-jwt-secret"
os.environ["CRON_SECRET"] = "test-cron-secret"
os.environ["OTP_PEPPER"] = "test-pepper"
os.environ["STORAGE_BACKEND"] = "memory"
os.environ["REDIS_URL"] = "redis://127.0.0.1:1/0"

import uuid
from typing import Callable, Dict

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from sayso.api.config import reset_settings

reset_settings()

from sayso.api.dependencies import (  # noqa: E402
    get_db,
    get_email_service,
    get_sms_sender,
    get_storage_client,
)
from sayso.api.main import app  # noqa: E402
from sayso.api.security import create_access_token  # noqa: E402
from sayso.api.services.email_service import EmailService  # noqa: E402
from sayso.api.services.sms import LoggingSmsSender  # noqa: E402
from sayso.api.services.storage import InMemoryStorageClient  # noqa: E402
from sayso.db.models import Base, Business, Profile  # noqa: E402


@pytest.fixture
def engine():
    """Fresh in-memory database per test."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    yield engine
    Base.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db_session(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def storage():
    return InMemoryStorageClient(bucket="test-bucket")


@pytest.fixture
def sms_sender():
    return LoggingSmsSender()


@pytest.fixture
def email_service():
    return EmailService(api_key=None, sender="SaySo <noreply@sayso.test>")


@pytest.fixture
def client(session_factory, storage, sms_sender, email_service):
    """API client wired to the test database and in-memory outbound services."""

    def override_get_db():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_storage_client] = lambda: storage
    app.dependency_overrides[get_sms_sender] = lambda: sms_sender
    app.dependency_overrides[get_email_service] = lambda: email_service

    with TestClient(app, raise_server_exceptions=False) as test_client:
        yield test_client

    app.dependency_overrides.clear()


@pytest.fixture
def make_profile(db_session) -> Callable[..., Profile]:
    """Factory for stored profiles."""

    def _make(role: str = "user", account_role: str = None, **kwargs) -> Profile:
        user_id = kwargs.pop("user_id", uuid.uuid4())
        short = user_id.hex[:8]
        profile = Profile(
            user_id=user_id,
            email=kwargs.pop("email", f"user-{short}@example.com"),
            username=kwargs.pop("username", f"user_{short}"),
            display_name=kwargs.pop("display_name", f"User {short}"),
            role=role,
            account_role=account_role or ("admin" if role == "admin" else "user"),
            **kwargs,
        )
        db_session.add(profile)
        db_session.commit()
        return profile

    return _make


@pytest.fixture
def make_business(db_session) -> Callable[..., Business]:
    """Factory for stored businesses (active and public unless overridden)."""

    def _make(name: str = "Corner Cafe", **kwargs) -> Business:
        slug = kwargs.pop("slug", f"{name.lower().replace(' ', '-')}-{uuid.uuid4().hex[:6]}")
        fields = dict(
            category="Cafes",
            location="Observatory, Cape Town",
            address="12 Lower Main Rd",
            phone="021 555 0123",
            website="https://www.cornercafe.co.za",
            lat=-33.94,
            lng=18.47,
            status="active",
            is_hidden=False,
        )
        fields.update(kwargs)
        business = Business(name=name, slug=slug, **fields)
        db_session.add(business)
        db_session.commit()
        return business

    return _make


@pytest.fixture
def auth() -> Callable[[Profile], Dict[str, str]]:
    """Build bearer headers for a profile."""

    def _headers(profile: Profile) -> Dict[str, str]:
        token = create_access_token(profile.user_id, email=profile.email)
        return {"Authorization": f"Bearer {token}"}

    return _headers
