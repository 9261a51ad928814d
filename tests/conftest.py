"""
Shared fixtures: a clean settings object, an in-memory database wired into
the app through ``get_db``, and a TestClient that keeps cookies between calls.
"""

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from teaching_apps import models  # noqa: F401  (registers tables on Base)
from teaching_apps.db import Base, get_db
from teaching_apps.main import app
from teaching_apps.routers import blockchain_demo
from teaching_apps.settings import settings


@pytest.fixture(autouse=True)
def clean_settings(monkeypatch):
    """Never let a developer's .env leak into the tests."""
    for name in ("app_password", "gemini_api_key", "openrouter_api_key", "image_api_key"):
        monkeypatch.setattr(settings, name, None)
    monkeypatch.setattr(settings, "gemini_provider", "ai_studio")
    monkeypatch.setattr(settings, "demo_chain_size", 5)
    monkeypatch.setattr(settings, "jwt_secret_key", "test-secret")
    blockchain_demo._sessions.clear()
    yield
    blockchain_demo._sessions.clear()


@pytest.fixture
def db_session():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    TestingSession = sessionmaker(bind=engine, autocommit=False, autoflush=False)
    db = TestingSession()
    try:
        yield db
    finally:
        db.close()
        engine.dispose()


@pytest.fixture
def client(db_session):
    def _override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = _override_get_db
    yield TestClient(app)
    app.dependency_overrides.clear()
