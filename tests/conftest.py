"""
Pytest configuration and shared fixtures for the savings planner tests.
"""

import os

# Settings require a secret key; set one before the application is imported.
os.environ.setdefault("SECRET_KEY", "test-secret-key-123")
os.environ.setdefault("APP_ENV", "testing")

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from savings_planner.config import reset_global_settings
from savings_planner.database.base import Base
from savings_planner.database.models import User


@pytest.fixture(autouse=True)
def fresh_settings():
    """Drop cached settings so environment patches take effect."""
    reset_global_settings()
    yield
    reset_global_settings()


@pytest.fixture(scope="function")
def db_engine():
    """Create an in-memory SQLite database for testing."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    yield engine
    Base.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture(scope="function")
def db_session(db_engine):
    """Create a database session for testing."""
    SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=db_engine)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def test_user(db_session):
    """Create a test user."""
    user = User(id="user-123", email="test@example.com")
    db_session.add(user)
    db_session.commit()
    db_session.refresh(user)
    return user
