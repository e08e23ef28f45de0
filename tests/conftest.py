"""Pytest configuration and fixtures for tests."""
import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, Session
from sqlalchemy.pool import StaticPool
from typing import Generator
from contextlib import contextmanager

from app.database import Base
import app.models  # noqa: F401


def _memory_engine():
    # StaticPool keeps one connection so every session sees the same in-memory database
    return create_engine(
        "sqlite:///:memory:",
        echo=False,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool
    )


@pytest.fixture(scope="function")
def test_db() -> Generator[Session, None, None]:
    """
    Create a test database session for each test.
    Uses an in-memory SQLite database for fast testing.
    """
    engine = _memory_engine()
    Base.metadata.create_all(bind=engine)

    TestSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    session = TestSessionLocal()

    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)
        engine.dispose()


@pytest.fixture(scope="function")
def test_session_factory():
    """Session factory bound to a fresh in-memory database, for API tests."""
    engine = _memory_engine()
    Base.metadata.create_all(bind=engine)
    TestSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

    try:
        yield TestSessionLocal
    finally:
        Base.metadata.drop_all(bind=engine)
        engine.dispose()


@contextmanager
def get_test_db_session():
    """
    Context manager for creating test database sessions.
    Used for property-based tests where fixtures don't work well.
    """
    engine = _memory_engine()
    Base.metadata.create_all(bind=engine)

    TestSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    session = TestSessionLocal()

    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)
        engine.dispose()
