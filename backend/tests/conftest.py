"""Pytest configuration and fixtures."""

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from api.helpers import get_audio_storage, get_metadata_codec, get_naming_service
from database import Base, _enable_sqlite_foreign_keys, get_db
from main import app
from services.naming_service import NamingService
# Pytest fixtures - imported to make them available to tests
from tests.fixtures import (  # noqa: F401
    device,
    other_device,
    song,
    song_on_device,
    sync_session,
    dry_run_session,
)
from tests.fixtures.mocks import FakeMetadataCodec, InMemoryAudioStorage


@pytest.fixture(name="db")
def db_fixture():
    """Create an in-memory SQLite database for testing."""
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    _enable_sqlite_foreign_keys(engine)
    Base.metadata.create_all(bind=engine)

    TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    session = TestingSessionLocal()

    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture(name="codec")
def codec_fixture():
    """Tag codec that reads the fake audio format from tests.fixtures.mocks."""
    return FakeMetadataCodec()


@pytest.fixture(name="storage")
def storage_fixture():
    """Empty in-memory audio repository."""
    return InMemoryAudioStorage()


@pytest.fixture(name="naming")
def naming_fixture():
    """Naming service with the default Jinja2 evaluator."""
    return NamingService()


@pytest.fixture(name="client")
def client_fixture(db, codec, storage, naming):
    """Create a test client with the test database and in-memory collaborators."""

    def override_get_db():
        try:
            yield db
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_metadata_codec] = lambda: codec
    app.dependency_overrides[get_audio_storage] = lambda: storage
    app.dependency_overrides[get_naming_service] = lambda: naming
    client = TestClient(app)
    yield client
    app.dependency_overrides.clear()
