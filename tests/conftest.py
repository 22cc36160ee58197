"""
Pytest configuration and fixtures for testing.

This file provides reusable test fixtures for:
- Database setup/teardown (in-memory SQLite)
- FastAPI test client
- Orchestrator wiring around the test doubles in tests/fakes.py
"""

import os

# Must be set before the app modules read their settings
os.environ.setdefault("ENCRYPTION_KEY", "test-encryption-key-0123456789abcdef-xyz")
os.environ.setdefault("LOCK_BACKEND", "local")
os.environ.setdefault("JSON_LOGS", "false")
os.environ.setdefault("TWILIO_WHATSAPP_NUMBER", "+14155238886")

import uuid

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app.core.database import Base, get_db
from app.core.encryption import PhoneVault
from app.core.locks import LocalCandidateLocks
from app.models.job import Job
from app.services.conversation_service import ConversationOrchestrator
from app.services.credentials import CredentialResolver, ProviderCredentials
from app.services.job_router import ShortCodeStore
from main import app
from tests.fakes import FakeMessenger, FakeRedis


# Use in-memory SQLite for testing (fast, isolated)
SQLALCHEMY_TEST_DATABASE_URL = "sqlite:///:memory:"

engine = create_engine(
    SQLALCHEMY_TEST_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

TEST_SECRET = "test-encryption-key-0123456789abcdef-xyz"


@pytest.fixture
def db_session():
    """
    Create a fresh database session for each test.
    Tables are dropped after the test completes.
    """
    Base.metadata.create_all(bind=engine)
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def client(db_session):
    """
    FastAPI test client with overridden database dependency.
    """
    def override_get_db():
        try:
            yield db_session
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db

    with TestClient(app) as test_client:
        yield test_client

    app.dependency_overrides.clear()


@pytest.fixture
def vault():
    return PhoneVault(TEST_SECRET)


@pytest.fixture
def fake_redis():
    return FakeRedis()


@pytest.fixture
def short_codes(fake_redis):
    return ShortCodeStore(fake_redis, ttl_seconds=3600)


@pytest.fixture
def default_credentials():
    return ProviderCredentials(
        openai_api_key="sk-default",
        twilio_account_sid="AC-default",
        twilio_auth_token="token-default",
        twilio_whatsapp_number="+14155238886",
    )


@pytest.fixture
def sample_job(db_session):
    """A job with two essential and one nice-to-have criterion."""
    job = Job(
        id=uuid.uuid4(),
        title="Senior Python Developer",
        description="Build and run our screening APIs.",
        essential_criteria=[
            {"name": "Python", "type": "skill", "value": "5+ years of Python"},
            {"name": "SQL", "type": "skill", "value": "Solid PostgreSQL experience"},
        ],
        nice_to_have_criteria=[
            {"name": "Celery", "type": "skill", "value": "Background job experience"},
        ],
    )
    db_session.add(job)
    db_session.commit()
    db_session.refresh(job)
    return job


@pytest.fixture
def outbox():
    return []


@pytest.fixture
def make_orchestrator(db_session, short_codes, vault, default_credentials, outbox):
    """
    Build an orchestrator around a FakeLLM.

    Usage: orchestrator = make_orchestrator(FakeLLM(replies=[...]))
    """
    def _make(
        llm,
        storage=None,
        downloader=None,
        messenger_fails=False,
        storage_factory=None,
        messenger_factory=None,
        db=None,
        locks=None,
    ):
        kwargs = {}
        if downloader is not None:
            kwargs["downloader"] = downloader
        return ConversationOrchestrator(
            db if db is not None else db_session,
            short_codes=short_codes,
            resolver=CredentialResolver(default_credentials, vault=vault),
            vault=vault,
            locks=locks or LocalCandidateLocks(wait=5),
            llm_factory=lambda api_key: llm,
            messenger_factory=messenger_factory or (lambda credentials: FakeMessenger(outbox, fail=messenger_fails)),
            storage_factory=storage_factory or (lambda credentials: storage),
            **kwargs,
        )
    return _make
