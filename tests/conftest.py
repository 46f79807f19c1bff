"""Shared fixtures and utilities for tests."""

import os

import pytest
import pytest_asyncio

# Settings are read when core.config is first imported, so the test
# environment has to be in place before any application module loads.
os.environ.setdefault("APP_ENV", "test")
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("JWT_SECRET_KEY", "test-jwt-secret-key-min-32-chars-long-for-security")
os.environ.setdefault("JWT_ALGORITHM", "HS256")
os.environ.setdefault("CELERY_BROKER_URL", "memory://")
os.environ.setdefault("CELERY_RESULT_BACKEND", "cache+memory://")
os.environ.setdefault("JSON_LOGS", "false")
os.environ.setdefault("LOG_LEVEL", "INFO")

from api.services.identity import ActorContext  # noqa: E402
from database.collections import COLLECTION_JOBS, COLLECTION_USERS  # noqa: E402
from database.engine import build_engine, build_sessionmaker, close_db, init_db  # noqa: E402
from database.models.enums import Role  # noqa: E402
from database.store import DocumentStore  # noqa: E402


@pytest_asyncio.fixture
async def store():
    """Document store on a private in-memory SQLite database."""
    engine = build_engine("sqlite+aiosqlite:///:memory:")
    await init_db(engine)
    yield DocumentStore(build_sessionmaker(engine))
    await close_db(engine)


@pytest.fixture
def seed_user(store):
    """Write a user profile and return it."""

    async def _seed(user_id: str, role: str = "jobseeker", **fields):
        profile = {
            "role": role,
            "firstName": user_id.capitalize(),
            "lastName": "Tester",
            "email": f"{user_id}@example.com",
            **fields,
        }
        await store.set(COLLECTION_USERS, user_id, profile)
        return await store.get(COLLECTION_USERS, user_id)

    return _seed


@pytest.fixture
def seed_job(store):
    """Write an open, approved job owned by `employer_id` and return its id."""

    async def _seed(employer_id: str, title: str = "Line Cook", **fields):
        job = {
            "title": title,
            "employerId": employer_id,
            "companyName": "Acme Foods",
            "isActive": True,
            "verificationStatus": "approved",
            "applicationsCount": 0,
            **fields,
        }
        return await store.add(COLLECTION_JOBS, job)

    return _seed


def make_actor(user_id: str, role: Role, active_role: Role = None, **fields) -> ActorContext:
    """ActorContext for service calls that do not need a persisted session."""
    if active_role is None and role is not Role.MULTI_ROLE_PENDING:
        active_role = Role.EMPLOYER if role is Role.MULTI else role
    return ActorContext(
        id=user_id,
        role=role,
        active_role=active_role,
        session_id=f"session-{user_id}",
        first_name=fields.get("first_name", user_id.capitalize()),
        last_name=fields.get("last_name", "Tester"),
        email=fields.get("email", f"{user_id}@example.com"),
    )


@pytest.fixture
def actor():
    """Factory fixture for ActorContext instances."""
    return make_actor
