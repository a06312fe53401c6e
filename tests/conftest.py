"""
Pytest configuration for API and service tests.

Adds the project root to the Python path, runs every test against a fresh
in-memory SQLite database and replaces the Redis broadcaster and the Celery
dispatch helpers with recorders.
"""

import math
import os
import sys
from pathlib import Path

project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

# Settings are read at import time
os.environ.setdefault("ENABLE_FILE_LOGGING", "false")
os.environ.setdefault("ENABLE_REQUEST_LOGGING", "false")
os.environ.setdefault("GROQ_API_KEY", "test-groq-key")

import httpx
import pytest
from sqlalchemy import create_engine, event
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

import models  # noqa: F401
from core.database import Base, get_db
from main import app
from models.profile import DriverProfile, ExpertProfile, KycStatus
from models.user import User, UserPreference, UserRole
from services import task_queue
from services.authentication_service import create_user_session
from services.broadcast_service import get_broadcaster
from services.helpers import hash_password

PASSWORD = "secret-password"
_PASSWORD_HASH = hash_password(PASSWORD)


def _register_math_functions(dbapi_connection, connection_record):
    """SQLite builds without the math extension lack the haversine helpers."""
    dbapi_connection.create_function("radians", 1, math.radians)
    dbapi_connection.create_function("sin", 1, math.sin)
    dbapi_connection.create_function("cos", 1, math.cos)
    dbapi_connection.create_function("sqrt", 1, math.sqrt)
    dbapi_connection.create_function("power", 2, math.pow)
    dbapi_connection.create_function("asin", 1, math.asin)
    dbapi_connection.create_function("least", 2, min)


class RecordingBroadcaster:
    """Collects published events instead of sending them to Redis."""

    def __init__(self):
        self.events = []

    async def publish(self, channels, event, data):
        self.events.append({"channels": list(channels), "event": event, "data": data})

    def named(self, event):
        return [e for e in self.events if e["event"] == event]


@pytest.fixture
async def engine():
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    event.listen(engine.sync_engine, "connect", _register_math_functions)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(bind=engine, class_=AsyncSession, expire_on_commit=False, autoflush=False)


@pytest.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def sync_db():
    """Sync session for Celery task bodies."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    session = sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)()
    yield session
    session.close()
    engine.dispose()


@pytest.fixture
def broadcaster():
    return RecordingBroadcaster()


@pytest.fixture(autouse=True)
def queued(monkeypatch):
    """Record Celery dispatches instead of sending them to the broker."""
    calls = {"diagnosis": [], "lead": [], "otp": []}
    monkeypatch.setattr(task_queue, "enqueue_diagnosis_processing", lambda diagnosis_id: calls["diagnosis"].append(diagnosis_id))
    monkeypatch.setattr(task_queue, "enqueue_lead_notification", lambda lead_id: calls["lead"].append(lead_id))
    monkeypatch.setattr(
        task_queue,
        "enqueue_otp_email",
        lambda email, otp, otp_type: calls["otp"].append({"email": email, "otp": otp, "type": otp_type}),
    )
    return calls


@pytest.fixture
async def client(session_factory, broadcaster):
    async def override_get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_broadcaster] = lambda: broadcaster
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()


async def _save(db, obj):
    db.add(obj)
    await db.commit()
    await db.refresh(obj)
    return obj


@pytest.fixture
def make_user(db):
    counter = {"n": 0}

    async def factory(role=UserRole.DRIVER, email=None, is_active=True, **fields):
        counter["n"] += 1
        first_name = fields.pop("first_name", "Test")
        last_name = fields.pop("last_name", f"User{counter['n']}")
        user = User(
            first_name=first_name,
            last_name=last_name,
            email=email or f"{role.value}{counter['n']}@example.com",
            password_hash=_PASSWORD_HASH,
            role=role,
            is_active=is_active,
            **fields,
        )
        user.preferences = UserPreference()
        return await _save(db, user)

    return factory


@pytest.fixture
def make_driver(db, make_user):
    async def factory(free=5, paid=0, region_id=None, **user_fields):
        user = await make_user(UserRole.DRIVER, **user_fields)
        await _save(
            db,
            DriverProfile(
                user_id=user.id,
                region_id=region_id,
                free_diagnoses_remaining=free,
                paid_diagnoses_remaining=paid,
                total_diagnoses_used=0,
            ),
        )
        await db.refresh(user)
        return user

    return factory


@pytest.fixture
def make_expert(db, make_user):
    async def factory(
        approved=True,
        free_leads=4,
        region=None,
        specializations=(),
        latitude=None,
        longitude=None,
        rating=0.0,
        is_available=True,
        is_priority_listed=False,
        **user_fields,
    ):
        user = await make_user(UserRole.EXPERT, **user_fields)
        profile = ExpertProfile(
            user_id=user.id,
            business_name=f"{user.last_name} Motors",
            region_id=region.id if region else None,
            city="Accra",
            latitude=latitude,
            longitude=longitude,
            kyc_status=KycStatus.APPROVED if approved else KycStatus.PENDING,
            free_leads_remaining=free_leads,
            total_leads_received=0,
            rating=rating,
            rating_count=0,
            jobs_completed=0,
            is_available=is_available,
            is_priority_listed=is_priority_listed,
        )
        profile.specializations = list(specializations)
        await _save(db, profile)
        await db.refresh(user)
        return user

    return factory


@pytest.fixture
def auth_headers(db):
    async def factory(user):
        token = await create_user_session(db, user.id)
        return {"Authorization": f"Bearer {token}"}

    return factory
