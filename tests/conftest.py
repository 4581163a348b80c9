"""Shared test fixtures."""

import os

# Configure settings BEFORE importing any medibook modules
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["REMINDER_SCHEDULER_ENABLED"] = "false"
os.environ["TIMEZONE"] = "UTC"
os.environ["LOGFIRE_TOKEN"] = ""

from datetime import date, datetime, time

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

import medibook.models  # noqa: F401
from medibook.database import Base, get_db
from medibook.models.appointment import Appointment
from medibook.schemas.appointment import BookingRequest

# Monday 10:00 clinic time
NOW = datetime(2030, 1, 7, 10, 0)
TODAY = NOW.date()


@pytest_asyncio.fixture
async def test_engine():
    """In-memory SQLite engine shared by every session in a test."""
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    # Let SQLAlchemy drive BEGIN so SAVEPOINTs nest properly under aiosqlite
    @event.listens_for(engine.sync_engine, "connect")
    def do_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine.sync_engine, "begin")
    def do_begin(conn):
        conn.exec_driver_sql("BEGIN")

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
def session_factory(test_engine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(
        test_engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


@pytest_asyncio.fixture
async def file_session_factory(tmp_path):
    """Sessions on separate connections to one SQLite file.

    BEGIN IMMEDIATE takes the write lock up front, so concurrent
    transactions queue on the busy timeout instead of deadlocking.
    """
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'bookings.db'}")

    @event.listens_for(engine.sync_engine, "connect")
    def do_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine.sync_engine, "begin")
    def do_begin(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False, autoflush=False)

    await engine.dispose()


@pytest_asyncio.fixture
async def db(session_factory):
    """A session for service-level tests."""
    async with session_factory() as session:
        yield session


@pytest_asyncio.fixture
async def client(session_factory):
    """HTTP client against the app with the DB dependency overridden."""
    from medibook.main import app

    async def _override_get_db():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = _override_get_db
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
def make_booking():
    """Build a booking request with sensible defaults."""
    def _create(**overrides) -> BookingRequest:
        data = {
            "doctor_id": "doc-1",
            "doctor_name": "Dr. Mehta",
            "patient_id": "pat-1",
            "patient_name": "Asha Rao",
            "patient_email": "asha@example.com",
            "appointment_date": "2030-01-07",
            "appointment_time": "10:30",
        }
        data.update(overrides)
        return BookingRequest(**data)
    return _create


@pytest.fixture
def add_appointment(session_factory):
    """Insert an appointment row directly, bypassing booking checks."""
    async def _create(
        appointment_time: time,
        appointment_date: date = TODAY,
        status: str = "scheduled",
        doctor_id: str = "doc-1",
        patient_id: str = "pat-1",
        **fields,
    ) -> Appointment:
        async with session_factory() as session:
            appointment = Appointment(
                doctor_id=doctor_id,
                doctor_name=fields.pop("doctor_name", "Dr. Mehta"),
                patient_id=patient_id,
                patient_name=fields.pop("patient_name", "Asha Rao"),
                appointment_date=appointment_date,
                appointment_time=appointment_time,
                status=status,
                **fields,
            )
            session.add(appointment)
            await session.commit()
            await session.refresh(appointment)
            return appointment
    return _create
