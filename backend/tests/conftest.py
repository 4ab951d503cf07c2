"""
Shared fixtures: an in-memory SQLite database per test and a few seeded rows.
"""

from datetime import datetime, timezone

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from biometric_attendance.core.database import Base, configure_engine
from biometric_attendance.models import Device, DeviceCompany, IntegrationType, Student


FIXED_NOW = datetime(2026, 2, 12, 8, 30, 0, tzinfo=timezone.utc)


@pytest_asyncio.fixture
async def db_engine():
    """Fresh in-memory database with every table created."""
    engine = configure_engine(
        create_async_engine(
            "sqlite+aiosqlite:///:memory:",
            poolclass=StaticPool,
            connect_args={"check_same_thread": False}
        )
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(db_engine):
    return async_sessionmaker(db_engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def db_session(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def fixed_clock():
    return lambda: FIXED_NOW


@pytest_asyncio.fixture
async def zk_device(db_session):
    """Enabled ZKTeco terminal pushing over webhook."""
    device = Device(
        device_name="Main Gate",
        device_serial="ZK-1",
        company=DeviceCompany.ZKTECO.value,
        integration=IntegrationType.WEBHOOK,
        secret_key="s3cret",
        is_enabled=True
    )
    db_session.add(device)
    await db_session.commit()
    return device


@pytest_asyncio.fixture
async def pull_device(db_session):
    """Enabled generic terminal polled over REST."""
    device = Device(
        device_name="Library Reader",
        device_serial="GEN-7",
        company=DeviceCompany.GENERIC.value,
        integration=IntegrationType.API_PULL,
        ip_address="10.0.0.5",
        port=8080,
        secret_key="pull-key",
        is_enabled=True,
        is_online=True
    )
    db_session.add(device)
    await db_session.commit()
    return device


@pytest_asyncio.fixture
async def students(db_session):
    """Two students enrolled with biometric ids 1001 and 1002."""
    rows = [
        Student(student_number="S-1001", full_name="Amina Yusuf", class_name="7A", biometric_id="1001"),
        Student(student_number="S-1002", full_name="Tomas Berg", class_name="7B", biometric_id="1002"),
    ]
    db_session.add_all(rows)
    await db_session.commit()
    return rows
