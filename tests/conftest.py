import os

# Settings are read at import time
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite://")
os.environ["SMTP_HOST"] = ""

from decimal import Decimal

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import create_async_engine
from sqlalchemy.pool import StaticPool
from sqlmodel import SQLModel

from clinic_scheduler import models  # noqa: F401 - register tables
from clinic_scheduler.core.db import build_session_maker, get_session
from clinic_scheduler.main import app
from clinic_scheduler.models.patient import Patient
from clinic_scheduler.models.professional import Professional
from clinic_scheduler.models.resource import ResourceKind
from clinic_scheduler.models.service import Service, SubService
from clinic_scheduler.services.resource_families import ensure_resources


@pytest.fixture
async def engine():
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_maker(engine):
    return build_session_maker(engine)


@pytest.fixture
async def session(session_maker):
    async with session_maker() as session:
        yield session


@pytest.fixture
async def resources(session):
    await ensure_resources(session)
    await session.commit()


async def _add(session, obj):
    session.add(obj)
    await session.commit()
    await session.refresh(obj)
    return obj


@pytest.fixture
async def patient(session):
    return await _add(
        session, Patient(first_name="Ana", last_name="Silva", email="ana@example.com", phone="555-0101")
    )


@pytest.fixture
async def other_patient(session):
    return await _add(session, Patient(full_name="Bruno Costa"))


@pytest.fixture
async def doctor(session):
    return await _add(session, Professional(full_name="Dr. Marta Reis", title="Physician"))


@pytest.fixture
async def other_doctor(session):
    return await _add(session, Professional(full_name="Dr. Paulo Lima", title="Physician"))


@pytest.fixture
async def nurse(session):
    return await _add(session, Professional(full_name="Joana Alves", title="Nurse"))


@pytest.fixture
async def consultation_service(session):
    return await _add(
        session,
        Service(
            name="Consultation",
            code="CONSULT",
            duration_minutes=30,
            base_price=Decimal("80.00"),
            resource_kind=ResourceKind.CONSULTATION_ROOM.value,
        ),
    )


@pytest.fixture
async def chamber_service(session):
    return await _add(
        session,
        Service(
            name="Hyperbaric session",
            code="HBOT",
            duration_minutes=60,
            base_price=Decimal("150.00"),
            resource_kind=ResourceKind.HYPERBARIC_CHAMBER.value,
        ),
    )


@pytest.fixture
async def drips_service(session):
    return await _add(
        session,
        Service(
            name="IV drips",
            code="DRIPS",
            duration_minutes=None,
            base_price=Decimal("0"),
            resource_kind=ResourceKind.DRIPS_STATION.value,
        ),
    )


@pytest.fixture
async def vitamin_drip(session, drips_service):
    return await _add(
        session,
        SubService(
            service_id=drips_service.id,
            name="Vitamin C",
            duration_minutes=45,
            price=Decimal("120.00"),
        ),
    )


@pytest.fixture
async def hydration_drip(session, drips_service):
    return await _add(
        session,
        SubService(
            service_id=drips_service.id,
            name="Hydration",
            duration_minutes=90,
            price=Decimal("95.00"),
        ),
    )


@pytest.fixture
async def client(session_maker, resources):
    async def override_get_session():
        async with session_maker() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_session] = override_get_session
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()
