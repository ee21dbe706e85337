"""
Shared fixtures for the prescription lifecycle tests.

The engine tests are plain synchronous tests. Repository and service tests
use pytest-asyncio; the API tests run the FastAPI app through TestClient
with the repository dependency swapped for an in-memory store, so no
database is needed unless a test asks for the ``sqlite_session`` fixture.
"""
import os
from datetime import date

os.environ.setdefault("ENVIRONMENT", "testing")
os.environ.setdefault("CREATE_TABLES_ON_STARTUP", "false")

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from db.database import Base, build_engine
from repositories.prescription_repository import InMemoryPrescriptionRepository
from schemas.prescription_schemas import PrescriptionCreate
from services.prescription_engine import PrescriptionLifecycleEngine
from services.prescription_service import PrescriptionService
import models  # noqa: F401

PATIENT_ID = "patient-1042"
COURSE_START = date(2024, 1, 1)


@pytest.fixture
def engine() -> PrescriptionLifecycleEngine:
    return PrescriptionLifecycleEngine()


@pytest.fixture
def make_prescription(engine):
    """Build a freshly written prescription the way a prescriber would"""

    def _make(
        start_date: date = COURSE_START,
        duration_days=30,
        refills: int = 0,
        medication_name: str = "Amoxicillin 500mg",
        frequency: str = "three_daily",
        **extra,
    ):
        data = PrescriptionCreate(
            medication_name=medication_name,
            dosage="500mg",
            frequency=frequency,
            start_date=start_date,
            duration_days=duration_days,
            refills=refills,
            prescribed_by="Dr. Amara Osei",
            **extra,
        )
        return engine.create([], PATIENT_ID, data, now=start_date).prescription

    return _make


@pytest.fixture
def repository() -> InMemoryPrescriptionRepository:
    return InMemoryPrescriptionRepository()


@pytest.fixture
def service(engine) -> PrescriptionService:
    return PrescriptionService(engine)


@pytest_asyncio.fixture
async def sqlite_session(tmp_path):
    db_engine = build_engine(f"sqlite+aiosqlite:///{tmp_path / 'prescriptions.db'}")
    async with db_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    session_factory = async_sessionmaker(
        bind=db_engine, class_=AsyncSession, expire_on_commit=False, autoflush=False
    )
    async with session_factory() as session:
        yield session

    await db_engine.dispose()
