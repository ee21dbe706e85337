from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession
from db.database import get_db
from repositories.prescription_repository import (
    PrescriptionRepository,
    SqlAlchemyPrescriptionRepository,
)
from services.prescription_service import PrescriptionService, prescription_service


async def get_prescription_repository(
    db: AsyncSession = Depends(get_db),
) -> PrescriptionRepository:
    """Repository bound to the request's database session"""
    return SqlAlchemyPrescriptionRepository(db)


def get_prescription_service() -> PrescriptionService:
    return prescription_service
