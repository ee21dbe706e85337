# src/routes/prescriptions.py
from fastapi import APIRouter, Depends, status, Query
from typing import List, Optional, Any, Dict
from datetime import datetime
from uuid import UUID
from core.dependencies import get_prescription_repository, get_prescription_service
from repositories.prescription_repository import PrescriptionRepository
from schemas.prescription_schemas import (
    PrescriptionCreate,
    PrescriptionDeleted,
    PrescriptionEdit,
    PrescriptionStatistics,
    PrescriptionView,
)
from services.prescription_service import PrescriptionService
from utils.medication_catalog import catalog_snapshot
from utils.logger import setup_logger

router = APIRouter(tags=["prescriptions"])

logger = setup_logger("PRESCRIPTIONS_ROUTES")

PATIENT_PRESCRIPTIONS = "/patients/{patient_id}/prescriptions"

AS_OF = Query(
    None,
    description="Reference time for derived status (defaults to now, UTC)",
)


@router.get(
    "/prescriptions/catalog",
    response_model=Dict[str, List[Dict[str, Any]]],
    summary="Prescription form catalog",
    description="Routes, frequencies, categories and duration presets",
)
async def get_catalog() -> Any:
    return catalog_snapshot()


@router.get(
    PATIENT_PRESCRIPTIONS,
    response_model=List[PrescriptionView],
    summary="List prescriptions",
    description="Get a patient's prescriptions with derived status and progress",
)
async def list_prescriptions(
    patient_id: str,
    include_inactive: bool = Query(True, description="Include discontinued orders"),
    as_of: Optional[datetime] = AS_OF,
    repository: PrescriptionRepository = Depends(get_prescription_repository),
    service: PrescriptionService = Depends(get_prescription_service),
) -> Any:
    return await service.list_prescriptions(
        repository, patient_id, now=as_of, include_inactive=include_inactive
    )


@router.get(
    PATIENT_PRESCRIPTIONS + "/statistics",
    response_model=PrescriptionStatistics,
    summary="Prescription statistics",
    description="Active, discontinued, expiring-soon and needs-refill counts",
)
async def get_statistics(
    patient_id: str,
    as_of: Optional[datetime] = AS_OF,
    repository: PrescriptionRepository = Depends(get_prescription_repository),
    service: PrescriptionService = Depends(get_prescription_service),
) -> Any:
    return await service.get_statistics(repository, patient_id, now=as_of)


@router.post(
    PATIENT_PRESCRIPTIONS,
    response_model=PrescriptionView,
    status_code=status.HTTP_201_CREATED,
    summary="Create prescription",
    description="Write a new prescription for a patient",
)
async def create_prescription(
    patient_id: str,
    prescription_data: PrescriptionCreate,
    as_of: Optional[datetime] = AS_OF,
    repository: PrescriptionRepository = Depends(get_prescription_repository),
    service: PrescriptionService = Depends(get_prescription_service),
) -> Any:
    return await service.create_prescription(
        repository, patient_id, prescription_data, now=as_of
    )


@router.get(
    PATIENT_PRESCRIPTIONS + "/{prescription_id}",
    response_model=PrescriptionView,
    summary="Get prescription",
)
async def get_prescription(
    patient_id: str,
    prescription_id: UUID,
    as_of: Optional[datetime] = AS_OF,
    repository: PrescriptionRepository = Depends(get_prescription_repository),
    service: PrescriptionService = Depends(get_prescription_service),
) -> Any:
    return await service.get_prescription(
        repository, patient_id, prescription_id, now=as_of
    )


@router.put(
    PATIENT_PRESCRIPTIONS + "/{prescription_id}",
    response_model=PrescriptionView,
    summary="Edit prescription",
    description="Rewrite a prescription; the schedule is recomputed and refills restored",
)
async def edit_prescription(
    patient_id: str,
    prescription_id: UUID,
    changes: PrescriptionEdit,
    as_of: Optional[datetime] = AS_OF,
    repository: PrescriptionRepository = Depends(get_prescription_repository),
    service: PrescriptionService = Depends(get_prescription_service),
) -> Any:
    return await service.edit_prescription(
        repository, patient_id, prescription_id, changes, now=as_of
    )


@router.post(
    PATIENT_PRESCRIPTIONS + "/{prescription_id}/discontinue",
    response_model=PrescriptionView,
    summary="Discontinue prescription",
)
async def discontinue_prescription(
    patient_id: str,
    prescription_id: UUID,
    as_of: Optional[datetime] = AS_OF,
    repository: PrescriptionRepository = Depends(get_prescription_repository),
    service: PrescriptionService = Depends(get_prescription_service),
) -> Any:
    return await service.discontinue_prescription(
        repository, patient_id, prescription_id, now=as_of
    )


@router.post(
    PATIENT_PRESCRIPTIONS + "/{prescription_id}/reactivate",
    response_model=PrescriptionView,
    summary="Reactivate prescription",
    description="Resume a discontinued prescription on its original timeline",
)
async def reactivate_prescription(
    patient_id: str,
    prescription_id: UUID,
    as_of: Optional[datetime] = AS_OF,
    repository: PrescriptionRepository = Depends(get_prescription_repository),
    service: PrescriptionService = Depends(get_prescription_service),
) -> Any:
    return await service.reactivate_prescription(
        repository, patient_id, prescription_id, now=as_of
    )


@router.post(
    PATIENT_PRESCRIPTIONS + "/{prescription_id}/refill",
    response_model=PrescriptionView,
    summary="Refill prescription",
    description="Consume one refill authorization",
)
async def refill_prescription(
    patient_id: str,
    prescription_id: UUID,
    as_of: Optional[datetime] = AS_OF,
    repository: PrescriptionRepository = Depends(get_prescription_repository),
    service: PrescriptionService = Depends(get_prescription_service),
) -> Any:
    return await service.refill_prescription(
        repository, patient_id, prescription_id, now=as_of
    )


@router.delete(
    PATIENT_PRESCRIPTIONS + "/{prescription_id}",
    response_model=PrescriptionDeleted,
    summary="Delete prescription",
)
async def delete_prescription(
    patient_id: str,
    prescription_id: UUID,
    repository: PrescriptionRepository = Depends(get_prescription_repository),
    service: PrescriptionService = Depends(get_prescription_service),
) -> Any:
    removed = await service.delete_prescription(repository, patient_id, prescription_id)
    logger.info(f"Prescription {removed.id} removed by request")
    return PrescriptionDeleted(prescription_id=removed.id, message="Prescription removed")
