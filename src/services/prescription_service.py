# src/services/prescription_service.py
import asyncio
from contextlib import asynccontextmanager
from typing import AsyncIterator, Callable, Dict, List, Sequence
from uuid import UUID

from repositories.prescription_repository import PrescriptionRepository
from schemas.prescription_schemas import (
    Prescription,
    PrescriptionCreate,
    PrescriptionEdit,
    PrescriptionStatistics,
    PrescriptionView,
)
from services.prescription_engine import (
    Moment,
    PrescriptionLifecycleEngine,
    Transition,
    prescription_engine,
    to_reference_time,
)
from utils.logger import setup_logger

logger = setup_logger("PRESCRIPTION_SERVICE")


class PrescriptionService:
    """
    Loads a patient's prescriptions, runs the lifecycle engine and persists
    the result. Writes for one patient are serialized so that a refill's
    remaining-count check and its decrement cannot interleave.
    """

    def __init__(self, engine: PrescriptionLifecycleEngine = prescription_engine):
        self.engine = engine
        self._locks: Dict[str, asyncio.Lock] = {}
        self._waiters: Dict[str, int] = {}

    async def list_prescriptions(
        self,
        repository: PrescriptionRepository,
        patient_id: str,
        now: Moment = None,
        include_inactive: bool = True,
    ) -> List[PrescriptionView]:
        """Get a patient's prescriptions with their derived status"""
        prescriptions = await repository.load(patient_id)
        if not include_inactive:
            prescriptions = [rx for rx in prescriptions if rx.is_active]
        return self.engine.derive_views(prescriptions, now)

    async def get_prescription(
        self,
        repository: PrescriptionRepository,
        patient_id: str,
        prescription_id: UUID,
        now: Moment = None,
    ) -> PrescriptionView:
        prescriptions = await repository.load(patient_id)
        _, prescription = self.engine.find(prescriptions, prescription_id)
        return self.engine.derive_view(prescription, now)

    async def get_statistics(
        self, repository: PrescriptionRepository, patient_id: str, now: Moment = None
    ) -> PrescriptionStatistics:
        prescriptions = await repository.load(patient_id)
        return self.engine.compute_statistics(prescriptions, now)

    async def create_prescription(
        self,
        repository: PrescriptionRepository,
        patient_id: str,
        data: PrescriptionCreate,
        now: Moment = None,
    ) -> PrescriptionView:
        reference = to_reference_time(now)
        view = await self._apply(
            repository,
            patient_id,
            lambda rxs: self.engine.create(rxs, patient_id, data, reference),
            reference,
        )
        logger.info(f"Created prescription {view.id} for patient {patient_id}")
        return view

    async def edit_prescription(
        self,
        repository: PrescriptionRepository,
        patient_id: str,
        prescription_id: UUID,
        changes: PrescriptionEdit,
        now: Moment = None,
    ) -> PrescriptionView:
        view = await self._apply(
            repository,
            patient_id,
            lambda rxs: self.engine.edit(rxs, prescription_id, changes),
            now,
        )
        logger.info(f"Edited prescription {prescription_id}; refills reset to {view.refills}")
        return view

    async def discontinue_prescription(
        self,
        repository: PrescriptionRepository,
        patient_id: str,
        prescription_id: UUID,
        now: Moment = None,
    ) -> PrescriptionView:
        view = await self._apply(
            repository,
            patient_id,
            lambda rxs: self.engine.discontinue(rxs, prescription_id),
            now,
        )
        logger.info(f"Discontinued prescription {prescription_id}")
        return view

    async def reactivate_prescription(
        self,
        repository: PrescriptionRepository,
        patient_id: str,
        prescription_id: UUID,
        now: Moment = None,
    ) -> PrescriptionView:
        view = await self._apply(
            repository,
            patient_id,
            lambda rxs: self.engine.reactivate(rxs, prescription_id),
            now,
        )
        logger.info(f"Reactivated prescription {prescription_id} (status {view.status})")
        return view

    async def refill_prescription(
        self,
        repository: PrescriptionRepository,
        patient_id: str,
        prescription_id: UUID,
        now: Moment = None,
    ) -> PrescriptionView:
        reference = to_reference_time(now)
        view = await self._apply(
            repository,
            patient_id,
            lambda rxs: self.engine.refill(rxs, prescription_id, reference),
            reference,
        )
        logger.info(
            f"Refilled prescription {prescription_id}; "
            f"{view.refills_remaining}/{view.refills} refills remaining"
        )
        return view

    async def delete_prescription(
        self,
        repository: PrescriptionRepository,
        patient_id: str,
        prescription_id: UUID,
    ) -> Prescription:
        async with self._patient_lock(patient_id):
            prescriptions = await repository.load(patient_id)
            transition = self.engine.delete(prescriptions, prescription_id)
            await repository.save(patient_id, transition.prescriptions)

        logger.info(f"Deleted prescription {prescription_id} for patient {patient_id}")
        return transition.prescription

    @asynccontextmanager
    async def _patient_lock(self, patient_id: str) -> AsyncIterator[None]:
        """Per-patient write lock, forgotten once nobody holds or awaits it"""
        lock = self._locks.setdefault(patient_id, asyncio.Lock())
        self._waiters[patient_id] = self._waiters.get(patient_id, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._waiters[patient_id] -= 1
            if not self._waiters[patient_id]:
                del self._waiters[patient_id]
                del self._locks[patient_id]

    async def _apply(
        self,
        repository: PrescriptionRepository,
        patient_id: str,
        operation: Callable[[Sequence[Prescription]], Transition],
        now: Moment,
    ) -> PrescriptionView:
        async with self._patient_lock(patient_id):
            prescriptions = await repository.load(patient_id)
            transition = operation(prescriptions)
            await repository.save(patient_id, transition.prescriptions)
            stored = await repository.load(patient_id)

        _, persisted = self.engine.find(stored, transition.prescription.id)
        return self.engine.derive_view(persisted, now)


prescription_service = PrescriptionService()
