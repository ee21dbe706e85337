# src/repositories/prescription_repository.py
from abc import ABC, abstractmethod
from typing import Dict, List, Sequence
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.exc import StaleDataError

from models.prescription import Prescription as PrescriptionRow
from schemas.prescription_schemas import Prescription
from utils.exceptions import ConcurrentModification
from utils.logger import setup_logger
from utils.medication_catalog import Frequency, MedicationCategory, MedicationRoute

logger = setup_logger("PRESCRIPTION_REPOSITORY")


class PrescriptionRepository(ABC):
    """
    Storage boundary for a patient's prescriptions.

    save() replaces the stored collection with the given one: unknown ids are
    inserted, known ids updated, ids no longer present deleted. An update is
    a compare-and-swap on the version the record was loaded with.
    """

    @abstractmethod
    async def load(self, patient_id: str) -> List[Prescription]:
        ...

    @abstractmethod
    async def save(self, patient_id: str, prescriptions: Sequence[Prescription]) -> None:
        ...


class InMemoryPrescriptionRepository(PrescriptionRepository):
    def __init__(self):
        self._store: Dict[str, List[Prescription]] = {}

    async def load(self, patient_id: str) -> List[Prescription]:
        return list(self._store.get(patient_id, []))

    async def save(self, patient_id: str, prescriptions: Sequence[Prescription]) -> None:
        stored = {rx.id: rx for rx in self._store.get(patient_id, [])}
        saved = []
        for record in prescriptions:
            current = stored.get(record.id)
            if current is None:
                saved.append(record)
            elif current.version != record.version:
                raise ConcurrentModification(record.id)
            elif current == record:
                saved.append(current)
            else:
                saved.append(record.model_copy(update={"version": record.version + 1}))
        self._store[patient_id] = saved


def _row_values(record: Prescription) -> dict:
    values = record.model_dump(exclude={"id", "version", "created_at"})
    values["route"] = MedicationRoute(values["route"])
    values["frequency"] = Frequency(values["frequency"])
    if values["category"] is not None:
        values["category"] = MedicationCategory(values["category"])
    return values


class SqlAlchemyPrescriptionRepository(PrescriptionRepository):
    def __init__(self, db: AsyncSession):
        self.db = db

    async def _rows(self, patient_id: str) -> List[PrescriptionRow]:
        result = await self.db.execute(
            select(PrescriptionRow)
            .where(PrescriptionRow.patient_id == patient_id)
            .order_by(PrescriptionRow.created_at.desc())
        )
        return list(result.scalars().all())

    async def load(self, patient_id: str) -> List[Prescription]:
        return [Prescription.model_validate(row) for row in await self._rows(patient_id)]

    async def save(self, patient_id: str, prescriptions: Sequence[Prescription]) -> None:
        rows: Dict[UUID, PrescriptionRow] = {
            row.id: row for row in await self._rows(patient_id)
        }
        incoming = set()

        for record in prescriptions:
            incoming.add(record.id)
            values = _row_values(record)
            row = rows.get(record.id)

            if row is None:
                self.db.add(
                    PrescriptionRow(id=record.id, created_at=record.created_at, **values)
                )
                continue

            if row.version != record.version:
                logger.warning(
                    f"Version mismatch on prescription {record.id}: "
                    f"stored {row.version}, given {record.version}"
                )
                raise ConcurrentModification(record.id)

            for field, value in values.items():
                if getattr(row, field) != value:
                    setattr(row, field, value)

        for prescription_id, row in rows.items():
            if prescription_id not in incoming:
                await self.db.delete(row)

        try:
            await self.db.flush()
        except StaleDataError as exc:
            await self.db.rollback()
            logger.warning(f"Concurrent write on patient {patient_id}: {exc}")
            raise ConcurrentModification()
