# src/services/prescription_engine.py
"""
Prescription lifecycle engine.

Derives the clinical status, course progress and refill eligibility of a
patient's prescriptions at a reference time, and applies the lifecycle
transitions (discontinue, reactivate, refill, edit, delete).

The engine never reads or writes storage. Transitions take the patient's
current collection and return a new collection together with the affected
record; the caller persists the result. Status is always derived from the
record and ``now`` and is never stored.
"""
import uuid
from datetime import date, datetime, time, timedelta, timezone
from typing import Callable, Iterable, List, NamedTuple, Optional, Sequence, Tuple, Union
from uuid import UUID

from schemas.prescription_schemas import (
    Prescription,
    PrescriptionCreate,
    PrescriptionEdit,
    PrescriptionStatistics,
    PrescriptionStatus,
    PrescriptionView,
    StatusView,
)
from utils.exceptions import (
    InvalidSchedule,
    InvalidTransition,
    PrescriptionNotFound,
    RefillExhausted,
)
from utils.logger import setup_logger
from utils.medication_catalog import ONGOING

logger = setup_logger("PRESCRIPTION_ENGINE")

Moment = Union[date, datetime, None]

ONE_DAY = timedelta(days=1)
NO_PROGRESS = -1.0

# Fields an edit may clear by sending an explicit null
NULLABLE_EDIT_FIELDS = {"category", "instructions"}


class Transition(NamedTuple):
    prescriptions: List[Prescription]
    prescription: Prescription


def to_reference_time(now: Moment = None) -> datetime:
    """
    Normalize a reference time to a naive UTC datetime.

    Dates are taken as midnight. Aware datetimes are converted to UTC.
    None means the current wall-clock time.
    """
    if now is None:
        now = datetime.now(timezone.utc)
    if isinstance(now, datetime):
        if now.tzinfo is not None:
            now = now.astimezone(timezone.utc).replace(tzinfo=None)
        return now
    return datetime.combine(now, time.min)


def utc_now() -> datetime:
    """Wall-clock time as a naive UTC datetime"""
    return to_reference_time(None)


def course_end_date(start_date: date, duration_days: int) -> Optional[date]:
    if duration_days == ONGOING:
        return None
    return start_date + timedelta(days=duration_days)


class PrescriptionLifecycleEngine:
    CRITICAL_DAYS = 3
    WARNING_DAYS = 7
    REFILL_ALERT_REMAINING = 1

    def __init__(self, clock: Callable[[], datetime] = utc_now):
        # Stamps created_at; the reference time only drives derivation
        self.clock = clock

    # Derivation

    def derive_status(self, prescription: Prescription, now: Moment = None) -> StatusView:
        """Status in priority order: discontinued, ongoing, completed, then by days left"""
        if not prescription.is_active:
            return StatusView(status=PrescriptionStatus.DISCONTINUED)
        if prescription.duration_days == ONGOING:
            return StatusView(status=PrescriptionStatus.ONGOING)

        reference = to_reference_time(now)
        end = datetime.combine(
            course_end_date(prescription.start_date, prescription.duration_days),
            time.min,
        )
        if reference >= end:
            return StatusView(status=PrescriptionStatus.COMPLETED)

        days_remaining = (end - reference) // ONE_DAY
        if days_remaining <= self.CRITICAL_DAYS:
            status = PrescriptionStatus.CRITICAL
        elif days_remaining <= self.WARNING_DAYS:
            status = PrescriptionStatus.WARNING
        else:
            status = PrescriptionStatus.ACTIVE
        return StatusView(status=status, days_remaining=days_remaining)

    def course_progress(self, prescription: Prescription, now: Moment = None) -> float:
        """Elapsed whole days over course length as a 0-100 percentage, -1 when ongoing"""
        if prescription.duration_days == ONGOING:
            return NO_PROGRESS

        reference = to_reference_time(now)
        start = datetime.combine(prescription.start_date, time.min)
        if prescription.duration_days == 0:
            return 100.0 if reference >= start else 0.0

        elapsed_days = (reference - start) // ONE_DAY
        percent = elapsed_days / prescription.duration_days * 100
        return round(max(0.0, min(100.0, percent)), 2)

    def can_refill(self, prescription: Prescription) -> bool:
        return prescription.is_active and prescription.refills_remaining > 0

    def derive_view(self, prescription: Prescription, now: Moment = None) -> PrescriptionView:
        reference = to_reference_time(now)
        status_view = self.derive_status(prescription, reference)
        return PrescriptionView(
            **prescription.model_dump(),
            status=status_view.status,
            days_remaining=status_view.days_remaining,
            progress=self.course_progress(prescription, reference),
            can_refill=self.can_refill(prescription),
        )

    def derive_views(
        self, prescriptions: Iterable[Prescription], now: Moment = None
    ) -> List[PrescriptionView]:
        reference = to_reference_time(now)
        return [self.derive_view(rx, reference) for rx in prescriptions]

    def compute_statistics(
        self, prescriptions: Iterable[Prescription], now: Moment = None
    ) -> PrescriptionStatistics:
        reference = to_reference_time(now)
        stats = PrescriptionStatistics()

        for rx in prescriptions:
            stats.total += 1
            if rx.is_active:
                stats.active += 1
            else:
                stats.discontinued += 1

            status_view = self.derive_status(rx, reference)
            if status_view.status == PrescriptionStatus.ONGOING:
                stats.ongoing += 1
            elif status_view.status == PrescriptionStatus.COMPLETED:
                stats.completed += 1

            days_remaining = status_view.days_remaining
            if (
                rx.is_active
                and days_remaining is not None
                and 0 < days_remaining <= self.WARNING_DAYS
            ):
                stats.expiring_soon += 1

            if rx.refills > 0 and 0 < rx.refills_remaining <= self.REFILL_ALERT_REMAINING:
                stats.needs_refill += 1

        return stats

    # Transitions

    def create(
        self,
        prescriptions: Sequence[Prescription],
        patient_id: str,
        data: PrescriptionCreate,
        now: Moment = None,
    ) -> Transition:
        reference = to_reference_time(now)
        start_date = data.start_date or reference.date()
        self._validate_schedule(data.duration_days)

        prescription = Prescription(
            id=uuid.uuid4(),
            patient_id=patient_id,
            medication_name=data.medication_name,
            dosage=data.dosage,
            route=data.route,
            frequency=data.frequency,
            category=data.category,
            start_date=start_date,
            duration_days=data.duration_days,
            end_date=course_end_date(start_date, data.duration_days),
            is_active=True,
            refills=data.refills,
            refills_remaining=data.refills,
            prescribed_by=data.prescribed_by,
            instructions=data.instructions,
            created_at=self.clock(),
        )
        logger.debug(f"Created prescription {prescription.id} for patient {patient_id}")
        return Transition([prescription, *prescriptions], prescription)

    def discontinue(
        self, prescriptions: Sequence[Prescription], prescription_id: Union[UUID, str]
    ) -> Transition:
        index, current = self.find(prescriptions, prescription_id)
        if not current.is_active:
            raise InvalidTransition(
                f"Prescription {current.id} is already discontinued", current.id
            )
        return self._replace(prescriptions, index, current.model_copy(update={"is_active": False}))

    def reactivate(
        self, prescriptions: Sequence[Prescription], prescription_id: Union[UUID, str]
    ) -> Transition:
        """Resume a discontinued course on its original timeline"""
        index, current = self.find(prescriptions, prescription_id)
        if current.is_active:
            raise InvalidTransition(f"Prescription {current.id} is already active", current.id)
        return self._replace(prescriptions, index, current.model_copy(update={"is_active": True}))

    def refill(
        self,
        prescriptions: Sequence[Prescription],
        prescription_id: Union[UUID, str],
        now: Moment = None,
    ) -> Transition:
        """Consume one refill authorization. The course window is not extended."""
        index, current = self.find(prescriptions, prescription_id)
        if current.refills_remaining <= 0:
            raise RefillExhausted(current.id)

        updated = current.model_copy(
            update={
                "refills_remaining": current.refills_remaining - 1,
                "last_refill_date": to_reference_time(now),
            }
        )
        return self._replace(prescriptions, index, updated)

    def edit(
        self,
        prescriptions: Sequence[Prescription],
        prescription_id: Union[UUID, str],
        changes: PrescriptionEdit,
    ) -> Transition:
        """
        Rewrite a prescription as a new order.

        The schedule is recomputed from scratch and the refill count is
        restored to the (possibly new) number of authorized refills.
        """
        index, current = self.find(prescriptions, prescription_id)

        updates = {
            field: value
            for field, value in changes.model_dump(exclude_unset=True).items()
            if value is not None or field in NULLABLE_EDIT_FIELDS
        }
        if "start_date" in updates and "duration_days" not in updates:
            raise InvalidSchedule(
                "A new start date needs a duration or the ongoing marker", current.id
            )

        start_date = updates.get("start_date", current.start_date)
        duration_days = updates.get("duration_days", current.duration_days)
        self._validate_schedule(duration_days, current.id)
        refills = updates.get("refills", current.refills)

        updated = Prescription(
            **{
                **current.model_dump(),
                **updates,
                "start_date": start_date,
                "duration_days": duration_days,
                "end_date": course_end_date(start_date, duration_days),
                "refills": refills,
                "refills_remaining": refills,
            }
        )
        return self._replace(prescriptions, index, updated)

    def delete(
        self, prescriptions: Sequence[Prescription], prescription_id: Union[UUID, str]
    ) -> Transition:
        index, current = self.find(prescriptions, prescription_id)
        remaining = [rx for i, rx in enumerate(prescriptions) if i != index]
        return Transition(remaining, current)

    # Helpers

    def _validate_schedule(
        self, duration_days: Optional[int], prescription_id: Optional[UUID] = None
    ) -> None:
        if duration_days is None:
            raise InvalidSchedule("A duration or the ongoing marker is required", prescription_id)
        if duration_days < 0 and duration_days != ONGOING:
            raise InvalidSchedule(
                f"Duration must be zero or more days, got {duration_days}", prescription_id
            )

    def find(
        self, prescriptions: Sequence[Prescription], prescription_id: Union[UUID, str]
    ) -> Tuple[int, Prescription]:
        if isinstance(prescription_id, UUID):
            wanted = prescription_id
        else:
            try:
                wanted = UUID(str(prescription_id))
            except ValueError:
                raise PrescriptionNotFound(prescription_id)
        for index, rx in enumerate(prescriptions):
            if rx.id == wanted:
                return index, rx
        raise PrescriptionNotFound(wanted)

    def _replace(
        self, prescriptions: Sequence[Prescription], index: int, updated: Prescription
    ) -> Transition:
        collection = list(prescriptions)
        collection[index] = updated
        logger.debug(f"Prescription {updated.id} -> active={updated.is_active}")
        return Transition(collection, updated)


prescription_engine = PrescriptionLifecycleEngine()
