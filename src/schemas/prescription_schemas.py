# src/schemas/prescription_schemas.py
from pydantic import Field, field_validator, model_validator
from typing import Optional
from datetime import date, datetime
from uuid import UUID
from enum import Enum
from .base_schemas import BaseSchema, FrozenSchema, ResponseBase
from utils.exceptions import UnknownCatalogEntry
from utils.medication_catalog import (
    Frequency,
    MedicationCategory,
    MedicationRoute,
    ONGOING,
    parse_duration,
)


class PrescriptionStatus(str, Enum):
    DISCONTINUED = "discontinued"
    ONGOING = "ongoing"
    COMPLETED = "completed"
    CRITICAL = "critical"
    WARNING = "warning"
    ACTIVE = "active"


def _coerce_duration(value):
    if value is None:
        return value
    try:
        return parse_duration(value)
    except UnknownCatalogEntry as exc:
        raise ValueError(exc.message)


class Prescription(FrozenSchema):
    """One ordered course of medication for one patient"""

    id: UUID
    patient_id: str
    medication_name: str
    dosage: str = ""
    route: MedicationRoute = MedicationRoute.ORAL
    frequency: Frequency
    category: Optional[MedicationCategory] = None
    start_date: date
    duration_days: int = Field(..., ge=ONGOING)
    end_date: Optional[date] = None
    is_active: bool = True
    refills: int = Field(0, ge=0)
    refills_remaining: int = Field(0, ge=0)
    last_refill_date: Optional[datetime] = None
    prescribed_by: str = ""
    instructions: Optional[str] = None
    created_at: datetime
    version: int = 1

    @model_validator(mode="after")
    def check_invariants(self):
        if self.refills_remaining > self.refills:
            raise ValueError("refills_remaining cannot exceed refills")
        if (self.end_date is not None) != (self.duration_days >= 0):
            raise ValueError("end_date must be set exactly when duration is finite")
        return self


class PrescriptionCreate(BaseSchema):
    """Schema for writing a new prescription"""

    medication_name: str = Field(..., min_length=1)
    dosage: str = ""
    route: MedicationRoute = MedicationRoute.ORAL
    frequency: Frequency
    category: Optional[MedicationCategory] = None
    start_date: Optional[date] = None
    duration_days: int
    refills: int = Field(0, ge=0)
    prescribed_by: str = Field(..., min_length=1)
    instructions: Optional[str] = None

    @field_validator("duration_days", mode="before")
    @classmethod
    def parse_duration_text(cls, value):
        return _coerce_duration(value)


class PrescriptionEdit(BaseSchema):
    """Fields to rewrite on an existing prescription; omitted fields are kept"""

    medication_name: Optional[str] = Field(None, min_length=1)
    dosage: Optional[str] = None
    route: Optional[MedicationRoute] = None
    frequency: Optional[Frequency] = None
    category: Optional[MedicationCategory] = None
    start_date: Optional[date] = None
    duration_days: Optional[int] = None
    refills: Optional[int] = Field(None, ge=0)
    prescribed_by: Optional[str] = None
    instructions: Optional[str] = None

    @field_validator("duration_days", mode="before")
    @classmethod
    def parse_duration_text(cls, value):
        return _coerce_duration(value)


class StatusView(FrozenSchema):
    """Derived clinical status; days_remaining is set for running finite courses"""

    status: PrescriptionStatus
    days_remaining: Optional[int] = None


class PrescriptionView(Prescription):
    """Prescription together with its derived status at a reference time"""

    status: PrescriptionStatus
    days_remaining: Optional[int] = None
    progress: float
    can_refill: bool


class PrescriptionStatistics(BaseSchema):
    total: int = 0
    active: int = 0
    discontinued: int = 0
    ongoing: int = 0
    completed: int = 0
    expiring_soon: int = 0
    needs_refill: int = 0


class PrescriptionDeleted(ResponseBase):
    prescription_id: UUID
