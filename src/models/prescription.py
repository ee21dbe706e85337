# src/models/prescription.py
import uuid
from sqlalchemy import (
    Column,
    Date,
    DateTime,
    Text,
    String,
    Integer,
    Boolean,
    Enum,
    Uuid,
    Index,
    CheckConstraint,
)
from sqlalchemy.sql import func
from db.database import Base
from utils.medication_catalog import Frequency, MedicationCategory, MedicationRoute


def _enum_values(enum_cls):
    return [member.value for member in enum_cls]


class Prescription(Base):
    __tablename__ = "prescriptions"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    patient_id = Column(String(64), nullable=False)

    # Prescription details
    medication_name = Column(String(200), nullable=False)
    dosage = Column(String(100), nullable=False, default="")
    route = Column(
        Enum(MedicationRoute, values_callable=_enum_values, name="medication_route"),
        nullable=False,
        default=MedicationRoute.ORAL,
    )
    frequency = Column(
        Enum(Frequency, values_callable=_enum_values, name="medication_frequency"),
        nullable=False,
    )
    category = Column(
        Enum(
            MedicationCategory,
            values_callable=_enum_values,
            name="medication_category",
        ),
        nullable=True,
    )
    prescribed_by = Column(String(200), nullable=False, default="")
    instructions = Column(Text, nullable=True)

    # Schedule; duration_days = -1 marks an ongoing course with no end_date
    start_date = Column(Date, nullable=False)
    duration_days = Column(Integer, nullable=False)
    end_date = Column(Date, nullable=True)

    # Lifecycle
    is_active = Column(Boolean, nullable=False, default=True)
    refills = Column(Integer, nullable=False, default=0)
    refills_remaining = Column(Integer, nullable=False, default=0)
    last_refill_date = Column(DateTime(timezone=True), nullable=True)

    # Timestamps
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    # Optimistic concurrency counter, bumped on every UPDATE
    version = Column(Integer, nullable=False, default=1)

    __mapper_args__ = {"version_id_col": version}
    __table_args__ = (
        Index("ix_prescriptions_patient_id", "patient_id"),
        CheckConstraint("refills_remaining >= 0", name="check_refills_remaining"),
        CheckConstraint("refills_remaining <= refills", name="check_refills_valid"),
        CheckConstraint("duration_days >= -1", name="check_duration_days"),
    )
