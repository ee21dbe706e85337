# src/utils/exceptions.py
from fastapi import status
from typing import Any, Optional, Union
from uuid import UUID


class PrescriptionError(Exception):
    """Base class for failures reported by the prescription lifecycle engine"""

    status_code: int = status.HTTP_400_BAD_REQUEST

    def __init__(self, message: str, prescription_id: Optional[UUID] = None):
        super().__init__(message)
        self.message = message
        self.prescription_id = prescription_id


class PrescriptionNotFound(PrescriptionError):
    status_code = status.HTTP_404_NOT_FOUND

    def __init__(self, prescription_id: Union[UUID, str]):
        super().__init__(f"Prescription {prescription_id} not found", prescription_id)


class RefillExhausted(PrescriptionError):
    status_code = status.HTTP_409_CONFLICT

    def __init__(self, prescription_id: UUID):
        super().__init__(
            f"Prescription {prescription_id} has no refills remaining", prescription_id
        )


class InvalidSchedule(PrescriptionError):
    status_code = status.HTTP_422_UNPROCESSABLE_ENTITY


class InvalidTransition(PrescriptionError):
    """Raised for a discontinue/reactivate that would not change anything"""

    status_code = status.HTTP_409_CONFLICT


class ConcurrentModification(PrescriptionError):
    status_code = status.HTTP_409_CONFLICT

    def __init__(self, prescription_id: Optional[UUID] = None):
        target = f"Prescription {prescription_id}" if prescription_id else "A prescription"
        super().__init__(f"{target} was modified by another writer", prescription_id)


class UnknownCatalogEntry(PrescriptionError):
    status_code = status.HTTP_422_UNPROCESSABLE_ENTITY

    def __init__(self, table: str, key: Any):
        super().__init__(f"Unknown {table} entry: {key!r}")
        self.table = table
        self.key = key
