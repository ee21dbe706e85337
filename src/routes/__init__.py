# src/routes/__init__.py
from .prescriptions import router as prescriptions_router

__all__ = [
    "prescriptions_router",
]
