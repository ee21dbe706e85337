# src/models/__init__.py
"""
Models initialization file so Base.metadata knows every table
"""

from .prescription import Prescription

__all__ = ["Prescription"]
