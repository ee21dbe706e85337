# src/schemas/__init__.py
from .base_schemas import *
from .prescription_schemas import *
