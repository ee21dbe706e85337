# src/utils/medication_catalog.py
"""
Lookup tables for the prescription form.

Every table is keyed by a stable enum value. Display labels are only a view
of that key: lookups by an unknown key raise UnknownCatalogEntry instead of
falling back to a default entry.
"""
import re
from enum import Enum
from typing import Any, Dict, List, Union

from utils.exceptions import UnknownCatalogEntry

ONGOING = -1


class MedicationRoute(str, Enum):
    ORAL = "oral"
    TOPICAL = "topical"
    INJECTION_IM = "injection_im"
    INJECTION_IV = "injection_iv"
    INJECTION_SC = "injection_sc"
    INHALATION = "inhalation"
    SUBLINGUAL = "sublingual"
    RECTAL = "rectal"
    OPHTHALMIC = "ophthalmic"
    OTIC = "otic"
    NASAL = "nasal"
    TRANSDERMAL = "transdermal"


class Frequency(str, Enum):
    ONCE_DAILY = "once_daily"
    TWICE_DAILY = "twice_daily"
    THREE_DAILY = "three_daily"
    FOUR_DAILY = "four_daily"
    EVERY_4H = "every_4h"
    EVERY_6H = "every_6h"
    EVERY_8H = "every_8h"
    EVERY_12H = "every_12h"
    AT_BEDTIME = "at_bedtime"
    BEFORE_MEALS = "before_meals"
    AFTER_MEALS = "after_meals"
    AS_NEEDED = "as_needed"
    WEEKLY = "weekly"


class MedicationCategory(str, Enum):
    ANTIBIOTICS = "antibiotics"
    ANALGESICS = "analgesics"
    ANTIHISTAMINES = "antihistamines"
    ANTIHYPERTENSIVES = "antihypertensives"
    ANTIDIABETICS = "antidiabetics"
    CARDIOVASCULAR = "cardiovascular"
    GASTROINTESTINAL = "gastrointestinal"
    RESPIRATORY = "respiratory"
    VITAMINS_SUPPLEMENTS = "vitamins_supplements"
    VACCINES = "vaccines"
    EMERGENCY = "emergency"
    CONTROLLED = "controlled"


ROUTE_LABELS: Dict[MedicationRoute, str] = {
    MedicationRoute.ORAL: "Oral",
    MedicationRoute.TOPICAL: "Topical",
    MedicationRoute.INJECTION_IM: "Injection (IM)",
    MedicationRoute.INJECTION_IV: "Injection (IV)",
    MedicationRoute.INJECTION_SC: "Injection (SC)",
    MedicationRoute.INHALATION: "Inhalation",
    MedicationRoute.SUBLINGUAL: "Sublingual",
    MedicationRoute.RECTAL: "Rectal",
    MedicationRoute.OPHTHALMIC: "Ophthalmic",
    MedicationRoute.OTIC: "Otic",
    MedicationRoute.NASAL: "Nasal",
    MedicationRoute.TRANSDERMAL: "Transdermal",
}

FREQUENCY_LABELS: Dict[Frequency, str] = {
    Frequency.ONCE_DAILY: "Once daily",
    Frequency.TWICE_DAILY: "Twice daily (BID)",
    Frequency.THREE_DAILY: "Three times daily (TID)",
    Frequency.FOUR_DAILY: "Four times daily (QID)",
    Frequency.EVERY_4H: "Every 4 hours",
    Frequency.EVERY_6H: "Every 6 hours",
    Frequency.EVERY_8H: "Every 8 hours",
    Frequency.EVERY_12H: "Every 12 hours",
    Frequency.AT_BEDTIME: "At bedtime (HS)",
    Frequency.BEFORE_MEALS: "Before meals (AC)",
    Frequency.AFTER_MEALS: "After meals (PC)",
    Frequency.AS_NEEDED: "As needed (PRN)",
    Frequency.WEEKLY: "Weekly",
}

CATEGORY_LABELS: Dict[MedicationCategory, str] = {
    MedicationCategory.ANTIBIOTICS: "Antibiotics",
    MedicationCategory.ANALGESICS: "Analgesics",
    MedicationCategory.ANTIHISTAMINES: "Antihistamines",
    MedicationCategory.ANTIHYPERTENSIVES: "Antihypertensives",
    MedicationCategory.ANTIDIABETICS: "Antidiabetics",
    MedicationCategory.CARDIOVASCULAR: "Cardiovascular",
    MedicationCategory.GASTROINTESTINAL: "Gastrointestinal",
    MedicationCategory.RESPIRATORY: "Respiratory",
    MedicationCategory.VITAMINS_SUPPLEMENTS: "Vitamins & Supplements",
    MedicationCategory.VACCINES: "Vaccines",
    MedicationCategory.EMERGENCY: "Emergency Medications",
    MedicationCategory.CONTROLLED: "Controlled Substances",
}

DURATION_PRESETS: List[int] = [3, 5, 7, 10, 14, 21, 30, 60, 90, ONGOING]

# Preset picker on the prescription form, grouped by therapeutic area
COMMON_MEDICATIONS: Dict[str, List[str]] = {
    "Pain & Fever": [
        "Paracetamol 500mg",
        "Ibuprofen 400mg",
        "Aspirin 100mg",
        "Diclofenac 50mg",
    ],
    "Antibiotics": [
        "Amoxicillin 500mg",
        "Azithromycin 250mg",
        "Ciprofloxacin 500mg",
        "Metronidazole 400mg",
    ],
    "GI": [
        "Omeprazole 20mg",
        "Pantoprazole 40mg",
        "Domperidone 10mg",
        "Ondansetron 4mg",
    ],
    "Cardiovascular": [
        "Amlodipine 5mg",
        "Metoprolol 50mg",
        "Atorvastatin 10mg",
        "Aspirin 75mg",
    ],
    "Diabetes": ["Metformin 500mg", "Glimepiride 2mg"],
    "Respiratory": ["Salbutamol Inhaler", "Montelukast 10mg", "Cetirizine 10mg"],
    "Other": ["Multivitamin", "Vitamin D3 1000IU", "Iron Supplement"],
}

_DURATION_PATTERN = re.compile(r"^\s*(\d+)\s*(day|days|d)?\s*$", re.IGNORECASE)


def _lookup(table: Dict, enum_cls, name: str, key):
    try:
        return table[enum_cls(key)]
    except ValueError:
        raise UnknownCatalogEntry(name, key)


def route_label(route: Union[MedicationRoute, str]) -> str:
    return _lookup(ROUTE_LABELS, MedicationRoute, "route", route)


def frequency_label(frequency: Union[Frequency, str]) -> str:
    return _lookup(FREQUENCY_LABELS, Frequency, "frequency", frequency)


def category_label(category: Union[MedicationCategory, str]) -> str:
    return _lookup(CATEGORY_LABELS, MedicationCategory, "category", category)


def duration_label(duration_days: int) -> str:
    if duration_days == ONGOING:
        return "Ongoing"
    if duration_days < 0:
        raise UnknownCatalogEntry("duration", duration_days)
    return f"{duration_days} day" if duration_days == 1 else f"{duration_days} days"


def parse_duration(value: Union[int, str]) -> int:
    """
    Convert a duration as entered on the prescription form to whole days.

    Accepts integers, "Ongoing" and strings such as "7 days" or "10".
    Ongoing courses map to the -1 sentinel.
    """
    if isinstance(value, bool):
        raise UnknownCatalogEntry("duration", value)
    if isinstance(value, int):
        return value
    text = str(value).strip()
    if text.lower() == "ongoing":
        return ONGOING
    match = _DURATION_PATTERN.match(text)
    if not match:
        raise UnknownCatalogEntry("duration", value)
    return int(match.group(1))


def catalog_snapshot() -> Dict[str, List[Dict[str, Any]]]:
    """All lookup tables in display order, for form pickers"""
    return {
        "routes": [
            {"key": route.value, "label": route_label(route)} for route in MedicationRoute
        ],
        "frequencies": [
            {"key": frequency.value, "label": frequency_label(frequency)}
            for frequency in Frequency
        ],
        "categories": [
            {"key": category.value, "label": category_label(category)}
            for category in MedicationCategory
        ],
        "durations": [
            {"key": days, "label": duration_label(days)} for days in DURATION_PRESETS
        ],
        "medications": [
            {"group": group, "names": list(names)}
            for group, names in COMMON_MEDICATIONS.items()
        ],
    }
