"""Registrant validation rules.

The registration form, the spreadsheet importer and the import template all
read their constraints from this module, so the allowed values are declared
exactly once.
"""

from typing import Any, Optional, Tuple

MINIMUM_AGE = 12

GENDERS: Tuple[str, ...] = ("Male", "Female")

# Order matters: the template dropdown lists locations in this order.
CHURCH_LOCATIONS: Tuple[str, ...] = (
    "Alaminos",
    "Bae",
    "Bagong Kalsada",
    "Biñan",
    "Cabuyao",
    "Calamba",
    "Calauan",
    "Canlubang",
    "Carmona",
    "GMA",
    "Macabling",
    "Makiling",
    "Pagsanjan",
    "Pila",
    "Romblon",
    "San Pablo",
    "Silang",
    "Sta. Cruz",
    "Sta. Rosa",
    "Victoria",
)

GROUP_NUMBERS: Tuple[int, ...] = (1, 2, 3, 4, 5)

# Exact, ordered header row of the import spreadsheet.
IMPORT_HEADERS: Tuple[str, ...] = ("Full Name", "Age", "Gender", "Location")


def is_non_empty_name(value: Any) -> bool:
    return isinstance(value, str) and len(value.strip()) > 0


def coerce_age(value: Any) -> Optional[int]:
    """Return value as an int, or None when it is not a whole number."""
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value) if value.is_integer() else None
    if isinstance(value, str):
        text = value.strip()
        if not text:
            return None
        try:
            number = float(text)
        except ValueError:
            return None
        return int(number) if number.is_integer() else None
    return None


def is_valid_age(value: Any) -> bool:
    age = coerce_age(value)
    return age is not None and age >= MINIMUM_AGE


def normalize_gender(value: Any) -> Optional[str]:
    """Map a gender in any casing (surrounding whitespace ignored) to its canonical form."""
    if not isinstance(value, str):
        return None
    needle = value.strip().lower()
    for gender in GENDERS:
        if gender.lower() == needle:
            return gender
    return None


def is_valid_gender(value: Any) -> bool:
    return normalize_gender(value) is not None


def is_valid_location(value: Any) -> bool:
    # Exact, case-sensitive membership
    return isinstance(value, str) and value in CHURCH_LOCATIONS


def is_valid_group(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool) and value in GROUP_NUMBERS
