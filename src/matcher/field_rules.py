"""
Predicados sobre nombres de campo para priorizar o filtrar la presentación

No intervienen en la decisión del matcher; solo los usan los llamadores.
"""
from typing import Iterable, Optional

MISSING_TEXT = "Not Present"

CRITICAL_KEYWORDS = (
    "policy number", "premium", "limit", "deductible", "retention",
    "coverage", "insured", "effective date", "expiration", "carrier",
    "endorsement", "exclusion", "restriction", "sublimit", "aggregate",
)

COVERAGE_KEYWORDS = (
    "limit", "coverage", "deductible", "retention", "premium",
    "sublimit", "aggregate", "occurrence", "per claim",
)

ENDORSEMENT_TABLE_KEYWORDS = (
    "endorsement", "form", "policy form", "coverage form",
    "exclusion", "limitation", "restriction",
)


def _contains_any(name: Optional[str], keywords: Iterable[str]) -> bool:
    lower = (name or "").lower()
    return any(keyword in lower for keyword in keywords)


def is_critical_field(field_name: Optional[str]) -> bool:
    return _contains_any(field_name, CRITICAL_KEYWORDS)


def is_coverage_field(field_name: Optional[str]) -> bool:
    return _contains_any(field_name, COVERAGE_KEYWORDS)


def is_endorsement_table(table_name: Optional[str]) -> bool:
    return _contains_any(table_name, ENDORSEMENT_TABLE_KEYWORDS)


def should_ignore_field(field_name: Optional[str], ignored_fields: Optional[Iterable[str]] = None) -> bool:
    """Campos administrativos a omitir. La lista la define el llamador (vacía por defecto)."""
    if not ignored_fields or not field_name:
        return False
    name = field_name.strip().lower()
    return any(name == ignored.strip().lower() for ignored in ignored_fields)


def display_value(value: Optional[str]) -> str:
    return value if value else MISSING_TEXT
