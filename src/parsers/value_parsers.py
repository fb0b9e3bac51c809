"""
Normalización de valores y parsers tipados (fechas, moneda, porcentajes)

Cada parser devuelve el valor tipado o None cuando el texto no es de ese tipo.
None nunca es un error: significa "no aplica" y el matcher pasa a la siguiente estrategia.
"""
import re
from dataclasses import dataclass
from datetime import date, datetime
from typing import Callable, List, Optional


# ===============================
# Normalización básica
# ===============================

def normalize_value(value: Optional[str]) -> str:
    """Recorta, pasa a minúsculas y colapsa espacios. None -> ''."""
    if not value:
        return ""
    return re.sub(r"\s+", " ", str(value).strip().lower())


# ===============================
# Fechas
# ===============================

MONTHS = {
    "january": 1, "jan": 1,
    "february": 2, "feb": 2,
    "march": 3, "mar": 3,
    "april": 4, "apr": 4,
    "may": 5,
    "june": 6, "jun": 6,
    "july": 7, "jul": 7,
    "august": 8, "aug": 8,
    "september": 9, "sep": 9, "sept": 9,
    "october": 10, "oct": 10,
    "november": 11, "nov": 11,
    "december": 12, "dec": 12,
}


def _build_date(year: int, month: int, day: int) -> Optional[date]:
    try:
        return date(year, month, day)
    except ValueError:
        return None


def _month_number(name: str) -> Optional[int]:
    return MONTHS.get(name.lower())


def _numeric_month_first(m) -> Optional[date]:
    a, b, year = int(m.group(1)), int(m.group(2)), int(m.group(3))
    # NN/NN/YYYY es ambiguo: primero mes/día, si no es válido día/mes
    return _build_date(year, a, b) or _build_date(year, b, a)


def _numeric_year_first(m) -> Optional[date]:
    return _build_date(int(m.group(1)), int(m.group(2)), int(m.group(3)))


def _month_day_year(m) -> Optional[date]:
    month = _month_number(m.group(1))
    if month is None:
        return None
    return _build_date(int(m.group(3)), month, int(m.group(2)))


def _day_month_year(m) -> Optional[date]:
    month = _month_number(m.group(2))
    if month is None:
        return None
    return _build_date(int(m.group(3)), month, int(m.group(1)))


def _month_year(m) -> Optional[date]:
    month = _month_number(m.group(1))
    if month is None:
        return None
    return _build_date(int(m.group(2)), month, 1)


@dataclass(frozen=True)
class DateStrategy:
    """Un formato de fecha: patrón + constructor. Se prueban en orden."""
    name: str
    pattern: re.Pattern
    build: Callable[[re.Match], Optional[date]]

    def parse(self, text: str) -> Optional[date]:
        m = self.pattern.match(text)
        if not m:
            return None
        return self.build(m)


DATE_STRATEGIES: List[DateStrategy] = [
    DateStrategy("mm/dd/yyyy", re.compile(r"^(\d{1,2})[/\-](\d{1,2})[/\-](\d{4})$"), _numeric_month_first),
    DateStrategy("yyyy-mm-dd", re.compile(r"^(\d{4})[/\-](\d{1,2})[/\-](\d{1,2})$"), _numeric_year_first),
    DateStrategy("month dd, yyyy", re.compile(r"^([a-z]+)\s+(\d{1,2}),?\s+(\d{4})$", re.I), _month_day_year),
    DateStrategy("dd month yyyy", re.compile(r"^(\d{1,2})\s+([a-z]+),?\s+(\d{4})$", re.I), _day_month_year),
    DateStrategy("month yyyy", re.compile(r"^([a-z]+),?\s+(\d{4})$", re.I), _month_year),
    DateStrategy("dd-mon-yyyy", re.compile(r"^(\d{1,2})[\s\-]([a-z]{3,9})[\s\-](\d{4})$", re.I), _day_month_year),
    DateStrategy("mon-dd-yyyy", re.compile(r"^([a-z]{3,9})[\s\-](\d{1,2})[\s\-](\d{4})$", re.I), _month_day_year),
]


def _parse_iso_date(text: str) -> Optional[date]:
    """Parser nativo: ISO 8601 extendido (2025-01-15, 2025-01-15T10:00:00)."""
    if "-" not in text:
        return None
    try:
        return datetime.fromisoformat(text).date()
    except ValueError:
        return None


def parse_date(value: Optional[str]) -> Optional[date]:
    """Convierte texto en fecha de calendario probando el parser nativo y luego DATE_STRATEGIES."""
    if not value or not isinstance(value, str):
        return None
    cleaned = value.strip()
    if not cleaned:
        return None

    parsed = _parse_iso_date(cleaned)
    if parsed:
        return parsed

    for strategy in DATE_STRATEGIES:
        parsed = strategy.parse(cleaned)
        if parsed:
            return parsed
    return None


# ===============================
# Moneda
# ===============================

_SUFFIX_MULTIPLIERS = {"": 1, "k": 1_000, "m": 1_000_000, "b": 1_000_000_000}

_WORD_NUMBERS = {"one": 1, "two": 2, "five": 5, "ten": 10}
_WORD_MAGNITUDES = {"thousand": 1_000, "million": 1_000_000}

_GROUPED_AMOUNT = re.compile(r"^\$?\s*([0-9]{1,3}(?:,?[0-9]{3})*(?:\.[0-9]{2})?)$")
_SUFFIXED_AMOUNT = re.compile(r"^\$?\s*([0-9]+(?:\.[0-9]+)?)\s*([kmb])?$", re.I)
_SPELLED_AMOUNT = re.compile(r"^(one|two|five|ten)\s+(thousand|million)$", re.I)


def parse_currency(value: Optional[str]) -> Optional[float]:
    """Importe en dólares: '$1,000,000', '2500000', '$2.5M', 'one million'."""
    if not value or not isinstance(value, str):
        return None
    cleaned = value.strip()

    m = _GROUPED_AMOUNT.match(cleaned)
    if m:
        return float(m.group(1).replace(",", ""))

    m = _SUFFIXED_AMOUNT.match(cleaned)
    if m:
        suffix = (m.group(2) or "").lower()
        return float(m.group(1)) * _SUFFIX_MULTIPLIERS[suffix]

    m = _SPELLED_AMOUNT.match(cleaned)
    if m:
        return float(_WORD_NUMBERS[m.group(1).lower()] * _WORD_MAGNITUDES[m.group(2).lower()])

    return None


# ===============================
# Porcentajes
# ===============================

_PERCENT_WORDS = {
    "zero": 0, "one": 1, "two": 2, "three": 3, "four": 4, "five": 5,
    "six": 6, "seven": 7, "eight": 8, "nine": 9, "ten": 10,
    "twenty": 20, "thirty": 30, "forty": 40, "fifty": 50,
    "sixty": 60, "seventy": 70, "eighty": 80, "ninety": 90, "hundred": 100,
}

_PERCENT_SIGN = re.compile(r"^([0-9]+(?:\.[0-9]+)?)\s*%$")
_PERCENT_DECIMAL = re.compile(r"^(0\.[0-9]+)$")
_PERCENT_WORD = re.compile(r"^([0-9]+(?:\.[0-9]+)?)\s*percent$")
_PERCENT_SPELLED = re.compile(r"^(" + "|".join(_PERCENT_WORDS) + r")\s*percent$")


def parse_percentage(value: Optional[str]) -> Optional[float]:
    """Porcentaje en puntos: '2.5%' -> 2.5, '0.025' -> 2.5, 'fifty percent' -> 50."""
    if not value or not isinstance(value, str):
        return None
    cleaned = value.strip().lower()

    m = _PERCENT_SIGN.match(cleaned)
    if m:
        return float(m.group(1))

    m = _PERCENT_DECIMAL.match(cleaned)
    if m:
        return float(m.group(1)) * 100

    m = _PERCENT_WORD.match(cleaned)
    if m:
        return float(m.group(1))

    m = _PERCENT_SPELLED.match(cleaned)
    if m:
        return float(_PERCENT_WORDS[m.group(1)])

    return None
