"""
Estadísticas agregadas de una comparación de documentos

Recorre cabeceras y tablas alineadas, clasifica cada campo/celda como
match, diff o missing y cuenta. matches + diffs + missing == total siempre.
"""
import enum
import re
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional

from parsers.document_parser import ParsedFields
from parsers.value_parsers import parse_currency
from .field_matcher import FieldMatcher, MatchResult, default_matcher
from .field_rules import display_value, is_coverage_field, is_critical_field, should_ignore_field
from .row_aligner import RowAlignment, align_rows


class ComparisonStatus(enum.Enum):
    MATCH = "match"
    DIFF = "diff"
    MISSING = "missing"


@dataclass
class ComparisonStats:
    matches: int = 0
    diffs: int = 0
    missing: int = 0
    total: int = 0

    def add(self, status: ComparisonStatus) -> None:
        self.total += 1
        if status == ComparisonStatus.MATCH:
            self.matches += 1
        elif status == ComparisonStatus.DIFF:
            self.diffs += 1
        else:
            self.missing += 1

    def to_dict(self) -> Dict[str, int]:
        return {"matches": self.matches, "diffs": self.diffs, "missing": self.missing, "total": self.total}


@dataclass
class FieldComparison:
    """Un campo de cabecera o una celda de tabla comparada."""
    field_name: str
    value1: str
    value2: str
    status: ComparisonStatus
    result: Optional[MatchResult] = None
    table: Optional[str] = None
    alignment_index: Optional[int] = None

    @property
    def key(self) -> str:
        if self.table is None:
            return self.field_name
        return f"{self.table}[{self.alignment_index}] - {self.field_name}"


def _matched(value1: str, value2: str, matcher: Optional[FieldMatcher]) -> FieldComparison:
    """Decide el matcher; Ambiguous cuenta como match."""
    result = (matcher or default_matcher()).compare(value1, value2)
    status = ComparisonStatus.MATCH if result.is_match else ComparisonStatus.DIFF
    return FieldComparison("", value1, value2, status, result)


def classify_pair(value1: Optional[str], value2: Optional[str],
                  matcher: Optional[FieldMatcher] = None) -> FieldComparison:
    """Regla de celdas: vacío en cualquier lado (incluso en ambos) -> missing."""
    value1 = value1 or ""
    value2 = value2 or ""
    if not value1.strip() or not value2.strip():
        return FieldComparison("", value1, value2, ComparisonStatus.MISSING)
    return _matched(value1, value2, matcher)


def compare_headers(fields1: ParsedFields, fields2: ParsedFields,
                    matcher: Optional[FieldMatcher] = None,
                    ignored_fields: Optional[Iterable[str]] = None) -> List[FieldComparison]:
    comparisons = []
    for name in dict.fromkeys([*fields1.headers, *fields2.headers]):
        if should_ignore_field(name, ignored_fields):
            continue
        value1 = fields1.header_value(name)
        value2 = fields2.header_value(name)
        # vacío en ambos lados: no cuenta
        if not value1.strip() and not value2.strip():
            continue
        # missing solo si falta en un mapa; presente pero vacío lo decide el matcher
        if name not in fields1.headers or name not in fields2.headers:
            comparison = FieldComparison("", value1, value2, ComparisonStatus.MISSING)
        else:
            comparison = _matched(value1, value2, matcher)
        comparison.field_name = name
        comparisons.append(comparison)
    return comparisons


def align_tables(fields1: ParsedFields, fields2: ParsedFields,
                 matcher: Optional[FieldMatcher] = None) -> Dict[str, List[RowAlignment]]:
    return {
        name: align_rows(fields1.tables.get(name, []), fields2.tables.get(name, []), matcher)
        for name in dict.fromkeys([*fields1.tables, *fields2.tables])
    }


def compare_table_cells(alignments: Dict[str, List[RowAlignment]],
                        matcher: Optional[FieldMatcher] = None) -> List[FieldComparison]:
    comparisons = []
    for table, table_alignments in alignments.items():
        for index, alignment in enumerate(table_alignments):
            columns1 = alignment.row1.columns if alignment.row1 else {}
            columns2 = alignment.row2.columns if alignment.row2 else {}
            for column in dict.fromkeys([*columns1, *columns2]):
                value1 = alignment.row1.value(column) if alignment.row1 else ""
                value2 = alignment.row2.value(column) if alignment.row2 else ""
                comparison = classify_pair(value1, value2, matcher)
                comparison.field_name = column
                comparison.table = table
                comparison.alignment_index = index
                comparisons.append(comparison)
    return comparisons


def tally(comparisons: Iterable[FieldComparison]) -> ComparisonStats:
    stats = ComparisonStats()
    for comparison in comparisons:
        stats.add(comparison.status)
    return stats


def compute_stats(fields1: ParsedFields, fields2: ParsedFields,
                  matcher: Optional[FieldMatcher] = None,
                  ignored_fields: Optional[Iterable[str]] = None) -> ComparisonStats:
    matcher = matcher or default_matcher()
    comparisons = compare_headers(fields1, fields2, matcher, ignored_fields)
    comparisons += compare_table_cells(align_tables(fields1, fields2, matcher), matcher)
    return tally(comparisons)


def field_statuses(comparisons: Iterable[FieldComparison]) -> Dict[str, ComparisonStatus]:
    return {comparison.key: comparison.status for comparison in comparisons}


# ===============================
# Discrepancias críticas
# ===============================

@dataclass
class CriticalMismatch:
    field_name: str
    value1: str
    value2: str
    kind: str  # "header" | "table"
    is_critical: bool


def find_critical_mismatches(header_comparisons: Iterable[FieldComparison]) -> List[CriticalMismatch]:
    """Cabeceras claramente distintas (Ambiguous no cuenta), críticas primero."""
    mismatches = [
        CriticalMismatch(
            field_name=c.field_name,
            value1=display_value(c.value1),
            value2=display_value(c.value2),
            kind="header",
            is_critical=is_critical_field(c.field_name),
        )
        for c in header_comparisons
        if c.status != ComparisonStatus.MATCH
    ]
    mismatches.sort(key=lambda m: not m.is_critical)
    return mismatches


# ===============================
# Cambios de cobertura
# ===============================

RESTRICTION_KEYWORDS = ("exclude", "not covered", "limitation", "restrict", "reduce")
INCREASE_KEYWORDS = ("include", "add", "extend", "increase", "enhance")


@dataclass
class CoverageChange:
    field_name: str
    value1: str
    value2: str
    kind: str  # "increase" | "restriction"
    impact: str


def _amount(value: str) -> Optional[float]:
    amount = parse_currency(value)
    if amount is None:
        # "$1,000,000 per occurrence" y similares
        m = re.search(r"\$?\s*([0-9][0-9,]*(?:\.[0-9]+)?)", value or "")
        if m:
            amount = parse_currency(m.group(1))
    return amount


def analyze_coverage_change(field_name: str, value1: str, value2: str) -> Optional[CoverageChange]:
    """Clasifica un cambio de cobertura como aumento o restricción. None si el importe no cambia."""
    amount1 = _amount(value1)
    amount2 = _amount(value2)

    if amount1 is not None and amount2 is not None:
        if amount1 == amount2:
            return None
        delta = amount2 - amount1
        if amount1 == 0:
            impact = "Coverage added" if delta > 0 else "Coverage removed"
        else:
            impact = f"Coverage {'increased' if delta > 0 else 'decreased'} by {abs(delta) / amount1 * 100:.1f}%"
        kind = "increase" if delta > 0 else "restriction"
    else:
        lower2 = (value2 or "").lower()
        if any(kw in lower2 for kw in RESTRICTION_KEYWORDS):
            kind, impact = "restriction", "Coverage may be restricted or limited"
        elif any(kw in lower2 for kw in INCREASE_KEYWORDS):
            kind, impact = "increase", "Coverage may be enhanced or extended"
        else:
            kind, impact = "restriction", "Coverage terms have changed"

    return CoverageChange(field_name, display_value(value1), display_value(value2), kind, impact)


def find_coverage_changes(header_comparisons: Iterable[FieldComparison]) -> List[CoverageChange]:
    changes = []
    for c in header_comparisons:
        if c.status == ComparisonStatus.MATCH or not is_coverage_field(c.field_name):
            continue
        change = analyze_coverage_change(c.field_name, c.value1, c.value2)
        if change:
            changes.append(change)
    return changes
