"""
Alineación de filas entre dos versiones de la misma tabla

Las filas pueden venir reordenadas, renombradas, añadidas o eliminadas entre extracciones.
Primero se empareja por contenido (greedy, umbral permisivo), luego por posición,
y lo que sobra queda como no emparejado.
"""
import enum
import logging
from dataclasses import dataclass
from typing import List, Optional

from parsers.document_parser import TableRow
from .field_matcher import FieldMatcher, MatchOutcome, default_matcher

# Columnas que suelen identificar la fila (nombre de cobertura, formulario, etc.)
KEY_COLUMN_KEYWORDS = ("description", "coverage", "name", "type", "form")
KEY_COLUMN_WEIGHT = 2.0


class AlignmentType(enum.Enum):
    CONTENT = "content"
    POSITION = "position"
    UNMATCHED = "unmatched"


@dataclass
class RowAlignment:
    row1: Optional[TableRow]
    row2: Optional[TableRow]
    match_type: AlignmentType
    similarity: float = 0.0


def is_key_column(column: str) -> bool:
    lower = column.lower()
    return any(keyword in lower for keyword in KEY_COLUMN_KEYWORDS)


def calculate_row_similarity(row1: TableRow, row2: TableRow,
                             matcher: Optional[FieldMatcher] = None) -> float:
    """
    Puntaje ponderado por columnas comunes: una columna coincidente suma su peso,
    una ambigua suma similitud*peso; todas las comparadas suman su peso al denominador.
    Las columnas vacías en ambas filas no cuentan, salvo que todas las comunes lo estén.
    """
    matcher = matcher or default_matcher()
    numerator = 0.0
    denominator = 0.0

    common = [column for column in row1.columns if column in row2.columns]
    filled = [column for column in common if row1.value(column).strip() or row2.value(column).strip()]

    for column in filled or common:
        weight = KEY_COLUMN_WEIGHT if is_key_column(column) else 1.0
        result = matcher.compare(row1.value(column), row2.value(column))
        if result.outcome == MatchOutcome.MATCH:
            numerator += weight
        elif result.outcome == MatchOutcome.AMBIGUOUS:
            numerator += (result.similarity or 0.0) * weight
        denominator += weight

    return numerator / denominator if denominator > 0 else 0.0


def align_rows(table1: List[TableRow], table2: List[TableRow],
               matcher: Optional[FieldMatcher] = None) -> List[RowAlignment]:
    """Cada fila de ambas tablas aparece exactamente una vez en el resultado."""
    matcher = matcher or default_matcher()
    threshold = matcher.thresholds.row_match
    alignments: List[RowAlignment] = []
    unmatched1: List[TableRow] = []
    unmatched2: List[TableRow] = list(table2)

    # 1) Emparejamiento por contenido
    for row1 in table1:
        best_idx = -1
        best_score = 0.0
        for idx, row2 in enumerate(unmatched2):
            score = calculate_row_similarity(row1, row2, matcher)
            if score > best_score:
                best_idx, best_score = idx, score

        if best_idx >= 0 and best_score > threshold:
            row2 = unmatched2.pop(best_idx)
            logging.debug(f"Fila {row1.row_id} <-> {row2.row_id} por contenido ({best_score:.2f})")
            alignments.append(RowAlignment(row1, row2, AlignmentType.CONTENT, best_score))
        else:
            unmatched1.append(row1)

    # 2) Emparejamiento por posición de lo que queda
    paired = min(len(unmatched1), len(unmatched2))
    for row1, row2 in zip(unmatched1[:paired], unmatched2[:paired]):
        alignments.append(RowAlignment(row1, row2, AlignmentType.POSITION, 0.0))

    # 3) Sobrantes
    for row1 in unmatched1[paired:]:
        alignments.append(RowAlignment(row1, None, AlignmentType.UNMATCHED, 0.0))
    for row2 in unmatched2[paired:]:
        alignments.append(RowAlignment(None, row2, AlignmentType.UNMATCHED, 0.0))

    return alignments
