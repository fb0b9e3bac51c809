"""
Matcher de campos: decide si dos valores extraídos son iguales, ambiguos o distintos

Orden de decisión (gana la primera regla que aplica):
  1. Igualdad tras normalizar
  2. Vacíos (ambos -> match exacto, uno -> diferente exacto)
  3. Valores tipados: fecha, moneda, porcentaje (solo si ambos son del mismo tipo)
  4. Sinónimos de seguros
  5. Solapamiento de tokens / texto expandido
  6. Similitud de edición
"""
import enum
import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Tuple

from parsers.value_parsers import normalize_value, parse_currency, parse_date, parse_percentage
from .similarity import edit_similarity, is_expansion, token_overlap
from .synonyms import SynonymTable


# ===============================
# Configuración
# ===============================

@dataclass(frozen=True)
class MatchThresholds:
    high_similarity: float = 0.75
    ambiguous_similarity: float = 0.55
    containment_length_ratio: float = 0.70
    containment_token_ratio: float = 0.85
    row_match: float = 0.4
    currency_tolerance: float = 0.01
    percentage_tolerance: float = 0.001


DEFAULT_THRESHOLDS = MatchThresholds()


# ===============================
# Modelos de salida
# ===============================

class MatchOutcome(enum.Enum):
    MATCH = "match"
    AMBIGUOUS = "ambiguous"
    DIFFERENT = "different"


class MatchConfidence(enum.IntEnum):
    """Orden total: EXACT > SYNONYM > HIGH > AMBIGUOUS > DIFFERENT."""
    DIFFERENT = 0
    AMBIGUOUS = 1
    HIGH = 2
    SYNONYM = 3
    EXACT = 4

    @property
    def label(self) -> str:
        return self.name.lower()


@dataclass(frozen=True)
class MatchResult:
    outcome: MatchOutcome
    confidence: MatchConfidence
    similarity: Optional[float] = None
    reason: str = ""

    @property
    def is_match(self) -> bool:
        """Match y Ambiguous cuentan como coincidencia para estadísticas."""
        return self.outcome in (MatchOutcome.MATCH, MatchOutcome.AMBIGUOUS)

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "outcome": self.outcome.value,
            "confidence": self.confidence.label,
            "reason": self.reason,
        }
        if self.similarity is not None:
            data["similarity"] = round(self.similarity, 3)
        return data


TypedCheck = Tuple[str, Callable[[Optional[str]], Any], Callable[[MatchThresholds], float]]

TYPED_CHECKS: List[TypedCheck] = [
    ("fecha", parse_date, lambda t: 0.0),
    ("moneda", parse_currency, lambda t: t.currency_tolerance),
    ("porcentaje", parse_percentage, lambda t: t.percentage_tolerance),
]


class FieldMatcher:
    """Comparador puro de pares de valores. Sin estado mutable."""

    def __init__(self, synonyms: Optional[SynonymTable] = None,
                 thresholds: Optional[MatchThresholds] = None):
        self.synonyms = synonyms if synonyms is not None else SynonymTable()
        self.thresholds = thresholds or DEFAULT_THRESHOLDS

    def compare(self, value1: Optional[str], value2: Optional[str]) -> MatchResult:
        norm1 = normalize_value(value1)
        norm2 = normalize_value(value2)

        if norm1 == norm2:
            return MatchResult(MatchOutcome.MATCH, MatchConfidence.EXACT, 1.0, "Valores idénticos")
        if not norm1 or not norm2:
            return MatchResult(MatchOutcome.DIFFERENT, MatchConfidence.EXACT, 0.0, "Valor faltante en un documento")

        typed = self._compare_typed(norm1, norm2)
        if typed is not None:
            return typed

        if self.synonyms.are_synonyms(norm1, norm2):
            return MatchResult(MatchOutcome.MATCH, MatchConfidence.SYNONYM, 1.0, "Sinónimos de seguros")

        t = self.thresholds
        overlap = token_overlap(norm1, norm2)
        if overlap > t.high_similarity:
            return MatchResult(MatchOutcome.MATCH, MatchConfidence.HIGH, overlap,
                               f"Solapamiento de contenido alto ({overlap:.1%})")
        if overlap > t.ambiguous_similarity:
            return MatchResult(MatchOutcome.AMBIGUOUS, MatchConfidence.AMBIGUOUS, overlap,
                               f"Solapamiento de contenido parcial ({overlap:.1%})")
        if is_expansion(norm1, norm2, t.containment_length_ratio, t.containment_token_ratio):
            return MatchResult(MatchOutcome.MATCH, MatchConfidence.HIGH, overlap,
                               "Un valor es versión abreviada del otro")

        similarity = edit_similarity(norm1, norm2)
        logging.debug(f"Comparando '{norm1}' vs '{norm2}': edición {similarity:.3f}, solapamiento {overlap:.3f}")
        if similarity > t.high_similarity:
            return MatchResult(MatchOutcome.MATCH, MatchConfidence.HIGH, similarity,
                               f"Similitud alta ({similarity:.1%})")
        if similarity > t.ambiguous_similarity:
            return MatchResult(MatchOutcome.AMBIGUOUS, MatchConfidence.AMBIGUOUS, similarity,
                               f"Similitud media ({similarity:.1%}), requiere revisión")
        return MatchResult(MatchOutcome.DIFFERENT, MatchConfidence.DIFFERENT, similarity,
                           f"Similitud baja ({similarity:.1%})")

    def _compare_typed(self, norm1: str, norm2: str) -> Optional[MatchResult]:
        for kind, parse, tolerance in TYPED_CHECKS:
            parsed1 = parse(norm1)
            parsed2 = parse(norm2)
            if parsed1 is None or parsed2 is None:
                continue

            if kind == "fecha":
                equal = parsed1 == parsed2
            else:
                equal = abs(parsed1 - parsed2) < tolerance(self.thresholds)

            if equal:
                return MatchResult(MatchOutcome.MATCH, MatchConfidence.EXACT, 1.0, f"Mismo valor ({kind})")
            return MatchResult(MatchOutcome.DIFFERENT, MatchConfidence.DIFFERENT, 0.0, f"Valor distinto ({kind})")
        return None


_DEFAULT_MATCHER: Optional[FieldMatcher] = None


def compare_values(value1: Optional[str], value2: Optional[str],
                   matcher: Optional[FieldMatcher] = None) -> MatchResult:
    """Punto de entrada funcional; usa el FieldMatcher por defecto si no se pasa uno."""
    if matcher is None:
        matcher = default_matcher()
    return matcher.compare(value1, value2)


def default_matcher() -> FieldMatcher:
    global _DEFAULT_MATCHER
    if _DEFAULT_MATCHER is None:
        _DEFAULT_MATCHER = FieldMatcher()
    return _DEFAULT_MATCHER
