"""
Medidas de similitud de texto: edición (Levenshtein), solapamiento de tokens y contención
"""
from typing import FrozenSet, Optional

from rapidfuzz.distance import Levenshtein

from parsers.value_parsers import normalize_value

# Artículos, preposiciones y relleno típico de pólizas
STOP_WORDS: FrozenSet[str] = frozenset({
    "a", "an", "the",
    "of", "in", "on", "at", "to", "for", "by", "with", "from", "into", "upon",
    "under", "per", "as", "and", "or",
    "noted", "above", "below", "mentioned", "stated", "listed", "shown",
    "herein", "hereon", "said", "such", "see",
})


def edit_similarity(text1: Optional[str], text2: Optional[str]) -> float:
    """1 - distancia/max(len). Simétrica, en [0, 1], 1.0 si ambos vacíos."""
    norm1 = normalize_value(text1)
    norm2 = normalize_value(text2)
    longest = max(len(norm1), len(norm2))
    if longest == 0:
        return 1.0
    return 1.0 - Levenshtein.distance(norm1, norm2) / longest


def content_tokens(text: Optional[str]) -> FrozenSet[str]:
    """Tokens por espacios, sin stop words."""
    return frozenset(t for t in normalize_value(text).split(" ") if t and t not in STOP_WORDS)


def token_overlap(text1: Optional[str], text2: Optional[str]) -> float:
    """Índice de Jaccard entre los tokens de contenido. 0.0 si algún lado queda vacío."""
    tokens1 = content_tokens(text1)
    tokens2 = content_tokens(text2)
    if not tokens1 or not tokens2:
        return 0.0
    return len(tokens1 & tokens2) / len(tokens1 | tokens2)


def is_expansion(text1: Optional[str], text2: Optional[str],
                 length_ratio: float = 0.70, token_ratio: float = 0.85) -> bool:
    """
    True si el texto corto es una versión abreviada del largo:
    el corto mide como mucho length_ratio del largo y al menos token_ratio
    de sus tokens distintos aparecen en el largo.
    """
    norm1 = normalize_value(text1)
    norm2 = normalize_value(text2)
    if not norm1 or not norm2:
        return False

    shorter, longer = (norm1, norm2) if len(norm1) <= len(norm2) else (norm2, norm1)
    if len(shorter) > length_ratio * len(longer):
        return False

    short_tokens = content_tokens(shorter)
    if not short_tokens:
        return False
    found = len(short_tokens & content_tokens(longer))
    return found / len(short_tokens) >= token_ratio
