"""
Tabla de equivalencias léxicas para vocabulario de seguros

Cada entrada es término -> [sinónimos]. El término pertenece a su propio conjunto.
Dos valores son sinónimos si ambos aparecen en el mismo conjunto (sin jerarquía ni dirección).
"""
import json
import logging
from pathlib import Path
from typing import Dict, FrozenSet, List, Optional, Union

from parsers.value_parsers import normalize_value

DEFAULT_SYNONYMS_FILE = Path(__file__).parent / "db" / "synonyms.json"


def load_synonyms(synonyms_file: Optional[Union[str, Path]] = None) -> Dict[str, List[str]]:
    """Carga la base de sinónimos. Si el archivo falta o está dañado devuelve {}."""
    path = Path(synonyms_file) if synonyms_file else DEFAULT_SYNONYMS_FILE
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except FileNotFoundError:
        logging.warning(f"Archivo de sinónimos {path} no encontrado. Usando comparación directa.")
        return {}
    except (OSError, json.JSONDecodeError) as e:
        logging.error(f"Error cargando sinónimos {path}: {e}")
        return {}

    if not isinstance(data, dict):
        logging.error(f"Formato de sinónimos inválido en {path}: se esperaba un objeto JSON")
        return {}
    return {str(term): [str(s) for s in (variants or [])] for term, variants in data.items()}


class SynonymTable:
    """Conjuntos cerrados término+sinónimos, normalizados una sola vez."""

    def __init__(self, synonyms: Optional[Dict[str, List[str]]] = None):
        if synonyms is None:
            synonyms = load_synonyms()
        self.synonym_sets: List[FrozenSet[str]] = [
            frozenset(normalize_value(t) for t in [term, *variants])
            for term, variants in synonyms.items()
        ]

    def __len__(self) -> int:
        return len(self.synonym_sets)

    def are_synonyms(self, value1: Optional[str], value2: Optional[str]) -> bool:
        norm1 = normalize_value(value1)
        norm2 = normalize_value(value2)
        if not norm1 or not norm2:
            return False
        return any(norm1 in group and norm2 in group for group in self.synonym_sets)

