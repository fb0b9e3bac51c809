"""
Parsers Module - Lectura de extracciones de documentos de seguros

Registros extraídos -> cabeceras + tablas, y parsers de valores tipados
(fechas, montos, porcentajes).
"""

from .document_parser import (
    DocumentFile,
    DocumentLoadError,
    EditHistoryItem,
    FieldValue,
    PackageBatch,
    ParsedFields,
    RawRecord,
    TableRow,
    apply_edit,
    load_package,
    load_records,
    parse_fields,
)
from .value_parsers import normalize_value, parse_currency, parse_date, parse_percentage

__all__ = [
    'DocumentFile',
    'DocumentLoadError',
    'EditHistoryItem',
    'FieldValue',
    'PackageBatch',
    'ParsedFields',
    'RawRecord',
    'TableRow',
    'apply_edit',
    'load_package',
    'load_records',
    'parse_fields',
    'normalize_value',
    'parse_currency',
    'parse_date',
    'parse_percentage',
]
