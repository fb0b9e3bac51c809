"""
Matcher Module - Comparación de extracciones de documentos de seguros

Decide si dos valores extraídos son el mismo dato (sinónimos, valores tipados,
fuzzy matching), alinea filas de tablas y agrega estadísticas de la comparación.
"""

from .adjudicator import (
    AdjudicatedResult,
    AdjudicatingMatcher,
    AdjudicationCache,
    AdjudicationReply,
    AdjudicatorSettings,
    ComparisonRequest,
    GeminiAdjudicator,
)
from .document_matcher import DocumentComparison, DocumentMatcher
from .field_matcher import (
    FieldMatcher,
    MatchConfidence,
    MatchOutcome,
    MatchResult,
    MatchThresholds,
    compare_values,
)
from .field_rules import is_coverage_field, is_critical_field, is_endorsement_table, should_ignore_field
from .row_aligner import AlignmentType, RowAlignment, align_rows, calculate_row_similarity
from .stats import (
    ComparisonStats,
    ComparisonStatus,
    FieldComparison,
    analyze_coverage_change,
    compute_stats,
    find_critical_mismatches,
)
from .synonyms import SynonymTable, load_synonyms

__all__ = [
    'AdjudicatedResult',
    'AdjudicatingMatcher',
    'AdjudicationCache',
    'AdjudicationReply',
    'AdjudicatorSettings',
    'ComparisonRequest',
    'GeminiAdjudicator',
    'DocumentComparison',
    'DocumentMatcher',
    'FieldMatcher',
    'MatchConfidence',
    'MatchOutcome',
    'MatchResult',
    'MatchThresholds',
    'compare_values',
    'is_coverage_field',
    'is_critical_field',
    'is_endorsement_table',
    'should_ignore_field',
    'AlignmentType',
    'RowAlignment',
    'align_rows',
    'calculate_row_similarity',
    'ComparisonStats',
    'ComparisonStatus',
    'FieldComparison',
    'analyze_coverage_change',
    'compute_stats',
    'find_critical_mismatches',
    'SynonymTable',
    'load_synonyms',
]
