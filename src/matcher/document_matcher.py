"""
Matcher para comparar dos extracciones del mismo documento de seguros
Parsea los registros extraídos, compara cabeceras campo a campo, alinea las filas
de cada tabla y clasifica cada celda como coincidencia, diferencia o faltante.

Uso:
    python -m matcher.document_matcher doc1.json doc2.json -o reporte.json
    python -m matcher.document_matcher paquete1.json paquete2.json --package --doc1-index 0 --doc2-index 2
"""
import argparse
import asyncio
import json
import logging
import sys
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Tuple, Union

from parsers.document_parser import (
    DocumentFile,
    DocumentLoadError,
    EditHistoryItem,
    ParsedFields,
    apply_edit,
    load_package,
    load_records,
    parse_fields,
)
from .adjudicator import (
    AdjudicatingMatcher,
    AdjudicationCache,
    AdjudicatorSettings,
    ComparisonRequest,
    GeminiAdjudicator,
)
from .field_matcher import FieldMatcher, MatchOutcome, MatchResult, MatchThresholds
from .field_rules import display_value, is_critical_field, is_endorsement_table
from .row_aligner import AlignmentType, RowAlignment
from .stats import (
    ComparisonStats,
    ComparisonStatus,
    CoverageChange,
    CriticalMismatch,
    FieldComparison,
    align_tables,
    compare_headers,
    compare_table_cells,
    find_coverage_changes,
    find_critical_mismatches,
    tally,
)
from .synonyms import SynonymTable, load_synonyms


@dataclass
class DocumentComparison:
    doc1_name: str
    doc2_name: str
    fields1: ParsedFields
    fields2: ParsedFields
    header_comparisons: List[FieldComparison]
    table_alignments: Dict[str, List[RowAlignment]]
    table_comparisons: List[FieldComparison]
    stats: ComparisonStats
    critical_mismatches: List[CriticalMismatch] = field(default_factory=list)
    coverage_changes: List[CoverageChange] = field(default_factory=list)
    edit_history: List[EditHistoryItem] = field(default_factory=list)

    @property
    def all_comparisons(self) -> List[FieldComparison]:
        return self.header_comparisons + self.table_comparisons

    def pending_review(self) -> List[FieldComparison]:
        """Pares ambiguos que conviene confirmar manualmente."""
        return [c for c in self.all_comparisons
                if c.result is not None and c.result.outcome == MatchOutcome.AMBIGUOUS]


class DocumentMatcher:
    """Comparador de extracciones de pólizas con sinónimos, valores tipados y fuzzy matching"""

    def __init__(self, synonyms_file: Optional[Union[str, Path]] = None,
                 thresholds: Optional[MatchThresholds] = None,
                 ignored_fields: Optional[Iterable[str]] = None):
        self.synonyms = load_synonyms(synonyms_file)
        self.matcher = FieldMatcher(SynonymTable(self.synonyms), thresholds)
        self.ignored_fields = frozenset(ignored_fields or ())

    def compare_field(self, value1: str, value2: str) -> MatchResult:
        return self.matcher.compare(value1, value2)

    def compare_documents(self, doc1: Union[DocumentFile, ParsedFields],
                          doc2: Union[DocumentFile, ParsedFields],
                          doc1_name: str = "doc1", doc2_name: str = "doc2") -> DocumentComparison:
        """Compara dos documentos completos incluyendo tablas"""
        if isinstance(doc1, DocumentFile):
            doc1_name, doc1 = doc1.file_name, parse_fields(doc1.records)
        if isinstance(doc2, DocumentFile):
            doc2_name, doc2 = doc2.file_name, parse_fields(doc2.records)
        return self._build_comparison(doc1_name, doc2_name, doc1, doc2)

    def _build_comparison(self, doc1_name: str, doc2_name: str,
                          fields1: ParsedFields, fields2: ParsedFields,
                          edit_history: Optional[List[EditHistoryItem]] = None) -> DocumentComparison:
        headers = compare_headers(fields1, fields2, self.matcher, self.ignored_fields)
        alignments = align_tables(fields1, fields2, self.matcher)
        cells = compare_table_cells(alignments, self.matcher)
        stats = tally(headers + cells)
        logging.info(
            f"Comparación {doc1_name} vs {doc2_name}: {stats.matches} coincidencias, "
            f"{stats.diffs} diferencias, {stats.missing} faltantes de {stats.total}"
        )
        return DocumentComparison(
            doc1_name=doc1_name,
            doc2_name=doc2_name,
            fields1=fields1,
            fields2=fields2,
            header_comparisons=headers,
            table_alignments=alignments,
            table_comparisons=cells,
            stats=stats,
            critical_mismatches=find_critical_mismatches(headers),
            coverage_changes=find_coverage_changes(headers),
            edit_history=list(edit_history or []),
        )

    def apply_edit(self, comparison: DocumentComparison, document: int, field_name: str,
                   new_value: str, row_id: Optional[int] = None,
                   column: Optional[str] = None) -> DocumentComparison:
        """Edición manual de un valor en el documento 1 o 2; recalcula toda la comparación."""
        if document not in (1, 2):
            raise ValueError("document debe ser 1 o 2")
        source = comparison.fields1 if document == 1 else comparison.fields2
        name = comparison.doc1_name if document == 1 else comparison.doc2_name
        edited, item = apply_edit(source, field_name, new_value, row_id, column, document=name)

        fields1 = edited if document == 1 else comparison.fields1
        fields2 = edited if document == 2 else comparison.fields2
        return self._build_comparison(comparison.doc1_name, comparison.doc2_name, fields1, fields2,
                                      comparison.edit_history + [item])

    async def adjudicate(self, comparison: DocumentComparison,
                         adjudicating: AdjudicatingMatcher) -> Tuple[DocumentComparison, int]:
        """
        Reevalúa los pares ambiguos o críticos con el adjudicador externo.
        Devuelve la comparación actualizada y cuántos pares resolvió el adjudicador.
        """
        comparisons = comparison.all_comparisons
        targets = [i for i, c in enumerate(comparisons) if c.result is not None]
        requests = [
            ComparisonRequest(comparisons[i].value1, comparisons[i].value2, comparisons[i].key)
            for i in targets
        ]
        answers = await adjudicating.compare_batch(requests)

        resolved = 0
        for i, answer in zip(targets, answers):
            if answer.source != "adjudicator":
                continue
            resolved += 1
            status = ComparisonStatus.MATCH if answer.result.is_match else ComparisonStatus.DIFF
            comparisons[i] = replace(comparisons[i], result=answer.result, status=status)

        headers = comparisons[:len(comparison.header_comparisons)]
        updated = replace(
            comparison,
            header_comparisons=headers,
            table_comparisons=comparisons[len(headers):],
            stats=tally(comparisons),
            critical_mismatches=find_critical_mismatches(headers),
            coverage_changes=find_coverage_changes(headers),
        )
        return updated, resolved

    # ===============================
    # Reporte
    # ===============================

    @staticmethod
    def _comparison_entry(c: FieldComparison) -> Dict[str, Any]:
        entry: Dict[str, Any] = {
            "doc1_value": display_value(c.value1),
            "doc2_value": display_value(c.value2),
            "status": c.status.value,
        }
        if c.result is not None:
            entry.update(c.result.to_dict())
        return entry

    def generate_report(self, comparison: DocumentComparison) -> Dict[str, Any]:
        """Genera reporte detallado (serializable a JSON)"""
        headers_report = {}
        for c in comparison.header_comparisons:
            entry = self._comparison_entry(c)
            entry["is_critical"] = is_critical_field(c.field_name)
            headers_report[c.field_name] = entry

        cells_by_row: Dict[Tuple[str, int], Dict[str, Any]] = {}
        for c in comparison.table_comparisons:
            cells_by_row.setdefault((c.table, c.alignment_index), {})[c.field_name] = self._comparison_entry(c)

        tables_report = {}
        for table, alignments in comparison.table_alignments.items():
            rows = []
            summary = {t.value: 0 for t in AlignmentType}
            for index, alignment in enumerate(alignments):
                summary[alignment.match_type.value] += 1
                rows.append({
                    "match_type": alignment.match_type.value,
                    "similarity": round(alignment.similarity, 3),
                    "doc1_row": alignment.row1.row_id if alignment.row1 else None,
                    "doc2_row": alignment.row2.row_id if alignment.row2 else None,
                    "cells": cells_by_row.get((table, index), {}),
                })
            tables_report[table] = {
                "is_endorsement_table": is_endorsement_table(table),
                "summary": summary,
                "rows": rows,
            }

        return {
            "documents": {"doc1": comparison.doc1_name, "doc2": comparison.doc2_name},
            "stats": comparison.stats.to_dict(),
            "header_comparisons": headers_report,
            "table_comparisons": tables_report,
            "critical_mismatches": [
                {"field": m.field_name, "doc1_value": m.value1, "doc2_value": m.value2, "is_critical": m.is_critical}
                for m in comparison.critical_mismatches
            ],
            "coverage_changes": [
                {"field": ch.field_name, "doc1_value": ch.value1, "doc2_value": ch.value2,
                 "type": ch.kind, "impact": ch.impact}
                for ch in comparison.coverage_changes
            ],
            "pending_review": [c.key for c in comparison.pending_review()],
            "edit_history": [
                {"timestamp": e.timestamp, "field": e.field, "document": e.document,
                 "old_value": e.old_value, "new_value": e.new_value}
                for e in comparison.edit_history
            ],
        }


# ===============================
# CLI
# ===============================

def _load_document(path: str, is_package: bool, index: int) -> DocumentFile:
    if not is_package:
        return load_records(path)
    package = load_package(path)
    if not 0 <= index < len(package.documents):
        raise DocumentLoadError(
            f"{Path(path).name}: índice de documento {index} fuera de rango (0-{len(package.documents) - 1})"
        )
    return package.documents[index]


def print_report(report: Dict[str, Any], verbose: bool = False) -> None:
    stats = report["stats"]
    print("=" * 60)
    print(f"🔍 COMPARACIÓN: {report['documents']['doc1']} vs {report['documents']['doc2']}")
    print("=" * 60)
    print(f"   ✅ Coincidencias: {stats['matches']}")
    print(f"   ⚠️ Diferencias: {stats['diffs']}")
    print(f"   📋 Faltantes: {stats['missing']}")
    print(f"   🔢 Total: {stats['total']}")

    mismatches = report["critical_mismatches"]
    print(f"\n🚨 DISCREPANCIAS ({len(mismatches)}):")
    if not mismatches:
        print("   ✅ Todos los campos clave coinciden")
    for m in mismatches:
        icon = "❗" if m["is_critical"] else "•"
        print(f"   {icon} {m['field']}: '{m['doc1_value']}' vs '{m['doc2_value']}'")

    for table, info in report["table_comparisons"].items():
        summary = info["summary"]
        print(f"\n📦 TABLA {table}: {summary['content']} por contenido, "
              f"{summary['position']} por posición, {summary['unmatched']} sin pareja")
        if verbose:
            for row in info["rows"]:
                print(f"     fila {row['doc1_row']} <-> {row['doc2_row']} ({row['match_type']}, {row['similarity']:.0%})")

    if report["pending_review"]:
        print(f"\n🔎 REQUIEREN REVISIÓN: {len(report['pending_review'])}")
        if verbose:
            for key in report["pending_review"]:
                print(f"     - {key}")

    if report["coverage_changes"]:
        print("\n🛡️ CAMBIOS DE COBERTURA:")
        for ch in report["coverage_changes"]:
            print(f"   {ch['field']}: {ch['impact']}")


def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="Comparar dos extracciones de documentos de seguros")
    parser.add_argument("doc1_json", help="Archivo JSON con los campos extraídos del documento 1")
    parser.add_argument("doc2_json", help="Archivo JSON con los campos extraídos del documento 2")
    parser.add_argument("--package", action="store_true", help="Los archivos son paquetes {batch: [...]}")
    parser.add_argument("--doc1-index", type=int, default=0, help="Documento a usar del paquete 1")
    parser.add_argument("--doc2-index", type=int, default=0, help="Documento a usar del paquete 2")
    parser.add_argument("--ignore-field", action="append", default=[], help="Campo administrativo a omitir (repetible)")
    parser.add_argument("--synonyms", help="Archivo JSON de sinónimos alternativo")
    parser.add_argument("--adjudicate", action="store_true", help="Usar adjudicador Gemini para pares ambiguos/críticos")
    parser.add_argument("--output", "-o", help="Archivo de salida para el reporte de comparación")
    parser.add_argument("--verbose", "-v", action="store_true", help="Mostrar detalles adicionales")
    args = parser.parse_args(argv)

    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.INFO)

    try:
        doc1 = _load_document(args.doc1_json, args.package, args.doc1_index)
        doc2 = _load_document(args.doc2_json, args.package, args.doc2_index)
    except DocumentLoadError as e:
        print(f"Error cargando archivos: {e}")
        return 1

    for label, doc in (("Documento 1", doc1), ("Documento 2", doc2)):
        print(f"{label} cargado exitosamente: {doc.file_name} ({len(doc.records)} registros)")
    print()

    matcher = DocumentMatcher(args.synonyms, ignored_fields=args.ignore_field)
    comparison = matcher.compare_documents(doc1, doc2)

    if args.adjudicate:
        settings = AdjudicatorSettings.from_env()
        try:
            adjudicator = GeminiAdjudicator(settings)
        except (RuntimeError, ValueError) as e:
            logging.warning(f"Adjudicador no disponible: {e}. Se usa solo comparación local.")
        else:
            adjudicating = AdjudicatingMatcher(adjudicator, matcher.matcher,
                                               AdjudicationCache(settings.cache_size), settings)
            comparison, resolved = asyncio.run(matcher.adjudicate(comparison, adjudicating))
            logging.info(f"Adjudicador resolvió {resolved} pares")

    report = matcher.generate_report(comparison)
    print_report(report, args.verbose)

    if args.output:
        with open(args.output, "w", encoding="utf-8") as f:
            json.dump(report, f, ensure_ascii=False, indent=2)
        print(f"\nReporte guardado en: {args.output}")

    return 0


if __name__ == "__main__":
    sys.exit(main())
