"""
Parser de registros extraídos -> campos de cabecera + tablas

Entrada: lista de registros {fieldname, rowid, columnname, extracteddata, confidencescore, confidenceflag}.
Un campo es TABLA si aparece en más de un registro; si no, es CABECERA y solo se toma de rowid == 1.
"""
import json
import logging
from dataclasses import dataclass, field, replace
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple, Union

EDITED_FLAG = "edited"


class DocumentLoadError(ValueError):
    """Archivo de extracción ilegible o con formato inesperado."""


# ===============================
# Modelos
# ===============================

@dataclass(frozen=True)
class FieldValue:
    value: str
    confidence: float = 0.0
    flag: str = ""


@dataclass
class TableRow:
    row_id: Optional[int]  # None si el rowid original no era un entero
    columns: Dict[str, FieldValue] = field(default_factory=dict)

    def value(self, column: str) -> str:
        cell = self.columns.get(column)
        return cell.value if cell else ""


@dataclass
class ParsedFields:
    headers: Dict[str, FieldValue] = field(default_factory=dict)
    tables: Dict[str, List[TableRow]] = field(default_factory=dict)

    def header_value(self, name: str) -> str:
        cell = self.headers.get(name)
        return cell.value if cell else ""


@dataclass(frozen=True)
class RawRecord:
    field_name: str
    row_id: str
    column_name: str
    value: str
    confidence: float = 0.0
    flag: str = ""

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "RawRecord":
        """Tolera claves ausentes y valores nulos."""
        confidence = data.get("confidencescore")
        try:
            confidence = float(confidence) if confidence is not None else 0.0
        except (TypeError, ValueError):
            confidence = 0.0
        return cls(
            field_name=str(data.get("fieldname") or ""),
            row_id=str(data.get("rowid") if data.get("rowid") is not None else ""),
            column_name=str(data.get("columnname") or ""),
            value=str(data.get("extracteddata") if data.get("extracteddata") is not None else ""),
            confidence=confidence,
            flag=str(data.get("confidenceflag") or ""),
        )

    def to_field_value(self) -> FieldValue:
        return FieldValue(self.value, self.confidence, self.flag)


@dataclass
class DocumentFile:
    file_name: str
    records: List[RawRecord]


@dataclass
class PackageBatch:
    package_id: str
    package_name: str
    total_files: int
    package_status: str
    documents: List[DocumentFile]


@dataclass(frozen=True)
class EditHistoryItem:
    timestamp: str
    field: str
    document: str
    old_value: str
    new_value: str


# ===============================
# Parsing
# ===============================

def _parse_row_id(raw: str) -> Optional[int]:
    try:
        return int(str(raw).strip())
    except ValueError:
        return None


def parse_fields(records: List[RawRecord]) -> ParsedFields:
    """Agrupa registros en cabeceras y tablas. Las filas quedan ordenadas por row_id."""
    counts: Dict[str, int] = {}
    for rec in records:
        counts[rec.field_name] = counts.get(rec.field_name, 0) + 1

    parsed = ParsedFields()
    for rec in records:
        row_id = _parse_row_id(rec.row_id)
        if row_id is None:
            logging.warning(f"rowid no numérico '{rec.row_id}' en campo '{rec.field_name}'; se trata como fila nueva")

        if counts[rec.field_name] > 1:
            rows = parsed.tables.setdefault(rec.field_name, [])
            row = None
            if row_id is not None:
                row = next((r for r in rows if r.row_id == row_id), None)
            if row is None:
                row = TableRow(row_id)
                rows.append(row)
            row.columns[rec.column_name] = rec.to_field_value()
        elif row_id == 1:
            parsed.headers[rec.field_name] = rec.to_field_value()
        else:
            logging.debug(f"Campo de cabecera '{rec.field_name}' ignorado: rowid {rec.row_id} != 1")

    # filas con rowid inválido al final, en orden de aparición
    for rows in parsed.tables.values():
        rows.sort(key=lambda r: (r.row_id is None, r.row_id or 0))
    return parsed


# ===============================
# Carga desde archivo (frontera)
# ===============================

def _read_json(path: Union[str, Path]) -> Any:
    path = Path(path)
    try:
        with open(path, "r", encoding="utf-8") as f:
            return json.load(f)
    except FileNotFoundError:
        raise DocumentLoadError(f"Archivo no encontrado: {path}")
    except json.JSONDecodeError as e:
        raise DocumentLoadError(f"El archivo {path.name} no es JSON válido: {e}")
    except OSError as e:
        raise DocumentLoadError(f"No se pudo leer {path}: {e}")


def _records_from(items: Any, source: str) -> List[RawRecord]:
    if not isinstance(items, list):
        raise DocumentLoadError(f"{source}: se esperaba una lista de campos extraídos")
    bad = [i for i, item in enumerate(items) if not isinstance(item, dict)]
    if bad:
        raise DocumentLoadError(f"{source}: el elemento {bad[0]} no es un objeto de campo")
    return [RawRecord.from_dict(item) for item in items]


def _document_from(data: Dict[str, Any], source: str) -> DocumentFile:
    name = str(data.get("fileName") or source)
    return DocumentFile(name, _records_from(data.get("fieldList"), name))


def load_package(path: Union[str, Path]) -> PackageBatch:
    """Lee un paquete {"batch": [{..., "fileNameList": [...]}]} y devuelve el primer lote."""
    data = _read_json(path)
    source = Path(path).name
    if not isinstance(data, dict) or not isinstance(data.get("batch"), list) or not data["batch"]:
        raise DocumentLoadError(f"{source}: falta la lista 'batch' del paquete")

    batch = data["batch"][0]
    if not isinstance(batch, dict) or not isinstance(batch.get("fileNameList"), list):
        raise DocumentLoadError(f"{source}: el lote no contiene 'fileNameList'")

    documents = []
    for i, doc in enumerate(batch["fileNameList"]):
        if not isinstance(doc, dict):
            raise DocumentLoadError(f"{source}: el documento {i} no es un objeto")
        documents.append(_document_from(doc, f"{source}[{i}]"))

    try:
        total_files = int(batch.get("totalFiles", len(documents)))
    except (TypeError, ValueError):
        total_files = len(documents)

    return PackageBatch(
        package_id=str(batch.get("packageID") or ""),
        package_name=str(batch.get("packageName") or ""),
        total_files=total_files,
        package_status=str(batch.get("packageStatus") or ""),
        documents=documents,
    )


def load_records(path: Union[str, Path]) -> DocumentFile:
    """Lee un documento: lista de registros o un objeto {"fileName", "fieldList"}."""
    data = _read_json(path)
    source = Path(path).name
    if isinstance(data, list):
        return DocumentFile(source, _records_from(data, source))
    if isinstance(data, dict) and "fieldList" in data:
        return _document_from(data, source)
    if isinstance(data, dict) and "batch" in data:
        raise DocumentLoadError(f"{source} es un paquete; use la opción de paquete para elegir el documento")
    raise DocumentLoadError(f"{source}: formato de extracción no reconocido")


# ===============================
# Ediciones del usuario
# ===============================

def apply_edit(parsed: ParsedFields, field_name: str, new_value: str,
               row_id: Optional[int] = None, column: Optional[str] = None,
               document: str = "") -> Tuple[ParsedFields, EditHistoryItem]:
    """
    Sustituye un valor de cabecera (sin row_id/column) o una celda de tabla.
    Devuelve una copia de ParsedFields y la entrada de historial; el original no se modifica.
    """
    edited = FieldValue(new_value, 1.0, EDITED_FLAG)
    headers = dict(parsed.headers)
    tables = {name: [TableRow(r.row_id, dict(r.columns)) for r in rows] for name, rows in parsed.tables.items()}

    if column is None:
        old_value = parsed.header_value(field_name)
        headers[field_name] = edited
        label = field_name
    else:
        rows = tables.get(field_name)
        row = next((r for r in rows or [] if r.row_id == row_id), None)
        if row is None:
            raise KeyError(f"Fila {row_id} no encontrada en la tabla '{field_name}'")
        old_value = row.value(column)
        row.columns[column] = edited
        label = f"{field_name} - {column}"

    item = EditHistoryItem(
        timestamp=datetime.now().isoformat(timespec="seconds"),
        field=label,
        document=document,
        old_value=old_value,
        new_value=new_value,
    )
    return replace(parsed, headers=headers, tables=tables), item
