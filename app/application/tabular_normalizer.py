# app/application/tabular_normalizer.py
"""
Spreadsheet/CSV → product documents.

    parse_table()      bytes + extension (+ sheet) → ParsedTable
    validate_mapping() mapping vs. header row (batch errors)
    normalize_rows()   mapped, validated documents ready for insert
"""
from __future__ import annotations

import io
import math
import logging
import datetime as dt
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

import pandas as pd

from app.domain.errors import (
    EmptyUploadError, MappingError, RowValidationError,
    TabularParseError, UnsupportedFileTypeError,
)
from app.domain.models import REQUIRED_FIELDS, AiProcessingStatus, FieldMapping, Product

logger = logging.getLogger("lca.ingest")

# legacy .xls goes through xlrd, the rest through openpyxl
SPREADSHEET_EXTS = {"xlsx", "xlsm", "xls"}
SUPPORTED_EXTS = {"csv"} | SPREADSHEET_EXTS

# rows are reported 1-based and counting the header row
ROW_OFFSET = 2


@dataclass
class ParsedTable:
    headers: List[str]
    # (file row number, non-blank cells)
    rows: List[Tuple[int, Dict[str, Any]]] = field(default_factory=list)


def _is_blank(v: Any) -> bool:
    if v is None:
        return True
    if isinstance(v, float) and math.isnan(v):
        return True
    return str(v).strip() == ""


def _as_text(v: Any) -> str:
    # spreadsheets hand back 123.0 for integer codes in a column with gaps
    if isinstance(v, float) and v.is_integer():
        return str(int(v))
    if isinstance(v, (dt.datetime, pd.Timestamp)):
        return v.isoformat()
    return str(v).strip()


# ──────────────────────────────────────────────────────────────
#  Parsing
# ──────────────────────────────────────────────────────────────
def _read_csv(raw: bytes) -> pd.DataFrame:
    try:
        df = pd.read_csv(
            io.BytesIO(raw),
            dtype=str,
            keep_default_na=False,
            skip_blank_lines=True,
            encoding="utf-8-sig",
        )
    except pd.errors.EmptyDataError:
        return pd.DataFrame()
    except (pd.errors.ParserError, UnicodeDecodeError) as e:
        raise TabularParseError("CSV parsing error", {"errors": [str(e)]}) from e
    df.columns = [str(c).strip() for c in df.columns]
    return df


def _read_sheet(raw: bytes, sheet: Optional[str], engine: str = "openpyxl") -> pd.DataFrame:
    try:
        book = pd.ExcelFile(io.BytesIO(raw), engine=engine)
    except Exception as e:
        raise TabularParseError("Spreadsheet parsing error", {"errors": [str(e)]}) from e
    with book:
        names = [str(n) for n in book.sheet_names]
        name = sheet or (names[0] if names else None)
        if name is None or name not in names:
            raise TabularParseError(
                f"Sheet '{name}' not found in Excel file", {"availableSheets": names}
            )
        df = book.parse(name)
    df.columns = [str(c).strip() for c in df.columns]
    return df


def parse_table(raw: bytes, extension: str, sheet: Optional[str] = None) -> ParsedTable:
    ext = (extension or "").lower().lstrip(".")
    if ext not in SUPPORTED_EXTS:
        raise UnsupportedFileTypeError(
            "Unsupported file type. Only CSV and Excel files are allowed.",
            {"extension": ext or None, "allowed": sorted(SUPPORTED_EXTS)},
        )
    if ext == "csv":
        df = _read_csv(raw)
    else:
        df = _read_sheet(raw, sheet, engine="xlrd" if ext == "xls" else "openpyxl")

    # delimiter-only rows are dropped but still counted
    rows: List[Tuple[int, Dict[str, Any]]] = []
    for pos, rec in enumerate(df.to_dict(orient="records")):
        row = {k: v for k, v in rec.items() if not _is_blank(v)}
        if row:
            rows.append((pos + ROW_OFFSET, row))
    return ParsedTable(headers=list(df.columns), rows=rows)


# ──────────────────────────────────────────────────────────────
#  Mapping
# ──────────────────────────────────────────────────────────────
def validate_mapping(mapping: FieldMapping, headers: List[str]) -> Dict[str, str]:
    """Returns {documentField: column}; raises MappingError for batch problems."""
    missing = mapping.missing_required()
    if missing:
        raise MappingError(
            "Required field mappings missing",
            {"missingMappings": [f"{f}Field" for f in missing]},
        )

    bound = mapping.bound()
    missing_cols: List[str] = []
    for col in bound.values():
        if col not in headers and col not in missing_cols:
            missing_cols.append(col)
    if missing_cols:
        raise MappingError(
            "Mapped fields not found in uploaded file",
            {
                "missingFields": missing_cols,
                "availableFields": headers,
                "fieldMappings": mapping.as_form_fields(),
            },
        )
    return bound


def normalize_rows(
    rows: List[Tuple[int, Dict[str, Any]]],
    mapping: FieldMapping,
    bound: Dict[str, str],
    now: Optional[dt.datetime] = None,
) -> List[Dict[str, Any]]:
    now = now or dt.datetime.now(dt.timezone.utc)
    errors: Dict[str, str] = {}
    docs: List[Dict[str, Any]] = []

    for line, row in rows:
        doc: Dict[str, Any] = {}
        for target, col in bound.items():
            if col not in row:
                continue
            value = row[col]
            if target == "weight":
                try:
                    doc["weight"] = float(value)
                except (TypeError, ValueError):
                    errors[f"Row {line}, weight"] = f"must be a number (mapped from column '{col}')"
            else:
                doc[target] = _as_text(value)

        for f in REQUIRED_FIELDS:
            if _is_blank(doc.get(f)):
                errors[f"Row {line}, {f}"] = f"is required (mapped from column '{bound.get(f)}')"

        doc["images"] = []
        doc["aiProcessingStatus"] = AiProcessingStatus.PENDING.value
        doc["createdDate"] = now
        doc["modifiedDate"] = now
        docs.append(doc)

    if errors:
        logger.info("bulk upload rejected: %d row error(s)", len(errors))
        raise RowValidationError(
            "Validation failed",
            {
                "validationErrors": errors,
                "fieldMappings": mapping.as_form_fields(),
                "note": "Check that the mapped columns contain valid data for all rows",
            },
        )
    return [Product.model_validate(d).to_document() for d in docs]


def normalize(raw: bytes, extension: str, mapping: FieldMapping, sheet: Optional[str] = None) -> List[Dict[str, Any]]:
    table = parse_table(raw, extension, sheet)
    if not table.rows:
        raise EmptyUploadError("No products found in the uploaded file")
    bound = validate_mapping(mapping, table.headers)
    return normalize_rows(table.rows, mapping, bound)
