"""
loader.py: turns uploaded file bytes into a matrix of raw cells.

Supports: .xlsx .xlsm .xls .ods (first sheet) and delimited text
(.csv .tsv .txt, or any other extension).

Public API:
    rows = decode(file_bytes, "extrato_pago.csv")
    rows = decode_path("planilha_rota.xlsx")

Each row is a list of cells; a cell is text, a number, or "" when empty.
Spreadsheet date cells come back as ISO "YYYY-MM-DD" text.
"""

from __future__ import annotations

import io
import logging
import math
from datetime import date, datetime, time
from pathlib import Path

import chardet
import pandas as pd

from cte_reconciler.models import Cell, RawRow

logger = logging.getLogger(__name__)

# ── Format groups ──────────────────────────────────────────────────────────────
EXCEL_FORMATS = {".xlsx", ".xls", ".xlsm"}
ODS_FORMATS   = {".ods"}
SPREADSHEET_FORMATS = EXCEL_FORMATS | ODS_FORMATS

# Tie order matters: ";" beats tab beats ",".
SEPARATOR_PRIORITY = (";", "\t", ",")
SEPARATOR_SAMPLE_LINES = 5


class DecodeError(ValueError):
    """The payload could not be read as a table; no rows are returned."""

    def __init__(self, message: str, file_name: str | None = None) -> None:
        super().__init__(message)
        self.file_name = file_name


# ══════════════════════════════════════════════════════════════════════════════
# ENCODING DETECTION
# ══════════════════════════════════════════════════════════════════════════════

def _detect_encoding(raw: bytes) -> str:
    result = chardet.detect(raw)
    return result.get("encoding") or "utf-8"


def _decode_line(raw_line: bytes, preferred_encoding: str) -> str:
    for enc in ("utf-8", preferred_encoding):
        if not enc:
            continue
        try:
            return raw_line.decode(enc)
        except (LookupError, UnicodeDecodeError):
            continue
    # latin-1 maps every byte, so this cannot fail.
    return raw_line.decode("latin-1")


def _read_text_safely(raw: bytes, preferred_encoding: str) -> str:
    """
    Decode raw bytes line by line: UTF-8, then the detected encoding, then
    latin-1. Null bytes and byte-order marks are stripped.
    """
    decoded_lines = [
        _decode_line(raw_line, preferred_encoding).replace("\x00", "").replace("\ufeff", "")
        for raw_line in raw.split(b"\n")
    ]
    return "\n".join(decoded_lines)


# ══════════════════════════════════════════════════════════════════════════════
# DELIMITED TEXT
# ══════════════════════════════════════════════════════════════════════════════

def detect_separator(lines: list[str]) -> str:
    """Pick the separator that occurs most often in the first few lines."""
    counts = {sep: 0 for sep in SEPARATOR_PRIORITY}
    for line in lines[:SEPARATOR_SAMPLE_LINES]:
        for sep in SEPARATOR_PRIORITY:
            counts[sep] += line.count(sep)
    best = SEPARATOR_PRIORITY[0]
    for sep in SEPARATOR_PRIORITY[1:]:
        if counts[sep] > counts[best]:
            best = sep
    return best


def split_line(line: str, separator: str) -> list[str]:
    """Split one line, keeping separators that sit inside double quotes."""
    cells: list[str] = []
    current: list[str] = []
    in_quote = False
    for ch in line:
        if ch == '"':
            in_quote = not in_quote
        elif ch == separator and not in_quote:
            cells.append("".join(current).strip())
            current = []
        else:
            current.append(ch)
    cells.append("".join(current).strip())
    return cells


def _decode_text(raw: bytes, file_name: str) -> list[RawRow]:
    text = _read_text_safely(raw, _detect_encoding(raw))
    lines = [line.rstrip("\r") for line in text.split("\n")]
    lines = [line for line in lines if line.strip()]
    if not lines:
        return []

    separator = "\t" if file_name.lower().endswith(".tsv") else detect_separator(lines)
    logger.debug("Decoding %s as delimited text with separator %r", file_name, separator)
    return [split_line(line, separator) for line in lines]


# ══════════════════════════════════════════════════════════════════════════════
# SPREADSHEETS
# ══════════════════════════════════════════════════════════════════════════════

def _engine_for(suffix: str) -> str:
    # .xls requires xlrd; give a clear error if missing.
    if suffix == ".xls":
        try:
            import xlrd  # noqa: F401
        except ImportError:
            raise ImportError(".xls files require xlrd; run: pip install xlrd")
        return "xlrd"
    if suffix in ODS_FORMATS:
        try:
            import odf  # noqa: F401
        except ImportError:
            raise ImportError(".ods files require odfpy; run: pip install odfpy")
        return "odf"
    return "openpyxl"


def to_cell(value: object) -> Cell:
    if value is None:
        return ""
    try:
        if pd.isna(value):
            return ""
    except (TypeError, ValueError):
        pass
    if hasattr(value, "item") and not isinstance(value, (str, datetime, date, time)):
        # numpy scalar
        value = value.item()
    if isinstance(value, bool):
        return str(value).upper()
    if isinstance(value, (datetime, date)):
        return value.strftime("%Y-%m-%d")
    if isinstance(value, time):
        return value.isoformat()
    if isinstance(value, str):
        return value.replace("\x00", "").strip()
    if isinstance(value, float):
        if math.isinf(value):
            return str(value)
        return int(value) if value.is_integer() else value
    if isinstance(value, int):
        return value
    return str(value).strip()


def _decode_spreadsheet(raw: bytes, file_name: str, suffix: str) -> list[RawRow]:
    engine = _engine_for(suffix)
    try:
        df = pd.read_excel(
            io.BytesIO(raw),
            sheet_name=0,
            header=None,
            dtype=object,
            engine=engine,
        )
    except Exception as exc:
        raise DecodeError(f"Could not read workbook {file_name}: {exc}", file_name) from exc

    rows: list[RawRow] = []
    for values in df.itertuples(index=False, name=None):
        row = [to_cell(value) for value in values]
        if any(cell != "" for cell in row):
            rows.append(row)
    logger.debug("Decoded %d non-empty rows from %s (engine=%s)", len(rows), file_name, engine)
    return rows


# ══════════════════════════════════════════════════════════════════════════════
# PUBLIC API
# ══════════════════════════════════════════════════════════════════════════════

def decode(file_bytes: bytes, file_name: str) -> list[RawRow]:
    """
    Decode a file payload into rows of cells.

    Spreadsheet formats are chosen by extension; everything else is treated
    as delimited text.

    Raises:
        DecodeError   if a spreadsheet payload is corrupt or unreadable.
        ImportError   if the optional engine for .xls/.ods is missing.
    """
    suffix = Path(file_name).suffix.lower()
    if suffix in SPREADSHEET_FORMATS:
        return _decode_spreadsheet(file_bytes, file_name, suffix)
    return _decode_text(file_bytes, file_name)


def decode_path(path: "str | Path") -> list[RawRow]:
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"File not found: {path}")
    return decode(path.read_bytes(), path.name)
