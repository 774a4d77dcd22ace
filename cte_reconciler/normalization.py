from __future__ import annotations

import math
import re
from datetime import date, datetime, timedelta

from cte_reconciler.models import Cell, Identifier

EXCEL_EPOCH = datetime(1899, 12, 30)
MIN_SERIAL = 1000

MONTH_NAMES = {
    "jan": 1, "fev": 2, "mar": 3, "abr": 4, "mai": 5, "jun": 6,
    "jul": 7, "ago": 8, "set": 9, "out": 10, "nov": 11, "dez": 12,
    "janeiro": 1, "fevereiro": 2, "março": 3, "marco": 3, "abril": 4,
    "maio": 5, "junho": 6, "julho": 7, "agosto": 8, "setembro": 9,
    "outubro": 10, "novembro": 11, "dezembro": 12,
}

CURRENCY_KEEP_RE = re.compile(r"[^\d.,-]")
LEADING_FLOAT_RE = re.compile(r"^[+-]?(?:\d+(?:\.\d*)?|\.\d+)")
NUMERIC_TEXT_RE = re.compile(r"^[+-]?(?:\d+(?:\.\d*)?|\.\d+)$")
VERBOSE_DATE_RE = re.compile(r"^(\d{1,2})\s*de\s*([a-zç.]+?)\.?\s*de\s*(\d{4})")
ISO_DATE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")
DIGIT_RUN_RE = re.compile(r"[0-9]+")
NON_DIGIT_RE = re.compile(r"[^0-9]")
ID_SPLIT_RE = re.compile(r"[-/]")


def _is_number(value: object) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def cell_text(value: Cell) -> str:
    """Render a cell the way it reads on screen (integral floats lose their ``.0``)."""
    if value is None:
        return ""
    if _is_number(value):
        if isinstance(value, float):
            if math.isnan(value):
                return ""
            if value.is_integer():
                return str(int(value))
        return str(value)
    return str(value)


def has_digit(text: str) -> bool:
    return DIGIT_RUN_RE.search(text) is not None


def _fmt(dt: date) -> str:
    return dt.strftime("%Y-%m-%d")


def parse_currency(value: Cell) -> float:
    """Parse a currency cell; ``1.234,56`` and ``1234.56`` both give 1234.56."""
    if _is_number(value):
        number = float(value)
        return 0.0 if math.isnan(number) or math.isinf(number) else number
    text = cell_text(value)
    if not text:
        return 0.0

    clean = CURRENCY_KEEP_RE.sub("", text)
    # Rightmost separator is the decimal point.
    if clean.rfind(",") > clean.rfind("."):
        clean = clean.replace(".", "").replace(",", ".", 1)

    match = LEADING_FLOAT_RE.match(clean)
    if not match:
        return 0.0
    try:
        return float(match.group(0))
    except ValueError:
        return 0.0


def _serial_to_iso(serial: float) -> str:
    if math.isnan(serial) or serial < MIN_SERIAL:
        return ""
    try:
        return _fmt(EXCEL_EPOCH + timedelta(days=serial))
    except (OverflowError, ValueError):
        return ""


def _validated(year: int, month: int, day: int) -> str:
    try:
        return _fmt(date(year, month, day))
    except ValueError:
        return ""


def parse_date(value: Cell) -> str:
    """Return ``YYYY-MM-DD`` for any recognised date form, else ``""``."""
    if value is None or value == "":
        return ""
    if isinstance(value, datetime):
        return _fmt(value)
    if isinstance(value, date):
        return _fmt(value)
    if _is_number(value):
        return _serial_to_iso(float(value))

    clean = str(value).replace('"', "").replace("'", "").strip().lower()
    if not clean:
        return ""

    # 26 de nov. de 2025
    m = VERBOSE_DATE_RE.match(clean)
    if m:
        month = MONTH_NAMES.get(m.group(2).replace(".", ""))
        if month:
            return _validated(int(m.group(3)), month, int(m.group(1)))

    if NUMERIC_TEXT_RE.match(clean):
        return _serial_to_iso(float(clean))

    parts = clean.split("/")
    if len(parts) == 3:
        day, month, year = (part.strip() for part in parts)
        if len(year) == 2:
            year = "20" + year
        year = year[:4]
        if day.isdigit() and month.isdigit() and year.isdigit() and len(year) == 4:
            return _validated(int(year), int(month), int(day))
        return ""

    if ISO_DATE_RE.match(clean):
        year, month, day = (int(part) for part in clean.split("-"))
        return clean if _validated(year, month, day) else ""

    return ""


def normalize_identifier(value: Cell) -> Identifier:
    """Reduce a freight-document number to its digits: ``3057-1`` -> ``3057``."""
    raw = cell_text(value).strip()
    if not raw:
        return Identifier(raw="", normalized="")

    main_part = ID_SPLIT_RE.split(raw, maxsplit=1)[0]
    normalized = NON_DIGIT_RE.sub("", main_part).lstrip("0")

    # "A-1042": the leading segment has no digits.
    if not normalized and has_digit(raw):
        match = DIGIT_RUN_RE.search(raw)
        if match:
            normalized = match.group(0).lstrip("0")

    return Identifier(raw=raw, normalized=normalized)


def looks_like_date(value: Cell) -> bool:
    return bool(parse_date(value))


def looks_like_currency(value: Cell) -> bool:
    text = cell_text(value)
    return has_digit(text) and ("," in text or "." in text) and not parse_date(text)


def looks_like_reference(value: Cell) -> bool:
    text = cell_text(value)
    if not has_digit(text) or len(text) >= 20:
        return False
    if "$" in text or parse_date(text):
        return False
    return not looks_like_currency(text)
