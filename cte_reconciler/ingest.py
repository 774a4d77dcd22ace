"""
Ingestion of operational (internal) and financial (external) files.

    records = ingest_internal(data, "rota_nov.xlsx", DEFAULT_CONFIG, "ROTA")
    ledger  = ingest_external([(data, "pagos.csv", "PAGO"), ...])

Each file is decoded completely before any of its records are kept, so a
corrupt external file never leaves half of its rows behind.
"""

from __future__ import annotations

import logging
import re
import uuid
from dataclasses import dataclass, field
from typing import Iterable, Optional, Sequence, Union

from cte_reconciler.categorization import categorize
from cte_reconciler.column_detector import cell_at, infer_roles
from cte_reconciler.loader import DecodeError, decode
from cte_reconciler.models import (
    ColumnRoleMap,
    CteConfig,
    ExternalRecord,
    IngestFailure,
    InternalRecord,
    InternalSource,
    PaymentStatus,
    RawRow,
    SchemaFamily,
)
from cte_reconciler.normalization import (
    cell_text,
    normalize_identifier,
    parse_currency,
    parse_date,
)

logger = logging.getLogger(__name__)

MIN_INTERNAL_ROW_CELLS = 2
MIN_EXTERNAL_ROW_CELLS = 3
FALLBACK_REFERENCE_LENGTH = (3, 15)
CURRENCY_CELL_RE = re.compile(r"[0-9].,[0-9]")


def new_record_id() -> str:
    return str(uuid.uuid4())


def _present(cell: object) -> bool:
    """A cell the source sheet would show as filled (0 counts as empty)."""
    if cell is None or cell == "":
        return False
    if isinstance(cell, (int, float)) and not isinstance(cell, bool):
        return cell != 0
    return True


# ══════════════════════════════════════════════════════════════════════════════
# INTERNAL (operational sheets)
# ══════════════════════════════════════════════════════════════════════════════

def _internal_record(
    row: RawRow,
    row_number: int,
    roles: ColumnRoleMap,
    config: CteConfig,
    source: InternalSource,
) -> Optional[InternalRecord]:
    if len(row) < MIN_INTERNAL_ROW_CELLS:
        return None

    if roles.is_assigned("identifier"):
        identifier_cell = cell_at(row, roles.index("identifier"))
    elif roles.is_assigned("label"):
        identifier_cell = cell_at(row, roles.index("label"))
    else:
        identifier_cell = f"ROW-{row_number}"

    value = parse_currency(cell_at(row, roles.index("value")))
    date = parse_date(cell_at(row, roles.index("date")))
    identifier = normalize_identifier(identifier_cell)

    if not identifier.normalized and value == 0:
        return None

    hint = cell_text(cell_at(row, roles.index("type"))) if roles.is_assigned("type") else source.value

    return InternalRecord(
        id=new_record_id(),
        identifier_normalized=identifier.normalized,
        identifier_raw=identifier.raw or "?",
        date=date,
        value=value,
        category=categorize(value, config, hint),
        source=source,
        raw_row=tuple(row),
    )


def build_internal_records(
    rows: Sequence[RawRow],
    config: CteConfig,
    source: "InternalSource | str",
) -> list[InternalRecord]:
    """Turn decoded rows of an operational sheet into internal records."""
    source = InternalSource.coerce(source)
    if not rows:
        return []

    header_index, roles = infer_roles(rows, SchemaFamily.INTERNAL)
    # Without a header, row 0 still acts as the header row and yields no record.
    data_start = (header_index if header_index is not None else 0) + 1
    logger.debug("Internal roles %s, header row %s", roles.as_dict(), header_index)

    records = []
    for row_number, row in enumerate(rows[data_start:]):
        record = _internal_record(row, row_number, roles, config, source)
        if record is not None:
            records.append(record)
    return records


def ingest_internal(
    file_bytes: bytes,
    file_name: str,
    config: CteConfig,
    source: "InternalSource | str",
) -> list[InternalRecord]:
    """
    Decode and normalise one operational sheet.

    Raises DecodeError when the payload is unreadable; nothing is returned
    for that file in that case.
    """
    source = InternalSource.coerce(source)
    rows = decode(file_bytes, file_name)
    records = build_internal_records(rows, config, source)
    logger.info("Ingested %d internal records from %s (%s)", len(records), file_name, source.value)
    return records


# ══════════════════════════════════════════════════════════════════════════════
# EXTERNAL (financial exports)
# ══════════════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class ExternalSource:
    file_bytes: bytes
    file_name: str
    status: PaymentStatus

    def __post_init__(self) -> None:
        object.__setattr__(self, "status", PaymentStatus.coerce(self.status))


ExternalEntry = Union[ExternalSource, tuple]


@dataclass
class ExternalIngestReport:
    records: list[ExternalRecord] = field(default_factory=list)
    failures: list[IngestFailure] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.failures


def _as_source(entry: ExternalEntry) -> ExternalSource:
    if isinstance(entry, ExternalSource):
        return entry
    file_bytes, file_name, status = entry
    return ExternalSource(file_bytes, file_name, status)


def _looks_like_amount_cell(cell: object) -> bool:
    text = cell_text(cell)
    return ("R$" in text or CURRENCY_CELL_RE.search(text) is not None) and "NF" not in text


def _external_value(row: RawRow, roles: ColumnRoleMap) -> float:
    cell = cell_at(row, roles.index("value"))
    if roles.is_assigned("value") and _present(cell):
        return parse_currency(cell)
    found = next((c for c in row if _looks_like_amount_cell(c)), None)
    return parse_currency(found) if found is not None else 0.0


def _external_date(row: RawRow, roles: ColumnRoleMap) -> str:
    cell = cell_at(row, roles.index("date"))
    if roles.is_assigned("date") and _present(cell):
        return parse_date(cell)
    return next((parsed for parsed in (parse_date(c) for c in row) if parsed), "")


def _external_reference(row: RawRow, roles: ColumnRoleMap) -> str:
    ref_cell = cell_at(row, roles.index("reference"))
    if roles.is_assigned("reference") and _present(ref_cell):
        reference = normalize_identifier(ref_cell).normalized
        if reference:
            return reference

    doc_cell = cell_at(row, roles.index("document"))
    if roles.is_assigned("document") and _present(doc_cell):
        return normalize_identifier(doc_cell).normalized

    skipped = {roles.index("value"), roles.index("date"), roles.index("document")}
    shortest, longest = FALLBACK_REFERENCE_LENGTH
    for idx, cell in enumerate(row):
        if idx in skipped:
            continue
        normalized = normalize_identifier(cell).normalized
        if shortest <= len(normalized) < longest:
            return normalized
    return ""


def _external_record(
    row: RawRow,
    roles: ColumnRoleMap,
    source: ExternalSource,
) -> Optional[ExternalRecord]:
    value = _external_value(row, roles)
    reference = _external_reference(row, roles)
    if value == 0 and not reference:
        return None

    doc_cell = cell_at(row, roles.index("document"))
    if roles.is_assigned("document") and _present(doc_cell):
        document_number = cell_text(doc_cell)
    else:
        document_number = cell_text(row[0]) if row and _present(row[0]) else ""

    return ExternalRecord(
        id=new_record_id(),
        document_number=document_number,
        reference_normalized=reference,
        date=_external_date(row, roles),
        value=value,
        status=source.status,
        origin_file=source.file_name,
        raw_row=tuple(row),
    )


def build_external_records(rows: Sequence[RawRow], source: ExternalSource) -> list[ExternalRecord]:
    """Turn decoded rows of one financial export into external records."""
    valid_rows = [row for row in rows if len(row) >= MIN_EXTERNAL_ROW_CELLS]
    if not valid_rows:
        return []

    header_index, roles = infer_roles(valid_rows, SchemaFamily.EXTERNAL)
    data_start = 0 if header_index is None else header_index + 1
    logger.debug("External roles %s, header row %s (%s)", roles.as_dict(), header_index, source.file_name)

    records = []
    for row in valid_rows[data_start:]:
        record = _external_record(row, roles, source)
        if record is not None:
            records.append(record)
    return records


def ingest_external_report(entries: Iterable[ExternalEntry]) -> ExternalIngestReport:
    """
    Ingest several financial exports, accumulating records in entry order.

    An entry that fails to decode is reported in ``failures`` and contributes
    no records; the remaining entries are still ingested.
    """
    report = ExternalIngestReport()
    for entry in entries:
        source = _as_source(entry)
        try:
            rows = decode(source.file_bytes, source.file_name)
        except (DecodeError, ImportError) as exc:
            logger.warning("Skipping %s: %s", source.file_name, exc)
            report.failures.append(IngestFailure(source.file_name, str(exc)))
            continue
        records = build_external_records(rows, source)
        report.records.extend(records)
        logger.info(
            "Ingested %d external records from %s (%s)",
            len(records), source.file_name, source.status.value,
        )
    return report


def ingest_external(entries: Iterable[ExternalEntry]) -> list[ExternalRecord]:
    return ingest_external_report(entries).records
