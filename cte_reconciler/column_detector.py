"""
column_detector.py

Finds the header row of an operational or financial sheet and maps semantic
column roles onto column indices, even when headers are weak or missing.

Internal sheets (operational control spreadsheets) use roles:
    identifier, label, date, value, type
External sheets (financial exports) use roles:
    value, reference, date, document
"""

from __future__ import annotations

import logging
from collections import Counter
from typing import Callable, Optional, Sequence

from cte_reconciler.models import ColumnRoleMap, RawRow, SchemaFamily
from cte_reconciler.normalization import (
    cell_text,
    looks_like_currency,
    looks_like_date,
    looks_like_reference,
)

logger = logging.getLogger(__name__)

INTERNAL_ROLES = ("identifier", "label", "date", "value", "type")
EXTERNAL_ROLES = ("value", "reference", "date", "document")

HEADER_KEYWORDS = {
    SchemaFamily.INTERNAL: ("numero", "ct-e", "cte", "transporte"),
    SchemaFamily.EXTERNAL: ("documento", "valor", "empresa", "refer"),
}

# identifier=0, label=1, date=2, value=3
POSITIONAL_INTERNAL_ROLES = {"identifier": 0, "label": 1, "date": 2, "value": 3}
POSITIONAL_MIN_COLUMNS = 4

SHAPE_SAMPLE_ROWS = 5

HeaderPredicate = Callable[[str], bool]

INTERNAL_HEADER_HINTS: dict[str, HeaderPredicate] = {
    "identifier": lambda h: "numero" in h or "ct-e" in h or "cte" in h,
    "value": lambda h: "valor" in h or "r$" in h,
    "date": lambda h: "emiss" in h or "dt" in h or "data" in h,
    "type": lambda h: "tipo" in h or "categ" in h,
    "label": lambda h: "transporte" in h,
}

EXTERNAL_HEADER_HINTS: dict[str, HeaderPredicate] = {
    "value": lambda h: "valor" in h,
    "reference": lambda h: "refer" in h or ("ref" in h and "data" not in h),
    "date": lambda h: "data" in h and ("doc" in h or "emis" in h),
    "document": lambda h: "n" in h and "doc" in h,
}


def _family(family: "SchemaFamily | str") -> SchemaFamily:
    return family if isinstance(family, SchemaFamily) else SchemaFamily(str(family).lower())


def _header_cell_matches(cell: object, family: SchemaFamily) -> bool:
    # Operational sheets only count real text cells as header labels.
    if family is SchemaFamily.INTERNAL and not isinstance(cell, str):
        return False
    lowered = cell_text(cell).lower()
    return any(keyword in lowered for keyword in HEADER_KEYWORDS[family])


def find_header_row(rows: Sequence[RawRow], family: "SchemaFamily | str") -> Optional[int]:
    family = _family(family)
    for idx, row in enumerate(rows):
        if any(_header_cell_matches(cell, family) for cell in row):
            return idx
    return None


def _assign_by_header(header: RawRow, hints: dict[str, HeaderPredicate]) -> dict[str, Optional[int]]:
    labels = [cell_text(cell).lower() for cell in header]
    roles: dict[str, Optional[int]] = {}
    for role, matches in hints.items():
        roles[role] = next((i for i, label in enumerate(labels) if matches(label)), None)
    return roles


def score_column_shapes(rows: Sequence[RawRow]) -> list[Counter]:
    """Count date-, currency- and reference-shaped cells per column."""
    width = max((len(row) for row in rows), default=0)
    scores = [Counter() for _ in range(width)]
    for row in rows:
        for idx, cell in enumerate(row):
            if looks_like_date(cell):
                scores[idx]["date"] += 1
            if looks_like_currency(cell):
                scores[idx]["currency"] += 1
            if looks_like_reference(cell):
                scores[idx]["reference"] += 1
    return scores


def _best_column(scores: list[Counter], shape: str, claimed: set[int]) -> Optional[int]:
    best_idx: Optional[int] = None
    best = 0
    for idx, counter in enumerate(scores):
        if idx in claimed:
            continue
        if counter[shape] > best:
            best = counter[shape]
            best_idx = idx
    return best_idx


def _needs_shape_scoring(header_index: Optional[int], roles: dict[str, Optional[int]]) -> bool:
    return (
        header_index is None
        or roles["value"] is None
        or roles["date"] is None
        or (roles["reference"] is None and roles["document"] is None)
    )


def _infer_internal(rows: Sequence[RawRow]) -> tuple[Optional[int], dict[str, Optional[int]]]:
    header_index = find_header_row(rows, SchemaFamily.INTERNAL)
    roles: dict[str, Optional[int]] = dict.fromkeys(INTERNAL_ROLES)
    if header_index is not None:
        roles.update(_assign_by_header(rows[header_index], INTERNAL_HEADER_HINTS))

    reference_row = rows[header_index if header_index is not None else 0]
    if (
        roles["identifier"] is None
        and roles["value"] is None
        and len(reference_row) >= POSITIONAL_MIN_COLUMNS
    ):
        logger.debug("No usable internal header; using positional column roles")
        roles.update(POSITIONAL_INTERNAL_ROLES)
    return header_index, roles


def _infer_external(rows: Sequence[RawRow]) -> tuple[Optional[int], dict[str, Optional[int]]]:
    header_index = find_header_row(rows, SchemaFamily.EXTERNAL)
    roles: dict[str, Optional[int]] = dict.fromkeys(EXTERNAL_ROLES)
    if header_index is not None:
        roles.update(_assign_by_header(rows[header_index], EXTERNAL_HEADER_HINTS))

    if not _needs_shape_scoring(header_index, roles):
        return header_index, roles

    start = 0 if header_index is None else header_index + 1
    scores = score_column_shapes(rows[start:start + SHAPE_SAMPLE_ROWS])
    logger.debug("External header incomplete (%s); scoring column shapes", roles)

    def claimed() -> set[int]:
        return {idx for idx in roles.values() if idx is not None}

    if roles["date"] is None:
        roles["date"] = _best_column(scores, "date", claimed())
    if roles["value"] is None:
        roles["value"] = _best_column(scores, "currency", claimed())
    if roles["reference"] is None and roles["document"] is None:
        roles["reference"] = _best_column(scores, "reference", claimed())
    return header_index, roles


def infer_roles(
    rows: Sequence[RawRow],
    family: "SchemaFamily | str",
) -> tuple[Optional[int], ColumnRoleMap]:
    """
    Locate the header row and map column roles for one file.

    Returns ``(header_index, role_map)``; ``header_index`` is ``None`` when no
    header keyword was found. Unassigned roles map to ``None``.
    """
    family = _family(family)
    if not rows:
        empty = INTERNAL_ROLES if family is SchemaFamily.INTERNAL else EXTERNAL_ROLES
        return None, ColumnRoleMap(family, dict.fromkeys(empty))

    if family is SchemaFamily.INTERNAL:
        header_index, roles = _infer_internal(rows)
    else:
        header_index, roles = _infer_external(rows)
    return header_index, ColumnRoleMap(family, roles)


def cell_at(row: RawRow, index: Optional[int]) -> object:
    """Cell for a role; unassigned roles and short rows read as empty."""
    if index is None or index >= len(row):
        return ""
    return row[index]
