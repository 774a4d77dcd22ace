"""
Reconciliation engine.

Links each internal freight record to at most one financial entry using a
fixed precedence: confirmed override, incomplete data, exact identifier,
suffix identifier with equal value. Candidates are taken in ingestion
order and the first one satisfying a rule wins.
"""

from __future__ import annotations

from typing import Mapping, Optional, Sequence

from cte_reconciler.models import (
    ConfirmedOverrideMap,
    ExternalRecord,
    InternalRecord,
    MatchStatus,
    ReconciliationResult,
)

VALUE_EPSILON = 0.05
MIN_SUFFIX_LENGTH = 3

NOTE_MANUAL_LINK = "manually confirmed link"
NOTE_INCOMPLETE = "incomplete or invalid data (date/identifier)"


def values_agree(a: float, b: float) -> bool:
    return abs(a - b) < VALUE_EPSILON


def identifiers_related(identifier: str, reference: str) -> bool:
    """Equal, or one is a suffix of the other and the shorter has 3+ digits."""
    if not identifier or not reference:
        return False
    if identifier == reference:
        return True
    if min(len(identifier), len(reference)) < MIN_SUFFIX_LENGTH:
        return False
    return identifier.endswith(reference) or reference.endswith(identifier)


def gather_candidates(
    record: InternalRecord,
    external: Sequence[ExternalRecord],
) -> list[ExternalRecord]:
    return [
        ext for ext in external
        if identifiers_related(record.identifier_normalized, ext.reference_normalized)
    ]


def discrepancy_note(record: InternalRecord, ext: ExternalRecord) -> str:
    return (
        f"identifier found but values differ: sheet R${record.value:.2f} "
        f"vs statement R${ext.value:.2f}"
    )


def suggestion_note(ext: ExternalRecord) -> str:
    return f"suggested partial-identifier match with equal value ({ext.reference_normalized})"


def _result(
    record: InternalRecord,
    status: MatchStatus,
    ext: Optional[ExternalRecord] = None,
    *notes: str,
) -> ReconciliationResult:
    return ReconciliationResult(
        internal_id=record.id,
        status=status,
        record=record,
        external_id=ext.id if ext is not None else None,
        match_candidate=ext,
        notes=tuple(notes),
    )


def reconcile_record(
    record: InternalRecord,
    external: Sequence[ExternalRecord],
    external_by_id: Mapping[str, ExternalRecord],
    overrides: ConfirmedOverrideMap,
) -> ReconciliationResult:
    confirmed_id = overrides.get(record.id)
    if confirmed_id is not None and confirmed_id in external_by_id:
        return _result(record, MatchStatus.MATCHED, external_by_id[confirmed_id], NOTE_MANUAL_LINK)

    if record.needs_review:
        return _result(record, MatchStatus.MANUAL_REVIEW, None, NOTE_INCOMPLETE)

    candidates = gather_candidates(record, external)
    if not candidates:
        return _result(record, MatchStatus.UNMATCHED)

    exact = next(
        (c for c in candidates if c.reference_normalized == record.identifier_normalized),
        None,
    )
    if exact is not None:
        if values_agree(exact.value, record.value):
            return _result(record, MatchStatus.MATCHED, exact)
        return _result(record, MatchStatus.DISCREPANCY, exact, discrepancy_note(record, exact))

    partial = next((c for c in candidates if values_agree(c.value, record.value)), None)
    if partial is not None:
        return _result(record, MatchStatus.MANUAL_REVIEW, partial, suggestion_note(partial))

    return _result(record, MatchStatus.UNMATCHED)


def reconcile(
    internal: Sequence[InternalRecord],
    external: Sequence[ExternalRecord],
    overrides: Optional[ConfirmedOverrideMap] = None,
) -> list[ReconciliationResult]:
    """
    Produce one result per internal record, in input order.

    Pure: nothing is cached between calls and no input is modified. Cost is
    a linear scan of ``external`` per internal record.
    """
    overrides = overrides or {}
    external_by_id: dict[str, ExternalRecord] = {}
    for ext in external:
        # Duplicate ids resolve to the first ingested entry.
        external_by_id.setdefault(ext.id, ext)
    return [reconcile_record(rec, external, external_by_id, overrides) for rec in internal]
