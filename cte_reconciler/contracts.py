"""Shared versioned contracts for machine-readable reconciliation output."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

from cte_reconciler.models import (
    ExternalRecord,
    InternalRecord,
    MatchStatus,
    ReconciliationResult,
)

CONTRACT_VERSIONS = {
    "cte_reconciler.reconcile": "1.0.0",
    "cte_reconciler.inspect": "1.0.0",
}

STATUS_LABELS = {
    MatchStatus.DISCREPANCY: "DIVERGENTE",
    MatchStatus.MANUAL_REVIEW: "REVISÃO",
    MatchStatus.UNMATCHED: "PENDENTE",
}


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).replace(microsecond=0).isoformat().replace("+00:00", "Z")


def build_contract(name: str) -> dict[str, str]:
    version = CONTRACT_VERSIONS[name]
    return {"name": name, "version": version}


def build_run_summary(
    *,
    tool: str,
    command: str,
    input_files: list[str],
    status: str = "ok",
    output_path: str | None = None,
    metrics: dict[str, Any] | None = None,
    warnings: list[str] | None = None,
) -> dict[str, Any]:
    return {
        "tool": tool,
        "command": command,
        "status": status,
        "generated_at": utc_now_iso(),
        "input_files": list(input_files),
        "output_file": output_path,
        "warnings_count": len(warnings or []),
        "warnings": list(warnings or []),
        "metrics": metrics or {},
    }


def display_status(result: ReconciliationResult) -> str:
    """Label shown to finance users; matched rows show the payment status."""
    if result.status is MatchStatus.MATCHED:
        return result.match_candidate.status.value if result.match_candidate else "PAGO"
    return STATUS_LABELS[result.status]


def internal_to_dict(record: InternalRecord) -> dict[str, Any]:
    return {
        "id": record.id,
        "identifier": record.identifier_normalized,
        "identifier_raw": record.identifier_raw,
        "date": record.date,
        "value": record.value,
        "category": record.category.value,
        "source": record.source.value,
        "needs_review": record.needs_review,
    }


def external_to_dict(record: ExternalRecord) -> dict[str, Any]:
    return {
        "id": record.id,
        "document_number": record.document_number,
        "reference": record.reference_normalized,
        "date": record.date,
        "value": record.value,
        "status": record.status.value,
        "origin_file": record.origin_file,
    }


def result_to_dict(result: ReconciliationResult) -> dict[str, Any]:
    matched = result.match_candidate
    return {
        "internal_id": result.internal_id,
        "external_id": result.external_id,
        "status": result.status.value,
        "display_status": display_status(result),
        "identifier": result.record.identifier_raw,
        "date": result.record.date,
        "category": result.record.category.value,
        "value": result.record.value,
        "matched_reference": matched.reference_normalized if matched else None,
        "matched_value": matched.value if matched else None,
        "matched_date": matched.date if matched else None,
        "origin_file": matched.origin_file if matched else None,
        "notes": list(result.notes),
    }
