"""
Optional free-text explanations for results that need a human look.

The explainer is any callable taking a discrepancy summary dict and
returning a sentence (for example a thin client around a language-model
service). Results are never changed by it.
"""

from __future__ import annotations

from typing import Any, Callable, Sequence

from cte_reconciler.contracts import external_to_dict, internal_to_dict
from cte_reconciler.matching import gather_candidates
from cte_reconciler.models import ExternalRecord, MatchStatus, ReconciliationResult

Explainer = Callable[[dict], str]

EXPLAINED_STATUSES = {MatchStatus.DISCREPANCY, MatchStatus.MANUAL_REVIEW}
MAX_CANDIDATES = 5


def build_discrepancy_summary(
    result: ReconciliationResult,
    candidates: Sequence[ExternalRecord],
) -> dict[str, Any]:
    return {
        "status": result.status.value,
        "notes": list(result.notes),
        "internal": internal_to_dict(result.record),
        "candidates": [external_to_dict(c) for c in candidates[:MAX_CANDIDATES]],
    }


def explain_results(
    results: Sequence[ReconciliationResult],
    external: Sequence[ExternalRecord],
    explainer: Explainer,
) -> dict[str, str]:
    """Map ``internal_id`` to explanation text for discrepancy/review results."""
    explanations: dict[str, str] = {}
    for result in results:
        if result.status not in EXPLAINED_STATUSES:
            continue
        candidates = gather_candidates(result.record, external)
        if result.match_candidate is not None and result.match_candidate not in candidates:
            candidates.insert(0, result.match_candidate)
        summary = build_discrepancy_summary(result, candidates)
        try:
            explanations[result.internal_id] = explainer(summary)
        except Exception as exc:
            explanations[result.internal_id] = f"explanation unavailable: {exc}"
    return explanations
