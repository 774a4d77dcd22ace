"""Aggregate figures over a reconciliation run (status totals and monthly pivot)."""

from __future__ import annotations

from collections import Counter
from typing import Any, Sequence

import pandas as pd

from cte_reconciler.models import (
    Category,
    MatchStatus,
    PaymentStatus,
    ReconciliationResult,
)

MONTH_LABELS = ["Jan", "Fev", "Mar", "Abr", "Mai", "Jun", "Jul", "Ago", "Set", "Out", "Nov", "Dez"]
PIVOT_CATEGORIES = (Category.ROTA, Category.PUXADA, Category.ISS, Category.ACERTO)
PIVOT_KEYS = [category.value for category in PIVOT_CATEGORIES]


def _financial_totals(results: Sequence[ReconciliationResult]) -> dict[str, Any]:
    totals = {
        "paid": 0.0, "paid_count": 0,
        "scheduled": 0.0, "scheduled_count": 0,
        "advanced": 0.0, "advanced_count": 0,
        "pending": 0.0, "pending_count": 0,
    }
    for result in results:
        value = result.record.value or 0.0
        matched = result.match_candidate
        if result.status is MatchStatus.MATCHED and matched is not None:
            if matched.status is PaymentStatus.PAID:
                totals["paid"] += value
                totals["paid_count"] += 1
            elif matched.status is PaymentStatus.SCHEDULED:
                totals["scheduled"] += value
                totals["scheduled_count"] += 1
            elif matched.status is PaymentStatus.ADVANCED:
                # Advances also count towards paid value.
                totals["advanced"] += value
                totals["advanced_count"] += 1
                totals["paid"] += value
        else:
            totals["pending"] += value
            totals["pending_count"] += 1
    return totals


def monthly_pivot(results: Sequence[ReconciliationResult]) -> list[dict[str, Any]]:
    """Per-month quantity and value by category, newest month first."""
    rows = [
        {"date": r.record.date, "category": r.record.category.value, "value": r.record.value}
        for r in results
        if r.record.date
    ]
    if not rows:
        return []

    df = pd.DataFrame(rows)
    df["date"] = pd.to_datetime(df["date"], format="%Y-%m-%d", errors="coerce")
    df = df.dropna(subset=["date"])
    if df.empty:
        return []
    df["key"] = df["date"].dt.strftime("%Y-%m")
    # Anything outside the named buckets lands in ACERTO.
    df["bucket"] = df["category"].where(df["category"].isin(PIVOT_KEYS), Category.ACERTO.value)

    grouped = df.groupby(["key", "bucket"])["value"].agg(["count", "sum"])
    pivot: list[dict[str, Any]] = []
    for key in sorted(df["key"].unique(), reverse=True):
        year, month = (int(part) for part in key.split("-"))
        entry: dict[str, Any] = {
            "key": key,
            "year": year,
            "month": month,
            "label": f"{MONTH_LABELS[month - 1]}/{str(year)[-2:]}",
        }
        for category in PIVOT_CATEGORIES:
            if (key, category.value) in grouped.index:
                count, total = grouped.loc[(key, category.value)]
                entry[category.name.lower()] = {"qty": int(count), "val": float(total)}
            else:
                entry[category.name.lower()] = {"qty": 0, "val": 0.0}
        pivot.append(entry)
    return pivot


def build_summary(results: Sequence[ReconciliationResult]) -> dict[str, Any]:
    status_counts = Counter(result.status for result in results)
    category_counts = Counter(result.record.category for result in results)
    matched_value = sum(r.record.value for r in results if r.status is MatchStatus.MATCHED)
    pending_value = sum(r.record.value for r in results if r.status is not MatchStatus.MATCHED)

    return {
        "total_internal": len(results),
        "total_matched": status_counts[MatchStatus.MATCHED],
        "total_discrepancies": status_counts[MatchStatus.DISCREPANCY],
        "total_unmatched": status_counts[MatchStatus.UNMATCHED],
        "total_manual_review": status_counts[MatchStatus.MANUAL_REVIEW],
        "total_value_matched": matched_value,
        "total_value_pending": pending_value,
        "by_category": {category.value: category_counts[category] for category in Category},
        "financial": _financial_totals(results),
        "monthly": monthly_pivot(results),
    }
