from __future__ import annotations

from typing import Optional

from cte_reconciler.models import Category, CteConfig

VALUE_TOLERANCE = 1.0

# Checked in this order; the first keyword found in the hint wins.
HINT_KEYWORDS = (
    ("ROTA", Category.ROTA),
    ("PUXADA", Category.PUXADA),
    ("ISS", Category.ISS),
    ("ACERTO", Category.ACERTO),
)


def category_from_hint(hint: Optional[str]) -> Optional[Category]:
    if not hint:
        return None
    upper = str(hint).upper()
    for keyword, category in HINT_KEYWORDS:
        if keyword in upper:
            return category
    return None


def categorize(value: float, config: CteConfig, explicit_hint: Optional[str] = None) -> Category:
    """
    Classify an internal record.

    An explicit type hint wins outright. Otherwise the value is compared with
    the configured route and haul amounts. ISS has no value rule and is only
    reachable through the hint.
    """
    hinted = category_from_hint(explicit_hint)
    if hinted is not None:
        return hinted

    if abs(value - config.fixed_route_value) < VALUE_TOLERANCE:
        return Category.ROTA
    if any(abs(value - haul) < VALUE_TOLERANCE for haul in config.common_haul_values):
        return Category.PUXADA
    if value <= config.haul_max_threshold:
        return Category.PUXADA
    if value > config.haul_max_threshold:
        return Category.ACERTO
    return Category.ISS
