"""Freight-document (CT-e) ingestion and reconciliation engine."""

__version__ = "0.3.0"

from cte_reconciler.categorization import categorize
from cte_reconciler.column_detector import infer_roles
from cte_reconciler.ingest import ingest_external, ingest_internal
from cte_reconciler.loader import DecodeError, decode
from cte_reconciler.matching import reconcile
from cte_reconciler.models import (
    DEFAULT_CONFIG,
    Category,
    CteConfig,
    ExternalRecord,
    InternalRecord,
    InternalSource,
    MatchStatus,
    PaymentStatus,
    ReconciliationResult,
)
from cte_reconciler.normalization import normalize_identifier, parse_currency, parse_date

__all__ = [
    "__version__",
    "categorize",
    "infer_roles",
    "ingest_external",
    "ingest_internal",
    "DecodeError",
    "decode",
    "reconcile",
    "DEFAULT_CONFIG",
    "Category",
    "CteConfig",
    "ExternalRecord",
    "InternalRecord",
    "InternalSource",
    "MatchStatus",
    "PaymentStatus",
    "ReconciliationResult",
    "normalize_identifier",
    "parse_currency",
    "parse_date",
]
