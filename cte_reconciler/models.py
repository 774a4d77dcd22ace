"""Record types shared by ingestion, matching and reporting.

Every record is a frozen dataclass: ingestion builds it once and nothing
downstream mutates it. A raw cell is one of three shapes: text (``str``),
a number (``int``/``float``) or empty (``""``).
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Mapping, Optional, Union

Cell = Union[str, int, float]
RawRow = list
ConfirmedOverrideMap = Mapping[str, str]


class Category(str, Enum):
    ROTA = "ROTA"
    PUXADA = "PUXADA"
    ISS = "ISS"
    ACERTO = "ACERTO"
    UNKNOWN = "DESCONHECIDO"


class MatchStatus(str, Enum):
    MATCHED = "MATCHED"
    UNMATCHED = "UNMATCHED"
    DISCREPANCY = "DISCREPANCY"
    MANUAL_REVIEW = "MANUAL_REVIEW"


class InternalSource(str, Enum):
    ROTA = "ROTA"
    PUXADA = "PUXADA"

    @classmethod
    def coerce(cls, value: "InternalSource | str") -> "InternalSource":
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().upper())
        except ValueError:
            raise ValueError(
                f"Unknown internal source {value!r}; expected one of {[s.value for s in cls]}"
            ) from None


class PaymentStatus(str, Enum):
    """Financial status of an external entry; values are the export labels."""

    PAID = "PAGO"
    SCHEDULED = "A PAGAR"
    ADVANCED = "ADIANTADO"

    @classmethod
    def coerce(cls, value: "PaymentStatus | str") -> "PaymentStatus":
        if isinstance(value, cls):
            return value
        text = " ".join(str(value).strip().upper().split())
        for member in cls:
            if text in (member.value, member.name):
                return member
        raise ValueError(
            f"Unknown payment status {value!r}; expected one of {[s.value for s in cls]}"
        )


class SchemaFamily(str, Enum):
    INTERNAL = "internal"
    EXTERNAL = "external"


@dataclass(frozen=True)
class CteConfig:
    """Caller-owned thresholds; only categorization reads them."""

    fixed_route_value: float = 1350.00
    common_haul_values: frozenset = field(default_factory=lambda: frozenset({3150.00, 6300.00}))
    haul_max_threshold: float = 10000.00

    def __post_init__(self) -> None:
        object.__setattr__(
            self,
            "common_haul_values",
            frozenset(float(v) for v in self.common_haul_values),
        )


DEFAULT_CONFIG = CteConfig()


@dataclass(frozen=True)
class ColumnRoleMap:
    family: SchemaFamily
    roles: Mapping[str, Optional[int]]

    def __post_init__(self) -> None:
        object.__setattr__(self, "roles", MappingProxyType(dict(self.roles)))

    def index(self, role: str) -> Optional[int]:
        return self.roles.get(role)

    def is_assigned(self, role: str) -> bool:
        return self.roles.get(role) is not None

    def as_dict(self) -> dict[str, Optional[int]]:
        return dict(self.roles)


@dataclass(frozen=True)
class Identifier:
    raw: str
    normalized: str


@dataclass(frozen=True)
class InternalRecord:
    id: str
    identifier_normalized: str
    identifier_raw: str
    date: str
    value: float
    category: Category
    source: InternalSource
    raw_row: tuple = ()

    @property
    def needs_review(self) -> bool:
        return self.value > 0 and (not self.identifier_normalized or not self.date)


@dataclass(frozen=True)
class ExternalRecord:
    id: str
    document_number: str
    reference_normalized: str
    date: str
    value: float
    status: PaymentStatus
    origin_file: str
    raw_row: tuple = ()


@dataclass(frozen=True)
class ReconciliationResult:
    internal_id: str
    status: MatchStatus
    record: InternalRecord
    external_id: Optional[str] = None
    match_candidate: Optional[ExternalRecord] = None
    notes: tuple = ()


@dataclass(frozen=True)
class IngestFailure:
    file_name: str
    message: str
