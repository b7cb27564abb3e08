# salesboard/distributor_kpi/models.py
"""
Canonical records and KPI types.

Everything here is immutable once built: ingestion produces the records,
the engine only reads them.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from datetime import date, timedelta
from typing import Any, Dict, FrozenSet, List, Mapping, Optional, Tuple

import pandas as pd

from .constants import (
    MATCH_MODES,
    MAX_MONTH_OFFSET,
    MIN_MONTH_OFFSET,
    THRESHOLD_OPERATORS,
)


def _clean(value: Any) -> str:
    if value is None:
        return ""
    return str(value).strip()


# =============================================================================
# CANONICAL ROWS
# =============================================================================

@dataclass(frozen=True)
class TransactionLine:
    """One product on one invoice or sales order."""

    document_no: str
    document_date: date
    customer_code: str = ""
    customer_name: str = ""
    sales_exec_name: str = ""
    brand_name: str = ""
    product_name: str = ""
    volume: float = 0.0
    value: float = 0.0
    master_brand_name: str = ""
    state_name: str = ""
    district_name: str = ""
    fiscal_year: str = ""
    is_current_year: bool = True
    source: str = "invoice"
    status: str = ""

    @property
    def customer_key(self) -> str:
        """Customer identity: code when present, else name."""
        return _clean(self.customer_code) or _clean(self.customer_name)

    @property
    def customer_label(self) -> str:
        return _clean(self.customer_name) or _clean(self.customer_code)

    @property
    def week(self) -> str:
        monday = self.document_date - timedelta(days=self.document_date.weekday())
        return monday.isoformat()

    def field_value(self, name: str) -> str:
        """Raw (stripped) value of a grouping field."""
        if name == "customer":
            return self.customer_key
        if name == "week":
            return self.week
        return _clean(getattr(self, name, ""))


@dataclass(frozen=True)
class CustomerRecord:
    code: str
    name: str
    assigned_sales_exec: str = ""
    city: str = ""
    address: str = ""
    phone: str = ""
    gst: str = ""
    category: str = ""


@dataclass(frozen=True)
class StockLine:
    product_code: str
    product_name: str
    quantity: float = 0.0
    pack_size: str = ""
    brand: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class Agreement:
    """Fixed-term customer volume target."""

    customer_code: str
    start_date: date
    end_date: date
    target_volume: float = 0.0
    customer_name: str = ""
    agreement_id: Optional[int] = None

    def covers(self, day: date) -> bool:
        return self.start_date <= day <= self.end_date


@dataclass(frozen=True)
class ReportWindow:
    """Half-open date range [start, end)."""

    start: date
    end: date

    def __post_init__(self):
        if self.end <= self.start:
            raise ValueError(f"Empty report window: {self.start} .. {self.end}")

    @classmethod
    def for_month(cls, month_offset: int = 0, today: Optional[date] = None) -> "ReportWindow":
        """Calendar month `month_offset` months from today's month (0 = current)."""
        if not MIN_MONTH_OFFSET <= month_offset <= MAX_MONTH_OFFSET:
            raise ValueError(
                f"month_offset must be between {MIN_MONTH_OFFSET} and {MAX_MONTH_OFFSET}"
            )
        today = today or date.today()
        index = today.year * 12 + (today.month - 1) + month_offset
        start = date(index // 12, index % 12 + 1, 1)
        index += 1
        return cls(start, date(index // 12, index % 12 + 1, 1))

    @classmethod
    def inclusive(cls, first_day: date, last_day: date) -> "ReportWindow":
        return cls(first_day, last_day + timedelta(days=1))

    def contains(self, day: date) -> bool:
        return self.start <= day < self.end

    @property
    def label(self) -> str:
        last_day = self.end - timedelta(days=1)
        if self.start.day == 1 and self.end.day == 1 and last_day.month == self.start.month:
            return self.start.strftime("%B %Y")
        return f"{self.start.isoformat()} - {last_day.isoformat()}"


# =============================================================================
# CLASSIFICATION
# =============================================================================

@dataclass(frozen=True)
class Cohort:
    """Named classification rule over one line field (brand or product name)."""

    key: str
    include_terms: FrozenSet[str] = frozenset()
    exclude_terms: FrozenSet[str] = frozenset()
    match_mode: str = "contains"
    field: str = "brand_name"

    def __post_init__(self):
        if self.match_mode not in MATCH_MODES:
            raise ValueError(f"Unknown match mode: {self.match_mode}")

    @classmethod
    def from_config(cls, key: str, data: Mapping[str, Any]) -> "Cohort":
        return cls(
            key=key,
            include_terms=frozenset(_clean(t).upper() for t in data.get("include", []) if _clean(t)),
            exclude_terms=frozenset(_clean(t).upper() for t in data.get("exclude", []) if _clean(t)),
            match_mode=data.get("match_mode", "contains"),
            field=data.get("field", "brand_name"),
        )


# =============================================================================
# KPI DEFINITIONS AND RESULTS
# =============================================================================

@dataclass(frozen=True)
class Threshold:
    op: str
    value: float

    def __post_init__(self):
        if self.op not in THRESHOLD_OPERATORS:
            raise ValueError(f"Unknown threshold operator: {self.op}")

    def applies(self, metric_value: float) -> bool:
        if self.op == ">=":
            return metric_value >= self.value
        return metric_value < self.value


@dataclass(frozen=True)
class KpiDefinition:
    """One catalog entry: classification + grouping + threshold + display metadata."""

    short_key: str
    display_name: str
    grouping_keys: Tuple[str, ...]
    metric: str = "sum"
    measure: str = "volume"
    cohort: Optional[Cohort] = None
    core_products_only: bool = False
    threshold: Optional[Threshold] = None
    distinct_field: str = "customer"
    drilldown_key: str = "customer"
    limit: Optional[int] = None
    kind: str = "aggregate"
    active: bool = True
    display_order: int = 0
    icon_name: str = ""
    unit: str = ""

    @property
    def reported_keys(self) -> Tuple[str, ...]:
        """Keys of the result rows (threshold KPIs report one level up)."""
        if self.threshold is not None:
            return self.grouping_keys[:-1]
        return self.grouping_keys

    @property
    def member_key(self) -> str:
        """Next-finer key used by drill-down."""
        if self.threshold is not None:
            return self.grouping_keys[-1]
        return self.drilldown_key


@dataclass(frozen=True)
class KpiResultRow:
    group_key_values: Tuple[str, ...]
    metric_value: float

    @property
    def label(self) -> str:
        return " | ".join(self.group_key_values)


@dataclass
class KpiResult:
    definition: KpiDefinition
    rows: List[KpiResultRow] = field(default_factory=list)

    def total(self) -> float:
        return sum(row.metric_value for row in self.rows)

    def as_dict(self) -> Dict[str, float]:
        """Map of row label -> metric value."""
        return {row.label: row.metric_value for row in self.rows}

    def find(self, group_value: str) -> Optional[KpiResultRow]:
        for row in self.rows:
            if row.label == group_value:
                return row
        return None

    def to_frame(self, rounded: bool = True) -> pd.DataFrame:
        """Presentation frame; rounding to 2 decimals happens only here."""
        columns = list(self.definition.reported_keys) + ["metric_value"]
        records = [
            list(row.group_key_values) + [row.metric_value] for row in self.rows
        ]
        df = pd.DataFrame(records, columns=columns)
        if rounded and not df.empty:
            df["metric_value"] = df["metric_value"].round(2)
        return df


@dataclass(frozen=True)
class DrilldownItem:
    label: str
    value: float
    qualified: Optional[bool] = None


@dataclass(frozen=True)
class LineItem:
    document_no: str
    document_date: date
    product_name: str
    volume: float
    value: float


@dataclass(frozen=True)
class UnbilledCustomer:
    code: str
    name: str
    sales_exec: str
    volume: float


@dataclass
class UnbilledReport:
    by_salesperson: Dict[str, int] = field(default_factory=dict)
    detail: Dict[str, List[UnbilledCustomer]] = field(default_factory=dict)

    def total(self) -> int:
        return sum(self.by_salesperson.values())


@dataclass(frozen=True)
class AgreementProgress:
    agreement: Agreement
    achieved_volume: float
    percent_achieved: float


# =============================================================================
# INGESTION RESULTS
# =============================================================================

@dataclass(frozen=True)
class RowRejection:
    row_number: int
    reason: str


@dataclass
class ImportResult:
    schema: str
    rows: List[Any] = field(default_factory=list)
    rejected: List[RowRejection] = field(default_factory=list)
    coerced: int = 0
    inserted: int = 0

    @property
    def rejected_count(self) -> int:
        return len(self.rejected)
