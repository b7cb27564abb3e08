# salesboard/distributor_kpi/metrics.py
"""
KPI Aggregation Engine

Turns classified transaction lines into per-group KPI rows:
- Cohort / core-product filtering
- Multi-key grouping with blank-key handling
- sum / count / distinctCount reduction
- Two-stage qualification (threshold on the finest key, then roll-up)
- Chunked aggregation with mergeable partial state

The same frame preparation is used by the summary and by drill-down, so
displayed totals and drill-down detail cannot drift apart.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Callable, Dict, Iterable, List, Optional, Sequence, Set, Tuple

import numpy as np
import pandas as pd

from .classification import cohort_mask, core_product_mask
from .constants import (
    CUSTOMER_FIELDS,
    UNCLASSIFIED_BRAND_LABEL,
    UNKNOWN_LABEL,
)
from .exceptions import AggregationCancelledError
from .models import Cohort, KpiDefinition, KpiResult, KpiResultRow, Threshold, TransactionLine

logger = logging.getLogger(__name__)

GroupKey = Tuple[str, ...]

LINE_COLUMNS = [
    'document_no', 'document_date', 'customer_code', 'customer_name',
    'sales_exec_name', 'brand_name', 'product_name', 'volume', 'value',
    'master_brand_name', 'state_name', 'district_name',
]


# =============================================================================
# FRAME PREPARATION
# =============================================================================

def lines_to_frame(lines: Iterable[TransactionLine]) -> pd.DataFrame:
    """Build the working frame, including derived 'customer' and 'week' keys."""
    records = [
        {
            **{col: getattr(line, col) for col in LINE_COLUMNS},
            'customer': line.customer_key,
            'customer_label': line.customer_label,
            'week': line.week,
        }
        for line in lines
    ]
    if not records:
        return pd.DataFrame(columns=LINE_COLUMNS + ['customer', 'customer_label', 'week'])

    df = pd.DataFrame.from_records(records)
    df['volume'] = df['volume'].astype(float)
    df['value'] = df['value'].astype(float)
    return df


def unknown_label_for(field_name: str) -> str:
    if field_name in ('brand_name', 'master_brand_name'):
        return UNCLASSIFIED_BRAND_LABEL
    return UNKNOWN_LABEL


def excludes_blank_keys(kpi: KpiDefinition) -> bool:
    """Qualification and distinct-customer KPIs never bucket blank keys."""
    return kpi.threshold is not None or kpi.metric == 'distinctCount'


def prepare_frame(
    df: pd.DataFrame,
    kpi: KpiDefinition,
    extra_keys: Sequence[str] = (),
) -> pd.DataFrame:
    """
    Apply the KPI's classification and normalise its grouping keys.

    Args:
        df: Working frame from lines_to_frame
        kpi: Definition supplying cohort / core filter and grouping keys
        extra_keys: Additional keys to normalise (e.g. the drill-down member key)

    Returns:
        Filtered copy whose key columns hold stripped strings; blank keys
        are either bucketed under an "Unknown" label or dropped.
    """
    if df.empty:
        return df.copy()

    mask = pd.Series(True, index=df.index)
    if kpi.cohort is not None:
        mask &= cohort_mask(df, kpi.cohort)
    if kpi.core_products_only:
        mask &= core_product_mask(df)

    scoped = df[mask].copy()
    if scoped.empty:
        return scoped

    keys = list(dict.fromkeys(list(kpi.grouping_keys) + list(extra_keys)))
    drop_blank = excludes_blank_keys(kpi)

    if kpi.metric == 'distinctCount' and kpi.distinct_field not in keys:
        keys.append(kpi.distinct_field)

    for key in keys:
        values = scoped[key].fillna('').astype(str).str.strip()
        blank = values == ''
        if drop_blank and (key in kpi.grouping_keys or key in CUSTOMER_FIELDS or key == kpi.distinct_field):
            scoped = scoped[~blank]
            values = values[~blank]
        else:
            values = values.where(~blank, unknown_label_for(key))
        scoped[key] = values

    return scoped


# =============================================================================
# PARTIAL (MERGEABLE) STATE
# =============================================================================

@dataclass
class PartialAggregate:
    """
    Per-finest-group state that can be merged across chunks.

    sums/counts are additive; members holds identity sets so distinct counts
    stay exact when shards overlap.
    """

    sums: Dict[GroupKey, float] = field(default_factory=dict)
    counts: Dict[GroupKey, int] = field(default_factory=dict)
    members: Dict[GroupKey, Set[str]] = field(default_factory=dict)

    @classmethod
    def from_frame(cls, prepared: pd.DataFrame, kpi: KpiDefinition) -> "PartialAggregate":
        partial = cls()
        if prepared.empty:
            return partial

        keys = list(kpi.grouping_keys)
        grouped = prepared.groupby(keys, sort=False, dropna=False)

        for group_key, total in grouped[kpi.measure].sum().items():
            partial.sums[_as_key(group_key)] = float(total)
        for group_key, size in grouped.size().items():
            partial.counts[_as_key(group_key)] = int(size)
        if kpi.metric == 'distinctCount':
            for group_key, members in grouped[kpi.distinct_field].agg(set).items():
                partial.members[_as_key(group_key)] = set(members)

        return partial

    def merge(self, other: "PartialAggregate") -> "PartialAggregate":
        merged = PartialAggregate(
            sums=dict(self.sums),
            counts=dict(self.counts),
            members={k: set(v) for k, v in self.members.items()},
        )
        for key, total in other.sums.items():
            merged.sums[key] = merged.sums.get(key, 0.0) + total
        for key, size in other.counts.items():
            merged.counts[key] = merged.counts.get(key, 0) + size
        for key, members in other.members.items():
            merged.members.setdefault(key, set()).update(members)
        return merged

    def finalize(self, kpi: KpiDefinition) -> List[KpiResultRow]:
        """Apply threshold / roll-up, then sort and cut."""
        if kpi.threshold is not None:
            values = _qualified_rollup(self.sums, kpi)
        elif kpi.metric == 'sum':
            values = dict(self.sums)
        elif kpi.metric == 'count':
            values = {key: float(size) for key, size in self.counts.items()}
        else:
            values = {key: float(len(members)) for key, members in self.members.items()}

        rows = [KpiResultRow(group_key_values=key, metric_value=value) for key, value in values.items()]
        rows = sort_rows(rows)
        if kpi.limit:
            rows = rows[:kpi.limit]
        return rows


def _as_key(group_key) -> GroupKey:
    if isinstance(group_key, tuple):
        return tuple(str(part) for part in group_key)
    return (str(group_key),)


def _qualified_rollup(sums: Dict[GroupKey, float], kpi: KpiDefinition) -> Dict[GroupKey, float]:
    """Stage two of the qualification pattern."""
    threshold: Threshold = kpi.threshold
    rolled: Dict[GroupKey, float] = {}
    for key, total in sums.items():
        if not threshold.applies(total):
            continue
        parent = key[:-1]
        if kpi.metric == 'sum':
            rolled[parent] = rolled.get(parent, 0.0) + total
        else:
            # count and distinctCount both count surviving finer groups
            rolled[parent] = rolled.get(parent, 0.0) + 1.0
    return rolled


def sort_rows(rows: List[KpiResultRow]) -> List[KpiResultRow]:
    """Descending by metric value, ties broken by group key ascending."""
    return sorted(rows, key=lambda row: (-row.metric_value, row.group_key_values))


# =============================================================================
# AGGREGATOR
# =============================================================================

class KpiAggregator:
    """
    KPI calculations over one window-scoped snapshot of transaction lines.

    Usage:
        aggregator = KpiAggregator(lines)

        result = aggregator.run(kpi_definition)
        rows = aggregator.aggregate(['brand_name'], 'sum')
        totals = aggregator.group_totals(kpi_definition, ['sales_exec_name', 'customer'])
    """

    def __init__(self, lines: Sequence[TransactionLine]):
        """
        Initialize with data.

        Args:
            lines: Canonical transaction lines, already scope-filtered
        """
        self.lines = list(lines)
        self.df = lines_to_frame(self.lines)

    # =========================================================================
    # CATALOG-DRIVEN
    # =========================================================================

    def run(self, kpi: KpiDefinition) -> KpiResult:
        """Evaluate one catalog definition."""
        prepared = prepare_frame(self.df, kpi)
        rows = PartialAggregate.from_frame(prepared, kpi).finalize(kpi)
        logger.debug(f"KPI {kpi.short_key}: {len(prepared)} lines -> {len(rows)} rows")
        return KpiResult(definition=kpi, rows=rows)

    def aggregate(
        self,
        grouping_keys: Sequence[str],
        metric: str,
        cohort: Optional[Cohort] = None,
        threshold: Optional[Threshold] = None,
        measure: str = 'volume',
        core_products_only: bool = False,
        distinct_field: str = 'customer',
        limit: Optional[int] = None,
    ) -> List[KpiResultRow]:
        """Ad-hoc aggregation without a catalog entry."""
        kpi = KpiDefinition(
            short_key='adhoc',
            display_name='adhoc',
            grouping_keys=tuple(grouping_keys),
            metric=metric,
            measure=measure,
            cohort=cohort,
            core_products_only=core_products_only,
            threshold=threshold,
            distinct_field=distinct_field,
            limit=limit,
        )
        return self.run(kpi).rows

    # =========================================================================
    # GROUP TOTALS (shared with drill-down)
    # =========================================================================

    def group_totals(
        self,
        kpi: KpiDefinition,
        keys: Sequence[str],
        restrict: Optional[Dict[str, str]] = None,
    ) -> pd.DataFrame:
        """
        Sum the KPI's measure by arbitrary keys under the KPI's own filters.

        Args:
            kpi: Definition whose cohort / core / blank-key rules apply
            keys: Keys to group by
            restrict: Optional {key: value} equality filter applied after
                key normalisation

        Returns:
            DataFrame with the key columns, 'total', 'lines' and 'label'
        """
        restrict = restrict or {}
        extra = list(keys) + list(restrict.keys())
        prepared = prepare_frame(self.df, kpi, extra_keys=extra)

        for key, value in restrict.items():
            if prepared.empty:
                break
            prepared = prepared[prepared[key] == value]

        if prepared.empty:
            return pd.DataFrame(columns=list(keys) + ['total', 'lines', 'label'])

        totals = prepared.groupby(list(keys), sort=False).agg(
            total=(kpi.measure, 'sum'),
            lines=(kpi.measure, 'size'),
            label=('customer_label', 'first'),
        ).reset_index()

        if 'customer' not in keys:
            totals['label'] = totals[list(keys)[-1]]
        else:
            labels = totals['label'].fillna('').astype(str).str.strip()
            totals['label'] = np.where(labels == '', totals['customer'], labels)

        return totals

    def total(self, measure: str = 'volume') -> float:
        """Unfiltered total of a measure across the snapshot."""
        if self.df.empty:
            return 0.0
        return float(self.df[measure].sum())


# =============================================================================
# CHUNKED AGGREGATION
# =============================================================================

def aggregate_in_chunks(
    lines: Sequence[TransactionLine],
    kpi: KpiDefinition,
    chunk_size: int = 5000,
    should_cancel: Optional[Callable[[], bool]] = None,
) -> KpiResult:
    """
    Evaluate a KPI shard by shard and merge partial states.

    The result does not depend on chunk boundaries. When should_cancel()
    returns True the partial state is discarded and
    AggregationCancelledError is raised.
    """
    if chunk_size <= 0:
        raise ValueError("chunk_size must be positive")

    merged = PartialAggregate()
    for start in range(0, len(lines), chunk_size):
        if should_cancel is not None and should_cancel():
            logger.info(f"Aggregation of {kpi.short_key} cancelled at line {start}")
            raise AggregationCancelledError(f"Aggregation of {kpi.short_key} cancelled")

        chunk = lines_to_frame(lines[start:start + chunk_size])
        prepared = prepare_frame(chunk, kpi)
        merged = merged.merge(PartialAggregate.from_frame(prepared, kpi))

    return KpiResult(definition=kpi, rows=merged.finalize(kpi))
