# salesboard/distributor_kpi/drilldown.py
"""
Drill-down Resolver

Re-runs a KPI's own classification on a narrowed slice:
- summary row -> members (next-finer key, usually customers)
- member -> line items
- agreement -> products -> invoices

Members come from KpiAggregator.group_totals, the same grouping path the
summary uses, so drill-down values always add back up to the summary.
For qualification KPIs every contributing member is listed with its full
volume and a `qualified` flag. The unbilled KPI reads its precomputed
detail instead of recomputing.
"""

import logging
from collections import defaultdict
from typing import Dict, List, Optional, Sequence, Tuple, Union

from .classification import select_lines
from .constants import UNKNOWN_LABEL
from .metrics import KpiAggregator, prepare_frame
from .models import (
    Agreement,
    DrilldownItem,
    KpiDefinition,
    LineItem,
    TransactionLine,
    UnbilledReport,
)

logger = logging.getLogger(__name__)

GroupValue = Union[str, Sequence[str]]


def _split_group(kpi: KpiDefinition, group_value: GroupValue) -> Tuple[str, ...]:
    if isinstance(group_value, str):
        if len(kpi.reported_keys) > 1:
            return tuple(part.strip() for part in group_value.split("|"))
        return (group_value.strip(),)
    return tuple(str(part).strip() for part in group_value)


def _sort_items(items: List[DrilldownItem]) -> List[DrilldownItem]:
    return sorted(items, key=lambda item: (-item.value, item.label))


class DrilldownResolver:
    """
    Drill-down over one report snapshot.

    Usage:
        resolver = DrilldownResolver(aggregator, unbilled_report)

        items = resolver.drilldown(kpi, 'Ravi')                # customers of Ravi
        lines = resolver.line_items(kpi, 'Ravi', 'C001')       # their invoice lines
        products = resolver.agreement_products(agreement)
    """

    def __init__(self, aggregator: KpiAggregator, unbilled_report: Optional[UnbilledReport] = None):
        self.aggregator = aggregator
        self.unbilled_report = unbilled_report or UnbilledReport()

    @classmethod
    def from_lines(cls, lines: Sequence[TransactionLine], unbilled_report: Optional[UnbilledReport] = None):
        return cls(KpiAggregator(lines), unbilled_report)

    # =========================================================================
    # SUMMARY -> MEMBERS
    # =========================================================================

    def drilldown(self, kpi: KpiDefinition, group_value: GroupValue) -> List[DrilldownItem]:
        """
        Per-member contributions behind one summary row.

        An unknown group returns an empty list.
        """
        if kpi.kind == "unbilled":
            return self._unbilled_detail(group_value)

        values = _split_group(kpi, group_value)
        if len(values) != len(kpi.reported_keys):
            logger.debug(f"Drill-down on {kpi.short_key}: {values} does not match {kpi.reported_keys}")
            return []

        restrict = dict(zip(kpi.reported_keys, values))
        totals = self.aggregator.group_totals(kpi, [kpi.member_key], restrict=restrict)
        if totals.empty:
            return []

        items = []
        for row in totals.to_dict(orient="records"):
            value = float(row["total"])
            qualified = kpi.threshold.applies(value) if kpi.threshold is not None else None
            items.append(DrilldownItem(label=str(row["label"]), value=value, qualified=qualified))
        return _sort_items(items)

    def _unbilled_detail(self, group_value: GroupValue) -> List[DrilldownItem]:
        key = group_value if isinstance(group_value, str) else " | ".join(group_value)
        return [
            DrilldownItem(label=customer.name or customer.code, value=customer.volume, qualified=False)
            for customer in self.unbilled_report.detail.get(key.strip(), [])
        ]

    # =========================================================================
    # MEMBER -> LINE ITEMS
    # =========================================================================

    def line_items(self, kpi: KpiDefinition, group_value: GroupValue, member_value: str) -> List[LineItem]:
        """Transaction lines of one member under one summary row."""
        values = _split_group(kpi, group_value)
        if kpi.kind == "unbilled" or len(values) != len(kpi.reported_keys):
            return []

        restrict: Dict[str, str] = dict(zip(kpi.reported_keys, values))
        restrict[kpi.member_key] = member_value.strip()

        prepared = prepare_frame(self.aggregator.df, kpi, extra_keys=list(restrict))
        for key, value in restrict.items():
            if prepared.empty:
                break
            prepared = prepared[prepared[key] == value]

        items = [
            LineItem(
                document_no=row["document_no"],
                document_date=row["document_date"],
                product_name=row["product_name"],
                volume=float(row["volume"]),
                value=float(row["value"]),
            )
            for row in prepared.to_dict(orient="records")
        ]
        return sorted(items, key=lambda item: (item.document_date, item.document_no, item.product_name))

    # =========================================================================
    # AGREEMENTS
    # =========================================================================

    def _agreement_lines(self, agreement: Agreement) -> List[TransactionLine]:
        code = agreement.customer_code.strip()
        return [
            line
            for line in select_lines(self.aggregator.lines, core_products_only=True)
            if line.customer_code.strip() == code and agreement.covers(line.document_date)
        ]

    def agreement_products(self, agreement: Agreement) -> List[DrilldownItem]:
        """Core-product volume by product for one agreement period."""
        totals: Dict[str, float] = defaultdict(float)
        for line in self._agreement_lines(agreement):
            totals[line.product_name or UNKNOWN_LABEL] += line.volume
        return _sort_items([DrilldownItem(label=name, value=vol) for name, vol in totals.items()])

    def agreement_invoices(self, agreement: Agreement, product_name: str) -> List[LineItem]:
        """Invoice lines of one product within an agreement period."""
        items = [
            LineItem(
                document_no=line.document_no,
                document_date=line.document_date,
                product_name=line.product_name,
                volume=line.volume,
                value=line.value,
            )
            for line in self._agreement_lines(agreement)
            if line.product_name == product_name
        ]
        return sorted(items, key=lambda item: (item.document_date, item.document_no))
