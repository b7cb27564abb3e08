# salesboard/distributor_kpi/report.py
"""
Report orchestration

One report run = one fresh, scope-filtered snapshot for a window, every
catalog KPI evaluated over it, plus the under-billed and agreement views.
Nothing is cached between runs.
"""

import logging
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Sequence

import pandas as pd

from salesboard.config import config
from .catalog import KpiCatalog
from .constants import BILLING_THRESHOLD_LITERS
from .drilldown import DrilldownResolver, GroupValue
from .metrics import KpiAggregator, aggregate_in_chunks, sort_rows
from .models import (
    AgreementProgress,
    CustomerRecord,
    DrilldownItem,
    KpiDefinition,
    KpiResult,
    KpiResultRow,
    LineItem,
    ReportWindow,
    TransactionLine,
    UnbilledReport,
)
from .queries import SalesDataQueries
from .targets import overall_achievement, target, unbilled

logger = logging.getLogger(__name__)


def unbilled_result(kpi: KpiDefinition, report: UnbilledReport) -> KpiResult:
    """Express the under-billed counts as ordinary KPI rows."""
    rows = [
        KpiResultRow(group_key_values=(sales_exec,), metric_value=float(count))
        for sales_exec, count in report.by_salesperson.items()
    ]
    rows = sort_rows(rows)
    if kpi.limit:
        rows = rows[:kpi.limit]
    return KpiResult(definition=kpi, rows=rows)


def billing_threshold_for(kpi: Optional[KpiDefinition]) -> float:
    if kpi is not None and kpi.threshold is not None:
        return kpi.threshold.value
    return float(config.get_app_setting("BILLING_THRESHOLD_LITERS", BILLING_THRESHOLD_LITERS))


def run_catalog(
    catalog: KpiCatalog,
    lines: Sequence[TransactionLine],
    customers: Sequence[CustomerRecord] = (),
    chunk_size: Optional[int] = None,
    should_cancel: Optional[Callable[[], bool]] = None,
    include_inactive: bool = False,
) -> "KpiReport":
    """
    Evaluate every catalog KPI over one snapshot.

    Large snapshots, or runs with a cancellation hook, are aggregated chunk
    by chunk; the result is the same either way.
    """
    chunk_size = chunk_size or config.get_app_setting("AGGREGATION_CHUNK_SIZE", 5000)
    aggregator = KpiAggregator(lines)
    chunked = should_cancel is not None or len(aggregator.lines) > chunk_size

    unbilled_kpi = next((k for k in catalog.list() if k.kind == "unbilled"), None)
    unbilled_report = unbilled(customers, aggregator.lines, billing_threshold_for(unbilled_kpi))

    definitions = catalog.list() if include_inactive else catalog.visible()
    results: Dict[str, KpiResult] = {}
    for kpi in definitions:
        if kpi.kind == "unbilled":
            results[kpi.short_key] = unbilled_result(kpi, unbilled_report)
        elif chunked:
            results[kpi.short_key] = aggregate_in_chunks(
                aggregator.lines, kpi, chunk_size=chunk_size, should_cancel=should_cancel
            )
        else:
            results[kpi.short_key] = aggregator.run(kpi)

    return KpiReport(
        catalog=catalog,
        results=results,
        unbilled=unbilled_report,
        resolver=DrilldownResolver(aggregator, unbilled_report),
    )


# =============================================================================
# REPORT
# =============================================================================

@dataclass
class KpiReport:
    """Results of one report run, with drill-down over the same snapshot."""

    catalog: KpiCatalog
    results: Dict[str, KpiResult]
    unbilled: UnbilledReport
    resolver: DrilldownResolver = field(repr=False)
    window: Optional[ReportWindow] = None
    agreements: List[AgreementProgress] = field(default_factory=list)
    agreement_resolver: Optional[DrilldownResolver] = field(default=None, repr=False)

    def get(self, short_key: str) -> Optional[KpiResult]:
        return self.results.get(short_key)

    def value(self, short_key: str, group_value: str) -> float:
        """Metric value of one row; 0.0 when the group has no row."""
        result = self.results.get(short_key)
        row = result.find(group_value) if result else None
        return row.metric_value if row else 0.0

    def drilldown(self, short_key: str, group_value: GroupValue) -> List[DrilldownItem]:
        kpi = self.catalog.get(short_key)
        if kpi is None:
            return []
        return self.resolver.drilldown(kpi, group_value)

    def line_items(self, short_key: str, group_value: GroupValue, member_value: str) -> List[LineItem]:
        kpi = self.catalog.get(short_key)
        if kpi is None:
            return []
        return self.resolver.line_items(kpi, group_value, member_value)

    @property
    def overall_achievement(self) -> float:
        return overall_achievement(self.agreements)

    def summary_frame(self) -> pd.DataFrame:
        """One row per KPI: name, unit, total across groups, row count."""
        records = []
        for short_key, result in self.results.items():
            kpi = result.definition
            records.append({
                'short_key': short_key,
                'kpi': kpi.display_name,
                'unit': kpi.unit,
                'total': round(result.total(), 2),
                'groups': len(result.rows),
            })
        return pd.DataFrame(records, columns=['short_key', 'kpi', 'unit', 'total', 'groups'])

    def agreement_frame(self) -> pd.DataFrame:
        records = [
            {
                'customer_code': p.agreement.customer_code,
                'customer_name': p.agreement.customer_name,
                'start_date': p.agreement.start_date,
                'end_date': p.agreement.end_date,
                'target_volume': p.agreement.target_volume,
                'achieved_volume': round(p.achieved_volume, 2),
                'percent_achieved': round(p.percent_achieved, 1),
            }
            for p in self.agreements
        ]
        return pd.DataFrame(records, columns=[
            'customer_code', 'customer_name', 'start_date', 'end_date',
            'target_volume', 'achieved_volume', 'percent_achieved',
        ])

    def unbilled_frame(self) -> pd.DataFrame:
        records = [
            {
                'sales_exec_name': customer.sales_exec,
                'customer_code': customer.code,
                'customer_name': customer.name,
                'volume': round(customer.volume, 2),
            }
            for sales_exec in sorted(self.unbilled.detail)
            for customer in self.unbilled.detail[sales_exec]
        ]
        return pd.DataFrame(records, columns=['sales_exec_name', 'customer_code', 'customer_name', 'volume'])


class KpiReportService:
    """
    Build reports from the row store.

    Usage:
        service = KpiReportService(SalesDataQueries(scope))
        report = service.build_report(ReportWindow.for_month(-1))

        report.get('volumeBySE').rows
        report.drilldown('power1Count', 'Ravi')
    """

    def __init__(self, queries: SalesDataQueries, catalog: Optional[KpiCatalog] = None):
        self.queries = queries
        self.catalog = catalog or KpiCatalog.from_seeds()

    def build_report(
        self,
        window: ReportWindow,
        include_agreements: bool = True,
        should_cancel: Optional[Callable[[], bool]] = None,
    ) -> KpiReport:
        lines = self.queries.get_transactions(window)
        customers = self.queries.get_customers()
        logger.info(
            f"Building report for {window.label}: {len(lines)} lines, "
            f"{len(customers)} customers, scope={self.queries.scope}"
        )

        report = run_catalog(self.catalog, lines, customers, should_cancel=should_cancel)
        report.window = window

        if include_agreements:
            agreements = self.queries.list_agreements()
            agreement_lines = self.queries.get_agreement_lines(agreements)
            report.agreements = target(agreements, agreement_lines)
            report.agreement_resolver = DrilldownResolver.from_lines(agreement_lines)

        return report
