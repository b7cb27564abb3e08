# salesboard/distributor_kpi/__init__.py
"""
Distributor KPI Module

Brand-penetration and volume scorecards per sales executive, computed
fresh from a window-scoped snapshot on every request.

Components:
- ingestion: spreadsheet rows -> canonical records
- classification: cohort predicates (Activ, Magnatec, CRB, Autocare, Power1, core)
- metrics: grouping / threshold aggregation engine
- catalog: ordered KPI definitions (seeded or stored)
- drilldown: member and line-item detail behind a summary row
- targets: under-billed customers and agreement achievement
- access_control: salesperson scope pre-filter
- queries: row store access
- report: one report run over one snapshot
- export: formatted Excel report generation

Usage:
    from salesboard.distributor_kpi import (
        KpiReportService,
        SalesDataQueries,
        SalesExecScope,
        ReportWindow,
    )

    report = KpiReportService(SalesDataQueries(SalesExecScope(['Ravi']))).build_report(
        ReportWindow.for_month(0)
    )
"""

from .access_control import SalesExecScope
from .catalog import KpiCatalog, definition_from_dict, seed_records, validate_definition
from .classification import KNOWN_COHORTS, classify, get_cohort, is_core_product
from .drilldown import DrilldownResolver
from .exceptions import (
    AggregationCancelledError,
    EmptyImportError,
    InvalidCohortDefinitionError,
    SalesboardError,
    SchemaMismatchError,
)
from .export import KpiReportExport
from .ingestion import RowIngestor
from .metrics import KpiAggregator, PartialAggregate, aggregate_in_chunks
from .models import (
    Agreement,
    AgreementProgress,
    Cohort,
    CustomerRecord,
    DrilldownItem,
    KpiDefinition,
    KpiResult,
    KpiResultRow,
    LineItem,
    ReportWindow,
    StockLine,
    Threshold,
    TransactionLine,
    UnbilledReport,
)
from .queries import SalesDataQueries
from .report import KpiReport, KpiReportService, run_catalog
from .schema import create_tables
from .targets import overall_achievement, target, unbilled

# Constants
from .constants import (
    ALL_ACCESS,
    BILLING_THRESHOLD_LITERS,
    QUALIFICATION_THRESHOLD_LITERS,
    SEED_KPIS,
)

__all__ = [
    # Classes
    'SalesExecScope',
    'KpiCatalog',
    'DrilldownResolver',
    'KpiReportExport',
    'RowIngestor',
    'KpiAggregator',
    'PartialAggregate',
    'SalesDataQueries',
    'KpiReport',
    'KpiReportService',

    # Functions
    'definition_from_dict',
    'seed_records',
    'validate_definition',
    'classify',
    'get_cohort',
    'is_core_product',
    'aggregate_in_chunks',
    'run_catalog',
    'create_tables',
    'unbilled',
    'target',
    'overall_achievement',

    # Models
    'Agreement',
    'AgreementProgress',
    'Cohort',
    'CustomerRecord',
    'DrilldownItem',
    'KpiDefinition',
    'KpiResult',
    'KpiResultRow',
    'LineItem',
    'ReportWindow',
    'StockLine',
    'Threshold',
    'TransactionLine',
    'UnbilledReport',
    'KNOWN_COHORTS',

    # Errors
    'SalesboardError',
    'EmptyImportError',
    'SchemaMismatchError',
    'InvalidCohortDefinitionError',
    'AggregationCancelledError',

    # Constants
    'ALL_ACCESS',
    'BILLING_THRESHOLD_LITERS',
    'QUALIFICATION_THRESHOLD_LITERS',
    'SEED_KPIS',
]

__version__ = '1.0.0'
