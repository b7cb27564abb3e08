# salesboard/distributor_kpi/targets.py
"""
Under-billed and Target-vs-Achieved Resolvers

Both join a master list (customers / agreements) against core-product
volume per customer code:
- unbilled(): customers whose window volume is below the billing threshold,
  attributed to the customer master's assigned salesperson
- target(): percent-of-target per fixed-term agreement
"""

import logging
from collections import defaultdict
from typing import Dict, Iterable, List, Sequence

from .classification import select_lines
from .constants import BILLING_THRESHOLD_LITERS
from .models import (
    Agreement,
    AgreementProgress,
    CustomerRecord,
    TransactionLine,
    UnbilledCustomer,
    UnbilledReport,
)

logger = logging.getLogger(__name__)


def core_volume_by_customer(lines: Iterable[TransactionLine]) -> Dict[str, float]:
    """Core-product volume summed per customer code (blank codes ignored)."""
    totals: Dict[str, float] = defaultdict(float)
    for line in select_lines(lines, core_products_only=True):
        code = line.customer_code.strip()
        if code:
            totals[code] += line.volume
    return dict(totals)


# =============================================================================
# UNDER-BILLED
# =============================================================================

def unbilled(
    customers: Iterable[CustomerRecord],
    lines: Iterable[TransactionLine],
    threshold: float = BILLING_THRESHOLD_LITERS,
) -> UnbilledReport:
    """
    Flag customers whose core-product volume is strictly below `threshold`.

    Customers with no transactions in the window count (0 < threshold).
    Customers without a code or without an assigned salesperson are skipped.

    Returns:
        UnbilledReport with per-salesperson counts and per-salesperson detail
        ordered by volume then name
    """
    volumes = core_volume_by_customer(lines)
    report = UnbilledReport()
    skipped = 0

    for customer in customers:
        code = customer.code.strip()
        sales_exec = customer.assigned_sales_exec.strip()
        if not code or not sales_exec:
            skipped += 1
            continue

        volume = volumes.get(code, 0.0)
        if volume >= threshold:
            continue

        report.detail.setdefault(sales_exec, []).append(
            UnbilledCustomer(code=code, name=customer.name, sales_exec=sales_exec, volume=volume)
        )

    for sales_exec, rows in report.detail.items():
        rows.sort(key=lambda c: (c.volume, c.name, c.code))
        report.by_salesperson[sales_exec] = len(rows)

    if skipped:
        logger.warning(f"Unbilled check skipped {skipped} customers without code or sales executive")
    logger.debug(f"Unbilled customers: {report.total()} across {len(report.by_salesperson)} salespeople")
    return report


# =============================================================================
# TARGET VS ACHIEVED
# =============================================================================

def percent_of(achieved: float, target_volume: float) -> float:
    if not target_volume:
        return 0.0
    return achieved / target_volume * 100


def target(
    agreements: Iterable[Agreement],
    lines: Sequence[TransactionLine],
) -> List[AgreementProgress]:
    """
    Achieved core-product volume per agreement within [start_date, end_date].

    A zero target yields 0%, not an error.
    """
    core_lines = select_lines(lines, core_products_only=True)
    by_code: Dict[str, List[TransactionLine]] = defaultdict(list)
    for line in core_lines:
        by_code[line.customer_code.strip()].append(line)

    progress = []
    for agreement in agreements:
        achieved = sum(
            line.volume
            for line in by_code.get(agreement.customer_code.strip(), [])
            if agreement.covers(line.document_date)
        )
        progress.append(AgreementProgress(
            agreement=agreement,
            achieved_volume=achieved,
            percent_achieved=percent_of(achieved, agreement.target_volume),
        ))
    return progress


def overall_achievement(progress: Iterable[AgreementProgress]) -> float:
    """Total achieved / total target x 100 (0 when there is no target)."""
    progress = list(progress)
    total_target = sum(p.agreement.target_volume for p in progress)
    total_achieved = sum(p.achieved_volume for p in progress)
    return percent_of(total_achieved, total_target)
