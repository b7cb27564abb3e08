# salesboard/distributor_kpi/access_control.py
"""
Salesperson Scope

Decides which sales executives' rows a caller may see:
- "ALL": every row
- a list of names: only rows whose salesperson is in the list

The scope is applied before aggregation, so rows for disallowed
salespeople never reach the engine.
"""

import logging
from typing import Any, Iterable, List, Mapping, Optional, Sequence, Union

import pandas as pd

from .constants import ALL_ACCESS
from .models import CustomerRecord, TransactionLine

logger = logging.getLogger(__name__)


class SalesExecScope:
    """
    Pre-filter predicate over salesperson names.

    Usage:
        scope = SalesExecScope.resolve(access_rows)   # from user-access records
        scope = SalesExecScope(['Ravi', 'Anita'])
        scope = SalesExecScope(ALL_ACCESS)

        lines = scope.filter_lines(lines)
        df = scope.filter_dataframe(df, 'sales_exec_name')
    """

    def __init__(self, allowed: Union[str, Sequence[str], None] = ALL_ACCESS):
        """
        Args:
            allowed: "ALL", or the salesperson names the caller may see
        """
        if allowed is None or allowed == ALL_ACCESS:
            self.allowed: Optional[frozenset] = None
        else:
            self.allowed = frozenset(str(name).strip() for name in allowed if str(name).strip())

    @classmethod
    def resolve(cls, access_rows: Iterable[Mapping[str, Any]]) -> "SalesExecScope":
        """
        Build a scope from user-access records.

        Each record carries 'access_type' ("ALL" or a name scope) and
        'sales_exec_name'. Any all-access record wins; no records at all
        means all-access.
        """
        rows = list(access_rows)
        if not rows:
            return cls(ALL_ACCESS)

        names = []
        for row in rows:
            if str(row.get('access_type') or '').upper() == ALL_ACCESS:
                return cls(ALL_ACCESS)
            name = row.get('sales_exec_name')
            if name:
                names.append(name)
        return cls(names)

    # =========================================================================
    # ACCESS LEVEL
    # =========================================================================

    @property
    def is_all(self) -> bool:
        return self.allowed is None

    def allows(self, sales_exec_name: str) -> bool:
        if self.allowed is None:
            return True
        return str(sales_exec_name or '').strip() in self.allowed

    def names(self) -> List[str]:
        return sorted(self.allowed) if self.allowed is not None else []

    # =========================================================================
    # DATA FILTERING
    # =========================================================================

    def filter_lines(self, lines: Iterable[TransactionLine]) -> List[TransactionLine]:
        lines = list(lines)
        if self.allowed is None:
            return lines
        filtered = [line for line in lines if self.allows(line.sales_exec_name)]
        logger.debug(f"Scope filtered lines: {len(lines)} -> {len(filtered)}")
        return filtered

    def filter_customers(self, customers: Iterable[CustomerRecord]) -> List[CustomerRecord]:
        """Customers are scoped by their assigned salesperson."""
        customers = list(customers)
        if self.allowed is None:
            return customers
        return [c for c in customers if self.allows(c.assigned_sales_exec)]

    def filter_dataframe(
        self,
        df: pd.DataFrame,
        sales_exec_col: str = 'sales_exec_name'
    ) -> pd.DataFrame:
        """
        Filter DataFrame to only include accessible salespeople.

        Args:
            df: DataFrame to filter
            sales_exec_col: Column name containing salesperson names

        Returns:
            Filtered DataFrame
        """
        if df.empty or self.allowed is None:
            return df

        if sales_exec_col not in df.columns:
            logger.warning(f"Column '{sales_exec_col}' not found in DataFrame")
            return df

        if not self.allowed:
            logger.warning("No accessible salespeople, returning empty DataFrame")
            return df.head(0)

        names = df[sales_exec_col].fillna('').astype(str).str.strip()
        filtered = df[names.isin(self.allowed)]
        logger.debug(f"Filtered DataFrame: {len(df)} -> {len(filtered)} rows")
        return filtered

    def __repr__(self) -> str:
        if self.allowed is None:
            return f"SalesExecScope('{ALL_ACCESS}')"
        return f"SalesExecScope({self.names()})"
