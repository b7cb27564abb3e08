# salesboard/distributor_kpi/queries.py
"""
SQL Queries and Data Loading for Distributor KPIs

Handles all database interactions:
- Bulk inserts from the row ingestor (batched, replace-on-upload where needed)
- Window-scoped transaction snapshots for report runs
- Customer master and agreement records
- Lookups (invoice search, master search, last 7 days, stock, open orders)
- Dataset clearing

All transaction and customer reads respect the salesperson scope.
"""

import logging
from datetime import date, timedelta
from typing import Any, Dict, List, Mapping, Optional, Sequence

import pandas as pd
from sqlalchemy import bindparam, text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError

from salesboard.config import config
from salesboard.db import get_db_engine, get_transaction
from .access_control import SalesExecScope
from .constants import INSERT_BATCH_SIZE, RECENT_INVOICE_DAYS, REPLACE_ON_UPLOAD
from .ingestion import coerce_date, coerce_number, coerce_text
from .models import (
    Agreement,
    CustomerRecord,
    ImportResult,
    ReportWindow,
    StockLine,
    TransactionLine,
)

logger = logging.getLogger(__name__)


INVOICE_SELECT = """
    SELECT
        invoice_no, invoice_date, customer_code, customer_name, sales_exec_name,
        master_brand_name, product_brand_name, product_name, product_volume,
        total_value, state_name, district_name, fiscal_year, is_current_year
    FROM invoices
"""

INSERT_SQL = {
    'invoice': """
        INSERT INTO invoices (
            invoice_no, invoice_date, customer_code, customer_name, sales_exec_name,
            master_brand_name, product_brand_name, product_name, product_volume,
            total_value, state_name, district_name, fiscal_year, is_current_year
        ) VALUES (
            :invoice_no, :invoice_date, :customer_code, :customer_name, :sales_exec_name,
            :master_brand_name, :product_brand_name, :product_name, :product_volume,
            :total_value, :state_name, :district_name, :fiscal_year, :is_current_year
        )
    """,
    'order': """
        INSERT INTO open_orders (
            so_no, so_date, customer_code, customer_name, dsr_name,
            product_name, quantity, status
        ) VALUES (
            :so_no, :so_date, :customer_code, :customer_name, :dsr_name,
            :product_name, :quantity, :status
        )
    """,
    'stock': """
        INSERT INTO stock (product_code, product_name, quantity, pack_size, brand)
        VALUES (:product_code, :product_name, :quantity, :pack_size, :brand)
    """,
    'customer': """
        INSERT INTO customers (
            customer_code, customer_name, sales_executive, city,
            address, phone, gst, category
        ) VALUES (
            :customer_code, :customer_name, :sales_executive, :city,
            :address, :phone, :gst, :category
        )
    """,
    'agreement': """
        INSERT INTO wbc_agreements (
            customer_code, customer_name, start_date, end_date, target_volume
        ) VALUES (
            :customer_code, :customer_name, :start_date, :end_date, :target_volume
        )
    """,
}

DATASET_TABLES = {
    'invoice': 'invoices',
    'order': 'open_orders',
    'stock': 'stock',
    'customer': 'customers',
    'agreement': 'wbc_agreements',
}


# =============================================================================
# ROW <-> RECORD CONVERSION
# =============================================================================

def _iso(day: date) -> str:
    return day.isoformat()


def invoice_params(line: TransactionLine) -> Dict[str, Any]:
    return {
        'invoice_no': line.document_no,
        'invoice_date': _iso(line.document_date),
        'customer_code': line.customer_code,
        'customer_name': line.customer_name,
        'sales_exec_name': line.sales_exec_name,
        'master_brand_name': line.master_brand_name,
        'product_brand_name': line.brand_name,
        'product_name': line.product_name,
        'product_volume': line.volume,
        'total_value': line.value,
        'state_name': line.state_name,
        'district_name': line.district_name,
        'fiscal_year': line.fiscal_year,
        'is_current_year': line.is_current_year,
    }


def order_params(line: TransactionLine) -> Dict[str, Any]:
    return {
        'so_no': line.document_no,
        'so_date': _iso(line.document_date),
        'customer_code': line.customer_code,
        'customer_name': line.customer_name,
        'dsr_name': line.sales_exec_name,
        'product_name': line.product_name,
        'quantity': line.volume,
        'status': line.status,
    }


def customer_params(customer: CustomerRecord) -> Dict[str, Any]:
    return {
        'customer_code': customer.code,
        'customer_name': customer.name,
        'sales_executive': customer.assigned_sales_exec,
        'city': customer.city,
        'address': customer.address,
        'phone': customer.phone,
        'gst': customer.gst,
        'category': customer.category,
    }


def agreement_params(agreement: Agreement) -> Dict[str, Any]:
    return {
        'customer_code': agreement.customer_code,
        'customer_name': agreement.customer_name,
        'start_date': _iso(agreement.start_date),
        'end_date': _iso(agreement.end_date),
        'target_volume': agreement.target_volume,
    }


PARAM_BUILDERS = {
    'invoice': invoice_params,
    'order': order_params,
    'stock': lambda s: s.to_dict(),
    'customer': customer_params,
    'agreement': agreement_params,
}


def invoice_from_row(row: Mapping[str, Any]) -> TransactionLine:
    return TransactionLine(
        document_no=coerce_text(row.get('invoice_no')),
        document_date=coerce_date(row.get('invoice_date')),
        customer_code=coerce_text(row.get('customer_code')),
        customer_name=coerce_text(row.get('customer_name')),
        sales_exec_name=coerce_text(row.get('sales_exec_name')),
        brand_name=coerce_text(row.get('product_brand_name')),
        product_name=coerce_text(row.get('product_name')),
        volume=coerce_number(row.get('product_volume'))[0],
        value=coerce_number(row.get('total_value'))[0],
        master_brand_name=coerce_text(row.get('master_brand_name')),
        state_name=coerce_text(row.get('state_name')),
        district_name=coerce_text(row.get('district_name')),
        fiscal_year=coerce_text(row.get('fiscal_year')),
        is_current_year=bool(row.get('is_current_year')),
        source='invoice',
    )


def order_from_row(row: Mapping[str, Any]) -> TransactionLine:
    return TransactionLine(
        document_no=coerce_text(row.get('so_no')),
        document_date=coerce_date(row.get('so_date')),
        customer_code=coerce_text(row.get('customer_code')),
        customer_name=coerce_text(row.get('customer_name')),
        sales_exec_name=coerce_text(row.get('dsr_name')),
        product_name=coerce_text(row.get('product_name')),
        volume=coerce_number(row.get('quantity'))[0],
        source='order',
        status=coerce_text(row.get('status')),
    )


def customer_from_row(row: Mapping[str, Any]) -> CustomerRecord:
    return CustomerRecord(
        code=coerce_text(row.get('customer_code')),
        name=coerce_text(row.get('customer_name')),
        assigned_sales_exec=coerce_text(row.get('sales_executive')),
        city=coerce_text(row.get('city')),
        address=coerce_text(row.get('address')),
        phone=coerce_text(row.get('phone')),
        gst=coerce_text(row.get('gst')),
        category=coerce_text(row.get('category')),
    )


def agreement_from_row(row: Mapping[str, Any]) -> Agreement:
    return Agreement(
        agreement_id=int(row['id']) if row.get('id') is not None else None,
        customer_code=coerce_text(row.get('customer_code')),
        customer_name=coerce_text(row.get('customer_name')),
        start_date=coerce_date(row.get('start_date')),
        end_date=coerce_date(row.get('end_date')),
        target_volume=coerce_number(row.get('target_volume'))[0],
    )


def stock_from_row(row: Mapping[str, Any]) -> StockLine:
    return StockLine(
        product_code=coerce_text(row.get('product_code')),
        product_name=coerce_text(row.get('product_name')),
        quantity=coerce_number(row.get('quantity'))[0],
        pack_size=coerce_text(row.get('pack_size')),
        brand=coerce_text(row.get('brand')),
    )


# =============================================================================
# QUERIES
# =============================================================================

class SalesDataQueries:
    """
    Data loading class for distributor KPIs.

    Usage:
        scope = SalesExecScope(['Ravi'])
        queries = SalesDataQueries(scope)

        lines = queries.get_transactions(ReportWindow.for_month(0))
        customers = queries.get_customers()
        queries.save_import(import_result)
    """

    def __init__(self, scope: Optional[SalesExecScope] = None, engine: Engine = None):
        """
        Initialize with salesperson scope.

        Args:
            scope: SalesExecScope for filtering (defaults to all-access)
            engine: Optional engine; defaults to the shared application engine
        """
        self.scope = scope or SalesExecScope()
        self._engine = engine

    @property
    def engine(self):
        """Lazy load database engine."""
        if self._engine is None:
            self._engine = get_db_engine()
        return self._engine

    # =========================================================================
    # BULK INSERT
    # =========================================================================

    def save_import(self, result: ImportResult, batch_size: Optional[int] = None) -> int:
        """
        Persist the rows of an ImportResult.

        Order, stock and customer uploads replace the previous dataset in the
        same transaction; invoice and agreement uploads append.

        Returns:
            Number of inserted rows (also stored on result.inserted)
        """
        schema = result.schema
        batch_size = batch_size or config.get_app_setting("INSERT_BATCH_SIZE", INSERT_BATCH_SIZE)
        params = [PARAM_BUILDERS[schema](row) for row in result.rows]
        table = DATASET_TABLES[schema]

        inserted = 0
        try:
            with get_transaction(self.engine) as conn:
                if schema in REPLACE_ON_UPLOAD:
                    conn.execute(text(f"DELETE FROM {table}"))
                    logger.info(f"Cleared {table} before upload")
                for start in range(0, len(params), batch_size):
                    batch = params[start:start + batch_size]
                    conn.execute(text(INSERT_SQL[schema]), batch)
                    inserted += len(batch)
                    logger.debug(f"{table}: inserted batch of {len(batch)}")
        except SQLAlchemyError as e:
            logger.error(f"Error inserting {schema} rows: {e}")
            raise

        result.inserted = inserted
        logger.info(f"Inserted {inserted} rows into {table}")
        return inserted

    # =========================================================================
    # TRANSACTION SNAPSHOTS
    # =========================================================================

    def _scope_clause(self, column: str, params: Dict[str, Any]) -> str:
        if self.scope.is_all:
            return ""
        params['scope_names'] = self.scope.names() or ['']
        return f" AND {column} IN :scope_names"

    def get_transactions(
        self,
        window: ReportWindow,
        current_year_only: bool = False,
        customer_codes: Optional[Sequence[str]] = None,
    ) -> List[TransactionLine]:
        """
        Invoice lines dated inside the window, scope-filtered.

        Args:
            window: Half-open date window
            current_year_only: Restrict to invoices tagged as current year
            customer_codes: Optional customer code restriction
        """
        params: Dict[str, Any] = {'start_date': _iso(window.start), 'end_date': _iso(window.end)}
        query = INVOICE_SELECT + """
            WHERE invoice_date >= :start_date AND invoice_date < :end_date
        """
        query += self._scope_clause('sales_exec_name', params)

        if current_year_only:
            query += " AND is_current_year = :current_year"
            params['current_year'] = True
        if customer_codes is not None:
            query += " AND customer_code IN :customer_codes"
            params['customer_codes'] = list(customer_codes) or ['']

        query += " ORDER BY invoice_date, invoice_no"

        df = self._execute_query(query, params, "transactions")
        lines = [invoice_from_row(row) for row in df.to_dict(orient='records')]
        return self.scope.filter_lines(lines)

    def get_customers(self) -> List[CustomerRecord]:
        """Customer master, scoped by assigned salesperson."""
        params: Dict[str, Any] = {}
        query = "SELECT * FROM customers WHERE 1 = 1"
        query += self._scope_clause('sales_executive', params)
        query += " ORDER BY customer_name"
        df = self._execute_query(query, params, "customers")
        customers = [customer_from_row(row) for row in df.to_dict(orient='records')]
        return self.scope.filter_customers(customers)

    def get_open_orders(self) -> List[TransactionLine]:
        params: Dict[str, Any] = {}
        query = "SELECT * FROM open_orders WHERE 1 = 1"
        query += self._scope_clause('dsr_name', params)
        query += " ORDER BY so_date DESC, so_no"
        df = self._execute_query(query, params, "open_orders")
        df = self.scope.filter_dataframe(df, 'dsr_name')
        return [order_from_row(row) for row in df.to_dict(orient='records')]

    # =========================================================================
    # LOOKUPS
    # =========================================================================

    def search_invoice(self, invoice_no: str) -> List[TransactionLine]:
        """All lines of one current-year invoice."""
        params: Dict[str, Any] = {'invoice_no': invoice_no.strip(), 'current_year': True}
        query = INVOICE_SELECT + """
            WHERE invoice_no = :invoice_no AND is_current_year = :current_year
        """
        query += self._scope_clause('sales_exec_name', params)
        df = self._execute_query(query, params, "search_invoice")
        return [invoice_from_row(row) for row in df.to_dict(orient='records')]

    def master_search(
        self,
        customer: Optional[str] = None,
        product: Optional[str] = None,
    ) -> List[TransactionLine]:
        """
        Substring search across current and historical invoices.

        Args:
            customer: Matches customer name or code
            product: Matches product name or brand
        """
        params: Dict[str, Any] = {}
        query = INVOICE_SELECT + " WHERE 1 = 1"
        if customer:
            query += " AND (LOWER(customer_name) LIKE :customer OR LOWER(customer_code) LIKE :customer)"
            params['customer'] = f"%{customer.strip().lower()}%"
        if product:
            query += " AND (LOWER(product_name) LIKE :product OR LOWER(product_brand_name) LIKE :product)"
            params['product'] = f"%{product.strip().lower()}%"
        query += self._scope_clause('sales_exec_name', params)
        query += " ORDER BY invoice_date DESC, invoice_no"
        df = self._execute_query(query, params, "master_search")
        return [invoice_from_row(row) for row in df.to_dict(orient='records')]

    def recent_invoices(self, days: int = RECENT_INVOICE_DAYS, today: Optional[date] = None) -> List[TransactionLine]:
        """Invoice lines from the last `days` days, today included."""
        today = today or date.today()
        window = ReportWindow(today - timedelta(days=days - 1), today + timedelta(days=1))
        return self.get_transactions(window)

    def search_stock(self, term: Optional[str] = None) -> List[StockLine]:
        params: Dict[str, Any] = {}
        query = "SELECT * FROM stock WHERE 1 = 1"
        if term:
            query += " AND (LOWER(product_name) LIKE :term OR LOWER(product_code) LIKE :term)"
            params['term'] = f"%{term.strip().lower()}%"
        query += " ORDER BY product_name"
        df = self._execute_query(query, params, "search_stock")
        return [stock_from_row(row) for row in df.to_dict(orient='records')]

    # =========================================================================
    # AGREEMENTS
    # =========================================================================

    def list_agreements(self) -> List[Agreement]:
        df = self._execute_query(
            "SELECT * FROM wbc_agreements ORDER BY customer_name, start_date", {}, "agreements"
        )
        return [agreement_from_row(row) for row in df.to_dict(orient='records')]

    def create_agreement(self, agreement: Agreement) -> int:
        """Insert one agreement and return its id."""
        try:
            with get_transaction(self.engine) as conn:
                result = conn.execute(text(INSERT_SQL['agreement']), agreement_params(agreement))
                new_id = result.lastrowid
        except SQLAlchemyError as e:
            logger.error(f"Error creating agreement for {agreement.customer_code}: {e}")
            raise
        logger.info(f"Created agreement {new_id} for {agreement.customer_code}")
        return new_id

    def delete_agreement(self, agreement_id: int) -> int:
        return self._execute_update(
            "DELETE FROM wbc_agreements WHERE id = :id", {'id': agreement_id}, "delete_agreement"
        )

    def get_agreement_lines(self, agreements: Sequence[Agreement]) -> List[TransactionLine]:
        """Invoice lines for the agreement customers, spanning all agreement periods."""
        if not agreements:
            return []
        window = ReportWindow.inclusive(
            min(a.start_date for a in agreements),
            max(a.end_date for a in agreements),
        )
        codes = sorted({a.customer_code for a in agreements})
        return self.get_transactions(window, customer_codes=codes)

    # =========================================================================
    # CLEARING
    # =========================================================================

    def clear_dataset(self, dataset: str, is_current_year: Optional[bool] = None) -> int:
        """
        Delete every row of a dataset.

        Args:
            dataset: 'invoice', 'order', 'stock', 'customer' or 'agreement'
            is_current_year: For invoices only, restrict to current (True)
                or historical (False) uploads

        Returns:
            Number of deleted rows
        """
        if dataset not in DATASET_TABLES:
            raise ValueError(f"Unknown dataset '{dataset}'")

        query = f"DELETE FROM {DATASET_TABLES[dataset]}"
        params: Dict[str, Any] = {}
        if dataset == 'invoice' and is_current_year is not None:
            query += " WHERE is_current_year = :current_year"
            params['current_year'] = is_current_year

        count = self._execute_update(query, params, f"clear_{dataset}")
        logger.info(f"Cleared {count} rows from {DATASET_TABLES[dataset]}")
        return count

    # =========================================================================
    # HELPER METHODS
    # =========================================================================

    def _execute_query(
        self,
        query: str,
        params: dict,
        query_name: str = "query"
    ) -> pd.DataFrame:
        """
        Execute SQL query and return DataFrame.

        List-valued parameters are expanded for IN clauses.
        """
        statement = text(query)
        expanding = [bindparam(k, expanding=True) for k, v in params.items() if isinstance(v, list)]
        if expanding:
            statement = statement.bindparams(*expanding)

        try:
            logger.debug(f"Executing {query_name}")
            with self.engine.connect() as conn:
                df = pd.read_sql(statement, conn, params=params)
            logger.debug(f"{query_name} returned {len(df)} rows")
            return df
        except SQLAlchemyError as e:
            logger.error(f"Error executing {query_name}: {e}")
            raise

    def _execute_update(self, query: str, params: dict, operation_name: str = "update") -> int:
        try:
            with get_transaction(self.engine) as conn:
                result = conn.execute(text(query), params)
                return result.rowcount
        except SQLAlchemyError as e:
            logger.error(f"Error in {operation_name}: {e}")
            raise
