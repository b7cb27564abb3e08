# salesboard/distributor_kpi/ingestion.py
"""
Row Ingestor

Normalizes spreadsheet-like input into canonical records:
- Column resolution through an ordered alias list per field
- Number coercion (blank / unparseable -> 0.0, never an error)
- Date coercion (date objects, ISO / locale strings, spreadsheet serial days)
- Per-row rejection with a reason instead of exceptions

Only two conditions raise: a required column family missing from the headers
(SchemaMismatchError) and zero valid rows (EmptyImportError).
"""

import logging
import math
import numbers
from datetime import date, datetime, timedelta
from io import BytesIO
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple

import pandas as pd

from .constants import DEFAULT_ORDER_STATUS, EXCEL_EPOCH, IMPORT_SCHEMAS, MAX_SERIAL_DAY
from .exceptions import EmptyImportError, SchemaMismatchError
from .models import (
    Agreement,
    CustomerRecord,
    ImportResult,
    RowRejection,
    StockLine,
    TransactionLine,
)

logger = logging.getLogger(__name__)

_EPOCH = date(*EXCEL_EPOCH)


# =============================================================================
# COERCION
# =============================================================================

def _is_blank(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, float) and pd.isna(value):
        return True
    if value is pd.NaT:
        return True
    return isinstance(value, str) and not value.strip()


def coerce_text(value: Any) -> str:
    if _is_blank(value):
        return ""
    if isinstance(value, float) and value.is_integer():
        # Codes typed as numbers in a spreadsheet come back as 1001.0
        return str(int(value))
    return str(value).strip()


def coerce_number(value: Any) -> Tuple[float, bool]:
    """
    Coerce a cell to float.

    Returns:
        (number, coerced) where coerced is True when a non-blank value could
        not be parsed and was replaced by 0.0
    """
    if _is_blank(value):
        return 0.0, False
    if isinstance(value, bool):
        return float(value), False
    if isinstance(value, numbers.Number):
        number = float(value)
        if pd.isna(number):
            return 0.0, False
        if not math.isfinite(number):
            return 0.0, True
        return number, False

    text_value = str(value).strip().replace(",", "")
    try:
        number = float(text_value)
    except ValueError:
        return 0.0, True
    if not math.isfinite(number):
        return 0.0, True
    return number, False


def serial_to_date(serial: float) -> Optional[date]:
    """Spreadsheet serial day number -> calendar date, None when out of range."""
    if not math.isfinite(serial) or not 1 <= serial <= MAX_SERIAL_DAY:
        return None
    try:
        return _EPOCH + timedelta(days=int(serial))
    except OverflowError:
        return None


def coerce_date(value: Any) -> Optional[date]:
    """
    Coerce a cell to a date.

    Accepts date / datetime / Timestamp objects, ISO and locale date strings,
    and serial day numbers counted from 1899-12-30. Returns None when the
    value cannot be read as a date.
    """
    if _is_blank(value) or isinstance(value, bool):
        return None
    if isinstance(value, pd.Timestamp):
        return value.date()
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, numbers.Number):
        if pd.isna(value):
            return None
        return serial_to_date(float(value))

    text_value = str(value).strip()
    if len(text_value) == 8 and text_value.isdigit():
        # Compact YYYYMMDD
        parsed = pd.to_datetime(text_value, format="%Y%m%d", errors="coerce")
        if not pd.isna(parsed):
            return parsed.date()
    try:
        serial = float(text_value)
    except ValueError:
        serial = None
    if serial is not None:
        return serial_to_date(serial)

    parsed = pd.to_datetime(text_value, errors="coerce")
    if pd.isna(parsed):
        parsed = pd.to_datetime(text_value, errors="coerce", dayfirst=True)
    if pd.isna(parsed):
        return None
    return parsed.date()


# =============================================================================
# INGESTOR
# =============================================================================

class RowIngestor:
    """
    Turn loosely-typed rows into canonical records for one import schema.

    Usage:
        ingestor = RowIngestor(is_current_year=True, fiscal_year='2025')

        result = ingestor.ingest(records, 'invoice')
        result.rows            # [TransactionLine, ...]
        result.rejected_count  # rows dropped with a reason

        with open('stock.xlsx', 'rb') as fh:
            result = ingestor.ingest_file(fh, 'stock', 'stock.xlsx')
    """

    def __init__(self, is_current_year: bool = True, fiscal_year: Optional[str] = None):
        """
        Args:
            is_current_year: Tag for invoice uploads (current vs historical)
            fiscal_year: Fiscal year stamped on invoices lacking one;
                defaults to the current calendar year
        """
        self.is_current_year = is_current_year
        self.fiscal_year = fiscal_year or str(date.today().year)

    # =========================================================================
    # COLUMN RESOLUTION
    # =========================================================================

    @staticmethod
    def get_schema(schema: str) -> Dict[str, Any]:
        if schema not in IMPORT_SCHEMAS:
            raise ValueError(
                f"Unknown import schema '{schema}'. "
                f"Expected one of: {', '.join(IMPORT_SCHEMAS)}"
            )
        return IMPORT_SCHEMAS[schema]

    @staticmethod
    def resolve_headers(headers: Iterable[str], schema: str) -> Dict[str, List[str]]:
        """
        Map each canonical field to the input headers that alias it, in
        alias order. Header matching ignores case and surrounding spaces.
        """
        layout = RowIngestor.get_schema(schema)
        by_normalized = {}
        for header in headers:
            by_normalized.setdefault(str(header).strip().lower(), str(header))

        resolved = {}
        for field_name, aliases in layout["columns"].items():
            found = [
                by_normalized[alias.strip().lower()]
                for alias in aliases
                if alias.strip().lower() in by_normalized
            ]
            resolved[field_name] = found
        return resolved

    @staticmethod
    def _pick(row: Mapping[str, Any], headers: List[str]) -> Any:
        """First non-blank value among the aliased headers."""
        for header in headers:
            value = row.get(header)
            if not _is_blank(value):
                return value
        return None

    # =========================================================================
    # MAIN ENTRY POINTS
    # =========================================================================

    def ingest(self, records: Iterable[Mapping[str, Any]], schema: str) -> ImportResult:
        """
        Canonicalize records for a schema.

        Raises:
            SchemaMismatchError: a required field has no matching column at all
            EmptyImportError: no row survived validation
        """
        layout = self.get_schema(schema)
        records = list(records)

        headers: List[str] = []
        for record in records:
            for key in record.keys():
                if key not in headers:
                    headers.append(key)

        resolved = self.resolve_headers(headers, schema)
        missing = [name for name in layout["required"] if not resolved[name]]
        if records and missing:
            raise SchemaMismatchError(schema, missing)

        result = ImportResult(schema=schema)
        for index, record in enumerate(records, start=1):
            raw = {name: self._pick(record, cols) for name, cols in resolved.items()}
            built, reason, coerced = self._build(schema, layout, raw)
            result.coerced += coerced
            if built is None:
                result.rejected.append(RowRejection(row_number=index, reason=reason))
            else:
                result.rows.append(built)

        if result.rejected:
            logger.warning(
                f"{schema} import: rejected {result.rejected_count} of {len(records)} rows"
            )
        if not result.rows:
            raise EmptyImportError(schema, result.rejected_count)

        logger.info(
            f"{schema} import: {len(result.rows)} valid rows, "
            f"{result.coerced} values coerced to 0"
        )
        return result

    def ingest_file(self, buffer, schema: str, filename: Optional[str] = None) -> ImportResult:
        """Read an .xlsx / .xls / .csv buffer and ingest its first sheet."""
        df = read_table(buffer, filename)
        logger.info(f"Read {len(df)} rows from {filename or 'buffer'}")
        return self.ingest(dataframe_records(df), schema)

    # =========================================================================
    # RECORD BUILDERS
    # =========================================================================

    def _build(
        self,
        schema: str,
        layout: Dict[str, Any],
        raw: Dict[str, Any],
    ) -> Tuple[Optional[Any], str, int]:
        values: Dict[str, Any] = {}
        coerced = 0

        for name, value in raw.items():
            if name in layout["dates"]:
                values[name] = coerce_date(value)
            elif name in layout["numbers"]:
                number, was_coerced = coerce_number(value)
                values[name] = number
                coerced += int(was_coerced)
            else:
                values[name] = coerce_text(value)

        for name in layout["required"]:
            if name in layout["dates"]:
                if values[name] is None:
                    return None, f"invalid or missing {name}", coerced
            elif not values[name]:
                return None, f"missing {name}", coerced

        builder = getattr(self, f"_build_{schema}")
        built, reason = builder(values)
        return built, reason, coerced

    def _build_invoice(self, values: Dict[str, Any]) -> Tuple[Optional[TransactionLine], str]:
        return TransactionLine(
            document_no=values["document_no"],
            document_date=values["document_date"],
            customer_code=values["customer_code"],
            customer_name=values["customer_name"],
            sales_exec_name=values["sales_exec_name"],
            brand_name=values["brand_name"],
            product_name=values["product_name"],
            volume=values["volume"],
            value=values["value"],
            master_brand_name=values["master_brand_name"],
            state_name=values["state_name"],
            district_name=values["district_name"],
            fiscal_year=values["fiscal_year"] or self.fiscal_year,
            is_current_year=self.is_current_year,
            source="invoice",
        ), ""

    def _build_order(self, values: Dict[str, Any]) -> Tuple[Optional[TransactionLine], str]:
        return TransactionLine(
            document_no=values["document_no"],
            document_date=values["document_date"],
            customer_code=values["customer_code"],
            customer_name=values["customer_name"],
            sales_exec_name=values["sales_exec_name"],
            product_name=values["product_name"],
            volume=values["volume"],
            source="order",
            status=values["status"] or DEFAULT_ORDER_STATUS,
        ), ""

    def _build_stock(self, values: Dict[str, Any]) -> Tuple[Optional[StockLine], str]:
        return StockLine(
            product_code=values["product_code"],
            product_name=values["product_name"],
            quantity=values["quantity"],
            pack_size=values["pack_size"],
            brand=values["brand"],
        ), ""

    def _build_customer(self, values: Dict[str, Any]) -> Tuple[Optional[CustomerRecord], str]:
        return CustomerRecord(
            code=values["code"],
            name=values["name"],
            assigned_sales_exec=values["assigned_sales_exec"],
            city=values["city"],
            address=values["address"],
            phone=values["phone"],
            gst=values["gst"],
            category=values["category"],
        ), ""

    def _build_agreement(self, values: Dict[str, Any]) -> Tuple[Optional[Agreement], str]:
        if values["end_date"] < values["start_date"]:
            return None, "end_date before start_date"
        return Agreement(
            customer_code=values["customer_code"],
            customer_name=values["customer_name"],
            start_date=values["start_date"],
            end_date=values["end_date"],
            target_volume=values["target_volume"],
        ), ""


# =============================================================================
# FILE HELPERS
# =============================================================================

def read_table(buffer, filename: Optional[str] = None) -> pd.DataFrame:
    """Load the first sheet of a workbook, or a CSV file, as raw objects."""
    if isinstance(buffer, (bytes, bytearray)):
        buffer = BytesIO(buffer)

    name = (filename or getattr(buffer, "name", "") or "").lower()
    if name.endswith(".csv"):
        return pd.read_csv(buffer, dtype=object, keep_default_na=False)
    if name.endswith(".xls"):
        return pd.read_excel(buffer, dtype=object)
    return pd.read_excel(buffer, dtype=object, engine="openpyxl")


def dataframe_records(df: pd.DataFrame) -> List[Dict[str, Any]]:
    """DataFrame -> list of dicts with NaN / NaT replaced by None."""
    if df.empty:
        return []
    clean = df.astype(object).where(pd.notna(df), None)
    return clean.to_dict(orient="records")
