# salesboard/distributor_kpi/schema.py
"""
Table definitions for the distributor KPI row store.

Queries are written as plain SQL (see queries.py, setup/queries.py); the
metadata here is only used to create the tables on MySQL or SQLite.
"""

import logging

from sqlalchemy import (
    Boolean,
    Column,
    Date,
    DateTime,
    Float,
    Integer,
    MetaData,
    String,
    Table,
    func,
)
from sqlalchemy.engine import Engine

logger = logging.getLogger(__name__)

metadata = MetaData()

invoices = Table(
    "invoices", metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("invoice_no", String(64), nullable=False, index=True),
    Column("invoice_date", Date, nullable=False, index=True),
    Column("customer_code", String(64), index=True),
    Column("customer_name", String(255)),
    Column("sales_exec_name", String(255), index=True),
    Column("master_brand_name", String(255)),
    Column("product_brand_name", String(255)),
    Column("product_name", String(255)),
    Column("product_volume", Float, default=0.0),
    Column("total_value", Float, default=0.0),
    Column("state_name", String(128)),
    Column("district_name", String(128)),
    Column("fiscal_year", String(16)),
    Column("is_current_year", Boolean, default=True),
    Column("created_at", DateTime, server_default=func.now()),
)

open_orders = Table(
    "open_orders", metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("so_no", String(64), nullable=False),
    Column("so_date", Date, nullable=False),
    Column("customer_code", String(64)),
    Column("customer_name", String(255)),
    Column("dsr_name", String(255)),
    Column("product_name", String(255)),
    Column("quantity", Float, default=0.0),
    Column("status", String(32)),
    Column("created_at", DateTime, server_default=func.now()),
)

stock = Table(
    "stock", metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("product_code", String(64)),
    Column("product_name", String(255), nullable=False),
    Column("quantity", Float, default=0.0),
    Column("pack_size", String(64)),
    Column("brand", String(255)),
    Column("created_at", DateTime, server_default=func.now()),
)

customers = Table(
    "customers", metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("customer_code", String(64), nullable=False, index=True),
    Column("customer_name", String(255), nullable=False),
    Column("sales_executive", String(255)),
    Column("city", String(128)),
    Column("address", String(512)),
    Column("phone", String(64)),
    Column("gst", String(64)),
    Column("category", String(64)),
    Column("created_at", DateTime, server_default=func.now()),
)

wbc_agreements = Table(
    "wbc_agreements", metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("customer_code", String(64), nullable=False),
    Column("customer_name", String(255)),
    Column("start_date", Date, nullable=False),
    Column("end_date", Date, nullable=False),
    Column("target_volume", Float, default=0.0),
    Column("created_at", DateTime, server_default=func.now()),
)

kpi_configs = Table(
    "kpi_configs", metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("short_key", String(64), nullable=False, unique=True),
    Column("display_name", String(255), nullable=False),
    Column("grouping_keys", String(255), nullable=False),
    Column("metric", String(32), nullable=False),
    Column("measure", String(32), nullable=False),
    Column("cohort", String(64)),
    Column("core_products_only", Boolean, default=False),
    Column("threshold_op", String(4)),
    Column("threshold_value", Float),
    Column("distinct_field", String(64)),
    Column("drilldown_key", String(64)),
    Column("result_limit", Integer),
    Column("kind", String(32), nullable=False),
    Column("is_active", Boolean, default=True),
    Column("display_order", Integer, default=0),
    Column("icon_name", String(64)),
    Column("unit", String(32)),
    Column("created_at", DateTime, server_default=func.now()),
    Column("updated_at", DateTime, server_default=func.now()),
)


def create_tables(engine: Engine) -> None:
    """Create any missing tables."""
    metadata.create_all(engine)
    logger.info(f"Ensured {len(metadata.tables)} tables exist")
