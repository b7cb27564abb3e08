from datetime import date

import pytest
from sqlalchemy import create_engine
from sqlalchemy.pool import StaticPool

from salesboard.distributor_kpi.catalog import KpiCatalog
from salesboard.distributor_kpi.models import CustomerRecord, TransactionLine
from salesboard.distributor_kpi.schema import create_tables

REPORT_DAY = date(2024, 3, 5)


def make_line(**overrides):
    values = {
        "document_no": "INV-1",
        "document_date": REPORT_DAY,
        "customer_code": "C-1",
        "customer_name": "Customer One",
        "sales_exec_name": "A",
        "brand_name": "GTX",
        "product_name": "GTX 20W40 1L",
        "volume": 1.0,
        "value": 100.0,
    }
    values.update(overrides)
    return TransactionLine(**values)


@pytest.fixture
def line_factory():
    return make_line


@pytest.fixture
def scenario_lines():
    """Salesperson A: X 4L core, Y 9L core, Z 5L autocare."""
    return [
        make_line(document_no="INV-1", customer_code="C-X", customer_name="Xavier Motors",
                  brand_name="GTX", product_name="GTX 20W40 1L", volume=4.0, value=400.0),
        make_line(document_no="INV-2", customer_code="C-Y", customer_name="Yash Auto",
                  brand_name="MAGNATEC", product_name="MAGNATEC 10W40 1L", volume=9.0, value=1100.0),
        make_line(document_no="INV-3", customer_code="C-Z", customer_name="Zen Garage",
                  brand_name="AUTO CARE EXTERIOR", product_name="AUTO CARE SHAMPOO 1L",
                  volume=5.0, value=300.0),
    ]


@pytest.fixture
def mixed_lines(scenario_lines):
    """Scenario lines plus a second salesperson, blanks and Power1 / Activ products."""
    return scenario_lines + [
        make_line(document_no="INV-4", sales_exec_name="B", customer_code="C-P",
                  customer_name="Prem Lubes", brand_name="POWER1",
                  product_name="POWER1 4T 10W-30, 10X1L MK", volume=6.0, value=700.0),
        make_line(document_no="INV-5", sales_exec_name="B", customer_code="C-P",
                  customer_name="Prem Lubes", brand_name="ACTIV",
                  product_name="ACTIV 4T 20W40 1L", volume=3.0, value=350.0,
                  document_date=date(2024, 3, 12)),
        make_line(document_no="INV-6", sales_exec_name="B", customer_code="C-Q",
                  customer_name="Quick Fix", brand_name="ACTIV ESSENTIAL",
                  product_name="ACTIV ESSENTIAL 4T 1L", volume=2.5, value=200.0),
        make_line(document_no="INV-7", sales_exec_name="   ", customer_code="C-R",
                  customer_name="Roadside", brand_name="", product_name="CHAIN LUBE 150ML",
                  volume=1.25, value=90.0, document_date=date(2024, 3, 18)),
        make_line(document_no="INV-8", sales_exec_name="B", customer_code="",
                  customer_name="", brand_name="CRB TURBOMAX",
                  product_name="CRB TURBOMAX 15W40 7.5L", volume=7.5, value=900.0),
    ]


@pytest.fixture
def customers():
    return [
        CustomerRecord(code="C-X", name="Xavier Motors", assigned_sales_exec="A"),
        CustomerRecord(code="C-Y", name="Yash Auto", assigned_sales_exec="A"),
        CustomerRecord(code="C-Z", name="Zen Garage", assigned_sales_exec="A"),
        CustomerRecord(code="C-W", name="Wheels Co", assigned_sales_exec="B"),
    ]


@pytest.fixture
def catalog():
    return KpiCatalog.from_seeds()


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    create_tables(engine)
    yield engine
    engine.dispose()
