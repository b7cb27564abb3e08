"""Tests for the row store, run against an in-memory SQLite database."""
from datetime import date

import pytest

from salesboard.distributor_kpi.access_control import SalesExecScope
from salesboard.distributor_kpi.models import (
    Agreement,
    CustomerRecord,
    ImportResult,
    ReportWindow,
    StockLine,
)
from salesboard.distributor_kpi.queries import SalesDataQueries

MARCH = ReportWindow(date(2024, 3, 1), date(2024, 4, 1))


@pytest.fixture
def queries(engine):
    return SalesDataQueries(engine=engine)


@pytest.fixture
def loaded(queries, mixed_lines, customers, line_factory):
    history = [
        line_factory(document_no="OLD-1", document_date=date(2023, 3, 10),
                     customer_code="C-X", is_current_year=False, volume=2),
        line_factory(document_no="FEB-1", document_date=date(2024, 2, 29),
                     customer_code="C-X", volume=3),
    ]
    queries.save_import(ImportResult(schema="invoice", rows=mixed_lines + history))
    queries.save_import(ImportResult(schema="customer", rows=customers))
    return queries


# ---------------------------------------------------------------------------
# Report windows
# ---------------------------------------------------------------------------


class TestReportWindow:
    def test_current_month(self):
        window = ReportWindow.for_month(0, today=date(2024, 3, 15))
        assert (window.start, window.end) == (date(2024, 3, 1), date(2024, 4, 1))
        assert window.label == "March 2024"

    def test_previous_month_crosses_year(self):
        window = ReportWindow.for_month(-2, today=date(2024, 1, 20))
        assert (window.start, window.end) == (date(2023, 11, 1), date(2023, 12, 1))

    def test_offset_out_of_range(self):
        with pytest.raises(ValueError):
            ReportWindow.for_month(-3)
        with pytest.raises(ValueError):
            ReportWindow.for_month(1)

    def test_half_open(self):
        assert MARCH.contains(date(2024, 3, 31))
        assert not MARCH.contains(date(2024, 4, 1))
        with pytest.raises(ValueError):
            ReportWindow(date(2024, 3, 1), date(2024, 3, 1))


# ---------------------------------------------------------------------------
# Inserts and snapshots
# ---------------------------------------------------------------------------


class TestSnapshots:
    def test_window_excludes_other_months(self, loaded, mixed_lines):
        lines = loaded.get_transactions(MARCH)
        assert len(lines) == len(mixed_lines)
        assert {line.document_no for line in lines}.isdisjoint({"OLD-1", "FEB-1"})

    def test_lines_read_back_canonical(self, loaded):
        line = next(l for l in loaded.get_transactions(MARCH) if l.document_no == "INV-5")
        assert line.document_date == date(2024, 3, 12)
        assert line.brand_name == "ACTIV"
        assert line.volume == 3.0

    def test_scope_applied_before_aggregation(self, engine, loaded):
        scoped = SalesDataQueries(SalesExecScope(["B"]), engine=engine)
        lines = scoped.get_transactions(MARCH)
        assert {line.sales_exec_name for line in lines} == {"B"}
        assert [c.code for c in scoped.get_customers()] == ["C-W"]

    def test_empty_scope_sees_nothing(self, engine, loaded):
        scoped = SalesDataQueries(SalesExecScope([]), engine=engine)
        assert scoped.get_transactions(MARCH) == []

    def test_customer_codes_filter(self, loaded):
        lines = loaded.get_transactions(MARCH, customer_codes=["C-P"])
        assert sorted(line.document_no for line in lines) == ["INV-4", "INV-5"]

    def test_invoices_append(self, loaded, line_factory):
        loaded.save_import(ImportResult(schema="invoice", rows=[line_factory(document_no="INV-9")]))
        assert any(line.document_no == "INV-9" for line in loaded.get_transactions(MARCH))
        assert len(loaded.get_transactions(MARCH)) == 9

    def test_customers_replace(self, loaded):
        loaded.save_import(ImportResult(
            schema="customer",
            rows=[CustomerRecord(code="C-N", name="New Co", assigned_sales_exec="A")],
        ))
        assert [c.code for c in loaded.get_customers()] == ["C-N"]

    def test_batches_insert_everything(self, queries, line_factory):
        rows = [line_factory(document_no=f"INV-{i}") for i in range(7)]
        result = ImportResult(schema="invoice", rows=rows)
        assert queries.save_import(result, batch_size=3) == 7
        assert result.inserted == 7
        assert len(queries.get_transactions(MARCH)) == 7

    def test_orders_and_stock(self, queries, line_factory):
        order = line_factory(document_no="SO-1", source="order", status="Open")
        queries.save_import(ImportResult(schema="order", rows=[order]))
        queries.save_import(ImportResult(schema="stock", rows=[
            StockLine(product_code="1001", product_name="GTX 20W40 1L", quantity=40),
            StockLine(product_code="2002", product_name="MAGNATEC 5W30 3.5L", quantity=12),
        ]))

        orders = queries.get_open_orders()
        assert [o.document_no for o in orders] == ["SO-1"]
        assert orders[0].status == "Open"
        assert [s.product_code for s in queries.search_stock("magnatec")] == ["2002"]

    def test_scoped_orders_and_customers(self, engine, loaded, line_factory):
        loaded.save_import(ImportResult(schema="order", rows=[
            line_factory(document_no="SO-A", sales_exec_name="A", source="order"),
            line_factory(document_no="SO-B", sales_exec_name="B", source="order"),
        ]))
        scoped = SalesDataQueries(SalesExecScope(["B"]), engine=engine)
        assert [o.document_no for o in scoped.get_open_orders()] == ["SO-B"]

        nobody = SalesDataQueries(SalesExecScope([]), engine=engine)
        assert nobody.get_open_orders() == []
        assert nobody.get_customers() == []


# ---------------------------------------------------------------------------
# Lookups and clearing
# ---------------------------------------------------------------------------


class TestLookups:
    def test_search_invoice_is_current_year_only(self, loaded):
        assert [l.document_no for l in loaded.search_invoice("INV-4")] == ["INV-4"]
        assert loaded.search_invoice("OLD-1") == []

    def test_master_search_includes_history(self, loaded):
        found = loaded.master_search(customer="c-x")
        assert {line.document_no for line in found} >= {"INV-1", "OLD-1", "FEB-1"}

    def test_master_search_by_product(self, loaded):
        found = loaded.master_search(product="turbomax")
        assert [line.document_no for line in found] == ["INV-8"]

    def test_recent_invoices(self, loaded):
        recent = loaded.recent_invoices(days=7, today=date(2024, 3, 12))
        assert {line.document_no for line in recent} == {"INV-5"}

    def test_clear_historical_only(self, loaded):
        assert loaded.clear_dataset("invoice", is_current_year=False) == 1
        assert loaded.master_search(customer="C-X") != []
        assert all(line.document_no != "OLD-1" for line in loaded.master_search(customer="C-X"))

    def test_clear_unknown_dataset(self, queries):
        with pytest.raises(ValueError):
            queries.clear_dataset("payments")


# ---------------------------------------------------------------------------
# Agreements
# ---------------------------------------------------------------------------


class TestAgreements:
    def test_create_list_delete(self, queries):
        new_id = queries.create_agreement(
            Agreement("C-P", date(2024, 3, 1), date(2024, 3, 31), target_volume=20,
                      customer_name="Prem Lubes")
        )
        agreements = queries.list_agreements()
        assert [a.agreement_id for a in agreements] == [new_id]
        assert agreements[0].end_date == date(2024, 3, 31)

        assert queries.delete_agreement(new_id) == 1
        assert queries.list_agreements() == []

    def test_agreement_lines_span_inclusive_period(self, loaded):
        agreements = [Agreement("C-X", date(2024, 2, 29), date(2024, 3, 5), target_volume=10)]
        lines = loaded.get_agreement_lines(agreements)
        assert sorted(line.document_no for line in lines) == ["FEB-1", "INV-1"]
