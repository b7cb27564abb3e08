"""Tests for under-billed customers and agreement achievement."""
from datetime import date

import pytest

from salesboard.distributor_kpi.models import Agreement, CustomerRecord
from salesboard.distributor_kpi.targets import (
    core_volume_by_customer,
    overall_achievement,
    target,
    unbilled,
)


# ---------------------------------------------------------------------------
# Under-billed
# ---------------------------------------------------------------------------


class TestUnbilled:
    def test_scenario_counts(self, customers, scenario_lines):
        report = unbilled(customers, scenario_lines)
        # X has 4L core, Z only autocare, W no transactions at all
        assert report.by_salesperson == {"A": 2, "B": 1}
        assert [c.code for c in report.detail["A"]] == ["C-Z", "C-X"]
        assert report.total() == 3

    def test_no_transactions_counts_at_zero(self, customers):
        report = unbilled(customers, [])
        wheels = report.detail["B"][0]
        assert wheels.code == "C-W"
        assert wheels.volume == 0.0

    def test_master_salesperson_is_authoritative(self, line_factory):
        customers = [CustomerRecord(code="C-1", name="One", assigned_sales_exec="A")]
        lines = [line_factory(customer_code="C-1", sales_exec_name="B", volume=2)]
        report = unbilled(customers, lines)
        assert report.by_salesperson == {"A": 1}

    def test_non_core_volume_does_not_bill(self, line_factory):
        customers = [CustomerRecord(code="C-1", name="One", assigned_sales_exec="A")]
        lines = [
            line_factory(customer_code="C-1", product_name="CHAIN LUBE 500ML", volume=20),
            line_factory(customer_code="C-1", brand_name="AUTO CARE MAINTENANCE", volume=20),
        ]
        assert unbilled(customers, lines).by_salesperson == {"A": 1}

    def test_threshold_is_strict(self, line_factory):
        customers = [CustomerRecord(code="C-1", name="One", assigned_sales_exec="A")]
        lines = [line_factory(customer_code="C-1", volume=9.0)]
        assert unbilled(customers, lines).total() == 0

    def test_blank_code_or_salesperson_skipped(self):
        customers = [
            CustomerRecord(code="", name="No Code", assigned_sales_exec="A"),
            CustomerRecord(code="C-2", name="Orphan", assigned_sales_exec="  "),
        ]
        assert unbilled(customers, []).total() == 0

    def test_core_volume_ignores_blank_codes(self, mixed_lines):
        volumes = core_volume_by_customer(mixed_lines)
        assert "" not in volumes
        assert volumes["C-P"] == pytest.approx(9.0)


# ---------------------------------------------------------------------------
# Agreements
# ---------------------------------------------------------------------------


class TestTarget:
    def test_percent_achieved(self, line_factory):
        agreement = Agreement("C-1", date(2024, 1, 1), date(2024, 6, 30), target_volume=100)
        lines = [line_factory(customer_code="C-1", volume=45)]
        progress = target([agreement], lines)[0]
        assert progress.achieved_volume == 45
        assert progress.percent_achieved == pytest.approx(45.0)

    def test_zero_target_is_zero_percent(self, line_factory):
        agreement = Agreement("C-1", date(2024, 1, 1), date(2024, 6, 30), target_volume=0)
        progress = target([agreement], [line_factory(customer_code="C-1", volume=10)])[0]
        assert progress.percent_achieved == 0.0

    def test_dates_are_inclusive(self, line_factory):
        agreement = Agreement("C-1", date(2024, 3, 1), date(2024, 3, 31), target_volume=10)
        lines = [
            line_factory(customer_code="C-1", document_date=date(2024, 3, 1), volume=1),
            line_factory(customer_code="C-1", document_date=date(2024, 3, 31), volume=2),
            line_factory(customer_code="C-1", document_date=date(2024, 4, 1), volume=4),
        ]
        assert target([agreement], lines)[0].achieved_volume == 3

    def test_only_core_products_count(self, line_factory):
        agreement = Agreement("C-1", date(2024, 1, 1), date(2024, 12, 31), target_volume=10)
        lines = [
            line_factory(customer_code="C-1", volume=2),
            line_factory(customer_code="C-1", brand_name="AUTO CARE EXTERIOR", volume=5),
        ]
        assert target([agreement], lines)[0].achieved_volume == 2

    def test_overall_achievement(self, line_factory):
        agreements = [
            Agreement("C-1", date(2024, 1, 1), date(2024, 12, 31), target_volume=100),
            Agreement("C-2", date(2024, 1, 1), date(2024, 12, 31), target_volume=300),
        ]
        lines = [
            line_factory(customer_code="C-1", volume=100),
            line_factory(customer_code="C-2", volume=100),
        ]
        assert overall_achievement(target(agreements, lines)) == pytest.approx(50.0)
        assert overall_achievement([]) == 0.0
