"""Tests for drill-down from summary rows to members and line items."""
from datetime import date

import pytest

from salesboard.distributor_kpi.drilldown import DrilldownResolver
from salesboard.distributor_kpi.metrics import KpiAggregator
from salesboard.distributor_kpi.models import Agreement
from salesboard.distributor_kpi.targets import unbilled


# ---------------------------------------------------------------------------
# Summary row -> members
# ---------------------------------------------------------------------------


class TestDrilldown:
    def test_volume_members_add_up(self, scenario_lines, catalog):
        resolver = DrilldownResolver.from_lines(scenario_lines)
        items = resolver.drilldown(catalog.get("volumeBySE"), "A")
        assert [item.label for item in items] == ["Yash Auto", "Zen Garage", "Xavier Motors"]
        assert sum(item.value for item in items) == pytest.approx(18.0)
        assert all(item.qualified is None for item in items)

    def test_qualification_flags(self, scenario_lines, catalog):
        resolver = DrilldownResolver.from_lines(scenario_lines)
        items = resolver.drilldown(catalog.get("highVolCount"), "A")
        assert [(item.label, item.value, item.qualified) for item in items] == [
            ("Yash Auto", 9.0, True),
            ("Xavier Motors", 4.0, False),
        ]

    def test_unknown_group_is_empty(self, scenario_lines, catalog):
        resolver = DrilldownResolver.from_lines(scenario_lines)
        assert resolver.drilldown(catalog.get("volumeBySE"), "Nobody") == []

    def test_unknown_bucket_can_be_drilled(self, mixed_lines, catalog):
        resolver = DrilldownResolver.from_lines(mixed_lines)
        items = resolver.drilldown(catalog.get("volByBrand"), "Not Classified")
        assert [(item.label, item.value) for item in items] == [("CHAIN LUBE 150ML", 1.25)]

    def test_unbilled_reads_precomputed_detail(self, customers, scenario_lines, catalog):
        report = unbilled(customers, scenario_lines)
        resolver = DrilldownResolver.from_lines(scenario_lines, report)
        items = resolver.drilldown(catalog.get("unbilled"), "A")
        assert [(item.label, item.value) for item in items] == [("Zen Garage", 0.0), ("Xavier Motors", 4.0)]
        assert all(item.qualified is False for item in items)

    def test_drilldown_matches_summary_for_every_kpi(self, mixed_lines, catalog):
        aggregator = KpiAggregator(mixed_lines)
        resolver = DrilldownResolver(aggregator)
        for kpi in catalog.list():
            if kpi.kind != "aggregate":
                continue
            for row in aggregator.run(kpi).rows:
                items = resolver.drilldown(kpi, row.label)
                if kpi.threshold is not None:
                    assert sum(1 for item in items if item.qualified) == row.metric_value
                elif kpi.metric == "distinctCount":
                    assert len(items) == row.metric_value
                else:
                    assert sum(item.value for item in items) == pytest.approx(row.metric_value)


# ---------------------------------------------------------------------------
# Member -> line items
# ---------------------------------------------------------------------------


class TestLineItems:
    def test_lines_for_member(self, mixed_lines, catalog):
        resolver = DrilldownResolver.from_lines(mixed_lines)
        items = resolver.line_items(catalog.get("volumeBySE"), "B", "C-P")
        assert [item.document_no for item in items] == ["INV-4", "INV-5"]
        assert items[1].document_date == date(2024, 3, 12)

    def test_lines_respect_cohort(self, mixed_lines, catalog):
        resolver = DrilldownResolver.from_lines(mixed_lines)
        items = resolver.line_items(catalog.get("activCount"), "B", "C-P")
        assert [item.document_no for item in items] == ["INV-5"]

    def test_unknown_member(self, mixed_lines, catalog):
        resolver = DrilldownResolver.from_lines(mixed_lines)
        assert resolver.line_items(catalog.get("volumeBySE"), "B", "C-X") == []


# ---------------------------------------------------------------------------
# Agreements
# ---------------------------------------------------------------------------


class TestAgreementDrilldown:
    def test_products_then_invoices(self, mixed_lines):
        resolver = DrilldownResolver.from_lines(mixed_lines)
        agreement = Agreement("C-P", date(2024, 3, 1), date(2024, 3, 31), target_volume=20)

        products = resolver.agreement_products(agreement)
        assert [(p.label, p.value) for p in products] == [
            ("POWER1 4T 10W-30, 10X1L MK", 6.0),
            ("ACTIV 4T 20W40 1L", 3.0),
        ]

        invoices = resolver.agreement_invoices(agreement, "ACTIV 4T 20W40 1L")
        assert [line.document_no for line in invoices] == ["INV-5"]

    def test_period_outside_window(self, mixed_lines):
        resolver = DrilldownResolver.from_lines(mixed_lines)
        agreement = Agreement("C-P", date(2024, 3, 6), date(2024, 3, 31), target_volume=20)
        assert [p.label for p in resolver.agreement_products(agreement)] == ["ACTIV 4T 20W40 1L"]
