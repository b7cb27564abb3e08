"""Tests for KPI definition validation and the catalog."""
import pytest

from salesboard.config import config
from salesboard.distributor_kpi.catalog import (
    KpiCatalog,
    definition_from_dict,
    seed_records,
    validate_definition,
)
from salesboard.distributor_kpi.constants import SEED_KPIS
from salesboard.distributor_kpi.exceptions import InvalidCohortDefinitionError


def _definition(**overrides):
    data = {
        "short_key": "gtxBySE",
        "display_name": "GTX by Sales Exec",
        "grouping_keys": ["sales_exec_name", "customer"],
        "metric": "count",
        "threshold": {"op": ">=", "value": 5},
    }
    data.update(overrides)
    return data


# ---------------------------------------------------------------------------
# Seed catalog
# ---------------------------------------------------------------------------


class TestSeedCatalog:
    def test_all_seeds_load(self, catalog):
        assert len(catalog) == len(SEED_KPIS) == 11

    def test_listed_in_display_order(self, catalog):
        keys = [kpi.short_key for kpi in catalog.list()]
        assert keys[0] == "volumeBySE"
        assert keys[-1] == "unbilled"
        orders = [kpi.display_order for kpi in catalog.list()]
        assert orders == sorted(orders)

    def test_threshold_seeds_report_one_level_up(self, catalog):
        kpi = catalog.get("magnatecCount")
        assert kpi.reported_keys == ("sales_exec_name",)
        assert kpi.member_key == "customer"
        assert kpi.threshold.value == 5.0

    def test_inactive_hidden_but_resolvable(self):
        records = [dict(seed) for seed in SEED_KPIS]
        records[1]["active"] = False
        catalog = KpiCatalog.from_records(records)
        assert "activCount" not in [kpi.short_key for kpi in catalog.visible()]
        assert catalog.get("activCount") is not None
        assert "activCount" in catalog

    def test_unknown_key(self, catalog):
        assert catalog.get("nope") is None


# ---------------------------------------------------------------------------
# Seed settings
# ---------------------------------------------------------------------------


class TestSeedSettings:
    def test_qualification_threshold_setting(self, monkeypatch):
        monkeypatch.setitem(config._app_config, "QUALIFICATION_THRESHOLD_LITERS", 7.0)
        catalog = KpiCatalog.from_seeds()
        for key in ("power1Count", "magnatecCount", "crbCount", "autocareCount"):
            assert catalog.get(key).threshold.value == 7.0
        assert catalog.get("highVolCount").threshold.value == 9.0

    def test_billing_threshold_setting(self, monkeypatch):
        monkeypatch.setitem(config._app_config, "BILLING_THRESHOLD_LITERS", 12.0)
        catalog = KpiCatalog.from_seeds()
        assert catalog.get("highVolCount").threshold.value == 12.0
        assert catalog.get("unbilled").threshold.value == 12.0
        assert catalog.get("unbilled").threshold.op == "<"

    def test_top_customers_limit_setting(self, monkeypatch):
        monkeypatch.setitem(config._app_config, "TOP_CUSTOMERS_LIMIT", 3)
        assert KpiCatalog.from_seeds().get("topCustomers").limit == 3

    def test_seed_list_left_untouched(self, monkeypatch):
        monkeypatch.setitem(config._app_config, "QUALIFICATION_THRESHOLD_LITERS", 7.0)
        seed_records()
        power1 = next(seed for seed in SEED_KPIS if seed["short_key"] == "power1Count")
        assert power1["threshold"]["value"] == 5.0

    def test_duplicate_definitions_rejected(self):
        with pytest.raises(InvalidCohortDefinitionError):
            KpiCatalog.from_records([_definition(), _definition()])


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------


class TestValidation:
    def test_valid_definition_builds(self):
        kpi = definition_from_dict(_definition(cohort="magnatec"))
        assert kpi.grouping_keys == ("sales_exec_name", "customer")
        assert kpi.cohort.key == "magnatec"

    def test_grouping_keys_from_comma_string(self):
        kpi = definition_from_dict(_definition(grouping_keys="sales_exec_name, customer"))
        assert kpi.grouping_keys == ("sales_exec_name", "customer")

    @pytest.mark.parametrize("overrides", [
        {"short_key": ""},
        {"grouping_keys": []},
        {"grouping_keys": ["sales_exec_name", "region"]},
        {"grouping_keys": ["customer", "customer"]},
        {"metric": "avg"},
        {"measure": "weight"},
        {"kind": "chart"},
        {"cohort": "castrol_edge"},
        {"distinct_field": "invoice"},
        {"drilldown_key": "invoice"},
        {"threshold": {"op": ">", "value": 5}},
        {"threshold": {"op": ">=", "value": "five"}},
        {"threshold": 5},
        {"grouping_keys": ["sales_exec_name"]},
        {"limit": 0},
        {"limit": "10"},
    ])
    def test_invalid_definitions_rejected(self, overrides):
        with pytest.raises(InvalidCohortDefinitionError):
            validate_definition(_definition(**overrides))

    def test_existing_key_rejected(self):
        with pytest.raises(InvalidCohortDefinitionError) as exc:
            validate_definition(_definition(), existing_keys=["gtxBySE"])
        assert exc.value.short_key == "gtxBySE"
