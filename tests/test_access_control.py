"""Tests for the salesperson scope."""
import pandas as pd

from salesboard.distributor_kpi.access_control import SalesExecScope
from salesboard.distributor_kpi.constants import ALL_ACCESS
from salesboard.distributor_kpi.metrics import KpiAggregator


class TestResolve:
    def test_no_records_means_all(self):
        assert SalesExecScope.resolve([]).is_all

    def test_all_access_record_wins(self):
        rows = [
            {"access_type": "SE", "sales_exec_name": "A"},
            {"access_type": "all", "sales_exec_name": None},
        ]
        assert SalesExecScope.resolve(rows).is_all

    def test_named_records(self):
        rows = [
            {"access_type": "SE", "sales_exec_name": "B"},
            {"access_type": "SE", "sales_exec_name": " A "},
        ]
        scope = SalesExecScope.resolve(rows)
        assert scope.names() == ["A", "B"]
        assert repr(scope) == "SalesExecScope(['A', 'B'])"


class TestFiltering:
    def test_all_access_keeps_everything(self, mixed_lines):
        scope = SalesExecScope(ALL_ACCESS)
        assert scope.filter_lines(mixed_lines) == mixed_lines
        assert scope.allows("anyone")

    def test_named_scope_filters_before_aggregation(self, mixed_lines, catalog):
        lines = SalesExecScope(["B"]).filter_lines(mixed_lines)
        result = KpiAggregator(lines).run(catalog.get("volumeBySE"))
        assert list(result.as_dict()) == ["B"]

    def test_empty_scope_sees_nothing(self, mixed_lines):
        scope = SalesExecScope([])
        assert not scope.is_all
        assert scope.filter_lines(mixed_lines) == []

    def test_customers_scoped_by_assignment(self, customers):
        scoped = SalesExecScope(["B"]).filter_customers(customers)
        assert [c.code for c in scoped] == ["C-W"]

    def test_filter_dataframe(self):
        df = pd.DataFrame({"sales_exec_name": ["A", " B ", None], "volume": [1, 2, 3]})
        assert SalesExecScope(["B"]).filter_dataframe(df)["volume"].tolist() == [2]
        assert SalesExecScope([]).filter_dataframe(df).empty
        assert len(SalesExecScope(["B"]).filter_dataframe(df, "missing")) == 3
