"""Tests for role-gated report payloads."""

from datetime import date

import pandas as pd
import pytest
from core.models import Asset, Expense, ProfitSharingConfig, RecordSet, Resort, RevenueRecord, UserRole
from core.periods import ALL_TIME
from core.reporting import ReportBuilder, can_view_financials, get_report_builder
from core.settings import AnalyticsSettings

TODAY = date(2024, 3, 15)


@pytest.fixture
def builder():
    return ReportBuilder(AnalyticsSettings())


@pytest.fixture
def record_set():
    return RecordSet(
        resorts=[Resort("r1", "Montigo"), Resort("r2", "Nongsa")],
        assets=[Asset("a1", "r1", "ATV", "ACTIVE"), Asset("a2", "r2", "UTV", "MAINTENANCE")],
        revenue_records=[
            RevenueRecord("r1", "ATV", "2024-03-01", amount=1000),
            RevenueRecord("r2", "UTV", "2024-02-01", amount=3000),
        ],
        profit_configs=[ProfitSharingConfig("r1", "ATV", 80, 20, "2024-01-01")],
        expenses=[Expense("OPERATIONAL", 100, "2024-03-02", "APPROVED", resort_id="r1")],
    )


@pytest.mark.parametrize("role, allowed", [
    ("ADMIN", True),
    ("manager", True),
    (UserRole.MANAGER, True),
    ("ENGINEER", False),
    (UserRole.ENGINEER, False),
    ("GUEST", False),
    (None, False),
])
def test_can_view_financials(role, allowed):
    assert can_view_financials(role) is allowed


def test_privileged_roles_are_configurable():
    settings = AnalyticsSettings(privileged_roles=frozenset({UserRole.ADMIN}))
    assert can_view_financials("ADMIN", settings)
    assert not can_view_financials("MANAGER", settings)


class TestDashboard:
    """Tests for build_dashboard."""

    def test_admin_gets_financials(self, builder, record_set):
        payload = builder.build_dashboard(record_set, "ADMIN", months=3, today=TODAY)
        assert payload["window"] == {"start": "2024-01-01", "end": "2024-03-15", "months": 3}
        assert payload["summary"]["total_revenue"] == 4000
        assert payload["summary"]["total_dku_share"] == 800
        assert [m["label"] for m in payload["monthly"]] == ["Jan 2024", "Feb 2024", "Mar 2024"]
        assert [b["key"] for b in payload["by_resort"]] == ["r2", "r1"]
        assert list(payload["by_resort_per_month"])[0] == ALL_TIME
        assert list(payload["by_category_per_month"])[0] == ALL_TIME
        assert payload["expenses_by_category"][0]["total"] == 100
        assert payload["expense_status"]["APPROVED"]["count"] == 1

    def test_engineer_gets_operational_only(self, builder, record_set):
        payload = builder.build_dashboard(record_set, "ENGINEER", months=3, today=TODAY)
        assert set(payload) == {"window", "operational"}
        assert payload["operational"]["asset_count"] == 2
        assert payload["operational"]["utilization_rate"] == 50

    def test_default_window(self, builder, record_set):
        payload = builder.build_dashboard(record_set, "ADMIN", today=TODAY)
        assert payload["window"]["months"] == 6
        assert len(payload["monthly"]) == 6


class TestGatedViews:
    """Tests for views that require a privileged role."""

    @pytest.mark.parametrize("method", ["resort_comparison", "resort_frame"])
    def test_engineer_is_rejected(self, builder, record_set, method):
        with pytest.raises(PermissionError):
            getattr(builder, method)(record_set, "ENGINEER")

    def test_engineer_cannot_see_monthly_frame_or_detail(self, builder, record_set):
        with pytest.raises(PermissionError):
            builder.monthly_frame(record_set, "ENGINEER")
        with pytest.raises(PermissionError):
            builder.resort_detail(record_set, "ENGINEER", "r1")

    def test_resort_comparison(self, builder, record_set):
        rows = builder.resort_comparison(record_set, "MANAGER")
        assert [r["resort_id"] for r in rows] == ["r2", "r1"]
        assert rows[1]["net_profit"] == 700

    def test_resort_detail(self, builder, record_set):
        detail = builder.resort_detail(record_set, "ADMIN", "r1", months=2, today=TODAY)
        assert detail["performance"]["resort_name"] == "Montigo"
        assert len(detail["monthly"]) == 2
        assert builder.resort_detail(record_set, "ADMIN", "nope", today=TODAY) is None

    def test_monthly_frame(self, builder, record_set):
        df = builder.monthly_frame(record_set, "ADMIN", months=3, today=TODAY)
        assert isinstance(df, pd.DataFrame)
        assert list(df["label"]) == ["Jan 2024", "Feb 2024", "Mar 2024"]
        assert df["revenue"].sum() == 4000
        assert df.loc[2, "net_profit"] == 700

    def test_resort_frame(self, builder, record_set):
        df = get_report_builder().resort_frame(record_set, "ADMIN")
        assert list(df.index) == ["r2", "r1"]
        assert df.loc["r1", "dku_share"] == 800

    def test_resort_frame_empty(self, builder):
        assert builder.resort_frame(RecordSet(), "ADMIN").empty
