"""
Reporting - the payloads dashboards and comparison views bind to.

The engine itself performs no authorization. This layer applies the role
gate: financial aggregates (DKU share, expenses, net profit, margin) are
only assembled for privileged roles.
"""

import logging
from datetime import date
from typing import Any, Dict, List, Optional

import pandas as pd

from core.aggregation import AggregationEngine
from core.models import RecordSet, UserRole, coerce_enum
from core.settings import AnalyticsSettings

log = logging.getLogger(__name__)


def can_view_financials(role: Any, settings: Optional[AnalyticsSettings] = None) -> bool:
    """Whether a caller role may see financial aggregates."""
    settings = settings or AnalyticsSettings()
    if isinstance(role, str):
        role = coerce_enum(UserRole, role.strip().upper())
    return role in settings.privileged_roles


class ReportBuilder:
    """Builds dashboard payloads for a caller role."""

    def __init__(self, settings: Optional[AnalyticsSettings] = None):
        self.settings = settings or AnalyticsSettings()
        self.engine = AggregationEngine(self.settings)

    def _require_financials(self, role: Any):
        if not can_view_financials(role, self.settings):
            raise PermissionError(f"Role {role!r} may not view financial reports")

    def build_dashboard(
        self,
        record_set: RecordSet,
        role: Any,
        months: Optional[int] = None,
        today: Optional[date] = None,
    ) -> Dict[str, Any]:
        """
        Dashboard payload for the last `months` months.

        Non-privileged roles get the operational section only.
        """
        window = self.engine.window(months, today)
        processed = self.engine.process(record_set)
        summary = self.engine.summarize(record_set, window=window, processed=processed)

        payload: Dict[str, Any] = {
            "window": {"start": window.start.isoformat(), "end": window.end.isoformat(), "months": window.months},
            "operational": summary.operational_dict(),
        }
        if not can_view_financials(role, self.settings):
            log.debug(f"Omitting financial sections for role {role!r}")
            return payload

        names = record_set.resort_names()
        in_window = [r for r in processed if window.contains(r.date)]
        payload.update({
            "summary": summary.to_dict(),
            "monthly": [m.to_dict() for m in self.engine.financials_by_month(
                processed, record_set.expenses, record_set.maintenance_records, window)],
            "by_resort": [b.to_dict() for b in self.engine.revenue_by_resort(in_window, names)],
            "by_category": [b.to_dict() for b in self.engine.revenue_by_category(in_window)],
            "by_resort_per_month": {
                label: [b.to_dict() for b in buckets]
                for label, buckets in self.engine.revenue_by_resort_per_month(processed, names, window).items()
            },
            "by_category_per_month": {
                label: [b.to_dict() for b in buckets]
                for label, buckets in self.engine.revenue_by_category_per_month(processed, window).items()
            },
            "expenses_by_category": [b.to_dict() for b in self.engine.expenses_by_category(record_set.expenses, window)],
            "expense_status": self.engine.expense_status_breakdown(
                [e for e in record_set.expenses if window.contains(e.date)]),
        })
        return payload

    def resort_comparison(self, record_set: RecordSet, role: Any) -> List[Dict[str, Any]]:
        """All-time comparison rows for every resort."""
        self._require_financials(role)
        return [row.to_dict() for row in self.engine.resort_performance(record_set)]

    def resort_detail(
        self,
        record_set: RecordSet,
        role: Any,
        resort_id: str,
        months: Optional[int] = None,
        today: Optional[date] = None,
    ) -> Optional[Dict[str, Any]]:
        self._require_financials(role)
        detail = self.engine.resort_detail(
            record_set, resort_id, window=self.engine.window(months, today))
        return detail.to_dict() if detail else None

    def monthly_frame(
        self,
        record_set: RecordSet,
        role: Any,
        months: Optional[int] = None,
        today: Optional[date] = None,
    ) -> pd.DataFrame:
        """Monthly financials as a DataFrame, one row per month of the window."""
        self._require_financials(role)
        window = self.engine.window(months, today)
        rows = self.engine.financials_by_month(
            self.engine.process(record_set), record_set.expenses,
            record_set.maintenance_records, window)
        return pd.DataFrame(
            [m.to_dict() for m in rows],
            columns=["key", "label", "revenue", "dku_share", "expenses",
                     "maintenance_cost", "net_profit", "profit_margin"],
        )

    def resort_frame(self, record_set: RecordSet, role: Any) -> pd.DataFrame:
        """Resort comparison as a DataFrame indexed by resort id."""
        rows = self.resort_comparison(record_set, role)
        df = pd.DataFrame(rows)
        if not df.empty:
            df = df.set_index("resort_id")
        return df


def get_report_builder(settings: Optional[AnalyticsSettings] = None) -> ReportBuilder:
    """Factory function for the report builder."""
    return ReportBuilder(settings)
