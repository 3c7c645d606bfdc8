"""
Aggregation Engine - reduces processed revenue, expenses and maintenance
costs into labeled summaries for dashboards and comparison views.

Every grouping is a pure fold over the input collections. Nothing is cached
between calls; callers get their per-resort and per-month maps as return
values.
"""

import logging
import math
from dataclasses import dataclass, field
from datetime import date
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple

from core.models import (
    ApprovalStatus, Expense, MaintenanceRecord, ProcessedRecord, RecordSet,
    category_label, category_value,
)
from core.periods import ALL_TIME, MonthBucket, MonthWindow, last_n_months
from core.profit_sharing import ConfigResolver, RevenueProcessor
from core.settings import AnalyticsSettings

log = logging.getLogger(__name__)

UNASSIGNED = "Unassigned"


def safe_percentage(numerator: float, denominator: float) -> float:
    """numerator / denominator * 100, or 0 when undefined."""
    if not denominator:
        return 0.0
    value = numerator / denominator * 100
    return value if math.isfinite(value) else 0.0


def partition_by_month(
    items: Iterable[Any],
    date_of: Callable[[Any], Optional[date]],
    window: Optional[MonthWindow] = None,
) -> List[Tuple[MonthBucket, List[Any]]]:
    """
    Split items into calendar months, chronologically.

    With a window, every month of the window is present (possibly empty)
    and items outside the window are dropped. Without one, only months that
    have items appear. Undated items are always dropped.
    """
    groups: Dict[MonthBucket, List[Any]] = {}
    if window is not None:
        for month in window.buckets():
            groups[month] = []
    for item in items:
        day = date_of(item)
        if day is None:
            continue
        if window is not None and not window.contains(day):
            continue
        groups.setdefault(MonthBucket.of(day), []).append(item)
    return sorted(groups.items(), key=lambda kv: (kv[0].year, kv[0].month))


def _in_window(window: Optional[MonthWindow], day: Optional[date]) -> bool:
    return window is None or window.contains(day)


def _descending(buckets: Iterable[Any], attr: str) -> List[Any]:
    # sorted() is stable with reverse=True, so ties keep input order
    return sorted(buckets, key=lambda b: getattr(b, attr), reverse=True)


# ═══════════════════════════════════════════════════════════════════════════
# RESULT TYPES
# ═══════════════════════════════════════════════════════════════════════════
@dataclass
class RevenueBucket:
    """Revenue totals for one group (month, resort or category)."""
    key: str
    label: str
    gross_revenue: float = 0.0
    total_revenue: float = 0.0  # net of discount and tax/service
    dku_share: float = 0.0
    record_count: int = 0
    unconfigured_count: int = 0

    @property
    def resort_share(self) -> float:
        return self.total_revenue - self.dku_share

    def add(self, record: ProcessedRecord):
        self.gross_revenue += record.gross_amount
        self.total_revenue += record.net_amount
        self.dku_share += record.dku_share
        self.record_count += 1
        if not record.has_config:
            self.unconfigured_count += 1

    def to_dict(self) -> Dict[str, Any]:
        return {
            "key": self.key,
            "label": self.label,
            "gross_revenue": self.gross_revenue,
            "total_revenue": self.total_revenue,
            "dku_share": self.dku_share,
            "resort_share": self.resort_share,
            "record_count": self.record_count,
            "unconfigured_count": self.unconfigured_count,
        }


@dataclass
class CostBucket:
    """Summed cost (expenses or maintenance) for one group."""
    key: str
    label: str
    total: float = 0.0
    count: int = 0

    def add(self, amount: float):
        self.total += amount
        self.count += 1

    def to_dict(self) -> Dict[str, Any]:
        return {"key": self.key, "label": self.label, "total": self.total, "count": self.count}


@dataclass
class MonthlyFinancials:
    """Revenue, costs and profit for one month."""
    key: str
    label: str
    revenue: float = 0.0
    dku_share: float = 0.0
    expenses: float = 0.0
    maintenance_cost: float = 0.0

    @property
    def net_profit(self) -> float:
        return self.dku_share - self.expenses

    @property
    def profit_margin(self) -> float:
        return safe_percentage(self.net_profit, self.dku_share)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "key": self.key,
            "label": self.label,
            "revenue": self.revenue,
            "dku_share": self.dku_share,
            "expenses": self.expenses,
            "maintenance_cost": self.maintenance_cost,
            "net_profit": self.net_profit,
            "profit_margin": self.profit_margin,
        }


@dataclass
class DashboardSummary:
    """Top-level scalar summary for a window (or all time)."""
    period_start: Optional[date] = None
    period_end: Optional[date] = None
    resort_count: int = 0
    asset_count: int = 0
    active_assets: int = 0
    maintenance_assets: int = 0
    gross_revenue: float = 0.0
    total_revenue: float = 0.0
    total_dku_share: float = 0.0
    total_expenses: float = 0.0
    pending_expenses: int = 0
    total_maintenance_cost: float = 0.0
    maintenance_record_count: int = 0
    unconfigured_records: int = 0

    @property
    def total_resort_share(self) -> float:
        return self.total_revenue - self.total_dku_share

    @property
    def utilization_rate(self) -> float:
        return safe_percentage(self.active_assets, self.asset_count)

    @property
    def net_profit(self) -> float:
        return self.total_dku_share - self.total_expenses

    @property
    def profit_margin(self) -> float:
        return safe_percentage(self.net_profit, self.total_dku_share)

    @property
    def avg_maintenance_cost(self) -> float:
        if self.maintenance_record_count == 0:
            return 0.0
        return self.total_maintenance_cost / self.maintenance_record_count

    def operational_dict(self) -> Dict[str, Any]:
        """Fields any role may see."""
        return {
            "asset_count": self.asset_count,
            "active_assets": self.active_assets,
            "maintenance_assets": self.maintenance_assets,
            "utilization_rate": self.utilization_rate,
        }

    def to_dict(self) -> Dict[str, Any]:
        data = {
            "period_start": self.period_start.isoformat() if self.period_start else None,
            "period_end": self.period_end.isoformat() if self.period_end else None,
            "resort_count": self.resort_count,
        }
        data.update(self.operational_dict())
        data.update({
            "gross_revenue": self.gross_revenue,
            "total_revenue": self.total_revenue,
            "total_dku_share": self.total_dku_share,
            "total_resort_share": self.total_resort_share,
            "total_expenses": self.total_expenses,
            "net_profit": self.net_profit,
            "profit_margin": self.profit_margin,
            "pending_expenses": self.pending_expenses,
            "total_maintenance_cost": self.total_maintenance_cost,
            "avg_maintenance_cost": self.avg_maintenance_cost,
            "unconfigured_records": self.unconfigured_records,
        })
        return data


@dataclass
class ResortPerformance:
    """One row of the resort comparison view."""
    resort_id: str
    resort_name: str
    total_revenue: float = 0.0
    dku_share: float = 0.0
    total_expenses: float = 0.0
    maintenance_cost: float = 0.0
    total_assets: int = 0
    active_assets: int = 0
    maintenance_assets: int = 0

    @property
    def resort_share(self) -> float:
        return self.total_revenue - self.dku_share

    @property
    def net_profit(self) -> float:
        return self.dku_share - self.total_expenses

    @property
    def profit_margin(self) -> float:
        return safe_percentage(self.net_profit, self.dku_share)

    @property
    def utilization_rate(self) -> float:
        return safe_percentage(self.active_assets, self.total_assets)

    @property
    def revenue_per_asset(self) -> float:
        return self.total_revenue / self.total_assets if self.total_assets > 0 else 0.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "resort_id": self.resort_id,
            "resort_name": self.resort_name,
            "total_revenue": self.total_revenue,
            "dku_share": self.dku_share,
            "resort_share": self.resort_share,
            "total_expenses": self.total_expenses,
            "net_profit": self.net_profit,
            "profit_margin": self.profit_margin,
            "maintenance_cost": self.maintenance_cost,
            "total_assets": self.total_assets,
            "active_assets": self.active_assets,
            "maintenance_assets": self.maintenance_assets,
            "utilization_rate": self.utilization_rate,
            "revenue_per_asset": self.revenue_per_asset,
        }


@dataclass
class ResortDetail:
    """Drill-down for a single resort."""
    performance: ResortPerformance
    monthly: List[MonthlyFinancials] = field(default_factory=list)
    categories: List[RevenueBucket] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "performance": self.performance.to_dict(),
            "monthly": [m.to_dict() for m in self.monthly],
            "categories": [c.to_dict() for c in self.categories],
        }


# ═══════════════════════════════════════════════════════════════════════════
# ENGINE
# ═══════════════════════════════════════════════════════════════════════════
class AggregationEngine:
    """
    Groups processed records, expenses and maintenance costs.

    Usage:
        engine = AggregationEngine()
        processed = engine.process(record_set)
        months = engine.revenue_by_month(processed, engine.window())
        summary = engine.summarize(record_set, processed=processed)
    """

    def __init__(self, settings: Optional[AnalyticsSettings] = None):
        self.settings = settings or AnalyticsSettings()

    def window(self, months: Optional[int] = None, today: Optional[date] = None) -> MonthWindow:
        """A 'last N months' window, defaulting to the configured dashboard window."""
        if months is None:
            months = self.settings.default_window_months
        return last_n_months(months, today)

    def process(self, record_set: RecordSet) -> List[ProcessedRecord]:
        resolver = ConfigResolver.from_settings(record_set.profit_configs, self.settings)
        return RevenueProcessor(resolver).process(record_set.revenue_records)

    # --- revenue -----------------------------------------------------------
    def revenue_by_month(
        self,
        processed: Iterable[ProcessedRecord],
        window: Optional[MonthWindow] = None,
    ) -> List[RevenueBucket]:
        """Monthly revenue buckets, zero-filled across the window when given."""
        buckets = []
        for month, records in partition_by_month(processed, lambda r: r.date, window):
            bucket = RevenueBucket(key=month.key, label=month.label)
            for record in records:
                bucket.add(record)
            buckets.append(bucket)
        return buckets

    def revenue_by_resort(
        self,
        processed: Iterable[ProcessedRecord],
        resort_names: Optional[Dict[str, str]] = None,
    ) -> List[RevenueBucket]:
        """Resorts with nonzero revenue, highest revenue first."""
        names = resort_names or {}
        buckets: Dict[str, RevenueBucket] = {}
        for record in processed:
            key = record.resort_id
            if key not in buckets:
                buckets[key] = RevenueBucket(key=key, label=names.get(key) or key or UNASSIGNED)
            buckets[key].add(record)
        return _descending((b for b in buckets.values() if b.total_revenue != 0), "total_revenue")

    def revenue_by_category(self, processed: Iterable[ProcessedRecord]) -> List[RevenueBucket]:
        """Revenue per asset category, highest revenue first."""
        buckets: Dict[Any, RevenueBucket] = {}
        for record in processed:
            key = category_value(record.asset_category)
            if key not in buckets:
                buckets[key] = RevenueBucket(key=str(key), label=category_label(key))
            buckets[key].add(record)
        return _descending(buckets.values(), "total_revenue")

    def revenue_by_resort_per_month(
        self,
        processed: Iterable[ProcessedRecord],
        resort_names: Optional[Dict[str, str]] = None,
        window: Optional[MonthWindow] = None,
    ) -> Dict[str, List[RevenueBucket]]:
        """
        Resort breakdown keyed by month label, with an 'All Time' entry first.

        'All Time' covers the same records as the months (the window, if any).
        """
        records = [r for r in processed if _in_window(window, r.date)]
        result = {ALL_TIME: self.revenue_by_resort(records, resort_names)}
        for month, month_records in partition_by_month(records, lambda r: r.date, window):
            result[month.label] = self.revenue_by_resort(month_records, resort_names)
        return result

    def revenue_by_category_per_month(
        self,
        processed: Iterable[ProcessedRecord],
        window: Optional[MonthWindow] = None,
    ) -> Dict[str, List[RevenueBucket]]:
        """Category breakdown keyed by month label, with an 'All Time' entry first."""
        records = [r for r in processed if _in_window(window, r.date)]
        result = {ALL_TIME: self.revenue_by_category(records)}
        for month, month_records in partition_by_month(records, lambda r: r.date, window):
            result[month.label] = self.revenue_by_category(month_records)
        return result

    # --- expenses ----------------------------------------------------------
    @staticmethod
    def approved_expenses(expenses: Iterable[Expense]) -> List[Expense]:
        return [e for e in expenses if e.is_approved]

    def expenses_by_category(
        self,
        expenses: Iterable[Expense],
        window: Optional[MonthWindow] = None,
    ) -> List[CostBucket]:
        """Approved expenses per category, largest first."""
        buckets: Dict[Any, CostBucket] = {}
        for expense in self.approved_expenses(expenses):
            if not _in_window(window, expense.date):
                continue
            key = category_value(expense.category)
            if key not in buckets:
                buckets[key] = CostBucket(key=str(key), label=category_label(key))
            buckets[key].add(expense.amount)
        return _descending(buckets.values(), "total")

    def expenses_by_month(
        self,
        expenses: Iterable[Expense],
        window: Optional[MonthWindow] = None,
    ) -> List[CostBucket]:
        """Approved expenses per month."""
        buckets = []
        for month, items in partition_by_month(self.approved_expenses(expenses), lambda e: e.date, window):
            bucket = CostBucket(key=month.key, label=month.label)
            for expense in items:
                bucket.add(expense.amount)
            buckets.append(bucket)
        return buckets

    def expense_status_breakdown(self, expenses: Iterable[Expense]) -> Dict[str, Dict[str, float]]:
        """Count and total per approval status, every status present."""
        breakdown = {status.value: {"count": 0, "total": 0.0} for status in ApprovalStatus}
        for expense in expenses:
            entry = breakdown.setdefault(str(category_value(expense.status)), {"count": 0, "total": 0.0})
            entry["count"] += 1
            entry["total"] += expense.amount
        return breakdown

    # --- maintenance -------------------------------------------------------
    @staticmethod
    def total_maintenance_cost(records: Iterable[MaintenanceRecord]) -> float:
        return sum(r.total_cost for r in records)

    def maintenance_by_month(
        self,
        records: Iterable[MaintenanceRecord],
        window: Optional[MonthWindow] = None,
    ) -> List[CostBucket]:
        """Labor plus spare part cost per month, by start date."""
        buckets = []
        for month, items in partition_by_month(records, lambda m: m.start_date, window):
            bucket = CostBucket(key=month.key, label=month.label)
            for record in items:
                bucket.add(record.total_cost)
            buckets.append(bucket)
        return buckets

    # --- combined ----------------------------------------------------------
    def financials_by_month(
        self,
        processed: Iterable[ProcessedRecord],
        expenses: Iterable[Expense] = (),
        maintenance: Iterable[MaintenanceRecord] = (),
        window: Optional[MonthWindow] = None,
    ) -> List[MonthlyFinancials]:
        """Monthly revenue, DKU share, approved expenses and maintenance cost."""
        months: Dict[MonthBucket, MonthlyFinancials] = {}

        def row(month: MonthBucket) -> MonthlyFinancials:
            if month not in months:
                months[month] = MonthlyFinancials(key=month.key, label=month.label)
            return months[month]

        for month, records in partition_by_month(processed, lambda r: r.date, window):
            entry = row(month)
            entry.revenue += sum(r.net_amount for r in records)
            entry.dku_share += sum(r.dku_share for r in records)
        for month, items in partition_by_month(self.approved_expenses(expenses), lambda e: e.date, window):
            row(month).expenses += sum(e.amount for e in items)
        for month, items in partition_by_month(maintenance, lambda m: m.start_date, window):
            row(month).maintenance_cost += sum(m.total_cost for m in items)

        return [months[m] for m in sorted(months, key=lambda m: (m.year, m.month))]

    def summarize(
        self,
        record_set: RecordSet,
        window: Optional[MonthWindow] = None,
        processed: Optional[List[ProcessedRecord]] = None,
        all_time: bool = False,
        today: Optional[date] = None,
    ) -> DashboardSummary:
        """
        Scalar dashboard summary.

        Defaults to the configured "last N months" window; pass
        `all_time=True` to summarize every record instead. Asset counts
        always describe the current fleet.
        """
        if window is None and not all_time:
            window = self.window(today=today)
        if processed is None:
            processed = self.process(record_set)

        revenue = [r for r in processed if _in_window(window, r.date)]
        expenses = [e for e in record_set.expenses if _in_window(window, e.date)]
        maintenance = [m for m in record_set.maintenance_records if _in_window(window, m.start_date)]
        assets = record_set.assets

        return DashboardSummary(
            period_start=window.start if window else None,
            period_end=window.end if window else None,
            resort_count=len(record_set.resorts),
            asset_count=len(assets),
            active_assets=sum(1 for a in assets if a.is_active),
            maintenance_assets=sum(1 for a in assets if a.in_maintenance),
            gross_revenue=sum(r.gross_amount for r in revenue),
            total_revenue=sum(r.net_amount for r in revenue),
            total_dku_share=sum(r.dku_share for r in revenue),
            total_expenses=sum(e.amount for e in self.approved_expenses(expenses)),
            pending_expenses=sum(1 for e in expenses if e.status == ApprovalStatus.PENDING),
            total_maintenance_cost=self.total_maintenance_cost(maintenance),
            maintenance_record_count=len(maintenance),
            unconfigured_records=sum(1 for r in revenue if not r.has_config),
        )

    # --- per resort --------------------------------------------------------
    def resort_performance(
        self,
        record_set: RecordSet,
        processed: Optional[List[ProcessedRecord]] = None,
        window: Optional[MonthWindow] = None,
    ) -> List[ResortPerformance]:
        """
        Comparison rows for every resort, highest revenue first.

        Expenses count toward a resort only when tagged with it; maintenance
        cost is attributed through the asset's resort and reported apart
        from net profit.
        """
        if processed is None:
            processed = self.process(record_set)

        rows: Dict[str, ResortPerformance] = {}

        def row(resort_id: str) -> ResortPerformance:
            if resort_id not in rows:
                rows[resort_id] = ResortPerformance(resort_id=resort_id, resort_name=resort_id or UNASSIGNED)
            return rows[resort_id]

        for resort in record_set.resorts:
            rows[resort.id] = ResortPerformance(resort_id=resort.id, resort_name=resort.name)

        for record in processed:
            if not _in_window(window, record.date):
                continue
            entry = row(record.resort_id)
            entry.total_revenue += record.net_amount
            entry.dku_share += record.dku_share

        for expense in self.approved_expenses(record_set.expenses):
            if expense.resort_id and _in_window(window, expense.date):
                row(expense.resort_id).total_expenses += expense.amount

        for asset in record_set.assets:
            if not asset.resort_id:
                continue
            entry = row(asset.resort_id)
            entry.total_assets += 1
            if asset.is_active:
                entry.active_assets += 1
            elif asset.in_maintenance:
                entry.maintenance_assets += 1

        asset_resorts = record_set.asset_resorts()
        for record in record_set.maintenance_records:
            resort_id = asset_resorts.get(record.asset_id)
            if resort_id and _in_window(window, record.start_date):
                row(resort_id).maintenance_cost += record.total_cost

        return _descending(rows.values(), "total_revenue")

    def resort_detail(
        self,
        record_set: RecordSet,
        resort_id: str,
        processed: Optional[List[ProcessedRecord]] = None,
        window: Optional[MonthWindow] = None,
        today: Optional[date] = None,
    ) -> Optional[ResortDetail]:
        """
        Monthly series and category breakdown for one resort, or None if unknown.

        Performance totals, categories and the monthly series all cover the
        same window.
        """
        if processed is None:
            processed = self.process(record_set)
        if window is None:
            window = self.window(today=today)

        performance = next(
            (p for p in self.resort_performance(record_set, processed, window) if p.resort_id == resort_id),
            None,
        )
        if performance is None:
            log.warning(f"Resort {resort_id} not found")
            return None

        asset_ids = {a.id for a in record_set.assets if a.resort_id == resort_id}
        revenue = [r for r in processed if r.resort_id == resort_id and window.contains(r.date)]
        expenses = [e for e in record_set.expenses if e.resort_id == resort_id and window.contains(e.date)]
        maintenance = [
            m for m in record_set.maintenance_records
            if m.asset_id in asset_ids and window.contains(m.start_date)
        ]

        return ResortDetail(
            performance=performance,
            monthly=self.financials_by_month(revenue, expenses, maintenance, window),
            categories=self.revenue_by_category(revenue),
        )


def get_aggregation_engine(settings: Optional[AnalyticsSettings] = None) -> AggregationEngine:
    """Factory function for the aggregation engine."""
    return AggregationEngine(settings)
