"""
Core module for the resort fleet analytics engine.
Contains record models, profit sharing, aggregation and reporting.
"""

from core.models import (
    AssetCategory, AssetStatus, ApprovalStatus, ExpenseCategory, UserRole,
    Resort, Asset, RevenueRecord, ProfitSharingConfig, Expense, SparePart,
    MaintenanceRecord, ProcessedRecord, RecordSet,
)
from core.settings import AnalyticsSettings, get_settings
from core.periods import MonthBucket, MonthWindow, last_n_months
from core.profit_sharing import ConfigResolver, RevenueProcessor, process_revenue_with_profit_sharing
from core.aggregation import AggregationEngine, DashboardSummary, ResortPerformance, get_aggregation_engine
from core.invoicing import InvoiceDraft, InvoiceStatus, draft_invoice, next_invoice_number
from core.reporting import ReportBuilder, can_view_financials, get_report_builder

__all__ = [
    # Records
    "AssetCategory",
    "AssetStatus",
    "ApprovalStatus",
    "ExpenseCategory",
    "UserRole",
    "Resort",
    "Asset",
    "RevenueRecord",
    "ProfitSharingConfig",
    "Expense",
    "SparePart",
    "MaintenanceRecord",
    "ProcessedRecord",
    "RecordSet",
    # Settings and periods
    "AnalyticsSettings",
    "get_settings",
    "MonthBucket",
    "MonthWindow",
    "last_n_months",
    # Engines
    "ConfigResolver",
    "RevenueProcessor",
    "process_revenue_with_profit_sharing",
    "AggregationEngine",
    "DashboardSummary",
    "ResortPerformance",
    "get_aggregation_engine",
    "InvoiceDraft",
    "InvoiceStatus",
    "draft_invoice",
    "next_invoice_number",
    "ReportBuilder",
    "can_view_financials",
    "get_report_builder",
]
