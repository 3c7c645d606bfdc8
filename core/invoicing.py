"""
Invoice drafting - per-category profit sharing statements for a resort.

Line items are built from the same processed records the dashboards use, so
an invoice always agrees with the resort's DKU share for the same period.
"""

import logging
import re
from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional

from core.aggregation import safe_percentage
from core.models import AssetCategory, ProcessedRecord, category_label, category_value
from core.periods import in_range

log = logging.getLogger(__name__)

INVOICE_NUMBER_PATTERN = re.compile(r"^INV-(\d{6})-(\d+)$")


class InvoiceStatus(str, Enum):
    """Invoice lifecycle."""
    DRAFT = "DRAFT"
    SENT = "SENT"
    PAID = "PAID"


@dataclass
class InvoiceLineItem:
    """Profit sharing for one asset category over the invoice period."""
    asset_category: Any
    revenue: float = 0.0  # net amount
    dku_amount: float = 0.0
    record_count: int = 0
    unconfigured_count: int = 0

    @property
    def resort_amount(self) -> float:
        return self.revenue - self.dku_amount

    @property
    def dku_percentage(self) -> float:
        """Effective DKU percentage across the line's records."""
        return round(safe_percentage(self.dku_amount, self.revenue), 2)

    @property
    def resort_percentage(self) -> float:
        return round(100 - self.dku_percentage, 2)

    @property
    def has_unconfigured(self) -> bool:
        return self.unconfigured_count > 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "asset_category": category_value(self.asset_category),
            "label": category_label(self.asset_category),
            "revenue": self.revenue,
            "dku_percentage": self.dku_percentage,
            "resort_percentage": self.resort_percentage,
            "dku_amount": self.dku_amount,
            "resort_amount": self.resort_amount,
            "unconfigured_count": self.unconfigured_count,
        }


@dataclass
class InvoiceDraft:
    """An invoice not yet persisted."""
    resort_id: str
    start_date: date
    end_date: date
    line_items: List[InvoiceLineItem] = field(default_factory=list)
    invoice_number: Optional[str] = None
    status: InvoiceStatus = InvoiceStatus.DRAFT

    @property
    def total_revenue(self) -> float:
        return sum(item.revenue for item in self.line_items)

    @property
    def dku_share(self) -> float:
        return sum(item.dku_amount for item in self.line_items)

    @property
    def resort_share(self) -> float:
        return sum(item.resort_amount for item in self.line_items)

    @property
    def is_empty(self) -> bool:
        return not self.line_items

    def to_dict(self) -> Dict[str, Any]:
        return {
            "invoice_number": self.invoice_number,
            "resort_id": self.resort_id,
            "start_date": self.start_date.isoformat(),
            "end_date": self.end_date.isoformat(),
            "total_revenue": self.total_revenue,
            "dku_share": self.dku_share,
            "resort_share": self.resort_share,
            "status": self.status.value,
            "line_items": [item.to_dict() for item in self.line_items],
        }


def _category_order(category: Any) -> int:
    values = [c.value for c in AssetCategory]
    value = category_value(category)
    return values.index(value) if value in values else len(values)


def draft_invoice(
    resort_id: str,
    start_date: date,
    end_date: date,
    processed: Iterable[ProcessedRecord],
    categories: Optional[Iterable[Any]] = None,
) -> InvoiceDraft:
    """
    Build an invoice for a resort over [start_date, end_date] (inclusive).

    Args:
        resort_id: Resort to invoice
        start_date: First day of the period
        end_date: Last day of the period
        processed: Records already run through the revenue processor
        categories: Optional subset of asset categories to bill

    Line items follow the fleet category order; categories outside the
    known set come last.
    """
    if end_date < start_date:
        raise ValueError(f"Invoice period ends before it starts: {start_date} > {end_date}")

    wanted = {category_value(c) for c in categories} if categories else None
    items: Dict[Any, InvoiceLineItem] = {}

    for record in processed:
        if record.resort_id != resort_id or not in_range(record.date, start_date, end_date):
            continue
        key = category_value(record.asset_category)
        if wanted is not None and key not in wanted:
            continue
        if key not in items:
            items[key] = InvoiceLineItem(asset_category=record.asset_category)
        item = items[key]
        item.revenue += record.net_amount
        item.dku_amount += record.dku_share
        item.record_count += 1
        if not record.has_config:
            item.unconfigured_count += 1

    draft = InvoiceDraft(
        resort_id=resort_id,
        start_date=start_date,
        end_date=end_date,
        line_items=sorted(items.values(), key=lambda i: _category_order(i.asset_category)),
    )
    unconfigured = sum(i.unconfigured_count for i in draft.line_items)
    if unconfigured:
        log.warning(f"Invoice for {resort_id} includes {unconfigured} records without profit sharing config")
    return draft


def next_invoice_number(existing: Iterable[str], today: Optional[date] = None) -> str:
    """
    Next sequential number of the form INV-YYYYMM-NNNN for today's month.

    Numbers from other months and malformed numbers are ignored.
    """
    today = today or date.today()
    period = f"{today.year}{today.month:02d}"
    highest = 0
    for number in existing:
        match = INVOICE_NUMBER_PATTERN.match(str(number or ""))
        if match and match.group(1) == period:
            highest = max(highest, int(match.group(2)))
    return f"INV-{period}-{highest + 1:04d}"
