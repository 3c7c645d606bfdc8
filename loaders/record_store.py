"""
Record Store client for the hosted Supabase/PostgREST backend.

Features:
- Pagination past the 1000-row response ceiling
- Retry with exponential backoff on connection failures
- Server-side date range filtering
- Conversion of raw rows into core record types
"""

import logging
from datetime import date, timedelta
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

import requests
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from core.models import (
    Asset, Expense, MaintenanceRecord, ProfitSharingConfig, RecordSet, Resort, RevenueRecord,
)
from core.settings import AnalyticsSettings, PAGE_SIZE, get_settings

log = logging.getLogger(__name__)

Params = List[Tuple[str, str]]


class RecordStoreError(Exception):
    """The record store could not deliver a complete collection."""


class RecordStoreConfigError(RecordStoreError):
    """The record store URL or API key is missing."""


class SupabaseRecordStore:
    """
    Reads resort fleet records from Supabase's REST interface.

    Usage:
        store = SupabaseRecordStore.from_settings(get_settings())
        record_set = store.load_record_set(start=date(2024, 1, 1))
    """

    REST_PATH = "/rest/v1"

    def __init__(
        self,
        base_url: str,
        api_key: str,
        page_size: int = PAGE_SIZE,
        timeout: int = 30,
        session: Optional[requests.Session] = None,
    ):
        if not base_url or not api_key:
            raise RecordStoreConfigError("SUPABASE_URL and SUPABASE_KEY must both be set")
        self.base_url = base_url.rstrip("/")
        self.page_size = page_size
        self.timeout = timeout
        self.session = session or requests.Session()
        self.session.headers.update({
            "apikey": api_key,
            "Authorization": f"Bearer {api_key}",
            "Accept": "application/json",
        })

    @classmethod
    def from_settings(cls, settings: AnalyticsSettings) -> "SupabaseRecordStore":
        return cls(
            base_url=settings.supabase_url,
            api_key=settings.supabase_key,
            page_size=settings.page_size,
            timeout=settings.request_timeout,
        )

    @retry(
        retry=retry_if_exception_type((requests.ConnectionError, requests.Timeout)),
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=1, max=8),
        reraise=True,
    )
    def _fetch_page(self, table: str, params: Params, offset: int) -> List[Dict[str, Any]]:
        """Fetch one page of rows with retry."""
        response = self.session.get(
            f"{self.base_url}{self.REST_PATH}/{table}",
            params=params + [("offset", str(offset)), ("limit", str(self.page_size))],
            timeout=self.timeout,
        )
        response.raise_for_status()
        return response.json()

    def fetch_all(
        self,
        table: str,
        select: str = "*",
        order: Sequence[str] = ("id.asc",),
        filters: Optional[Params] = None,
    ) -> List[Dict[str, Any]]:
        """
        Fetch every row of a table, page by page.

        A stable order is required so that pages do not overlap. Any failure
        aborts the whole fetch; partial results are never returned.
        """
        params: Params = [("select", select)]
        if order:
            params.append(("order", ",".join(order)))
        params.extend(filters or [])

        rows: List[Dict[str, Any]] = []
        offset = 0
        while True:
            try:
                page = self._fetch_page(table, params, offset)
            except requests.RequestException as e:
                raise RecordStoreError(f"Failed to fetch {table} at offset {offset}: {e}") from e
            except ValueError as e:
                raise RecordStoreError(f"Invalid JSON from {table} at offset {offset}: {e}") from e

            if not isinstance(page, list):
                raise RecordStoreError(f"Unexpected response for {table}: {type(page).__name__}")

            log.debug(f"Fetched {len(page)} rows from {table} at offset {offset}")
            rows.extend(page)
            if len(page) < self.page_size:
                break
            offset += self.page_size

        log.info(f"Fetched {len(rows)} rows from {table}")
        return rows

    @staticmethod
    def date_filters(column: str, start: Optional[date] = None, end: Optional[date] = None) -> Params:
        """Inclusive PostgREST range filters on a date column."""
        filters: Params = []
        if start is not None:
            filters.append((column, f"gte.{start.isoformat()}"))
        if end is not None:
            filters.append((column, f"lte.{end.isoformat()}"))
        return filters

    def _fetch_records(self, table: str, factory: Callable[[Dict[str, Any]], Any], **kwargs) -> List[Any]:
        return [factory(row) for row in self.fetch_all(table, **kwargs)]

    # --- typed collections -------------------------------------------------
    def fetch_resorts(self) -> List[Resort]:
        return self._fetch_records("resorts", Resort.from_row, select="id,name")

    def fetch_assets(self) -> List[Asset]:
        return self._fetch_records("assets", Asset.from_row, select="id,name,resort_id,category,status")

    def fetch_revenue_records(self, start: Optional[date] = None, end: Optional[date] = None) -> List[RevenueRecord]:
        return self._fetch_records(
            "revenue_records", RevenueRecord.from_row,
            order=("date.desc", "id.asc"),
            filters=self.date_filters("date", start, end),
        )

    def fetch_profit_configs(self) -> List[ProfitSharingConfig]:
        return self._fetch_records(
            "profit_sharing_configs", ProfitSharingConfig.from_row,
            select="id,resort_id,asset_category,dku_percentage,resort_percentage,effective_from",
        )

    def fetch_expenses(self, start: Optional[date] = None, end: Optional[date] = None) -> List[Expense]:
        return self._fetch_records(
            "expenses", Expense.from_row,
            filters=self.date_filters("date", start, end),
        )

    def fetch_maintenance_records(self, start: Optional[date] = None, end: Optional[date] = None) -> List[MaintenanceRecord]:
        filters = self.date_filters("start_date", start, None)
        if end is not None:
            # start_date is a timestamp; compare against the next day to keep the end inclusive
            filters.append(("start_date", f"lt.{(end + timedelta(days=1)).isoformat()}"))
        return self._fetch_records(
            "maintenance_records", MaintenanceRecord.from_row,
            select="id,asset_id,labor_cost,sparepart_cost,start_date,"
                   "spare_parts(part_name,quantity,unit_cost,total_cost)",
            filters=filters,
        )

    def fetch_invoice_numbers(self, prefix: str) -> List[str]:
        """Existing invoice numbers starting with `prefix`."""
        rows = self.fetch_all(
            "invoices", select="invoice_number", order=("invoice_number.desc",),
            filters=[("invoice_number", f"like.{prefix}*")],
        )
        return [row.get("invoice_number") for row in rows if row.get("invoice_number")]

    def load_record_set(self, start: Optional[date] = None, end: Optional[date] = None) -> RecordSet:
        """Fetch every collection the analytics engine needs."""
        return RecordSet(
            resorts=self.fetch_resorts(),
            assets=self.fetch_assets(),
            revenue_records=self.fetch_revenue_records(start, end),
            profit_configs=self.fetch_profit_configs(),
            expenses=self.fetch_expenses(start, end),
            maintenance_records=self.fetch_maintenance_records(start, end),
        )


def get_record_store(settings: Optional[AnalyticsSettings] = None) -> SupabaseRecordStore:
    """Factory function for the record store client."""
    return SupabaseRecordStore.from_settings(settings or get_settings())
