import pytest
import requests
from datetime import date
from unittest.mock import MagicMock, patch
from core.models import AssetCategory, RevenueRecord
from core.settings import AnalyticsSettings
from loaders.record_store import (
    RecordStoreConfigError, RecordStoreError, SupabaseRecordStore, get_record_store,
)


def page(rows):
    response = MagicMock()
    response.json.return_value = rows
    return response


@pytest.fixture
def store():
    with patch('requests.Session') as mock_session:
        store = SupabaseRecordStore("https://example.supabase.co/", "secret-key", page_size=2)
        store.session = mock_session.return_value
        yield store


def test_requires_credentials():
    """Missing URL or key is a configuration error."""
    with pytest.raises(RecordStoreConfigError):
        SupabaseRecordStore("", "key")
    with pytest.raises(RecordStoreError):
        get_record_store(AnalyticsSettings(supabase_url="https://example.supabase.co"))


def test_auth_headers():
    """The API key is sent both as apikey and bearer token."""
    with patch('requests.Session') as mock_session:
        mock_session.return_value.headers = {}
        store = SupabaseRecordStore("https://example.supabase.co", "secret-key")
    assert store.session.headers["apikey"] == "secret-key"
    assert store.session.headers["Authorization"] == "Bearer secret-key"
    assert store.page_size == 1000


def test_fetch_all_paginates(store):
    """Pages are requested until a short page arrives."""
    store.session.get.side_effect = [
        page([{"id": 1}, {"id": 2}]),
        page([{"id": 3}, {"id": 4}]),
        page([{"id": 5}]),
    ]

    rows = store.fetch_all("resorts")

    assert [r["id"] for r in rows] == [1, 2, 3, 4, 5]
    assert store.session.get.call_count == 3
    url = store.session.get.call_args.args[0]
    params = store.session.get.call_args.kwargs["params"]
    assert url == "https://example.supabase.co/rest/v1/resorts"
    assert ("offset", "4") in params
    assert ("limit", "2") in params
    assert ("order", "id.asc") in params


def test_fetch_all_exact_multiple_of_page_size(store):
    """An empty final page ends the loop."""
    store.session.get.side_effect = [page([{"id": 1}, {"id": 2}]), page([])]
    assert len(store.fetch_all("resorts")) == 2


def test_http_error_aborts_fetch(store):
    """A failed page never yields partial results."""
    failing = MagicMock()
    failing.raise_for_status.side_effect = requests.HTTPError("500 Server Error")
    store.session.get.side_effect = [page([{"id": 1}, {"id": 2}]), failing]

    with pytest.raises(RecordStoreError):
        store.fetch_all("resorts")


def test_invalid_json_and_unexpected_shape(store):
    bad_json = MagicMock()
    bad_json.json.side_effect = ValueError("not json")
    store.session.get.side_effect = [bad_json]
    with pytest.raises(RecordStoreError):
        store.fetch_all("resorts")

    store.session.get.side_effect = [page({"message": "oops"})]
    with pytest.raises(RecordStoreError):
        store.fetch_all("resorts")


def test_connection_error_is_retried(store):
    """Transient connection failures are retried before giving up."""
    store.session.get.side_effect = [requests.ConnectionError("reset"), page([{"id": 1}])]
    assert store.fetch_all("resorts") == [{"id": 1}]
    assert store.session.get.call_count == 2


def test_date_filters():
    filters = SupabaseRecordStore.date_filters("date", date(2024, 1, 1), date(2024, 3, 31))
    assert filters == [("date", "gte.2024-01-01"), ("date", "lte.2024-03-31")]
    assert SupabaseRecordStore.date_filters("date") == []


def test_fetch_revenue_records(store):
    """Rows are converted to revenue records with server-side date filters."""
    store.session.get.side_effect = [page([
        {"id": "x", "resort_id": "r1", "asset_category": "ATV", "date": "2024-02-01",
         "amount": "1000.00", "discount": None, "tax_service": "100"},
    ])]

    records = store.fetch_revenue_records(date(2024, 1, 1), date(2024, 3, 31))

    assert isinstance(records[0], RevenueRecord)
    assert records[0].asset_category is AssetCategory.ATV
    assert records[0].net_amount == 900
    params = store.session.get.call_args.kwargs["params"]
    assert ("order", "date.desc,id.asc") in params
    assert ("date", "gte.2024-01-01") in params


def test_fetch_maintenance_end_is_inclusive(store):
    store.session.get.side_effect = [page([])]
    store.fetch_maintenance_records(end=date(2024, 3, 31))
    params = store.session.get.call_args.kwargs["params"]
    assert ("start_date", "lt.2024-04-01") in params


def test_fetch_invoice_numbers(store):
    store.session.get.side_effect = [page([{"invoice_number": "INV-202403-0001"}, {"invoice_number": None}])]
    assert store.fetch_invoice_numbers("INV-202403-") == ["INV-202403-0001"]


def test_load_record_set(store):
    """Every collection is fetched and typed."""
    store.session.get.side_effect = [
        page([{"id": "r1", "name": "Montigo"}]),
        page([{"id": "a1", "resort_id": "r1", "category": "ATV", "status": "ACTIVE"}]),
        page([{"resort_id": "r1", "asset_category": "ATV", "date": "2024-02-01", "amount": 10}]),
        page([{"resort_id": "r1", "asset_category": "ATV", "dku_percentage": "85", "effective_from": "2024-01-01"}]),
        page([{"category": "OPERATIONAL", "amount": "5", "date": "2024-02-02", "status": "APPROVED"}]),
        page([{"asset_id": "a1", "labor_cost": "3", "sparepart_cost": "2", "start_date": "2024-02-03T09:00:00"}]),
    ]

    record_set = store.load_record_set(start=date(2024, 1, 1))

    assert record_set.resort_names() == {"r1": "Montigo"}
    assert record_set.assets[0].is_active
    assert record_set.revenue_records[0].amount == 10
    assert record_set.profit_configs[0].dku_percentage == 85
    assert record_set.expenses[0].is_approved
    assert record_set.maintenance_records[0].total_cost == 5


def test_fetch_maintenance_embeds_spare_parts(store):
    """Spare part line items come embedded and override the stored column."""
    store.session.get.side_effect = [page([
        {"id": "m1", "asset_id": "a1", "labor_cost": "100", "sparepart_cost": "999",
         "start_date": "2024-03-02T10:00:00",
         "spare_parts": [
             {"part_name": "belt", "quantity": 2, "unit_cost": "30", "total_cost": None},
             {"part_name": "plug", "quantity": 1, "unit_cost": "15", "total_cost": "15"},
         ]},
    ])]

    records = store.fetch_maintenance_records()

    select = dict(store.session.get.call_args.kwargs["params"])["select"]
    assert "spare_parts(part_name,quantity,unit_cost,total_cost)" in select
    assert records[0].spare_part_total == 75
    assert records[0].total_cost == 175
