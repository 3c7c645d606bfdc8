"""
Data loaders for the resort fleet analytics engine.

Includes:
- Record store (Supabase REST, paginated)
"""

from loaders.record_store import (
    SupabaseRecordStore, RecordStoreError, RecordStoreConfigError, get_record_store,
)

__all__ = [
    "SupabaseRecordStore",
    "RecordStoreError",
    "RecordStoreConfigError",
    "get_record_store",
]
