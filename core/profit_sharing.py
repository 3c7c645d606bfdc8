"""
Profit Sharing Module - resolving split configs and applying them to revenue.

A revenue record's DKU share is its net amount times the DKU percentage of
the profit sharing config that applies to its (resort, category) pair on the
record's date. Records without an applicable config keep all of their net
amount as resort share and are flagged as unconfigured.
"""

import logging
from collections import defaultdict
from datetime import date
from typing import Any, Dict, Iterable, List, Optional, Tuple

from core.models import (
    ProcessedRecord, ProfitSharingConfig, RevenueRecord, category_value, to_number
)
from core.periods import in_range

log = logging.getLogger(__name__)

PairKey = Tuple[str, Any]


def _pair(resort_id: Any, category: Any) -> PairKey:
    return (str(resort_id), category_value(category))


class ConfigResolver:
    """
    Maps a revenue record to the single applicable profit sharing config.

    Pairs listed in `multi_version_pairs` (or every pair, when
    `strict_effective_dates` is set) carry date-versioned configs: the one
    with the latest `effective_from` on or before the record date wins.
    Any pair that turns out to have several configs is treated the same way.
    A lone config on an unflagged pair applies regardless of its date.
    """

    def __init__(
        self,
        configs: Iterable[ProfitSharingConfig],
        multi_version_pairs: Iterable[PairKey] = (),
        strict_effective_dates: bool = False,
    ):
        self._by_pair: Dict[PairKey, List[ProfitSharingConfig]] = defaultdict(list)
        for config in configs:
            self._by_pair[_pair(config.resort_id, config.asset_category)].append(config)
        self.multi_version_pairs = {_pair(r, c) for r, c in multi_version_pairs}
        self.strict_effective_dates = strict_effective_dates

    @classmethod
    def from_settings(cls, configs: Iterable[ProfitSharingConfig], settings) -> "ConfigResolver":
        return cls(
            configs,
            multi_version_pairs=settings.multi_version_pairs,
            strict_effective_dates=settings.strict_effective_dates,
        )

    def is_versioned(self, resort_id: Any, category: Any) -> bool:
        return self.strict_effective_dates or _pair(resort_id, category) in self.multi_version_pairs

    def candidates(self, resort_id: Any, category: Any) -> List[ProfitSharingConfig]:
        return list(self._by_pair.get(_pair(resort_id, category), ()))

    def resolve(self, record: RevenueRecord) -> Optional[ProfitSharingConfig]:
        """Return the applicable config, or None when the record is unconfigured."""
        matches = self._by_pair.get(_pair(record.resort_id, record.asset_category))
        if not matches:
            return None

        if len(matches) == 1 and not self.is_versioned(record.resort_id, record.asset_category):
            return matches[0]

        return latest_effective(matches, record.date)


def latest_effective(configs: Iterable[ProfitSharingConfig], on: Optional[date]) -> Optional[ProfitSharingConfig]:
    """
    Latest config whose effective_from is on or before `on`.

    Ties on effective_from keep the first config in input order.
    """
    if on is None:
        return None
    best = None
    for config in configs:
        if config.effective_from is None or config.effective_from > on:
            continue
        if best is None or config.effective_from > best.effective_from:
            best = config
    return best


class RevenueProcessor:
    """Applies profit sharing to revenue records, one record at a time."""

    def __init__(self, resolver: ConfigResolver):
        self.resolver = resolver

    def process(self, records: Iterable[Any]) -> List[ProcessedRecord]:
        """
        Process a batch. Output has one entry per input entry, in order.

        A record that fails to process is replaced by a fallback entry
        (raw amount as net, zero share, unconfigured) and the batch goes on.
        """
        processed = []
        for record in records:
            try:
                processed.append(self.process_one(record))
            except Exception as e:
                log.error(f"Error processing revenue record {_record_id(record)}: {e}")
                processed.append(_fallback(record))

        unconfigured = sum(1 for p in processed if not p.has_config)
        if unconfigured:
            log.info(f"{unconfigured} of {len(processed)} revenue records have no profit sharing config")
        return processed

    def process_one(self, record: Any) -> ProcessedRecord:
        if not isinstance(record, RevenueRecord):
            record = RevenueRecord.from_row(record)

        net_amount = to_number(record.amount - record.discount - record.tax_service)
        config = self.resolver.resolve(record)
        dku_percentage = config.dku_percentage if config else 0.0
        dku_share = to_number(net_amount * dku_percentage / 100)

        if config is None:
            log.debug(
                f"No profit sharing config for {record.resort_id}/"
                f"{category_value(record.asset_category)} on {record.date}"
            )

        return ProcessedRecord(
            record=record,
            net_amount=net_amount,
            dku_share=dku_share,
            dku_percentage=dku_percentage,
            has_config=config is not None,
            config_id=config.id if config else None,
        )


def _record_id(record: Any) -> Any:
    if isinstance(record, dict):
        return record.get("id")
    return getattr(record, "id", None)


def _raw_field(record: Any, name: str) -> Any:
    if isinstance(record, dict):
        return record.get(name)
    return getattr(record, name, None)


def _fallback(record: Any) -> ProcessedRecord:
    """Fallback entry for a record that could not be processed."""
    if isinstance(record, RevenueRecord):
        source = record
    else:
        source = RevenueRecord.from_row({
            name: _raw_field(record, name)
            for name in ("id", "resort_id", "asset_category", "date", "amount")
        })
    return ProcessedRecord(
        record=source,
        net_amount=to_number(source.amount),
        dku_share=0.0,
        dku_percentage=0.0,
        has_config=False,
    )


def process_revenue_with_profit_sharing(
    records: Iterable[Any],
    configs: Iterable[ProfitSharingConfig],
    multi_version_pairs: Iterable[PairKey] = (),
    strict_effective_dates: bool = False,
) -> List[ProcessedRecord]:
    """Convenience function: resolve configs and process a batch of records."""
    resolver = ConfigResolver(configs, multi_version_pairs, strict_effective_dates)
    return RevenueProcessor(resolver).process(records)


# ═══════════════════════════════════════════════════════════════════════════
# RECORD-LEVEL HELPERS
# ═══════════════════════════════════════════════════════════════════════════
def total_dku_share(records: Iterable[ProcessedRecord]) -> float:
    return sum(r.dku_share for r in records)


def total_resort_share(records: Iterable[ProcessedRecord]) -> float:
    return sum(r.resort_share for r in records)


def group_by_resort(records: Iterable[ProcessedRecord]) -> Dict[str, List[ProcessedRecord]]:
    grouped: Dict[str, List[ProcessedRecord]] = {}
    for record in records:
        grouped.setdefault(record.resort_id, []).append(record)
    return grouped


def group_by_category(records: Iterable[ProcessedRecord]) -> Dict[Any, List[ProcessedRecord]]:
    grouped: Dict[Any, List[ProcessedRecord]] = {}
    for record in records:
        grouped.setdefault(category_value(record.asset_category), []).append(record)
    return grouped


def filter_by_date_range(
    records: Iterable[ProcessedRecord],
    start: Optional[date] = None,
    end: Optional[date] = None,
) -> List[ProcessedRecord]:
    """Records dated within [start, end], both inclusive."""
    return [r for r in records if in_range(r.date, start, end)]


def filter_records(
    records: Iterable[ProcessedRecord],
    resort_id: Optional[str] = None,
    category: Any = None,
    start: Optional[date] = None,
    end: Optional[date] = None,
) -> List[ProcessedRecord]:
    """Filter by resort, category and inclusive date range. None means 'all'."""
    wanted_category = category_value(category) if category is not None else None
    return [
        r for r in records
        if (resort_id is None or r.resort_id == resort_id)
        and (wanted_category is None or category_value(r.asset_category) == wanted_category)
        and in_range(r.date, start, end)
    ]


def records_without_config(records: Iterable[ProcessedRecord]) -> List[ProcessedRecord]:
    """Records that fell back to a zero DKU share, for audit."""
    return [r for r in records if not r.has_config]


def summary_stats(records: List[ProcessedRecord]) -> Dict[str, float]:
    """Totals over a batch of processed records."""
    count = len(records)
    return {
        "total_gross": sum(r.record.amount for r in records),
        "total_discount": sum(r.record.discount for r in records),
        "total_tax_service": sum(r.record.tax_service for r in records),
        "total_net_amount": sum(r.net_amount for r in records),
        "total_dku_share": total_dku_share(records),
        "total_resort_share": total_resort_share(records),
        "record_count": count,
        "records_without_config": len(records_without_config(records)),
        "average_dku_percentage": (
            sum(r.dku_percentage for r in records) / count if count > 0 else 0
        ),
    }
