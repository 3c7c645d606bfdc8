"""
Runtime settings for the analytics engine and the record store client.

Defaults live on the dataclass; `AnalyticsSettings.from_env()` overlays
environment variables.
"""

import logging
import os
from dataclasses import dataclass, field
from typing import FrozenSet, Optional, Tuple

from core.models import AssetCategory, UserRole, coerce_enum

log = logging.getLogger(__name__)

PAGE_SIZE = 1000
DEFAULT_WINDOW_MONTHS = 6
EXTENDED_WINDOW_MONTHS = 12
DEFAULT_PRIVILEGED_ROLES = frozenset({UserRole.ADMIN, UserRole.MANAGER})


@dataclass
class AnalyticsSettings:
    """
    Configuration shared by the resolver, the aggregation engine and loaders.

    Attributes:
        multi_version_pairs: (resort_id, category) pairs with date-versioned configs
        strict_effective_dates: Apply date versioning to every pair
        privileged_roles: Roles allowed to see financial aggregates
        default_window_months: Dashboard window ("last 6 months")
        extended_window_months: Long window ("last 12 months")
        page_size: Record store page ceiling
        supabase_url: Base URL of the hosted record store
        supabase_key: API key for the hosted record store
        request_timeout: HTTP timeout in seconds
    """
    multi_version_pairs: FrozenSet[Tuple[str, AssetCategory]] = field(default_factory=frozenset)
    strict_effective_dates: bool = False
    privileged_roles: FrozenSet[UserRole] = DEFAULT_PRIVILEGED_ROLES
    default_window_months: int = DEFAULT_WINDOW_MONTHS
    extended_window_months: int = EXTENDED_WINDOW_MONTHS
    page_size: int = PAGE_SIZE
    supabase_url: Optional[str] = None
    supabase_key: Optional[str] = None
    request_timeout: int = 30

    @classmethod
    def from_env(cls) -> "AnalyticsSettings":
        """Build settings from environment variables."""
        settings = cls(
            supabase_url=os.environ.get("SUPABASE_URL"),
            supabase_key=os.environ.get("SUPABASE_KEY"),
        )

        pairs = os.environ.get("RESORT_MULTI_VERSION_PAIRS")
        if pairs:
            settings.multi_version_pairs = parse_multi_version_pairs(pairs)

        roles = os.environ.get("RESORT_PRIVILEGED_ROLES")
        if roles:
            settings.privileged_roles = frozenset(
                coerce_enum(UserRole, r.strip().upper()) for r in roles.split(",") if r.strip()
            )

        strict = os.environ.get("RESORT_STRICT_EFFECTIVE_DATES")
        if strict:
            settings.strict_effective_dates = strict.strip().lower() in ("1", "true", "yes")

        settings.default_window_months = _int_env("RESORT_WINDOW_MONTHS", settings.default_window_months)
        settings.page_size = _int_env("RESORT_PAGE_SIZE", settings.page_size)
        settings.request_timeout = _int_env("RESORT_REQUEST_TIMEOUT", settings.request_timeout)
        return settings


def parse_multi_version_pairs(text: str) -> FrozenSet[Tuple[str, AssetCategory]]:
    """
    Parse 'resort-a:ATV,resort-b:UTV' into a set of (resort_id, category).

    Entries without a colon are skipped with a warning.
    """
    pairs = set()
    for entry in text.split(","):
        entry = entry.strip()
        if not entry:
            continue
        if ":" not in entry:
            log.warning(f"Ignoring malformed multi-version pair: {entry!r}")
            continue
        resort_id, category = entry.rsplit(":", 1)
        pairs.add((resort_id.strip(), coerce_enum(AssetCategory, category.strip().upper())))
    return frozenset(pairs)


def _int_env(name: str, default: int) -> int:
    raw = os.environ.get(name)
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        log.warning(f"Invalid integer for {name}: {raw!r}, using {default}")
        return default


def get_settings() -> AnalyticsSettings:
    """Factory function for settings."""
    return AnalyticsSettings.from_env()
