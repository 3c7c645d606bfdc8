"""
Core data models for the resort fleet analytics engine.

Every record coming out of the record store is converted into one of the
tagged dataclasses below. Numeric fields are coerced once, at construction
time, so that downstream aggregation never sees NaN, None or strings.
"""

import math
from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from typing import Any, Dict, List, Optional


class AssetCategory(str, Enum):
    """Rental fleet categories."""
    ATV = "ATV"
    UTV = "UTV"
    SEA_SPORT = "SEA_SPORT"
    POOL_TOYS = "POOL_TOYS"
    LINE_SPORT = "LINE_SPORT"

    @property
    def label(self) -> str:
        return category_label(self.value)


class AssetStatus(str, Enum):
    """Lifecycle status of a fleet asset."""
    ACTIVE = "ACTIVE"
    MAINTENANCE = "MAINTENANCE"
    RETIRED = "RETIRED"


class ApprovalStatus(str, Enum):
    """Approval state of an expense."""
    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"


class ExpenseCategory(str, Enum):
    """Expense categories."""
    OPERATIONAL = "OPERATIONAL"
    PERSONNEL = "PERSONNEL"
    MARKETING = "MARKETING"


class UserRole(str, Enum):
    """Roles a dashboard caller can be tagged with."""
    ENGINEER = "ENGINEER"
    ADMIN = "ADMIN"
    MANAGER = "MANAGER"


# ═══════════════════════════════════════════════════════════════════════════
# COERCION HELPERS
# ═══════════════════════════════════════════════════════════════════════════
def to_number(value: Any) -> float:
    """
    Coerce a raw field to a finite float.

    Missing, non-numeric, NaN and infinite values all become 0.0.
    """
    if value is None or isinstance(value, bool):
        return 0.0
    try:
        number = float(value)
    except (TypeError, ValueError):
        return 0.0
    if not math.isfinite(number):
        return 0.0
    return number


def parse_date(value: Any) -> Optional[date]:
    """
    Parse a calendar date, ignoring any time component or UTC offset.

    Accepts date/datetime objects, 'YYYY-MM-DD' strings and ISO timestamps.
    Only the calendar part is kept so that '2024-06-01T00:00:00+07:00'
    stays on June 1st regardless of the local time zone.
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    text = str(value).strip()[:10]
    try:
        year, month, day = (int(part) for part in text.split("-"))
        return date(year, month, day)
    except (TypeError, ValueError):
        return None


def category_label(category: Any) -> str:
    """Display label for a category: underscores become spaces."""
    if isinstance(category, Enum):
        category = category.value
    return str(category or "Uncategorized").replace("_", " ")


def coerce_enum(enum_cls, value: Any) -> Any:
    if isinstance(value, enum_cls):
        return value
    try:
        return enum_cls(value)
    except (TypeError, ValueError):
        return value


def _optional_str(value: Any) -> Optional[str]:
    if value is None or value == "":
        return None
    return str(value)


# ═══════════════════════════════════════════════════════════════════════════
# REFERENCE DATA
# ═══════════════════════════════════════════════════════════════════════════
@dataclass
class Resort:
    """A partner resort."""
    id: str
    name: str

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "Resort":
        return cls(id=str(row.get("id")), name=str(row.get("name") or ""))


@dataclass
class Asset:
    """A rental fleet asset placed at a resort."""
    id: str
    resort_id: Optional[str]
    category: Any = None
    status: Any = AssetStatus.ACTIVE
    name: str = ""

    def __post_init__(self):
        self.category = coerce_enum(AssetCategory, self.category)
        self.status = coerce_enum(AssetStatus, self.status)

    @property
    def is_active(self) -> bool:
        return self.status == AssetStatus.ACTIVE

    @property
    def in_maintenance(self) -> bool:
        return self.status == AssetStatus.MAINTENANCE

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "Asset":
        return cls(
            id=str(row.get("id")),
            resort_id=_optional_str(row.get("resort_id")),
            category=row.get("category"),
            status=row.get("status") or AssetStatus.ACTIVE,
            name=str(row.get("name") or ""),
        )


# ═══════════════════════════════════════════════════════════════════════════
# TRANSACTIONAL RECORDS
# ═══════════════════════════════════════════════════════════════════════════
@dataclass
class RevenueRecord:
    """One billable transaction for a resort, category and date."""
    resort_id: str
    asset_category: Any
    date: Any
    amount: Any = 0.0
    discount: Any = 0.0
    tax_service: Any = 0.0
    id: Optional[str] = None
    billing_no: Optional[str] = None

    def __post_init__(self):
        self.asset_category = coerce_enum(AssetCategory, self.asset_category)
        self.date = parse_date(self.date)
        self.amount = to_number(self.amount)
        self.discount = to_number(self.discount)
        self.tax_service = to_number(self.tax_service)

    @property
    def net_amount(self) -> float:
        """Gross amount minus discount and tax/service. May be negative."""
        return self.amount - self.discount - self.tax_service

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "RevenueRecord":
        return cls(
            id=_optional_str(row.get("id")),
            resort_id=_optional_str(row.get("resort_id")) or "",
            asset_category=row.get("asset_category"),
            date=row.get("date"),
            amount=row.get("amount"),
            discount=row.get("discount"),
            tax_service=row.get("tax_service"),
            billing_no=_optional_str(row.get("billing_no")),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "resort_id": self.resort_id,
            "asset_category": category_value(self.asset_category),
            "date": self.date.isoformat() if self.date else None,
            "amount": self.amount,
            "discount": self.discount,
            "tax_service": self.tax_service,
        }


@dataclass
class ProfitSharingConfig:
    """Revenue split rule for a (resort, asset category) pair."""
    resort_id: str
    asset_category: Any
    dku_percentage: Any = 0.0
    resort_percentage: Any = 0.0
    effective_from: Any = None
    id: Optional[str] = None

    def __post_init__(self):
        self.asset_category = coerce_enum(AssetCategory, self.asset_category)
        self.dku_percentage = to_number(self.dku_percentage)
        self.resort_percentage = to_number(self.resort_percentage)
        self.effective_from = parse_date(self.effective_from)

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "ProfitSharingConfig":
        return cls(
            id=_optional_str(row.get("id")),
            resort_id=_optional_str(row.get("resort_id")) or "",
            asset_category=row.get("asset_category"),
            dku_percentage=row.get("dku_percentage"),
            resort_percentage=row.get("resort_percentage"),
            effective_from=row.get("effective_from"),
        )


@dataclass
class Expense:
    """An operating cost awaiting or past approval."""
    category: Any
    amount: Any
    date: Any
    status: Any = ApprovalStatus.PENDING
    resort_id: Optional[str] = None
    id: Optional[str] = None
    description: str = ""

    def __post_init__(self):
        self.category = coerce_enum(ExpenseCategory, self.category)
        self.status = coerce_enum(ApprovalStatus, self.status)
        self.amount = to_number(self.amount)
        self.date = parse_date(self.date)

    @property
    def is_approved(self) -> bool:
        return self.status == ApprovalStatus.APPROVED

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "Expense":
        return cls(
            id=_optional_str(row.get("id")),
            category=row.get("category"),
            amount=row.get("amount"),
            date=row.get("date"),
            status=row.get("status") or ApprovalStatus.PENDING,
            resort_id=_optional_str(row.get("resort_id")),
            description=str(row.get("description") or ""),
        )


@dataclass
class SparePart:
    """A spare part line item consumed by a maintenance record."""
    part_name: str = ""
    quantity: Any = 0
    unit_cost: Any = 0.0
    total_cost: Any = None

    def __post_init__(self):
        self.quantity = to_number(self.quantity)
        self.unit_cost = to_number(self.unit_cost)
        if self.total_cost is None:
            self.total_cost = self.quantity * self.unit_cost
        else:
            self.total_cost = to_number(self.total_cost)

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "SparePart":
        return cls(
            part_name=str(row.get("part_name") or ""),
            quantity=row.get("quantity"),
            unit_cost=row.get("unit_cost"),
            total_cost=row.get("total_cost"),
        )


@dataclass
class MaintenanceRecord:
    """A maintenance event on an asset, costed as labor plus spare parts."""
    asset_id: str
    labor_cost: Any = 0.0
    sparepart_cost: Any = 0.0
    start_date: Any = None
    spare_parts: List[SparePart] = field(default_factory=list)
    id: Optional[str] = None

    def __post_init__(self):
        self.labor_cost = to_number(self.labor_cost)
        self.sparepart_cost = to_number(self.sparepart_cost)
        self.start_date = parse_date(self.start_date)

    @property
    def spare_part_total(self) -> float:
        """Line items win over the stored column when any are present."""
        if self.spare_parts:
            return sum(part.total_cost for part in self.spare_parts)
        return self.sparepart_cost

    @property
    def total_cost(self) -> float:
        return self.labor_cost + self.spare_part_total

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "MaintenanceRecord":
        parts = row.get("spare_parts") or []
        return cls(
            id=_optional_str(row.get("id")),
            asset_id=_optional_str(row.get("asset_id")) or "",
            labor_cost=row.get("labor_cost"),
            sparepart_cost=row.get("sparepart_cost"),
            start_date=row.get("start_date"),
            spare_parts=[SparePart.from_row(p) for p in parts if isinstance(p, dict)],
        )


# ═══════════════════════════════════════════════════════════════════════════
# DERIVED RECORDS
# ═══════════════════════════════════════════════════════════════════════════
@dataclass
class ProcessedRecord:
    """
    A revenue record after profit sharing has been applied.

    Attributes:
        record: The source revenue record
        net_amount: amount - discount - tax_service
        dku_share: net_amount * dku_percentage / 100
        dku_percentage: Percentage taken from the resolved config (0 if none)
        has_config: False when no profit sharing config applied
        config_id: Id of the resolved config, if any
    """
    record: RevenueRecord
    net_amount: float
    dku_share: float
    dku_percentage: float = 0.0
    has_config: bool = False
    config_id: Optional[str] = None

    @property
    def resort_share(self) -> float:
        return self.net_amount - self.dku_share

    @property
    def resort_id(self) -> str:
        return self.record.resort_id

    @property
    def asset_category(self) -> Any:
        return self.record.asset_category

    @property
    def date(self) -> Optional[date]:
        return self.record.date

    @property
    def gross_amount(self) -> float:
        return self.record.amount

    def to_dict(self) -> Dict[str, Any]:
        data = self.record.to_dict()
        data.update({
            "net_amount": self.net_amount,
            "dku_share": self.dku_share,
            "resort_share": self.resort_share,
            "dku_percentage": self.dku_percentage,
            "has_config": self.has_config,
        })
        return data


@dataclass
class RecordSet:
    """Fully materialized input collections handed over by the record store."""
    resorts: List[Resort] = field(default_factory=list)
    assets: List[Asset] = field(default_factory=list)
    revenue_records: List[RevenueRecord] = field(default_factory=list)
    profit_configs: List[ProfitSharingConfig] = field(default_factory=list)
    expenses: List[Expense] = field(default_factory=list)
    maintenance_records: List[MaintenanceRecord] = field(default_factory=list)

    def resort_names(self) -> Dict[str, str]:
        return {resort.id: resort.name for resort in self.resorts}

    def asset_resorts(self) -> Dict[str, Optional[str]]:
        """Map asset id -> resort id, used to attribute maintenance cost."""
        return {asset.id: asset.resort_id for asset in self.assets}


def category_value(category: Any) -> Any:
    """Plain string value for an enum member or a raw category."""
    return category.value if isinstance(category, Enum) else category
