"""Ledger and reference-data records.

Store documents use camelCase keys; these dataclasses expose snake_case
attributes and convert at the ``from_dict``/``to_dict`` boundary.

Carbon and GITA ledger entries are tagged variants that wrap a shared
``LineItem`` record instead of subclassing it, so every entry serializes the
same way: base line-item fields, then the variant's derived fields, then a
``kind`` tag.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, ClassVar

from kira_advisor.errors import ValidationError

CARBON_FIELDS = ("scope", "activityData", "emissionFactor", "gwp", "gef", "co2eEmission")
GITA_FIELDS = ("tier", "sector", "technology", "asset", "gitaAllowance")


class EntryKind(str, Enum):
    """Discriminator for ledger entry variants."""

    CARBON = "carbon"
    GITA = "gita"


def merge_fields(base: Mapping[str, Any], derived: Mapping[str, Any]) -> dict[str, Any]:
    """Merge derived fields over base fields.

    Keys are applied in two passes: every base key first, then every derived
    key. A key present in both takes the derived value. Neither input is
    mutated.
    """
    merged: dict[str, Any] = {}
    for key, value in base.items():
        merged[key] = value
    for key, value in derived.items():
        merged[key] = value
    return merged


def _require(data: Mapping[str, Any], keys: tuple[str, ...], record: str) -> None:
    missing = [key for key in keys if data.get(key) is None]
    if missing:
        raise ValidationError(
            f"{record} is missing required fields: {', '.join(missing)}",
            details={"missing": missing},
        )


def _number(data: Mapping[str, Any], key: str, record: str, minimum: float | None = None) -> float:
    value = data.get(key)
    try:
        if isinstance(value, bool):
            raise TypeError(key)
        number = float(value)  # type: ignore[arg-type]
    except (TypeError, ValueError) as exc:
        raise ValidationError(
            f"{record}.{key} must be a number, got {value!r}",
            details={"field": key},
        ) from exc
    if minimum is not None and number < minimum:
        raise ValidationError(
            f"{record}.{key} must be >= {minimum}, got {number}",
            details={"field": key},
        )
    return number


def _optional_number(data: Mapping[str, Any], *keys: str) -> float | None:
    """Return the first present numeric value among ``keys``."""
    for key in keys:
        value = data.get(key)
        if value is None or isinstance(value, bool):
            continue
        try:
            return float(value)
        except (TypeError, ValueError):
            continue
    return None


def _flag(value: Any, key: str, record: str) -> bool:
    """Parse a boolean flag; only real booleans and "true"/"false" text are accepted."""
    if value is None:
        return False
    if isinstance(value, bool):
        return value
    if isinstance(value, str) and value.strip().lower() in ("true", "false"):
        return value.strip().lower() == "true"
    raise ValidationError(
        f"{record}.{key} must be a boolean, got {value!r}",
        details={"field": key},
    )


@dataclass(frozen=True)
class LineItem:
    """A single purchased item as extracted from a receipt."""

    id: str
    name: str
    supplier: str
    quantity: float
    unit: str
    price: float
    currency: str
    is_gita_eligible: bool
    date: str

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> LineItem:
        _require(data, ("id", "name", "date"), "LineItem")
        # Older documents store the flag as "gitaEligible".
        key = "isGitaEligible" if data.get("isGitaEligible") is not None else "gitaEligible"
        return cls(
            id=str(data["id"]),
            name=str(data["name"]),
            supplier=str(data.get("supplier") or "Unknown"),
            quantity=_number(data, "quantity", "LineItem", minimum=0),
            unit=str(data.get("unit") or ""),
            price=_number(data, "price", "LineItem", minimum=0),
            currency=str(data.get("currency") or "MYR"),
            is_gita_eligible=_flag(data.get(key), key, "LineItem"),
            date=str(data["date"]),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "supplier": self.supplier,
            "quantity": self.quantity,
            "unit": self.unit,
            "price": self.price,
            "currency": self.currency,
            "isGitaEligible": self.is_gita_eligible,
            "date": self.date,
        }


@dataclass(frozen=True)
class CarbonItem:
    """Emissions ledger entry derived from exactly one line item."""

    kind: ClassVar[EntryKind] = EntryKind.CARBON

    line_item: LineItem
    scope: int
    activity_data: float
    emission_factor: float
    gwp: float
    gef: float
    co2e_emission: float

    @classmethod
    def from_record(cls, record: Mapping[str, Any]) -> CarbonItem:
        """Build from a merged record holding base and derived fields."""
        _require(record, CARBON_FIELDS, "CarbonItem")
        scope = int(_number(record, "scope", "CarbonItem"))
        if scope not in (1, 2, 3):
            raise ValidationError(
                f"CarbonItem.scope must be 1, 2 or 3, got {record['scope']!r}",
                details={"field": "scope"},
            )
        return cls(
            line_item=LineItem.from_dict(record),
            scope=scope,
            activity_data=_number(record, "activityData", "CarbonItem"),
            emission_factor=_number(record, "emissionFactor", "CarbonItem"),
            gwp=_number(record, "gwp", "CarbonItem"),
            gef=_number(record, "gef", "CarbonItem"),
            co2e_emission=_number(record, "co2eEmission", "CarbonItem", minimum=0),
        )

    def derived_fields(self) -> dict[str, Any]:
        return {
            "scope": self.scope,
            "activityData": self.activity_data,
            "emissionFactor": self.emission_factor,
            "gwp": self.gwp,
            "gef": self.gef,
            "co2eEmission": self.co2e_emission,
        }

    def to_dict(self) -> dict[str, Any]:
        record = merge_fields(self.line_item.to_dict(), self.derived_fields())
        record["kind"] = self.kind.value
        return record


@dataclass(frozen=True)
class GitaItem:
    """Tax-incentive ledger entry; only exists for GITA-eligible line items."""

    kind: ClassVar[EntryKind] = EntryKind.GITA

    line_item: LineItem
    tier: int
    sector: str
    technology: str
    asset: str
    gita_allowance: float

    @classmethod
    def from_record(cls, record: Mapping[str, Any]) -> GitaItem:
        """Build from a merged record holding base and derived fields."""
        _require(record, GITA_FIELDS, "GitaItem")
        line_item = LineItem.from_dict(record)
        if not line_item.is_gita_eligible:
            raise ValidationError(
                f"GitaItem requires a GITA-eligible line item, got {line_item.id!r}",
                details={"line_item_id": line_item.id},
            )
        return cls(
            line_item=line_item,
            tier=int(_number(record, "tier", "GitaItem")),
            sector=str(record["sector"]),
            technology=str(record["technology"]),
            asset=str(record["asset"]),
            gita_allowance=_number(record, "gitaAllowance", "GitaItem", minimum=0),
        )

    def derived_fields(self) -> dict[str, Any]:
        return {
            "tier": self.tier,
            "sector": self.sector,
            "technology": self.technology,
            "asset": self.asset,
            "gitaAllowance": self.gita_allowance,
        }

    def to_dict(self) -> dict[str, Any]:
        record = merge_fields(self.line_item.to_dict(), self.derived_fields())
        record["kind"] = self.kind.value
        return record


LedgerEntry = CarbonItem | GitaItem


def entry_from_dict(data: Mapping[str, Any]) -> LedgerEntry:
    """Rebuild a ledger entry from its serialized form using the kind tag."""
    kind = data.get("kind")
    if kind == EntryKind.CARBON.value:
        return CarbonItem.from_record(data)
    if kind == EntryKind.GITA.value:
        return GitaItem.from_record(data)
    raise ValidationError(f"Unknown ledger entry kind: {kind!r}", details={"kind": kind})


@dataclass(frozen=True)
class Receipt:
    """An extracted receipt; written once and never edited."""

    id: str
    vendor: str
    date: str
    total: float
    image_url: str
    line_items: tuple[LineItem, ...]
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @classmethod
    def from_extraction(
        cls,
        data: Mapping[str, Any],
        receipt_id: str,
        image_url: str = "",
        created_at: datetime | None = None,
    ) -> Receipt:
        """Build a receipt from an extraction payload.

        Line item ids are scoped to the receipt: ``<receipt_id>-<extracted id>``,
        or ``<receipt_id>-<index>`` when the item has none. Line items without
        a supplier or date inherit the receipt's vendor and date.
        """
        vendor = str(data.get("vendor") or "Unknown")
        receipt_date = str(data.get("date") or "")
        raw_items = data.get("lineItems") or []
        if not isinstance(raw_items, list):
            raise ValidationError("Receipt.lineItems must be a list")

        line_items = []
        for index, raw in enumerate(raw_items):
            if not isinstance(raw, Mapping):
                raise ValidationError(f"Receipt.lineItems[{index}] must be a mapping")
            record = merge_fields({"supplier": vendor, "date": receipt_date}, raw)
            # Extracted ids are only unique within one receipt.
            local_id = raw.get("id")
            record["id"] = f"{receipt_id}-{index if local_id in (None, '') else local_id}"
            line_items.append(LineItem.from_dict(record))

        return cls(
            id=receipt_id,
            vendor=vendor,
            date=receipt_date,
            total=_optional_number(data, "total") or sum(item.price for item in line_items),
            image_url=image_url,
            line_items=tuple(line_items),
            created_at=created_at or datetime.now(timezone.utc),
        )

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> Receipt:
        created_raw = data.get("createdAt")
        if isinstance(created_raw, datetime):
            created_at = created_raw
        elif isinstance(created_raw, str):
            try:
                created_at = datetime.fromisoformat(created_raw)
            except ValueError as exc:
                raise ValidationError(
                    f"Receipt.createdAt is not an ISO timestamp: {created_raw!r}",
                    details={"field": "createdAt"},
                ) from exc
        else:
            created_at = datetime.now(timezone.utc)
        raw_items = data.get("lineItems") or []
        if not isinstance(raw_items, list) or not all(
            isinstance(item, Mapping) for item in raw_items
        ):
            raise ValidationError(
                "Receipt.lineItems must be a list of mappings", details={"field": "lineItems"}
            )
        return cls(
            id=str(data["id"]),
            vendor=str(data.get("vendor") or "Unknown"),
            date=str(data.get("date") or ""),
            total=_optional_number(data, "total") or 0.0,
            image_url=str(data.get("imageUrl") or ""),
            line_items=tuple(LineItem.from_dict(item) for item in raw_items),
            created_at=created_at,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "vendor": self.vendor,
            "date": self.date,
            "total": self.total,
            "imageUrl": self.image_url,
            "createdAt": self.created_at.isoformat(),
            "lineItems": [item.to_dict() for item in self.line_items],
        }


@dataclass(frozen=True)
class UserProfile:
    """Reference data about a business, maintained outside this package."""

    user_id: str
    industry: str | None = None
    annual_revenue: float | None = None
    total_emissions: float | None = None
    gita_tax_credit_balance: float | None = None

    @classmethod
    def from_dict(cls, user_id: str, data: Mapping[str, Any]) -> UserProfile:
        industry = data.get("industry")
        # A zero or missing value falls through to the legacy key.
        emissions = _optional_number(data, "totalEmissions") or _optional_number(
            data, "totalcarbonemission"
        )
        return cls(
            user_id=user_id,
            industry=str(industry) if industry else None,
            annual_revenue=_optional_number(data, "annualRevenue"),
            total_emissions=emissions,
            gita_tax_credit_balance=_optional_number(data, "gitaTaxCreditBalance"),
        )

    def summary(self) -> str:
        """One-line profile description for prompts."""
        return (
            f"Industry: {self.industry or 'Unknown'}, "
            f"Annual Revenue: RM{self.annual_revenue if self.annual_revenue is not None else 'N/A'}, "
            f"Total Emissions: {self.total_emissions or 0}t."
        )


@dataclass(frozen=True)
class GreenAsset:
    """Catalog entry for an investable green asset."""

    asset_id: str
    name: str = ""
    capex_rm: float = 0.0
    annual_energy_offset_percent: float | None = None
    annual_maintenance_rm: float | None = None
    gita_eligible: bool = False
    lifetime_years: float | None = None

    @classmethod
    def from_dict(cls, asset_id: str, data: Mapping[str, Any]) -> GreenAsset:
        return cls(
            asset_id=asset_id,
            name=str(data.get("name") or asset_id),
            capex_rm=_optional_number(data, "capexRM") or 0.0,
            annual_energy_offset_percent=_optional_number(data, "annualEnergyOffsetPercent"),
            annual_maintenance_rm=_optional_number(data, "annualMaintenanceRM"),
            gita_eligible=_flag(data.get("gitaEligible"), "gitaEligible", "GreenAsset"),
            lifetime_years=_optional_number(data, "lifetimeYears"),
        )


@dataclass(frozen=True)
class IndustryStats:
    """Sector-wide emission intensity reference."""

    industry: str
    average_intensity: float

    @classmethod
    def from_dict(cls, industry: str, data: Mapping[str, Any]) -> IndustryStats:
        _require(data, ("averageIntensity",), "IndustryStats")
        return cls(
            industry=industry,
            average_intensity=_number(data, "averageIntensity", "IndustryStats"),
        )


@dataclass(frozen=True)
class GreenProduct:
    """Certified green product listed in the directory."""

    product_id: str
    name: str
    manufacturer: str
    cert_expiry: str
    keywords: tuple[str, ...] = ()

    @classmethod
    def from_dict(cls, product_id: str, data: Mapping[str, Any]) -> GreenProduct:
        return cls(
            product_id=product_id,
            name=str(data.get("name") or product_id),
            manufacturer=str(data.get("manufacturer") or data.get("supplier") or "Unknown"),
            cert_expiry=str(data.get("certExpiry") or "N/A"),
            keywords=tuple(str(k).lower() for k in data.get("keywords") or ()),
        )

    def to_dict(self) -> dict[str, str]:
        return {
            "name": self.name,
            "manufacturer": self.manufacturer,
            "certExpiry": self.cert_expiry,
        }
