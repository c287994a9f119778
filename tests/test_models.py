"""Tests for ledger records and field merging."""

from datetime import datetime, timezone

import pytest

from kira_advisor.errors import ValidationError
from kira_advisor.models import (
    CarbonItem,
    EntryKind,
    GitaItem,
    GreenProduct,
    LineItem,
    Receipt,
    UserProfile,
    entry_from_dict,
    merge_fields,
)

CARBON_DERIVED = {
    "scope": 2,
    "activityData": 2400,
    "emissionFactor": 0.585,
    "gwp": 1,
    "gef": 0.585,
    "co2eEmission": 1404.0,
}

GITA_DERIVED = {
    "tier": 1,
    "sector": "Renewable Energy",
    "technology": "Solar PV",
    "asset": "Rooftop solar panels",
    "gitaAllowance": 15500.0,
}


class TestMergeFields:
    """Tests for merge_fields."""

    def test_derived_wins_on_collision(self):
        merged = merge_fields({"name": "base", "price": 1}, {"name": "derived"})

        assert merged == {"name": "derived", "price": 1}

    def test_disjoint_keys_are_unioned(self):
        merged = merge_fields({"a": 1}, {"b": 2})

        assert merged == {"a": 1, "b": 2}

    def test_inputs_not_mutated(self):
        base = {"a": 1}
        derived = {"a": 2}

        merge_fields(base, derived)

        assert base == {"a": 1}
        assert derived == {"a": 2}


class TestLineItem:
    """Tests for LineItem parsing."""

    def test_from_dict_defaults(self):
        item = LineItem.from_dict(
            {"id": "x", "name": "Diesel", "quantity": 5, "price": 20, "date": "2025-01-01"}
        )

        assert item.supplier == "Unknown"
        assert item.currency == "MYR"
        assert item.is_gita_eligible is False

    def test_legacy_eligibility_key(self):
        item = LineItem.from_dict({
            "id": "x", "name": "LED", "quantity": 1, "price": 10,
            "date": "2025-01-01", "gitaEligible": True,
        })

        assert item.is_gita_eligible is True

    def test_negative_price_rejected(self, line_item_data):
        with pytest.raises(ValidationError):
            LineItem.from_dict({**line_item_data, "price": -1})

    @pytest.mark.parametrize(
        ("value", "expected"),
        [(True, True), (False, False), ("true", True), ("False", False), (None, False)],
    )
    def test_eligibility_flag_parsing(self, line_item_data, value, expected):
        item = LineItem.from_dict({**line_item_data, "isGitaEligible": value})

        assert item.is_gita_eligible is expected

    @pytest.mark.parametrize("value", ["0", "no", "maybe", 1, 0])
    def test_eligibility_flag_rejects_non_booleans(self, line_item_data, value):
        with pytest.raises(ValidationError) as exc_info:
            LineItem.from_dict({**line_item_data, "isGitaEligible": value})

        assert exc_info.value.details == {"field": "isGitaEligible"}

    def test_boolean_quantity_rejected(self, line_item_data):
        with pytest.raises(ValidationError):
            LineItem.from_dict({**line_item_data, "quantity": True})

    def test_missing_required_field(self, line_item_data):
        data = dict(line_item_data)
        del data["name"]

        with pytest.raises(ValidationError) as exc_info:
            LineItem.from_dict(data)

        assert exc_info.value.details == {"missing": ["name"]}

    def test_to_dict_uses_camel_case(self, line_item_data):
        assert LineItem.from_dict(line_item_data).to_dict() == line_item_data


class TestLedgerEntries:
    """Tests for the carbon and GITA variants."""

    def test_carbon_item_from_merged_record(self, line_item_data):
        record = merge_fields(line_item_data, CARBON_DERIVED)

        item = CarbonItem.from_record(record)

        assert item.kind is EntryKind.CARBON
        assert item.scope == 2
        assert item.co2e_emission == 1404.0
        assert item.line_item.id == "li-1"

    def test_carbon_item_to_dict_round_trips(self, line_item_data):
        item = CarbonItem.from_record(merge_fields(line_item_data, CARBON_DERIVED))

        data = item.to_dict()

        assert data["kind"] == "carbon"
        assert data["name"] == "Solar PV Panel"
        assert entry_from_dict(data) == item

    def test_carbon_scope_out_of_range(self, line_item_data):
        record = merge_fields(line_item_data, {**CARBON_DERIVED, "scope": 4})

        with pytest.raises(ValidationError):
            CarbonItem.from_record(record)

    def test_negative_emission_rejected(self, line_item_data):
        record = merge_fields(line_item_data, {**CARBON_DERIVED, "co2eEmission": -5})

        with pytest.raises(ValidationError):
            CarbonItem.from_record(record)

    def test_missing_derived_field(self, line_item_data):
        derived = dict(CARBON_DERIVED)
        del derived["gef"]

        with pytest.raises(ValidationError):
            CarbonItem.from_record(merge_fields(line_item_data, derived))

    def test_gita_item_requires_eligible_line_item(self, line_item_data):
        record = merge_fields({**line_item_data, "isGitaEligible": False}, GITA_DERIVED)

        with pytest.raises(ValidationError):
            GitaItem.from_record(record)

    def test_gita_item_to_dict(self, line_item_data):
        item = GitaItem.from_record(merge_fields(line_item_data, GITA_DERIVED))

        data = item.to_dict()

        assert data["kind"] == "gita"
        assert data["gitaAllowance"] == 15500.0
        assert data["isGitaEligible"] is True

    def test_derived_field_overrides_base(self, line_item_data):
        record = merge_fields(line_item_data, {**GITA_DERIVED, "name": "Renamed"})

        item = GitaItem.from_record(record)

        assert item.line_item.name == "Renamed"

    def test_unknown_kind(self):
        with pytest.raises(ValidationError):
            entry_from_dict({"kind": "water"})


class TestReceipt:
    """Tests for Receipt construction."""

    def test_from_extraction_assigns_ids_and_inherits(self):
        receipt = Receipt.from_extraction(
            {
                "vendor": "Petronas",
                "date": "2025-04-02",
                "lineItems": [
                    {"name": "Diesel", "quantity": 40, "unit": "L", "price": 120.0},
                    {"name": "Lubricant", "quantity": 1, "unit": "unit", "price": 30.0},
                ],
            },
            "r-1",
        )

        assert [item.id for item in receipt.line_items] == ["r-1-0", "r-1-1"]
        assert receipt.line_items[0].supplier == "Petronas"
        assert receipt.line_items[1].date == "2025-04-02"
        assert receipt.total == 150.0

    def test_from_extraction_scopes_supplied_ids(self):
        payload = {
            "vendor": "Petronas",
            "date": "2025-04-02",
            "lineItems": [{"id": "1", "name": "Diesel", "quantity": 40, "price": 120.0}],
        }

        first = Receipt.from_extraction(payload, "r-1")
        second = Receipt.from_extraction(payload, "r-2")

        assert first.line_items[0].id == "r-1-1"
        assert second.line_items[0].id == "r-2-1"

    def test_from_dict_rejects_bad_created_at(self, seed_data):
        doc = {**seed_data["receipts"]["user-1"]["rcpt-1"], "id": "rcpt-1"}
        doc["createdAt"] = "last tuesday"

        with pytest.raises(ValidationError):
            Receipt.from_dict(doc)

    def test_from_dict_rejects_malformed_line_items(self):
        with pytest.raises(ValidationError):
            Receipt.from_dict({"id": "r", "lineItems": ["Diesel"]})

    def test_from_dict_accepts_datetime_created_at(self, seed_data):
        doc = dict(seed_data["receipts"]["user-1"]["rcpt-1"])
        doc["id"] = "rcpt-1"
        doc["createdAt"] = datetime(2025, 2, 1, tzinfo=timezone.utc)

        receipt = Receipt.from_dict(doc)

        assert receipt.created_at.year == 2025
        assert receipt.line_items[0].unit == "kWh"


class TestReferenceRecords:
    """Tests for profiles and directory products."""

    def test_profile_reads_legacy_emissions_key(self, seed_data):
        profile = UserProfile.from_dict("legacy-user", seed_data["users"]["legacy-user"])

        assert profile.total_emissions == 10
        assert profile.gita_tax_credit_balance is None

    def test_zero_emissions_fall_through_to_legacy_key(self):
        profile = UserProfile.from_dict(
            "u", {"totalEmissions": 0, "totalcarbonemission": 500}
        )

        assert profile.total_emissions == 500

    def test_zero_emissions_without_legacy_key_is_unset(self):
        profile = UserProfile.from_dict("u", {"totalEmissions": 0})

        assert profile.total_emissions is None

    def test_profile_summary(self, seed_data):
        profile = UserProfile.from_dict("user-1", seed_data["users"]["user-1"])

        assert profile.summary() == (
            "Industry: Manufacturing, Annual Revenue: RM200000.0, Total Emissions: 50.0t."
        )

    def test_green_product_defaults(self):
        product = GreenProduct.from_dict("p", {"name": "Widget"})

        assert product.to_dict() == {
            "name": "Widget",
            "manufacturer": "Unknown",
            "certExpiry": "N/A",
        }
