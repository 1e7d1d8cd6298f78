"""Tests for the typed draft payload models."""

import pytest

from listing_spine.core.errors import ValidationError
from listing_spine.domain.models import EntityKind
from listing_spine.domain.payloads import (
    PAYLOAD_MODELS,
    DeveloperPayload,
    PgHostelPayload,
    PropertyPayload,
    parse_payload,
)


class TestParsePayload:
    """Rule-valid payloads become the model for their kind."""

    @pytest.mark.parametrize("kind", list(EntityKind))
    def test_every_sample_parses(self, kind, sample_payload):
        model = parse_payload(kind, sample_payload(kind))
        assert isinstance(model, PAYLOAD_MODELS[kind])
        assert model.display_name

    def test_property_fields(self, sample_payload):
        model = parse_payload(EntityKind.PROPERTY, {**sample_payload(EntityKind.PROPERTY), "price": 4500000})
        assert isinstance(model, PropertyPayload)
        assert model.display_name == "Lake View Flat"
        assert model.property_type == "apartment"
        assert model.listing_type == "rent"
        assert model.price == 4500000.0

    def test_display_name_resolved_from_candidates(self):
        model = parse_payload(EntityKind.PROPERTY, {"title": "Sea Breeze Villa"})
        assert model.display_name == "Sea Breeze Villa"

    def test_pg_room_types_and_coordinates(self, sample_payload):
        model = parse_payload(EntityKind.PG, sample_payload(EntityKind.PG))
        assert isinstance(model, PgHostelPayload)
        assert model.display_name == "Sunrise Residency PG"
        assert model.room_types[0].name == "Twin Sharing"
        assert model.coordinates.lat == pytest.approx(12.9352)

    def test_flat_lat_lng_become_coordinates(self):
        model = parse_payload(EntityKind.PROPERTY, {"displayName": "Flat", "lat": 18.52, "lng": 73.85})
        assert model.coordinates.lng == pytest.approx(73.85)

    def test_model_rejection_is_validation_error(self):
        with pytest.raises(ValidationError) as exc_info:
            parse_payload(EntityKind.DEVELOPER, {"developerName": "Skyline", "establishedYear": "soon"})
        assert exc_info.value.message == "Draft payload failed type checks"
        assert any(error.startswith("establishedYear") for error in exc_info.value.errors)


class TestAttributes:
    """Attributes are camelCase JSON; unknown editor keys survive."""

    def test_to_attributes_camel_case(self, sample_payload):
        attributes = parse_payload(EntityKind.PROPERTY, sample_payload(EntityKind.PROPERTY)).to_attributes()
        assert attributes == {
            "displayName": "Lake View Flat",
            "propertyType": "apartment",
            "listingType": "rent",
            "city": "Pune",
            "locality": "Kothrud",
        }

    def test_unknown_keys_preserved(self):
        attributes = parse_payload(
            EntityKind.DEVELOPER, {"developerName": "Skyline", "tagline": "Homes that last"}
        ).to_attributes()
        assert attributes["tagline"] == "Homes that last"

    def test_filter_mutable_drops_history_fields(self):
        attributes = {
            "displayName": "Skyline",
            "website": "https://skyline.example",
            "id": "99",
            "ownerId": "8",
            "createdAt": "2020-01-01",
            "verificationStatus": "VERIFIED",
        }
        assert DeveloperPayload.filter_mutable(attributes) == {
            "displayName": "Skyline",
            "website": "https://skyline.example",
        }

    def test_price_is_mutable_for_properties(self):
        assert PropertyPayload.filter_mutable({"price": 4500000.0}) == {"price": 4500000.0}
