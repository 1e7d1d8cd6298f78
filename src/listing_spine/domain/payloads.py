"""Typed draft payloads, one pydantic model per entity kind.

Draft payloads arrive as loosely-typed JSON from the listing editor. Once the
rule functions in ``validation`` report no errors, ``parse_payload`` turns the
blob into the model for its kind; every later step (create, update, notify)
works from the typed model, never from the raw dict.

Field names are snake_case in Python and camelCase on the wire. Unknown keys
are preserved (``extra="allow"``) because the editor's form schema evolves
faster than this package.

Examples:
    >>> payload = parse_payload(EntityKind.PROPERTY, {"displayName": "Lake View Flat", "city": "Pune"})
    >>> payload.display_name
    'Lake View Flat'
    >>> payload.to_attributes()["city"]
    'Pune'
"""

from __future__ import annotations

from typing import Any, ClassVar

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel

from listing_spine.core.errors import ValidationError
from listing_spine.domain.models import EntityKind
from listing_spine.domain.validation import resolve_display_name


class _Payload(BaseModel):
    model_config = ConfigDict(
        extra="allow",
        populate_by_name=True,
        alias_generator=to_camel,
    )

    kind: ClassVar[EntityKind]
    # Attributes an update may overwrite. History fields (id, draft id, owner,
    # created_at, verification status) are never in this list.
    mutable_attributes: ClassVar[frozenset[str]]

    display_name: str = Field(min_length=1, max_length=255)

    @model_validator(mode="before")
    @classmethod
    def _fill_display_name(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        if not data.get("displayName") and not data.get("display_name"):
            name = resolve_display_name(cls.kind, data)
            if name is not None:
                data = {**data, "displayName": name}
        # The editor sometimes sends flat lat/lng instead of a coordinates object.
        if data.get("coordinates") is None and data.get("lat") is not None and data.get("lng") is not None:
            data = {**data, "coordinates": {"lat": data["lat"], "lng": data["lng"]}}
        return data

    def to_attributes(self) -> dict[str, Any]:
        """JSON-ready camelCase attributes, ``None`` values dropped."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)

    @classmethod
    def filter_mutable(cls, attributes: dict[str, Any]) -> dict[str, Any]:
        return {key: value for key, value in attributes.items() if key in cls.mutable_attributes}


class Coordinates(BaseModel):
    lat: float = Field(ge=-90, le=90)
    lng: float = Field(ge=-180, le=180)


class RoomType(BaseModel):
    model_config = ConfigDict(extra="allow")

    name: str
    category: str
    pricing: list[Any] = Field(min_length=1)
    availability: Any


class PropertyPayload(_Payload):
    kind = EntityKind.PROPERTY
    mutable_attributes = frozenset({
        "displayName", "propertyName", "projectId", "status",
        "title", "description", "propertyType", "listingType", "isNewProperty",
        "city", "locality", "landmark", "addressText", "coordinates", "showMapExact",
        "bedrooms", "bathrooms", "facing", "view", "floorNumber", "totalFloors",
        "carpetArea", "superArea", "areaConfig", "measurementMethod",
        "ownershipType", "furnishingStatus", "possessionStatus", "availableFrom",
        "price", "pricing", "isPriceNegotiable",
        "customPropertyName", "features", "amenities", "flooringTypes",
        "smartHomeDevices", "maintenanceIncludes", "petFriendly",
        "reraIds", "documents", "mediaData", "propertyPlans", "furnishingDetails",
    })

    title: str | None = Field(default=None, max_length=500)
    property_type: str | None = None
    listing_type: str | None = None
    city: str | None = None
    locality: str | None = None
    coordinates: Coordinates | None = None
    price: float | None = None
    bedrooms: float | None = None
    bathrooms: float | None = None


class PgHostelPayload(_Payload):
    kind = EntityKind.PG
    mutable_attributes = frozenset({
        "displayName", "propertyName", "description", "genderAllowed",
        "city", "locality", "landmark", "addressText", "coordinates",
        "roomTypes", "amenities", "rules", "foodOptions", "mediaData",
        "yearBuilt", "totalBeds", "isFoodIncluded",
    })

    gender_allowed: str
    city: str
    locality: str
    address_text: str
    coordinates: Coordinates
    room_types: list[RoomType] = Field(min_length=1)
    year_built: int | None = None


class ProjectPayload(_Payload):
    kind = EntityKind.PROJECT
    mutable_attributes = frozenset({
        "displayName", "projectName", "name", "status", "description",
        "city", "locality", "addressText", "coordinates",
        "amenities", "features", "images", "videos", "floorPlans",
        "totalUnits", "totalTowers", "totalAcres", "possessionDate", "reraIds",
    })

    coordinates: Coordinates | None = None
    total_units: float | None = None
    total_towers: float | None = None
    total_acres: float | None = None


class DeveloperPayload(_Payload):
    kind = EntityKind.DEVELOPER
    mutable_attributes = frozenset({
        "displayName", "developerName", "description", "website", "logo",
        "establishedYear", "completedProjects", "ongoingProjects",
        "certifications", "mediaData", "contactEmail", "contactPhone",
    })

    established_year: int | None = None


PAYLOAD_MODELS: dict[EntityKind, type[_Payload]] = {
    EntityKind.PROPERTY: PropertyPayload,
    EntityKind.PG: PgHostelPayload,
    EntityKind.PROJECT: ProjectPayload,
    EntityKind.DEVELOPER: DeveloperPayload,
}


def parse_payload(kind: EntityKind, data: dict[str, Any]) -> _Payload:
    """Convert a rule-valid payload into the typed model for *kind*.

    Raises:
        ValidationError: if the model rejects what the rules let through.
    """
    from pydantic import ValidationError as PydanticValidationError

    model = PAYLOAD_MODELS[kind]
    try:
        return model.model_validate(data)
    except PydanticValidationError as exc:
        errors = [
            f"{'.'.join(str(part) for part in err['loc']) or 'payload'}: {err['msg']}"
            for err in exc.errors()
        ]
        raise ValidationError("Draft payload failed type checks", errors=errors, cause=exc) from exc


__all__ = [
    "PropertyPayload",
    "PgHostelPayload",
    "ProjectPayload",
    "DeveloperPayload",
    "Coordinates",
    "RoomType",
    "PAYLOAD_MODELS",
    "parse_payload",
]
