"""Kind-specific draft validation rules and listing review validation.

Each rule function takes the raw draft payload (a JSON object authored in the
listing editor) and returns a list of field-level error strings; an empty list
means valid. Rules never raise for bad input and never touch a store, so they
are safe to run any number of times.

Display names are resolved from a per-kind list of candidate keys, the first
non-empty one wins::

    PROPERTY   displayName, propertyName, title, customPropertyName
    PG         displayName, propertyName
    PROJECT    displayName, projectName, name
    DEVELOPER  displayName, developerName
"""

from __future__ import annotations

from datetime import date
from typing import Any, Callable

from listing_spine.domain.models import EntityKind

MAX_NAME_LENGTH = 255
MAX_TITLE_LENGTH = 500

ENTITY_STATUSES = ("ACTIVE", "INACTIVE", "ARCHIVED")
LISTING_TYPES = ("sale", "rent", "lease")
GENDERS_ALLOWED = ("Gents", "Ladies", "Unisex")

DISPLAY_NAME_KEYS: dict[EntityKind, tuple[str, ...]] = {
    EntityKind.PROPERTY: ("displayName", "propertyName", "title", "customPropertyName"),
    EntityKind.PG: ("displayName", "propertyName"),
    EntityKind.PROJECT: ("displayName", "projectName", "name"),
    EntityKind.DEVELOPER: ("displayName", "developerName"),
}

PROPERTY_ARRAY_FIELDS = (
    "features", "amenities", "flooringTypes", "smartHomeDevices",
    "maintenanceIncludes", "reraIds", "documents", "mediaData",
    "propertyPlans", "areaConfig", "pricing",
)
PG_ARRAY_FIELDS = ("amenities", "rules", "mediaData", "foodOptions")
PROJECT_ARRAY_FIELDS = ("amenities", "features", "images", "videos", "floorPlans")
PROJECT_NUMERIC_FIELDS = ("totalUnits", "totalTowers", "totalAcres")
DEVELOPER_ARRAY_FIELDS = ("projects", "certifications", "mediaData")
DEVELOPER_NUMERIC_FIELDS = ("establishedYear", "completedProjects", "ongoingProjects")


def resolve_display_name(kind: EntityKind, payload: dict[str, Any]) -> str | None:
    for key in DISPLAY_NAME_KEYS[kind]:
        value = payload.get(key)
        if isinstance(value, str) and value.strip():
            return value.strip()
    return None


def _is_number(value: Any) -> bool:
    if isinstance(value, bool):
        return False
    if isinstance(value, (int, float)):
        return True
    try:
        float(str(value))
    except (TypeError, ValueError):
        return False
    return True


def _check_coordinates(payload: dict[str, Any], errors: list[str], *, required: bool = False) -> None:
    coordinates = payload.get("coordinates")
    if coordinates is None:
        lat, lng = payload.get("lat"), payload.get("lng")
        if lat is None and lng is None:
            if required:
                errors.append("Coordinates are required")
            return
    elif not isinstance(coordinates, dict):
        errors.append("Coordinates must be an object with lat and lng")
        return
    else:
        lat, lng = coordinates.get("lat"), coordinates.get("lng")

    if required and (lat is None or lng is None):
        errors.append("Invalid coordinates: both lat and lng are required")
    if lat is not None and (not _is_number(lat) or not -90 <= float(lat) <= 90):
        errors.append("Invalid latitude value (must be between -90 and 90)")
    if lng is not None and (not _is_number(lng) or not -180 <= float(lng) <= 180):
        errors.append("Invalid longitude value (must be between -180 and 180)")


def _check_arrays(payload: dict[str, Any], fields: tuple[str, ...], errors: list[str]) -> None:
    for name in fields:
        value = payload.get(name)
        if value is not None and not isinstance(value, list):
            errors.append(f"{name} must be an array")


def _check_numbers(payload: dict[str, Any], fields: tuple[str, ...], errors: list[str]) -> None:
    for name in fields:
        value = payload.get(name)
        if value is not None and value != "" and not _is_number(value):
            errors.append(f"{name} must be a valid number")


def _check_enum(payload: dict[str, Any], name: str, allowed: tuple[str, ...], label: str,
                errors: list[str]) -> None:
    value = payload.get(name)
    if value is not None and value not in allowed:
        errors.append(f"{label} must be one of: {', '.join(allowed)}")


def _check_name(kind: EntityKind, payload: dict[str, Any], errors: list[str], message: str) -> None:
    name = resolve_display_name(kind, payload)
    if name is None:
        errors.append(message)
    elif len(name) > MAX_NAME_LENGTH:
        errors.append(f"{kind.label.capitalize()} name must not exceed {MAX_NAME_LENGTH} characters")


def validate_property(payload: dict[str, Any]) -> list[str]:
    errors: list[str] = []
    _check_name(EntityKind.PROPERTY, payload, errors,
                "Property name, title, or custom property name is required")
    title = payload.get("title")
    if isinstance(title, str) and len(title) > MAX_TITLE_LENGTH:
        errors.append(f"Title must not exceed {MAX_TITLE_LENGTH} characters")
    project_id = payload.get("projectId")
    if project_id not in (None, "") and not _is_number(project_id):
        errors.append("Project ID must be a valid number")
    _check_enum(payload, "status", ENTITY_STATUSES, "Status", errors)
    _check_enum(payload, "listingType", LISTING_TYPES, "Listing type", errors)
    _check_coordinates(payload, errors)
    _check_arrays(payload, PROPERTY_ARRAY_FIELDS, errors)
    _check_numbers(payload, ("price", "bedrooms", "bathrooms", "carpetArea", "superArea"), errors)
    return errors


def validate_pg_hostel(payload: dict[str, Any]) -> list[str]:
    errors: list[str] = []
    _check_name(EntityKind.PG, payload, errors, "Property name is required")
    if not payload.get("genderAllowed"):
        errors.append("Gender allowed is required")
    else:
        _check_enum(payload, "genderAllowed", GENDERS_ALLOWED, "Gender allowed", errors)
    _check_coordinates(payload, errors, required=True)
    for name, label in (("city", "City"), ("locality", "Locality"), ("addressText", "Address text")):
        if not payload.get(name):
            errors.append(f"{label} is required")

    room_types = payload.get("roomTypes")
    if not isinstance(room_types, list) or not room_types:
        errors.append("At least one room type is required")
    else:
        for index, room in enumerate(room_types, start=1):
            if not isinstance(room, dict):
                errors.append(f"Room type {index}: must be an object")
                continue
            if not room.get("name"):
                errors.append(f"Room type {index}: Name is required")
            if not room.get("category"):
                errors.append(f"Room type {index}: Category is required")
            pricing = room.get("pricing")
            if not isinstance(pricing, list) or not pricing:
                errors.append(f"Room type {index}: At least one pricing option is required")
            if not room.get("availability"):
                errors.append(f"Room type {index}: Availability information is required")

    year_built = payload.get("yearBuilt")
    if year_built not in (None, ""):
        if not _is_number(year_built) or not 1900 <= int(float(year_built)) <= date.today().year + 5:
            errors.append("Invalid year built")
    _check_arrays(payload, PG_ARRAY_FIELDS, errors)
    return errors


def validate_project(payload: dict[str, Any]) -> list[str]:
    errors: list[str] = []
    _check_name(EntityKind.PROJECT, payload, errors, "Project name is required")
    _check_enum(payload, "status", ENTITY_STATUSES, "Status", errors)
    _check_coordinates(payload, errors)
    _check_arrays(payload, PROJECT_ARRAY_FIELDS, errors)
    _check_numbers(payload, PROJECT_NUMERIC_FIELDS, errors)
    return errors


def validate_developer(payload: dict[str, Any]) -> list[str]:
    errors: list[str] = []
    _check_name(EntityKind.DEVELOPER, payload, errors, "Developer name is required")
    _check_enum(payload, "status", ENTITY_STATUSES, "Status", errors)
    _check_arrays(payload, DEVELOPER_ARRAY_FIELDS, errors)
    _check_numbers(payload, DEVELOPER_NUMERIC_FIELDS, errors)
    return errors


VALIDATORS: dict[EntityKind, Callable[[dict[str, Any]], list[str]]] = {
    EntityKind.PROPERTY: validate_property,
    EntityKind.PG: validate_pg_hostel,
    EntityKind.PROJECT: validate_project,
    EntityKind.DEVELOPER: validate_developer,
}


def validate_draft_payload(kind: EntityKind, payload: Any) -> list[str]:
    """Run the rules for *kind*. A non-object payload is a single error."""
    if not isinstance(payload, dict):
        return ["Draft payload must be an object"]
    return VALIDATORS[kind](payload)


# =============================================================================
# LISTING REVIEW
# =============================================================================

MIN_TITLE_LENGTH = 10
MIN_DESCRIPTION_LENGTH = 50
MAX_IMAGES = 50


def validate_listing(listing: dict[str, Any]) -> list[str]:
    """Submission rules checked before a listing enters review."""
    errors: list[str] = []
    title = listing.get("title") or ""
    if len(title) < MIN_TITLE_LENGTH:
        errors.append(f"Title must be at least {MIN_TITLE_LENGTH} characters long")
    description = listing.get("description") or ""
    if len(description) < MIN_DESCRIPTION_LENGTH:
        errors.append(f"Description must be at least {MIN_DESCRIPTION_LENGTH} characters long")
    price = listing.get("price")
    if not _is_number(price) or float(price) <= 0:
        errors.append("Price must be greater than 0")

    location = listing.get("location")
    if not isinstance(location, dict):
        location = {}
    if not location.get("address"):
        errors.append("Location address is required")
    if not location.get("city") or not location.get("state"):
        errors.append("City and state are required")

    images = listing.get("images") or []
    if not isinstance(images, list) or not images:
        errors.append("At least one image is required")
    elif len(images) > MAX_IMAGES:
        errors.append(f"Maximum {MAX_IMAGES} images allowed")
    return errors


# =============================================================================
# PAYMENT
# =============================================================================

CURRENCIES = ("USD", "EUR", "INR", "GBP")
PAYMENT_METHODS = ("card", "upi", "wallet", "bank_transfer")


def validate_payment(amount: Any, currency: Any, payment_method: Any) -> list[str]:
    """Input checks run before the payment saga reserves anything."""
    errors: list[str] = []
    if not _is_number(amount) or float(amount) <= 0:
        errors.append("Amount must be greater than 0")
    if currency not in CURRENCIES:
        errors.append("Invalid currency code")
    if payment_method not in PAYMENT_METHODS:
        errors.append("Invalid payment method")
    return errors


__all__ = [
    "validate_payment",
    "CURRENCIES",
    "PAYMENT_METHODS",
    "resolve_display_name",
    "validate_property",
    "validate_pg_hostel",
    "validate_project",
    "validate_developer",
    "validate_draft_payload",
    "validate_listing",
    "VALIDATORS",
    "DISPLAY_NAME_KEYS",
]
