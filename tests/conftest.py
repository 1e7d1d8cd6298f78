"""
Shared pytest fixtures and configuration for listing-spine tests.

This module provides:
- A manual clock so retry backoff and 48-hour review deadlines run instantly
- In-memory collaborators and a file-backed SQLite journal per test
- Runtime factories for the direct and the durable backend
- Sample draft payloads and listings for every workflow

Usage:
    Fixtures are auto-discovered by pytest. The ``runtime`` fixture is
    parametrized over both execution modes, so a test that uses it runs
    once against ``DirectBackend`` and once against ``DurableBackend``.

    def test_publish(runtime, add_draft):
        add_draft(runtime.services, EntityKind.PROPERTY)
        result = runtime.router.run("publish.property", {...})
"""

from __future__ import annotations

from collections.abc import Callable, Generator
from pathlib import Path
from typing import Any

import pytest

from listing_spine.collaborators.memory import build_memory_services
from listing_spine.collaborators.protocols import Services
from listing_spine.core.clock import ManualClock
from listing_spine.core.orm.session import create_all, create_listing_engine, listing_session_factory
from listing_spine.core.settings import ListingSpineSettings, reset_settings
from listing_spine.domain.models import Draft, EntityKind
from listing_spine.execution.dispatch import InlineDispatcher
from listing_spine.runtime import Runtime, build_runtime, set_runtime


# =============================================================================
# Test Markers Configuration
# =============================================================================


def pytest_collection_modifyitems(config: pytest.Config, items: list[pytest.Item]) -> None:
    """Auto-mark tests based on their location."""
    root = Path(__file__).parent
    for item in items:
        test_path = Path(item.path).relative_to(root)

        # The CLI and the integration suite touch SQLite files and threads
        if test_path.parts[0] in ("integration", "cli"):
            item.add_marker(pytest.mark.integration)

        markers = {mark.name for mark in item.iter_markers()}
        if not markers.intersection({"unit", "integration"}):
            item.add_marker(pytest.mark.unit)


# =============================================================================
# Isolation
# =============================================================================


@pytest.fixture(autouse=True)
def isolated_process_state() -> Generator[None, None, None]:
    """Drop cached settings and the process runtime around every test."""
    reset_settings()
    yield
    set_runtime(None)
    reset_settings()


# =============================================================================
# Sample data
# =============================================================================


LAKE_VIEW_FLAT: dict[str, Any] = {
    "displayName": "Lake View Flat",
    "propertyType": "apartment",
    "listingType": "rent",
    "city": "Pune",
    "locality": "Kothrud",
}

SAMPLE_PAYLOADS: dict[EntityKind, dict[str, Any]] = {
    EntityKind.PROPERTY: LAKE_VIEW_FLAT,
    EntityKind.PG: {
        "propertyName": "Sunrise Residency PG",
        "genderAllowed": "Unisex",
        "city": "Bengaluru",
        "locality": "Koramangala",
        "addressText": "4th Block, 80 Feet Road",
        "coordinates": {"lat": 12.9352, "lng": 77.6245},
        "roomTypes": [
            {
                "name": "Twin Sharing",
                "category": "shared",
                "pricing": [{"period": "monthly", "rent": 9000}],
                "availability": {"beds": 4},
            }
        ],
        "amenities": ["wifi", "laundry"],
    },
    EntityKind.PROJECT: {
        "projectName": "Green Meadows",
        "city": "Pune",
        "locality": "Baner",
        "totalUnits": 240,
        "amenities": ["pool", "clubhouse"],
    },
    EntityKind.DEVELOPER: {
        "developerName": "Skyline Builders",
        "establishedYear": 1998,
        "website": "https://skyline.example",
        "certifications": ["ISO 9001"],
    },
}

# Scores 1.0 with the rule-based scorer: 5 images, long description, complete details.
GOOD_LISTING: dict[str, Any] = {
    "title": "Spacious 3BHK apartment with lake view",
    "description": (
        "A bright three bedroom apartment on the sixth floor overlooking the lake. "
        "The flat has cross ventilation, a modular kitchen, covered parking and power backup. "
        "Schools, a hospital and the metro station are within walking distance of the society gate."
    ),
    "price": 4500000,
    "bedrooms": 3,
    "bathrooms": 2,
    "area": 1450,
    "location": {"address": "12 Lake Road, Kothrud", "city": "Pune", "state": "MH"},
    "images": ["front.jpg", "living.jpg", "kitchen.jpg", "bedroom.jpg", "view.jpg"],
}


@pytest.fixture
def sample_payload() -> Callable[[EntityKind], dict[str, Any]]:
    """A valid draft payload for *kind* (a fresh copy each call)."""

    def factory(kind: EntityKind) -> dict[str, Any]:
        return dict(SAMPLE_PAYLOADS[kind])

    return factory


@pytest.fixture
def good_listing() -> dict[str, Any]:
    return dict(GOOD_LISTING)


@pytest.fixture
def add_draft() -> Callable[..., Draft]:
    """Store a draft in ``services.drafts`` and return it.

    Defaults to the canonical example: draft 42 of user 7, "Lake View Flat".
    """

    def factory(
        services: Services,
        kind: EntityKind = EntityKind.PROPERTY,
        *,
        draft_id: str = "42",
        owner_id: str = "7",
        payload: dict[str, Any] | None = None,
    ) -> Draft:
        draft = Draft(
            id=draft_id,
            owner_id=owner_id,
            type_tag=kind,
            payload=dict(SAMPLE_PAYLOADS[kind]) if payload is None else payload,
        )
        return services.drafts.add(draft)

    return factory


# =============================================================================
# Clock, services, storage
# =============================================================================


@pytest.fixture
def clock() -> ManualClock:
    return ManualClock()


@pytest.fixture
def services() -> Services:
    return build_memory_services()


@pytest.fixture
def settings(tmp_path: Path) -> ListingSpineSettings:
    return ListingSpineSettings(
        _env_file=None,
        database_url=f"sqlite:///{tmp_path / 'listing_spine.db'}",
        dispatcher="inline",
    )


@pytest.fixture
def engine(settings: ListingSpineSettings) -> Generator[Any, None, None]:
    engine = create_listing_engine(settings.database_url)
    create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine: Any) -> Any:
    return listing_session_factory(engine)


# =============================================================================
# Runtimes
# =============================================================================


@pytest.fixture
def make_runtime(
    settings: ListingSpineSettings, clock: ManualClock
) -> Generator[Callable[..., Runtime], None, None]:
    """Build a runtime with an inline dispatcher and a fixed routing flag.

    Every runtime gets its own in-memory services unless ``services`` is given.
    """
    built: list[Runtime] = []

    def factory(
        *,
        durable: bool = False,
        services: Services | None = None,
        clock: ManualClock = clock,
        **overrides: Any,
    ) -> Runtime:
        runtime = build_runtime(
            settings,
            services=services or build_memory_services(),
            clock=clock,
            dispatcher=InlineDispatcher(),
            flag=lambda: durable,
            **overrides,
        )
        built.append(runtime)
        return runtime

    yield factory
    for runtime in built:
        runtime.close()


@pytest.fixture(params=["direct", "durable"])
def mode(request: pytest.FixtureRequest) -> str:
    return request.param


@pytest.fixture
def runtime(make_runtime: Callable[..., Runtime], mode: str) -> Runtime:
    """A runtime routed to one backend; parametrized over both."""
    return make_runtime(durable=mode == "durable")


@pytest.fixture
def direct_runtime(make_runtime: Callable[..., Runtime]) -> Runtime:
    return make_runtime(durable=False)


@pytest.fixture
def durable_runtime(make_runtime: Callable[..., Runtime]) -> Runtime:
    return make_runtime(durable=True)
