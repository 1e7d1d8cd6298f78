"""Listing review activities used by the approval workflow."""

from __future__ import annotations

from typing import Any

from listing_spine.collaborators.protocols import Services
from listing_spine.core.errors import ValidationError
from listing_spine.domain.models import ListingStatus
from listing_spine.domain.validation import validate_listing
from listing_spine.execution.activity import activity
from listing_spine.execution.policy import MINIMAL, STANDARD


@activity("listing.validate", policy=MINIMAL)
def validate(services: Services, payload: dict[str, Any]) -> dict[str, Any]:
    errors = validate_listing(payload.get("listing") or {})
    if errors:
        raise ValidationError("Listing validation failed", errors=errors)
    return {"valid": True}


@activity("listing.quality_checks", policy=STANDARD)
def quality_checks(services: Services, payload: dict[str, Any]) -> dict[str, Any]:
    report = services.scorer.score(str(payload["listing_id"]), payload.get("listing") or {})
    return report.to_dict()


@activity("listing.update_status", policy=STANDARD)
def update_status(services: Services, payload: dict[str, Any]) -> None:
    services.listings.update_status(
        str(payload["listing_id"]),
        ListingStatus(payload["status"]),
        comment=payload.get("comment"),
        score=payload.get("score"),
    )


@activity("listing.notify_reviewers", policy=MINIMAL)
def notify_reviewers(services: Services, payload: dict[str, Any]) -> dict[str, Any]:
    listing_id = payload["listing_id"]
    reviewers = services.reviewers.reviewers()
    for reviewer in reviewers:
        services.notifier.notify_user(
            reviewer,
            f"Listing {listing_id} awaiting review",
            f"Listing {listing_id} from user {payload['user_id']} is ready for review "
            f"(automated quality score: {payload['score']}).",
        )
    return {"notified": len(reviewers)}


@activity("listing.approve", policy=STANDARD)
def approve(services: Services, payload: dict[str, Any]) -> None:
    services.listings.update_status(str(payload["listing_id"]), ListingStatus.APPROVED,
                                    comment=payload.get("comment"))


@activity("listing.reject", policy=STANDARD)
def reject(services: Services, payload: dict[str, Any]) -> None:
    services.listings.update_status(str(payload["listing_id"]), ListingStatus.REJECTED,
                                    comment=payload.get("comment"))


@activity("listing.publish_to_search", policy=STANDARD)
def publish_to_search(services: Services, payload: dict[str, Any]) -> None:
    services.search.publish(str(payload["listing_id"]), payload.get("listing") or {})


@activity("listing.remove_from_search", policy=STANDARD)
def remove_from_search(services: Services, payload: dict[str, Any]) -> None:
    services.search.remove(str(payload["listing_id"]))


@activity("listing.notify_submitter", policy=MINIMAL)
def notify_submitter(services: Services, payload: dict[str, Any]) -> None:
    services.notifier.notify_user(str(payload["user_id"]), payload["subject"], payload["body"])
