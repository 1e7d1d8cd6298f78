"""Domain records, typed draft payloads, validation rules and quality scoring."""

from listing_spine.domain.models import (
    ApprovalCase,
    Decision,
    Draft,
    DraftStatus,
    EntityKind,
    ListingStatus,
    OrderStatus,
    PublishableEntity,
    PublishStatus,
    SagaLedgerEntry,
    VerificationStatus,
)

__all__ = [
    "ApprovalCase",
    "Decision",
    "Draft",
    "DraftStatus",
    "EntityKind",
    "ListingStatus",
    "OrderStatus",
    "PublishableEntity",
    "PublishStatus",
    "SagaLedgerEntry",
    "VerificationStatus",
]
