"""Collaborator interfaces consumed by activities.

The publishing core never owns storage, notification, payment or search; it
calls them through these protocols. ``Services`` bundles one implementation of
each so an activity receives everything it may touch in a single argument.

Implementations:
    memory.py  -- thread-safe in-process versions (tests, local development)
    sql.py     -- SQLAlchemy-backed draft and entity stores
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Protocol, runtime_checkable

from listing_spine.domain.models import (
    ChargeResult,
    CreditTransaction,
    Draft,
    EntityKind,
    ListingStatus,
    OrderStatus,
    PublishableEntity,
)
from listing_spine.domain.quality import AutomatedQualityScorer, QualityScorer


@runtime_checkable
class DraftStore(Protocol):
    def find_draft(self, draft_id: str, owner_id: str, type_tag: EntityKind) -> Draft | None:
        """Return the draft only if it exists, belongs to *owner_id* and has *type_tag*."""
        ...

    def mark_published(self, draft_id: str) -> None: ...


@runtime_checkable
class EntityStore(Protocol):
    """One store per entity kind.

    ``create`` must raise ``DuplicateEntityError`` when an entity already
    exists for *draft_id*.
    """

    kind: EntityKind

    def find_by_draft_id(self, draft_id: str) -> PublishableEntity | None: ...

    def create(self, owner_id: str, draft_id: str, display_name: str,
               attributes: dict[str, Any]) -> PublishableEntity: ...

    def update(self, entity_id: str, owner_id: str, display_name: str,
               attributes: dict[str, Any]) -> PublishableEntity: ...


@runtime_checkable
class Notifier(Protocol):
    def notify_user(self, user_id: str, subject: str, body: str) -> None: ...


@runtime_checkable
class CreditLedger(Protocol):
    def debit(self, user_id: str, amount: float, reason: str,
              reference: str | None = None) -> CreditTransaction:
        """Raise ``InsufficientBalanceError`` if the balance cannot cover *amount*.

        A repeated *reference* returns the original transaction instead of
        debiting twice.
        """
        ...


@runtime_checkable
class PaymentGateway(Protocol):
    def charge(self, order_id: str, amount: float, currency: str, method: str) -> ChargeResult: ...


@runtime_checkable
class InventoryService(Protocol):
    def reserve(self, order_id: str) -> str:
        """Reserve stock for *order_id*; idempotent per order. Returns a reservation id."""
        ...

    def release(self, order_id: str) -> None: ...


@runtime_checkable
class OrderStore(Protocol):
    def get_status(self, order_id: str) -> OrderStatus | None: ...

    def update_status(self, order_id: str, status: OrderStatus, *,
                      transaction_id: str | None = None, error: str | None = None) -> None: ...


@runtime_checkable
class FulfillmentService(Protocol):
    def trigger(self, order_id: str) -> None: ...


@runtime_checkable
class SearchIndex(Protocol):
    def publish(self, entity_id: str, data: dict[str, Any]) -> None: ...

    def remove(self, entity_id: str) -> None: ...


@runtime_checkable
class ListingReviewStore(Protocol):
    def update_status(self, listing_id: str, status: ListingStatus, *,
                      comment: str | None = None, score: float | None = None) -> None: ...


@runtime_checkable
class ReviewerDirectory(Protocol):
    def reviewers(self) -> list[str]: ...


@dataclass
class Services:
    """Everything an activity may call. Built once per process."""

    drafts: DraftStore
    entities: dict[EntityKind, EntityStore]
    notifier: Notifier
    ledger: CreditLedger
    gateway: PaymentGateway
    inventory: InventoryService
    orders: OrderStore
    fulfillment: FulfillmentService
    search: SearchIndex
    listings: ListingReviewStore
    reviewers: ReviewerDirectory
    scorer: QualityScorer = field(default_factory=AutomatedQualityScorer)
    publish_credit_cost: float = 0.0

    def entity_store(self, kind: EntityKind) -> EntityStore:
        return self.entities[kind]


__all__ = [
    "DraftStore",
    "EntityStore",
    "Notifier",
    "CreditLedger",
    "PaymentGateway",
    "InventoryService",
    "OrderStore",
    "FulfillmentService",
    "SearchIndex",
    "ListingReviewStore",
    "ReviewerDirectory",
    "Services",
]
