"""Thread-safe in-process collaborators.

Used by the test suite, by ``listing-spine`` when no database is configured
for a concern, and as the reference behaviour for the protocols. Each store
keeps a ``calls`` log so tests can assert how often a side effect happened.
"""

from __future__ import annotations

import copy
import itertools
import threading
import uuid
from datetime import UTC, datetime
from typing import Any

from listing_spine.core.errors import (
    DuplicateEntityError,
    InsufficientBalanceError,
    InventoryUnavailableError,
    NotFoundError,
)
from listing_spine.core.logging import get_logger
from listing_spine.collaborators.protocols import Services
from listing_spine.domain.models import (
    ChargeResult,
    CreditTransaction,
    Draft,
    DraftStatus,
    EntityKind,
    ListingStatus,
    OrderStatus,
    PublishableEntity,
    PublishStatus,
    VerificationStatus,
)

logger = get_logger(__name__)


class _Recorder:
    def __init__(self) -> None:
        self._lock = threading.RLock()
        self.calls: list[tuple[str, tuple[Any, ...]]] = []

    def _record(self, name: str, *args: Any) -> None:
        self.calls.append((name, args))

    def count(self, name: str) -> int:
        with self._lock:
            return sum(1 for call, _ in self.calls if call == name)


class InMemoryDraftStore(_Recorder):
    def __init__(self, drafts: list[Draft] | None = None) -> None:
        super().__init__()
        self._drafts: dict[str, Draft] = {}
        for draft in drafts or []:
            self.add(draft)

    def add(self, draft: Draft) -> Draft:
        with self._lock:
            self._drafts[str(draft.id)] = draft
        return draft

    def get(self, draft_id: str) -> Draft | None:
        with self._lock:
            return self._drafts.get(str(draft_id))

    def save_payload(self, draft_id: str, payload: dict[str, Any]) -> None:
        with self._lock:
            self._drafts[str(draft_id)].payload = payload

    def find_draft(self, draft_id: str, owner_id: str, type_tag: EntityKind) -> Draft | None:
        with self._lock:
            self._record("find_draft", draft_id, owner_id, type_tag)
            draft = self._drafts.get(str(draft_id))
            if draft is None or draft.owner_id != str(owner_id) or draft.type_tag is not type_tag:
                return None
            return copy.deepcopy(draft)

    def mark_published(self, draft_id: str) -> None:
        with self._lock:
            self._record("mark_published", draft_id)
            draft = self._drafts.get(str(draft_id))
            if draft is None:
                raise NotFoundError(f"Draft {draft_id} not found")
            draft.status = DraftStatus.PUBLISHED


class InMemoryEntityStore(_Recorder):
    """Entity store with a unique draft reference, like the SQL tables."""

    def __init__(self, kind: EntityKind) -> None:
        super().__init__()
        self.kind = kind
        self._ids = itertools.count(1)
        self._by_id: dict[str, PublishableEntity] = {}

    def all(self) -> list[PublishableEntity]:
        with self._lock:
            return list(self._by_id.values())

    def find_by_draft_id(self, draft_id: str) -> PublishableEntity | None:
        with self._lock:
            self._record("find_by_draft_id", draft_id)
            for entity in self._by_id.values():
                if entity.draft_id == str(draft_id):
                    return entity
            return None

    def create(self, owner_id: str, draft_id: str, display_name: str,
               attributes: dict[str, Any]) -> PublishableEntity:
        with self._lock:
            self._record("create", owner_id, draft_id)
            if any(entity.draft_id == str(draft_id) for entity in self._by_id.values()):
                raise DuplicateEntityError(
                    f"{self.kind.value} already exists for draft {draft_id}", draft_id=str(draft_id)
                )
            now = datetime.now(UTC)
            entity = PublishableEntity(
                id=str(next(self._ids)),
                kind=self.kind,
                draft_id=str(draft_id),
                owner_id=str(owner_id),
                display_name=display_name,
                verification_status=VerificationStatus.PENDING,
                publish_status=PublishStatus.PENDING_REVIEW,
                attributes=dict(attributes),
                created_at=now,
                updated_at=now,
            )
            self._by_id[entity.id] = entity
            return entity

    def update(self, entity_id: str, owner_id: str, display_name: str,
               attributes: dict[str, Any]) -> PublishableEntity:
        with self._lock:
            self._record("update", entity_id, owner_id)
            entity = self._by_id.get(str(entity_id))
            if entity is None or entity.owner_id != str(owner_id):
                raise NotFoundError(f"{self.kind.value} {entity_id} not found or unauthorized")
            entity.display_name = display_name
            entity.attributes = {**entity.attributes, **attributes}
            entity.updated_at = datetime.now(UTC)
            return entity


class InMemoryNotifier(_Recorder):
    def __init__(self) -> None:
        super().__init__()
        self.sent: list[dict[str, str]] = []

    def notify_user(self, user_id: str, subject: str, body: str) -> None:
        with self._lock:
            self._record("notify_user", user_id, subject)
            self.sent.append({"user_id": str(user_id), "subject": subject, "body": body})

    def subjects_for(self, user_id: str) -> list[str]:
        with self._lock:
            return [message["subject"] for message in self.sent if message["user_id"] == str(user_id)]


class LoggingNotifier:
    """Notifier that only logs. Default for the CLI runtime."""

    def notify_user(self, user_id: str, subject: str, body: str) -> None:
        logger.info("notification.sent", user_id=user_id, subject=subject)


class InMemoryCreditLedger(_Recorder):
    """Append-only ledger with a derived running balance per user."""

    def __init__(self, balances: dict[str, float] | None = None) -> None:
        super().__init__()
        self._entries: list[CreditTransaction] = []
        self._opening = {str(user): float(amount) for user, amount in (balances or {}).items()}

    def balance(self, user_id: str) -> float:
        with self._lock:
            spent = sum(entry.amount for entry in self._entries if entry.user_id == str(user_id))
            return self._opening.get(str(user_id), 0.0) - spent

    def transactions(self, user_id: str) -> list[CreditTransaction]:
        with self._lock:
            return [entry for entry in self._entries if entry.user_id == str(user_id)]

    def debit(self, user_id: str, amount: float, reason: str,
              reference: str | None = None) -> CreditTransaction:
        with self._lock:
            self._record("debit", user_id, amount, reference)
            if reference is not None:
                for entry in self._entries:
                    if entry.reference == reference:
                        return entry
            available = self.balance(user_id)
            if available < amount:
                raise InsufficientBalanceError(
                    f"Insufficient credits. Required: {amount:g}, Available: {available:g}",
                    required=amount,
                    available=available,
                )
            entry = CreditTransaction(
                id=uuid.uuid4().hex,
                user_id=str(user_id),
                amount=float(amount),
                reason=reason,
                reference=reference,
                balance_after=available - amount,
            )
            self._entries.append(entry)
            return entry


class InMemoryPaymentGateway(_Recorder):
    """Approves every charge unless the order id is listed in ``decline``."""

    def __init__(self, decline: set[str] | None = None) -> None:
        super().__init__()
        self.decline = set(decline or ())

    def charge(self, order_id: str, amount: float, currency: str, method: str) -> ChargeResult:
        with self._lock:
            self._record("charge", order_id, amount, currency, method)
            if str(order_id) in self.decline:
                return ChargeResult(success=False, error="Card declined")
            return ChargeResult(success=True, transaction_id=f"txn_{uuid.uuid4().hex[:12]}")


class InMemoryInventory(_Recorder):
    def __init__(self, unavailable: set[str] | None = None) -> None:
        super().__init__()
        self.unavailable = set(unavailable or ())
        self.reservations: dict[str, str] = {}

    def reserve(self, order_id: str) -> str:
        with self._lock:
            self._record("reserve", order_id)
            if str(order_id) in self.unavailable:
                raise InventoryUnavailableError(f"No inventory available for order {order_id}")
            return self.reservations.setdefault(str(order_id), f"rsv_{uuid.uuid4().hex[:12]}")

    def release(self, order_id: str) -> None:
        with self._lock:
            self._record("release", order_id)
            self.reservations.pop(str(order_id), None)


class InMemoryOrderStore(_Recorder):
    def __init__(self) -> None:
        super().__init__()
        self.orders: dict[str, dict[str, Any]] = {}

    def get_status(self, order_id: str) -> OrderStatus | None:
        with self._lock:
            order = self.orders.get(str(order_id))
            return order["status"] if order else None

    def update_status(self, order_id: str, status: OrderStatus, *,
                      transaction_id: str | None = None, error: str | None = None) -> None:
        with self._lock:
            self._record("update_status", order_id, status)
            order = self.orders.setdefault(str(order_id), {})
            order.update({"status": status, "transaction_id": transaction_id, "error": error})


class InMemoryFulfillment(_Recorder):
    def trigger(self, order_id: str) -> None:
        with self._lock:
            self._record("trigger", order_id)


class InMemorySearchIndex(_Recorder):
    def __init__(self) -> None:
        super().__init__()
        self.documents: dict[str, dict[str, Any]] = {}

    def publish(self, entity_id: str, data: dict[str, Any]) -> None:
        with self._lock:
            self._record("publish", entity_id)
            self.documents[str(entity_id)] = dict(data)

    def remove(self, entity_id: str) -> None:
        with self._lock:
            self._record("remove", entity_id)
            self.documents.pop(str(entity_id), None)


class InMemoryListingReviewStore(_Recorder):
    def __init__(self) -> None:
        super().__init__()
        self.history: dict[str, list[dict[str, Any]]] = {}

    def update_status(self, listing_id: str, status: ListingStatus, *,
                      comment: str | None = None, score: float | None = None) -> None:
        with self._lock:
            self._record("update_status", listing_id, status)
            self.history.setdefault(str(listing_id), []).append(
                {"status": status, "comment": comment, "score": score}
            )

    def status(self, listing_id: str) -> ListingStatus | None:
        with self._lock:
            entries = self.history.get(str(listing_id))
            return entries[-1]["status"] if entries else None


class StaticReviewerDirectory:
    def __init__(self, reviewers: list[str] | None = None) -> None:
        self._reviewers = list(reviewers or ["reviewer@listing-spine.local"])

    def reviewers(self) -> list[str]:
        return list(self._reviewers)


def build_memory_services(**overrides: Any) -> Services:
    """A complete in-memory ``Services`` bundle; keyword arguments replace parts of it."""
    parts: dict[str, Any] = {
        "drafts": InMemoryDraftStore(),
        "entities": {kind: InMemoryEntityStore(kind) for kind in EntityKind},
        "notifier": InMemoryNotifier(),
        "ledger": InMemoryCreditLedger(),
        "gateway": InMemoryPaymentGateway(),
        "inventory": InMemoryInventory(),
        "orders": InMemoryOrderStore(),
        "fulfillment": InMemoryFulfillment(),
        "search": InMemorySearchIndex(),
        "listings": InMemoryListingReviewStore(),
        "reviewers": StaticReviewerDirectory(),
    }
    parts.update(overrides)
    return Services(**parts)


__all__ = [
    "InMemoryDraftStore",
    "InMemoryEntityStore",
    "InMemoryNotifier",
    "LoggingNotifier",
    "InMemoryCreditLedger",
    "InMemoryPaymentGateway",
    "InMemoryInventory",
    "InMemoryOrderStore",
    "InMemoryFulfillment",
    "InMemorySearchIndex",
    "InMemoryListingReviewStore",
    "StaticReviewerDirectory",
    "build_memory_services",
]
