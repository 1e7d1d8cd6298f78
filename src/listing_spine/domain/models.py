"""Domain records and status enums for drafts, entities, orders and approvals.

Records are plain dataclasses with ``to_dict`` / ``from_dict`` so they can
cross the activity boundary as JSON (activity outputs are journaled
verbatim in durable mode).
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any

from listing_spine.core.errors import InvalidTransitionError


class EntityKind(str, Enum):
    """The four publishable kinds. The value is the draft type tag."""

    PROPERTY = "PROPERTY"
    PG = "PG"
    PROJECT = "PROJECT"
    DEVELOPER = "DEVELOPER"

    @property
    def label(self) -> str:
        return _KIND_LABELS[self]

    @classmethod
    def parse(cls, value: str | EntityKind) -> EntityKind:
        if isinstance(value, EntityKind):
            return value
        try:
            return cls(str(value).upper())
        except ValueError:
            raise ValueError(f"Unknown entity kind: {value}") from None


_KIND_LABELS = {
    EntityKind.PROPERTY: "property",
    EntityKind.PG: "PG/hostel",
    EntityKind.PROJECT: "project",
    EntityKind.DEVELOPER: "developer profile",
}


class DraftStatus(str, Enum):
    DRAFT = "DRAFT"
    PUBLISHED = "PUBLISHED"
    ARCHIVED = "ARCHIVED"


class VerificationStatus(str, Enum):
    PENDING = "PENDING"
    VERIFIED = "VERIFIED"
    REJECTED = "REJECTED"


class PublishStatus(str, Enum):
    DRAFT = "DRAFT"
    PENDING_REVIEW = "PENDING_REVIEW"
    PUBLISHED = "PUBLISHED"


class OrderStatus(str, Enum):
    PENDING = "PENDING"
    PAID = "PAID"
    PAYMENT_FAILED = "PAYMENT_FAILED"


class ListingStatus(str, Enum):
    """Review status of a listing going through the approval workflow."""

    VALIDATION_FAILED = "validation_failed"
    PENDING_REVIEW = "pending_review"
    APPROVED = "approved"
    REJECTED = "rejected"


class Decision(str, Enum):
    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"


@dataclass
class Draft:
    """User-owned staging record."""

    id: str
    owner_id: str
    type_tag: EntityKind
    payload: dict[str, Any] | None
    status: DraftStatus = DraftStatus.DRAFT

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "owner_id": self.owner_id,
            "type_tag": self.type_tag.value,
            "payload": self.payload,
            "status": self.status.value,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Draft:
        return cls(
            id=str(data["id"]),
            owner_id=str(data["owner_id"]),
            type_tag=EntityKind.parse(data["type_tag"]),
            payload=data.get("payload"),
            status=DraftStatus(data.get("status", DraftStatus.DRAFT.value)),
        )


@dataclass
class PublishableEntity:
    """Permanent record created from exactly one draft."""

    id: str
    kind: EntityKind
    draft_id: str
    owner_id: str
    display_name: str
    verification_status: VerificationStatus = VerificationStatus.PENDING
    publish_status: PublishStatus = PublishStatus.PENDING_REVIEW
    attributes: dict[str, Any] = field(default_factory=dict)
    created_at: datetime | None = None
    updated_at: datetime | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "kind": self.kind.value,
            "draft_id": self.draft_id,
            "owner_id": self.owner_id,
            "display_name": self.display_name,
            "verification_status": self.verification_status.value,
            "publish_status": self.publish_status.value,
            "attributes": dict(self.attributes),
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }


@dataclass
class CreditTransaction:
    """Ledger entry returned by a successful debit."""

    id: str
    user_id: str
    amount: float
    reason: str
    reference: str | None = None
    balance_after: float = 0.0

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "amount": self.amount,
            "reason": self.reason,
            "reference": self.reference,
            "balance_after": self.balance_after,
        }


@dataclass
class ChargeResult:
    """Payment gateway answer."""

    success: bool
    transaction_id: str | None = None
    error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {"success": self.success, "transaction_id": self.transaction_id, "error": self.error}


@dataclass
class SagaLedgerEntry:
    """Per payment attempt: was inventory reserved, was it released, how did it end."""

    order_id: str
    reserved: bool = False
    released: bool = False
    release_failed: bool = False
    order_status: OrderStatus = OrderStatus.PENDING

    def to_dict(self) -> dict[str, Any]:
        return {
            "order_id": self.order_id,
            "reserved": self.reserved,
            "released": self.released,
            "release_failed": self.release_failed,
            "order_status": self.order_status.value,
        }


@dataclass
class ApprovalCase:
    """Review case for one listing.

    ``decision`` leaves PENDING exactly once; a second decision is refused.
    """

    listing_id: str
    automated_quality_score: float
    review_deadline: datetime
    decision: Decision = Decision.PENDING
    decision_comment: str | None = None
    decided_by: str | None = None
    automatic: bool = False

    @property
    def is_terminal(self) -> bool:
        return self.decision is not Decision.PENDING

    def decide(
        self,
        decision: Decision,
        comment: str,
        *,
        decided_by: str | None = None,
        automatic: bool = False,
    ) -> None:
        if decision is Decision.PENDING:
            raise ValueError("A decision must be APPROVED or REJECTED")
        if self.is_terminal:
            raise InvalidTransitionError(
                self.decision.value, decision.value, machine="approval case"
            )
        self.decision = decision
        self.decision_comment = comment
        self.decided_by = decided_by
        self.automatic = automatic

    def to_dict(self) -> dict[str, Any]:
        return {
            "listing_id": self.listing_id,
            "decision": self.decision.value,
            "decision_comment": self.decision_comment,
            "decided_by": self.decided_by,
            "automatic": self.automatic,
            "automated_quality_score": self.automated_quality_score,
            "review_deadline": self.review_deadline.isoformat(),
        }


__all__ = [
    "EntityKind",
    "DraftStatus",
    "VerificationStatus",
    "PublishStatus",
    "OrderStatus",
    "ListingStatus",
    "Decision",
    "Draft",
    "PublishableEntity",
    "CreditTransaction",
    "ChargeResult",
    "SagaLedgerEntry",
    "ApprovalCase",
]
