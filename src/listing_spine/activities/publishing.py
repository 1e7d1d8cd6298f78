"""Publishing activities: every side effect of turning a draft into an entity.

Each activity is idempotent on its own terms:

* ``fetch_draft`` / ``find_entity`` are reads
* ``debit_credits`` passes a stable ledger reference (``publish:<kind>:<draft_id>``)
* ``create_entity`` relies on the unique draft reference; a duplicate becomes an update
* ``update_entity`` re-applies the same allow-listed attributes
* ``mark_published`` sets a status that is already terminal

Inputs and outputs are plain JSON so they can be journaled.
"""

from __future__ import annotations

from typing import Any

from listing_spine.collaborators.protocols import Services
from listing_spine.core.errors import DuplicateEntityError, NotFoundError, ValidationError
from listing_spine.core.logging import get_logger
from listing_spine.domain.models import EntityKind
from listing_spine.domain.payloads import PAYLOAD_MODELS, parse_payload
from listing_spine.domain.validation import validate_draft_payload
from listing_spine.execution.activity import activity
from listing_spine.execution.policy import MINIMAL, STANDARD

logger = get_logger(__name__)

KIND_TITLES = {
    EntityKind.PROPERTY: "Property",
    EntityKind.PG: "PG/Hostel",
    EntityKind.PROJECT: "Project",
    EntityKind.DEVELOPER: "Developer profile",
}


@activity("publishing.fetch_draft", policy=STANDARD)
def fetch_draft(services: Services, payload: dict[str, Any]) -> dict[str, Any]:
    """Load the draft if it exists, belongs to the owner and has the right type."""
    kind = EntityKind.parse(payload["kind"])
    draft = services.drafts.find_draft(str(payload["draft_id"]), str(payload["owner_id"]), kind)
    if draft is None or draft.payload is None:
        raise NotFoundError(f"{KIND_TITLES[kind]} draft not found or access denied")
    return draft.to_dict()


@activity("publishing.validate_payload", policy=MINIMAL)
def validate_payload(services: Services, payload: dict[str, Any]) -> dict[str, Any]:
    """Run the kind's rules, then convert the payload to its typed model.

    Returns the normalized ``display_name`` and camelCase ``attributes``.
    """
    kind = EntityKind.parse(payload["kind"])
    data = payload.get("payload")
    errors = validate_draft_payload(kind, data)
    if errors:
        raise ValidationError(f"{KIND_TITLES[kind]} data validation failed", errors=errors)
    model = parse_payload(kind, data)
    return {"display_name": model.display_name, "attributes": model.to_attributes()}


@activity("publishing.find_entity", policy=STANDARD)
def find_entity(services: Services, payload: dict[str, Any]) -> dict[str, Any] | None:
    kind = EntityKind.parse(payload["kind"])
    entity = services.entity_store(kind).find_by_draft_id(str(payload["draft_id"]))
    return entity.to_dict() if entity is not None else None


@activity("publishing.debit_credits", policy=MINIMAL)
def debit_credits(services: Services, payload: dict[str, Any]) -> dict[str, Any] | None:
    """Charge the publish fee. Skipped when the configured cost is zero."""
    cost = services.publish_credit_cost
    if cost <= 0:
        return None
    kind = EntityKind.parse(payload["kind"])
    draft_id = str(payload["draft_id"])
    transaction = services.ledger.debit(
        str(payload["owner_id"]),
        cost,
        reason=f"Publish {kind.label} from draft {draft_id}",
        reference=f"publish:{kind.value}:{draft_id}",
    )
    logger.info("credits.debited", user_id=transaction.user_id, amount=transaction.amount,
                balance_after=transaction.balance_after)
    return transaction.to_dict()


def _update(services: Services, kind: EntityKind, entity_id: str, owner_id: str,
            display_name: str, attributes: dict[str, Any]) -> dict[str, Any]:
    mutable = PAYLOAD_MODELS[kind].filter_mutable(attributes)
    entity = services.entity_store(kind).update(entity_id, owner_id, display_name, mutable)
    return entity.to_dict()


@activity("publishing.create_entity", policy=STANDARD)
def create_entity(services: Services, payload: dict[str, Any]) -> dict[str, Any]:
    """Create the entity; if one already exists for the draft, update it instead.

    The unique draft reference turns a lost create-vs-create race into an update.
    """
    kind = EntityKind.parse(payload["kind"])
    store = services.entity_store(kind)
    owner_id, draft_id = str(payload["owner_id"]), str(payload["draft_id"])
    try:
        entity = store.create(owner_id, draft_id, payload["display_name"], payload["attributes"])
    except DuplicateEntityError:
        existing = store.find_by_draft_id(draft_id)
        if existing is None:
            raise
        logger.warning("entity.create_fell_back_to_update", kind=kind.value, draft_id=draft_id,
                       entity_id=existing.id)
        return {
            "entity": _update(services, kind, existing.id, owner_id,
                              payload["display_name"], payload["attributes"]),
            "is_update": True,
        }
    return {"entity": entity.to_dict(), "is_update": False}


@activity("publishing.update_entity", policy=STANDARD)
def update_entity(services: Services, payload: dict[str, Any]) -> dict[str, Any]:
    kind = EntityKind.parse(payload["kind"])
    return _update(services, kind, str(payload["entity_id"]), str(payload["owner_id"]),
                   payload["display_name"], payload["attributes"])


@activity("publishing.mark_published", policy=STANDARD)
def mark_published(services: Services, payload: dict[str, Any]) -> None:
    services.drafts.mark_published(str(payload["draft_id"]))


@activity("publishing.notify", policy=MINIMAL)
def notify(services: Services, payload: dict[str, Any]) -> None:
    kind = EntityKind.parse(payload["kind"])
    name = payload["display_name"]
    if payload["is_update"]:
        subject = f"{KIND_TITLES[kind]} Updated"
        body = f'Your {kind.label} "{name}" has been updated successfully.'
    else:
        subject = f"{KIND_TITLES[kind]} Published"
        body = f'Your {kind.label} "{name}" has been published successfully and is now live!'
    services.notifier.notify_user(str(payload["owner_id"]), subject, body)
