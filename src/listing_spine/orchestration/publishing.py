"""Publishing State Machine: draft in, published entity out.

Manifesto:
    One workflow per entity kind (property, PG/hostel, project, developer),
all four driven by the same state machine. Each step is an activity, so the
identical function runs in direct mode and, replayed from its journal, in
durable mode.

States and legal moves (``PUBLISHING_TRANSITIONS``)::

    FETCHING → VALIDATING → CREATING ─┬→ MARKING_PUBLISHED → NOTIFYING → DONE
                          ↘ UPDATING ─┘
    CREATING → UPDATING   (unique draft reference hit: create became update)
    FETCHING | VALIDATING | CREATING | UPDATING → FAILED

Failure shapes returned to the caller:

* validation      → ``{success: false, message, errors: [...]}``
* draft not found → ``{success: false, message}``
* anything else   → ``{success: false, message}`` once retries are exhausted

Marking the draft published and notifying the owner are best effort: a
failure is logged and the run still succeeds. A draft left in DRAFT after a
successful create is the accepted inconsistency window; re-publishing it
lands in the update branch.

Guardrails:
    ❌ DON'T: Look up the existing entity before validation
    ✅ DO: Decide create vs update immediately before the mutating step

    ❌ DON'T: Move the machine by assigning ``state`` directly
    ✅ DO: Call ``advance()`` so an illegal move raises ``InvalidTransitionError``

Tags:
    listing-spine, orchestration, publishing, state-machine, idempotent

Doc-Types:
    api-reference, architecture-diagram
"""

from __future__ import annotations

from enum import Enum
from typing import Any

from listing_spine.activities.publishing import KIND_TITLES
from listing_spine.core.errors import InvalidTransitionError
from listing_spine.core.result import Err
from listing_spine.domain.models import EntityKind
from listing_spine.execution.activity import ActivityFailed
from listing_spine.execution.context import WorkflowContext
from listing_spine.execution.registry import WorkflowFn, workflow
from listing_spine.execution.results import WorkflowResult


class PublishingState(str, Enum):
    FETCHING = "FETCHING"
    VALIDATING = "VALIDATING"
    CREATING = "CREATING"
    UPDATING = "UPDATING"
    MARKING_PUBLISHED = "MARKING_PUBLISHED"
    NOTIFYING = "NOTIFYING"
    DONE = "DONE"
    FAILED = "FAILED"


PUBLISHING_TRANSITIONS: dict[PublishingState, frozenset[PublishingState]] = {
    PublishingState.FETCHING: frozenset({PublishingState.VALIDATING, PublishingState.FAILED}),
    PublishingState.VALIDATING: frozenset({
        PublishingState.CREATING,
        PublishingState.UPDATING,
        PublishingState.FAILED,
    }),
    PublishingState.CREATING: frozenset({
        PublishingState.UPDATING,  # duplicate draft reference
        PublishingState.MARKING_PUBLISHED,
        PublishingState.FAILED,
    }),
    PublishingState.UPDATING: frozenset({PublishingState.MARKING_PUBLISHED, PublishingState.FAILED}),
    PublishingState.MARKING_PUBLISHED: frozenset({PublishingState.NOTIFYING}),
    PublishingState.NOTIFYING: frozenset({PublishingState.DONE}),
    PublishingState.DONE: frozenset(),
    PublishingState.FAILED: frozenset(),
}


class PublishingMachine:
    """Tracks one publish run through ``PublishingState``.

    Example:
        >>> machine = PublishingMachine(EntityKind.PROPERTY)
        >>> machine.advance(PublishingState.VALIDATING).value
        'VALIDATING'
        >>> machine.can_advance(PublishingState.DONE)
        False
    """

    def __init__(self, kind: EntityKind):
        self.kind = kind
        self.state = PublishingState.FETCHING
        self.history: list[PublishingState] = [self.state]

    @property
    def is_terminal(self) -> bool:
        return not PUBLISHING_TRANSITIONS[self.state]

    def can_advance(self, target: PublishingState) -> bool:
        return target in PUBLISHING_TRANSITIONS[self.state]

    def advance(self, target: PublishingState) -> PublishingState:
        if not self.can_advance(target):
            raise InvalidTransitionError(
                self.state.value, target.value, machine=f"{self.kind.label} publishing"
            )
        self.state = target
        self.history.append(target)
        return target


PUBLISH_WORKFLOWS: dict[EntityKind, str] = {
    EntityKind.PROPERTY: "publish.property",
    EntityKind.PG: "publish.pg_hostel",
    EntityKind.PROJECT: "publish.project",
    EntityKind.DEVELOPER: "publish.developer",
}

# Failures whose activity message is already user-facing.
_VERBATIM_FAILURES = frozenset({"NotFoundError", "InsufficientBalanceError"})


def _failure(kind: EntityKind, exc: ActivityFailed) -> WorkflowResult:
    error = exc.error
    if error.kind == "ValidationError":
        return WorkflowResult.invalid(error.message, error.errors)
    if error.kind in _VERBATIM_FAILURES:
        return WorkflowResult.fail(error.message)
    return WorkflowResult.fail(f"Failed to publish {kind.label}: {error.message}")


def publish_entity(ctx: WorkflowContext, input: dict[str, Any], kind: EntityKind) -> WorkflowResult:
    """Run the publishing state machine for one draft of *kind*."""
    machine = PublishingMachine(kind)
    title = KIND_TITLES[kind]

    missing = [f"{key} is required" for key in ("draft_id", "owner_id") if not input.get(key)]
    if missing:
        machine.advance(PublishingState.FAILED)
        return WorkflowResult.invalid(f"{title} data validation failed", missing)

    ref = {"kind": kind.value, "draft_id": str(input["draft_id"]), "owner_id": str(input["owner_id"])}
    log = ctx.logger.bind(kind=kind.value, draft_id=ref["draft_id"])

    try:
        draft = ctx.activity("publishing.fetch_draft", ref)
        machine.advance(PublishingState.VALIDATING)
        typed = ctx.activity("publishing.validate_payload", {**ref, "payload": draft["payload"]})

        existing = ctx.activity("publishing.find_entity", ref)
        step = {**ref, "display_name": typed["display_name"], "attributes": typed["attributes"]}
        if existing is None:
            machine.advance(PublishingState.CREATING)
            ctx.activity("publishing.debit_credits", ref)
            created = ctx.activity("publishing.create_entity", step)
            entity, is_update = created["entity"], bool(created["is_update"])
            if is_update:
                machine.advance(PublishingState.UPDATING)
        else:
            machine.advance(PublishingState.UPDATING)
            entity = ctx.activity("publishing.update_entity", {**step, "entity_id": existing["id"]})
            is_update = True
    except ActivityFailed as exc:
        log.warning("publish.failed", state=machine.state.value, activity=exc.activity,
                    kind_error=exc.kind, error=str(exc))
        machine.advance(PublishingState.FAILED)
        return _failure(kind, exc)

    machine.advance(PublishingState.MARKING_PUBLISHED)
    marked = ctx.try_activity("publishing.mark_published", ref)
    if isinstance(marked, Err):
        # Entity exists, draft still DRAFT. Re-publishing repairs it via the update branch.
        log.warning("publish.mark_published_failed", entity_id=entity["id"], error=marked.error.message)

    machine.advance(PublishingState.NOTIFYING)
    notified = ctx.try_activity(
        "publishing.notify",
        {**ref, "display_name": entity["display_name"], "is_update": is_update},
    )
    if isinstance(notified, Err):
        log.warning("publish.notify_failed", entity_id=entity["id"], error=notified.error.message)

    machine.advance(PublishingState.DONE)
    log.info("publish.completed", entity_id=entity["id"], is_update=is_update)
    return WorkflowResult.ok(
        f"{title} {'updated' if is_update else 'published'} successfully",
        {"entity_id": entity["id"], "display_name": entity["display_name"], "is_update": is_update},
    )


def _publisher(kind: EntityKind) -> WorkflowFn:
    def run(ctx: WorkflowContext, input: dict[str, Any]) -> WorkflowResult:
        return publish_entity(ctx, input, kind)

    run.__name__ = f"publish_{kind.value.lower()}"
    run.__doc__ = f"Publish a {kind.label} draft."
    return run


publish_property = workflow(PUBLISH_WORKFLOWS[EntityKind.PROPERTY])(_publisher(EntityKind.PROPERTY))
publish_pg_hostel = workflow(PUBLISH_WORKFLOWS[EntityKind.PG])(_publisher(EntityKind.PG))
publish_project = workflow(PUBLISH_WORKFLOWS[EntityKind.PROJECT])(_publisher(EntityKind.PROJECT))
publish_developer = workflow(PUBLISH_WORKFLOWS[EntityKind.DEVELOPER])(_publisher(EntityKind.DEVELOPER))


__all__ = [
    "PublishingState",
    "PUBLISHING_TRANSITIONS",
    "PublishingMachine",
    "PUBLISH_WORKFLOWS",
    "publish_entity",
]
