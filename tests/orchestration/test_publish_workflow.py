"""Tests for the publishing workflows, run against both backends."""

import pytest

from listing_spine.activities.publishing import KIND_TITLES
from listing_spine.core.errors import InvalidTransitionError
from listing_spine.collaborators.memory import (
    InMemoryCreditLedger,
    InMemoryDraftStore,
    InMemoryEntityStore,
    InMemoryNotifier,
    build_memory_services,
)
from listing_spine.domain.models import DraftStatus, EntityKind
from listing_spine.orchestration.publishing import (
    PUBLISH_WORKFLOWS,
    PublishingMachine,
    PublishingState,
)

DRAFT_42 = {"draft_id": "42", "owner_id": "7"}


class BrokenPublishMark(InMemoryDraftStore):
    def mark_published(self, draft_id):
        self._record("mark_published", draft_id)
        raise ConnectionError("drafts database unavailable")


class BrokenNotifier(InMemoryNotifier):
    def notify_user(self, user_id, subject, body):
        raise ConnectionError("mail relay down")


class RacingEntityStore(InMemoryEntityStore):
    """A rival publish commits the entity right after our existence check."""

    def __init__(self, kind):
        super().__init__(kind)
        self.create("7", "42", "Lake View Flat", {})
        self._hidden = True

    def find_by_draft_id(self, draft_id):
        if self._hidden:
            self._hidden = False
            return None
        return super().find_by_draft_id(draft_id)


@pytest.fixture
def custom_runtime(make_runtime, mode):
    """Build a runtime in the current mode around hand-picked services."""

    def factory(**parts):
        return make_runtime(durable=mode == "durable", services=build_memory_services(**parts))

    return factory


class TestPublishProperty:
    """Draft 42 of user 7: create, then update."""

    def test_first_publish_creates(self, runtime, add_draft):
        add_draft(runtime.services)
        result = runtime.router.run("publish.property", DRAFT_42)

        assert result.envelope() == {
            "success": True,
            "message": "Property published successfully",
            "data": {"entity_id": "1", "display_name": "Lake View Flat", "is_update": False},
        }
        services = runtime.services
        assert services.drafts.get("42").status is DraftStatus.PUBLISHED
        assert services.notifier.subjects_for("7") == ["Property Published"]
        entity = services.entity_store(EntityKind.PROPERTY).find_by_draft_id("42")
        assert entity.attributes["city"] == "Pune"

    def test_second_publish_updates(self, runtime, add_draft, sample_payload):
        add_draft(runtime.services)
        runtime.router.run("publish.property", DRAFT_42)
        runtime.services.drafts.save_payload("42", {**sample_payload(EntityKind.PROPERTY), "price": 4500000})

        result = runtime.router.run("publish.property", DRAFT_42)

        assert result.success
        assert result.message == "Property updated successfully"
        assert result.data == {"entity_id": "1", "display_name": "Lake View Flat", "is_update": True}
        store = runtime.services.entity_store(EntityKind.PROPERTY)
        assert store.count("create") == 1
        assert store.count("update") == 1
        assert store.find_by_draft_id("42").attributes["price"] == 4500000.0
        assert runtime.services.notifier.subjects_for("7") == ["Property Published", "Property Updated"]

    @pytest.mark.parametrize("kind", list(EntityKind))
    def test_every_kind(self, runtime, add_draft, kind):
        add_draft(runtime.services, kind)
        result = runtime.router.run(PUBLISH_WORKFLOWS[kind], DRAFT_42)

        assert result.success
        assert result.message == f"{KIND_TITLES[kind]} published successfully"
        assert runtime.services.entity_store(kind).find_by_draft_id("42") is not None
        assert runtime.services.notifier.subjects_for("7") == [f"{KIND_TITLES[kind]} Published"]


class TestPublishFailures:
    """Validation, ownership and side-effect failures."""

    def test_validation_errors_returned(self, runtime, add_draft):
        add_draft(runtime.services, payload={"city": "Pune", "price": "cheap"})
        result = runtime.router.run("publish.property", DRAFT_42)

        assert result.envelope() == {
            "success": False,
            "message": "Property data validation failed",
            "errors": [
                "Property name, title, or custom property name is required",
                "price must be a valid number",
            ],
        }
        assert runtime.services.entity_store(EntityKind.PROPERTY).count("create") == 0
        assert runtime.services.drafts.get("42").status is DraftStatus.DRAFT

    def test_missing_identifiers(self, runtime):
        result = runtime.router.run("publish.project", {"draft_id": "42"})
        assert result.message == "Project data validation failed"
        assert result.errors == ["owner_id is required"]

    def test_other_owner_is_not_found(self, runtime, add_draft):
        add_draft(runtime.services)
        result = runtime.router.run("publish.property", {"draft_id": "42", "owner_id": "8"})
        assert result.envelope() == {"success": False, "message": "Property draft not found or access denied"}

    def test_wrong_kind_is_not_found(self, runtime, add_draft):
        add_draft(runtime.services, EntityKind.PG)
        result = runtime.router.run("publish.property", DRAFT_42)
        assert not result.success
        assert result.message == "Property draft not found or access denied"
        assert runtime.services.drafts.count("find_draft") == 1

    def test_mark_published_failure_still_succeeds(self, custom_runtime, add_draft):
        runtime = custom_runtime(drafts=BrokenPublishMark())
        add_draft(runtime.services)

        result = runtime.router.run("publish.property", DRAFT_42)

        assert result.success
        assert runtime.services.drafts.count("mark_published") == 3
        assert runtime.services.drafts.get("42").status is DraftStatus.DRAFT

    def test_republish_after_mark_failure_takes_update_branch(self, custom_runtime, add_draft):
        drafts = BrokenPublishMark()
        runtime = custom_runtime(drafts=drafts)
        add_draft(runtime.services)
        runtime.router.run("publish.property", DRAFT_42)

        result = runtime.router.run("publish.property", DRAFT_42)
        assert result.data["is_update"] is True
        assert runtime.services.entity_store(EntityKind.PROPERTY).count("create") == 1

    def test_notify_failure_still_succeeds(self, custom_runtime, add_draft):
        runtime = custom_runtime(notifier=BrokenNotifier())
        add_draft(runtime.services)
        result = runtime.router.run("publish.property", DRAFT_42)
        assert result.success
        assert runtime.services.drafts.get("42").status is DraftStatus.PUBLISHED


class TestCreateUpdateRace:
    def test_duplicate_create_becomes_update(self, custom_runtime, add_draft):
        entities = {
            kind: RacingEntityStore(kind) if kind is EntityKind.PROPERTY else InMemoryEntityStore(kind)
            for kind in EntityKind
        }
        runtime = custom_runtime(entities=entities)
        add_draft(runtime.services)

        result = runtime.router.run("publish.property", DRAFT_42)

        assert result.success
        assert result.message == "Property updated successfully"
        assert result.data["entity_id"] == "1"
        store = entities[EntityKind.PROPERTY]
        assert len(store.all()) == 1
        assert store.count("update") == 1


class TestPublishCredits:
    """The publish fee is charged once per draft."""

    def test_fee_debited_on_create_only(self, custom_runtime, add_draft):
        ledger = InMemoryCreditLedger({"7": 25})
        runtime = custom_runtime(ledger=ledger, publish_credit_cost=10)
        add_draft(runtime.services)

        runtime.router.run("publish.property", DRAFT_42)
        runtime.router.run("publish.property", DRAFT_42)

        assert ledger.balance("7") == 15
        assert ledger.transactions("7")[0].reference == "publish:PROPERTY:42"

    def test_insufficient_credits(self, custom_runtime, add_draft):
        runtime = custom_runtime(ledger=InMemoryCreditLedger(), publish_credit_cost=10)
        add_draft(runtime.services)

        result = runtime.router.run("publish.property", DRAFT_42)

        assert result.envelope() == {
            "success": False,
            "message": "Insufficient credits. Required: 10, Available: 0",
        }
        assert runtime.services.entity_store(EntityKind.PROPERTY).count("create") == 0


class TestPublishingMachine:
    def test_create_path(self):
        machine = PublishingMachine(EntityKind.PROPERTY)
        for state in (
            PublishingState.VALIDATING,
            PublishingState.CREATING,
            PublishingState.MARKING_PUBLISHED,
            PublishingState.NOTIFYING,
            PublishingState.DONE,
        ):
            machine.advance(state)
        assert machine.is_terminal
        assert machine.history[0] is PublishingState.FETCHING

    def test_duplicate_create_may_turn_into_update(self):
        machine = PublishingMachine(EntityKind.PG)
        machine.advance(PublishingState.VALIDATING)
        machine.advance(PublishingState.CREATING)
        assert machine.can_advance(PublishingState.UPDATING)

    def test_illegal_move(self):
        machine = PublishingMachine(EntityKind.PROPERTY)
        with pytest.raises(InvalidTransitionError, match="Invalid property publishing transition: FETCHING -> DONE"):
            machine.advance(PublishingState.DONE)
        assert machine.state is PublishingState.FETCHING

    def test_side_effects_cannot_fail_the_run(self):
        machine = PublishingMachine(EntityKind.PROJECT)
        for state in (PublishingState.VALIDATING, PublishingState.UPDATING, PublishingState.MARKING_PUBLISHED):
            machine.advance(state)
        assert not machine.can_advance(PublishingState.FAILED)
