"""Tests for domain records and enums."""

from datetime import UTC, datetime

import pytest

from listing_spine.core.errors import InvalidTransitionError
from listing_spine.domain.models import (
    ApprovalCase,
    Decision,
    Draft,
    DraftStatus,
    EntityKind,
    OrderStatus,
    SagaLedgerEntry,
)


class TestEntityKind:
    @pytest.mark.parametrize("value", ["PG", "pg", EntityKind.PG])
    def test_parse(self, value):
        assert EntityKind.parse(value) is EntityKind.PG

    def test_parse_unknown(self):
        with pytest.raises(ValueError, match="Unknown entity kind: villa"):
            EntityKind.parse("villa")

    def test_labels(self):
        assert EntityKind.PG.label == "PG/hostel"
        assert EntityKind.DEVELOPER.label == "developer profile"


class TestDraft:
    def test_dict_round_trip(self):
        draft = Draft(id="42", owner_id="7", type_tag=EntityKind.PROJECT, payload={"projectName": "Green Meadows"})
        data = draft.to_dict()
        assert data["type_tag"] == "PROJECT"
        assert data["status"] == "DRAFT"
        assert Draft.from_dict(data) == draft

    def test_from_dict_coerces_ids(self):
        draft = Draft.from_dict({"id": 42, "owner_id": 7, "type_tag": "property", "status": "PUBLISHED"})
        assert draft.id == "42"
        assert draft.owner_id == "7"
        assert draft.payload is None
        assert draft.status is DraftStatus.PUBLISHED


class TestApprovalCase:
    """A case leaves PENDING exactly once."""

    @pytest.fixture
    def case(self):
        return ApprovalCase(
            listing_id="L-1",
            automated_quality_score=0.9,
            review_deadline=datetime(2024, 1, 3, tzinfo=UTC),
        )

    def test_decide(self, case):
        case.decide(Decision.APPROVED, "Looks good", decided_by="asha")
        assert case.is_terminal
        assert case.to_dict() == {
            "listing_id": "L-1",
            "decision": "APPROVED",
            "decision_comment": "Looks good",
            "decided_by": "asha",
            "automatic": False,
            "automated_quality_score": 0.9,
            "review_deadline": "2024-01-03T00:00:00+00:00",
        }

    def test_second_decision_refused(self, case):
        case.decide(Decision.APPROVED, "Approved")
        with pytest.raises(InvalidTransitionError, match="Invalid approval case transition: APPROVED -> REJECTED"):
            case.decide(Decision.REJECTED, "Rejected")
        assert case.decision is Decision.APPROVED

    def test_pending_is_not_a_decision(self, case):
        with pytest.raises(ValueError):
            case.decide(Decision.PENDING, "")
        assert not case.is_terminal


class TestSagaLedgerEntry:
    def test_defaults(self):
        assert SagaLedgerEntry(order_id="O-1").to_dict() == {
            "order_id": "O-1",
            "reserved": False,
            "released": False,
            "release_failed": False,
            "order_status": "PENDING",
        }

    def test_failed_attempt(self):
        entry = SagaLedgerEntry(order_id="O-1", reserved=True, released=True, order_status=OrderStatus.PAYMENT_FAILED)
        assert entry.to_dict()["order_status"] == "PAYMENT_FAILED"
