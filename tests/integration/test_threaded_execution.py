"""Real threads and the system clock: blocking waits, thread dispatch, concurrent publishes."""

import threading
import time

import pytest

from listing_spine.collaborators.memory import build_memory_services
from listing_spine.core.clock import SystemClock
from listing_spine.domain.models import EntityKind
from listing_spine.execution.dispatch import ThreadDispatcher
from listing_spine.runtime import build_runtime

DRAFT_42 = {"draft_id": "42", "owner_id": "7"}


def wait_until_waiting(direct, run_id, timeout=5.0):
    """Block until the direct run *run_id* is parked on its mailbox."""
    give_up = time.monotonic() + timeout
    while time.monotonic() < give_up:
        if direct.owns(run_id):
            mailbox = direct.mailbox(run_id)
            if mailbox is not None and mailbox.waiting.wait(0.05):
                return mailbox
        else:
            time.sleep(0.01)
    raise AssertionError(f"run {run_id} never started waiting")


@pytest.fixture
def live_runtime(make_runtime):
    return make_runtime(durable=False, clock=SystemClock())


class TestDirectSignalFromAnotherThread:
    def test_reviewer_unblocks_waiting_run(self, live_runtime, good_listing):
        outcome = {}

        def review():
            outcome["result"] = live_runtime.router.run(
                "listing.approval",
                {"listing_id": "L-1", "user_id": "7", "listing": good_listing},
                run_id="live-1",
            )

        worker = threading.Thread(target=review)
        worker.start()
        wait_until_waiting(live_runtime.direct, "live-1")
        assert live_runtime.router.status("live-1")["status"] == "RUNNING"

        assert live_runtime.router.signal("live-1", "reject", {"reviewer": "asha", "comment": "Duplicate"})
        worker.join(5.0)

        result = outcome["result"]
        assert result.data["decision"] == "REJECTED"
        assert result.data["decided_by"] == "asha"
        assert live_runtime.router.signal("live-1", "approve") is False

    def test_short_deadline_auto_decides(self, live_runtime, good_listing):
        result = live_runtime.router.run(
            "listing.approval",
            {"listing_id": "L-2", "user_id": "7", "listing": good_listing, "review_deadline_hours": 0.0001},
        )
        assert result.data["automatic"] is True
        assert result.data["decision"] == "APPROVED"


class TestConcurrentPublish:
    def test_same_draft_published_twice_at_once(self, live_runtime, add_draft):
        add_draft(live_runtime.services)
        barrier = threading.Barrier(2)
        results = []

        def publish():
            barrier.wait()
            results.append(live_runtime.router.run("publish.property", DRAFT_42))

        threads = [threading.Thread(target=publish) for _ in range(2)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join(10.0)

        assert all(result.success for result in results)
        assert sorted(result.data["is_update"] for result in results) == [False, True]
        assert len(live_runtime.services.entity_store(EntityKind.PROPERTY).all()) == 1


class TestThreadDispatcher:
    def test_durable_run_on_worker_thread(self, settings, add_draft):
        services = build_memory_services()
        add_draft(services)
        runtime = build_runtime(
            settings,
            services=services,
            clock=SystemClock(),
            dispatcher=ThreadDispatcher(max_workers=2),
            flag=lambda: True,
        )
        try:
            result = runtime.router.run("publish.property", DRAFT_42, wait=10.0)
        finally:
            runtime.close()

        assert result.success
        assert result.mode == "durable"
        assert result.data["display_name"] == "Lake View Flat"
