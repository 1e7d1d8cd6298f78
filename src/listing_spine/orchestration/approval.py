"""Approval Workflow: human review with a deadline and an automatic fallback.

Manifesto:
    validate → quality checks → PENDING_REVIEW → notify reviewers
    → wait for ``approve`` / ``reject`` **or** the review deadline

A signal applies the reviewer's decision verbatim. If the deadline passes
first, the listing is approved when its automated quality score reaches the
threshold and rejected otherwise, with a comment saying so. Reviewer
inaction is a designed-for outcome, never an error.

The wait is a single primitive that sees both events. Signals are stored
before the deadline is evaluated, so a signal that arrives at the same
instant as the deadline wins. A signal received after the deadline never
overrides the automatic decision, however late the run is resumed.
``ApprovalCase.decide`` refuses a second decision, so exactly one is ever
applied.

Tags:
    listing-spine, orchestration, approval, signal, timer
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from listing_spine.core.result import Err
from listing_spine.domain.models import ApprovalCase, Decision, ListingStatus
from listing_spine.execution.activity import ActivityFailed
from listing_spine.execution.context import WorkflowContext
from listing_spine.execution.registry import workflow
from listing_spine.execution.results import WorkflowResult
from listing_spine.execution.signals import Signal

APPROVAL_WORKFLOW = "listing.approval"
REVIEW_DEADLINE_HOURS = 48.0
AUTO_APPROVAL_THRESHOLD = 0.8
DECISION_SIGNALS = ("approve", "reject")


def auto_decision(score: float, threshold: float) -> tuple[Decision, str]:
    """Decision and comment applied when the deadline passes without a signal."""
    if score >= threshold:
        return Decision.APPROVED, f"Auto-approved after timeout (quality score: {score})"
    return Decision.REJECTED, f"Auto-rejected after timeout (requires manual review, quality score: {score})"


def signal_decision(signal: Signal) -> tuple[Decision, str]:
    if signal.name == "approve":
        return Decision.APPROVED, signal.payload.get("comment") or "Approved"
    return Decision.REJECTED, signal.payload.get("comment") or "Rejected"


def _best_effort(ctx: WorkflowContext, name: str, payload: dict[str, Any], event: str) -> None:
    outcome = ctx.try_activity(name, payload)
    if isinstance(outcome, Err):
        ctx.logger.warning(event, listing_id=payload.get("listing_id"), error=outcome.error.message)


def _apply(ctx: WorkflowContext, case: ApprovalCase, user_id: str, listing: dict[str, Any]) -> None:
    ref = {"listing_id": case.listing_id, "comment": case.decision_comment}
    if case.decision is Decision.APPROVED:
        ctx.activity("listing.approve", ref)
        _best_effort(ctx, "listing.publish_to_search",
                     {"listing_id": case.listing_id, "listing": listing}, "approval.search_publish_failed")
        _best_effort(ctx, "listing.notify_submitter", {
            "listing_id": case.listing_id,
            "user_id": user_id,
            "subject": "Listing Approved - Now Live!",
            "body": f"Your listing {case.listing_id} has been approved and is now live. {case.decision_comment}",
        }, "approval.notify_failed")
    else:
        ctx.activity("listing.reject", ref)
        _best_effort(ctx, "listing.remove_from_search",
                     {"listing_id": case.listing_id}, "approval.search_remove_failed")
        _best_effort(ctx, "listing.notify_submitter", {
            "listing_id": case.listing_id,
            "user_id": user_id,
            "subject": "Listing Rejected",
            "body": f"Your listing {case.listing_id} was rejected. Reason: {case.decision_comment}",
        }, "approval.notify_failed")


def _review_settings(input: dict[str, Any]) -> tuple[float, float, list[str]]:
    """Deadline hours and auto-approval threshold from the run input, with range errors."""
    errors: list[str] = []
    try:
        hours = float(input.get("review_deadline_hours", REVIEW_DEADLINE_HOURS))
    except (TypeError, ValueError):
        hours = 0.0
    if not hours > 0:
        errors.append("review_deadline_hours must be a positive number")
    try:
        threshold = float(input.get("auto_approval_threshold", AUTO_APPROVAL_THRESHOLD))
    except (TypeError, ValueError):
        threshold = -1.0
    if not 0.0 <= threshold <= 1.0:
        errors.append("auto_approval_threshold must be between 0 and 1")
    return hours, threshold, errors


@workflow(APPROVAL_WORKFLOW)
def review_listing(ctx: WorkflowContext, input: dict[str, Any]) -> WorkflowResult:
    """Route a listing through automated checks and human review."""
    missing = [f"{key} is required" for key in ("listing_id", "user_id") if not input.get(key)]
    if missing:
        return WorkflowResult.invalid("Listing validation failed", missing)

    listing_id, user_id = str(input["listing_id"]), str(input["user_id"])
    listing = dict(input.get("listing") or {})
    hours, threshold, errors = _review_settings(input)
    if errors:
        return WorkflowResult.invalid("Listing validation failed", errors)
    log = ctx.logger.bind(listing_id=listing_id)

    validated = ctx.try_activity("listing.validate", {"listing_id": listing_id, "listing": listing})
    if isinstance(validated, Err):
        if validated.error.kind != "ValidationError":
            return WorkflowResult.fail(f"Listing review failed: {validated.error.message}")
        errors = validated.error.errors
        _best_effort(ctx, "listing.update_status", {
            "listing_id": listing_id,
            "status": ListingStatus.VALIDATION_FAILED.value,
            "comment": "; ".join(errors) or validated.error.message,
        }, "approval.status_update_failed")
        _best_effort(ctx, "listing.notify_submitter", {
            "listing_id": listing_id,
            "user_id": user_id,
            "subject": "Listing Validation Failed",
            "body": f"Your listing has validation errors: {', '.join(errors)}",
        }, "approval.notify_failed")
        return WorkflowResult.invalid(validated.error.message, errors)

    try:
        report = ctx.activity("listing.quality_checks", {"listing_id": listing_id, "listing": listing})
        score = float(report["score"])
        ctx.activity("listing.update_status", {
            "listing_id": listing_id,
            "status": ListingStatus.PENDING_REVIEW.value,
            "score": score,
        })
        _best_effort(ctx, "listing.notify_reviewers",
                     {"listing_id": listing_id, "user_id": user_id, "score": score},
                     "approval.notify_reviewers_failed")

        deadline: datetime = ctx.start_timer(hours * 3600)
        case = ApprovalCase(listing_id=listing_id, automated_quality_score=score, review_deadline=deadline)
        log.info("approval.awaiting_review", score=score, deadline=deadline.isoformat())

        signal = ctx.wait_for_signal(DECISION_SIGNALS, until=deadline)
        if signal is not None:
            decision, comment = signal_decision(signal)
            case.decide(decision, comment, decided_by=signal.payload.get("reviewer"))
        else:
            decision, comment = auto_decision(score, threshold)
            case.decide(decision, comment, automatic=True)
        log.info("approval.decided", decision=case.decision.value, automatic=case.automatic)

        _apply(ctx, case, user_id, listing)
    except ActivityFailed as exc:
        log.error("approval.failed", activity=exc.activity, error=str(exc))
        return WorkflowResult.fail(f"Listing review failed: {exc.error.message}")

    return WorkflowResult.ok(f"Listing {case.decision.value.lower()}", {
        "listing_id": listing_id,
        "decision": case.decision.value,
        "comment": case.decision_comment,
        "decided_by": case.decided_by,
        "quality_score": score,
        "automatic": case.automatic,
        "review_deadline": deadline.isoformat(),
    })


__all__ = [
    "APPROVAL_WORKFLOW",
    "REVIEW_DEADLINE_HOURS",
    "AUTO_APPROVAL_THRESHOLD",
    "DECISION_SIGNALS",
    "auto_decision",
    "signal_decision",
    "review_listing",
]
