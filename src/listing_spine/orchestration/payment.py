"""Payment Saga: reserve, charge, confirm, with one compensating action.

Manifesto:
    validate → reserve inventory → charge → order PAID → trigger fulfillment → notify

The only compensation is the inventory release. It runs when the
reservation succeeded and any later step of the reserve/charge/confirm
block fails, and it runs at most once per saga. A failed release is logged
and recorded on the ``SagaLedgerEntry``; the caller still sees the error
that triggered the compensation.

After the charge succeeded, a failed fulfillment trigger is a terminal,
non-fatal state: it is logged, nothing is compensated and the payment still
reports success.

In durable mode ``reserved`` is rebuilt on every replay from the journaled
outcome of ``payment.reserve_inventory``, and the reservation itself is
idempotent per order id, so a crash between the two cannot leak a
reservation.

Tags:
    listing-spine, orchestration, payment, saga, compensation
"""

from __future__ import annotations

from typing import Any

from listing_spine.core.result import Err
from listing_spine.domain.models import OrderStatus, SagaLedgerEntry
from listing_spine.execution.activity import ActivityFailed
from listing_spine.execution.context import WorkflowContext
from listing_spine.execution.registry import workflow
from listing_spine.execution.results import WorkflowResult

PAYMENT_WORKFLOW = "payment.process"


def _compensate(ctx: WorkflowContext, saga: SagaLedgerEntry) -> None:
    if not saga.reserved or saga.released or saga.release_failed:
        return
    ctx.logger.info("saga.compensate", order_id=saga.order_id, action="release_inventory")
    released = ctx.try_activity("payment.release_inventory", {"order_id": saga.order_id})
    if isinstance(released, Err):
        saga.release_failed = True
        ctx.logger.error("saga.compensation_failed", order_id=saga.order_id, error=released.error.message)
    else:
        saga.released = True


def _record_failure(ctx: WorkflowContext, saga: SagaLedgerEntry, input: dict[str, Any], reason: str) -> None:
    saga.order_status = OrderStatus.PAYMENT_FAILED
    updated = ctx.try_activity("payment.update_order", {
        "order_id": saga.order_id,
        "status": OrderStatus.PAYMENT_FAILED.value,
        "error": reason,
    })
    if isinstance(updated, Err):
        ctx.logger.error("saga.order_update_failed", order_id=saga.order_id, error=updated.error.message)
    notified = ctx.try_activity("payment.notify", {
        "order_id": saga.order_id,
        "user_id": input.get("user_id"),
        "success": False,
        "reason": reason,
    })
    if isinstance(notified, Err):
        ctx.logger.warning("saga.notify_failed", order_id=saga.order_id, error=notified.error.message)


@workflow(PAYMENT_WORKFLOW)
def process_payment(ctx: WorkflowContext, input: dict[str, Any]) -> WorkflowResult:
    """Charge an order, releasing its inventory reservation if anything after it fails."""
    missing = [f"{key} is required" for key in ("order_id", "user_id") if not input.get(key)]
    if missing:
        return WorkflowResult.invalid("Payment validation failed", missing)

    saga = SagaLedgerEntry(order_id=str(input["order_id"]))
    charge_request = {
        "order_id": saga.order_id,
        "amount": input.get("amount"),
        "currency": input.get("currency"),
        "payment_method": input.get("payment_method"),
    }

    validated = ctx.try_activity("payment.validate", charge_request)
    if isinstance(validated, Err):
        _record_failure(ctx, saga, input, "; ".join(validated.error.errors) or validated.error.message)
        return WorkflowResult.invalid(validated.error.message, validated.error.errors)

    try:
        ctx.activity("payment.reserve_inventory", {"order_id": saga.order_id})
        saga.reserved = True
        charge = ctx.activity("payment.charge", charge_request)
        ctx.activity("payment.update_order", {
            "order_id": saga.order_id,
            "status": OrderStatus.PAID.value,
            "transaction_id": charge["transaction_id"],
        })
    except ActivityFailed as exc:
        ctx.logger.warning("saga.step_failed", order_id=saga.order_id, activity=exc.activity,
                           reserved=saga.reserved, error=str(exc))
        _compensate(ctx, saga)
        _record_failure(ctx, saga, input, exc.error.message)
        return WorkflowResult.fail(f"Payment failed: {exc.error.message}", {"saga": saga.to_dict()})

    saga.order_status = OrderStatus.PAID
    triggered = ctx.try_activity("payment.trigger_fulfillment", {"order_id": saga.order_id})
    if isinstance(triggered, Err):
        ctx.logger.error("saga.fulfillment_failed", order_id=saga.order_id, error=triggered.error.message)

    notified = ctx.try_activity("payment.notify", {
        "order_id": saga.order_id,
        "user_id": input["user_id"],
        "success": True,
        "amount": input["amount"],
        "currency": input["currency"],
        "transaction_id": charge["transaction_id"],
    })
    if isinstance(notified, Err):
        ctx.logger.warning("saga.notify_failed", order_id=saga.order_id, error=notified.error.message)

    return WorkflowResult.ok("Payment processed successfully", {
        "order_id": saga.order_id,
        "transaction_id": charge["transaction_id"],
        "saga": saga.to_dict(),
    })


__all__ = ["PAYMENT_WORKFLOW", "process_payment"]
