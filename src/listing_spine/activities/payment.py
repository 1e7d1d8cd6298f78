"""Payment saga activities.

``reserve_inventory`` is idempotent per order id, so a replayed or retried
reserve never holds two reservations. ``charge`` turns a gateway
``success: false`` into ``PaymentDeclinedError`` (compensatable, not retried).
"""

from __future__ import annotations

from typing import Any

from listing_spine.collaborators.protocols import Services
from listing_spine.core.errors import PaymentDeclinedError, ValidationError
from listing_spine.domain.models import OrderStatus
from listing_spine.domain.validation import validate_payment
from listing_spine.execution.activity import activity
from listing_spine.execution.policy import AGGRESSIVE, MINIMAL, STANDARD


@activity("payment.validate", policy=MINIMAL)
def validate(services: Services, payload: dict[str, Any]) -> dict[str, Any]:
    errors = validate_payment(payload.get("amount"), payload.get("currency"), payload.get("payment_method"))
    if errors:
        raise ValidationError("Payment validation failed", errors=errors)
    return {"valid": True}


@activity("payment.reserve_inventory", policy=STANDARD)
def reserve_inventory(services: Services, payload: dict[str, Any]) -> dict[str, Any]:
    return {"reservation_id": services.inventory.reserve(str(payload["order_id"]))}


@activity("payment.release_inventory", policy=AGGRESSIVE)
def release_inventory(services: Services, payload: dict[str, Any]) -> None:
    services.inventory.release(str(payload["order_id"]))


@activity("payment.charge", policy=MINIMAL)
def charge(services: Services, payload: dict[str, Any]) -> dict[str, Any]:
    result = services.gateway.charge(
        str(payload["order_id"]),
        float(payload["amount"]),
        payload["currency"],
        payload["payment_method"],
    )
    if not result.success:
        raise PaymentDeclinedError(result.error or "Declined by gateway")
    return result.to_dict()


@activity("payment.update_order", policy=STANDARD)
def update_order(services: Services, payload: dict[str, Any]) -> None:
    services.orders.update_status(
        str(payload["order_id"]),
        OrderStatus(payload["status"]),
        transaction_id=payload.get("transaction_id"),
        error=payload.get("error"),
    )


@activity("payment.trigger_fulfillment", policy=STANDARD)
def trigger_fulfillment(services: Services, payload: dict[str, Any]) -> None:
    services.fulfillment.trigger(str(payload["order_id"]))


@activity("payment.notify", policy=MINIMAL)
def notify(services: Services, payload: dict[str, Any]) -> None:
    order_id = payload["order_id"]
    if payload.get("success"):
        subject = "Payment Successful - Order Confirmed"
        body = (f"Your payment of {payload['amount']} {payload['currency']} has been processed successfully. "
                f"Order ID: {order_id}. Transaction ID: {payload.get('transaction_id')}.")
    else:
        subject = "Payment Failed - Order Not Processed"
        body = f"Your payment could not be processed. Order ID: {order_id}. Reason: {payload.get('reason')}."
    services.notifier.notify_user(str(payload["user_id"]), subject, body)
