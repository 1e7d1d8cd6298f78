"""Built-in workflows. Importing this package registers them in the default registry.

    publish.property / publish.pg_hostel / publish.project / publish.developer
    payment.process
    listing.approval
"""

from listing_spine.orchestration import approval, payment, publishing
from listing_spine.orchestration.approval import APPROVAL_WORKFLOW
from listing_spine.orchestration.payment import PAYMENT_WORKFLOW
from listing_spine.orchestration.publishing import PUBLISH_WORKFLOWS, PublishingMachine, PublishingState

__all__ = [
    "approval",
    "payment",
    "publishing",
    "APPROVAL_WORKFLOW",
    "PAYMENT_WORKFLOW",
    "PUBLISH_WORKFLOWS",
    "PublishingMachine",
    "PublishingState",
]
