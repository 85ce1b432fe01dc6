import logging

from django.db import transaction
from django.db.models import Count, Q, Sum
from django.utils import timezone

from shop.models import Customer
from shop.services.analytics import COUNTED_STATUSES

logger = logging.getLogger(__name__)


def recompute_customer_totals() -> int:
    """
    Rebuild every customer's running counters from their non-cancelled orders.

    Returns the number of customers whose stored counters changed.
    """

    counted = Q(orders__status__in=COUNTED_STATUSES)
    changed = 0
    with transaction.atomic():
        customers = Customer.objects.annotate(
            actual_orders=Count("orders", filter=counted),
            actual_spent=Sum("orders__total_amount_cents", filter=counted, default=0),
        )
        for customer in customers:
            if (
                customer.total_orders == customer.actual_orders
                and customer.total_spent_cents == customer.actual_spent
            ):
                continue
            Customer.objects.filter(pk=customer.pk).update(
                total_orders=customer.actual_orders,
                total_spent_cents=customer.actual_spent,
                updated_at=timezone.now(),
            )
            changed += 1

    logger.info("Reconciled customer counters: %d changed", changed)
    return changed
