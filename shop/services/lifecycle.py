"""
Order status transitions, return requests and order housekeeping.

Statuses move forward along::

    pending / pending_payment -> confirmed -> processing -> shipped -> delivered

and any non-terminal order may be cancelled. ``delivered`` and ``cancelled``
are terminal. A transition only touches ``status``, ``tracking_number`` and
``updated_at``; amounts and customer counters are never revisited, so a
cancellation does not reduce the customer's running totals.
"""

from __future__ import annotations

import logging
from datetime import timedelta
from typing import Any, Iterable, List, Optional

from django.conf import settings
from django.db import transaction
from django.db.models import Q
from django.utils import timezone

from shop.exceptions import InvalidRequest, InvalidTransition, NotFound, PaymentVerificationFailed
from shop.models import Order, Return

logger = logging.getLogger(__name__)

Status = Order.Status

STATUS_RANK = {
    Status.PENDING.value: 0,
    Status.PENDING_PAYMENT.value: 0,
    Status.CONFIRMED.value: 1,
    Status.PROCESSING.value: 2,
    Status.SHIPPED.value: 3,
    Status.DELIVERED.value: 4,
}
TERMINAL_STATUSES = frozenset({Status.DELIVERED.value, Status.CANCELLED.value})
VALID_STATUSES = frozenset(Status.values)
AWAITING_PAYMENT = frozenset({Status.PENDING.value, Status.PENDING_PAYMENT.value})
TRACKING_NUMBER_MAX_LENGTH = Order._meta.get_field("tracking_number").max_length


def validate_status(status: Any) -> str:
    if not status:
        raise InvalidRequest("Status is required.")
    if not isinstance(status, str) or status not in VALID_STATUSES:
        raise InvalidRequest(f"Invalid status: {status!r}.")
    return status


def can_transition(current: str, new: str) -> bool:
    if current == new:
        return True
    if current in TERMINAL_STATUSES:
        return False
    if new == Status.CANCELLED.value:
        return True
    return STATUS_RANK[new] > STATUS_RANK[current]


def _check_transitions(orders: Iterable[Order], status: str) -> None:
    blocked = [order for order in orders if not can_transition(order.status, status)]
    if blocked:
        details = ", ".join(f"#{order.pk} ({order.status})" for order in blocked)
        raise InvalidTransition(f"Cannot move order(s) {details} to {status}.")


def _clean_tracking_number(value: Any) -> Optional[str]:
    if value is None:
        return None
    if not isinstance(value, str):
        raise InvalidRequest("`tracking_number` must be a string.")
    value = value.strip()
    if len(value) > TRACKING_NUMBER_MAX_LENGTH:
        raise InvalidRequest(
            f"`tracking_number` must be at most {TRACKING_NUMBER_MAX_LENGTH} characters."
        )
    return value or None


def _check_tracking_number(order: Order, tracking_number: str, status: str) -> None:
    """
    Keep submission tracking numbers intact for the payment callback.

    A line still waiting on payment keeps its ``<orderNumber>-<n>`` value. No
    line may take a value another order already holds, nor an order-number
    style value that falls under another submission's ``<orderNumber>-``
    prefix.
    """

    if tracking_number == order.tracking_number:
        return
    if status in AWAITING_PAYMENT:
        raise InvalidRequest("Tracking number cannot change while the order awaits payment.")

    collides = Q(tracking_number=tracking_number)
    if tracking_number.startswith(settings.ORDER_NUMBER_PREFIX):
        for index, char in enumerate(tracking_number):
            if char == "-" and index:
                collides |= Q(tracking_number__startswith=tracking_number[: index + 1])
    if Order.objects.exclude(pk=order.pk).filter(collides).exists():
        raise InvalidRequest(f"Tracking number {tracking_number!r} belongs to another order.")


def update_order_status(
    order_id: int, status: Any, tracking_number: Any = None
) -> Order:
    status = validate_status(status)
    tracking_number = _clean_tracking_number(tracking_number)

    with transaction.atomic():
        try:
            order = Order.objects.select_for_update().get(pk=order_id)
        except Order.DoesNotExist as exc:
            raise NotFound("Order not found.") from exc
        _check_transitions([order], status)
        if tracking_number:
            _check_tracking_number(order, tracking_number, status)

        order.status = status
        order.updated_at = timezone.now()
        update_fields = ["status", "updated_at"]
        if tracking_number:
            order.tracking_number = tracking_number
            update_fields.append("tracking_number")
        order.save(update_fields=update_fields)

    logger.info("Order %s moved to %s", order.pk, status)
    return order


def bulk_update_status(order_ids: Any, status: Any) -> int:
    """Move every listed order to ``status``; all or none are updated."""

    if not isinstance(order_ids, list) or not order_ids:
        raise InvalidRequest("Order IDs are required.")
    ids = set()
    for value in order_ids:
        if isinstance(value, bool) or not isinstance(value, (int, str)) or not str(value).isdecimal():
            raise InvalidRequest(f"Invalid order id: {value!r}.")
        ids.add(int(value))
    status = validate_status(status)

    with transaction.atomic():
        orders = list(Order.objects.select_for_update().filter(pk__in=ids))
        missing = sorted(ids - {order.pk for order in orders})
        if missing:
            raise NotFound(f"Order(s) not found: {', '.join(str(pk) for pk in missing)}.")
        _check_transitions(orders, status)
        updated = Order.objects.filter(pk__in=ids).update(status=status, updated_at=timezone.now())

    logger.info("Bulk updated %d order(s) to %s", updated, status)
    return updated


def _check_payment(orders: List[Order], payment_reference: str, paid_amount_cents: Optional[int]) -> None:
    if paid_amount_cents is not None:
        due = sum(order.total_amount_cents for order in orders)
        if paid_amount_cents < due:
            raise PaymentVerificationFailed(
                f"Payment of {paid_amount_cents} does not cover the order total of {due}."
            )
    if payment_reference:
        reused = (
            Order.objects.filter(payment_reference=payment_reference)
            .exclude(pk__in=[order.pk for order in orders])
            .exists()
        )
        if reused:
            raise PaymentVerificationFailed("Payment reference already used for another order.")


def update_status_by_order_number(
    order_number: Any,
    status: Any,
    payment_reference: str = "",
    paid_amount_cents: Optional[int] = None,
) -> int:
    """
    Move every line item of one checkout submission to ``status``.

    Line items are matched by their ``<orderNumber>-<n>`` tracking numbers.
    When ``payment_reference`` is given it is recorded on every line item and
    must not already belong to another submission. When ``paid_amount_cents``
    is given it must cover the submission's total.
    """

    if not isinstance(order_number, str) or not order_number.strip():
        raise InvalidRequest("`orderNumber` is required.")
    status = validate_status(status)
    prefix = f"{order_number.strip()}-"

    with transaction.atomic():
        orders = list(Order.objects.select_for_update().filter(tracking_number__startswith=prefix))
        if not orders:
            raise NotFound(f"No orders found for {order_number}.")
        _check_transitions(orders, status)
        _check_payment(orders, payment_reference, paid_amount_cents)
        changes = {"status": status, "updated_at": timezone.now()}
        if payment_reference:
            changes["payment_reference"] = payment_reference
        updated = Order.objects.filter(pk__in=[order.pk for order in orders]).update(**changes)

    logger.info("Updated %d order(s) of %s to %s", updated, order_number, status)
    return updated


def cleanup_orders(older_than_days: int = 365, status: Any = Status.DELIVERED.value) -> int:
    """Delete orders in ``status`` created more than ``older_than_days`` ago."""

    status = validate_status(status)
    if older_than_days < 0:
        raise InvalidRequest("`olderThanDays` must not be negative.")
    threshold = timezone.now() - timedelta(days=older_than_days)

    # Orders with return requests are kept as the returns reference them.
    queryset = Order.objects.filter(status=status, created_at__lt=threshold, returns__isnull=True)
    deleted, _ = queryset.delete()
    logger.info("Cleaned up %d order(s) in %s older than %d day(s)", deleted, status, older_than_days)
    return deleted


def create_return(order_id: Any, reason: Any, refund_amount_cents: Any = None) -> Return:
    if order_id in (None, ""):
        raise InvalidRequest("`order_id` is required.")
    reason_text = str(reason or "").strip()
    if not reason_text:
        raise InvalidRequest("`reason` is required.")
    if refund_amount_cents is not None and (
        isinstance(refund_amount_cents, bool)
        or not isinstance(refund_amount_cents, int)
        or refund_amount_cents < 0
    ):
        raise InvalidRequest("`refund_amount_cents` must be a non-negative integer.")

    try:
        order = Order.objects.get(pk=order_id)
    except (Order.DoesNotExist, ValueError, TypeError) as exc:
        raise NotFound("Order not found.") from exc

    item = Return.objects.create(
        order=order,
        reason=reason_text,
        refund_amount_cents=refund_amount_cents,
        status=Return.Status.PENDING,
    )
    logger.info("Return %s opened for order %s", item.pk, order.pk)
    return item


def update_return_status(return_id: int, status: Any) -> Return:
    if not status or status not in Return.Status.values:
        raise InvalidRequest(f"Invalid return status: {status!r}.")
    try:
        item = Return.objects.select_related("order").get(pk=return_id)
    except Return.DoesNotExist as exc:
        raise NotFound("Return not found.") from exc

    item.status = status
    item.save(update_fields=["status", "updated_at"])
    logger.info("Return %s moved to %s", item.pk, status)
    return item


def list_returns() -> List[Return]:
    return list(Return.objects.select_related("order", "order__product"))
