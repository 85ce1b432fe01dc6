"""
Checkout intake: turns a cart submission into persisted order rows.

One submission with N line items becomes N ``Order`` rows that share an order
number prefix (``<orderNumber>-1`` ... ``<orderNumber>-N``). The owning
customer is found or created by exact email and its running counters are
incremented once per submission. All of it happens in a single transaction.
"""

from __future__ import annotations

import logging
import re
import secrets
import time
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

from django.conf import settings
from django.core.exceptions import ValidationError as DjangoValidationError
from django.core.validators import validate_email
from django.db import transaction
from django.db.models import F
from django.utils import timezone

from shop.exceptions import InvalidRequest, NotFound
from shop.models import Customer, Order, Product

logger = logging.getLogger(__name__)

SELL_INQUIRY = "sell_inquiry"
PAYMENT_VERIFIED = "verified"
PRODUCT_ID_REGEX = re.compile(r"(\d+)$")


@dataclass(frozen=True)
class ContactInfo:
    name: str
    email: str
    phone: str = ""
    address: str = ""
    city: str = ""
    state: str = ""
    country: str = ""

    @property
    def shipping_address(self) -> str:
        parts = (self.address, self.city, self.state, self.country)
        return ", ".join(part for part in parts if part)


@dataclass(frozen=True)
class LineItem:
    product_id: int
    price_cents: int
    quantity: int

    @property
    def subtotal_cents(self) -> int:
        return self.price_cents * self.quantity


@dataclass(frozen=True)
class CheckoutRequest:
    contact: ContactInfo
    items: Tuple[LineItem, ...]
    shipping_cents: int = 0
    payment_method: str = ""
    payment_reference: str = ""
    payment_status: str = ""

    @property
    def subtotal_cents(self) -> int:
        return sum(item.subtotal_cents for item in self.items)

    @property
    def total_cents(self) -> int:
        return self.subtotal_cents + self.shipping_cents


@dataclass(frozen=True)
class PlacedOrder:
    order_number: str
    customer_id: int
    order_ids: List[int]
    tracking_numbers: List[str]
    status: str
    total_cents: int
    customer_created: bool


@dataclass(frozen=True)
class CheckoutResult:
    order_number: str
    kind: str = "purchase"
    placed: Optional[PlacedOrder] = field(default=None)

    @property
    def is_sell_inquiry(self) -> bool:
        return self.kind == SELL_INQUIRY


def generate_order_number() -> str:
    """Millisecond timestamp plus a random suffix, prefixed per deployment."""

    millis = int(time.time() * 1000)
    return f"{settings.ORDER_NUMBER_PREFIX}{millis}{secrets.token_hex(2).upper()}"


def tracking_number_for(order_number: str, position: int) -> str:
    return f"{order_number}-{position}"


def apportion_shipping(shipping_cents: int, line_count: int) -> List[int]:
    """
    Split ``shipping_cents`` evenly across ``line_count`` lines.

    Every line gets the floor share; the last line also takes the remainder so
    the shares always add back up to the full shipping charge.
    """

    if line_count <= 0:
        raise ValueError("line_count must be a positive integer.")
    base, remainder = divmod(shipping_cents, line_count)
    shares = [base] * line_count
    shares[-1] += remainder
    return shares


def initial_status(payment_status: str, *, deferred_payment: bool = False) -> str:
    if payment_status == PAYMENT_VERIFIED:
        return Order.Status.CONFIRMED.value
    if deferred_payment:
        return Order.Status.PENDING_PAYMENT.value
    return Order.Status.PENDING.value


def is_sell_inquiry(cart_items: Sequence[Any]) -> bool:
    return any(isinstance(item, Mapping) and item.get("type") == SELL_INQUIRY for item in cart_items)


def _as_int(value: Any, field_name: str, *, minimum: int = 0) -> int:
    if isinstance(value, bool):
        raise InvalidRequest(f"`{field_name}` must be an integer.")
    if isinstance(value, int):
        result = value
    elif isinstance(value, float) and value.is_integer():
        result = int(value)
    elif isinstance(value, str) and value.strip().isdecimal():
        result = int(value.strip())
    else:
        raise InvalidRequest(f"`{field_name}` must be an integer.")
    if result < minimum:
        raise InvalidRequest(f"`{field_name}` must be at least {minimum}.")
    return result


def _as_text(value: Any) -> str:
    if value is None:
        return ""
    return str(value).strip()


def _parse_product_id(value: Any, field_name: str) -> int:
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    if isinstance(value, str):
        # Storefront carts tag ids by section, e.g. "gen_3".
        match = PRODUCT_ID_REGEX.search(value.strip())
        if match:
            return int(match.group(1))
    raise InvalidRequest(f"`{field_name}` must reference a product id.")


def parse_contact(payload: Mapping[str, Any]) -> ContactInfo:
    raw = payload.get("contact")
    if raw is None:
        # Older storefront builds post the checkout form as ``formData``.
        raw = payload.get("formData")
    if not isinstance(raw, Mapping):
        raise InvalidRequest("`contact` is required.")

    name = _as_text(raw.get("name") or raw.get("fullName"))
    if not name:
        raise InvalidRequest("`contact.name` is required.")
    email = _as_text(raw.get("email"))
    if not email:
        raise InvalidRequest("`contact.email` is required.")
    try:
        validate_email(email)
    except DjangoValidationError as exc:
        raise InvalidRequest("`contact.email` is not a valid email address.") from exc

    return ContactInfo(
        name=name,
        email=email,
        phone=_as_text(raw.get("phone")),
        address=_as_text(raw.get("address") or raw.get("street")),
        city=_as_text(raw.get("city")),
        state=_as_text(raw.get("state")),
        country=_as_text(raw.get("country")),
    )


def parse_line_items(cart_items: Any) -> Tuple[LineItem, ...]:
    if not isinstance(cart_items, list) or not cart_items:
        raise InvalidRequest("`cartItems` must be a non-empty list.")

    items = []
    for index, raw in enumerate(cart_items):
        label = f"cartItems[{index}]"
        if not isinstance(raw, Mapping):
            raise InvalidRequest(f"`{label}` must be an object.")
        if "id" not in raw:
            raise InvalidRequest(f"`{label}.id` is required.")
        if "price" not in raw:
            raise InvalidRequest(f"`{label}.price` is required.")
        items.append(
            LineItem(
                product_id=_parse_product_id(raw["id"], f"{label}.id"),
                price_cents=_as_int(raw["price"], f"{label}.price"),
                quantity=_as_int(raw.get("quantity", 1), f"{label}.quantity", minimum=1),
            )
        )
    return tuple(items)


def parse_checkout(payload: Mapping[str, Any]) -> CheckoutRequest:
    """
    Validate a purchase payload and build a :class:`CheckoutRequest`.

    ``subtotal`` and ``total`` are optional, but when the client sends them
    they must agree with the line items and shipping charge.
    """

    contact = parse_contact(payload)
    items = parse_line_items(payload.get("cartItems"))
    shipping = _as_int(payload.get("shipping") or 0, "shipping")

    request = CheckoutRequest(
        contact=contact,
        items=items,
        shipping_cents=shipping,
        payment_method=_as_text(payload.get("paymentMethod")),
        payment_reference=_as_text(payload.get("paymentReference")),
        payment_status=_as_text(payload.get("paymentStatus")),
    )

    if payload.get("subtotal") is not None:
        subtotal = _as_int(payload["subtotal"], "subtotal")
        if subtotal != request.subtotal_cents:
            raise InvalidRequest(
                f"`subtotal` {subtotal} does not match the cart ({request.subtotal_cents})."
            )
    if payload.get("total") is not None:
        total = _as_int(payload["total"], "total")
        if total != request.total_cents:
            raise InvalidRequest(
                f"`total` {total} does not match cart plus shipping ({request.total_cents})."
            )
    return request


def _load_products(items: Sequence[LineItem]) -> Dict[int, Product]:
    wanted = {item.product_id for item in items}
    products = Product.objects.filter(pk__in=wanted, is_active=True).in_bulk()
    missing = sorted(wanted - set(products))
    if missing:
        raise NotFound(f"Product not found: {', '.join(str(pk) for pk in missing)}.")
    return products


def _create_line_order(
    *,
    customer: Customer,
    contact: ContactInfo,
    product: Product,
    item: LineItem,
    shipping_share: int,
    status: str,
    tracking_number: str,
    payment_reference: str,
    created_at,
) -> Order:
    return Order.objects.create(
        customer=customer,
        customer_name=contact.name,
        customer_email=contact.email,
        customer_phone=contact.phone,
        product=product,
        quantity=item.quantity,
        total_amount_cents=item.subtotal_cents + shipping_share,
        status=status,
        tracking_number=tracking_number,
        shipping_address=contact.shipping_address,
        payment_reference=payment_reference,
        created_at=created_at,
        updated_at=created_at,
    )


def place_order(
    request: CheckoutRequest,
    *,
    deferred_payment: bool = False,
    order_number: Optional[str] = None,
) -> PlacedOrder:
    """
    Persist a purchase: find or create the customer, write one order row per
    line item and bump the customer's counters, all in one transaction.

    Any failure rolls the whole submission back, including a customer row
    created for it.
    """

    order_number = order_number or generate_order_number()
    status = initial_status(request.payment_status, deferred_payment=deferred_payment)
    shares = apportion_shipping(request.shipping_cents, len(request.items))
    contact = request.contact

    with transaction.atomic():
        products = _load_products(request.items)
        # get_or_create re-reads on an IntegrityError, so two concurrent first
        # checkouts from one email end up sharing a single customer row.
        customer, created = Customer.objects.get_or_create(
            email=contact.email,
            defaults={
                "name": contact.name,
                "phone": contact.phone,
                "address": contact.address,
                "city": contact.city,
                "state": contact.state,
                "country": contact.country or "Nigeria",
            },
        )

        now = timezone.now()
        orders = []
        for position, (item, share) in enumerate(zip(request.items, shares), start=1):
            orders.append(
                _create_line_order(
                    customer=customer,
                    contact=contact,
                    product=products[item.product_id],
                    item=item,
                    shipping_share=share,
                    status=status,
                    tracking_number=tracking_number_for(order_number, position),
                    payment_reference=request.payment_reference,
                    created_at=now,
                )
            )

        persisted_total = sum(order.total_amount_cents for order in orders)
        Customer.objects.filter(pk=customer.pk).update(
            total_orders=F("total_orders") + len(orders),
            total_spent_cents=F("total_spent_cents") + persisted_total,
            updated_at=now,
        )

    logger.info(
        "Placed order %s: %d line item(s), %d total, customer %s%s",
        order_number,
        len(orders),
        persisted_total,
        customer.pk,
        " (new)" if created else "",
    )
    return PlacedOrder(
        order_number=order_number,
        customer_id=customer.pk,
        order_ids=[order.pk for order in orders],
        tracking_numbers=[order.tracking_number for order in orders],
        status=status,
        total_cents=persisted_total,
        customer_created=created,
    )


def submit_checkout(payload: Mapping[str, Any], *, deferred_payment: bool = False) -> CheckoutResult:
    """
    Entry point for both checkout endpoints.

    Sell inquiries are acknowledged with a fresh order number and write
    nothing; purchases go through :func:`parse_checkout` and
    :func:`place_order`.
    """

    cart_items = payload.get("cartItems")
    if not isinstance(cart_items, list) or not cart_items:
        raise InvalidRequest("`cartItems` must be a non-empty list.")

    if is_sell_inquiry(cart_items):
        order_number = generate_order_number()
        logger.info("Received sell inquiry %s (%d item(s))", order_number, len(cart_items))
        return CheckoutResult(order_number=order_number, kind=SELL_INQUIRY)

    request = parse_checkout(payload)
    placed = place_order(request, deferred_payment=deferred_payment)
    return CheckoutResult(order_number=placed.order_number, placed=placed)
