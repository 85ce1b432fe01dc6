"""
Sales analytics, derived from the order and customer tables on every call.

Nothing here is cached. Cancelled orders never count toward any figure, and
an empty sum is reported as zero. Rankings order by a single key; ties keep
whatever order the database returns them in.
"""

from __future__ import annotations

from datetime import timedelta
from typing import Any, Dict, List

from django.db.models import Avg, Count, Q, Sum
from django.db.models.functions import TruncDate
from django.utils import timezone

from shop.exceptions import InvalidRequest
from shop.models import Customer, Order, Product
from shop.services.serializers import serialize_rows, serialize_value

CANCELLED = Order.Status.CANCELLED.value
COUNTED_STATUSES = [status for status in Order.Status.values if status != CANCELLED]
DEFAULT_TREND_DAYS = 30
MAX_TREND_DAYS = 365
DEFAULT_RANKING_LIMIT = 10


def _active_orders():
    return Order.objects.exclude(status=CANCELLED)


def sales_summary() -> Dict[str, Any]:
    stats = _active_orders().aggregate(
        total_orders=Count("id"),
        total_revenue=Sum("total_amount_cents", default=0),
        avg_order_value=Avg("total_amount_cents"),
    )
    average = stats["avg_order_value"]
    return {
        "total_orders": stats["total_orders"],
        "total_revenue": serialize_value(stats["total_revenue"]),
        "avg_order_value": int(round(average)) if average is not None else 0,
        "total_products": Product.objects.filter(is_active=True).count(),
        "total_customers": Customer.objects.count(),
        "product_sales": product_sales(),
    }


def product_sales() -> List[Dict[str, Any]]:
    counted = Q(orders__status__in=COUNTED_STATUSES)
    rows = (
        Product.objects.values("id", "name")
        .annotate(
            orders_count=Count("orders", filter=counted),
            revenue=Sum("orders__total_amount_cents", filter=counted, default=0),
        )
        .order_by("-revenue")
    )
    return serialize_rows(rows)


def parse_period(value: Any) -> int:
    if value in (None, ""):
        return DEFAULT_TREND_DAYS
    try:
        period = int(value)
    except (TypeError, ValueError) as exc:
        raise InvalidRequest("`period` must be an integer.") from exc
    if not 1 <= period <= MAX_TREND_DAYS:
        raise InvalidRequest(f"`period` must be between 1 and {MAX_TREND_DAYS}.")
    return period


def sales_trends(period_days: int = DEFAULT_TREND_DAYS) -> List[Dict[str, Any]]:
    """Per calendar day order count and revenue over the trailing window."""

    since = timezone.now() - timedelta(days=period_days)
    rows = (
        _active_orders()
        .filter(created_at__gte=since)
        .annotate(date=TruncDate("created_at"))
        .values("date")
        .annotate(
            orders=Count("id"),
            revenue=Sum("total_amount_cents", default=0),
        )
        .order_by("-date")
    )
    return serialize_rows(rows)


def geographic_sales(limit: int = DEFAULT_RANKING_LIMIT) -> List[Dict[str, Any]]:
    counted = Q(orders__status__in=COUNTED_STATUSES)
    rows = (
        Customer.objects.exclude(state__isnull=True)
        .exclude(state="")
        .values("state")
        .annotate(
            order_count=Count("orders", filter=counted),
            revenue=Sum("orders__total_amount_cents", filter=counted, default=0),
        )
        .filter(order_count__gt=0)
        .order_by("-revenue")[:limit]
    )
    return [
        {
            "state": row["state"],
            "orders": row["order_count"],
            "revenue": serialize_value(row["revenue"]),
        }
        for row in rows
    ]


def top_customers(limit: int = DEFAULT_RANKING_LIMIT) -> List[Dict[str, Any]]:
    counted = Q(orders__status__in=COUNTED_STATUSES)
    rows = (
        Customer.objects.values("id", "name", "email")
        .annotate(
            order_count=Count("orders", filter=counted),
            spent_cents=Sum("orders__total_amount_cents", filter=counted, default=0),
        )
        .filter(order_count__gt=0)
        .order_by("-spent_cents")[:limit]
    )
    return [
        {
            "id": row["id"],
            "name": row["name"],
            "email": row["email"],
            "total_orders": row["order_count"],
            "total_spent_cents": serialize_value(row["spent_cents"]),
        }
        for row in rows
    ]
