from datetime import date, datetime
from decimal import Decimal
from typing import Any, Dict, Iterable, List, Sequence

from shop.catalog import derive_specs, specs_as_dict
from shop.models import Customer, Order, Product, Return


def serialize_value(value: Any) -> Any:
    if isinstance(value, Decimal):
        return int(value) if value == value.to_integral_value() else float(value)
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    return value


def serialize_rows(rows: Iterable[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """Normalize ``values()`` rows (or plain dicts) into JSON-safe dicts."""

    return [{key: serialize_value(val) for key, val in row.items()} for row in rows]


def _model_fields(instance, fields: Sequence[str]) -> Dict[str, Any]:
    return {field: serialize_value(getattr(instance, field)) for field in fields}


PRODUCT_FIELDS = (
    "id",
    "name",
    "description",
    "price_cents",
    "category",
    "specs",
    "images",
    "stock_quantity",
    "is_active",
    "created_at",
    "updated_at",
)

CUSTOMER_FIELDS = (
    "id",
    "name",
    "email",
    "phone",
    "address",
    "city",
    "state",
    "country",
    "total_orders",
    "total_spent_cents",
    "created_at",
    "updated_at",
)

ORDER_FIELDS = (
    "id",
    "customer_id",
    "customer_name",
    "customer_email",
    "customer_phone",
    "product_id",
    "quantity",
    "total_amount_cents",
    "status",
    "tracking_number",
    "shipping_address",
    "payment_reference",
    "created_at",
    "updated_at",
)

RETURN_FIELDS = (
    "id",
    "order_id",
    "reason",
    "status",
    "refund_amount_cents",
    "notes",
    "created_at",
    "updated_at",
)


def serialize_product(product: Product) -> Dict[str, Any]:
    data = _model_fields(product, PRODUCT_FIELDS)
    data["specs"] = list(product.specs or [])
    data["images"] = list(product.images or [])
    data["attributes"] = specs_as_dict(derive_specs(product.category, data["specs"]))
    return data


def serialize_customer(customer: Customer) -> Dict[str, Any]:
    return _model_fields(customer, CUSTOMER_FIELDS)


def serialize_order(order: Order) -> Dict[str, Any]:
    data = _model_fields(order, ORDER_FIELDS)
    data["product_name"] = order.product.name if order.product_id else None
    return data


def serialize_return(item: Return) -> Dict[str, Any]:
    data = _model_fields(item, RETURN_FIELDS)
    order = item.order
    data["customer_name"] = order.customer_name
    data["customer_email"] = order.customer_email
    data["product_name"] = order.product.name if order.product_id else None
    return data
