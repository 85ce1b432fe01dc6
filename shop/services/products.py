import logging
from typing import Any, Dict, List, Mapping, Optional

from django.db import transaction

from shop.exceptions import InvalidRequest, NotFound
from shop.models import Product

logger = logging.getLogger(__name__)


def _clean_string_list(value: Any, field_name: str) -> List[str]:
    if not isinstance(value, list) or not all(isinstance(item, str) for item in value):
        raise InvalidRequest(f"`{field_name}` must be a list of strings.")
    return [item.strip() for item in value if item.strip()]


def _clean_count(value: Any, field_name: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or value < 0:
        raise InvalidRequest(f"`{field_name}` must be a non-negative integer.")
    return value


def clean_product_payload(payload: Mapping[str, Any], *, partial: bool = False) -> Dict[str, Any]:
    """Validate the editable product fields present in ``payload``."""

    cleaned: Dict[str, Any] = {}
    if not partial:
        for required in ("name", "price_cents", "category"):
            if payload.get(required) in (None, ""):
                raise InvalidRequest(f"`{required}` is required.")

    if "name" in payload:
        name = str(payload["name"] or "").strip()
        if not name:
            raise InvalidRequest("`name` must not be blank.")
        cleaned["name"] = name
    if "description" in payload:
        cleaned["description"] = str(payload["description"] or "")
    if "price_cents" in payload:
        cleaned["price_cents"] = _clean_count(payload["price_cents"], "price_cents")
    if "category" in payload:
        if payload["category"] not in Product.Category.values:
            raise InvalidRequest(f"Invalid category: {payload['category']!r}.")
        cleaned["category"] = payload["category"]
    if "specs" in payload:
        cleaned["specs"] = _clean_string_list(payload["specs"], "specs")
    if "images" in payload:
        cleaned["images"] = _clean_string_list(payload["images"], "images")
    if "stock_quantity" in payload:
        cleaned["stock_quantity"] = _clean_count(payload["stock_quantity"], "stock_quantity")
    if "is_active" in payload:
        if not isinstance(payload["is_active"], bool):
            raise InvalidRequest("`is_active` must be a boolean.")
        cleaned["is_active"] = payload["is_active"]
    return cleaned


def list_products(*, category: Optional[str] = None, active_only: bool = True) -> List[Product]:
    queryset = Product.objects.all()
    if active_only:
        queryset = queryset.filter(is_active=True)
    if category:
        if category not in Product.Category.values:
            raise InvalidRequest(f"Invalid category: {category!r}.")
        queryset = queryset.filter(category=category)
    return list(queryset)


def active_minerals() -> List[Product]:
    return list_products(category=Product.Category.MINERAL.value)


def get_product(product_id: int) -> Product:
    try:
        return Product.objects.get(pk=product_id)
    except Product.DoesNotExist as exc:
        raise NotFound("Product not found.") from exc


def create_product(payload: Mapping[str, Any]) -> Product:
    product = Product.objects.create(**clean_product_payload(payload))
    logger.info("Created product %s (%s)", product.pk, product.category)
    return product


def update_product(product_id: int, payload: Mapping[str, Any]) -> Product:
    cleaned = clean_product_payload(payload, partial=True)
    with transaction.atomic():
        try:
            product = Product.objects.select_for_update().get(pk=product_id)
        except Product.DoesNotExist as exc:
            raise NotFound("Product not found.") from exc
        for field_name, value in cleaned.items():
            setattr(product, field_name, value)
        product.save()
    logger.info("Updated product %s", product.pk)
    return product


def deactivate_product(product_id: int) -> Product:
    """Remove a product from the catalog; its row stays for order history."""

    product = get_product(product_id)
    if product.is_active:
        product.is_active = False
        product.save(update_fields=["is_active", "updated_at"])
    logger.info("Deactivated product %s", product.pk)
    return product
