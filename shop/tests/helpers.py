from typing import Any, Dict, List, Optional

from django.utils import timezone

from shop.models import Customer, Order, Product


def make_product(
    name: str = "High Grade Gold Ore",
    *,
    price_cents: int = 5000,
    category: str = Product.Category.MINERAL.value,
    specs: Optional[List[str]] = None,
    images: Optional[List[str]] = None,
    is_active: bool = True,
) -> Product:
    return Product.objects.create(
        name=name,
        description=f"{name} description",
        price_cents=price_cents,
        category=category,
        specs=specs if specs is not None else [],
        images=images if images is not None else [],
        stock_quantity=5,
        is_active=is_active,
    )


def make_customer(email: str = "buyer@example.com", *, name: str = "Ada Buyer", state: str = "Lagos") -> Customer:
    return Customer.objects.create(name=name, email=email, state=state)


def make_order(
    *,
    customer: Optional[Customer] = None,
    product: Optional[Product] = None,
    amount: int = 1000,
    status: str = Order.Status.CONFIRMED.value,
    tracking_number: str = "",
    created_at=None,
) -> Order:
    created_at = created_at or timezone.now()
    return Order.objects.create(
        customer=customer,
        customer_name=customer.name if customer else "Walk-in",
        customer_email=customer.email if customer else "walkin@example.com",
        product=product,
        quantity=1,
        total_amount_cents=amount,
        status=status,
        tracking_number=tracking_number,
        created_at=created_at,
        updated_at=created_at,
    )


def checkout_payload(
    cart_items: List[Dict[str, Any]],
    *,
    email: str = "a@x.com",
    name: str = "Amaka Obi",
    shipping: int = 0,
    total: Optional[int] = None,
    **extra: Any,
) -> Dict[str, Any]:
    payload: Dict[str, Any] = {
        "contact": {
            "name": name,
            "email": email,
            "phone": "+234 801 234 5678",
            "address": "15 Victoria Island Road",
            "city": "Lagos",
            "state": "Lagos",
            "country": "Nigeria",
        },
        "cartItems": cart_items,
        "shipping": shipping,
        "paymentMethod": "bank_transfer",
    }
    if total is not None:
        payload["total"] = total
    payload.update(extra)
    return payload
