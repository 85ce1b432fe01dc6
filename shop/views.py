import logging

from django.conf import settings
from django.contrib.auth import authenticate
from django.http import HttpRequest, JsonResponse
from django.views.decorators.http import require_GET, require_http_methods, require_POST

from shop import catalog
from shop.auth import admin_required, issue_token
from shop.exceptions import InvalidRequest, PaymentVerificationFailed
from shop.http import api_view, json_error, json_ok, parse_request_body
from shop.models import Customer, Order
from shop.services import analytics, lifecycle, order_intake, payments, products
from shop.services.serializers import (
    serialize_customer,
    serialize_order,
    serialize_product,
    serialize_return,
)

logger = logging.getLogger(__name__)

PAYMENT_CALLBACK_STATUSES = {Order.Status.CONFIRMED.value, Order.Status.CANCELLED.value}


def _checkout_response(result, **extra) -> JsonResponse:
    if result.is_sell_inquiry:
        return json_ok(
            message="Inquiry submitted successfully",
            orderNumber=result.order_number,
            type=order_intake.SELL_INQUIRY,
        )
    placed = result.placed
    return json_ok(
        message="Order created successfully",
        orderNumber=result.order_number,
        orderIds=placed.order_ids,
        status=placed.status,
        totalCents=placed.total_cents,
        **extra,
    )


# Checkout and payment


@require_POST
@api_view
def checkout_api(request: HttpRequest) -> JsonResponse:
    payload = parse_request_body(request)
    result = order_intake.submit_checkout(payload)
    return _checkout_response(result)


@require_POST
@api_view
def create_payment_api(request: HttpRequest) -> JsonResponse:
    """
    Checkout for gateway payments: orders wait in ``pending_payment`` until
    the storefront reports a verified payment.
    """

    payload = parse_request_body(request)
    payment_required = payload.get("paymentMethod") == "paystack"
    result = order_intake.submit_checkout(payload, deferred_payment=payment_required)
    if result.is_sell_inquiry:
        return _checkout_response(result)
    return _checkout_response(result, paymentRequired=payment_required, paymentUrl=None)


@require_POST
@api_view
def verify_payment_api(request: HttpRequest) -> JsonResponse:
    payload = parse_request_body(request)
    data = payments.verify_transaction(payload.get("reference"))
    return json_ok(message="Payment verified successfully", data=data)


@require_POST
@api_view
def update_order_status_api(request: HttpRequest) -> JsonResponse:
    """
    Payment callback: move every line item of a submission at once.

    Confirming requires a payment reference the gateway accepts for at least
    the submission's total, so an unpaid or underpaid order never confirms.
    """

    payload = parse_request_body(request)
    status = payload.get("status")
    if not isinstance(status, str) or status not in PAYMENT_CALLBACK_STATUSES:
        raise InvalidRequest(f"Invalid status: {status!r}.")

    reference = payload.get("paymentReference") or ""
    if not isinstance(reference, str):
        raise InvalidRequest("`paymentReference` must be a string.")
    paid_cents = None
    if status == Order.Status.CONFIRMED.value:
        if not reference:
            raise PaymentVerificationFailed("A verified payment reference is required.")
        paid_cents = payments.paid_amount_cents(payments.verify_transaction(reference))

    updated = lifecycle.update_status_by_order_number(
        payload.get("orderNumber"),
        status,
        payment_reference=reference.strip(),
        paid_amount_cents=paid_cents,
    )
    return json_ok(message="Order status updated successfully", updatedCount=updated)


# Catalog


@require_GET
@api_view
def products_api(request: HttpRequest) -> JsonResponse:
    items = products.list_products(category=request.GET.get("category") or None)
    return json_ok(products=[serialize_product(product) for product in items])


@require_GET
@api_view
def minerals_api(request: HttpRequest) -> JsonResponse:
    minerals = [catalog.mineral_listing(product) for product in products.active_minerals()]
    return json_ok(minerals=minerals)


@require_GET
@api_view
def minerals_showcase_api(request: HttpRequest) -> JsonResponse:
    minerals = catalog.showcase_listings(products.active_minerals())
    logger.debug("Returning %d showcase minerals", len(minerals))
    return json_ok(minerals=minerals)


@require_GET
@api_view
def minerals_buy_api(request: HttpRequest) -> JsonResponse:
    minerals = catalog.for_sale_listings(products.active_minerals())
    logger.debug("Returning %d for-sale minerals", len(minerals))
    return json_ok(minerals=minerals)


# Admin session


@require_POST
@api_view
def admin_login_api(request: HttpRequest) -> JsonResponse:
    payload = parse_request_body(request)
    username = payload.get("username")
    password = payload.get("password")
    if not isinstance(username, str) or not isinstance(password, str):
        return json_error("`username` and `password` are required.")

    user = authenticate(request, username=username, password=password)
    if user is None:
        return json_error("Invalid credentials", status=401)

    token = issue_token(user)
    response = json_ok(
        message="Login successful",
        token=token,
        user={"id": user.pk, "username": user.get_username(), "is_staff": user.is_staff},
    )
    response.set_cookie(
        settings.ADMIN_TOKEN_COOKIE,
        token,
        max_age=settings.ADMIN_TOKEN_MAX_AGE,
        httponly=True,
        samesite="Strict",
        secure=not settings.DEBUG,
    )
    logger.info("Admin %s logged in", user.get_username())
    return response


@require_POST
def admin_logout_api(request: HttpRequest) -> JsonResponse:
    response = json_ok(message="Logout successful")
    response.delete_cookie(settings.ADMIN_TOKEN_COOKIE)
    return response


# Admin analytics


@require_GET
@admin_required
@api_view
def sales_analytics_api(request: HttpRequest) -> JsonResponse:
    return json_ok(**analytics.sales_summary())


@require_GET
@admin_required
@api_view
def sales_trends_api(request: HttpRequest) -> JsonResponse:
    period = analytics.parse_period(request.GET.get("period"))
    return json_ok(period=period, trends=analytics.sales_trends(period))


@require_GET
@admin_required
@api_view
def geographic_sales_api(request: HttpRequest) -> JsonResponse:
    return json_ok(geographic=analytics.geographic_sales())


@require_GET
@admin_required
@api_view
def customer_analytics_api(request: HttpRequest) -> JsonResponse:
    return json_ok(topCustomers=analytics.top_customers())


# Admin catalog


@require_http_methods(["GET", "POST"])
@admin_required
@api_view
def admin_products_api(request: HttpRequest) -> JsonResponse:
    if request.method == "POST":
        product = products.create_product(parse_request_body(request))
        return json_ok(
            message="Product created successfully",
            productId=product.pk,
            product=serialize_product(product),
        )

    items = products.list_products(category=request.GET.get("category") or None, active_only=False)
    return json_ok(products=[serialize_product(product) for product in items])


@require_http_methods(["GET", "PUT", "DELETE"])
@admin_required
@api_view
def admin_product_detail_api(request: HttpRequest, product_id: int) -> JsonResponse:
    if request.method == "PUT":
        product = products.update_product(product_id, parse_request_body(request))
        return json_ok(message="Product updated successfully", product=serialize_product(product))
    if request.method == "DELETE":
        products.deactivate_product(product_id)
        return json_ok(message="Product deleted successfully")

    product = products.get_product(product_id)
    return json_ok(product=serialize_product(product))


# Admin customers, orders and returns


@require_GET
@admin_required
@api_view
def admin_customers_api(request: HttpRequest) -> JsonResponse:
    return json_ok(customers=[serialize_customer(customer) for customer in Customer.objects.all()])


@require_GET
@admin_required
@api_view
def admin_orders_api(request: HttpRequest) -> JsonResponse:
    orders = Order.objects.select_related("product")
    status = request.GET.get("status")
    if status:
        orders = orders.filter(status=lifecycle.validate_status(status))
    return json_ok(orders=[serialize_order(order) for order in orders])


@require_http_methods(["PUT"])
@admin_required
@api_view
def admin_order_status_api(request: HttpRequest, order_id: int) -> JsonResponse:
    payload = parse_request_body(request)
    order = lifecycle.update_order_status(
        order_id, payload.get("status"), tracking_number=payload.get("tracking_number")
    )
    return json_ok(
        message=f"Order status updated to {order.status}",
        orderId=order.pk,
        newStatus=order.status,
    )


@require_http_methods(["PUT"])
@admin_required
@api_view
def admin_orders_bulk_update_api(request: HttpRequest) -> JsonResponse:
    payload = parse_request_body(request)
    status = payload.get("newStatus") or payload.get("status")
    updated = lifecycle.bulk_update_status(payload.get("orderIds"), status)
    return json_ok(
        message=f"Successfully updated {updated} orders to {status}",
        updatedCount=updated,
    )


@require_http_methods(["DELETE"])
@admin_required
@api_view
def admin_orders_cleanup_api(request: HttpRequest) -> JsonResponse:
    raw_days = request.GET.get("olderThanDays", "365")
    try:
        older_than_days = int(raw_days)
    except ValueError:
        return json_error("`olderThanDays` must be an integer.")
    status = request.GET.get("status") or Order.Status.DELIVERED.value

    deleted = lifecycle.cleanup_orders(older_than_days, status)
    return json_ok(
        message=f"Successfully cleaned up {deleted} old orders",
        deletedCount=deleted,
    )


@require_http_methods(["GET", "POST"])
@admin_required
@api_view
def admin_returns_api(request: HttpRequest) -> JsonResponse:
    if request.method == "POST":
        payload = parse_request_body(request)
        item = lifecycle.create_return(
            payload.get("order_id"),
            payload.get("reason"),
            payload.get("refund_amount_cents"),
        )
        return json_ok(message="Return processed successfully", id=item.pk)

    return json_ok(returns=[serialize_return(item) for item in lifecycle.list_returns()])


@require_http_methods(["PUT"])
@admin_required
@api_view
def admin_return_detail_api(request: HttpRequest, return_id: int) -> JsonResponse:
    payload = parse_request_body(request)
    item = lifecycle.update_return_status(return_id, payload.get("status"))
    return json_ok(message="Return status updated successfully", status=item.status)
