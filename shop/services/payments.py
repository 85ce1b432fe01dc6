import logging
from typing import Any, Dict

import requests
from django.conf import settings

from shop.exceptions import InvalidRequest, PaymentGatewayError, PaymentVerificationFailed

logger = logging.getLogger(__name__)


def verify_transaction(reference: Any) -> Dict[str, Any]:
    """
    Ask the payment gateway whether ``reference`` was paid.

    Returns the gateway's transaction data on success. Orders are left
    untouched; the storefront follows up with an order-status update.
    """

    if not isinstance(reference, str) or not reference.strip():
        raise InvalidRequest("Payment reference is required.")
    reference = reference.strip()

    url = f"{settings.PAYSTACK_BASE_URL.rstrip('/')}/transaction/verify/{reference}"
    headers = {
        "Authorization": f"Bearer {settings.PAYSTACK_SECRET_KEY}",
        "Content-Type": "application/json",
    }
    try:
        response = requests.get(url, headers=headers, timeout=settings.PAYSTACK_TIMEOUT)
        payload = response.json()
    except (requests.RequestException, ValueError) as exc:
        logger.warning("Payment gateway unreachable for %s: %s", reference, exc)
        raise PaymentGatewayError("Payment verification error.") from exc

    if not isinstance(payload, dict):
        payload = {}
    data = payload.get("data")
    if not payload.get("status") or not isinstance(data, dict) or data.get("status") != "success":
        logger.info("Payment verification failed for %s", reference)
        raise PaymentVerificationFailed("Payment verification failed.")

    logger.info("Payment verified: %s", reference)
    return data


def paid_amount_cents(data: Dict[str, Any]) -> int:
    """Amount the gateway settled for a verified transaction, in kobo."""

    amount = data.get("amount")
    if isinstance(amount, bool) or not isinstance(amount, int) or amount < 0:
        raise PaymentVerificationFailed("Payment amount missing from gateway response.")
    return amount
