"""
Admin session tokens.

Tokens are ``django.core.signing`` payloads carrying the admin user's id,
signed with ``SECRET_KEY`` and expiring after ``ADMIN_TOKEN_MAX_AGE`` seconds.
Clients send them back either as the ``token`` cookie set at login or as an
``Authorization: Bearer`` header.
"""

from functools import wraps
from typing import Optional

from django.conf import settings
from django.contrib.auth import get_user_model
from django.core import signing
from django.http import HttpRequest

from shop.exceptions import AuthenticationRequired, InvalidToken, ShopError
from shop.http import json_error

TOKEN_SALT = "shop.admin-token"


def issue_token(user) -> str:
    return signing.dumps({"id": user.pk, "username": user.get_username()}, salt=TOKEN_SALT)


def resolve_token(token: str):
    try:
        data = signing.loads(token, salt=TOKEN_SALT, max_age=settings.ADMIN_TOKEN_MAX_AGE)
    except signing.SignatureExpired as exc:
        raise InvalidToken("Token expired.") from exc
    except signing.BadSignature as exc:
        raise InvalidToken("Invalid token.") from exc

    user = get_user_model().objects.filter(pk=data.get("id"), is_active=True).first()
    if user is None:
        raise InvalidToken("Invalid token.")
    return user


def token_from_request(request: HttpRequest) -> Optional[str]:
    token = request.COOKIES.get(settings.ADMIN_TOKEN_COOKIE)
    if token:
        return token
    header = request.headers.get("Authorization", "")
    scheme, _, value = header.partition(" ")
    if scheme.lower() == "bearer" and value.strip():
        return value.strip()
    return None


def admin_required(view):
    @wraps(view)
    def wrapped(request: HttpRequest, *args, **kwargs):
        try:
            token = token_from_request(request)
            if not token:
                raise AuthenticationRequired("Access token required.")
            request.admin_user = resolve_token(token)
        except ShopError as exc:
            return json_error(exc.message, status=exc.status_code)
        return view(request, *args, **kwargs)

    return wrapped
