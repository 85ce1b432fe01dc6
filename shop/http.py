import json
import logging
from functools import wraps
from typing import Any, Dict

from django.db import DatabaseError
from django.http import HttpRequest, JsonResponse

from shop.exceptions import InvalidRequest, ShopError

logger = logging.getLogger(__name__)


def json_error(message: str, *, status: int = 400) -> JsonResponse:
    payload: Dict[str, Any] = {"success": False, "message": message}
    return JsonResponse(payload, status=status)


def json_ok(**fields: Any) -> JsonResponse:
    return JsonResponse({"success": True, **fields})


def parse_request_body(request: HttpRequest) -> Dict[str, Any]:
    if not request.body:
        return {}
    try:
        data = json.loads(request.body.decode("utf-8"))
    except (json.JSONDecodeError, UnicodeDecodeError) as exc:
        raise InvalidRequest("Invalid JSON payload.") from exc
    if not isinstance(data, dict):
        raise InvalidRequest("JSON payload must be an object.")
    return data


def api_view(view):
    """
    Translate domain and persistence errors raised by ``view`` into JSON errors.

    ``ShopError`` keeps its status and message; storage failures and anything
    unexpected become a logged 500 with a generic message.
    """

    @wraps(view)
    def wrapped(request: HttpRequest, *args, **kwargs):
        try:
            return view(request, *args, **kwargs)
        except ShopError as exc:
            return json_error(exc.message, status=exc.status_code)
        except DatabaseError:
            logger.exception("Database error in %s", view.__name__)
            return json_error("Database error.", status=500)
        except Exception:
            logger.exception("Unexpected error in %s", view.__name__)
            return json_error("Internal server error.", status=500)

    return wrapped
