class ShopError(Exception):
    """Base class for errors that map onto an HTTP response."""

    status_code = 500

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class InvalidRequest(ShopError, ValueError):
    """Raised when a payload or parameter fails validation, before any write."""

    status_code = 400


class NotFound(ShopError):
    status_code = 404


class InvalidTransition(ShopError):
    """Raised when an order cannot move from its current status to the requested one."""

    status_code = 409


class PaymentVerificationFailed(ShopError):
    status_code = 400


class PaymentGatewayError(ShopError):
    status_code = 502


class AuthenticationRequired(ShopError):
    status_code = 401


class InvalidToken(ShopError):
    status_code = 403
