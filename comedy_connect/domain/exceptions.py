

class ComedyConnectError(Exception):
    """
    Base exception for all domain-level errors
    inside the Comedy Connect booking core.
    """

    status_code = 500
    code = "INTERNAL_ERROR"

    def __init__(
        self,
        message: str,
        code: str | None = None,
        details: list[str] | None = None,
    ):
        super().__init__(message)
        self.message = message
        if code is not None:
            self.code = code
        self.details = list(details or [])


class UnauthorizedError(ComedyConnectError):
    """Raised when no valid identity is attached to the request."""

    status_code = 401
    code = "UNAUTHORIZED"

    def __init__(self, message: str = "Unauthorized"):
        super().__init__(message)


class ForbiddenError(ComedyConnectError):
    """Raised when the caller lacks the role or ownership required."""

    status_code = 403
    code = "FORBIDDEN"

    def __init__(self, message: str = "Access denied"):
        super().__init__(message)


class NotFoundError(ComedyConnectError):
    status_code = 404
    code = "NOT_FOUND"

    def __init__(self, resource: str):
        self.resource = resource
        super().__init__(f"{resource} not found")


class ValidationError(ComedyConnectError):
    """Raised for malformed or out-of-range input."""

    status_code = 400
    code = "VALIDATION_ERROR"


class BookingError(ComedyConnectError):
    """
    Raised when a booking business rule is violated.
    The code distinguishes sold out, duplicate and not-bookable cases.
    """

    status_code = 400
    code = "BOOKING_ERROR"


class SoldOutError(BookingError):
    code = "SOLD_OUT"

    def __init__(self, message: str = "sold out"):
        super().__init__(message)


class ConfigurationError(ComedyConnectError):
    """
    Raised when the deployment is misconfigured: fee slabs that do not
    cover a requested price, or missing payment gateway keys.
    """

    status_code = 500
    code = "CONFIGURATION_ERROR"


class InvalidStateTransitionError(ComedyConnectError):
    """
    Raised when an illegal booking state transition is attempted.
    """

    status_code = 409
    code = "INVALID_STATE_TRANSITION"

    def __init__(self, from_state: str, to_state: str):
        self.from_state = from_state
        self.to_state = to_state

        message = (
            f"Illegal state transition attempted: "
            f"{from_state} -> {to_state}"
        )
        super().__init__(message)


class InsufficientInventoryError(ComedyConnectError):
    """Raised when a show has fewer available tickets than requested."""

    status_code = 409
    code = "INSUFFICIENT_INVENTORY"


class InventoryIntegrityError(ComedyConnectError):
    """
    Raised when a commit or release finds fewer locked tickets than
    the reservation being settled.
    """

    status_code = 500
    code = "INVENTORY_INTEGRITY"


class PaymentGatewayError(ComedyConnectError):
    status_code = 502
    code = "PAYMENT_GATEWAY_ERROR"
