"""
Error hierarchy for the orders service.

Every error carries the HTTP status it maps to; the handlers registered in
``app.main`` turn them into ``{"success": false, "error": ...}`` bodies.
"""


class StorefrontError(Exception):
    """
    Base exception for order lifecycle errors.

    Attributes:
        message: Human-readable error message
        details: Optional dict with additional context (order ids, statuses)
    """

    status_code = 500

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        return self.message

    def __repr__(self) -> str:
        if self.details:
            details_str = ', '.join(f"{k}={v}" for k, v in self.details.items())
            return f"{self.__class__.__name__}('{self.message}', {details_str})"
        return f"{self.__class__.__name__}('{self.message}')"


class OrderValidationError(StorefrontError):
    """Required input missing or malformed; raised before any mutation."""
    status_code = 400


class WebhookSignatureError(StorefrontError):
    status_code = 401


class OrderNotFoundError(StorefrontError):
    status_code = 404

    def __init__(self, message: str = "Order not found", details: dict | None = None):
        super().__init__(message, details)


class InvalidTransitionError(StorefrontError):
    status_code = 409

    def __init__(self, from_status: str, to_status: str):
        super().__init__(
            f"Cannot move order from '{from_status}' to '{to_status}'",
            {"from_status": from_status, "to_status": to_status},
        )
        self.from_status = from_status
        self.to_status = to_status


class ConcurrentUpdateError(StorefrontError):
    """The order changed between the read and the guarded write."""
    status_code = 409

    def __init__(self, order_id: str):
        super().__init__("Order was modified concurrently, retry the request", {"order_id": order_id})


class AlreadyRecordedError(StorefrontError):
    """A write-once field already holds a value."""
    status_code = 409


class UpstreamServiceError(StorefrontError):
    status_code = 502


class PaymentGatewayError(UpstreamServiceError):
    pass


class CarrierAPIError(UpstreamServiceError):
    pass


class RateLimitExceededError(StorefrontError):
    status_code = 429

    def __init__(self, message: str, headers: dict[str, str] | None = None):
        super().__init__(message)
        self.headers = headers or {}
