"""Order engine error kinds; the HTTP layer renders them via `kind` and `status_code`."""


class StorefrontError(Exception):
    kind = "error"
    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(StorefrontError):
    """User-correctable: bad account info, package reference, coupon or transfer details."""

    kind = "validation_error"
    status_code = 400

    def __init__(self, errors: list[str], message: str = "Order validation failed."):
        super().__init__(message)
        self.errors = list(errors)

    def __str__(self) -> str:
        return f"{self.message} {'; '.join(self.errors)}"


class PricingError(StorefrontError):
    """Catalog is in a state no price can be resolved from."""

    kind = "pricing_error"
    status_code = 500


class NotEligible(StorefrontError):
    kind = "not_eligible"
    status_code = 409


class InvalidTransition(StorefrontError):
    kind = "invalid_transition"
    status_code = 409

    def __init__(self, current: str, target: str):
        super().__init__(f"Cannot move order from {current} to {target}.")
        self.current = current
        self.target = target


class OrderNotFound(StorefrontError):
    kind = "not_found"
    status_code = 404

    def __init__(self, order_id: str):
        super().__init__("Order not found.")
        self.order_id = order_id


class DecryptionError(StorefrontError):
    kind = "decryption_error"
    status_code = 500


class GatewayError(StorefrontError):
    """Payment gateway failure. Signature failures are never retryable."""

    kind = "gateway_error"

    def __init__(self, message: str, retryable: bool = False):
        super().__init__(message)
        self.retryable = retryable

    @property
    def status_code(self) -> int:  # type: ignore[override]
        return 502 if self.retryable else 400


class StorageError(StorefrontError):
    kind = "storage_error"
    status_code = 502
