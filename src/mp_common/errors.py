"""Unified error codes and custom exceptions.

Error code ranges:
  1xxx: Auth/Identity, request validation
  2xxx: Cart & inventory
  3xxx: Order lifecycle
  4xxx: Payment
  5xxx: Tracking
  9xxx: System

Errors with ``expose = False`` are transient or internal: the API layer
replaces their message with a generic retry hint.
"""

GENERIC_RETRY_MESSAGE = "Temporary failure, please try again"


class AppError(Exception):
    """Base application error."""

    expose: bool = True

    def __init__(
        self,
        code: int,
        message: str,
        http_status: int = 500,
    ) -> None:
        self.code = code
        self.message = message
        self.http_status = http_status
        super().__init__(message)

    @property
    def public_message(self) -> str:
        return self.message if self.expose else GENERIC_RETRY_MESSAGE


# --- 1xxx: Auth/Identity ---

class ValidationError(AppError):
    def __init__(self, detail: str) -> None:
        super().__init__(1000, f"Validation failed: {detail}", 422)


class InvalidCredentialsError(AppError):
    def __init__(self) -> None:
        super().__init__(1003, "Invalid or expired credentials", 401)


class AccountDisabledError(AppError):
    def __init__(self) -> None:
        super().__init__(1004, "Account is disabled", 403)


# --- 2xxx: Cart & inventory ---

class EmptyCartError(AppError):
    def __init__(self) -> None:
        super().__init__(2001, "Cart is empty", 422)


class ProductUnavailableError(AppError):
    def __init__(self, product_id: str) -> None:
        self.product_id = product_id
        super().__init__(2002, f"Product is unavailable: {product_id}", 422)


class InsufficientStockError(AppError):
    def __init__(self, product_id: str, requested: int) -> None:
        self.product_id = product_id
        self.requested = requested
        super().__init__(
            2003,
            f"Insufficient stock for product {product_id}: requested {requested}",
            409,
        )


# --- 3xxx: Order lifecycle ---

class OrderNotFoundError(AppError):
    def __init__(self, order_id: str) -> None:
        super().__init__(3001, f"Order not found: {order_id}", 404)


class InvalidTransitionError(AppError):
    def __init__(self, order_id: str, current: str, requested: str) -> None:
        self.current = current
        self.requested = requested
        super().__init__(
            3002,
            f"Order {order_id} cannot move from {current} to {requested}",
            409,
        )


class UnauthorizedTransitionError(AppError):
    def __init__(self, operation: str, order_id: str) -> None:
        super().__init__(3003, f"Not allowed to {operation} order {order_id}", 403)


class PersistenceConflictError(AppError):
    expose = False

    def __init__(self, entity: str, entity_id: str) -> None:
        super().__init__(3009, f"Concurrent update on {entity} {entity_id}", 409)


# --- 4xxx: Payment ---

class PaymentNotFoundError(AppError):
    def __init__(self, order_id: str) -> None:
        super().__init__(4001, f"Payment not found for order {order_id}", 404)


class GatewayUnavailableError(AppError):
    expose = False

    def __init__(self, detail: str) -> None:
        super().__init__(4002, f"Payment gateway unavailable: {detail}", 503)


class GatewayRejectedError(AppError):
    """The gateway answered with a 4xx: the request itself was refused."""

    expose = False

    def __init__(self, detail: str) -> None:
        super().__init__(4004, f"Payment gateway rejected request: {detail}", 502)


class PaymentSignatureInvalid(AppError):
    """Response-only error: a failed verification is a result, never raised by the adapter."""

    def __init__(self) -> None:
        super().__init__(4003, "Invalid payment signature", 400)


# --- 9xxx: System ---

class InternalError(AppError):
    expose = False

    def __init__(self, detail: str = "Internal server error") -> None:
        super().__init__(9002, detail, 500)
