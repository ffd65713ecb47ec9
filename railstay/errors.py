"""Domain error codes and exception taxonomy.

Every error raised by the booking core carries a stable ``ErrorCode`` and a
user-safe message. Routers translate the families below into HTTP statuses;
nothing here is retried by the core.
"""

from enum import Enum
from typing import Optional


class ErrorCode(Enum):
    """Domain error codes."""

    # Validation
    EMPTY_ORDER_LIST = "EMPTY_ORDER_LIST"
    INVALID_DATE_RANGE = "INVALID_DATE_RANGE"
    UNKNOWN_RESOURCE = "UNKNOWN_RESOURCE"
    MALFORMED_IDENTIFIER = "MALFORMED_IDENTIFIER"
    INVALID_ORDER_STATUS = "INVALID_ORDER_STATUS"
    INVALID_TRANSACTION_STATUS = "INVALID_TRANSACTION_STATUS"
    TRANSACTION_EXPIRED = "TRANSACTION_EXPIRED"
    INSUFFICIENT_FUNDS = "INSUFFICIENT_FUNDS"
    REFUND_REJECTED = "REFUND_REJECTED"
    INVALID_PAYMENT_PASSWORD_FORMAT = "INVALID_PAYMENT_PASSWORD_FORMAT"
    INVALID_REQUEST = "INVALID_REQUEST"

    # Authorization
    INVALID_SESSION = "INVALID_SESSION"
    WRONG_PASSWORD = "WRONG_PASSWORD"
    TOO_MANY_ATTEMPTS = "TOO_MANY_ATTEMPTS"

    # Allocation
    CAPACITY_EXCEEDED = "CAPACITY_EXCEEDED"
    RESOURCE_NOT_FOUND = "RESOURCE_NOT_FOUND"

    # Lookup
    NOT_FOUND = "NOT_FOUND"

    # Server faults
    CONSISTENCY_ERROR = "CONSISTENCY_ERROR"


class DomainError(Exception):
    """Base domain error with code and user-safe message."""

    def __init__(self, code: ErrorCode, message: str) -> None:
        super().__init__(message)
        self.code = code
        self.message = message

    def __str__(self) -> str:
        return f"{self.code.value}: {self.message}"


# ================================
# Validation errors
# ================================
class ValidationError(DomainError):
    """Malformed input; surfaced immediately and never retried."""

    def __init__(self, message: str, code: ErrorCode = ErrorCode.INVALID_REQUEST) -> None:
        super().__init__(code=code, message=message)


class EmptyOrderListError(ValidationError):
    def __init__(self) -> None:
        super().__init__("At least one order is required", ErrorCode.EMPTY_ORDER_LIST)


class InvalidDateRangeError(ValidationError):
    def __init__(self, message: str) -> None:
        super().__init__(message, ErrorCode.INVALID_DATE_RANGE)


class UnknownResourceError(ValidationError):
    """Raised when a request references reference data that does not exist."""

    def __init__(self, resource: str, identifier: str) -> None:
        super().__init__(f"{resource} not found: {identifier}", ErrorCode.UNKNOWN_RESOURCE)
        self.resource = resource
        self.identifier = identifier


class MalformedIdentifierError(ValidationError):
    def __init__(self, field: str) -> None:
        super().__init__(f"Malformed identifier for {field}", ErrorCode.MALFORMED_IDENTIFIER)
        self.field = field


class InvalidOrderStatusError(ValidationError):
    """Raised when an order status transition is outside the lifecycle graph."""

    def __init__(self, order_uuid: str, current: str, target: str) -> None:
        super().__init__(
            f"Order {order_uuid} cannot move from {current} to {target}",
            ErrorCode.INVALID_ORDER_STATUS,
        )
        self.order_uuid = order_uuid
        self.current = current
        self.target = target


class InvalidTransactionStatusError(ValidationError):
    def __init__(self, transaction_uuid: str, status: str, operation: str) -> None:
        super().__init__(
            f"Transaction {transaction_uuid} in status {status} does not allow {operation}",
            ErrorCode.INVALID_TRANSACTION_STATUS,
        )
        self.transaction_uuid = transaction_uuid
        self.status = status


class TransactionExpiredError(ValidationError):
    def __init__(self, transaction_uuid: str, timeout_minutes: int) -> None:
        super().__init__(
            f"Transaction {transaction_uuid} was not paid within {timeout_minutes} minutes",
            ErrorCode.TRANSACTION_EXPIRED,
        )
        self.transaction_uuid = transaction_uuid


class InsufficientFundsError(ValidationError):
    def __init__(self, transaction_uuid: str, balance, required) -> None:
        super().__init__(
            f"Insufficient funds for transaction {transaction_uuid}: required {required}, available {balance}",
            ErrorCode.INSUFFICIENT_FUNDS,
        )
        self.balance = balance
        self.required = required


class RefundError(ValidationError):
    def __init__(self, message: str) -> None:
        super().__init__(message, ErrorCode.REFUND_REJECTED)


class InvalidPaymentPasswordFormatError(ValidationError):
    def __init__(self, length: int) -> None:
        super().__init__(
            f"Payment password must be exactly {length} digits",
            ErrorCode.INVALID_PAYMENT_PASSWORD_FORMAT,
        )


# ================================
# Authorization errors
# ================================
class AuthorizationError(DomainError):
    """Authentication or secondary authorization failed.

    The message is generic and never names the rejected factor.
    """

    GENERIC_MESSAGE = "Authorization failed"

    def __init__(self, code: ErrorCode) -> None:
        super().__init__(code=code, message=self.GENERIC_MESSAGE)


class InvalidSessionError(AuthorizationError):
    def __init__(self) -> None:
        super().__init__(ErrorCode.INVALID_SESSION)


class WrongPasswordError(AuthorizationError):
    def __init__(self) -> None:
        super().__init__(ErrorCode.WRONG_PASSWORD)


class TooManyAttemptsError(AuthorizationError):
    def __init__(self, max_attempts: int) -> None:
        super().__init__(ErrorCode.TOO_MANY_ATTEMPTS)
        self.max_attempts = max_attempts


# ================================
# Allocation errors
# ================================
class AllocationError(DomainError):
    """Inventory could not be reserved for an order."""

    def __init__(self, code: ErrorCode, message: str, order_uuid: Optional[str] = None) -> None:
        super().__init__(code=code, message=message)
        self.order_uuid = order_uuid


class CapacityExceededError(AllocationError):
    def __init__(self, order_uuid: str, detail: str = "capacity exhausted") -> None:
        super().__init__(ErrorCode.CAPACITY_EXCEEDED, f"No availability for order {order_uuid}: {detail}", order_uuid)


class ResourceNotFoundError(AllocationError):
    def __init__(self, order_uuid: str, resource: str) -> None:
        super().__init__(ErrorCode.RESOURCE_NOT_FOUND, f"{resource} no longer available for order {order_uuid}", order_uuid)
        self.resource = resource


# ================================
# Lookup & server faults
# ================================
class NotFoundError(DomainError):
    def __init__(self, resource: str) -> None:
        super().__init__(code=ErrorCode.NOT_FOUND, message=f"{resource} not found")


class ConsistencyError(DomainError):
    """Unexpected state found while compensating; a server fault."""

    def __init__(self, message: str) -> None:
        super().__init__(code=ErrorCode.CONSISTENCY_ERROR, message=message)
