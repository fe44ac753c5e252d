"""Payment exceptions.

Three kinds of failure reach callers of the payment manager:

* ``PaymentError`` - the operation itself could not be performed
  (missing credentials, transport failure, malformed provider response).
* ``GatewayNotFoundError`` - the provider is not registered or its
  implementation does not honour the gateway contract.
* ``InvalidSignatureError`` - an inbound webhook failed authentication.

A declined card is not an exception; it is a ``PaymentResponse`` with
``success=False``.
"""

from decimal import Decimal
from typing import Any

from fastapi import HTTPException, status


class AppException(HTTPException):
    """Base application exception."""

    def __init__(
        self,
        status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail: str = "An unexpected error occurred",
        headers: dict[str, str] | None = None,
    ) -> None:
        super().__init__(status_code=status_code, detail=detail, headers=headers)

    def __str__(self) -> str:
        return str(self.detail)

    @property
    def message(self) -> str:
        return str(self.detail)


class PaymentError(AppException):
    """Payment processing error."""

    def __init__(
        self,
        detail: str = "Payment processing failed",
        status_code: int = status.HTTP_402_PAYMENT_REQUIRED,
        gateway: str | None = None,
        transaction_id: str | None = None,
        context: dict[str, Any] | None = None,
    ) -> None:
        self.gateway = gateway
        self.transaction_id = transaction_id
        self.context = context or {}
        super().__init__(status_code=status_code, detail=detail)

    @classmethod
    def gateway_error(
        cls, gateway: str, message: str, transaction_id: str | None = None
    ) -> "PaymentError":
        return cls(
            f"Payment gateway error ({gateway}): {message}",
            gateway=gateway,
            transaction_id=transaction_id,
        )

    @classmethod
    def validation(cls, message: str, errors: list[Any] | None = None) -> "PaymentError":
        return cls(
            f"Validation error: {message}",
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            context={"errors": errors or []},
        )

    @classmethod
    def configuration(cls, gateway: str, message: str) -> "PaymentError":
        return cls(
            f"Configuration error ({gateway}): {message}",
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            gateway=gateway,
        )

    @classmethod
    def network(cls, gateway: str, message: str) -> "PaymentError":
        return cls(
            f"Network error ({gateway}): {message}",
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            gateway=gateway,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "error": True,
            "message": self.message,
            "code": self.status_code,
            "gateway": self.gateway,
            "transaction_id": self.transaction_id,
            "context": self.context,
        }


class GatewayNotFoundError(PaymentError):
    """Provider is unknown or its implementation is unusable."""

    def __init__(self, gateway: str, detail: str | None = None) -> None:
        super().__init__(
            detail or f"Payment gateway '{gateway}' not found or not configured",
            status_code=status.HTTP_404_NOT_FOUND,
            gateway=gateway,
        )


class InvalidSignatureError(PaymentError):
    """Webhook signature failed verification."""

    def __init__(
        self,
        detail: str = "Invalid webhook signature",
        gateway: str | None = None,
    ) -> None:
        super().__init__(
            detail,
            status_code=status.HTTP_401_UNAUTHORIZED,
            gateway=gateway,
        )

    @classmethod
    def for_gateway(cls, gateway: str) -> "InvalidSignatureError":
        return cls(f"Invalid webhook signature for gateway '{gateway}'", gateway=gateway)


class RefundError(PaymentError):
    """Refund could not be issued."""

    def __init__(
        self,
        detail: str = "Refund failed",
        status_code: int = status.HTTP_402_PAYMENT_REQUIRED,
        gateway: str | None = None,
        transaction_id: str | None = None,
        refund_id: str | None = None,
        context: dict[str, Any] | None = None,
    ) -> None:
        self.refund_id = refund_id
        super().__init__(
            detail,
            status_code=status_code,
            gateway=gateway,
            transaction_id=transaction_id,
            context=context,
        )

    @classmethod
    def not_supported(cls, gateway: str) -> "RefundError":
        return cls(
            f"Refunds are not supported by gateway '{gateway}'",
            status_code=status.HTTP_501_NOT_IMPLEMENTED,
            gateway=gateway,
        )

    @classmethod
    def failed(cls, gateway: str, transaction_id: str, reason: str) -> "RefundError":
        return cls(
            f"Refund failed for transaction '{transaction_id}' on gateway '{gateway}': {reason}",
            gateway=gateway,
            transaction_id=transaction_id,
        )

    @classmethod
    def amount_mismatch(
        cls,
        gateway: str,
        transaction_id: str,
        requested: Decimal,
        allowed: Decimal,
    ) -> "RefundError":
        return cls(
            f"Refund amount mismatch for transaction '{transaction_id}'. "
            f"Requested: {requested}, Allowed: {allowed}",
            gateway=gateway,
            transaction_id=transaction_id,
            context={"requested_amount": str(requested), "allowed_amount": str(allowed)},
        )
