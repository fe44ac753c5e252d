"""Core utilities: exceptions, signature verification, logging."""

from paykit.core.exceptions import (
    AppException,
    GatewayNotFoundError,
    InvalidSignatureError,
    PaymentError,
    RefundError,
)
from paykit.core.logging import configure_logging

__all__ = [
    "AppException",
    "GatewayNotFoundError",
    "InvalidSignatureError",
    "PaymentError",
    "RefundError",
    "configure_logging",
]
