"""Pydantic schemas for payment requests, responses and webhooks."""

from paykit.schemas.payment import (
    SUCCESS_STATUSES,
    PaymentRequest,
    PaymentResponse,
    PaymentStatus,
    WebhookPayload,
)

__all__ = [
    "SUCCESS_STATUSES",
    "PaymentRequest",
    "PaymentResponse",
    "PaymentStatus",
    "WebhookPayload",
]
