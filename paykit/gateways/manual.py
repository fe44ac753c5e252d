"""Manual payment gateway adapter for bank transfers."""

import logging
from collections.abc import Mapping
from decimal import Decimal
from typing import Any

from paykit.core.exceptions import RefundError
from paykit.gateways.base import BaseGateway
from paykit.schemas.payment import PaymentRequest, PaymentResponse, PaymentStatus

DEFAULT_INSTRUCTIONS = "Please transfer the amount to the merchant bank account and upload the receipt"


class ManualGateway(BaseGateway):
    """Manual payment gateway for bank transfers.

    pay() never talks to a provider: the payment stays in processing until an
    operator confirms or rejects it. The decision arrives through verify()
    carrying a ``signature`` field keyed with the webhook secret
    (see ``paykit.core.signature.sign_payload``); unsigned decisions are
    rejected.
    """

    name = "manual"

    STATUS_MAP = {
        "pending_verification": PaymentStatus.PROCESSING,
        "confirmed": PaymentStatus.COMPLETED,
        "rejected": PaymentStatus.FAILED,
        "cancelled": PaymentStatus.CANCELLED,
        "refunded": PaymentStatus.REFUNDED,
    }

    async def pay(self, request: PaymentRequest) -> PaymentResponse:
        """Create manual payment request (always accepted)."""
        transaction_id = f"manual_{request.order_id}"
        self._log(logging.INFO, "Manual payment created", order_id=request.order_id)
        return PaymentResponse.successful(
            transaction_id=transaction_id,
            status=PaymentStatus.PROCESSING,
            message="Awaiting manual verification",
            data={
                "type": "bank_transfer",
                "status": "pending_verification",
                "instructions": self.get_config("instructions", DEFAULT_INSTRUCTIONS),
                "amount": request.amount,
                "currency": request.currency,
            },
            gateway_reference=request.order_id,
            amount=request.amount,
            currency=request.currency,
        )

    async def process_verified(self, payload: Mapping[str, Any]) -> PaymentResponse:
        """Normalize an authenticated operator decision."""
        status = self.map_status(payload.get("status"))
        transaction_id = payload.get("transaction_id")
        if status.is_success:
            return PaymentResponse.successful(
                transaction_id=transaction_id,
                status=status,
                message="Payment confirmed by operator",
                data=payload,
            )
        return PaymentResponse.failure(
            payload.get("reason") or f"Payment {status.value}",
            status=status,
            transaction_id=transaction_id,
            data=payload,
        )

    def supports_refund(self) -> bool:
        return True

    async def refund(self, transaction_id: str, amount: Decimal) -> bool:
        """Record a refund for an operator to pay out by bank transfer."""
        if not transaction_id.startswith("manual_"):
            raise RefundError.failed(self.gateway_name, transaction_id, "Unknown transaction")
        if amount <= 0:
            raise RefundError.failed(self.gateway_name, transaction_id, "Amount must be positive")
        self._log(
            logging.INFO,
            "Manual refund recorded",
            transaction_id=transaction_id,
            amount=amount,
        )
        return True
