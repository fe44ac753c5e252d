"""PayFast payment gateway adapter.

Hosted checkout: pay() returns a redirect URL, the outcome arrives later as
an ITN (Instant Transaction Notification).
Documentation: https://developers.payfast.co.za/docs
"""

import logging
from collections.abc import Mapping
from decimal import Decimal
from typing import Any
from urllib.parse import urlencode

import httpx

from paykit.core import signature
from paykit.core.exceptions import InvalidSignatureError, PaymentError
from paykit.gateways.base import BaseGateway
from paykit.schemas.payment import (
    PaymentRequest,
    PaymentResponse,
    PaymentStatus,
    WebhookPayload,
)

SANDBOX_URL = "https://sandbox.payfast.co.za"
LIVE_URL = "https://www.payfast.co.za"


def _form_fields(data: Mapping[str, Any]) -> dict[str, str]:
    """String form fields as PayFast signs them; empty values are left out."""
    return {k: str(v) for k, v in data.items() if v is not None}


class PayFastGateway(BaseGateway):
    """PayFast payment gateway implementation."""

    name = "payfast"

    STATUS_MAP = {
        "COMPLETE": PaymentStatus.COMPLETED,
        "PENDING": PaymentStatus.PENDING,
        "FAILED": PaymentStatus.FAILED,
        "CANCELLED": PaymentStatus.CANCELLED,
    }

    @property
    def base_url(self) -> str:
        return LIVE_URL if self.is_live else SANDBOX_URL

    @property
    def passphrase(self) -> str | None:
        return self.get_mode_config("passphrase")

    def format_amount(self, amount: Decimal) -> str:
        return f"{Decimal(amount):.2f}"

    def _generate_signature(self, data: Mapping[str, Any]) -> str:
        """Generate PayFast signature for request."""
        return signature.payfast_signature(data, self.passphrase)

    async def pay(self, request: PaymentRequest) -> PaymentResponse:
        """Build the hosted checkout URL."""
        merchant_id = self.require_mode_config("merchant_id")
        merchant_key = self.require_mode_config("merchant_key")

        data = {
            "merchant_id": merchant_id,
            "merchant_key": merchant_key,
            "return_url": request.callback_url,
            "cancel_url": request.get_meta("cancel_url"),
            "notify_url": request.webhook_url,
            "name_first": request.customer_name,
            "email_address": request.customer_email,
            "m_payment_id": request.order_id,
            "amount": self.format_amount(request.amount),
            "item_name": (request.description or f"Order {request.order_id}")[:100],
        }
        data = _form_fields(data)
        data["signature"] = self._generate_signature(data)

        payment_url = f"{self.base_url}/eng/process?" + urlencode(data)
        self._log(logging.INFO, "Checkout URL created", order_id=request.order_id)

        return PaymentResponse.redirect(
            payment_url,
            transaction_id=request.order_id,
            data={"sandbox": self.is_sandbox, "amount": request.amount},
            gateway_reference=request.order_id,
            amount=request.amount,
            currency=request.currency,
        )

    async def verify(self, payload: Mapping[str, Any]) -> PaymentResponse:
        """Verify an ITN and normalize it."""
        data = _form_fields(payload)
        if not signature.verify_payfast(data, self.passphrase):
            self._log(logging.WARNING, "ITN signature mismatch", m_payment_id=data.get("m_payment_id"))
            raise InvalidSignatureError.for_gateway(self.gateway_name)

        if self.get_config("validate_itn", False):
            await self._validate_with_server(data)

        status = self.map_status(data.get("payment_status"))
        amount = Decimal(data["amount_gross"]) if data.get("amount_gross") else None
        fields = {
            "transaction_id": data.get("pf_payment_id"),
            "gateway_reference": data.get("m_payment_id"),
            "amount": amount,
            "data": dict(payload),
        }
        if status.is_success:
            return PaymentResponse.successful(status=status, message="Payment completed", **fields)
        return PaymentResponse.failure(f"Payment {status.value}", status=status, **fields)

    async def process_verified(self, payload: Mapping[str, Any]) -> PaymentResponse:
        # ITN post-back validation still applies to authenticated webhooks
        return await self.verify(payload)

    def validate_webhook_signature(self, webhook: WebhookPayload) -> bool:
        # The signature travels inside the form body
        data = _form_fields(webhook.payload)
        return signature.verify_payfast(data, self.passphrase)

    async def _validate_with_server(self, data: Mapping[str, str]) -> None:
        """Confirm the ITN with PayFast (step 4 of their ITN checklist)."""
        url = f"{self.base_url}/eng/query/validate"
        try:
            async with self._create_http_client() as client:
                response = await client.post(
                    url,
                    content=urlencode({k: v for k, v in data.items() if k != "signature"}),
                    headers={"Content-Type": "application/x-www-form-urlencoded"},
                )
        except httpx.HTTPError as e:
            raise PaymentError.network(self.gateway_name, f"ITN validation failed: {e}") from e

        if response.text.strip() != "VALID":
            raise InvalidSignatureError(
                f"PayFast rejected ITN for {data.get('m_payment_id')}", gateway=self.gateway_name
            )
