"""Stripe payment gateway adapter."""

import asyncio
import logging
from collections.abc import Mapping
from decimal import ROUND_HALF_UP, Decimal
from typing import Any

import stripe

from paykit.core import signature
from paykit.core.exceptions import PaymentError, RefundError
from paykit.gateways.base import BaseGateway
from paykit.schemas.payment import (
    ZERO_DECIMAL_CURRENCIES,
    PaymentRequest,
    PaymentResponse,
    PaymentStatus,
    WebhookPayload,
)

# PaymentIntent.status -> shared status
INTENT_STATUSES = {
    "requires_payment_method": PaymentStatus.PENDING,
    "requires_confirmation": PaymentStatus.PENDING,
    "requires_action": PaymentStatus.PENDING,
    "processing": PaymentStatus.PROCESSING,
    "requires_capture": PaymentStatus.AUTHORIZED,
    "canceled": PaymentStatus.CANCELLED,
    "succeeded": PaymentStatus.COMPLETED,
}


def _from_minor_units(amount: int | None, currency: str | None) -> Decimal | None:
    if amount is None:
        return None
    if currency and currency.upper() in ZERO_DECIMAL_CURRENCIES:
        return Decimal(amount)
    return Decimal(amount) / 100


def _to_minor_units(amount: Decimal, currency: str | None) -> int:
    minor = Decimal(amount)
    if not (currency and currency.upper() in ZERO_DECIMAL_CURRENCIES):
        minor *= 100
    return int(minor.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


class StripeGateway(BaseGateway):
    """Stripe payment gateway implementation (PaymentIntents API)."""

    name = "stripe"
    STATUS_MAP = INTENT_STATUSES

    @property
    def secret_key(self) -> str:
        return self.require_mode_config("secret_key")

    async def _call(self, func: Any, *args: Any, **kwargs: Any) -> Any:
        # The stripe SDK is blocking
        return await asyncio.to_thread(func, *args, api_key=self.secret_key, **kwargs)

    def _intent_response(self, intent: Any, message: str | None = None) -> PaymentResponse:
        status = self.map_status(intent.status)
        currency = (getattr(intent, "currency", None) or "").upper() or None
        amount = _from_minor_units(getattr(intent, "amount", None), currency)
        metadata = dict(getattr(intent, "metadata", None) or {})
        data = {
            "id": intent.id,
            "status": intent.status,
            "amount": amount,
            "currency": currency,
            "client_secret": getattr(intent, "client_secret", None),
        }
        fields = {
            "transaction_id": intent.id,
            "gateway_reference": metadata.get("order_id"),
            "amount": amount,
            "currency": currency,
            "meta": metadata,
        }
        if status.is_success:
            return PaymentResponse.successful(
                status=status, message=message or f"Payment {status.value}", data=data, **fields
            )
        last_error = getattr(intent, "last_payment_error", None)
        reason = getattr(last_error, "message", None) if last_error else None
        return PaymentResponse.failure(
            reason or message or f"Payment {status.value}", status=status, data=data, **fields
        )

    async def pay(self, request: PaymentRequest) -> PaymentResponse:
        """Create Stripe PaymentIntent.

        Without a ``payment_method`` in the request meta the intent waits for
        the client to confirm it with the returned ``client_secret``.
        """
        params: dict[str, Any] = {
            "amount": request.amount_in_minor_units,
            "currency": request.currency.lower(),
            "description": request.description,
            "receipt_email": request.customer_email,
            "metadata": {
                "order_id": request.order_id,
                **{k: str(v) for k, v in request.meta.items()},
            },
            "idempotency_key": request.order_id,
        }
        payment_method = request.get_meta("payment_method")
        if payment_method:
            params.update(payment_method=payment_method, confirm=True)
            if request.callback_url:
                params["return_url"] = request.callback_url

        params = {k: v for k, v in params.items() if v is not None}

        try:
            intent = await self._call(stripe.PaymentIntent.create, **params)
        except stripe.CardError as e:
            self._log(logging.INFO, "Card declined", order_id=request.order_id, code=e.code)
            return PaymentResponse.failure(
                e.user_message or "Card declined",
                data={"decline_code": getattr(e, "decline_code", None), "code": e.code},
                gateway_reference=request.order_id,
            )
        except stripe.StripeError as e:
            raise PaymentError.gateway_error(self.gateway_name, str(e)) from e

        self._log(logging.INFO, "PaymentIntent created", order_id=request.order_id, intent=intent.id)

        if not payment_method and self.map_status(intent.status) is PaymentStatus.PENDING:
            # Session exists; the client finishes it with the client_secret
            response = self._intent_response(intent)
            return PaymentResponse.successful(
                status=PaymentStatus.PROCESSING,
                message="Payment intent created; awaiting client confirmation",
                **response.model_dump(exclude={"success", "status", "message"}),
            )
        return self._intent_response(intent)

    async def verify(self, payload: Mapping[str, Any]) -> PaymentResponse:
        """Re-read the PaymentIntent named by an event or a status query.

        Accepts a webhook event (``{"type": ..., "data": {"object": ...}}``),
        a bare PaymentIntent/Charge object, or ``{"id": "pi_..."}``. The
        outcome always comes from the API, never from the payload itself.
        """
        obj = payload.get("data", {}).get("object", payload) if "data" in payload else payload
        if obj.get("object") == "charge":
            intent_id = obj.get("payment_intent")
        else:
            intent_id = obj.get("id") or obj.get("transaction_id")
        if not intent_id:
            raise PaymentError.gateway_error(self.gateway_name, "Payload has no PaymentIntent id")

        try:
            intent = await self._call(stripe.PaymentIntent.retrieve, intent_id)
        except stripe.StripeError as e:
            raise PaymentError.gateway_error(self.gateway_name, str(e), intent_id) from e
        return self._intent_response(intent)

    async def process_verified(self, payload: Mapping[str, Any]) -> PaymentResponse:
        return await self.verify(payload)

    def supports_refund(self) -> bool:
        return True

    async def refund(self, transaction_id: str, amount: Decimal) -> bool:
        """Process Stripe refund."""
        try:
            intent = await self._call(
                stripe.PaymentIntent.retrieve, transaction_id, expand=["latest_charge"]
            )
        except stripe.StripeError as e:
            raise RefundError.failed(self.gateway_name, transaction_id, str(e)) from e

        if intent.status != "succeeded":
            raise RefundError.failed(
                self.gateway_name, transaction_id, f"Payment is {intent.status}, not refundable"
            )

        currency = intent.currency
        received = getattr(intent, "amount_received", None) or intent.amount
        # latest_charge is an id string unless expanded
        already_refunded = getattr(getattr(intent, "latest_charge", None), "amount_refunded", 0) or 0
        refundable = _from_minor_units(received - already_refunded, currency)
        if amount > refundable:
            raise RefundError.amount_mismatch(self.gateway_name, transaction_id, amount, refundable)

        try:
            refund = await self._call(
                stripe.Refund.create,
                payment_intent=transaction_id,
                amount=_to_minor_units(amount, currency),
            )
        except stripe.StripeError as e:
            raise RefundError.failed(self.gateway_name, transaction_id, str(e)) from e

        self._log(logging.INFO, "Refund created", transaction_id=transaction_id, refund=refund.id)
        return refund.status in ("succeeded", "pending")

    def validate_webhook_signature(self, webhook: WebhookPayload) -> bool:
        header = webhook.get_header("stripe-signature") or webhook.signature
        tolerance = self.get_config("webhook_tolerance", signature.STRIPE_TOLERANCE_SECONDS)
        return signature.verify_stripe(webhook.body, header, self.webhook_secret, tolerance=tolerance)
