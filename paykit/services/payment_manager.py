"""Payment manager.

The single entry point callers use to pay, verify and refund. Holds no
payment state: only the registry and an optional default provider.
"""

import logging
from collections.abc import Mapping
from decimal import Decimal
from typing import TYPE_CHECKING, Any

from paykit.core.exceptions import (
    GatewayNotFoundError,
    InvalidSignatureError,
    PaymentError,
    RefundError,
)
from paykit.gateways.base import PaymentGateway
from paykit.schemas.payment import PaymentRequest, PaymentResponse, WebhookPayload
from paykit.services.gateway_registry import GatewayRegistry

if TYPE_CHECKING:
    from paykit.events import EventDispatcher
    from paykit.services.payment_context import PaymentContext

logger = logging.getLogger(__name__)


def _wrap(prefix: str, gateway: str, exc: Exception) -> PaymentError:
    """Uniform PaymentError for any adapter-level failure."""
    return PaymentError(
        f"{prefix} failed: {exc}",
        gateway=gateway,
        transaction_id=getattr(exc, "transaction_id", None),
        context=dict(getattr(exc, "context", None) or {}),
    )


class PaymentManager:
    """Service for routing payment operations to gateway adapters."""

    def __init__(
        self,
        registry: GatewayRegistry | None = None,
        default_gateway: str | None = None,
    ) -> None:
        self._registry = registry or GatewayRegistry()
        self._default_gateway: str | None = None
        if default_gateway:
            self.set_default_gateway(default_gateway)

    @property
    def registry(self) -> GatewayRegistry:
        return self._registry

    def gateway(self, name: str) -> PaymentGateway:
        """Resolve an adapter; raises GatewayNotFoundError."""
        return self._registry.resolve(name)

    def _resolve(self, gateway: str, prefix: str) -> PaymentGateway:
        try:
            return self.gateway(gateway)
        except GatewayNotFoundError:
            raise
        except Exception as e:
            logger.exception(f"Gateway {gateway} could not be constructed")
            raise _wrap(prefix, gateway, e) from e

    async def pay(self, gateway: str, request: PaymentRequest) -> PaymentResponse:
        """Process payment using the named gateway."""
        instance = self._resolve(gateway, "Payment")
        logger.info(f"Payment {request.order_id} initiated via {gateway}")
        try:
            response = await instance.pay(request)
        except Exception as e:
            logger.exception(f"Payment {request.order_id} via {gateway} failed")
            raise _wrap("Payment", gateway, e) from e

        logger.info(
            f"Payment {request.order_id} via {gateway} finished: "
            f"success={response.success} status={response.status.value}"
        )
        return response

    async def verify(self, gateway: str, payload: Mapping[str, Any]) -> PaymentResponse:
        """Verify a webhook/callback or status query for the named gateway."""
        instance = self._resolve(gateway, "Verification")
        try:
            return await instance.verify(payload)
        except InvalidSignatureError:
            raise
        except Exception as e:
            logger.exception(f"Verification via {gateway} failed")
            raise _wrap("Verification", gateway, e) from e

    async def handle_webhook(self, gateway: str, webhook: WebhookPayload) -> PaymentResponse:
        """Authenticate an inbound webhook, then verify it.

        InvalidSignatureError is raised before the payload is looked at.
        """
        instance = self._resolve(gateway, "Verification")
        try:
            return await instance.handle_webhook(webhook)
        except InvalidSignatureError:
            logger.warning(f"Webhook signature verification failed for {gateway}")
            raise
        except Exception as e:
            logger.exception(f"Webhook processing via {gateway} failed")
            raise _wrap("Verification", gateway, e) from e

    async def refund(self, gateway: str, transaction_id: str, amount: Decimal) -> bool:
        """Process refund using the named gateway."""
        instance = self._resolve(gateway, "Refund")

        if not instance.supports_refund():
            unsupported = RefundError.not_supported(gateway)
            raise _wrap("Refund", gateway, unsupported) from unsupported

        try:
            result = await instance.refund(transaction_id, amount)
        except Exception as e:
            logger.exception(f"Refund of {transaction_id} via {gateway} failed")
            raise _wrap("Refund", gateway, e) from e

        logger.info(f"Refund of {transaction_id} ({amount}) via {gateway}: {result}")
        return result

    def supports_refund(self, gateway: str) -> bool:
        try:
            return self.gateway(gateway).supports_refund()
        except PaymentError:
            return False

    def get_available_gateways(self) -> list[str]:
        return self._registry.get_available_gateways()

    def has_gateway(self, gateway: str) -> bool:
        return self._registry.has_gateway(gateway)

    def set_default_gateway(self, gateway: str) -> "PaymentManager":
        if not self.has_gateway(gateway):
            raise GatewayNotFoundError(gateway, f"Gateway {gateway} not found")
        self._default_gateway = gateway.lower()
        return self

    @property
    def default_gateway(self) -> str | None:
        return self._default_gateway or self._registry.settings.default_gateway

    async def pay_with_default(self, request: PaymentRequest) -> PaymentResponse:
        gateway = self.default_gateway
        if not gateway:
            raise PaymentError("No default gateway configured")
        return await self.pay(gateway, request)

    def context(self, dispatcher: "EventDispatcher | None" = None) -> "PaymentContext":
        """New fluent context bound to this manager."""
        from paykit.services.payment_context import PaymentContext

        return PaymentContext(self, dispatcher)
