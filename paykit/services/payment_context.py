"""Fluent payment context with lifecycle events.

    context = manager.context(dispatcher)
    response = await context.using("stripe").with_request(request).execute()

A context drives one operation at a time and is not safe to share between
concurrent callers; create one per operation or call the manager directly.
"""

import logging
from decimal import Decimal
from typing import TYPE_CHECKING

from paykit.events import (
    EventDispatcher,
    PaymentFailed,
    PaymentInitiated,
    PaymentRefunded,
    PaymentSucceeded,
)
from paykit.gateways.base import PaymentGateway
from paykit.schemas.payment import PaymentRequest, PaymentResponse

if TYPE_CHECKING:
    from paykit.services.payment_manager import PaymentManager

logger = logging.getLogger(__name__)


class PaymentContext:
    """Builder that sequences gateway -> request -> execute and publishes events."""

    def __init__(self, manager: "PaymentManager", dispatcher: EventDispatcher | None = None) -> None:
        self._manager = manager
        self._dispatcher = dispatcher or EventDispatcher()
        self._gateway: PaymentGateway | None = None
        self._request: PaymentRequest | None = None

    @property
    def gateway(self) -> PaymentGateway | None:
        return self._gateway

    @property
    def request(self) -> PaymentRequest | None:
        return self._request

    @property
    def dispatcher(self) -> EventDispatcher:
        return self._dispatcher

    def using(self, gateway: str) -> "PaymentContext":
        """Select the gateway; raises GatewayNotFoundError."""
        self._gateway = self._manager.gateway(gateway)
        return self

    def with_request(self, request: PaymentRequest) -> "PaymentContext":
        self._request = request
        return self

    async def execute(self) -> PaymentResponse:
        """Run the payment and publish exactly one success or failure event.

        If the adapter raises, a failure event is still published before the
        original exception is re-raised.
        """
        if self._gateway is None:
            raise ValueError("Gateway not set. Call using() first.")
        if self._request is None:
            raise ValueError("Payment request not set. Call with_request() first.")

        gateway, request = self._gateway, self._request
        await self._dispatcher.publish(PaymentInitiated(gateway, request))

        try:
            response = await gateway.pay(request)
        except Exception as e:
            logger.warning(f"Payment {request.order_id} via {gateway.gateway_name} raised: {e}")
            failure = PaymentResponse.failure(
                str(e),
                data={"error_type": "gateway_error", "exception": type(e).__name__},
                gateway_reference=request.order_id,
            )
            await self._dispatcher.publish(PaymentFailed(gateway, request, failure))
            raise

        if response.success:
            await self._dispatcher.publish(PaymentSucceeded(gateway, request, response))
        else:
            await self._dispatcher.publish(PaymentFailed(gateway, request, response))
        return response

    async def refund(self, transaction_id: str, amount: Decimal) -> bool:
        """Refund through the selected gateway; publishes PaymentRefunded on success."""
        if self._gateway is None:
            raise ValueError("Gateway not set. Call using() first.")

        result = await self._gateway.refund(transaction_id, amount)
        if result:
            await self._dispatcher.publish(PaymentRefunded(self._gateway, transaction_id, amount))
        return result

    def reset(self) -> "PaymentContext":
        """Forget gateway and request so the context can be reused."""
        self._gateway = None
        self._request = None
        return self
