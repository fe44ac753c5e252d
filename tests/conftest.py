from collections.abc import Mapping
from decimal import Decimal
from typing import Any

import pytest

from paykit.config import Settings
from paykit.core.signature import sign_payload
from paykit.events import EventDispatcher, EventRecorder, PaymentEvent
from paykit.gateways.base import BaseGateway
from paykit.schemas.payment import PaymentRequest, PaymentResponse, PaymentStatus
from paykit.services import GatewayRegistry, PaymentManager


def signed(payload: Mapping[str, Any], secret: str = "whsec_stub") -> dict[str, Any]:
    """Copy of ``payload`` carrying its ``signature`` field."""
    return {**payload, "signature": sign_payload(payload, secret)}


class StubGateway(BaseGateway):
    """In-memory adapter with a scripted outcome."""

    name = "stub"

    STATUS_MAP = {
        "ok": PaymentStatus.COMPLETED,
        "declined": PaymentStatus.FAILED,
        "waiting": PaymentStatus.PENDING,
    }

    def __init__(self, config: Mapping[str, Any] | None = None) -> None:
        super().__init__(config)
        self.should_succeed = True
        self.error: Exception | None = None
        self.refunds_supported = True
        self.calls: list[tuple[str, Any]] = []

    async def pay(self, request: PaymentRequest) -> PaymentResponse:
        self.calls.append(("pay", request))
        if self.error is not None:
            raise self.error
        data = {"amount": request.amount, "currency": request.currency}
        if self.should_succeed:
            return PaymentResponse.successful(
                transaction_id=f"stub_{request.order_id}",
                data=data,
                amount=request.amount,
                currency=request.currency,
            )
        return PaymentResponse.failure("Card declined", data=data)

    async def process_verified(self, payload: Mapping[str, Any]) -> PaymentResponse:
        self.calls.append(("verify", payload))
        if self.error is not None:
            raise self.error
        return self.parse_webhook_payload(payload)

    def supports_refund(self) -> bool:
        return self.refunds_supported

    async def refund(self, transaction_id: str, amount: Decimal) -> bool:
        self.calls.append(("refund", (transaction_id, amount)))
        if self.error is not None:
            raise self.error
        return True


@pytest.fixture
def settings():
    return Settings(
        _env_file=None,
        mode="sandbox",
        gateways={
            "stub": {"webhook_secret": "whsec_stub", "sandbox": {"api_key": "sk_test"}},
            "manual": {"webhook_secret": "whsec_manual"},
        },
    )


@pytest.fixture
def registry(settings):
    registry = GatewayRegistry(settings=settings)
    registry.register_gateway("stub", StubGateway)
    return registry


@pytest.fixture
def stub(registry) -> StubGateway:
    return registry.resolve("stub")


@pytest.fixture
def manager(registry):
    return PaymentManager(registry)


@pytest.fixture
def dispatcher():
    return EventDispatcher()


@pytest.fixture
def recorder(dispatcher):
    recorder = EventRecorder()
    dispatcher.subscribe(PaymentEvent, recorder)
    return recorder


@pytest.fixture
def payment_request():
    return PaymentRequest(
        order_id="ORD-1",
        amount=Decimal("100.00"),
        currency="USD",
        customer_email="a@b.com",
        callback_url="https://shop.example.com/return",
    )
