from decimal import Decimal

import pytest

from paykit.core.exceptions import InvalidSignatureError, RefundError
from paykit.core.signature import sign_payload
from paykit.gateways import ManualGateway
from paykit.schemas.payment import PaymentStatus

pytestmark = pytest.mark.gateways

SECRET = "whsec_manual"


def _decision(**fields):
    return {**fields, "signature": sign_payload(fields, SECRET)}


@pytest.fixture
def gateway():
    return ManualGateway({"instructions": "IBAN DE00 0000", "webhook_secret": SECRET})


class TestManualGateway:
    @pytest.mark.asyncio
    async def test_pay_awaits_operator(self, gateway, payment_request):
        response = await gateway.pay(payment_request)

        assert response.success is True
        assert response.status is PaymentStatus.PROCESSING
        assert response.transaction_id == "manual_ORD-1"
        assert response.get_data("instructions") == "IBAN DE00 0000"
        assert response.get_data("amount") == Decimal("100.00")
        assert response.requires_redirect is False

    @pytest.mark.asyncio
    async def test_default_instructions(self, payment_request):
        response = await ManualGateway().pay(payment_request)

        assert "bank account" in response.get_data("instructions")

    @pytest.mark.asyncio
    async def test_verify_confirmed(self, gateway):
        response = await gateway.verify(_decision(status="confirmed", transaction_id="manual_ORD-1"))

        assert response.success is True
        assert response.status is PaymentStatus.COMPLETED

    @pytest.mark.asyncio
    async def test_verify_rejected(self, gateway):
        response = await gateway.verify(
            _decision(status="rejected", transaction_id="manual_ORD-1", reason="Receipt unreadable")
        )

        assert response.success is False
        assert response.status is PaymentStatus.FAILED
        assert response.message == "Receipt unreadable"

    @pytest.mark.asyncio
    async def test_unsigned_decision_is_rejected(self, gateway):
        with pytest.raises(InvalidSignatureError):
            await gateway.verify({"status": "confirmed", "transaction_id": "manual_ORD-1"})

    @pytest.mark.asyncio
    async def test_decision_with_altered_status_is_rejected(self, gateway):
        decision = _decision(status="rejected", transaction_id="manual_ORD-1")
        decision["status"] = "confirmed"

        with pytest.raises(InvalidSignatureError):
            await gateway.verify(decision)

    @pytest.mark.asyncio
    async def test_refund(self, gateway):
        assert gateway.supports_refund() is True
        assert await gateway.refund("manual_ORD-1", Decimal("10")) is True

    @pytest.mark.asyncio
    async def test_refund_unknown_transaction(self, gateway):
        with pytest.raises(RefundError):
            await gateway.refund("pi_123", Decimal("10"))

    @pytest.mark.asyncio
    async def test_refund_non_positive_amount(self, gateway):
        with pytest.raises(RefundError):
            await gateway.refund("manual_ORD-1", Decimal("0"))
