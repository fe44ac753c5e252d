from decimal import Decimal
from urllib.parse import parse_qsl, urlsplit

import httpx
import pytest

from paykit.core.exceptions import InvalidSignatureError, PaymentError, RefundError
from paykit.core.signature import payfast_signature
from paykit.gateways import PayFastGateway
from paykit.schemas.payment import PaymentStatus, WebhookPayload

pytestmark = pytest.mark.gateways

PASSPHRASE = "jt7NOE43FZPn"


@pytest.fixture
def gateway():
    return PayFastGateway(
        {
            "mode": "sandbox",
            "sandbox": {
                "merchant_id": "10000100",
                "merchant_key": "46f0cd694581a",
                "passphrase": PASSPHRASE,
            },
        }
    )


def _itn(**overrides):
    data = {
        "m_payment_id": "ORD-1",
        "pf_payment_id": "1089250",
        "payment_status": "COMPLETE",
        "item_name": "Order ORD-1",
        "amount_gross": "100.00",
        "amount_fee": "-2.30",
        "amount_net": "97.70",
        "merchant_id": "10000100",
    }
    data.update(overrides)
    data["signature"] = payfast_signature(data, PASSPHRASE)
    return data


def _validation_client(body):
    requests = []

    def handler(request):
        requests.append(request)
        return httpx.Response(200, text=body)

    def factory():
        return httpx.AsyncClient(transport=httpx.MockTransport(handler))

    return factory, requests


class TestPay:
    @pytest.mark.asyncio
    async def test_redirects_to_signed_checkout(self, gateway, payment_request):
        response = await gateway.pay(payment_request)

        assert response.success is True
        assert response.status is PaymentStatus.PROCESSING
        assert response.requires_redirect is True
        assert response.transaction_id == "ORD-1"

        url = urlsplit(response.redirect_url)
        assert f"{url.scheme}://{url.netloc}" == "https://sandbox.payfast.co.za"
        assert url.path == "/eng/process"

        fields = dict(parse_qsl(url.query))
        assert fields["amount"] == "100.00"
        assert fields["m_payment_id"] == "ORD-1"
        assert fields["email_address"] == "a@b.com"
        assert fields["signature"] == payfast_signature(fields, PASSPHRASE)

    @pytest.mark.asyncio
    async def test_live_url(self, gateway, payment_request):
        gateway.set_config({"live": {"merchant_id": "1", "merchant_key": "k"}}).set_mode("live")

        response = await gateway.pay(payment_request)

        assert response.redirect_url.startswith("https://www.payfast.co.za/eng/process?")

    @pytest.mark.asyncio
    async def test_missing_credentials(self, payment_request):
        with pytest.raises(PaymentError, match="merchant_id"):
            await PayFastGateway().pay(payment_request)


class TestVerify:
    @pytest.mark.asyncio
    async def test_completed_itn(self, gateway):
        response = await gateway.verify(_itn())

        assert response.success is True
        assert response.status is PaymentStatus.COMPLETED
        assert response.transaction_id == "1089250"
        assert response.gateway_reference == "ORD-1"
        assert response.amount == Decimal("100.00")

    @pytest.mark.asyncio
    async def test_cancelled_itn(self, gateway):
        response = await gateway.verify(_itn(payment_status="CANCELLED"))

        assert response.success is False
        assert response.status is PaymentStatus.CANCELLED

    @pytest.mark.asyncio
    async def test_tampered_itn(self, gateway):
        itn = _itn()
        itn["amount_gross"] = "1.00"

        with pytest.raises(InvalidSignatureError):
            await gateway.verify(itn)

    @pytest.mark.asyncio
    async def test_blank_optional_field_is_ignored(self, gateway, monkeypatch):
        itn = _itn(custom_str1=None)
        factory, requests = _validation_client("VALID")
        monkeypatch.setattr(gateway, "_create_http_client", factory)
        gateway.set_config({"validate_itn": True})

        response = await gateway.verify(itn)

        assert response.status is PaymentStatus.COMPLETED
        assert b"custom_str1" not in requests[0].content

    @pytest.mark.asyncio
    async def test_server_validation(self, gateway, monkeypatch):
        factory, requests = _validation_client("VALID")
        monkeypatch.setattr(gateway, "_create_http_client", factory)
        gateway.set_config({"validate_itn": True})

        response = await gateway.verify(_itn())

        assert response.success is True
        assert str(requests[0].url) == "https://sandbox.payfast.co.za/eng/query/validate"
        assert b"signature" not in requests[0].content

    @pytest.mark.asyncio
    async def test_server_rejects_itn(self, gateway, monkeypatch):
        factory, _ = _validation_client("INVALID")
        monkeypatch.setattr(gateway, "_create_http_client", factory)
        gateway.set_config({"validate_itn": True})

        with pytest.raises(InvalidSignatureError):
            await gateway.verify(_itn())

    @pytest.mark.asyncio
    async def test_handle_webhook_checks_form_signature(self, gateway):
        webhook = WebhookPayload.from_request("payfast", _itn())

        response = await gateway.handle_webhook(webhook)

        assert response.status is PaymentStatus.COMPLETED

    @pytest.mark.asyncio
    async def test_handle_webhook_without_signature(self, gateway):
        itn = _itn()
        del itn["signature"]

        with pytest.raises(InvalidSignatureError):
            await gateway.handle_webhook(WebhookPayload.from_request("payfast", itn))


@pytest.mark.asyncio
async def test_refunds_not_supported(gateway):
    assert gateway.supports_refund() is False
    with pytest.raises(RefundError):
        await gateway.refund("1089250", Decimal("10"))
