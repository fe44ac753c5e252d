from decimal import Decimal

import pytest
from pydantic import ValidationError

from paykit.schemas.payment import PaymentRequest


def _raw(**overrides):
    data = {
        "order_id": "ORD-1",
        "amount": "100.00",
        "currency": "usd",
        "customer_email": "a@b.com",
        "callback_url": "https://shop.example.com/return",
    }
    data.update(overrides)
    return data


class TestFromDict:
    def test_builds_request(self):
        request = PaymentRequest.from_dict(_raw(meta={"cart": 7}, custom_data={"ref": "x"}))

        assert request.order_id == "ORD-1"
        assert request.amount == Decimal("100.00")
        assert request.currency == "USD"
        assert request.get_meta("cart") == 7
        assert request.get_meta("missing", "default") == "default"
        assert request.get_custom_data("ref") == "x"

    def test_optional_fields_default(self):
        request = PaymentRequest.from_dict(_raw())

        assert request.callback_url == "https://shop.example.com/return"
        assert request.webhook_url is None
        assert request.meta == {}
        assert request.custom_data == {}

    @pytest.mark.parametrize("amount", ["0", "-1", "-0.01", "NaN"])
    def test_rejects_non_positive_amount(self, amount):
        with pytest.raises(ValidationError):
            PaymentRequest.from_dict(_raw(amount=amount))

    @pytest.mark.parametrize("currency", ["US", "USDT", "U$D", "12A", ""])
    def test_rejects_bad_currency(self, currency):
        with pytest.raises(ValidationError):
            PaymentRequest.from_dict(_raw(currency=currency))

    def test_rejects_empty_order_id(self):
        with pytest.raises(ValidationError):
            PaymentRequest.from_dict(_raw(order_id="   "))

    def test_rejects_bad_email(self):
        with pytest.raises(ValidationError):
            PaymentRequest.from_dict(_raw(customer_email="not-an-email"))

    @pytest.mark.parametrize(
        "field", ["order_id", "amount", "currency", "customer_email", "callback_url"]
    )
    def test_missing_required_field(self, field):
        data = _raw()
        del data[field]
        with pytest.raises(ValidationError):
            PaymentRequest.from_dict(data)

    @pytest.mark.parametrize("callback_url", [None, "", "   "])
    def test_rejects_empty_callback_url(self, callback_url):
        with pytest.raises(ValidationError):
            PaymentRequest.from_dict(_raw(callback_url=callback_url))


class TestPaymentRequest:
    def test_is_immutable(self, payment_request):
        with pytest.raises(ValidationError):
            payment_request.amount = Decimal("1")

    def test_amount_in_cents_rounds_half_up(self):
        request = PaymentRequest.from_dict(_raw(amount="10.005"))

        assert request.amount_in_cents == 1001

    def test_minor_units_for_zero_decimal_currency(self):
        request = PaymentRequest.from_dict(_raw(amount="1500", currency="JPY"))

        assert request.amount_in_minor_units == 1500
        assert request.amount_in_cents == 150000

    def test_to_dict_round_trips(self, payment_request):
        assert PaymentRequest.from_dict(payment_request.to_dict()) == payment_request
