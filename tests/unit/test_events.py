from datetime import datetime
from decimal import Decimal

import pytest

from paykit.events import (
    EventDispatcher,
    EventRecorder,
    PaymentEvent,
    PaymentFailed,
    PaymentInitiated,
    PaymentRefunded,
    PaymentSucceeded,
)
from paykit.schemas.payment import PaymentResponse


class TestEvents:
    def test_initiated(self, stub, payment_request):
        event = PaymentInitiated(stub, payment_request)

        assert event.gateway_name == "stub"
        assert event.order_id == "ORD-1"
        assert event.amount == Decimal("100.00")
        assert event.currency == "USD"
        assert isinstance(event.occurred_at, datetime)
        assert event.event_id

    def test_event_ids_are_unique(self, stub, payment_request):
        assert PaymentInitiated(stub, payment_request).event_id != PaymentInitiated(stub, payment_request).event_id

    def test_succeeded_prefers_response_amount(self, stub, payment_request):
        response = PaymentResponse.successful(
            transaction_id="t1", amount=Decimal("99.00"), currency="EUR", gateway_reference="ref"
        )
        event = PaymentSucceeded(stub, payment_request, response)

        assert event.amount == Decimal("99.00")
        assert event.currency == "EUR"
        assert event.gateway_reference == "ref"

    def test_succeeded_falls_back_to_request(self, stub, payment_request):
        event = PaymentSucceeded(stub, payment_request, PaymentResponse.successful(transaction_id="t1"))

        assert event.amount == Decimal("100.00")
        assert event.currency == "USD"

    def test_failed_error_type(self, stub, payment_request):
        response = PaymentResponse.failure("bad", data={"error_type": "validation_error"})
        event = PaymentFailed(stub, payment_request, response)

        assert event.is_validation_error is True
        assert event.is_gateway_error is False
        assert event.error_message == "bad"

    def test_refunded(self, stub):
        event = PaymentRefunded(stub, "t1", Decimal("5"))

        assert event.transaction_id == "t1"
        assert event.amount == Decimal("5")


class TestEventDispatcher:
    @pytest.mark.asyncio
    async def test_subscribers_receive_subclasses(self, stub):
        dispatcher = EventDispatcher()
        everything = EventRecorder()
        refunds = EventRecorder()
        dispatcher.subscribe(PaymentEvent, everything)
        dispatcher.subscribe(PaymentRefunded, refunds)

        await dispatcher.publish(PaymentRefunded(stub, "t1", Decimal("1")))

        assert len(everything.events) == 1
        assert len(refunds.events) == 1

    @pytest.mark.asyncio
    async def test_unrelated_subscribers_are_skipped(self, stub):
        dispatcher = EventDispatcher()
        recorder = EventRecorder()
        dispatcher.subscribe(PaymentSucceeded, recorder)

        await dispatcher.publish(PaymentRefunded(stub, "t1", Decimal("1")))

        assert recorder.events == []

    @pytest.mark.asyncio
    async def test_async_listeners_are_awaited(self, stub):
        dispatcher = EventDispatcher()
        seen = []

        @dispatcher.listen(PaymentRefunded)
        async def on_refund(event):
            seen.append(event.transaction_id)

        await dispatcher.publish(PaymentRefunded(stub, "t1", Decimal("1")))

        assert seen == ["t1"]

    @pytest.mark.asyncio
    async def test_failing_listener_is_logged_and_others_still_run(self, stub, caplog):
        dispatcher = EventDispatcher()
        recorder = EventRecorder()

        def broken(event):
            raise RuntimeError("boom")

        dispatcher.subscribe(PaymentEvent, broken)
        dispatcher.subscribe(PaymentEvent, recorder)

        await dispatcher.publish(PaymentRefunded(stub, "t1", Decimal("1")))

        assert len(recorder.events) == 1
        assert "broken" in caplog.text

    @pytest.mark.asyncio
    async def test_unsubscribe(self, stub):
        dispatcher = EventDispatcher()
        recorder = EventRecorder()
        dispatcher.subscribe(PaymentEvent, recorder)
        dispatcher.unsubscribe(PaymentEvent, recorder)
        dispatcher.unsubscribe(PaymentSucceeded, recorder)

        await dispatcher.publish(PaymentRefunded(stub, "t1", Decimal("1")))

        assert recorder.events == []


def test_recorder_clear(stub):
    recorder = EventRecorder()
    recorder(PaymentRefunded(stub, "t1", Decimal("1")))
    recorder.clear()

    assert recorder.events == []
