"""Payment lifecycle events.

Events are plain dataclasses published through an ``EventDispatcher``.
How they travel further (logs, a message bus, a task queue) is up to the
listeners the host subscribes.
"""

from __future__ import annotations

import inspect
import logging
import uuid
from collections import defaultdict
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime
from decimal import Decimal
from typing import TYPE_CHECKING, Any, Union

if TYPE_CHECKING:
    from paykit.gateways.base import PaymentGateway
    from paykit.schemas.payment import PaymentRequest, PaymentResponse

logger = logging.getLogger(__name__)


@dataclass
class PaymentEvent:
    gateway: PaymentGateway
    event_id: str = field(default_factory=lambda: str(uuid.uuid4()), kw_only=True)
    occurred_at: datetime = field(default_factory=lambda: datetime.now(UTC), kw_only=True)

    @property
    def gateway_name(self) -> str:
        return self.gateway.gateway_name


@dataclass
class PaymentInitiated(PaymentEvent):
    request: PaymentRequest

    @property
    def order_id(self) -> str:
        return self.request.order_id

    @property
    def amount(self) -> Decimal:
        return self.request.amount

    @property
    def currency(self) -> str:
        return self.request.currency


@dataclass
class PaymentSucceeded(PaymentEvent):
    request: PaymentRequest
    response: PaymentResponse

    @property
    def order_id(self) -> str:
        return self.request.order_id

    @property
    def transaction_id(self) -> str | None:
        return self.response.transaction_id

    @property
    def amount(self) -> Decimal:
        return self.response.amount if self.response.amount is not None else self.request.amount

    @property
    def currency(self) -> str:
        return self.response.currency or self.request.currency

    @property
    def customer_email(self) -> str:
        return self.request.customer_email

    @property
    def gateway_reference(self) -> str | None:
        return self.response.gateway_reference


@dataclass
class PaymentFailed(PaymentEvent):
    request: PaymentRequest
    response: PaymentResponse

    @property
    def order_id(self) -> str:
        return self.request.order_id

    @property
    def transaction_id(self) -> str | None:
        return self.response.transaction_id

    @property
    def error_message(self) -> str | None:
        return self.response.message

    @property
    def amount(self) -> Decimal:
        return self.request.amount

    @property
    def currency(self) -> str:
        return self.request.currency

    @property
    def customer_email(self) -> str:
        return self.request.customer_email

    @property
    def is_validation_error(self) -> bool:
        return self.response.get_data("error_type") == "validation_error"

    @property
    def is_gateway_error(self) -> bool:
        return self.response.get_data("error_type") == "gateway_error"


@dataclass
class PaymentRefunded(PaymentEvent):
    transaction_id: str
    amount: Decimal


Listener = Callable[[PaymentEvent], Union[None, Awaitable[None]]]


class EventDispatcher:
    """Synchronous in-process publish/subscribe.

    Listeners subscribed to a class receive instances of that class and
    its subclasses, so subscribing to ``PaymentEvent`` receives everything.
    Coroutine listeners are awaited in subscription order.
    """

    def __init__(self) -> None:
        self._listeners: dict[type[PaymentEvent], list[Listener]] = defaultdict(list)

    def subscribe(self, event_type: type[PaymentEvent], listener: Listener) -> None:
        self._listeners[event_type].append(listener)

    def unsubscribe(self, event_type: type[PaymentEvent], listener: Listener) -> None:
        listeners = self._listeners.get(event_type, [])
        if listener in listeners:
            listeners.remove(listener)

    def listen(self, event_type: type[PaymentEvent]) -> Callable[[Listener], Listener]:
        """Decorator form of subscribe()."""

        def decorator(listener: Listener) -> Listener:
            self.subscribe(event_type, listener)
            return listener

        return decorator

    def listeners_for(self, event: PaymentEvent) -> list[Listener]:
        return [
            listener
            for event_type, listeners in list(self._listeners.items())
            if isinstance(event, event_type)
            for listener in list(listeners)
        ]

    async def publish(self, event: PaymentEvent) -> None:
        for listener in self.listeners_for(event):
            try:
                result = listener(event)
                if inspect.isawaitable(result):
                    await result
            except Exception:
                # One broken listener must not hide the event from the rest
                logger.exception(
                    f"Listener {getattr(listener, '__name__', listener)!r} failed "
                    f"handling {type(event).__name__} ({event.event_id})"
                )


class EventRecorder:
    """Listener that keeps every event it receives, in order."""

    def __init__(self) -> None:
        self.events: list[PaymentEvent] = []

    def __call__(self, event: PaymentEvent) -> None:
        self.events.append(event)

    def of_type(self, event_type: type[PaymentEvent]) -> list[PaymentEvent]:
        return [e for e in self.events if isinstance(e, event_type)]

    def clear(self) -> None:
        self.events.clear()
