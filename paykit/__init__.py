"""Provider-agnostic payments: one contract for pay, verify and refund."""

from paykit.config import GatewaySettings, Settings, get_settings
from paykit.core.exceptions import (
    GatewayNotFoundError,
    InvalidSignatureError,
    PaymentError,
    RefundError,
)
from paykit.events import (
    EventDispatcher,
    PaymentEvent,
    PaymentFailed,
    PaymentInitiated,
    PaymentRefunded,
    PaymentSucceeded,
)
from paykit.gateways.base import BaseGateway, PaymentGateway
from paykit.schemas.payment import (
    PaymentRequest,
    PaymentResponse,
    PaymentStatus,
    WebhookPayload,
)
from paykit.services import GatewayRegistry, PaymentContext, PaymentManager

__version__ = "1.0.0"

__all__ = [
    "BaseGateway",
    "EventDispatcher",
    "GatewayNotFoundError",
    "GatewayRegistry",
    "GatewaySettings",
    "InvalidSignatureError",
    "PaymentContext",
    "PaymentError",
    "PaymentEvent",
    "PaymentFailed",
    "PaymentGateway",
    "PaymentInitiated",
    "PaymentManager",
    "PaymentRefunded",
    "PaymentRequest",
    "PaymentResponse",
    "PaymentStatus",
    "PaymentSucceeded",
    "RefundError",
    "Settings",
    "WebhookPayload",
    "get_settings",
]
