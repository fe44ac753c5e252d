"""Registry, manager and fluent context."""

from paykit.services.gateway_registry import GatewayRegistry
from paykit.services.payment_context import PaymentContext
from paykit.services.payment_manager import PaymentManager

__all__ = ["GatewayRegistry", "PaymentContext", "PaymentManager"]
