"""Gateway contract and the adapters shipped with the package."""

from paykit.gateways.base import BaseGateway, PaymentGateway
from paykit.gateways.manual import ManualGateway
from paykit.gateways.payfast import PayFastGateway
from paykit.gateways.stripe_gateway import StripeGateway

# Provider key -> adapter class, registered by default in every GatewayRegistry
BUILTIN_GATEWAYS: dict[str, type[PaymentGateway]] = {
    "manual": ManualGateway,
    "payfast": PayFastGateway,
    "stripe": StripeGateway,
}

__all__ = [
    "BUILTIN_GATEWAYS",
    "BaseGateway",
    "ManualGateway",
    "PayFastGateway",
    "PaymentGateway",
    "StripeGateway",
]
