"""Base payment gateway interface.

All gateway adapters must implement this interface.
Adapters translate between one provider and the shared schemas; they never
hand provider-native objects back to callers.
"""

import copy
import logging
import secrets
from abc import ABC, abstractmethod
from collections.abc import Mapping
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, ClassVar

import httpx

from paykit.core import signature
from paykit.core.exceptions import InvalidSignatureError, PaymentError, RefundError
from paykit.schemas.payment import (
    PaymentRequest,
    PaymentResponse,
    PaymentStatus,
    WebhookPayload,
)

logger = logging.getLogger(__name__)

SANDBOX = "sandbox"
LIVE = "live"

GENERIC_STATUS_MAP: Mapping[str, PaymentStatus] = {
    "success": PaymentStatus.COMPLETED,
    "succeeded": PaymentStatus.COMPLETED,
    "completed": PaymentStatus.COMPLETED,
    "paid": PaymentStatus.COMPLETED,
    "pending": PaymentStatus.PENDING,
    "processing": PaymentStatus.PROCESSING,
    "authorized": PaymentStatus.AUTHORIZED,
    "failed": PaymentStatus.FAILED,
    "declined": PaymentStatus.FAILED,
    "cancelled": PaymentStatus.CANCELLED,
    "canceled": PaymentStatus.CANCELLED,
    "expired": PaymentStatus.EXPIRED,
    "refunded": PaymentStatus.REFUNDED,
}


class PaymentGateway(ABC):
    """Contract every provider adapter implements."""

    @property
    @abstractmethod
    def gateway_name(self) -> str:
        """Stable lowercase identifier."""
        pass

    @abstractmethod
    async def pay(self, request: PaymentRequest) -> PaymentResponse:
        """Initiate a charge or a hosted payment session.

        Declines and other business outcomes come back as a response with
        ``success=False``; PaymentError is raised only when no meaningful
        response can be produced (missing credentials, unreachable provider).
        """
        pass

    @abstractmethod
    async def verify(self, payload: Mapping[str, Any]) -> PaymentResponse:
        """Normalize a webhook or status query into a PaymentResponse.

        Authenticity is checked before anything in the payload is trusted;
        InvalidSignatureError is raised when the check fails.
        """
        pass

    @abstractmethod
    async def handle_webhook(self, webhook: WebhookPayload) -> PaymentResponse:
        """Authenticate an inbound notification, then normalize it."""
        pass

    @abstractmethod
    async def refund(self, transaction_id: str, amount: Decimal) -> bool:
        """Refund a transaction.

        Raises PaymentError if refunds are unsupported, the transaction is not
        eligible, or the amount exceeds the refundable balance.
        """
        pass

    @abstractmethod
    def supports_refund(self) -> bool:
        pass

    @abstractmethod
    def get_config(self, key: str | None = None, default: Any = None) -> Any:
        pass

    @abstractmethod
    def set_config(self, config: Mapping[str, Any]) -> "PaymentGateway":
        pass

    @property
    @abstractmethod
    def mode(self) -> str:
        pass

    @abstractmethod
    def set_mode(self, mode: str) -> "PaymentGateway":
        pass

    @property
    def is_sandbox(self) -> bool:
        return self.mode == SANDBOX

    @property
    def is_live(self) -> bool:
        return self.mode == LIVE


class BaseGateway(PaymentGateway):
    """Shared adapter behaviour: config access, status mapping, HTTP, webhooks.

    Subclasses set ``name`` and ``STATUS_MAP`` and implement ``pay()``.
    """

    name: ClassVar[str] = ""

    # Provider status code -> shared status; anything else maps to UNKNOWN
    STATUS_MAP: ClassVar[Mapping[Any, PaymentStatus]] = GENERIC_STATUS_MAP

    # Algorithms tried by the default webhook check
    WEBHOOK_ALGORITHMS: ClassVar[tuple[str, ...]] = signature.DEFAULT_ALGORITHMS

    HTTP_TIMEOUT: ClassVar[float] = 30.0

    def __init__(self, config: Mapping[str, Any] | None = None) -> None:
        self._config: dict[str, Any] = copy.deepcopy(dict(config or {}))
        self._mode: str = self._config.get("mode") or SANDBOX
        self._config["mode"] = self._mode

    @property
    def gateway_name(self) -> str:
        return self.name or type(self).__name__.removesuffix("Gateway").lower()

    def __repr__(self) -> str:
        return f"<{type(self).__name__} gateway={self.gateway_name!r} mode={self.mode!r}>"

    # ------------------------------------------------------------------
    # Contract defaults
    # ------------------------------------------------------------------

    async def verify(self, payload: Mapping[str, Any]) -> PaymentResponse:
        """Check the signature field of the payload, then normalize it."""
        if not signature.verify_payload(payload, self.webhook_secret):
            self._log(logging.WARNING, "Payload signature verification failed")
            raise InvalidSignatureError.for_gateway(self.gateway_name)
        return await self.process_verified(payload)

    async def process_verified(self, payload: Mapping[str, Any]) -> PaymentResponse:
        """Normalize a payload whose authenticity is already established."""
        return self.parse_webhook_payload(payload)

    async def refund(self, transaction_id: str, amount: Decimal) -> bool:
        raise RefundError.not_supported(self.gateway_name)

    def supports_refund(self) -> bool:
        return False

    # ------------------------------------------------------------------
    # Configuration
    # ------------------------------------------------------------------

    def get_config(self, key: str | None = None, default: Any = None) -> Any:
        """Read a config value; dotted keys walk nested mappings."""
        if key is None:
            return self._config

        value: Any = self._config
        for part in key.split("."):
            if not isinstance(value, Mapping) or part not in value:
                return default
            value = value[part]
        return default if value is None else value

    def set_config(self, config: Mapping[str, Any]) -> "BaseGateway":
        self._config.update(copy.deepcopy(dict(config)))
        self._mode = self._config.get("mode") or SANDBOX
        self._config["mode"] = self._mode
        return self

    @property
    def mode(self) -> str:
        return self._mode

    def set_mode(self, mode: str) -> "BaseGateway":
        if mode not in (SANDBOX, LIVE):
            raise PaymentError.configuration(self.gateway_name, f"Unknown mode '{mode}'")
        self._mode = mode
        self._config["mode"] = mode
        return self

    def get_mode_config(self, key: str, default: Any = None) -> Any:
        """Read ``key`` from the credential bundle of the current mode."""
        return self.get_config(f"{self._mode}.{key}", default)

    def require_mode_config(self, key: str) -> Any:
        value = self.get_mode_config(key)
        if value in (None, ""):
            raise PaymentError.configuration(
                self.gateway_name, f"Missing '{key}' for {self._mode} mode"
            )
        return value

    @property
    def webhook_secret(self) -> str | None:
        return self.get_config("webhook_secret") or self.get_mode_config("webhook_secret")

    # ------------------------------------------------------------------
    # Status and amounts
    # ------------------------------------------------------------------

    def map_status(self, code: Any) -> PaymentStatus:
        status = PaymentStatus.from_provider(code, self.STATUS_MAP)
        if status is PaymentStatus.UNKNOWN and code is not None:
            self._log(logging.WARNING, f"Unmapped provider status {code!r}")
        return status

    def format_amount(self, amount: Decimal) -> int:
        """Amount in cents; override for providers that take decimals."""
        return int((Decimal(amount) * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))

    def generate_order_id(self) -> str:
        return f"order_{secrets.token_hex(8)}"

    # ------------------------------------------------------------------
    # Webhooks
    # ------------------------------------------------------------------

    def parse_webhook_payload(self, payload: Mapping[str, Any]) -> PaymentResponse:
        """Generic webhook normalization for adapters without their own."""
        status = self.map_status(payload.get("status"))
        transaction_id = payload.get("transaction_id") or payload.get("id")
        if status.is_success:
            return PaymentResponse.successful(
                transaction_id=transaction_id,
                status=status,
                message="Payment verified",
                data=payload,
            )
        return PaymentResponse.failure(
            f"Payment status: {status.value}",
            status=status,
            transaction_id=transaction_id,
            data=payload,
        )

    def validate_webhook_signature(self, webhook: WebhookPayload) -> bool:
        """HMAC of the body against the webhook secret; fails closed."""
        secret = self.webhook_secret
        if not secret or not webhook.has_signature:
            return False
        return signature.verify_webhook(
            webhook.body, webhook.signature, secret, self.WEBHOOK_ALGORITHMS
        )

    async def handle_webhook(self, webhook: WebhookPayload) -> PaymentResponse:
        """Authenticate an inbound notification, then normalize it."""
        if not self.validate_webhook_signature(webhook):
            self._log(logging.WARNING, "Webhook signature verification failed")
            raise InvalidSignatureError.for_gateway(self.gateway_name)
        return await self.process_verified(webhook.payload)

    # ------------------------------------------------------------------
    # HTTP
    # ------------------------------------------------------------------

    def get_endpoint(self, path: str) -> str:
        base_url = self.get_config("api_base_url") or self.get_mode_config("api_base_url")
        if not base_url:
            raise PaymentError.configuration(self.gateway_name, "API base URL not configured")
        return f"{str(base_url).rstrip('/')}/{path.lstrip('/')}"

    def _create_http_client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            timeout=self.HTTP_TIMEOUT,
            headers={
                "Accept": "application/json",
                "User-Agent": "paykit/1.0.0",
            },
        )

    async def _request(self, method: str, url: str, **kwargs: Any) -> dict[str, Any]:
        """Send a request and return the decoded JSON body.

        Transport failures, HTTP errors and non-JSON bodies all become
        PaymentError.
        """
        try:
            async with self._create_http_client() as client:
                response = await client.request(method, url, **kwargs)
        except httpx.TimeoutException as e:
            raise PaymentError.network(self.gateway_name, f"Request timed out: {e}") from e
        except httpx.HTTPError as e:
            raise PaymentError.network(self.gateway_name, f"HTTP request failed: {e}") from e

        try:
            data = response.json()
        except ValueError as e:
            raise PaymentError.gateway_error(
                self.gateway_name, f"Invalid JSON response (HTTP {response.status_code})"
            ) from e

        if response.is_error:
            message = data.get("message") if isinstance(data, dict) else None
            raise PaymentError.gateway_error(
                self.gateway_name, message or f"HTTP {response.status_code}"
            )

        if not isinstance(data, dict):
            return {"data": data}
        return data

    def handle_error(self, response: Mapping[str, Any]) -> None:
        """Raise PaymentError built from a provider error body."""
        message = response.get("message") or "Unknown error occurred"
        errors = response.get("errors")
        if errors:
            if isinstance(errors, (list, tuple)):
                errors = ", ".join(str(e) for e in errors)
            message = f"{message}: {errors}"
        raise PaymentError.gateway_error(self.gateway_name, message)

    def _log(self, level: int, message: str, **context: Any) -> None:
        context["gateway"] = self.gateway_name
        context["mode"] = self._mode
        details = " ".join(f"{k}={v}" for k, v in context.items())
        logger.log(level, f"[Payments] {message} ({details})")
