"""Payment request/response schemas shared by every gateway."""

import json
from collections.abc import Hashable, Mapping
from decimal import ROUND_HALF_UP, Decimal
from enum import Enum
from typing import Any

from pydantic import (
    BaseModel,
    ConfigDict,
    EmailStr,
    Field,
    field_validator,
    model_validator,
)

# ISO 4217 currencies without a minor unit
ZERO_DECIMAL_CURRENCIES = frozenset(
    {
        "BIF", "CLP", "DJF", "GNF", "ISK", "JPY", "KMF", "KRW", "PYG",
        "RWF", "UGX", "UYI", "VND", "VUV", "XAF", "XOF", "XPF",
    }
)


class PaymentStatus(str, Enum):
    """Normalized payment status shared by all providers."""

    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"
    REFUNDED = "refunded"
    PARTIALLY_REFUNDED = "partially_refunded"
    EXPIRED = "expired"
    AUTHORIZED = "authorized"
    PROCESSING = "processing"
    DISPUTED = "disputed"
    REVERSED = "reversed"
    UNKNOWN = "unknown"

    @classmethod
    def _missing_(cls, value: object) -> "PaymentStatus":
        if isinstance(value, str):
            lowered = value.strip().lower()
            for member in cls:
                if member.value == lowered:
                    return member
        return cls.UNKNOWN

    @classmethod
    def from_provider(
        cls, code: Any, table: Mapping[Any, "PaymentStatus"]
    ) -> "PaymentStatus":
        """Translate a provider status code through ``table``.

        String codes are matched case-insensitively. Anything not in the
        table resolves to UNKNOWN.
        """
        if code is None or not isinstance(code, Hashable):
            return cls.UNKNOWN
        try:
            if code in table:
                return cls(table[code])
        except TypeError:
            # tuples holding lists pass the Hashable check but fail to hash
            return cls.UNKNOWN
        if isinstance(code, str):
            lowered = code.strip().lower()
            for key, value in table.items():
                if isinstance(key, str) and key.lower() == lowered:
                    return cls(value)
        return cls.UNKNOWN

    @property
    def is_success(self) -> bool:
        return self in SUCCESS_STATUSES


SUCCESS_STATUSES = frozenset(
    {PaymentStatus.COMPLETED, PaymentStatus.AUTHORIZED, PaymentStatus.PROCESSING}
)


class PaymentRequest(BaseModel):
    """One intended payment.

    ``order_id`` doubles as the idempotency key: adapters must never reuse
    one identifier for two distinct charges.
    """

    model_config = ConfigDict(frozen=True, str_strip_whitespace=True)

    order_id: str = Field(..., min_length=1, max_length=255)
    amount: Decimal = Field(..., gt=0)
    currency: str = Field(..., min_length=3, max_length=3)
    customer_email: EmailStr
    callback_url: str = Field(..., min_length=1)
    webhook_url: str | None = None
    meta: dict[str, Any] = Field(default_factory=dict)
    customer_name: str | None = Field(None, max_length=255)
    customer_phone: str | None = Field(None, max_length=50)
    description: str | None = None
    custom_data: dict[str, Any] = Field(default_factory=dict)

    @field_validator("currency")
    @classmethod
    def validate_currency(cls, v: str) -> str:
        if not v.isalpha() or not v.isascii():
            raise ValueError("Currency must be a 3-letter ISO 4217 code")
        return v.upper()

    @field_validator("amount")
    @classmethod
    def validate_amount(cls, v: Decimal) -> Decimal:
        if not v.is_finite():
            raise ValueError("Amount must be a finite number")
        return v

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "PaymentRequest":
        """Build a request from a raw mapping.

        Raises pydantic.ValidationError when the mapping is invalid.
        """
        return cls.model_validate(dict(data))

    def to_dict(self) -> dict[str, Any]:
        return self.model_dump()

    @property
    def amount_in_cents(self) -> int:
        """Amount * 100, rounded half-up."""
        return int((self.amount * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))

    @property
    def amount_in_minor_units(self) -> int:
        """Amount in the currency's smallest unit (JPY has none)."""
        if self.currency in ZERO_DECIMAL_CURRENCIES:
            return int(self.amount.quantize(Decimal("1"), rounding=ROUND_HALF_UP))
        return self.amount_in_cents

    def get_meta(self, key: str, default: Any = None) -> Any:
        return self.meta.get(key, default)

    def get_custom_data(self, key: str, default: Any = None) -> Any:
        return self.custom_data.get(key, default)


class PaymentResponse(BaseModel):
    """One normalized outcome of pay(), verify() or a status query."""

    model_config = ConfigDict(frozen=True)

    success: bool
    status: PaymentStatus = PaymentStatus.UNKNOWN
    transaction_id: str | None = None
    redirect_url: str | None = None
    message: str | None = None
    data: dict[str, Any] = Field(default_factory=dict)
    gateway_reference: str | None = None
    amount: Decimal | None = None
    currency: str | None = None
    meta: dict[str, Any] = Field(default_factory=dict)

    @field_validator("status", mode="before")
    @classmethod
    def coerce_status(cls, v: Any) -> PaymentStatus:
        if v is None:
            return PaymentStatus.UNKNOWN
        return PaymentStatus(v)

    @field_validator("transaction_id", "gateway_reference", mode="before")
    @classmethod
    def coerce_reference(cls, v: Any) -> str | None:
        if v is None or isinstance(v, str):
            return v
        return str(v)

    @model_validator(mode="after")
    def check_success_status(self) -> "PaymentResponse":
        if self.success and not self.status.is_success:
            raise ValueError(
                f"A successful response cannot have status '{self.status.value}'"
            )
        return self

    @classmethod
    def successful(
        cls,
        transaction_id: str | None = None,
        status: PaymentStatus = PaymentStatus.COMPLETED,
        message: str = "Payment processed successfully",
        data: Mapping[str, Any] | None = None,
        **fields: Any,
    ) -> "PaymentResponse":
        return cls(
            success=True,
            status=status,
            transaction_id=transaction_id,
            message=message,
            data=dict(data or {}),
            **fields,
        )

    @classmethod
    def failure(
        cls,
        message: str,
        status: PaymentStatus = PaymentStatus.FAILED,
        data: Mapping[str, Any] | None = None,
        **fields: Any,
    ) -> "PaymentResponse":
        return cls(
            success=False,
            status=status,
            message=message,
            data=dict(data or {}),
            **fields,
        )

    @classmethod
    def redirect(
        cls,
        url: str,
        transaction_id: str | None = None,
        message: str = "Redirect to payment page",
        data: Mapping[str, Any] | None = None,
        **fields: Any,
    ) -> "PaymentResponse":
        """Session created; the customer must complete it on the provider's page."""
        return cls(
            success=True,
            status=PaymentStatus.PROCESSING,
            redirect_url=url,
            transaction_id=transaction_id,
            message=message,
            data=dict(data or {}),
            **fields,
        )

    @property
    def requires_redirect(self) -> bool:
        return self.success and bool(self.redirect_url)

    def get_data(self, key: str, default: Any = None) -> Any:
        return self.data.get(key, default)

    def get_meta(self, key: str, default: Any = None) -> Any:
        return self.meta.get(key, default)

    def to_dict(self) -> dict[str, Any]:
        """Transport representation (JSON-safe)."""
        return self.model_dump(mode="json")

    def to_json(self) -> str:
        return self.model_dump_json()

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "PaymentResponse":
        return cls.model_validate(dict(data))

    @classmethod
    def from_json(cls, raw: str | bytes) -> "PaymentResponse":
        return cls.model_validate_json(raw)


SIGNATURE_HEADERS = ("signature", "x-signature", "webhook-signature")


class WebhookPayload(BaseModel):
    """One inbound provider notification, as handed over by the transport."""

    model_config = ConfigDict(frozen=True)

    gateway: str
    payload: dict[str, Any] = Field(default_factory=dict)
    signature: str | None = None
    headers: dict[str, Any] = Field(default_factory=dict)
    # Exact bytes the provider signed
    raw_body: bytes | None = None

    @field_validator("gateway")
    @classmethod
    def lowercase_gateway(cls, v: str) -> str:
        return v.lower()

    @field_validator("headers", mode="before")
    @classmethod
    def normalize_headers(cls, v: Any) -> dict[str, Any]:
        if not v:
            return {}
        headers = {}
        for key, value in dict(v).items():
            # Some frameworks hand over every header as a list of values
            if isinstance(value, (list, tuple)):
                value = value[0] if value else None
            headers[str(key).lower()] = value
        return headers

    @classmethod
    def from_request(
        cls,
        gateway: str,
        payload: Mapping[str, Any],
        headers: Mapping[str, Any] | None = None,
        raw_body: bytes | None = None,
        signature_header: str | None = None,
    ) -> "WebhookPayload":
        """Build a payload from an inbound request.

        The signature is read from ``signature_header`` when given, else
        from the first of the conventional signature headers present.
        """
        instance = cls(gateway=gateway, payload=dict(payload), headers=headers or {}, raw_body=raw_body)
        names = (signature_header.lower(),) if signature_header else SIGNATURE_HEADERS
        signature = next((instance.headers[n] for n in names if instance.headers.get(n)), None)
        if signature is None:
            return instance
        return instance.model_copy(update={"signature": str(signature)})

    def get(self, key: str, default: Any = None) -> Any:
        return self.payload.get(key, default)

    def has(self, key: str) -> bool:
        return key in self.payload

    def all(self) -> dict[str, Any]:
        return self.payload

    def get_header(self, key: str, default: Any = None) -> Any:
        return self.headers.get(key.lower(), default)

    @property
    def has_signature(self) -> bool:
        return bool(self.signature)

    @property
    def body(self) -> bytes:
        """Raw body if the transport kept it, else compact JSON of the payload."""
        if self.raw_body is not None:
            return self.raw_body
        return json.dumps(self.payload, separators=(",", ":"), default=str).encode("utf-8")

    def to_dict(self) -> dict[str, Any]:
        return {
            "gateway": self.gateway,
            "payload": self.payload,
            "signature": self.signature,
            "headers": self.headers,
        }
