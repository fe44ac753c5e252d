"""Payment configuration via pydantic-settings."""

from __future__ import annotations

from functools import lru_cache
from typing import Any, Dict, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

Mode = Literal["sandbox", "live"]


class GatewaySettings(BaseModel):
    """Configuration block for a single provider.

    Credentials live in two bundles, one per mode. Anything else a provider
    needs (``api_base_url``, ``merchant_id`` ...) is kept as an extra field.
    """

    model_config = ConfigDict(extra="allow")

    mode: Optional[Mode] = None
    sandbox: Dict[str, Any] = Field(default_factory=dict)
    live: Dict[str, Any] = Field(default_factory=dict)
    webhook_secret: Optional[str] = None


class Settings(BaseSettings):
    """Payment settings loaded from environment variables.

    Nested values use a double underscore, e.g.
    ``PAYMENTS_GATEWAYS__STRIPE__SANDBOX__SECRET_KEY``.
    """

    model_config = SettingsConfigDict(
        env_prefix="PAYMENTS_",
        env_file=".env",
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
        case_sensitive=False,
        extra="ignore",
    )

    # Provider used by PaymentManager.pay_with_default()
    default_gateway: Optional[str] = None

    # Base mode, overridden per provider by GatewaySettings.mode
    mode: Mode = "sandbox"

    gateways: Dict[str, GatewaySettings] = Field(default_factory=dict)

    # Where hosts conventionally mount webhook endpoints
    webhook_prefix: str = "payments/webhook"

    # Level applied by paykit.core.logging.configure_logging()
    log_level: str = "INFO"

    @field_validator("gateways", mode="before")
    @classmethod
    def lowercase_gateway_keys(cls, v: Any) -> Any:
        if isinstance(v, dict):
            return {str(k).lower(): block for k, block in v.items()}
        return v

    @field_validator("default_gateway")
    @classmethod
    def lowercase_default_gateway(cls, v: Optional[str]) -> Optional[str]:
        return v.lower() if v else None

    def webhook_path(self, gateway: str) -> str:
        """Path a host would expose for a provider's webhooks."""
        return f"/{self.webhook_prefix.strip('/')}/{gateway.lower()}"


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
