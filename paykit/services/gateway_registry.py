"""Gateway registry.

Maps a provider key to an adapter implementation and builds each adapter
lazily, once, with its resolved configuration.
"""

import inspect
import logging
import threading
from collections.abc import Callable, Mapping
from typing import Any, Union

from paykit.config import Settings, get_settings
from paykit.core.exceptions import GatewayNotFoundError
from paykit.gateways import BUILTIN_GATEWAYS
from paykit.gateways.base import PaymentGateway

logger = logging.getLogger(__name__)

GatewayFactory = Callable[[dict[str, Any]], PaymentGateway]
GatewayImplementation = Union[type[PaymentGateway], GatewayFactory]


class GatewayRegistry:
    """Resolve provider names to cached adapter instances.

    Resolution is safe under concurrent first use: each key has its own lock
    and at most one instance is ever constructed per key.
    """

    def __init__(
        self,
        settings: Settings | None = None,
        gateways: Mapping[str, GatewayImplementation] | None = None,
    ) -> None:
        self._settings = settings or get_settings()
        source = BUILTIN_GATEWAYS if gateways is None else gateways
        self._gateway_classes: dict[str, GatewayImplementation] = {
            name.lower(): implementation for name, implementation in source.items()
        }
        self._instances: dict[str, PaymentGateway] = {}
        self._locks: dict[str, threading.Lock] = {}
        self._registry_lock = threading.Lock()

    @property
    def settings(self) -> Settings:
        return self._settings

    def _lock_for(self, name: str) -> threading.Lock:
        with self._registry_lock:
            return self._locks.setdefault(name, threading.Lock())

    def resolve(self, name: str) -> PaymentGateway:
        """Return the adapter for ``name``, constructing it on first use.

        Raises:
            GatewayNotFoundError: unknown name, or an implementation that
                does not produce a PaymentGateway
        """
        name = name.lower()

        instance = self._instances.get(name)
        if instance is not None:
            return instance

        with self._lock_for(name):
            instance = self._instances.get(name)
            if instance is not None:
                return instance

            implementation = self._gateway_classes.get(name)
            if implementation is None:
                raise GatewayNotFoundError(name, f"Gateway '{name}' not found")

            instance = self._build(name, implementation)
            self._instances[name] = instance
            logger.info(f"Gateway '{name}' resolved to {type(instance).__name__} ({instance.mode})")
            return instance

    def _build(self, name: str, implementation: GatewayImplementation) -> PaymentGateway:
        if inspect.isclass(implementation):
            if not issubclass(implementation, PaymentGateway):
                raise GatewayNotFoundError(
                    name, f"Gateway '{implementation.__name__}' must implement PaymentGateway"
                )
            if inspect.isabstract(implementation):
                raise GatewayNotFoundError(
                    name, f"Gateway '{implementation.__name__}' does not implement the full contract"
                )
        elif not callable(implementation):
            raise GatewayNotFoundError(name, f"Gateway '{name}' is not a class or factory")

        instance = implementation(self._get_gateway_config(name))

        if not isinstance(instance, PaymentGateway):
            raise GatewayNotFoundError(
                name, f"Gateway '{name}' must implement PaymentGateway, got {type(instance).__name__}"
            )
        return instance

    def _get_gateway_config(self, name: str) -> dict[str, Any]:
        """Provider block merged with the base mode."""
        block = self._settings.gateways.get(name)
        config = block.model_dump() if block is not None else {}
        config["mode"] = config.get("mode") or self._settings.mode
        return config

    def get_available_gateways(self) -> list[str]:
        return list(self._gateway_classes)

    def has_gateway(self, name: str) -> bool:
        return name.lower() in self._gateway_classes

    def register_gateway(self, name: str, implementation: GatewayImplementation) -> None:
        """Add or replace a provider; any cached instance is dropped."""
        name = name.lower()
        with self._lock_for(name):
            self._gateway_classes[name] = implementation
            self._instances.pop(name, None)
        logger.info(f"Gateway '{name}' registered")

    def get_gateway_class(self, name: str) -> GatewayImplementation | None:
        return self._gateway_classes.get(name.lower())

    def forget(self, name: str) -> None:
        """Drop the cached instance for one provider."""
        name = name.lower()
        with self._lock_for(name):
            self._instances.pop(name, None)

    def clear_cache(self) -> None:
        with self._registry_lock:
            names = list(self._instances)
        for name in names:
            self.forget(name)

    def all(self) -> dict[str, GatewayImplementation]:
        return dict(self._gateway_classes)
