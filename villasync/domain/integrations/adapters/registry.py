"""
Adapter registry - maps a platform key to its adapter class.

Selection is a lookup; call sites never branch on platform identity.
"""

from enum import Enum
from typing import Callable, Optional

from ...sync.exceptions import UnknownPlatformError
from .base import PlatformAdapter


class Platform(str, Enum):
    AIRBNB = "airbnb"
    BOOKING_COM = "booking_com"
    VRBO = "vrbo"
    EXPEDIA = "expedia"
    OTHER = "other"


class AdapterRegistry:
    """Registry of adapter classes keyed by platform"""

    def __init__(self):
        self._adapters: dict[str, type[PlatformAdapter]] = {}

    def register(self, platform: str) -> Callable[[type[PlatformAdapter]], type[PlatformAdapter]]:
        """
        Decorator to register an adapter class.

        Usage:
            @register("airbnb")
            class AirbnbAdapter(PlatformAdapter):
                ...
        """
        key = platform.value if isinstance(platform, Platform) else platform

        def decorator(cls: type[PlatformAdapter]) -> type[PlatformAdapter]:
            if key in self._adapters:
                raise ValueError(f"Adapter '{key}' is already registered")
            self._adapters[key] = cls
            return cls

        return decorator

    def get(self, platform: str) -> type[PlatformAdapter]:
        """
        Get an adapter class by platform key.

        Raises:
            UnknownPlatformError: If no adapter is registered for the platform
        """
        cls = self._adapters.get(platform)
        if cls is None:
            raise UnknownPlatformError(platform)
        return cls

    def get_or_none(self, platform: str) -> Optional[type[PlatformAdapter]]:
        return self._adapters.get(platform)

    def platforms(self) -> list[str]:
        return list(self._adapters.keys())

    def __contains__(self, platform: str) -> bool:
        return platform in self._adapters


# Global registry of built-in adapters
ADAPTERS = AdapterRegistry()

register = ADAPTERS.register


def get_adapter_class(platform: str) -> type[PlatformAdapter]:
    return ADAPTERS.get(platform)


def get_adapter_class_or_none(platform: str) -> Optional[type[PlatformAdapter]]:
    return ADAPTERS.get_or_none(platform)


def list_platforms() -> list[str]:
    return ADAPTERS.platforms()


def is_registered(platform: str) -> bool:
    return platform in ADAPTERS
