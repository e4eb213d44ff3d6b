"""
Platform adapters.

Import this module to register all built-in adapters with the registry.
"""

from .airbnb import AirbnbAdapter
from .base import (
    BookingPushResult,
    ConnectionResult,
    FetchResult,
    ListingResult,
    NormalizedBooking,
    PlatformAdapter,
)
from .booking_com import BookingComAdapter
from .expedia import ExpediaAdapter
from .other import GenericAdapter
from .registry import (
    ADAPTERS,
    AdapterRegistry,
    Platform,
    get_adapter_class,
    get_adapter_class_or_none,
    is_registered,
    list_platforms,
    register,
)
from .vrbo import VRBOAdapter

__all__ = [
    "ADAPTERS",
    "AdapterRegistry",
    "AirbnbAdapter",
    "BookingComAdapter",
    "BookingPushResult",
    "ConnectionResult",
    "ExpediaAdapter",
    "FetchResult",
    "GenericAdapter",
    "ListingResult",
    "NormalizedBooking",
    "Platform",
    "PlatformAdapter",
    "VRBOAdapter",
    "get_adapter_class",
    "get_adapter_class_or_none",
    "is_registered",
    "list_platforms",
    "register",
]
