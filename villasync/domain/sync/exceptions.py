"""Sync and calendar error taxonomy"""


class SyncError(Exception):
    """Base class for synchronization failures"""


class ConfigurationError(SyncError):
    """Missing or invalid integration setup; fatal to a single sync attempt"""


class UnknownPlatformError(ConfigurationError):
    def __init__(self, platform: str):
        self.platform = platform
        super().__init__(f"Unknown platform: {platform}")


class ConnectivityError(SyncError):
    """Adapter connection or fetch failure; retried on the next scheduled tick"""


class ResyncError(SyncError):
    """A single booking could not be refreshed from its platform"""


class SyncInProgressError(SyncError):
    """Another sync batch already holds the scheduler gate"""

    def __init__(self, holder: str = ""):
        self.holder = holder
        message = "Another sync is already in progress"
        if holder:
            message = f"{message} ({holder})"
        super().__init__(message)


class ICalError(Exception):
    """Base class for calendar import/export failures"""


class VillaNotFoundError(ICalError):
    def __init__(self, villa_id):
        self.villa_id = villa_id
        super().__init__(f"Villa not found: {villa_id}")


class InvalidICalUrlError(ICalError):
    """The URL does not look like a reachable calendar feed"""


class ICalFetchError(ICalError):
    """Timeout, HTTP error or oversized body while fetching a feed"""
