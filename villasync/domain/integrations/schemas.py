"""Integration domain schemas - Pydantic models for validation"""

from datetime import date, datetime
from typing import Any, Optional

from pydantic import BaseModel, field_validator

# API field name -> stored credential key
CREDENTIAL_FIELDS = {
    "apiKey": "api_key",
    "apiSecret": "api_secret",
    "accessToken": "access_token",
    "refreshToken": "refresh_token",
    "clientSecret": "client_secret",
    "password": "password",
    "username": "username",
    "partnerId": "partner_id",
    "hotelId": "hotel_id",
    "propertyId": "property_id",
    "listingId": "listing_id",
}

INTEGRATION_STATUSES = ("pending", "active", "inactive", "error")


class CredentialsInput(BaseModel):
    """Credential bundle as submitted by the dashboard"""

    apiKey: Optional[str] = None
    apiSecret: Optional[str] = None
    accessToken: Optional[str] = None
    refreshToken: Optional[str] = None
    clientSecret: Optional[str] = None
    password: Optional[str] = None
    username: Optional[str] = None
    partnerId: Optional[str] = None
    hotelId: Optional[str] = None
    propertyId: Optional[str] = None
    listingId: Optional[str] = None
    customFields: Optional[dict[str, Any]] = None

    def to_storage(self) -> dict[str, Any]:
        """Plaintext bundle keyed the way adapters and the vault expect"""
        bundle = {
            stored: getattr(self, field)
            for field, stored in CREDENTIAL_FIELDS.items()
            if getattr(self, field)
        }
        if self.customFields:
            bundle["custom_fields"] = self.customFields
        return bundle


def _validate_frequency(v: Optional[float]) -> Optional[float]:
    if v is not None and v <= 0:
        raise ValueError("syncFrequency must be a positive number of hours")
    return v


class IntegrationCreate(BaseModel):
    platform: str
    platformName: Optional[str] = None
    villaId: Optional[int] = None
    credentials: CredentialsInput
    autoSync: bool = True
    syncFrequency: float = 2.0
    notifyEmail: Optional[str] = None

    @field_validator("platform")
    @classmethod
    def normalize_platform(cls, v: str) -> str:
        return v.strip().lower()

    @field_validator("syncFrequency")
    @classmethod
    def validate_frequency(cls, v):
        return _validate_frequency(v)


class IntegrationUpdate(BaseModel):
    platformName: Optional[str] = None
    villaId: Optional[int] = None
    credentials: Optional[CredentialsInput] = None
    autoSync: Optional[bool] = None
    syncFrequency: Optional[float] = None
    status: Optional[str] = None
    notifyEmail: Optional[str] = None

    @field_validator("syncFrequency")
    @classmethod
    def validate_frequency(cls, v):
        return _validate_frequency(v)

    @field_validator("status")
    @classmethod
    def validate_status(cls, v):
        if v is not None and v not in INTEGRATION_STATUSES:
            raise ValueError(f"status must be one of: {', '.join(INTEGRATION_STATUSES)}")
        return v


class IntegrationResponse(BaseModel):
    id: int
    platform: str
    platformName: Optional[str] = None
    villaId: Optional[int] = None
    status: str
    autoSync: bool
    syncFrequency: float
    lastSync: Optional[datetime] = None
    lastSyncResult: Optional[dict[str, Any]] = None
    totalBookingsSynced: int = 0
    consecutiveFailures: int = 0
    errorMessage: Optional[str] = None
    healthStatus: str = "unknown"
    healthMessage: Optional[str] = None
    lastHealthCheck: Optional[datetime] = None
    notifyEmail: Optional[str] = None
    credentials: dict[str, Any] = {}
    createdAt: Optional[datetime] = None


class ConnectionTestResponse(BaseModel):
    success: bool
    message: str = ""


class AvailabilityUpdateRequest(BaseModel):
    villaId: int
    dates: list[date]
    available: bool = False


class PlatformOperationResult(BaseModel):
    platform: str
    integrationId: int
    success: bool
    listingId: Optional[str] = None
    url: Optional[str] = None
    message: Optional[str] = None
    error: Optional[str] = None


class PublishListingRequest(BaseModel):
    villaId: int
