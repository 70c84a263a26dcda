"""TRMNL API models."""

from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field


class DisplayResponse(BaseModel):
    """Response for /api/display endpoint."""

    status: str = "ok"
    message: Optional[str] = None
    image_url: Optional[str] = None
    filename: Optional[str] = None
    refresh_rate: Optional[int] = None
    friendly_id: Optional[str] = None
    auth_method: Optional[str] = None
    update_firmware: bool = False
    firmware_url: Optional[str] = None
    reset_firmware: bool = False
    special_function: str = "sleep"
    image_url_timeout: int = 30


class SetupRequest(BaseModel):
    """Optional body of /api/setup."""

    model_config = ConfigDict(extra="ignore")

    firmware_version: Optional[str] = None
    device_name: Optional[str] = None
    screen: Optional[str] = None
    timezone: Optional[str] = None


class SetupResponse(BaseModel):
    """Response for /api/setup endpoint. The API key is only sent on creation."""

    status: str = "created"
    friendly_id: str
    device: dict[str, Any]
    image_url: str
    message: str = "Welcome to TRMNL BYOS"
    api_key: Optional[str] = None


class DeviceLogRequest(BaseModel):
    """Device log from /api/log endpoint."""

    model_config = ConfigDict(extra="allow")

    level: str = "info"
    message: Optional[str] = None
    log_data: dict[str, Any] = Field(default_factory=dict)

    # Telemetry some firmware versions send in the body instead of headers
    battery_voltage: Optional[float] = None
    rssi: Optional[int] = None
    firmware_version: Optional[str] = None


class LogResponse(BaseModel):
    """Response for /api/log endpoint."""

    status: str = "ok"
    message: str = "Log entry recorded successfully"


class DeviceStatus(BaseModel):
    """Telemetry reported by a device on contact. Unset fields are left alone."""

    battery_voltage: Optional[float] = None
    firmware_version: Optional[str] = None
    rssi: Optional[int] = None


class Device(BaseModel):
    """Device record."""

    id: int
    mac_address: str
    api_key: str
    friendly_id: str
    name: str
    screen: str = "default"
    timezone: str = "UTC"
    refresh_schedule: str = "300"
    firmware_version: Optional[str] = None
    battery_voltage: Optional[float] = None
    rssi: Optional[int] = None
    last_seen_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime

    def public(self) -> dict:
        """Serializable view without the API key."""
        return self.model_dump(mode="json", exclude={"api_key"})


class Screen(BaseModel):
    """Content assigned to a device."""

    id: int
    device_id: int
    name: str
    type: str
    config: dict[str, Any] = Field(default_factory=dict)
    is_active: bool = True
    created_at: datetime
    updated_at: datetime
