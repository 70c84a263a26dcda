"""Device authentication and auto-registration."""

import logging
import sqlite3
from dataclasses import dataclass, field
from typing import Callable, Mapping, Optional

from .database import DeviceDatabase, utcnow
from .errors import DeviceNotRegistered, InvalidIdentifier, PersistenceWriteFailure
from .identity import generate_friendly_id, is_valid_identifier, normalize, pseudo_identifier
from .models import Device, DeviceStatus

logger = logging.getLogger(__name__)


def _parse_float(value: Optional[str]) -> Optional[float]:
    try:
        return float(value) if value not in (None, "") else None
    except ValueError:
        return None


def _parse_int(value: Optional[str]) -> Optional[int]:
    try:
        return int(float(value)) if value not in (None, "") else None
    except ValueError:
        return None


def parse_device_status(headers: Mapping[str, str]) -> DeviceStatus:
    """
    Parse device telemetry from request headers.

    Malformed numbers are dropped rather than rejected, the firmware
    cannot act on a validation error.
    """
    return DeviceStatus(
        battery_voltage=_parse_float(headers.get("Battery-Voltage")),
        firmware_version=headers.get("Firmware-Version") or headers.get("FW-Version") or None,
        rssi=_parse_int(headers.get("RSSI")),
    )


@dataclass
class DeviceHeaders:
    """Identity and telemetry a device sends with every request."""

    mac_address: Optional[str] = None
    api_key: Optional[str] = None
    status: DeviceStatus = field(default_factory=DeviceStatus)

    @classmethod
    def from_headers(cls, headers: Mapping[str, str]) -> "DeviceHeaders":
        return cls(
            mac_address=headers.get("ID") or None,
            api_key=headers.get("Access-Token") or None,
            status=parse_device_status(headers),
        )

    @property
    def normalized_mac(self) -> Optional[str]:
        """Canonical MAC, or None when missing or malformed."""
        if self.mac_address and is_valid_identifier(self.mac_address):
            return normalize(self.mac_address)
        return None


@dataclass
class Resolution:
    """A resolved device and how it was matched."""

    device: Device
    auth_method: str


Strategy = Callable[["DeviceResolver", DeviceHeaders], Optional[Device]]


class DeviceResolver:
    """
    Resolves the device behind a request.

    Strategies run in order and the first match wins:

    1. mac_and_key: MAC and API key both match one device
    2. mac_only: MAC matches; a different presented key replaces the stored one
    3. key_only: API key matches; a different valid MAC replaces the stored one
    4. auto_created: an unknown key registers a new device under a
       MAC derived from the key
    """

    def __init__(
        self,
        db: DeviceDatabase,
        default_refresh_rate: int = 300,
        default_timezone: str = "UTC",
    ):
        self.db = db
        self.default_refresh_rate = default_refresh_rate
        self.default_timezone = default_timezone

    def resolve(self, headers: DeviceHeaders) -> Resolution:
        """
        Find or create the device for the given headers.

        Raises:
            InvalidIdentifier: A malformed MAC was sent without an API key
            DeviceNotRegistered: No strategy produced a device
        """
        if headers.mac_address and not headers.normalized_mac and not headers.api_key:
            logger.warning(f"Rejected malformed MAC address: {headers.mac_address!r}")
            raise InvalidIdentifier(f"Invalid MAC address format: {headers.mac_address}")

        for auth_method, strategy in STRATEGIES:
            device = strategy(self, headers)
            if device:
                logger.info(f"Device {device.friendly_id} authenticated via {auth_method}")
                return Resolution(device=device, auth_method=auth_method)

        logger.warning(
            f"No device found for MAC {headers.mac_address!r} "
            f"(api key presented: {bool(headers.api_key)})"
        )
        raise DeviceNotRegistered()

    def record_contact(self, device: Device, status: DeviceStatus):
        """
        Merge supplied telemetry into the device and mark it seen.

        Failures are logged and swallowed; the device response never waits on them.
        """
        try:
            self.db.update_device_status(
                device.id,
                last_seen_at=utcnow(),
                firmware_version=status.firmware_version,
                battery_voltage=status.battery_voltage,
                rssi=status.rssi,
            )
        except PersistenceWriteFailure as e:
            logger.error(f"Status update for {device.friendly_id} failed: {e}")

    def _rotate(self, device: Device, **fields) -> Device:
        try:
            self.db.update_device(device.id, **fields)
        except PersistenceWriteFailure as e:
            logger.error(f"Could not update {sorted(fields)} for {device.friendly_id}: {e}")
            return device
        logger.info(f"Updated {', '.join(sorted(fields))} for device {device.friendly_id}")
        return device.model_copy(update=fields)

    # Strategies

    def match_mac_and_key(self, headers: DeviceHeaders) -> Optional[Device]:
        mac = headers.normalized_mac
        if not (mac and headers.api_key):
            return None
        return self.db.get_device_by_mac_and_key(mac, headers.api_key)

    def match_mac_only(self, headers: DeviceHeaders) -> Optional[Device]:
        mac = headers.normalized_mac
        if not mac:
            return None
        device = self.db.get_device_by_mac(mac)
        if device and headers.api_key and headers.api_key != device.api_key:
            device = self._rotate(device, api_key=headers.api_key)
        return device

    def match_key_only(self, headers: DeviceHeaders) -> Optional[Device]:
        if not headers.api_key:
            return None
        device = self.db.get_device_by_api_key(headers.api_key)
        mac = headers.normalized_mac
        if device and mac and mac != device.mac_address:
            device = self._rotate(device, mac_address=mac)
        return device

    def auto_create(self, headers: DeviceHeaders) -> Optional[Device]:
        if not headers.api_key:
            return None
        mac = pseudo_identifier(headers.api_key)
        friendly_id = generate_friendly_id(mac)
        try:
            return self.db.create_device(
                mac_address=mac,
                api_key=headers.api_key,
                friendly_id=friendly_id,
                name=f"TRMNL Device {friendly_id[-6:]}",
                screen="default",
                timezone=self.default_timezone,
                refresh_schedule=str(self.default_refresh_rate),
                firmware_version=headers.status.firmware_version or "unknown",
                last_seen_at=utcnow(),
            )
        except sqlite3.IntegrityError as e:
            # A concurrent request may have created it first
            logger.warning(f"Auto-registration of {friendly_id} failed: {e}")
            return self.db.get_device_by_api_key(headers.api_key)


STRATEGIES: list[tuple[str, Strategy]] = [
    ("mac_and_key", DeviceResolver.match_mac_and_key),
    ("mac_only", DeviceResolver.match_mac_only),
    ("key_only", DeviceResolver.match_key_only),
    ("auto_created", DeviceResolver.auto_create),
]
