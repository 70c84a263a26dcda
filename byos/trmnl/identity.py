"""MAC address normalization and device identity derivation."""

import hashlib
import hmac
import re
import secrets
import time

from .errors import InvalidIdentifier

MAC_PATTERN = re.compile(r"^([0-9A-Fa-f]{2}[:-]){5}([0-9A-Fa-f]{2})$")
NON_HEX = re.compile(r"[^0-9A-Fa-f]")

FRIENDLY_ID_PREFIX = "TRMNL_"

# Used when no API_KEY_SECRET is configured; keys stay unique, just not reproducible
_process_secret = secrets.token_hex(32)


def is_valid_identifier(value: str) -> bool:
    """Check a MAC address is six hex pairs separated by ':' or '-'."""
    return bool(value) and MAC_PATTERN.match(value) is not None


def normalize(value: str) -> str:
    """
    Normalize a MAC address to XX:XX:XX:XX:XX:XX.

    Args:
        value: MAC address with any separators and casing

    Returns:
        Canonical uppercase, colon-separated MAC address

    Raises:
        InvalidIdentifier: If the value does not hold exactly 12 hex digits
    """
    cleaned = NON_HEX.sub("", value or "").upper()
    if len(cleaned) != 12:
        raise InvalidIdentifier(
            "Invalid MAC address: must be 12 hexadecimal characters"
        )
    return ":".join(cleaned[i : i + 2] for i in range(0, 12, 2))


def generate_friendly_id(mac_address: str) -> str:
    """Derive the short device label shown on screen, e.g. TRMNL_3FA29C."""
    cleaned = NON_HEX.sub("", mac_address).upper()
    digest = hashlib.sha256(cleaned.encode()).hexdigest()
    return f"{FRIENDLY_ID_PREFIX}{digest[:6].upper()}"


def generate_api_key(mac_address: str, secret: str = "") -> str:
    """Generate an API key as an HMAC-SHA256 over the MAC and current time."""
    key = (secret or _process_secret).encode()
    message = f"{mac_address}{int(time.time() * 1000)}".encode()
    return hmac.new(key, message, hashlib.sha256).hexdigest()


def pseudo_identifier(credential: str) -> str:
    """
    Derive a stable MAC-shaped identifier from an API key.

    Used for devices that authenticate with a key nobody registered;
    the same key always maps to the same identifier and friendly ID.
    """
    digest = hashlib.sha256(credential.encode()).hexdigest()
    return normalize(digest[:12])
