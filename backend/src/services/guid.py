"""
GUID service for entity identification.

Provides utilities for encoding, decoding, and validating the Global Unique
Identifiers used in URLs and API responses.

GUID Format: {prefix}_{base32_uuid}
- prefix: 3-character entity type identifier (evt, ser, usr, org)
- base32_uuid: 26-character Crockford Base32 encoded UUIDv7
"""

import re
import uuid
from typing import Optional

import base32_crockford

# Prefix mappings for persisted entity types
#   evt - Event (standalone event or recurring instance)
#   ser - RecurringSeries
#   usr - User
#   org - Organization
ENTITY_PREFIXES = {
    "evt": "Event",
    "ser": "RecurringSeries",
    "usr": "User",
    "org": "Organization",
}

# Pattern for validating GUIDs
# Format: {3-char prefix}_{26-char Crockford Base32}
GUID_PATTERN = re.compile(
    r"^(evt|ser|usr|org)_[0-9A-HJKMNP-TV-Za-hjkmnp-tv-z]{26}$",
    re.IGNORECASE
)


class GuidService:
    """
    Service for GUID operations.

    Provides static methods for:
    - Encoding UUIDs to GUID strings
    - Decoding GUID strings to UUIDs
    - Validating GUID format
    """

    @staticmethod
    def encode_uuid(uuid_value: uuid.UUID, prefix: str) -> str:
        """
        Encode a UUID to a GUID string.

        Args:
            uuid_value: UUID to encode
            prefix: Entity type prefix (evt, ser, usr, org)

        Returns:
            GUID string (e.g., "evt_01hgw2bbg...")

        Raises:
            ValueError: If prefix is invalid
        """
        if prefix not in ENTITY_PREFIXES:
            raise ValueError(
                f"Invalid prefix '{prefix}'. "
                f"Valid prefixes: {', '.join(ENTITY_PREFIXES.keys())}"
            )

        if isinstance(uuid_value, bytes):
            uuid_int = int.from_bytes(uuid_value, "big")
        else:
            uuid_int = int.from_bytes(uuid_value.bytes, "big")

        encoded = base32_crockford.encode(uuid_int).zfill(26)
        return f"{prefix}_{encoded.lower()}"

    @staticmethod
    def decode_guid(guid: str) -> tuple[str, uuid.UUID]:
        """
        Decode a GUID string to its components.

        Args:
            guid: GUID string (e.g., "ser_01HGW2BBG...")

        Returns:
            Tuple of (prefix, UUID)

        Raises:
            ValueError: If the GUID format is invalid
        """
        if not guid:
            raise ValueError("GUID cannot be empty")

        if not GUID_PATTERN.match(guid):
            raise ValueError(
                f"Invalid GUID format: {guid}. "
                f"Expected format: {{prefix}}_{{26-char base32}}"
            )

        prefix = guid[:3].lower()
        encoded_part = guid[4:]

        try:
            uuid_int = base32_crockford.decode(encoded_part.upper())
            return prefix, uuid.UUID(bytes=uuid_int.to_bytes(16, "big"))
        except (ValueError, OverflowError) as e:
            raise ValueError(f"Invalid GUID encoding: {e}")

    @staticmethod
    def validate_guid(guid: str, expected_prefix: Optional[str] = None) -> bool:
        """
        Validate a GUID format.

        Args:
            guid: GUID string to validate
            expected_prefix: Optional expected prefix for type checking

        Returns:
            True if valid, False otherwise
        """
        if not guid or not GUID_PATTERN.match(guid):
            return False

        if expected_prefix:
            return guid[:3].lower() == expected_prefix.lower()

        return True

    @staticmethod
    def parse_guid(guid: str, expected_prefix: str) -> uuid.UUID:
        """
        Parse a GUID and return its UUID, enforcing the entity prefix.

        Raises:
            ValueError: If the GUID is malformed or has another prefix
        """
        prefix, uuid_value = GuidService.decode_guid(guid)
        if prefix != expected_prefix:
            raise ValueError(
                f"Expected a '{expected_prefix}' GUID, got '{prefix}'"
            )
        return uuid_value
