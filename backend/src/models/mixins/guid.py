"""
GUID mixin for SQLAlchemy models.

Provides UUID-based Global Unique Identifiers for user-facing entities.
Uses UUIDv7 (time-ordered) with Crockford's Base32 encoding for URL-safe,
human-readable identifiers.

GUID Format: {prefix}_{base32_uuid}
Examples:
    - evt_01HGW2BBG0000000000000000 (Event)
    - ser_01HGW2BBG0000000000000001 (RecurringSeries)
    - usr_01HGW2BBG0000000000000002 (User)
    - org_01HGW2BBG0000000000000003 (Organization)
"""

import uuid as uuid_module
from typing import ClassVar

import base32_crockford
from sqlalchemy import Column, TypeDecorator, LargeBinary
from sqlalchemy.dialects.postgresql import UUID as PG_UUID
from uuid_extensions import uuid7


class UUIDType(TypeDecorator):
    """
    Platform-independent UUID type.

    Uses PostgreSQL's native UUID type when available,
    otherwise stores as 16-byte LargeBinary for SQLite.

    Always presents as a Python UUID object.
    """

    impl = LargeBinary
    cache_ok = True

    def load_dialect_impl(self, dialect):
        if dialect.name == 'postgresql':
            return dialect.type_descriptor(PG_UUID(as_uuid=True))
        return dialect.type_descriptor(LargeBinary(16))

    def process_bind_param(self, value, dialect):
        if value is None:
            return value
        if dialect.name == 'postgresql':
            return value if isinstance(value, uuid_module.UUID) else uuid_module.UUID(bytes=value)
        if isinstance(value, uuid_module.UUID):
            return value.bytes
        if isinstance(value, bytes):
            return value
        return uuid_module.UUID(str(value)).bytes

    def process_result_value(self, value, dialect):
        if value is None:
            return value
        if isinstance(value, uuid_module.UUID):
            return value
        if isinstance(value, bytes):
            return uuid_module.UUID(bytes=value)
        return uuid_module.UUID(str(value))


class GuidMixin:
    """
    Mixin providing GUID (Global Unique Identifier) support for entities.

    Adds:
    - uuid: Binary UUID column (UUIDv7, time-ordered)
    - guid: Property returning prefixed Base32 string
    - parse_guid: Class method to decode GUID strings

    Usage:
        class Event(Base, GuidMixin):
            GUID_PREFIX = "evt"

        event = Event(...)
        print(event.guid)  # evt_01HGW2BBG...
    """

    # Subclasses must define their 3-character prefix
    GUID_PREFIX: ClassVar[str]

    uuid = Column(
        UUIDType(),
        nullable=False,
        unique=True,
        index=True,
        default=uuid7,
    )

    @property
    def guid(self) -> str:
        """
        Get the full GUID with prefix.

        Returns:
            GUID in format {prefix}_{base32_uuid}, or None before the row is flushed
        """
        if self.uuid is None:
            return None

        if isinstance(self.uuid, bytes):
            uuid_bytes = self.uuid
        else:
            uuid_bytes = self.uuid.bytes

        encoded = base32_crockford.encode(int.from_bytes(uuid_bytes, "big"))
        # Pad to 26 characters (full UUIDv7 encoding)
        encoded = encoded.zfill(26)
        return f"{self.GUID_PREFIX}_{encoded.lower()}"

    @classmethod
    def parse_guid(cls, guid: str) -> uuid_module.UUID:
        """
        Parse a GUID string to a UUID object.

        Args:
            guid: GUID string (e.g., "evt_01HGW2BBG...")

        Returns:
            UUID object

        Raises:
            ValueError: If the GUID format is invalid or prefix doesn't match
        """
        if not guid:
            raise ValueError("GUID cannot be empty")

        expected_prefix = f"{cls.GUID_PREFIX}_"
        if not guid.lower().startswith(expected_prefix.lower()):
            raise ValueError(
                f"Invalid prefix for {cls.__name__}. "
                f"Expected '{cls.GUID_PREFIX}', got '{guid.split('_')[0]}'"
            )

        encoded_part = guid[len(expected_prefix):]

        if len(encoded_part) != 26:
            raise ValueError(
                f"Invalid GUID length. Expected 26 characters after prefix, "
                f"got {len(encoded_part)}"
            )

        try:
            uuid_int = base32_crockford.decode(encoded_part.upper())
            return uuid_module.UUID(bytes=uuid_int.to_bytes(16, "big"))
        except (ValueError, OverflowError) as e:
            raise ValueError(f"Invalid GUID encoding: {e}")
