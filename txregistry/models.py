"""
TxRegistry data model.

A TransactionDescriptor names one logical transaction. Two descriptors are
the same transaction iff their encoded fields are bit-for-bit equal; no
case or whitespace normalization is applied here.
"""

import re
from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Optional, Tuple, Union

from . import config
from .errors import InvalidDescriptor

FieldValue = Union[str, bytes]

# Timestamps are unsigned 256-bit integers on the original ledger.
MAX_TIMESTAMP = 2 ** 256 - 1

ADDRESS_PATTERN = re.compile(r'^0x[0-9a-f]{40}$')


def encode_field(value: Any, field_name: str) -> bytes:
    """Return the raw bytes of a text/bytes field, enforcing type and size."""
    if isinstance(value, str):
        try:
            raw = value.encode('utf-8')
        except UnicodeEncodeError:
            raise InvalidDescriptor(field_name, "must be valid UTF-8 text") from None
    elif isinstance(value, bytes):
        raw = value
    else:
        raise InvalidDescriptor(field_name, f"must be str or bytes, got {type(value).__name__}")

    if len(raw) > config.MAX_FIELD_BYTES:
        raise InvalidDescriptor(field_name, f"must be at most {config.MAX_FIELD_BYTES} bytes")
    return raw


def validate_timestamp(value: Any) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise InvalidDescriptor("timestamp", f"must be an integer, got {type(value).__name__}")
    if value < 0 or value > MAX_TIMESTAMP:
        raise InvalidDescriptor("timestamp", "must be in range [0, 2**256)")
    return value


def is_address(value: Any) -> bool:
    return isinstance(value, str) and bool(ADDRESS_PATTERN.match(value))


def display_field(value: FieldValue) -> str:
    """Render a field for JSON output; bytes become lowercase hex."""
    if isinstance(value, bytes):
        return value.hex()
    return value


@dataclass(frozen=True)
class TransactionDescriptor:
    """The logical unit being validated."""
    operation: FieldValue
    record_id: FieldValue
    timestamp: int

    def __post_init__(self):
        encode_field(self.operation, "operation")
        encode_field(self.record_id, "record_id")
        validate_timestamp(self.timestamp)

    def encoded(self) -> Tuple[bytes, bytes, int]:
        return (
            encode_field(self.operation, "operation"),
            encode_field(self.record_id, "record_id"),
            self.timestamp,
        )

    def same_transaction(self, other: "TransactionDescriptor") -> bool:
        """True iff both describe the same logical transaction."""
        return self.encoded() == other.encoded()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "operation": display_field(self.operation),
            "record_id": display_field(self.record_id),
            "timestamp": self.timestamp,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "TransactionDescriptor":
        missing = [k for k in ("operation", "record_id", "timestamp") if k not in data]
        if missing:
            raise InvalidDescriptor(missing[0], "is required")
        return cls(
            operation=data["operation"],
            record_id=data["record_id"],
            timestamp=data["timestamp"],
        )


def as_descriptor(value: Any) -> TransactionDescriptor:
    """Coerce a descriptor, (operation, record_id, timestamp) tuple or mapping."""
    if isinstance(value, TransactionDescriptor):
        return value
    if isinstance(value, Mapping):
        return TransactionDescriptor.from_dict(value)
    if isinstance(value, (tuple, list)) and len(value) == 3:
        return TransactionDescriptor(*value)
    raise InvalidDescriptor("descriptor", f"cannot build a descriptor from {type(value).__name__}")


@dataclass(frozen=True)
class SignatureProof:
    """Ed25519 signature over a descriptor plus the signer's public key."""
    public_key_b64: str
    signature_b64: str

    def to_dict(self) -> Dict[str, str]:
        return {
            "public_key_b64": self.public_key_b64,
            "signature_b64": self.signature_b64,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "SignatureProof":
        return cls(
            public_key_b64=data.get("public_key_b64", ""),
            signature_b64=data.get("signature_b64", ""),
        )


@dataclass(frozen=True)
class CallerIdentity:
    """An address already authenticated by the transport (e.g. a verified sender)."""
    address: str


@dataclass(frozen=True)
class RegistryEntry:
    """
    The permanent record of the first accepted submitter for an identity key.
    Created once, never updated, never deleted.
    """
    identity_key: str
    submitter: str
    operation: FieldValue
    record_id: FieldValue
    timestamp: int
    sequence: int
    claimed_at: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "identity_key": self.identity_key,
            "submitter": self.submitter,
            "operation": display_field(self.operation),
            "record_id": display_field(self.record_id),
            "timestamp": self.timestamp,
            "sequence": self.sequence,
            "claimed_at": self.claimed_at,
        }


@dataclass(frozen=True)
class ValidationResult:
    """
    Outcome of one submission attempt. Not stored.

    signer is always the first accepted submitter for the key, so a
    rejected duplicate still tells the caller who registered it.
    """
    success: bool
    signer: str
    identity_key: str
    sequence: Optional[int] = None
    event: str = field(default="ValidationResult", compare=False)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "event": self.event,
            "success": self.success,
            "signer": self.signer,
            "identity_key": self.identity_key,
            "sequence": self.sequence,
        }
