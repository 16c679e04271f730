"""
TxRegistry Hashing

All hashes use SHA-256 with lowercase hexadecimal output and a
"sha256:" prefix.

Identity keys are derived from the three descriptor fields, each
length-prefixed, so no two distinct field tuples share an input:
("AB", "C", t) and ("A", "BC", t) hash different byte strings.
"""

import hashlib
from typing import Union

from .models import TransactionDescriptor, FieldValue

IDENTITY_KEY_DOMAIN = b"txregistry/identity-key/v1"

# A 4-byte length prefix covers any field permitted by MAX_FIELD_BYTES.
_LENGTH_PREFIX_BYTES = 4
_TIMESTAMP_BYTES = 32


def sha256_hash(data: Union[bytes, str]) -> str:
    """
    Compute SHA-256 hash.

    Returns:
        Hash string in format "sha256:abcdef..."
    """
    if isinstance(data, str):
        data = data.encode('utf-8')

    digest = hashlib.sha256(data).hexdigest().lower()
    return f"sha256:{digest}"


def _length_prefixed(raw: bytes) -> bytes:
    return len(raw).to_bytes(_LENGTH_PREFIX_BYTES, 'big') + raw


def descriptor_key(descriptor: TransactionDescriptor) -> str:
    """Compute the identity key of a descriptor."""
    operation, record_id, timestamp = descriptor.encoded()
    preimage = b"".join((
        _length_prefixed(IDENTITY_KEY_DOMAIN),
        _length_prefixed(operation),
        _length_prefixed(record_id),
        timestamp.to_bytes(_TIMESTAMP_BYTES, 'big'),
    ))
    return sha256_hash(preimage)


def derive_key(operation: FieldValue, record_id: FieldValue, timestamp: int) -> str:
    """
    Derive the identity key for (operation, record_id, timestamp).

    Pure: identical inputs yield identical keys on any process. Malformed
    inputs raise InvalidDescriptor before anything is hashed.
    """
    return descriptor_key(TransactionDescriptor(operation, record_id, timestamp))
