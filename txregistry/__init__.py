"""
TxRegistry: transaction validation registry

Version: 1.0.0
License: Apache 2.0

Accepts each logical transaction (operation, record_id, timestamp) exactly
once. The first authenticated submitter is recorded permanently; every
later submission of the same transaction, by anyone, is rejected and told
who the original submitter was.

Usage:
    from txregistry import (
        ValidationRegistry,
        TransactionDescriptor,
        generate_key_pair,
        sign_descriptor,
    )

    registry = ValidationRegistry()
    alice = generate_key_pair()

    tx = TransactionDescriptor("CreateUser", "User_101", 123456789)
    result = registry.validate_transaction(tx, sign_descriptor(tx, alice))

    if result.success:
        # first submission; result.signer == alice.address
        ...
    else:
        # duplicate; result.signer is the original submitter
        ...

    registry.get_signer("CreateUser", "User_101", 123456789)
"""

__version__ = "1.0.0"
__license__ = "Apache-2.0"

from .errors import TxRegistryError, InvalidDescriptor, AuthenticationFailed

from .models import (
    TransactionDescriptor,
    RegistryEntry,
    ValidationResult,
    SignatureProof,
    CallerIdentity,
    as_descriptor,
)

from .canonicalization import canonicalize, canonicalize_str
from .hashing import sha256_hash, derive_key, descriptor_key

from .signing import (
    KeyPair,
    generate_key_pair,
    sign_descriptor,
    signing_payload,
    address_from_verify_key,
    verify_descriptor_signature,
)

from .authentication import (
    Authenticator,
    SignatureAuthenticator,
    TransportIdentityAuthenticator,
    CompositeAuthenticator,
    get_authenticator,
)

from .store import (
    RegistryStore,
    InMemoryRegistryStore,
    SqliteRegistryStore,
    get_store,
)

from .events import EventEmitter, EventLog
from .registry import ValidationRegistry


__all__ = [
    "__version__",

    # Errors
    "TxRegistryError",
    "InvalidDescriptor",
    "AuthenticationFailed",

    # Model
    "TransactionDescriptor",
    "RegistryEntry",
    "ValidationResult",
    "SignatureProof",
    "CallerIdentity",
    "as_descriptor",

    # Canonicalization and hashing
    "canonicalize",
    "canonicalize_str",
    "sha256_hash",
    "derive_key",
    "descriptor_key",

    # Signing
    "KeyPair",
    "generate_key_pair",
    "sign_descriptor",
    "signing_payload",
    "address_from_verify_key",
    "verify_descriptor_signature",

    # Authentication
    "Authenticator",
    "SignatureAuthenticator",
    "TransportIdentityAuthenticator",
    "CompositeAuthenticator",
    "get_authenticator",

    # Storage
    "RegistryStore",
    "InMemoryRegistryStore",
    "SqliteRegistryStore",
    "get_store",

    # Notifications
    "EventEmitter",
    "EventLog",

    # Registry
    "ValidationRegistry",
]
