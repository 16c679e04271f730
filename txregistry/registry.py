"""
TxRegistry Validation Registry

The core engine. Enforces exactly-once acceptance per identity key with
authenticated attribution:

    Unclaimed --first authenticated submission--> Claimed (terminal)

Order of checks for validate_transaction():
    1. descriptor validation   -> InvalidDescriptor
    2. authentication          -> AuthenticationFailed
    3. identity key derivation
    4. atomic claim in the store
    5. ValidationResult notification (after commit)

Steps 1 and 2 never touch state and emit no notification. A duplicate is
a normal outcome (success=False), not an exception.
"""

import logging
from typing import Any, Callable, Optional

from . import config
from .authentication import Authenticator, get_authenticator
from .errors import AuthenticationFailed, InvalidDescriptor
from .events import EventEmitter, Listener
from .hashing import derive_key, descriptor_key
from .logging_config import audit_log
from .models import RegistryEntry, ValidationResult, as_descriptor, display_field
from .store import InMemoryRegistryStore, RegistryStore, get_store

logger = logging.getLogger(__name__)


class ValidationRegistry:
    """
    Owns the mapping from identity key to first submitter.

    All access goes through validate_transaction() and the read methods;
    atomicity of the claim is delegated to the store.
    """

    def __init__(
        self,
        store: Optional[RegistryStore] = None,
        authenticator: Optional[Authenticator] = None,
        emitter: Optional[EventEmitter] = None
    ):
        self.store = store if store is not None else InMemoryRegistryStore()
        self.authenticator = authenticator if authenticator is not None else get_authenticator()
        self.emitter = emitter if emitter is not None else EventEmitter()

    @classmethod
    def from_config(cls) -> "ValidationRegistry":
        """Build a registry from environment configuration."""
        store = get_store(config.STORE_TYPE, config.DB_PATH)
        authenticator = get_authenticator(trust_transport_identity=config.TRUST_CALLER_HEADER)
        return cls(store=store, authenticator=authenticator)

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Subscribe to ValidationResult notifications."""
        return self.emitter.subscribe(listener)

    def validate_transaction(self, descriptor: Any, proof: Any) -> ValidationResult:
        """
        Submit a transaction for validation.

        Args:
            descriptor: TransactionDescriptor, (operation, record_id, timestamp)
                tuple, or mapping with those keys
            proof: credential understood by the configured authenticator

        Returns:
            ValidationResult; success is True only for the first accepted
            submission of this descriptor, and signer is always the address
            of that first submission

        Raises:
            InvalidDescriptor: malformed descriptor fields
            AuthenticationFailed: the proof establishes no identity
        """
        try:
            descriptor = as_descriptor(descriptor)
        except InvalidDescriptor as e:
            audit_log.invalid_descriptor(e.field, e.message)
            raise

        try:
            caller = self.authenticator.authenticate(descriptor, proof)
        except AuthenticationFailed as e:
            audit_log.authentication_failed(e.reason, operation=display_field(descriptor.operation))
            raise

        identity_key = descriptor_key(descriptor)
        created, entry = self.store.claim(identity_key, caller, descriptor)
        logger.debug("claim %s by %s: created=%s", identity_key, caller, created)

        result = ValidationResult(
            success=created,
            signer=entry.submitter,
            identity_key=identity_key,
            sequence=entry.sequence,
        )

        if created:
            audit_log.transaction_accepted(identity_key, entry.submitter, entry.sequence)
        else:
            audit_log.transaction_duplicate(identity_key, entry.submitter, attempted_by=caller)

        self.emitter.emit(result)
        return result

    def get_entry(self, operation, record_id, timestamp: int) -> Optional[RegistryEntry]:
        """Registry entry for a descriptor, or None if unclaimed."""
        return self.store.get(derive_key(operation, record_id, timestamp))

    def get_signer(self, operation, record_id, timestamp: int) -> Optional[str]:
        """
        Address of the first accepted submitter, or None if unclaimed.
        Pure read; requires no authentication.
        """
        entry = self.get_entry(operation, record_id, timestamp)
        return entry.submitter if entry else None

    def is_claimed(self, operation, record_id, timestamp: int) -> bool:
        return self.get_entry(operation, record_id, timestamp) is not None

    def __len__(self) -> int:
        return self.store.count()

    def close(self) -> None:
        self.store.close()
