"""
Authentication capability for the validation registry.

An Authenticator turns a descriptor plus a proof into the submitter's
address, or raises AuthenticationFailed. The registry's duplicate
detection never looks at the proof, so schemes can be swapped freely.
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, Type

from .errors import AuthenticationFailed
from .models import CallerIdentity, SignatureProof, TransactionDescriptor, is_address
from .signing import (
    PUBLIC_KEY_BYTES,
    SIGNATURE_BYTES,
    address_from_verify_key,
    b64d,
    verify_descriptor_signature,
)


class Authenticator(ABC):
    """Abstract interface for establishing who submitted a descriptor."""

    proof_type: Type = object

    @abstractmethod
    def authenticate(self, descriptor: TransactionDescriptor, proof: Any) -> str:
        """
        Authenticate the submitter of a descriptor.

        Returns:
            The submitter's address ("0x" + 40 hex chars)

        Raises:
            AuthenticationFailed: if the proof does not establish an identity
        """
        pass


class SignatureAuthenticator(Authenticator):
    """
    Ed25519 signature verification with address recovery.

    The proof carries the public key; the address is derived from it only
    after the signature over the descriptor verifies.
    """

    proof_type = SignatureProof

    def authenticate(self, descriptor: TransactionDescriptor, proof: Any) -> str:
        if not isinstance(proof, SignatureProof):
            raise AuthenticationFailed("SIGNATURE_REQUIRED")

        try:
            verify_key = b64d(proof.public_key_b64)
            signature = b64d(proof.signature_b64)
        except ValueError:
            raise AuthenticationFailed("MALFORMED_SIGNATURE") from None

        if len(verify_key) != PUBLIC_KEY_BYTES:
            raise AuthenticationFailed("MALFORMED_PUBLIC_KEY")
        if len(signature) != SIGNATURE_BYTES:
            raise AuthenticationFailed("MALFORMED_SIGNATURE")

        if not verify_descriptor_signature(descriptor, signature, verify_key):
            raise AuthenticationFailed("INVALID_SIGNATURE")

        return address_from_verify_key(verify_key)


class TransportIdentityAuthenticator(Authenticator):
    """
    Accepts an identity the transport has already authenticated.

    Only use where the caller cannot choose the address it presents
    (a verified message sender, an authenticating gateway).
    """

    proof_type = CallerIdentity

    def authenticate(self, descriptor: TransactionDescriptor, proof: Any) -> str:
        if not isinstance(proof, CallerIdentity):
            raise AuthenticationFailed("CALLER_IDENTITY_REQUIRED")
        if not is_address(proof.address):
            raise AuthenticationFailed("MALFORMED_CALLER_ADDRESS")
        return proof.address


class CompositeAuthenticator(Authenticator):
    """Dispatches to one authenticator per proof type."""

    def __init__(self, *authenticators: Authenticator):
        self._by_type: Dict[Type, Authenticator] = {}
        for auth in authenticators:
            self._by_type[auth.proof_type] = auth

    def authenticate(self, descriptor: TransactionDescriptor, proof: Any) -> str:
        auth = self._by_type.get(type(proof))
        if auth is None:
            raise AuthenticationFailed("UNSUPPORTED_PROOF")
        return auth.authenticate(descriptor, proof)


def get_authenticator(trust_transport_identity: bool = False) -> Authenticator:
    """
    Factory for the registry's authenticator.

    Args:
        trust_transport_identity: also accept CallerIdentity proofs
    """
    if trust_transport_identity:
        return CompositeAuthenticator(SignatureAuthenticator(), TransportIdentityAuthenticator())
    return SignatureAuthenticator()
