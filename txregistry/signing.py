"""
TxRegistry Cryptographic Signing

Uses Ed25519 (RFC 8032) for descriptor signatures. A submitter's address
is derived from the verifying key:

    address = "0x" + last 20 bytes of SHA-256(raw public key)
"""

import base64
import binascii
import hashlib
import json
from dataclasses import dataclass
from typing import Any, Dict

from nacl.signing import SigningKey, VerifyKey
from nacl.exceptions import BadSignatureError, CryptoError

from .canonicalization import canonicalize
from .hashing import descriptor_key
from .models import SignatureProof, TransactionDescriptor

SIGNING_DOMAIN = "txregistry/validate-transaction/v1"

PUBLIC_KEY_BYTES = 32
SIGNATURE_BYTES = 64


def b64e(b: bytes) -> str:
    return base64.b64encode(b).decode('ascii')


def b64d(s: str) -> bytes:
    """Strict base64 decode; raises ValueError on malformed input."""
    try:
        return base64.b64decode(s.encode('ascii'), validate=True)
    except (binascii.Error, UnicodeEncodeError, AttributeError) as e:
        raise ValueError(f"malformed base64: {e}") from e


def address_from_verify_key(verify_key: bytes) -> str:
    """Derive the submitter address for a raw Ed25519 public key."""
    if len(verify_key) != PUBLIC_KEY_BYTES:
        raise ValueError(f"public key must be {PUBLIC_KEY_BYTES} bytes")
    return "0x" + hashlib.sha256(verify_key).digest()[-20:].hex()


def signing_payload(descriptor: TransactionDescriptor) -> bytes:
    """
    Bytes a submitter signs for a descriptor.

    The identity key already commits to every field unambiguously, so the
    payload binds the signature to exactly one logical transaction.
    """
    return canonicalize({
        "domain": SIGNING_DOMAIN,
        "identity_key": descriptor_key(descriptor),
    })


@dataclass
class KeyPair:
    """Ed25519 key pair with its derived address."""
    signing_key: bytes
    verify_key: bytes

    @property
    def address(self) -> str:
        return address_from_verify_key(self.verify_key)

    @property
    def public_key_b64(self) -> str:
        return b64e(self.verify_key)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "algorithm": "Ed25519",
            "address": self.address,
            "public_key_b64": b64e(self.verify_key),
            "private_key_b64": b64e(self.signing_key),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "KeyPair":
        sk = SigningKey(b64d(data["private_key_b64"]))
        return cls(signing_key=bytes(sk), verify_key=bytes(sk.verify_key))

    @classmethod
    def load(cls, path: str) -> "KeyPair":
        with open(path, "r", encoding="utf-8") as f:
            return cls.from_dict(json.load(f))

    def save(self, path: str) -> None:
        with open(path, "w", encoding="utf-8") as f:
            json.dump(self.to_dict(), f, indent=2)


def generate_key_pair() -> KeyPair:
    """Generate a new Ed25519 key pair."""
    sk = SigningKey.generate()
    return KeyPair(signing_key=bytes(sk), verify_key=bytes(sk.verify_key))


def sign_descriptor(descriptor: TransactionDescriptor, key_pair: KeyPair) -> SignatureProof:
    """Sign a descriptor and return the proof a submitter sends to the registry."""
    signature = SigningKey(key_pair.signing_key).sign(signing_payload(descriptor)).signature
    return SignatureProof(public_key_b64=key_pair.public_key_b64, signature_b64=b64e(signature))


def verify_descriptor_signature(
    descriptor: TransactionDescriptor,
    signature: bytes,
    verify_key: bytes
) -> bool:
    """
    Verify an Ed25519 signature over a descriptor's signing payload.

    Returns:
        True if signature is valid, False otherwise
    """
    if len(signature) != SIGNATURE_BYTES or len(verify_key) != PUBLIC_KEY_BYTES:
        return False
    try:
        VerifyKey(verify_key).verify(signing_payload(descriptor), signature)
        return True
    except (BadSignatureError, CryptoError):
        return False
