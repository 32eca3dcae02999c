"""Key generation and serialization for the session engine."""

import secrets
import time
from dataclasses import dataclass, field

from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives.asymmetric.ed25519 import Ed25519PrivateKey, Ed25519PublicKey
from cryptography.hazmat.primitives.asymmetric.x25519 import X25519PrivateKey, X25519PublicKey
from cryptography.hazmat.primitives.serialization import Encoding, PrivateFormat, PublicFormat, NoEncryption

from .types import (
    DJB_TYPE,
    KEY_SIZE,
    PUBLIC_KEY_SIZE,
    IDENTITY_KEY_SIZE,
    SIGNATURE_SIZE,
    MAX_REGISTRATION_ID,
    InvalidKeyMaterialError,
)


# Small-order X25519 encodings (top bit ignored); DH against these yields a
# predictable or all-zero output.
_LOW_ORDER_POINTS = frozenset(
    bytes.fromhex(h)
    for h in (
        "0000000000000000000000000000000000000000000000000000000000000000",
        "0100000000000000000000000000000000000000000000000000000000000000",
        "e0eb7a7c3b41b8ae1656e3faf19fc46ada098deb9c32b1fd866205165f49b800",
        "5f9c95bca3508c24b1d0b1559c83ef5b04445cc4581c8e86d8224eddd09f1157",
        "ecffffffffffffffffffffffffffffffffffffffffffffffffffffffffffff7f",
        "edffffffffffffffffffffffffffffffffffffffffffffffffffffffffffff7f",
        "eeffffffffffffffffffffffffffffffffffffffffffffffffffffffffffff7f",
    )
)


def public_key_to_bytes(public_key: X25519PublicKey) -> bytes:
    """Convert X25519 public key to raw bytes."""
    return public_key.public_bytes(Encoding.Raw, PublicFormat.Raw)


def serialize_public_key(public_key: X25519PublicKey) -> bytes:
    """Serialize an X25519 public key as type byte + 32 raw bytes."""
    return bytes([DJB_TYPE]) + public_key_to_bytes(public_key)


def deserialize_public_key(data: bytes) -> X25519PublicKey:
    """
    Parse a serialized X25519 public key.

    Args:
        data: 33 bytes, a 0x05 type byte followed by the raw key

    Returns:
        The X25519 public key

    Raises:
        InvalidKeyMaterialError: If the length or type byte is wrong, or the
            key is a low-order point
    """
    if len(data) != PUBLIC_KEY_SIZE:
        raise InvalidKeyMaterialError(
            f"Public key must be {PUBLIC_KEY_SIZE} bytes, got {len(data)}"
        )
    if data[0] != DJB_TYPE:
        raise InvalidKeyMaterialError(f"Unknown key type: {data[0]:#04x}")
    raw = data[1:]
    if raw[:-1] + bytes([raw[-1] & 0x7F]) in _LOW_ORDER_POINTS:
        raise InvalidKeyMaterialError("Public key is a low-order point")
    return X25519PublicKey.from_public_bytes(raw)


def x25519_ecdh(private_key: X25519PrivateKey, public_key: X25519PublicKey) -> bytes:
    """
    Perform X25519 ECDH key exchange.

    Args:
        private_key: Our private key
        public_key: Their public key

    Returns:
        32-byte shared secret
    """
    return private_key.exchange(public_key)


@dataclass(frozen=True)
class KeyPair:
    """An X25519 agreement key pair."""
    private_key: X25519PrivateKey
    public_key: X25519PublicKey

    @classmethod
    def generate(cls) -> "KeyPair":
        private_key = X25519PrivateKey.generate()
        return cls(private_key=private_key, public_key=private_key.public_key())

    @classmethod
    def from_private_bytes(cls, data: bytes) -> "KeyPair":
        private_key = X25519PrivateKey.from_private_bytes(data)
        return cls(private_key=private_key, public_key=private_key.public_key())

    @property
    def private_bytes(self) -> bytes:
        return self.private_key.private_bytes(Encoding.Raw, PrivateFormat.Raw, NoEncryption())

    @property
    def public_bytes(self) -> bytes:
        """Serialized public key (33 bytes)."""
        return serialize_public_key(self.public_key)

    def exchange(self, public_key: X25519PublicKey) -> bytes:
        return x25519_ecdh(self.private_key, public_key)


@dataclass(frozen=True)
class IdentityKey:
    """
    Public half of a long-term identity.

    Serialized as the Ed25519 verifying key (32 bytes) followed by the
    serialized X25519 agreement key (33 bytes).
    """
    verifying_key: Ed25519PublicKey
    agreement_key: X25519PublicKey

    def serialize(self) -> bytes:
        return self.verifying_key.public_bytes_raw() + serialize_public_key(self.agreement_key)

    @classmethod
    def deserialize(cls, data: bytes) -> "IdentityKey":
        """
        Parse a serialized identity key.

        Raises:
            InvalidKeyMaterialError: If the length or embedded keys are invalid
        """
        if len(data) != IDENTITY_KEY_SIZE:
            raise InvalidKeyMaterialError(
                f"Identity key must be {IDENTITY_KEY_SIZE} bytes, got {len(data)}"
            )
        try:
            verifying_key = Ed25519PublicKey.from_public_bytes(data[:KEY_SIZE])
        except ValueError as e:
            raise InvalidKeyMaterialError(f"Invalid Ed25519 identity key: {e}") from e
        return cls(
            verifying_key=verifying_key,
            agreement_key=deserialize_public_key(data[KEY_SIZE:]),
        )

    def verify(self, signature: bytes, data: bytes) -> bool:
        """Return True if signature over data was made by this identity."""
        if len(signature) != SIGNATURE_SIZE:
            return False
        try:
            self.verifying_key.verify(signature, data)
            return True
        except InvalidSignature:
            return False


@dataclass(frozen=True)
class IdentityKeyPair:
    """Long-term identity: an Ed25519 signing key and an X25519 agreement key."""
    signing_key: Ed25519PrivateKey
    agreement: KeyPair

    @classmethod
    def generate(cls) -> "IdentityKeyPair":
        return cls(signing_key=Ed25519PrivateKey.generate(), agreement=KeyPair.generate())

    @property
    def public_key(self) -> IdentityKey:
        return IdentityKey(
            verifying_key=self.signing_key.public_key(),
            agreement_key=self.agreement.public_key,
        )

    def sign(self, data: bytes) -> bytes:
        return self.signing_key.sign(data)


@dataclass(frozen=True)
class PreKeyRecord:
    """A one-time pre-key and its id."""
    id: int
    key_pair: KeyPair


@dataclass(frozen=True)
class SignedPreKeyRecord:
    """A signed pre-key, its id, and the identity signature over its public key."""
    id: int
    key_pair: KeyPair
    signature: bytes
    timestamp: int = field(default_factory=lambda: int(time.time() * 1000))


def generate_registration_id() -> int:
    """Generate a random registration id in [1, MAX_REGISTRATION_ID]."""
    return secrets.randbelow(MAX_REGISTRATION_ID) + 1


def generate_pre_key(pre_key_id: int) -> PreKeyRecord:
    """Generate a one-time pre-key with the given id."""
    return PreKeyRecord(id=pre_key_id, key_pair=KeyPair.generate())


def generate_signed_pre_key(identity: IdentityKeyPair, signed_pre_key_id: int) -> SignedPreKeyRecord:
    """
    Generate a signed pre-key with the given id.

    The signature covers the serialized (33-byte) public key and is made
    with the identity's Ed25519 signing key.
    """
    key_pair = KeyPair.generate()
    return SignedPreKeyRecord(
        id=signed_pre_key_id,
        key_pair=key_pair,
        signature=identity.sign(key_pair.public_bytes),
    )
