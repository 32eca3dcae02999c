"""
prekeychat - Asynchronous end-to-end encrypted messaging relay

Pre-key bundle exchange, typed message envelopes, and a relay that buffers
ciphertext for a peer that is offline. Sessions use X3DH + Double Ratchet
over X25519, Ed25519 and ChaCha20-Poly1305.
"""

from .codec import encode, decode
from .keys import (
    KeyPair,
    IdentityKey,
    IdentityKeyPair,
    PreKeyRecord,
    SignedPreKeyRecord,
    generate_registration_id,
    generate_pre_key,
    generate_signed_pre_key,
)
from .bundle import PreKeyBundle
from .envelope import EnvelopeKind, MessageEnvelope
from .session import KeyBundle, SessionBuilder, SessionCipher
from .storage import ProtocolStore, InMemoryProtocolStore
from .client import SecureClient
from .relay import RelayService
from .types import (
    ProtocolAddress,
    PreKeyChatError,
    MalformedEncodingError,
    InvalidKeyMaterialError,
    InvalidEnvelopeError,
    SessionEstablishmentError,
    EncryptionError,
    DecryptionError,
    PeerNotRegisteredError,
)

__version__ = "0.1.0"

__all__ = [
    # Codec
    "encode",
    "decode",
    # Keys
    "KeyPair",
    "IdentityKey",
    "IdentityKeyPair",
    "PreKeyRecord",
    "SignedPreKeyRecord",
    "generate_registration_id",
    "generate_pre_key",
    "generate_signed_pre_key",
    # Bundle
    "PreKeyBundle",
    # Envelope
    "EnvelopeKind",
    "MessageEnvelope",
    # Session
    "KeyBundle",
    "SessionBuilder",
    "SessionCipher",
    # Storage
    "ProtocolStore",
    "InMemoryProtocolStore",
    # Client
    "SecureClient",
    # Relay
    "RelayService",
    # Types
    "ProtocolAddress",
    # Errors
    "PreKeyChatError",
    "MalformedEncodingError",
    "InvalidKeyMaterialError",
    "InvalidEnvelopeError",
    "SessionEstablishmentError",
    "EncryptionError",
    "DecryptionError",
    "PeerNotRegisteredError",
]
