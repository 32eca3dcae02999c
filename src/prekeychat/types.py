"""Type definitions for prekeychat."""

from dataclasses import dataclass


@dataclass(frozen=True)
class ProtocolAddress:
    """A peer address: party name plus device id."""
    name: str
    device_id: int

    def __str__(self) -> str:
        return f"{self.name}.{self.device_id}"


# Key constants
DJB_TYPE = 0x05
KEY_SIZE = 32
PUBLIC_KEY_SIZE = 33  # type byte + 32-byte X25519 key
IDENTITY_KEY_SIZE = 65  # 32-byte Ed25519 key + 33-byte X25519 key
SIGNATURE_SIZE = 64
MAX_REGISTRATION_ID = 16380
MAX_WIRE_ID = 0xFFFFFFFF  # ids travel as big-endian uint32
DEFAULT_DEVICE_ID = 1

# Ciphertext constants
CIPHERTEXT_VERSION = 3
WHISPER_TYPE = 2
PREKEY_TYPE = 3
NONCE_SIZE = 12
TAG_SIZE = 16
MAX_SKIP = 1000

# Key derivation constants
X3DH_INFO = b"prekeychat-X3DH-v1"
RATCHET_INFO = b"prekeychat-Ratchet-v1"
X3DH_PREFIX = b"\xff" * 32


# Exception types
class PreKeyChatError(Exception):
    """Base exception for prekeychat errors."""
    status_code = 500


class MalformedEncodingError(PreKeyChatError):
    """Text is not valid base64 key material."""
    status_code = 400


class InvalidKeyMaterialError(PreKeyChatError):
    """Key material has a length, type or field set the engine rejects."""
    status_code = 400


class InvalidEnvelopeError(PreKeyChatError):
    """Envelope is missing fields or has an unknown kind."""
    status_code = 400


class SessionEstablishmentError(PreKeyChatError):
    """The engine refused to build a session from a bundle."""
    status_code = 500


class EncryptionError(PreKeyChatError):
    """Encryption failed."""
    status_code = 500


class DecryptionError(PreKeyChatError):
    """Decryption failed."""
    status_code = 500


class PeerNotRegisteredError(PreKeyChatError):
    """No pre-key bundle has been registered for the peer."""
    status_code = 428

    def __init__(self, peer: str) -> None:
        self.peer = peer
        super().__init__(f"Pre-key bundle not yet registered for peer: {peer}")


# Session engine exception types. These stay inside the engine and are
# translated into the errors above by the client and envelope layers.
class ProtocolError(Exception):
    """Base exception for session engine failures."""
    pass


class InvalidSignatureError(ProtocolError):
    """Signed pre-key signature verification failed."""
    pass


class NoSessionError(ProtocolError):
    """No session exists for the address."""

    def __init__(self, address: ProtocolAddress) -> None:
        self.address = address
        super().__init__(f"No session for: {address}")


class InvalidKeyIdError(ProtocolError):
    """A message referenced a pre-key this store does not hold."""
    pass


class InvalidMessageError(ProtocolError):
    """Ciphertext failed to parse or authenticate."""
    pass


class DuplicateMessageError(ProtocolError):
    """Message key for this counter was already used."""
    pass
