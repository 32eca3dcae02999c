"""Ciphertext message encoding and decoding for the session engine."""

from dataclasses import dataclass
from typing import Union

from .types import (
    CIPHERTEXT_VERSION,
    WHISPER_TYPE,
    PREKEY_TYPE,
    PUBLIC_KEY_SIZE,
    IDENTITY_KEY_SIZE,
    NONCE_SIZE,
    TAG_SIZE,
    InvalidMessageError,
)

VERSION_BYTE = (CIPHERTEXT_VERSION << 4) | CIPHERTEXT_VERSION
SIGNAL_HEADER_SIZE = 1 + PUBLIC_KEY_SIZE + 4 + 4
PREKEY_HEADER_SIZE = 1 + 4 + 4 + 4 + PUBLIC_KEY_SIZE + IDENTITY_KEY_SIZE


@dataclass(frozen=True)
class SignalMessage:
    """An ongoing-session ciphertext.

    Format (42-byte header + sealed payload):
        [0]      version (0x33)
        [1-33]   ratchetKey (33 bytes)
        [34-37]  counter (4 bytes, big-endian uint32)
        [38-41]  previousCounter (4 bytes, big-endian uint32)
        [42+]    nonce (12 bytes) + ciphertext + 16-byte tag
    """

    ratchet_key: bytes
    counter: int
    previous_counter: int
    ciphertext: bytes

    type = WHISPER_TYPE

    def header(self) -> bytes:
        return (
            bytes([VERSION_BYTE])
            + self.ratchet_key
            + self.counter.to_bytes(4, byteorder="big")
            + self.previous_counter.to_bytes(4, byteorder="big")
        )

    def serialize(self) -> bytes:
        return self.header() + self.ciphertext

    @classmethod
    def parse(cls, data: bytes) -> "SignalMessage":
        """
        Decode bytes into a SignalMessage.

        Raises:
            InvalidMessageError: If data is too short or has the wrong version
        """
        if len(data) < SIGNAL_HEADER_SIZE + NONCE_SIZE + TAG_SIZE:
            raise InvalidMessageError(f"Message too short: {len(data)} bytes")

        if data[0] != VERSION_BYTE:
            raise InvalidMessageError(f"Unknown version: {data[0]:#04x}")

        offset = 1
        ratchet_key = data[offset : offset + PUBLIC_KEY_SIZE]
        offset += PUBLIC_KEY_SIZE

        counter = int.from_bytes(data[offset : offset + 4], byteorder="big")
        offset += 4

        previous_counter = int.from_bytes(data[offset : offset + 4], byteorder="big")
        offset += 4

        return cls(
            ratchet_key=ratchet_key,
            counter=counter,
            previous_counter=previous_counter,
            ciphertext=data[offset:],
        )


@dataclass(frozen=True)
class PreKeySignalMessage:
    """A session-opening ciphertext: pre-key header wrapping a SignalMessage.

    Format (111-byte header + SignalMessage):
        [0]       version (0x33)
        [1-4]     registrationId (4 bytes)
        [5-8]     preKeyId (4 bytes)
        [9-12]    signedPreKeyId (4 bytes)
        [13-45]   baseKey (33 bytes)
        [46-110]  identityKey (65 bytes)
        [111+]    SignalMessage
    """

    registration_id: int
    pre_key_id: int
    signed_pre_key_id: int
    base_key: bytes
    identity_key: bytes
    message: SignalMessage

    type = PREKEY_TYPE

    def header(self) -> bytes:
        return (
            bytes([VERSION_BYTE])
            + self.registration_id.to_bytes(4, byteorder="big")
            + self.pre_key_id.to_bytes(4, byteorder="big")
            + self.signed_pre_key_id.to_bytes(4, byteorder="big")
            + self.base_key
            + self.identity_key
        )

    def serialize(self) -> bytes:
        return self.header() + self.message.serialize()

    @classmethod
    def parse(cls, data: bytes) -> "PreKeySignalMessage":
        """
        Decode bytes into a PreKeySignalMessage.

        Raises:
            InvalidMessageError: If data is too short or has the wrong version
        """
        if len(data) < PREKEY_HEADER_SIZE:
            raise InvalidMessageError(f"Pre-key message too short: {len(data)} bytes")

        if data[0] != VERSION_BYTE:
            raise InvalidMessageError(f"Unknown version: {data[0]:#04x}")

        offset = 1
        registration_id = int.from_bytes(data[offset : offset + 4], byteorder="big")
        offset += 4

        pre_key_id = int.from_bytes(data[offset : offset + 4], byteorder="big")
        offset += 4

        signed_pre_key_id = int.from_bytes(data[offset : offset + 4], byteorder="big")
        offset += 4

        base_key = data[offset : offset + PUBLIC_KEY_SIZE]
        offset += PUBLIC_KEY_SIZE

        identity_key = data[offset : offset + IDENTITY_KEY_SIZE]
        offset += IDENTITY_KEY_SIZE

        return cls(
            registration_id=registration_id,
            pre_key_id=pre_key_id,
            signed_pre_key_id=signed_pre_key_id,
            base_key=base_key,
            identity_key=identity_key,
            message=SignalMessage.parse(data[offset:]),
        )


CiphertextMessage = Union[SignalMessage, PreKeySignalMessage]
