"""Message envelope carrying one ciphertext and its type tag."""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict

from . import codec
from .session import SessionCipher
from .types import (
    PREKEY_TYPE,
    DecryptionError,
    InvalidEnvelopeError,
    InvalidKeyMaterialError,
    MalformedEncodingError,
    ProtocolError,
)
from .wire import CiphertextMessage, PreKeySignalMessage, SignalMessage


class EnvelopeKind(Enum):
    """Whether the ciphertext opens a session or continues one."""
    SESSION_OPEN = "PREKEY"
    SESSION_MESSAGE = "SIGNAL"


@dataclass(frozen=True)
class MessageEnvelope:
    """Transport container: envelope kind plus base64 ciphertext."""
    kind: EnvelopeKind
    body: str

    @classmethod
    def from_ciphertext(cls, message: CiphertextMessage) -> "MessageEnvelope":
        """Wrap an engine ciphertext, mirroring its type tag."""
        if message.type == PREKEY_TYPE:
            kind = EnvelopeKind.SESSION_OPEN
        else:
            kind = EnvelopeKind.SESSION_MESSAGE
        return cls(kind=kind, body=codec.encode(message.serialize()))

    def to_plaintext(self, cipher: SessionCipher) -> str:
        """
        Decrypt the envelope on the cipher's session.

        Dispatches on `kind`; the body is never inspected to guess the type.
        Failures are not retried, since the ratchet only advances on success.

        Raises:
            MalformedEncodingError: If the body is not base64
            DecryptionError: On any engine failure
        """
        data = codec.decode(self.body)
        try:
            if self.kind is EnvelopeKind.SESSION_OPEN:
                plaintext = cipher.decrypt_pre_key_message(PreKeySignalMessage.parse(data))
            else:
                plaintext = cipher.decrypt_message(SignalMessage.parse(data))
            return plaintext.decode("utf-8")
        except (ProtocolError, InvalidKeyMaterialError, ValueError) as e:
            raise DecryptionError(f"Unable to decrypt message: {e}") from e

    def to_dict(self) -> Dict[str, Any]:
        return {"kind": self.kind.value, "body": self.body}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "MessageEnvelope":
        """
        Build an envelope from its JSON mapping.

        The field name "type" is accepted in place of "kind".

        Raises:
            InvalidEnvelopeError: If the kind is missing or unknown
            MalformedEncodingError: If the body is missing or not text
        """
        kind = data.get("kind", data.get("type"))
        try:
            parsed_kind = EnvelopeKind(kind)
        except ValueError as e:
            raise InvalidEnvelopeError(f"Unknown envelope kind: {kind!r}") from e

        body = data.get("body")
        if not isinstance(body, str):
            raise MalformedEncodingError("Envelope body must be base64 text")
        return cls(kind=parsed_kind, body=body)
