"""Session establishment and per-message encryption for the session engine."""

import logging
from dataclasses import dataclass, replace

from cryptography.hazmat.primitives.asymmetric.x25519 import X25519PublicKey

from . import ratchet, x3dh
from .keys import IdentityKey, KeyPair, deserialize_public_key, serialize_public_key
from .ratchet import PendingPreKey, SessionState
from .storage import ProtocolStore
from .types import (
    ProtocolAddress,
    InvalidKeyMaterialError,
    InvalidMessageError,
    InvalidSignatureError,
    NoSessionError,
)
from .wire import CiphertextMessage, PreKeySignalMessage, SignalMessage

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class KeyBundle:
    """A peer's pre-key bundle with every field decoded to key objects."""
    registration_id: int
    device_id: int
    pre_key_id: int
    pre_key: X25519PublicKey
    signed_pre_key_id: int
    signed_pre_key: X25519PublicKey
    signed_pre_key_signature: bytes
    identity_key: IdentityKey


class SessionBuilder:
    """Builds sessions for one remote address in a protocol store."""

    def __init__(self, store: ProtocolStore, remote_address: ProtocolAddress) -> None:
        self.store = store
        self.remote_address = remote_address

    def process(self, bundle: KeyBundle) -> None:
        """
        Establish a session as initiator from the peer's bundle.

        Any existing session for the address is replaced.

        Raises:
            InvalidSignatureError: If the signed pre-key was not signed by the bundle's identity
        """
        signed_pre_key_bytes = serialize_public_key(bundle.signed_pre_key)
        if not bundle.identity_key.verify(bundle.signed_pre_key_signature, signed_pre_key_bytes):
            raise InvalidSignatureError("Signed pre-key signature verification failed")

        identity = self.store.get_identity_key_pair()
        base_key = KeyPair.generate()

        shared_secret = x3dh.agree_initiator(
            our_identity=identity,
            our_base_key=base_key,
            their_identity=bundle.identity_key,
            their_signed_pre_key=bundle.signed_pre_key,
            their_one_time_pre_key=bundle.pre_key,
        )

        state = ratchet.initialize_initiator(
            shared_secret=shared_secret,
            their_signed_pre_key=signed_pre_key_bytes,
            local_identity=identity.public_key.serialize(),
            remote_identity=bundle.identity_key.serialize(),
            local_registration_id=self.store.get_local_registration_id(),
            remote_registration_id=bundle.registration_id,
        )
        state.pending_pre_key = PendingPreKey(
            pre_key_id=bundle.pre_key_id,
            signed_pre_key_id=bundle.signed_pre_key_id,
            base_key=base_key.public_bytes,
        )
        state.base_key = base_key.public_bytes

        self.store.store_session(self.remote_address, state)
        logger.info("Built initiator session with %s", self.remote_address)

    def process_pre_key_message(self, message: PreKeySignalMessage) -> SessionState:
        """
        Build the responder's session from a session-opening message.

        The returned state is not stored; the caller stores it once the
        wrapped message decrypts.

        Raises:
            InvalidKeyIdError: If a referenced pre-key is not in the store
            InvalidMessageError: If the embedded keys are malformed
        """
        identity = self.store.get_identity_key_pair()
        signed_pre_key = self.store.load_signed_pre_key(message.signed_pre_key_id)
        pre_key = self.store.load_pre_key(message.pre_key_id)

        try:
            their_identity = IdentityKey.deserialize(message.identity_key)
            their_base_key = deserialize_public_key(message.base_key)
            shared_secret = x3dh.agree_responder(
                our_identity=identity,
                our_signed_pre_key=signed_pre_key.key_pair,
                our_one_time_pre_key=pre_key.key_pair,
                their_identity=their_identity,
                their_base_key=their_base_key,
            )
        except (InvalidKeyMaterialError, ValueError) as e:
            raise InvalidMessageError(f"Invalid pre-key message: {e}") from e

        return ratchet.initialize_responder(
            shared_secret=shared_secret,
            our_signed_pre_key=signed_pre_key.key_pair,
            local_identity=identity.public_key.serialize(),
            remote_identity=message.identity_key,
            local_registration_id=self.store.get_local_registration_id(),
            remote_registration_id=message.registration_id,
            base_key=message.base_key,
        )


class SessionCipher:
    """Encrypts and decrypts messages for one remote address."""

    def __init__(self, store: ProtocolStore, remote_address: ProtocolAddress) -> None:
        self.store = store
        self.remote_address = remote_address

    def encrypt(self, plaintext: bytes) -> CiphertextMessage:
        """
        Encrypt a message on the established session.

        Until the peer has replied, the message is wrapped as a
        PreKeySignalMessage so the peer can build its side of the session.

        Raises:
            NoSessionError: If no session exists for the address
        """
        stored = self.store.load_session(self.remote_address)
        if stored is None:
            raise NoSessionError(self.remote_address)

        state = stored.clone()
        ratchet_key, counter, previous_counter, message_key = ratchet.next_sending_key(state)
        message = SignalMessage(
            ratchet_key=ratchet_key,
            counter=counter,
            previous_counter=previous_counter,
            ciphertext=b"",
        )

        wrapper = None
        outer_header = b""
        pending = state.pending_pre_key
        if pending is not None:
            wrapper = PreKeySignalMessage(
                registration_id=state.local_registration_id,
                pre_key_id=pending.pre_key_id,
                signed_pre_key_id=pending.signed_pre_key_id,
                base_key=pending.base_key,
                identity_key=state.local_identity,
                message=message,
            )
            outer_header = wrapper.header()

        # Pre-key header is authenticated along with the message header
        ad = state.local_identity + state.remote_identity + outer_header + message.header()
        message = replace(message, ciphertext=ratchet.seal(message_key, plaintext, ad))

        self.store.store_session(self.remote_address, state)
        if wrapper is None:
            return message
        return replace(wrapper, message=message)

    def decrypt_pre_key_message(self, message: PreKeySignalMessage) -> bytes:
        """
        Decrypt a session-opening message, building the session if needed.

        A repeat of the opening message for an already-built session reuses
        that session. The one-time pre-key is removed only after the
        message decrypts.

        Raises:
            ProtocolError: On any key, parse, or authentication failure
        """
        existing = self.store.load_session(self.remote_address)
        if existing is not None and existing.base_key == message.base_key:
            state = existing.clone()
            consumed_pre_key = None
        else:
            builder = SessionBuilder(self.store, self.remote_address)
            state = builder.process_pre_key_message(message)
            consumed_pre_key = message.pre_key_id

        plaintext = self._decrypt_with_state(state, message.message, message.header())

        self.store.store_session(self.remote_address, state)
        if consumed_pre_key is not None:
            self.store.remove_pre_key(consumed_pre_key)
            logger.info("Built responder session with %s", self.remote_address)
        return plaintext

    def decrypt_message(self, message: SignalMessage) -> bytes:
        """
        Decrypt an ongoing-session message.

        Raises:
            NoSessionError: If no session exists for the address
            ProtocolError: On any parse or authentication failure
        """
        stored = self.store.load_session(self.remote_address)
        if stored is None:
            raise NoSessionError(self.remote_address)

        state = stored.clone()
        plaintext = self._decrypt_with_state(state, message, b"")
        # The peer has our session; stop sending pre-key messages
        state.pending_pre_key = None
        self.store.store_session(self.remote_address, state)
        return plaintext

    def _decrypt_with_state(self, state: SessionState, message: SignalMessage, outer_header: bytes) -> bytes:
        message_key = ratchet.receiving_key(
            state, message.ratchet_key, message.counter, message.previous_counter
        )
        ad = state.remote_identity + state.local_identity + outer_header + message.header()
        return ratchet.open_sealed(message_key, message.ciphertext, ad)
