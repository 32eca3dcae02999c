"""
Secure client owning one party's identity and sessions.

The SecureClient issues pre-key bundles, consumes peers' bundles, and
encrypts and decrypts envelopes keyed by peer name.
"""

import logging
import threading
from typing import Optional, Tuple

from .bundle import PreKeyBundle
from .envelope import MessageEnvelope
from .keys import (
    IdentityKeyPair,
    PreKeyRecord,
    SignedPreKeyRecord,
    generate_pre_key,
    generate_registration_id,
    generate_signed_pre_key,
)
from .session import SessionBuilder, SessionCipher
from .storage import InMemoryProtocolStore, ProtocolStore
from .types import (
    DEFAULT_DEVICE_ID,
    ProtocolAddress,
    EncryptionError,
    ProtocolError,
    SessionEstablishmentError,
)

logger = logging.getLogger(__name__)


class SecureClient:
    """
    One party in an end-to-end encrypted conversation.

    A peer moves from "no session" to "established" either by us consuming
    its bundle (initiator) or by us decrypting its session-opening envelope
    (responder).

    Example usage:
        ```python
        alice = SecureClient("alice")
        bob = SecureClient("bob")

        bob.consume_bundle("alice", alice.issue_bundle())
        envelope = bob.encrypt_for("alice", "hello")
        assert alice.decrypt_from("bob", envelope) == "hello"
        ```
    """

    def __init__(
        self,
        name: str,
        device_id: int = DEFAULT_DEVICE_ID,
        store: Optional[ProtocolStore] = None,
    ) -> None:
        """
        Create a client with a fresh identity.

        Args:
            name: This party's name.
            device_id: Device id published in our bundles.
            store: Protocol store to use (default: new in-memory store with a
                fresh identity and registration id).
        """
        self._name = name
        self._device_id = device_id
        if store is None:
            store = InMemoryProtocolStore(IdentityKeyPair.generate(), generate_registration_id())
        self._store = store
        self._lock = threading.RLock()

        self._next_pre_key_id = 1
        self._next_signed_pre_key_id = 1

    @property
    def name(self) -> str:
        return self._name

    @property
    def device_id(self) -> int:
        return self._device_id

    @property
    def registration_id(self) -> int:
        return self._store.get_local_registration_id()

    @property
    def identity_public_key(self) -> bytes:
        """Our serialized identity public key (65 bytes)."""
        return self._store.get_identity_key_pair().public_key.serialize()

    # MARK: - Bundles

    def issue_bundle(self) -> PreKeyBundle:
        """
        Generate fresh pre-keys and return a bundle describing them.

        Every call stores a new one-time pre-key and a new signed pre-key
        with ids one higher than the previous call's. One-time pre-keys from
        bundles that are never consumed stay in the store.

        Returns:
            The bundle to publish to a peer.
        """
        with self._lock:
            pre_key, signed_pre_key = self._generate_pre_keys()
            bundle = PreKeyBundle.capture(
                identity=self._store.get_identity_key_pair().public_key,
                registration_id=self.registration_id,
                device_id=self._device_id,
                one_time_pre_key=pre_key,
                signed_pre_key=signed_pre_key,
            )
        logger.info(
            "Issued bundle for %s (pre-key %d, signed pre-key %d)",
            self._name,
            bundle.one_time_pre_key_id,
            bundle.signed_pre_key_id,
        )
        return bundle

    def consume_bundle(self, peer_name: str, bundle: PreKeyBundle) -> None:
        """
        Establish a session with a peer from its bundle.

        Replaces any existing session with that peer.

        Args:
            peer_name: The peer's name.
            bundle: The peer's bundle.

        Raises:
            InvalidKeyMaterialError: If a bundle field is malformed.
            SessionEstablishmentError: If the engine rejects the bundle.
        """
        key_bundle = bundle.materialize()
        with self._lock:
            builder = SessionBuilder(self._store, self._address(peer_name))
            try:
                builder.process(key_bundle)
            except (ProtocolError, ValueError) as e:
                raise SessionEstablishmentError(f"Unable to establish session with {peer_name}: {e}") from e

    def has_session(self, peer_name: str) -> bool:
        """Whether a session with the peer is established."""
        with self._lock:
            return self._store.contains_session(self._address(peer_name))

    # MARK: - Messages

    def encrypt_for(self, peer_name: str, plaintext: str) -> MessageEnvelope:
        """
        Encrypt a message for a peer.

        Args:
            peer_name: The peer's name.
            plaintext: The message text.

        Returns:
            The envelope to deliver to the peer.

        Raises:
            EncryptionError: If no session exists or the engine fails.
        """
        with self._lock:
            cipher = SessionCipher(self._store, self._address(peer_name))
            try:
                message = cipher.encrypt(plaintext.encode("utf-8"))
            except (ProtocolError, ValueError) as e:
                raise EncryptionError(f"Unable to encrypt message for {peer_name}: {e}") from e
        return MessageEnvelope.from_ciphertext(message)

    def decrypt_from(self, peer_name: str, envelope: MessageEnvelope) -> str:
        """
        Decrypt an envelope from a peer.

        A session-opening envelope establishes the session if none exists.

        Args:
            peer_name: The peer's name.
            envelope: The envelope received from the peer.

        Returns:
            The message text.

        Raises:
            MalformedEncodingError: If the envelope body is not base64.
            DecryptionError: If the engine fails to decrypt.
        """
        with self._lock:
            cipher = SessionCipher(self._store, self._address(peer_name))
            return envelope.to_plaintext(cipher)

    # MARK: - Private Helpers

    def _address(self, peer_name: str) -> ProtocolAddress:
        return ProtocolAddress(peer_name, DEFAULT_DEVICE_ID)

    def _generate_pre_keys(self) -> Tuple[PreKeyRecord, SignedPreKeyRecord]:
        """Generate and store the next one-time and signed pre-keys."""
        pre_key = generate_pre_key(self._next_pre_key_id)
        signed_pre_key = generate_signed_pre_key(self._store.get_identity_key_pair(), self._next_signed_pre_key_id)
        self._next_pre_key_id += 1
        self._next_signed_pre_key_id += 1
        self._store.store_pre_key(pre_key)
        self._store.store_signed_pre_key(signed_pre_key)
        return pre_key, signed_pre_key
