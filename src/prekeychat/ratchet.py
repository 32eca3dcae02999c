"""Double Ratchet session state and key derivation.

Two ratchets advance together:
    - Root / DH ratchet: a new chain is derived whenever the peer's ratchet
      public key changes.
    - Chain ratchet: every message consumes one step of the sending or
      receiving chain.

Callers mutate a clone of the stored state and store it back only after the
message authenticates, so a failed decrypt never advances the ratchet.
"""

import hashlib
import hmac
import os
from dataclasses import dataclass, field, replace
from typing import Dict, Optional, Tuple

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.kdf.hkdf import HKDF
from cryptography.hazmat.primitives.hashes import SHA256
from cryptography.hazmat.primitives.ciphers.aead import ChaCha20Poly1305

from .keys import KeyPair, deserialize_public_key
from .types import (
    KEY_SIZE,
    NONCE_SIZE,
    MAX_SKIP,
    RATCHET_INFO,
    DuplicateMessageError,
    InvalidMessageError,
    InvalidKeyMaterialError,
)

_MESSAGE_KEY_SEED = b"\x01"
_CHAIN_KEY_SEED = b"\x02"


@dataclass(frozen=True)
class PendingPreKey:
    """Pre-key ids and base key the initiator repeats until the peer replies."""
    pre_key_id: int
    signed_pre_key_id: int
    base_key: bytes  # 33 bytes


@dataclass
class SessionState:
    """State for one side of a Double Ratchet session.

    Attributes:
        local_identity: Our serialized identity key.
        remote_identity: The peer's serialized identity key.
        local_registration_id: Our registration id.
        remote_registration_id: The peer's registration id (0 until known).
        root_key: Current root key.
        ratchet_private: Our current ratchet private key (raw 32 bytes).
        ratchet_remote: The peer's current ratchet public key (33 bytes).
        send_chain_key: Current sending chain key.
        recv_chain_key: Current receiving chain key.
        send_count: Messages sent on the current sending chain.
        recv_count: Messages received on the current receiving chain.
        prev_send_count: Length of the previous sending chain.
        skipped: Message keys for messages not yet received, by (ratchet key, counter).
        pending_pre_key: Set on the initiator until the first reply arrives.
        base_key: Initiator base key this session was built from.
    """

    local_identity: bytes
    remote_identity: bytes
    local_registration_id: int
    remote_registration_id: int
    root_key: bytes
    ratchet_private: bytes
    ratchet_remote: Optional[bytes] = None
    send_chain_key: Optional[bytes] = None
    recv_chain_key: Optional[bytes] = None
    send_count: int = 0
    recv_count: int = 0
    prev_send_count: int = 0
    skipped: Dict[Tuple[bytes, int], bytes] = field(default_factory=dict)
    pending_pre_key: Optional[PendingPreKey] = None
    base_key: bytes = b""

    def __repr__(self) -> str:
        return (
            f"SessionState(send_count={self.send_count}, recv_count={self.recv_count}, "
            f"skipped={len(self.skipped)} keys, pending={self.pending_pre_key is not None})"
        )

    @property
    def ratchet_key_pair(self) -> KeyPair:
        return KeyPair.from_private_bytes(self.ratchet_private)

    def clone(self) -> "SessionState":
        """Copy that can be mutated without touching this state."""
        return replace(self, skipped=dict(self.skipped))


def kdf_root(root_key: bytes, dh_output: bytes) -> Tuple[bytes, bytes]:
    """Root KDF: (root_key, dh_output) -> (new_root_key, chain_key)."""
    hkdf = HKDF(
        algorithm=SHA256(),
        length=2 * KEY_SIZE,
        salt=root_key,
        info=RATCHET_INFO,
    )
    derived = hkdf.derive(dh_output)
    return derived[:KEY_SIZE], derived[KEY_SIZE:]


def kdf_chain(chain_key: bytes) -> Tuple[bytes, bytes]:
    """Chain KDF: chain_key -> (next_chain_key, message_key)."""
    next_chain_key = hmac.new(chain_key, _CHAIN_KEY_SEED, hashlib.sha256).digest()
    message_key = hmac.new(chain_key, _MESSAGE_KEY_SEED, hashlib.sha256).digest()
    return next_chain_key, message_key


def initialize_initiator(
    shared_secret: bytes,
    their_signed_pre_key: bytes,
    local_identity: bytes,
    remote_identity: bytes,
    local_registration_id: int,
    remote_registration_id: int,
) -> SessionState:
    """
    Initialize the ratchet as the party that consumed a bundle.

    The peer's signed pre-key acts as its first ratchet key, so a sending
    chain is available immediately.
    """
    ratchet = KeyPair.generate()
    dh_output = ratchet.exchange(deserialize_public_key(their_signed_pre_key))
    root_key, send_chain_key = kdf_root(shared_secret, dh_output)

    return SessionState(
        local_identity=local_identity,
        remote_identity=remote_identity,
        local_registration_id=local_registration_id,
        remote_registration_id=remote_registration_id,
        root_key=root_key,
        ratchet_private=ratchet.private_bytes,
        ratchet_remote=their_signed_pre_key,
        send_chain_key=send_chain_key,
    )


def initialize_responder(
    shared_secret: bytes,
    our_signed_pre_key: KeyPair,
    local_identity: bytes,
    remote_identity: bytes,
    local_registration_id: int,
    remote_registration_id: int,
    base_key: bytes,
) -> SessionState:
    """
    Initialize the ratchet as the party whose bundle was consumed.

    No chain exists yet; the first DH ratchet step happens when the
    initiator's first message is decrypted.
    """
    return SessionState(
        local_identity=local_identity,
        remote_identity=remote_identity,
        local_registration_id=local_registration_id,
        remote_registration_id=remote_registration_id,
        root_key=shared_secret,
        ratchet_private=our_signed_pre_key.private_bytes,
        base_key=base_key,
    )


def next_sending_key(state: SessionState) -> Tuple[bytes, int, int, bytes]:
    """
    Advance the sending chain.

    Returns:
        Tuple of (ratchet_public_key, counter, previous_counter, message_key).
    """
    if state.send_chain_key is None:
        raise InvalidMessageError("Session has no sending chain")

    state.send_chain_key, message_key = kdf_chain(state.send_chain_key)
    counter = state.send_count
    state.send_count += 1
    return state.ratchet_key_pair.public_bytes, counter, state.prev_send_count, message_key


def receiving_key(state: SessionState, ratchet_key: bytes, counter: int, previous_counter: int) -> bytes:
    """
    Find the message key for an incoming message header.

    Performs a DH ratchet step when the sender's ratchet key is new and
    stores keys for any messages skipped on the way.

    Raises:
        DuplicateMessageError: If the counter was already consumed
        InvalidMessageError: If the header is unusable
    """
    skipped = state.skipped.pop((ratchet_key, counter), None)
    if skipped is not None:
        return skipped

    if ratchet_key != state.ratchet_remote:
        if state.recv_chain_key is not None:
            _skip_message_keys(state, previous_counter)
        _dh_ratchet(state, ratchet_key)
    elif counter < state.recv_count:
        raise DuplicateMessageError(f"Message counter {counter} already received")

    if state.recv_chain_key is None:
        raise InvalidMessageError("Session has no receiving chain")

    _skip_message_keys(state, counter)
    state.recv_chain_key, message_key = kdf_chain(state.recv_chain_key)
    state.recv_count += 1
    return message_key


def seal(message_key: bytes, plaintext: bytes, associated_data: bytes) -> bytes:
    """Encrypt with ChaCha20-Poly1305. Returns nonce || ciphertext || tag."""
    nonce = os.urandom(NONCE_SIZE)
    return nonce + ChaCha20Poly1305(message_key).encrypt(nonce, plaintext, associated_data)


def open_sealed(message_key: bytes, data: bytes, associated_data: bytes) -> bytes:
    """Decrypt nonce || ciphertext || tag produced by seal()."""
    nonce = data[:NONCE_SIZE]
    try:
        return ChaCha20Poly1305(message_key).decrypt(nonce, data[NONCE_SIZE:], associated_data)
    except InvalidTag as e:
        raise InvalidMessageError("Bad MAC") from e


def _dh_ratchet(state: SessionState, their_ratchet_key: bytes) -> None:
    """Derive a new receiving chain, then a new sending chain, from the peer's new key."""
    try:
        their_public = deserialize_public_key(their_ratchet_key)
        dh_output = state.ratchet_key_pair.exchange(their_public)
    except (InvalidKeyMaterialError, ValueError) as e:
        raise InvalidMessageError(f"Invalid ratchet key: {e}") from e

    state.prev_send_count = state.send_count
    state.send_count = 0
    state.recv_count = 0
    state.ratchet_remote = their_ratchet_key
    state.root_key, state.recv_chain_key = kdf_root(state.root_key, dh_output)

    ratchet = KeyPair.generate()
    state.ratchet_private = ratchet.private_bytes
    state.root_key, state.send_chain_key = kdf_root(state.root_key, ratchet.exchange(their_public))


def _skip_message_keys(state: SessionState, until: int) -> None:
    """Store message keys up to (not including) counter `until`."""
    if state.recv_chain_key is None:
        return

    if until - state.recv_count > MAX_SKIP:
        raise InvalidMessageError(
            f"Too many skipped messages ({until - state.recv_count} > {MAX_SKIP})"
        )

    while state.recv_count < until:
        state.recv_chain_key, message_key = kdf_chain(state.recv_chain_key)
        state.skipped[(state.ratchet_remote, state.recv_count)] = message_key
        state.recv_count += 1

    # Oldest keys go first once the store is full
    while len(state.skipped) > MAX_SKIP:
        del state.skipped[next(iter(state.skipped))]
