"""Protocol store interface and in-memory implementation."""

from abc import ABC, abstractmethod
from typing import Optional

from ..keys import IdentityKeyPair, PreKeyRecord, SignedPreKeyRecord
from ..ratchet import SessionState
from ..types import ProtocolAddress, InvalidKeyIdError


class ProtocolStore(ABC):
    """Interface for the key material and sessions one party holds."""

    @abstractmethod
    def get_identity_key_pair(self) -> IdentityKeyPair:
        """Return our long-term identity."""
        ...

    @abstractmethod
    def get_local_registration_id(self) -> int:
        """Return our registration id."""
        ...

    @abstractmethod
    def load_pre_key(self, pre_key_id: int) -> PreKeyRecord:
        """Load a one-time pre-key (raises InvalidKeyIdError if absent)."""
        ...

    @abstractmethod
    def store_pre_key(self, record: PreKeyRecord) -> None:
        """Store a one-time pre-key under its id."""
        ...

    @abstractmethod
    def remove_pre_key(self, pre_key_id: int) -> None:
        """Remove a one-time pre-key once it has been used."""
        ...

    @abstractmethod
    def load_signed_pre_key(self, signed_pre_key_id: int) -> SignedPreKeyRecord:
        """Load a signed pre-key (raises InvalidKeyIdError if absent)."""
        ...

    @abstractmethod
    def store_signed_pre_key(self, record: SignedPreKeyRecord) -> None:
        """Store a signed pre-key under its id."""
        ...

    @abstractmethod
    def load_session(self, address: ProtocolAddress) -> Optional[SessionState]:
        """Load the session for an address, or None."""
        ...

    @abstractmethod
    def store_session(self, address: ProtocolAddress, session: SessionState) -> None:
        """Store (or replace) the session for an address."""
        ...

    def contains_session(self, address: ProtocolAddress) -> bool:
        """Check if a session exists for an address."""
        return self.load_session(address) is not None


class InMemoryProtocolStore(ProtocolStore):
    """
    In-memory implementation of ProtocolStore.

    Keys and sessions are lost when the process exits. Callers are
    responsible for locking; the store itself is not thread-safe.
    """

    def __init__(self, identity: IdentityKeyPair, registration_id: int) -> None:
        self._identity = identity
        self._registration_id = registration_id
        self._pre_keys: dict[int, PreKeyRecord] = {}
        self._signed_pre_keys: dict[int, SignedPreKeyRecord] = {}
        self._sessions: dict[ProtocolAddress, SessionState] = {}

    def get_identity_key_pair(self) -> IdentityKeyPair:
        return self._identity

    def get_local_registration_id(self) -> int:
        return self._registration_id

    def load_pre_key(self, pre_key_id: int) -> PreKeyRecord:
        record = self._pre_keys.get(pre_key_id)
        if record is None:
            raise InvalidKeyIdError(f"No such pre-key: {pre_key_id}")
        return record

    def store_pre_key(self, record: PreKeyRecord) -> None:
        self._pre_keys[record.id] = record

    def remove_pre_key(self, pre_key_id: int) -> None:
        self._pre_keys.pop(pre_key_id, None)

    def load_signed_pre_key(self, signed_pre_key_id: int) -> SignedPreKeyRecord:
        record = self._signed_pre_keys.get(signed_pre_key_id)
        if record is None:
            raise InvalidKeyIdError(f"No such signed pre-key: {signed_pre_key_id}")
        return record

    def store_signed_pre_key(self, record: SignedPreKeyRecord) -> None:
        self._signed_pre_keys[record.id] = record

    def load_session(self, address: ProtocolAddress) -> Optional[SessionState]:
        return self._sessions.get(address)

    def store_session(self, address: ProtocolAddress, session: SessionState) -> None:
        self._sessions[address] = session
