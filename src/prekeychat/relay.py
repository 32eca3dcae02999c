"""Relay buffering envelopes for a remote peer that is not connected."""

import logging
import threading
from collections import deque
from typing import List, Optional

from .bundle import PreKeyBundle
from .client import SecureClient
from .envelope import MessageEnvelope
from .types import PeerNotRegisteredError

logger = logging.getLogger(__name__)

DEFAULT_REMOTE_NAME = "remote"


class RelayService:
    """
    Broker between the local SecureClient and one remote peer.

    Holds the remote peer's most recent bundle and a FIFO queue of
    envelopes waiting for the remote peer to poll. Every operation runs
    under one lock, so a bundle submission and the session it establishes
    are never observed half-done by a concurrent send or delivery.
    """

    def __init__(self, client: SecureClient, remote_name: str = DEFAULT_REMOTE_NAME) -> None:
        self._client = client
        self._remote_name = remote_name
        self._lock = threading.Lock()
        self._remote_bundle: Optional[PreKeyBundle] = None
        self._pending: deque[MessageEnvelope] = deque()

    @property
    def client(self) -> SecureClient:
        return self._client

    @property
    def remote_name(self) -> str:
        return self._remote_name

    @property
    def remote_bundle(self) -> Optional[PreKeyBundle]:
        """The most recently accepted remote bundle, if any."""
        with self._lock:
            return self._remote_bundle

    @property
    def has_remote_bundle(self) -> bool:
        with self._lock:
            return self._remote_bundle is not None

    @property
    def pending_count(self) -> int:
        """Number of envelopes waiting for the remote peer."""
        with self._lock:
            return len(self._pending)

    def get_local_bundle(self) -> PreKeyBundle:
        """Issue a fresh bundle for the local client."""
        with self._lock:
            return self._client.issue_bundle()

    def submit_remote_bundle(self, bundle: PreKeyBundle) -> None:
        """
        Store the remote peer's bundle and establish a session from it.

        If the bundle is rejected, the previously stored bundle is kept.

        Raises:
            InvalidKeyMaterialError: If a bundle field is malformed.
            SessionEstablishmentError: If the engine rejects the bundle.
        """
        with self._lock:
            self._client.consume_bundle(self._remote_name, bundle)
            self._remote_bundle = bundle
        logger.info("Registered bundle for %s (registration id %d)", self._remote_name, bundle.registration_id)

    def deliver_inbound(self, envelope: MessageEnvelope) -> str:
        """Decrypt an envelope sent by the remote peer."""
        with self._lock:
            return self._client.decrypt_from(self._remote_name, envelope)

    def send_outbound(self, plaintext: str) -> MessageEnvelope:
        """
        Encrypt a message for the remote peer and queue it.

        Returns:
            The queued envelope.

        Raises:
            PeerNotRegisteredError: If no remote bundle has been submitted.
            EncryptionError: If the engine fails.
        """
        with self._lock:
            if self._remote_bundle is None:
                raise PeerNotRegisteredError(self._remote_name)
            envelope = self._client.encrypt_for(self._remote_name, plaintext)
            self._pending.append(envelope)
            logger.debug("Queued %s envelope for %s (%d pending)", envelope.kind.value, self._remote_name, len(self._pending))
        return envelope

    def drain_outbound(self) -> List[MessageEnvelope]:
        """Remove and return every queued envelope, oldest first."""
        with self._lock:
            drained, self._pending = self._pending, deque()
        if drained:
            logger.info("Delivered %d envelope(s) to %s", len(drained), self._remote_name)
        return list(drained)
