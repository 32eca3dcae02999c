"""Shared fixtures for prekeychat tests."""

import pytest

from prekeychat import codec
from prekeychat.client import SecureClient
from prekeychat.envelope import MessageEnvelope
from prekeychat.relay import RelayService


@pytest.fixture
def alice() -> SecureClient:
    """Alice's client."""
    return SecureClient("alice")


@pytest.fixture
def bob() -> SecureClient:
    """Bob's client."""
    return SecureClient("bob")


@pytest.fixture
def local_client() -> SecureClient:
    """The client owned by the relay."""
    return SecureClient("local")


@pytest.fixture
def remote_client() -> SecureClient:
    """The remote (browser) peer, driven directly by tests."""
    return SecureClient("remote")


@pytest.fixture
def relay(local_client) -> RelayService:
    """A relay for the local client with remote peer name "remote"."""
    return RelayService(local_client, remote_name="remote")


def flip_body_byte(envelope: MessageEnvelope, index: int) -> MessageEnvelope:
    """Return a copy of the envelope with one byte of its ciphertext flipped."""
    data = bytearray(codec.decode(envelope.body))
    data[index] ^= 0x01
    return MessageEnvelope(kind=envelope.kind, body=codec.encode(bytes(data)))


@pytest.fixture
def tamper():
    """Helper that flips one ciphertext byte of an envelope."""
    return flip_body_byte
