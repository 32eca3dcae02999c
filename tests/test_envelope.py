"""Tests for message envelopes."""

import pytest

from prekeychat.envelope import EnvelopeKind, MessageEnvelope
from prekeychat.types import (
    DecryptionError,
    InvalidEnvelopeError,
    MalformedEncodingError,
)


class TestKind:
    """Test the envelope kind tag."""

    def test_wire_values(self) -> None:
        """Kinds serialize to PREKEY and SIGNAL."""
        assert EnvelopeKind.SESSION_OPEN.value == "PREKEY"
        assert EnvelopeKind.SESSION_MESSAGE.value == "SIGNAL"

    def test_kind_mirrors_ciphertext_type(self, alice, bob) -> None:
        """Envelope kind follows the ciphertext's type tag."""
        bob.consume_bundle("alice", alice.issue_bundle())
        opening = bob.encrypt_for("alice", "hello")
        alice.decrypt_from("bob", opening)
        reply = alice.encrypt_for("bob", "hi")

        assert opening.kind is EnvelopeKind.SESSION_OPEN
        assert reply.kind is EnvelopeKind.SESSION_MESSAGE


class TestJsonMapping:
    """Test to_dict / from_dict."""

    def test_to_dict(self) -> None:
        """Dict holds the wire kind and the body."""
        envelope = MessageEnvelope(kind=EnvelopeKind.SESSION_MESSAGE, body="AAAA")
        assert envelope.to_dict() == {"kind": "SIGNAL", "body": "AAAA"}

    def test_from_dict(self) -> None:
        """Dict parses back into an equal envelope."""
        envelope = MessageEnvelope(kind=EnvelopeKind.SESSION_OPEN, body="AAAA")
        assert MessageEnvelope.from_dict(envelope.to_dict()) == envelope

    def test_from_dict_type_alias(self) -> None:
        """The field name "type" is accepted for the kind."""
        envelope = MessageEnvelope.from_dict({"type": "PREKEY", "body": "AAAA"})
        assert envelope.kind is EnvelopeKind.SESSION_OPEN

    @pytest.mark.parametrize("kind", ["WHISPER", "prekey", None, 3])
    def test_from_dict_unknown_kind(self, kind) -> None:
        """Unknown or missing kind is rejected."""
        with pytest.raises(InvalidEnvelopeError):
            MessageEnvelope.from_dict({"kind": kind, "body": "AAAA"})

    def test_from_dict_missing_body(self) -> None:
        """A missing body is rejected."""
        with pytest.raises(MalformedEncodingError):
            MessageEnvelope.from_dict({"kind": "SIGNAL"})


class TestToPlaintext:
    """Test envelope decryption dispatch."""

    def test_malformed_body(self, alice) -> None:
        """Body that is not base64 raises MalformedEncodingError."""
        envelope = MessageEnvelope(kind=EnvelopeKind.SESSION_MESSAGE, body="%%%")
        with pytest.raises(MalformedEncodingError):
            alice.decrypt_from("bob", envelope)

    def test_garbage_body(self, alice) -> None:
        """Valid base64 that is not a ciphertext raises DecryptionError."""
        envelope = MessageEnvelope(kind=EnvelopeKind.SESSION_OPEN, body="AAAA")
        with pytest.raises(DecryptionError):
            alice.decrypt_from("bob", envelope)

    def test_wrong_kind(self, alice, bob) -> None:
        """A session-opening ciphertext tagged as SIGNAL fails to decrypt."""
        bob.consume_bundle("alice", alice.issue_bundle())
        opening = bob.encrypt_for("alice", "hello")
        mislabeled = MessageEnvelope(kind=EnvelopeKind.SESSION_MESSAGE, body=opening.body)

        with pytest.raises(DecryptionError):
            alice.decrypt_from("bob", mislabeled)
        assert alice.decrypt_from("bob", opening) == "hello"
