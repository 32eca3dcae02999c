"""Tests for pre-key bundle capture, materialization and JSON mapping."""

from dataclasses import replace

import pytest

from prekeychat import codec
from prekeychat.bundle import PreKeyBundle
from prekeychat.keys import IdentityKey, public_key_to_bytes
from prekeychat.types import IDENTITY_KEY_SIZE, PUBLIC_KEY_SIZE, InvalidKeyMaterialError

CANONICAL_FIELDS = {
    "registrationId",
    "deviceId",
    "oneTimePreKeyId",
    "oneTimePreKeyPublic",
    "signedPreKeyId",
    "signedPreKeyPublic",
    "signedPreKeySignature",
    "identityKeyPublic",
}


class TestCapture:
    """Test bundles issued by a client."""

    def test_fields(self, alice) -> None:
        """Bundle carries the client's ids and base64 key material."""
        bundle = alice.issue_bundle()

        assert bundle.registration_id == alice.registration_id
        assert bundle.device_id == alice.device_id
        assert len(codec.decode(bundle.one_time_pre_key_public)) == PUBLIC_KEY_SIZE
        assert len(codec.decode(bundle.signed_pre_key_public)) == PUBLIC_KEY_SIZE
        assert len(codec.decode(bundle.signed_pre_key_signature)) == 64
        assert codec.decode(bundle.identity_key_public) == alice.identity_public_key
        assert len(alice.identity_public_key) == IDENTITY_KEY_SIZE

    def test_signature_covers_signed_pre_key(self, alice) -> None:
        """Signature verifies against the bundle's identity key."""
        bundle = alice.issue_bundle()
        identity = IdentityKey.deserialize(codec.decode(bundle.identity_key_public))
        assert identity.verify(
            codec.decode(bundle.signed_pre_key_signature),
            codec.decode(bundle.signed_pre_key_public),
        )

    def test_materialize(self, alice) -> None:
        """Materialized bundle holds the decoded keys."""
        bundle = alice.issue_bundle()
        key_bundle = bundle.materialize()

        assert key_bundle.registration_id == bundle.registration_id
        assert key_bundle.pre_key_id == bundle.one_time_pre_key_id
        assert key_bundle.signed_pre_key_id == bundle.signed_pre_key_id
        assert public_key_to_bytes(key_bundle.pre_key) == codec.decode(bundle.one_time_pre_key_public)[1:]
        assert key_bundle.identity_key.serialize() == alice.identity_public_key

    def test_materialize_rejects_bad_base64(self, alice) -> None:
        """Malformed base64 in a key field is reported as invalid key material."""
        bundle = replace(alice.issue_bundle(), signed_pre_key_public="not base64!")
        with pytest.raises(InvalidKeyMaterialError):
            bundle.materialize()

    @pytest.mark.parametrize(
        "field, value",
        [
            ("one_time_pre_key_id", -1),
            ("signed_pre_key_id", 2**32),
            ("registration_id", 2**40),
        ],
    )
    def test_materialize_rejects_out_of_range_id(self, alice, field: str, value: int) -> None:
        """Ids that do not fit in an unsigned 32-bit field are rejected."""
        bundle = replace(alice.issue_bundle(), **{field: value})
        with pytest.raises(InvalidKeyMaterialError):
            bundle.materialize()

    def test_materialize_accepts_max_id(self, alice) -> None:
        """The largest 32-bit id is accepted."""
        bundle = replace(alice.issue_bundle(), signed_pre_key_id=2**32 - 1)
        assert bundle.materialize().signed_pre_key_id == 2**32 - 1

    @pytest.mark.parametrize("field", ["one_time_pre_key_public", "signed_pre_key_public"])
    def test_materialize_rejects_low_order_key(self, alice, field: str) -> None:
        """A low-order curve point is rejected as invalid key material."""
        bundle = replace(alice.issue_bundle(), **{field: codec.encode(b"\x05" + b"\x00" * 32)})
        with pytest.raises(InvalidKeyMaterialError):
            bundle.materialize()

    def test_materialize_rejects_short_key(self, alice) -> None:
        """Key of the wrong length is rejected."""
        bundle = replace(alice.issue_bundle(), one_time_pre_key_public=codec.encode(b"\x05" * 10))
        with pytest.raises(InvalidKeyMaterialError):
            bundle.materialize()


class TestJsonMapping:
    """Test to_dict / from_dict."""

    def test_to_dict_field_names(self, alice) -> None:
        """Dict uses the camelCase field names."""
        data = alice.issue_bundle().to_dict()
        assert set(data) == CANONICAL_FIELDS
        assert isinstance(data["registrationId"], int)
        assert isinstance(data["identityKeyPublic"], str)

    def test_from_dict(self, alice) -> None:
        """Dict parses back into an equal bundle."""
        bundle = alice.issue_bundle()
        assert PreKeyBundle.from_dict(bundle.to_dict()) == bundle

    def test_from_dict_legacy_names(self, alice) -> None:
        """Legacy preKeyId / preKeyPublic names are accepted."""
        bundle = alice.issue_bundle()
        data = bundle.to_dict()
        data["preKeyId"] = data.pop("oneTimePreKeyId")
        data["preKeyPublic"] = data.pop("oneTimePreKeyPublic")

        assert PreKeyBundle.from_dict(data) == bundle

    @pytest.mark.parametrize("missing", sorted(CANONICAL_FIELDS))
    def test_from_dict_rejects_missing(self, alice, missing: str) -> None:
        """A bundle with any field absent is rejected."""
        data = alice.issue_bundle().to_dict()
        del data[missing]
        with pytest.raises(InvalidKeyMaterialError):
            PreKeyBundle.from_dict(data)

    def test_from_dict_rejects_null(self, alice) -> None:
        """A null field counts as missing."""
        data = alice.issue_bundle().to_dict()
        data["signedPreKeySignature"] = None
        with pytest.raises(InvalidKeyMaterialError):
            PreKeyBundle.from_dict(data)

    @pytest.mark.parametrize(
        "field, value",
        [
            ("registrationId", "123"),
            ("deviceId", True),
            ("signedPreKeyPublic", 5),
        ],
    )
    def test_from_dict_rejects_wrong_type(self, alice, field: str, value) -> None:
        """Ids must be integers and key material must be text."""
        data = alice.issue_bundle().to_dict()
        data[field] = value
        with pytest.raises(InvalidKeyMaterialError):
            PreKeyBundle.from_dict(data)
