"""Pre-key bundle snapshot exchanged between parties."""

from dataclasses import dataclass, fields
from typing import Any, Dict

from . import codec
from .keys import IdentityKey, PreKeyRecord, SignedPreKeyRecord, deserialize_public_key
from .session import KeyBundle
from .types import MAX_WIRE_ID, MalformedEncodingError, InvalidKeyMaterialError

# Python attribute -> JSON field name
JSON_FIELDS = {
    "registration_id": "registrationId",
    "device_id": "deviceId",
    "one_time_pre_key_id": "oneTimePreKeyId",
    "one_time_pre_key_public": "oneTimePreKeyPublic",
    "signed_pre_key_id": "signedPreKeyId",
    "signed_pre_key_public": "signedPreKeyPublic",
    "signed_pre_key_signature": "signedPreKeySignature",
    "identity_key_public": "identityKeyPublic",
}

# Names used by peers built against the first version of the demo
LEGACY_JSON_FIELDS = {
    "preKeyId": "oneTimePreKeyId",
    "preKeyPublic": "oneTimePreKeyPublic",
}


@dataclass(frozen=True)
class PreKeyBundle:
    """
    Public key material a peer needs to open a session with us.

    Integer ids are kept as-is; every key and signature is base64 text.
    """

    registration_id: int
    device_id: int
    one_time_pre_key_id: int
    one_time_pre_key_public: str
    signed_pre_key_id: int
    signed_pre_key_public: str
    signed_pre_key_signature: str
    identity_key_public: str

    @classmethod
    def capture(
        cls,
        identity: IdentityKey,
        registration_id: int,
        device_id: int,
        one_time_pre_key: PreKeyRecord,
        signed_pre_key: SignedPreKeyRecord,
    ) -> "PreKeyBundle":
        """Snapshot the public halves of the given key records."""
        return cls(
            registration_id=registration_id,
            device_id=device_id,
            one_time_pre_key_id=one_time_pre_key.id,
            one_time_pre_key_public=codec.encode(one_time_pre_key.key_pair.public_bytes),
            signed_pre_key_id=signed_pre_key.id,
            signed_pre_key_public=codec.encode(signed_pre_key.key_pair.public_bytes),
            signed_pre_key_signature=codec.encode(signed_pre_key.signature),
            identity_key_public=codec.encode(identity.serialize()),
        )

    def materialize(self) -> KeyBundle:
        """
        Decode every field into the engine's bundle type.

        Raises:
            InvalidKeyMaterialError: If a field is not base64, not a valid key,
                or an id does not fit in 32 bits
        """
        for name in ("registration_id", "one_time_pre_key_id", "signed_pre_key_id"):
            value = getattr(self, name)
            if not 0 <= value <= MAX_WIRE_ID:
                raise InvalidKeyMaterialError(f"Bundle field {JSON_FIELDS[name]} out of range: {value}")

        try:
            pre_key = deserialize_public_key(codec.decode(self.one_time_pre_key_public))
            signed_pre_key = deserialize_public_key(codec.decode(self.signed_pre_key_public))
            signature = codec.decode(self.signed_pre_key_signature)
            identity_key = IdentityKey.deserialize(codec.decode(self.identity_key_public))
        except MalformedEncodingError as e:
            raise InvalidKeyMaterialError(f"Bundle field is not valid base64: {e}") from e

        return KeyBundle(
            registration_id=self.registration_id,
            device_id=self.device_id,
            pre_key_id=self.one_time_pre_key_id,
            pre_key=pre_key,
            signed_pre_key_id=self.signed_pre_key_id,
            signed_pre_key=signed_pre_key,
            signed_pre_key_signature=signature,
            identity_key=identity_key,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {JSON_FIELDS[f.name]: getattr(self, f.name) for f in fields(self)}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "PreKeyBundle":
        """
        Build a bundle from its JSON mapping.

        Raises:
            InvalidKeyMaterialError: If any field is missing or has the wrong type
        """
        normalized = dict(data)
        for legacy, canonical in LEGACY_JSON_FIELDS.items():
            if canonical not in normalized and legacy in normalized:
                normalized[canonical] = normalized[legacy]

        missing = [name for name in JSON_FIELDS.values() if normalized.get(name) is None]
        if missing:
            raise InvalidKeyMaterialError(f"Incomplete pre-key bundle, missing: {', '.join(missing)}")

        values = {}
        for f in fields(cls):
            value = normalized[JSON_FIELDS[f.name]]
            expected = int if f.type in (int, "int") else str
            if isinstance(value, bool) or not isinstance(value, expected):
                raise InvalidKeyMaterialError(
                    f"Bundle field {JSON_FIELDS[f.name]} must be {expected.__name__}"
                )
            values[f.name] = value
        return cls(**values)
