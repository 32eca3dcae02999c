"""X3DH key agreement for asynchronous session establishment.

The initiator combines four Diffie-Hellman outputs against the responder's
published bundle:

    DH1 = DH(IKa, SPKb)
    DH2 = DH(EKa, IKb)
    DH3 = DH(EKa, SPKb)
    DH4 = DH(EKa, OPKb)
    SK  = HKDF(0xFF * 32 || DH1 || DH2 || DH3 || DH4)

The responder computes the same four values from its private halves.
"""

from cryptography.hazmat.primitives.kdf.hkdf import HKDF
from cryptography.hazmat.primitives.hashes import SHA256
from cryptography.hazmat.primitives.asymmetric.x25519 import X25519PublicKey

from .keys import KeyPair, IdentityKey, IdentityKeyPair
from .types import X3DH_INFO, X3DH_PREFIX, KEY_SIZE


def derive_shared_secret(dh_concat: bytes) -> bytes:
    """Derive the 32-byte shared secret from concatenated DH outputs."""
    hkdf = HKDF(
        algorithm=SHA256(),
        length=KEY_SIZE,
        salt=b"\x00" * KEY_SIZE,
        info=X3DH_INFO,
    )
    return hkdf.derive(X3DH_PREFIX + dh_concat)


def agree_initiator(
    our_identity: IdentityKeyPair,
    our_base_key: KeyPair,
    their_identity: IdentityKey,
    their_signed_pre_key: X25519PublicKey,
    their_one_time_pre_key: X25519PublicKey,
) -> bytes:
    """
    Compute the shared secret as the party consuming a bundle.

    Args:
        our_identity: Our long-term identity
        our_base_key: Freshly generated ephemeral key pair
        their_identity: Identity key from the peer's bundle
        their_signed_pre_key: Signed pre-key from the peer's bundle
        their_one_time_pre_key: One-time pre-key from the peer's bundle

    Returns:
        32-byte shared secret
    """
    dh1 = our_identity.agreement.exchange(their_signed_pre_key)
    dh2 = our_base_key.exchange(their_identity.agreement_key)
    dh3 = our_base_key.exchange(their_signed_pre_key)
    dh4 = our_base_key.exchange(their_one_time_pre_key)
    return derive_shared_secret(dh1 + dh2 + dh3 + dh4)


def agree_responder(
    our_identity: IdentityKeyPair,
    our_signed_pre_key: KeyPair,
    our_one_time_pre_key: KeyPair,
    their_identity: IdentityKey,
    their_base_key: X25519PublicKey,
) -> bytes:
    """
    Compute the shared secret as the party whose bundle was consumed.

    Args:
        our_identity: Our long-term identity
        our_signed_pre_key: The signed pre-key named in the first message
        our_one_time_pre_key: The one-time pre-key named in the first message
        their_identity: The initiator's identity key
        their_base_key: The initiator's ephemeral public key

    Returns:
        32-byte shared secret (equal to the initiator's)
    """
    dh1 = our_signed_pre_key.exchange(their_identity.agreement_key)
    dh2 = our_identity.agreement.exchange(their_base_key)
    dh3 = our_signed_pre_key.exchange(their_base_key)
    dh4 = our_one_time_pre_key.exchange(their_base_key)
    return derive_shared_secret(dh1 + dh2 + dh3 + dh4)
