"""Offline resolution of did:key identifiers."""

import base58

from siop.core.errors import DidAuthError, DidAuthErrors
from siop.did.types import DIDDocument, VerificationMethod

DID_KEY_PREFIX = "did:key:"
MULTIBASE_BASE58BTC = "z"

# Multicodec varint prefixes of the supported public key types.
ED25519_MULTICODEC = bytes([0xED, 0x01])
SECP256K1_MULTICODEC = bytes([0xE7, 0x01])

_KEY_TYPES = {
    ED25519_MULTICODEC: ("Ed25519VerificationKey2018", 32),
    SECP256K1_MULTICODEC: ("EcdsaSecp256k1VerificationKey2019", 33),
}

DID_CONTEXT = "https://www.w3.org/ns/did/v1"


def is_key_did(did: str) -> bool:
    """True for ``did:key:`` identifiers."""
    return bool(did) and did.startswith(DID_KEY_PREFIX)


def _decode_fingerprint(fingerprint: str) -> tuple[str, bytes]:
    if not fingerprint.startswith(MULTIBASE_BASE58BTC):
        raise ValueError("did:key must use base58btc multibase ('z')")
    decoded = base58.b58decode(fingerprint[1:])
    codec = decoded[:2]
    if codec not in _KEY_TYPES:
        raise ValueError(f"unsupported multicodec prefix {codec.hex()}")
    vm_type, key_length = _KEY_TYPES[codec]
    raw_key = decoded[2:]
    if len(raw_key) != key_length:
        raise ValueError(f"expected {key_length} key bytes, got {len(raw_key)}")
    return vm_type, raw_key


def key_did_from_public_key(raw_key: bytes, multicodec: bytes) -> str:
    """Build a did:key identifier from raw public key bytes."""
    encoded = base58.b58encode(multicodec + raw_key).decode("ascii")
    return f"{DID_KEY_PREFIX}{MULTIBASE_BASE58BTC}{encoded}"


def resolve_did_key(did: str) -> DIDDocument:
    """Derive the DID Document from the did:key string alone."""
    if not is_key_did(did):
        raise DidAuthError(DidAuthErrors.BAD_PARAMS, f"not a did:key: {did!r}")
    fingerprint = did[len(DID_KEY_PREFIX) :].split("#", 1)[0]
    try:
        vm_type, raw_key = _decode_fingerprint(fingerprint)
    except ValueError as exc:
        raise DidAuthError(
            DidAuthErrors.ERROR_RETRIEVING_DID_DOCUMENT, str(exc)
        ) from exc
    did = f"{DID_KEY_PREFIX}{fingerprint}"
    vm_id = f"{did}#{fingerprint}"
    return DIDDocument(
        context=[DID_CONTEXT],
        id=did,
        verification_method=[
            VerificationMethod(
                id=vm_id,
                type=vm_type,
                controller=did,
                public_key_base58=base58.b58encode(raw_key).decode("ascii"),
            )
        ],
        authentication=[vm_id],
        assertion_method=[vm_id],
    )
