"""Public key material extraction and normalisation for verification methods."""

import base64
import re

import base58
from cryptography.hazmat.primitives.asymmetric import ec

from siop.core.errors import DidAuthError, DidAuthErrors
from siop.crypto.types import EcPointHex, PublicJwk
from siop.did.types import KeyEncoding, VerificationMethod

SECP256K1_CRV = "secp256k1"
ED25519_CRV = "Ed25519"
ED25519_KEY_LENGTH = 32
SECP256K1_RAW_POINT_LENGTH = 64

# JWK coordinates are base64url (43 chars for 32 bytes); legacy documents
# carry 64 hex digits instead.
_HEX_COORDINATE = re.compile(r"[0-9A-Fa-f]{64}")


def base64url_encode(raw: bytes) -> str:
    """Encode bytes as base64url without padding."""
    return base64.urlsafe_b64encode(raw).rstrip(b"=").decode("ascii")


def base64url_decode(value: str) -> bytes:
    """Decode base64url, tolerating missing padding."""
    padded = value + "=" * (-len(value) % 4)
    return base64.urlsafe_b64decode(padded.encode("ascii"))


def coordinate_to_hex(value: str) -> str:
    """Hex form of a JWK coordinate."""
    if _HEX_COORDINATE.fullmatch(value):
        return value.lower()
    return base64url_decode(value).hex()


def load_secp256k1_public_key(hex_key: str) -> ec.EllipticCurvePublicKey:
    """Load a secp256k1 point from compressed, uncompressed or raw x||y hex."""
    raw = bytes.fromhex(hex_key.removeprefix("0x"))
    if len(raw) == SECP256K1_RAW_POINT_LENGTH:
        raw = b"\x04" + raw
    try:
        return ec.EllipticCurvePublicKey.from_encoded_point(ec.SECP256K1(), raw)
    except ValueError as exc:
        raise DidAuthError(DidAuthErrors.NO_KEY_CURVE_SUPPORTED, str(exc)) from exc


def get_public_jwk_from_public_hex(hex_key: str) -> PublicJwk:
    """Convert a hex-encoded secp256k1 public key to JWK form."""
    numbers = load_secp256k1_public_key(hex_key).public_numbers()
    return PublicJwk(
        kty="EC",
        crv=SECP256K1_CRV,
        x=base64url_encode(numbers.x.to_bytes(32, "big")),
        y=base64url_encode(numbers.y.to_bytes(32, "big")),
    )


def ed25519_jwk_from_base58(public_key_base58: str) -> PublicJwk:
    """Convert a base58 Ed25519 public key to an OKP JWK."""
    raw = base58.b58decode(public_key_base58)
    if len(raw) != ED25519_KEY_LENGTH:
        raise DidAuthError(
            DidAuthErrors.NO_KEY_CURVE_SUPPORTED,
            f"Ed25519 key must be {ED25519_KEY_LENGTH} bytes, got {len(raw)}",
        )
    return PublicJwk(kty="OKP", crv=ED25519_CRV, x=base64url_encode(raw))


def extract_public_key_jwk(vm: VerificationMethod) -> PublicJwk:
    """JWK of a verification method; base58 keys are read as secp256k1."""
    encoding = vm.key_encoding
    if encoding is KeyEncoding.JWK:
        return PublicJwk.model_validate(vm.public_key_jwk)
    if encoding is KeyEncoding.BASE58:
        raw = base58.b58decode(vm.public_key_base58 or "")
        return get_public_jwk_from_public_hex(raw.hex())
    raise DidAuthError(DidAuthErrors.NO_PUBLIC_KEY, vm.id)


def extract_public_key_bytes(vm: VerificationMethod) -> str | EcPointHex:
    """Hex key material: a single point from base58 or x/y from a JWK."""
    if vm.public_key_base58:
        return base58.b58decode(vm.public_key_base58).hex()
    if vm.public_key_jwk:
        jwk = PublicJwk.model_validate(vm.public_key_jwk)
        if not jwk.x or not jwk.y:
            raise DidAuthError(
                DidAuthErrors.NO_KEY_CURVE_SUPPORTED, "JWK has no EC point"
            )
        return EcPointHex(x=coordinate_to_hex(jwk.x), y=coordinate_to_hex(jwk.y))
    raise DidAuthError(DidAuthErrors.NO_PUBLIC_KEY, vm.id)
