"""Per-algorithm signature verification against a DID verification method."""

import hashlib
from collections.abc import Callable

import jwt
from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.hazmat.primitives.asymmetric.utils import (
    Prehashed,
    encode_dss_signature,
)

from siop.core.errors import DidAuthError, DidAuthErrors
from siop.crypto.keys import (
    ED25519_CRV,
    SECP256K1_CRV,
    ed25519_jwk_from_base58,
    extract_public_key_bytes,
    extract_public_key_jwk,
    load_secp256k1_public_key,
)
from siop.crypto.types import EcdsaSignature, PublicJwk
from siop.did.types import VerificationMethod
from siop.jwt.types import DecodedJWT, DidAuthKeyAlgorithm

RAW_SIGNATURE_LENGTHS = (64, 65)
SCALAR_LENGTH = 32


def to_signature_object(raw: bytes) -> EcdsaSignature:
    """Split a 64 or 65 byte raw signature into hex r and s."""
    if len(raw) not in RAW_SIGNATURE_LENGTHS:
        raise DidAuthError(
            DidAuthErrors.ERROR_VERIFYING_SIGNATURE,
            f"wrong signature length {len(raw)}",
        )
    return EcdsaSignature(
        r=raw[:SCALAR_LENGTH].hex(),
        s=raw[SCALAR_LENGTH : 2 * SCALAR_LENGTH].hex(),
        recovery_param=raw[64] if len(raw) == 65 else None,
    )


def _require_curve(jwk: PublicJwk, kty: str, crv: str) -> None:
    if jwk.kty != kty or jwk.crv != crv:
        raise DidAuthError(
            DidAuthErrors.NO_KEY_CURVE_SUPPORTED, f"{jwk.kty}/{jwk.crv}"
        )


def _jose_verify(token: str, jwk: PublicJwk, alg: DidAuthKeyAlgorithm) -> bool:
    """Verify a compact token with a standard JOSE algorithm."""
    try:
        key = jwt.PyJWK(jwk.to_dict(), algorithm=alg.value)
    except jwt.PyJWTError as exc:
        raise DidAuthError(DidAuthErrors.NO_KEY_CURVE_SUPPORTED, str(exc)) from exc
    try:
        payload = jwt.decode(
            token,
            key.key,
            algorithms=[alg.value],
            options={"verify_aud": False},
        )
    except jwt.PyJWTError as exc:
        raise DidAuthError(
            DidAuthErrors.ERROR_VERIFYING_SIGNATURE, str(exc)
        ) from exc
    if not payload:
        raise DidAuthError(DidAuthErrors.ERROR_VERIFYING_SIGNATURE)
    return True


def verify_eddsa(decoded: DecodedJWT, vm: VerificationMethod) -> bool:
    """EdDSA over Ed25519; a JWK takes precedence over base58."""
    try:
        if vm.public_key_jwk:
            jwk = PublicJwk.model_validate(vm.public_key_jwk)
        elif vm.public_key_base58:
            jwk = ed25519_jwk_from_base58(vm.public_key_base58)
        else:
            raise DidAuthError(DidAuthErrors.NO_PUBLIC_KEY, vm.id)
    except ValueError as exc:
        raise DidAuthError(DidAuthErrors.NO_KEY_CURVE_SUPPORTED, str(exc)) from exc
    _require_curve(jwk, "OKP", ED25519_CRV)
    return _jose_verify(decoded.token, jwk, DidAuthKeyAlgorithm.EDDSA)


def verify_es256k(decoded: DecodedJWT, vm: VerificationMethod) -> bool:
    """ES256K with the JOSE (r||s) signature encoding."""
    try:
        jwk = extract_public_key_jwk(vm)
    except ValueError as exc:
        raise DidAuthError(DidAuthErrors.NO_KEY_CURVE_SUPPORTED, str(exc)) from exc
    _require_curve(jwk, "EC", SECP256K1_CRV)
    return _jose_verify(decoded.token, jwk, DidAuthKeyAlgorithm.ES256K)


def verify_es256kr(decoded: DecodedJWT, vm: VerificationMethod) -> bool:
    """ES256K-R: raw point verification of SHA-256(signing input).

    The recovery byte, when present, is ignored; the key comes from the
    verification method rather than from recovery.
    """
    sig = to_signature_object(decoded.signature)
    try:
        material = extract_public_key_bytes(vm)
    except ValueError as exc:
        raise DidAuthError(DidAuthErrors.NO_KEY_CURVE_SUPPORTED, str(exc)) from exc
    hex_key = material if isinstance(material, str) else material.to_hex()
    public_key = load_secp256k1_public_key(hex_key)
    digest = hashlib.sha256(decoded.signing_input).digest()
    der = encode_dss_signature(int(sig.r, 16), int(sig.s, 16))
    try:
        public_key.verify(der, digest, ec.ECDSA(Prehashed(hashes.SHA256())))
    except InvalidSignature:
        return False
    return True


_VERIFIERS: dict[
    DidAuthKeyAlgorithm, Callable[[DecodedJWT, VerificationMethod], bool]
] = {
    DidAuthKeyAlgorithm.EDDSA: verify_eddsa,
    DidAuthKeyAlgorithm.ES256K: verify_es256k,
    DidAuthKeyAlgorithm.ES256KR: verify_es256kr,
}


def verify_signature_from_verification_method(
    decoded: DecodedJWT, vm: VerificationMethod
) -> bool:
    """Dispatch on the header alg. Unsupported algorithms return False."""
    alg = decoded.algorithm
    if alg is None:
        return False
    return _VERIFIERS[alg](decoded, vm)
