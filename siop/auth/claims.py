"""Nonce, audience and registration checks on a decoded token."""

from collections.abc import Mapping

from siop.core.errors import DidAuthError, DidAuthErrors
from siop.jwt.parser import get_audience
from siop.jwt.types import DecodedJWT


def validate_nonce(decoded: DecodedJWT, expected: str | None) -> None:
    """Require payload.nonce to equal the expected nonce, when one is given."""
    if expected is None:
        return
    if decoded.payload.nonce != expected:
        raise DidAuthError(DidAuthErrors.ERROR_VALIDATING_NONCE)


def validate_audience(decoded: DecodedJWT, expected: str | None) -> None:
    """Reject audience arrays; compare with the expected audience if given."""
    audience = get_audience(decoded)
    if expected is None:
        return
    if audience is None:
        raise DidAuthError(DidAuthErrors.NO_AUDIENCE)
    if audience != expected:
        raise DidAuthError(DidAuthErrors.INVALID_AUDIENCE, f"expected {expected}")


def check_claims(
    decoded: DecodedJWT, *, nonce: str | None, audience: str | None
) -> None:
    """Audience first, then nonce."""
    validate_audience(decoded, audience)
    validate_nonce(decoded, nonce)


def get_registration_jwks_uri(decoded: DecodedJWT) -> str | None:
    """``registration.jwks_uri`` of a request, None when not given."""
    registration = decoded.payload.registration
    if not isinstance(registration, Mapping):
        return None
    return registration.get("jwks_uri") or None


def validate_jwks_uri(decoded: DecodedJWT, did: str) -> None:
    """A registration jwks_uri must point at the issuer's own DID."""
    jwks_uri = get_registration_jwks_uri(decoded)
    if jwks_uri is None:
        return
    if not isinstance(jwks_uri, str) or did not in jwks_uri:
        raise DidAuthError(DidAuthErrors.JWKS_URI_DID_MISMATCH, str(jwks_uri))
