"""Decomposition of compact DID Auth tokens and claim extraction."""

import json

import jwt
from pydantic import ValidationError

from siop.core.errors import DidAuthError, DidAuthErrors
from siop.jwt.types import SELF_ISSUED_ISSUERS, DecodedJWT, JWTHeader, JWTPayload


def decode_jwt(token: str) -> DecodedJWT:
    """Split a compact token into header, payload, signing input and signature.

    No signature or claim is checked here. Any structural problem fails with
    MALFORMED_SIGNATURE_RESPONSE so broken tokens never reach later stages.
    """
    if not token or token.count(".") != 2:
        raise DidAuthError(
            DidAuthErrors.MALFORMED_SIGNATURE_RESPONSE, "expected three segments"
        )
    try:
        parts = jwt.api_jws.decode_complete(
            token, options={"verify_signature": False}
        )
        raw_payload = json.loads(parts["payload"])
        if not isinstance(raw_payload, dict):
            raise ValueError("payload must be a JSON object")
        header = JWTHeader.model_validate(parts["header"])
        payload = JWTPayload.model_validate(raw_payload)
    except (jwt.PyJWTError, ValueError, ValidationError) as exc:
        raise DidAuthError(
            DidAuthErrors.MALFORMED_SIGNATURE_RESPONSE, str(exc)
        ) from exc
    return DecodedJWT(
        token=token,
        header=header,
        payload=payload,
        signing_input=token.rsplit(".", 1)[0].encode("ascii"),
        signature=parts["signature"],
    )


def get_issuer_did(decoded: DecodedJWT) -> str:
    """Return the DID that issued the token.

    Self-issued tokens carry the subject DID in the ``did`` claim.
    """
    payload = decoded.payload
    if payload.iss in SELF_ISSUED_ISSUERS:
        if not payload.did:
            raise DidAuthError(DidAuthErrors.NO_ISS_DID)
        return payload.did
    if not payload.iss:
        raise DidAuthError(DidAuthErrors.NO_ISS_DID)
    return payload.iss


def get_audience(decoded: DecodedJWT) -> str | None:
    """Return the single audience, None when absent. Arrays are rejected."""
    aud = decoded.payload.aud
    if aud is None or aud == "":
        return None
    if isinstance(aud, list):
        raise DidAuthError(DidAuthErrors.INVALID_AUDIENCE)
    return aud
