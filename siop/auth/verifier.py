"""End-to-end verification of DID Auth requests and responses.

Every call runs the same fixed pipeline and stops at the first failure:

1. parameter validation (no network or crypto work before this passes)
2. token parsing and issuer DID extraction
3. signature check, either delegated to a remote verification service or
   done locally by resolving the DID, selecting the verification method
   named by ``kid`` and verifying with the algorithm from the header
4. claim checks: audience, then nonce, then for requests the registration
   jwks_uri
"""

from collections.abc import Mapping
from typing import Any

import httpx
from pydantic import ValidationError

from siop.auth.claims import check_claims, validate_jwks_uri
from siop.auth.remote import verify_with_remote
from siop.auth.types import (
    DidAuthVerifyOpts,
    ExternalVerification,
    InternalVerification,
    VerificationType,
    VerifiedDidAuth,
)
from siop.core.errors import DidAuthError, DidAuthErrors
from siop.core.logging import get_logger
from siop.core.settings import HTTP_TIMEOUT_DEFAULT
from siop.crypto.signature import verify_signature_from_verification_method
from siop.did.methods import get_verification_method
from siop.did.resolver import resolve_did
from siop.jwt.parser import decode_jwt, get_issuer_did
from siop.jwt.types import DecodedJWT

logger = get_logger("siop.auth.verifier")

VerifyOptsInput = DidAuthVerifyOpts | Mapping[str, Any] | None


def _validate_opts(
    token: str, opts: VerifyOptsInput, *, require_nonce: bool
) -> DidAuthVerifyOpts:
    if not token or not opts:
        raise DidAuthError(DidAuthErrors.VERIFY_BAD_PARAMETERS)
    if not isinstance(opts, DidAuthVerifyOpts):
        try:
            opts = DidAuthVerifyOpts.model_validate(opts)
        except ValidationError as exc:
            raise DidAuthError(
                DidAuthErrors.VERIFY_BAD_PARAMETERS, str(exc)
            ) from exc
    if opts.verification_type is None:
        raise DidAuthError(DidAuthErrors.VERIFY_BAD_PARAMETERS)
    if require_nonce and not opts.nonce:
        raise DidAuthError(DidAuthErrors.VERIFY_BAD_PARAMETERS, "nonce is required")
    return opts


def select_strategy(opts: DidAuthVerifyOpts) -> VerificationType:
    """Pick remote or local verification once, from the populated fields."""
    verification = opts.verification_type
    if isinstance(verification, ExternalVerification):
        return verification
    if isinstance(verification, InternalVerification) and verification.is_configured:
        return verification
    raise DidAuthError(
        DidAuthErrors.VERIFY_BAD_PARAMETERS,
        "either verifyUri, didUrlResolver or registry and rpcUrl must be set",
    )


async def _check_signature_locally(
    decoded: DecodedJWT,
    did: str,
    verification: InternalVerification,
    client: httpx.AsyncClient,
) -> VerifiedDidAuth:
    did_doc = await resolve_did(did, verification.resolver_config(), client)
    kid = decoded.header.kid
    vm = get_verification_method(kid, did_doc)
    if vm is None:
        raise DidAuthError(DidAuthErrors.ERROR_RETRIEVING_VERIFICATION_METHOD, kid)
    if not verify_signature_from_verification_method(decoded, vm):
        if decoded.algorithm is None:
            raise DidAuthError(DidAuthErrors.NO_ALG_SUPPORTED, decoded.header.alg)
        raise DidAuthError(DidAuthErrors.ERROR_VERIFYING_SIGNATURE)
    return VerifiedDidAuth(
        did=did,
        kid=kid,
        header=decoded.header,
        payload=decoded.payload,
        did_document=did_doc,
        verification_method=vm,
    )


async def _run(
    token: str,
    opts: DidAuthVerifyOpts,
    client: httpx.AsyncClient,
    *,
    check_jwks_uri: bool,
) -> VerifiedDidAuth:
    strategy = select_strategy(opts)
    decoded = decode_jwt(token)
    did = get_issuer_did(decoded)
    if isinstance(strategy, ExternalVerification):
        await verify_with_remote(token, strategy, client)
        verified = VerifiedDidAuth(
            did=did,
            kid=decoded.header.kid,
            header=decoded.header,
            payload=decoded.payload,
        )
    else:
        verified = await _check_signature_locally(decoded, did, strategy, client)
    check_claims(decoded, nonce=opts.nonce, audience=opts.audience)
    if check_jwks_uri:
        validate_jwks_uri(decoded, did)
    return verified


async def _verify(
    token: str,
    opts: DidAuthVerifyOpts,
    http_client: httpx.AsyncClient | None,
    timeout: float,
    *,
    check_jwks_uri: bool = False,
) -> VerifiedDidAuth:
    strategy = "remote" if isinstance(
        opts.verification_type, ExternalVerification
    ) else "local"
    try:
        if http_client is not None:
            verified = await _run(
                token, opts, http_client, check_jwks_uri=check_jwks_uri
            )
        else:
            async with httpx.AsyncClient(timeout=timeout) as client:
                verified = await _run(
                    token, opts, client, check_jwks_uri=check_jwks_uri
                )
    except DidAuthError as exc:
        logger.warning(
            "did auth token rejected",
            reason=exc.reason.name,
            detail=exc.detail,
            strategy=strategy,
        )
        raise
    logger.info(
        "did auth token verified",
        did=verified.did,
        alg=verified.header.alg,
        strategy=strategy,
    )
    return verified


async def verify_did_auth_request(
    token: str,
    opts: VerifyOptsInput,
    *,
    http_client: httpx.AsyncClient | None = None,
    timeout: float = HTTP_TIMEOUT_DEFAULT,
) -> VerifiedDidAuth:
    """Verify a DID Auth request token.

    The nonce expectation is optional. A ``registration.jwks_uri`` in the
    payload must reference the issuer DID.
    """
    validated = _validate_opts(token, opts, require_nonce=False)
    return await _verify(
        token, validated, http_client, timeout, check_jwks_uri=True
    )


async def verify_did_auth_response(
    id_token: str,
    opts: VerifyOptsInput,
    *,
    http_client: httpx.AsyncClient | None = None,
    timeout: float = HTTP_TIMEOUT_DEFAULT,
) -> VerifiedDidAuth:
    """Verify a DID Auth response id_token against the expected nonce."""
    validated = _validate_opts(id_token, opts, require_nonce=True)
    return await _verify(id_token, validated, http_client, timeout)
