"""DID Auth request and response verification endpoints."""

from collections.abc import Awaitable, Callable
from typing import Annotated

from fastapi import APIRouter, Depends
from starlette.responses import JSONResponse

from siop.api.schemas import VerifiedTokenResponse, VerifyTokenPayload
from siop.auth.types import DidAuthVerifyOpts, VerifiedDidAuth
from siop.auth.verifier import verify_did_auth_request, verify_did_auth_response
from siop.core.errors import DidAuthError, DidAuthErrors
from siop.core.settings import VerifierSettings

router = APIRouter(prefix="/siop", tags=["siop"])

HTTP_BAD_REQUEST = 400
HTTP_UNAUTHORIZED = 401
HTTP_SERVER_ERROR = 500
HTTP_BAD_GATEWAY = 502

_STATUS_BY_REASON = {
    DidAuthErrors.BAD_PARAMS: HTTP_BAD_REQUEST,
    DidAuthErrors.VERIFY_BAD_PARAMETERS: HTTP_BAD_REQUEST,
    DidAuthErrors.MALFORMED_SIGNATURE_RESPONSE: HTTP_BAD_REQUEST,
    DidAuthErrors.ERROR_RETRIEVING_DID_DOCUMENT: HTTP_BAD_GATEWAY,
    DidAuthErrors.ERROR_ON_POST_CALL: HTTP_BAD_GATEWAY,
    DidAuthErrors.BAD_INTERNAL_VERIFICATION_PARAMS: HTTP_SERVER_ERROR,
}

Verifier = Callable[..., Awaitable[VerifiedDidAuth]]


def _load_settings() -> VerifierSettings:
    return VerifierSettings()


def _error_response(exc: DidAuthError) -> JSONResponse:
    status_code = _STATUS_BY_REASON.get(exc.reason, HTTP_UNAUTHORIZED)
    error = "invalid_request" if status_code == HTTP_BAD_REQUEST else "invalid_token"
    if status_code >= HTTP_SERVER_ERROR:
        error = "server_error"
    return JSONResponse(
        {"error": error, "error_description": str(exc)},
        status_code=status_code,
    )


async def _handle(
    verifier: Verifier, body: VerifyTokenPayload, settings: VerifierSettings
) -> VerifiedTokenResponse | JSONResponse:
    opts = DidAuthVerifyOpts(
        verification_type=settings.verification_type(),
        nonce=body.nonce,
        audience=body.audience,
    )
    try:
        verified = await verifier(body.token, opts, timeout=settings.http_timeout)
    except DidAuthError as exc:
        return _error_response(exc)
    return VerifiedTokenResponse.model_validate(verified.to_wire())


@router.post("/verify/request", response_model=None)
async def verify_request(
    body: VerifyTokenPayload,
    settings: Annotated[VerifierSettings, Depends(_load_settings)],
) -> VerifiedTokenResponse | JSONResponse:
    """POST /siop/verify/request -- verify a DID Auth request token."""
    return await _handle(verify_did_auth_request, body, settings)


@router.post("/verify/response", response_model=None)
async def verify_response(
    body: VerifyTokenPayload,
    settings: Annotated[VerifierSettings, Depends(_load_settings)],
) -> VerifiedTokenResponse | JSONResponse:
    """POST /siop/verify/response -- verify a DID Auth response id_token."""
    return await _handle(verify_did_auth_response, body, settings)
