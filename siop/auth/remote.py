"""Remote signature verification service client."""

from typing import Any

import httpx

from siop.auth.types import ExternalVerification
from siop.core.errors import DidAuthError, DidAuthErrors


async def do_post_call_with_token(
    client: httpx.AsyncClient, url: str, data: Any, token: str | None
) -> httpx.Response:
    """POST JSON with an optional Bearer token; transport errors are wrapped."""
    headers = {"Authorization": f"Bearer {token}"} if token else {}
    try:
        return await client.post(url, json=data, headers=headers)
    except httpx.HTTPError as exc:
        raise DidAuthError(DidAuthErrors.ERROR_ON_POST_CALL, str(exc)) from exc


async def verify_with_remote(
    token: str, verification: ExternalVerification, client: httpx.AsyncClient
) -> None:
    """Ask the verification service to check the token signature."""
    resp = await do_post_call_with_token(
        client, verification.verify_uri, {"jws": token}, verification.authz_token
    )
    if not resp.is_success:
        raise DidAuthError(
            DidAuthErrors.ERROR_VERIFYING_SIGNATURE,
            f"verification service answered {resp.status_code}",
        )
