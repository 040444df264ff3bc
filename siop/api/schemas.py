"""Request and response bodies of the verification endpoints."""

from typing import Any

from pydantic import BaseModel, ConfigDict

from siop.did.types import to_camel


class VerifyTokenPayload(BaseModel):
    """Request body for POST /siop/verify/*."""

    token: str
    nonce: str | None = None
    audience: str | None = None


class VerifiedTokenResponse(BaseModel):
    """Identity established by a verified token."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    did: str
    kid: str | None = None
    did_document: dict[str, Any] | None = None
    payload: dict[str, Any]
