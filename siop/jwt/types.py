"""Type definitions for decoded DID Auth tokens."""

from enum import StrEnum
from typing import Any

from pydantic import BaseModel, ConfigDict


class DidAuthKeyAlgorithm(StrEnum):
    """Signature algorithms accepted in the token header."""

    EDDSA = "EdDSA"
    ES256K = "ES256K"
    ES256KR = "ES256K-R"


SELF_ISSUED_ISSUERS = frozenset({"self_issued", "https://self-issued.me"})


class JWTHeader(BaseModel):
    """JOSE header of a DID Auth token."""

    model_config = ConfigDict(extra="allow")

    alg: str
    kid: str | None = None
    typ: str | None = None


class JWTPayload(BaseModel):
    """Claims of a DID Auth token. Unknown claims are kept."""

    model_config = ConfigDict(extra="allow")

    iss: str | None = None
    aud: str | list[Any] | None = None
    nonce: str | None = None
    did: str | None = None
    sub: str | None = None
    exp: int | float | None = None
    iat: int | float | None = None
    registration: Any = None


class DecodedJWT(BaseModel):
    """A token split into its parts, before any signature check."""

    token: str
    header: JWTHeader
    payload: JWTPayload
    signing_input: bytes
    signature: bytes

    @property
    def algorithm(self) -> DidAuthKeyAlgorithm | None:
        """Header alg as a known algorithm, or None when unsupported."""
        try:
            return DidAuthKeyAlgorithm(self.header.alg)
        except ValueError:
            return None
