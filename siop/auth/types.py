"""Verification options and results for DID Auth tokens."""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from siop.did.resolver import ResolverConfig
from siop.did.types import DIDDocument, VerificationMethod, to_camel
from siop.jwt.types import JWTHeader, JWTPayload


class ExternalVerification(BaseModel):
    """Delegate signature checking to a remote verification service."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    verify_uri: str = Field(min_length=1)
    authz_token: str | None = Field(default=None, alias="authZToken")


class InternalVerification(BaseModel):
    """Resolve the issuer DID and check the signature locally."""

    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, extra="forbid"
    )

    did_url_resolver: str | None = None
    registry: str | None = None
    rpc_url: str | None = None
    default_network: str = "mainnet"

    @property
    def is_configured(self) -> bool:
        """True when an HTTP resolver or a full registry pair is set."""
        return bool(self.did_url_resolver or (self.registry and self.rpc_url))

    def resolver_config(self) -> ResolverConfig:
        """Per-call resolver configuration."""
        return ResolverConfig(
            did_url_resolver=self.did_url_resolver,
            registry=self.registry,
            rpc_url=self.rpc_url,
            default_network=self.default_network,
        )


VerificationType = ExternalVerification | InternalVerification


class DidAuthVerifyOpts(BaseModel):
    """Options for verifying a DID Auth request or response."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    verification_type: VerificationType | None = None
    nonce: str | None = None
    audience: str | None = None


class VerifiedDidAuth(BaseModel):
    """A token that passed verification, with the identity behind it."""

    did: str
    kid: str | None = None
    header: JWTHeader
    payload: JWTPayload
    did_document: DIDDocument | None = None
    verification_method: VerificationMethod | None = None

    def to_wire(self) -> dict[str, Any]:
        """JSON body for relying parties."""
        return {
            "did": self.did,
            "kid": self.kid,
            "didDocument": self.did_document.to_wire() if self.did_document else None,
            "payload": self.payload.model_dump(exclude_none=True),
        }
