"""DID, DID Document and verification method types."""

from enum import StrEnum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from siop.core.errors import DidAuthError, DidAuthErrors

DID_MIN_SEGMENTS = 3


class DidMethod(StrEnum):
    """Resolution strategy selected from the DID method segment."""

    KEY = "key"
    ETHR = "ethr"
    GENERIC = "generic"


class KeyEncoding(StrEnum):
    """Public key encoding carried by a verification method."""

    JWK = "publicKeyJwk"
    BASE58 = "publicKeyBase58"


class ParsedDid(BaseModel):
    """A DID split into its method and method-specific parts."""

    did: str
    method: DidMethod
    method_name: str
    segments: list[str]

    @property
    def identifier(self) -> str:
        """Last colon-delimited segment (address, key or id)."""
        return self.segments[-1]


def parse_did(did: str) -> ParsedDid:
    """Parse a DID string. Fewer than three segments is rejected."""
    segments = did.split(":") if did else []
    if len(segments) < DID_MIN_SEGMENTS or segments[0] != "did" or not all(
        segments
    ):
        raise DidAuthError(DidAuthErrors.BAD_PARAMS, f"malformed DID {did!r}")
    name = segments[1]
    try:
        method = DidMethod(name)
    except ValueError:
        method = DidMethod.GENERIC
    return ParsedDid(did=did, method=method, method_name=name, segments=segments)


def get_network_from_did(did: str, default_network: str = "mainnet") -> str:
    """Network name of a did:ethr DID.

    ``did:ethr:<addr>`` uses the default, ``did:ethr:<net>:<addr>`` names the
    network, and longer forms join segments 3 and 4 (``did:ethr:eip155:4:..``).
    """
    segments = parse_did(did).segments
    if len(segments) == 4:
        return segments[2]
    if len(segments) > 4:
        return f"{segments[2]}:{segments[3]}"
    return default_network


def to_camel(name: str) -> str:
    """Convert snake_case to camelCase for the wire shape."""
    parts = name.split("_")
    return parts[0] + "".join(p.capitalize() for p in parts[1:])


class VerificationMethod(BaseModel):
    """Verification method entry of a DID Document."""

    model_config = ConfigDict(
        extra="allow", alias_generator=to_camel, populate_by_name=True
    )

    id: str
    type: str | None = None
    controller: str | None = None
    public_key_jwk: dict[str, Any] | None = None
    public_key_base58: str | None = None

    @property
    def key_encoding(self) -> KeyEncoding | None:
        """Encoding present on this entry, JWK first."""
        if self.public_key_jwk:
            return KeyEncoding.JWK
        if self.public_key_base58:
            return KeyEncoding.BASE58
        return None

    @property
    def fragment(self) -> str | None:
        """Part of the id after ``#``, if any."""
        _, sep, frag = self.id.partition("#")
        return frag if sep else None


class DIDDocument(BaseModel):
    """Resolved DID Document. Only the fields verification needs are typed."""

    model_config = ConfigDict(
        extra="allow", alias_generator=to_camel, populate_by_name=True
    )

    context: str | list[Any] | None = Field(default=None, alias="@context")
    id: str
    controller: str | list[str] | None = None
    verification_method: list[VerificationMethod] | None = None
    authentication: list[Any] | None = None
    assertion_method: list[Any] | None = None

    def to_wire(self) -> dict[str, Any]:
        """Serialise with the DID Core member names."""
        return self.model_dump(by_alias=True, exclude_none=True)
