"""Type definitions for verification key material and signatures."""

from pydantic import BaseModel, ConfigDict


class PublicJwk(BaseModel):
    """Public JWK as read from a DID Document."""

    model_config = ConfigDict(extra="allow")

    kty: str
    crv: str | None = None
    x: str | None = None
    y: str | None = None
    kid: str | None = None

    def to_dict(self) -> dict[str, str]:
        """Plain JWK dict without unset members."""
        return self.model_dump(exclude_none=True)


class EcPointHex(BaseModel):
    """Uncompressed EC point as hex coordinates."""

    x: str
    y: str

    def to_hex(self) -> str:
        """SEC1 uncompressed encoding."""
        return f"04{self.x}{self.y}"


class EcdsaSignature(BaseModel):
    """Raw ECDSA signature split into hex r and s."""

    r: str
    s: str
    recovery_param: int | None = None
