"""Verifier settings loaded from environment variables."""

from pydantic_settings import BaseSettings, SettingsConfigDict

from siop.auth.types import ExternalVerification, InternalVerification

DEFAULT_NETWORK = "mainnet"
HTTP_TIMEOUT_DEFAULT = 10.0


class VerifierSettings(BaseSettings):
    """DID resolution and remote verification settings."""

    model_config = SettingsConfigDict(env_prefix="SIOP_")

    did_url_resolver: str = ""
    registry: str = ""
    rpc_url: str = ""
    default_network: str = DEFAULT_NETWORK
    verify_uri: str = ""
    authz_token: str = ""
    http_timeout: float = HTTP_TIMEOUT_DEFAULT
    log_level: str = "info"

    def verification_type(self) -> ExternalVerification | InternalVerification:
        """Build verification options: remote when verify_uri is set."""
        if self.verify_uri:
            return ExternalVerification(
                verify_uri=self.verify_uri,
                authz_token=self.authz_token or None,
            )
        return InternalVerification(
            did_url_resolver=self.did_url_resolver or None,
            registry=self.registry or None,
            rpc_url=self.rpc_url or None,
            default_network=self.default_network,
        )
