"""DID resolution dispatch: did:key offline, HTTP resolver, registry fallback."""

import httpx
from pydantic import BaseModel, ValidationError

from siop.core.errors import DidAuthError, DidAuthErrors
from siop.core.logging import get_logger
from siop.did.ethr import resolve_on_registry
from siop.did.key_method import resolve_did_key
from siop.did.types import (
    DIDDocument,
    DidMethod,
    ParsedDid,
    get_network_from_did,
    parse_did,
)

logger = get_logger("siop.did.resolver")

TRANSFORM_KEYS_JWKS = ";transform-keys=jwks"


class ResolverConfig(BaseModel):
    """Resolution settings for a single verification call."""

    did_url_resolver: str | None = None
    registry: str | None = None
    rpc_url: str | None = None
    default_network: str = "mainnet"

    @property
    def has_registry(self) -> bool:
        """True when both registry address and RPC URL are set."""
        return bool(self.registry and self.rpc_url)

    @property
    def resolver_base(self) -> str | None:
        """HTTP resolver base URL without a trailing slash."""
        if not self.did_url_resolver:
            return None
        return self.did_url_resolver.rstrip("/")


async def resolve_did_with_url_resolver(
    did: str, resolver_base: str, client: httpx.AsyncClient
) -> DIDDocument:
    """Fetch a DID Document from an HTTP resolver, keys transformed to JWK."""
    try:
        resp = await client.get(f"{resolver_base}/{did}{TRANSFORM_KEYS_JWKS}")
        resp.raise_for_status()
        body = resp.json()
        if isinstance(body, dict) and isinstance(body.get("didDocument"), dict):
            body = body["didDocument"]
        return DIDDocument.model_validate(body)
    except (httpx.HTTPError, ValueError, ValidationError) as exc:
        raise DidAuthError(
            DidAuthErrors.ERROR_RETRIEVING_DID_DOCUMENT, str(exc)
        ) from exc


async def _resolver_reachable(
    did: str, resolver_base: str, client: httpx.AsyncClient
) -> bool:
    try:
        resp = await client.get(f"{resolver_base}/{did}")
        resp.raise_for_status()
    except httpx.HTTPError as exc:
        logger.debug("did resolver unreachable", did=did, error=str(exc))
        return False
    return True


async def _resolve_on_chain(parsed: ParsedDid, config: ResolverConfig) -> DIDDocument:
    if not config.has_registry:
        raise DidAuthError(DidAuthErrors.BAD_INTERNAL_VERIFICATION_PARAMS)
    if parsed.method is not DidMethod.ETHR:
        raise DidAuthError(
            DidAuthErrors.ERROR_RETRIEVING_DID_DOCUMENT,
            f"no registry resolver for did:{parsed.method_name}",
        )
    network = get_network_from_did(parsed.did, config.default_network)
    logger.debug("resolving on chain", did=parsed.did, network=network)
    return await resolve_on_registry(
        parsed,
        rpc_url=config.rpc_url or "",
        registry=config.registry or "",
        network=network,
    )


async def resolve_did(
    did: str, config: ResolverConfig, client: httpx.AsyncClient
) -> DIDDocument:
    """Resolve a DID to its document.

    did:key is derived from the identifier with no network call. Anything
    else goes to the HTTP resolver when it answers a probe for the DID, and
    falls back to the on-chain registry otherwise.
    """
    parsed = parse_did(did)
    if parsed.method is DidMethod.KEY:
        return resolve_did_key(did)
    base = config.resolver_base
    if base and await _resolver_reachable(did, base, client):
        logger.debug("resolving via did resolver", did=did)
        return await resolve_did_with_url_resolver(did, base, client)
    return await _resolve_on_chain(parsed, config)
