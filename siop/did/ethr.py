"""did:ethr resolution against an ERC-1056 EthereumDIDRegistry through web3."""

import re
import time
from typing import Any

import aiohttp
import base58
from eth_abi.exceptions import DecodingError
from pydantic import BaseModel
from web3 import AsyncHTTPProvider, AsyncWeb3
from web3.exceptions import MismatchedABI, Web3Exception

from siop.core.errors import DidAuthError, DidAuthErrors
from siop.core.logging import get_logger
from siop.did.key_method import DID_CONTEXT
from siop.did.types import DIDDocument, ParsedDid, VerificationMethod

logger = get_logger("siop.did.ethr")

OWNER_CHANGED = "DIDOwnerChanged"
DELEGATE_CHANGED = "DIDDelegateChanged"
ATTRIBUTE_CHANGED = "DIDAttributeChanged"
REGISTRY_EVENTS = (OWNER_CHANGED, DELEGATE_CHANGED, ATTRIBUTE_CHANGED)


def _event_abi(name: str, *fields: tuple[str, str]) -> dict[str, Any]:
    inputs = [{"indexed": True, "name": "identity", "type": "address"}]
    inputs += [{"indexed": False, "name": n, "type": t} for n, t in fields]
    return {"anonymous": False, "inputs": inputs, "name": name, "type": "event"}


def _view_abi(name: str, output: str) -> dict[str, Any]:
    return {
        "constant": True,
        "inputs": [{"name": "identity", "type": "address"}],
        "name": name,
        "outputs": [{"name": "", "type": output}],
        "stateMutability": "view",
        "type": "function",
    }


REGISTRY_ABI = [
    _view_abi("identityOwner", "address"),
    _view_abi("changed", "uint256"),
    _event_abi(OWNER_CHANGED, ("owner", "address"), ("previousChange", "uint256")),
    _event_abi(
        DELEGATE_CHANGED,
        ("delegateType", "bytes32"),
        ("delegate", "address"),
        ("validTo", "uint256"),
        ("previousChange", "uint256"),
    ),
    _event_abi(
        ATTRIBUTE_CHANGED,
        ("name", "bytes32"),
        ("value", "bytes"),
        ("validTo", "uint256"),
        ("previousChange", "uint256"),
    ),
]

KNOWN_CHAIN_IDS = {
    "mainnet": 1,
    "ropsten": 3,
    "rinkeby": 4,
    "goerli": 5,
    "kovan": 42,
    "sepolia": 11155111,
    "rsk": 30,
    "rsk:testnet": 31,
}

NULL_ADDRESS = "0x0000000000000000000000000000000000000000"
_ADDRESS = re.compile(r"0x[0-9a-fA-F]{40}")
_PUB_ATTRIBUTE = re.compile(r"did/pub/(\w+)(?:/(\w+))?(?:/(\w+))?")
_DELEGATE_TYPES = ("veriKey", "sigAuth")

LEGACY_ATTR_TYPES = {
    "sigAuth": "SignatureAuthentication2018",
    "veriKey": "VerificationKey2018",
    "enc": "KeyAgreementKey2019",
}
LEGACY_ALGOS = {
    "Secp256k1VerificationKey2018": "EcdsaSecp256k1VerificationKey2019",
    "Secp256k1SignatureAuthentication2018": "EcdsaSecp256k1VerificationKey2019",
    "Ed25519SignatureAuthentication2018": "Ed25519VerificationKey2018",
    "Ed25519VerificationKey2018": "Ed25519VerificationKey2018",
    "RSAVerificationKey2018": "RsaVerificationKey2018",
    "X25519KeyAgreementKey2019": "X25519KeyAgreementKey2019",
}

# Failures of the node, the transport or the ABI decoding of its replies.
REGISTRY_ERRORS = (
    Web3Exception,
    DecodingError,
    aiohttp.ClientError,
    TimeoutError,
    ValueError,
    TypeError,
    KeyError,
)


class RegistryChange(BaseModel):
    """Decoded registry event."""

    event: str
    previous_change: int
    name: str = ""
    value: bytes = b""
    delegate: str = ""
    valid_to: int = 0

    @property
    def index(self) -> tuple[str, str, str]:
        """Identity of the key an event adds or revokes."""
        return (self.event, self.name, self.delegate or self.value.hex())


def _bytes32_text(raw: bytes) -> str:
    return raw.rstrip(b"\x00").decode("utf-8", "replace")


def decode_registry_log(contract: Any, log: Any) -> RegistryChange | None:
    """Decode a registry log, None for events the registry ABI does not know."""
    for event in REGISTRY_EVENTS:
        try:
            decoded = getattr(contract.events, event)().process_log(log)
        except MismatchedABI:
            continue
        args = decoded["args"]
        if event == OWNER_CHANGED:
            return RegistryChange(
                event=event, previous_change=args["previousChange"]
            )
        if event == DELEGATE_CHANGED:
            return RegistryChange(
                event=event,
                previous_change=args["previousChange"],
                name=_bytes32_text(args["delegateType"]),
                delegate=args["delegate"],
                valid_to=args["validTo"],
            )
        return RegistryChange(
            event=event,
            previous_change=args["previousChange"],
            name=_bytes32_text(args["name"]),
            value=bytes(args["value"]),
            valid_to=args["validTo"],
        )
    return None


def expected_chain_id(network: str) -> int | None:
    """Chain id implied by a network name, None when unknown."""
    if network in KNOWN_CHAIN_IDS:
        return KNOWN_CHAIN_IDS[network]
    tail = network.rsplit(":", 1)[-1]
    if tail.startswith("0x"):
        return int(tail, 16)
    if tail.isdigit():
        return int(tail)
    return None


def connect_registry(rpc_url: str) -> AsyncWeb3:
    """Web3 client for the JSON-RPC endpoint of a registry network."""
    return AsyncWeb3(AsyncHTTPProvider(rpc_url))


def build_document(
    did: str,
    chain_id: int,
    owner: str,
    history: list[RegistryChange],
    now: int | None = None,
) -> DIDDocument:
    """DID Document from the registry owner and its change history.

    Every delegate and ``did/pub/*`` event takes the next ``#delegate-N``
    number, revocations included, so ids stay stable as keys come and go.
    """
    now = int(time.time()) if now is None else now
    controller_id = f"{did}#controller"
    if owner.lower() == NULL_ADDRESS:
        return DIDDocument(
            context=[DID_CONTEXT],
            id=did,
            verification_method=[],
            authentication=[],
            assertion_method=[],
        )

    delegates = 0
    keys: dict[tuple[str, str, str], VerificationMethod] = {}
    auth: dict[tuple[str, str, str], str] = {}
    for change in history:
        if change.event == OWNER_CHANGED:
            continue
        attribute = None
        if change.event == ATTRIBUTE_CHANGED:
            attribute = _PUB_ATTRIBUTE.fullmatch(change.name)
            if attribute is None:
                continue
        delegates += 1
        key = change.index
        if change.valid_to < now:
            keys.pop(key, None)
            auth.pop(key, None)
            continue
        vm_id = f"{did}#delegate-{delegates}"
        if attribute is None:
            purpose = change.name
            if purpose not in _DELEGATE_TYPES:
                continue
            keys[key] = VerificationMethod(
                id=vm_id,
                type="EcdsaSecp256k1RecoveryMethod2020",
                controller=did,
                blockchainAccountId=f"eip155:{chain_id}:{change.delegate}",
            )
        else:
            algorithm, purpose, _encoding = attribute.groups()
            suffix = purpose or ""
            legacy = f"{algorithm}{LEGACY_ATTR_TYPES.get(suffix, suffix)}"
            keys[key] = VerificationMethod(
                id=vm_id,
                type=LEGACY_ALGOS.get(legacy, algorithm),
                controller=did,
                public_key_base58=base58.b58encode(change.value).decode("ascii"),
            )
        if purpose == "sigAuth":
            auth[key] = vm_id

    controller = VerificationMethod(
        id=controller_id,
        type="EcdsaSecp256k1RecoveryMethod2020",
        controller=did,
        blockchainAccountId=f"eip155:{chain_id}:{owner}",
    )
    return DIDDocument(
        context=[DID_CONTEXT],
        id=did,
        verification_method=[controller, *keys.values()],
        authentication=[controller_id, *auth.values()],
        assertion_method=[controller_id, *(vm.id for vm in keys.values())],
    )


class EthrRegistryResolver:
    """Builds did:ethr documents from registry state for one network."""

    def __init__(self, w3: AsyncWeb3, *, registry: str, network: str) -> None:
        self._w3 = w3
        self._network = network
        self._registry = AsyncWeb3.to_checksum_address(registry)
        self._contract = w3.eth.contract(address=self._registry, abi=REGISTRY_ABI)

    async def _history(self, identity: str, block: int) -> list[RegistryChange]:
        """Follow previousChange links back from block. Oldest event first."""
        identity_topic = AsyncWeb3.to_hex(
            self._w3.codec.encode(["address"], [identity])
        )
        history: list[RegistryChange] = []
        while block:
            logs = await self._w3.eth.get_logs(
                {
                    "address": self._registry,
                    "fromBlock": block,
                    "toBlock": block,
                    "topics": [None, identity_topic],
                }
            )
            changes: list[RegistryChange] = []
            for log in logs:
                change = decode_registry_log(self._contract, log)
                if change is None:
                    logger.debug("skipping unknown registry log", block=block)
                    continue
                changes.append(change)
            history[:0] = changes
            earlier = [c.previous_change for c in changes if c.previous_change < block]
            block = max(earlier) if earlier else 0
        return history

    async def resolve(self, parsed: ParsedDid) -> DIDDocument:
        """Resolve a did:ethr DID whose identifier is an address."""
        if not _ADDRESS.fullmatch(parsed.identifier):
            raise DidAuthError(
                DidAuthErrors.ERROR_RETRIEVING_DID_DOCUMENT,
                f"unsupported did:ethr identifier {parsed.identifier!r}",
            )
        identity = AsyncWeb3.to_checksum_address(parsed.identifier)
        chain_id = await self._w3.eth.chain_id
        if not isinstance(chain_id, int):
            raise DidAuthError(
                DidAuthErrors.ERROR_RETRIEVING_DID_DOCUMENT,
                f"node answered chain id {chain_id!r}",
            )
        expected = expected_chain_id(self._network)
        if expected is not None and expected != chain_id:
            raise DidAuthError(
                DidAuthErrors.ERROR_RETRIEVING_DID_DOCUMENT,
                f"network {self._network} does not match chain id {chain_id}",
            )
        owner = await self._contract.functions.identityOwner(identity).call()
        changed = await self._contract.functions.changed(identity).call()
        logger.debug(
            "ethr registry state",
            did=parsed.did,
            network=self._network,
            changed=changed,
        )
        history = await self._history(identity, changed)
        return build_document(parsed.did, chain_id, owner, history)


async def resolve_on_registry(
    parsed: ParsedDid, *, rpc_url: str, registry: str, network: str
) -> DIDDocument:
    """Resolve through the registry, wrapping node and decoding failures."""
    try:
        resolver = EthrRegistryResolver(
            connect_registry(rpc_url), registry=registry, network=network
        )
        return await resolver.resolve(parsed)
    except REGISTRY_ERRORS as exc:
        raise DidAuthError(
            DidAuthErrors.ERROR_RETRIEVING_DID_DOCUMENT,
            str(exc) or type(exc).__name__,
        ) from exc
