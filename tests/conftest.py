"""Shared test fixtures for the SIOP DID Auth verifier."""

import itertools
import json
from collections.abc import AsyncIterator, Callable
from typing import Any

import httpx
import jwt
import pytest
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import ec, ed25519
from cryptography.hazmat.primitives.asymmetric.utils import decode_dss_signature
from eth_abi import encode
from httpx import ASGITransport, AsyncClient
from web3 import AsyncWeb3, Web3
from web3.providers.async_base import AsyncBaseProvider

from siop.core.app import create_app
from siop.crypto.keys import base64url_encode
from siop.did.key_method import ED25519_MULTICODEC, key_did_from_public_key

RESOLVER_URL = "http://resolver.test/1.0/identifiers"

Handler = Callable[[httpx.Request], httpx.Response]


@pytest.fixture(autouse=True)
def _set_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Set environment variables for test settings."""
    monkeypatch.setenv("SIOP_DID_URL_RESOLVER", RESOLVER_URL)
    monkeypatch.delenv("SIOP_VERIFY_URI", raising=False)
    monkeypatch.delenv("SIOP_REGISTRY", raising=False)
    monkeypatch.delenv("SIOP_RPC_URL", raising=False)


@pytest.fixture
def ed25519_key() -> ed25519.Ed25519PrivateKey:
    return ed25519.Ed25519PrivateKey.generate()


@pytest.fixture
def secp256k1_key() -> ec.EllipticCurvePrivateKey:
    return ec.generate_private_key(ec.SECP256K1())


@pytest.fixture
def ed25519_did(ed25519_key: ed25519.Ed25519PrivateKey) -> str:
    """did:key identifier of the Ed25519 test key."""
    raw = ed25519_key.public_key().public_bytes(
        serialization.Encoding.Raw, serialization.PublicFormat.Raw
    )
    return key_did_from_public_key(raw, ED25519_MULTICODEC)


@pytest.fixture
def secp256k1_jwk(secp256k1_key: ec.EllipticCurvePrivateKey) -> dict[str, str]:
    """Public JWK of the secp256k1 test key."""
    numbers = secp256k1_key.public_key().public_numbers()
    return {
        "kty": "EC",
        "crv": "secp256k1",
        "x": base64url_encode(numbers.x.to_bytes(32, "big")),
        "y": base64url_encode(numbers.y.to_bytes(32, "big")),
    }


@pytest.fixture
def secp256k1_hex(secp256k1_key: ec.EllipticCurvePrivateKey) -> str:
    """Compressed hex point of the secp256k1 test key."""
    return (
        secp256k1_key.public_key()
        .public_bytes(
            serialization.Encoding.X962,
            serialization.PublicFormat.CompressedPoint,
        )
        .hex()
    )


def _segment(obj: dict[str, Any]) -> str:
    return base64url_encode(json.dumps(obj, separators=(",", ":")).encode())


@pytest.fixture
def raw_token() -> Callable[..., str]:
    """Assemble a compact token from a header, payload and raw signature."""

    def build(
        header: dict[str, Any], payload: dict[str, Any], signature: bytes = b""
    ) -> str:
        return f"{_segment(header)}.{_segment(payload)}.{base64url_encode(signature)}"

    return build


@pytest.fixture
def sign_token() -> Callable[..., str]:
    """Sign a payload with EdDSA, ES256K or the raw ES256K-R layout."""

    def sign(
        payload: dict[str, Any],
        key: Any,
        *,
        alg: str,
        kid: str | None = None,
        signature_length: int = 65,
    ) -> str:
        headers = {"kid": kid} if kid else {}
        if alg != "ES256K-R":
            return jwt.encode(payload, key, algorithm=alg, headers=headers)
        header = {"alg": alg, "typ": "JWT", **headers}
        signing_input = f"{_segment(header)}.{_segment(payload)}"
        der = key.sign(signing_input.encode(), ec.ECDSA(hashes.SHA256()))
        r, s = decode_dss_signature(der)
        raw = r.to_bytes(32, "big") + s.to_bytes(32, "big") + b"\x00"
        return f"{signing_input}.{base64url_encode(raw[:signature_length])}"

    return sign


@pytest.fixture
def http_client() -> Callable[[Handler], AsyncClient]:
    """Build an httpx client whose requests are answered by a handler."""

    def build(handler: Handler) -> AsyncClient:
        return AsyncClient(transport=httpx.MockTransport(handler))

    return build


@pytest.fixture
async def client() -> AsyncIterator[AsyncClient]:
    """Create an httpx test client for the verifier app."""
    app = create_app()
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


def _topic(signature: str) -> str:
    return Web3.to_hex(Web3.keccak(text=signature))


def _selector(signature: str) -> bytes:
    return bytes(Web3.keccak(text=signature)[:4])


ATTRIBUTE_TOPIC = _topic("DIDAttributeChanged(address,bytes32,bytes,uint256,uint256)")
DELEGATE_TOPIC = _topic("DIDDelegateChanged(address,bytes32,address,uint256,uint256)")
OWNER_TOPIC = _topic("DIDOwnerChanged(address,address,uint256)")
FAR_FUTURE = 10**12


class RegistryNode:
    """In-memory Ethereum node holding one identity on an ERC-1056 registry."""

    def __init__(self) -> None:
        self.registry = "0xdca7ef03e98e0dc2b855be647c39abe984fcf21b"
        self.identity = "0x0106a2e985b1e1de9b5ddb4af6dc9e928f4e99d0"
        self.owner = "0x1111111111111111111111111111111111111111"
        self.chain_id: int | None = 1
        self.changed = 0
        self.logs: dict[int, list[dict[str, Any]]] = {}
        self.replies: dict[str, Any] = {}
        self.fail: Exception | None = None
        self.calls: list[str] = []
        self.rpc_urls: list[str] = []
        self._ids = itertools.count(1)

    def add_log(self, block: int, log: dict[str, Any]) -> None:
        """Store a raw log at a block, filling the receipt fields it lacks."""
        entries = self.logs.setdefault(block, [])
        entry = {
            "address": self.registry,
            "blockNumber": hex(block),
            "blockHash": "0x" + f"{block:064x}",
            "transactionHash": "0x" + f"{block:062x}{len(entries):02x}",
            "transactionIndex": "0x0",
            "logIndex": hex(len(entries)),
            "removed": False,
            **log,
        }
        entries.append(entry)
        self.changed = max(self.changed, block)

    def _identity_topic(self) -> str:
        return Web3.to_hex(encode(["address"], [self.identity]))

    def add_attribute(
        self,
        block: int,
        name: str,
        value: bytes,
        *,
        valid_to: int = FAR_FUTURE,
        previous: int = 0,
    ) -> None:
        data = encode(
            ["bytes32", "bytes", "uint256", "uint256"],
            [name.encode(), value, valid_to, previous],
        )
        self.add_log(
            block,
            {
                "topics": [ATTRIBUTE_TOPIC, self._identity_topic()],
                "data": Web3.to_hex(data),
            },
        )

    def add_delegate(
        self,
        block: int,
        delegate_type: str,
        delegate: str,
        *,
        valid_to: int = FAR_FUTURE,
        previous: int = 0,
    ) -> None:
        data = encode(
            ["bytes32", "address", "uint256", "uint256"],
            [delegate_type.encode(), delegate, valid_to, previous],
        )
        self.add_log(
            block,
            {
                "topics": [DELEGATE_TOPIC, self._identity_topic()],
                "data": Web3.to_hex(data),
            },
        )

    def add_owner_change(self, block: int, owner: str, *, previous: int = 0) -> None:
        data = encode(["address", "uint256"], [owner, previous])
        self.add_log(
            block,
            {
                "topics": [OWNER_TOPIC, self._identity_topic()],
                "data": Web3.to_hex(data),
            },
        )

    def _call(self, data: Any) -> str:
        raw = bytes.fromhex(data[2:]) if isinstance(data, str) else bytes(data)
        if raw[:4] == _selector("identityOwner(address)"):
            return Web3.to_hex(encode(["address"], [self.owner]))
        if raw[:4] == _selector("changed(address)"):
            return Web3.to_hex(encode(["uint256"], [self.changed]))
        raise AssertionError(f"unexpected eth_call {raw[:4].hex()}")

    def answer(self, method: str, params: Any) -> Any:
        self.calls.append(method)
        if self.fail is not None:
            raise self.fail
        if method in self.replies:
            return self.replies[method]
        if method == "eth_chainId":
            result = None if self.chain_id is None else hex(self.chain_id)
        elif method == "eth_call":
            result = self._call(params[0]["data"])
        elif method == "eth_getLogs":
            block = params[0]["fromBlock"]
            block = int(block, 16) if isinstance(block, str) else block
            result = self.logs.get(block, [])
        else:
            raise AssertionError(f"unexpected RPC method {method}")
        return {"jsonrpc": "2.0", "id": next(self._ids), "result": result}


class NodeProvider(AsyncBaseProvider):
    """web3 provider answering from a RegistryNode."""

    def __init__(self, node: RegistryNode) -> None:
        super().__init__()
        self._node = node

    async def make_request(self, method: Any, params: Any) -> Any:
        return self._node.answer(method, params)

    async def is_connected(self, show_traceback: bool = False) -> bool:
        return True


@pytest.fixture
def registry_node(monkeypatch: pytest.MonkeyPatch) -> RegistryNode:
    """Route did:ethr registry lookups to an in-memory node."""
    node = RegistryNode()

    def connect(rpc_url: str) -> AsyncWeb3:
        node.rpc_urls.append(rpc_url)
        return AsyncWeb3(NodeProvider(node))

    monkeypatch.setattr("siop.did.ethr.connect_registry", connect)
    return node
