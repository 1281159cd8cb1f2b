"""Shared fixtures: a fake JSON-RPC node and loguru capture."""

import json

import httpx
import pytest
from loguru import logger

from zwallet.remote.indexer import IndexerClient

# One Sapling leaf, no Orchard notes
SAPLING_TREE = "01" + "11" * 32 + "00" + "00"
ORCHARD_TREE = "000000"

# BIP-39 test vector (24 words, valid checksum)
VALID_PHRASE = " ".join(["abandon"] * 23 + ["art"])


class FakeNode:
    """Minimal zcashd-style JSON-RPC responder."""

    def __init__(self, tip: int = 500_000, sapling_tree: str = SAPLING_TREE):
        self.tip = tip
        self.sapling_tree = sapling_tree
        self.calls: list[tuple[str, list]] = []

    def treestate(self, height: int) -> dict:
        return {
            "hash": f"{height:064x}",
            "height": height,
            "time": 1_700_000_000,
            "sapling": {"commitments": {"finalState": self.sapling_tree}},
            "orchard": {"commitments": {"finalState": ORCHARD_TREE}},
        }

    def handle(self, request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content)
        method, params = body["method"], body["params"]
        self.calls.append((method, params))
        if method == "getblockcount":
            result = self.tip
        elif method == "z_gettreestate":
            result = self.treestate(int(params[0]))
        else:
            return httpx.Response(
                500,
                json={"result": None, "error": {"code": -32601, "message": "Method not found"}, "id": body["id"]},
            )
        return httpx.Response(200, json={"result": result, "error": None, "id": body["id"]})

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handle)

    def tor_factory(self, **kwargs) -> httpx.AsyncClient:
        """Stand-in for zwallet.remote.tor.tor_client."""
        return httpx.AsyncClient(transport=self.transport, **kwargs)

    def tree_state_heights(self) -> list[int]:
        return [int(params[0]) for method, params in self.calls if method == "z_gettreestate"]


@pytest.fixture
def node() -> FakeNode:
    return FakeNode()


@pytest.fixture
async def client(node: FakeNode):
    async with IndexerClient(node.tor_factory(base_url="http://node.test"), network="test") as c:
        yield c


@pytest.fixture
def log_messages():
    messages: list[str] = []
    handler_id = logger.add(lambda m: messages.append(m.record["message"]), level="DEBUG")
    yield messages
    logger.remove(handler_id)
