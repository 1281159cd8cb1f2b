"""
Chain-indexing service client.

Talks JSON-RPC to a zcashd/zebrad node for the two calls wallet creation
needs: the current chain tip and the note commitment tree state at a given
height. Requests are never retried; the caller can re-run the command.
"""

import itertools
from dataclasses import dataclass
from typing import Any

import httpx
from loguru import logger

from zwallet.errors import InvalidTreeState, RemoteError

# =============================================================================
# CONFIGURATION
# =============================================================================

# zcashd reports an unchanged tree as a pointer to an earlier block; bound the chase
MAX_SKIP_HASH_HOPS = 64


# =============================================================================
# DATA CLASSES
# =============================================================================


@dataclass(frozen=True)
class TreeState:
    """Note commitment tree state at the end of block `height`."""

    network: str
    height: int
    hash: str
    time: int
    sapling_tree: str
    orchard_tree: str


# =============================================================================
# CLIENT
# =============================================================================


class IndexerClient:
    """JSON-RPC client for a full node reached over `http_client`."""

    def __init__(self, http_client: httpx.AsyncClient, network: str = "") -> None:
        self._client = http_client
        self._network = network
        self._ids = itertools.count(1)

    async def aclose(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> "IndexerClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def call(self, method: str, *params: Any) -> Any:
        """Issue one JSON-RPC request and return its `result`."""
        payload = {
            "jsonrpc": "1.0",
            "id": next(self._ids),
            "method": method,
            "params": list(params),
        }
        logger.debug(f"RPC {method} {list(params)}")
        resp = await self._client.post("/", json=payload)

        # zcashd answers RPC errors with HTTP 500 and a JSON body
        try:
            body = resp.json()
        except ValueError:
            resp.raise_for_status()
            raise RemoteError(f"{method}: response is not JSON") from None

        if not isinstance(body, dict):
            raise RemoteError(f"{method}: unexpected response {body!r}")
        error = body.get("error")
        if error:
            message = error.get("message") if isinstance(error, dict) else error
            raise RemoteError(f"{method} failed: {message}")
        resp.raise_for_status()
        if "result" not in body:
            raise RemoteError(f"{method}: response has no result")
        return body["result"]

    async def get_latest_block(self) -> int:
        """Height of the node's current chain tip."""
        height = await self.call("getblockcount")
        if not isinstance(height, int) or isinstance(height, bool) or height < 0:
            raise RemoteError(f"getblockcount: invalid height {height!r}")
        return height

    async def get_tree_state(self, height: int) -> TreeState:
        """
        Tree state at the end of block `height`.

        Follows `skipHash` pointers until each pool has a final state.
        """
        result = await self._gettreestate(str(height))
        trees = {}
        for pool in ("sapling", "orchard"):
            trees[pool] = await self._final_state(result, pool)

        try:
            return TreeState(
                network=self._network,
                height=int(result["height"]),
                hash=str(result["hash"]),
                time=int(result.get("time", 0)),
                sapling_tree=trees["sapling"],
                orchard_tree=trees["orchard"],
            )
        except (KeyError, TypeError, ValueError) as e:
            raise RemoteError(f"z_gettreestate: malformed response ({e})") from None

    async def _gettreestate(self, hash_or_height: str) -> dict:
        result = await self.call("z_gettreestate", hash_or_height)
        if not isinstance(result, dict):
            raise RemoteError(f"z_gettreestate: unexpected result {result!r}")
        return result

    async def _final_state(self, result: dict, pool: str) -> str:
        section = result.get(pool) or {}
        for _ in range(MAX_SKIP_HASH_HOPS):
            if not isinstance(section, dict):
                raise InvalidTreeState(f"{pool} section is not an object")
            commitments = section.get("commitments") or {}
            if not isinstance(commitments, dict):
                raise InvalidTreeState(f"{pool} commitments is not an object")
            if "finalState" in commitments:
                final_state = commitments["finalState"]
                if not isinstance(final_state, str):
                    raise InvalidTreeState(f"{pool} finalState is not a string")
                return final_state
            skip_hash = section.get("skipHash")
            if not skip_hash:
                # Pool not active yet at this height
                return ""
            if not isinstance(skip_hash, str):
                raise InvalidTreeState(f"{pool} skipHash is not a string")
            logger.debug(f"Following {pool} skipHash {skip_hash}")
            section = (await self._gettreestate(skip_hash)).get(pool) or {}
        raise RemoteError(f"z_gettreestate: too many {pool} skipHash hops")
