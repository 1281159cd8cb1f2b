"""Chain service endpoints and how to reach them."""

import ipaddress
from dataclasses import dataclass
from typing import Callable

import httpx
from loguru import logger

from zwallet.network import Network
from zwallet.remote.indexer import IndexerClient
from zwallet.remote.tor import REQUEST_TIMEOUT

LOCAL = "local"


def _is_loopback(host: str) -> bool:
    if host == "localhost":
        return True
    try:
        return ipaddress.ip_address(host).is_loopback
    except ValueError:
        return False


@dataclass(frozen=True)
class Server:
    """A concrete JSON-RPC endpoint for one network."""

    url: str
    network: Network

    @property
    def is_local(self) -> bool:
        return _is_loopback(httpx.URL(self.url).host)

    def connect(self, tor_client: Callable[..., httpx.AsyncClient]) -> IndexerClient:
        """
        Open a client to this server.

        Loopback nodes are reached directly; every other server goes over Tor.
        """
        if self.is_local:
            logger.info(f"Connecting directly to {self.url}")
            http_client = httpx.AsyncClient(base_url=self.url, timeout=REQUEST_TIMEOUT)
        else:
            logger.info(f"Connecting to {self.url} over Tor")
            http_client = tor_client(base_url=self.url)
        return IndexerClient(http_client, network=self.network.value)


@dataclass(frozen=True)
class Servers:
    """A --server selection: the local node or an explicit URL."""

    selection: str

    @classmethod
    def parse(cls, value: str) -> "Servers":
        value = value.strip()
        if value == LOCAL:
            return cls(LOCAL)
        try:
            url = httpx.URL(value)
        except httpx.InvalidURL as e:
            raise ValueError(f"invalid server '{value}': {e}") from None
        if url.scheme not in ("http", "https") or not url.host:
            raise ValueError(f"invalid server '{value}', expected \"local\" or an http(s) URL")
        return cls(value)

    def pick(self, network: Network) -> Server:
        if self.selection == LOCAL:
            return Server(url=f"http://127.0.0.1:{network.rpc_port}", network=network)
        return Server(url=self.selection, network=network)
