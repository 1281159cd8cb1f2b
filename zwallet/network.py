"""Consensus network selection and value constants."""

from enum import Enum

# Zatoshis per ZEC
COIN = 100_000_000


class Network(Enum):
    MAIN = "main"
    TEST = "test"

    @classmethod
    def parse(cls, value: str) -> "Network":
        """Parse a --network argument ("main" or "test")."""
        try:
            return cls(value.strip().lower())
        except ValueError:
            raise ValueError(
                f"invalid network '{value}', expected \"main\" or \"test\""
            ) from None

    @property
    def rpc_port(self) -> int:
        """Default JSON-RPC port of a full node on this network."""
        return 8232 if self is Network.MAIN else 18232

    def __str__(self) -> str:
        return self.value
