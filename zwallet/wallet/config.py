"""
Wallet config persistence (keys.toml).

The config holds the age-encrypted mnemonic, the network name and the
birthday height. It is written once per wallet directory and never
rewritten.
"""

import tomllib
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable

import tomli_w
from loguru import logger

from zwallet.errors import ConfigAlreadyExists, WalletNotInitialized
from zwallet.network import Network
from zwallet.paths import KEYS_FILE, wallet_dir_or_default
from zwallet.wallet.encryption import encrypt_mnemonic
from zwallet.wallet.identity import Recipient


@dataclass(frozen=True)
class WalletConfig:
    """Contents of keys.toml. Every field is optional on disk."""

    mnemonic: str | None = None
    network: Network | None = None
    birthday: int | None = None

    @staticmethod
    def init_with_mnemonic(
        wallet_dir: str | Path | None,
        recipients: Iterable[Recipient],
        phrase: str,
        birthday: int,
        network: Network,
    ) -> Path:
        """Encrypt the phrase to `recipients` and write a new config."""
        config = WalletConfig(
            mnemonic=encrypt_mnemonic(recipients, phrase),
            network=network,
            birthday=birthday,
        )
        return config.write(wallet_dir)

    def to_dict(self) -> dict:
        data = {}
        if self.mnemonic is not None:
            data["mnemonic"] = self.mnemonic
        if self.network is not None:
            data["network"] = self.network.value
        if self.birthday is not None:
            data["birthday"] = self.birthday
        return data

    @staticmethod
    def from_dict(data: dict) -> "WalletConfig":
        network = data.get("network")
        birthday = data.get("birthday")
        if birthday is not None and (not isinstance(birthday, int) or birthday < 0):
            raise ValueError(f"Invalid birthday in wallet config: {birthday!r}")
        return WalletConfig(
            mnemonic=data.get("mnemonic"),
            network=Network.parse(network) if network is not None else None,
            birthday=birthday,
        )

    def write(self, wallet_dir: str | Path | None) -> Path:
        """
        Create the wallet directory and write keys.toml exclusively.

        Raises:
            ConfigAlreadyExists: If keys.toml is already present
        """
        wallet_dir = wallet_dir_or_default(wallet_dir)
        wallet_dir.mkdir(parents=True, exist_ok=True)

        path = wallet_dir / KEYS_FILE
        try:
            f = open(path, "x")
        except FileExistsError:
            raise ConfigAlreadyExists(path) from None
        with f:
            f.write(tomli_w.dumps(self.to_dict()))

        logger.info(f"Wrote wallet config to {path}")
        return path

    @staticmethod
    def read(wallet_dir: str | Path | None) -> "WalletConfig":
        path = wallet_dir_or_default(wallet_dir) / KEYS_FILE
        try:
            data = tomllib.loads(path.read_text())
        except FileNotFoundError:
            raise WalletNotInitialized(path) from None
        return WalletConfig.from_dict(data)


def get_wallet_network(wallet_dir: str | Path | None) -> Network:
    """Network recorded in the wallet config (testnet if unset)."""
    config = WalletConfig.read(wallet_dir)
    return config.network or Network.TEST
