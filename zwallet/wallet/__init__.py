"""Key custody: identities, mnemonics, seeds and the wallet config."""

from zwallet.wallet.config import WalletConfig, get_wallet_network
from zwallet.wallet.encryption import decrypt_mnemonic, encrypt_mnemonic
from zwallet.wallet.identity import obtain_identity, parse_recipient
from zwallet.wallet.mnemonic import derive_seed, obtain_mnemonic
from zwallet.wallet.secret import SecretBuffer

__all__ = [
    "SecretBuffer",
    "WalletConfig",
    "decrypt_mnemonic",
    "derive_seed",
    "encrypt_mnemonic",
    "get_wallet_network",
    "obtain_identity",
    "obtain_mnemonic",
    "parse_recipient",
]
