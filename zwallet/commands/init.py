"""
`init` command: create a new light wallet.

Steps:
1. Connect to the chain service (over Tor unless it is a local node)
2. Fetch the chain tip
3. Load or create the age identity
4. Read or generate the mnemonic
5. Fetch the tree state before the birthday
6. Write the encrypted mnemonic to keys.toml
7. Create the account in the wallet store from the derived seed
"""

import asyncio
import getpass
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable

import httpx
from loguru import logger

from zwallet.data import init_dbs
from zwallet.errors import InvalidTreeState
from zwallet.network import Network
from zwallet.remote.indexer import IndexerClient
from zwallet.remote.servers import Servers
from zwallet.remote.tor import tor_client
from zwallet.wallet.birthday import AccountBirthday
from zwallet.wallet.config import WalletConfig
from zwallet.wallet.identity import Recipient, obtain_identity
from zwallet.wallet.mnemonic import derive_seed, obtain_mnemonic
from zwallet.wallet.secret import SecretBuffer

# =============================================================================
# CONFIGURATION
# =============================================================================

# Blocks subtracted from the tip for the default birthday
BIRTHDAY_SAFETY_MARGIN = 100


# =============================================================================
# BIRTHDAY
# =============================================================================


async def get_wallet_birthday(
    client: IndexerClient,
    birthday_height: int,
    recover_until: int | None = None,
) -> AccountBirthday:
    """
    Fetch the tree state for the last block before `birthday_height`.

    NOTE: the request reveals the exact birthday to the server, which can
    use it to fingerprint the wallet's transactions.

    Raises:
        InvalidTreeState: If the server's tree state is unusable
    """
    request_height = max(birthday_height - 1, 0)
    treestate = await client.get_tree_state(request_height)
    if treestate.height != request_height:
        raise InvalidTreeState(
            f"asked for height {request_height}, got {treestate.height}"
        )
    return AccountBirthday.from_treestate(treestate, recover_until)


def default_birthday(chain_tip: int) -> int:
    return max(chain_tip - BIRTHDAY_SAFETY_MARGIN, 0)


# =============================================================================
# PROVISIONING
# =============================================================================


def provision(
    network: Network,
    wallet_dir: str | Path | None,
    account_name: str,
    seed: SecretBuffer,
    birthday: AccountBirthday,
    key_source: str | None = None,
):
    """
    Create an account in the wallet store. The seed is wiped on return,
    whether or not account creation succeeded.
    """
    try:
        with init_dbs(network, wallet_dir) as db:
            return db.create_account(account_name, seed, birthday, key_source)
    finally:
        seed.wipe()


# =============================================================================
# COMMAND
# =============================================================================


@dataclass
class InitOptions:
    name: str
    identity: str
    network: Network
    server: Servers = field(default_factory=lambda: Servers.parse("local"))
    birthday: int | None = None
    recipients: list[Recipient] = field(default_factory=list)

    async def run(
        self,
        wallet_dir: str | Path | None,
        prompt: Callable[[str], str] = getpass.getpass,
        tor: Callable[..., httpx.AsyncClient] = tor_client,
    ) -> None:
        server = self.server.pick(self.network)

        async with server.connect(tor) as client:
            # Tip is the default birthday base and the recover-until height
            chain_tip = await client.get_latest_block()
            logger.info(f"Chain tip: {chain_tip}")

            # Prompts run on the main thread so Ctrl-C interrupts them
            _, recipients = obtain_identity(self.identity)
            recipients = recipients + list(self.recipients)

            phrase, recovering = obtain_mnemonic(prompt)
            recover_until = chain_tip if recovering else None

            birthday_height = (
                self.birthday if self.birthday is not None else default_birthday(chain_tip)
            )
            birthday = await get_wallet_birthday(client, birthday_height, recover_until)

        # The config is only written once every network call has succeeded
        await asyncio.to_thread(
            WalletConfig.init_with_mnemonic,
            wallet_dir,
            recipients,
            phrase,
            birthday.height,
            self.network,
        )

        with derive_seed(phrase) as seed:
            account = await asyncio.to_thread(
                provision, self.network, wallet_dir, self.name, seed, birthday
            )
        print(f"Created account {account.uuid} with birthday {birthday.height}")
