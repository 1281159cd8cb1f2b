"""
zwallet command line.

USAGE:
    zwallet [-d DIR] init --name NAME -i IDENTITY -n {main,test} [-b HEIGHT] [-s SERVER] [-r RECIPIENT ...]
    zwallet [-d DIR] balance [ACCOUNT_UUID] [--convert CODE]

EXAMPLES:
    zwallet init --name savings -i ~/.zwallet/identity.txt -n test
    zwallet -d ./mainnet-wallet init --name main -i id.txt -n main -s https://node.example:8232
    zwallet balance --convert USD
"""

import argparse
import asyncio
import os
import sqlite3
import sys
import uuid
from concurrent.futures import ThreadPoolExecutor
from typing import Coroutine

import httpx
from loguru import logger

from zwallet.commands.balance import BalanceOptions, parse_currency
from zwallet.commands.init import InitOptions
from zwallet.errors import WalletError
from zwallet.network import Network
from zwallet.remote.servers import Servers
from zwallet.wallet.identity import parse_recipient

# =============================================================================
# CONFIGURATION
# =============================================================================

DEFAULT_LOG_LEVEL = "WARNING"

# Worker threads are named zwallet-worker_0, zwallet-worker_1, ...
WORKER_THREAD_PREFIX = "zwallet-worker"


def configure_logging(level: str | None = None) -> None:
    """Send loguru output to stderr at ZWALLET_LOG_LEVEL."""
    logger.remove()
    logger.add(
        sys.stderr,
        level=(level or os.getenv("ZWALLET_LOG_LEVEL", DEFAULT_LOG_LEVEL)).upper(),
        format="{time:HH:mm:ss} | {level: <8} | {name}:{function} - {message}",
    )


# =============================================================================
# PARSER
# =============================================================================


def _non_negative_int(value: str) -> int:
    height = int(value)
    if height < 0:
        raise ValueError("height must be non-negative")
    return height


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="zwallet", description="Light wallet CLI")
    parser.add_argument("-d", "--dir", dest="wallet_dir", help="Path to the wallet directory")
    subparsers = parser.add_subparsers(dest="command")

    init = subparsers.add_parser("init", help="Initialise a new light wallet")
    init.add_argument("--name", required=True, help="A name for the account")
    init.add_argument(
        "-i",
        "--identity",
        required=True,
        help="age identity file to encrypt the mnemonic phrase to (generated if it doesn't exist)",
    )
    init.add_argument(
        "-b",
        "--birthday",
        type=_non_negative_int,
        help="The wallet's birthday (default is 100 blocks below the chain tip)",
    )
    init.add_argument(
        "-n",
        "--network",
        type=Network.parse,
        required=True,
        help='Network the wallet is used with: "test" or "main"',
    )
    init.add_argument(
        "-s",
        "--server",
        type=Servers.parse,
        default=Servers.parse("local"),
        help='The server to initialise with: "local" or an http(s) URL (default is "local")',
    )
    init.add_argument(
        "-r",
        "--recipient",
        dest="recipients",
        type=parse_recipient,
        action="append",
        default=[],
        help="Additional age or SSH public key to encrypt the mnemonic to (repeatable)",
    )

    balance = subparsers.add_parser("balance", help="Show the balance of an account")
    balance.add_argument(
        "account_id",
        nargs="?",
        type=uuid.UUID,
        help="The UUID of the account if multiple exist",
    )
    balance.add_argument(
        "--convert",
        type=parse_currency,
        help="Convert ZEC values into some currency",
    )
    return parser


# =============================================================================
# RUNTIME
# =============================================================================


def run(coro: Coroutine) -> None:
    """
    Run one command on a fresh event loop with named worker threads.

    SIGINT keeps its default handler, so Ctrl-C at a prompt raises
    KeyboardInterrupt immediately instead of waiting for the read to finish.
    """
    loop = asyncio.new_event_loop()
    loop.set_default_executor(ThreadPoolExecutor(thread_name_prefix=WORKER_THREAD_PREFIX))
    try:
        loop.run_until_complete(coro)
    finally:
        try:
            loop.run_until_complete(loop.shutdown_asyncgens())
        finally:
            loop.close()


def dispatch(args: argparse.Namespace) -> Coroutine:
    if args.command == "init":
        options = InitOptions(
            name=args.name,
            identity=args.identity,
            network=args.network,
            server=args.server,
            birthday=args.birthday,
            recipients=args.recipients,
        )
        return options.run(args.wallet_dir)
    options = BalanceOptions(account_id=args.account_id, convert=args.convert)
    return options.run(args.wallet_dir)


def main(argv: list[str] | None = None) -> int:
    configure_logging()
    logger.info("starting")

    parser = build_parser()
    args = parser.parse_args(argv)
    if args.command is None:
        parser.print_help()
        return 0

    try:
        run(dispatch(args))
    except KeyboardInterrupt:
        print("Interrupted", file=sys.stderr)
        return 130
    except (WalletError, httpx.HTTPError, sqlite3.Error, OSError, ValueError) as e:
        logger.debug(f"{args.command} failed: {e!r}")
        print(f"ERROR: {e}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
