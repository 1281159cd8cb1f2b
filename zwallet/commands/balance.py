"""
`balance` command: report an account's balances.

Balances come from the wallet store's latest scan summary; values can be
shown alongside a fiat conversion fetched over Tor.
"""

import os
import uuid
from dataclasses import dataclass
from decimal import ROUND_HALF_EVEN, ROUND_HALF_UP, Decimal
from pathlib import Path
from typing import Callable

import httpx
from babel.numbers import get_currency_symbol, list_currencies
from loguru import logger

from zwallet.data import Account, AccountBalance, Ratio, WalletDb, WalletSummary, get_db_path
from zwallet.errors import (
    AccountMissingFromSummary,
    AccountNotFound,
    AmbiguousAccount,
    NoAccounts,
)
from zwallet.network import COIN
from zwallet.remote.tor import Exchanges, get_latest_zec_to_usd_rate, tor_client
from zwallet.ui import fill_detail, fill_unbroken, format_zec
from zwallet.wallet.config import get_wallet_network

# =============================================================================
# CONFIGURATION
# =============================================================================

# Whether the transparent pool is reported
TRANSPARENT_INPUTS = os.getenv("ZWALLET_TRANSPARENT_INPUTS", "1").lower() not in ("0", "false", "no")

# Currencies with an end-to-end rate source
SUPPORTED_CURRENCIES = ("USD",)

INSUFFICIENT_SUMMARY = "Insufficient information to build a wallet summary."


# =============================================================================
# ACCOUNT SELECTION
# =============================================================================


def select_account(db: WalletDb, account_uuid: uuid.UUID | None) -> Account:
    """
    Pick the account to act on.

    Without an explicit UUID the wallet must contain exactly one account;
    there is no fallback to the first of several.
    """
    if account_uuid is None:
        account_ids = db.get_account_ids()
        if not account_ids:
            raise NoAccounts()
        if len(account_ids) > 1:
            raise AmbiguousAccount(len(account_ids))
        account_uuid = account_ids[0]

    account = db.get_account(account_uuid)
    if account is None:
        raise AccountNotFound(account_uuid)
    return account


# =============================================================================
# VALUE FORMATTING
# =============================================================================


def parse_currency(code: str) -> str:
    """Validate an ISO 4217 currency code (argparse type)."""
    code = code.strip().upper()
    if code not in list_currencies():
        raise ValueError(f"Invalid currency '{code}'")
    return code


def format_progress(ratio: Ratio) -> str | None:
    """Percentage with 3 decimals, or None when there is nothing to measure (0/0)."""
    if ratio.denominator == 0:
        return None
    percent = Decimal(100 * ratio.numerator) / Decimal(ratio.denominator)
    return f"{percent.quantize(Decimal('0.001'), rounding=ROUND_HALF_EVEN)}%"


@dataclass(frozen=True)
class ValuePrinter:
    """Formats zatoshi values, optionally with a fiat conversion."""

    currency: str | None = None
    rate: Decimal | None = None

    @classmethod
    def zec_only(cls) -> "ValuePrinter":
        return cls()

    @classmethod
    async def with_exchange_rate(
        cls, client: httpx.AsyncClient, currency: str
    ) -> "ValuePrinter":
        if currency not in SUPPORTED_CURRENCIES:
            logger.warning(f"{currency}/ZEC exchange rate is unsupported")
            return cls.zec_only()

        logger.info(f"Fetching {currency}/ZEC exchange rate")
        exchanges = Exchanges.unauthenticated_known_with_gemini_trusted()
        rate = await get_latest_zec_to_usd_rate(client, exchanges)
        logger.info(f"Current {currency}/ZEC exchange rate: {rate}")
        return cls(currency=currency, rate=rate)

    def convert(self, value: int) -> Decimal | None:
        if self.rate is None:
            return None
        return self.rate * Decimal(value) / Decimal(COIN)

    def format(self, value: int) -> str:
        fiat = self.convert(value)
        if fiat is None:
            return format_zec(value)
        symbol = get_currency_symbol(self.currency, locale="en_US")
        shown = fiat.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)
        return f"{format_zec(value)} ({symbol}{shown})"


# =============================================================================
# REPORT
# =============================================================================


def render_report(
    summary: WalletSummary | None,
    account: Account,
    address: str | None,
    printer: ValuePrinter,
    transparent: bool = TRANSPARENT_INPUTS,
) -> list[str]:
    """
    Build the printed lines of the balance report.

    Raises:
        AccountMissingFromSummary: If the summary has no entry for the account
    """
    if summary is None:
        return [INSUFFICIENT_SUMMARY]

    balance: AccountBalance | None = summary.account_balances.get(account.uuid)
    if balance is None:
        raise AccountMissingFromSummary(account.uuid)

    lines = []
    if address is not None:
        lines.append(fill_unbroken(f"Address: {address}") + "\n")
    lines.append(fill_detail(f"Height: {summary.chain_tip_height}"))

    synced = format_progress(summary.progress.scan)
    lines.append(fill_detail(f"Synced: {synced if synced is not None else 'n/a'}"))

    recovery = summary.progress.recovery
    if recovery is not None:
        recovered = format_progress(recovery)
        if recovered is None:
            lines.append(fill_detail("Recovered: not in progress"))
        else:
            lines.append(
                fill_detail(
                    f"Recovered: {recovered} = {recovery.numerator}/{recovery.denominator}"
                )
            )

    lines.append(fill_detail(f"Balance: {printer.format(balance.total())}"))
    lines.append(
        fill_detail(
            f"Sapling Spendable: {printer.format(balance.sapling_balance.spendable_value)}"
        )
    )
    lines.append(
        fill_detail(
            f"Orchard Spendable: {printer.format(balance.orchard_balance.spendable_value)}"
        )
    )
    if transparent:
        lines.append(
            fill_detail(
                "Unshielded Spendable: "
                f"{printer.format(balance.unshielded_balance.spendable_value)}"
            )
        )
    return lines


@dataclass
class BalanceOptions:
    account_id: uuid.UUID | None = None
    convert: str | None = None

    async def run(
        self,
        wallet_dir: str | Path | None,
        tor: Callable[..., httpx.AsyncClient] = tor_client,
    ) -> None:
        network = get_wallet_network(wallet_dir)
        with WalletDb.for_path(get_db_path(wallet_dir), network) as db:
            account = select_account(db, self.account_id)
            address = db.get_last_generated_address(account.uuid)
            if address is None:
                logger.debug(f"No address generated yet for account {account.uuid}")

            # Retrieve the exchange rate if we need to
            if self.convert is not None:
                async with tor() as client:
                    printer = await ValuePrinter.with_exchange_rate(client, self.convert)
            else:
                printer = ValuePrinter.zec_only()

            summary = db.get_wallet_summary()
            for line in render_report(summary, account, address, printer):
                print(line)
