"""
Anonymizing transport and exchange rates.

All outbound traffic to third parties goes through the Tor SOCKS proxy.
Exchange rates are taken from a fixed set of exchanges: the trusted one
must answer, the others are best-effort, and the median is returned.
"""

import os
import statistics
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Any, Callable

import httpx
from loguru import logger

from zwallet.paths import (
    COINBASE_SPOT_URL,
    GEMINI_TICKER_URL,
    KRAKEN_TICKER_URL,
    TOR_PROXY_URL,
)

# =============================================================================
# CONFIGURATION
# =============================================================================
REQUEST_TIMEOUT = float(os.getenv("ZWALLET_REQUEST_TIMEOUT", "30"))


def tor_client(**kwargs: Any) -> httpx.AsyncClient:
    """HTTP client that routes every request through the Tor SOCKS proxy."""
    kwargs.setdefault("timeout", REQUEST_TIMEOUT)
    return httpx.AsyncClient(proxy=TOR_PROXY_URL, **kwargs)


# =============================================================================
# EXCHANGES
# =============================================================================


def _gemini_price(data: dict) -> str:
    return data["last"]


def _coinbase_price(data: dict) -> str:
    return data["data"]["amount"]


def _kraken_price(data: dict) -> str:
    if data.get("error"):
        raise ValueError(f"Kraken error: {data['error']}")
    (ticker,) = data["result"].values()
    return ticker["c"][0]


@dataclass(frozen=True)
class Exchange:
    name: str
    url: str
    parse: Callable[[dict], str]


@dataclass(frozen=True)
class Exchanges:
    """A trusted exchange plus best-effort others."""

    trusted: Exchange
    others: tuple[Exchange, ...] = ()

    @classmethod
    def unauthenticated_known_with_gemini_trusted(cls) -> "Exchanges":
        return cls(
            trusted=Exchange("Gemini", GEMINI_TICKER_URL, _gemini_price),
            others=(
                Exchange("Coinbase", COINBASE_SPOT_URL, _coinbase_price),
                Exchange("Kraken", KRAKEN_TICKER_URL, _kraken_price),
            ),
        )


async def fetch_rate(client: httpx.AsyncClient, exchange: Exchange) -> Decimal:
    """Fetch one ZEC/USD quote."""
    resp = await client.get(exchange.url)
    resp.raise_for_status()
    try:
        rate = Decimal(str(exchange.parse(resp.json())))
    except (KeyError, TypeError, ValueError, InvalidOperation) as e:
        raise ValueError(f"Unexpected {exchange.name} response: {e}") from None
    if not rate.is_finite() or rate <= 0:
        raise ValueError(f"Invalid {exchange.name} rate: {rate}")
    logger.debug(f"{exchange.name} ZEC/USD: {rate}")
    return rate


async def get_latest_zec_to_usd_rate(
    client: httpx.AsyncClient,
    exchanges: Exchanges,
) -> Decimal:
    """
    Median ZEC/USD rate across `exchanges`, queried one at a time.

    Raises:
        httpx.HTTPError / ValueError: If the trusted exchange fails
    """
    rates = [await fetch_rate(client, exchanges.trusted)]
    for exchange in exchanges.others:
        try:
            rates.append(await fetch_rate(client, exchange))
        except (httpx.HTTPError, ValueError) as e:
            logger.warning(f"Skipping {exchange.name} rate: {e}")
    return statistics.median(rates)
