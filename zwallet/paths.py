"""Shared path constants and URLs for the wallet."""

import os
from pathlib import Path

from dotenv import load_dotenv

# Load .env from the working directory (existing environment variables win)
load_dotenv(Path.cwd() / ".env")

# =============================================================================
# Wallet Directory
# =============================================================================

# Default wallet directory (relative to the working directory)
DEFAULT_WALLET_DIR = Path(os.getenv("ZWALLET_DIR", "./zec_sqlite_wallet"))

# Encrypted mnemonic + network + birthday
KEYS_FILE = "keys.toml"

# Wallet engine storage
DATA_DB_FILE = "data.sqlite"


def wallet_dir_or_default(wallet_dir: str | Path | None) -> Path:
    """Resolve an optional --wallet-dir argument."""
    return Path(wallet_dir) if wallet_dir is not None else DEFAULT_WALLET_DIR


# =============================================================================
# External Service URLs
# =============================================================================

# Tor SOCKS proxy used for every non-loopback connection
TOR_PROXY_URL = os.getenv("ZWALLET_TOR_PROXY", "socks5://127.0.0.1:9050")

# Exchange tickers for ZEC/USD
GEMINI_TICKER_URL = "https://api.gemini.com/v1/pubticker/zecusd"
COINBASE_SPOT_URL = "https://api.coinbase.com/v2/prices/ZEC-USD/spot"
KRAKEN_TICKER_URL = "https://api.kraken.com/0/public/Ticker?pair=ZECUSD"
