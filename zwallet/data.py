"""
SQLite-backed wallet storage.

Manages:
- Accounts created from a seed (fingerprint, HD index, birthday checkpoint)
- Receiving addresses generated for each account
- The latest scan summary (chain tip, progress, per-pool balances)

Scanning itself is performed by the sync engine, which records its results
with put_wallet_summary(); this module only serves reads for reporting.
"""

import hashlib
import sqlite3
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path

from loguru import logger

from zwallet.errors import NetworkMismatch
from zwallet.network import Network
from zwallet.paths import DATA_DB_FILE, wallet_dir_or_default
from zwallet.wallet.birthday import AccountBirthday
from zwallet.wallet.secret import SecretBuffer

# =============================================================================
# CONFIGURATION
# =============================================================================

# ZIP 32 seed fingerprint personalization
SEED_FP_PERSONALIZATION = b"Zcash_HD_Seed_FP"

# Value pools tracked in account_balances
POOLS = ("sapling", "orchard", "unshielded")


# =============================================================================
# DATA CLASSES
# =============================================================================


@dataclass(frozen=True)
class Account:
    """Account metadata held by the wallet store."""

    uuid: uuid.UUID
    name: str
    hd_account_index: int
    seed_fingerprint: str
    birthday_height: int
    recover_until: int | None
    key_source: str | None
    created_at: str


@dataclass(frozen=True)
class Balance:
    """Zatoshi amounts for one value pool."""

    spendable_value: int = 0
    change_pending_confirmation: int = 0
    value_pending_spendability: int = 0

    def total(self) -> int:
        return (
            self.spendable_value
            + self.change_pending_confirmation
            + self.value_pending_spendability
        )


@dataclass(frozen=True)
class AccountBalance:
    sapling_balance: Balance = field(default_factory=Balance)
    orchard_balance: Balance = field(default_factory=Balance)
    unshielded_balance: Balance = field(default_factory=Balance)

    def total(self) -> int:
        return (
            self.sapling_balance.total()
            + self.orchard_balance.total()
            + self.unshielded_balance.total()
        )


@dataclass(frozen=True)
class Ratio:
    numerator: int
    denominator: int


@dataclass(frozen=True)
class Progress:
    scan: Ratio
    recovery: Ratio | None = None


@dataclass(frozen=True)
class WalletSummary:
    """Point-in-time read of balances and sync progress."""

    account_balances: dict[uuid.UUID, AccountBalance]
    chain_tip_height: int
    fully_scanned_height: int
    progress: Progress


# =============================================================================
# HELPERS
# =============================================================================


def seed_fingerprint(seed: bytes | memoryview) -> str:
    """ZIP 32 seed fingerprint: BLAKE2b-256(len(seed) || seed)."""
    h = hashlib.blake2b(digest_size=32, person=SEED_FP_PERSONALIZATION)
    h.update(bytes([len(seed)]))
    h.update(seed)
    return h.hexdigest()


def get_db_path(wallet_dir: str | Path | None) -> Path:
    return wallet_dir_or_default(wallet_dir) / DATA_DB_FILE


# =============================================================================
# WALLET DB
# =============================================================================


class WalletDb:
    """SQLite wallet store bound to one network."""

    def __init__(self, db_path: Path, network: Network):
        self.db_path = db_path
        self.network = network

        self.conn = sqlite3.connect(self.db_path)
        self.conn.row_factory = sqlite3.Row
        try:
            self._init_tables()
            self._check_network()
        except (NetworkMismatch, sqlite3.Error):
            self.conn.close()
            raise

    @classmethod
    def for_path(cls, db_path: Path, network: Network) -> "WalletDb":
        return cls(db_path, network)

    def close(self) -> None:
        self.conn.close()

    def __enter__(self) -> "WalletDb":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def _init_tables(self) -> None:
        """Initialize database schema."""
        self.conn.executescript("""
            -- Key-value metadata store
            CREATE TABLE IF NOT EXISTS metadata (
                key TEXT PRIMARY KEY,
                value TEXT
            );

            CREATE TABLE IF NOT EXISTS accounts (
                uuid TEXT PRIMARY KEY,
                name TEXT NOT NULL,
                seed_fingerprint TEXT NOT NULL,
                hd_account_index INTEGER NOT NULL,
                birthday_height INTEGER NOT NULL,
                birthday_block_hash TEXT,
                sapling_frontier TEXT,      -- serialized CommitmentTree, hex
                sapling_tree_size INTEGER,
                orchard_frontier TEXT,
                orchard_tree_size INTEGER,
                recover_until INTEGER,
                key_source TEXT,
                created_at TEXT,
                UNIQUE (seed_fingerprint, hd_account_index)
            );

            CREATE TABLE IF NOT EXISTS addresses (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                account_uuid TEXT NOT NULL,
                address TEXT NOT NULL,
                generated_at TEXT,
                FOREIGN KEY (account_uuid) REFERENCES accounts(uuid)
            );

            -- Written by the sync engine; a single row
            CREATE TABLE IF NOT EXISTS scan_state (
                id INTEGER PRIMARY KEY CHECK (id = 1),
                chain_tip_height INTEGER NOT NULL,
                fully_scanned_height INTEGER NOT NULL,
                scan_numerator INTEGER NOT NULL,
                scan_denominator INTEGER NOT NULL,
                recovery_numerator INTEGER,
                recovery_denominator INTEGER
            );

            CREATE TABLE IF NOT EXISTS account_balances (
                account_uuid TEXT NOT NULL,
                pool TEXT NOT NULL,            -- 'sapling', 'orchard', 'unshielded'
                spendable_value INTEGER NOT NULL,
                change_pending_confirmation INTEGER NOT NULL,
                value_pending_spendability INTEGER NOT NULL,
                PRIMARY KEY (account_uuid, pool),
                FOREIGN KEY (account_uuid) REFERENCES accounts(uuid)
            );

            CREATE INDEX IF NOT EXISTS idx_addresses_account ON addresses(account_uuid);
        """)
        self.conn.commit()

    def _check_network(self) -> None:
        row = self.conn.execute(
            "SELECT value FROM metadata WHERE key = 'network'"
        ).fetchone()
        if row is None:
            self.conn.execute(
                "INSERT INTO metadata (key, value) VALUES ('network', ?)",
                (self.network.value,),
            )
            self.conn.commit()
        elif row["value"] != self.network.value:
            raise NetworkMismatch(self.network.value, row["value"])

    # =========================================================================
    # ACCOUNTS
    # =========================================================================

    def create_account(
        self,
        account_name: str,
        seed: SecretBuffer,
        birthday: AccountBirthday,
        key_source: str | None = None,
    ) -> Account:
        """Create the next HD account for `seed`."""
        fingerprint = seed_fingerprint(seed.expose())
        row = self.conn.execute(
            "SELECT MAX(hd_account_index) AS idx FROM accounts WHERE seed_fingerprint = ?",
            (fingerprint,),
        ).fetchone()
        index = 0 if row["idx"] is None else row["idx"] + 1

        account = Account(
            uuid=uuid.uuid4(),
            name=account_name,
            hd_account_index=index,
            seed_fingerprint=fingerprint,
            birthday_height=birthday.height,
            recover_until=birthday.recover_until,
            key_source=key_source,
            created_at=datetime.now(timezone.utc).isoformat(),
        )
        with self.conn:
            self.conn.execute(
                """
                INSERT INTO accounts (
                    uuid, name, seed_fingerprint, hd_account_index,
                    birthday_height, birthday_block_hash,
                    sapling_frontier, sapling_tree_size,
                    orchard_frontier, orchard_tree_size,
                    recover_until, key_source, created_at
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    str(account.uuid),
                    account.name,
                    account.seed_fingerprint,
                    account.hd_account_index,
                    account.birthday_height,
                    birthday.block_hash,
                    birthday.sapling_frontier.to_bytes().hex(),
                    birthday.sapling_frontier.size,
                    birthday.orchard_frontier.to_bytes().hex(),
                    birthday.orchard_frontier.size,
                    account.recover_until,
                    account.key_source,
                    account.created_at,
                ),
            )
        logger.info(
            f"Created account {account.uuid} ('{account_name}', index {index}, "
            f"birthday {birthday.height})"
        )
        return account

    def get_account_ids(self) -> list[uuid.UUID]:
        rows = self.conn.execute(
            "SELECT uuid FROM accounts ORDER BY created_at, uuid"
        ).fetchall()
        return [uuid.UUID(row["uuid"]) for row in rows]

    def get_account(self, account_id: uuid.UUID) -> Account | None:
        row = self.conn.execute(
            "SELECT * FROM accounts WHERE uuid = ?", (str(account_id),)
        ).fetchone()
        if row is None:
            return None
        return Account(
            uuid=uuid.UUID(row["uuid"]),
            name=row["name"],
            hd_account_index=row["hd_account_index"],
            seed_fingerprint=row["seed_fingerprint"],
            birthday_height=row["birthday_height"],
            recover_until=row["recover_until"],
            key_source=row["key_source"],
            created_at=row["created_at"],
        )

    def get_last_generated_address(self, account_id: uuid.UUID) -> str | None:
        row = self.conn.execute(
            "SELECT address FROM addresses WHERE account_uuid = ? ORDER BY id DESC LIMIT 1",
            (str(account_id),),
        ).fetchone()
        return row["address"] if row else None

    def add_address(self, account_id: uuid.UUID, address: str) -> None:
        with self.conn:
            self.conn.execute(
                "INSERT INTO addresses (account_uuid, address, generated_at) VALUES (?, ?, ?)",
                (str(account_id), address, datetime.now(timezone.utc).isoformat()),
            )

    # =========================================================================
    # SUMMARY
    # =========================================================================

    def get_wallet_summary(self) -> WalletSummary | None:
        """Latest scan summary, or None if the wallet has never synced."""
        state = self.conn.execute("SELECT * FROM scan_state WHERE id = 1").fetchone()
        if state is None:
            return None

        balances: dict[uuid.UUID, dict[str, Balance]] = {
            account_id: {} for account_id in self.get_account_ids()
        }
        for row in self.conn.execute("SELECT * FROM account_balances"):
            account_id = uuid.UUID(row["account_uuid"])
            balances.setdefault(account_id, {})[row["pool"]] = Balance(
                spendable_value=row["spendable_value"],
                change_pending_confirmation=row["change_pending_confirmation"],
                value_pending_spendability=row["value_pending_spendability"],
            )

        recovery = None
        if state["recovery_numerator"] is not None:
            recovery = Ratio(state["recovery_numerator"], state["recovery_denominator"])

        return WalletSummary(
            account_balances={
                account_id: AccountBalance(
                    sapling_balance=pools.get("sapling", Balance()),
                    orchard_balance=pools.get("orchard", Balance()),
                    unshielded_balance=pools.get("unshielded", Balance()),
                )
                for account_id, pools in balances.items()
            },
            chain_tip_height=state["chain_tip_height"],
            fully_scanned_height=state["fully_scanned_height"],
            progress=Progress(
                scan=Ratio(state["scan_numerator"], state["scan_denominator"]),
                recovery=recovery,
            ),
        )

    def put_wallet_summary(self, summary: WalletSummary) -> None:
        """Replace the stored scan summary (called by the sync engine)."""
        recovery = summary.progress.recovery
        with self.conn:
            self.conn.execute(
                """
                INSERT OR REPLACE INTO scan_state (
                    id, chain_tip_height, fully_scanned_height,
                    scan_numerator, scan_denominator,
                    recovery_numerator, recovery_denominator
                ) VALUES (1, ?, ?, ?, ?, ?, ?)
                """,
                (
                    summary.chain_tip_height,
                    summary.fully_scanned_height,
                    summary.progress.scan.numerator,
                    summary.progress.scan.denominator,
                    recovery.numerator if recovery else None,
                    recovery.denominator if recovery else None,
                ),
            )
            self.conn.execute("DELETE FROM account_balances")
            for account_id, balance in summary.account_balances.items():
                for pool in POOLS:
                    pool_balance = getattr(balance, f"{pool}_balance")
                    self.conn.execute(
                        """
                        INSERT INTO account_balances (
                            account_uuid, pool, spendable_value,
                            change_pending_confirmation, value_pending_spendability
                        ) VALUES (?, ?, ?, ?, ?)
                        """,
                        (
                            str(account_id),
                            pool,
                            pool_balance.spendable_value,
                            pool_balance.change_pending_confirmation,
                            pool_balance.value_pending_spendability,
                        ),
                    )


def init_dbs(network: Network, wallet_dir: str | Path | None) -> WalletDb:
    """Open (creating if needed) the wallet store in `wallet_dir`."""
    db_path = get_db_path(wallet_dir)
    db_path.parent.mkdir(parents=True, exist_ok=True)
    return WalletDb.for_path(db_path, network)
