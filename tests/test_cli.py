import asyncio
import sys
import threading
import uuid

import httpx
import pytest
from loguru import logger

from zwallet import cli
from zwallet.commands.balance import INSUFFICIENT_SUMMARY, BalanceOptions
from zwallet.data import (
    AccountBalance,
    Balance,
    Progress,
    Ratio,
    WalletSummary,
    get_db_path,
    init_dbs,
)
from zwallet.network import COIN, Network
from zwallet.paths import GEMINI_TICKER_URL
from zwallet.remote.indexer import TreeState
from zwallet.remote.servers import Servers
from zwallet.remote.tor import Exchange, Exchanges
from zwallet.wallet.birthday import AccountBirthday
from zwallet.wallet.config import WalletConfig
from zwallet.wallet.secret import SecretBuffer


@pytest.fixture(autouse=True)
def restore_logging():
    yield
    # main() rebinds the sink to the captured stderr
    logger.remove()
    logger.add(sys.stderr)


def _make_wallet(wallet_dir, summary_balance: AccountBalance | None = None):
    WalletConfig(network=Network.TEST, birthday=1000).write(wallet_dir)
    birthday = AccountBirthday.from_treestate(TreeState("test", 999, "00" * 32, 0, "", ""))
    with init_dbs(Network.TEST, wallet_dir) as db:
        account = db.create_account("primary", SecretBuffer(b"\x05" * 64), birthday)
        if summary_balance is not None:
            db.put_wallet_summary(
                WalletSummary(
                    account_balances={account.uuid: summary_balance},
                    chain_tip_height=1200,
                    fully_scanned_height=1200,
                    progress=Progress(scan=Ratio(200, 200)),
                )
            )
    return account


# =============================================================================
# PARSER
# =============================================================================


def test_parse_init():
    args = cli.build_parser().parse_args(
        ["-d", "w", "init", "--name", "n", "-i", "id.txt", "-n", "main", "-b", "419200"]
    )
    assert args.wallet_dir == "w"
    assert args.network is Network.MAIN
    assert args.birthday == 419_200
    assert args.server == Servers.parse("local")
    assert args.recipients == []


def test_parse_balance():
    account_id = uuid.uuid4()
    args = cli.build_parser().parse_args(["balance", str(account_id), "--convert", "usd"])
    assert args.account_id == account_id
    assert args.convert == "USD"


@pytest.mark.parametrize(
    "argv",
    [
        ["init", "--name", "n", "-i", "id.txt", "-n", "regtest"],
        ["init", "--name", "n", "-i", "id.txt", "-n", "test", "-b", "-5"],
        ["init", "--name", "n", "-i", "id.txt", "-n", "test", "-s", "ftp://x"],
        ["init", "--name", "n", "-n", "test"],
        ["balance", "not-a-uuid"],
        ["balance", "--convert", "NOPE"],
    ],
)
def test_parser_rejects(argv):
    with pytest.raises(SystemExit):
        cli.build_parser().parse_args(argv)


def test_no_command_prints_help(capsys):
    assert cli.main([]) == 0
    assert "usage: zwallet" in capsys.readouterr().out


# =============================================================================
# COMMANDS
# =============================================================================


def test_balance_before_first_sync(tmp_path, capsys):
    _make_wallet(tmp_path / "wallet")

    assert cli.main(["-d", str(tmp_path / "wallet"), "balance"]) == 0
    assert capsys.readouterr().out == INSUFFICIENT_SUMMARY + "\n"


def test_balance_uninitialized_wallet(tmp_path, capsys):
    assert cli.main(["-d", str(tmp_path / "missing"), "balance"]) == 1
    err = capsys.readouterr().err
    assert err.startswith("ERROR: No wallet config found")


def test_balance_unknown_account(tmp_path, capsys):
    _make_wallet(tmp_path / "wallet")

    code = cli.main(["-d", str(tmp_path / "wallet"), "balance", str(uuid.uuid4())])
    assert code == 1
    assert "Account missing" in capsys.readouterr().err


async def test_balance_with_conversion(tmp_path, capsys, monkeypatch):
    _make_wallet(tmp_path / "wallet", AccountBalance(orchard_balance=Balance(spendable_value=2 * COIN)))

    def handler(request: httpx.Request) -> httpx.Response:
        assert str(request.url) == GEMINI_TICKER_URL
        return httpx.Response(200, json={"last": "27.345"})

    # Only the trusted exchange, so the rate is deterministic
    monkeypatch.setattr(
        Exchanges,
        "unauthenticated_known_with_gemini_trusted",
        classmethod(lambda cls: cls(trusted=Exchange("Gemini", GEMINI_TICKER_URL, lambda d: d["last"]))),
    )

    def tor(**kwargs):
        return httpx.AsyncClient(transport=httpx.MockTransport(handler), **kwargs)

    await BalanceOptions(convert="USD").run(tmp_path / "wallet", tor=tor)

    out = capsys.readouterr().out
    assert "Synced: 100.000%" in out
    assert "Balance:   2.00000000 ZEC ($54.69)" in out
    assert "Orchard Spendable:   2.00000000 ZEC ($54.69)" in out
    assert "Sapling Spendable:   0.00000000 ZEC ($0.00)" in out


async def test_balance_without_conversion_makes_no_requests(tmp_path, capsys):
    _make_wallet(tmp_path / "wallet", AccountBalance())

    def tor(**kwargs):
        raise AssertionError("no network access expected")

    await BalanceOptions().run(tmp_path / "wallet", tor=tor)
    assert "Balance:   0.00000000 ZEC" in capsys.readouterr().out


def test_run_names_worker_threads():
    names = []

    async def work():
        await asyncio.to_thread(lambda: names.append(threading.current_thread().name))

    cli.run(work())
    assert names[0].startswith(cli.WORKER_THREAD_PREFIX)


async def test_balance_shows_last_generated_address(tmp_path, capsys):
    account = _make_wallet(tmp_path / "wallet", AccountBalance())
    with init_dbs(Network.TEST, tmp_path / "wallet") as db:
        db.add_address(account.uuid, "utest1first")
        db.add_address(account.uuid, "utest1second")

    await BalanceOptions().run(tmp_path / "wallet")

    lines = capsys.readouterr().out.splitlines()
    assert lines[0] == "Address:\u00a0utest1second"
    assert lines[1] == ""
    assert lines[2] == "    Height: 1200"


def test_corrupt_wallet_store(tmp_path, capsys):
    wallet_dir = tmp_path / "wallet"
    WalletConfig(network=Network.TEST, birthday=1000).write(wallet_dir)
    get_db_path(wallet_dir).write_bytes(b"not a sqlite database" * 100)

    assert cli.main(["-d", str(wallet_dir), "balance"]) == 1
    assert capsys.readouterr().err.startswith("ERROR: ")
