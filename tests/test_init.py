import os
import signal
import subprocess
import sys
import textwrap
import tomllib
from pathlib import Path

import httpx
import pytest
from pyrage import x25519

from zwallet.commands.init import InitOptions, get_wallet_birthday, provision
from zwallet.data import WalletDb, get_db_path, init_dbs
from zwallet.errors import (
    ConfigAlreadyExists,
    InvalidMnemonic,
    InvalidTreeState,
    NetworkMismatch,
    RemoteError,
)
from zwallet.network import Network
from zwallet.paths import KEYS_FILE
from zwallet.remote.indexer import TreeState
from zwallet.remote.servers import Servers
from zwallet.wallet.birthday import AccountBirthday
from zwallet.wallet.encryption import decrypt_mnemonic
from zwallet.wallet.identity import read_identities
from zwallet.wallet.secret import SecretBuffer

from tests.conftest import VALID_PHRASE, FakeNode

ROOT = Path(__file__).resolve().parents[1]


def _options(tmp_path, **kwargs) -> InitOptions:
    defaults = dict(
        name="primary",
        identity=str(tmp_path / "identity.txt"),
        network=Network.TEST,
        server=Servers.parse("http://node.test:18232"),
    )
    defaults.update(kwargs)
    return InitOptions(**defaults)


# =============================================================================
# BIRTHDAY
# =============================================================================


@pytest.mark.parametrize("height, requested", [(1, 0), (1000, 999), (0, 0)])
async def test_tree_state_requested_before_birthday(client, node, height, requested):
    birthday = await get_wallet_birthday(client, height)

    assert node.tree_state_heights() == [requested]
    assert birthday.height == requested + 1
    assert birthday.recover_until is None
    assert birthday.sapling_frontier.size == 1
    assert birthday.orchard_frontier.is_empty()


async def test_recover_until_is_kept(client):
    birthday = await get_wallet_birthday(client, 400_000, recover_until=500_000)
    assert birthday.recover_until == 500_000


async def test_malformed_frontier(client, node):
    node.sapling_tree = "01" + "11" * 10
    with pytest.raises(InvalidTreeState):
        await get_wallet_birthday(client, 1000)


async def test_height_mismatch(client, node, monkeypatch):
    monkeypatch.setattr(node, "treestate", lambda height: FakeNode.treestate(node, height + 5))
    with pytest.raises(InvalidTreeState, match="asked for height"):
        await get_wallet_birthday(client, 1000)


# =============================================================================
# PROVISIONING
# =============================================================================


def _birthday(height: int = 1000, recover_until: int | None = None) -> AccountBirthday:
    treestate = TreeState(
        network="test",
        height=height - 1,
        hash="00" * 32,
        time=0,
        sapling_tree="",
        orchard_tree="",
    )
    return AccountBirthday.from_treestate(treestate, recover_until)


def test_provision_creates_account_and_wipes_seed(tmp_path):
    seed = SecretBuffer(b"\x07" * 64)
    account = provision(Network.TEST, tmp_path, "spending", seed, _birthday(), "hardware")

    assert seed.wiped
    with WalletDb.for_path(get_db_path(tmp_path), Network.TEST) as db:
        stored = db.get_account(account.uuid)
    assert stored.name == "spending"
    assert stored.key_source == "hardware"
    assert stored.birthday_height == 1000
    assert stored.hd_account_index == 0


def test_same_seed_gets_next_account_index(tmp_path):
    first = provision(Network.TEST, tmp_path, "a", SecretBuffer(b"\x01" * 64), _birthday())
    second = provision(Network.TEST, tmp_path, "b", SecretBuffer(b"\x01" * 64), _birthday())
    other = provision(Network.TEST, tmp_path, "c", SecretBuffer(b"\x02" * 64), _birthday())

    assert (first.hd_account_index, second.hd_account_index) == (0, 1)
    assert other.hd_account_index == 0
    assert first.seed_fingerprint == second.seed_fingerprint != other.seed_fingerprint


def test_provision_wipes_seed_on_failure(tmp_path, monkeypatch):
    def explode(*args, **kwargs):
        raise RuntimeError("engine failure")

    monkeypatch.setattr(WalletDb, "create_account", explode)
    seed = SecretBuffer(b"\x03" * 64)
    with pytest.raises(RuntimeError):
        provision(Network.TEST, tmp_path, "x", seed, _birthday())
    assert seed.wiped


def test_store_rejects_other_network(tmp_path):
    init_dbs(Network.TEST, tmp_path).close()
    with pytest.raises(NetworkMismatch, match="test network"):
        init_dbs(Network.MAIN, tmp_path)


# =============================================================================
# END TO END
# =============================================================================


async def test_fresh_init(tmp_path, node):
    wallet_dir = tmp_path / "wallet"
    options = _options(tmp_path)

    await options.run(wallet_dir, prompt=lambda p: "", tor=node.tor_factory)

    identities = read_identities(tmp_path / "identity.txt")
    config = tomllib.loads((wallet_dir / KEYS_FILE).read_text())
    assert config["birthday"] == node.tip - 100
    assert config["network"] == "test"
    assert len(decrypt_mnemonic(config["mnemonic"], identities).split()) == 24
    assert node.tree_state_heights() == [node.tip - 101]

    with WalletDb.for_path(get_db_path(wallet_dir), Network.TEST) as db:
        (account_id,) = db.get_account_ids()
        account = db.get_account(account_id)
    assert account.name == "primary"
    assert account.recover_until is None


async def test_import_sets_recover_until(tmp_path, node):
    wallet_dir = tmp_path / "wallet"
    options = _options(tmp_path, birthday=419_200)

    await options.run(wallet_dir, prompt=lambda p: VALID_PHRASE, tor=node.tor_factory)

    config = tomllib.loads((wallet_dir / KEYS_FILE).read_text())
    assert config["birthday"] == 419_200
    identities = read_identities(tmp_path / "identity.txt")
    assert decrypt_mnemonic(config["mnemonic"], identities) == VALID_PHRASE

    with WalletDb.for_path(get_db_path(wallet_dir), Network.TEST) as db:
        (account_id,) = db.get_account_ids()
        assert db.get_account(account_id).recover_until == 500_000


async def test_extra_recipient_can_decrypt(tmp_path, node):
    backup = x25519.Identity.generate()
    options = _options(tmp_path, recipients=[backup.to_public()])

    await options.run(tmp_path / "wallet", prompt=lambda p: "", tor=node.tor_factory)

    config = tomllib.loads((tmp_path / "wallet" / KEYS_FILE).read_text())
    assert len(decrypt_mnemonic(config["mnemonic"], [backup]).split()) == 24


async def test_reinit_fails_and_keeps_config(tmp_path, node):
    wallet_dir = tmp_path / "wallet"
    await _options(tmp_path).run(wallet_dir, prompt=lambda p: "", tor=node.tor_factory)
    before = (wallet_dir / KEYS_FILE).read_bytes()

    with pytest.raises(ConfigAlreadyExists):
        await _options(tmp_path).run(wallet_dir, prompt=lambda p: "", tor=node.tor_factory)
    assert (wallet_dir / KEYS_FILE).read_bytes() == before


async def test_bad_mnemonic_leaves_identity_but_no_config(tmp_path, node):
    wallet_dir = tmp_path / "wallet"
    with pytest.raises(InvalidMnemonic):
        await _options(tmp_path).run(
            wallet_dir, prompt=lambda p: "abandon " * 24, tor=node.tor_factory
        )

    assert (tmp_path / "identity.txt").exists()
    assert not (wallet_dir / KEYS_FILE).exists()


async def test_malformed_pool_section_fails_birthday(client, node, monkeypatch):
    def treestate(height):
        return {**FakeNode.treestate(node, height), "sapling": "oops"}

    monkeypatch.setattr(node, "treestate", treestate)
    with pytest.raises(InvalidTreeState):
        await get_wallet_birthday(client, 1000)


async def test_tree_state_failure_writes_no_config(tmp_path, node, monkeypatch):
    def handle(request: httpx.Request) -> httpx.Response:
        if b"z_gettreestate" in request.content:
            return httpx.Response(
                500,
                json={"result": None, "error": {"code": -8, "message": "Block height out of range"}, "id": 2},
            )
        return FakeNode.handle(node, request)

    monkeypatch.setattr(node, "handle", handle)
    wallet_dir = tmp_path / "wallet"
    with pytest.raises(RemoteError, match="Block height out of range"):
        await _options(tmp_path).run(wallet_dir, prompt=lambda p: "", tor=node.tor_factory)

    assert not (wallet_dir / KEYS_FILE).exists()
    assert not get_db_path(wallet_dir).exists()


INTERRUPTED_INIT = textwrap.dedent(
    """
    import sys

    from tests.conftest import FakeNode
    from zwallet import cli
    from zwallet.commands.init import InitOptions
    from zwallet.network import Network
    from zwallet.remote.servers import Servers

    def prompt(text):
        print("PROMPTING", flush=True)
        return sys.stdin.readline()

    node = FakeNode()
    options = InitOptions(
        name="primary",
        identity=sys.argv[1],
        network=Network.TEST,
        server=Servers.parse("http://node.test:18232"),
    )
    try:
        cli.run(options.run(sys.argv[2], prompt=prompt, tor=node.tor_factory))
    except KeyboardInterrupt:
        sys.exit(130)
    """
)


@pytest.mark.skipif(sys.platform == "win32", reason="needs POSIX signals")
def test_ctrl_c_at_mnemonic_prompt_aborts(tmp_path):
    wallet_dir = tmp_path / "wallet"
    env = {**os.environ, "PYTHONPATH": str(ROOT)}
    proc = subprocess.Popen(
        [sys.executable, "-c", INTERRUPTED_INIT, str(tmp_path / "identity.txt"), str(wallet_dir)],
        cwd=ROOT,
        env=env,
        stdin=subprocess.PIPE,
        stdout=subprocess.PIPE,
        stderr=subprocess.DEVNULL,
        text=True,
    )
    try:
        assert proc.stdout.readline().strip() == "PROMPTING"
        proc.send_signal(signal.SIGINT)
        assert proc.wait(timeout=10) == 130
    finally:
        if proc.poll() is None:
            proc.kill()
        proc.stdin.close()
        proc.stdout.close()

    assert not (wallet_dir / KEYS_FILE).exists()
