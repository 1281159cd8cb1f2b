"""Account birthday: the chain state just before a wallet's first block."""

from dataclasses import dataclass

from zwallet.errors import InvalidTreeState
from zwallet.remote.indexer import TreeState
from zwallet.wallet.frontier import Frontier, parse_tree_hex


@dataclass(frozen=True)
class AccountBirthday:
    """
    Checkpoint used to bound wallet scanning.

    `height` is the first block the wallet may have funds in; the frontiers
    describe the note commitment trees as of the end of block `height - 1`.
    `recover_until`, when set, is the chain tip observed when an existing
    mnemonic was imported: blocks up to it are scanned as recovery.
    """

    height: int
    block_hash: str
    sapling_frontier: Frontier
    orchard_frontier: Frontier
    recover_until: int | None = None

    @staticmethod
    def from_treestate(
        treestate: TreeState, recover_until: int | None = None
    ) -> "AccountBirthday":
        """
        Build a birthday from the tree state of the block before it.

        Raises:
            InvalidTreeState: If either tree cannot be parsed
        """
        if treestate.height < 0:
            raise InvalidTreeState(f"negative height {treestate.height}")
        return AccountBirthday(
            height=treestate.height + 1,
            block_hash=treestate.hash,
            sapling_frontier=parse_tree_hex(treestate.sapling_tree, "sapling"),
            orchard_frontier=parse_tree_hex(treestate.orchard_tree, "orchard"),
            recover_until=recover_until,
        )
