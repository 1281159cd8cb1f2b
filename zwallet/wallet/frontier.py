"""
Note commitment tree frontiers.

Full nodes report the Sapling and Orchard note commitment trees in the
legacy `CommitmentTree` serialization:

    Option<left> || Option<right> || CompactSize(n) || n * Option<parent>

where Option<x> is a 0x00 byte, or 0x01 followed by a 32-byte node. The
frontier is what a wallet needs to resume scanning at the next block
without replaying the chain.
"""

from dataclasses import dataclass

from zwallet.errors import InvalidTreeState

# =============================================================================
# CONFIGURATION
# =============================================================================

TREE_DEPTH = 32
NODE_SIZE = 32

# Base field moduli; nodes must be canonical little-endian encodings
FIELD_MODULUS = {
    # Jubjub base field (BLS12-381 scalar field)
    "sapling": 0x73EDA753299D7D483339D80809A1D80553BDA402FFFE5BFEFFFFFFFF00000001,
    # Pallas base field
    "orchard": 0x40000000000000000000000000000000224698FC094CF91B992D30ED00000001,
}


# =============================================================================
# DATA CLASSES
# =============================================================================


@dataclass(frozen=True)
class Frontier:
    """Parsed commitment tree for one shielded pool."""

    pool: str
    left: bytes | None
    right: bytes | None
    parents: tuple[bytes | None, ...]

    @property
    def size(self) -> int:
        """Number of note commitments appended to the tree."""
        size = (self.left is not None) + (self.right is not None)
        for level, parent in enumerate(self.parents):
            if parent is not None:
                size += 1 << (level + 1)
        return size

    def is_empty(self) -> bool:
        return self.left is None

    def to_bytes(self) -> bytes:
        """Serialize back to the legacy CommitmentTree encoding."""
        out = bytearray(_option(self.left) + _option(self.right))
        # At most TREE_DEPTH - 1 parents, so the CompactSize is one byte
        out.append(len(self.parents))
        for parent in self.parents:
            out += _option(parent)
        return bytes(out)


def _option(node: bytes | None) -> bytes:
    return b"\x00" if node is None else b"\x01" + node


# =============================================================================
# PARSING
# =============================================================================


class _Reader:
    def __init__(self, data: bytes, pool: str) -> None:
        self.data = data
        self.pos = 0
        self.pool = pool

    def take(self, n: int) -> bytes:
        if self.pos + n > len(self.data):
            raise InvalidTreeState(f"truncated {self.pool} tree")
        chunk = self.data[self.pos:self.pos + n]
        self.pos += n
        return chunk

    def compact_size(self) -> int:
        flag = self.take(1)[0]
        if flag < 0xFD:
            return flag
        width, minimum = {0xFD: (2, 0xFD), 0xFE: (4, 0x10000), 0xFF: (8, 0x100000000)}[flag]
        value = int.from_bytes(self.take(width), "little")
        if value < minimum:
            raise InvalidTreeState(f"non-canonical CompactSize in {self.pool} tree")
        return value

    def optional_node(self) -> bytes | None:
        flag = self.take(1)[0]
        if flag == 0:
            return None
        if flag != 1:
            raise InvalidTreeState(f"invalid Option flag {flag:#x} in {self.pool} tree")
        node = self.take(NODE_SIZE)
        if int.from_bytes(node, "little") >= FIELD_MODULUS[self.pool]:
            raise InvalidTreeState(f"non-canonical {self.pool} node")
        return node


def read_commitment_tree(data: bytes, pool: str) -> Frontier:
    """
    Parse a serialized commitment tree.

    Raises:
        InvalidTreeState: If the encoding is malformed or not canonical
    """
    reader = _Reader(data, pool)
    left = reader.optional_node()
    right = reader.optional_node()

    count = reader.compact_size()
    if count >= TREE_DEPTH:
        raise InvalidTreeState(f"{pool} tree has {count} parents (max {TREE_DEPTH - 1})")
    parents = tuple(reader.optional_node() for _ in range(count))

    if reader.pos != len(data):
        raise InvalidTreeState(f"trailing bytes after {pool} tree")
    if left is None and (right is not None or any(p is not None for p in parents)):
        raise InvalidTreeState(f"{pool} tree has nodes without a left leaf")

    return Frontier(pool=pool, left=left, right=right, parents=parents)


def parse_tree_hex(value: str, pool: str) -> Frontier:
    """Parse a hex-encoded tree; an empty string is the empty tree."""
    if not value:
        return Frontier(pool=pool, left=None, right=None, parents=())
    try:
        data = bytes.fromhex(value)
    except ValueError:
        raise InvalidTreeState(f"{pool} tree is not valid hex") from None
    return read_commitment_tree(data, pool)
