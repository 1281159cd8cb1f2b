"""
Scoped holder for seed and key material.

The buffer is a private bytearray that is zeroed on wipe(). Used as a
context manager it is wiped on every exit path, including exceptions and
task cancellation.
"""


class SecretBuffer:
    """Mutable byte buffer that is overwritten with zeros when released."""

    __slots__ = ("_data", "_wiped")

    def __init__(self, data: bytes | bytearray | memoryview) -> None:
        self._data = bytearray(data)
        self._wiped = False

    def __enter__(self) -> "SecretBuffer":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.wipe()

    def __len__(self) -> int:
        return len(self._data)

    def __repr__(self) -> str:
        state = "wiped" if self._wiped else f"{len(self._data)} bytes"
        return f"SecretBuffer(<{state}>)"

    @property
    def wiped(self) -> bool:
        return self._wiped

    def expose(self) -> memoryview:
        """Read-only view of the secret bytes."""
        if self._wiped:
            raise ValueError("SecretBuffer has already been wiped")
        return memoryview(self._data).toreadonly()

    def wipe(self) -> None:
        for i in range(len(self._data)):
            self._data[i] = 0
        self._wiped = True
