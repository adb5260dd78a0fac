"""A first-fit block allocator over a fixed address range."""

from __future__ import annotations

from dataclasses import dataclass

HEADER_SIZE = 16
MAGIC = 0xDEADBEEF
HEAP_START = 0x10000
HEAP_LIMIT = 0x40000

_UNITS = ("B", "KB", "MB", "GB")


class HeapCorruptedError(Exception):
    """Raised when freeing an address that is not a live allocation."""


@dataclass
class _Block:
    address: int
    size: int
    free: bool
    magic: int = MAGIC

    @property
    def payload(self) -> int:
        return self.address + HEADER_SIZE


@dataclass(frozen=True)
class HeapStatus:
    """Usage summary of a heap; sizes exclude block headers."""

    total: int
    used: int
    free: int
    used_percent: int
    free_percent: int
    total_display: str

    def __str__(self) -> str:
        return "\n".join(
            (
                f"TOTAL: {self.total_display}",
                f"USED: {self.used_percent}%",
                f"FREE: {self.free_percent}%",
            )
        )


class Heap:
    """Allocator managing ``[start, limit)`` with 16-byte block headers."""

    def __init__(self, start: int = HEAP_START, limit: int = HEAP_LIMIT) -> None:
        if limit - start <= HEADER_SIZE:
            raise ValueError("heap region too small for a single block")
        self.start = start
        self.limit = limit
        self._blocks = [_Block(start, limit - start - HEADER_SIZE, True)]

    def malloc(self, size: int) -> int:
        """Allocate ``size`` bytes and return the payload address."""
        if size < 0:
            raise ValueError("size must not be negative")
        for index, block in enumerate(self._blocks):
            if not block.free or block.size < size:
                continue
            remainder = block.size - size
            if remainder >= HEADER_SIZE + 1:
                split = _Block(block.payload + size, remainder - HEADER_SIZE, True)
                block.size = size
                self._blocks.insert(index + 1, split)
            block.free = False
            return block.payload
        raise MemoryError(f"cannot allocate {size} bytes")

    def _index_of(self, address: int) -> int:
        for index, block in enumerate(self._blocks):
            if block.payload == address and block.magic == MAGIC:
                return index
        raise HeapCorruptedError(f"no block at address {address:#x}")

    def free(self, address: int) -> None:
        """Release an allocation and merge it with free neighbours."""
        index = self._index_of(address)
        block = self._blocks[index]
        if block.free:
            raise HeapCorruptedError(f"block at {address:#x} is already free")
        block.free = True
        if index + 1 < len(self._blocks) and self._blocks[index + 1].free:
            following = self._blocks.pop(index + 1)
            block.size += HEADER_SIZE + following.size
        if index > 0 and self._blocks[index - 1].free:
            previous = self._blocks[index - 1]
            previous.size += HEADER_SIZE + block.size
            del self._blocks[index]

    def realloc(self, address: int | None, size: int) -> int:
        """Free ``address`` (if any) and allocate ``size`` bytes; contents are not kept."""
        if address is not None:
            self.free(address)
        return self.malloc(size)

    def blocks(self) -> list[tuple[int, int, bool]]:
        """Return ``(payload_address, size, is_free)`` for every block in order."""
        return [(b.payload, b.size, b.free) for b in self._blocks]

    def status(self) -> HeapStatus:
        """Summarise used and free space."""
        used = sum(b.size for b in self._blocks if not b.free)
        free = sum(b.size for b in self._blocks if b.free)
        total = self.limit - self.start

        scaled, unit = total, 0
        while scaled >= 1024 and unit < len(_UNITS) - 1:
            scaled //= 1024
            unit += 1

        used_percent = used * 100 // (used + free)
        return HeapStatus(
            total=total,
            used=used,
            free=free,
            used_percent=used_percent,
            free_percent=100 - used_percent,
            total_display=f"{scaled}{_UNITS[unit]}",
        )