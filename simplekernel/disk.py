"""In-memory ATA-style disks addressed by 512-byte sectors."""

from __future__ import annotations

from collections.abc import Iterable, Iterator

SECTOR_SIZE = 512
MAX_DISKS = 4
PORTS = (0x1F0, 0x170)
MODEL_LENGTH = 40
NOT_INSTALLED = "NOT INSTALLED"


class DiskError(Exception):
    """Raised for invalid disk numbers, missing disks and bad sector ranges."""


class Disk:
    """A disk image held in memory; its length is rounded up to whole sectors."""

    def __init__(self, image: bytes | bytearray = b"", model: str = "SIMULATED ATA DISK") -> None:
        buffer = bytearray(image)
        remainder = len(buffer) % SECTOR_SIZE
        if remainder:
            buffer.extend(bytes(SECTOR_SIZE - remainder))
        self.image = buffer
        self.model = model[:MODEL_LENGTH]

    @property
    def total_sectors(self) -> int:
        return len(self.image) // SECTOR_SIZE

    def _check_range(self, num_sectors: int, start: int) -> None:
        if start < 0 or num_sectors < 0 or start + num_sectors > self.total_sectors:
            raise DiskError(
                f"sectors {start}..{start + num_sectors} outside disk of "
                f"{self.total_sectors} sectors"
            )

    def read(self, num_sectors: int, start: int) -> bytes:
        """Read sectors from ``start``; ``num_sectors == 0`` reads to the end."""
        if num_sectors == 0:
            num_sectors = self.total_sectors - start
        self._check_range(num_sectors, start)
        return bytes(self.image[start * SECTOR_SIZE:(start + num_sectors) * SECTOR_SIZE])

    def write(self, num_sectors: int, start: int, data: bytes | bytearray) -> None:
        """Write ``data`` over the sectors, truncating it or padding with zeros."""
        self._check_range(num_sectors, start)
        length = num_sectors * SECTOR_SIZE
        chunk = bytes(data[:length]).ljust(length, b"\0")
        self.image[start * SECTOR_SIZE:start * SECTOR_SIZE + length] = chunk


class DiskArray:
    """Four drive slots: primary and secondary channel, master and slave each."""

    def __init__(self, disks: Iterable[Disk | None] = ()) -> None:
        self._slots: list[Disk | None] = [None] * MAX_DISKS
        for index, disk in enumerate(disks):
            self.attach(index, disk)

    @staticmethod
    def _check_index(index: int) -> int:
        if not 0 <= index < MAX_DISKS:
            raise DiskError(f"Invalid disk number: {index}")
        return index

    def attach(self, index: int, disk: Disk | None) -> None:
        """Place ``disk`` in slot ``index``; ``None`` empties the slot."""
        self._slots[self._check_index(index)] = disk

    def get(self, index: int) -> Disk:
        """Return the disk in slot ``index``."""
        disk = self._slots[self._check_index(index)]
        if disk is None:
            raise DiskError(f"No disk installed at {index}")
        return disk

    def __iter__(self) -> Iterator[tuple[int, Disk]]:
        for index, disk in enumerate(self._slots):
            if disk is not None:
                yield index, disk

    def describe(self) -> list[str]:
        """One status line per slot: port, sector count and model."""
        lines = []
        for index, disk in enumerate(self._slots):
            if disk is None:
                port, total, model = 0, 0, NOT_INSTALLED
            else:
                port, total, model = PORTS[index // 2], disk.total_sectors, disk.model
            lines.append(f"PORT:{port:x}, TOTAL:{total}, MODEL:{model}")
        return lines