"""FAT12 filesystem on a sector-addressed disk: lookup, read, create, modify, delete, rename."""

from __future__ import annotations

import string
import struct
from collections.abc import Iterator
from dataclasses import dataclass, replace

from simplekernel.disk import SECTOR_SIZE, Disk, DiskArray, DiskError

_BPB = struct.Struct("<3s8sHBHBHHBHHHII")
_ENTRY = struct.Struct("<8s3sBBBHHHHHHHI")

ENTRY_SIZE = _ENTRY.size
ATTR_LFN = 0x0F
ATTR_DIRECTORY = 0x10
ATTR_ARCHIVE = 0x20
DELETED_MARK = 0xE5
END_OF_DIRECTORY = 0x00
END_OF_CHAIN = 0xFFF
CHAIN_LIMIT = 0xFF0
FAT12_MAX_CLUSTERS = 4085
FIRST_DATA_CLUSTER = 2

_UPPER = str.maketrans(string.ascii_lowercase, string.ascii_uppercase)


class FatError(Exception):
    """Raised for unreadable or malformed filesystems and for full disks or directories."""


@dataclass(frozen=True)
class BiosParameterBlock:
    """The boot-sector fields that describe a FAT12 volume's layout."""

    jmp: bytes
    oem: bytes
    sector_size: int
    sec_per_cluster: int
    reserved: int
    num_fat: int
    root_ent: int
    num_sec: int
    media: int
    sec_per_fat: int
    sec_per_track: int
    num_heads: int
    hidden_sectors: int
    num_sec32: int

    @classmethod
    def parse(cls, data: bytes) -> BiosParameterBlock:
        if len(data) < _BPB.size:
            raise FatError(f"boot sector too short: {len(data)} bytes")
        return cls(*_BPB.unpack_from(data))

    @property
    def total_sectors(self) -> int:
        return self.num_sec or self.num_sec32

    @property
    def cluster_bytes(self) -> int:
        return self.sector_size * self.sec_per_cluster

    @property
    def root_start(self) -> int:
        return self.reserved + self.num_fat * self.sec_per_fat

    @property
    def root_sectors(self) -> int:
        return (self.root_ent * ENTRY_SIZE + self.sector_size - 1) // self.sector_size

    @property
    def data_start(self) -> int:
        return self.root_start + self.root_sectors

    @property
    def cluster_count(self) -> int:
        return (self.total_sectors - self.data_start) // self.sec_per_cluster


@dataclass(frozen=True)
class DirEntry:
    """A 32-byte directory entry with an 8.3 name."""

    filename: str
    extension: str
    attrib: int = ATTR_ARCHIVE
    usr_attrib: int = 0
    create_time_ms: int = 0
    create_time: int = 0
    create_date: int = 0
    last_access_time: int = 0
    access: int = 0
    last_time: int = 0
    last_date: int = 0
    start_cluster: int = 0
    size: int = 0

    @classmethod
    def parse(cls, data: bytes) -> DirEntry:
        if len(data) < ENTRY_SIZE:
            raise FatError(f"directory entry too short: {len(data)} bytes")
        filename, extension, *fields = _ENTRY.unpack_from(data)
        return cls(filename.decode("latin-1"), extension.decode("latin-1"), *fields)

    def pack(self) -> bytes:
        return _ENTRY.pack(
            self.filename.encode("latin-1").ljust(8)[:8],
            self.extension.encode("latin-1").ljust(3)[:3],
            self.attrib,
            self.usr_attrib,
            self.create_time_ms,
            self.create_time,
            self.create_date,
            self.last_access_time,
            self.access,
            self.last_time,
            self.last_date,
            self.start_cluster,
            self.size,
        )

    @property
    def name(self) -> str:
        base, ext = self.filename.rstrip(), self.extension.rstrip()
        return f"{base}.{ext}" if ext else base

    @property
    def is_directory(self) -> bool:
        return bool(self.attrib & ATTR_DIRECTORY)


def to_short_name(name: str) -> tuple[str, str]:
    """Split ``name`` into an upper-case, space-padded 8-character name and 3-character extension."""
    if not name:
        raise ValueError("empty file name")
    if name in (".", ".."):
        return name.ljust(8), "   "
    base, dot, ext = name.rpartition(".")
    if not dot:
        base, ext = name, ""
    return base[:8].translate(_UPPER).ljust(8), ext[:3].translate(_UPPER).ljust(3)


class _FatTable:
    """12-bit cluster links packed two to every three bytes."""

    def __init__(self, data: bytes) -> None:
        self.data = bytearray(data)

    def _offset(self, cluster: int) -> int:
        offset = cluster * 3 // 2
        if offset + 1 >= len(self.data):
            raise FatError(f"cluster {cluster} lies outside the FAT")
        return offset

    def get(self, cluster: int) -> int:
        offset = self._offset(cluster)
        low, high = self.data[offset], self.data[offset + 1]
        if cluster % 2 == 0:
            return low | ((high & 0x0F) << 8)
        return (low >> 4) | (high << 4)

    def set(self, cluster: int, value: int) -> None:
        offset = self._offset(cluster)
        if cluster % 2 == 0:
            self.data[offset] = value & 0xFF
            self.data[offset + 1] = (self.data[offset + 1] & 0xF0) | ((value >> 8) & 0x0F)
        else:
            self.data[offset] = (self.data[offset] & 0x0F) | ((value & 0x0F) << 4)
            self.data[offset + 1] = (value >> 4) & 0xFF


@dataclass
class _Directory:
    """A loaded directory: the root region (``clusters is None``) or a cluster chain."""

    clusters: list[int] | None
    raw: bytearray
    slots: int

    def entries(self) -> Iterator[tuple[int, DirEntry]]:
        for slot in range(self.slots):
            offset = slot * ENTRY_SIZE
            first = self.raw[offset]
            entry = DirEntry.parse(self.raw[offset:offset + ENTRY_SIZE])
            if entry.attrib == ATTR_LFN or first == DELETED_MARK:
                continue
            if first == END_OF_DIRECTORY:
                break
            yield slot, entry

    def find(self, name: str) -> tuple[int, DirEntry] | None:
        filename, extension = to_short_name(name)
        for slot, entry in self.entries():
            if entry.filename == filename and entry.extension == extension:
                return slot, entry
        return None

    def free_slot(self) -> int | None:
        for slot in range(self.slots):
            if self.raw[slot * ENTRY_SIZE] in (END_OF_DIRECTORY, DELETED_MARK):
                return slot
        return None

    def put(self, slot: int, entry: DirEntry) -> None:
        self.raw[slot * ENTRY_SIZE:(slot + 1) * ENTRY_SIZE] = entry.pack()

    def mark_deleted(self, slot: int) -> None:
        self.raw[slot * ENTRY_SIZE] = DELETED_MARK


def _validate(bpb: BiosParameterBlock, disk: Disk) -> None:
    if bpb.sector_size == 0 or bpb.sector_size % SECTOR_SIZE:
        raise FatError(f"unsupported sector size {bpb.sector_size}")
    if not (bpb.sec_per_cluster and bpb.num_fat and bpb.sec_per_fat and bpb.root_ent):
        raise FatError("boot sector does not describe a FAT volume")
    if bpb.total_sectors <= bpb.data_start:
        raise FatError("volume has no data area")
    if bpb.cluster_count >= FAT12_MAX_CLUSTERS:
        raise FatError("volume has too many clusters for FAT12")
    if bpb.sec_per_fat * bpb.sector_size * 2 // 3 < bpb.cluster_count + FIRST_DATA_CLUSTER:
        raise FatError("FAT is too small for the data area")
    if bpb.total_sectors * (bpb.sector_size // SECTOR_SIZE) > disk.total_sectors:
        raise FatError("volume is larger than the disk")


class Fat12:
    """A mounted FAT12 volume with a current directory."""

    def __init__(self, disk: Disk, index: int = 0) -> None:
        self.disk = disk
        self.index = index
        try:
            boot = disk.read(1, 0)
        except DiskError as exc:
            raise FatError("Error while trying to read BPB") from exc
        self.bpb = BiosParameterBlock.parse(boot)
        _validate(self.bpb, disk)
        self._scale = self.bpb.sector_size // SECTOR_SIZE
        self.cwd = "/"

    # --- raw sector and cluster access -------------------------------------

    def _read(self, start: int, count: int) -> bytes:
        try:
            return self.disk.read(count * self._scale, start * self._scale)
        except DiskError as exc:
            raise FatError(str(exc)) from exc

    def _write(self, start: int, count: int, data: bytes) -> None:
        try:
            self.disk.write(count * self._scale, start * self._scale, data)
        except DiskError as exc:
            raise FatError(str(exc)) from exc

    def _cluster_sector(self, cluster: int) -> int:
        return self.bpb.data_start + (cluster - FIRST_DATA_CLUSTER) * self.bpb.sec_per_cluster

    def _read_cluster(self, cluster: int) -> bytes:
        return self._read(self._cluster_sector(cluster), self.bpb.sec_per_cluster)

    def _write_clusters(self, clusters: list[int], data: bytes) -> None:
        size = self.bpb.cluster_bytes
        for number, cluster in enumerate(clusters):
            chunk = data[number * size:(number + 1) * size]
            self._write(self._cluster_sector(cluster), self.bpb.sec_per_cluster, chunk)

    def _read_fat(self) -> _FatTable:
        return _FatTable(self._read(self.bpb.reserved, self.bpb.sec_per_fat))

    def _write_fat(self, fat: _FatTable) -> None:
        for copy in range(self.bpb.num_fat):
            start = self.bpb.reserved + copy * self.bpb.sec_per_fat
            self._write(start, self.bpb.sec_per_fat, fat.data)

    def _chain(self, fat: _FatTable, start: int) -> list[int]:
        chain: list[int] = []
        seen: set[int] = set()
        cluster = start
        last = self.bpb.cluster_count + FIRST_DATA_CLUSTER - 1
        while FIRST_DATA_CLUSTER <= cluster < CHAIN_LIMIT:
            if cluster > last:
                raise FatError(f"cluster {cluster} is outside the data area")
            if cluster in seen:
                raise FatError(f"cluster chain from {start} loops")
            seen.add(cluster)
            chain.append(cluster)
            cluster = fat.get(cluster)
        return chain

    def _allocate(self, fat: _FatTable, count: int) -> list[int]:
        last = self.bpb.cluster_count + FIRST_DATA_CLUSTER
        free = [c for c in range(FIRST_DATA_CLUSTER, last) if fat.get(c) == 0][:count]
        if len(free) < count:
            raise FatError(f"There is no more space left on disk nr.{self.index}")
        return free

    @staticmethod
    def _link(fat: _FatTable, clusters: list[int]) -> None:
        for cluster, following in zip(clusters, clusters[1:] + [END_OF_CHAIN]):
            fat.set(cluster, following)

    def _clusters_for(self, size: int) -> int:
        return -(-size // self.bpb.cluster_bytes)

    # --- directories ---------------------------------------------------------

    def _load_dir(self, clusters: list[int] | None) -> _Directory:
        if clusters is None:
            raw = bytearray(self._read(self.bpb.root_start, self.bpb.root_sectors))
            return _Directory(None, raw, self.bpb.root_ent)
        raw = bytearray(b"".join(self._read_cluster(c) for c in clusters))
        return _Directory(clusters, raw, len(raw) // ENTRY_SIZE)

    def _store_dir(self, directory: _Directory) -> None:
        if directory.clusters is None:
            self._write(self.bpb.root_start, self.bpb.root_sectors, directory.raw)
        else:
            self._write_clusters(directory.clusters, directory.raw)

    def _components(self, name: str) -> list[str]:
        path = name if name.startswith("/") else self.cwd + name
        return [part for part in path.split("/") if part]

    def _split(self, name: str) -> tuple[list[str], str]:
        parts = self._components(name)
        if not parts:
            raise ValueError(f"no file name in {name!r}")
        return parts[:-1], parts[-1]

    def _resolve_dir(self, components: list[str]) -> _Directory:
        fat = self._read_fat()
        directory = self._load_dir(None)
        for component in components:
            hit = directory.find(component)
            if hit is None:
                raise FileNotFoundError(f"Folder {component} does not exist")
            entry = hit[1]
            if not entry.is_directory:
                raise NotADirectoryError(f"{component} is not a folder")
            chain = self._chain(fat, entry.start_cluster) if entry.start_cluster else None
            directory = self._load_dir(chain)
        return directory

    def _lookup(self, name: str) -> tuple[_Directory, str, tuple[int, DirEntry] | None]:
        parents, base = self._split(name)
        directory = self._resolve_dir(parents)
        return directory, base, directory.find(base)

    # --- public operations ---------------------------------------------------

    def find_file(self, name: str) -> DirEntry | None:
        """Return the entry for ``name`` (relative to the current directory), or None."""
        try:
            _, _, hit = self._lookup(name)
        except (FileNotFoundError, NotADirectoryError):
            return None
        return hit[1] if hit else None

    def read_file(self, name: str) -> bytes:
        """Return the contents of file ``name``."""
        entry = self.find_file(name)
        if entry is None:
            raise FileNotFoundError(f"File {name} does not exist")
        chain = self._chain(self._read_fat(), entry.start_cluster)
        data = b"".join(self._read_cluster(c) for c in chain)
        if len(data) < entry.size:
            raise FatError(f"Could not read file {name} data")
        return data[:entry.size]

    def create_file(self, name: str, data: bytes) -> DirEntry:
        """Create a new file holding ``data`` and return its entry."""
        directory, base, hit = self._lookup(name)
        if hit is not None:
            raise FileExistsError(f"File {name} already exists!")
        slot = directory.free_slot()
        if slot is None:
            raise FatError(f"No free directory entry for {name}")
        fat = self._read_fat()
        clusters = self._allocate(fat, self._clusters_for(len(data)))
        self._link(fat, clusters)
        self._write_clusters(clusters, data)
        self._write_fat(fat)
        filename, extension = to_short_name(base)
        entry = DirEntry(
            filename,
            extension,
            attrib=ATTR_ARCHIVE,
            start_cluster=clusters[0] if clusters else 0,
            size=len(data),
        )
        directory.put(slot, entry)
        self._store_dir(directory)
        return entry

    def modify_file(self, name: str, data: bytes) -> DirEntry:
        """Replace the contents of ``name``, creating it if it does not exist."""
        directory, _, hit = self._lookup(name)
        if hit is None:
            return self.create_file(name, data)
        slot, entry = hit
        fat = self._read_fat()
        chain = self._chain(fat, entry.start_cluster)
        needed = self._clusters_for(len(data))
        if needed > len(chain):
            chain += self._allocate(fat, needed - len(chain))
        else:
            for cluster in chain[needed:]:
                fat.set(cluster, 0)
            chain = chain[:needed]
        self._link(fat, chain)
        self._write_clusters(chain, data)
        self._write_fat(fat)
        updated = replace(entry, start_cluster=chain[0] if chain else 0, size=len(data))
        directory.put(slot, updated)
        self._store_dir(directory)
        return updated

    def delete_file(self, name: str) -> None:
        """Remove ``name`` and free its clusters; a missing file is ignored."""
        try:
            directory, _, hit = self._lookup(name)
        except (FileNotFoundError, NotADirectoryError):
            return
        if hit is None:
            return
        slot, entry = hit
        directory.mark_deleted(slot)
        self._store_dir(directory)
        fat = self._read_fat()
        for cluster in self._chain(fat, entry.start_cluster):
            fat.set(cluster, 0)
        self._write_fat(fat)

    def rename_file(self, name: str, new_name: str) -> DirEntry:
        """Give ``name`` the last path component of ``new_name``, in the same directory."""
        directory, _, hit = self._lookup(name)
        if hit is None:
            raise FileNotFoundError("Could not rename file because it doesn't exist")
        new_base = new_name.rstrip("/").rpartition("/")[2]
        if directory.find(new_base) is not None:
            raise FileExistsError(f"File {new_base} already exists!")
        slot, entry = hit
        filename, extension = to_short_name(new_base)
        renamed = replace(entry, filename=filename, extension=extension)
        directory.put(slot, renamed)
        self._store_dir(directory)
        return renamed

    def read_dir(self, name: str) -> list[DirEntry]:
        """List the live entries of directory ``name``; ``"/"`` is the root."""
        directory = self._resolve_dir(self._components(name))
        return [entry for _, entry in directory.entries()]

    def change_dir(self, name: str) -> None:
        """Make ``name`` the current directory; it must exist."""
        parts = self._components(name)
        self._resolve_dir(parts)
        self.cwd = "/" + "".join(f"{part}/" for part in parts)


def mount(disks: DiskArray) -> Fat12:
    """Mount the first installed disk that holds a FAT12 volume."""
    for index, disk in disks:
        try:
            return Fat12(disk, index)
        except FatError:
            continue
    raise FatError("There are no disks with FAT12!")