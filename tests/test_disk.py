import pytest

from simplekernel.disk import SECTOR_SIZE, Disk, DiskArray, DiskError


def make_disk(sectors=8, model="TEST"):
    return Disk(bytes(sectors * SECTOR_SIZE), model=model)


def test_image_padded_to_whole_sectors():
    disk = Disk(b"abc")
    assert disk.total_sectors == 1
    assert disk.read(1, 0) == b"abc" + bytes(SECTOR_SIZE - 3)


def test_write_read_round_trip():
    disk = make_disk()
    payload = bytes(range(256)) * 4
    disk.write(2, 3, payload)
    assert disk.read(2, 3) == payload


def test_short_write_is_zero_padded():
    disk = Disk(b"\xff" * SECTOR_SIZE * 2)
    disk.write(2, 0, b"hello")
    assert disk.read(0, 0) == b"hello" + bytes(2 * SECTOR_SIZE - 5)


def test_long_write_is_truncated():
    disk = make_disk(2)
    disk.write(1, 0, b"x" * (SECTOR_SIZE + 10))
    assert disk.read(1, 0) == b"x" * SECTOR_SIZE
    assert disk.read(1, 1) == bytes(SECTOR_SIZE)


def test_read_zero_sectors_reads_to_end():
    disk = make_disk(4)
    assert len(disk.read(0, 1)) == 3 * SECTOR_SIZE


@pytest.mark.parametrize("num, start", [(1, 8), (9, 0), (2, -1), (0, 9)])
def test_out_of_range_read_raises(num, start):
    with pytest.raises(DiskError):
        make_disk(8).read(num, start)


def test_out_of_range_write_raises():
    with pytest.raises(DiskError):
        make_disk(2).write(3, 0, b"")


def test_model_limited_to_forty_characters():
    disk = Disk(model="M" * 50)
    assert disk.model == "M" * 40


def test_array_get_and_attach():
    disk = make_disk()
    array = DiskArray()
    array.attach(2, disk)
    assert array.get(2) is disk
    assert list(array) == [(2, disk)]


@pytest.mark.parametrize("index", [-1, 4, 7])
def test_invalid_index_raises(index):
    with pytest.raises(DiskError, match="Invalid disk number"):
        DiskArray().get(index)


def test_empty_slot_raises():
    with pytest.raises(DiskError):
        DiskArray([make_disk()]).get(1)


def test_too_many_disks_rejected():
    with pytest.raises(DiskError):
        DiskArray([make_disk() for _ in range(5)])


def test_describe_lines():
    disk = make_disk(4, model="TEST")
    lines = DiskArray([None, None, None, disk]).describe()
    assert lines[0] == "PORT:0, TOTAL:0, MODEL:NOT INSTALLED"
    assert lines[3] == f"PORT:170, TOTAL:{disk.total_sectors}, MODEL:TEST"
    assert len(lines) == 4


def test_describe_primary_port():
    lines = DiskArray([make_disk(model="A")]).describe()
    assert lines[0].startswith("PORT:1f0,")