# simplekernel

A small simulated hobby kernel in plain Python. It models the parts of a tiny
32-bit operating system that make sense away from real hardware, and boots
them over raw disk image files.

## Modules

- `simplekernel.strings`: `itoa(value, base)`, `utoa(value, base)` and
  `atoi(text)`. `itoa` shows a minus sign only in base 10; negative values in
  other bases, and every value given to `utoa`, are shown as 32-bit unsigned.
- `simplekernel.heap`: `Heap`, a first-fit allocator over an address range
  (0x10000 to 0x40000 by default) with 16-byte block headers. `malloc`
  returns a payload address and raises `MemoryError` when nothing fits;
  `free` merges with free neighbours and raises `HeapCorruptedError` for an
  address that is not a live allocation (including a double free);
  `realloc` frees and allocates again without keeping contents; `blocks()`
  lists `(address, size, is_free)`; `status()` returns a `HeapStatus`.
- `simplekernel.disk`: `Disk`, an in-memory image read and written in
  512-byte sectors, and `DiskArray`, four drive slots with `attach`, `get`
  and `describe`. Bad disk numbers, empty slots and out-of-range sectors
  raise `DiskError`.
- `simplekernel.interrupts`: `Idt` (256 gate descriptors, `set_gate`,
  `pack`), `IrqTable` (handlers for IRQ 0-15; `dispatch` returns the
  end-of-interrupt port writes), `fault_handler` and `exception_message` for
  CPU exceptions 0-31 (raising `CpuFault`), `Registers`, and `Timer`
  (`phase`, `install`, `handle`, and a blocking `wait`).
- `simplekernel.console`: `format_message` for `%d %l %x %u %s`, `Screen`
  (80x25 cells with a cursor: `put_char`, `print`, `printf`, `set_char`,
  `set_string`, `set_stringf`, `clear`, `row_text`) and `Keyboard`, which
  turns scancode set 1 bytes into characters and cursor movement.
- `simplekernel.fat12`: `Fat12`, a mounted FAT12 volume, and `mount(disks)`,
  which mounts the first disk in a `DiskArray` holding one. Also
  `BiosParameterBlock`, `DirEntry` and `to_short_name` (8.3 names).
- `simplekernel.kernel`: `boot(image_paths)` brings everything up and
  `main` is the `simplekernel` command.

## Installing

```
pip install .
```

## Running

```
simplekernel fat.img
simplekernel fat.img --keys 23 17 1c
```

Up to four disk images are attached in slot order. At boot the kernel mounts
the first FAT12 disk, prints `testdir/testfile.txt` from it (or an error
message), shows heap usage in the top-right corner and one line per disk slot
at the bottom. Scancodes given with `--keys` (hexadecimal) are delivered
through the keyboard interrupt; the final screen is printed as text.

## Using the library

```python
from simplekernel.disk import Disk, DiskArray
from simplekernel.fat12 import mount

with open("fat.img", "rb") as fh:
    image = fh.read()

disks = DiskArray([Disk(image, model="IMAGE")])
fs = mount(disks)

fs.create_file("hello.txt", b"hello, world")
print(fs.read_file("hello.txt"))
fs.modify_file("hello.txt", b"a longer greeting")
fs.rename_file("hello.txt", "greet.txt")
print([entry.name for entry in fs.read_dir("/")])
fs.delete_file("greet.txt")
```

Paths are relative to `fs.cwd` unless they start with `/`; `change_dir`
moves to an existing folder. `modify_file` creates a missing file, and
`delete_file` ignores one. Changes are written to the `Disk` object's
`image`; saving it back to a file is up to the caller.

Errors are raised as exceptions: `FileNotFoundError` for a missing file or
folder, `FileExistsError` when creating or renaming onto an existing name,
`FatError` for unreadable volumes, a full disk or a full directory, and
`DiskError` for disk access problems.

## What it does not do

- It does not drive real hardware; disks, screen, keyboard and timer are all
  simulated in memory.
- It cannot format a blank image or create folders; it works on an existing
  FAT12 image.
- The command boots once and prints the screen; there is no interactive
  session, and disk changes are not written back to the image files.

## Tests

```
pip install .[test]
pytest
```