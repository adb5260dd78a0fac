"""A small simulated kernel: strings, heap, disks, interrupts, text console and FAT12."""

__version__ = "0.1.0"
__all__ = ["strings", "heap", "disk", "interrupts", "console", "fat12", "kernel"]