"""Scatter/gather I/O on raw file descriptors."""

from __future__ import annotations

import os
from typing import Sequence


def writev(fd: int, buffers: Sequence[bytes]) -> int:
    """Write ``buffers`` to ``fd`` in one call; return the number of bytes written."""
    bufs = list(buffers)
    if not bufs:
        return 0
    return os.writev(fd, bufs)


def readv(fd: int, buffers: Sequence[bytearray]) -> int:
    """Read from ``fd`` into the writable ``buffers``; return the number of bytes read."""
    bufs = list(buffers)
    if not bufs:
        return 0
    return os.readv(fd, bufs)