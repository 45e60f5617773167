"""Small numeric and byte/string helpers."""

from __future__ import annotations

_BIT_SIZE = 64
MAX_INT_HEAD_BIT = 1 << (_BIT_SIZE - 2)


def is_power_of_two(n: int) -> bool:
    """Report whether ``n`` is a power of two (zero counts as one)."""
    return n & (n - 1) == 0


def ceil_to_power_of_two(n: int) -> int:
    """Return the least power of two greater than or equal to ``n``, at least 2."""
    if n > MAX_INT_HEAD_BIT:
        raise ValueError("argument is too large")
    if n <= 2:
        return 2
    return 1 << (n - 1).bit_length()


def floor_to_power_of_two(n: int) -> int:
    """Return the greatest power of two less than or equal to ``n``, at least 2."""
    if n <= 2:
        return 2
    return 1 << (n.bit_length() - 1)


def string_to_bytes(s: str) -> bytes:
    """Encode ``s`` as UTF-8, keeping undecodable bytes that were escaped."""
    return s.encode("utf-8", errors="surrogateescape")


def bytes_to_string(b: bytes | bytearray | memoryview) -> str:
    """Decode ``b`` as UTF-8 without losing bytes that are not valid UTF-8."""
    return bytes(b).decode("utf-8", errors="surrogateescape")