import os

import pytest

from netreactor.iov import readv, writev


@pytest.fixture
def pipe():
    r, w = os.pipe()
    yield r, w
    for fd in (r, w):
        try:
            os.close(fd)
        except OSError:
            pass


def test_writev_empty_returns_zero(pipe):
    _, w = pipe
    assert writev(w, []) == 0


def test_readv_empty_returns_zero(pipe):
    r, _ = pipe
    assert readv(r, []) == 0


def test_writev_concatenates_buffers(pipe):
    r, w = pipe
    parts = [b"hello ", b"", b"world"]
    n = writev(w, parts)
    assert n == len(b"".join(parts))
    assert os.read(r, 100) == b"hello world"


def test_readv_scatters_into_buffers(pipe):
    r, w = pipe
    data = b"abcdefgh"
    os.write(w, data)
    first, second = bytearray(3), bytearray(5)
    n = readv(r, [first, second])
    assert n == len(data)
    assert bytes(first) + bytes(second) == data


def test_round_trip(pipe):
    r, w = pipe
    parts = [b"x" * 10, b"y" * 20]
    writev(w, parts)
    bufs = [bytearray(15), bytearray(15)]
    assert readv(r, bufs) == 30
    assert b"".join(bytes(b) for b in bufs) == b"".join(parts)


def test_writev_bad_fd_raises(pipe):
    r, w = pipe
    os.close(w)
    with pytest.raises(OSError):
        writev(w, [b"data"])