import os
import socket

import pytest

from netreactor.listener import Listener, init_listener
from netreactor.options import Options, TCPSocketOpt
from netreactor.sockets import UnsupportedProtocolError


def test_tcp_listener_accepts_connections():
    with init_listener("tcp", "127.0.0.1:0", Options()) as ln:
        assert ln.network == "tcp"
        assert ln.addr.ip == "127.0.0.1"
        port = ln.sock.getsockname()[1]
        assert port > 0
        client = socket.create_connection(("127.0.0.1", port), timeout=2)
        client.close()
        assert ln.fileno() >= 0


def test_tcp4_is_normalized_to_tcp():
    with init_listener("tcp4", "127.0.0.1:0", Options()) as ln:
        assert ln.network == "tcp"
        assert ln.sock.family == socket.AF_INET


def test_udp_listener_sets_reuse_port():
    with init_listener("udp4", "127.0.0.1:0", Options()) as ln:
        assert ln.network == "udp"
        assert ln.sock.type & socket.SOCK_DGRAM == socket.SOCK_DGRAM
        assert bool(ln.sock.getsockopt(socket.SOL_SOCKET, socket.SO_REUSEPORT)) is True


def test_unsupported_network_raises():
    with pytest.raises(UnsupportedProtocolError):
        init_listener("ip", "127.0.0.1:0", Options())


def test_unix_listener_replaces_stale_file_and_removes_on_close(tmp_path):
    path = str(tmp_path / "s")
    with open(path, "w") as fh:
        fh.write("stale")
    ln = init_listener("unix", path, Options())
    assert ln.network == "unix"
    assert ln.addr.name == path
    client = socket.socket(socket.AF_UNIX, socket.SOCK_STREAM)
    client.connect(path)
    client.close()
    ln.close()
    assert os.path.exists(path) is False


def test_close_is_idempotent():
    ln = init_listener("tcp", "127.0.0.1:0", Options())
    ln.close()
    ln.close()
    assert ln.fileno() == -1


def test_reuse_addr_option():
    opts = Options(reuse_addr=True)
    with init_listener("tcp", "127.0.0.1:0", opts) as ln:
        assert ln.network == "tcp"
        assert ln.addr.ip == "127.0.0.1"
        assert bool(ln.sock.getsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR)) is True


def test_no_delay_follows_option():
    with init_listener("tcp", "127.0.0.1:0", Options()) as ln:
        assert bool(ln.sock.getsockopt(socket.IPPROTO_TCP, socket.TCP_NODELAY)) is True
    opts = Options(tcp_no_delay=TCPSocketOpt.TCP_DELAY)
    with init_listener("tcp", "127.0.0.1:0", opts) as ln:
        assert ln.sock.getsockopt(socket.IPPROTO_TCP, socket.TCP_NODELAY) == 0


def test_recv_buffer_option():
    opts = Options(socket_recv_buffer=65536)
    with init_listener("tcp", "127.0.0.1:0", opts) as ln:
        assert ln.sock.getsockopt(socket.SOL_SOCKET, socket.SO_RCVBUF) >= 65536


def test_dup_returns_same_socket():
    with init_listener("tcp", "127.0.0.1:0", Options()) as ln:
        new_fd = ln.dup()
        try:
            assert new_fd != ln.fileno()
            assert os.fstat(new_fd).st_ino == os.fstat(ln.fileno()).st_ino
        finally:
            os.close(new_fd)


def test_pack_poll_attachment():
    def handler(fd, ev):
        return None

    with init_listener("tcp", "127.0.0.1:0", Options()) as ln:
        attachment = ln.pack_poll_attachment(handler)
        assert attachment.fd == ln.fileno()
        assert attachment.callback is handler
        assert ln.poll_attachment is attachment


def test_unnormalized_listener_has_no_descriptor():
    ln = Listener("tcp", "127.0.0.1:0")
    assert ln.fileno() == -1
    ln.close()
    assert ln.sock is None