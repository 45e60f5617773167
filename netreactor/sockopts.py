"""Socket option setters, listener backlog discovery and socket creation."""

from __future__ import annotations

import errno
import socket
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Union

_SOMAXCONN_PATH = "/proc/sys/net/core/somaxconn"
_MAX_BACKLOG = (1 << 16) - 1

SockOptSetter = Callable[[socket.socket, int], None]


@dataclass(frozen=True)
class SocketOption:
    """A socket option setter paired with the value it applies."""

    setter: SockOptSetter
    opt: int

    def apply(self, sock: socket.socket) -> None:
        """Apply this option to ``sock``."""
        self.setter(sock, self.opt)


def _require(name: str) -> int:
    value = getattr(socket, name, None)
    if value is None:
        raise OSError(errno.ENOPROTOOPT, f"socket option {name} is not supported")
    return value


def set_no_delay(sock: socket.socket, no_delay: int) -> None:
    """Enable or disable Nagle's algorithm through TCP_NODELAY."""
    sock.setsockopt(socket.IPPROTO_TCP, socket.TCP_NODELAY, int(no_delay))


def set_recv_buffer(sock: socket.socket, size: int) -> None:
    """Set the size of the kernel receive buffer of ``sock``."""
    sock.setsockopt(socket.SOL_SOCKET, socket.SO_RCVBUF, size)


def set_send_buffer(sock: socket.socket, size: int) -> None:
    """Set the size of the kernel send buffer of ``sock``."""
    sock.setsockopt(socket.SOL_SOCKET, socket.SO_SNDBUF, size)


def set_reuse_port(sock: socket.socket, reuse_port: int) -> None:
    """Set the SO_REUSEPORT option of ``sock``."""
    sock.setsockopt(socket.SOL_SOCKET, _require("SO_REUSEPORT"), int(reuse_port))


def set_reuse_addr(sock: socket.socket, reuse_addr: int) -> None:
    """Set the SO_REUSEADDR option of ``sock``."""
    sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, int(reuse_addr))


def set_ipv6_only(sock: socket.socket, ipv6_only: int) -> None:
    """Restrict an IPv6 socket to IPv6 traffic only, or allow IPv4 as well."""
    sock.setsockopt(socket.IPPROTO_IPV6, _require("IPV6_V6ONLY"), int(ipv6_only))


def set_keep_alive(sock: socket.socket, secs: int) -> None:
    """Turn on TCP keep-alive with ``secs`` as both idle time and probe interval."""
    if secs <= 0:
        raise ValueError("invalid time duration")
    sock.setsockopt(socket.SOL_SOCKET, socket.SO_KEEPALIVE, 1)
    if sys.platform == "darwin":
        try:
            sock.setsockopt(socket.IPPROTO_TCP, _require("TCP_KEEPINTVL"), secs)
        except OSError as exc:
            # Older systems lack this option; the idle time still applies.
            if exc.errno != errno.ENOPROTOOPT:
                raise
        sock.setsockopt(socket.IPPROTO_TCP, _require("TCP_KEEPALIVE"), secs)
        return
    sock.setsockopt(socket.IPPROTO_TCP, _require("TCP_KEEPINTVL"), secs)
    sock.setsockopt(socket.IPPROTO_TCP, _require("TCP_KEEPIDLE"), secs)


def _read_backlog(path: Union[str, Path]) -> int:
    """Read the backlog limit from a somaxconn-style file, falling back to SOMAXCONN."""
    try:
        with open(path, encoding="ascii") as fh:
            line = fh.readline()
    except (OSError, UnicodeDecodeError):
        return socket.SOMAXCONN
    if not line.endswith("\n"):
        return socket.SOMAXCONN
    fields = line.split()
    if not fields:
        return socket.SOMAXCONN
    try:
        n = int(fields[0])
    except ValueError:
        return socket.SOMAXCONN
    if n == 0:
        return socket.SOMAXCONN
    # The kernel stores the backlog in 16 bits; truncate to avoid wrapping.
    return min(n, _MAX_BACKLOG)


def max_listener_backlog() -> int:
    """Return the largest listen backlog the system accepts."""
    if sys.platform.startswith("linux"):
        return _read_backlog(_SOMAXCONN_PATH)
    return socket.SOMAXCONN


def create_socket(family: int, sotype: int, proto: int) -> socket.socket:
    """Create a non-blocking, close-on-exec socket."""
    flags = getattr(socket, "SOCK_NONBLOCK", 0) | getattr(socket, "SOCK_CLOEXEC", 0)
    sock = socket.socket(family, sotype | flags, proto)
    try:
        sock.set_inheritable(False)
        sock.setblocking(False)
    except OSError:
        sock.close()
        raise
    return sock