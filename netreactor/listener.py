"""Listening sockets for the server side: TCP, UDP and Unix streams."""

from __future__ import annotations

import logging
import os
import shutil
import socket
import threading
from typing import Any, List, Optional, Sequence

from netreactor.events import PollAttachment, PollEventHandler, dup
from netreactor.options import Options, TCPSocketOpt
from netreactor.sockets import (
    NetAddr,
    UnsupportedProtocolError,
    tcp_socket,
    udp_socket,
    unix_socket,
)
from netreactor.sockopts import (
    SocketOption,
    set_no_delay,
    set_recv_buffer,
    set_reuse_addr,
    set_reuse_port,
    set_send_buffer,
)

logger = logging.getLogger(__name__)

_TCP_NETWORKS = ("tcp", "tcp4", "tcp6")
_UDP_NETWORKS = ("udp", "udp4", "udp6")


def _remove_all(path: str) -> None:
    """Remove ``path`` and anything below it; a missing path is not an error."""
    if os.path.isdir(path) and not os.path.islink(path):
        shutil.rmtree(path)
        return
    try:
        os.remove(path)
    except FileNotFoundError:
        pass


class Listener:
    """A bound socket that accepts connections or receives datagrams."""

    def __init__(
        self,
        network: str,
        address: str,
        sock_opts: Sequence[SocketOption] = (),
    ) -> None:
        self.network = network
        self.address = address
        self.sock_opts: List[SocketOption] = list(sock_opts)
        self.sock: Optional[socket.socket] = None
        self.addr: Optional[NetAddr] = None
        self.poll_attachment: Optional[PollAttachment] = None
        self._close_lock = threading.Lock()
        self._closed = False

    def normalize(self) -> None:
        """Create and bind the socket, folding tcp4/tcp6 and udp4/udp6 into tcp and udp."""
        if self.network in _TCP_NETWORKS:
            self.sock, self.addr = tcp_socket(
                self.network, self.address, True, *self.sock_opts
            )
            self.network = "tcp"
        elif self.network in _UDP_NETWORKS:
            self.sock, self.addr = udp_socket(
                self.network, self.address, False, *self.sock_opts
            )
            self.network = "udp"
        elif self.network == "unix":
            try:
                _remove_all(self.address)
            except OSError:
                pass
            self.sock, self.addr = unix_socket(
                self.network, self.address, True, *self.sock_opts
            )
        else:
            raise UnsupportedProtocolError()

    def fileno(self) -> int:
        """Return the socket's descriptor, or -1 when there is none."""
        if self.sock is None:
            return -1
        return self.sock.fileno()

    def dup(self) -> int:
        """Return a close-on-exec duplicate of the listening descriptor."""
        return dup(self.fileno())

    def pack_poll_attachment(self, handler: PollEventHandler) -> PollAttachment:
        """Pair the listening descriptor with ``handler`` for the poller."""
        self.poll_attachment = PollAttachment(fd=self.fileno(), callback=handler)
        return self.poll_attachment

    def close(self) -> None:
        """Close the socket and remove a Unix socket file; later calls do nothing."""
        with self._close_lock:
            if self._closed:
                return
            self._closed = True
        if self.sock is not None:
            try:
                self.sock.close()
            except OSError as exc:
                logger.error("close: %s", exc)
        if self.network == "unix":
            try:
                _remove_all(self.address)
            except OSError as exc:
                logger.error("remove %s: %s", self.address, exc)

    def __enter__(self) -> "Listener":
        return self

    def __exit__(self, exc_type: Any, exc: Any, tb: Any) -> None:
        self.close()


def init_listener(network: str, addr: str, options: Options) -> Listener:
    """Create a listener on ``network``/``addr`` with socket options taken from ``options``."""
    sock_opts: List[SocketOption] = []
    if options.reuse_port or network.startswith("udp"):
        sock_opts.append(SocketOption(set_reuse_port, 1))
    if options.reuse_addr:
        sock_opts.append(SocketOption(set_reuse_addr, 1))
    if options.tcp_no_delay == TCPSocketOpt.TCP_NO_DELAY and network.startswith("tcp"):
        sock_opts.append(SocketOption(set_no_delay, 1))
    if options.socket_recv_buffer > 0:
        sock_opts.append(SocketOption(set_recv_buffer, options.socket_recv_buffer))
    if options.socket_send_buffer > 0:
        sock_opts.append(SocketOption(set_send_buffer, options.socket_send_buffer))
    listener = Listener(network, addr, sock_opts)
    listener.normalize()
    return listener