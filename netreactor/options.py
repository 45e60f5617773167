"""Configuration of the server and client through functional options."""

from __future__ import annotations

import logging
from dataclasses import dataclass, fields
from enum import IntEnum
from typing import Any, Callable, Optional


class LoadBalancing(IntEnum):
    """Algorithm used to assign new connections to event loops."""

    ROUND_ROBIN = 0
    LEAST_CONNECTIONS = 1
    SOURCE_ADDR_HASH = 2


class TCPSocketOpt(IntEnum):
    """Whether TCP packets are sent without delay."""

    TCP_NO_DELAY = 0
    TCP_DELAY = 1


@dataclass
class Options:
    """Settings for an application; every field defaults to its zero value."""

    multicore: bool = False
    num_event_loop: int = 0
    lb: LoadBalancing = LoadBalancing.ROUND_ROBIN
    reuse_addr: bool = False
    reuse_port: bool = False
    read_buffer_cap: int = 0
    lock_os_thread: bool = False
    ticker: bool = False
    tcp_keep_alive: float = 0.0
    tcp_no_delay: TCPSocketOpt = TCPSocketOpt.TCP_NO_DELAY
    socket_recv_buffer: int = 0
    socket_send_buffer: int = 0
    codec: Any = None
    log_path: str = ""
    log_level: int = logging.INFO
    logger: Optional[Any] = None


Option = Callable[[Options], None]


def load_options(*args: Option) -> Options:
    """Build an Options object by applying each option in order."""
    opts = Options()
    for option in args:
        option(opts)
    return opts


def with_options(options: Options) -> Option:
    """Replace every setting with those of ``options``."""

    def apply(opts: Options) -> None:
        for f in fields(Options):
            setattr(opts, f.name, getattr(options, f.name))

    return apply


def _setter(name: str, value: Any) -> Option:
    def apply(opts: Options) -> None:
        setattr(opts, name, value)

    return apply


def with_multicore(multicore: bool) -> Option:
    """Run with one event loop per logical CPU."""
    return _setter("multicore", multicore)


def with_lock_os_thread(lock_os_thread: bool) -> Option:
    """Bind each event loop to its own OS thread."""
    return _setter("lock_os_thread", lock_os_thread)


def with_read_buffer_cap(read_buffer_cap: int) -> Option:
    """Set the maximum number of bytes read per readable event."""
    return _setter("read_buffer_cap", read_buffer_cap)


def with_load_balancing(lb: LoadBalancing) -> Option:
    """Set the load-balancing algorithm."""
    return _setter("lb", LoadBalancing(lb))


def with_num_event_loop(num_event_loop: int) -> Option:
    """Set the number of event loops, overriding multicore."""
    return _setter("num_event_loop", num_event_loop)


def with_reuse_port(reuse_port: bool) -> Option:
    """Set the SO_REUSEPORT socket option."""
    return _setter("reuse_port", reuse_port)


def with_reuse_addr(reuse_addr: bool) -> Option:
    """Set the SO_REUSEADDR socket option."""
    return _setter("reuse_addr", reuse_addr)


def with_tcp_keep_alive(tcp_keep_alive: float) -> Option:
    """Set the TCP keep-alive period in seconds."""
    return _setter("tcp_keep_alive", tcp_keep_alive)


def with_tcp_no_delay(tcp_no_delay: TCPSocketOpt) -> Option:
    """Enable or disable TCP_NODELAY."""
    return _setter("tcp_no_delay", TCPSocketOpt(tcp_no_delay))


def with_socket_recv_buffer(recv_buf: int) -> Option:
    """Set the socket receive buffer size in bytes."""
    return _setter("socket_recv_buffer", recv_buf)


def with_socket_send_buffer(send_buf: int) -> Option:
    """Set the socket send buffer size in bytes."""
    return _setter("socket_send_buffer", send_buf)


def with_ticker(ticker: bool) -> Option:
    """Enable the ticker."""
    return _setter("ticker", ticker)


def with_codec(codec: Any) -> Option:
    """Set the codec used to frame the TCP stream."""
    return _setter("codec", codec)


def with_log_path(file_name: str) -> Option:
    """Set the path of the log file."""
    return _setter("log_path", file_name)


def with_log_level(level: int) -> Option:
    """Set the logging level."""
    return _setter("log_level", level)


def with_logger(logger: Any) -> Option:
    """Set a custom logger."""
    return _setter("logger", logger)