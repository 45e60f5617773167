# netreactor

Building blocks for event-driven network servers on POSIX systems.

netreactor provides the low-level pieces that a reactor-style server is built from. It uses only the standard library.

## Modules

- `netreactor.poller` has `Poller`. It waits for readiness events on file descriptors, using epoll where it is available and kqueue otherwise. Between waits it runs queued tasks:
  - tasks queued with `urgent_trigger(fn, arg)` all run at each wake-up;
  - tasks queued with `trigger(fn, arg)` run after them, in batches of at most `netreactor.events.MAX_ASYNC_TASKS_AT_ONE_TIME`.

  Descriptors are registered with `add_read`, `add_write` and `add_read_write`, changed with `mod_read` and `mod_read_write`, and removed with `delete`. `Poller` is a context manager, and `close()` is idempotent.
- `netreactor.listener` has `Listener` and `init_listener(network, addr, options)`. They open TCP (`tcp`, `tcp4`, `tcp6`), UDP (`udp`, `udp4`, `udp6`) and Unix-domain (`unix`) listening sockets. The socket options come from an `Options` object:
  - `SO_REUSEPORT` is set when `reuse_port` is true, and always for UDP;
  - `SO_REUSEADDR` is set when `reuse_addr` is true;
  - `TCP_NODELAY` is set for TCP when `tcp_no_delay` is `TCPSocketOpt.TCP_NO_DELAY`, which is the default;
  - the receive and send buffer sizes are set when they are positive.

  A Unix socket file is removed before binding and again on `close()`.
- `netreactor.sockets` resolves addresses with `get_tcp_sock_addr`, `get_udp_sock_addr` and `get_unix_sock_addr`, and creates non-blocking sockets with `tcp_socket`, `udp_socket` and `unix_socket`. Unsupported networks raise `UnsupportedProtocolError` or one of its subclasses. `NetAddr` describes an endpoint. `sockaddr_to_tcp_or_unix_addr` and `sockaddr_to_udp_addr` convert raw socket addresses to it.
- `netreactor.sockopts` has setters for `TCP_NODELAY`, `SO_RCVBUF`, `SO_SNDBUF`, `SO_REUSEPORT`, `SO_REUSEADDR`, `IPV6_V6ONLY` and keep-alive (`set_keep_alive`). It also has:
  - `max_listener_backlog()`, which reads `/proc/sys/net/core/somaxconn` on Linux;
  - `create_socket`, which makes a non-blocking, non-inheritable socket;
  - `SocketOption`, which pairs a setter with its value.
- `netreactor.options` has the `Options` dataclass, the `LoadBalancing` and `TCPSocketOpt` enums, `load_options(*opts)` and the `with_*` option functions.
- `netreactor.load_balancer` has `RoundRobinLoadBalancer`, `LeastConnectionsLoadBalancer` and `SourceAddrHashLoadBalancer`, and `new_load_balancer(lb)` to create one of them.
- `netreactor.events` has:
  - the event-mask constants;
  - `EventList`, the per-wait event count that grows and shrinks between limits;
  - `PollAttachment`, which pairs a descriptor with its handler;
  - `dup(fd)`.
- `netreactor.taskqueue` has `Task` and `TaskQueue`, a thread-safe FIFO.
- `netreactor.iov` has vectored `writev(fd, buffers)` and `readv(fd, buffers)`. Both return 0 for an empty buffer list.
- `netreactor.toolkit` has `is_power_of_two`, `ceil_to_power_of_two` and `floor_to_power_of_two`, and `string_to_bytes` and `bytes_to_string`, which convert UTF-8 losslessly.

## Installation

```
pip install netreactor
```

Python 3.10 or later is required.

## Options

Options are built from functional setters applied in order:

```python
from netreactor.options import load_options, with_reuse_port, with_socket_recv_buffer

opts = load_options(with_reuse_port(True), with_socket_recv_buffer(1 << 16))
```

## A listener and a poller

```python
from netreactor.listener import init_listener
from netreactor.options import load_options, with_reuse_addr
from netreactor.poller import Poller, ServerShutdown

opts = load_options(with_reuse_addr(True))
with init_listener("tcp", "127.0.0.1:9000", opts) as ln, Poller() as poller:
    def on_event(fd, events):
        ...  # accept connections, read data

    poller.add_read(ln.pack_poll_attachment(on_event))
    try:
        poller.polling()
    except ServerShutdown:
        pass
```

`polling(callback)` passes each ready descriptor to `callback(fd, event)`. When `callback` is omitted, it passes the descriptor to the callback of the descriptor's registered `PollAttachment` instead.

A handler ends polling by raising `ServerShutdown` or `AcceptSocketError`; the exception propagates out of `polling`. A task ends polling by raising `ServerShutdown`. Any other exception that a handler or task raises or returns is logged as a warning, and polling goes on.

## Load balancing

```python
from netreactor.load_balancer import new_load_balancer
from netreactor.options import LoadBalancing

lb = new_load_balancer(LoadBalancing.SOURCE_ADDR_HASH)
```

`register(loop)` sets `loop.idx` to the loop's position. `next(addr)` picks the loop for a new connection:

- round-robin hands out the loops in turn;
- least-connections picks the first loop with the smallest `loop.load_conn()`;
- source-address hashing uses the CRC-32 of `str(addr)`.

`iterate(fn)` calls `fn(index, loop)` until it returns a false value.

## What this package does not do

There is no server or client engine here: no event-loop type, no connection objects, no read or write buffering, and no command to run. You wire the poller, listener and load balancer together yourself.

Several `Options` fields are only stored and are not acted on by any module in the package:

- `multicore`, `num_event_loop`, `lock_os_thread` and `ticker`;
- `read_buffer_cap` and `codec`;
- `log_path`, `log_level` and `logger`;
- `tcp_keep_alive`. `sockopts.set_keep_alive` exists, but `init_listener` does not apply it.

## Running the tests

```
pip install -e ".[test]"
pytest
```