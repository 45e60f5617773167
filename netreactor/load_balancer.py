"""Strategies that pick the event loop a new connection is assigned to."""

from __future__ import annotations

import zlib
from abc import ABC, abstractmethod
from typing import Any, Callable, Iterator, List

from netreactor.options import LoadBalancing
from netreactor.toolkit import string_to_bytes


class LoadBalancer(ABC):
    """An ordered set of event loops with a rule for choosing the next one.

    An event loop is any object with a writable ``idx`` attribute; the
    least-connections strategy also calls its ``load_conn()`` method.
    """

    def __init__(self) -> None:
        self.event_loops: List[Any] = []

    def register(self, loop: Any) -> None:
        """Add ``loop``, giving it the next index."""
        loop.idx = len(self.event_loops)
        self.event_loops.append(loop)

    @abstractmethod
    def next(self, addr: Any) -> Any:
        """Return the event loop for a connection from ``addr``."""

    def iterate(self, fn: Callable[[int, Any], bool]) -> None:
        """Call ``fn(index, loop)`` for each loop until it returns a false value."""
        for i, loop in enumerate(self.event_loops):
            if not fn(i, loop):
                break

    def __len__(self) -> int:
        return len(self.event_loops)

    def __iter__(self) -> Iterator[Any]:
        return iter(self.event_loops)


class RoundRobinLoadBalancer(LoadBalancer):
    """Hands out event loops in turn."""

    def __init__(self) -> None:
        super().__init__()
        self._next_index = 0

    def next(self, addr: Any = None) -> Any:
        """Return the next event loop in rotation."""
        loop = self.event_loops[self._next_index]
        self._next_index += 1
        if self._next_index >= len(self.event_loops):
            self._next_index = 0
        return loop


class LeastConnectionsLoadBalancer(LoadBalancer):
    """Picks the event loop serving the fewest connections."""

    def min(self) -> Any:
        """Return the first loop with the smallest connection count."""
        if not self.event_loops:
            raise IndexError("no event loops registered")
        return min(self.event_loops, key=lambda loop: loop.load_conn())

    def next(self, addr: Any = None) -> Any:
        """Return the least loaded event loop."""
        return self.min()


class SourceAddrHashLoadBalancer(LoadBalancer):
    """Picks the event loop by hashing the remote address."""

    def hash(self, s: str) -> int:
        """Return the CRC-32 (IEEE) checksum of ``s``."""
        return zlib.crc32(string_to_bytes(s))

    def next(self, addr: Any) -> Any:
        """Return the event loop that ``addr`` hashes to."""
        return self.event_loops[self.hash(str(addr)) % len(self.event_loops)]


def new_load_balancer(lb: LoadBalancing) -> LoadBalancer:
    """Create the load balancer for the algorithm ``lb``."""
    kinds = {
        LoadBalancing.ROUND_ROBIN: RoundRobinLoadBalancer,
        LoadBalancing.LEAST_CONNECTIONS: LeastConnectionsLoadBalancer,
        LoadBalancing.SOURCE_ADDR_HASH: SourceAddrHashLoadBalancer,
    }
    try:
        return kinds[LoadBalancing(lb)]()
    except (KeyError, ValueError):
        raise ValueError(f"unknown load-balancing algorithm {lb!r}") from None