"""Poller event-list sizing, event masks, poll attachments and fd duplication."""

from __future__ import annotations

import errno
import os
import select
import sys
from dataclasses import dataclass
from typing import Any, Callable, Optional

_LINUX = sys.platform.startswith("linux")
_BSD = not _LINUX and hasattr(select, "kqueue")

if _BSD:
    INIT_POLL_EVENTS_CAP = 64
    MAX_POLL_EVENTS_CAP = 512
    MIN_POLL_EVENTS_CAP = 16
    MAX_ASYNC_TASKS_AT_ONE_TIME = 128
else:
    INIT_POLL_EVENTS_CAP = 128
    MAX_POLL_EVENTS_CAP = 1024
    MIN_POLL_EVENTS_CAP = 32
    MAX_ASYNC_TASKS_AT_ONE_TIME = 256

# epoll event masks (zero where epoll is unavailable).
_EPOLLIN = getattr(select, "EPOLLIN", 0)
_EPOLLPRI = getattr(select, "EPOLLPRI", 0)
_EPOLLOUT = getattr(select, "EPOLLOUT", 0)
_EPOLLERR = getattr(select, "EPOLLERR", 0)
_EPOLLHUP = getattr(select, "EPOLLHUP", 0)
_EPOLLRDHUP = getattr(select, "EPOLLRDHUP", 0x2000 if _LINUX else 0)

ERR_EVENTS = _EPOLLERR | _EPOLLHUP | _EPOLLRDHUP
"""Exceptional events that are neither read nor write, such as a closed peer."""
OUT_EVENTS = ERR_EVENTS | _EPOLLOUT
"""Writable events combined with exceptional events."""
IN_EVENTS = ERR_EVENTS | _EPOLLIN | _EPOLLPRI
"""Readable events combined with exceptional events."""

# kqueue filters (fall back to the values the BSDs use).
EV_FILTER_WRITE = getattr(select, "KQ_FILTER_WRITE", -2)
EV_FILTER_READ = getattr(select, "KQ_FILTER_READ", -1)
EV_FILTER_SOCK = -0xD
"""Exceptional kqueue events: end of file or an error on the socket."""

PollEventHandler = Callable[[int, int], Any]


class EventList:
    """The number of events a poller collects per wait, grown and shrunk with load."""

    def __init__(
        self,
        size: int = INIT_POLL_EVENTS_CAP,
        *,
        min_size: int = MIN_POLL_EVENTS_CAP,
        max_size: int = MAX_POLL_EVENTS_CAP,
    ) -> None:
        self.size = size
        self.min_size = min_size
        self.max_size = max_size

    def expand(self) -> None:
        """Double the size unless that would pass the maximum."""
        new_size = self.size << 1
        if new_size <= self.max_size:
            self.size = new_size

    def shrink(self) -> None:
        """Halve the size unless that would fall below the minimum."""
        new_size = self.size >> 1
        if new_size >= self.min_size:
            self.size = new_size

    def __len__(self) -> int:
        return self.size


@dataclass
class PollAttachment:
    """A file descriptor registered with the poller and the handler of its events."""

    fd: int = 0
    callback: Optional[PollEventHandler] = None


def dup(fd: int) -> int:
    """Duplicate ``fd`` as a close-on-exec descriptor and return the new one."""
    if sys.platform == "win32":
        raise OSError(errno.ENOSYS, "dup is not supported on Windows")
    return os.dup(fd)