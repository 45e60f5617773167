"""Readiness poller with an asynchronous task queue, backed by epoll or kqueue."""

from __future__ import annotations

import errno
import logging
import os
import select
import sys
import threading
from typing import Any, Callable, Dict, List, Optional, Tuple

from netreactor.events import (
    EV_FILTER_SOCK,
    MAX_ASYNC_TASKS_AT_ONE_TIME,
    EventList,
    PollAttachment,
    PollEventHandler,
)
from netreactor.taskqueue import Task, TaskQueue

logger = logging.getLogger(__name__)

_EPOLLIN = getattr(select, "EPOLLIN", 0)
_EPOLLPRI = getattr(select, "EPOLLPRI", 0)
_EPOLLOUT = getattr(select, "EPOLLOUT", 0)
_READ_EVENTS = _EPOLLPRI | _EPOLLIN
_WRITE_EVENTS = _EPOLLOUT
_READ_WRITE_EVENTS = _READ_EVENTS | _WRITE_EVENTS

_WAKE_VALUE = (1).to_bytes(8, sys.byteorder)


class ServerShutdown(Exception):
    """Raised by a handler or task to stop the polling loop."""

    def __init__(self, message: str = "server is going to be shutdown") -> None:
        super().__init__(message)


class AcceptSocketError(Exception):
    """Raised by an event handler when accepting a new connection failed."""

    def __init__(self, message: str = "accept a new connection error") -> None:
        super().__init__(message)


class _WakeChannel:
    """A non-blocking descriptor pair used to interrupt a blocked wait."""

    def __init__(self) -> None:
        eventfd = getattr(os, "eventfd", None)
        if eventfd is not None:
            fd = eventfd(0, os.EFD_NONBLOCK | os.EFD_CLOEXEC)
            self.read_fd = self.write_fd = fd
            self._counter = True
        else:
            self.read_fd, self.write_fd = os.pipe()
            os.set_blocking(self.read_fd, False)
            os.set_blocking(self.write_fd, False)
            self._counter = False

    def notify(self) -> None:
        while True:
            try:
                os.write(self.write_fd, _WAKE_VALUE)
                return
            except BlockingIOError:
                # A full pipe already guarantees a wake-up; a saturated
                # counter is retried until the reader drains it.
                if not self._counter:
                    return
            except InterruptedError:
                continue

    def drain(self) -> None:
        while True:
            try:
                if not os.read(self.read_fd, 4096):
                    return
            except (BlockingIOError, InterruptedError):
                return

    def close(self) -> None:
        os.close(self.read_fd)
        if self.write_fd != self.read_fd:
            os.close(self.write_fd)


class _EpollBackend:
    def __init__(self, wake: _WakeChannel) -> None:
        self._ep = select.epoll()
        try:
            self._ep.register(wake.read_fd, _READ_EVENTS)
        except BaseException:
            self._ep.close()
            raise

    def wait(self, max_events: int, block: bool) -> List[Tuple[int, int]]:
        return self._ep.poll(-1 if block else 0, max_events)

    def add(self, fd: int, read: bool, write: bool) -> None:
        self._ep.register(fd, (_READ_EVENTS if read else 0) | (_WRITE_EVENTS if write else 0))

    def mod_read(self, fd: int) -> None:
        self._ep.modify(fd, _READ_EVENTS)

    def mod_read_write(self, fd: int) -> None:
        self._ep.modify(fd, _READ_WRITE_EVENTS)

    def delete(self, fd: int) -> None:
        self._ep.unregister(fd)

    def close(self) -> None:
        self._ep.close()


class _KqueueBackend:
    def __init__(self, wake: _WakeChannel) -> None:
        self._kq = select.kqueue()
        try:
            self._control(wake.read_fd, select.KQ_FILTER_READ, select.KQ_EV_ADD)
        except BaseException:
            self._kq.close()
            raise

    def _control(self, fd: int, *changes: Any) -> None:
        pairs = list(zip(changes[::2], changes[1::2]))
        events = [select.kevent(fd, filter=f, flags=flags) for f, flags in pairs]
        self._kq.control(events, 0, 0)

    def wait(self, max_events: int, block: bool) -> List[Tuple[int, int]]:
        ready = self._kq.control(None, max_events, None if block else 0)
        result = []
        for ev in ready:
            ev_filter = ev.filter
            if ev.flags & (select.KQ_EV_EOF | select.KQ_EV_ERROR):
                ev_filter = EV_FILTER_SOCK
            result.append((ev.ident, ev_filter))
        return result

    def add(self, fd: int, read: bool, write: bool) -> None:
        changes: List[int] = []
        if read:
            changes += [select.KQ_FILTER_READ, select.KQ_EV_ADD]
        if write:
            changes += [select.KQ_FILTER_WRITE, select.KQ_EV_ADD]
        self._control(fd, *changes)

    def mod_read(self, fd: int) -> None:
        self._control(fd, select.KQ_FILTER_WRITE, select.KQ_EV_DELETE)

    def mod_read_write(self, fd: int) -> None:
        self._control(fd, select.KQ_FILTER_WRITE, select.KQ_EV_ADD)

    def delete(self, fd: int) -> None:
        # Closing a descriptor removes it from kqueue by itself.
        return None

    def close(self) -> None:
        self._kq.close()


def _outcome(fn: Callable[..., Any], *args: Any) -> Optional[Exception]:
    """Call ``fn``; return the exception it raised or returned, if any."""
    try:
        result = fn(*args)
    except Exception as exc:
        return exc
    return result if isinstance(result, Exception) else None


class Poller:
    """Monitors file descriptors and runs queued tasks on the polling thread."""

    def __init__(self) -> None:
        self._closed = False
        self._wake_lock = threading.Lock()
        self._wake_sig = False
        self._async_tasks = TaskQueue()
        self._prior_tasks = TaskQueue()
        self._attachments: Dict[int, PollAttachment] = {}
        self._wake = _WakeChannel()
        try:
            if hasattr(select, "epoll"):
                self._backend: Any = _EpollBackend(self._wake)
            elif hasattr(select, "kqueue"):
                self._backend = _KqueueBackend(self._wake)
            else:
                raise OSError(errno.ENOSYS, "neither epoll nor kqueue is available")
        except BaseException:
            self._wake.close()
            raise

    @property
    def closed(self) -> bool:
        """Whether the poller has been closed."""
        return self._closed

    def close(self) -> None:
        """Release the poller's descriptors; later calls do nothing."""
        if self._closed:
            return
        self._closed = True
        try:
            self._backend.close()
        finally:
            self._wake.close()

    def __enter__(self) -> "Poller":
        return self

    def __exit__(self, exc_type: Any, exc: Any, tb: Any) -> None:
        self.close()

    def _claim_wake(self) -> bool:
        with self._wake_lock:
            if self._wake_sig:
                return False
            self._wake_sig = True
            return True

    def _release_wake(self) -> None:
        with self._wake_lock:
            self._wake_sig = False

    def _submit(self, queue: TaskQueue, fn: Callable[[Any], Any], arg: Any) -> None:
        queue.enqueue(Task(fn, arg))
        if self._claim_wake():
            self._wake.notify()

    def urgent_trigger(self, fn: Callable[[Any], Any], arg: Any) -> None:
        """Queue ``fn(arg)`` with high priority and wake the poller.

        Urgent tasks all run before any ordinary task at each wake-up, so
        this queue is meant to stay short.
        """
        self._submit(self._prior_tasks, fn, arg)

    def trigger(self, fn: Callable[[Any], Any], arg: Any) -> None:
        """Queue ``fn(arg)`` with ordinary priority and wake the poller."""
        self._submit(self._async_tasks, fn, arg)

    def _run_task(self, task: Task) -> None:
        err = _outcome(task.run)
        if isinstance(err, ServerShutdown):
            raise err
        if err is not None:
            logger.warning("error occurs in user-defined function, %s", err)

    def _run_tasks(self) -> None:
        task = self._prior_tasks.dequeue()
        while task is not None:
            self._run_task(task)
            task = self._prior_tasks.dequeue()
        for _ in range(MAX_ASYNC_TASKS_AT_ONE_TIME):
            task = self._async_tasks.dequeue()
            if task is None:
                break
            self._run_task(task)
        self._release_wake()
        pending = not self._async_tasks.is_empty() or not self._prior_tasks.is_empty()
        if pending and self._claim_wake():
            self._wake.notify()

    def _dispatch(self, callback: Optional[PollEventHandler], fd: int, ev: int) -> None:
        handler = callback
        if handler is None:
            attachment = self._attachments.get(fd)
            handler = attachment.callback if attachment is not None else None
        if handler is None:
            logger.warning("error occurs in event-loop: no handler for fd %d", fd)
            return
        err = _outcome(handler, fd, ev)
        if isinstance(err, (AcceptSocketError, ServerShutdown)):
            raise err
        if err is not None:
            logger.warning("error occurs in event-loop: %s", err)

    def polling(self, callback: Optional[PollEventHandler] = None) -> None:
        """Wait for events and dispatch them until a handler or task stops the loop.

        Each ready descriptor is passed to ``callback(fd, event)``, or to the
        callback of its attachment when ``callback`` is None. The loop ends by
        raising ServerShutdown or AcceptSocketError from a handler, or
        ServerShutdown from a task; other errors are logged and polling goes on.
        """
        events = EventList()
        block = True
        while True:
            try:
                ready = self._backend.wait(events.size, block)
            except OSError as exc:
                logger.error("error occurs in poller: %s", exc)
                raise
            if not ready:
                block = True
                continue
            block = False

            woken = False
            for fd, ev in ready:
                if fd == self._wake.read_fd:
                    woken = True
                    self._wake.drain()
                else:
                    self._dispatch(callback, fd, ev)

            if woken:
                self._run_tasks()

            n = len(ready)
            if n == events.size:
                events.expand()
            elif n < events.size >> 1:
                events.shrink()

    def _register(self, attachment: PollAttachment, read: bool, write: bool) -> None:
        self._backend.add(attachment.fd, read, write)
        self._attachments[attachment.fd] = attachment

    def add_read_write(self, attachment: PollAttachment) -> None:
        """Watch the attachment's descriptor for readable and writable events."""
        self._register(attachment, True, True)

    def add_read(self, attachment: PollAttachment) -> None:
        """Watch the attachment's descriptor for readable events."""
        self._register(attachment, True, False)

    def add_write(self, attachment: PollAttachment) -> None:
        """Watch the attachment's descriptor for writable events."""
        self._register(attachment, False, True)

    def mod_read(self, attachment: PollAttachment) -> None:
        """Watch the descriptor for readable events only."""
        self._backend.mod_read(attachment.fd)
        self._attachments[attachment.fd] = attachment

    def mod_read_write(self, attachment: PollAttachment) -> None:
        """Watch the descriptor for readable and writable events."""
        self._backend.mod_read_write(attachment.fd)
        self._attachments[attachment.fd] = attachment

    def delete(self, fd: int) -> None:
        """Stop watching ``fd``."""
        self._backend.delete(fd)
        self._attachments.pop(fd, None)