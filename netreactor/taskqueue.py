"""Thread-safe FIFO queue of asynchronous tasks run by the poller."""

from __future__ import annotations

import threading
from collections import deque
from dataclasses import dataclass
from typing import Any, Callable, Optional

TaskFunc = Callable[[Any], Optional[BaseException]]


@dataclass
class Task:
    """A callable paired with the argument it is to be called with."""

    fn: Optional[Callable[[Any], Any]] = None
    arg: Any = None

    def run(self) -> Any:
        """Call the task's function with its argument and return the result."""
        if self.fn is None:
            raise TypeError("task has no function to run")
        return self.fn(self.arg)


class TaskQueue:
    """An unbounded FIFO queue of tasks, safe for concurrent producers and consumers."""

    def __init__(self) -> None:
        self._items: deque[Task] = deque()
        self._lock = threading.Lock()

    def enqueue(self, task: Task) -> None:
        """Put ``task`` at the tail of the queue."""
        with self._lock:
            self._items.append(task)

    def dequeue(self) -> Optional[Task]:
        """Remove and return the task at the head, or None if the queue is empty."""
        with self._lock:
            if not self._items:
                return None
            return self._items.popleft()

    def is_empty(self) -> bool:
        """Report whether the queue holds no tasks."""
        return len(self._items) == 0

    def __len__(self) -> int:
        return len(self._items)