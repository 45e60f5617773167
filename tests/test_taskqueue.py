import threading

import pytest

from netreactor.taskqueue import Task, TaskQueue


def test_concurrent_producers_and_consumers():
    task_num = 10000
    q = TaskQueue()
    counter = 0
    counter_lock = threading.Lock()

    def produce():
        for _ in range(task_num):
            q.enqueue(Task())

    def consume():
        nonlocal counter
        while True:
            task = q.dequeue()
            with counter_lock:
                if task is not None:
                    counter += 1
                done = counter == 2 * task_num
            if task is None and done:
                break

    threads = [threading.Thread(target=produce) for _ in range(2)]
    threads += [threading.Thread(target=consume) for _ in range(2)]
    for t in threads:
        t.start()
    for t in threads:
        t.join(timeout=60)
    assert all(not t.is_alive() for t in threads)
    assert counter == 2 * task_num
    assert q.is_empty()


def test_fifo_order():
    q = TaskQueue()
    tasks = [Task(arg=i) for i in range(10)]
    for t in tasks:
        q.enqueue(t)
    out = []
    while (t := q.dequeue()) is not None:
        out.append(t)
    assert out == tasks


def test_empty_queue_dequeue_returns_none():
    q = TaskQueue()
    assert q.dequeue() is None
    assert q.is_empty() is True
    assert len(q) == 0


def test_length_tracks_contents():
    q = TaskQueue()
    q.enqueue(Task())
    q.enqueue(Task())
    assert len(q) == 2
    assert q.is_empty() is False
    q.dequeue()
    assert len(q) == 1


def test_task_run_calls_function_with_arg():
    seen = []
    task = Task(fn=lambda a: seen.append(a) or "done", arg="payload")
    assert task.run() == "done"
    assert seen == ["payload"]


def test_task_run_without_function_raises():
    with pytest.raises(TypeError):
        Task().run()