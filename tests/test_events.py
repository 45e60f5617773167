import os

import pytest

from netreactor.events import (
    INIT_POLL_EVENTS_CAP,
    MAX_POLL_EVENTS_CAP,
    MIN_POLL_EVENTS_CAP,
    EventList,
    PollAttachment,
    dup,
)


def test_default_size_is_initial_capacity():
    assert EventList().size == INIT_POLL_EVENTS_CAP
    assert len(EventList()) == INIT_POLL_EVENTS_CAP


def test_expand_stops_at_maximum():
    el = EventList()
    for _ in range(20):
        el.expand()
    assert el.size == MAX_POLL_EVENTS_CAP
    el.expand()
    assert el.size == MAX_POLL_EVENTS_CAP


def test_shrink_stops_at_minimum():
    el = EventList()
    for _ in range(20):
        el.shrink()
    assert el.size == MIN_POLL_EVENTS_CAP
    el.shrink()
    assert el.size == MIN_POLL_EVENTS_CAP


def test_expand_then_shrink_round_trip():
    el = EventList()
    el.expand()
    assert el.size > INIT_POLL_EVENTS_CAP
    el.shrink()
    assert el.size == INIT_POLL_EVENTS_CAP


def test_custom_bounds():
    el = EventList(4, min_size=4, max_size=8)
    el.shrink()
    assert el.size == 4
    el.expand()
    assert el.size == 8
    el.expand()
    assert el.size == 8


def test_poll_attachment_defaults_and_fields():
    pa = PollAttachment()
    assert pa.fd == 0 and pa.callback is None
    calls = []
    pa = PollAttachment(fd=7, callback=lambda fd, ev: calls.append((fd, ev)))
    pa.callback(pa.fd, 1)
    assert calls == [(7, 1)]


def test_dup_shares_the_pipe():
    r, w = os.pipe()
    try:
        r2 = dup(r)
        try:
            assert r2 != r
            assert os.get_inheritable(r2) is False
            os.write(w, b"ping")
            assert os.read(r2, 4) == b"ping"
        finally:
            os.close(r2)
    finally:
        os.close(r)
        os.close(w)


def test_dup_invalid_fd_raises():
    r, w = os.pipe()
    os.close(r)
    os.close(w)
    with pytest.raises(OSError):
        dup(r)