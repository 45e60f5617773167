import pytest

from netreactor.load_balancer import (
    LeastConnectionsLoadBalancer,
    RoundRobinLoadBalancer,
    SourceAddrHashLoadBalancer,
    new_load_balancer,
)
from netreactor.options import LoadBalancing


class FakeLoop:
    def __init__(self, conns=0):
        self.conns = conns
        self.idx = -1

    def load_conn(self):
        return self.conns


def _filled(lb, loops):
    for loop in loops:
        lb.register(loop)
    return lb


def test_register_assigns_indices():
    loops = [FakeLoop() for _ in range(3)]
    lb = _filled(RoundRobinLoadBalancer(), loops)
    assert [loop.idx for loop in loops] == [0, 1, 2]
    assert len(lb) == 3
    assert list(lb) == loops


def test_round_robin_cycles():
    loops = [FakeLoop() for _ in range(3)]
    lb = _filled(RoundRobinLoadBalancer(), loops)
    picked = [lb.next(None) for _ in range(7)]
    assert picked == loops + loops + loops[:1]


def test_round_robin_empty_raises():
    with pytest.raises(IndexError):
        RoundRobinLoadBalancer().next(None)


def test_least_connections_picks_minimum():
    loops = [FakeLoop(5), FakeLoop(2), FakeLoop(9)]
    lb = _filled(LeastConnectionsLoadBalancer(), loops)
    assert lb.next(None) is loops[1]
    loops[2].conns = 1
    assert lb.min() is loops[2]


def test_least_connections_tie_prefers_first():
    loops = [FakeLoop(3), FakeLoop(3), FakeLoop(3)]
    lb = _filled(LeastConnectionsLoadBalancer(), loops)
    assert lb.next(None) is loops[0]


def test_least_connections_empty_raises():
    with pytest.raises(IndexError):
        LeastConnectionsLoadBalancer().min()


def test_hash_is_stable_and_in_range():
    loops = [FakeLoop() for _ in range(4)]
    lb = _filled(SourceAddrHashLoadBalancer(), loops)
    addrs = [f"10.0.0.{i}:5000" for i in range(20)]
    for addr in addrs:
        first = lb.next(addr)
        assert first in loops
        assert lb.next(addr) is first
    assert lb.hash("abc") == lb.hash("abc")
    assert lb.hash("abc") >= 0


def test_hash_known_crc32_value():
    lb = SourceAddrHashLoadBalancer()
    assert lb.hash("123456789") == 0xCBF43926


def test_iterate_stops_on_false():
    loops = [FakeLoop() for _ in range(5)]
    lb = _filled(RoundRobinLoadBalancer(), loops)
    seen = []

    def visit(i, loop):
        seen.append((i, loop))
        return i < 1

    lb.iterate(visit)
    assert seen == [(0, loops[0]), (1, loops[1])]
    assert len(lb) == 5
    assert list(lb) == loops


def test_new_load_balancer_round_robin():
    lb = new_load_balancer(LoadBalancing.ROUND_ROBIN)
    assert type(lb) is RoundRobinLoadBalancer
    loops = [FakeLoop(), FakeLoop()]
    _filled(lb, loops)
    assert [lb.next(None) for _ in range(3)] == [loops[0], loops[1], loops[0]]


def test_new_load_balancer_least_connections():
    lb = new_load_balancer(LoadBalancing.LEAST_CONNECTIONS)
    assert type(lb) is LeastConnectionsLoadBalancer
    loops = [FakeLoop(5), FakeLoop(1)]
    _filled(lb, loops)
    assert lb.next(None) is loops[1]


def test_new_load_balancer_source_addr_hash():
    lb = new_load_balancer(LoadBalancing.SOURCE_ADDR_HASH)
    assert type(lb) is SourceAddrHashLoadBalancer
    assert lb.hash("123456789") == 0xCBF43926


def test_new_load_balancer_unknown_raises():
    with pytest.raises(ValueError):
        new_load_balancer(42)