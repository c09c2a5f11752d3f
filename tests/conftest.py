import sys
from pathlib import Path

# Ensure package import for tests
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

import pytest

from slay import EventQueue, Event, Request, TestHarness, Topology, LoadBalancer, LoadBalancerConfig, Server


def deliver(node, kind, payload, now=0.0):
    """Hand one event straight to a node, bypassing the engine."""
    return node.on_event(Event(now, 0, node.id, kind, payload), now)


def make_request(n=1, origin="c", created_at=0.0, deadline=None):
    """A request as it leaves its client."""
    return Request(id=f"{origin}:{n}", origin=origin, created_at=created_at, deadline=deadline).push(origin)


@pytest.fixture
def queue():
    return EventQueue()


@pytest.fixture
def harness():
    return TestHarness(seed=42)


@pytest.fixture
def lb_topology():
    """Load balancer "lb" in front of servers "a" and "b"."""

    def build(**config):
        topology = Topology()
        lb = topology.add_node(LoadBalancer("lb", LoadBalancerConfig(**config)))
        topology.add_node(Server("a"))
        topology.add_node(Server("b"))
        topology.connect("lb", "a")
        topology.connect("lb", "b")
        return topology, lb

    return build


@pytest.fixture
def single_server_description():
    return {
        "nodes": [
            {"id": "client", "kind": "Client", "config": {"arrival_rate": 10.0}},
            {"id": "server", "kind": "Server", "config": {"workers": 1, "service_time_ms": 100.0}},
        ],
        "links": [
            {"src": "client", "dst": "server", "edge": {"latency_ms": 5.0, "loss_probability": 0.0}},
        ],
    }
