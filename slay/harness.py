"""
Test harness.

Builds a fixed topology under a fixed seed, runs it for a bounded budget,
and reports terminal statistics. ``TestHarness`` is the programmatic
builder; ``run_scenario`` drives the same machinery from a plain dict, e.g.::

    run_scenario({
        "nodes": [
            {"id": "client", "kind": "Client", "config": {"arrival_rate": 10}},
            {"id": "server", "kind": "Server", "config": {"workers": 1}},
        ],
        "links": [
            {"src": "client", "dst": "server", "edge": {"latency_ms": 5}},
        ],
        "faults": [
            {"node": "server", "at": 1000, "healthy": False},
        ],
    }, seed=42, until_ms=2000)
"""

from typing import Any

from .components import Client, LoadBalancer, Server, create_component
from .config import ClientConfig, EdgeConfig, LoadBalancerConfig, ServerConfig
from .engine import DEFAULT_STATS_INTERVAL_MS, Simulation
from .node import Node
from .statistics import RunStatistics


class TestHarness:
    """Builder around a ``Simulation`` for scripted runs."""

    # Not a pytest test class
    __test__ = False

    def __init__(
        self,
        seed: int = 0,
        stats_interval_ms: float = DEFAULT_STATS_INTERVAL_MS,
        record_trace: bool = False,
    ):
        self.sim = Simulation(seed=seed, stats_interval_ms=stats_interval_ms, record_trace=record_trace)

    def add_client(self, node_id: str, **config) -> Client:
        return self.sim.add_node(Client(node_id, ClientConfig(**config)))

    def add_server(self, node_id: str, **config) -> Server:
        return self.sim.add_node(Server(node_id, ServerConfig(**config)))

    def add_load_balancer(self, node_id: str, targets: tuple[str, ...] = (), **config) -> LoadBalancer:
        lb = self.sim.add_node(LoadBalancer(node_id, LoadBalancerConfig(**config)))
        for target in targets:
            self.sim.connect(node_id, target)
        return lb

    def connect(
        self,
        src: str,
        dst: str,
        edge: EdgeConfig | dict | None = None,
        reverse: EdgeConfig | dict | None = None,
    ):
        return self.sim.connect(src, dst, edge, reverse)

    def set_target(self, node_id: str, target: str):
        """Point a single-target node (client, proxy server) at ``target``."""
        self.sim.get_node(node_id).add_target(target)

    def set_healthy(self, node_id: str, healthy: bool, at: float | None = None):
        """Change health now, or at virtual time ``at``."""
        if at is None:
            self.sim.set_healthy(node_id, healthy)
        else:
            self.sim.schedule_health(node_id, at, healthy)

    def node(self, node_id: str) -> Node:
        return self.sim.get_node(node_id)

    def start(self):
        self.sim.start()

    def run_for(self, duration_ms: float, max_events: int | None = None) -> int:
        return self.sim.run_for(duration_ms, max_events=max_events)

    def run(self, until: float | None = None, max_events: int | None = None) -> int:
        return self.sim.run(until=until, max_events=max_events)

    def statistics(self) -> RunStatistics:
        return self.sim.statistics()

    def sla(self) -> float:
        """Fraction of completed requests that succeeded."""
        return self.statistics().success_rate

    def p99(self) -> float:
        """Whole-run p99 client latency in milliseconds."""
        return self.statistics().p99_ms


def build_simulation(
    description: dict[str, Any],
    seed: int = 0,
    stats_interval_ms: float = DEFAULT_STATS_INTERVAL_MS,
    record_trace: bool = False,
) -> Simulation:
    """
    Build a simulation from a topology description.

    Args:
        description: Dict with ``nodes`` (id, kind, optional config),
            optional ``links`` (src, dst, optional edge and reverse edge
            configs) and optional ``faults`` (node, at, healthy)
        seed: Run seed

    Raises:
        ConfigError: On unknown kinds or invalid configs
        TopologyError: On links to unknown nodes or duplicate ids
    """
    sim = Simulation(seed=seed, stats_interval_ms=stats_interval_ms, record_trace=record_trace)

    for entry in description.get("nodes", []):
        sim.add_node(create_component(entry["kind"], entry["id"], entry.get("config")))

    for link in description.get("links", []):
        sim.connect(link["src"], link["dst"], link.get("edge"), link.get("reverse"))

    for fault in description.get("faults", []):
        sim.schedule_health(fault["node"], fault["at"], fault.get("healthy", False))

    return sim


def run_scenario(
    description: dict[str, Any],
    seed: int = 0,
    until_ms: float | None = None,
    max_events: int | None = None,
    record_trace: bool = False,
) -> RunStatistics:
    """
    Build, run, and summarize a topology description.

    Two calls with the same description, seed and budget return equal
    statistics, including the trace digest.

    Args:
        description: See ``build_simulation``
        seed: Run seed
        until_ms: Virtual time limit
        max_events: Event limit

    Returns:
        Terminal run statistics

    Raises:
        ValueError: If neither limit is given
    """
    if until_ms is None and max_events is None:
        raise ValueError("run_scenario needs until_ms or max_events")

    sim = build_simulation(description, seed=seed, record_trace=record_trace)
    sim.run(until=until_ms, max_events=max_events)
    return sim.statistics()
