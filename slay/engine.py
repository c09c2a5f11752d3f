"""
Simulation driver.

A ``Simulation`` owns the event queue and the topology and runs the single
dispatch loop: pop the next event, hand it to its target node, schedule the
commands the node returns. Only this loop writes to the queue or to node
counters, so no locking is needed while stepping.
"""

import hashlib
import logging
from typing import Any

from .components import Client, Edge, LoadBalancer, Server
from .config import EdgeConfig
from .errors import TopologyError
from .events import Event, EventKind, EventQueue, ScheduleCmd, Tick
from .network import Topology
from .node import Node
from .request import Request
from .rng import derive_seed
from .statistics import MetricsCollector, RunStatistics, VisualState, percentile

logger = logging.getLogger(__name__)

DEFAULT_STATS_INTERVAL_MS = 100.0

# Kinds that travel between nodes and therefore over edges
_LINK_KINDS = (EventKind.ARRIVAL, EventKind.RESPONSE_ARRIVAL)


class Simulation:
    """
    Deterministic discrete event simulation of a serving system.

    Every node's RNG is seeded from ``seed`` and its id, and ties between
    events at the same time pop in scheduling order, so a run is fully
    determined by its topology, configuration, seed, and stop condition.
    """

    def __init__(
        self,
        seed: int = 0,
        stats_interval_ms: float = DEFAULT_STATS_INTERVAL_MS,
        record_trace: bool = False,
    ):
        """
        Initialize a simulation.

        Args:
            seed: Run seed; node seeds are derived from it
            stats_interval_ms: Virtual time between snapshot refreshes (0 = never)
            record_trace: Keep every processed event in ``trace``
        """
        self.seed = seed
        self.stats_interval_ms = stats_interval_ms
        self.record_trace = record_trace

        self.queue = EventQueue()
        self.topology = Topology()
        self.collector = MetricsCollector()

        self.started = False
        self.horizon = 0.0
        self.events_processed = 0
        self.events_discarded = 0
        self.trace: list[tuple[float, int, str, str, str | None]] = []
        self._digest = hashlib.sha256()

    # Topology

    def add_node(self, node: Node) -> Node:
        """Add a node, seeding it from the run seed. Wakes it if already running."""
        self.topology.add_node(node)
        self._attach(node)
        return node

    def remove_node(self, node_id: str) -> Node:
        """Remove a node. Events still addressed to it are discarded."""
        node = self.topology.remove_node(node_id)
        logger.info("Removed %s at t=%.2fms", node_id, self.now)
        return node

    def connect(
        self,
        src: str,
        dst: str,
        edge: EdgeConfig | dict | None = None,
        reverse: EdgeConfig | dict | None = None,
    ) -> list[Edge]:
        """Route ``src`` to ``dst``, optionally over edges. See ``Topology.connect``."""
        edges = self.topology.connect(src, dst, edge, reverse)
        for new_edge in edges:
            self._attach(new_edge)
        return edges

    def disconnect(self, src: str, dst: str):
        self.topology.disconnect(src, dst)

    def get_node(self, node_id: str) -> Node:
        node = self.topology.get(node_id)
        if node is None:
            raise TopologyError(f"unknown node: {node_id}")
        return node

    def _attach(self, node: Node):
        node.set_seed(derive_seed(self.seed, node.id))
        if self.started:
            self._wake(node)

    def _wake(self, node: Node):
        self._schedule_all(node.wake_up(self.now), node.id)
        if self.stats_interval_ms > 0:
            self.queue.schedule(
                self.stats_interval_ms, node.id, EventKind.STATS_TICK, Tick(self.stats_interval_ms)
            )

    # Control surface

    def set_healthy(self, node_id: str, healthy: bool):
        """Change a node's health immediately."""
        self.get_node(node_id).set_healthy(healthy)

    def schedule_health(self, node_id: str, at: float, healthy: bool) -> Event:
        """
        Schedule a health change at an absolute virtual time.

        Raises:
            TopologyError: If the node is unknown
            CausalityError: If ``at`` is in the past
        """
        self.get_node(node_id)
        return self.queue.schedule_at(at, node_id, EventKind.HEALTH_TOGGLE, healthy)

    def apply_config(self, node_id: str, data: dict[str, Any]):
        """
        Update a node's configuration, effective from the current time.

        Raises:
            ConfigError: If the result is invalid; the node keeps its config
        """
        cmds = self.get_node(node_id).apply_config(data)
        # Before start, wake_up schedules from the new config instead.
        if self.started:
            self._schedule_all(cmds, node_id)

    # Running

    def start(self):
        """Wake every node. Called implicitly by the first ``step``."""
        if self.started:
            return
        self.started = True

        logger.info(
            "Starting simulation: %d nodes, %d edges, seed=%d",
            len(self.topology.nodes), len(self.topology.edges), self.seed,
        )
        unreachable = self.topology.unreachable_nodes()
        if unreachable:
            logger.warning("No client can reach: %s", ", ".join(unreachable))

        for node in self.topology.all_nodes():
            self._wake(node)

    def step(self) -> Event | None:
        """
        Process one event.

        Returns:
            The processed event, or None if the queue is empty
        """
        if not self.started:
            self.start()

        event = self.queue.pop_next()
        if event is None:
            return None

        now = event.time
        self.events_processed += 1
        self._record(event)

        node = self.topology.get(event.target)
        if node is None:
            self.events_discarded += 1
            logger.debug("Discarding %s for removed node %s", event.kind.value, event.target)
            return event

        self._schedule_all(node.on_event(event, now), node.id)
        if self.collector.due(now):
            self.collector.update(now, self.success_count(), self.failure_count(), self.latency_percentile(99))
        return event

    def run(self, until: float | None = None, max_events: int | None = None) -> int:
        """
        Process events until the queue drains or a limit is hit.

        Periodic events keep the queue from draining, so a running topology
        normally needs ``until`` or ``max_events``.

        Args:
            until: Stop before the first event later than this time (ms)
            max_events: Stop after this many events

        Returns:
            Number of events processed
        """
        if not self.started:
            self.start()

        processed = 0
        while max_events is None or processed < max_events:
            next_event = self.queue.peek()
            if next_event is None or (until is not None and next_event.time > until):
                if until is not None:
                    self.horizon = max(self.horizon, until)
                break
            self.step()
            processed += 1
        return processed

    def run_for(self, duration_ms: float, max_events: int | None = None) -> int:
        """Run for ``duration_ms`` of virtual time past the previous horizon."""
        return self.run(until=max(self.horizon, self.now) + duration_ms, max_events=max_events)

    def _schedule_all(self, cmds: list[ScheduleCmd], source: str):
        for cmd in cmds:
            target = cmd.target
            if cmd.kind in _LINK_KINDS and target != source:
                link = self.topology.edge_between(source, target)
                if link is not None:
                    target = link.id
            self.queue.schedule(cmd.delay, target, cmd.kind, cmd.payload)

    def _record(self, event: Event):
        payload = event.payload
        if isinstance(payload, Request):
            request_id = payload.id
        elif isinstance(payload, str):
            request_id = payload
        else:
            request_id = None
        entry = (event.time, event.sequence, event.target, event.kind.value, request_id)
        self._digest.update(repr(entry).encode())
        if self.record_trace:
            self.trace.append(entry)

    def trace_digest(self) -> str:
        """SHA-256 over every processed event so far."""
        return self._digest.hexdigest()

    # Metrics

    @property
    def now(self) -> float:
        return self.queue.now()

    def clients(self) -> list[Client]:
        return self.topology.nodes_of(Client)

    def success_count(self) -> int:
        return sum(client.succeeded for client in self.clients())

    def failure_count(self) -> int:
        return sum(client.failed for client in self.clients())

    def latency_percentile(self, q: float) -> float:
        """Percentile of client latencies over the sliding window."""
        now = self.now
        samples = []
        for client in self.clients():
            samples.extend(client.latency_window.values(now))
        return percentile(samples, q)

    def snapshots(self) -> list[VisualState | None]:
        return [node.get_visual_snapshot() for node in self.topology.all_nodes()]

    def reset_stats(self):
        """Zero every node's counters and the run-wide history."""
        for node in self.topology.all_nodes():
            node.reset_internal_stats()
        self.collector.reset(self.now)

    def statistics(self) -> RunStatistics:
        """Aggregate counters over the whole run."""
        clients = self.clients()
        latencies = [latency for client in clients for latency in client.latencies]

        failure_reasons: dict[str, int] = {}
        for client in clients:
            for reason, count in client.failure_reasons.items():
                failure_reasons[reason.value] = failure_reasons.get(reason.value, 0) + count

        return RunStatistics(
            seed=self.seed,
            sim_time_ms=max(self.now, self.horizon),
            events_processed=self.events_processed,
            requests_sent=sum(c.sent for c in clients),
            succeeded=sum(c.succeeded for c in clients),
            failed=sum(c.failed for c in clients),
            timed_out=sum(c.timed_out for c in clients),
            late_responses=sum(c.late_responses for c in clients),
            rejected=sum(s.rejected for s in self.topology.nodes_of(Server)),
            retries=sum(lb.total_retries for lb in self.topology.nodes_of(LoadBalancer)),
            dropped=sum(e.dropped for e in self.topology.edges.values()),
            p50_ms=percentile(latencies, 50),
            p95_ms=percentile(latencies, 95),
            p99_ms=percentile(latencies, 99),
            failure_reasons=dict(sorted(failure_reasons.items())),
            trace_digest=self.trace_digest(),
        )
