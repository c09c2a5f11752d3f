"""
Network link between two nodes.

An edge is a node of its own: the engine hands it every request or
response travelling from ``src`` to ``dst``, and the edge decides when, and
whether, the event reaches the other side.
"""

from ..config import EdgeConfig, JitterMode
from ..errors import TopologyError
from ..events import Event, EventKind, ScheduleCmd
from ..node import Node
from ..statistics import EdgeState, LatencyWindow, RateWindow


def edge_id(src: str, dst: str) -> str:
    return f"{src}->{dst}"


class Edge(Node):
    """
    One-way link with latency, jitter and loss.

    Every transmission draws the latency first and then rolls for loss, so
    the RNG stream advances identically whether or not an event is dropped.
    """

    kind = "Edge"
    config_class = EdgeConfig

    def __init__(self, src: str, dst: str, config: EdgeConfig | None = None):
        super().__init__(edge_id(src, dst), config)
        self.src = src
        self.dst = dst
        self.targets = [dst]
        self.delivered = 0
        self.dropped = 0
        self.transmit_window = RateWindow()
        self.latency_window = LatencyWindow()

    def sample_latency(self, config: EdgeConfig) -> float:
        """One-way latency in milliseconds, never negative."""
        if config.jitter_mode == JitterMode.UNIFORM:
            jitter = self.rng.uniform(0.0, config.jitter_ms)
        else:
            jitter = self.rng.gauss(0.0, config.jitter_ms)
        return max(0.0, config.latency_ms + jitter)

    def transmit(self, kind: EventKind, payload, now: float, config: EdgeConfig) -> list[ScheduleCmd]:
        self.transmit_window.record(now)

        if not self.healthy:
            self.dropped += 1
            return []

        latency = self.sample_latency(config)
        if self.rng.random() < config.loss_probability:
            self.dropped += 1
            return []

        self.delivered += 1
        self.latency_window.record(now, latency)
        return [ScheduleCmd(latency, self.dst, kind, payload)]

    def on_event(self, event: Event, now: float) -> list[ScheduleCmd]:
        # Requests and responses share the same physics.
        if event.kind in (EventKind.ARRIVAL, EventKind.RESPONSE_ARRIVAL):
            return self.transmit(event.kind, event.payload, now, self.config.get())
        return super().on_event(event, now)

    # The link endpoints are fixed at construction.

    def add_target(self, target: str):
        raise TopologyError(f"edge {self.id} always targets {self.dst}")

    def remove_target(self, target: str):
        raise TopologyError(f"edge {self.id} always targets {self.dst}")

    def clear_targets(self):
        raise TopologyError(f"edge {self.id} always targets {self.dst}")

    def build_snapshot(self, now: float) -> EdgeState:
        _, p99 = self.latency_window.percentiles(now, (50, 99))
        return EdgeState(
            node_id=self.id,
            kind=self.kind,
            time=now,
            healthy=self.healthy,
            src=self.src,
            dst=self.dst,
            rps=self.transmit_window.rate(now),
            delivered=self.delivered,
            dropped=self.dropped,
            mean_latency_ms=self.latency_window.mean(now),
            p99_latency_ms=p99,
        )

    def reset_internal_stats(self):
        super().reset_internal_stats()
        self.delivered = 0
        self.dropped = 0
        self.transmit_window.clear()
        self.latency_window.clear()

    def error_count(self) -> int:
        return self.dropped
