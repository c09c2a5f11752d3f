"""
Node behavior contract.

Every component kind (client, server, load balancer, edge) derives from
``Node``. The base class owns the parts all kinds share: configuration
handle, health flag, target list, seeded RNG, snapshot caching, and the
dispatch from event kinds to ``on_<kind>`` handlers.
"""

import logging
from typing import Any

from .config import ConfigHandle, NodeConfig
from .errors import TopologyError
from .events import Event, EventKind, ScheduleCmd
from .request import FailureReason, Request
from .rng import make_rng
from .statistics import VisualState

logger = logging.getLogger(__name__)


class Node:
    """
    A unit of simulation logic.

    Subclasses set ``kind`` and ``config_class`` and implement handlers named
    after event kinds, e.g. ``on_arrival(payload, now, config)``. Handlers
    return the commands to schedule and must only touch this node's state.
    """

    kind = "Node"
    config_class: type[NodeConfig] = NodeConfig
    # Single-target kinds replace their target instead of appending
    max_targets: int | None = None
    # Whether other nodes may send requests here
    accepts_requests = True

    def __init__(self, node_id: str, config: NodeConfig | None = None):
        self.id = node_id
        self.config: ConfigHandle = ConfigHandle(config if config is not None else self.config_class())
        self.healthy = True
        self.targets: list[str] = []
        self.seed: int | None = None
        self.rng = make_rng(None)
        self.topology = None  # Set by Topology
        self._snapshot: VisualState | None = None

    # Dispatch

    def on_event(self, event: Event, now: float) -> list[ScheduleCmd]:
        """
        Handle one event and return the events it causes.

        The configuration is read once here, so a handler sees a single
        consistent config even if it is replaced concurrently.
        """
        if event.kind is EventKind.STATS_TICK:
            self.sync_display_stats(now)
            tick = event.payload
            if tick is not None and tick.interval_ms > 0:
                return [ScheduleCmd(tick.interval_ms, self.id, EventKind.STATS_TICK, tick)]
            return []

        if event.kind is EventKind.HEALTH_TOGGLE:
            self.set_healthy(bool(event.payload))
            return []

        handler = getattr(self, f"on_{event.kind.value}", None)
        if handler is None:
            logger.debug("%s %s ignores %s event", self.kind, self.id, event.kind.value)
            return []
        return handler(event.payload, now, self.config.get()) or []

    def wake_up(self, now: float) -> list[ScheduleCmd]:
        """Commands to schedule when the simulation starts."""
        return []

    # Response helpers

    def reply(self, request: Request, delay: float = 0.0) -> list[ScheduleCmd]:
        """Send ``request`` back to the node on top of its call stack."""
        upstream = request.upstream
        if upstream is None:
            return []
        return [ScheduleCmd(delay, upstream, EventKind.RESPONSE_ARRIVAL, request)]

    def fail(self, request: Request, reason: FailureReason, delay: float = 0.0) -> list[ScheduleCmd]:
        return self.reply(request.failed(reason), delay)

    def forward(self, request: Request, target: str, delay: float = 0.0) -> ScheduleCmd:
        """Push this node on the call stack and send the request to ``target``."""
        return ScheduleCmd(delay, target, EventKind.ARRIVAL, request.push(self.id))

    # Configuration

    def encode_config(self) -> dict[str, Any]:
        return self.config.get().to_dict()

    def apply_config(self, data: dict[str, Any]) -> list[ScheduleCmd]:
        """
        Replace configuration fields.

        Returns:
            Commands the caller must schedule for the change to take effect

        Raises:
            ConfigError: If any field is invalid; the previous config is kept
        """
        self.config.update(**data)
        return []

    # Snapshots

    def build_snapshot(self, now: float) -> VisualState:
        raise NotImplementedError

    def sync_display_stats(self, now: float):
        """Refresh sliding windows and replace the visual snapshot."""
        self._snapshot = self.build_snapshot(now)

    def get_visual_snapshot(self) -> VisualState | None:
        """Latest snapshot, or None before the first stats tick."""
        return self._snapshot

    def reset_internal_stats(self):
        self._snapshot = None

    # Health

    def set_healthy(self, healthy: bool):
        self.healthy = healthy

    def is_healthy(self) -> bool:
        return self.healthy

    def is_node_healthy(self, node_id: str) -> bool:
        """Health of another node, read through the topology."""
        if self.topology is None:
            return True
        return self.topology.is_node_healthy(node_id)

    # Targets

    def add_target(self, target: str):
        """
        Add a routing target.

        Raises:
            TopologyError: If the target is this node or, once the node is
                part of a topology, not a node of that topology or a node
                that does not accept requests
        """
        if target == self.id:
            raise TopologyError(f"{self.id} cannot target itself")
        if self.topology is not None and not self.topology.require_node(target).accepts_requests:
            raise TopologyError(f"{self.id} cannot target {target}: it does not accept requests")
        if self.max_targets == 1:
            for old in list(self.targets):
                if old != target:
                    self.remove_target(old)
        if target not in self.targets:
            self.targets.append(target)

    def remove_target(self, target: str):
        if target in self.targets:
            self.targets.remove(target)
            self._target_removed(target)

    def get_targets(self) -> list[str]:
        return list(self.targets)

    def clear_targets(self):
        for target in list(self.targets):
            self.remove_target(target)

    def _target_removed(self, target: str):
        """Hook for kinds that keep per-target state."""

    # Determinism

    def set_seed(self, seed: int):
        self.seed = seed
        self.rng = make_rng(seed)

    # Metrics

    def error_count(self) -> int:
        return 0

    def active_requests(self) -> int:
        return 0

    def __repr__(self):
        return f"{type(self).__name__}({self.id}, healthy={self.healthy}, targets={len(self.targets)})"
