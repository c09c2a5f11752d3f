"""
Backend server with a worker pool and a bounded backlog.

Per request: arrival, optional wait in the backlog, process start when a
worker is free, process complete after the service time, then either a
response departure or, in proxy mode, a forward to the next hop.
"""

from collections import deque

from ..config import ServerConfig
from ..events import EventKind, ScheduleCmd
from ..node import Node
from ..request import FailureReason, Request
from ..statistics import LatencyWindow, RateWindow, ServerState


def occupancy(busy: int, queued: int, workers: int, backlog_limit: int) -> float:
    """Fraction of total capacity (workers plus backlog slots) in use."""
    capacity = workers + backlog_limit
    if capacity <= 0:
        return 1.0
    return min(1.0, (busy + queued) / capacity)


def saturation_multiplier(load: float, saturation_penalty: float) -> float:
    """
    Service time inflation at a given occupancy.

    A pure function of the instantaneous occupancy: ``1 + load**2 * penalty``.
    """
    return 1.0 + load * load * saturation_penalty


class Server(Node):
    """Application logic with a fixed worker pool and a FIFO backlog."""

    kind = "Server"
    config_class = ServerConfig
    max_targets = 1

    def __init__(self, node_id: str, config: ServerConfig | None = None):
        super().__init__(node_id, config)
        self.busy = 0
        self.queue: deque[Request] = deque()
        self.arrivals = 0
        self.processed = 0
        self.rejected = 0
        self.errors = 0
        self.arrival_window = RateWindow()
        self.service_window = LatencyWindow()
        self.in_service: dict[str, float] = {}

    def service_time(self, config: ServerConfig) -> float:
        """Draw the service time for a request starting now."""
        load = occupancy(self.busy, len(self.queue), config.workers, config.backlog_limit)
        jitter = config.service_jitter
        return (config.service_time_ms
                * self.rng.uniform(1.0 - jitter, 1.0 + jitter)
                * saturation_multiplier(load, config.saturation_penalty))

    def on_arrival(self, request: Request, now: float, config: ServerConfig) -> list[ScheduleCmd]:
        self.arrivals += 1
        self.arrival_window.record(now)

        if not self.healthy:
            self.errors += 1
            return self.fail(request, FailureReason.UNHEALTHY)

        if self.busy < config.workers:
            self.busy += 1
            return [ScheduleCmd(0.0, self.id, EventKind.PROCESS_START, request)]

        if len(self.queue) < config.backlog_limit:
            self.queue.append(request)
            return []

        self.rejected += 1
        self.errors += 1
        return self.fail(request, FailureReason.BACKLOG_FULL)

    def on_process_start(self, request: Request, now: float, config: ServerConfig) -> list[ScheduleCmd]:
        self.in_service[request.id] = now
        return [ScheduleCmd(self.service_time(config), self.id, EventKind.PROCESS_COMPLETE, request)]

    def on_process_complete(self, request: Request, now: float, config: ServerConfig) -> list[ScheduleCmd]:
        started = self.in_service.pop(request.id, now)
        self.service_window.record(now, now - started)
        self.processed += 1
        self.busy = max(0, self.busy - 1)

        cmds = []
        # Worker count may have changed since these requests were queued.
        while self.queue and self.busy < config.workers:
            self.busy += 1
            cmds.append(ScheduleCmd(0.0, self.id, EventKind.PROCESS_START, self.queue.popleft()))

        if config.failure_probability > 0 and self.rng.random() < config.failure_probability:
            self.errors += 1
            cmds.extend(self.fail(request, FailureReason.SERVER_ERROR))
        elif self.targets:
            cmds.append(self.forward(request, self.targets[0]))
        else:
            cmds.append(ScheduleCmd(0.0, self.id, EventKind.RESPONSE_DEPARTURE, request.succeeded()))
        return cmds

    def on_response_departure(self, request: Request, now: float, config: ServerConfig) -> list[ScheduleCmd]:
        return self.reply(request)

    def on_response_arrival(self, request: Request, now: float, config: ServerConfig) -> list[ScheduleCmd]:
        # Proxy mode: relay the downstream outcome upstream.
        return self.reply(request.pop(self.id))

    def build_snapshot(self, now: float) -> ServerState:
        config = self.config.get()
        p50, p95, p99 = self.service_window.percentiles(now)
        load = occupancy(self.busy, len(self.queue), config.workers, config.backlog_limit)
        handled = self.processed + self.rejected
        return ServerState(
            node_id=self.id,
            kind=self.kind,
            time=now,
            healthy=self.healthy,
            rps=self.arrival_window.rate(now),
            busy_workers=self.busy,
            workers=config.workers,
            queue_depth=len(self.queue),
            backlog_limit=config.backlog_limit,
            processed=self.processed,
            rejected=self.rejected,
            errors=self.errors,
            error_rate=self.errors / handled if handled else 0.0,
            current_penalty=saturation_multiplier(load, config.saturation_penalty),
            p50_ms=p50,
            p95_ms=p95,
            p99_ms=p99,
        )

    def reset_internal_stats(self):
        super().reset_internal_stats()
        self.arrivals = 0
        self.processed = 0
        self.rejected = 0
        self.errors = 0
        self.arrival_window.clear()
        self.service_window.clear()

    def error_count(self) -> int:
        return self.errors

    def active_requests(self) -> int:
        return self.busy + len(self.queue)
