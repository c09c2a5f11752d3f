"""
Load-generating client.

Requests enter the system through self-addressed arrival events spaced by
the configured rate. The client owns the terminal outcome of each request
it creates: success, failure, or timeout, whichever is decided first.
"""

from ..config import ArrivalProcess, ClientConfig
from ..events import EventKind, ScheduleCmd, Tick
from ..node import Node
from ..request import FailureReason, Request
from ..statistics import ClientState, LatencyWindow, RateWindow

IDLE_POLL_MS = 1000.0


class Client(Node):
    """External load source sending requests to a single target."""

    kind = "Client"
    config_class = ClientConfig
    max_targets = 1
    accepts_requests = False

    def __init__(self, node_id: str, config: ClientConfig | None = None):
        super().__init__(node_id, config)
        self.request_counter = 0
        self.generation = 0
        self.outstanding: dict[str, Request] = {}
        self.sent = 0
        self.succeeded = 0
        self.failed = 0
        self.timed_out = 0
        self.late_responses = 0
        self.failure_reasons: dict[FailureReason, int] = {}
        self.latencies: list[float] = []
        self.send_window = RateWindow()
        self.latency_window = LatencyWindow()

    def wake_up(self, now: float) -> list[ScheduleCmd]:
        return [ScheduleCmd(0.0, self.id, EventKind.ARRIVAL, Tick(generation=self.generation))]

    def next_interval(self, config: ClientConfig) -> float:
        """Milliseconds until the next request."""
        if config.arrival_rate <= 0:
            return IDLE_POLL_MS
        mean_ms = 1000.0 / config.arrival_rate
        if config.arrival_process == ArrivalProcess.POISSON:
            return self.rng.expovariate(1.0 / mean_ms)
        jitter = config.arrival_jitter
        return mean_ms * self.rng.uniform(1.0 - jitter, 1.0 + jitter)

    def on_arrival(self, payload, now: float, config: ClientConfig) -> list[ScheduleCmd]:
        if not isinstance(payload, Tick) or payload.generation != self.generation:
            return []

        # Drawn even when no request is sent.
        cmds = [ScheduleCmd(self.next_interval(config), self.id, EventKind.ARRIVAL, payload)]

        if not self.healthy or config.arrival_rate <= 0 or not self.targets:
            return cmds

        self.request_counter += 1
        deadline = now + config.timeout_ms if config.timeout_ms is not None else None
        request = Request(
            id=f"{self.id}:{self.request_counter}",
            origin=self.id,
            created_at=now,
            deadline=deadline,
        )
        self.outstanding[request.id] = request
        self.sent += 1
        self.send_window.record(now)

        cmds.append(self.forward(request, self.targets[0]))
        if deadline is not None:
            cmds.append(ScheduleCmd(config.timeout_ms, self.id, EventKind.TIMEOUT, request.id))
        return cmds

    def apply_config(self, data) -> list[ScheduleCmd]:
        """
        Replace configuration fields and restart generation at the new rate.

        The arrival already scheduled under the old rate is left in the queue
        and ignored when it fires.
        """
        super().apply_config(data)
        self.generation += 1
        return [ScheduleCmd(0.0, self.id, EventKind.ARRIVAL, Tick(generation=self.generation))]

    def on_response_arrival(self, request: Request, now: float, config: ClientConfig) -> list[ScheduleCmd]:
        request = request.pop(self.id)
        if self.outstanding.pop(request.id, None) is None:
            # Already timed out; the outcome was counted then.
            self.late_responses += 1
            return []

        if request.is_success:
            latency = now - request.created_at
            self.succeeded += 1
            self.latencies.append(latency)
            self.latency_window.record(now, latency)
        else:
            self._record_failure(request.failure_reason)
        return []

    def on_timeout(self, request_id: str, now: float, config: ClientConfig) -> list[ScheduleCmd]:
        if self.outstanding.pop(request_id, None) is None:
            return []
        self.timed_out += 1
        self._record_failure(FailureReason.TIMEOUT)
        return []

    def _record_failure(self, reason: FailureReason | None):
        self.failed += 1
        if reason is not None:
            self.failure_reasons[reason] = self.failure_reasons.get(reason, 0) + 1

    def build_snapshot(self, now: float) -> ClientState:
        p50, p95, p99 = self.latency_window.percentiles(now)
        completed = self.succeeded + self.failed
        return ClientState(
            node_id=self.id,
            kind=self.kind,
            time=now,
            healthy=self.healthy,
            arrival_rate=self.config.get().arrival_rate,
            rps=self.send_window.rate(now) if self.healthy else 0.0,
            sent=self.sent,
            succeeded=self.succeeded,
            failed=self.failed,
            timed_out=self.timed_out,
            late_responses=self.late_responses,
            in_flight=len(self.outstanding),
            error_rate=self.failed / completed if completed else 0.0,
            p50_ms=p50,
            p95_ms=p95,
            p99_ms=p99,
        )

    def reset_internal_stats(self):
        super().reset_internal_stats()
        # Outstanding requests stay tracked so their outcome is not lost.
        self.sent = 0
        self.succeeded = 0
        self.failed = 0
        self.timed_out = 0
        self.late_responses = 0
        self.failure_reasons.clear()
        self.latencies.clear()
        self.send_window.clear()
        self.latency_window.clear()

    def error_count(self) -> int:
        return self.failed

    def active_requests(self) -> int:
        return len(self.outstanding)
