"""
Statistics collection and reporting.

Sliding windows used by nodes to build their display snapshots, the
immutable snapshot types themselves, run-level aggregates, and tabulated
summaries.
"""

from collections import deque
from dataclasses import dataclass, field
from typing import Any, Iterable

import numpy as np
from tabulate import tabulate


RATE_WINDOW_MS = 1000.0
LATENCY_WINDOW_MS = 10_000.0


def percentile(values: Iterable[float], q: float) -> float:
    """q-th percentile (0-100) of ``values``, or 0.0 when there are none."""
    data = np.fromiter(values, dtype=float)
    if data.size == 0:
        return 0.0
    return float(np.percentile(data, q))


class RateWindow:
    """Timestamps of recent occurrences, used for per-second rates."""

    def __init__(self, window_ms: float = RATE_WINDOW_MS):
        self.window_ms = window_ms
        self._times: deque[float] = deque()

    def record(self, now: float):
        self._times.append(now)
        self.expire(now)

    def expire(self, now: float):
        cutoff = now - self.window_ms
        while self._times and self._times[0] < cutoff:
            self._times.popleft()

    def rate(self, now: float) -> float:
        """Occurrences per second over the window ending at ``now``."""
        self.expire(now)
        return len(self._times) * 1000.0 / self.window_ms

    def clear(self):
        self._times.clear()

    def __len__(self):
        return len(self._times)


class LatencyWindow:
    """Recent ``(time, value)`` samples for sliding percentiles."""

    def __init__(self, window_ms: float = LATENCY_WINDOW_MS):
        self.window_ms = window_ms
        self._samples: deque[tuple[float, float]] = deque()

    def record(self, now: float, value: float):
        self._samples.append((now, value))
        self.expire(now)

    def expire(self, now: float):
        cutoff = now - self.window_ms
        while self._samples and self._samples[0][0] < cutoff:
            self._samples.popleft()

    def percentiles(self, now: float, qs: tuple[float, ...] = (50, 95, 99)) -> tuple[float, ...]:
        self.expire(now)
        if not self._samples:
            return tuple(0.0 for _ in qs)
        data = np.array([value for _, value in self._samples], dtype=float)
        return tuple(float(v) for v in np.percentile(data, qs))

    def values(self, now: float) -> list[float]:
        """Samples still inside the window."""
        self.expire(now)
        return [value for _, value in self._samples]

    def mean(self, now: float) -> float:
        self.expire(now)
        if not self._samples:
            return 0.0
        return float(np.mean(self.values(now)))

    def clear(self):
        self._samples.clear()

    def __len__(self):
        return len(self._samples)


# Visual snapshots. Produced by nodes on each stats tick, read by renderers.


@dataclass(frozen=True)
class VisualState:
    """Fields shared by every snapshot."""
    node_id: str
    kind: str
    time: float
    healthy: bool


@dataclass(frozen=True)
class ClientState(VisualState):
    arrival_rate: float = 0.0
    rps: float = 0.0
    sent: int = 0
    succeeded: int = 0
    failed: int = 0
    timed_out: int = 0
    late_responses: int = 0
    in_flight: int = 0
    error_rate: float = 0.0
    p50_ms: float = 0.0
    p95_ms: float = 0.0
    p99_ms: float = 0.0


@dataclass(frozen=True)
class ServerState(VisualState):
    rps: float = 0.0
    busy_workers: int = 0
    workers: int = 0
    queue_depth: int = 0
    backlog_limit: int = 0
    processed: int = 0
    rejected: int = 0
    errors: int = 0
    error_rate: float = 0.0
    current_penalty: float = 1.0
    p50_ms: float = 0.0
    p95_ms: float = 0.0
    p99_ms: float = 0.0


@dataclass(frozen=True)
class LoadBalancerState(VisualState):
    rps: float = 0.0
    strategy: str = ""
    targets: tuple[str, ...] = ()
    loads: tuple[tuple[str, int], ...] = ()
    target_failures: tuple[tuple[str, int], ...] = ()
    ejected: tuple[str, ...] = ()
    total_retries: int = 0
    retry_tokens: float = 0.0
    errors: int = 0
    error_rate: float = 0.0


@dataclass(frozen=True)
class EdgeState(VisualState):
    src: str = ""
    dst: str = ""
    rps: float = 0.0
    delivered: int = 0
    dropped: int = 0
    mean_latency_ms: float = 0.0
    p99_latency_ms: float = 0.0


@dataclass
class RunStatistics:
    """Terminal aggregates of a run."""
    seed: int
    sim_time_ms: float
    events_processed: int
    requests_sent: int = 0
    succeeded: int = 0
    failed: int = 0
    timed_out: int = 0
    late_responses: int = 0
    rejected: int = 0
    retries: int = 0
    dropped: int = 0
    p50_ms: float = 0.0
    p95_ms: float = 0.0
    p99_ms: float = 0.0
    failure_reasons: dict[str, int] = field(default_factory=dict)
    trace_digest: str | None = None

    @property
    def completed(self) -> int:
        return self.succeeded + self.failed

    @property
    def success_rate(self) -> float:
        """Fraction of completed requests that succeeded (1.0 when none completed)."""
        if self.completed == 0:
            return 1.0
        return self.succeeded / self.completed

    def to_dict(self) -> dict[str, Any]:
        return {
            "seed": self.seed,
            "sim_time_ms": self.sim_time_ms,
            "events_processed": self.events_processed,
            "requests_sent": self.requests_sent,
            "succeeded": self.succeeded,
            "failed": self.failed,
            "timed_out": self.timed_out,
            "late_responses": self.late_responses,
            "rejected": self.rejected,
            "retries": self.retries,
            "dropped": self.dropped,
            "success_rate": self.success_rate,
            "p50_ms": self.p50_ms,
            "p95_ms": self.p95_ms,
            "p99_ms": self.p99_ms,
            "failure_reasons": dict(self.failure_reasons),
            "trace_digest": self.trace_digest,
        }


@dataclass(frozen=True)
class MetricPoint:
    """One sample of run-wide throughput and latency."""
    time_ms: float
    p99_ms: float
    success_rps: float
    failure_rps: float


class MetricsCollector:
    """
    Samples run-wide throughput and tail latency over virtual time.

    Rates are smoothed with an exponential moving average so that a chart
    built from the history does not jump on every sample.
    """

    def __init__(self, max_points: int = 300, step_ms: float = 200.0, alpha: float = 0.1):
        self.history: deque[MetricPoint] = deque(maxlen=max_points)
        self.step_ms = step_ms
        self.alpha = alpha
        self._last_sample_time = 0.0
        self._last_success = 0
        self._last_failure = 0
        self._success_rps = 0.0
        self._failure_rps = 0.0

    def due(self, now: float) -> bool:
        return now >= self._last_sample_time + self.step_ms

    def update(self, now: float, success_count: int, failure_count: int, p99_ms: float) -> bool:
        """
        Record a sample if a full step has passed since the previous one.

        Returns:
            True if a point was appended
        """
        if not self.due(now):
            return False

        elapsed_s = (now - self._last_sample_time) / 1000.0
        raw_success = (success_count - self._last_success) / elapsed_s
        raw_failure = (failure_count - self._last_failure) / elapsed_s

        self._success_rps = self._success_rps * (1.0 - self.alpha) + raw_success * self.alpha
        self._failure_rps = self._failure_rps * (1.0 - self.alpha) + raw_failure * self.alpha

        self.history.append(MetricPoint(
            time_ms=now,
            p99_ms=p99_ms,
            success_rps=self._success_rps,
            failure_rps=self._failure_rps,
        ))

        self._last_sample_time = now
        self._last_success = success_count
        self._last_failure = failure_count
        return True

    def reset(self, now: float = 0.0):
        self.history.clear()
        self._last_sample_time = now
        self._last_success = 0
        self._last_failure = 0
        self._success_rps = 0.0
        self._failure_rps = 0.0


class Statistics:
    """
    Statistics reporter.

    Prints run summaries and per-node tables.
    """

    def __init__(self, stats: RunStatistics):
        self.stats = stats

    def print_summary(self):
        """Print summary statistics."""
        s = self.stats

        print("\n" + "="*80)
        print("SIMULATION SUMMARY")
        print("="*80)

        print("\n[Run]")
        print(f"  Seed: {s.seed}")
        print(f"  Virtual time: {s.sim_time_ms / 1000:.2f} s")
        print(f"  Events processed: {s.events_processed}")
        if s.trace_digest:
            print(f"  Trace digest: {s.trace_digest[:16]}")

        print("\n[Requests]")
        print(f"  Sent: {s.requests_sent}")
        print(f"  Succeeded: {s.succeeded}")
        print(f"  Failed: {s.failed} (timed out: {s.timed_out})")
        print(f"  Late responses discarded: {s.late_responses}")
        print(f"  Success rate: {s.success_rate * 100:.2f}%")

        print("\n[Latency]")
        print(f"  p50: {s.p50_ms:.2f} ms")
        print(f"  p95: {s.p95_ms:.2f} ms")
        print(f"  p99: {s.p99_ms:.2f} ms")

        print("\n[Infrastructure]")
        print(f"  Rejected by servers: {s.rejected}")
        print(f"  Load balancer retries: {s.retries}")
        print(f"  Dropped on edges: {s.dropped}")

        if s.failure_reasons:
            print("\n[Failure Reasons]")
            rows = sorted(s.failure_reasons.items())
            print(tabulate(rows, headers=["Reason", "Count"], tablefmt="grid"))

        print("="*80 + "\n")

    @staticmethod
    def print_node_table(snapshots: Iterable[VisualState]):
        """Print one row per node snapshot."""
        rows = []
        for snap in snapshots:
            if snap is None:
                continue
            rows.append([
                snap.node_id,
                snap.kind,
                "yes" if snap.healthy else "NO",
                f"{getattr(snap, 'rps', 0.0):.1f}",
                _node_detail(snap),
            ])

        if not rows:
            print("No node snapshots to display")
            return

        headers = ["Node", "Kind", "Healthy", "RPS", "Detail"]
        print(tabulate(rows, headers=headers, tablefmt="grid"))
        print()

    @staticmethod
    def print_history(collector: MetricsCollector, every: int = 10):
        """Print every ``every``-th point of a collector's history."""
        points = list(collector.history)[::every]
        if not points:
            print("No history to display")
            return
        rows = [
            [f"{p.time_ms / 1000:.1f}", f"{p.success_rps:.1f}", f"{p.failure_rps:.1f}", f"{p.p99_ms:.1f}"]
            for p in points
        ]
        print(tabulate(rows, headers=["t (s)", "ok/s", "fail/s", "p99 (ms)"], tablefmt="grid"))
        print()


def _node_detail(snap: VisualState) -> str:
    if isinstance(snap, ClientState):
        return f"sent={snap.sent} ok={snap.succeeded} fail={snap.failed} p99={snap.p99_ms:.1f}ms"
    if isinstance(snap, ServerState):
        return (f"workers={snap.busy_workers}/{snap.workers} queue={snap.queue_depth}/{snap.backlog_limit} "
                f"rejected={snap.rejected} penalty={snap.current_penalty:.2f}")
    if isinstance(snap, LoadBalancerState):
        loads = ", ".join(f"{tid}:{load}" for tid, load in snap.loads)
        return f"{snap.strategy} loads=[{loads}] retries={snap.total_retries} tokens={snap.retry_tokens:.1f}"
    if isinstance(snap, EdgeState):
        return f"{snap.src}->{snap.dst} delivered={snap.delivered} dropped={snap.dropped}"
    return ""
