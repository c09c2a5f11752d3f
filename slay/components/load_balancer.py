"""
Load balancer with retries.

Routes each request to one of its targets, tracks in-flight requests per
target, and retries failed attempts with exponential backoff. Retries are
paid for from a token bucket shared by every request passing through the
balancer, which bounds retry storms when many targets fail together.
"""

import heapq
import itertools

from ..config import BalancingStrategy, LoadBalancerConfig
from ..events import EventKind, ScheduleCmd
from ..node import Node
from ..request import FailureReason, Request
from ..statistics import LoadBalancerState, RateWindow


class TokenBucket:
    """
    Refilling retry budget.

    Tokens accrue continuously with virtual time up to the capacity, so the
    number of tokens spent in any window of ``T`` ms is at most
    ``capacity + refill_per_sec * T / 1000``.
    """

    def __init__(self, capacity: float):
        self.tokens = capacity
        self._last_refill = 0.0

    def refill(self, now: float, capacity: float, refill_per_sec: float):
        elapsed = max(0.0, now - self._last_refill)
        self.tokens = min(capacity, self.tokens + refill_per_sec * elapsed / 1000.0)
        self._last_refill = now

    def try_consume(self, now: float, capacity: float, refill_per_sec: float) -> bool:
        """Take one token if available."""
        self.refill(now, capacity, refill_per_sec)
        if self.tokens >= 1.0:
            self.tokens -= 1.0
            return True
        return False


def backoff_delay(config: LoadBalancerConfig, attempt: int) -> float:
    """Delay before retry number ``attempt`` (1-based)."""
    delay = config.retry_backoff_ms * config.backoff_multiplier ** max(0, attempt - 1)
    return min(config.max_backoff_ms, delay)


class LoadBalancer(Node):
    """Distributes traffic to backends."""

    kind = "LoadBalancer"
    config_class = LoadBalancerConfig

    def __init__(self, node_id: str, config: LoadBalancerConfig | None = None):
        super().__init__(node_id, config)
        self.next_rr_idx = 0
        self.loads: dict[str, int] = {}
        self.in_flight: dict[str, tuple[str, Request]] = {}
        self._deadlines: list[tuple[float, int, str]] = []
        self._deadline_seq = itertools.count()
        self.pending_retries: set[str] = set()
        # Attempt numbers set by upstream balancers, restored on the reply
        self.upstream_attempts: dict[str, int] = {}
        self.consecutive_failures: dict[str, int] = {}
        self.target_failures: dict[str, int] = {}
        self.ejected_until: dict[str, float] = {}
        self.bucket = TokenBucket(self.config.get().retry_budget)
        self.total_retries = 0
        self.retry_times: list[float] = []
        self.errors = 0
        self.arrival_window = RateWindow()

    # Target selection

    def is_eligible(self, target: str, now: float) -> bool:
        if self.ejected_until.get(target, float("-inf")) > now:
            return False
        return self.is_node_healthy(target)

    def select_target(self, strategy: BalancingStrategy, now: float) -> str | None:
        """
        Pick a target for the next attempt.

        Returns:
            Target id, or None if no target is eligible
        """
        eligible = [t for t in self.targets if self.is_eligible(t, now)]
        if not eligible:
            return None

        if strategy == BalancingStrategy.RANDOM:
            return eligible[self.rng.randrange(len(eligible))]

        if strategy == BalancingStrategy.LEAST_CONNECTIONS:
            return min(eligible, key=lambda t: (self.loads.get(t, 0), self.targets.index(t)))

        count = len(self.targets)
        for i in range(count):
            idx = (self.next_rr_idx + i) % count
            target = self.targets[idx]
            if target in eligible:
                self.next_rr_idx = (idx + 1) % count
                return target
        return None

    # Event handlers

    def on_arrival(self, request: Request, now: float, config: LoadBalancerConfig) -> list[ScheduleCmd]:
        self._expire_in_flight(now)

        if request.id in self.pending_retries:
            self.pending_retries.discard(request.id)
            if request.is_expired(now):
                self.errors += 1
                return self._fail_upstream(request, FailureReason.TIMEOUT, config.overhead_ms)
        else:
            self.upstream_attempts[request.id] = request.attempt
            request = request.first_attempt()
            self.arrival_window.record(now)

        if not self.healthy:
            self.errors += 1
            return self._fail_upstream(request, FailureReason.UNHEALTHY)

        target = self.select_target(config.strategy, now)
        if target is None:
            self.errors += 1
            return self._fail_upstream(request, FailureReason.NO_HEALTHY_TARGET)

        self.loads[target] = self.loads.get(target, 0) + 1
        self.in_flight[request.id] = (target, request)
        if request.deadline is not None:
            heapq.heappush(self._deadlines, (request.deadline, next(self._deadline_seq), request.id))
        return [self.forward(request, target, config.overhead_ms)]

    def on_response_arrival(self, request: Request, now: float, config: LoadBalancerConfig) -> list[ScheduleCmd]:
        request = request.pop(self.id)
        entry = self.in_flight.pop(request.id, None)
        target = None
        if entry is not None:
            target, sent = entry
            self._release(target)
            # Downstream balancers renumber attempts; ours is the one we sent.
            request = request.with_attempt(sent.attempt)

        if request.is_success:
            if target is not None:
                self.consecutive_failures[target] = 0
            return self.reply(self._restore_attempt(request), config.overhead_ms)

        if target is not None:
            self._record_target_failure(target, now, config)

        if config.max_retries == 0:
            self.errors += 1
            return self.reply(self._restore_attempt(request), config.overhead_ms)

        if (entry is not None
                and request.attempt < config.max_retries
                and not request.is_expired(now)
                and any(self.is_eligible(t, now) for t in self.targets)
                and self.bucket.try_consume(now, config.retry_budget, config.retry_refill_per_sec)):
            retry = request.retried()
            self.total_retries += 1
            self.retry_times.append(now)
            self.pending_retries.add(retry.id)
            return [ScheduleCmd(backoff_delay(config, retry.attempt), self.id, EventKind.ARRIVAL, retry)]

        self.errors += 1
        return self._fail_upstream(request, FailureReason.RETRIES_EXHAUSTED, config.overhead_ms)

    def _restore_attempt(self, request: Request) -> Request:
        return request.with_attempt(self.upstream_attempts.pop(request.id, 0))

    def _fail_upstream(self, request: Request, reason: FailureReason, delay: float = 0.0) -> list[ScheduleCmd]:
        return self.fail(self._restore_attempt(request), reason, delay)

    # Bookkeeping

    def _release(self, target: str):
        if target in self.loads:
            self.loads[target] = max(0, self.loads[target] - 1)

    def _record_target_failure(self, target: str, now: float, config: LoadBalancerConfig):
        self.target_failures[target] = self.target_failures.get(target, 0) + 1
        failures = self.consecutive_failures.get(target, 0) + 1
        if config.eject_after_failures and failures >= config.eject_after_failures:
            self.ejected_until[target] = now + config.eject_duration_ms
            failures = 0
        self.consecutive_failures[target] = failures

    def _expire_in_flight(self, now: float):
        """Forget attempts whose request deadline has passed (lost on the way)."""
        while self._deadlines and self._deadlines[0][0] < now:
            _, _, request_id = heapq.heappop(self._deadlines)
            entry = self.in_flight.get(request_id)
            if entry is not None and entry[1].is_expired(now):
                del self.in_flight[request_id]
                self.upstream_attempts.pop(request_id, None)
                self._release(entry[0])

    def _target_removed(self, target: str):
        self.loads.pop(target, None)
        self.consecutive_failures.pop(target, None)
        self.target_failures.pop(target, None)
        self.ejected_until.pop(target, None)
        for request_id, (tid, _) in list(self.in_flight.items()):
            if tid == target:
                del self.in_flight[request_id]
                self.upstream_attempts.pop(request_id, None)
        if self.targets:
            self.next_rr_idx %= len(self.targets)
        else:
            self.next_rr_idx = 0

    # Snapshots

    def build_snapshot(self, now: float) -> LoadBalancerState:
        config = self.config.get()
        self.bucket.refill(now, config.retry_budget, config.retry_refill_per_sec)
        arrivals = len(self.arrival_window)
        return LoadBalancerState(
            node_id=self.id,
            kind=self.kind,
            time=now,
            healthy=self.healthy,
            rps=self.arrival_window.rate(now),
            strategy=config.strategy.value,
            targets=tuple(self.targets),
            loads=tuple((t, self.loads.get(t, 0)) for t in self.targets),
            target_failures=tuple((t, self.target_failures.get(t, 0)) for t in self.targets),
            ejected=tuple(t for t in self.targets if self.ejected_until.get(t, float("-inf")) > now),
            total_retries=self.total_retries,
            retry_tokens=self.bucket.tokens,
            errors=self.errors,
            error_rate=self.errors / arrivals if arrivals else 0.0,
        )

    def reset_internal_stats(self):
        super().reset_internal_stats()
        self.arrival_window.clear()
        self.target_failures.clear()
        self.total_retries = 0
        self.retry_times.clear()
        self.errors = 0

    def error_count(self) -> int:
        return self.errors

    def active_requests(self) -> int:
        return sum(self.loads.values())
