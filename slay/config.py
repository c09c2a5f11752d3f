"""
Node configuration.

Each node kind has a frozen configuration dataclass that validates itself on
construction. Nodes hold their configuration through a ``ConfigHandle``,
the one piece of state shared with whatever edits parameters live: writers
swap in a whole new value, readers take one reference per event.
"""

import dataclasses
import threading
from dataclasses import dataclass
from enum import Enum
from typing import Any, Generic, TypeVar

from .errors import ConfigError


class BalancingStrategy(Enum):
    """Load balancer target selection strategies."""
    ROUND_ROBIN = "round_robin"
    RANDOM = "random"
    LEAST_CONNECTIONS = "least_connections"


class ArrivalProcess(Enum):
    """Inter-arrival time distributions for clients."""
    UNIFORM = "uniform"  # Fixed interval with +/- jitter
    POISSON = "poisson"  # Exponential inter-arrival times


class JitterMode(Enum):
    """How an edge draws its latency jitter."""
    NORMAL = "normal"    # Gaussian with jitter_ms as stddev
    UNIFORM = "uniform"  # Uniform in [0, jitter_ms]


def _require(condition: bool, field: str, value: Any, reason: str):
    if not condition:
        raise ConfigError(field, value, reason)


def _probability(field: str, value: float):
    _require(0.0 <= value <= 1.0, field, value, "must be between 0 and 1")


def _non_negative(field: str, value: float):
    _require(value >= 0, field, value, "must be >= 0")


def _enum(enum_cls: type[Enum], field: str, value: Any) -> Enum:
    if isinstance(value, enum_cls):
        return value
    try:
        return enum_cls(value)
    except ValueError:
        choices = ", ".join(member.value for member in enum_cls)
        raise ConfigError(field, value, f"must be one of: {choices}") from None


class NodeConfig:
    """Shared helpers for the config dataclasses below."""

    def _coerce_enum(self, name: str, enum_cls: type[Enum]):
        object.__setattr__(self, name, _enum(enum_cls, name, getattr(self, name)))

    def to_dict(self) -> dict[str, Any]:
        """Encode as a plain dict; enums become their values."""
        data = dataclasses.asdict(self)
        return {
            key: value.value if isinstance(value, Enum) else value
            for key, value in data.items()
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]):
        """
        Build a config from a dict.

        Raises:
            ConfigError: On unknown fields or out-of-domain values
        """
        known = {f.name for f in dataclasses.fields(cls)}
        for key in data:
            if key not in known:
                raise ConfigError(key, data[key], f"unknown field for {cls.__name__}")
        try:
            return cls(**data)
        except TypeError as exc:
            raise ConfigError(cls.__name__, data, str(exc)) from exc

    def merged(self, changes: dict[str, Any]):
        """Return a validated copy with ``changes`` applied over this config."""
        return self.from_dict({**self.to_dict(), **changes})


@dataclass(frozen=True)
class ClientConfig(NodeConfig):
    """
    Configuration for a load-generating client.

    Attributes:
        arrival_rate: Requests per second (0 = idle)
        timeout_ms: Per-request deadline (None = wait forever)
        arrival_process: Inter-arrival distribution
        arrival_jitter: Relative jitter for the uniform process (0.05 = +/-5%)
    """
    arrival_rate: float = 5.0
    timeout_ms: float | None = 5000.0
    arrival_process: ArrivalProcess = ArrivalProcess.UNIFORM
    arrival_jitter: float = 0.05

    def __post_init__(self):
        _non_negative("arrival_rate", self.arrival_rate)
        if self.timeout_ms is not None:
            _require(self.timeout_ms > 0, "timeout_ms", self.timeout_ms, "must be > 0 or None")
        _require(0.0 <= self.arrival_jitter < 1.0, "arrival_jitter", self.arrival_jitter, "must be in [0, 1)")
        self._coerce_enum("arrival_process", ArrivalProcess)


@dataclass(frozen=True)
class ServerConfig(NodeConfig):
    """
    Configuration for a server with a worker pool and a backlog.

    Attributes:
        service_time_ms: Mean time to process one request
        workers: Number of requests processed concurrently
        backlog_limit: Maximum number of queued requests
        failure_probability: Probability a processed request fails
        saturation_penalty: Service time inflation at full occupancy
            (multiplier is ``1 + occupancy**2 * saturation_penalty``)
        service_jitter: Relative service time jitter (0.05 = +/-5%)
    """
    service_time_ms: float = 200.0
    workers: int = 4
    backlog_limit: int = 50
    failure_probability: float = 0.0
    saturation_penalty: float = 0.0
    service_jitter: float = 0.05

    def __post_init__(self):
        _non_negative("service_time_ms", self.service_time_ms)
        _require(isinstance(self.workers, int) and self.workers >= 1, "workers", self.workers, "must be an integer >= 1")
        _require(isinstance(self.backlog_limit, int) and self.backlog_limit >= 0, "backlog_limit", self.backlog_limit, "must be an integer >= 0")
        _probability("failure_probability", self.failure_probability)
        _non_negative("saturation_penalty", self.saturation_penalty)
        _require(0.0 <= self.service_jitter < 1.0, "service_jitter", self.service_jitter, "must be in [0, 1)")


@dataclass(frozen=True)
class LoadBalancerConfig(NodeConfig):
    """
    Configuration for a load balancer.

    Attributes:
        strategy: Target selection strategy
        overhead_ms: Forwarding delay added in each direction
        max_retries: Retries per request (0 disables retries)
        retry_budget: Token bucket capacity shared by all requests
        retry_refill_per_sec: Tokens added per second of virtual time
        retry_backoff_ms: Delay before the first retry
        backoff_multiplier: Growth factor of the delay per attempt
        max_backoff_ms: Upper bound on the retry delay
        eject_after_failures: Consecutive failures that eject a target (0 = never)
        eject_duration_ms: How long an ejected target is skipped
    """
    strategy: BalancingStrategy = BalancingStrategy.ROUND_ROBIN
    overhead_ms: float = 2.0
    max_retries: int = 0
    retry_budget: float = 10.0
    retry_refill_per_sec: float = 1.0
    retry_backoff_ms: float = 10.0
    backoff_multiplier: float = 2.0
    max_backoff_ms: float = 1000.0
    eject_after_failures: int = 0
    eject_duration_ms: float = 1000.0

    def __post_init__(self):
        self._coerce_enum("strategy", BalancingStrategy)
        _non_negative("overhead_ms", self.overhead_ms)
        _require(isinstance(self.max_retries, int) and self.max_retries >= 0, "max_retries", self.max_retries, "must be an integer >= 0")
        _non_negative("retry_budget", self.retry_budget)
        _non_negative("retry_refill_per_sec", self.retry_refill_per_sec)
        _non_negative("retry_backoff_ms", self.retry_backoff_ms)
        _require(self.backoff_multiplier >= 1.0, "backoff_multiplier", self.backoff_multiplier, "must be >= 1")
        _require(self.max_backoff_ms >= self.retry_backoff_ms, "max_backoff_ms", self.max_backoff_ms, "must be >= retry_backoff_ms")
        _require(isinstance(self.eject_after_failures, int) and self.eject_after_failures >= 0, "eject_after_failures", self.eject_after_failures, "must be an integer >= 0")
        _non_negative("eject_duration_ms", self.eject_duration_ms)


@dataclass(frozen=True)
class EdgeConfig(NodeConfig):
    """
    Configuration for a one-way network link.

    Attributes:
        latency_ms: Base one-way latency
        jitter_ms: Jitter scale (stddev in normal mode, width in uniform mode)
        loss_probability: Probability an event is dropped
        jitter_mode: Jitter distribution
    """
    latency_ms: float = 10.0
    jitter_ms: float = 0.0
    loss_probability: float = 0.0
    jitter_mode: JitterMode = JitterMode.NORMAL

    def __post_init__(self):
        _non_negative("latency_ms", self.latency_ms)
        _non_negative("jitter_ms", self.jitter_ms)
        _probability("loss_probability", self.loss_probability)
        self._coerce_enum("jitter_mode", JitterMode)


C = TypeVar("C", bound=NodeConfig)


class ConfigHandle(Generic[C]):
    """
    Synchronized holder for a node's current configuration.

    The value is immutable, so a reader holding a reference always sees a
    consistent set of fields; writers replace the whole value under a lock.
    """

    def __init__(self, config: C):
        self._lock = threading.Lock()
        self._config = config
        self._version = 0

    def get(self) -> C:
        """Current configuration."""
        with self._lock:
            return self._config

    def replace(self, config: C):
        """Atomically install a new configuration of the same type."""
        with self._lock:
            if type(config) is not type(self._config):
                raise ConfigError("config", config, f"expected {type(self._config).__name__}")
            self._config = config
            self._version += 1

    def update(self, **changes) -> C:
        """
        Merge ``changes`` over the current value and install the result.

        Raises:
            ConfigError: If the merged config is invalid; nothing is changed
        """
        with self._lock:
            new_config = self._config.merged(changes)
            self._config = new_config
            self._version += 1
            return new_config

    @property
    def version(self) -> int:
        """Number of replacements so far."""
        return self._version
