"""
Slay: deterministic discrete event simulation of serving systems.

Models clients generating load, servers with worker pools and backlogs,
load balancers with retries and backoff, and lossy network links, driven by
a seeded virtual-time event loop so every run can be replayed exactly.
"""

from .events import EventQueue, Event, EventKind, ScheduleCmd, Tick
from .request import Request, RequestStatus, FailureReason
from .config import (
    ConfigHandle,
    ClientConfig,
    ServerConfig,
    LoadBalancerConfig,
    EdgeConfig,
    BalancingStrategy,
    ArrivalProcess,
    JitterMode,
)
from .errors import SlayError, CausalityError, ConfigError, TopologyError
from .node import Node
from .components import (
    COMPONENTS,
    Client,
    Server,
    LoadBalancer,
    TokenBucket,
    Edge,
    create_component,
)
from .network import Topology
from .engine import Simulation
from .rng import derive_seed
from .statistics import (
    Statistics,
    MetricsCollector,
    RunStatistics,
    VisualState,
    ClientState,
    ServerState,
    LoadBalancerState,
    EdgeState,
)
from .harness import TestHarness, build_simulation, run_scenario

__version__ = "0.1.0"
__all__ = [
    "EventQueue",
    "Event",
    "EventKind",
    "ScheduleCmd",
    "Tick",
    "Request",
    "RequestStatus",
    "FailureReason",
    "ConfigHandle",
    "ClientConfig",
    "ServerConfig",
    "LoadBalancerConfig",
    "EdgeConfig",
    "BalancingStrategy",
    "ArrivalProcess",
    "JitterMode",
    "SlayError",
    "CausalityError",
    "ConfigError",
    "TopologyError",
    "Node",
    "COMPONENTS",
    "Client",
    "Server",
    "LoadBalancer",
    "TokenBucket",
    "Edge",
    "create_component",
    "Topology",
    "Simulation",
    "derive_seed",
    "Statistics",
    "MetricsCollector",
    "RunStatistics",
    "VisualState",
    "ClientState",
    "ServerState",
    "LoadBalancerState",
    "EdgeState",
    "TestHarness",
    "build_simulation",
    "run_scenario",
]
