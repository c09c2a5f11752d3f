"""
Component kinds.

``COMPONENTS`` is the single table of node kinds: it maps each kind name to
its node class and the snapshot type that node publishes.
"""

from typing import Any

from ..config import NodeConfig
from ..errors import ConfigError
from ..node import Node
from ..statistics import ClientState, EdgeState, LoadBalancerState, ServerState, VisualState
from .client import Client
from .edge import Edge, edge_id
from .load_balancer import LoadBalancer, TokenBucket
from .server import Server


COMPONENTS: dict[str, tuple[type[Node], type[VisualState]]] = {
    Client.kind: (Client, ClientState),
    Server.kind: (Server, ServerState),
    LoadBalancer.kind: (LoadBalancer, LoadBalancerState),
    Edge.kind: (Edge, EdgeState),
}


def create_component(kind: str, node_id: str, config: NodeConfig | dict[str, Any] | None = None) -> Node:
    """
    Build a node of the given kind.

    Edges connect two existing nodes and are created through
    ``Topology.connect`` instead.

    Args:
        kind: Registered kind name, e.g. "Server"
        node_id: Id of the new node
        config: Config instance or dict of fields (None = defaults)

    Returns:
        The new node

    Raises:
        ConfigError: If the kind is unknown or the config is invalid
    """
    if kind not in COMPONENTS or kind == Edge.kind:
        choices = ", ".join(k for k in COMPONENTS if k != Edge.kind)
        raise ConfigError("kind", kind, f"must be one of: {choices}")
    node_class, _ = COMPONENTS[kind]
    if isinstance(config, dict):
        config = node_class.config_class.from_dict(config)
    return node_class(node_id, config)


def snapshot_type(kind: str) -> type[VisualState]:
    """Snapshot class published by nodes of ``kind``."""
    return COMPONENTS[kind][1]


__all__ = [
    "COMPONENTS",
    "Client",
    "Server",
    "LoadBalancer",
    "TokenBucket",
    "Edge",
    "edge_id",
    "create_component",
    "snapshot_type",
]
