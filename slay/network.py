"""
Network topology.

Owns every node and edge of a simulation. Routing adjacency lives in each
node's target list; the topology keeps those lists free of dangling ids and
exposes a read-only health view that nodes consult when choosing targets.
"""

import logging
from typing import Iterator

import networkx as nx

from .components import Client, Edge, edge_id
from .config import EdgeConfig
from .errors import TopologyError
from .node import Node

logger = logging.getLogger(__name__)


class Topology:
    """
    Directed graph of nodes and edges.

    Edges are nodes of their own (see ``Edge``), stored separately and keyed
    by ``"<src>-><dst>"``.
    """

    def __init__(self):
        self.nodes: dict[str, Node] = {}
        self.edges: dict[str, Edge] = {}

    # Nodes

    def add_node(self, node: Node) -> Node:
        """
        Add a node to the topology.

        Raises:
            TopologyError: If the id is taken or the node already targets a
                node outside this topology or a client
        """
        if isinstance(node, Edge):
            raise TopologyError(f"use connect() to add edge {node.id}")
        if node.id in self.nodes or node.id in self.edges:
            raise TopologyError(f"duplicate node id: {node.id}")
        for target in node.targets:
            if not self.require_node(target).accepts_requests:
                raise TopologyError(f"{node.id} cannot target {target}: it does not accept requests")

        self.nodes[node.id] = node
        node.topology = self
        return node

    def remove_node(self, node_id: str) -> Node:
        """
        Remove a node, its edges, and every reference to it.

        Returns:
            The removed node
        """
        node = self.require_node(node_id)

        for edge in [e for e in self.edges.values() if node_id in (e.src, e.dst)]:
            self._drop_edge(edge)
        for other in self.nodes.values():
            if other is not node:
                other.remove_target(node_id)

        del self.nodes[node_id]
        node.topology = None
        logger.debug("Removed node %s", node_id)
        return node

    def get(self, node_id: str) -> Node | None:
        """Node or edge with the given id."""
        node = self.nodes.get(node_id)
        if node is None:
            return self.edges.get(node_id)
        return node

    def require_node(self, node_id: str) -> Node:
        node = self.nodes.get(node_id)
        if node is None:
            raise TopologyError(f"unknown node: {node_id}")
        return node

    def is_node_healthy(self, node_id: str) -> bool:
        node = self.nodes.get(node_id)
        return node is not None and node.is_healthy()

    # Links

    def connect(
        self,
        src: str,
        dst: str,
        edge: EdgeConfig | dict | None = None,
        reverse: EdgeConfig | dict | None = None,
    ) -> list[Edge]:
        """
        Route traffic from ``src`` to ``dst``.

        Args:
            src: Forwarding node
            dst: Node receiving the requests
            edge: Link model for requests (None = direct delivery)
            reverse: Link model for responses (None = direct delivery)

        Returns:
            The edges created, requests first

        Raises:
            TopologyError: If either node is unknown or src == dst
        """
        src_node = self.require_node(src)
        self.require_node(dst)
        src_node.add_target(dst)

        created = []
        if edge is not None:
            created.append(self.add_edge(src, dst, edge))
        if reverse is not None:
            created.append(self.add_edge(dst, src, reverse))
        return created

    def disconnect(self, src: str, dst: str):
        """Stop routing from ``src`` to ``dst`` and drop the edges between them."""
        self.require_node(src).remove_target(dst)
        for key in (edge_id(src, dst), edge_id(dst, src)):
            if key in self.edges:
                self._drop_edge(self.edges[key])

    def add_edge(self, src: str, dst: str, config: EdgeConfig | dict | None = None) -> Edge:
        """
        Place a link model on the path from ``src`` to ``dst``.

        Raises:
            TopologyError: If either node is unknown or the edge exists
        """
        self.require_node(src)
        self.require_node(dst)
        if src == dst:
            raise TopologyError(f"edge {src} -> {dst} is a self-loop")
        key = edge_id(src, dst)
        if key in self.edges:
            raise TopologyError(f"duplicate edge: {key}")
        if isinstance(config, dict):
            config = EdgeConfig.from_dict(config)

        edge = Edge(src, dst, config)
        edge.topology = self
        self.edges[key] = edge
        return edge

    def edge_between(self, src: str, dst: str) -> Edge | None:
        return self.edges.get(edge_id(src, dst))

    def _drop_edge(self, edge: Edge):
        del self.edges[edge.id]
        edge.topology = None

    # Iteration

    def all_nodes(self) -> Iterator[Node]:
        """Nodes in insertion order, then edges in insertion order."""
        yield from list(self.nodes.values())
        yield from list(self.edges.values())

    def nodes_of(self, node_class: type[Node]) -> list[Node]:
        return [node for node in self.nodes.values() if isinstance(node, node_class)]

    def __contains__(self, node_id: str) -> bool:
        return node_id in self.nodes or node_id in self.edges

    def __len__(self):
        return len(self.nodes)

    # Analysis

    def to_graph(self) -> nx.DiGraph:
        """
        Routing graph for analysis.

        Node attributes: ``kind`` and ``healthy``. Graph edges follow target
        lists; an ``edge`` attribute names the link model on that hop, if any.
        """
        graph = nx.DiGraph()
        for node in self.nodes.values():
            graph.add_node(node.id, kind=node.kind, healthy=node.is_healthy())
        for node in self.nodes.values():
            for target in node.targets:
                link = self.edge_between(node.id, target)
                graph.add_edge(node.id, target, edge=link.id if link else None)
        return graph

    def unreachable_nodes(self) -> list[str]:
        """Non-client nodes no client can send traffic to, sorted by id."""
        graph = self.to_graph()
        reached = set()
        for client in self.nodes_of(Client):
            reached.add(client.id)
            reached |= nx.descendants(graph, client.id)
        return sorted(node_id for node_id in self.nodes if node_id not in reached)
