"""
Graph Definition for Workflow Engine.

The GraphDefinition is the static structure of a workflow: a registry of
nodes, an ordered list of edges, a start node and the context key that
holds the final output. It is built once and read by every run.
"""

from typing import Any, Callable, Dict, Iterable, List, Optional, Set, Union
from dataclasses import dataclass
import logging
import threading
import uuid

from stepgraph.engine.errors import GraphFrozenError
from stepgraph.engine.node import Node


logger = logging.getLogger(__name__)

Condition = Callable[[Dict[str, Any]], bool]
Component = Union[Node, "Edge"]


@dataclass(frozen=True)
class Edge:
    """
    A directed, optionally conditional transition between two node ids.

    An edge without a condition always matches. Edges are evaluated in
    declaration order, so the first matching edge wins.
    """
    source: str
    target: str
    condition: Optional[Condition] = None
    label: str = ""

    @property
    def is_conditional(self) -> bool:
        return self.condition is not None

    def matches(self, context: Dict[str, Any]) -> bool:
        """Whether this edge may be taken for the given context."""
        if self.condition is None:
            return True
        return bool(self.condition(context))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "source": self.source,
            "target": self.target,
            "label": self.label,
            "conditional": self.is_conditional,
        }


class GraphDefinition:
    """
    A workflow graph consisting of nodes and edges.

    Nodes and edges may be appended until the first run; after that the
    definition is frozen and can be shared freely between concurrent runs.

    Duplicate node ids overwrite the earlier registration, and edges may
    name node ids that were never registered. Both are only noticed when
    a run actually reaches them.

    Attributes:
        start_node_id: Id of the first node to execute
        output_key: Context key whose value is the run's result
        graph_id: Unique identifier for this graph
        name: Human-readable name
        description: What the workflow does
    """

    def __init__(
        self,
        start_node_id: str,
        output_key: str,
        components: Optional[Iterable[Component]] = None,
        graph_id: Optional[str] = None,
        name: str = "Unnamed Workflow",
        description: str = "",
    ):
        self.start_node_id = start_node_id
        self.output_key = output_key
        self.graph_id = graph_id or str(uuid.uuid4())
        self.name = name
        self.description = description

        self._nodes: Dict[str, Node] = {}
        self._edges: List[Edge] = []
        self._frozen = False
        self._lock = threading.Lock()

        for component in components or ():
            if isinstance(component, Node):
                self.add_node(component)
            elif isinstance(component, Edge):
                self.add_edge(component)
            else:
                raise TypeError(
                    f"Graph components must be Node or Edge, got {type(component).__name__}"
                )

    @property
    def frozen(self) -> bool:
        return self._frozen

    def freeze(self) -> None:
        """Make the definition read-only. Called by the executor on first run."""
        with self._lock:
            self._frozen = True

    def add_node(self, node: Node) -> "GraphDefinition":
        """
        Register a node.

        Returns:
            Self for chaining
        """
        with self._lock:
            self._check_mutable()
            if node.id in self._nodes:
                logger.debug(f"Node '{node.id}' registered twice, keeping the latest")
            self._nodes[node.id] = node
        return self

    def add_edge(self, edge: Edge) -> "GraphDefinition":
        """
        Append an edge. Order of insertion is the routing order.

        Returns:
            Self for chaining
        """
        with self._lock:
            self._check_mutable()
            self._edges.append(edge)
        return self

    def _check_mutable(self) -> None:
        if self._frozen:
            raise GraphFrozenError(
                f"Graph '{self.name}' is frozen; it cannot change after its first run"
            )

    def nodes(self) -> Set[str]:
        """Ids of all registered nodes (no particular order)."""
        return set(self._nodes)

    def edges(self) -> List[Edge]:
        """All edges in declaration order."""
        return list(self._edges)

    def get_node(self, node_id: str) -> Optional[Node]:
        return self._nodes.get(node_id)

    def has_node(self, node_id: str) -> bool:
        return node_id in self._nodes

    def outgoing_edges(self, node_id: str) -> List[Edge]:
        """Edges leaving ``node_id``, in declaration order."""
        return [edge for edge in self._edges if edge.source == node_id]

    def to_dict(self) -> Dict[str, Any]:
        """Serialize the graph structure to a dictionary."""
        return {
            "graph_id": self.graph_id,
            "name": self.name,
            "description": self.description,
            "nodes": {node_id: node.to_dict() for node_id, node in self._nodes.items()},
            "edges": [edge.to_dict() for edge in self._edges],
            "start_node_id": self.start_node_id,
            "output_key": self.output_key,
        }

    def __repr__(self) -> str:
        return (
            f"GraphDefinition(name='{self.name}', nodes={sorted(self._nodes)}, "
            f"start='{self.start_node_id}')"
        )


class GraphBuilder:
    """
    Explicit builder for a GraphDefinition.

    Usage:
        graph = (
            GraphBuilder(start="analyze", output_key="answer", name="Research")
            .add_node(analyze)
            .add_node(answer)
            .add_edge("analyze", "answer", label="Answer")
            .build()
        )
    """

    def __init__(
        self,
        start: str,
        output_key: str,
        name: str = "Unnamed Workflow",
        description: str = "",
        graph_id: Optional[str] = None,
    ):
        self._start = start
        self._output_key = output_key
        self._name = name
        self._description = description
        self._graph_id = graph_id
        self._components: List[Component] = []

    def add_node(self, node: Node) -> "GraphBuilder":
        self._components.append(node)
        return self

    def add_edge(
        self,
        source: str,
        target: str,
        condition: Optional[Condition] = None,
        label: str = "",
    ) -> "GraphBuilder":
        self._components.append(Edge(source, target, condition, label))
        return self

    def add_edges(self, *edges: Edge) -> "GraphBuilder":
        """Append prebuilt edges, keeping their order."""
        self._components.extend(edges)
        return self

    def build(self) -> GraphDefinition:
        return GraphDefinition(
            start_node_id=self._start,
            output_key=self._output_key,
            components=self._components,
            graph_id=self._graph_id,
            name=self._name,
            description=self._description,
        )
