"""
Mermaid diagrams for workflow graphs.

Rendering only reads the graph's public accessors, so it works for any
GraphDefinition and for the execution paths reported by runs.
"""

from typing import List, Sequence

from stepgraph.engine.graph import Edge, GraphDefinition


EXECUTED_NODE_STYLE = "fill:#FF6666,stroke:#990000,color:white,stroke-width:2px"
EXECUTED_EDGE_STYLE = "stroke:#FF0000,stroke-width:2px"


def _node_lines(graph: GraphDefinition) -> List[str]:
    lines = []
    for node_id in sorted(graph.nodes()):
        shape = '(["Start"])' if node_id == graph.start_node_id else f'["{node_id}"]'
        lines.append(f"    {node_id}{shape};")
    return lines


def _edge_line(edge: Edge) -> str:
    arrow = "-.->" if edge.is_conditional else "-->"
    label = edge.label or "flow"
    return f'    {edge.source} {arrow}|"{label}"| {edge.target};'


def to_mermaid(graph: GraphDefinition) -> str:
    """Generate a Mermaid diagram of the graph."""
    lines = ["graph TD;"]
    lines.extend(_node_lines(graph))
    lines.extend(_edge_line(edge) for edge in graph.edges())
    return "\n".join(lines)


def to_mermaid_with_path(graph: GraphDefinition, execution_path: Sequence[str]) -> str:
    """
    Generate a Mermaid diagram with an execution path highlighted.

    Visited nodes get the ``executedNode`` class; edges between
    consecutive path entries are styled with ``linkStyle``.
    """
    lines = [
        "graph TD;",
        f"    classDef executedNode {EXECUTED_NODE_STYLE};",
    ]
    lines.extend(_node_lines(graph))

    edges = graph.edges()
    lines.extend(_edge_line(edge) for edge in edges)

    if execution_path:
        visited = list(dict.fromkeys(execution_path))
        lines.append(f"    class {','.join(visited)} executedNode;")

    # Mermaid addresses links by declaration index
    traversed = set(zip(execution_path, execution_path[1:]))
    indices = [
        str(index) for index, edge in enumerate(edges)
        if (edge.source, edge.target) in traversed
    ]
    if indices:
        lines.append(f"    linkStyle {','.join(indices)} {EXECUTED_EDGE_STYLE};")

    return "\n".join(lines)
