"""
Storage package - In-memory registries for graphs and runs.
"""

from stepgraph.storage.memory import (
    GraphStorage,
    RunStorage,
    StoredGraph,
    StoredRun,
    graph_storage,
    run_storage,
)

__all__ = [
    "GraphStorage",
    "RunStorage",
    "StoredGraph",
    "StoredRun",
    "graph_storage",
    "run_storage",
]
