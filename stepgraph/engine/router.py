"""
Edge routing.

Only one edge is ever taken per step, even when several leave the same
node: the first edge (in declaration order) whose condition is absent or
true wins. No matching edge means the run has reached its natural end.
"""

from typing import Any, Dict, Optional
import logging

from stepgraph.engine.graph import GraphDefinition


logger = logging.getLogger(__name__)


class Router:
    """Selects the next node id for a finished step."""

    def __init__(self, graph: GraphDefinition, logger: logging.Logger = logger):
        self.graph = graph
        self.logger = logger

    def next_node(self, current_node: str, context: Dict[str, Any]) -> Optional[str]:
        """
        Get the next node to execute.

        Args:
            current_node: Id of the node that just finished
            context: Context after merging that node's delta

        Returns:
            Target node id, or None when the workflow should terminate
        """
        candidates = self.graph.outgoing_edges(current_node)
        self.logger.debug(f"Found {len(candidates)} possible edges from node '{current_node}'")

        for edge in candidates:
            if not edge.is_conditional:
                self.logger.debug(f"Taking unconditional edge: {current_node} -> {edge.target}")
                return edge.target
            if edge.matches(context):
                self.logger.debug(f"Condition satisfied for edge: {current_node} -> {edge.target}")
                return edge.target
            self.logger.debug(f"Condition failed for edge: {current_node} -> {edge.target}")

        self.logger.debug(f"No valid edges found from node '{current_node}'")
        return None
