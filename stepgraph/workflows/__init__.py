"""
Workflows package - Demo workflow implementations.
"""

import logging

from stepgraph.storage.memory import graph_storage
from stepgraph.workflows.examples import (
    create_conditional_workflow,
    create_retry_workflow,
    create_simple_workflow,
)
from stepgraph.workflows.research import create_research_workflow


logger = logging.getLogger(__name__)


async def register_demo_workflows() -> None:
    """Register all demo workflows in the global graph storage."""
    for graph in (
        create_simple_workflow(),
        create_conditional_workflow(),
        create_retry_workflow(),
        create_research_workflow(),
    ):
        await graph_storage.save(graph)
        logger.info(f"Registered demo workflow: {graph.graph_id}")


__all__ = [
    "create_simple_workflow",
    "create_conditional_workflow",
    "create_retry_workflow",
    "create_research_workflow",
    "register_demo_workflows",
]
