"""
Small demo workflows.

Each factory returns a fresh GraphDefinition:
1. simple      - linear start -> analyze -> process
2. conditional - branch on input length
3. retry       - flaky service with retry and a cached fallback
"""

from typing import Any, Dict, Optional
import logging
import random

from stepgraph.config import settings
from stepgraph.engine.graph import Edge, GraphDefinition
from stepgraph.engine.node import node


logger = logging.getLogger(__name__)


class ServiceUnavailableError(RuntimeError):
    """Raised by the simulated unreliable service."""


# ============================================================
# Simple linear workflow
# ============================================================

@node("start", description="Initialize the run")
def start_node(context: Dict[str, Any]) -> Dict[str, Any]:
    logger.info("Starting process...")
    return {"input": str(context.get("input", "")), "stage": "initialized"}


@node("analyze", description="Analyze the input")
def analyze_node(context: Dict[str, Any]) -> Dict[str, Any]:
    text = context["input"]
    logger.info("Analyzing input...")
    return {
        "analysis": f"Input '{text}' has {len(text)} characters",
        "stage": "analyzed",
    }


@node("process", description="Produce the result")
def process_node(context: Dict[str, Any]) -> Dict[str, Any]:
    logger.info("Processing...")
    return {"result": f"Processed: {context['analysis']}", "stage": "completed"}


def create_simple_workflow(graph_id: str = "simple") -> GraphDefinition:
    """Linear three-step workflow producing ``result``."""
    return GraphDefinition(
        start_node_id="start",
        output_key="result",
        graph_id=graph_id,
        name="Simple Workflow",
        description="Linear start -> analyze -> process pipeline",
        components=[
            start_node,
            analyze_node,
            process_node,
            Edge("start", "analyze", label="Initialize"),
            Edge("analyze", "process", label="Process"),
        ],
    )


# ============================================================
# Conditional workflow
# ============================================================

LONG_INPUT_THRESHOLD = 10


@node("start", description="Classify the input by length")
def classify_node(context: Dict[str, Any]) -> Dict[str, Any]:
    text = str(context.get("input", ""))
    is_long = len(text) > LONG_INPUT_THRESHOLD
    logger.info(f"Input is {'long' if is_long else 'short'}")
    return {"input": text, "is_long": is_long}


@node("short_path", description="Quick processing")
def short_path_node(context: Dict[str, Any]) -> Dict[str, Any]:
    return {"result": "Quick processing for short input"}


@node("long_path", description="Detailed processing")
def long_path_node(context: Dict[str, Any]) -> Dict[str, Any]:
    return {"result": "Thorough processing for long input"}


def create_conditional_workflow(graph_id: str = "conditional") -> GraphDefinition:
    """Branches to ``short_path`` or ``long_path`` on input length."""
    return GraphDefinition(
        start_node_id="start",
        output_key="result",
        graph_id=graph_id,
        name="Conditional Workflow",
        description="Chooses a branch based on input length",
        components=[
            classify_node,
            short_path_node,
            long_path_node,
            Edge("start", "short_path", lambda c: not c.get("is_long", False), "Short input"),
            Edge("start", "long_path", lambda c: c.get("is_long", False), "Long input"),
        ],
    )


# ============================================================
# Retry & fallback workflow
# ============================================================

def create_retry_workflow(
    graph_id: str = "retry",
    failure_rate: Optional[float] = None,
    rng: Optional[random.Random] = None,
    retry_delay: float = 0.5,
) -> GraphDefinition:
    """
    Calls a flaky service up to three times, falling back to cached data.

    Args:
        graph_id: Registry id for the graph
        failure_rate: Probability that a single service call fails
        rng: Random source (seed it for reproducible runs)
        retry_delay: Seconds between service attempts
    """
    if failure_rate is None:
        failure_rate = settings.DEMO_FAILURE_RATE
    rng = rng or random.Random()

    @node("start")
    def start(context: Dict[str, Any]) -> Dict[str, Any]:
        return {"input": str(context.get("input", "")), "attempts": 0}

    @node("unreliable_service", description="Call a service that fails intermittently")
    def unreliable_service(context: Dict[str, Any]) -> Dict[str, Any]:
        logger.info("Calling unreliable service...")
        if rng.random() < failure_rate:
            raise ServiceUnavailableError("Service temporarily unavailable")
        return {"service_result": "Service call successful!", "stage": "service_completed"}

    def use_cached_data(error: BaseException, context: Dict[str, Any]) -> Dict[str, Any]:
        logger.info(f"Using fallback strategy after: {error}")
        return {
            "result": "Fallback: Used cached data instead of live service",
            "stage": "fallback_used",
        }

    @node("process_result")
    def process_result(context: Dict[str, Any]) -> Dict[str, Any]:
        return {"result": f"Success: {context['service_result']}", "stage": "completed"}

    return GraphDefinition(
        start_node_id="start",
        output_key="result",
        graph_id=graph_id,
        name="Retry Workflow",
        description="Retries a flaky service and falls back to cached data",
        components=[
            start,
            unreliable_service
                .with_retry(3, delay=retry_delay)
                .with_failure_handler(use_cached_data),
            process_result,
            Edge("start", "unreliable_service"),
            Edge(
                "unreliable_service", "process_result",
                lambda c: "service_result" in c, "Service succeeded",
            ),
        ],
    )
