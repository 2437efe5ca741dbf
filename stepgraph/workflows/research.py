"""
Research Agent Workflow.

A larger demo showing branching, a search step guarded by timeout and
fallback, and a two-way hop between evaluation nodes:

1. Analyze the query
2. Search (refining the search when result quality is low)
3. Extract information
4. Evaluate sources and look up context (in either order)
5. Draft, refine and format the answer

Search failures are absorbed into an ``error`` key and routed to an
error-handling node that still produces ``final_answer``.
"""

from typing import Any, Dict, Optional
from datetime import datetime
import asyncio
import logging
import random

from stepgraph.engine.graph import GraphBuilder, GraphDefinition
from stepgraph.engine.node import node


logger = logging.getLogger(__name__)

REFINEMENT_QUALITY_THRESHOLD = 0.7
DRAFT_QUALITY_THRESHOLD = 0.8

QUERY_TYPES = (
    ("how", "procedural"),
    ("why", "explanatory"),
    ("when", "temporal"),
    ("what", "factual"),
)


# ============================================================
# Node Handlers
# ============================================================

@node("start", description="Initialize the research run")
def start(context: Dict[str, Any]) -> Dict[str, Any]:
    logger.info("Initializing research workflow...")
    return {
        "query": str(context.get("input", "")),
        "stage": "initialized",
        "timestamp": datetime.now().isoformat(),
    }


@node("query_analysis", description="Extract key terms and classify the query")
def query_analysis(context: Dict[str, Any]) -> Dict[str, Any]:
    query = context["query"]
    logger.info(f"Analyzing query: {query}")

    key_terms = [word.lower() for word in query.split() if len(word) > 3]
    lowered = query.lower()
    query_type = next(
        (kind for marker, kind in QUERY_TYPES if marker in lowered),
        "general",
    )

    return {
        "query_type": query_type,
        "key_terms": key_terms,
        "stage": "query_analyzed",
        "requires_external_data": True,
    }


@node("search_refinement", description="Broaden the search")
def search_refinement(context: Dict[str, Any]) -> Dict[str, Any]:
    key_terms = context.get("key_terms", [])
    refined_terms = sorted(set(key_terms) | {"quantum", "research", "algorithm"})
    logger.info(f"Refined search terms: {refined_terms}")

    refined_results = [
        "Latest quantum computing hardware developments",
        "Quantum supremacy achievements in 2023-2024",
        "Commercial applications of quantum computing",
        "Quantum computing research funding trends",
    ]
    return {
        "all_results": list(context["primary_results"]) + refined_results,
        "refined_terms": refined_terms,
        "stage": "search_refined",
    }


@node("information_extraction", description="Pull facts out of the search results")
def information_extraction(context: Dict[str, Any]) -> Dict[str, Any]:
    results = context.get("all_results") or context.get("primary_results", [])
    logger.info(f"Extracting information from {len(results)} search results...")

    extracted = {
        "fact1": "Quantum error correction improved by 45% in 2024",
        "fact2": "IBM unveiled 1000+ qubit quantum computer",
        "fact3": "Quantum machine learning shows 30% performance boost",
        "fact4": "New quantum algorithms for optimization problems",
        "fact5": "Quantum cloud services expanded to more industries",
    }
    return {
        "extracted_information": extracted,
        "data_points": len(extracted),
        "stage": "information_extracted",
    }


@node("source_evaluation", description="Score source credibility and relevance")
def source_evaluation(context: Dict[str, Any]) -> Dict[str, Any]:
    credibility, relevance, freshness = 0.85, 0.9, 0.95
    return {
        "source_credibility": credibility,
        "source_relevance": relevance,
        "source_freshness": freshness,
        "source_score": (credibility + relevance + freshness) / 3.0,
        "stage": "sources_evaluated",
    }


@node("context_lookup", description="Add supplementary background")
def context_lookup(context: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "additional_context": {
            "field": "Quantum computing is a rapidly evolving field",
            "history": "Major breakthroughs started in 2019 with quantum supremacy",
            "challenges": "Quantum decoherence remains a significant challenge",
            "future": "Commercial applications expected to expand by 2027",
        },
        "stage": "context_added",
    }


@node("response_draft", description="Write a first draft of the answer")
def response_draft(context: Dict[str, Any]) -> Dict[str, Any]:
    facts = context["extracted_information"]
    background = context.get("additional_context", {})
    draft = "\n".join([
        f"Draft response to: {context['query']}",
        "",
        "Key findings:",
        f"- {facts.get('fact1', '')}",
        f"- {facts.get('fact2', '')}",
        f"- {facts.get('fact3', '')}",
        "",
        "Additional context:",
        f"- {background.get('field', '')}",
        f"- {background.get('challenges', '')}",
    ])
    return {"response_draft": draft, "draft_quality": 0.75, "stage": "draft_generated"}


@node("response_refinement", description="Expand weak drafts")
def response_refinement(context: Dict[str, Any]) -> Dict[str, Any]:
    refined = context["response_draft"]
    if context.get("draft_quality", 0.0) < DRAFT_QUALITY_THRESHOLD:
        refined += "\n".join([
            "",
            "",
            "Further insights:",
            "- Quantum computing research funding increased by 30% globally",
            "- Several startups have emerged focusing on specialized quantum hardware",
            "- Major cloud providers now offer quantum computing services",
        ])
    return {"refined_response": refined, "stage": "response_refined"}


@node("final_formatting", description="Format the final answer")
def final_formatting(context: Dict[str, Any]) -> Dict[str, Any]:
    answer = "\n".join([
        f'Based on comprehensive research on "{context["query"]}", here is what I found:',
        "",
        context["refined_response"],
        "",
        "CONCLUSION:",
        "Quantum computing is advancing rapidly with improvements in both hardware "
        "capabilities and algorithm development.",
    ])
    return {
        "final_answer": answer,
        "stage": "completed",
        "completion_timestamp": datetime.now().isoformat(),
    }


@node("error_handling", description="Explain what went wrong")
def error_handling(context: Dict[str, Any]) -> Dict[str, Any]:
    query = context.get("query", "unknown query")
    stage = context.get("stage", "unknown stage")
    error = context.get("error", "An unknown error occurred")
    answer = "\n".join([
        f'I encountered an issue while researching "{query}".',
        "",
        f'The process failed during the "{stage}" stage with the following error:',
        str(error),
    ])
    return {"final_answer": answer, "stage": "error"}


def record_search_error(error: BaseException, context: Dict[str, Any]) -> Dict[str, Any]:
    logger.warning(f"Search failed, routing to error handling: {error}")
    return {"error": f"{type(error).__name__}: {error}", "stage": "primary_search_failed"}


# ============================================================
# Workflow Factory
# ============================================================

def create_research_workflow(
    graph_id: str = "research",
    rng: Optional[random.Random] = None,
    search_latency: float = 0.0,
    search_timeout: float = 10.0,
    search_backend=None,
) -> GraphDefinition:
    """
    Create the research agent workflow.

    Args:
        graph_id: Registry id for the graph
        rng: Random source for the simulated result quality
        search_latency: Simulated search delay in seconds
        search_timeout: Timeout for the primary search node
        search_backend: Optional callable ``(key_terms) -> list`` replacing the mock

    Returns:
        Configured GraphDefinition producing ``final_answer``
    """
    rng = rng or random.Random()

    async def primary_search_handler(context: Dict[str, Any]) -> Dict[str, Any]:
        key_terms = context.get("key_terms", [])
        logger.info(f"Performing primary search for: {key_terms}")
        if search_latency:
            await asyncio.sleep(search_latency)

        if search_backend is not None:
            results = list(search_backend(key_terms))
        else:
            results = [
                "Found information about quantum computing advancements",
                "Recent breakthroughs in quantum error correction",
                "New quantum algorithms developed in 2024",
            ]

        quality = rng.random()
        return {
            "primary_results": results,
            "results_quality": quality,
            "needs_refinement": quality < REFINEMENT_QUALITY_THRESHOLD,
            "stage": "primary_search_completed",
        }

    primary_search = (
        node("primary_search", description="Search for information")(primary_search_handler)
        .with_timeout(search_timeout)
        .with_failure_handler(record_search_error)
    )

    return (
        GraphBuilder(
            start="start",
            output_key="final_answer",
            graph_id=graph_id,
            name="Research Agent",
            description="Analyze -> search -> extract -> evaluate -> answer",
        )
        .add_node(start)
        .add_node(query_analysis)
        .add_node(primary_search)
        .add_node(search_refinement)
        .add_node(information_extraction)
        .add_node(source_evaluation)
        .add_node(context_lookup)
        .add_node(response_draft)
        .add_node(response_refinement)
        .add_node(final_formatting)
        .add_node(error_handling)
        # Main flow
        .add_edge("start", "query_analysis", label="Initialize")
        .add_edge("query_analysis", "primary_search", label="Search")
        .add_edge(
            "primary_search", "search_refinement",
            lambda c: c.get("needs_refinement") is True, "Needs refinement",
        )
        .add_edge(
            "primary_search", "information_extraction",
            lambda c: c.get("needs_refinement") is False, "Good results",
        )
        .add_edge(
            "primary_search", "error_handling",
            lambda c: "error" in c, "Search error",
        )
        .add_edge("search_refinement", "information_extraction", label="Process refined results")
        .add_edge("information_extraction", "source_evaluation", label="Evaluate sources")
        # Join: move on to the draft once both evaluation nodes have run
        .add_edge(
            "source_evaluation", "response_draft",
            lambda c: "additional_context" in c, "Context ready",
        )
        .add_edge(
            "context_lookup", "response_draft",
            lambda c: "source_score" in c, "Sources ready",
        )
        .add_edge("source_evaluation", "context_lookup", label="Get context if missing")
        .add_edge("context_lookup", "source_evaluation", label="Get sources if missing")
        # Final stages
        .add_edge("response_draft", "response_refinement", label="Refine")
        .add_edge("response_refinement", "final_formatting", label="Format")
        .build()
    )
