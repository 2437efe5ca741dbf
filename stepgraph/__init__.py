"""
StepGraph - An async workflow engine for procedural agent pipelines.

Workflows are graphs of nodes that read a shared context and return
updates to it, with conditional edges, per-node timeout, retry and
fallback policies, and observer hooks for tracing each run.
"""

__version__ = "0.1.0"
