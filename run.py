#!/usr/bin/env python3
"""
Simple run script for StepGraph.

Usage:
    python run.py

Or with custom settings:
    HOST=127.0.0.1 PORT=8080 python run.py
"""

import os

import uvicorn

from stepgraph.config import settings


def main():
    """Run the FastAPI application."""
    host = settings.HOST
    port = settings.PORT
    reload = os.getenv("RELOAD", "true").lower() == "true"

    print(f"""
+---------------------------------------------------------------+
|  {settings.APP_NAME} v{settings.APP_VERSION}
|  Async workflow engine for procedural agent pipelines
+---------------------------------------------------------------+
|  Server:    http://{host}:{port}
|  API Docs:  http://{host}:{port}/docs
|  ReDoc:     http://{host}:{port}/redoc
+---------------------------------------------------------------+
|  Demo workflows: simple, conditional, retry, research
+---------------------------------------------------------------+
    """)

    uvicorn.run(
        "stepgraph.main:app",
        host=host,
        port=port,
        reload=reload,
        log_level=settings.LOG_LEVEL.lower(),
    )


if __name__ == "__main__":
    main()
