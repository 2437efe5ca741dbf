"""
StepGraph - FastAPI Application Entry Point.

Serves the demo workflows over HTTP and WebSocket.
"""

from contextlib import asynccontextmanager
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
import logging

from stepgraph.config import settings
from stepgraph.api.routes import graph, websocket
from stepgraph.storage.memory import graph_storage, run_storage
from stepgraph.workflows import register_demo_workflows


# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler."""
    logger.info(f"Starting {settings.APP_NAME} v{settings.APP_VERSION}")

    await register_demo_workflows()

    yield

    logger.info("Shutting down...")


app = FastAPI(
    title=settings.APP_NAME,
    description="""
## StepGraph API

An async workflow engine for procedural agent pipelines.

### Features
- **Nodes**: Python functions that read the shared context and return updates
- **Edges**: First-match routing with optional conditions
- **Resilience**: Per-node timeout, retry and fallback policies
- **Observers**: Every run is traced as a sequence of lifecycle events
- **Diagrams**: Mermaid rendering of graphs and executed paths

### Quick Start
1. List workflows: `GET /graph/`
2. Run one: `POST /graph/run`
3. Check execution state: `GET /graph/state/{run_id}`

### Demo Workflows
`simple`, `conditional`, `retry` and `research` are registered at startup.
    """,
    version=settings.APP_VERSION,
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan,
)


app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


app.include_router(graph.router)
app.include_router(websocket.router)


# ============================================================
# Root Endpoints
# ============================================================

@app.get("/", tags=["Root"])
async def root():
    """API root - returns basic info and links."""
    return {
        "name": settings.APP_NAME,
        "version": settings.APP_VERSION,
        "description": "An async workflow engine for procedural agent pipelines",
        "docs": "/docs",
        "redoc": "/redoc",
        "endpoints": {
            "graphs": "/graph",
            "runs": "/graph/runs",
            "websocket_run": "/ws/run/{graph_id}",
        },
        "demo_workflows": ["simple", "conditional", "retry", "research"],
    }


@app.get("/health", tags=["Root"])
async def health():
    """Health check endpoint."""
    return {
        "status": "healthy",
        "version": settings.APP_VERSION,
        "graphs_count": len(graph_storage),
        "runs_count": len(run_storage),
    }


# ============================================================
# Error Handlers
# ============================================================

@app.exception_handler(Exception)
async def global_exception_handler(request, exc):
    """Global exception handler for unhandled errors."""
    logger.exception(f"Unhandled error: {exc}")
    return JSONResponse(
        status_code=500,
        content={
            "error": "Internal Server Error",
            "detail": str(exc) if settings.DEBUG else "An unexpected error occurred",
        },
    )
