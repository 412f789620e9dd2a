"""
Mnemo FastAPI Server

HTTP surface over the compression and retrieval engine, for orchestrators
that run in another process.

Endpoints:
- GET  /api/health
- POST /api/compress
- POST /api/compress/temporal
- POST /api/retrieve
- POST /api/retrieve/category
- POST /api/retrieve/critical
- POST /api/retrieve/time-range

The graph is loaded once at startup from MNEMO_GRAPH_PATH (a JSON export of
entities and relations); without it the server starts with an empty graph.
"""

import logging
import os
from contextlib import asynccontextmanager
from datetime import datetime
from typing import Any, Dict, List, Optional

from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, Field
import uvicorn

from mnemo.backend.modules.memory import (
    CompressionService,
    GraphStore,
    InMemoryGraphStore,
    JsonFileGraphStore,
    MemoryConfig,
    MemoryEngine,
)
from mnemo.backend.modules.memory.token_metrics import compression_savings

logger = logging.getLogger(__name__)

# Global instances
_engine: Optional[MemoryEngine] = None
_graph: Optional[GraphStore] = None

DEFAULT_PORT = 27290


# ==================== Request Models ====================

class CompressRequest(BaseModel):
    """Observations awaiting compression: [{entityName, entityType, observation}]."""
    pending: List[Dict[str, Any]] = Field(default_factory=list)
    options: Optional[Dict[str, Any]] = None


class TemporalCompressRequest(BaseModel):
    """Flat observations carrying entityName/entityType."""
    observations: List[Dict[str, Any]] = Field(default_factory=list)
    window_days: Optional[int] = Field(None, ge=1, le=3650)
    options: Optional[Dict[str, Any]] = None


class RetrieveRequest(BaseModel):
    """Context retrieval request."""
    context: Any = ""
    target_entities: List[str] = Field(default_factory=list)
    options: Optional[Dict[str, Any]] = None


class CategoryRequest(BaseModel):
    category: str = Field(..., min_length=1, max_length=100)
    entity_names: List[str] = Field(default_factory=list)
    options: Optional[Dict[str, Any]] = None


class CriticalRequest(BaseModel):
    entity_names: List[str] = Field(default_factory=list)


class TimeRangeRequest(BaseModel):
    start_date: Optional[str] = None
    end_date: Optional[str] = None
    entity_names: List[str] = Field(default_factory=list)


# ==================== Lifecycle ====================

def _load_graph() -> GraphStore:
    graph_path = os.environ.get("MNEMO_GRAPH_PATH")
    if graph_path:
        logger.info(f"Loading graph from {graph_path}")
        return JsonFileGraphStore(graph_path)
    logger.info("MNEMO_GRAPH_PATH not set - starting with an empty graph")
    return InMemoryGraphStore()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Build the engine and load the graph."""
    global _engine, _graph
    logger.info("Starting Mnemo server...")

    _engine = MemoryEngine(config=MemoryConfig.from_env())
    _graph = _load_graph()
    logger.info("Memory engine initialized")

    yield

    logger.info("Shutting down Mnemo server...")


def _compression_service(options: Optional[Dict[str, Any]]) -> CompressionService:
    """Engine's compression service, or a one-off one when options override config."""
    if not options:
        return _engine.compression
    try:
        config = _engine.config.with_overrides(options)
    except (ValueError, TypeError) as e:
        raise HTTPException(status_code=422, detail=str(e))
    return CompressionService(config, clock=_engine.clock)


def _require_ready():
    if not _engine or _graph is None:
        raise HTTPException(status_code=503, detail="Memory engine not ready")


def create_app() -> FastAPI:
    """Create FastAPI application."""
    from mnemo import __version__

    app = FastAPI(
        title="Mnemo",
        description="Memory compression and retrieval scoring",
        version=__version__,
        lifespan=lifespan
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=[],
        allow_credentials=False,
        allow_methods=["GET", "POST"],
        allow_headers=["Content-Type"],
    )

    # ==================== Compression ====================

    @app.post("/api/compress")
    async def compress(request: CompressRequest):
        """Compress clusters of similar recent observations."""
        _require_ready()
        service = _compression_service(request.options)
        compressed = service.compress_observations(request.pending)
        return {
            "count": len(compressed),
            "compressed": [c.to_dict() for c in compressed],
            "size": compression_savings(compressed).to_dict(),
        }

    @app.post("/api/compress/temporal")
    async def compress_temporal(request: TemporalCompressRequest):
        """Compress observations window by window."""
        _require_ready()
        service = _compression_service(request.options)
        compressed = service.temporal_compression(request.observations, request.window_days)
        return {
            "count": len(compressed),
            "compressed": [c.to_dict() for c in compressed],
            "size": compression_savings(compressed).to_dict(),
        }

    # ==================== Retrieval ====================

    @app.post("/api/retrieve")
    async def retrieve(request: RetrieveRequest):
        """Rank entities, relations and observations for a context."""
        _require_ready()
        try:
            result = await _engine.retrieve_relevant_memories(
                _graph, request.context, request.target_entities, request.options
            )
        except (ValueError, TypeError) as e:
            raise HTTPException(status_code=422, detail=str(e))
        return result.to_dict()

    @app.post("/api/retrieve/category")
    async def retrieve_category(request: CategoryRequest):
        _require_ready()
        try:
            result = await _engine.retrieve_by_category(
                _graph, request.category, request.entity_names, request.options
            )
        except (ValueError, TypeError) as e:
            raise HTTPException(status_code=422, detail=str(e))
        return result.to_dict()

    @app.post("/api/retrieve/critical")
    async def retrieve_critical(request: CriticalRequest):
        _require_ready()
        result = await _engine.retrieve_critical_memories(_graph, request.entity_names)
        return result.to_dict()

    @app.post("/api/retrieve/time-range")
    async def retrieve_time_range(request: TimeRangeRequest):
        _require_ready()
        time_range = {"startDate": request.start_date, "endDate": request.end_date}
        result = await _engine.retrieve_by_time_range(_graph, time_range, request.entity_names)
        return result.to_dict()

    # ==================== Health ====================

    @app.get("/api/health")
    async def health_check():
        """Health check endpoint."""
        if not _engine or _graph is None:
            raise HTTPException(status_code=503, detail="Memory engine not initialized")

        return {
            "status": "healthy",
            "engine_initialized": True,
            "entity_count": len(_graph) if hasattr(_graph, "__len__") else None,
            "timestamp": datetime.now().isoformat()
        }

    return app


def start_server(host: str = "127.0.0.1", port: Optional[int] = None):
    """
    Start the Mnemo server.

    Args:
        host: Server host
        port: Server port (MNEMO_PORT or 27290 if not specified)
    """
    if port is None:
        port = int(os.environ.get("MNEMO_PORT", DEFAULT_PORT))

    print(f"""
===================================================
  MNEMO SERVER
  Port: {port}
  Graph: {os.environ.get("MNEMO_GRAPH_PATH", "(empty)")}
===================================================
""")

    app = create_app()
    uvicorn.run(app, host=host, port=port)


if __name__ == "__main__":
    import argparse
    parser = argparse.ArgumentParser(description="Mnemo FastAPI Server")
    parser.add_argument("--host", default="127.0.0.1", help="Server host")
    parser.add_argument("--port", type=int, default=None, help="Server port (default: 27290)")
    args = parser.parse_args()

    logging.basicConfig(level=logging.INFO)
    start_server(host=args.host, port=args.port)
