"""
EA Graph: Read API Server
=========================

Read-only API surfacing the live repository and its audit trail.
Writes happen through the engine (workspaces and commits), never here.

Endpoints:
- GET /health                       -> Status
- GET /api/v1/repository            -> Metadata summary + revision
- GET /api/v1/objects               -> Nodes (optional ?type=)
- GET /api/v1/objects/{node_id}     -> One node
- GET /api/v1/relationships         -> Edges (optional ?type=)
- GET /api/v1/audit                 -> Audit entries (optional ?since=)
- GET /api/v1/snapshot              -> Versioned snapshot document
- GET /api/v1/impact/{node_id}      -> Downstream impact

Usage:
    uvicorn eagraph.api.server:app --reload
"""
import logging
import os
from contextlib import asynccontextmanager
from typing import Any, Dict, List, Optional

from fastapi import Depends, FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel

from ..contracts.base import Error, ErrorCode
from ..contracts.metamodel import EdgeType, NodeType
from ..engine import ArchitectureEngine, EngineConfig
from .mapper import map_audit, map_edge, map_impact, map_node, map_repository_summary


logger = logging.getLogger(__name__)

SNAPSHOT_PATH_ENV = "EAGRAPH_SNAPSHOT_PATH"

_STATUS = {
    ErrorCode.NOT_FOUND: 404,
    ErrorCode.PERMISSION_DENIED: 403,
    ErrorCode.REPOSITORY_CLOSED: 503,
    ErrorCode.UNKNOWN_TYPE: 400,
}


# =============================================================================
# RESPONSE MODELS
# =============================================================================

class NodeDTO(BaseModel):
    id: str
    type: str
    attributes: Dict[str, Any]


class EdgeDTO(BaseModel):
    id: str
    fromId: str
    toId: str
    type: str
    attributes: Dict[str, Any]


class RepositoryDTO(BaseModel):
    repositoryName: str
    organizationName: str
    governanceMode: str
    revision: int
    objects: int
    relationships: int


class AuditEntryDTO(BaseModel):
    sequence: int
    actor: str
    timestamp: str
    action: str
    repositoryName: str
    entityId: Optional[str] = None
    details: Dict[str, str]
    previousHash: str
    entryHash: str


class ImpactedDTO(BaseModel):
    id: str
    type: str
    depth: int
    path: List[str]


class ImpactDTO(BaseModel):
    rootId: str
    maxDepth: Optional[int] = None
    impacted: List[ImpactedDTO]


# =============================================================================
# INFRASTRUCTURE SETUP
# =============================================================================

def _load_engine_from_env() -> ArchitectureEngine:
    engine = ArchitectureEngine(EngineConfig.from_env())
    path = os.environ.get(SNAPSHOT_PATH_ENV)
    if not path:
        logger.info(f"{SNAPSHOT_PATH_ENV} not set; serving without a repository")
        return engine
    with open(path, "r", encoding="utf-8") as f:
        text = f.read()
    result = engine.open_snapshot(text)
    if result.is_failure:
        raise RuntimeError(f"Cannot load snapshot {path}: {result.error.message}")
    logger.info(f"Loaded snapshot {path} ({engine.handle.repository_name})")
    return engine


def _raise_for(error: Error) -> None:
    raise HTTPException(status_code=_STATUS.get(error.code, 400), detail={
        "code": error.code.name,
        "message": error.message,
        "context": dict(error.context),
    })


def get_engine(request: Request) -> ArchitectureEngine:
    engine = getattr(request.app.state, "engine", None)
    if engine is None or not engine.handle.is_open:
        raise HTTPException(status_code=503, detail="Repository not open")
    return engine


def create_app(engine: Optional[ArchitectureEngine] = None) -> FastAPI:
    """
    Build the read API around `engine`; when none is given the lifespan
    builds one from the environment.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if app.state.engine is None:
            app.state.engine = _load_engine_from_env()
        yield
        served = app.state.engine
        if served is not None and served.handle.is_open:
            served.close()

    app = FastAPI(
        title="EA Graph Repository API",
        version="1.0.0",
        description="Read layer for the enterprise-architecture graph repository",
        lifespan=lifespan,
    )
    app.state.engine = engine

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["GET"],
        allow_headers=["*"],
    )

    @app.get("/health")
    async def health_check(request: Request):
        served = getattr(request.app.state, "engine", None)
        if served is None or not served.handle.is_open:
            raise HTTPException(status_code=503, detail="Repository not open")
        return {
            "status": "online",
            "repository": served.handle.repository_name,
            "revision": served.revision,
        }

    @app.get("/api/v1/repository", response_model=RepositoryDTO)
    async def get_repository(engine: ArchitectureEngine = Depends(get_engine)):
        current = engine.current
        return map_repository_summary(
            engine.metadata, engine.revision, current.node_count, current.edge_count
        )

    @app.get("/api/v1/objects", response_model=List[NodeDTO])
    async def list_objects(
        type: Optional[str] = None,
        engine: ArchitectureEngine = Depends(get_engine)
    ):
        current = engine.current
        if type is None:
            return [map_node(n) for n in current.iter_nodes()]
        node_type = NodeType.parse(type)
        if node_type is None:
            raise HTTPException(status_code=400, detail=f"Unknown element type: {type}")
        return [map_node(n) for n in current.nodes_by_type(node_type)]

    @app.get("/api/v1/objects/{node_id}", response_model=NodeDTO)
    async def get_object(node_id: str, engine: ArchitectureEngine = Depends(get_engine)):
        node = engine.current.get_node(node_id)
        if node is None:
            raise HTTPException(status_code=404, detail=f"Element not found: {node_id}")
        return map_node(node)

    @app.get("/api/v1/relationships", response_model=List[EdgeDTO])
    async def list_relationships(
        type: Optional[str] = None,
        engine: ArchitectureEngine = Depends(get_engine)
    ):
        current = engine.current
        if type is None:
            return [map_edge(e) for e in current.iter_edges()]
        edge_type = EdgeType.parse(type)
        if edge_type is None:
            raise HTTPException(status_code=400, detail=f"Unknown relationship type: {type}")
        return [map_edge(e) for e in current.edges_by_type(edge_type)]

    @app.get("/api/v1/audit", response_model=List[AuditEntryDTO])
    async def get_audit(since: int = 0, engine: ArchitectureEngine = Depends(get_engine)):
        """Entries with sequence strictly greater than `since`, oldest first."""
        return map_audit(list(engine.audit.since(since)))

    @app.get("/api/v1/snapshot")
    async def get_snapshot(engine: ArchitectureEngine = Depends(get_engine)):
        result = engine.export_snapshot()
        if result.is_failure:
            _raise_for(result.error)
        return result.value

    @app.get("/api/v1/impact/{node_id}", response_model=ImpactDTO)
    async def get_impact(
        node_id: str,
        max_depth: Optional[int] = None,
        engine: ArchitectureEngine = Depends(get_engine)
    ):
        result = engine.impact_analysis(node_id, max_depth=max_depth)
        if result.is_failure:
            _raise_for(result.error)
        return map_impact(result.value)

    return app


app = create_app()
