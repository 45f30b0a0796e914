"""
HTTP surface for the memory coordinator.

Every route delegates to MemoryCoordinator; no coordination logic lives here.
The caller's user id arrives in the X-User-Id header.
"""

from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI, Header, HTTPException, Query, Request
from fastapi.responses import JSONResponse

from .schemas import (
    WriteRequest,
    WriteResponse,
    BatchWriteRequest,
    BatchWriteResponse,
    SearchRequest,
    SearchResult,
    SearchResponse,
    UpdateRequest,
    SuccessResponse,
    DeleteResponse,
    ClearRequest,
    ClearResponse,
    StatsResponse,
    MemoryResponse,
    MemoryListResponse,
    HealthResponse,
    ErrorResponse,
)
from ..core.config import VERSION, debug_enabled
from ..core.container import get_coordinator
from ..core.coordinator import MemoryCoordinator
from ..core.errors import EmbeddingFailure, NotFound, StructuredStoreFailure, VectorStoreFailure
from ..core.rebuild import rebuild_index
from ..core.schema import BatchEntry, MemoryTier
from ..util.logging import logger, sanitize_payload


@asynccontextmanager
async def lifespan(app: FastAPI):
    # The vector overlay is in-process; repopulate it from SQLite on boot
    coordinator = get_coordinator()
    rebuild_index(coordinator.dao, coordinator.vector_store, coordinator.embedding_provider)
    yield


app = FastAPI(
    title="MCP Memory API",
    version=VERSION,
    description="Tiered per-user memory with semantic retrieval over a SQLite canonical store",
    docs_url="/docs" if debug_enabled() else None,
    redoc_url="/redoc" if debug_enabled() else None,
    lifespan=lifespan,
)

_ERROR_STATUS = {
    NotFound: 404,
    EmbeddingFailure: 502,
    VectorStoreFailure: 503,
    StructuredStoreFailure: 503,
}


def _error_response(status_code: int, exc: Exception) -> JSONResponse:
    body = ErrorResponse(error_type=exc.__class__.__name__, message=getattr(exc, "message", str(exc)))
    return JSONResponse(status_code=status_code, content=body.model_dump())


@app.exception_handler(NotFound)
@app.exception_handler(EmbeddingFailure)
@app.exception_handler(VectorStoreFailure)
@app.exception_handler(StructuredStoreFailure)
async def memory_error_handler(request: Request, exc: Exception):
    status_code = _ERROR_STATUS[type(exc)]
    logger.log_operation(f"api.{request.url.path}", "failed", {"error": str(exc)[:100], "status": status_code})
    return _error_response(status_code, exc)


@app.exception_handler(ValueError)
async def value_error_handler(request: Request, exc: ValueError):
    return _error_response(422, exc)


def current_user(x_user_id: str = Header(...)) -> str:
    if not x_user_id.strip():
        raise HTTPException(status_code=401, detail="X-User-Id header is required")
    return x_user_id.strip()


def _to_response(record) -> MemoryResponse:
    return MemoryResponse(
        id=record.id,
        tier=record.tier,
        content=record.content,
        importance=record.importance,
        source=record.source,
        created_at=record.created_at,
        updated_at=record.updated_at,
    )


@app.get("/health", response_model=HealthResponse)
def health_check_endpoint(coordinator: MemoryCoordinator = Depends(get_coordinator)):
    """Check system health."""
    db_health = coordinator.dao.health_check()
    return HealthResponse(
        status="healthy" if db_health else "unhealthy",
        version=VERSION,
        db_health=db_health,
        vector_store=coordinator.vector_store.__class__.__name__,
    )


@app.post("/memories", response_model=WriteResponse)
def write_memory(req: WriteRequest, user_id: str = Depends(current_user),
                 coordinator: MemoryCoordinator = Depends(get_coordinator)):
    logger.log_operation("api.write", "received", sanitize_payload(req.model_dump(mode="json")))
    config = coordinator.config.merge(duplicate_threshold=req.duplicate_threshold)
    memory_id = coordinator.write(
        req.content, user_id, req.tier,
        importance=req.importance, source=req.source, config=config,
    )
    return WriteResponse(id=memory_id)


@app.post("/memories/batch", response_model=BatchWriteResponse)
def batch_write_memories(req: BatchWriteRequest, user_id: str = Depends(current_user),
                         coordinator: MemoryCoordinator = Depends(get_coordinator)):
    entries = [
        BatchEntry(content=e.content, tier=e.tier, importance=e.importance, source=e.source)
        for e in req.entries
    ]
    return BatchWriteResponse(ids=coordinator.batch_write(entries, user_id))


@app.post("/memories/search", response_model=SearchResponse)
def search_memories(req: SearchRequest, user_id: str = Depends(current_user),
                    coordinator: MemoryCoordinator = Depends(get_coordinator)):
    config = coordinator.config.merge(
        search_threshold=req.search_threshold,
        recency_weight=req.recency_weight,
        recency_half_life_ms=req.recency_half_life_ms,
    )
    results = coordinator.search(req.query, user_id, req.tier, top_k=req.top_k, config=config)
    return SearchResponse(results=[SearchResult(id=r.id, content=r.content, score=r.score) for r in results])


@app.get("/memories/stats", response_model=StatsResponse)
def memory_stats(user_id: str = Depends(current_user),
                 coordinator: MemoryCoordinator = Depends(get_coordinator)):
    stats = coordinator.stats(user_id)
    return StatsResponse(short=stats.short, long=stats.long, total=stats.total)


@app.post("/memories/clear", response_model=ClearResponse)
def clear_memories(req: ClearRequest, user_id: str = Depends(current_user),
                   coordinator: MemoryCoordinator = Depends(get_coordinator)):
    if not req.confirm:
        raise HTTPException(status_code=400, detail="Clearing memories requires confirm=true")
    return ClearResponse(removed=coordinator.clear(user_id, req.tier))


@app.get("/memories", response_model=MemoryListResponse)
def list_memories(tier: MemoryTier, limit: int = Query(default=50, ge=1, le=500),
                  user_id: str = Depends(current_user),
                  coordinator: MemoryCoordinator = Depends(get_coordinator)):
    return MemoryListResponse(memories=[_to_response(r) for r in coordinator.list(user_id, tier, limit)])


@app.get("/memories/{memory_id}", response_model=MemoryResponse)
def get_memory(memory_id: str, user_id: str = Depends(current_user),
               coordinator: MemoryCoordinator = Depends(get_coordinator)):
    record = coordinator.get(memory_id, user_id)
    if record is None:
        raise NotFound(memory_id, user_id)
    return _to_response(record)


@app.put("/memories/{memory_id}", response_model=SuccessResponse)
def update_memory(memory_id: str, req: UpdateRequest, user_id: str = Depends(current_user),
                  coordinator: MemoryCoordinator = Depends(get_coordinator)):
    coordinator.update(memory_id, user_id, req.content)
    return SuccessResponse(success=True)


@app.delete("/memories/{memory_id}", response_model=DeleteResponse)
def delete_memory(memory_id: str, user_id: str = Depends(current_user),
                  coordinator: MemoryCoordinator = Depends(get_coordinator)):
    return DeleteResponse(deleted=coordinator.delete(memory_id, user_id))
