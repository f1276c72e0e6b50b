"""
API Server - HTTP surface for the RAG pipeline.
===============================================

  POST /api/v1/rag/ask      -- Ask a question, get an SSE stream of AskChunks
  GET  /api/v1/rag/similar  -- Plain vector search
  POST /api/v1/rag/ingest   -- Chunk and store a document
  GET  /health              -- Liveness probe

Each SSE event is one ``data: {json}`` line holding an AskChunk. The stream
always ends with the chunk whose ``done`` is true. When the client
disconnects, the pipeline generator is closed, which aborts the provider call.
"""

from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

from fastapi import APIRouter, FastAPI, Query, Request
from fastapi.responses import StreamingResponse
from pydantic import BaseModel, Field

from su_advisor import __version__
from su_advisor.service import RagService, get_rag_service
from su_advisor.shared.logging import get_logger
from su_advisor.shared.schemas import AskRequest, IngestResult, Passage

logger = get_logger(__name__)

router = APIRouter(prefix="/api/v1/rag", tags=["rag"])


# ─────────────────────────────────────────────────────────────────────────────
# Request / Response Models
# ─────────────────────────────────────────────────────────────────────────────


class IngestRequest(BaseModel):
    """A document to ingest."""

    document_type: str = Field(..., description="exam_pdf or review")
    content: str = Field(..., description="Document text")
    metadata: dict[str, str] = Field(default_factory=dict)
    batch_id: Optional[str] = None


class SimilarResponse(BaseModel):
    chunks: list[Passage]


def parse_filters(raw: list[str]) -> dict[str, str]:
    """
    Parse ``key=value`` filter parameters.

    Example:
        >>> parse_filters(["courseCode=CS412", "broken"])
        {'courseCode': 'CS412'}
    """
    filters = {}
    for item in raw:
        key, sep, value = item.partition("=")
        if sep and key.strip():
            filters[key.strip()] = value.strip()
    return filters


def _service(request: Request) -> RagService:
    return request.app.state.rag_service


# ─────────────────────────────────────────────────────────────────────────────
# Routes
# ─────────────────────────────────────────────────────────────────────────────


@router.post("/ask")
async def ask(ask_request: AskRequest, request: Request) -> StreamingResponse:
    """Stream the answer to a question as Server-Sent Events."""
    service = _service(request)

    async def event_generator() -> AsyncIterator[str]:
        chunks = service.ask(ask_request)
        try:
            async for chunk in chunks:
                if await request.is_disconnected():
                    logger.info("Client disconnected; stopping answer stream")
                    break
                yield chunk.to_sse()
        finally:
            await chunks.aclose()

    return StreamingResponse(
        event_generator(),
        media_type="text/event-stream",
        headers={"Cache-Control": "no-cache", "X-Accel-Buffering": "no"},
    )


@router.get("/similar", response_model=SimilarResponse)
async def similar(
    request: Request,
    query: str = Query(..., min_length=1),
    collection: Optional[str] = None,
    top_k: Optional[int] = Query(None, ge=1, le=100),
    filter: list[str] = Query([], description="key=value exact-match filters"),
) -> SimilarResponse:
    """Return passages similar to the query."""
    passages = await _service(request).get_similar_chunks(
        query,
        collection=collection,
        top_k=top_k,
        filters=parse_filters(filter),
    )
    return SimilarResponse(chunks=passages)


@router.post("/ingest", response_model=IngestResult)
async def ingest(ingest_request: IngestRequest, request: Request) -> IngestResult:
    """Chunk, embed and store a document; failures are reported in the body."""
    return await _service(request).ingest_documents(
        ingest_request.document_type,
        ingest_request.content,
        ingest_request.metadata,
        ingest_request.batch_id,
    )


# ─────────────────────────────────────────────────────────────────────────────
# Application
# ─────────────────────────────────────────────────────────────────────────────


def create_app(service: Optional[RagService] = None) -> FastAPI:
    """
    Create the FastAPI application.

    Args:
        service: RagService to serve (process-wide service if None)
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        rag_service = service or get_rag_service()
        app.state.rag_service = rag_service
        ready = await rag_service.startup()
        logger.info(f"RAG service ready (collections: {', '.join(ready) or 'none'})")
        try:
            yield
        finally:
            await rag_service.aclose()

    app = FastAPI(title="SU Advisor RAG", version=__version__, lifespan=lifespan)
    app.include_router(router)

    @app.get("/health")
    async def health() -> dict:
        return {"status": "ok", "version": __version__}

    return app
