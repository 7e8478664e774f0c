"""Main entry point for the Ask the Menu API."""
import logging
import time
from contextlib import asynccontextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional

import tiktoken
from fastapi import APIRouter, Depends, FastAPI, File, Form, HTTPException, Request, UploadFile
from fastapi.concurrency import run_in_threadpool
from fastapi.middleware.cors import CORSMiddleware

from config import (
    PORT,
    CORS_ORIGINS,
    CHUNK_STORE,
    LOG_LEVEL,
    LOG_FORMAT,
    LLM_FALLBACK_ENABLED,
    MAX_CONTEXT_CHUNKS,
    FULLTEXT_LIMIT,
    MAX_UPLOAD_BYTES,
    ALLOWED_EXTENSIONS,
    NO_INFORMATION_ANSWER,
)
from logger import setup_logging
from models.api import (
    AskMetadata,
    AskRequest,
    AskResponse,
    ClearResponse,
    DebugResponse,
    RestaurantSummary,
    RetrievalMode,
    Scope,
    Source,
    UploadResponse,
    UploadTextRequest,
)
from models.restaurant import Restaurant
from services.chunk_store import ChunkStore, create_chunk_store
from services.embedding_model import EmbeddingModel
from services.llm_client import LLMClient, LLMClientError
from services.menu_chunker import MenuChunker
from services.menu_loader import MenuLoader, MenuLoaderError
from services.retrieval_engine import RetrievalEngine, build_context

if LOG_FORMAT == "json":
    setup_logging(LOG_LEVEL)

logger = logging.getLogger(__name__)


@dataclass
class AppServices:
    """Long-lived collaborators shared by every request."""
    store: ChunkStore
    embedding_model: EmbeddingModel
    chunker: MenuChunker
    loader: MenuLoader
    retrieval_engine: RetrievalEngine
    llm_client: LLMClient
    tokenizer: Optional[tiktoken.Encoding] = None
    llm_fallback_enabled: bool = LLM_FALLBACK_ENABLED


def build_services(store_kind: str = CHUNK_STORE) -> AppServices:
    """Create the service graph once at process start."""
    logger.info("Initializing Ask the Menu services...")

    embedding_model = EmbeddingModel()
    store = create_chunk_store(store_kind)

    try:
        tokenizer = tiktoken.get_encoding("o200k_base")
        logger.info("Initialized tiktoken encoder (o200k_base)")
    except Exception as e:
        # Encoding files are fetched on first use; token counts are informational only
        logger.warning(f"tiktoken unavailable, prompt tokens will not be counted: {e}")
        tokenizer = None

    services = AppServices(
        store=store,
        embedding_model=embedding_model,
        chunker=MenuChunker(),
        loader=MenuLoader(),
        retrieval_engine=RetrievalEngine(embedding_model),
        llm_client=LLMClient(),
        tokenizer=tokenizer
    )
    logger.info(f"All services initialized (store={store.name})")
    return services


def get_services(request: Request) -> AppServices:
    return request.app.state.services


router = APIRouter()


@router.get("/")
async def root():
    """Health check endpoint."""
    return {"status": "ok", "message": "Ask the Menu API"}


@router.get("/health")
async def health():
    """Detailed health check."""
    return {
        "status": "healthy",
        "service": "ask-the-menu",
        "version": "1.0.0"
    }


def _ingest(services: AppServices, restaurant_name: str, menu_text: str) -> UploadResponse:
    restaurant_name = restaurant_name.strip()
    if not restaurant_name:
        raise HTTPException(status_code=400, detail="Restaurant name cannot be empty")

    chunks = services.chunker.build_chunks(restaurant_name, menu_text, services.embedding_model)
    if not chunks:
        raise HTTPException(
            status_code=400,
            detail="No menu sections found. Separate sections with blank lines."
        )

    stored = services.store.add_chunks(restaurant_name, chunks)
    return UploadResponse(
        success=True,
        message=f"Uploaded {stored} menu sections for {restaurant_name}",
        restaurant_name=restaurant_name,
        chunks_stored=stored
    )


@router.post("/upload", response_model=UploadResponse)
def upload_text(
    request: UploadTextRequest,
    services: AppServices = Depends(get_services)
) -> UploadResponse:
    """Store an already-transcribed menu."""
    try:
        logger.info(f"Uploading menu text for {request.restaurant_name!r}")
        return _ingest(services, request.restaurant_name, request.menu_text)
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Upload error: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to upload menu")


@router.post("/upload/image", response_model=UploadResponse)
async def upload_image(
    restaurant_name: str = Form(...),
    file: UploadFile = File(...),
    services: AppServices = Depends(get_services)
) -> UploadResponse:
    """Transcribe a menu photo or PDF with OCR and store it."""
    if not file.filename:
        raise HTTPException(status_code=400, detail="Filename is required")

    extension = Path(file.filename).suffix.lower()
    if extension not in ALLOWED_EXTENSIONS:
        raise HTTPException(
            status_code=400,
            detail=f"File type '{extension}' not allowed. Allowed: {', '.join(sorted(ALLOWED_EXTENSIONS))}"
        )

    content = await file.read()
    if len(content) > MAX_UPLOAD_BYTES:
        raise HTTPException(status_code=413, detail="File too large")

    try:
        logger.info(f"Transcribing {file.filename} for {restaurant_name!r}")
        menu_text = await run_in_threadpool(services.loader.extract_text, content, file.filename)
        return await run_in_threadpool(_ingest, services, restaurant_name, menu_text)
    except HTTPException:
        raise
    except MenuLoaderError as e:
        logger.warning(f"OCR failed for {file.filename}: {e}")
        raise HTTPException(status_code=422, detail=str(e))
    except Exception as e:
        logger.error(f"Upload error: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to upload menu")


@router.post("/ask", response_model=AskResponse)
def ask(
    request: AskRequest,
    services: AppServices = Depends(get_services)
) -> AskResponse:
    """
    Answer a question from the stored menus.

    Flow:
    1. Resolve scope: one restaurant (named, or the most recently uploaded) or all
    2. Load candidate chunks and, where the store supports it, full-text hits
    3. Retrieve, deduplicate and cap chunks, then assemble the context
    4. Ask the language model; without a key, answer by keyword match

    Raises:
        HTTPException: 400 for invalid input or no menus, 503 for LLM failures
    """
    start_time = time.time()

    if not request.question.strip():
        raise HTTPException(status_code=400, detail="Question field is required and cannot be empty")

    try:
        logger.info(
            f"Processing question: {request.question[:100]} "
            f"(scope={request.scope.value}, mode={request.mode.value})"
        )

        restaurant_name: Optional[str] = None
        if request.scope == Scope.SINGLE:
            if request.restaurant:
                restaurant_name = request.restaurant
            else:
                latest = services.store.latest_restaurant()
                if latest is None:
                    raise HTTPException(status_code=400, detail="No menus uploaded yet")
                restaurant_name = latest.name

        chunks = services.store.list_chunks(restaurant_name)

        fulltext_hits = None
        if (
            request.mode in (RetrievalMode.FULLTEXT, RetrievalMode.HYBRID)
            and services.store.supports_fulltext
        ):
            fulltext_hits = services.store.fulltext_search(
                request.question, restaurant_name, FULLTEXT_LIMIT
            )

        retrieved = services.retrieval_engine.retrieve(
            request.question,
            chunks,
            k=MAX_CONTEXT_CHUNKS,
            mode=request.mode,
            fulltext_hits=fulltext_hits
        )

        metadata = AskMetadata(
            mode=request.mode,
            scope=request.scope,
            chunks_considered=len(chunks),
            chunks_retrieved=len(retrieved),
            latency_ms=0
        )

        if not retrieved:
            metadata.latency_ms = int((time.time() - start_time) * 1000)
            return AskResponse(answer=NO_INFORMATION_ANSWER, metadata=metadata)

        context = build_context(retrieved)
        system_prompt = LLMClient.build_system_prompt(request.scope == Scope.ALL)
        user_prompt = LLMClient.build_user_prompt(request.question, context)

        if services.tokenizer is not None:
            metadata.prompt_tokens = len(services.tokenizer.encode(system_prompt + user_prompt))

        try:
            llm_response = services.llm_client.generate(system_prompt, user_prompt)
            answer = llm_response.text
            metadata.model_used = llm_response.model_used
        except LLMClientError as e:
            if e.error.code != "NOT_CONFIGURED" or not services.llm_fallback_enabled:
                raise
            logger.info("Language model not configured, using keyword fallback answer")
            answer = LLMClient.fallback_answer(request.question, context)
            metadata.fallback_used = True

        sources: List[Source] = [
            Source(
                restaurant=item.chunk.source_label,
                content=item.chunk.content,
                relevance_score=item.relevance_score
            )
            for item in retrieved
        ]

        metadata.latency_ms = int((time.time() - start_time) * 1000)
        logger.info(f"Question answered in {metadata.latency_ms}ms")
        return AskResponse(answer=answer, sources=sources, metadata=metadata)

    except HTTPException:
        raise
    except LLMClientError as e:
        logger.error(f"LLM client error: {e.error.message}")
        raise HTTPException(
            status_code=503,
            detail={
                "error": {
                    "code": e.error.code,
                    "message": e.error.message,
                    "details": e.error.details
                }
            }
        )
    except Exception as e:
        logger.error(f"Unexpected error processing question: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to process question")


def _summaries(restaurants: List[Restaurant]) -> List[RestaurantSummary]:
    return [
        RestaurantSummary(
            restaurant_id=restaurant.restaurant_id,
            name=restaurant.name,
            created_at=restaurant.created_at,
            chunk_count=restaurant.chunk_count
        )
        for restaurant in restaurants
    ]


@router.get("/restaurants", response_model=List[RestaurantSummary])
def list_restaurants(services: AppServices = Depends(get_services)) -> List[RestaurantSummary]:
    """Restaurants with chunk counts, most recent first."""
    try:
        return _summaries(services.store.list_restaurants())
    except Exception as e:
        logger.error(f"Restaurants fetch error: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to fetch restaurants")


@router.post("/clear", response_model=ClearResponse)
def clear(services: AppServices = Depends(get_services)) -> ClearResponse:
    """Delete every restaurant and menu chunk."""
    try:
        services.store.clear()
        return ClearResponse(success=True, message="All restaurant data cleared successfully")
    except Exception as e:
        logger.error(f"Error clearing data: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to clear data")


@router.get("/debug", response_model=DebugResponse)
def debug(services: AppServices = Depends(get_services)) -> DebugResponse:
    """Store statistics for troubleshooting."""
    try:
        info = services.store.debug_info()
        return DebugResponse(
            store=info["store"],
            restaurant_count=info["restaurant_count"],
            chunk_count=info["chunk_count"],
            supports_fulltext=info["supports_fulltext"],
            restaurants=_summaries(info["restaurants"])
        )
    except Exception as e:
        logger.error(f"Debug error: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to get debug info")


def create_app(services: Optional[AppServices] = None) -> FastAPI:
    """
    Create and configure the FastAPI application.

    Args:
        services: Pre-built services; built in the lifespan hook when omitted

    Returns:
        Configured application instance
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if getattr(app.state, "services", None) is None:
            app.state.services = build_services()
        yield

    app = FastAPI(
        title="Ask the Menu",
        description="Question answering over uploaded restaurant menus",
        version="1.0.0",
        lifespan=lifespan
    )
    if services is not None:
        app.state.services = services

    app.add_middleware(
        CORSMiddleware,
        allow_origins=CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.include_router(router)
    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn
    logger.info(f"Starting Ask the Menu API on port {PORT}")
    uvicorn.run(app, host="0.0.0.0", port=PORT)
