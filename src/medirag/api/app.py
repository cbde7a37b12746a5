"""FastAPI application exposing the medirag query pipeline."""

from __future__ import annotations

from dataclasses import dataclass
from uuid import uuid4

from fastapi import Depends, FastAPI, HTTPException, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

from medirag.api.schemas import IndexStatsResponse, QueryMetricsResponse, QueryRequest, QueryResponse
from medirag.config import Settings, get_settings
from medirag.errors import HARD_FAILURES, MediragError
from medirag.metrics.observability import bind_correlation_id, clear_correlation_id, configure_logging, get_logger
from medirag.services import QueryPipeline, build_services


@dataclass(frozen=True)
class AppDependencies:
    pipeline: QueryPipeline


def _build_dependencies(settings: Settings) -> AppDependencies:
    return AppDependencies(pipeline=QueryPipeline(build_services(settings)))


def create_app(*, settings: Settings | None = None, dependencies: AppDependencies | None = None) -> FastAPI:
    settings = settings or get_settings()
    deps = dependencies or _build_dependencies(settings)

    configure_logging()
    logger = get_logger("api")
    app = FastAPI(title="medirag API", version="0.1.0")
    app.state.dependencies = deps

    # Optional CORS
    if settings.cors_allow_origins:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=list(settings.cors_allow_origins),
            allow_credentials=settings.cors_allow_credentials,
            allow_methods=list(settings.cors_allow_methods),
            allow_headers=list(settings.cors_allow_headers),
        )

    @app.middleware("http")
    async def add_correlation_id(request: Request, call_next):  # type: ignore[override]
        correlation_id = request.headers.get("X-Request-ID", uuid4().hex)
        request.state.correlation_id = correlation_id
        bind_correlation_id(correlation_id)
        try:
            response = await call_next(request)
        finally:
            clear_correlation_id()
        response.headers["X-Correlation-ID"] = correlation_id
        return response

    def require_api_key(request: Request) -> None:
        expected = settings.api_key
        if not expected:
            return
        provided = request.headers.get("X-API-Key")
        if provided != expected:
            raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid API key")

    @app.exception_handler(MediragError)
    async def handle_pipeline_error(request: Request, exc: MediragError) -> JSONResponse:
        correlation_id = getattr(request.state, "correlation_id", uuid4().hex)
        logger.error("pipeline.error", correlation_id=correlation_id, code=exc.code, detail=str(exc))
        status_code = (
            status.HTTP_502_BAD_GATEWAY if isinstance(exc, HARD_FAILURES) else status.HTTP_500_INTERNAL_SERVER_ERROR
        )
        return JSONResponse(
            status_code=status_code,
            content={"detail": str(exc), "code": exc.code, "correlation_id": correlation_id},
        )

    @app.exception_handler(Exception)
    async def handle_unexpected_error(request: Request, exc: Exception) -> JSONResponse:
        correlation_id = getattr(request.state, "correlation_id", uuid4().hex)
        logger.error("unhandled.error", correlation_id=correlation_id, detail=str(exc))
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"detail": "Internal Server Error", "correlation_id": correlation_id},
        )

    def get_dependencies(request: Request) -> AppDependencies:
        return request.app.state.dependencies

    def get_pipeline(dep: AppDependencies = Depends(get_dependencies)) -> QueryPipeline:
        return dep.pipeline

    @app.post("/query", response_model=QueryResponse)
    async def query_documents(
        payload: QueryRequest,
        pipeline: QueryPipeline = Depends(get_pipeline),
        _auth: None = Depends(require_api_key),
    ) -> QueryResponse:
        response = await pipeline.answer_query(payload.question, use_cache=payload.use_cache)
        return QueryResponse.from_response(response)

    @app.get("/metrics")
    async def metrics() -> Response:
        payload = generate_latest()
        return Response(content=payload, media_type=CONTENT_TYPE_LATEST)

    @app.get("/metrics/queries", response_model=QueryMetricsResponse)
    async def query_metrics(
        pipeline: QueryPipeline = Depends(get_pipeline),
        _auth: None = Depends(require_api_key),
    ) -> QueryMetricsResponse:
        summary = await pipeline.query_metrics()
        return QueryMetricsResponse(
            total_queries=summary.total_queries,
            avg_latency_ms=summary.avg_latency_ms,
            no_answer_rate=summary.no_answer_rate,
        )

    @app.get("/healthz")
    async def healthcheck() -> dict[str, str]:
        from medirag import __version__

        return {"status": "ok", "version": __version__, "environment": settings.environment}

    @app.head("/healthz")
    async def healthcheck_head() -> Response:
        return Response(status_code=status.HTTP_200_OK)

    @app.get("/livez")
    async def liveness() -> dict[str, str]:
        return {"status": "alive"}

    @app.get("/index/stats", response_model=IndexStatsResponse)
    async def index_stats(pipeline: QueryPipeline = Depends(get_pipeline)) -> IndexStatsResponse:
        services = pipeline.services
        if services.vector_index is None or services.lexical_index is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="No managed index")
        return IndexStatsResponse(
            collection=settings.chroma_collection,
            total_chunks=services.vector_index.count(),
            lexical_chunks=len(services.lexical_index),
        )

    return app
