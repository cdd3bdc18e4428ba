from contextlib import asynccontextmanager
from uuid import uuid4

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from loguru import logger

from research_graph.api.routes import daemon, graph, search
from research_graph.components import Components, build_components
from research_graph.config import settings
from research_graph.errors import AppError
from research_graph.services import logger as log_service  # noqa: F401  configures sinks

GENERIC_ERROR = {"error": {"code": "INTERNAL_ERROR", "message": "An internal error occurred"}}


def create_app(components: Components | None = None) -> FastAPI:
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        # Startup
        owned = app.state.components is None
        if owned:
            app.state.components = await build_components(settings)
        yield
        # Shutdown
        if owned and app.state.components is not None:
            await app.state.components.close()
            app.state.components = None

    app = FastAPI(
        title="research-graph",
        description="Semantic knowledge graph over a user's research activity",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.state.components = components

    # CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origin_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.middleware("http")
    async def request_context(request: Request, call_next):
        request_id = request.headers.get("x-request-id") or uuid4().hex
        with logger.contextualize(request_id=request_id):
            try:
                response = await call_next(request)
            except Exception:
                logger.exception(f"Unhandled error on {request.method} {request.url.path}")
                response = JSONResponse(status_code=500, content=GENERIC_ERROR)
        response.headers["x-request-id"] = request_id
        return response

    @app.exception_handler(AppError)
    async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
        if exc.status_code >= 500:
            logger.error(f"{type(exc).__name__} on {request.url.path}: {exc}")
        else:
            logger.warning(f"{type(exc).__name__} on {request.url.path}: {exc.message}")
        return JSONResponse(status_code=exc.status_code, content=exc.to_dict())

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
        first = exc.errors()[0] if exc.errors() else {}
        location = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
        message = f"{location}: {first.get('msg', 'invalid request')}" if location else "Invalid request"
        return JSONResponse(
            status_code=400,
            content={"error": {"code": "VALIDATION_ERROR", "message": message}},
        )

    # Routes
    app.include_router(search.router)
    app.include_router(graph.router)
    app.include_router(daemon.router)

    @app.get("/api/health")
    async def health():
        return {"status": "ok", "service": "research-graph"}

    return app


app = create_app()
