from __future__ import annotations

from contextlib import asynccontextmanager
from typing import AsyncIterator, Callable, Optional

import uvicorn
from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from . import db
from .db import BlockingConnectionPool
from .logger import get_logger, set_level
from .repositories import RepositoryError
from .routers import todos as todos_router
from .schemas import HealthOut
from .settings import Settings, get_settings

logger = get_logger(__name__)

PoolFactory = Callable[[Settings], BlockingConnectionPool]

openapi_tags = [
    {"name": "health", "description": "Service health and status endpoints."},
    {"name": "todos", "description": "Create and read Todo items."},
]


# PUBLIC_INTERFACE
def create_app(
    settings: Optional[Settings] = None,
    pool_factory: PoolFactory = db.create_pool,
) -> FastAPI:
    """
    Build the FastAPI application.

    The connection pool is opened (and the schema ensured) when the app starts
    and closed once it shuts down; a failure to reach the database aborts
    startup.
    """
    settings = settings or get_settings()
    set_level(settings.log_level)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        pool = pool_factory(settings)
        try:
            db.init_schema(pool, settings.db_timeout_seconds)
        except Exception:
            db.close_pool(pool)
            raise
        app.state.pool = pool
        try:
            yield
        finally:
            db.close_pool(pool)

    app = FastAPI(
        title="Todo API",
        description="Backend API service for managing todos stored in PostgreSQL.",
        version="0.1.0",
        openapi_tags=openapi_tags,
        lifespan=lifespan,
    )
    app.state.settings = settings

    allow_all = (settings.cors_allow_origins == ["*"]) or (len(settings.cors_allow_origins) == 0)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"] if allow_all else settings.cors_allow_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
        """
        Return a consistent JSON structure for request validation errors.

        Response format:
            {
                "error": "ValidationError",
                "detail": [... pydantic/fastapi error details ...],
                "message": "Request validation failed"
            }
        """
        return JSONResponse(
            status_code=422,
            content={
                "error": "ValidationError",
                "message": "Request validation failed",
                "detail": jsonable_encoder(exc.errors()),
            },
        )

    @app.exception_handler(RepositoryError)
    async def repository_exception_handler(request: Request, exc: RepositoryError) -> JSONResponse:
        """
        Turn any store failure that reached the HTTP layer into a generic 500.
        The underlying driver error has already been logged by the repository.
        """
        logger.error(f"{request.method} {request.url.path} failed: {exc}")
        return JSONResponse(
            status_code=500,
            content={"error": "DatabaseError", "message": "Internal server error"},
        )

    # PUBLIC_INTERFACE
    @app.get("/", response_model=HealthOut, summary="Health Check", tags=["health"])
    def health_check() -> HealthOut:
        """
        Health check endpoint.
        """
        return HealthOut(message="Todo API is running", status="success")

    app.include_router(todos_router.router)
    return app


app = create_app()


# PUBLIC_INTERFACE
def run() -> None:
    """Serve the application with uvicorn on HOST:PORT."""
    settings: Settings = app.state.settings
    logger.info(f"Starting Todo API on {settings.host}:{settings.port}")
    uvicorn.run(app, host=settings.host, port=settings.port)


if __name__ == "__main__":
    run()
