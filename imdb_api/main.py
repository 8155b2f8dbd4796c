"""
This module is the main entry point for the FastAPI application.
It creates the app, wires logging, CORS, the request-id/access-log middleware
and the exception handlers, and mounts every resource router under /api/v1.
imdb_api.main.py
"""
import os
import uuid
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from loguru import logger

from imdb_api import db
from imdb_api.akas_routes import router as akas_router
from imdb_api.basics_routes import router as basics_router
from imdb_api.cast_routes import router as cast_router
from imdb_api.crews_routes import router as crews_router
from imdb_api.episodes_routes import router as episodes_router
from imdb_api.errors import register_exception_handlers, unhandled_handler
from imdb_api.logger import configure_logging
from imdb_api.names_routes import router as names_router
from imdb_api.responses import ok

API_PREFIX = "/api/v1"
HOST = os.getenv("HOST", "localhost")
PORT = int(os.getenv("PORT", "3000"))
ENSURE_INDEXES = os.getenv("ENSURE_INDEXES", "true").lower() in ("true", "1")
CORS_ORIGINS = [origin.strip() for origin in os.getenv("CORS_ORIGINS", "*").split(",") if origin.strip()]


@asynccontextmanager
async def lifespan(app: FastAPI):
    configure_logging()
    if ENSURE_INDEXES:
        db.ensure_indexes()
    logger.info("IMDb API ready on {}", API_PREFIX)
    yield
    db.close_client()
    logger.info("MongoDB client closed")


def create_app(lifespan=lifespan) -> FastAPI:
    app = FastAPI(title="IMDb API", lifespan=lifespan)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=CORS_ORIGINS,
        allow_methods=["GET", "HEAD", "PUT", "PATCH", "POST", "DELETE"],
        allow_headers=["Content-Type", "Accept"],
    )

    @app.middleware("http")
    async def request_context(request: Request, call_next):
        request_id = str(uuid.uuid4())
        request.state.request_id = request_id
        with logger.contextualize(request_id=request_id):
            try:
                response = await call_next(request)
            except Exception as exc:
                response = await unhandled_handler(request, exc)
            response.headers["X-Request-Id"] = request_id
            logger.info(
                "{} {} {} {} - {} {}",
                request.method,
                request.url.path + (f"?{request.url.query}" if request.url.query else ""),
                response.status_code,
                response.headers.get("content-length", "0"),
                request.headers.get("user-agent", "unknown-UA"),
                request.client.host if request.client else "-",
            )
        return response

    register_exception_handlers(app)

    @app.get("/health")
    def health(request: Request):
        return ok(request, "OK")

    for router in (basics_router, cast_router, crews_router, akas_router, episodes_router, names_router):
        app.include_router(router, prefix=API_PREFIX)

    return app


app = create_app()

if __name__ == "__main__":
    import uvicorn
    uvicorn.run("imdb_api.main:app", host=HOST, port=PORT, reload=db.APP_ENV == "development")
