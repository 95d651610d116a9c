"""FastAPI application entry point."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from formflow.api import auth, exports, submissions, users
from formflow.config import get_settings
from formflow.database import init_db
from formflow.errors import FormflowError

logger = logging.getLogger(__name__)

settings = get_settings()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Handle application startup and shutdown events."""
    if settings.storage_backend == "hosted":
        init_db()
    logger.info(f"Starting with the {settings.storage_backend} storage backend")
    yield


app = FastAPI(
    title="Formflow API",
    description="Submission tracking with admin-approved accounts and CSV/Word exports",
    version="0.1.0",
    lifespan=lifespan,
)

# CORS middleware for development
if settings.is_development:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["Content-Disposition"],
    )


@app.exception_handler(FormflowError)
async def formflow_error_handler(request: Request, exc: FormflowError):
    """Render domain errors as ``{"detail": message}``."""
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})


# Register routers
app.include_router(auth.router)
app.include_router(users.router)
app.include_router(submissions.router)
app.include_router(exports.router)


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {
        "status": "healthy",
        "environment": settings.environment,
        "storage_backend": settings.storage_backend,
    }
